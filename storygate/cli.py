"""storygate CLI - quality gates for Storybook stories.

The CLI is a thin wrapper around the Python API (see validation/runner.py).
All business logic lives in the library; the CLI handles user interaction,
exit codes and signal-driven cleanup.
"""

from __future__ import annotations

import contextlib
import logging
import signal
import sys
from collections.abc import Iterator
from pathlib import Path
from types import FrameType
from typing import Any, NoReturn

import click

from storygate.config import list_settings
from storygate.constants import DISPLAY_ERROR_LIMIT
from storygate.errors import ConfigError, StorygateError, TargetNotFoundError, UsageError
from storygate.json_output import ErrorDetail, error_envelope, success_envelope
from storygate.output import detail, error, info, skip, success, warn
from storygate.project import find_project_root
from storygate.validation import (
    CheckResult,
    CheckStatus,
    ExitCode,
    OverallStatus,
    ValidationReport,
    Validator,
    exit_code_for,
)

logger = logging.getLogger(__name__)

# Signals that trigger preview-server cleanup before exiting
_CLEANUP_SIGNALS = ("SIGINT", "SIGTERM", "SIGQUIT")


def should_output_json(ctx: click.Context, json_flag: bool = False) -> bool:
    """Determine if JSON output should be used.

    Checks both the global --format option and per-command --json flags.

    Args:
        ctx: Click context containing the format preference.
        json_flag: Per-command --json flag value.

    Returns:
        True if JSON output should be used, False for text output.
    """
    obj = ctx.find_root().obj or {}
    global_format = obj.get("format", "text")
    return global_format == "json" or json_flag


def output_json_envelope(envelope: Any) -> None:
    """Output a JSON envelope to stdout."""
    click.echo(envelope.to_json())


def truncate(text: str, limit: int = DISPLAY_ERROR_LIMIT) -> str:
    """Collapse whitespace and shorten a diagnostic for one-line display."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."


@contextlib.contextmanager
def cleanup_on_signals(validator: Validator) -> Iterator[None]:
    """Stop the validator's preview server when the process is interrupted.

    Installs handlers for SIGINT, SIGTERM and SIGQUIT (where the platform has
    them) that clean up and exit with 128 + signal number. Previous handlers
    are restored on exit.
    """

    def _handler(signum: int, frame: FrameType | None) -> None:
        logger.info("Received signal %d, cleaning up", signum)
        validator.cleanup()
        raise SystemExit(128 + signum)

    previous: dict[int, Any] = {}
    for name in _CLEANUP_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        try:
            previous[signum] = signal.signal(signum, _handler)
        except ValueError:
            # Handlers can only be installed from the main thread
            logger.debug("Cannot install handler for %s outside the main thread", name)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


@click.group()
@click.version_option(package_name="storygate")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format (json for machine parsing, text for humans).",
)
@click.option("--verbose", "-v", is_flag=True, help="Log tool invocations and server activity.")
@click.pass_context
def cli(ctx: click.Context, output_format: str, verbose: bool) -> None:
    """storygate - Quality gates for Storybook stories."""
    ctx.ensure_object(dict)
    ctx.obj["format"] = output_format
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ─────────────────────────────────────────────────────────────────────────────
# Validate command
# ─────────────────────────────────────────────────────────────────────────────


def _output_validate_json(report: ValidationReport) -> None:
    """Output the report as JSON envelope (full diagnostics)."""
    data = report.to_dict()
    if report.overall_status is OverallStatus.FAIL:
        errors = [
            ErrorDetail(type=name, message=truncate(result.error or result.status.value))
            for name, result in report.failures.items()
        ]
        envelope = error_envelope("validate", errors, data=data)
    else:
        envelope = success_envelope("validate", data)
    output_json_envelope(envelope)


def _print_check_result(name: str, result: CheckResult) -> None:
    """Print one check line, plus its truncated diagnostic."""
    msg = f"{name}: {result.status.value}"
    if result.status is CheckStatus.PASS:
        success(msg)
    elif result.status is CheckStatus.FAIL:
        error(msg, file=sys.stdout)
    elif result.status is CheckStatus.SKIP:
        skip(msg)
    else:
        warn(msg, file=sys.stdout)

    if result.error:
        detail(f"  Error: {truncate(result.error)}")


def _print_validate_summary(report: ValidationReport) -> None:
    """Print score, verdict and counts."""
    summary = report.summary
    click.echo()
    headline = f"Overall Score: {summary.score}% ({summary.overall_status.value})"
    if summary.overall_status is OverallStatus.PASS:
        success(headline)
    elif summary.overall_status is OverallStatus.WARNING:
        warn(headline, file=sys.stdout)
    else:
        error(headline, file=sys.stdout)
    detail(f"  Passed: {summary.passed_checks}/{summary.total_checks - summary.skipped_checks}")
    detail(f"  Failed: {summary.failed_checks}")
    detail(f"  Skipped: {summary.skipped_checks}")
    if summary.errored_checks:
        detail(f"  Errored: {summary.errored_checks}")


def _fail_usage(use_json: bool, err: StorygateError) -> NoReturn:
    if use_json:
        envelope = error_envelope(
            "validate",
            [ErrorDetail(type=type(err).__name__, message=err.message, code=err.code)],
        )
        output_json_envelope(envelope)
    else:
        error(err.message)
    raise SystemExit(int(ExitCode.FAILURE)) from err


@cli.command()
@click.argument("story_file", type=click.Path(path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.option("--port", type=int, default=None, help="Preview server port (default: 6006).")
@click.option(
    "--live-test-timeout",
    type=float,
    default=None,
    help="Seconds test-storybook may run (default: 60).",
)
@click.pass_context
def validate(
    ctx: click.Context,
    story_file: Path,
    json_output: bool,
    port: int | None,
    live_test_timeout: float | None,
) -> None:
    """Validate a Storybook story file.

    Runs ESLint, a scoped TypeScript check, a CSF format check and the
    Storybook test-runner (render and interaction tests) against the story,
    then reports a score.

    Exit code 0 means PASS, 2 means WARNING and 1 means FAIL or a usage error.

    With --json (or --format json) the report object, with keys target,
    timestamp, checks and summary, is nested under the "data" key of the
    {success, command, data, errors} output envelope.
    """
    from storygate.config import resolve_settings

    use_json = should_output_json(ctx, json_output)

    try:
        if not story_file.is_file():
            raise TargetNotFoundError(str(story_file))
        project_root = find_project_root(story_file)
        settings = resolve_settings(project_root, port=port, live_test_timeout=live_test_timeout)
        validator = Validator(story_file, project_root=project_root, settings=settings)
    except (UsageError, ConfigError) as err:
        _fail_usage(use_json, err)

    if not use_json:
        info(f"Validating story: {story_file}")
        info(f"Project root: {project_root}")
        click.echo()

    with cleanup_on_signals(validator):
        try:
            report = validator.validate()
        finally:
            validator.cleanup()

    if use_json:
        _output_validate_json(report)
    else:
        click.echo("Validation Results:")
        click.echo("=" * 50)
        for name, result in report.checks.items():
            _print_check_result(name, result)
        _print_validate_summary(report)

    code = exit_code_for(report)
    if code is not ExitCode.SUCCESS:
        raise SystemExit(int(code))


# ─────────────────────────────────────────────────────────────────────────────
# Config command
# ─────────────────────────────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Inspect storygate settings."""


@config.command("list")
@click.argument("path", type=click.Path(path_type=Path), default=".")
@click.option("--json", "json_output", is_flag=True, help="Output settings as JSON")
@click.pass_context
def config_list(ctx: click.Context, path: Path, json_output: bool) -> None:
    """Show every setting with its resolved value and source.

    PATH is a story file or a directory inside the project (default: current directory).
    """
    use_json = should_output_json(ctx, json_output)

    try:
        project_root: Path | None = find_project_root(path)
    except UsageError:
        project_root = None

    try:
        settings = list_settings(project_root)
    except ConfigError as err:
        if use_json:
            output_json_envelope(
                error_envelope(
                    "config",
                    [ErrorDetail(type=type(err).__name__, message=err.message, code=err.code)],
                )
            )
        else:
            error(err.message)
        raise SystemExit(1) from err

    if use_json:
        data = {
            "project_root": str(project_root) if project_root else None,
            "settings": settings,
        }
        output_json_envelope(success_envelope("config", data))
        return

    if project_root is None:
        warn("No project root found; showing environment and defaults only")
    else:
        info(f"Project root: {project_root}")
    for key, entry in settings.items():
        detail(f"  {key} = {entry['value']!r} ({entry['source']})")
