"""Validator facade: runs every check against one story file.

All runners are submitted together and joined with an all-complete wait.
Each runner converts its own failures into results (CheckRunner.execute),
so the join never sees an exception and no runner can cancel another.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path

from storygate.config import Settings, resolve_settings
from storygate.errors import TargetNotFoundError
from storygate.project import find_project_root
from storygate.server import PreviewServer
from storygate.validation.checks import CheckRunner, ValidationContext, default_runners
from storygate.validation.results import CheckResult, OverallStatus, ValidationReport

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit status for a finished validation."""

    SUCCESS = 0
    FAILURE = 1
    WARNING = 2


def exit_code_for(report: ValidationReport) -> ExitCode:
    """Map the overall verdict to a process exit status."""
    status = report.overall_status
    if status is OverallStatus.FAIL:
        return ExitCode.FAILURE
    if status is OverallStatus.WARNING:
        return ExitCode.WARNING
    return ExitCode.SUCCESS


class Validator:
    """Coordinates the quality gates for one story file.

    The validator owns the preview server used by the live tests; cleanup()
    stops it and may be called any number of times, from any thread or from
    a signal handler.
    """

    def __init__(
        self,
        target: Path,
        *,
        project_root: Path | None = None,
        settings: Settings | None = None,
        runners: Sequence[CheckRunner] | None = None,
        server: PreviewServer | None = None,
    ) -> None:
        """Prepare a validation run.

        Args:
            target: Story file to validate.
            project_root: Project root; found by walking up to package.json if None.
            settings: Resolved settings; read from env and .storygate.yaml if None.
            runners: Check runners; the four default gates if None.
            server: Preview server; one is created for the project if None.

        Raises:
            TargetNotFoundError: If the story file does not exist.
            ProjectRootNotFoundError: If no package.json is found above it.
            ConfigError: If the project configuration is invalid.
        """
        self.target = Path(target)
        if not self.target.is_file():
            raise TargetNotFoundError(str(target))

        self.project_root = project_root or find_project_root(self.target)
        self.settings = settings or resolve_settings(self.project_root)
        self.server = server or PreviewServer(self.project_root, self.settings)
        self.runners: tuple[CheckRunner, ...] = (
            tuple(runners) if runners is not None else default_runners(self.server)
        )

    def validate(self) -> ValidationReport:
        """Run every check and return the finished report.

        The preview server is stopped before returning, also when a check
        runner misbehaves.
        """
        timestamp = datetime.now(timezone.utc)
        context = ValidationContext(
            target=self.target,
            project_root=self.project_root,
            settings=self.settings,
        )
        logger.info("Validating story: %s (project root: %s)", self.target, self.project_root)

        try:
            checks = self._run_all(context)
        finally:
            self.cleanup()

        report = ValidationReport.build(str(self.target), checks, timestamp=timestamp)
        logger.info(
            "Validation finished: score %d (%s)",
            report.summary.score,
            report.summary.overall_status.value,
        )
        return report

    def cleanup(self) -> None:
        """Stop the preview server if it is running. Idempotent."""
        self.server.stop()

    def _run_all(self, context: ValidationContext) -> dict[str, CheckResult]:
        if not self.runners:
            return {}

        with ThreadPoolExecutor(
            max_workers=len(self.runners), thread_name_prefix="storygate-check"
        ) as executor:
            futures = [executor.submit(runner.execute, context) for runner in self.runners]
            wait(futures)

        # Merge in runner order so the report does not depend on completion order
        checks: dict[str, CheckResult] = {}
        for future in futures:
            checks.update(future.result())
        return checks


def validate(
    target: Path,
    *,
    project_root: Path | None = None,
    settings: Settings | None = None,
) -> ValidationReport:
    """Validate one story file with the default gates.

    Args:
        target: Story file to validate.
        project_root: Project root; found by walking up to package.json if None.
        settings: Resolved settings; read from env and .storygate.yaml if None.

    Returns:
        The finished ValidationReport.
    """
    validator = Validator(target, project_root=project_root, settings=settings)
    try:
        return validator.validate()
    finally:
        validator.cleanup()
