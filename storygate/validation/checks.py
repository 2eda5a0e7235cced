"""Check runners: one class per quality gate.

Each runner inspects the project to decide whether its gate applies, runs
the external tool (or reads the file) and turns the outcome into
CheckResult values. Runners are designed to be unit-testable in isolation
and composable into a concurrent batch: CheckRunner.execute() never raises,
so one broken gate cannot abort the others.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from storygate.config import Settings
from storygate.constants import (
    FORMAT_COMPLIANCE,
    INTERACTION_TEST,
    LINTING,
    RENDER_TEST,
    TSCONFIG,
    TSCONFIG_APP,
    TSCONFIG_EXCLUDES,
    TYPESCRIPT,
)
from storygate.errors import ServerError, ToolInvocationError
from storygate.project import (
    has_eslint_config,
    has_storybook_config,
    has_test_runner,
    has_typescript_config,
    relative_posix,
    story_identifier,
)
from storygate.server import PreviewServer
from storygate.tools import run_tool
from storygate.validation.classify import classify, file_reference_pattern
from storygate.validation.results import CheckResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationContext:
    """Everything a runner needs to check one story file.

    Attributes:
        target: The story file.
        project_root: Directory holding package.json; tools run here.
        settings: Resolved settings for this run.
    """

    target: Path
    project_root: Path
    settings: Settings = field(default_factory=Settings)

    @property
    def relative_target(self) -> str:
        """Story path relative to the project root, with forward slashes."""
        return relative_posix(self.target, self.project_root)

    @property
    def identifier(self) -> str:
        """Story identifier used to find the file in live-test output."""
        return story_identifier(self.target)


class CheckRunner(ABC):
    """Base class for all check runners.

    Subclasses must define:
        check_names: Names of the checks this runner reports
        description: Human-readable explanation

    Subclasses must implement:
        run(): Run the gate and return one result per check name
    """

    check_names: tuple[str, ...]
    description: str

    @abstractmethod
    def run(self, context: ValidationContext) -> dict[str, CheckResult]:
        """Run the gate against one story file.

        Args:
            context: Story file, project root and settings.

        Returns:
            Mapping of check name to result for every name in check_names.
        """
        ...

    def execute(self, context: ValidationContext) -> dict[str, CheckResult]:
        """Run the gate, converting any unexpected exception into ERROR results."""
        try:
            results = self.run(context)
        except Exception as e:
            logger.exception("%s crashed while checking %s", type(self).__name__, context.target)
            message = f"{type(e).__name__}: {e}"
            return {name: CheckResult.errored(message) for name in self.check_names}

        return {
            name: results.get(name) or CheckResult.errored(f"{name} produced no result")
            for name in self.check_names
        }


class SingleCheckRunner(CheckRunner):
    """Runner reporting exactly one check."""

    name: str

    @property
    def check_names(self) -> tuple[str, ...]:  # type: ignore[override]
        return (self.name,)

    @abstractmethod
    def check(self, context: ValidationContext) -> CheckResult:
        """Run the gate and return its single result."""
        ...

    def run(self, context: ValidationContext) -> dict[str, CheckResult]:
        return {self.name: self.check(context)}


class LintRunner(SingleCheckRunner):
    """Style conformance via ESLint.

    Skipped when the project has no ESLint configuration. A non-zero exit
    is a failure carrying the linter report.
    """

    name = LINTING
    description = "Run ESLint on the story file"

    def check(self, context: ValidationContext) -> CheckResult:
        if not has_eslint_config(context.project_root):
            return CheckResult.skipped("No ESLint configuration found")

        command = [*context.settings.lint_command, context.relative_target]
        try:
            output = run_tool(
                command, cwd=context.project_root, timeout=context.settings.tool_timeout
            )
        except ToolInvocationError as e:
            return CheckResult.errored(e.message)

        if output.ok:
            return CheckResult.passed()
        return CheckResult.failed(output.diagnostic)


@contextlib.contextmanager
def scoped_tsconfig(project_root: Path, config: dict[str, Any]) -> Iterator[Path]:
    """Write a temporary tsconfig into the project root, removed on exit.

    The file must live in the project root so relative "extends" and
    "include" entries resolve the way they do for the real config.
    """
    fd, name = tempfile.mkstemp(prefix="tsconfig.storygate-", suffix=".json", dir=project_root)
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(config, handle, indent=2)
        yield path
    finally:
        path.unlink(missing_ok=True)


class TypeCheckRunner(SingleCheckRunner):
    """Type conformance via tsc, scoped to the story file.

    A temporary tsconfig extends the project's own config, includes only the
    story and excludes test files, so unrelated type errors elsewhere in the
    project do not fail the story.
    """

    name = TYPESCRIPT
    description = "Type-check the story file with tsc"

    def check(self, context: ValidationContext) -> CheckResult:
        root = context.project_root
        if not has_typescript_config(root):
            return CheckResult.skipped("No TypeScript configuration found")

        scoped = {
            "extends": self._base_config(root, context.settings.tsconfig_base),
            "include": [context.relative_target],
            "exclude": list(TSCONFIG_EXCLUDES),
        }
        with scoped_tsconfig(root, scoped) as config_path:
            command = [*context.settings.typecheck_command, "--project", config_path.name]
            try:
                output = run_tool(command, cwd=root, timeout=context.settings.tool_timeout)
            except ToolInvocationError as e:
                return CheckResult.errored(e.message)

        if output.ok:
            return CheckResult.passed()
        return CheckResult.failed(output.diagnostic)

    @staticmethod
    def _base_config(project_root: Path, configured: str | None) -> str:
        if configured:
            base = configured
        elif (project_root / TSCONFIG_APP).exists():
            base = TSCONFIG_APP
        else:
            base = TSCONFIG
        return base if base.startswith(".") else f"./{base}"


class CsfVersion(Enum):
    """Component Story Format generation detected in a story file."""

    CSF2 = "CSF2"
    CSF3 = "CSF3"
    UNKNOWN = "UNKNOWN"


CSF3_MARKERS: tuple[str, ...] = ("StoryObj<", "Meta<", "satisfies Meta<")
CSF2_MARKERS: tuple[str, ...] = ("storiesOf(", "addDecorator(", "addParameters(")
MODERN_MARKERS: tuple[str, ...] = ("satisfies", "as Meta<", "StoryObj<")


def detect_csf_version(content: str) -> CsfVersion:
    """Detect the story format from source text.

    CSF2 markers without any CSF3 marker mean the deprecated format; CSF3 or
    modern (Storybook 7+) markers mean CSF3; anything else is unknown.
    """
    has_csf3 = any(marker in content for marker in CSF3_MARKERS)
    has_csf2 = any(marker in content for marker in CSF2_MARKERS)
    has_modern = any(marker in content for marker in MODERN_MARKERS)

    if has_csf2 and not has_csf3:
        return CsfVersion.CSF2
    if has_csf3 or has_modern:
        return CsfVersion.CSF3
    return CsfVersion.UNKNOWN


class FormatRunner(SingleCheckRunner):
    """Structural format conformance: the story must use CSF3."""

    name = FORMAT_COMPLIANCE
    description = "Verify the story uses Component Story Format 3"

    def check(self, context: ValidationContext) -> CheckResult:
        try:
            content = context.target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return CheckResult.errored(
                f"Cannot read {context.target}: {e}",
                metadata={"csfVersion": CsfVersion.UNKNOWN.value},
            )

        version = detect_csf_version(content)
        metadata = {"csfVersion": version.value}
        if version is CsfVersion.CSF3:
            return CheckResult.passed(metadata=metadata)
        return CheckResult.failed(f"Detected {version.value} format", metadata=metadata)


class LiveTestRunner(CheckRunner):
    """Render and interaction tests against a running preview server.

    Skipped when the Storybook test-runner is not a project dependency.
    Otherwise the preview server is started, test-storybook runs against the
    story file, and the server is stopped before the output is classified.
    """

    check_names = (RENDER_TEST, INTERACTION_TEST)
    description = "Run test-storybook for the story file"

    def __init__(self, server: PreviewServer) -> None:
        self.server = server

    def run(self, context: ValidationContext) -> dict[str, CheckResult]:
        if not has_test_runner(context.project_root):
            return self._both(CheckResult.skipped("No Storybook test-runner found"))
        if not has_storybook_config(context.project_root):
            logger.warning(
                "No .storybook directory in %s; the preview server may not start",
                context.project_root,
            )

        identifier = context.identifier
        try:
            with self.server.running() as handle:
                logger.info("Running test-storybook for story: %s", identifier)
                command = [
                    *context.settings.live_test_command,
                    context.relative_target,
                    f"--url={handle.url}",
                ]
                try:
                    output = run_tool(
                        command,
                        cwd=context.project_root,
                        timeout=context.settings.live_test_timeout,
                    )
                    text = output.text
                except ToolInvocationError as e:
                    text = "\n".join(part for part in (e.stdout, e.stderr) if part)
                    # A timed-out run may still have reported on this story
                    if not (e.timed_out and file_reference_pattern(identifier).search(text)):
                        return self._both(CheckResult.failed(e.message))
        except ServerError as e:
            logger.warning("Live tests not run: %s", e.message)
            return self._both(CheckResult.failed(e.message))

        return classify(text, identifier).as_checks()

    def _both(self, result: CheckResult) -> dict[str, CheckResult]:
        return {name: result for name in self.check_names}


def default_runners(server: PreviewServer) -> tuple[CheckRunner, ...]:
    """The four gates of a full validation, sharing one preview server."""
    return (
        LintRunner(),
        TypeCheckRunner(),
        FormatRunner(),
        LiveTestRunner(server),
    )
