"""Validation result data structures.

These classes capture the outcome of each quality gate and aggregate them
into a report for CLI display and JSON export.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from storygate.constants import PASS_THRESHOLD, WARNING_THRESHOLD


class CheckStatus(Enum):
    """Outcome of a single check.

    PASS: The gate ran and found no problems
    FAIL: The gate ran and reported problems
    SKIP: The gate is not configured for this project
    ERROR: The gate could not run
    """

    PASS = "PASS"
    FAIL = "FAIL"
    SKIP = "SKIP"
    ERROR = "ERROR"


class OverallStatus(Enum):
    """Verdict derived from the score."""

    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


@dataclass(frozen=True)
class CheckResult:
    """Result from a single check.

    Attributes:
        status: Outcome of the check.
        error: Diagnostic text (full tool output); None for passing checks.
        metadata: Optional check-specific extras, e.g. the detected CSF version.
    """

    status: CheckStatus
    error: str | None = None
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, CheckStatus):
            raise TypeError(f"status must be a CheckStatus, got {self.status!r}")
        if self.status is CheckStatus.PASS and self.error is not None:
            raise ValueError("A passing check cannot carry an error")

    @classmethod
    def passed(cls, *, metadata: dict[str, Any] | None = None) -> CheckResult:
        return cls(CheckStatus.PASS, None, metadata)

    @classmethod
    def failed(cls, error: str, *, metadata: dict[str, Any] | None = None) -> CheckResult:
        return cls(CheckStatus.FAIL, error, metadata)

    @classmethod
    def skipped(cls, reason: str, *, metadata: dict[str, Any] | None = None) -> CheckResult:
        return cls(CheckStatus.SKIP, reason, metadata)

    @classmethod
    def errored(cls, error: str, *, metadata: dict[str, Any] | None = None) -> CheckResult:
        return cls(CheckStatus.ERROR, error, metadata)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        d: dict[str, Any] = {
            "status": self.status.value,
            "error": self.error,
        }
        if self.metadata is not None:
            d["metadata"] = self.metadata
        return d


@dataclass(frozen=True)
class ReportSummary:
    """Counts, score and verdict derived from a set of check results.

    Every check lands in exactly one of the passed, failed, skipped and
    errored buckets.
    """

    total_checks: int
    passed_checks: int
    failed_checks: int
    skipped_checks: int
    errored_checks: int
    score: int
    overall_status: OverallStatus

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "totalChecks": self.total_checks,
            "passedChecks": self.passed_checks,
            "failedChecks": self.failed_checks,
            "skippedChecks": self.skipped_checks,
            "erroredChecks": self.errored_checks,
            "score": self.score,
            "overallStatus": self.overall_status.value,
        }


def overall_status_for(score: int) -> OverallStatus:
    """Map a score to the overall verdict (80+ PASS, 60-79 WARNING, else FAIL)."""
    if score >= PASS_THRESHOLD:
        return OverallStatus.PASS
    if score >= WARNING_THRESHOLD:
        return OverallStatus.WARNING
    return OverallStatus.FAIL


def compute_score(passed: int, scored: int) -> int:
    """Percentage of scored checks that passed, rounded half up.

    Args:
        passed: Number of passing checks.
        scored: Number of checks that count toward the score (total - skipped).

    Returns:
        Integer in [0, 100]; 0 when nothing was scored.
    """
    if scored <= 0:
        return 0
    # Integer form of floor(100 * passed / scored + 0.5)
    return (200 * passed + scored) // (2 * scored)


def summarize(checks: Mapping[str, CheckResult]) -> ReportSummary:
    """Aggregate check results into counts, score and verdict.

    SKIP checks are left out of the score. ERROR checks stay in it: a gate
    that could not run lowers the score like a failing one, but is counted
    in its own bucket rather than as failed.
    """
    counts = {status: 0 for status in CheckStatus}
    for result in checks.values():
        counts[result.status] += 1

    total = len(checks)
    passed = counts[CheckStatus.PASS]
    skipped = counts[CheckStatus.SKIP]
    score = compute_score(passed, total - skipped)

    return ReportSummary(
        total_checks=total,
        passed_checks=passed,
        failed_checks=counts[CheckStatus.FAIL],
        skipped_checks=skipped,
        errored_checks=counts[CheckStatus.ERROR],
        score=score,
        overall_status=overall_status_for(score),
    )


@dataclass(frozen=True)
class ValidationReport:
    """Aggregate of all check results for one story file.

    Build it with ValidationReport.build() once every check has settled; the
    summary is derived at that point and the report is read-only afterwards.

    Attributes:
        target: The story file that was validated.
        timestamp: When the validation run started (UTC).
        checks: Check name to result, read-only.
        summary: Counts, score and verdict derived from checks.
    """

    target: str
    timestamp: datetime
    checks: Mapping[str, CheckResult]
    summary: ReportSummary

    @classmethod
    def build(
        cls,
        target: str,
        checks: Mapping[str, CheckResult],
        *,
        timestamp: datetime | None = None,
    ) -> ValidationReport:
        """Freeze the collected results and compute the summary."""
        frozen = MappingProxyType(dict(checks))
        return cls(
            target=target,
            timestamp=timestamp or datetime.now(timezone.utc),
            checks=frozen,
            summary=summarize(frozen),
        )

    @property
    def overall_status(self) -> OverallStatus:
        return self.summary.overall_status

    @property
    def failures(self) -> dict[str, CheckResult]:
        """FAIL and ERROR results keyed by check name."""
        return {
            name: result
            for name, result in self.checks.items()
            if result.status in (CheckStatus.FAIL, CheckStatus.ERROR)
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict for --json output."""
        return {
            "target": self.target,
            "timestamp": self.timestamp.isoformat(),
            "checks": {name: result.to_dict() for name, result in self.checks.items()},
            "summary": self.summary.to_dict(),
        }

    def to_json(self, *, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
