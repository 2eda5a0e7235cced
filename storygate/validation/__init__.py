"""Validation framework for Storybook stories.

This module provides the public API for validating a story file:
- validate(): Run every quality gate against a story
- Validator: The facade owning one validation run and its preview server
- ValidationReport: Aggregate of the check results with score and verdict
- CheckRunner: Base class for the gates
- classify(): Scope live-test output to one story
"""

from storygate.validation.checks import (
    CheckRunner,
    FormatRunner,
    LintRunner,
    LiveTestRunner,
    SingleCheckRunner,
    TypeCheckRunner,
    ValidationContext,
    default_runners,
)
from storygate.validation.classify import LiveTestOutcome, classify
from storygate.validation.results import (
    CheckResult,
    CheckStatus,
    OverallStatus,
    ReportSummary,
    ValidationReport,
    summarize,
)
from storygate.validation.runner import ExitCode, Validator, exit_code_for, validate

__all__ = [
    "CheckResult",
    "CheckRunner",
    "CheckStatus",
    "ExitCode",
    "FormatRunner",
    "LintRunner",
    "LiveTestOutcome",
    "LiveTestRunner",
    "OverallStatus",
    "ReportSummary",
    "SingleCheckRunner",
    "TypeCheckRunner",
    "ValidationContext",
    "ValidationReport",
    "Validator",
    "classify",
    "default_runners",
    "exit_code_for",
    "summarize",
    "validate",
]
