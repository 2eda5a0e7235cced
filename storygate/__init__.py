"""storygate - Quality gates for Storybook stories."""

from __future__ import annotations

from storygate.cli import cli
from storygate.validation import (
    CheckResult,
    CheckStatus,
    ValidationReport,
    Validator,
    classify,
    validate,
)

__all__ = [
    "CheckResult",
    "CheckStatus",
    "ValidationReport",
    "Validator",
    "classify",
    "cli",
    "validate",
]
