"""Standardized terminal output utilities.

All user-facing CLI messages should use these functions for consistent
formatting across the application. Diagnostics for developers go through
``logging`` instead.

Basic Usage:
    from storygate.output import success, info, warn, error, detail, skip

    success("linting: PASS")
    error("renderTest: FAIL")
    skip("typeScript: SKIP")
    warn("Overall Score: 67% (WARNING)")
    info("Validating story: src/Button.stories.tsx")
    detail("Error: Component failed to render")
"""

from __future__ import annotations

import sys
from typing import TextIO

import click

# ANSI color codes via click's style system
_STYLES = {
    "success": {"fg": "green"},
    "info": {"fg": "blue"},
    "warn": {"fg": "yellow"},
    "error": {"fg": "red"},
    "skip": {"fg": "cyan"},
    "detail": {"fg": "bright_black"},  # Dimmed/gray
}

_PREFIXES = {
    "success": "✓",  # checkmark
    "info": "→",  # arrow
    "warn": "⚠",  # warning
    "error": "✗",  # X
    "skip": "↷",  # clockwise arrow
    "detail": " ",  # space (no prefix, just indent)
}


def _output(
    message: str,
    style: str,
    *,
    file: TextIO | None = None,
    nl: bool = True,
) -> None:
    """Internal helper for styled output.

    Args:
        message: The message to display.
        style: The style name (success, error, info, warn, skip, detail).
        file: File to write to.
        nl: Whether to print a newline after the message.
    """
    prefix = _PREFIXES[style]
    fg_color = _STYLES[style]["fg"]
    styled_prefix = click.style(prefix, fg=fg_color)
    styled_message = click.style(message, fg=fg_color)
    click.echo(f"{styled_prefix} {styled_message}", file=file, nl=nl)


def success(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a success message with green checkmark.

    Example:
        >>> success("linting: PASS")
        ✓ linting: PASS
    """
    _output(message, "success", file=file, nl=nl)


def info(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print an info message with blue arrow.

    Example:
        >>> info("Project root: /work/app")
        → Project root: /work/app
    """
    _output(message, "info", file=file, nl=nl)


def warn(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a warning message with yellow warning symbol.

    Args:
        message: The message to display.
        file: File to write to (default: stderr).
        nl: Whether to print a newline after the message.
    """
    _output(message, "warn", file=file or sys.stderr, nl=nl)


def error(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print an error message with red X.

    Args:
        message: The message to display.
        file: File to write to (default: stderr).
        nl: Whether to print a newline after the message.
    """
    _output(message, "error", file=file or sys.stderr, nl=nl)


def skip(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a skipped-check message with cyan arrow."""
    _output(message, "skip", file=file, nl=nl)


def detail(message: str, *, file: TextIO | None = None, nl: bool = True) -> None:
    """Print a detail message in dimmed text.

    Example:
        >>> detail("   Error: Unexpected token")
             Error: Unexpected token
    """
    _output(message, "detail", file=file, nl=nl)
