"""Structured error codes for storygate.

All errors follow the format SGATE-{category}{number}:
- SGATE-USE*: Usage errors (bad invocation, nothing to validate)
- SGATE-SRV*: Preview server errors
- SGATE-TOOL*: External tool invocation errors
- SGATE-CFG*: Configuration errors

Check outcomes (a linter reporting problems, a missing tsconfig.json) are not
errors: they are captured as CheckResult values. Only conditions that stop a
check from running at all are raised.
"""

from __future__ import annotations

from typing import Any


class StorygateError(Exception):
    """Base class for all storygate errors.

    All errors have:
    - code: Structured error code (e.g., SGATE-USE001)
    - message: Human-readable error message
    """

    code: str = "SGATE-000"

    # Reserved attribute names that cannot be overwritten by context
    _RESERVED_ATTRS = frozenset({"code", "message", "context", "args"})

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize a storygate error.

        Args:
            message: Human-readable error message.
            **context: Additional context stored as error attributes.
                Reserved keys (code, message, context, args) are ignored.
        """
        self.message = message
        self.context = context
        for key, value in context.items():
            if key not in self._RESERVED_ATTRS:
                setattr(self, key, value)
        super().__init__(f"[{self.code}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to JSON-serializable dict."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# Usage Errors (SGATE-USE*)
class UsageError(StorygateError):
    """Base class for errors raised before any check starts."""

    code = "SGATE-USE000"


class TargetNotFoundError(UsageError):
    """Raised when the story file to validate does not exist.

    Error code: SGATE-USE001
    """

    code = "SGATE-USE001"

    def __init__(self, path: str) -> None:
        super().__init__(f"Story file not found: {path}", path=path)


class ProjectRootNotFoundError(UsageError):
    """Raised when no package.json is found above the story file.

    Error code: SGATE-USE002
    """

    code = "SGATE-USE002"

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Could not find project root with package.json above {path}", path=path
        )


# Server Errors (SGATE-SRV*)
class ServerError(StorygateError):
    """Base class for preview server errors."""

    code = "SGATE-SRV000"


class StartupTimeoutError(ServerError):
    """Raised when the preview server never binds its port.

    Error code: SGATE-SRV001
    """

    code = "SGATE-SRV001"

    def __init__(self, port: int, attempts: int, interval: float) -> None:
        waited = attempts * interval
        super().__init__(
            f"Storybook failed to start within {waited:g} seconds (port {port} never bound)",
            port=port,
            attempts=attempts,
            interval=interval,
        )


class ServerLaunchError(ServerError):
    """Raised when the preview server command cannot be spawned.

    Error code: SGATE-SRV002
    """

    code = "SGATE-SRV002"

    def __init__(self, command: list[str], original_error: Exception) -> None:
        super().__init__(
            f"Could not launch preview server ({' '.join(command)}): {original_error}",
            command=command,
            original_error_type=type(original_error).__name__,
            original_error_message=str(original_error),
        )
        # Keep original exception for programmatic access (not serialized)
        self.original_exception = original_error


# Tool Errors (SGATE-TOOL*)
class ToolInvocationError(StorygateError):
    """Raised when an external tool could not run to completion.

    Error code: SGATE-TOOL001

    Covers a missing executable and an invocation that exceeded its timeout.
    Whatever the tool printed before it was stopped is kept in ``stdout`` and
    ``stderr``.
    """

    code = "SGATE-TOOL001"

    def __init__(
        self,
        command: list[str],
        reason: str,
        *,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
    ) -> None:
        super().__init__(
            f"{command[0] if command else '<empty command>'}: {reason}",
            command=command,
            reason=reason,
            timed_out=timed_out,
        )
        # Partial output can be large; keep it off the serialized context
        self.stdout = stdout
        self.stderr = stderr


# Configuration Errors (SGATE-CFG*)
class ConfigError(StorygateError):
    """Base class for configuration-related errors."""

    code = "SGATE-CFG000"


class ConfigParseError(ConfigError):
    """Raised when a configuration file cannot be parsed.

    Error code: SGATE-CFG001
    """

    code = "SGATE-CFG001"

    def __init__(self, path: str, parse_error: str) -> None:
        super().__init__(
            f"Failed to parse config file {path}: {parse_error}",
            path=path,
            parse_error=parse_error,
        )


class ConfigInvalidStructureError(ConfigError):
    """Raised when a configuration file has an invalid structure.

    Error code: SGATE-CFG002
    """

    code = "SGATE-CFG002"

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            f"Invalid config structure in {path}: {detail}",
            path=path,
            detail=detail,
        )


class ConfigValueError(ConfigError):
    """Raised when a setting value cannot be converted to its expected type.

    Error code: SGATE-CFG003
    """

    code = "SGATE-CFG003"

    def __init__(self, key: str, value: object, expected: str) -> None:
        super().__init__(
            f"Invalid value for '{key}': {value!r} (expected {expected})",
            key=key,
            value=repr(value),
            expected=expected,
        )
