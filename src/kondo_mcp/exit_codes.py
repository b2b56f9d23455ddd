"""Standardized CLI exit codes and error taxonomy for kondo-mcp.

Exit code scheme:

    0  SUCCESS          -- command completed
    1  GENERAL_ERROR    -- unexpected failure, crash, unhandled exception
    2  USAGE_ERROR      -- invalid arguments, unknown command, missing parameter
    3  ENGINE_FAILURE   -- clj-kondo missing, crashed, or returned malformed data

Every per-request error carries an ``error_code`` string that ends up in the
MCP error envelope, so agents can branch on it without parsing messages.
"""

from __future__ import annotations

import sys

import click

# ---------------------------------------------------------------------------
# Exit code constants
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_ERROR: int = 1
EXIT_USAGE: int = 2
EXIT_ENGINE_FAILURE: int = 3

DESCRIPTIONS: dict[int, str] = {
    EXIT_SUCCESS: "success",
    EXIT_ERROR: "unexpected error",
    EXIT_USAGE: "invalid usage (unknown command or bad parameters)",
    EXIT_ENGINE_FAILURE: "clj-kondo failed -- check that it is installed and on PATH",
}

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class KondoError(click.ClickException):
    """Base class for kondo-mcp errors with exit codes."""

    error_code = "UNKNOWN"

    def __init__(self, message: str, exit_code: int = EXIT_ERROR):
        super().__init__(message)
        self.exit_code = exit_code

    def format_message(self) -> str:
        return self.message


class UnknownCommandError(KondoError):
    """Raised when a request names a command outside the fixed set."""

    error_code = "UNKNOWN_COMMAND"

    def __init__(self, command, available: list[str]):
        super().__init__(f"Unknown command: {command!r}", EXIT_USAGE)
        self.command = command
        self.available = list(available)


class MissingParameterError(KondoError):
    """Raised when a command needs a parameter the request did not carry."""

    error_code = "MISSING_PARAMETER"

    def __init__(self, parameter: str, command: str | None = None):
        where = f" for command '{command}'" if command else ""
        super().__init__(f"Missing required parameter '{parameter}'{where}", EXIT_USAGE)
        self.parameter = parameter


class InvalidParameterError(KondoError):
    """Raised when a parameter is present but has an unusable value."""

    error_code = "INVALID_PARAMETER"

    def __init__(self, parameter: str, value, allowed: list[str] | None = None):
        msg = f"Invalid value for '{parameter}': {value!r}"
        if allowed:
            msg += f" (expected one of: {', '.join(allowed)})"
        super().__init__(msg, EXIT_USAGE)
        self.parameter = parameter
        self.value = value


class EngineFailureError(KondoError):
    """Raised when the clj-kondo call fails or returns malformed output."""

    error_code = "ENGINE_FAILURE"

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message, EXIT_ENGINE_FAILURE)
        self.returncode = returncode
        self.stderr = stderr


class HostCapabilityAbsent(KondoError):
    """Raised when an optional host-plugin capability cannot be resolved.

    Only used during startup registration; never surfaced to end users.
    """

    error_code = "HOST_CAPABILITY_ABSENT"

    def __init__(self, capability: str):
        super().__init__(f"Host capability not available: {capability}")
        self.capability = capability


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------


def exit_with(code: int, message: str | None = None) -> None:
    """Print an optional message to stderr and exit with the given code."""
    if message:
        click.echo(f"Error: {message}", err=True)
    sys.exit(code)
