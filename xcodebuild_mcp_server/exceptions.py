#!/usr/bin/env python3
"""Exception classes for XcodeBuild MCP Server"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    VALIDATION = "validation"
    COMMAND_FAILURE = "command_failure"
    PARSE_FAILURE = "parse_failure"
    DEPENDENCY_MISSING = "dependency_missing"
    SYSTEM = "system"


class XcodeBuildMCPError(Exception):
    kind = ErrorKind.SYSTEM

    def __init__(self, message, code=None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidParameterError(XcodeBuildMCPError):
    kind = ErrorKind.VALIDATION


class CommandFailedError(XcodeBuildMCPError):
    """An external command ran but reported failure."""
    kind = ErrorKind.COMMAND_FAILURE


class AxeError(CommandFailedError):
    def __init__(self, message, command: str, axe_output: str, simulator_uuid: str):
        super().__init__(message)
        self.command = command
        self.axe_output = axe_output
        self.simulator_uuid = simulator_uuid


class ParseError(XcodeBuildMCPError):
    kind = ErrorKind.PARSE_FAILURE


class DependencyError(XcodeBuildMCPError):
    """A required external binary could not be located."""
    kind = ErrorKind.DEPENDENCY_MISSING


class SystemFailureError(XcodeBuildMCPError):
    kind = ErrorKind.SYSTEM

    def __init__(self, message, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class LogSessionNotFoundError(XcodeBuildMCPError):
    kind = ErrorKind.VALIDATION

    def __init__(self, session_id: str, description: str = "Log capture session"):
        super().__init__(f"{description} not found: {session_id}")
        self.session_id = session_id


def as_tool_error(error: BaseException) -> XcodeBuildMCPError:
    """Normalize any raised exception into an XcodeBuildMCPError."""
    if isinstance(error, XcodeBuildMCPError):
        return error
    return SystemFailureError(str(error), error)
