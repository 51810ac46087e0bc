#!/usr/bin/env python3
"""Helpers for driving the axe UI-automation binary"""

import logging
import os
import shutil
import time
from typing import Callable, Dict, Optional, Sequence, Tuple

from xcodebuild_mcp_server.exceptions import (
    AxeError,
    DependencyError,
    SystemFailureError,
    XcodeBuildMCPError,
)
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.responses import (
    ToolResponse,
    create_error_response,
    create_text_response,
)

logger = logging.getLogger(__name__)

LOG_PREFIX = "[AXe]"

DESCRIBE_UI_WARNING_SECONDS = 60

BUNDLED_AXE_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "bundled", "axe")

AXE_NOT_AVAILABLE_MESSAGE = (
    "AXe tool not found. UI automation features are not available.\n\n"
    "Install AXe (brew tap cameroncooke/axe && brew install axe) or set XCODEBUILDMCP_AXE_PATH."
)


class DescribeUITracker:
    """Remembers when describe_ui last ran for each simulator."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._timestamps: Dict[str, float] = {}

    def record(self, simulator_uuid: str):
        self._timestamps[simulator_uuid] = self._clock()

    def coordinate_warning(self, simulator_uuid: str) -> Optional[str]:
        """Warning text when coordinates may be guessed or stale, else None."""
        last = self._timestamps.get(simulator_uuid)
        if last is None:
            return (
                "Warning: describe_ui has not been called yet. Consider using describe_ui "
                "for precise coordinates instead of guessing from screenshots."
            )
        elapsed = self._clock() - last
        if elapsed > DESCRIBE_UI_WARNING_SECONDS:
            return (
                f"Warning: describe_ui was last called {round(elapsed)} seconds ago. Consider refreshing "
                "UI coordinates with describe_ui instead of using potentially stale coordinates."
            )
        return None


def resolve_axe(settings) -> Tuple[str, Optional[Dict[str, str]]]:
    """
    Locate the axe binary.

    Order: explicit XCODEBUILDMCP_AXE_PATH, the bundled copy, then PATH.

    Returns:
        (binary path, environment overrides or None)

    Raises:
        DependencyError: If axe cannot be found
    """
    if settings.axe_path:
        if os.path.isfile(settings.axe_path) and os.access(settings.axe_path, os.X_OK):
            return settings.axe_path, None
        raise DependencyError(f"axe not found at XCODEBUILDMCP_AXE_PATH: {settings.axe_path}")

    if os.path.isfile(BUNDLED_AXE_PATH) and os.access(BUNDLED_AXE_PATH, os.X_OK):
        bundle_dir = os.path.dirname(BUNDLED_AXE_PATH)
        return BUNDLED_AXE_PATH, {"DYLD_FRAMEWORK_PATH": os.path.join(bundle_dir, "Frameworks")}

    found = shutil.which("axe")
    if found:
        return found, None
    raise DependencyError("axe binary not found")


def execute_axe_command(context, args: Sequence[str], simulator_uuid: str, command_name: str) -> str:
    """
    Run an axe subcommand against a simulator.

    Args:
        context: ToolContext with executor and settings
        args: Subcommand and its arguments, without --udid
        simulator_uuid: Target simulator, appended as --udid
        command_name: Name used in error messages

    Returns:
        The command's trimmed stdout

    Raises:
        DependencyError: If axe is not installed
        AxeError: If axe exits with failure
        SystemFailureError: For any other execution problem
    """
    binary, env = resolve_axe(context.settings)
    argv = [binary, *[str(arg) for arg in args], "--udid", simulator_uuid]

    try:
        result = context.executor(command(argv, f"{LOG_PREFIX}: {command_name}", env=env))
    except XcodeBuildMCPError:
        raise
    except Exception as e:
        raise SystemFailureError(f"Failed to execute axe command: {e}", e) from e

    if not result.success:
        raise AxeError(
            f"axe command '{command_name}' failed.",
            command_name,
            result.error or result.output,
            simulator_uuid,
        )
    return (result.output or "").strip()


def create_axe_not_available_response() -> ToolResponse:
    return create_text_response(AXE_NOT_AVAILABLE_MESSAGE, is_error=True)


def axe_failure_response(error: Exception, failure_message: str) -> ToolResponse:
    """Map an axe execution error to the envelope shown to the client."""
    if isinstance(error, DependencyError):
        return create_axe_not_available_response()
    if isinstance(error, AxeError):
        return create_error_response(f"{failure_message}: {error.message}", error.axe_output)
    if isinstance(error, XcodeBuildMCPError):
        return create_error_response(f"System error executing axe: {error.message}")
    return create_error_response(f"An unexpected error occurred: {error}")


def run_axe_action(context, tool_name: str, args: Sequence[str], simulator_uuid: str,
                   success_message: str, failure_message: str,
                   coordinate_warning: bool = False) -> ToolResponse:
    """
    Run an axe command and wrap the outcome in a ToolResponse.

    Coordinate-based actions append the describe_ui staleness warning on success.
    """
    logger.info(f"{LOG_PREFIX}/{tool_name}: Starting on {simulator_uuid}")
    try:
        execute_axe_command(context, args, simulator_uuid, args[0])
    except Exception as e:
        logger.error(f"{LOG_PREFIX}/{tool_name}: Failed - {e}")
        return axe_failure_response(e, failure_message)

    logger.info(f"{LOG_PREFIX}/{tool_name}: Success for {simulator_uuid}")
    if coordinate_warning:
        warning = context.describe_ui_tracker.coordinate_warning(simulator_uuid)
        if warning:
            return create_text_response(f"{success_message}\n\n{warning}")
    return create_text_response(success_message)
