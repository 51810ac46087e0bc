#!/usr/bin/env python3
"""Log capture tools for simulators and physical devices"""

import logging
from typing import List, Optional, Union

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.exceptions import as_tool_error
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.log_capture import LogCaptureManager
from xcodebuild_mcp_server.utils.responses import (
    create_text_response,
    to_mcp_result,
    tool_boundary,
    validate_required_params,
)

logger = logging.getLogger(__name__)

DEVICE_SESSION_DESCRIPTION = "Device log capture session"


@tool_boundary("Error starting log capture")
def start_sim_log_cap_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "bundle_id"])
    if error:
        return error

    capture_console = bool(params.get("capture_console"))
    try:
        session = LogCaptureManager(context).start_simulator_capture(
            params["simulator_uuid"],
            params["bundle_id"],
            context.sim_log_sessions,
            capture_console=capture_console,
            subsystem_filter=params.get("subsystem_filter") or "app",
        )
    except Exception as e:
        return create_text_response(f"Error starting log capture: {as_tool_error(e).message}", is_error=True)

    note = (
        "Note: Your app was relaunched to capture console output."
        if capture_console
        else "Note: Only structured logs are being captured."
    )
    return create_text_response(
        f"Log capture started successfully. Session ID: {session.session_id}.\n\n{note}\n\n"
        "Next Steps:\n"
        "1. Interact with your simulator and app.\n"
        f"2. Use 'stop_sim_log_cap' with session ID '{session.session_id}' to stop capture and retrieve logs."
    )


@tool_boundary("Error stopping log capture session")
def stop_sim_log_cap_logic(params: dict, context):
    error = validate_required_params(params, ["log_session_id"])
    if error:
        return error

    session_id = params["log_session_id"]
    try:
        content = LogCaptureManager(context).stop_capture(context.sim_log_sessions, session_id)
    except Exception as e:
        return create_text_response(
            f"Error stopping log capture session {session_id}: {as_tool_error(e).message}", is_error=True
        )

    return create_text_response(
        f"Log capture session {session_id} stopped successfully. Log content follows:\n\n{content}"
    )


@tool_boundary("Failed to start device log capture")
def start_device_log_cap_logic(params: dict, context):
    error = validate_required_params(params, ["device_id", "bundle_id"])
    if error:
        return error

    try:
        session = LogCaptureManager(context).start_device_capture(
            params["device_id"], params["bundle_id"], context.device_log_sessions
        )
    except Exception as e:
        return create_text_response(
            f"Failed to start device log capture: {as_tool_error(e).message}", is_error=True
        )

    session_id = session.session_id
    return create_text_response(
        "✅ Device log capture started successfully\n\n"
        f"Session ID: {session_id}\n\n"
        "Note: The app has been launched on the device with console output capture enabled.\n\n"
        "Next Steps:\n"
        "1. Interact with your app on the device\n"
        f"2. Use stop_device_log_cap({{ log_session_id: '{session_id}' }}) to stop capture and retrieve logs"
    )


@tool_boundary("Failed to stop device log capture")
def stop_device_log_cap_logic(params: dict, context):
    error = validate_required_params(params, ["log_session_id"])
    if error:
        return error

    session_id = params["log_session_id"]
    try:
        content = LogCaptureManager(context).stop_capture(
            context.device_log_sessions, session_id, DEVICE_SESSION_DESCRIPTION
        )
    except Exception as e:
        return create_text_response(
            f"Failed to stop device log capture session {session_id}: {as_tool_error(e).message}",
            is_error=True,
        )

    return create_text_response(
        "✅ Device log capture session stopped successfully\n\n"
        f"Session ID: {session_id}\n\n"
        f"--- Captured Logs ---\n{content}"
    )


@tool_boundary("Error launching app with log capture")
def launch_app_logs_sim_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "bundle_id"])
    if error:
        return error

    simulator_uuid = params["simulator_uuid"]
    logger.info(f"Starting app launch with logs for simulator {simulator_uuid}")
    try:
        session = LogCaptureManager(context).start_simulator_capture(
            simulator_uuid,
            params["bundle_id"],
            context.sim_log_sessions,
            capture_console=True,
            args=params.get("args") or (),
        )
    except Exception as e:
        return create_text_response(
            f"App was launched but log capture failed: {as_tool_error(e).message}", is_error=True
        )

    return create_text_response(
        f"App launched successfully in simulator {simulator_uuid} with log capture enabled.\n\n"
        f"Log capture session ID: {session.session_id}\n\n"
        "Next Steps:\n"
        "1. Interact with your app in the simulator.\n"
        f"2. Use 'stop_sim_log_cap' with session ID '{session.session_id}' to stop capture and retrieve logs."
    )


@mcp.tool()
def start_sim_log_cap(simulator_uuid: str, bundle_id: str, capture_console: Optional[bool] = False,
                      subsystem_filter: Optional[Union[str, List[str]]] = None):
    """
    Start capturing logs from a simulator app. Returns a session id.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
        bundle_id: Bundle identifier of the app to capture
        capture_console: Also relaunch the app to capture its console output
        subsystem_filter: 'app' (default), 'all', 'swiftui', or a list of extra subsystems
    """
    params = dict(locals())
    return to_mcp_result(start_sim_log_cap_logic(params, get_default_context()))


@mcp.tool()
def stop_sim_log_cap(log_session_id: str):
    """
    Stop a simulator log capture session and return the captured logs.

    Args:
        log_session_id: Session id returned by start_sim_log_cap
    """
    params = dict(locals())
    return to_mcp_result(stop_sim_log_cap_logic(params, get_default_context()))


@mcp.tool()
def start_device_log_cap(device_id: str, bundle_id: str):
    """
    Launch an app on a physical device and capture its console output. Returns a session id.

    Args:
        device_id: UDID of the device (from list_devices)
        bundle_id: Bundle identifier of the app to launch
    """
    params = dict(locals())
    return to_mcp_result(start_device_log_cap_logic(params, get_default_context()))


@mcp.tool()
def stop_device_log_cap(log_session_id: str):
    """
    Stop a device log capture session and return the captured logs.

    Args:
        log_session_id: Session id returned by start_device_log_cap
    """
    params = dict(locals())
    return to_mcp_result(stop_device_log_cap_logic(params, get_default_context()))


@mcp.tool()
def launch_app_logs_sim(simulator_uuid: str, bundle_id: str, args: Optional[List[str]] = None):
    """
    Launch an app in a simulator with console and os_log capture enabled.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
        bundle_id: Bundle identifier of the app to launch
        args: Launch arguments passed to the app
    """
    params = dict(locals())
    return to_mcp_result(launch_app_logs_sim_logic(params, get_default_context()))
