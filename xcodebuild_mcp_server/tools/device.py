#!/usr/bin/env python3
"""Physical device tools - build, test, install, launch, stop and list devices"""

import json
import logging
import os
import time
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.devices import format_device_list, parse_devicectl_devices
from xcodebuild_mcp_server.utils.responses import (
    create_text_response,
    drop_empty,
    to_mcp_result,
    tool_boundary,
    validate_project_or_workspace,
    validate_required_params,
)
from xcodebuild_mcp_server.utils.xcodebuild import (
    PlatformOptions,
    XcodePlatform,
    build_params_from,
    execute_xcodebuild,
    execute_xcodebuild_tests,
    get_app_path,
)

logger = logging.getLogger(__name__)

DEVICE_BUILD_PREFIX = "iOS Device Build"


def _timestamp() -> int:
    return int(time.time() * 1000)


def _remove_quietly(fs, path: str):
    try:
        if fs.exists(path):
            fs.remove(path)
    except OSError as e:
        logger.debug(f"Could not remove {path}: {e}")


def _validate_project_tool(params, required):
    return validate_required_params(params, required) or validate_project_or_workspace(params)


@tool_boundary(f"Error during {DEVICE_BUILD_PREFIX} build")
def build_device_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_project_tool(params, ["scheme"])
    if error:
        return error

    return execute_xcodebuild(
        build_params_from(params),
        PlatformOptions(XcodePlatform.IOS, DEVICE_BUILD_PREFIX),
        "build",
        context,
    )


@tool_boundary("Error during test run")
def test_device_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_project_tool(params, ["scheme", "device_id"])
    if error:
        return error

    return execute_xcodebuild_tests(
        build_params_from(params),
        PlatformOptions(XcodePlatform.IOS, "Test Run", device_id=params["device_id"]),
        context,
    )


@tool_boundary("Error retrieving app path")
def get_device_app_path_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_project_tool(params, ["scheme"])
    if error:
        return error

    def next_steps(app_path: str) -> str:
        return (
            "Next Steps:\n"
            f'1. Get bundle ID: get_app_bundle_id({{ app_path: "{app_path}" }})\n'
            f'2. Install app on device: install_app_device({{ device_id: "DEVICE_UDID", app_path: "{app_path}" }})\n'
            '3. Launch app on device: launch_app_device({ device_id: "DEVICE_UDID", bundle_id: "BUNDLE_ID" })'
        )

    return get_app_path(build_params_from(params), "generic/platform=iOS", context, next_steps)


@tool_boundary("Failed to install app on device")
def install_app_device_logic(params: dict, context):
    error = validate_required_params(params, ["device_id", "app_path"])
    if error:
        return error

    device_id = params["device_id"]
    logger.info(f"Installing app on device {device_id}")
    result = context.executor(command(
        ["xcrun", "devicectl", "device", "install", "app", "--device", device_id, params["app_path"]],
        "Install app on device",
        use_shell=True,
    ))
    if not result.success:
        return create_text_response(f"Failed to install app: {result.error}", is_error=True)

    return create_text_response(f"✅ App installed successfully on device {device_id}\n\n{result.output}")


@tool_boundary("Failed to launch app on device")
def launch_app_device_logic(params: dict, context):
    error = validate_required_params(params, ["device_id", "bundle_id"])
    if error:
        return error

    device_id = params["device_id"]
    fs = context.file_system
    json_path = os.path.join(fs.tmpdir(), f"launch-{_timestamp()}.json")

    logger.info(f"Launching {params['bundle_id']} on device {device_id}")
    result = context.executor(command(
        ["xcrun", "devicectl", "device", "process", "launch", "--device", device_id,
         "--json-output", json_path, "--terminate-existing", params["bundle_id"]],
        "Launch app on device",
        use_shell=True,
    ))
    if not result.success:
        _remove_quietly(fs, json_path)
        return create_text_response(f"Failed to launch app: {result.error}", is_error=True)

    process_id = None
    try:
        launch_data = json.loads(fs.read_text(json_path))
        process_id = ((launch_data.get("result") or {}).get("process") or {}).get("processIdentifier")
    except (OSError, ValueError, AttributeError) as e:
        logger.warning(f"Failed to read launch JSON output: {e}")
    finally:
        _remove_quietly(fs, json_path)

    text = f"✅ App launched successfully\n\n{result.output}"
    if process_id is not None:
        text += (
            f"\n\nProcess ID: {process_id}"
            "\n\nNext Steps:"
            "\n1. Interact with your app on the device"
            f'\n2. Stop the app: stop_app_device({{ device_id: "{device_id}", process_id: {process_id} }})'
        )
    return create_text_response(text)


@tool_boundary("Failed to stop app on device")
def stop_app_device_logic(params: dict, context):
    error = validate_required_params(params, ["device_id", "process_id"])
    if error:
        return error

    result = context.executor(command(
        ["xcrun", "devicectl", "device", "process", "terminate", "--device", params["device_id"],
         "--pid", str(params["process_id"])],
        "Stop app on device",
        use_shell=True,
    ))
    if not result.success:
        return create_text_response(f"Failed to stop app: {result.error}", is_error=True)

    return create_text_response(f"✅ App stopped successfully\n\n{result.output}")


@tool_boundary("Failed to list devices")
def list_devices_logic(params: dict, context):
    fs = context.file_system
    json_path = os.path.join(fs.tmpdir(), f"devicectl-{_timestamp()}.json")
    devices = None

    try:
        result = context.executor(command(
            ["xcrun", "devicectl", "list", "devices", "--json-output", json_path],
            "List Devices (devicectl with JSON)",
            use_shell=True,
        ))
        if result.success:
            devices = parse_devicectl_devices(fs.read_text(json_path))
    except Exception as e:
        logger.info(f"devicectl with JSON failed, trying xctrace fallback: {e}")
    finally:
        _remove_quietly(fs, json_path)

    if not devices:
        result = context.executor(command(
            ["xcrun", "xctrace", "list", "devices"],
            "List Devices (xctrace)",
            use_shell=True,
        ))
        if not result.success:
            return create_text_response(
                f"Failed to list devices: {result.error}\n\n"
                "Make sure Xcode is installed and devices are connected and trusted.",
                is_error=True,
            )
        return create_text_response(
            f"Device listing (xctrace output):\n\n{result.output}\n\n"
            "Note: For better device information, please upgrade to Xcode 15 or later "
            "which supports the modern devicectl command."
        )

    return create_text_response(format_device_list(devices))


@mcp.tool()
def build_device(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                 configuration: Optional[str] = None, derived_data_path: Optional[str] = None,
                 extra_args: Optional[List[str]] = None):
    """
    Build an app for a physical iOS device (generic/platform=iOS).

    Args:
        scheme: The scheme to build
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(build_device_logic(params, get_default_context()))


@mcp.tool()
def test_device(scheme: str, device_id: str, project_path: Optional[str] = None,
                workspace_path: Optional[str] = None, configuration: Optional[str] = None,
                derived_data_path: Optional[str] = None, extra_args: Optional[List[str]] = None):
    """
    Run tests on a physical device and summarize the xcresult bundle.

    Args:
        scheme: The scheme to test
        device_id: UDID of the device (from list_devices)
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(test_device_logic(params, get_default_context()))


@mcp.tool()
def get_device_app_path(scheme: str, project_path: Optional[str] = None,
                        workspace_path: Optional[str] = None, configuration: Optional[str] = None):
    """
    Get the .app bundle path of a device build.

    Args:
        scheme: The scheme that was built
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
    """
    params = dict(locals())
    return to_mcp_result(get_device_app_path_logic(params, get_default_context()))


@mcp.tool()
def install_app_device(device_id: str, app_path: str):
    """
    Install an .app bundle on a physical device.

    Args:
        device_id: UDID of the device (from list_devices)
        app_path: Path to the .app bundle
    """
    params = dict(locals())
    return to_mcp_result(install_app_device_logic(params, get_default_context()))


@mcp.tool()
def launch_app_device(device_id: str, bundle_id: str):
    """
    Launch an installed app on a physical device, terminating any running instance.

    Args:
        device_id: UDID of the device (from list_devices)
        bundle_id: Bundle identifier of the app
    """
    params = dict(locals())
    return to_mcp_result(launch_app_device_logic(params, get_default_context()))


@mcp.tool()
def stop_app_device(device_id: str, process_id: int):
    """
    Terminate an app process on a physical device.

    Args:
        device_id: UDID of the device
        process_id: PID reported by launch_app_device
    """
    params = dict(locals())
    return to_mcp_result(stop_app_device_logic(params, get_default_context()))


@mcp.tool()
def list_devices():
    """List connected physical Apple devices with their UDIDs and connection state."""
    return to_mcp_result(list_devices_logic({}, get_default_context()))
