#!/usr/bin/env python3
"""macOS tools - build, test, locate, launch and stop apps"""

import logging
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.build_settings import extract_app_path
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.responses import (
    create_response,
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
    build_settings_command,
    construct_destination,
    execute_xcodebuild,
    execute_xcodebuild_tests,
    get_app_path,
)

logger = logging.getLogger(__name__)

MACOS_BUILD_PREFIX = "macOS Build"


def _macos_options(params, log_prefix: str = MACOS_BUILD_PREFIX) -> PlatformOptions:
    return PlatformOptions(XcodePlatform.MACOS, log_prefix, arch=params.get("arch"))


def _validate(params):
    return validate_required_params(params, ["scheme"]) or validate_project_or_workspace(params)


@tool_boundary(f"Error during {MACOS_BUILD_PREFIX} build")
def build_macos_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate(params)
    if error:
        return error
    return execute_xcodebuild(build_params_from(params), _macos_options(params), "build", context)


@tool_boundary("Error during test run")
def test_macos_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate(params)
    if error:
        return error
    return execute_xcodebuild_tests(build_params_from(params), _macos_options(params, "Test Run"), context)


@tool_boundary("Error retrieving app path")
def get_mac_app_path_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate(params)
    if error:
        return error

    def next_steps(app_path: str) -> str:
        return (
            "Next Steps:\n"
            f'1. Get bundle ID: get_mac_bundle_id({{ app_path: "{app_path}" }})\n'
            f'2. Launch the app: launch_mac_app({{ app_path: "{app_path}" }})'
        )

    destination = construct_destination(_macos_options(params))
    return get_app_path(build_params_from(params), destination, context, next_steps)


def _build_warnings(build_result) -> List[str]:
    return [text for text in build_result.texts if text.startswith(("⚠️ Warning:", "❌"))]


@tool_boundary("Error during macOS build and run")
def build_run_mac_logic(params: dict, context):
    """
    Build a macOS app, then open it.

    A failed build is returned unchanged. Once the build succeeded, failing to
    locate or open the app is reported without the error flag.
    """
    params = drop_empty(params)
    error = _validate(params)
    if error:
        return error

    logger.info("Handling macOS build & run")
    build_params = build_params_from(params)
    build_result = execute_xcodebuild(build_params, _macos_options(params), "build", context)
    if build_result.is_error:
        return build_result
    warnings = _build_warnings(build_result)

    settings = context.executor(command(
        build_settings_command(build_params), "Get Build Settings for Launch", use_shell=True
    ))
    app_path = extract_app_path(settings.output) if settings.success else None
    if app_path is None:
        reason = (
            "Could not extract app path from build settings" if settings.success
            else settings.error or "Failed to get build settings"
        )
        logger.error("Build succeeded, but failed to get app path to launch.")
        return create_response(warnings + [f"✅ Build succeeded, but failed to get app path to launch: {reason}"])

    logger.info(f"App path determined as: {app_path}")
    launch = context.executor(command(["open", app_path], "Launch macOS App"))
    if not launch.success:
        logger.error(f"Build succeeded, but failed to launch app {app_path}: {launch.error}")
        return create_response(
            warnings + [f"✅ Build succeeded, but failed to launch app {app_path}. Error: {launch.error}"]
        )

    logger.info(f"✅ macOS app launched successfully: {app_path}")
    return create_response(
        warnings + [f"✅ macOS build and run succeeded for scheme {build_params.scheme}. App launched: {app_path}"]
    )


@tool_boundary("❌ Launch macOS app operation failed")
def launch_mac_app_logic(params: dict, context):
    error = validate_required_params(params, ["app_path"])
    if error:
        return error

    app_path = params["app_path"]
    if not context.file_system.exists(app_path):
        return create_text_response(
            f"File not found: '{app_path}'. Please check the path and try again.", is_error=True
        )

    argv = ["open", app_path]
    if params.get("args"):
        argv += ["--args", *params["args"]]
    logger.info(f"Starting launch macOS app request for {app_path}")
    result = context.executor(command(argv, "Launch macOS App"))
    if not result.success:
        return create_text_response(f"❌ Launch macOS app operation failed: {result.error}", is_error=True)
    return create_text_response(f"✅ macOS app launched successfully: {app_path}")


@tool_boundary("❌ Stop macOS app operation failed")
def stop_mac_app_logic(params: dict, context):
    params = drop_empty(params)
    app_name, process_id = params.get("app_name"), params.get("process_id")
    if not app_name and process_id is None:
        return create_text_response("Either app_name or process_id must be provided.", is_error=True)

    # process_id wins when both are given
    if process_id is not None:
        argv = ["kill", str(process_id)]
        target = f"PID {process_id}"
    else:
        argv = ["sh", "-c", f"pkill -f \"{app_name}\" || osascript -e 'tell application \"{app_name}\" to quit'"]
        target = app_name

    logger.info(f"Stopping macOS app: {target}")
    result = context.executor(command(argv, "Stop macOS App"))
    if not result.success:
        return create_text_response(f"❌ Stop macOS app operation failed: {result.error}", is_error=True)
    return create_text_response(f"✅ macOS app stopped successfully: {target}")


@mcp.tool()
def build_macos(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                configuration: Optional[str] = None, arch: Optional[str] = None,
                derived_data_path: Optional[str] = None, extra_args: Optional[List[str]] = None):
    """
    Build a macOS app.

    Args:
        scheme: The scheme to build
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        arch: Architecture to build for, 'arm64' or 'x86_64'
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(build_macos_logic(params, get_default_context()))


@mcp.tool()
def test_macos(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
               configuration: Optional[str] = None, arch: Optional[str] = None,
               derived_data_path: Optional[str] = None, extra_args: Optional[List[str]] = None):
    """
    Run macOS tests and summarize the xcresult bundle.

    Args:
        scheme: The scheme to test
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        arch: Architecture to test on
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(test_macos_logic(params, get_default_context()))


@mcp.tool()
def get_mac_app_path(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                     configuration: Optional[str] = None, arch: Optional[str] = None):
    """
    Get the .app bundle path of a macOS build.

    Args:
        scheme: The scheme that was built
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        arch: Architecture that was built
    """
    params = dict(locals())
    return to_mcp_result(get_mac_app_path_logic(params, get_default_context()))


@mcp.tool()
def build_run_mac(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                  configuration: Optional[str] = None, arch: Optional[str] = None,
                  derived_data_path: Optional[str] = None, extra_args: Optional[List[str]] = None):
    """
    Build a macOS app and launch it in one step.

    Args:
        scheme: The scheme to build and run
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        arch: Architecture to build for, 'arm64' or 'x86_64'
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(build_run_mac_logic(params, get_default_context()))


@mcp.tool()
def launch_mac_app(app_path: str, args: Optional[List[str]] = None):
    """
    Launch a macOS app with `open`.

    Args:
        app_path: Path to the .app bundle
        args: Arguments passed to the app after --args
    """
    params = dict(locals())
    return to_mcp_result(launch_mac_app_logic(params, get_default_context()))


@mcp.tool()
def stop_mac_app(app_name: Optional[str] = None, process_id: Optional[int] = None):
    """
    Stop a running macOS app by process id or by name.

    Args:
        app_name: Application name, matched with pkill or quit through osascript
        process_id: Process id to kill, takes precedence over app_name
    """
    params = dict(locals())
    return to_mcp_result(stop_mac_app_logic(params, get_default_context()))
