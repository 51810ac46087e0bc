#!/usr/bin/env python3
"""iOS Simulator tools - list, boot, install, launch, build, build & run, test"""

import logging
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.exceptions import ParseError
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.build_settings import extract_app_path, extract_codesigning_app_path
from xcodebuild_mcp_server.utils.bundle import read_bundle_id
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.responses import (
    create_response,
    create_text_response,
    drop_empty,
    to_mcp_result,
    tool_boundary,
    validate_exactly_one,
    validate_project_or_workspace,
    validate_required_params,
)
from xcodebuild_mcp_server.utils.simulators import (
    find_simulator,
    format_simulator_list,
    parse_simulator_list,
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

SIMULATOR_BUILD_PREFIX = "iOS Simulator Build"

LIST_SIMS_COMMAND = ["xcrun", "simctl", "list", "devices", "available", "--json"]


def _validate_simulator_build(params, required=("scheme",)):
    return (
        validate_required_params(params, list(required))
        or validate_project_or_workspace(params)
        or validate_exactly_one(params, "simulator_id", "simulator_name")
    )


def _simulator_options(params, log_prefix: str = SIMULATOR_BUILD_PREFIX) -> PlatformOptions:
    simulator_id = params.get("simulator_id")
    return PlatformOptions(
        XcodePlatform.IOS_SIMULATOR,
        log_prefix,
        simulator_id=simulator_id,
        simulator_name=params.get("simulator_name"),
        # An explicit simulator id pins the OS already
        use_latest_os=False if simulator_id else bool(params.get("use_latest_os", True)),
    )


@tool_boundary("Failed to list simulators")
def list_sims_logic(params: dict, context):
    logger.info("Starting xcrun simctl list devices request")
    result = context.executor(command(LIST_SIMS_COMMAND, "List Simulators", use_shell=True))
    if not result.success:
        return create_text_response(f"Failed to list simulators: {result.error}", is_error=True)

    try:
        runtimes = parse_simulator_list(result.output)
    except ParseError as e:
        logger.warning(f"Returning raw simctl output: {e.message}")
        return create_text_response(result.output)

    return create_text_response(
        format_simulator_list(runtimes)
        + "\nNext Steps:\n"
        "1. Boot a simulator: boot_sim({ simulator_uuid: 'UUID_FROM_ABOVE' })\n"
        "2. Open the simulator UI: open_sim()\n"
        "3. Build for simulator: build_sim({ scheme: 'YOUR_SCHEME', simulator_id: 'UUID_FROM_ABOVE' })\n"
        "4. Get app path: get_sim_app_path({ scheme: 'YOUR_SCHEME', simulator_id: 'UUID_FROM_ABOVE' })"
    )


@tool_boundary("Boot simulator operation failed")
def boot_sim_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid"])
    if error:
        return error

    uuid = params["simulator_uuid"]
    logger.info(f"Starting xcrun simctl boot request for simulator {uuid}")
    result = context.executor(command(["xcrun", "simctl", "boot", uuid], "Boot Simulator", use_shell=True))
    if not result.success:
        return create_text_response(f"Boot simulator operation failed: {result.error}", is_error=True)

    return create_text_response(
        "Simulator booted successfully. Next steps:\n"
        "1. Open the Simulator app: open_sim()\n"
        f'2. Install an app: install_app_sim({{ simulator_uuid: "{uuid}", app_path: "PATH_TO_YOUR_APP" }})\n'
        f'3. Launch an app: launch_app_sim({{ simulator_uuid: "{uuid}", bundle_id: "YOUR_APP_BUNDLE_ID" }})\n'
        "4. Log capture options:\n"
        "   - Option 1: Capture structured logs only (app continues running):\n"
        f'     start_sim_log_cap({{ simulator_uuid: "{uuid}", bundle_id: "YOUR_APP_BUNDLE_ID" }})\n'
        "   - Option 2: Capture both console and structured logs (app will restart):\n"
        f'     start_sim_log_cap({{ simulator_uuid: "{uuid}", bundle_id: "YOUR_APP_BUNDLE_ID", capture_console: true }})\n'
        "   - Option 3: Launch app with logs in one step:\n"
        f'     launch_app_logs_sim({{ simulator_uuid: "{uuid}", bundle_id: "YOUR_APP_BUNDLE_ID" }})'
    )


@tool_boundary("Open simulator operation failed")
def open_sim_logic(params: dict, context):
    result = context.executor(command(["open", "-a", "Simulator"], "Open Simulator", use_shell=True))
    if not result.success:
        return create_text_response(f"Open simulator operation failed: {result.error}", is_error=True)

    return create_response([
        "Simulator app opened successfully",
        "Next Steps:\n"
        "1. Boot a simulator if needed: boot_sim({ simulator_uuid: 'UUID_FROM_LIST_SIMS' })\n"
        "2. Launch your app and interact with it\n"
        "3. Capture logs: start_sim_log_cap({ simulator_uuid: 'UUID', bundle_id: 'YOUR_APP_BUNDLE_ID' })",
    ])


@tool_boundary("Install app in simulator operation failed")
def install_app_sim_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "app_path"])
    if error:
        return error

    uuid, app_path = params["simulator_uuid"], params["app_path"]
    if not context.file_system.exists(app_path):
        return create_text_response(
            f"File not found: '{app_path}'. Please check the path and try again.", is_error=True
        )

    logger.info(f"Starting xcrun simctl install request for simulator {uuid}")
    result = context.executor(command(
        ["xcrun", "simctl", "install", uuid, app_path], "Install App in Simulator", use_shell=True
    ))
    if not result.success:
        return create_text_response(f"Install app in simulator operation failed: {result.error}", is_error=True)

    try:
        bundle_id = read_bundle_id(app_path, context.executor)
    except ParseError as e:
        logger.warning(f"Could not extract bundle ID from app: {e.message}")
        bundle_id = "YOUR_APP_BUNDLE_ID"

    return create_response([
        f"App installed successfully in simulator {uuid}",
        "Next Steps:\n"
        "1. Open the Simulator app: open_sim()\n"
        f'2. Launch the app: launch_app_sim({{ simulator_uuid: "{uuid}", bundle_id: "{bundle_id}" }})',
    ])


@tool_boundary("Launch app in simulator operation failed")
def launch_app_sim_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "bundle_id"])
    if error:
        return error

    uuid, bundle_id = params["simulator_uuid"], params["bundle_id"]
    container = context.executor(command(
        ["xcrun", "simctl", "get_app_container", uuid, bundle_id, "app"], "Check App Installed", use_shell=True
    ))
    if not container.success:
        return create_text_response(
            "App is not installed on the simulator. Please use install_app_sim before launching.\n\n"
            "Workflow: build → install → launch.",
            is_error=True,
        )

    argv = ["xcrun", "simctl", "launch", uuid, bundle_id, *(params.get("args") or [])]
    result = context.executor(command(argv, "Launch App in Simulator", use_shell=True))
    if not result.success:
        return create_text_response(f"Launch app in simulator operation failed: {result.error}", is_error=True)

    return create_response([
        f"App launched successfully in simulator {uuid}",
        "Next Steps:\n"
        "1. You can now interact with the app in the simulator.\n"
        "2. Log capture options:\n"
        "   - Option 1: Capture structured logs only (app continues running):\n"
        f'     start_sim_log_cap({{ simulator_uuid: "{uuid}", bundle_id: "{bundle_id}" }})\n'
        "   - Option 2: Capture both console and structured logs (app will restart):\n"
        f'     start_sim_log_cap({{ simulator_uuid: "{uuid}", bundle_id: "{bundle_id}", capture_console: true }})\n'
        "\n"
        "3. When done with any option, use: stop_sim_log_cap({ log_session_id: 'SESSION_ID' })",
    ])


@tool_boundary("Stop app in simulator operation failed")
def stop_app_sim_logic(params: dict, context):
    error = validate_required_params(params, ["simulator_uuid", "bundle_id"])
    if error:
        return error

    uuid, bundle_id = params["simulator_uuid"], params["bundle_id"]
    result = context.executor(command(
        ["xcrun", "simctl", "terminate", uuid, bundle_id], "Stop App in Simulator", use_shell=True
    ))
    if not result.success:
        return create_text_response(f"Stop app in simulator operation failed: {result.error}", is_error=True)

    return create_text_response(f"✅ App {bundle_id} stopped successfully in simulator {uuid}")


@tool_boundary(f"Error during {SIMULATOR_BUILD_PREFIX} build")
def build_sim_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_simulator_build(params)
    if error:
        return error

    return execute_xcodebuild(build_params_from(params), _simulator_options(params), "build", context)


@tool_boundary("Error during test run")
def test_sim_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_simulator_build(params)
    if error:
        return error

    return execute_xcodebuild_tests(build_params_from(params), _simulator_options(params, "Test Run"), context)


@tool_boundary("Error retrieving app path")
def get_sim_app_path_logic(params: dict, context):
    params = drop_empty(params)
    error = _validate_simulator_build(params)
    if error:
        return error

    def next_steps(app_path: str) -> str:
        return (
            "Next Steps:\n"
            f'1. Get bundle ID: get_app_bundle_id({{ app_path: "{app_path}" }})\n'
            "2. Boot simulator: boot_sim({ simulator_uuid: \"SIMULATOR_UUID\" })\n"
            f'3. Install app: install_app_sim({{ simulator_uuid: "SIMULATOR_UUID", app_path: "{app_path}" }})\n'
            '4. Launch app: launch_app_sim({ simulator_uuid: "SIMULATOR_UUID", bundle_id: "BUNDLE_ID" })'
        )

    destination = construct_destination(_simulator_options(params))
    return get_app_path(build_params_from(params), destination, context, next_steps)


def _boot_if_needed(params, context):
    """
    Find the target simulator and boot it unless it is already running.

    Returns:
        (simulator udid, None) on success or (None, error response)
    """
    listing = context.executor(command(LIST_SIMS_COMMAND, "List Simulators", use_shell=True))
    if not listing.success:
        return None, create_text_response(
            f"Build succeeded, but error checking/booting simulator: {listing.error or 'Failed to list simulators'}",
            is_error=True,
        )
    try:
        runtimes = parse_simulator_list(listing.output)
    except ParseError as e:
        return None, create_text_response(
            f"Build succeeded, but error checking/booting simulator: {e.message}", is_error=True
        )

    simulator_id = params.get("simulator_id")
    simulator = find_simulator(runtimes, udid=simulator_id, name=params.get("simulator_name"))
    if simulator is None:
        target = f"UUID: {simulator_id}" if simulator_id else f"name: {params.get('simulator_name')}"
        return None, create_text_response(f"Build succeeded, but could not find simulator with {target}", is_error=True)

    if simulator.is_booted:
        logger.info(f"Simulator {simulator.udid} is already booted")
        return simulator.udid, None

    logger.info(f"Booting simulator {simulator.name}...")
    boot = context.executor(command(["xcrun", "simctl", "boot", simulator.udid], "Boot Simulator", use_shell=True))
    if not boot.success:
        return None, create_text_response(
            f"Build succeeded, but error checking/booting simulator: {boot.error or 'Failed to boot simulator'}",
            is_error=True,
        )
    return simulator.udid, None


@tool_boundary("Error in iOS Simulator build and run")
def build_run_sim_logic(params: dict, context):
    """
    Build, install and launch an app on a simulator.

    Each step runs only if the previous one succeeded; the first failing
    step's response is returned as-is.
    """
    params = drop_empty(params)
    error = _validate_simulator_build(params)
    if error:
        return error

    build_params = build_params_from(params)
    options = _simulator_options(params)

    build_result = execute_xcodebuild(build_params, options, "build", context)
    if build_result.is_error:
        return build_result

    settings = context.executor(command(
        build_settings_command(build_params, construct_destination(options)), "Get App Path", use_shell=True
    ))
    if not settings.success:
        return create_text_response(
            f"Build succeeded, but failed to get app path: {settings.error or 'Unknown error'}", is_error=True
        )
    app_path = extract_codesigning_app_path(settings.output) or extract_app_path(settings.output)
    if not app_path:
        return create_text_response("Build succeeded, but could not find app path in build settings.", is_error=True)
    logger.info(f"App bundle path for run: {app_path}")

    simulator_uuid, error = _boot_if_needed(params, context)
    if error:
        return error

    opened = context.executor(command(["open", "-a", "Simulator"], "Open Simulator App", use_shell=True))
    if not opened.success:
        logger.warning(f"Warning: Could not open Simulator app: {opened.error}")

    install = context.executor(command(
        ["xcrun", "simctl", "install", simulator_uuid, app_path], "Install App", use_shell=True
    ))
    if not install.success:
        return create_text_response(
            f"Build succeeded, but error installing app on simulator: {install.error or 'Failed to install app'}",
            is_error=True,
        )

    try:
        bundle_id = read_bundle_id(app_path, context.executor)
    except ParseError as e:
        return create_text_response(
            f"Build and install succeeded, but error getting bundle ID: {e.message}", is_error=True
        )

    launch = context.executor(command(
        ["xcrun", "simctl", "launch", simulator_uuid, bundle_id], "Launch App", use_shell=True
    ))
    if not launch.success:
        return create_text_response(
            f"Build and install succeeded, but error launching app on simulator: {launch.error or 'Failed to launch app'}",
            is_error=True,
        )

    source_kind, source_path = build_params.source
    target = (
        f"simulator UUID '{params['simulator_id']}'" if params.get("simulator_id")
        else f"simulator name '{params['simulator_name']}'"
    )
    logger.info("✅ iOS Simulator build & run succeeded.")
    return create_text_response(
        f"✅ iOS Simulator build and run succeeded for scheme {build_params.scheme} "
        f"from {source_kind} {source_path} targeting {target}.\n\n"
        f"The app ({bundle_id}) is now running in the iOS Simulator.\n"
        "If you don't see the simulator window, it may be hidden behind other windows. "
        "The Simulator app should be open.\n\n"
        "Next Steps:\n"
        "- Option 1: Capture structured logs only (app continues running):\n"
        f"  start_sim_log_cap({{ simulator_uuid: '{simulator_uuid}', bundle_id: '{bundle_id}' }})\n"
        "- Option 2: Capture both console and structured logs (app will restart):\n"
        f"  start_sim_log_cap({{ simulator_uuid: '{simulator_uuid}', bundle_id: '{bundle_id}', capture_console: true }})\n"
        "- Option 3: Launch app with logs in one step (for a fresh start):\n"
        f"  launch_app_logs_sim({{ simulator_uuid: '{simulator_uuid}', bundle_id: '{bundle_id}' }})\n\n"
        "When done with any option, use: stop_sim_log_cap({ log_session_id: 'SESSION_ID' })"
    )


@mcp.tool()
def list_sims():
    """List available iOS simulators with their UUIDs and boot state."""
    return to_mcp_result(list_sims_logic({}, get_default_context()))


@mcp.tool()
def boot_sim(simulator_uuid: str):
    """
    Boot an iOS simulator.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
    """
    params = dict(locals())
    return to_mcp_result(boot_sim_logic(params, get_default_context()))


@mcp.tool()
def open_sim():
    """Open the Simulator app."""
    return to_mcp_result(open_sim_logic({}, get_default_context()))


@mcp.tool()
def install_app_sim(simulator_uuid: str, app_path: str):
    """
    Install an .app bundle in a simulator.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
        app_path: Path to the .app bundle
    """
    params = dict(locals())
    return to_mcp_result(install_app_sim_logic(params, get_default_context()))


@mcp.tool()
def launch_app_sim(simulator_uuid: str, bundle_id: str, args: Optional[List[str]] = None):
    """
    Launch an installed app in a simulator.

    Args:
        simulator_uuid: UUID of the simulator (from list_sims)
        bundle_id: Bundle identifier of the app
        args: Additional launch arguments
    """
    params = dict(locals())
    return to_mcp_result(launch_app_sim_logic(params, get_default_context()))


@mcp.tool()
def stop_app_sim(simulator_uuid: str, bundle_id: str):
    """
    Terminate an app running in a simulator.

    Args:
        simulator_uuid: UUID of the simulator
        bundle_id: Bundle identifier of the app
    """
    params = dict(locals())
    return to_mcp_result(stop_app_sim_logic(params, get_default_context()))


@mcp.tool()
def build_sim(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
              simulator_id: Optional[str] = None, simulator_name: Optional[str] = None,
              configuration: Optional[str] = None, derived_data_path: Optional[str] = None,
              extra_args: Optional[List[str]] = None, use_latest_os: bool = True):
    """
    Build an app for an iOS simulator.

    Args:
        scheme: The scheme to build
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        simulator_id: Simulator UUID (exclusive with simulator_name)
        simulator_name: Simulator name such as 'iPhone 16' (exclusive with simulator_id)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
        use_latest_os: With simulator_name, target the latest OS version
    """
    params = dict(locals())
    return to_mcp_result(build_sim_logic(params, get_default_context()))


@mcp.tool()
def build_run_sim(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                  simulator_id: Optional[str] = None, simulator_name: Optional[str] = None,
                  configuration: Optional[str] = None, derived_data_path: Optional[str] = None,
                  extra_args: Optional[List[str]] = None, use_latest_os: bool = True):
    """
    Build an app, boot the simulator, then install and launch the app.

    Args:
        scheme: The scheme to build
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        simulator_id: Simulator UUID (exclusive with simulator_name)
        simulator_name: Simulator name such as 'iPhone 16' (exclusive with simulator_id)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
        use_latest_os: With simulator_name, target the latest OS version
    """
    params = dict(locals())
    return to_mcp_result(build_run_sim_logic(params, get_default_context()))


@mcp.tool()
def test_sim(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
             simulator_id: Optional[str] = None, simulator_name: Optional[str] = None,
             configuration: Optional[str] = None, derived_data_path: Optional[str] = None,
             extra_args: Optional[List[str]] = None, use_latest_os: bool = True):
    """
    Run tests on an iOS simulator and summarize the xcresult bundle.

    Args:
        scheme: The scheme to test
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        simulator_id: Simulator UUID (exclusive with simulator_name)
        simulator_name: Simulator name (exclusive with simulator_id)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
        use_latest_os: With simulator_name, target the latest OS version
    """
    params = dict(locals())
    return to_mcp_result(test_sim_logic(params, get_default_context()))


@mcp.tool()
def get_sim_app_path(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
                     simulator_id: Optional[str] = None, simulator_name: Optional[str] = None,
                     configuration: Optional[str] = None, use_latest_os: bool = True):
    """
    Get the .app bundle path of a simulator build.

    Args:
        scheme: The scheme that was built
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        simulator_id: Simulator UUID (exclusive with simulator_name)
        simulator_name: Simulator name (exclusive with simulator_id)
        configuration: Build configuration, defaults to Debug
        use_latest_os: With simulator_name, target the latest OS version
    """
    params = dict(locals())
    return to_mcp_result(get_sim_app_path_logic(params, get_default_context()))
