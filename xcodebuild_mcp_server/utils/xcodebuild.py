#!/usr/bin/env python3
"""xcodebuild command construction and build/test result normalization"""

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from xcodebuild_mcp_server.exceptions import InvalidParameterError, as_tool_error
from xcodebuild_mcp_server.utils.build_settings import APP_PATH_EXTRACTION_FAILED, extract_app_path
from xcodebuild_mcp_server.utils.command import command
from xcodebuild_mcp_server.utils.responses import (
    ToolResponse,
    create_response,
    create_text_response,
    text_block,
)
from xcodebuild_mcp_server.utils.xcresult import read_xcresult_summary

logger = logging.getLogger(__name__)

_WARNING_LINE = re.compile(r"warning:", re.IGNORECASE)
_ERROR_LINE = re.compile(r"error:", re.IGNORECASE)

TEST_RESULT_BUNDLE = "TestResults.xcresult"


class XcodePlatform(Enum):
    MACOS = "macOS"
    IOS = "iOS"
    IOS_SIMULATOR = "iOS Simulator"


@dataclass
class BuildParams:
    scheme: str
    configuration: str = "Debug"
    project_path: Optional[str] = None
    workspace_path: Optional[str] = None
    derived_data_path: Optional[str] = None
    extra_args: Sequence[str] = field(default_factory=tuple)

    @property
    def source(self) -> Tuple[str, str]:
        """("workspace"|"project", path) for messages."""
        if self.workspace_path:
            return "workspace", self.workspace_path
        return "project", self.project_path


def build_params_from(params: Mapping[str, Any]) -> BuildParams:
    """BuildParams from a tool's parameter dict, applying the Debug default."""
    return BuildParams(
        scheme=params["scheme"],
        configuration=params.get("configuration") or "Debug",
        project_path=params.get("project_path"),
        workspace_path=params.get("workspace_path"),
        derived_data_path=params.get("derived_data_path"),
        extra_args=tuple(params.get("extra_args") or ()),
    )


@dataclass
class PlatformOptions:
    platform: Optional[XcodePlatform]
    log_prefix: str
    simulator_id: Optional[str] = None
    simulator_name: Optional[str] = None
    use_latest_os: bool = False
    device_id: Optional[str] = None
    arch: Optional[str] = None


def construct_destination(options: PlatformOptions) -> str:
    """
    Build the -destination argument for a platform.

    Raises:
        InvalidParameterError: If a simulator destination has neither id nor name
    """
    if options.platform == XcodePlatform.IOS_SIMULATOR:
        if options.simulator_id:
            return f"platform=iOS Simulator,id={options.simulator_id}"
        if options.simulator_name:
            destination = f"platform=iOS Simulator,name={options.simulator_name}"
            if options.use_latest_os:
                destination += ",OS=latest"
            return destination
        raise InvalidParameterError(
            "For iOS Simulator platform, either simulator_id or simulator_name must be provided"
        )

    if options.platform == XcodePlatform.MACOS:
        if options.arch:
            return f"platform=macOS,arch={options.arch}"
        return "platform=macOS"

    if options.device_id:
        return f"platform=iOS,id={options.device_id}"
    return "generic/platform=iOS"


def _project_args(params: BuildParams) -> List[str]:
    if params.workspace_path:
        return ["-workspace", params.workspace_path]
    return ["-project", params.project_path]


def build_xcodebuild_command(params: BuildParams, options: PlatformOptions, action: str) -> List[str]:
    argv = ["xcodebuild"]
    argv += _project_args(params)
    argv += ["-scheme", params.scheme]
    argv += ["-configuration", params.configuration]
    argv.append("-skipMacroValidation")
    if options.platform is not None:
        argv += ["-destination", construct_destination(options)]
    if params.derived_data_path:
        argv += ["-derivedDataPath", params.derived_data_path]
    argv += list(params.extra_args or ())
    argv.append(action)
    return argv


def build_settings_command(params: BuildParams, destination: Optional[str] = None) -> List[str]:
    """xcodebuild -showBuildSettings for the given project/workspace and scheme."""
    argv = ["xcodebuild", "-showBuildSettings"]
    argv += _project_args(params)
    argv += ["-scheme", params.scheme]
    argv += ["-configuration", params.configuration]
    if destination:
        argv += ["-destination", destination]
    if params.derived_data_path:
        argv += ["-derivedDataPath", params.derived_data_path]
    argv += list(params.extra_args or ())
    return argv


def grep_warnings_and_errors(output: str) -> List[str]:
    """Pick warning/error lines out of build output as display messages."""
    messages = []
    for line in (output or "").split("\n"):
        if _WARNING_LINE.search(line):
            messages.append(f"⚠️ Warning: {line}")
        elif _ERROR_LINE.search(line):
            messages.append(f"❌ Error: {line}")
    return messages


def _next_steps(params: BuildParams, options: PlatformOptions) -> str:
    source_kind, source_path = params.source
    source_arg = f"{source_kind}_path: '{source_path}'"

    if options.platform == XcodePlatform.MACOS:
        return (
            "Next Steps:\n"
            f"1. Get App Path: get_mac_app_path({{ {source_arg}, scheme: '{params.scheme}' }})\n"
            "2. Get Bundle ID: get_mac_bundle_id({ app_path: 'APP_PATH_FROM_STEP_1' })\n"
            "3. Launch: launch_mac_app({ app_path: 'APP_PATH_FROM_STEP_1' })"
        )

    if options.platform == XcodePlatform.IOS:
        return (
            "Next Steps:\n"
            f"1. Get App Path: get_device_app_path({{ {source_arg}, scheme: '{params.scheme}' }})\n"
            "2. Get Bundle ID: get_app_bundle_id({ app_path: 'APP_PATH_FROM_STEP_1' })"
        )

    if options.simulator_id:
        sim_arg = f"simulator_id: '{options.simulator_id}'"
    else:
        sim_arg = f"simulator_name: '{options.simulator_name}'"
    return (
        "Next Steps:\n"
        f"1. Get App Path: get_sim_app_path({{ {source_arg}, scheme: '{params.scheme}', {sim_arg} }})\n"
        "2. Get Bundle ID: get_app_bundle_id({ app_path: 'APP_PATH_FROM_STEP_1' })\n"
        "3. Choose one of the following options:\n"
        "   - Option 1: Launch app normally:\n"
        "     launch_app_sim({ simulator_uuid: 'SIMULATOR_UUID', bundle_id: 'APP_BUNDLE_ID' })\n"
        "   - Option 2: Launch app with logs (captures both console and structured logs):\n"
        "     launch_app_logs_sim({ simulator_uuid: 'SIMULATOR_UUID', bundle_id: 'APP_BUNDLE_ID' })\n"
        "   - Option 3: Launch app normally, then capture structured logs only:\n"
        "     launch_app_sim({ simulator_uuid: 'SIMULATOR_UUID', bundle_id: 'APP_BUNDLE_ID' })\n"
        "     start_sim_log_cap({ simulator_uuid: 'SIMULATOR_UUID', bundle_id: 'APP_BUNDLE_ID' })\n"
        "\n"
        "When done capturing logs, use: stop_sim_log_cap({ log_session_id: 'SESSION_ID' })"
    )


def execute_xcodebuild(params: BuildParams, options: PlatformOptions, action: str, context,
                       status_label: Optional[str] = None) -> ToolResponse:
    """
    Run an xcodebuild action and normalize its output.

    Args:
        params: Project/workspace, scheme and build configuration
        options: Destination platform and the log prefix used in messages
        action: xcodebuild action such as "build", "clean" or "test"
        context: ToolContext providing the executor
        status_label: Text before "succeeded"/"failed", defaults to "<log_prefix> <action>"

    Returns:
        ToolResponse with grepped warnings/errors, stderr lines and a status line
    """
    logger.info(f"Starting {options.log_prefix} {action} for scheme {params.scheme}")

    try:
        argv = build_xcodebuild_command(params, options, action)
        result = context.executor(command(argv, options.log_prefix, use_shell=True))
    except Exception as e:
        error = as_tool_error(e)
        if isinstance(error, InvalidParameterError):
            return create_text_response(error.message, is_error=True)
        logger.error(f"Error during {options.log_prefix} {action}: {error.message}")
        return create_text_response(f"Error during {options.log_prefix} {action}: {error.message}", is_error=True)

    label = status_label or f"{options.log_prefix} {action}"
    messages = grep_warnings_and_errors(result.output)
    if result.error:
        messages += [f"❌ [stderr] {line}" for line in result.error.split("\n") if line.strip()]

    if not result.success:
        logger.error(f"{options.log_prefix} {action} failed: {result.error}")
        return create_response(
            messages + [f"❌ {label} failed for scheme {params.scheme}."],
            is_error=True,
        )

    logger.info(f"✅ {options.log_prefix} {action} succeeded.")
    texts = messages + [f"✅ {label} succeeded for scheme {params.scheme}."]
    if action == "build":
        texts.append(_next_steps(params, options))
    return create_response(texts)


def get_app_path(params: BuildParams, destination: Optional[str], context,
                 next_steps: Callable[[str], str]) -> ToolResponse:
    """
    Resolve the built .app path from build settings.

    Args:
        params: Project/workspace and scheme to query
        destination: -destination value, or None to omit it
        context: ToolContext providing the executor
        next_steps: Builds the follow-up hint block from the resolved path
    """
    argv = build_settings_command(params, destination)
    result = context.executor(command(argv, "Get App Path", use_shell=True))

    if not result.success:
        return create_text_response(f"Failed to get app path: {result.error}", is_error=True)
    if not result.output:
        return create_text_response("Failed to extract build settings output from the result.", is_error=True)

    app_path = extract_app_path(result.output)
    if app_path is None:
        return create_text_response(APP_PATH_EXTRACTION_FAILED, is_error=True)

    logger.info(f"App path for scheme {params.scheme}: {app_path}")
    return create_response([f"✅ App path retrieved successfully: {app_path}", next_steps(app_path)])


def execute_xcodebuild_tests(params: BuildParams, options: PlatformOptions, context) -> ToolResponse:
    """
    Run `xcodebuild test` with a result bundle and append its summary.

    The summary is appended whether the tests passed or failed; if the bundle
    cannot be read the plain test response is returned unchanged. The scratch
    directory holding the bundle is removed in every case.
    """
    logger.info(f"Starting test run for scheme {params.scheme} on platform {options.platform.value}")
    fs = context.file_system

    temp_dir = fs.mkdtemp("xcodebuild-test-")
    try:
        result_bundle = os.path.join(temp_dir, TEST_RESULT_BUNDLE)
        test_params = BuildParams(
            scheme=params.scheme,
            configuration=params.configuration,
            project_path=params.project_path,
            workspace_path=params.workspace_path,
            derived_data_path=params.derived_data_path,
            extra_args=tuple(params.extra_args or ()) + ("-resultBundlePath", result_bundle),
        )
        test_options = PlatformOptions(
            platform=options.platform,
            log_prefix="Test Run",
            simulator_id=options.simulator_id,
            simulator_name=options.simulator_name,
            use_latest_os=options.use_latest_os,
            device_id=options.device_id,
            arch=options.arch,
        )
        test_result = execute_xcodebuild(test_params, test_options, "test", context)

        try:
            if not fs.exists(result_bundle):
                raise FileNotFoundError(f"xcresult bundle not found at {result_bundle}")
            summary = read_xcresult_summary(result_bundle, context.executor)
        except Exception as e:
            logger.warning(f"Failed to parse xcresult bundle: {e}")
            return test_result

        logger.info("Successfully parsed xcresult bundle")
        return ToolResponse(
            content=test_result.content + (text_block("\nTest Results Summary:\n" + summary),),
            is_error=test_result.is_error,
        )
    finally:
        try:
            fs.rmtree(temp_dir)
        except OSError as e:
            logger.warning(f"Failed to clean up temporary directory {temp_dir}: {e}")
