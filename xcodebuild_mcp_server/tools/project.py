#!/usr/bin/env python3
"""Project discovery and utility tools - schemes, build settings, bundle ids, clean"""

import logging
import re
from typing import List, Optional

from xcodebuild_mcp_server.context import get_default_context
from xcodebuild_mcp_server.exceptions import ParseError
from xcodebuild_mcp_server.server import mcp
from xcodebuild_mcp_server.utils.bundle import read_bundle_id
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
    build_params_from,
    execute_xcodebuild,
)

logger = logging.getLogger(__name__)

_SCHEMES_SECTION = re.compile(r"Schemes:([\s\S]*?)(?=\n\n|$)")


def parse_schemes(output: str) -> Optional[List[str]]:
    """Scheme names from `xcodebuild -list`, or None if there is no Schemes section."""
    match = _SCHEMES_SECTION.search(output or "")
    if not match:
        return None
    return [line.strip() for line in match.group(1).strip().split("\n") if line.strip()]


def _source_args(params) -> List[str]:
    if params.get("workspace_path"):
        return ["-workspace", params["workspace_path"]]
    return ["-project", params["project_path"]]


@tool_boundary("Error listing schemes")
def list_schemes_logic(params: dict, context):
    params = drop_empty(params)
    error = validate_project_or_workspace(params)
    if error:
        return error

    logger.info("Listing schemes")
    result = context.executor(command(["xcodebuild", "-list", *_source_args(params)], "List Schemes", use_shell=True))
    if not result.success:
        return create_text_response(f"Failed to list schemes: {result.error}", is_error=True)

    schemes = parse_schemes(result.output)
    if schemes is None:
        return create_text_response("No schemes found in the output", is_error=True)

    texts = ["✅ Available schemes:", "\n".join(schemes)]
    if schemes:
        source_kind = "workspace" if params.get("workspace_path") else "project"
        source = f'{source_kind}_path: "{params.get(source_kind + "_path")}", scheme: "{schemes[0]}"'
        texts.append(
            "Next Steps:\n"
            f"1. Build the app: build_macos({{ {source} }})\n"
            f'   or for iOS: build_sim({{ {source}, simulator_name: "iPhone 16" }})\n'
            f"2. Show build settings: show_build_settings({{ {source} }})"
        )
    return create_response(texts)


@tool_boundary("Error showing build settings")
def show_build_settings_logic(params: dict, context):
    params = drop_empty(params)
    error = validate_required_params(params, ["scheme"]) or validate_project_or_workspace(params)
    if error:
        return error

    argv = ["xcodebuild", "-showBuildSettings", *_source_args(params), "-scheme", params["scheme"]]
    result = context.executor(command(argv, "Show Build Settings", use_shell=True))
    if not result.success:
        return create_text_response(f"Failed to show build settings: {result.error}", is_error=True)

    return create_response([
        f"✅ Build settings for scheme {params['scheme']}:",
        result.output or "Build settings retrieved successfully.",
    ])


def _bundle_id_response(params, context, app_kind: str, next_steps):
    error = validate_required_params(params, ["app_path"])
    if error:
        return error

    app_path = params["app_path"]
    if not context.file_system.exists(app_path):
        return create_text_response(
            f"File not found: '{app_path}'. Please check the path and try again.", is_error=True
        )

    logger.info(f"Starting bundle ID extraction for {app_kind}: {app_path}")
    try:
        bundle_id = read_bundle_id(app_path, context.executor)
    except ParseError as e:
        return create_response(
            [
                f"Error extracting {app_kind} bundle ID: {e.message}",
                f"Make sure the path points to a valid {app_kind} bundle (.app directory).",
            ],
            is_error=True,
        )

    return create_response([f"✅ Bundle ID: {bundle_id}", next_steps(app_path, bundle_id)])


@tool_boundary("Error extracting app bundle ID")
def get_app_bundle_id_logic(params: dict, context):
    def next_steps(app_path, bundle_id):
        return (
            "Next Steps:\n"
            f'- Install in simulator: install_app_sim({{ simulator_uuid: "SIMULATOR_UUID", app_path: "{app_path}" }})\n'
            f'- Launch in simulator: launch_app_sim({{ simulator_uuid: "SIMULATOR_UUID", bundle_id: "{bundle_id}" }})\n'
            f'- Or install on device: install_app_device({{ device_id: "DEVICE_UDID", app_path: "{app_path}" }})\n'
            f'- Or launch on device: launch_app_device({{ device_id: "DEVICE_UDID", bundle_id: "{bundle_id}" }})'
        )

    return _bundle_id_response(params, context, "app", next_steps)


@tool_boundary("Error extracting macOS app bundle ID")
def get_mac_bundle_id_logic(params: dict, context):
    def next_steps(app_path, bundle_id):
        return (
            "Next Steps:\n"
            f'- Launch the app: launch_mac_app({{ app_path: "{app_path}" }})\n'
            '- Build from workspace: build_macos({ workspace_path: "PATH_TO_WORKSPACE", scheme: "SCHEME_NAME" })\n'
            '- Build from project: build_macos({ project_path: "PATH_TO_PROJECT", scheme: "SCHEME_NAME" })'
        )

    return _bundle_id_response(params, context, "macOS app", next_steps)


@tool_boundary("Error during Clean")
def clean_logic(params: dict, context):
    params = drop_empty(params)
    error = validate_required_params(params, ["scheme"]) or validate_project_or_workspace(params)
    if error:
        return error

    return execute_xcodebuild(
        build_params_from(params),
        PlatformOptions(None, "Clean"),
        "clean",
        context,
        status_label="Clean",
    )


@mcp.tool()
def list_schemes(project_path: Optional[str] = None, workspace_path: Optional[str] = None):
    """
    List the schemes of a project or workspace.

    Args:
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
    """
    params = dict(locals())
    return to_mcp_result(list_schemes_logic(params, get_default_context()))


@mcp.tool()
def show_build_settings(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None):
    """
    Show xcodebuild build settings for a scheme.

    Args:
        scheme: The scheme to inspect
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
    """
    params = dict(locals())
    return to_mcp_result(show_build_settings_logic(params, get_default_context()))


@mcp.tool()
def get_app_bundle_id(app_path: str):
    """
    Read the bundle identifier of an .app bundle (iOS or macOS).

    Args:
        app_path: Path to the .app bundle
    """
    params = dict(locals())
    return to_mcp_result(get_app_bundle_id_logic(params, get_default_context()))


@mcp.tool()
def clean(scheme: str, project_path: Optional[str] = None, workspace_path: Optional[str] = None,
          configuration: Optional[str] = None, derived_data_path: Optional[str] = None,
          extra_args: Optional[List[str]] = None):
    """
    Run `xcodebuild clean` for a scheme.

    Args:
        scheme: The scheme to clean
        project_path: Path to the .xcodeproj file (exclusive with workspace_path)
        workspace_path: Path to the .xcworkspace file (exclusive with project_path)
        configuration: Build configuration, defaults to Debug
        derived_data_path: Optional derived data location
        extra_args: Additional xcodebuild arguments
    """
    params = dict(locals())
    return to_mcp_result(clean_logic(params, get_default_context()))


@mcp.tool()
def get_mac_bundle_id(app_path: str):
    """
    Read the bundle identifier of a macOS .app bundle.

    Args:
        app_path: Path to the macOS .app bundle
    """
    params = dict(locals())
    return to_mcp_result(get_mac_bundle_id_logic(params, get_default_context()))
