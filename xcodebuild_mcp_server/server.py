#!/usr/bin/env python3
"""FastMCP server instance shared by all tool modules"""

from mcp.server.fastmcp import FastMCP

mcp = FastMCP("XcodeBuild MCP Server",
    instructions="""
        This server wraps Apple's command line developer tools (xcodebuild,
        simctl, devicectl, xcresulttool and axe) so iOS and macOS projects can be
        built, tested and run without the Xcode UI.

        Project tools take exactly one of `project_path` (.xcodeproj) or
        `workspace_path` (.xcworkspace) plus a `scheme`. Use `list_schemes`
        to discover schemes.

        Typical simulator workflow: `list_sims` -> `build_run_sim`, or
        `build_sim` -> `get_sim_app_path` -> `install_app_sim` -> `launch_app_sim`.
        Typical device workflow: `list_devices` -> `build_device` ->
        `get_device_app_path` -> `install_app_device` -> `launch_app_device`.

        Log capture tools return a session id; pass it to the matching stop
        tool to retrieve the captured output.

        UI automation tools need a booted simulator. Call `describe_ui` before
        `tap`, `swipe` or other coordinate-based tools.
    """
)
