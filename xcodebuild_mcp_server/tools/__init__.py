"""Importing this package registers every tool with the server"""

from xcodebuild_mcp_server.tools import (  # noqa: F401
    device,
    logging,
    macos,
    project,
    simulator,
    swift_package,
    ui_automation,
)
