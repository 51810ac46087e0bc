#!/usr/bin/env python3
"""Bundle identifier lookup from an app's Info.plist"""

import logging
import os
from typing import List, Optional, Tuple

from xcodebuild_mcp_server.exceptions import ParseError
from xcodebuild_mcp_server.utils.command import CommandExecutor, command

logger = logging.getLogger(__name__)


def info_plist_path(app_path: str) -> str:
    """macOS bundles keep Info.plist under Contents/."""
    mac_plist = os.path.join(app_path, "Contents", "Info.plist")
    if os.path.exists(mac_plist):
        return mac_plist
    return os.path.join(app_path, "Info.plist")


def _lookup_commands(app_path: str) -> List[Tuple[List[str], str]]:
    plist = info_plist_path(app_path)
    defaults_domain = plist[:-len(".plist")]
    return [
        (["/usr/libexec/PlistBuddy", "-c", "Print :CFBundleIdentifier", plist], "Get Bundle ID with PlistBuddy"),
        (["plutil", "-extract", "CFBundleIdentifier", "raw", plist], "Get Bundle ID with plutil"),
        (["defaults", "read", defaults_domain, "CFBundleIdentifier"], "Get Bundle ID with defaults"),
    ]


def read_bundle_id(app_path: str, executor: CommandExecutor) -> str:
    """
    Read CFBundleIdentifier, trying PlistBuddy, then plutil, then defaults.

    Args:
        app_path: Path to the .app bundle
        executor: Command executor

    Returns:
        The bundle identifier

    Raises:
        ParseError: If no method produced a value
    """
    last_error: Optional[str] = None
    for argv, label in _lookup_commands(app_path):
        result = executor(command(argv, label))
        bundle_id = (result.output or "").strip()
        if result.success and bundle_id:
            logger.info(f"Extracted bundle ID {bundle_id} using {argv[0]}")
            return bundle_id
        last_error = result.error
        logger.debug(f"{label} failed: {result.error}")

    detail = f": {last_error.strip()}" if last_error else ""
    raise ParseError(f"Could not extract bundle ID from Info.plist using any method{detail}")
