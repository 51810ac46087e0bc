#!/usr/bin/env python3
"""Dependencies shared by tool logic: executor, file system, session and process stores"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from xcodebuild_mcp_server.config import Settings, load_settings
from xcodebuild_mcp_server.utils.axe import DescribeUITracker
from xcodebuild_mcp_server.utils.command import CommandExecutor, execute_command, with_timeout
from xcodebuild_mcp_server.utils.file_system import FileSystem
from xcodebuild_mcp_server.utils.log_capture import LogSessionStore
from xcodebuild_mcp_server.utils.swift_package import SwiftProcessStore

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """
    Everything a tool needs besides its parameters.

    Production code uses one process-wide instance (get_default_context);
    tests construct isolated contexts with canned executors.
    """
    executor: CommandExecutor = execute_command
    file_system: FileSystem = field(default_factory=FileSystem)
    settings: Settings = field(default_factory=Settings)
    sim_log_sessions: LogSessionStore = field(default_factory=LogSessionStore)
    device_log_sessions: LogSessionStore = field(default_factory=LogSessionStore)
    swift_processes: SwiftProcessStore = field(default_factory=SwiftProcessStore)
    describe_ui_tracker: DescribeUITracker = field(default_factory=DescribeUITracker)


_default_context: Optional[ToolContext] = None


def build_context(settings: Settings) -> ToolContext:
    return ToolContext(
        executor=with_timeout(execute_command, settings.command_timeout),
        settings=settings,
    )


def configure_default_context(settings: Settings) -> ToolContext:
    """Replace the process-wide context, e.g. after CLI flags are parsed."""
    global _default_context
    _default_context = build_context(settings)
    logger.debug(f"Tool context configured: {settings}")
    return _default_context


def get_default_context() -> ToolContext:
    global _default_context
    if _default_context is None:
        _default_context = build_context(load_settings())
    return _default_context
