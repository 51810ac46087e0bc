#!/usr/bin/env python3
"""Swift Package Manager command construction and background run tracking"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from xcodebuild_mcp_server.utils.command import is_process_running
from xcodebuild_mcp_server.utils.responses import ToolResponse, create_text_response

logger = logging.getLogger(__name__)

SWIFT_RUN_LOG_PREFIX = "xcodemcp_swift_run_"

DEFAULT_RUN_TIMEOUT = 30
MAX_RUN_TIMEOUT = 300

INVALID_CONFIGURATION_MESSAGE = "Invalid configuration. Use 'debug' or 'release'."


@dataclass
class SwiftProcess:
    pid: int
    process: Any
    package_path: str
    executable_name: Optional[str]
    log_file_path: str
    started_at: datetime


class SwiftProcessStore:
    """Background `swift run` processes keyed by PID."""

    def __init__(self):
        self._processes: Dict[int, SwiftProcess] = {}

    def add(self, entry: SwiftProcess):
        self._processes[entry.pid] = entry

    def get(self, pid: int) -> Optional[SwiftProcess]:
        return self._processes.get(pid)

    def remove(self, pid: int):
        self._processes.pop(pid, None)

    def __contains__(self, pid) -> bool:
        return pid in self._processes

    def __len__(self) -> int:
        return len(self._processes)

    def running(self) -> List[SwiftProcess]:
        """Entries whose process is still alive; exited ones are dropped."""
        for pid, entry in list(self._processes.items()):
            if not is_process_running(entry.process):
                logger.debug(f"Swift process {pid} has exited, removing it")
                del self._processes[pid]
        return list(self._processes.values())


def resolve_package_path(package_path: str) -> str:
    return os.path.abspath(package_path)


def configuration_args(configuration: Optional[str]) -> Tuple[List[str], Optional[ToolResponse]]:
    """
    Map a swift configuration name to arguments.

    Returns:
        (arguments, error response or None); debug adds nothing
    """
    if not configuration or configuration.lower() == "debug":
        return [], None
    if configuration.lower() == "release":
        return ["-c", "release"], None
    return [], create_text_response(INVALID_CONFIGURATION_MESSAGE, is_error=True)


def parse_as_library_args(params) -> List[str]:
    return ["-Xswiftc", "-parse-as-library"] if params.get("parse_as_library") else []


def run_timeout(requested: Optional[float]) -> float:
    """Foreground `swift run` timeout in seconds, capped at five minutes."""
    return min(requested or DEFAULT_RUN_TIMEOUT, MAX_RUN_TIMEOUT)
