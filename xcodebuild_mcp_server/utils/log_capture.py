#!/usr/bin/env python3
"""Background log capture sessions for simulators and devices"""

import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from xcodebuild_mcp_server.exceptions import (
    CommandFailedError,
    LogSessionNotFoundError,
    SystemFailureError,
)
from xcodebuild_mcp_server.utils.command import command, is_process_running

logger = logging.getLogger(__name__)

SIM_LOG_PREFIX = "xcodemcp_sim_log_"
DEVICE_LOG_PREFIX = "xcodemcp_device_log_"
LOG_SUFFIX = ".log"

SubsystemFilter = Union[str, Sequence[str]]


@dataclass
class LogSession:
    session_id: str
    log_file_path: str
    target_id: str
    bundle_id: str
    processes: List[Any] = field(default_factory=list)
    killed: bool = False


class LogSessionStore:
    """Registry of active capture sessions keyed by session id."""

    def __init__(self):
        self._sessions: Dict[str, LogSession] = {}

    def get(self, session_id: str) -> Optional[LogSession]:
        return self._sessions.get(session_id)

    def set(self, session: LogSession):
        self._sessions[session.session_id] = session

    def delete(self, session_id: str):
        self._sessions.pop(session_id, None)

    def __contains__(self, session_id) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))


def build_log_predicate(bundle_id: str, subsystem_filter: SubsystemFilter = "app") -> Optional[str]:
    """
    Build the `log stream --predicate` expression.

    Args:
        bundle_id: App bundle identifier, always included unless filter is "all"
        subsystem_filter: "app", "all", "swiftui", or a list of extra subsystems

    Returns:
        Predicate string, or None when no filtering is wanted
    """
    if subsystem_filter == "all":
        return None
    if subsystem_filter == "app":
        subsystems = [bundle_id]
    elif subsystem_filter == "swiftui":
        subsystems = [bundle_id, "com.apple.SwiftUI"]
    elif isinstance(subsystem_filter, str):
        subsystems = [bundle_id, subsystem_filter]
    else:
        subsystems = [bundle_id]
        for subsystem in subsystem_filter:
            if subsystem not in subsystems:
                subsystems.append(subsystem)
    return " OR ".join(f'subsystem == "{s}"' for s in subsystems)


def clean_old_logs(fs, prefix: str, retention_days: float, now: Optional[float] = None) -> int:
    """
    Delete capture files with the given prefix older than the retention window.

    Failures are logged and never raised.

    Returns:
        Number of files removed
    """
    now = time.time() if now is None else now
    cutoff = now - retention_days * 24 * 60 * 60
    temp_dir = fs.tmpdir()
    removed = 0

    try:
        names = fs.listdir(temp_dir)
    except OSError as e:
        logger.warning(f"Could not list {temp_dir} for log cleanup: {e}")
        return 0

    for name in names:
        if not (name.startswith(prefix) and name.endswith(LOG_SUFFIX)):
            continue
        path = os.path.join(temp_dir, name)
        try:
            if fs.getmtime(path) < cutoff:
                fs.remove(path)
                removed += 1
                logger.info(f"Deleted old log file: {path}")
        except OSError as e:
            logger.warning(f"Error during log cleanup for {path}: {e}")

    return removed


def _stop_process(process):
    # One SIGTERM only; the process is never waited on or killed afterwards
    try:
        process.terminate()
    except OSError as e:
        logger.warning(f"Failed to stop log capture process: {e}")


class LogCaptureManager:
    """Starts and stops capture sessions using a ToolContext's executor and file system."""

    def __init__(self, context):
        self.context = context

    @property
    def fs(self):
        return self.context.file_system

    def _new_log_file(self, prefix: str, header: str):
        clean_old_logs(self.fs, prefix, self.context.settings.log_retention_days)
        session_id = str(uuid.uuid4())
        temp_dir = self.fs.tmpdir()
        self.fs.mkdir(temp_dir)
        log_file_path = os.path.join(temp_dir, f"{prefix}{session_id}{LOG_SUFFIX}")
        self.fs.write_text(log_file_path, header)
        return session_id, log_file_path

    def _spawn(self, argv: List[str], label: str, log_file_path: str):
        result = self.context.executor(command(argv, label, detached=True, output_path=log_file_path))
        if not result.success:
            raise CommandFailedError(result.error or f"Failed to start {label}")
        return result.process

    def _start(self, session: LogSession, commands) -> LogSession:
        try:
            for argv, label in commands:
                session.processes.append(self._spawn(argv, label, session.log_file_path))
        except Exception:
            for process in session.processes:
                if is_process_running(process):
                    _stop_process(process)
            raise
        return session

    def start_simulator_capture(self, simulator_uuid: str, bundle_id: str, store: LogSessionStore,
                                capture_console: bool = False, args: Sequence[str] = (),
                                subsystem_filter: SubsystemFilter = "app") -> LogSession:
        """
        Start capturing a simulator app's logs into a temp file.

        Args:
            simulator_uuid: Target simulator
            bundle_id: App to capture
            store: Registry the new session is added to
            capture_console: Also relaunch the app with its console attached
            args: Launch arguments passed to the app when capturing console output
            subsystem_filter: Which os_log subsystems to keep

        Returns:
            The registered LogSession
        """
        session_id, log_file_path = self._new_log_file(
            SIM_LOG_PREFIX, f"\n--- Log capture for bundle ID: {bundle_id} ---\n"
        )
        session = LogSession(session_id, log_file_path, simulator_uuid, bundle_id)

        commands = []
        if capture_console:
            commands.append((
                ["xcrun", "simctl", "launch", "--console-pty", "--terminate-running-process",
                 simulator_uuid, bundle_id, *args],
                "Console Log Capture",
            ))
        os_log = ["xcrun", "simctl", "spawn", simulator_uuid, "log", "stream", "--level=debug"]
        predicate = build_log_predicate(bundle_id, subsystem_filter)
        if predicate:
            os_log += ["--predicate", predicate]
        commands.append((os_log, "OS Log Capture"))

        store.set(self._start(session, commands))
        logger.info(f"Log capture started with session ID: {session_id}")
        return session

    def start_device_capture(self, device_id: str, bundle_id: str, store: LogSessionStore) -> LogSession:
        """Launch the app on a device with console output captured to a temp file."""
        session_id, log_file_path = self._new_log_file(
            DEVICE_LOG_PREFIX,
            f"\n--- Device log capture for bundle ID: {bundle_id} on device: {device_id} ---\n",
        )
        session = LogSession(session_id, log_file_path, device_id, bundle_id)
        commands = [(
            ["xcrun", "devicectl", "device", "process", "launch", "--console",
             "--terminate-existing", "--device", device_id, bundle_id],
            "Device Log Capture",
        )]

        store.set(self._start(session, commands))
        logger.info(f"Device log capture started with session ID: {session_id}")
        return session

    def stop_capture(self, store: LogSessionStore, session_id: str,
                     description: str = "Log capture session") -> str:
        """
        Stop a session's processes and return the captured log text.

        The session is removed from the store even if reading the log fails.

        Raises:
            LogSessionNotFoundError: If no such session is registered
            SystemFailureError: If the log file cannot be read
        """
        session = store.get(session_id)
        if session is None:
            logger.warning(f"{description} not found: {session_id}")
            raise LogSessionNotFoundError(session_id, description)

        try:
            for process in session.processes:
                if is_process_running(process, session.killed):
                    _stop_process(process)
            session.killed = True
        finally:
            store.delete(session_id)

        logger.info(f"{description} {session_id} stopped. Log file retained at: {session.log_file_path}")

        if not self.fs.exists(session.log_file_path):
            raise SystemFailureError(f"Log file not found: {session.log_file_path}")
        try:
            return self.fs.read_text(session.log_file_path)
        except OSError as e:
            raise SystemFailureError(f"Failed to read log file {session.log_file_path}: {e}", e) from e
