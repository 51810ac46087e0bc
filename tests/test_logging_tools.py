"""Tests for the log capture tools."""

from __future__ import annotations

import re

from tests.mock_executors import MockExecutor, failure
from xcodebuild_mcp_server.tools.logging import (
    launch_app_logs_sim_logic,
    start_device_log_cap_logic,
    start_sim_log_cap_logic,
    stop_device_log_cap_logic,
    stop_sim_log_cap_logic,
)

SESSION_ID = re.compile(r"Session ID: ([0-9a-f-]{36})")


class TestSimulatorLogCapture:
    def test_start_then_stop(self, make_context):
        executor = MockExecutor()
        context = make_context(executor)

        started = start_sim_log_cap_logic({"simulator_uuid": "SIM-1", "bundle_id": "com.example.App"}, context)
        session_id = SESSION_ID.search(started.text).group(1)
        assert started.text.startswith(f"Log capture started successfully. Session ID: {session_id}.")
        assert "Note: Only structured logs are being captured." in started.text
        assert session_id in context.sim_log_sessions

        stopped = stop_sim_log_cap_logic({"log_session_id": session_id}, context)
        assert stopped.text.startswith(f"Log capture session {session_id} stopped successfully. Log content follows:")
        assert "--- Log capture for bundle ID: com.example.App ---" in stopped.text
        assert len(context.sim_log_sessions) == 0
        assert executor.processes[0].terminate_calls == 1

    def test_console_capture_note(self, make_context):
        started = start_sim_log_cap_logic(
            {"simulator_uuid": "SIM-1", "bundle_id": "com.example.App", "capture_console": True}, make_context()
        )
        assert "Your app was relaunched to capture console output" in started.text

    def test_start_failure(self, make_context):
        context = make_context(MockExecutor().on("log stream", failure("spawn failed")))
        response = start_sim_log_cap_logic({"simulator_uuid": "SIM-1", "bundle_id": "com.example.App"}, context)
        assert response.is_error
        assert response.text == "Error starting log capture: spawn failed"

    def test_stop_unknown_session(self, make_context):
        response = stop_sim_log_cap_logic({"log_session_id": "missing"}, make_context())
        assert response.is_error
        assert response.text == "Error stopping log capture session missing: Log capture session not found: missing"

    def test_missing_parameter(self, make_context):
        response = start_sim_log_cap_logic({"bundle_id": "com.example.App"}, make_context())
        assert response.text.startswith("Required parameter 'simulator_uuid' is missing.")

    def test_launch_app_logs_sim(self, make_context):
        executor = MockExecutor()
        context = make_context(executor)

        response = launch_app_logs_sim_logic(
            {"simulator_uuid": "SIM-1", "bundle_id": "com.example.App", "args": ["--verbose"]}, context
        )

        assert response.text.startswith(
            "App launched successfully in simulator SIM-1 with log capture enabled.\n\nLog capture session ID: "
        )
        assert executor.calls[0].argv[-1] == "--verbose"
        assert len(context.sim_log_sessions) == 1


class TestDeviceLogCapture:
    def test_start_then_stop(self, make_context):
        context = make_context()

        started = start_device_log_cap_logic({"device_id": "DEV-1", "bundle_id": "com.example.App"}, context)
        assert started.text.startswith("✅ Device log capture started successfully\n\nSession ID: ")
        session_id = SESSION_ID.search(started.text).group(1)

        stopped = stop_device_log_cap_logic({"log_session_id": session_id}, context)
        assert stopped.text.startswith(
            f"✅ Device log capture session stopped successfully\n\nSession ID: {session_id}\n\n--- Captured Logs ---\n"
        )
        assert session_id not in context.device_log_sessions

    def test_sessions_are_separate_per_kind(self, make_context):
        context = make_context()
        started = start_sim_log_cap_logic({"simulator_uuid": "SIM-1", "bundle_id": "com.example.App"}, context)
        session_id = SESSION_ID.search(started.text).group(1)

        response = stop_device_log_cap_logic({"log_session_id": session_id}, context)

        assert response.is_error
        assert response.text == (
            f"Failed to stop device log capture session {session_id}: "
            f"Device log capture session not found: {session_id}"
        )
        assert session_id in context.sim_log_sessions
