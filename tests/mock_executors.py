"""Canned command executors, processes and file systems for exercising tools without Xcode.

A MockExecutor records every CommandSpec it receives and answers with the
first rule whose text appears in the command's joined command line.
"""

from __future__ import annotations

import subprocess
from typing import Callable, List, Optional, Tuple, Union

from xcodebuild_mcp_server.utils.command import CommandSpec, ExecutionResult
from xcodebuild_mcp_server.utils.file_system import FileSystem

Response = Union[ExecutionResult, Exception, Callable[[CommandSpec], ExecutionResult]]


def success(output: str = "") -> ExecutionResult:
    return ExecutionResult(success=True, output=output, exit_code=0)


def failure(error: str = "", output: str = "") -> ExecutionResult:
    return ExecutionResult(success=False, output=output, error=error or None, exit_code=1)


# ── Canned tool outputs ──────────────────────────────────────────────────

SIMCTL_LIST_JSON = """\
{
  "devices": {
    "com.apple.CoreSimulator.SimRuntime.iOS-18-0": [
      {"name": "iPhone 16", "udid": "SIM-IPHONE-16", "state": "Shutdown", "isAvailable": true},
      {"name": "iPhone 16 Pro", "udid": "SIM-IPHONE-16-PRO", "state": "Booted", "isAvailable": true}
    ],
    "com.apple.CoreSimulator.SimRuntime.iOS-17-5": [
      {"name": "iPhone 15", "udid": "SIM-IPHONE-15", "state": "Shutdown", "isAvailable": false}
    ]
  }
}
"""

DEVICECTL_DEVICES_JSON = """\
{
  "result": {
    "devices": [
      {
        "identifier": "DEVICE-1",
        "visibilityClass": "Default",
        "connectionProperties": {"pairingState": "paired", "tunnelState": "connected", "transportType": "wired"},
        "deviceProperties": {"name": "Test iPhone", "platformIdentifier": "com.apple.platform.iphoneos",
                             "osVersionNumber": "18.0", "marketingName": "iPhone 15 Pro",
                             "developerModeStatus": "enabled"},
        "hardwareProperties": {"productType": "iPhone16,1", "cpuType": {"name": "arm64e"}}
      },
      {
        "identifier": "DEVICE-1",
        "visibilityClass": "Default",
        "connectionProperties": {"pairingState": "paired", "tunnelState": "connected"},
        "deviceProperties": {"name": "Duplicate entry"}
      },
      {
        "identifier": "DEVICE-2",
        "visibilityClass": "Default",
        "connectionProperties": {"pairingState": "unpaired"},
        "deviceProperties": {"name": "Old iPad", "platformIdentifier": "com.apple.platform.ipados"}
      },
      {
        "identifier": "SIM-ENTRY",
        "visibilityClass": "Simulator",
        "connectionProperties": {"pairingState": "paired"},
        "deviceProperties": {"name": "Simulated"}
      }
    ]
  }
}
"""

XCRESULT_SUMMARY_JSON = """\
{
  "title": "MyApp Tests",
  "result": "Failed",
  "totalTestCount": 3,
  "passedTests": 2,
  "failedTests": 1,
  "skippedTests": 0,
  "expectedFailures": 0,
  "environmentDescription": "MyApp on iPhone 16",
  "devicesAndConfigurations": [
    {"device": {"deviceName": "iPhone 16", "platform": "iOS Simulator", "osVersion": "18.0"}}
  ],
  "testFailures": [
    {"testName": "testLogin()", "targetName": "MyAppTests", "failureText": "XCTAssertEqual failed"}
  ],
  "topInsights": [
    {"impact": "High", "text": "Slow test detected"}
  ]
}
"""

BUILD_SETTINGS_OUTPUT = """\
Build settings for action build and target MyApp:
    BUILT_PRODUCTS_DIR = /DerivedData/Build/Products/Debug-iphonesimulator
    CODESIGNING_FOLDER_PATH = /DerivedData/Build/Products/Debug-iphonesimulator/MyApp.app
    FULL_PRODUCT_NAME = MyApp.app
    PRODUCT_NAME = MyApp
"""


# ── Processes ────────────────────────────────────────────────────────────

class MockProcess:
    """Stands in for subprocess.Popen; counts the signals it receives."""

    def __init__(self, exit_code: Optional[int] = None, ignores_terminate: bool = False, pid: int = 4242):
        self.returncode = exit_code
        self.ignores_terminate = ignores_terminate
        self.pid = pid
        self.terminate_calls = 0
        self.kill_calls = 0

    def poll(self) -> Optional[int]:
        return self.returncode

    def terminate(self):
        self.terminate_calls += 1
        if not self.ignores_terminate:
            self.returncode = -15

    def wait(self, timeout=None) -> int:
        if self.returncode is None:
            raise subprocess.TimeoutExpired("mock", timeout)
        return self.returncode

    def kill(self):
        self.kill_calls += 1
        self.returncode = -9


# ── Executors ────────────────────────────────────────────────────────────

class MockExecutor:
    """Records calls and answers them from substring rules.

    Detached specs without a matching rule get a fresh running MockProcess,
    collected in ``processes``.
    """

    def __init__(self, default: Optional[ExecutionResult] = None):
        self.default = default or success()
        self.rules: List[Tuple[str, Response]] = []
        self.calls: List[CommandSpec] = []
        self.processes: List[MockProcess] = []

    def on(self, text: str, response: Response) -> "MockExecutor":
        self.rules.append((text, response))
        return self

    def __call__(self, spec: CommandSpec) -> ExecutionResult:
        self.calls.append(spec)
        for text, response in self.rules:
            if text in spec.command_line:
                return self._respond(spec, response)
        if spec.detached:
            process = MockProcess()
            self.processes.append(process)
            return ExecutionResult(success=True, process=process)
        return self.default

    @staticmethod
    def _respond(spec: CommandSpec, response: Response) -> ExecutionResult:
        if isinstance(response, Exception):
            raise response
        if isinstance(response, ExecutionResult):
            return response
        return response(spec)

    @property
    def command_lines(self) -> List[str]:
        return [spec.command_line for spec in self.calls]

    def calls_matching(self, text: str) -> List[CommandSpec]:
        return [spec for spec in self.calls if text in spec.command_line]


def arg_after(spec: CommandSpec, flag: str) -> str:
    """Value following a flag in a recorded argv."""
    return spec.argv[spec.argv.index(flag) + 1]


# ── File system ──────────────────────────────────────────────────────────

class StubFileSystem(FileSystem):
    """FileSystem that reports only the given paths as existing and records every lookup."""

    def __init__(self, temp_root, existing=()):
        super().__init__(temp_root)
        self.existing = set(existing)
        self.checked: List[str] = []

    def exists(self, path: str) -> bool:
        self.checked.append(path)
        return path in self.existing
