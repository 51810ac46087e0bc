#!/usr/bin/env python3
"""Test result summaries from .xcresult bundles via xcresulttool"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from xcodebuild_mcp_server.exceptions import CommandFailedError, ParseError
from xcodebuild_mcp_server.utils.command import CommandExecutor, command

logger = logging.getLogger(__name__)


@dataclass
class TestDevice:
    name: Optional[str] = None
    platform: Optional[str] = None
    os_version: Optional[str] = None


@dataclass
class TestFailure:
    test_name: Optional[str] = None
    target_name: Optional[str] = None
    failure_text: Optional[str] = None


@dataclass
class TestInsight:
    impact: Optional[str] = None
    text: Optional[str] = None


def _list_of_dicts(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _count(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


@dataclass
class TestSummary:
    title: Optional[str] = None
    result: Optional[str] = None
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    expected_failures: int = 0
    environment_description: Optional[str] = None
    device: Optional[TestDevice] = None
    failures: List[TestFailure] = field(default_factory=list)
    insights: List[TestInsight] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any) -> "TestSummary":
        """
        Build a summary from xcresulttool's JSON object.

        Missing optional fields fall back to defaults; a non-object raises ParseError.
        """
        if not isinstance(data, dict):
            raise ParseError("xcresult summary is not a JSON object")

        device = None
        configurations = _list_of_dicts(data.get("devicesAndConfigurations"))
        if configurations and isinstance(configurations[0].get("device"), dict):
            raw = configurations[0]["device"]
            device = TestDevice(raw.get("deviceName"), raw.get("platform"), raw.get("osVersion"))

        return cls(
            title=data.get("title"),
            result=data.get("result"),
            total=_count(data.get("totalTestCount")),
            passed=_count(data.get("passedTests")),
            failed=_count(data.get("failedTests")),
            skipped=_count(data.get("skippedTests")),
            expected_failures=_count(data.get("expectedFailures")),
            environment_description=data.get("environmentDescription"),
            device=device,
            failures=[
                TestFailure(f.get("testName"), f.get("targetName"), f.get("failureText"))
                for f in _list_of_dicts(data.get("testFailures"))
            ],
            insights=[
                TestInsight(i.get("impact"), i.get("text"))
                for i in _list_of_dicts(data.get("topInsights"))
            ],
        )

    def format(self) -> str:
        lines = [
            f"Test Summary: {self.title or 'Unknown'}",
            f"Overall Result: {self.result or 'Unknown'}",
            "",
            "Test Counts:",
            f"  Total: {self.total}",
            f"  Passed: {self.passed}",
            f"  Failed: {self.failed}",
            f"  Skipped: {self.skipped}",
            f"  Expected Failures: {self.expected_failures}",
            "",
        ]

        if self.environment_description:
            lines.append(f"Environment: {self.environment_description}")
            lines.append("")

        if self.device:
            lines.append(
                f"Device: {self.device.name or 'Unknown'} "
                f"({self.device.platform or 'Unknown'} {self.device.os_version or 'Unknown'})"
            )
            lines.append("")

        if self.failures:
            lines.append("Test Failures:")
            for index, failure in enumerate(self.failures, start=1):
                lines.append(
                    f"  {index}. {failure.test_name or 'Unknown Test'} "
                    f"({failure.target_name or 'Unknown Target'})"
                )
                if failure.failure_text:
                    lines.append(f"     {failure.failure_text}")
            lines.append("")

        if self.insights:
            lines.append("Insights:")
            for index, insight in enumerate(self.insights, start=1):
                lines.append(f"  {index}. [{insight.impact or 'Unknown'}] {insight.text or 'No description'}")

        return "\n".join(lines)


def parse_test_summary(json_text: str) -> TestSummary:
    try:
        data = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid xcresult summary JSON: {e}") from e
    return TestSummary.from_json(data)


def format_test_summary(json_text: str) -> str:
    return parse_test_summary(json_text).format()


def read_xcresult_summary(result_bundle_path: str, executor: CommandExecutor) -> str:
    """
    Summarize a result bundle in human-readable form.

    Args:
        result_bundle_path: Path to the .xcresult bundle
        executor: Command executor used to run xcresulttool

    Returns:
        Formatted summary text

    Raises:
        CommandFailedError: If xcresulttool fails
        ParseError: If its output is not a summary object
    """
    result = executor(command(
        ["xcrun", "xcresulttool", "get", "test-results", "summary", "--path", result_bundle_path],
        "Parse xcresult",
    ))
    if not result.success:
        raise CommandFailedError(f"xcresulttool failed: {result.error or result.output}")
    return format_test_summary(result.output)
