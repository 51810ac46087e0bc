#!/usr/bin/env python3
"""Parsing of `xcrun simctl list devices --json` output"""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional

from xcodebuild_mcp_server.exceptions import ParseError


@dataclass
class Simulator:
    name: str
    udid: str
    state: str
    runtime: str
    is_available: bool = True

    @property
    def is_booted(self) -> bool:
        return self.state == "Booted"


def parse_simulator_list(output: str) -> Dict[str, List[Simulator]]:
    """
    Group simulators by runtime identifier.

    Raises:
        ParseError: If the output is not simctl's device listing JSON
    """
    try:
        data = json.loads(output)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid simctl JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("devices"), dict):
        raise ParseError("simctl JSON has no 'devices' object")

    runtimes: Dict[str, List[Simulator]] = {}
    for runtime, devices in data["devices"].items():
        if not isinstance(devices, list):
            raise ParseError(f"Unexpected device list for runtime {runtime}")
        runtimes[runtime] = [
            Simulator(
                name=device.get("name", "Unknown"),
                udid=device.get("udid", ""),
                state=device.get("state", "Unknown"),
                runtime=runtime,
                is_available=device.get("isAvailable", True),
            )
            for device in devices
            if isinstance(device, dict)
        ]
    return runtimes


def find_simulator(runtimes: Dict[str, List[Simulator]], udid: Optional[str] = None,
                   name: Optional[str] = None) -> Optional[Simulator]:
    """Look up a simulator by UDID, or by name when no UDID is given."""
    for devices in runtimes.values():
        for device in devices:
            if udid and device.udid == udid:
                return device
            if not udid and name and device.name == name:
                return device
    return None


def format_simulator_list(runtimes: Dict[str, List[Simulator]]) -> str:
    lines = ["Available iOS Simulators:", ""]
    for runtime, devices in runtimes.items():
        available = [d for d in devices if d.is_available]
        if not available:
            continue
        lines.append(f"{runtime}:")
        for device in available:
            booted = " [Booted]" if device.is_booted else ""
            lines.append(f"- {device.name} ({device.udid}){booted}")
        lines.append("")
    return "\n".join(lines) + "\n"
