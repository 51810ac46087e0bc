#!/usr/bin/env python3
"""Parsing of `xcrun devicectl list devices --json-output` files"""

import json
from dataclasses import dataclass
from typing import List, Optional

from xcodebuild_mcp_server.exceptions import ParseError

AVAILABLE_STATES = ("Available", "Available (WiFi)")


@dataclass
class Device:
    name: str
    identifier: str
    platform: str
    state: str
    model: Optional[str] = None
    os_version: Optional[str] = None
    connection_type: Optional[str] = None
    developer_mode: Optional[str] = None
    product_type: Optional[str] = None
    cpu_architecture: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.state in AVAILABLE_STATES


def _platform_name(platform_identifier: str) -> str:
    platform_id = (platform_identifier or "").lower()
    if "ios" in platform_id or "iphone" in platform_id:
        return "iOS"
    if "ipad" in platform_id:
        return "iPadOS"
    if "watch" in platform_id:
        return "watchOS"
    if "tv" in platform_id:
        return "tvOS"
    if "vision" in platform_id:
        return "visionOS"
    return "Unknown"


def _connection_state(pairing_state: str, tunnel_state: str) -> str:
    if pairing_state != "paired":
        return "Unpaired"
    # Paired devices without a connected tunnel are reachable over WiFi
    return "Available" if tunnel_state == "connected" else "Available (WiFi)"


def parse_devicectl_devices(json_text: str) -> List[Device]:
    """
    Extract physical devices from devicectl's JSON output.

    Simulators and entries without a pairing state are skipped; duplicate
    identifiers keep their first entry.

    Raises:
        ParseError: If the text is not JSON or has no result object
    """
    try:
        data = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid devicectl JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("result"), dict):
        raise ParseError("devicectl JSON has no 'result' object")

    devices: List[Device] = []
    seen = set()
    for entry in data["result"].get("devices") or []:
        if not isinstance(entry, dict):
            continue
        connection = entry.get("connectionProperties") or {}
        if entry.get("visibilityClass") == "Simulator" or not connection.get("pairingState"):
            continue
        identifier = entry.get("identifier")
        if identifier in seen:
            continue
        seen.add(identifier)

        properties = entry.get("deviceProperties") or {}
        hardware = entry.get("hardwareProperties") or {}
        devices.append(Device(
            name=properties.get("name") or "Unknown Device",
            identifier=identifier,
            platform=_platform_name(properties.get("platformIdentifier")),
            state=_connection_state(connection.get("pairingState", ""), connection.get("tunnelState", "")),
            model=properties.get("marketingName") or hardware.get("productType"),
            os_version=properties.get("osVersionNumber"),
            connection_type=connection.get("transportType"),
            developer_mode=properties.get("developerModeStatus"),
            product_type=hardware.get("productType"),
            cpu_architecture=(hardware.get("cpuType") or {}).get("name"),
        ))
    return devices


def format_device_list(devices: List[Device]) -> str:
    lines = ["Connected Devices:", ""]

    if not devices:
        lines += [
            "No physical Apple devices found.",
            "",
            "Make sure:",
            "1. Devices are connected via USB or WiFi",
            "2. Devices are unlocked and trusted",
            '3. "Trust this computer" has been accepted on the device',
            "4. Developer mode is enabled on the device (iOS 16+)",
            "5. Xcode is properly installed",
            "",
            "For simulators, use the list_sims tool instead.",
        ]
        return "\n".join(lines) + "\n"

    available = [d for d in devices if d.is_available]
    unpaired = [d for d in devices if d.state == "Unpaired"]

    if available:
        lines.append("✅ Available Devices:")
        for device in available:
            lines.append("")
            lines.append(f"📱 {device.name}")
            lines.append(f"   UDID: {device.identifier}")
            lines.append(f"   Model: {device.model or 'Unknown'}")
            if device.product_type:
                lines.append(f"   Product Type: {device.product_type}")
            lines.append(f"   Platform: {device.platform} {device.os_version or ''}".rstrip())
            if device.cpu_architecture:
                lines.append(f"   CPU Architecture: {device.cpu_architecture}")
            lines.append(f"   Connection: {device.connection_type or 'Unknown'}")
            if device.developer_mode:
                lines.append(f"   Developer Mode: {device.developer_mode}")
        lines.append("")

    if unpaired:
        lines.append("❌ Unpaired Devices:")
        for device in unpaired:
            lines.append(f"- {device.name} ({device.identifier})")
        lines.append("")

    if available:
        lines += [
            "Next Steps:",
            "1. Build for device: build_device({ workspace_path: 'PATH', scheme: 'SCHEME' })",
            "2. Run tests: test_device({ workspace_path: 'PATH', scheme: 'SCHEME', device_id: 'UDID' })",
            "3. Get app path: get_device_app_path({ workspace_path: 'PATH', scheme: 'SCHEME' })",
            "",
            "Note: Use the device ID/UDID from above when required by other tools.",
        ]
    else:
        lines += [
            "Note: No devices are currently available for testing. Make sure devices are:",
            "- Connected via USB",
            "- Unlocked and trusted",
            "- Have developer mode enabled (iOS 16+)",
        ]
    return "\n".join(lines) + "\n"
