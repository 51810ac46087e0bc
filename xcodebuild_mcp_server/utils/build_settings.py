#!/usr/bin/env python3
"""Parsing of `xcodebuild -showBuildSettings` output"""

import os
import re
from typing import Dict, Optional

_SETTING_LINE = re.compile(r"^\s*([A-Za-z0-9_]+)\s*=\s*(.*?)\s*$")

APP_PATH_EXTRACTION_FAILED = (
    "Failed to extract app path from build settings. Make sure the app has been built first."
)


def parse_build_settings(output: str) -> Dict[str, str]:
    """
    Collect KEY = value pairs from build settings output.

    The first occurrence of a key wins. Lines that are not settings are ignored.
    """
    settings: Dict[str, str] = {}
    for line in (output or "").splitlines():
        match = _SETTING_LINE.match(line)
        if match and match.group(1) not in settings:
            settings[match.group(1)] = match.group(2)
    return settings


def extract_app_path(output: str) -> Optional[str]:
    """
    Join BUILT_PRODUCTS_DIR and FULL_PRODUCT_NAME.

    Returns:
        The app bundle path, or None if either setting is missing
    """
    settings = parse_build_settings(output)
    products_dir = settings.get("BUILT_PRODUCTS_DIR")
    product_name = settings.get("FULL_PRODUCT_NAME")
    if not products_dir or not product_name:
        return None
    return os.path.join(products_dir, product_name)


def extract_codesigning_app_path(output: str) -> Optional[str]:
    """CODESIGNING_FOLDER_PATH, when it points at an .app bundle."""
    value = parse_build_settings(output).get("CODESIGNING_FOLDER_PATH")
    if value and value.endswith(".app"):
        return value
    return None
