#!/usr/bin/env python3
"""Server settings loaded from the environment and command line"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

DEFAULT_LOG_RETENTION_DAYS = 3

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    axe_path: Optional[str] = None
    log_level: str = "INFO"
    command_timeout: Optional[float] = None
    log_retention_days: float = DEFAULT_LOG_RETENTION_DAYS

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse_float(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}: {raw}")
        return None
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}: {raw}")
        return None
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from XCODEBUILDMCP_* environment variables.

    Args:
        environ: Mapping to read from. Defaults to os.environ.

    Returns:
        Settings with unset or invalid variables left at their defaults
    """
    if environ is None:
        environ = os.environ

    retention = _parse_float(environ, "XCODEBUILDMCP_LOG_RETENTION_DAYS")

    return Settings(
        axe_path=environ.get("XCODEBUILDMCP_AXE_PATH") or None,
        log_level=(environ.get("XCODEBUILDMCP_LOG_LEVEL") or "INFO").upper(),
        command_timeout=_parse_float(environ, "XCODEBUILDMCP_COMMAND_TIMEOUT"),
        log_retention_days=retention if retention is not None else DEFAULT_LOG_RETENTION_DAYS,
    )


def configure_logging(level: str):
    """Send log records to stderr; stdout carries the MCP transport."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
