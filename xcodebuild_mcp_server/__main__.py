#!/usr/bin/env python3
"""Command line entry point for the XcodeBuild MCP server"""

import argparse
import logging

from xcodebuild_mcp_server import __version__
from xcodebuild_mcp_server.config import configure_logging, load_settings
from xcodebuild_mcp_server.context import configure_default_context
from xcodebuild_mcp_server.server import mcp

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="XcodeBuild MCP Server")
    parser.add_argument("--version", action="version", version=f"xcodebuild-mcp-server {__version__}")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--axe-path", help="Path to the axe binary used for UI automation")
    parser.add_argument("--command-timeout", type=float,
                        help="Default timeout in seconds for external commands (no timeout if unset)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    settings = load_settings().with_overrides(
        log_level=args.log_level.upper() if args.log_level else None,
        axe_path=args.axe_path,
        command_timeout=args.command_timeout,
    )
    configure_logging(settings.log_level)
    configure_default_context(settings)

    # Registers every @mcp.tool() function
    import xcodebuild_mcp_server.tools  # noqa: F401

    logger.info(f"Starting XcodeBuild MCP Server {__version__}")
    mcp.run()


if __name__ == "__main__":
    main()
