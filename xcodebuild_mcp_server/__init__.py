"""XcodeBuild MCP Server - Apple build, test and device tooling over MCP"""

__version__ = "1.0.0"
