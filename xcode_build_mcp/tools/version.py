#!/usr/bin/env python3
"""version tool - Report the server version"""

from xcode_build_mcp import __version__
from xcode_build_mcp.server import mcp


@mcp.tool()
def version() -> str:
    """
    Get the current version of the Xcode Build MCP Server.

    Returns:
        The version string of the server
    """
    return f"Xcode Build MCP Server version {__version__}"
