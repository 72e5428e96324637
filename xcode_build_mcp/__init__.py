"""Xcode build, test and simulator tooling for MCP clients"""

__version__ = "0.4.0"
