#!/usr/bin/env python3
"""Shared FastMCP server instance"""

from mcp.server.fastmcp import FastMCP

# Initialize the MCP server
mcp = FastMCP("Xcode Build MCP Server",
    instructions="""
        This server builds and tests Xcode projects and Swift packages with
        `xcodebuild` and `swift test`, and manages iOS, tvOS, watchOS and
        visionOS simulators with `xcrun simctl`. Results come back as short
        summaries: compiler errors with file and line, failing tests with
        their failure reason, and a classified cause with a suggested fix
        when a build cannot start. The full output of every build and test
        is saved to a log file whose path is included in the result.

        Call `list_simulators` to find simulator names and UDIDs, then pass
        one of them to `boot_simulator`, `install_app` or `test_project`.

        Available tools:
        - build_project: Build an .xcodeproj or .xcworkspace for a platform
        - test_project: Run the tests of an .xcodeproj or .xcworkspace
        - build_swift_package: Run `swift build` for a Swift package
        - test_swift_package: Run `swift test` for a Swift package
        - list_simulators: List simulators, optionally only booted ones
        - boot_simulator: Boot a simulator by name or UDID
        - shutdown_simulator: Shut down a simulator by name or UDID
        - install_app: Install a built .app bundle on a simulator
        - version: Get the server version
    """
)
