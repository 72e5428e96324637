"""MCP tools. Importing this package registers every tool on the shared server."""

from xcode_build_mcp.tools import (  # noqa: F401
    boot_simulator,
    build_project,
    build_swift_package,
    install_app,
    list_simulators,
    test_project,
    test_swift_package,
    version,
)
