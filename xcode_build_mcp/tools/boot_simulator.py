#!/usr/bin/env python3
"""boot_simulator and shutdown_simulator tools"""

from xcode_build_mcp.server import mcp
from xcode_build_mcp.devices.lifecycle import boot_simulator as boot, shutdown_simulator as shutdown
from xcode_build_mcp.utils.formatting import format_boot_result, format_shutdown_result
from xcode_build_mcp.validation import require_non_empty


@mcp.tool()
async def boot_simulator(simulator: str) -> str:
    """
    Boot a simulator.

    Args:
        simulator: Simulator name (e.g. "iPhone 15") or UDID. When several
                   simulators share the name, the one with the newest OS is used.

    Returns:
        Whether the simulator was booted or already running, or why it could not be booted.
    """
    result = await boot(require_non_empty(simulator, "simulator"))
    return format_boot_result(result)


@mcp.tool()
async def shutdown_simulator(simulator: str) -> str:
    """
    Shut down a simulator.

    Args:
        simulator: Simulator name or UDID.

    Returns:
        Whether the simulator was shut down or already stopped, or why it could not be.
    """
    result = await shutdown(require_non_empty(simulator, "simulator"))
    return format_shutdown_result(result)
