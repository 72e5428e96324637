#!/usr/bin/env python3
"""list_simulators tool - List available simulators"""

from typing import Optional

from xcode_build_mcp.server import mcp
from xcode_build_mcp.devices.models import DeviceQueryFailed
from xcode_build_mcp.devices.resolver import list_devices
from xcode_build_mcp.exceptions import InvalidParameterError, XCodeMCPError
from xcode_build_mcp.utils.formatting import format_device_list
from xcode_build_mcp.validation import normalize_platform


@mcp.tool()
async def list_simulators(platform: Optional[str] = None, booted_only: bool = False) -> str:
    """
    List iOS, tvOS, watchOS and visionOS simulators.

    Args:
        platform: Only list simulators of this platform (iOS, tvOS, watchOS or visionOS).
        booted_only: Only list booted simulators.

    Returns:
        A formatted list of simulators with their names, UDIDs, OS versions and states.
    """
    if platform:
        platform = normalize_platform(platform)
        if platform == "macOS":
            raise InvalidParameterError("macOS has no simulators; use iOS, tvOS, watchOS or visionOS")

    devices = await list_devices(platform, booted_only=booted_only)
    if isinstance(devices, DeviceQueryFailed):
        raise XCodeMCPError(f"Error listing simulators: {devices.stderr}")
    return format_device_list(devices, booted_only=booted_only)
