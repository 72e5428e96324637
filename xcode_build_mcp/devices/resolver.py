#!/usr/bin/env python3
"""Find simulator devices by id or name, or the single booted device"""

import json
import logging
import re
from typing import Any, List, Optional, Union

from xcode_build_mcp.config_manager import get_config
from xcode_build_mcp.devices.models import (
    DeviceDescriptor,
    DeviceNotFound,
    DeviceQueryFailed,
    MultipleBootedDevices,
    ResolutionResult,
    SimulatorState,
    platform_from_runtime,
)
from xcode_build_mcp.utils.commands import run_simctl

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def _is_available(entry: dict) -> bool:
    available = entry.get("isAvailable")
    if isinstance(available, bool):
        return available
    # Older simctl releases report "(available)" instead of a boolean
    return entry.get("availability") == "(available)"


def _descriptor(runtime_identifier: str, entry: Any) -> Optional[DeviceDescriptor]:
    if not isinstance(entry, dict):
        return None
    udid = entry.get("udid")
    name = entry.get("name")
    state = SimulatorState.parse(entry.get("state"))
    if not isinstance(udid, str) or not udid or not isinstance(name, str) or not name or state is None:
        return None
    return DeviceDescriptor(
        id=udid,
        name=name,
        state=state,
        platform=platform_from_runtime(runtime_identifier),
        runtime_identifier=runtime_identifier,
        available=_is_available(entry),
    )


def parse_device_list(document: Union[str, dict]) -> List[DeviceDescriptor]:
    """
    Parse `simctl list devices --json` output into device descriptors.

    Entries missing an id, a name or a known state are dropped.

    Args:
        document: JSON text or the already decoded document

    Returns:
        Devices in document order

    Raises:
        ValueError: If the document is not JSON or has no "devices" mapping
    """
    data = json.loads(document) if isinstance(document, str) else document
    devices_by_runtime = data.get("devices") if isinstance(data, dict) else None
    if not isinstance(devices_by_runtime, dict):
        raise ValueError("Device list has no 'devices' mapping")

    devices = []
    skipped = 0
    for runtime_identifier, entries in devices_by_runtime.items():
        if not isinstance(entries, list):
            skipped += 1
            continue
        for entry in entries:
            device = _descriptor(runtime_identifier, entry)
            if device is None:
                skipped += 1
            else:
                devices.append(device)

    if skipped:
        logger.debug("Ignored %d malformed device list entries", skipped)
    return devices


def _newest_first(device: DeviceDescriptor):
    version = (device.runtime_version + (0, 0, 0))[:3]
    return tuple(-part for part in version)


def _preference_key(device: DeviceDescriptor):
    # Available first, then booted, then the newest runtime
    return (not device.available, not device.is_booted, _newest_first(device))


def select_device(devices: List[DeviceDescriptor], identifier: Optional[str] = None) -> ResolutionResult:
    """
    Pick one device from an already fetched list.

    A UUID-shaped identifier matches device ids only; any other identifier
    matches ids or names. Several matches are ordered available first, then
    booted, then by highest runtime version. Without an identifier the single
    booted, available device is returned.

    Args:
        devices: Device list, e.g. from parse_device_list
        identifier: Device id or name, or None for the booted device

    Returns:
        DeviceDescriptor, DeviceNotFound or MultipleBootedDevices
    """
    if identifier:
        if UUID_PATTERN.match(identifier):
            matches = [device for device in devices if device.id.lower() == identifier.lower()]
        else:
            matches = [device for device in devices if identifier in (device.id, device.name)]
        if not matches:
            return DeviceNotFound(identifier)
        # sorted() is stable, so equal candidates keep document order
        return sorted(matches, key=_preference_key)[0]

    booted = [device for device in devices if device.is_booted and device.available]
    if not booted:
        return DeviceNotFound(None)
    if len(booted) > 1:
        return MultipleBootedDevices(len(booted))
    return booted[0]


async def fetch_devices() -> Union[List[DeviceDescriptor], DeviceQueryFailed]:
    """Query simctl for the current device list"""
    result = await run_simctl("list", "devices", "--json", timeout=get_config().simctl_timeout)
    if not result.succeeded:
        return DeviceQueryFailed(result.stderr.strip() or f"simctl exited with {result.returncode}")
    try:
        return parse_device_list(result.stdout)
    except ValueError as e:
        logger.warning("Could not parse simctl device list: %s", e)
        return DeviceQueryFailed(f"Invalid device list: {e}")


async def resolve_device(identifier: Optional[str] = None) -> ResolutionResult:
    """
    Resolve a device id or name, or the single booted device, against a
    freshly queried device list.
    """
    devices = await fetch_devices()
    if isinstance(devices, DeviceQueryFailed):
        return devices
    result = select_device(devices, identifier)
    logger.debug("Resolved %r to %s", identifier, result)
    return result


async def list_devices(platform: Optional[str] = None,
                       booted_only: bool = False,
                       include_unavailable: bool = False) -> Union[List[DeviceDescriptor], DeviceQueryFailed]:
    """
    List simulators, optionally filtered.

    Args:
        platform: Only devices of this platform (case-insensitive, "xrOS" accepted)
        booted_only: Only booted devices
        include_unavailable: Also list devices whose runtime is unavailable

    Returns:
        Devices sorted by platform, newest runtime first, then name; or
        DeviceQueryFailed
    """
    devices = await fetch_devices()
    if isinstance(devices, DeviceQueryFailed):
        return devices

    wanted_platform = platform_from_runtime(platform) if platform else None
    selected = [
        device for device in devices
        if (include_unavailable or device.available)
        and (not booted_only or device.is_booted)
        and (wanted_platform is None or device.platform == wanted_platform)
    ]
    return sorted(
        selected,
        key=lambda device: (device.platform, _newest_first(device), device.name),
    )
