#!/usr/bin/env python3
"""Boot, shutdown and install state machines for simulator devices"""

import datetime
import enum
import logging
import os
import plistlib
from dataclasses import dataclass
from typing import Optional

from xcode_build_mcp.config_manager import get_config
from xcode_build_mcp.devices.models import (
    DeviceDescriptor,
    DeviceNotFound,
    DeviceQueryFailed,
    MultipleBootedDevices,
    ResolutionResult,
    SimulatorState,
)
from xcode_build_mcp.devices.resolver import resolve_device
from xcode_build_mcp.exceptions import (
    AppNotFoundError,
    BootCommandFailedError,
    CommandFailedError,
    DeviceListUnavailableError,
    InstallCommandFailedError,
    MultipleBootedSimulatorsError,
    NoBootedSimulatorError,
    ShutdownCommandFailedError,
    SimulatorBusyError,
    SimulatorNotFoundError,
    SimulatorOperationError,
)
from xcode_build_mcp.utils.commands import run_simctl

logger = logging.getLogger(__name__)

# simctl reports these when the device is already where we want it
ALREADY_BOOTED_MESSAGE = "Unable to boot device in current state: Booted"
STILL_BOOTING_MESSAGE = "Unable to boot device in current state: Booting"
ALREADY_SHUTDOWN_MESSAGE = "Unable to shutdown device in current state: Shutdown"


class BootOutcome(enum.Enum):
    BOOTED = "booted"
    ALREADY_BOOTED = "already_booted"
    FAILED = "failed"


class ShutdownOutcome(enum.Enum):
    SHUTDOWN = "shutdown"
    ALREADY_SHUTDOWN = "already_shutdown"
    FAILED = "failed"


class InstallOutcome(enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationDiagnostics:
    """Snapshot of one lifecycle operation. Same fields on every path."""
    operation: str
    started_at: datetime.datetime
    finished_at: datetime.datetime
    device_id: Optional[str] = None
    device_name: Optional[str] = None
    platform: Optional[str] = None
    runtime: Optional[str] = None
    app_path: Optional[str] = None
    bundle_id: Optional[str] = None


@dataclass(frozen=True)
class LifecycleResult:
    outcome: enum.Enum
    diagnostics: OperationDiagnostics
    error: Optional[SimulatorOperationError] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class BootResult(LifecycleResult):
    pass


class ShutdownResult(LifecycleResult):
    pass


class InstallResult(LifecycleResult):
    pass


def _now() -> datetime.datetime:
    return datetime.datetime.now()


def _diagnostics(operation: str,
                 started_at: datetime.datetime,
                 device: Optional[DeviceDescriptor] = None,
                 app_path: Optional[str] = None,
                 bundle_id: Optional[str] = None) -> OperationDiagnostics:
    return OperationDiagnostics(
        operation=operation,
        started_at=started_at,
        finished_at=_now(),
        device_id=device.id if device else None,
        device_name=device.name if device else None,
        platform=device.platform if device else None,
        runtime=device.runtime if device else None,
        app_path=app_path,
        bundle_id=bundle_id,
    )


def resolution_error(resolution: ResolutionResult) -> Optional[SimulatorOperationError]:
    """Map a non-device resolution value to its failure cause, None for a device"""
    if isinstance(resolution, DeviceNotFound):
        if resolution.identifier is None:
            return NoBootedSimulatorError()
        return SimulatorNotFoundError(resolution.identifier)
    if isinstance(resolution, MultipleBootedDevices):
        return MultipleBootedSimulatorsError(resolution.count)
    if isinstance(resolution, DeviceQueryFailed):
        return DeviceListUnavailableError(resolution.stderr)
    return None


# --- boot --------------------------------------------------------------------

async def boot_device(device: DeviceDescriptor,
                      started_at: Optional[datetime.datetime] = None) -> BootResult:
    """
    Boot an already resolved device.

    Shutdown and Booting devices get a boot command. A Booted device returns
    ALREADY_BOOTED and a Shutting Down device fails as busy, both without
    running any command.
    """
    started_at = started_at or _now()

    if device.state is SimulatorState.BOOTED:
        logger.info("Simulator %s is already booted", device.name)
        return BootResult(BootOutcome.ALREADY_BOOTED, _diagnostics("boot", started_at, device))

    if device.state is SimulatorState.SHUTTING_DOWN:
        return BootResult(
            BootOutcome.FAILED,
            _diagnostics("boot", started_at, device),
            SimulatorBusyError(device.state.value),
        )

    logger.info("Booting simulator %s (%s)", device.name, device.id)
    result = await run_simctl("boot", device.id, timeout=get_config().simctl_timeout)
    if result.succeeded or STILL_BOOTING_MESSAGE in result.stderr:
        return BootResult(BootOutcome.BOOTED, _diagnostics("boot", started_at, device))
    if ALREADY_BOOTED_MESSAGE in result.stderr:
        # Booted by someone else between the query and the command
        return BootResult(BootOutcome.ALREADY_BOOTED, _diagnostics("boot", started_at, device))

    logger.warning("Failed to boot %s: %s", device.id, result.stderr.strip())
    return BootResult(
        BootOutcome.FAILED,
        _diagnostics("boot", started_at, device),
        BootCommandFailedError(result.stderr),
    )


async def boot_simulator(identifier: str) -> BootResult:
    """
    Resolve a device by id or name and boot it.

    Args:
        identifier: Device UDID or name

    Returns:
        BootResult; failures are carried in `error`, never raised
    """
    started_at = _now()
    resolution = await resolve_device(identifier)
    error = resolution_error(resolution)
    if error is not None:
        return BootResult(BootOutcome.FAILED, _diagnostics("boot", started_at), error)
    return await boot_device(resolution, started_at)


# --- shutdown ----------------------------------------------------------------

async def shutdown_device(device: DeviceDescriptor,
                          started_at: Optional[datetime.datetime] = None) -> ShutdownResult:
    """Shut down an already resolved device"""
    started_at = started_at or _now()

    if device.state in (SimulatorState.SHUTDOWN, SimulatorState.SHUTTING_DOWN):
        logger.info("Simulator %s is already %s", device.name, device.state.value.lower())
        return ShutdownResult(ShutdownOutcome.ALREADY_SHUTDOWN, _diagnostics("shutdown", started_at, device))

    logger.info("Shutting down simulator %s (%s)", device.name, device.id)
    result = await run_simctl("shutdown", device.id, timeout=get_config().simctl_timeout)
    if result.succeeded:
        return ShutdownResult(ShutdownOutcome.SHUTDOWN, _diagnostics("shutdown", started_at, device))
    if ALREADY_SHUTDOWN_MESSAGE in result.stderr:
        return ShutdownResult(ShutdownOutcome.ALREADY_SHUTDOWN, _diagnostics("shutdown", started_at, device))

    logger.warning("Failed to shut down %s: %s", device.id, result.stderr.strip())
    return ShutdownResult(
        ShutdownOutcome.FAILED,
        _diagnostics("shutdown", started_at, device),
        ShutdownCommandFailedError(result.stderr),
    )


async def shutdown_simulator(identifier: str) -> ShutdownResult:
    """Resolve a device by id or name and shut it down"""
    started_at = _now()
    resolution = await resolve_device(identifier)
    error = resolution_error(resolution)
    if error is not None:
        return ShutdownResult(ShutdownOutcome.FAILED, _diagnostics("shutdown", started_at), error)
    return await shutdown_device(resolution, started_at)


# --- install -----------------------------------------------------------------

def read_bundle_id(app_path: str) -> Optional[str]:
    """CFBundleIdentifier from the bundle's Info.plist, None when it can't be read"""
    plist_path = os.path.join(app_path, "Info.plist")
    try:
        with open(plist_path, "rb") as f:
            info = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        logger.debug("Could not read %s: %s", plist_path, e)
        return None
    bundle_id = info.get("CFBundleIdentifier") if isinstance(info, dict) else None
    return bundle_id if isinstance(bundle_id, str) and bundle_id else None


async def install_app(app_path: str, simulator_id: Optional[str] = None) -> InstallResult:
    """
    Install an .app bundle on a simulator.

    The target is `simulator_id` when given, otherwise the single booted
    simulator. A device that is not booted is booted first. No device is
    ever guessed: without an id and without exactly one booted simulator the
    install fails with no device in its diagnostics.

    Args:
        app_path: Path to the .app bundle
        simulator_id: Device UDID or name

    Returns:
        InstallResult; failures are carried in `error`, never raised
    """
    started_at = _now()
    app_path = os.path.abspath(os.path.expanduser(app_path))

    if not app_path.rstrip("/").endswith(".app") or not os.path.isdir(app_path):
        return InstallResult(
            InstallOutcome.FAILED,
            _diagnostics("install", started_at, app_path=app_path),
            AppNotFoundError(app_path),
        )

    bundle_id = read_bundle_id(app_path)
    if bundle_id is None:
        bundle_id = os.path.splitext(os.path.basename(app_path.rstrip("/")))[0]

    resolution = await resolve_device(simulator_id)
    error = resolution_error(resolution)
    if error is not None:
        return InstallResult(
            InstallOutcome.FAILED,
            _diagnostics("install", started_at, app_path=app_path, bundle_id=bundle_id),
            error,
        )

    device = resolution
    if not device.is_booted:
        boot = await boot_device(device, started_at)
        if boot.failed:
            error = boot.error
            if isinstance(error, CommandFailedError):
                error = InstallCommandFailedError(error.stderr)
            return InstallResult(
                InstallOutcome.FAILED,
                _diagnostics("install", started_at, device, app_path, bundle_id),
                error,
            )

    logger.info("Installing %s on %s (%s)", os.path.basename(app_path), device.name, device.id)
    result = await run_simctl("install", device.id, app_path, timeout=get_config().simctl_timeout)
    if not result.succeeded:
        return InstallResult(
            InstallOutcome.FAILED,
            _diagnostics("install", started_at, device, app_path, bundle_id),
            InstallCommandFailedError(result.stderr),
        )

    return InstallResult(
        InstallOutcome.SUCCEEDED,
        _diagnostics("install", started_at, device, app_path, bundle_id),
    )
