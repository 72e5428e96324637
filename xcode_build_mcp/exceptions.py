#!/usr/bin/env python3
"""Exception types shared by the tools and the lifecycle machines"""

from typing import Optional


class XCodeMCPError(Exception):
    def __init__(self, message, code=None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidParameterError(XCodeMCPError):
    pass


# Lifecycle failure causes. These are carried as values inside outcomes
# rather than raised past the lifecycle machines.

class SimulatorOperationError(XCodeMCPError):
    pass


class SimulatorNotFoundError(SimulatorOperationError):
    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Simulator not found: {identifier}", code="simulator_not_found")


class NoBootedSimulatorError(SimulatorOperationError):
    def __init__(self):
        super().__init__(
            "No booted simulator found. Boot a simulator first or specify a simulator ID.",
            code="no_booted_simulator",
        )


class MultipleBootedSimulatorsError(SimulatorOperationError):
    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Multiple booted simulators found ({count}). Please specify a simulator ID.",
            code="multiple_booted_simulators",
        )


class SimulatorBusyError(SimulatorOperationError):
    def __init__(self, current_state: str):
        self.current_state = current_state
        super().__init__(
            f"Simulator is busy ({current_state}), try again once it settles",
            code="simulator_busy",
        )


class DeviceListUnavailableError(SimulatorOperationError):
    def __init__(self, stderr: str):
        self.stderr = stderr
        super().__init__(f"Could not query simulators: {stderr}", code="device_list_unavailable")


class CommandFailedError(SimulatorOperationError):
    """A simctl command exited non-zero; `stderr` is kept verbatim."""

    def __init__(self, stderr: str, code: Optional[str] = None):
        self.stderr = stderr
        super().__init__(stderr, code=code)


class BootCommandFailedError(CommandFailedError):
    def __init__(self, stderr: str):
        super().__init__(stderr, code="boot_failed")


class ShutdownCommandFailedError(CommandFailedError):
    def __init__(self, stderr: str):
        super().__init__(stderr, code="shutdown_failed")


class InstallCommandFailedError(CommandFailedError):
    def __init__(self, stderr: str):
        super().__init__(stderr, code="install_failed")


class AppNotFoundError(SimulatorOperationError):
    def __init__(self, app_path: str):
        self.app_path = app_path
        super().__init__(f"App bundle not found: {app_path}", code="app_not_found")
