#!/usr/bin/env python3
"""Simulator device types and runtime helpers"""

import enum
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

IOS = "iOS"
TVOS = "tvOS"
WATCHOS = "watchOS"
VISIONOS = "visionOS"
MACOS = "macOS"

SIMULATOR_PLATFORMS = (IOS, TVOS, WATCHOS, VISIONOS)

RUNTIME_PREFIX = "com.apple.CoreSimulator.SimRuntime."
RUNTIME_VERSION = re.compile(r"(\d+)[.-](\d+)(?:[.-](\d+))?")


class SimulatorState(enum.Enum):
    SHUTDOWN = "Shutdown"
    BOOTING = "Booting"
    BOOTED = "Booted"
    SHUTTING_DOWN = "Shutting Down"

    @classmethod
    def parse(cls, value) -> Optional["SimulatorState"]:
        """Map simctl's state string to a SimulatorState, None when unknown"""
        if not isinstance(value, str):
            return None
        normalized = value.replace(" ", "").lower()
        for state in cls:
            if state.value.replace(" ", "").lower() == normalized:
                return state
        return None


def platform_from_runtime(runtime_identifier: str) -> str:
    """
    Derive the platform from a runtime identifier by substring match.

    The legacy xrOS runtime name is reported as visionOS. Unknown runtimes
    default to iOS.
    """
    runtime = (runtime_identifier or "").lower()
    if "xros" in runtime or "visionos" in runtime:
        return VISIONOS
    if "tvos" in runtime:
        return TVOS
    if "watchos" in runtime:
        return WATCHOS
    return IOS


def runtime_version(runtime_identifier: str) -> Tuple[int, ...]:
    """Numeric runtime version, e.g. (17, 2) for ...SimRuntime.iOS-17-2; () when absent"""
    match = RUNTIME_VERSION.search(runtime_identifier or "")
    if not match:
        return ()
    return tuple(int(part) for part in match.groups() if part is not None)


def runtime_display_name(runtime_identifier: str) -> str:
    """'com.apple.CoreSimulator.SimRuntime.iOS-17-2' -> 'iOS 17.2'"""
    version = runtime_version(runtime_identifier)
    if not version:
        name = runtime_identifier or ""
        return name[len(RUNTIME_PREFIX):] if name.startswith(RUNTIME_PREFIX) else name
    return f"{platform_from_runtime(runtime_identifier)} {'.'.join(str(part) for part in version)}"


@dataclass(frozen=True)
class DeviceDescriptor:
    id: str
    name: str
    state: SimulatorState
    platform: str
    runtime_identifier: str
    available: bool

    @property
    def is_booted(self) -> bool:
        return self.state is SimulatorState.BOOTED

    @property
    def runtime_version(self) -> Tuple[int, ...]:
        return runtime_version(self.runtime_identifier)

    @property
    def runtime(self) -> str:
        return runtime_display_name(self.runtime_identifier)

    def __str__(self) -> str:
        return f"{self.name} ({self.id}) - {self.runtime}, {self.state.value}"


@dataclass(frozen=True)
class DeviceNotFound:
    """No device matched; `identifier` is None when looking for the booted device"""
    identifier: Optional[str] = None


@dataclass(frozen=True)
class MultipleBootedDevices:
    count: int


@dataclass(frozen=True)
class DeviceQueryFailed:
    stderr: str


ResolutionResult = Union[DeviceDescriptor, DeviceNotFound, MultipleBootedDevices, DeviceQueryFailed]
