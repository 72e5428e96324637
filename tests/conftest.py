"""Shared test fixtures for xcode-build-mcp tests."""

import json
import plistlib
from typing import Dict, List, Optional
from unittest.mock import patch

import pytest

from xcode_build_mcp.config_manager import ServerConfig, get_config, set_config
from xcode_build_mcp.utils.commands import CommandResult

IOS_16_4 = "com.apple.CoreSimulator.SimRuntime.iOS-16-4"
IOS_17_2 = "com.apple.CoreSimulator.SimRuntime.iOS-17-2"
TVOS_17_0 = "com.apple.CoreSimulator.SimRuntime.tvOS-17-0"
XROS_1_0 = "com.apple.CoreSimulator.SimRuntime.xrOS-1-0"

UDID_A = "11111111-1111-1111-1111-111111111111"
UDID_B = "22222222-2222-2222-2222-222222222222"
UDID_C = "33333333-3333-3333-3333-333333333333"


def device(udid: str, name: str, state: str = "Shutdown", available: bool = True) -> Dict:
    """One simctl device entry"""
    return {"udid": udid, "name": name, "state": state, "isAvailable": available}


def device_list_json(devices_by_runtime: Dict[str, List[Dict]]) -> str:
    """simctl list devices --json output"""
    return json.dumps({"devices": devices_by_runtime})


def ok(stdout: str = "", args=("xcrun", "simctl")) -> CommandResult:
    return CommandResult(tuple(args), 0, stdout, "")


def failed(stderr: str, returncode: int = 1, args=("xcrun", "simctl")) -> CommandResult:
    return CommandResult(tuple(args), returncode, "", stderr)


class FakeSimctl:
    """
    Stand-in for run_simctl. `list` returns the configured device list;
    every other subcommand returns the result configured for it (success by
    default). All calls are recorded.
    """

    def __init__(self, devices_by_runtime: Optional[Dict[str, List[Dict]]] = None):
        self.devices_by_runtime = devices_by_runtime or {}
        self.list_result: Optional[CommandResult] = None
        self.results: Dict[str, CommandResult] = {}
        self.calls: List[tuple] = []

    async def __call__(self, *args, timeout=None):
        self.calls.append(args)
        if args[0] == "list":
            if self.list_result is not None:
                return self.list_result
            return ok(device_list_json(self.devices_by_runtime))
        return self.results.get(args[0], ok())

    def commands(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path):
    """Point logs at a temporary directory and restore the config afterwards"""
    previous = get_config()
    set_config(ServerConfig(log_dir=str(tmp_path / "logs")))
    yield get_config()
    set_config(previous)


@pytest.fixture
def fake_simctl():
    """Patch run_simctl everywhere the device layer uses it"""
    fake = FakeSimctl()
    with patch("xcode_build_mcp.devices.resolver.run_simctl", new=fake), \
            patch("xcode_build_mcp.devices.lifecycle.run_simctl", new=fake):
        yield fake


@pytest.fixture
def two_iphone_14s() -> Dict[str, List[Dict]]:
    """Two Shutdown devices named iPhone 14 on different runtimes"""
    return {
        IOS_16_4: [device(UDID_A, "iPhone 14")],
        IOS_17_2: [device(UDID_B, "iPhone 14")],
    }


@pytest.fixture
def app_bundle(tmp_path):
    """A minimal .app bundle with an Info.plist"""
    bundle = tmp_path / "Demo.app"
    bundle.mkdir()
    with open(bundle / "Info.plist", "wb") as f:
        plistlib.dump({"CFBundleIdentifier": "com.example.Demo"}, f)
    return str(bundle)
