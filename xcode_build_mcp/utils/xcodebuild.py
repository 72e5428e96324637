#!/usr/bin/env python3
"""xcodebuild invocation helpers shared by the build and test tools"""

import os
from typing import List, Optional, Sequence

from xcode_build_mcp.devices.models import IOS, MACOS, TVOS, VISIONOS, WATCHOS, DeviceDescriptor

SIMULATOR_DESTINATION_PLATFORMS = {
    IOS: "iOS Simulator",
    TVOS: "tvOS Simulator",
    WATCHOS: "watchOS Simulator",
    VISIONOS: "visionOS Simulator",
}


def generic_destination(platform: str) -> str:
    """Destination for building without picking a device"""
    if platform == MACOS:
        return "platform=macOS"
    return f"generic/platform={SIMULATOR_DESTINATION_PLATFORMS[platform]}"


def device_destination(device: DeviceDescriptor) -> str:
    """Destination for running on one simulator"""
    return f"platform={SIMULATOR_DESTINATION_PLATFORMS[device.platform]},id={device.id}"


def xcodebuild_args(project_path: str,
                    scheme: str,
                    action: str,
                    destination: str,
                    configuration: str = "Debug",
                    extra_args: Optional[Sequence[str]] = None) -> List[str]:
    """
    Build the xcodebuild argument list for a project or workspace.

    Args:
        project_path: Normalized .xcodeproj or .xcworkspace path
        scheme: Scheme name
        action: "build" or "test"
        destination: Value for -destination
        configuration: Build configuration
        extra_args: Arguments placed before the action, e.g. -only-testing

    Returns:
        Argument list starting with "xcodebuild"
    """
    flag = "-workspace" if project_path.endswith(".xcworkspace") else "-project"
    args = [
        "xcodebuild",
        flag, project_path,
        "-scheme", scheme,
        "-configuration", configuration,
        "-destination", destination,
    ]
    if extra_args:
        args.extend(extra_args)
    args.append(action)
    return args


def project_name(path: str) -> str:
    """'~/Code/MyApp/MyApp.xcodeproj' -> 'MyApp'"""
    return os.path.splitext(os.path.basename(path.rstrip("/")))[0]
