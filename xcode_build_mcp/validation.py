#!/usr/bin/env python3
"""Validation of tool arguments"""

import os
from typing import Optional

from xcode_build_mcp.devices.models import IOS, MACOS, SIMULATOR_PLATFORMS, platform_from_runtime
from xcode_build_mcp.exceptions import InvalidParameterError

PLATFORMS = SIMULATOR_PLATFORMS + (MACOS,)
SWIFT_CONFIGURATIONS = ("debug", "release")


def validate_and_normalize_project_path(project_path: str) -> str:
    """
    Validate and normalize a project path for Xcode operations.

    Args:
        project_path: The project path to validate

    Returns:
        Normalized project path

    Raises:
        InvalidParameterError: If validation fails
    """
    if not project_path or project_path.strip() == "":
        raise InvalidParameterError("project_path cannot be empty")

    project_path = os.path.expanduser(project_path.strip()).rstrip("/")

    if not (project_path.endswith(".xcodeproj") or project_path.endswith(".xcworkspace")):
        raise InvalidParameterError("project_path must end with '.xcodeproj' or '.xcworkspace'")

    if not os.path.exists(project_path):
        raise InvalidParameterError(f"Project path does not exist: {project_path}")

    return os.path.realpath(project_path)


def validate_and_normalize_package_path(package_path: str) -> str:
    """
    Validate a Swift package directory (or its Package.swift) and return the directory.

    Raises:
        InvalidParameterError: If the path is empty or has no Package.swift
    """
    if not package_path or package_path.strip() == "":
        raise InvalidParameterError("package_path cannot be empty")

    package_path = os.path.expanduser(package_path.strip()).rstrip("/")
    if os.path.basename(package_path) == "Package.swift":
        package_path = os.path.dirname(package_path)

    if not os.path.isfile(os.path.join(package_path, "Package.swift")):
        raise InvalidParameterError(f"No Package.swift found in: {package_path}")

    return os.path.realpath(package_path)


def normalize_platform(platform: Optional[str]) -> str:
    """
    Map a user supplied platform name onto one of PLATFORMS.

    Raises:
        InvalidParameterError: For names that are not a supported platform
    """
    if not platform or platform.strip() == "":
        return IOS

    name = platform.strip().lower()
    if name == "macos":
        return MACOS
    if name not in ("ios", "tvos", "watchos", "visionos", "xros"):
        raise InvalidParameterError(
            f"Unsupported platform '{platform}'. Use one of: {', '.join(PLATFORMS)}"
        )
    return platform_from_runtime(name)


def require_non_empty(value: Optional[str], name: str) -> str:
    if value is None or value.strip() == "":
        raise InvalidParameterError(f"{name} cannot be empty")
    return value.strip()


def normalize_swift_configuration(configuration: Optional[str]) -> str:
    """
    SwiftPM only knows "debug" and "release"; Xcode-style capitalisation is accepted.

    Raises:
        InvalidParameterError: For any other configuration
    """
    configuration = (configuration or "debug").strip().lower()
    if configuration not in SWIFT_CONFIGURATIONS:
        raise InvalidParameterError("configuration must be 'debug' or 'release'")
    return configuration
