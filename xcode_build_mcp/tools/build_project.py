#!/usr/bin/env python3
"""build_project tool - Build an Xcode project with xcodebuild"""

import logging
from typing import Optional

from xcode_build_mcp.server import mcp
from xcode_build_mcp.config_manager import apply_config
from xcode_build_mcp.exceptions import InvalidParameterError
from xcode_build_mcp.parsing.error_classifier import classify_error
from xcode_build_mcp.parsing.output_aggregator import parse_output
from xcode_build_mcp.utils.commands import beautify, run_command
from xcode_build_mcp.utils.formatting import format_classified_error, format_parsed_output
from xcode_build_mcp.utils.log_store import LogStore
from xcode_build_mcp.utils.xcodebuild import generic_destination, project_name, xcodebuild_args
from xcode_build_mcp.validation import (
    normalize_platform,
    require_non_empty,
    validate_and_normalize_project_path,
)

logger = logging.getLogger(__name__)


@mcp.tool()
@apply_config
async def build_project(project_path: str,
                        scheme: str,
                        platform: str = "iOS",
                        configuration: str = "Debug",
                        include_warnings: Optional[bool] = None,
                        timeout: Optional[float] = None) -> str:
    """
    Build the specified Xcode project or workspace with xcodebuild.

    Args:
        project_path: Path to an .xcodeproj or .xcworkspace.
        scheme: Name of the scheme to build.
        platform: iOS, macOS, tvOS, watchOS or visionOS. Defaults to iOS.
        configuration: Build configuration, usually Debug or Release.
        include_warnings: Include warnings in build output. If not provided, uses global setting.
        timeout: Seconds before the build is stopped. If not provided, uses global setting.

    Returns:
        A build summary with errors (or warnings), or the classified reason
        the build failed with a suggested fix. Always ends with the path of
        the saved full log.
    """
    if include_warnings is not None and not isinstance(include_warnings, bool):
        raise InvalidParameterError("include_warnings must be a boolean value")

    normalized_path = validate_and_normalize_project_path(project_path)
    scheme = require_non_empty(scheme, "scheme")
    configuration = require_non_empty(configuration, "configuration")
    platform = normalize_platform(platform)

    args = xcodebuild_args(normalized_path, scheme, "build", generic_destination(platform), configuration)
    logger.info("Building %s (%s, %s, %s)", normalized_path, scheme, platform, configuration)
    result = await run_command(args, timeout=timeout)

    output = await beautify(result.output)
    parsed = parse_output(output)

    log_path = LogStore().save_log(
        "build",
        result.output,
        project_name(normalized_path),
        metadata={
            "projectPath": normalized_path,
            "scheme": scheme,
            "platform": platform,
            "configuration": configuration,
            "exitCode": result.returncode,
            "timedOut": result.timed_out,
            "command": " ".join(args),
        },
    )

    if result.succeeded and parsed.build_succeeded:
        summary = format_parsed_output(parsed, include_warnings=include_warnings)
        return f"{summary}\n\n📁 Full log saved to: {log_path}"

    error = classify_error(
        result.output,
        parsed=parsed,
        platform=platform,
        scheme=scheme,
        configuration=configuration,
        project_path=normalized_path,
        log_path=log_path,
    )
    return format_classified_error(error)
