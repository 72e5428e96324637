#!/usr/bin/env python3
"""build_swift_package tool - Build a Swift package with `swift build`"""

import logging
import os
from typing import List, Optional

from xcode_build_mcp.server import mcp
from xcode_build_mcp.config_manager import apply_config
from xcode_build_mcp.exceptions import InvalidParameterError
from xcode_build_mcp.parsing.error_classifier import classify_error
from xcode_build_mcp.parsing.output_aggregator import parse_output
from xcode_build_mcp.utils.commands import beautify, run_command
from xcode_build_mcp.utils.formatting import format_classified_error, format_parsed_output
from xcode_build_mcp.utils.log_store import LogStore
from xcode_build_mcp.validation import normalize_swift_configuration, validate_and_normalize_package_path

logger = logging.getLogger(__name__)


def swift_build_args(package_path: str,
                     configuration: str,
                     target: Optional[str] = None,
                     product: Optional[str] = None) -> List[str]:
    args = ["swift", "build", "--package-path", package_path, "-c", configuration]
    if product:
        args.extend(["--product", product])
    if target:
        args.extend(["--target", target])
    return args


@mcp.tool()
@apply_config
async def build_swift_package(package_path: str,
                              target: Optional[str] = None,
                              product: Optional[str] = None,
                              configuration: str = "debug",
                              include_warnings: Optional[bool] = None,
                              timeout: Optional[float] = None) -> str:
    """
    Build a Swift package with `swift build`.

    Args:
        package_path: Package directory, or the path to its Package.swift.
        target: Build only this target.
        product: Build only this product.
        configuration: "debug" or "release". Defaults to debug.
        include_warnings: Include warnings in build output. If not provided, uses global setting.
        timeout: Seconds before the build is stopped. If not provided, uses global setting.

    Returns:
        A build summary, or the classified reason the package could not be
        built (unresolved dependencies, invalid manifest, unknown target or
        product, compile errors) with a suggested fix.
    """
    if include_warnings is not None and not isinstance(include_warnings, bool):
        raise InvalidParameterError("include_warnings must be a boolean value")

    package_path = validate_and_normalize_package_path(package_path)
    configuration = normalize_swift_configuration(configuration)
    target = target.strip() if target and target.strip() else None
    product = product.strip() if product and product.strip() else None

    args = swift_build_args(package_path, configuration, target, product)
    logger.info("Building package %s (%s)", package_path, configuration)
    result = await run_command(args, timeout=timeout, cwd=package_path)

    output = await beautify(result.output)
    parsed = parse_output(output)

    log_path = LogStore().save_log(
        "build",
        result.output,
        os.path.basename(package_path),
        metadata={
            "packagePath": package_path,
            "configuration": configuration,
            "target": target,
            "product": product,
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
        configuration=configuration,
        project_path=package_path,
        log_path=log_path,
    )
    return format_classified_error(error)
