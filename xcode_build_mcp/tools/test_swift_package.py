#!/usr/bin/env python3
"""test_swift_package tool - Run `swift test` for a Swift package"""

import logging
import os
import tempfile
import time
from typing import Optional

from xcode_build_mcp.server import mcp
from xcode_build_mcp.config_manager import apply_config
from xcode_build_mcp.parsing.error_classifier import classify_error
from xcode_build_mcp.parsing.output_aggregator import parse_output
from xcode_build_mcp.parsing.report_reconciler import reconcile_test_results, report_paths_for
from xcode_build_mcp.utils.commands import run_command
from xcode_build_mcp.utils.formatting import format_classified_error, format_test_results
from xcode_build_mcp.utils.log_store import LogStore
from xcode_build_mcp.validation import normalize_swift_configuration, validate_and_normalize_package_path

logger = logging.getLogger(__name__)


def swift_test_args(package_path: str,
                    configuration: str,
                    xunit_path: str,
                    test_filter: Optional[str] = None) -> list:
    args = ["swift", "test", "--package-path", package_path, "-c", configuration]
    if test_filter:
        args.extend(["--filter", test_filter])
    args.extend(["--parallel", "--xunit-output", xunit_path])
    return args


@mcp.tool()
@apply_config
async def test_swift_package(package_path: str,
                             test_filter: Optional[str] = None,
                             configuration: str = "debug",
                             timeout: Optional[float] = None) -> str:
    """
    Run the tests of a Swift package with `swift test`.

    Both XCTest and Swift Testing results are collected.

    Args:
        package_path: Package directory, or the path to its Package.swift.
        test_filter: Optional --filter expression, e.g. "MyTests.testLogin".
        configuration: "debug" or "release". Defaults to debug.
        timeout: Seconds before the run is stopped. If not provided, uses global setting.

    Returns:
        Passed/failed counts with failing tests and their reasons, or the
        classified reason the package could not be built.
    """
    package_path = validate_and_normalize_package_path(package_path)
    configuration = normalize_swift_configuration(configuration)

    xunit_path = os.path.join(tempfile.gettempdir(), f"swift-test-{int(time.time() * 1000)}.xml")
    args = swift_test_args(package_path, configuration, xunit_path, test_filter)
    logger.info("Testing package %s", package_path)
    result = await run_command(args, timeout=timeout, cwd=package_path)

    parsed = parse_output(result.output)
    test_result = reconcile_test_results(result.output, report_paths_for(xunit_path), parsed=parsed)

    log_path = LogStore().save_log(
        "test",
        result.output,
        os.path.basename(package_path),
        metadata={
            "packagePath": package_path,
            "configuration": configuration,
            "filter": test_filter,
            "exitCode": result.returncode,
            "timedOut": result.timed_out,
            "result": test_result,
        },
    )

    if not result.succeeded and test_result.total == 0:
        error = classify_error(result.output, parsed=parsed, project_path=package_path, log_path=log_path)
        return format_classified_error(error)

    return format_test_results(test_result, log_path=log_path)
