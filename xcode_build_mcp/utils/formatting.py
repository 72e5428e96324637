#!/usr/bin/env python3
"""Render parse results, classified errors and lifecycle outcomes as text"""

from typing import List, Optional, Sequence

from xcode_build_mcp.config_manager import get_config
from xcode_build_mcp.devices.lifecycle import (
    BootOutcome,
    BootResult,
    InstallResult,
    ShutdownOutcome,
    ShutdownResult,
)
from xcode_build_mcp.devices.models import DeviceDescriptor
from xcode_build_mcp.parsing.error_classifier import ClassifiedError, ErrorType
from xcode_build_mcp.parsing.line_classifier import Issue
from xcode_build_mcp.parsing.output_aggregator import ParsedOutput
from xcode_build_mcp.parsing.report_reconciler import TestRunResult


def plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _issue_line(issue: Issue, marker: str) -> str:
    if issue.has_location:
        return f"  {marker} {issue.file}:{issue.line}:{issue.column} - {issue.message}"
    return f"  {marker} {issue.message}"


def _capped(items: Sequence, limit: int, render, more_label: str) -> List[str]:
    lines = [render(item) for item in items[:limit]]
    if len(items) > limit:
        lines.append(f"  ... and {len(items) - limit} more {more_label}")
    return lines


def format_parsed_output(parsed: ParsedOutput,
                         include_warnings: bool = True,
                         max_errors: Optional[int] = None,
                         max_warnings: Optional[int] = None,
                         max_failures: Optional[int] = None) -> str:
    """
    Summarise a ParsedOutput.

    Warnings are only listed when there are no errors. Each list is capped
    and followed by a note saying how many entries were left out.
    """
    config = get_config()
    max_errors = config.max_displayed_errors if max_errors is None else max_errors
    max_warnings = config.max_displayed_warnings if max_warnings is None else max_warnings
    max_failures = config.max_displayed_failures if max_failures is None else max_failures

    errors, warnings = parsed.errors, parsed.warnings
    if not parsed.build_succeeded:
        lines = [f"❌ Build failed with {plural(len(errors), 'error')}"]
    elif warnings and include_warnings:
        lines = [f"⚠️ Build succeeded with {plural(len(warnings), 'warning')}"]
    else:
        lines = ["✅ Build succeeded"]

    if errors:
        lines.append("\nErrors:")
        lines.extend(_capped(errors, max_errors, lambda issue: _issue_line(issue, "❌"), "errors"))

    if not errors and warnings and include_warnings:
        lines.append("\nWarnings:")
        lines.extend(_capped(warnings, max_warnings, lambda issue: _issue_line(issue, "⚠️"), "warnings"))

    if parsed.tests or parsed.summary_seen:
        lines.append("\nTest Results:")
        if parsed.tests_passed:
            lines.append(f"  ✅ All {plural(parsed.total_tests, 'test')} passed")
        else:
            lines.append(f"  ❌ {parsed.failed_tests} of {plural(parsed.total_tests, 'test')} failed")
            lines.extend(_capped(
                parsed.failing_tests, max_failures,
                lambda test: f"    ✖ {test.name}: {test.failure_reason or 'Failed'}",
                "failures",
            ))

    return "\n".join(lines)


def format_classified_error(error: ClassifiedError, max_errors: Optional[int] = None) -> str:
    """Render a ClassifiedError with its compile issues, suggestion and log path"""
    max_errors = get_config().max_displayed_errors if max_errors is None else max_errors

    lines = [f"❌ {error.title}"]
    if error.type is ErrorType.COMPILE and error.issues:
        lines.append("")
        lines.extend(_capped(error.issues, max_errors, lambda issue: _issue_line(issue, "❌"), "errors"))
    elif error.details:
        lines.append("")
        lines.append(f"📍 {error.details}")

    if error.suggestion:
        lines.append("")
        lines.append(f"💡 {error.suggestion}")
    if error.log_path:
        lines.append("")
        lines.append(f"📁 Full log saved to: {error.log_path}")
    return "\n".join(lines)


def format_test_results(result: TestRunResult,
                        max_failures: Optional[int] = None,
                        log_path: Optional[str] = None) -> str:
    """Render a reconciled test run"""
    max_failures = get_config().max_displayed_failures if max_failures is None else max_failures

    if result.total == 0:
        lines = ["⚠️ No tests were run"]
    elif result.success:
        lines = [f"✅ All {plural(result.passed, 'test')} passed"]
    else:
        lines = [f"❌ Tests failed: {result.passed} passed, {result.failed} failed"]

    if result.failing_tests:
        lines.append("\nFailing tests:")
        lines.extend(_capped(
            result.failing_tests, max_failures,
            lambda test: f"  ✖ {test.identifier}: {test.reason}",
            "failing tests",
        ))

    if log_path:
        lines.append(f"\n📁 Full log saved to: {log_path}")
    return "\n".join(lines)


def format_device(device: DeviceDescriptor) -> List[str]:
    lines = [f"• {device.name}", f"  UDID: {device.id}", f"  OS: {device.runtime}", f"  State: {device.state.value}"]
    if not device.available:
        lines.append("  Unavailable")
    return lines


def format_device_list(devices: Sequence[DeviceDescriptor], booted_only: bool = False) -> str:
    if not devices:
        return "No booted simulators found" if booted_only else "No simulators found"

    kind = "booted simulator" if booted_only else "simulator"
    lines = [f"Found {plural(len(devices), kind)}:", ""]
    for device in devices:
        lines.extend(format_device(device))
        lines.append("")
    return "\n".join(lines).rstrip()


def _device_label(diagnostics) -> str:
    if diagnostics.device_name:
        return f"{diagnostics.device_name} ({diagnostics.device_id})"
    return "simulator"


def _failure_text(action: str, result) -> str:
    lines = [f"❌ Failed to {action} {_device_label(result.diagnostics)}", "", f"📍 {result.error.message.strip()}"]
    return "\n".join(lines)


def format_boot_result(result: BootResult) -> str:
    if result.failed:
        return _failure_text("boot", result)
    label = _device_label(result.diagnostics)
    if result.outcome is BootOutcome.ALREADY_BOOTED:
        return f"✅ {label} is already booted"
    return f"✅ Booted {label}"


def format_shutdown_result(result: ShutdownResult) -> str:
    if result.failed:
        return _failure_text("shut down", result)
    label = _device_label(result.diagnostics)
    if result.outcome is ShutdownOutcome.ALREADY_SHUTDOWN:
        return f"✅ {label} is already shut down"
    return f"✅ Shut down {label}"


def format_install_result(result: InstallResult) -> str:
    diagnostics = result.diagnostics
    if result.failed:
        lines = [f"❌ Failed to install {diagnostics.app_path}"]
        if diagnostics.device_id:
            lines[0] += f" on {_device_label(diagnostics)}"
        lines.extend(["", f"📍 {result.error.message.strip()}"])
        return "\n".join(lines)

    lines = [f"✅ Installed {diagnostics.bundle_id} on {_device_label(diagnostics)}"]
    if diagnostics.runtime:
        lines.append(f"  OS: {diagnostics.runtime}")
    lines.append(f"  App: {diagnostics.app_path}")
    return "\n".join(lines)
