#!/usr/bin/env python3
"""Reconcile xunit XML test reports with console output into one test result"""

import enum
import html
import logging
import os
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from xcode_build_mcp.config_manager import get_config
from xcode_build_mcp.parsing.output_aggregator import ParsedOutput, parse_output

logger = logging.getLogger(__name__)

SWIFT_TESTING_SUFFIX = "-swift-testing"

# Swift Testing marks failures with a heavy ballot X
SWIFT_TESTING_FAIL_SYMBOLS = "✘"
CONTINUATION_MARKER = "↳"

RUN_PASSED_PATTERN = re.compile(r"✔\s+Test run with (\d+) tests? passed")
RUN_MIXED_PATTERN = re.compile(r"✘\s+Test run with \d+ tests? \((\d+) passed, (\d+) failed\)")
RUN_FAILED_PATTERN = re.compile(r"✘\s+Test run with (\d+) tests? failed")

XCTEST_FAILED_CASE = re.compile(r"Test Case '-\[(\S+)\s+(\w+)\]' failed")
SWIFT_TESTING_FAILED_CASE = re.compile(
    rf"[{SWIFT_TESTING_FAIL_SYMBOLS}]\s+Test (\w+)\(\) (?:failed|recorded an issue)"
)
# Any line that opens the output of another test
TEST_MARKER = re.compile(r"^(?:[✔✘✖◇]\s+Test\b|Test Case ')")

GENERIC_FAILURE_MESSAGES = {"", "failed", "test failed"}


class ResultSource(enum.Enum):
    XML = "xml"
    CONSOLE = "console"
    NONE = "none"


@dataclass(frozen=True)
class FailingTest:
    identifier: str
    reason: str


@dataclass(frozen=True)
class TestRunResult:
    __test__ = False  # not a pytest class

    passed: int
    failed: int
    failing_tests: Tuple[FailingTest, ...] = ()
    source: ResultSource = ResultSource.NONE

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def total(self) -> int:
        return self.passed + self.failed


@dataclass(frozen=True)
class _ReportFailure:
    class_name: str
    name: str
    message: str

    @property
    def identifier(self) -> str:
        return f"{self.class_name}.{self.name}" if self.class_name else self.name


@dataclass(frozen=True)
class _Report:
    path: str
    tests: int
    failures: int
    failed_cases: Tuple[_ReportFailure, ...]


def report_paths_for(xunit_path: str) -> Tuple[str, str]:
    """
    Return the XCTest report path and its Swift Testing sibling.

    `swift test --xunit-output tests.xml` writes Swift Testing results to
    `tests-swift-testing.xml` next to the requested file.
    """
    root, ext = os.path.splitext(xunit_path)
    return xunit_path, f"{root}{SWIFT_TESTING_SUFFIX}{ext or '.xml'}"


def _int_attribute(element: ET.Element, name: str) -> int:
    try:
        return max(int(element.get(name, "0")), 0)
    except ValueError:
        return 0


def _clean_message(message: str) -> str:
    """Decode entity-escaped text and collapse it onto one line"""
    text = html.unescape(message)
    return " ".join(part.strip() for part in text.splitlines() if part.strip())


def _is_rich(message: Optional[str]) -> bool:
    return bool(message) and message.strip().lower() not in GENERIC_FAILURE_MESSAGES


def parse_report(path: str) -> Optional[_Report]:
    """
    Parse one JUnit-style report.

    Returns None when the file is missing or is not a readable report.
    """
    if not path or not os.path.isfile(path):
        return None

    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        logger.warning("Could not parse test report %s: %s", path, e)
        return None

    if root.tag == "testsuite":
        suites = [root]
    elif root.tag == "testsuites":
        suites = root.findall("testsuite")
    else:
        logger.warning("Unexpected root element <%s> in %s", root.tag, path)
        return None

    tests = 0
    failures = 0
    failed_cases: List[_ReportFailure] = []
    for suite in suites:
        tests += _int_attribute(suite, "tests")
        failures += _int_attribute(suite, "failures")
        for testcase in suite.iter("testcase"):
            failure = testcase.find("failure")
            if failure is None:
                continue
            message = failure.get("message") or ""
            if not _is_rich(message) and failure.text and failure.text.strip():
                message = failure.text
            failed_cases.append(_ReportFailure(
                class_name=testcase.get("classname", ""),
                name=testcase.get("name", ""),
                message=message,
            ))

    return _Report(path, tests, failures, tuple(failed_cases))


def _bare_test_name(name: str) -> str:
    return name[:-2] if name.endswith("()") else name


def _xctest_reason(lines: Sequence[str], class_name: str, method: str) -> Optional[str]:
    short_class = class_name.rsplit(".", 1)[-1]
    pattern = re.compile(
        rf":\s*error:\s*-\[(?:[\w.]*\.)?{re.escape(short_class)} {re.escape(method)}\]\s*:\s*(.+)$"
    )
    for line in lines:
        match = pattern.search(line)
        if match:
            return match.group(1).strip()
    return None


def _swift_testing_reason(lines: Sequence[str], method: str, window: int) -> Optional[str]:
    pattern = re.compile(
        rf"[{SWIFT_TESTING_FAIL_SYMBOLS}]\s+Test {re.escape(method)}\(\) recorded an issue"
        r"(?: at \S+?:\d+:\d+)?:\s*(.+)$"
    )
    for index, line in enumerate(lines):
        match = pattern.search(line)
        if not match:
            continue

        parts = [match.group(1).strip()]
        for following in lines[index + 1:index + 1 + window]:
            stripped = following.strip()
            if stripped.startswith(CONTINUATION_MARKER):
                parts.append(stripped[len(CONTINUATION_MARKER):].strip())
            elif TEST_MARKER.match(stripped):
                break
        return " ".join(part for part in parts if part)
    return None


def find_failure_reason(console_output: str,
                        class_name: str,
                        test_name: str,
                        continuation_window: Optional[int] = None) -> Optional[str]:
    """
    Look up why a test failed by re-scanning the console output.

    Both the bracketed XCTest format
    (`file:line: error: -[Class method] : message`) and the Swift Testing
    format (`✘ Test name() recorded an issue at file:line:col: message`) are
    recognised. Swift Testing continuation lines starting with `↳` are
    appended to the reason; the scan stops at the next test marker or after
    `continuation_window` lines.

    Args:
        console_output: Raw console output of the test run
        class_name: Test class or suite, may be empty
        test_name: Test method or function name, with or without "()"
        continuation_window: Lines scanned for continuations, defaults to the config value

    Returns:
        The failure reason, or None when the console does not mention the test
    """
    if not console_output:
        return None
    window = continuation_window if continuation_window is not None else get_config().continuation_window
    method = _bare_test_name(test_name)
    lines = console_output.splitlines()

    if class_name:
        reason = _xctest_reason(lines, class_name, method)
        if reason:
            return reason
    return _swift_testing_reason(lines, method, window)


def _reason_for(failure: _ReportFailure, console_output: str, window: int) -> str:
    if _is_rich(failure.message):
        return _clean_message(failure.message)
    return find_failure_reason(console_output, failure.class_name, failure.name, window) or "Test failed"


def _from_reports(reports: Sequence[_Report], console_output: str, window: int) -> TestRunResult:
    passed = 0
    failed = 0
    failing: Dict[str, FailingTest] = {}
    for report in reports:
        passed += max(report.tests - report.failures, 0)
        failed += report.failures
        for failure in report.failed_cases:
            if failure.identifier not in failing:
                failing[failure.identifier] = FailingTest(
                    failure.identifier, _reason_for(failure, console_output, window)
                )
    return TestRunResult(passed, failed, tuple(failing.values()), ResultSource.XML)


def _swift_testing_counts(console_output: str) -> Optional[Tuple[int, int]]:
    """Passed/failed counts from the last Swift Testing run summary, if any"""
    counts = None
    for line in console_output.splitlines():
        match = RUN_MIXED_PATTERN.search(line)
        if match:
            counts = (int(match.group(1)), int(match.group(2)))
            continue
        match = RUN_FAILED_PATTERN.search(line)
        if match:
            counts = (0, int(match.group(1)))
            continue
        match = RUN_PASSED_PATTERN.search(line)
        if match:
            counts = (int(match.group(1)), 0)
    return counts


def _console_failing_tests(console_output: str, parsed: ParsedOutput, window: int) -> List[FailingTest]:
    failing: Dict[str, FailingTest] = {}

    for match in XCTEST_FAILED_CASE.finditer(console_output):
        class_name, method = match.groups()
        identifier = f"{class_name}.{method}"
        if identifier not in failing:
            reason = find_failure_reason(console_output, class_name, method, window)
            failing[identifier] = FailingTest(identifier, reason or "Test failed")

    for match in SWIFT_TESTING_FAILED_CASE.finditer(console_output):
        name = match.group(1)
        if name not in failing:
            reason = find_failure_reason(console_output, "", name, window)
            failing[name] = FailingTest(name, reason or "Test failed")

    # Formatter markers (✖ name, reason) carry their own reason. A marker
    # naming a method already listed by its full identifier is the same test.
    methods = {_bare_test_name(identifier.rsplit(".", 1)[-1]) for identifier in failing}
    for record in parsed.failing_tests:
        if record.name not in failing and _bare_test_name(record.name) not in methods:
            failing[record.name] = FailingTest(record.name, record.failure_reason or "Test failed")

    return list(failing.values())


def _from_console(console_output: str, parsed: ParsedOutput, window: int) -> TestRunResult:
    passed = 0
    failed = 0
    found = False
    # Run summaries are authoritative; named failures never raise their counts
    summarised = parsed.summary_seen

    if parsed.summary_seen or parsed.total_tests:
        passed += parsed.passed_tests
        failed += parsed.failed_tests
        found = True

    # XCTest and Swift Testing both report when a package mixes the two
    swift_counts = _swift_testing_counts(console_output)
    if swift_counts is not None:
        passed += swift_counts[0]
        failed += swift_counts[1]
        found = True
        summarised = True

    failing = _console_failing_tests(console_output, parsed, window)
    if failing and not summarised and failed < len(failing):
        failed = len(failing)
        found = True

    if not found:
        return TestRunResult(0, 0, (), ResultSource.NONE)
    return TestRunResult(passed, failed, tuple(failing), ResultSource.CONSOLE)


def _remove_reports(paths: Sequence[str]) -> None:
    for path in paths:
        if not path:
            continue
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Could not remove test report %s: %s", path, e)


def reconcile_test_results(console_output: str,
                           report_paths: Sequence[str] = (),
                           parsed: Optional[ParsedOutput] = None,
                           continuation_window: Optional[int] = None,
                           remove_reports: bool = True) -> TestRunResult:
    """
    Merge XML reports and console output into one authoritative test result.

    Each report is parsed independently and contributes only when it declares
    at least one test. Without a usable report the counts and failing tests
    come from the console. When neither source mentions a test the result is
    a zero-count success.

    Args:
        console_output: Raw console output of the test run
        report_paths: Zero or more xunit report paths; missing files are fine
        parsed: Aggregated console output, parsed here when not given
        continuation_window: Lines scanned for Swift Testing continuations
        remove_reports: Delete the report files once read

    Returns:
        TestRunResult
    """
    console_output = console_output or ""
    window = continuation_window if continuation_window is not None else get_config().continuation_window

    try:
        reports = []
        for path in report_paths:
            report = parse_report(path)
            if report is None:
                continue
            if report.tests == 0:
                logger.debug("Ignoring test report %s that declares no tests", path)
                continue
            reports.append(report)

        if reports:
            result = _from_reports(reports, console_output, window)
        else:
            result = _from_console(console_output, parsed or parse_output(console_output), window)
    finally:
        if remove_reports:
            _remove_reports(report_paths)

    logger.debug("Test results from %s: %d passed, %d failed",
                 result.source.value, result.passed, result.failed)
    return result
