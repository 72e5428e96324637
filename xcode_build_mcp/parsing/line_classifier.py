#!/usr/bin/env python3
"""Classify single lines of (xcbeautify formatted) toolchain output"""

import enum
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

ERROR_MARKER = "❌"
WARNING_MARKER = "⚠️"
PASS_MARKER = "✔"
FAIL_MARKER = "✖"
VARIATION_SELECTOR = "\ufe0f"

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")

# /path/to/file.swift:10:15: message
LOCATION_PATTERN = re.compile(r"^([^:]+):(\d+):(\d+):\s*(.*)$")

# ✔ testName (0.123 seconds)
PASS_PATTERN = re.compile(r"✔\s+(\w+)\s*\(([0-9.]+)\s+seconds?\)")
# ✖ testName, failure reason
FAIL_PATTERN = re.compile(r"✖\s+(\w+)(?:,\s*(.*))?")
# Test Case '-[ClassName testName]' passed (0.001 seconds).
CLASSIC_PATTERN = re.compile(
    r"Test Case\s+'-\[([\w.]+)\s+(\w+)\]'\s+(passed|failed)\s*\(([0-9.]+)\s+seconds\)"
)
# Executed 12 tests, with 2 failures (0 unexpected) in 0.5 (0.6) seconds
SUMMARY_PATTERN = re.compile(r"Executed\s+(\d+)\s+tests?,\s+with\s+(\d+)\s+failures?")


class IssueKind(enum.Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str
    raw_text: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def key(self) -> Tuple:
        """Identity used for deduplication; location-less issues reduce to the message"""
        return (self.file, self.line, self.column, self.message)

    @property
    def has_location(self) -> bool:
        return self.file is not None

    def __str__(self) -> str:
        if self.has_location:
            return f"{self.file}:{self.line}:{self.column}: {self.message}"
        return self.message


@dataclass(frozen=True)
class TestRecord:
    __test__ = False  # not a pytest class

    name: str
    passed: bool
    duration: Optional[float] = None
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class SummaryLine:
    total: int
    failed: int


class Sentinel(enum.Enum):
    BUILD_FAILED = "BUILD FAILED"
    TEST_FAILED = "TEST FAILED"


ClassifiedLine = Union[Issue, TestRecord, SummaryLine, Sentinel]


def strip_styling(text: str) -> str:
    """Remove ANSI color codes"""
    return ANSI_ESCAPE.sub("", text)


def parse_issue(line: str, kind: IssueKind) -> Issue:
    """
    Build an Issue from an error or warning marker line.

    The marker and styling are removed, then a single anchored
    file:line:column: message pattern is tried. Without a match the whole
    remainder becomes the message.
    """
    # The warning emoji is matched without its variation selector, which may be missing
    marker = ERROR_MARKER if kind is IssueKind.ERROR else WARNING_MARKER[0]
    remainder = line
    index = remainder.find(marker)
    if index != -1:
        remainder = remainder[index + len(marker):]
    remainder = remainder.replace(VARIATION_SELECTOR, "")
    remainder = strip_styling(remainder).strip()

    match = LOCATION_PATTERN.match(remainder)
    if match:
        file_path, line_no, column, message = match.groups()
        return Issue(kind, message, line, file_path, int(line_no), int(column))
    return Issue(kind, remainder, line)


def parse_test_line(line: str) -> Optional[TestRecord]:
    """Try the pass, fail and classic XCTest formats in that order"""
    clean = strip_styling(line)

    match = PASS_PATTERN.search(clean)
    if match:
        return TestRecord(match.group(1), True, duration=float(match.group(2)))

    match = FAIL_PATTERN.search(clean)
    if match:
        return TestRecord(match.group(1), False, failure_reason=match.group(2) or "Test failed")

    match = CLASSIC_PATTERN.search(clean)
    if match:
        class_name, method, status, duration = match.groups()
        passed = status == "passed"
        return TestRecord(
            f"{class_name}.{method}",
            passed,
            duration=float(duration),
            failure_reason=None if passed else "Test failed",
        )

    return None


def classify_line(line: str) -> Optional[ClassifiedLine]:
    """
    Classify one line of output.

    Args:
        line: A single line, without its trailing newline

    Returns:
        An Issue, TestRecord, SummaryLine or Sentinel, or None for lines that
        carry nothing we recognise.
    """
    if ERROR_MARKER in line:
        return parse_issue(line, IssueKind.ERROR)
    if WARNING_MARKER[0] in line:
        return parse_issue(line, IssueKind.WARNING)
    if PASS_MARKER in line or FAIL_MARKER in line or "Test Case" in line:
        record = parse_test_line(line)
        if record is not None:
            return record
    if "BUILD FAILED" in line:
        return Sentinel.BUILD_FAILED
    if "TEST FAILED" in line:
        return Sentinel.TEST_FAILED
    if "Executed" in line:
        match = SUMMARY_PATTERN.search(line)
        if match:
            return SummaryLine(int(match.group(1)), int(match.group(2)))
    return None
