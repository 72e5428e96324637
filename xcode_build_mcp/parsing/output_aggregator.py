#!/usr/bin/env python3
"""Aggregate a whole build/test log into one ParsedOutput"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Tuple

from xcode_build_mcp.parsing.line_classifier import (
    Issue,
    IssueKind,
    Sentinel,
    SummaryLine,
    TestRecord,
    classify_line,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedOutput:
    errors: Tuple[Issue, ...] = ()
    warnings: Tuple[Issue, ...] = ()
    tests: Tuple[TestRecord, ...] = ()
    build_succeeded: bool = True
    tests_passed: bool = True
    total_tests: int = 0
    failed_tests: int = 0
    summary_seen: bool = False

    @property
    def passed_tests(self) -> int:
        return max(self.total_tests - self.failed_tests, 0)

    @property
    def failing_tests(self) -> List[TestRecord]:
        return [test for test in self.tests if not test.passed]

    def tests_by_name(self) -> Dict[str, TestRecord]:
        """
        Merge test records by name, in first-seen order.

        A later record replaces the outcome of an earlier one with the same
        name, and its duration/reason replace the earlier values only when
        they are present.
        """
        merged: Dict[str, TestRecord] = {}
        for test in self.tests:
            previous = merged.get(test.name)
            if previous is None:
                merged[test.name] = test
                continue
            merged[test.name] = replace(
                previous,
                passed=test.passed,
                duration=test.duration if test.duration is not None else previous.duration,
                failure_reason=test.failure_reason or previous.failure_reason,
            )
        return merged


def _is_banner(line: str) -> bool:
    return "xcbeautify" in line or line.startswith("---") or line.startswith("Version:")


def parse_output(output: str) -> ParsedOutput:
    """
    Parse the complete output of one build or test invocation.

    Errors and warnings are deduplicated by location and message because
    multi-architecture builds repeat every diagnostic once per architecture.
    Test records keep their order and are not deduplicated.

    Args:
        output: Combined stdout/stderr text, possibly empty

    Returns:
        ParsedOutput for the whole invocation
    """
    errors: Dict[Tuple, Issue] = {}
    warnings: Dict[Tuple, Issue] = {}
    tests: List[TestRecord] = []

    build_succeeded = True
    tests_passed = True
    marker_total = 0
    marker_failed = 0
    summary = None

    for line in (output or "").splitlines():
        if not line.strip() or _is_banner(line):
            continue

        record = classify_line(line)
        if record is None:
            continue

        if isinstance(record, Issue):
            if record.kind is IssueKind.ERROR:
                errors.setdefault(record.key, record)
                build_succeeded = False
            else:
                warnings.setdefault(record.key, record)
        elif isinstance(record, TestRecord):
            tests.append(record)
            marker_total += 1
            if not record.passed:
                marker_failed += 1
                tests_passed = False
        elif record is Sentinel.BUILD_FAILED:
            build_succeeded = False
        elif record is Sentinel.TEST_FAILED:
            tests_passed = False
        elif isinstance(record, SummaryLine):
            # Suites print nested summaries; the last one covers the whole run
            summary = record
            if record.failed > 0:
                tests_passed = False

    total_tests, failed_tests = marker_total, marker_failed
    if summary is not None:
        total_tests, failed_tests = summary.total, summary.failed

    result = ParsedOutput(
        errors=tuple(errors.values()),
        warnings=tuple(warnings.values()),
        tests=tuple(tests),
        build_succeeded=build_succeeded,
        tests_passed=tests_passed,
        total_tests=total_tests,
        failed_tests=failed_tests,
        summary_seen=summary is not None,
    )

    logger.debug(
        "Parsed output: %d error(s), %d warning(s), %d test record(s), build_succeeded=%s, tests_passed=%s",
        len(result.errors), len(result.warnings), len(result.tests),
        result.build_succeeded, result.tests_passed,
    )
    return result
