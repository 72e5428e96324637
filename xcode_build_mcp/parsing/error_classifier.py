#!/usr/bin/env python3
"""Turn the output of a failed build/test into exactly one ClassifiedError"""

import enum
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Sequence, Tuple

from xcode_build_mcp.parsing.line_classifier import Issue, IssueKind
from xcode_build_mcp.parsing.output_aggregator import ParsedOutput

logger = logging.getLogger(__name__)


class ErrorType(enum.Enum):
    COMPILE = "compile"
    SCHEME = "scheme"
    SIGNING = "signing"
    PROVISIONING = "provisioning"
    DEPENDENCY = "dependency"
    SDK = "sdk"
    DESTINATION = "destination"
    CONFIGURATION = "configuration"
    GENERIC = "generic"


@dataclass(frozen=True)
class ClassifiedError:
    type: ErrorType
    title: str
    details: str
    suggestion: Optional[str] = None
    issues: Tuple[Issue, ...] = ()
    log_path: Optional[str] = None


@dataclass(frozen=True)
class FailureContext:
    """Everything the chain may look at for one failed operation"""
    output: str
    parsed: Optional[ParsedOutput] = None
    platform: Optional[str] = None
    scheme: Optional[str] = None
    configuration: Optional[str] = None
    project_path: Optional[str] = None
    prestructured: Tuple[ClassifiedError, ...] = field(default_factory=tuple)


# Raw compiler diagnostics, as printed without a formatter
COMPILER_LINE = re.compile(r"^(.+?):(\d+):(\d+):\s*(error|warning|note):\s*(.+)$", re.MULTILINE)


def _search(pattern: str, text: str, flags: int = 0) -> Optional[re.Match]:
    return re.search(pattern, text, flags)


def _group(pattern: str, text: str, flags: int = 0) -> Optional[str]:
    match = re.search(pattern, text, flags)
    return match.group(1) if match else None


# --- compiler diagnostics ----------------------------------------------------

def _compile_issues(ctx: FailureContext) -> List[Issue]:
    if ctx.parsed is not None:
        located = [issue for issue in ctx.parsed.errors if issue.has_location]
        if located:
            return located

    seen = set()
    issues = []
    for match in COMPILER_LINE.finditer(ctx.output):
        file_path, line, column, severity, message = match.groups()
        if severity != "error":
            continue
        issue = Issue(IssueKind.ERROR, f"error: {message.strip()}", match.group(0),
                      file_path, int(line), int(column))
        if issue.key not in seen:
            seen.add(issue.key)
            issues.append(issue)
    return issues


def _is_compile_failure(ctx: FailureContext) -> bool:
    return bool(_compile_issues(ctx))


def _build_compile_error(ctx: FailureContext) -> ClassifiedError:
    issues = _compile_issues(ctx)
    files = {issue.file for issue in issues if issue.file}
    count = len(issues)
    title = f"Build failed with {count} error{'s' if count != 1 else ''}"
    details = f"{count} compile error{'s' if count != 1 else ''}"
    if files:
        details += f" in {len(files)} file{'s' if len(files) != 1 else ''}"
    return ClassifiedError(ErrorType.COMPILE, title, details, issues=tuple(issues))


def _has_unlocated_errors(ctx: FailureContext) -> bool:
    return ctx.parsed is not None and bool(ctx.parsed.errors)


def _build_unlocated_errors(ctx: FailureContext) -> ClassifiedError:
    # Linker and tool errors carry no source location
    issues = ctx.parsed.errors
    count = len(issues)
    return ClassifiedError(
        ErrorType.COMPILE,
        f"Build failed with {count} error{'s' if count != 1 else ''}",
        issues[0].message,
        issues=tuple(issues),
    )


# --- prestructured -----------------------------------------------------------

def _has_prestructured(ctx: FailureContext) -> bool:
    return bool(ctx.prestructured)


def _build_prestructured(ctx: FailureContext) -> ClassifiedError:
    return ctx.prestructured[0]


# --- signatures --------------------------------------------------------------

def _scheme_not_found(ctx: FailureContext) -> bool:
    # Must be on the same line as the xcodebuild error prefix
    return _search(r"xcodebuild:\s*error:.*scheme", ctx.output, re.IGNORECASE) is not None


def _build_scheme(ctx: FailureContext) -> ClassifiedError:
    name = _group(r"xcodebuild:\s*error:.*scheme(?:\s+named)?\s+\"([^\"]+)\"", ctx.output, re.IGNORECASE)
    name = name or ctx.scheme
    return ClassifiedError(
        ErrorType.SCHEME,
        f'Scheme not found: "{name}"' if name else "Scheme not found",
        "The specified scheme does not exist in the project",
        "Check available schemes with `xcodebuild -list` and pass one of them as scheme",
    )


def _signing_failed(ctx: FailureContext) -> bool:
    return _search(r"code\s*sign(ing)?\s*error|no signing certificate", ctx.output, re.IGNORECASE) is not None


def _build_signing(ctx: FailureContext) -> ClassifiedError:
    identity = _group(r"signing identity\s+\"([^\"]+)\"", ctx.output, re.IGNORECASE)
    return ClassifiedError(
        ErrorType.SIGNING,
        "Code signing failed",
        f'Missing signing identity: "{identity}"' if identity else "No valid signing certificate found",
        "Check your Keychain for valid certificates or use automatic signing",
    )


def _provisioning_failed(ctx: FailureContext) -> bool:
    return _search(
        r"provisioning profile.*not found|no provisioning profile|requires a provisioning profile",
        ctx.output, re.IGNORECASE,
    ) is not None


def _build_provisioning(ctx: FailureContext) -> ClassifiedError:
    profile = _group(r"provisioning profile\s+\"([^\"]+)\"", ctx.output, re.IGNORECASE)
    capability = _group(r"doesn't support the (.+?) capability", ctx.output, re.IGNORECASE)
    if profile:
        details = f'Profile "{profile}" not found or invalid'
    elif capability:
        details = f"Profile doesn't support {capability} capability"
    else:
        details = "No valid provisioning profile found"
    return ClassifiedError(
        ErrorType.PROVISIONING,
        "Provisioning profile issue",
        details,
        "Check your Apple Developer account or use automatic provisioning",
    )


def _missing_module(ctx: FailureContext) -> bool:
    return _search(r"no such module|cannot find.*in scope|unresolved identifier", ctx.output, re.IGNORECASE) is not None


def _build_missing_module(ctx: FailureContext) -> ClassifiedError:
    module = _group(r"no such module\s+'([^']+)'", ctx.output, re.IGNORECASE)
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Missing dependency",
        f"Module '{module}' not found" if module else "Required dependency is missing",
        'Run "swift package resolve" or check your Package.swift/Podfile',
    )


def _unknown_package(ctx: FailureContext) -> bool:
    return "unknown package" in ctx.output and "in dependencies" in ctx.output


def _build_unknown_package(ctx: FailureContext) -> ClassifiedError:
    package = _group(r"unknown package '([^']+)'", ctx.output) or "unknown"
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Unknown package in dependencies",
        f"Package '{package}' is not defined in Package.swift",
        "Ensure the package is listed in the Package dependencies array",
    )


def _clone_failed(ctx: FailureContext) -> bool:
    return "Failed to clone repository" in ctx.output


def _build_clone_failed(ctx: FailureContext) -> ClassifiedError:
    url = _group(r"Failed to clone repository (https?://[^\s:]+)", ctx.output) or "unknown repository"
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Failed to clone repository",
        f"Could not fetch dependency from {url.strip()}",
        "Verify the repository URL exists and is accessible",
    )


def _repository_not_found(ctx: FailureContext) -> bool:
    return "fatal: repository" in ctx.output and "not found" in ctx.output


def _build_repository_not_found(ctx: FailureContext) -> ClassifiedError:
    url = _group(r"repository '([^']+)' not found", ctx.output) or "unknown repository"
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Repository not found",
        f"Repository {url} does not exist",
        "Check the package URL in Package.swift dependencies",
    )


SDK_NOT_INSTALLED = "is not installed. To use with Xcode, first download and install the platform"
DESTINATION_NOT_FOUND = "Unable to find a destination matching"
SDK_NAME = r"(\w+\s+[\d.]+)\s+is not installed"


def _destination_block(output: str) -> str:
    """Text following 'Unable to find a destination matching', which lists ineligible destinations"""
    index = output.find(DESTINATION_NOT_FOUND)
    return output[index:] if index != -1 else ""


def _sdk_not_installed(ctx: FailureContext) -> bool:
    if SDK_NOT_INSTALLED in ctx.output:
        return True
    return "is not installed" in _destination_block(ctx.output)


def _build_sdk(ctx: FailureContext) -> ClassifiedError:
    source = ctx.output if SDK_NOT_INSTALLED in ctx.output else _destination_block(ctx.output)
    sdk = _group(SDK_NAME, source) or "Required SDK"
    platform = (sdk.split()[0] if sdk != "Required SDK" else None) or ctx.platform or "iOS"
    return ClassifiedError(
        ErrorType.SDK,
        "SDK not installed",
        f"{sdk} SDK is not installed",
        f"Install via: xcodebuild -downloadPlatform {platform} or Xcode > Settings > Platforms",
    )


def _destination_not_found(ctx: FailureContext) -> bool:
    return DESTINATION_NOT_FOUND in ctx.output


def _build_destination(ctx: FailureContext) -> ClassifiedError:
    return ClassifiedError(
        ErrorType.DESTINATION,
        "No valid destination found",
        "Unable to find a valid destination for building",
        'Check available simulators with "xcrun simctl list devices" or use a different platform',
    )


def _configuration_not_found(ctx: FailureContext) -> bool:
    return _search(r"configuration.*not found|invalid configuration", ctx.output, re.IGNORECASE) is not None


def _build_configuration(ctx: FailureContext) -> ClassifiedError:
    name = _group(r"configuration\s+\"([^\"]+)\"", ctx.output, re.IGNORECASE) or ctx.configuration
    return ClassifiedError(
        ErrorType.CONFIGURATION,
        "Configuration error",
        f'Configuration "{name}" not found' if name else "Invalid build configuration",
        "Use Debug or Release, or check project for custom configurations",
    )


def _platform_unsupported(ctx: FailureContext) -> bool:
    return _search(r"platform.*not supported|invalid destination|no destinations", ctx.output, re.IGNORECASE) is not None


def _build_platform(ctx: FailureContext) -> ClassifiedError:
    platform = _group(r"platform\s+'([^']+)'", ctx.output, re.IGNORECASE)
    return ClassifiedError(
        ErrorType.CONFIGURATION,
        "Platform/Destination error",
        f"Platform '{platform}' not supported by scheme" if platform else "Invalid or unsupported destination",
        "Check scheme settings or use a different platform",
    )


def _project_not_found(ctx: FailureContext) -> bool:
    if "[AXLoading]" in ctx.output:
        return False
    return _search(
        r"workspace.*does not exist|\.xcodeproj.*does not exist|\.xcworkspace.*does not exist"
        r"|could not find.*\.(xcodeproj|xcworkspace)",
        ctx.output, re.IGNORECASE,
    ) is not None


def _build_project_not_found(ctx: FailureContext) -> ClassifiedError:
    return ClassifiedError(
        ErrorType.CONFIGURATION,
        "Project not found",
        "The specified project or workspace file does not exist",
        "Check the file path and ensure the project exists",
    )


def _dependencies_unresolved(ctx: FailureContext) -> bool:
    return "Dependencies could not be resolved" in ctx.output


def _build_dependencies_unresolved(ctx: FailureContext) -> ClassifiedError:
    reason = _group(r"Dependencies could not be resolved because (.+)", ctx.output)
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Dependencies could not be resolved",
        reason.strip() if reason else "Swift Package Manager could not resolve the package graph",
        "Check the version requirements in Package.swift, then run `swift package resolve`",
    )


def _manifest_invalid(ctx: FailureContext) -> bool:
    return _search(r"Invalid manifest|manifest parse error|Package\.swift:\d+:\d+:\s*error", ctx.output) is not None


def _build_manifest_invalid(ctx: FailureContext) -> ClassifiedError:
    detail = _group(r"Package\.swift:\d+:\d+:\s*error:\s*(.+)", ctx.output)
    return ClassifiedError(
        ErrorType.DEPENDENCY,
        "Invalid package manifest",
        detail.strip() if detail else "Package.swift could not be parsed",
        "Fix the errors in Package.swift, then run `swift package describe` to verify",
    )


def _no_such_target(ctx: FailureContext) -> bool:
    return _search(r"no (?:such )?target named|error: no such target", ctx.output, re.IGNORECASE) is not None


def _build_no_such_target(ctx: FailureContext) -> ClassifiedError:
    name = _group(r"target(?: named)? '([^']+)'", ctx.output, re.IGNORECASE)
    return ClassifiedError(
        ErrorType.CONFIGURATION,
        "Target not found",
        f"Target '{name}' does not exist in the package" if name else "The requested target does not exist in the package",
        "List the package targets with `swift package describe`",
    )


def _no_such_product(ctx: FailureContext) -> bool:
    return _search(r"no (?:such )?product named|error: no such product", ctx.output, re.IGNORECASE) is not None


def _build_no_such_product(ctx: FailureContext) -> ClassifiedError:
    name = _group(r"product(?: named)? '([^']+)'", ctx.output, re.IGNORECASE)
    return ClassifiedError(
        ErrorType.CONFIGURATION,
        "Product not found",
        f"Product '{name}' does not exist in the package" if name else "The requested product does not exist in the package",
        "List the package products with `swift package describe`",
    )


def _xcodebuild_error(ctx: FailureContext) -> bool:
    return _search(r"xcodebuild: error:\s*\S", ctx.output) is not None


def _build_xcodebuild_error(ctx: FailureContext) -> ClassifiedError:
    detail = _group(r"xcodebuild: error:\s*(.+)", ctx.output)
    return ClassifiedError(ErrorType.GENERIC, "Build failed", detail.strip())


BUILD_COMMANDS_FAILED = "The following build commands failed:"


def _build_commands_failed(ctx: FailureContext) -> bool:
    return BUILD_COMMANDS_FAILED in ctx.output


def _build_commands_error(ctx: FailureContext) -> ClassifiedError:
    after = ctx.output.split(BUILD_COMMANDS_FAILED, 1)[1]
    commands = [line.strip() for line in after.splitlines() if line.strip()][:3]
    return ClassifiedError(
        ErrorType.GENERIC,
        "Build commands failed",
        "\n".join(commands) if commands else "xcodebuild reported failed build commands",
    )


# --- fallback ----------------------------------------------------------------

def _build_fallback(ctx: FailureContext) -> ClassifiedError:
    output = ctx.output or ""
    if "does not exist" in output and "project" in output:
        path = (_group(r"[\"']([^\"']+\.xcodeproj|[^\"']+\.xcworkspace)[\"']", output)
                or _group(r":\s*(/\S+\.(?:xcodeproj|xcworkspace))", output)
                or ctx.project_path
                or "unknown")
        return ClassifiedError(ErrorType.GENERIC, "Project not found", f"No project found at: {path}")

    if "scheme" in output and "not found" in output:
        return ClassifiedError(
            ErrorType.GENERIC, "Scheme not found",
            f"Scheme '{ctx.scheme or 'unknown'}' not found in project",
        )

    first_line = next((line.strip() for line in output.splitlines() if line.strip()), "")
    return ClassifiedError(ErrorType.GENERIC, "Build failed", first_line or "Unknown error")


Rule = Tuple[Callable[[FailureContext], bool], Callable[[FailureContext], ClassifiedError]]

# First match wins. SDK must stay ahead of destination: a missing SDK is
# reported inside the "Unable to find a destination" block.
RULES: Sequence[Rule] = (
    (_is_compile_failure, _build_compile_error),
    (_has_prestructured, _build_prestructured),
    (_scheme_not_found, _build_scheme),
    (_signing_failed, _build_signing),
    (_provisioning_failed, _build_provisioning),
    (_missing_module, _build_missing_module),
    (_unknown_package, _build_unknown_package),
    (_clone_failed, _build_clone_failed),
    (_repository_not_found, _build_repository_not_found),
    (_sdk_not_installed, _build_sdk),
    (_destination_not_found, _build_destination),
    (_configuration_not_found, _build_configuration),
    (_platform_unsupported, _build_platform),
    (_project_not_found, _build_project_not_found),
    (_dependencies_unresolved, _build_dependencies_unresolved),
    (_manifest_invalid, _build_manifest_invalid),
    (_no_such_target, _build_no_such_target),
    (_no_such_product, _build_no_such_product),
    (_has_unlocated_errors, _build_unlocated_errors),
    (_xcodebuild_error, _build_xcodebuild_error),
    (_build_commands_failed, _build_commands_error),
)


def classify_error(output: str,
                   parsed: Optional[ParsedOutput] = None,
                   platform: Optional[str] = None,
                   scheme: Optional[str] = None,
                   configuration: Optional[str] = None,
                   project_path: Optional[str] = None,
                   prestructured: Sequence[ClassifiedError] = (),
                   log_path: Optional[str] = None) -> ClassifiedError:
    """
    Classify the output of a failed operation.

    Args:
        output: Raw output (stdout and stderr) of the failed command
        parsed: Aggregated output, when the caller already has it
        platform: Target platform of the operation
        scheme: Scheme the operation used
        configuration: Build configuration the operation used
        project_path: Project, workspace or package path
        prestructured: Errors already classified by an inner layer
        log_path: Saved log file, attached to the result

    Returns:
        Exactly one ClassifiedError
    """
    ctx = FailureContext(
        output=output or "",
        parsed=parsed,
        platform=platform,
        scheme=scheme,
        configuration=configuration,
        project_path=project_path,
        prestructured=tuple(prestructured),
    )

    for matches, build in RULES:
        if matches(ctx):
            error = build(ctx)
            break
    else:
        error = _build_fallback(ctx)

    logger.debug("Classified failure as %s: %s", error.type.value, error.title)
    if log_path and error.log_path is None:
        error = replace(error, log_path=log_path)
    return error
