"""Tests for the MCP tool functions with the toolchain stubbed out."""

import os
from contextlib import contextmanager
from unittest.mock import AsyncMock, patch

import pytest

from conftest import IOS_17_2, TVOS_17_0, UDID_A, UDID_B, device, failed
from xcode_build_mcp import __version__
from xcode_build_mcp.exceptions import InvalidParameterError, XCodeMCPError
from xcode_build_mcp.tools import boot_simulator as boot_tool
from xcode_build_mcp.tools import build_project as build_tool
from xcode_build_mcp.tools import build_swift_package as package_build_tool
from xcode_build_mcp.tools import install_app as install_tool
from xcode_build_mcp.tools import list_simulators as list_tool
from xcode_build_mcp.tools import test_project as project_tests_tool
from xcode_build_mcp.tools import test_swift_package as package_tests_tool
from xcode_build_mcp.tools import version as version_tool
from xcode_build_mcp.utils.commands import CommandResult

XCTEST_RUN = """\
Test Case '-[AppTests.LoginTests testLogin]' started.
Test Case '-[AppTests.LoginTests testLogin]' passed (0.010 seconds).
Test Case '-[AppTests.LoginTests testLogout]' started.
/src/LoginTests.swift:42: error: -[AppTests.LoginTests testLogout] : XCTAssertTrue failed
Test Case '-[AppTests.LoginTests testLogout]' failed (0.011 seconds).
Executed 2 tests, with 1 failure (0 unexpected) in 0.021 (0.022) seconds
** TEST FAILED **
"""


@contextmanager
def stub_toolchain(module, stdout="", returncode=0, stderr=""):
    """Replace run_command (and beautify, where used) in a tool module"""
    run = AsyncMock(return_value=CommandResult(("stub",), returncode, stdout, stderr))
    with patch.object(module, "run_command", new=run):
        if hasattr(module, "beautify"):
            with patch.object(module, "beautify", new=AsyncMock(side_effect=lambda output: output)):
                yield run
        else:
            yield run


def command_args(run):
    return run.call_args.args[0]


@pytest.fixture
def xcodeproj(tmp_path):
    path = tmp_path / "App.xcodeproj"
    path.mkdir()
    return str(path)


@pytest.fixture
def swift_package(tmp_path):
    (tmp_path / "Package.swift").write_text("// swift-tools-version:5.9\n")
    return str(tmp_path)


# ---------------------------------------------------------------------------
# build_project
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestBuildProject:
    async def test_success(self, xcodeproj, isolated_config):
        with stub_toolchain(build_tool, "** BUILD SUCCEEDED **\n") as run:
            text = await build_tool.build_project(xcodeproj, "App")

        args = command_args(run)
        assert args[:2] == ["xcodebuild", "-project"]
        assert args[args.index("-destination") + 1] == "generic/platform=iOS Simulator"
        assert args[-1] == "build"
        assert run.call_args.kwargs["timeout"] == isolated_config.build_timeout
        assert text.startswith("✅ Build succeeded")
        assert "📁 Full log saved to: " in text

    async def test_workspace_and_platform(self, tmp_path):
        workspace = tmp_path / "App.xcworkspace"
        workspace.mkdir()

        with stub_toolchain(build_tool, "** BUILD SUCCEEDED **\n") as run:
            await build_tool.build_project(str(workspace), "App", platform="macos", configuration="Release")

        args = command_args(run)
        assert "-workspace" in args
        assert args[args.index("-destination") + 1] == "platform=macOS"
        assert args[args.index("-configuration") + 1] == "Release"

    async def test_failure_is_classified(self, xcodeproj):
        output = 'error: No provisioning profile matching "com.example.app" was found\n** BUILD FAILED **\n'

        with stub_toolchain(build_tool, output, returncode=65):
            text = await build_tool.build_project(xcodeproj, "App")

        assert text.startswith("❌ Provisioning profile issue")
        assert "💡 " in text
        assert "📁 Full log saved to: " in text

    async def test_compile_errors_are_listed(self, xcodeproj):
        output = "/src/App.swift:4:7: error: cannot find 'foo' in scope\n** BUILD FAILED **\n"

        with stub_toolchain(build_tool, output, returncode=65):
            text = await build_tool.build_project(xcodeproj, "App")

        assert text.startswith("❌ Build failed with 1 error")
        assert "/src/App.swift:4:7 - error: cannot find 'foo' in scope" in text

    async def test_log_is_saved(self, xcodeproj, isolated_config):
        with stub_toolchain(build_tool, "** BUILD SUCCEEDED **\n"):
            await build_tool.build_project(xcodeproj, "App")

        assert os.path.lexists(os.path.join(isolated_config.expanded_log_dir, "latest-build.log"))

    @pytest.mark.parametrize("project_path, scheme, platform", [
        ("", "App", "iOS"),
        ("/tmp/App.txt", "App", "iOS"),
        ("/does/not/exist/App.xcodeproj", "App", "iOS"),
    ])
    async def test_invalid_paths(self, project_path, scheme, platform):
        with pytest.raises(InvalidParameterError):
            await build_tool.build_project(project_path, scheme, platform)

    async def test_invalid_scheme_and_platform(self, xcodeproj):
        with pytest.raises(InvalidParameterError):
            await build_tool.build_project(xcodeproj, "  ")
        with pytest.raises(InvalidParameterError):
            await build_tool.build_project(xcodeproj, "App", platform="Android")

    async def test_include_warnings_must_be_boolean(self, xcodeproj):
        with pytest.raises(InvalidParameterError):
            await build_tool.build_project(xcodeproj, "App", include_warnings="yes")


# ---------------------------------------------------------------------------
# test_project
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestProjectTests:
    async def test_runs_on_booted_simulator(self, xcodeproj, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [
            device(UDID_A, "iPhone 15", "Booted"),
            device(UDID_B, "iPhone 14"),
        ]}

        with stub_toolchain(project_tests_tool, XCTEST_RUN, returncode=65) as run:
            text = await project_tests_tool.test_project(xcodeproj, "App")

        args = command_args(run)
        assert args[args.index("-destination") + 1] == f"platform=iOS Simulator,id={UDID_A}"
        assert args[-1] == "test"
        assert text.startswith("❌ Tests failed: 1 passed, 1 failed")
        assert "AppTests.LoginTests.testLogout: XCTAssertTrue failed" in text

    async def test_formatted_output_does_not_double_count(self, xcodeproj, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15", "Booted")]}
        beautified = (
            "    ✔ testLogin (0.010 seconds)\n"
            "    ✖ testLogout, XCTAssertTrue failed\n"
            "Executed 2 tests, with 1 failure (0 unexpected) in 0.021 (0.022) seconds\n"
        )

        with stub_toolchain(project_tests_tool, XCTEST_RUN, returncode=65), \
                patch.object(project_tests_tool, "beautify", new=AsyncMock(return_value=beautified)):
            text = await project_tests_tool.test_project(xcodeproj, "App")

        assert text.startswith("❌ Tests failed: 1 passed, 1 failed")
        assert text.count("✖ ") == 1

    async def test_only_testing_arguments(self, xcodeproj, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15")]}

        with stub_toolchain(project_tests_tool, XCTEST_RUN) as run:
            await project_tests_tool.test_project(
                xcodeproj, "App", simulator="iPhone 15", tests_to_run="AppTests/LoginTests, AppTests/Other")

        args = command_args(run)
        assert "-only-testing:AppTests/LoginTests" in args
        assert "-only-testing:AppTests/Other" in args

    async def test_build_failure_before_tests_is_classified(self, xcodeproj, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15")]}
        output = "xcodebuild: error: The project does not contain a scheme named \"Nope\".\n"

        with stub_toolchain(project_tests_tool, output, returncode=65):
            text = await project_tests_tool.test_project(xcodeproj, "Nope")

        assert text.startswith('❌ Scheme not found: "Nope"')

    async def test_simulator_of_another_platform(self, xcodeproj, fake_simctl):
        fake_simctl.devices_by_runtime = {TVOS_17_0: [device(UDID_A, "Apple TV")]}

        with pytest.raises(InvalidParameterError):
            await project_tests_tool.test_project(xcodeproj, "App", simulator="Apple TV")

    async def test_no_simulator_available(self, xcodeproj, fake_simctl):
        with pytest.raises(InvalidParameterError):
            await project_tests_tool.test_project(xcodeproj, "App")

    async def test_macos_needs_no_simulator(self, xcodeproj, fake_simctl):
        with stub_toolchain(project_tests_tool, XCTEST_RUN, returncode=65) as run:
            await project_tests_tool.test_project(xcodeproj, "App", platform="macOS")

        assert "platform=macOS" in command_args(run)
        assert fake_simctl.calls == []


@pytest.mark.parametrize("value, expected", [
    (None, None),
    ("", None),
    ("[]", None),
    ("A/B, A/C", ["A/B", "A/C"]),
    (["A/B", " ", "A/C"], ["A/B", "A/C"]),
    ([], None),
])
def test_normalize_test_list(value, expected):
    assert project_tests_tool.normalize_test_list(value) == expected


# ---------------------------------------------------------------------------
# build_swift_package
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSwiftPackageBuild:
    async def test_success(self, swift_package, isolated_config):
        with stub_toolchain(package_build_tool, "Build complete! (1.20s)\n") as run:
            text = await package_build_tool.build_swift_package(swift_package, configuration="Release")

        args = command_args(run)
        assert args[:2] == ["swift", "build"]
        assert args[args.index("--package-path") + 1] == os.path.realpath(swift_package)
        assert args[args.index("-c") + 1] == "release"
        assert text.startswith("✅ Build succeeded")
        assert os.path.lexists(os.path.join(isolated_config.expanded_log_dir, "latest-build.log"))

    async def test_target_and_product(self, swift_package):
        with stub_toolchain(package_build_tool, "Build complete!\n") as run:
            await package_build_tool.build_swift_package(swift_package, target="Core", product="Tool")

        args = command_args(run)
        assert args[args.index("--target") + 1] == "Core"
        assert args[args.index("--product") + 1] == "Tool"

    @pytest.mark.parametrize("stderr, title", [
        ("error: Dependencies could not be resolved because root depends on 'foo' 1.0.0..<2.0.0.",
         "Dependencies could not be resolved"),
        ("error: Invalid manifest", "Invalid package manifest"),
        ("error: no target named 'Missing'", "Target not found"),
        ("error: no product named 'Missing'", "Product not found"),
    ])
    async def test_package_manager_failures_are_classified(self, swift_package, stderr, title):
        with stub_toolchain(package_build_tool, "", returncode=1, stderr=stderr):
            text = await package_build_tool.build_swift_package(swift_package)

        assert text.startswith(f"❌ {title}")
        assert "📁 Full log saved to: " in text

    async def test_compile_error(self, swift_package):
        output = "/pkg/Sources/Core/Core.swift:3:5: error: cannot find 'bar' in scope\n"

        with stub_toolchain(package_build_tool, output, returncode=1):
            text = await package_build_tool.build_swift_package(swift_package)

        assert text.startswith("❌ Build failed with 1 error")

    async def test_invalid_arguments(self, swift_package, tmp_path):
        with pytest.raises(InvalidParameterError):
            await package_build_tool.build_swift_package(swift_package, configuration="profile")
        with pytest.raises(InvalidParameterError):
            await package_build_tool.build_swift_package(str(tmp_path / "missing"))


# ---------------------------------------------------------------------------
# test_swift_package
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSwiftPackageTests:
    async def test_swift_testing_summary(self, swift_package):
        output = "✔ Test run with 4 tests passed after 0.01 seconds.\n"

        with stub_toolchain(package_tests_tool, output) as run:
            text = await package_tests_tool.test_swift_package(swift_package, configuration="Release")

        args = command_args(run)
        assert args[:2] == ["swift", "test"]
        assert args[args.index("-c") + 1] == "release"
        assert "--xunit-output" in args
        assert run.call_args.kwargs["cwd"] == os.path.realpath(swift_package)
        assert text.startswith("✅ All 4 tests passed")

    async def test_accepts_package_swift_path(self, swift_package):
        with stub_toolchain(package_tests_tool, "✔ Test run with 1 test passed after 0.01 seconds.\n") as run:
            await package_tests_tool.test_swift_package(os.path.join(swift_package, "Package.swift"), "Suite")

        args = command_args(run)
        assert args[args.index("--package-path") + 1] == os.path.realpath(swift_package)
        assert args[args.index("--filter") + 1] == "Suite"

    async def test_build_failure_is_classified(self, swift_package):
        with stub_toolchain(package_tests_tool, "", returncode=1, stderr="error: no such module 'Foo'"):
            text = await package_tests_tool.test_swift_package(swift_package)

        assert text.startswith("❌ Missing dependency")

    async def test_invalid_arguments(self, swift_package, tmp_path):
        with pytest.raises(InvalidParameterError):
            await package_tests_tool.test_swift_package(swift_package, configuration="profile")
        with pytest.raises(InvalidParameterError):
            await package_tests_tool.test_swift_package(str(tmp_path / "missing"))


# ---------------------------------------------------------------------------
# Simulator tools
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSimulatorTools:
    async def test_list(self, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15", "Booted")]}

        text = await list_tool.list_simulators("ios", booted_only=True)

        assert text.startswith("Found 1 booted simulator:")
        assert "• iPhone 15" in text

    async def test_list_rejects_macos(self, fake_simctl):
        with pytest.raises(InvalidParameterError):
            await list_tool.list_simulators("macOS")

    async def test_list_failure(self, fake_simctl):
        fake_simctl.list_result = failed("CoreSimulatorService is not running")

        with pytest.raises(XCodeMCPError, match="CoreSimulatorService"):
            await list_tool.list_simulators()

    async def test_boot(self, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15")]}

        assert await boot_tool.boot_simulator("iPhone 15") == f"✅ Booted iPhone 15 ({UDID_A})"

    async def test_boot_failure_is_reported(self, fake_simctl):
        text = await boot_tool.boot_simulator("iPhone 99")

        assert text.startswith("❌ Failed to boot simulator")
        assert "Simulator not found: iPhone 99" in text

    async def test_shutdown(self, fake_simctl):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15")]}

        assert await boot_tool.shutdown_simulator(UDID_A) == f"✅ iPhone 15 ({UDID_A}) is already shut down"

    async def test_empty_simulator_name(self, fake_simctl):
        with pytest.raises(InvalidParameterError):
            await boot_tool.boot_simulator(" ")

    async def test_install(self, fake_simctl, app_bundle, isolated_config):
        fake_simctl.devices_by_runtime = {IOS_17_2: [device(UDID_A, "iPhone 15", "Booted")]}

        text = await install_tool.install_app(app_bundle, " ")

        assert text.startswith(f"✅ Installed com.example.Demo on iPhone 15 ({UDID_A})")
        assert os.path.lexists(os.path.join(isolated_config.expanded_log_dir, "latest-install.log"))


def test_version():
    assert version_tool.version() == f"Xcode Build MCP Server version {__version__}"
