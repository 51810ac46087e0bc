"""Tests for xcodebuild command construction and build/test normalization."""

from __future__ import annotations

import os

import pytest

from tests.mock_executors import (
    BUILD_SETTINGS_OUTPUT,
    XCRESULT_SUMMARY_JSON,
    MockExecutor,
    arg_after,
    failure,
    success,
)
from xcodebuild_mcp_server.exceptions import InvalidParameterError
from xcodebuild_mcp_server.utils.build_settings import APP_PATH_EXTRACTION_FAILED
from xcodebuild_mcp_server.utils.xcodebuild import (
    BuildParams,
    PlatformOptions,
    XcodePlatform,
    build_xcodebuild_command,
    construct_destination,
    execute_xcodebuild,
    execute_xcodebuild_tests,
    get_app_path,
    grep_warnings_and_errors,
)

PROJECT = BuildParams(scheme="MyScheme", project_path="/p.xcodeproj")


class TestDestination:
    def test_simulator_by_id(self):
        options = PlatformOptions(XcodePlatform.IOS_SIMULATOR, "Build", simulator_id="ABC")
        assert construct_destination(options) == "platform=iOS Simulator,id=ABC"

    def test_simulator_by_name_latest_os(self):
        options = PlatformOptions(XcodePlatform.IOS_SIMULATOR, "Build", simulator_name="iPhone 16",
                                  use_latest_os=True)
        assert construct_destination(options) == "platform=iOS Simulator,name=iPhone 16,OS=latest"

    def test_simulator_without_target(self):
        with pytest.raises(InvalidParameterError):
            construct_destination(PlatformOptions(XcodePlatform.IOS_SIMULATOR, "Build"))

    def test_macos_arch(self):
        assert construct_destination(PlatformOptions(XcodePlatform.MACOS, "Build", arch="arm64")) == (
            "platform=macOS,arch=arm64"
        )

    def test_device(self):
        assert construct_destination(PlatformOptions(XcodePlatform.IOS, "Build")) == "generic/platform=iOS"
        assert construct_destination(PlatformOptions(XcodePlatform.IOS, "Build", device_id="D1")) == (
            "platform=iOS,id=D1"
        )


class TestCommand:
    def test_workspace_derived_data_and_extra_args(self):
        params = BuildParams(scheme="App", workspace_path="/w.xcworkspace", configuration="Release",
                             derived_data_path="/dd", extra_args=("-quiet",))
        argv = build_xcodebuild_command(params, PlatformOptions(XcodePlatform.MACOS, "macOS Build"), "build")
        assert argv == [
            "xcodebuild", "-workspace", "/w.xcworkspace", "-scheme", "App", "-configuration", "Release",
            "-skipMacroValidation", "-destination", "platform=macOS", "-derivedDataPath", "/dd", "-quiet", "build",
        ]

    def test_no_platform_omits_destination(self):
        argv = build_xcodebuild_command(PROJECT, PlatformOptions(None, "Clean"), "clean")
        assert "-destination" not in argv
        assert argv[-1] == "clean"

    def test_grep_warnings_and_errors(self):
        output = "Compiling\nfoo.swift:1: warning: unused\nbar.swift:2: error: missing\nDone"
        assert grep_warnings_and_errors(output) == [
            "⚠️ Warning: foo.swift:1: warning: unused",
            "❌ Error: bar.swift:2: error: missing",
        ]


class TestExecuteXcodebuild:
    def test_device_build_success(self, make_context):
        executor = MockExecutor()
        context = make_context(executor)

        response = execute_xcodebuild(PROJECT, PlatformOptions(XcodePlatform.IOS, "iOS Device Build"),
                                      "build", context)

        assert not response.is_error
        assert response.texts[0] == "✅ iOS Device Build build succeeded for scheme MyScheme."
        assert executor.calls[0].argv == (
            "xcodebuild", "-project", "/p.xcodeproj", "-scheme", "MyScheme", "-configuration", "Debug",
            "-skipMacroValidation", "-destination", "generic/platform=iOS", "build",
        )
        assert executor.calls[0].use_shell
        assert response.texts[1].startswith("Next Steps:\n1. Get App Path: get_device_app_path(")

    def test_build_failure_surfaces_stderr(self, make_context):
        context = make_context(MockExecutor(failure("xcodebuild: error: Scheme MyScheme not found")))

        response = execute_xcodebuild(PROJECT, PlatformOptions(XcodePlatform.IOS, "iOS Device Build"),
                                      "build", context)

        assert response.is_error
        assert response.texts == [
            "❌ [stderr] xcodebuild: error: Scheme MyScheme not found",
            "❌ iOS Device Build build failed for scheme MyScheme.",
        ]

    def test_invalid_destination_returns_message(self, make_context):
        executor = MockExecutor()
        response = execute_xcodebuild(PROJECT, PlatformOptions(XcodePlatform.IOS_SIMULATOR, "Build"),
                                      "build", make_context(executor))
        assert response.is_error
        assert response.text == "For iOS Simulator platform, either simulator_id or simulator_name must be provided"
        assert executor.calls == []

    def test_status_label_override(self, make_context):
        response = execute_xcodebuild(PROJECT, PlatformOptions(None, "Clean"), "clean", make_context(),
                                      status_label="Clean")
        assert response.texts == ["✅ Clean succeeded for scheme MyScheme."]


class TestGetAppPath:
    def test_success(self, make_context):
        executor = MockExecutor(success(BUILD_SETTINGS_OUTPUT))
        response = get_app_path(PROJECT, "generic/platform=iOS", make_context(executor), lambda p: f"use {p}")
        assert response.texts == [
            "✅ App path retrieved successfully: /DerivedData/Build/Products/Debug-iphonesimulator/MyApp.app",
            "use /DerivedData/Build/Products/Debug-iphonesimulator/MyApp.app",
        ]
        assert executor.calls[0].label == "Get App Path"
        assert "-showBuildSettings" in executor.calls[0].argv

    def test_extraction_failure_message(self, make_context):
        executor = MockExecutor(success("    PRODUCT_NAME = MyApp\n"))
        response = get_app_path(PROJECT, None, make_context(executor), lambda p: "")
        assert response.is_error
        assert response.text == APP_PATH_EXTRACTION_FAILED

    def test_command_failure(self, make_context):
        response = get_app_path(PROJECT, None, make_context(MockExecutor(failure("no scheme"))), lambda p: "")
        assert response.text == "Failed to get app path: no scheme"

    def test_empty_output(self, make_context):
        response = get_app_path(PROJECT, None, make_context(MockExecutor(success(""))), lambda p: "")
        assert response.text == "Failed to extract build settings output from the result."


def _create_result_bundle(result):
    def respond(spec):
        os.makedirs(arg_after(spec, "-resultBundlePath"))
        return result
    return respond


def _scratch_dirs(tmp_path):
    return [name for name in os.listdir(tmp_path) if name.startswith("xcodebuild-test-")]


class TestExecuteXcodebuildTests:
    OPTIONS = PlatformOptions(XcodePlatform.IOS_SIMULATOR, "Test Run", simulator_name="iPhone 16")

    def test_appends_summary_and_cleans_up(self, make_context, tmp_path):
        executor = (MockExecutor()
                    .on("xcresulttool", success(XCRESULT_SUMMARY_JSON))
                    .on("xcodebuild", _create_result_bundle(success())))

        response = execute_xcodebuild_tests(PROJECT, self.OPTIONS, make_context(executor))

        assert not response.is_error
        assert response.texts[0] == "✅ Test Run test succeeded for scheme MyScheme."
        assert response.texts[-1].startswith("\nTest Results Summary:\nTest Summary: MyApp Tests\n")
        test_spec = executor.calls_matching("xcodebuild -project")[0]
        assert test_spec.argv[-1] == "test"
        assert arg_after(test_spec, "-resultBundlePath").endswith("TestResults.xcresult")
        assert _scratch_dirs(tmp_path) == []

    def test_failed_tests_keep_error_flag(self, make_context, tmp_path):
        executor = (MockExecutor()
                    .on("xcresulttool", success(XCRESULT_SUMMARY_JSON))
                    .on("xcodebuild", _create_result_bundle(failure("Testing failed"))))

        response = execute_xcodebuild_tests(PROJECT, self.OPTIONS, make_context(executor))

        assert response.is_error
        assert "❌ Test Run test failed for scheme MyScheme." in response.texts
        assert response.texts[-1].startswith("\nTest Results Summary:\n")
        assert _scratch_dirs(tmp_path) == []

    def test_missing_bundle_returns_plain_result(self, make_context, tmp_path):
        executor = MockExecutor().on("xcodebuild", failure("build failed"))

        response = execute_xcodebuild_tests(PROJECT, self.OPTIONS, make_context(executor))

        assert response.is_error
        assert not any("Test Results Summary" in text for text in response.texts)
        assert executor.calls_matching("xcresulttool") == []
        assert _scratch_dirs(tmp_path) == []

    def test_unparseable_summary_returns_plain_result(self, make_context, tmp_path):
        executor = (MockExecutor()
                    .on("xcresulttool", success("not json"))
                    .on("xcodebuild", _create_result_bundle(success())))

        response = execute_xcodebuild_tests(PROJECT, self.OPTIONS, make_context(executor))

        assert not response.is_error
        assert response.texts == ["✅ Test Run test succeeded for scheme MyScheme."]
        assert _scratch_dirs(tmp_path) == []
