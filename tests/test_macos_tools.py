"""Tests for building, launching and stopping macOS apps and reading their bundle ids."""

from __future__ import annotations

from tests.mock_executors import MockExecutor, StubFileSystem, failure, success
from xcodebuild_mcp_server.tools.macos import build_run_mac_logic, launch_mac_app_logic, stop_mac_app_logic
from xcodebuild_mcp_server.tools.project import get_mac_bundle_id_logic

MAC_SETTINGS_OUTPUT = """\
Build settings for action build and target Mac:
    BUILT_PRODUCTS_DIR = /dd/Build/Products/Debug
    FULL_PRODUCT_NAME = Mac.app
"""

PROJECT = {"project_path": "/p.xcodeproj", "scheme": "Mac"}


class TestBuildRunMac:
    def test_builds_then_opens_app(self, make_context):
        executor = (MockExecutor()
                    .on("-showBuildSettings", success(MAC_SETTINGS_OUTPUT))
                    .on("xcodebuild", success("ld: warning: duplicate library\n")))

        response = build_run_mac_logic(dict(PROJECT), make_context(executor))

        assert not response.is_error
        assert response.texts == [
            "⚠️ Warning: ld: warning: duplicate library",
            "✅ macOS build and run succeeded for scheme Mac. App launched: /dd/Build/Products/Debug/Mac.app",
        ]
        assert executor.calls[1].label == "Get Build Settings for Launch"
        assert executor.calls[2].argv == ("open", "/dd/Build/Products/Debug/Mac.app")

    def test_build_failure_is_returned_unchanged(self, make_context):
        executor = MockExecutor().on("xcodebuild", failure("", output="main.swift:3: error: bad\n"))

        response = build_run_mac_logic(dict(PROJECT), make_context(executor))

        assert response.is_error
        assert response.texts[-1] == "❌ macOS Build build failed for scheme Mac."
        assert len(executor.calls) == 1

    def test_missing_app_path_is_not_an_error(self, make_context):
        executor = (MockExecutor()
                    .on("-showBuildSettings", success("    PRODUCT_NAME = Mac\n"))
                    .on("xcodebuild", success()))

        response = build_run_mac_logic(dict(PROJECT), make_context(executor))

        assert not response.is_error
        assert response.texts == [
            "✅ Build succeeded, but failed to get app path to launch: "
            "Could not extract app path from build settings",
        ]
        assert executor.calls_matching("open ") == []

    def test_settings_failure_reason(self, make_context):
        executor = (MockExecutor()
                    .on("-showBuildSettings", failure("scheme not found"))
                    .on("xcodebuild", success()))
        response = build_run_mac_logic(dict(PROJECT), make_context(executor))
        assert response.texts[-1] == "✅ Build succeeded, but failed to get app path to launch: scheme not found"

    def test_launch_failure_is_not_an_error(self, make_context):
        executor = (MockExecutor()
                    .on("-showBuildSettings", success(MAC_SETTINGS_OUTPUT))
                    .on("xcodebuild", success())
                    .on("open ", failure("LSOpenURLsWithRole() failed")))

        response = build_run_mac_logic(dict(PROJECT), make_context(executor))

        assert not response.is_error
        assert response.texts[-1] == (
            "✅ Build succeeded, but failed to launch app /dd/Build/Products/Debug/Mac.app. "
            "Error: LSOpenURLsWithRole() failed"
        )

    def test_requires_scheme(self, make_context):
        response = build_run_mac_logic({"project_path": "/p.xcodeproj"}, make_context())
        assert response.is_error
        assert "scheme" in response.text


class TestLaunchMacApp:
    def test_passes_args(self, make_context, tmp_path):
        file_system = StubFileSystem(tmp_path, existing={"/Apps/Mac.app"})
        executor = MockExecutor()

        response = launch_mac_app_logic({"app_path": "/Apps/Mac.app", "args": ["--verbose", "-x"]},
                                        make_context(executor, file_system=file_system))

        assert response.texts == ["✅ macOS app launched successfully: /Apps/Mac.app"]
        assert executor.calls[0].argv == ("open", "/Apps/Mac.app", "--args", "--verbose", "-x")

    def test_missing_app(self, make_context, tmp_path):
        executor = MockExecutor()
        response = launch_mac_app_logic({"app_path": "/Apps/Gone.app"},
                                        make_context(executor, file_system=StubFileSystem(tmp_path)))
        assert response.is_error
        assert response.text == "File not found: '/Apps/Gone.app'. Please check the path and try again."
        assert executor.calls == []

    def test_open_failure(self, make_context, tmp_path):
        file_system = StubFileSystem(tmp_path, existing={"/Apps/Mac.app"})
        response = launch_mac_app_logic({"app_path": "/Apps/Mac.app"},
                                        make_context(MockExecutor(failure("damaged")), file_system=file_system))
        assert response.is_error
        assert response.text == "❌ Launch macOS app operation failed: damaged"


class TestStopMacApp:
    def test_by_process_id(self, make_context):
        executor = MockExecutor()
        response = stop_mac_app_logic({"process_id": 321}, make_context(executor))
        assert response.texts == ["✅ macOS app stopped successfully: PID 321"]
        assert executor.calls[0].argv == ("kill", "321")

    def test_by_name_falls_back_to_quit(self, make_context):
        executor = MockExecutor()
        response = stop_mac_app_logic({"app_name": "Calculator"}, make_context(executor))
        assert response.texts == ["✅ macOS app stopped successfully: Calculator"]
        assert executor.calls[0].argv == (
            "sh", "-c", "pkill -f \"Calculator\" || osascript -e 'tell application \"Calculator\" to quit'",
        )

    def test_process_id_wins(self, make_context):
        executor = MockExecutor()
        stop_mac_app_logic({"app_name": "Calculator", "process_id": 321}, make_context(executor))
        assert executor.calls[0].argv == ("kill", "321")

    def test_needs_name_or_pid(self, make_context):
        executor = MockExecutor()
        response = stop_mac_app_logic({"app_name": "", "process_id": None}, make_context(executor))
        assert response.is_error
        assert response.text == "Either app_name or process_id must be provided."
        assert executor.calls == []

    def test_kill_failure(self, make_context):
        executor = MockExecutor(failure("Operation not permitted"))
        response = stop_mac_app_logic({"process_id": 1}, make_context(executor))
        assert response.is_error
        assert response.text == "❌ Stop macOS app operation failed: Operation not permitted"


class TestGetMacBundleId:
    def test_reads_contents_plist(self, make_context, tmp_path):
        contents = tmp_path / "Mac.app" / "Contents"
        contents.mkdir(parents=True)
        (contents / "Info.plist").write_text("<plist/>")
        app = str(tmp_path / "Mac.app")
        executor = MockExecutor(success("com.example.Mac\n"))

        response = get_mac_bundle_id_logic({"app_path": app}, make_context(executor))

        assert response.texts[0] == "✅ Bundle ID: com.example.Mac"
        assert response.texts[1] == (
            "Next Steps:\n"
            f'- Launch the app: launch_mac_app({{ app_path: "{app}" }})\n'
            '- Build from workspace: build_macos({ workspace_path: "PATH_TO_WORKSPACE", scheme: "SCHEME_NAME" })\n'
            '- Build from project: build_macos({ project_path: "PATH_TO_PROJECT", scheme: "SCHEME_NAME" })'
        )
        assert executor.calls[0].argv[-1] == str(contents / "Info.plist")

    def test_unreadable_plist(self, make_context, tmp_path):
        app = tmp_path / "Mac.app"
        app.mkdir()
        response = get_mac_bundle_id_logic({"app_path": str(app)},
                                           make_context(MockExecutor(failure("unreadable"))))
        assert response.is_error
        assert response.texts == [
            "Error extracting macOS app bundle ID: "
            "Could not extract bundle ID from Info.plist using any method: unreadable",
            "Make sure the path points to a valid macOS app bundle (.app directory).",
        ]

    def test_missing_app(self, make_context, tmp_path):
        response = get_mac_bundle_id_logic({"app_path": "/nope.app"},
                                           make_context(file_system=StubFileSystem(tmp_path)))
        assert response.text == "File not found: '/nope.app'. Please check the path and try again."
