"""Tests for scheme listing, build settings, bundle id lookup and clean."""

from __future__ import annotations

from tests.mock_executors import MockExecutor, StubFileSystem, failure, success
from xcodebuild_mcp_server.tools.macos import build_macos_logic, get_mac_app_path_logic
from xcodebuild_mcp_server.tools.project import (
    clean_logic,
    get_app_bundle_id_logic,
    list_schemes_logic,
    parse_schemes,
    show_build_settings_logic,
)

XCODEBUILD_LIST_OUTPUT = """\
Information about project "MyApp":
    Targets:
        MyApp
        MyAppTests

    Build Configurations:
        Debug
        Release

    Schemes:
        MyApp
        MyApp Staging
"""


class TestListSchemes:
    def test_parse_schemes(self):
        assert parse_schemes(XCODEBUILD_LIST_OUTPUT) == ["MyApp", "MyApp Staging"]
        assert parse_schemes("no schemes here") is None

    def test_lists_schemes_with_next_steps(self, make_context):
        executor = MockExecutor(success(XCODEBUILD_LIST_OUTPUT))
        response = list_schemes_logic({"workspace_path": "/w.xcworkspace"}, make_context(executor))

        assert response.texts[:2] == ["✅ Available schemes:", "MyApp\nMyApp Staging"]
        assert 'build_macos({ workspace_path: "/w.xcworkspace", scheme: "MyApp" })' in response.texts[2]
        assert executor.calls[0].argv == ("xcodebuild", "-list", "-workspace", "/w.xcworkspace")

    def test_no_schemes_section(self, make_context):
        response = list_schemes_logic({"project_path": "/p.xcodeproj"},
                                      make_context(MockExecutor(success("Information about project"))))
        assert response.is_error
        assert response.text == "No schemes found in the output"

    def test_command_failure(self, make_context):
        response = list_schemes_logic({"project_path": "/p.xcodeproj"},
                                      make_context(MockExecutor(failure("does not exist"))))
        assert response.text == "Failed to list schemes: does not exist"


class TestShowBuildSettings:
    def test_success(self, make_context):
        executor = MockExecutor(success("    PRODUCT_NAME = MyApp\n"))
        response = show_build_settings_logic({"project_path": "/p.xcodeproj", "scheme": "MyApp"},
                                             make_context(executor))
        assert response.texts == ["✅ Build settings for scheme MyApp:", "    PRODUCT_NAME = MyApp\n"]
        assert executor.calls[0].argv == (
            "xcodebuild", "-showBuildSettings", "-project", "/p.xcodeproj", "-scheme", "MyApp",
        )

    def test_failure(self, make_context):
        response = show_build_settings_logic({"project_path": "/p.xcodeproj", "scheme": "MyApp"},
                                             make_context(MockExecutor(failure("bad scheme"))))
        assert response.text == "Failed to show build settings: bad scheme"


class TestGetAppBundleId:
    def test_falls_back_to_plutil(self, make_context, tmp_path):
        app = tmp_path / "MyApp.app"
        app.mkdir()
        executor = (MockExecutor()
                    .on("PlistBuddy", failure("Does Not Exist"))
                    .on("plutil", success("com.example.MyApp\n")))

        response = get_app_bundle_id_logic({"app_path": str(app)}, make_context(executor))

        assert response.texts[0] == "✅ Bundle ID: com.example.MyApp"
        assert executor.calls[1].argv == (
            "plutil", "-extract", "CFBundleIdentifier", "raw", str(app / "Info.plist"),
        )

    def test_macos_bundle_uses_contents_plist(self, make_context, tmp_path):
        contents = tmp_path / "Tool.app" / "Contents"
        contents.mkdir(parents=True)
        (contents / "Info.plist").write_text("<plist/>")
        executor = MockExecutor(success("com.example.Tool"))

        get_app_bundle_id_logic({"app_path": str(tmp_path / "Tool.app")}, make_context(executor))

        assert executor.calls[0].argv[-1] == str(contents / "Info.plist")

    def test_every_method_fails(self, make_context, tmp_path):
        app = tmp_path / "MyApp.app"
        app.mkdir()
        response = get_app_bundle_id_logic({"app_path": str(app)},
                                           make_context(MockExecutor(failure("unreadable"))))
        assert response.is_error
        assert response.texts == [
            "Error extracting app bundle ID: Could not extract bundle ID from Info.plist using any method: unreadable",
            "Make sure the path points to a valid app bundle (.app directory).",
        ]

    def test_missing_app(self, make_context):
        response = get_app_bundle_id_logic({"app_path": "/nope.app"}, make_context())
        assert response.text == "File not found: '/nope.app'. Please check the path and try again."

    def test_app_checked_through_file_system(self, make_context, tmp_path):
        file_system = StubFileSystem(tmp_path, existing={"/virtual/MyApp.app"})
        executor = MockExecutor().on("PlistBuddy", success("com.example.MyApp\n"))

        response = get_app_bundle_id_logic({"app_path": "/virtual/MyApp.app"},
                                           make_context(executor, file_system=file_system))

        assert response.texts[0] == "✅ Bundle ID: com.example.MyApp"
        assert file_system.checked == ["/virtual/MyApp.app"]


class TestClean:
    def test_clean_has_no_destination(self, make_context):
        executor = MockExecutor()
        response = clean_logic({"project_path": "/p.xcodeproj", "scheme": "MyScheme"}, make_context(executor))
        assert response.texts == ["✅ Clean succeeded for scheme MyScheme."]
        assert executor.calls[0].argv == (
            "xcodebuild", "-project", "/p.xcodeproj", "-scheme", "MyScheme", "-configuration", "Debug",
            "-skipMacroValidation", "clean",
        )

    def test_clean_failure(self, make_context):
        response = clean_logic({"project_path": "/p.xcodeproj", "scheme": "MyScheme"},
                               make_context(MockExecutor(failure("locked"))))
        assert response.is_error
        assert response.texts[-1] == "❌ Clean failed for scheme MyScheme."


class TestMacos:
    def test_build_with_arch(self, make_context):
        executor = MockExecutor()
        response = build_macos_logic({"project_path": "/p.xcodeproj", "scheme": "Mac", "arch": "arm64"},
                                     make_context(executor))
        assert response.texts[0] == "✅ macOS Build build succeeded for scheme Mac."
        assert "platform=macOS,arch=arm64" in executor.calls[0].argv

    def test_app_path(self, make_context):
        executor = MockExecutor(success(
            "    BUILT_PRODUCTS_DIR = /dd/Build/Products/Debug\n    FULL_PRODUCT_NAME = Mac.app\n"
        ))
        response = get_mac_app_path_logic({"project_path": "/p.xcodeproj", "scheme": "Mac"},
                                          make_context(executor))
        assert response.texts[0] == "✅ App path retrieved successfully: /dd/Build/Products/Debug/Mac.app"
        assert "platform=macOS" in executor.calls[0].argv
