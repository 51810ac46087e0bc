"""Shared pytest fixtures."""

from __future__ import annotations

import os
import stat

import pytest

from tests.mock_executors import MockExecutor
from xcodebuild_mcp_server.config import Settings
from xcodebuild_mcp_server.context import ToolContext
from xcodebuild_mcp_server.utils.file_system import FileSystem


@pytest.fixture
def fs(tmp_path):
    """FileSystem whose scratch directory is the test's tmp_path."""
    return FileSystem(tmp_path)


@pytest.fixture
def executor():
    return MockExecutor()


@pytest.fixture
def make_context(fs):
    """Factory for isolated ToolContexts; every scratch file lands in tmp_path."""

    def _make(executor=None, file_system=None, **settings) -> ToolContext:
        return ToolContext(
            executor=executor if executor is not None else MockExecutor(),
            file_system=file_system or fs,
            settings=Settings(**settings),
        )

    return _make


@pytest.fixture
def axe_binary(tmp_path):
    """An executable placeholder so axe resolution succeeds."""
    path = tmp_path / "bin" / "axe"
    path.parent.mkdir()
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return os.fspath(path)
