#!/usr/bin/env python3
"""File system access for scratch artifacts (log files, xcresult bundles)"""

import os
import shutil
import tempfile
from typing import List, Optional


class FileSystem:
    """
    Thin wrapper over temp-directory and file operations.

    Pass temp_root to redirect every scratch artifact (tests use a pytest tmp_path).
    """

    def __init__(self, temp_root: Optional[str] = None):
        self._temp_root = str(temp_root) if temp_root is not None else None

    def tmpdir(self) -> str:
        return self._temp_root or tempfile.gettempdir()

    def mkdtemp(self, prefix: str) -> str:
        return tempfile.mkdtemp(prefix=prefix, dir=self.tmpdir())

    def mkdir(self, path: str):
        os.makedirs(path, exist_ok=True)

    def write_text(self, path: str, content: str):
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

    def read_text(self, path: str) -> str:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()

    def read_bytes(self, path: str) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def listdir(self, path: str) -> List[str]:
        return os.listdir(path)

    def getmtime(self, path: str) -> float:
        return os.path.getmtime(path)

    def remove(self, path: str):
        os.remove(path)

    def rmtree(self, path: str):
        shutil.rmtree(path)
