"""Pytest configuration for Lando GUI tests.

Ensures the project root is in sys.path so imports work correctly.
"""

import stat
import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture
def make_script(tmp_path):
    """Write an executable ``sh`` script and return its path.

    Used as a stand-in for the lando binary.
    """

    def _make(body: str, name: str = "lando") -> str:
        path = tmp_path / "bin" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make
