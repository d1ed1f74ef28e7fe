"""Pytest configuration for the minijs test suite."""

import sys
from pathlib import Path

import pytest

# Add backend directory to path for module imports
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import minijs  # noqa: E402


@pytest.fixture
def compile_ir():
    """Compile source text and return the IR text."""
    return minijs.compile_to_ir


@pytest.fixture
def body_lines():
    """Compile source text and return only the stripped lines of @main's body."""

    def _body(code):
        lines = minijs.compile_to_ir(code).splitlines()
        start = lines.index("entry:") + 1
        # drop the trailing 'ret i32 0' and '}'
        return [line.strip() for line in lines[start:-2]]

    return _body
