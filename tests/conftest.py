"""Shared test fixtures for incranges."""

from __future__ import annotations

import pytest

from incranges.diagnostics import LoggingDiagnostics
from support import FakeFileSystem


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def diagnostics() -> LoggingDiagnostics:
    return LoggingDiagnostics(show_decisions=True)
