"""Pytest configuration shared by unit and integration tests."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_stitch_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop STITCH_* variables so tests start from documented defaults."""
    for variable_name in list(os.environ):
        if variable_name.startswith("STITCH_"):
            monkeypatch.delenv(variable_name, raising=False)
