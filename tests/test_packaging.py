"""Tests for pyproject.toml — declared dependencies."""

from __future__ import annotations

from pathlib import Path

import pytest

tomllib = pytest.importorskip("tomllib")

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


def _names(requirements: list[str]) -> set[str]:
    return {r.split(">")[0].split("=")[0].split("<")[0].strip().lower() for r in requirements}


def test_test_extra_declares_test_imports():
    data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))
    assert {"pytest", "httpx"} <= _names(data["project"]["optional-dependencies"]["test"])


def test_runtime_dependencies():
    data = tomllib.loads(PYPROJECT.read_text(encoding="utf-8"))
    assert {"anthropic", "flask", "pydantic", "python-dotenv"} <= _names(data["project"]["dependencies"])
