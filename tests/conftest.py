"""Shared test fixtures."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from adcheck.checker import FeasibilityChecker
from adcheck.models import Source, ValidationResult, Verdict


@pytest.fixture
def sample_result() -> ValidationResult:
    return ValidationResult(
        verdict=Verdict.CONDITIONAL,
        summary="判定: 条件付きOK\n\n## 概要\n事前審査が必要です。",
        sources=(
            Source(uri="https://support.google.com/adspolicy/answer/6008942", title="Alcohol"),
            Source(uri="https://www.example.com/page"),
        ),
    )


@pytest.fixture
def fake_checker(sample_result) -> MagicMock:
    """A FeasibilityChecker stand-in that answers instantly."""
    checker = MagicMock(spec=FeasibilityChecker)
    checker.check.return_value = sample_result
    checker.check_streaming.side_effect = lambda *a, **k: iter([
        ("token", "判定: 条件付きOK"),
        ("source", sample_result.sources[0]),
        ("result", sample_result),
    ])
    return checker
