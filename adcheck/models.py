"""
Pydantic models shared across the AdCheck core.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field


class Verdict(str, Enum):
    """Coarse compliance classification of an AI answer."""

    OK = "ok"
    NG = "ng"
    CONDITIONAL = "conditional"
    NEEDS_REVIEW = "needs_review"
    ANSWERED = "answered"     # an answer arrived but no marker matched

    @property
    def label(self) -> str:
        return VERDICT_LABELS[self]


#: Badge text shown in the UI for each verdict.
VERDICT_LABELS: dict[Verdict, str] = {
    Verdict.OK: "✅ OK",
    Verdict.NG: "⛔ NG",
    Verdict.CONDITIONAL: "⚠️ 条件付きOK",
    Verdict.NEEDS_REVIEW: "🔍 要確認",
    Verdict.ANSWERED: "💬 回答あり",
}

_WWW_PREFIX = re.compile(r"^www\.")


class Source(BaseModel):
    """A web page cited by the AI answer."""

    model_config = ConfigDict(frozen=True)

    uri: str
    title: Optional[str] = None

    @property
    def hostname(self) -> str:
        """Bare hostname of ``uri`` without a ``www.`` prefix."""
        netloc = urlparse(self.uri).netloc
        return _WWW_PREFIX.sub("", netloc) or self.uri

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Page"


class ValidationResult(BaseModel):
    """Verdict, markdown explanation and citations for one question."""

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    summary: str
    sources: tuple[Source, ...] = ()


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryItem(BaseModel):
    """One completed (platform, query, result) cycle."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    platform_name: str
    query: str
    result: ValidationResult
    created_at: datetime = Field(default_factory=_utcnow)
