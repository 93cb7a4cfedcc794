"""Verdict classification of raw AI answers.

The model is asked to open its reply with ``判定: OK / NG / 条件付きOK / 要確認``.
Classification is a best-effort marker match over the whole reply, not a
parse: the markdown summary stays the source of truth for the user.

Rules are checked in order and the first hit wins:

- ``NG``        → NG          (wins even when "OK" also appears)
- ``条件付き``  → CONDITIONAL (``条件付きOK`` contains "OK", so it must precede OK)
- ``OK``        → OK
- ``要確認``    → NEEDS_REVIEW
- otherwise     → ANSWERED

A marker only counts when it is not glued to other Latin letters, so
``PNG``, ``WARNING`` or ``TOKEN`` do not match while ``判定:NG`` and
``NGワード`` still do.
"""

from __future__ import annotations

import re

from adcheck.models import Verdict

#: Ordered (marker, verdict) pairs. Matching is case-sensitive.
VERDICT_RULES: tuple[tuple[str, Verdict], ...] = (
    ("NG", Verdict.NG),
    ("条件付き", Verdict.CONDITIONAL),
    ("OK", Verdict.OK),
    ("要確認", Verdict.NEEDS_REVIEW),
)

#: Label used when no marker matches.
DEFAULT_VERDICT = Verdict.ANSWERED

_RULE_PATTERNS: tuple[tuple[re.Pattern[str], Verdict], ...] = tuple(
    (re.compile(rf"(?<![A-Za-z]){re.escape(marker)}(?![A-Za-z])"), verdict)
    for marker, verdict in VERDICT_RULES
)


def classify_verdict(text: str) -> Verdict:
    """Derive a ``Verdict`` from the raw reply *text*.

    Examples:
        >>> classify_verdict("判定: NG\\n一部はOKですが…")
        <Verdict.NG: 'ng'>
        >>> classify_verdict("判定: 条件付きOK")
        <Verdict.CONDITIONAL: 'conditional'>
        >>> classify_verdict("判定: OK\\nPNG形式の画像も入稿できます")
        <Verdict.OK: 'ok'>
        >>> classify_verdict("特に記載はありません")
        <Verdict.ANSWERED: 'answered'>
    """
    for pattern, verdict in _RULE_PATTERNS:
        if pattern.search(text):
            return verdict
    return DEFAULT_VERDICT
