"""Application state for one user session.

One query cycle moves through three phases::

    IDLE ──submit──▶ LOADING ──success──▶ RESULT_SHOWN
                        │
                        └──failure──▶ IDLE  (no result, history untouched)

Only one check may be in flight; a second submit while LOADING is rejected
rather than queued or cancelling the first. Changing the platform or query
while a check runs only updates the pending selection.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from adcheck.checker import CheckError
from adcheck.models import HistoryItem, ValidationResult
from adcheck.platforms import PLATFORMS, Platform, find_by_name, get_platform
from adcheck.prompts import EmptyQueryError

if TYPE_CHECKING:
    from adcheck.checker import FeasibilityChecker
    from adcheck.history import MemoryHistory, SqliteHistory

logger = logging.getLogger(__name__)

#: Shown to the user for any failed check; details only go to the log.
CHECK_FAILED_MESSAGE = "判定に失敗しました。時間をおいて再度お試しください。"


class SessionBusyError(RuntimeError):
    """A check is already in flight for this session."""


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RESULT_SHOWN = "result_shown"


@dataclass
class AppState:
    """What the dashboard currently shows."""

    platform: Platform
    query: str = ""
    phase: Phase = Phase.IDLE
    result: Optional[ValidationResult] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "platform_id": self.platform.id,
            "query": self.query,
            "phase": self.phase.value,
            "result": self.result.model_dump(mode="json") if self.result else None,
            "error": self.error,
        }


class CheckStream:
    """Iterator over one streaming check.

    A generator's ``finally`` never runs if it is closed before its first
    ``next()``, so close() releases the session itself.
    """

    def __init__(self, session: Session, events: Generator[tuple[str, object], None, None]) -> None:
        self._session = session
        self._events = events

    def __iter__(self) -> CheckStream:
        return self

    def __next__(self) -> tuple[str, object]:
        return next(self._events)

    def close(self) -> None:
        self._events.close()
        self._session.release()


class Session:
    """Owns the AppState and drives checks through the checker and history."""

    def __init__(self, checker: FeasibilityChecker, history: MemoryHistory | SqliteHistory) -> None:
        self.checker = checker
        self.history = history
        self.state = AppState(platform=PLATFORMS[0])
        self._lock = threading.Lock()

    # ── Pending selection ──────────────────────────────────────────────────

    def select_platform(self, platform_id: str) -> Platform:
        """Change the selected platform. Raises ``KeyError`` if unknown."""
        platform = get_platform(platform_id)
        self.state.platform = platform
        return platform

    def set_query(self, text: str) -> None:
        self.state.query = text

    @property
    def can_submit(self) -> bool:
        return bool(self.state.query.strip()) and self.state.phase != Phase.LOADING

    # ── Query cycle ────────────────────────────────────────────────────────

    def _begin(self, platform_id: Optional[str] = None, query: Optional[str] = None) -> tuple[Platform, str]:
        """Validate and enter LOADING. Raises before any state change.

        *platform_id* and *query* replace the pending selection when given;
        they are applied under the same lock as the phase change so concurrent
        requests cannot swap each other's question.
        """
        with self._lock:
            platform = get_platform(platform_id) if platform_id else self.state.platform
            if query is None:
                query = self.state.query
            if not query.strip():
                raise EmptyQueryError("Query must not be empty.")
            if self.state.phase == Phase.LOADING:
                raise SessionBusyError("A check is already running.")
            self.state.platform = platform
            self.state.query = query
            self.state.phase = Phase.LOADING
            self.state.result = None
            self.state.error = None
            return platform, query

    def _settle(self, platform: Platform, query: str, result: ValidationResult) -> HistoryItem:
        item = HistoryItem(platform_name=platform.name, query=query, result=result)
        self.history.append(item)
        with self._lock:
            self.state.result = result
            self.state.phase = Phase.RESULT_SHOWN
        return item

    def _fail(self, platform: Platform) -> None:
        """Log the active exception and return to IDLE with a generic message."""
        logger.exception("Check failed for platform=%r", platform.name)
        with self._lock:
            self.state.error = CHECK_FAILED_MESSAGE
            self.state.phase = Phase.IDLE

    def release(self) -> None:
        """Leave LOADING if a check ended without settling. Safe to call twice."""
        with self._lock:
            if self.state.phase == Phase.LOADING:
                self.state.phase = Phase.IDLE

    def submit(self, platform_id: Optional[str] = None, query: Optional[str] = None) -> Optional[HistoryItem]:
        """Run a check for the pending (or given) platform + query.

        Returns:
            The new HistoryItem, or None if the check failed.

        Raises:
            KeyError: Unknown *platform_id*; nothing changes.
            EmptyQueryError: Query is blank; nothing changes.
            SessionBusyError: Another check is in flight; nothing changes.
        """
        platform, query = self._begin(platform_id, query)
        try:
            result = self.checker.check(
                platform.name, platform.search_context, query, domains=platform.domains
            )
            return self._settle(platform, query, result)
        except CheckError:
            self._fail(platform)
            return None
        finally:
            self.release()

    def submit_streaming(
        self, platform_id: Optional[str] = None, query: Optional[str] = None
    ) -> CheckStream:
        """Start a check and return a CheckStream of progress events.

        Validation happens immediately (not on first iteration), so
        KeyError / EmptyQueryError / SessionBusyError surface at call time.
        The caller must exhaust or close() the stream.

        Events:
            ``("token", str)``, ``("source", Source)``,
            ``("result", HistoryItem)`` on success,
            ``("error", str)`` with a generic message on failure.
        """
        platform, query = self._begin(platform_id, query)
        return CheckStream(self, self._stream(platform, query))

    def _stream(self, platform: Platform, query: str) -> Generator[tuple[str, object], None, None]:
        try:
            for event_type, payload in self.checker.check_streaming(
                platform.name, platform.search_context, query, domains=platform.domains
            ):
                if event_type == "result":
                    yield ("result", self._settle(platform, query, payload))
                else:
                    yield (event_type, payload)
        except CheckError:
            self._fail(platform)
            yield ("error", CHECK_FAILED_MESSAGE)
        finally:
            self.release()

    # ── History ────────────────────────────────────────────────────────────

    def restore(self, item: HistoryItem) -> None:
        """Show a past result again without calling the checker."""
        with self._lock:
            if self.state.phase == Phase.LOADING:
                raise SessionBusyError("A check is already running.")
            self.state.platform = find_by_name(item.platform_name)
            self.state.query = item.query
            self.state.result = item.result
            self.state.error = None
            self.state.phase = Phase.RESULT_SHOWN

    def restore_by_id(self, item_id: str) -> Optional[HistoryItem]:
        item = self.history.get(item_id)
        if item is not None:
            self.restore(item)
        return item
