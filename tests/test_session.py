"""Tests for adcheck/session.py — query cycle state machine."""

from __future__ import annotations

import pytest

from adcheck.checker import CheckError
from adcheck.history import MemoryHistory
from adcheck.models import HistoryItem, ValidationResult, Verdict
from adcheck.platforms import PLATFORMS, get_platform
from adcheck.prompts import EmptyQueryError
from adcheck.session import CHECK_FAILED_MESSAGE, Phase, Session, SessionBusyError


@pytest.fixture
def history() -> MemoryHistory:
    return MemoryHistory()


@pytest.fixture
def session(fake_checker, history) -> Session:
    return Session(fake_checker, history)


class TestSelection:
    def test_defaults_to_first_platform(self, session):
        assert session.state.platform == PLATFORMS[0]
        assert session.state.phase == Phase.IDLE

    def test_select_platform(self, session):
        session.select_platform("meta")
        assert session.state.platform.name == "Meta (Facebook/Instagram)"

    def test_select_unknown_platform_raises(self, session):
        with pytest.raises(KeyError):
            session.select_platform("bing")
        assert session.state.platform == PLATFORMS[0]

    def test_can_submit(self, session):
        assert not session.can_submit
        session.set_query("  ")
        assert not session.can_submit
        session.set_query("質問")
        assert session.can_submit
        session.state.phase = Phase.LOADING
        assert not session.can_submit


class TestSubmit:
    def test_empty_query_never_calls_checker(self, session, fake_checker, history):
        session.set_query("   ")
        with pytest.raises(EmptyQueryError):
            session.submit()

        fake_checker.check.assert_not_called()
        assert len(history) == 0
        assert session.state.phase == Phase.IDLE

    def test_success_records_history(self, session, fake_checker, history, sample_result):
        session.select_platform("yahoo")
        session.set_query("画像内テキストの制限は？")

        item = session.submit()

        fake_checker.check.assert_called_once_with(
            "Yahoo! Ads",
            get_platform("yahoo").search_context,
            "画像内テキストの制限は？",
            domains=get_platform("yahoo").domains,
        )
        assert isinstance(item, HistoryItem)
        assert item.platform_name == "Yahoo! Ads"
        assert item.result == sample_result
        assert history.items() == [item]
        assert session.state.phase == Phase.RESULT_SHOWN
        assert session.state.result == sample_result

    def test_loading_while_checker_runs(self, session, fake_checker, sample_result):
        seen = []

        def slow_check(*args, **kwargs):
            seen.append((session.state.phase, session.state.result, session.can_submit))
            return sample_result

        fake_checker.check.side_effect = slow_check
        session.state.result = sample_result
        session.set_query("q")
        session.submit()

        assert seen == [(Phase.LOADING, None, False)]

    def test_busy_rejects_second_submit(self, session, fake_checker, history):
        session.set_query("q")
        session.state.phase = Phase.LOADING

        with pytest.raises(SessionBusyError):
            session.submit()
        fake_checker.check.assert_not_called()
        assert len(history) == 0

    def test_failure_returns_to_idle(self, session, fake_checker, history):
        fake_checker.check.side_effect = CheckError("boom")
        session.set_query("q")

        assert session.submit() is None
        assert len(history) == 0
        assert session.state.phase == Phase.IDLE
        assert session.state.result is None
        assert session.state.error == CHECK_FAILED_MESSAGE
        assert session.can_submit

    def test_unexpected_error_propagates_but_releases(self, session, fake_checker):
        fake_checker.check.side_effect = KeyError("bug")
        session.set_query("q")

        with pytest.raises(KeyError):
            session.submit()
        assert session.state.phase == Phase.IDLE

    def test_error_cleared_on_next_submit(self, session, fake_checker):
        fake_checker.check.side_effect = CheckError("boom")
        session.set_query("q")
        session.submit()

        fake_checker.check.side_effect = None
        session.submit()
        assert session.state.error is None
        assert session.state.phase == Phase.RESULT_SHOWN


class TestSubmitStreaming:
    def test_validation_is_eager(self, session, fake_checker):
        session.set_query("")
        with pytest.raises(EmptyQueryError):
            session.submit_streaming()
        fake_checker.check_streaming.assert_not_called()

    def test_events_and_history(self, session, history, sample_result):
        session.set_query("q")
        events = session.submit_streaming()
        assert session.state.phase == Phase.LOADING

        events = list(events)

        assert [t for t, _ in events] == ["token", "source", "result"]
        item = events[-1][1]
        assert isinstance(item, HistoryItem)
        assert item.result == sample_result
        assert history.items() == [item]
        assert session.state.phase == Phase.RESULT_SHOWN

    def test_failure_yields_error_event(self, session, fake_checker, history):
        def failing(*args, **kwargs):
            yield ("token", "判定")
            raise CheckError("rate limited")

        fake_checker.check_streaming.side_effect = failing
        session.set_query("q")

        events = list(session.submit_streaming())

        assert events == [("token", "判定"), ("error", CHECK_FAILED_MESSAGE)]
        assert len(history) == 0
        assert session.state.phase == Phase.IDLE

    def test_abandoned_stream_releases(self, session):
        session.set_query("q")
        events = session.submit_streaming()
        next(events)
        events.close()
        assert session.state.phase == Phase.IDLE

    def test_unstarted_stream_close_releases(self, session, history):
        session.set_query("q")
        events = session.submit_streaming()
        events.close()

        assert session.state.phase == Phase.IDLE
        assert len(history) == 0
        assert session.submit() is not None

    def test_close_after_success_keeps_result(self, session):
        session.set_query("q")
        events = session.submit_streaming()
        list(events)
        events.close()
        assert session.state.phase == Phase.RESULT_SHOWN


class TestHistoryRestore:
    def test_n_checks_then_restore_each(self, session, fake_checker, history):
        submitted = []
        for i, platform_id in enumerate(["google", "tiktok", "line"]):
            result = ValidationResult(verdict=Verdict.OK, summary=f"answer {i}")
            fake_checker.check.return_value = result
            session.select_platform(platform_id)
            session.set_query(f"question {i}")
            submitted.append((get_platform(platform_id), f"question {i}", result))
            session.submit()

        items = history.items()
        assert len(items) == 3
        for item, (platform, query, result) in zip(items, reversed(submitted)):
            session.restore(item)
            assert session.state.platform == platform
            assert session.state.query == query
            assert session.state.result == result
            assert session.state.phase == Phase.RESULT_SHOWN
        assert fake_checker.check.call_count == 3

    def test_restore_by_id(self, session, history):
        session.set_query("q")
        item = session.submit()
        session.set_query("something else")

        assert session.restore_by_id(item.id) == item
        assert session.state.query == "q"

    def test_restore_by_unknown_id(self, session):
        assert session.restore_by_id("nope") is None

    def test_restore_refused_while_loading(self, session, history):
        session.set_query("q")
        item = session.submit()
        session.state.phase = Phase.LOADING
        with pytest.raises(SessionBusyError):
            session.restore(item)


def test_state_to_dict(session, sample_result):
    session.set_query("q")
    session.submit()
    data = session.state.to_dict()
    assert data["platform_id"] == "google"
    assert data["phase"] == "result_shown"
    assert data["result"]["verdict"] == "conditional"
    assert data["error"] is None


class TestSubmitWithSelection:
    def test_applies_platform_and_query(self, session, fake_checker):
        item = session.submit("x", "リード獲得広告は使えますか")

        assert item.platform_name == "X (Twitter) Ads"
        assert item.query == "リード獲得広告は使えますか"
        assert session.state.platform.id == "x"
        assert fake_checker.check.call_args.args[2] == "リード獲得広告は使えますか"

    def test_unknown_platform_changes_nothing(self, session, fake_checker):
        session.set_query("pending")
        with pytest.raises(KeyError):
            session.submit("bing", "q")

        assert session.state.platform == PLATFORMS[0]
        assert session.state.query == "pending"
        assert session.state.phase == Phase.IDLE
        fake_checker.check.assert_not_called()

    def test_busy_keeps_running_question(self, session, fake_checker):
        session.set_query("first")
        session.state.phase = Phase.LOADING

        with pytest.raises(SessionBusyError):
            session.submit("meta", "second")
        assert session.state.query == "first"
        assert session.state.platform == PLATFORMS[0]

    def test_streaming_applies_selection(self, session, fake_checker):
        events = list(session.submit_streaming("line", "酒類"))
        assert events[-1][1].platform_name == "LINE Ads"
        assert fake_checker.check_streaming.call_args.args[:3] == (
            "LINE Ads", get_platform("line").search_context, "酒類",
        )
