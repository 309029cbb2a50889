"""Tests for pendency/session.py - Sync, polling and identity refresh."""

import threading
from datetime import date
from typing import Any, Dict

import pytest
import requests_mock

from pendency.models import PendencyStatus, User
from pendency.repository import PendencyRepository
from pendency.session import PendencySession, Poller, merge_user
from pendency.state import StateStore
from tests.conftest import API_URL


def unit_user(**overrides: Any) -> User:
    values = dict(
        id="u1",
        username="Rondonopolis",
        role="UNIDADE",
        linked_dest_unit="RONDONOPOLIS",
    )
    values.update(overrides)
    return User(**values)


class TestMergeUser:
    """Tests for refreshing the session identity from the user list."""

    def test_no_fresh_entry(self) -> None:
        current = unit_user()
        assert merge_user(current, None) is current

    def test_unchanged(self) -> None:
        current = unit_user()
        assert merge_user(current, unit_user(name="Other")) is current

    def test_unit_change_applied(self) -> None:
        merged = merge_user(unit_user(), unit_user(linked_dest_unit="CUIABA"))
        assert merged.linked_dest_unit == "CUIABA"

    def test_unit_role_keeps_links_when_emptied(self) -> None:
        """Blank unit cells do not widen a unit user's scope."""
        merged = merge_user(unit_user(), unit_user(linked_dest_unit=None))
        assert merged.linked_dest_unit == "RONDONOPOLIS"
        assert merged.role == "UNIDADE"

    def test_role_change_allows_unlinking(self) -> None:
        merged = merge_user(unit_user(), unit_user(role="ADMIN", linked_dest_unit=None))
        assert merged.role == "ADMIN"
        assert merged.linked_dest_unit is None

    def test_other_roles_can_lose_links(self) -> None:
        current = unit_user(role="USER")
        merged = merge_user(current, unit_user(role="USER", linked_dest_unit=None))
        assert merged.linked_dest_unit is None


class TestPoller:
    """Tests for the background poller."""

    def test_calls_until_stopped(self) -> None:
        called = threading.Event()
        poller = Poller(called.set, interval_seconds=0.01)

        poller.start()
        assert called.wait(2.0)
        assert poller.running is True

        poller.stop()
        assert poller.running is False

    def test_callback_errors_do_not_stop_polling(self) -> None:
        calls = []
        done = threading.Event()

        def flaky() -> None:
            calls.append(1)
            if len(calls) >= 2:
                done.set()
            raise RuntimeError("source down")

        poller = Poller(flaky, interval_seconds=0.01)
        poller.start()
        assert done.wait(2.0)
        poller.stop()


class TestPendencySession:
    """Tests for PendencySession.sync."""

    @pytest.fixture
    def session(
        self,
        repository: PendencyRepository,
        state_store: StateStore,
        mock_api: requests_mock.Mocker,
        raw_payload: Dict[str, Any],
    ) -> PendencySession:
        mock_api.post(API_URL, json={"success": True, "data": raw_payload})
        return PendencySession(repository, state_store, unit_user(), poll_interval_seconds=60)

    def test_sync_scopes_to_unit(self, session: PendencySession) -> None:
        result = session.sync()

        assert [r.document_number for r in result.scoped] == ["1002", "1004"]
        assert len(result.records) == 4
        assert (result.sidebar.pending, result.sidebar.critical, result.sidebar.search) == (1, 0, 2)
        assert (result.notifications.search, result.notifications.critical) == (2, 0)
        assert result.is_placeholder is False
        assert session.last_result is result

    def test_admin_gets_critical_notifications(
        self, session: PendencySession, state_store: StateStore
    ) -> None:
        session.switch_user(User(id="u2", username="Maria.Silva", role="ADMIN"))
        result = session.sync()
        assert (result.notifications.search, result.notifications.critical) == (2, 1)
        assert [r.document_number for r in session.notifications.ordered()] == ["1003", "1004", "1001"]

    def test_identity_refreshed_from_user_list(
        self, repository: PendencyRepository, state_store: StateStore, session: PendencySession
    ) -> None:
        """A role or unit change in the sheet narrows the live session."""
        stale = User(id="u1", username="rondonopolis", role="USER")
        live = PendencySession(repository, state_store, stale, poll_interval_seconds=60)

        result = live.sync()

        assert live.user.role == "UNIDADE"
        assert live.user.linked_dest_unit == "RONDONOPOLIS"
        assert [r.document_number for r in result.scoped] == ["1002", "1004"]

    def test_statuses_follow_business_day(
        self, repository: PendencyRepository, state_store: StateStore, session: PendencySession
    ) -> None:
        """Cached records are re-derived against the current day on every sync."""
        day = {"today": date(2024, 3, 15)}
        live = PendencySession(
            repository,
            state_store,
            User(id="u2", username="Maria.Silva", role="ADMIN"),
            poll_interval_seconds=60,
            today_provider=lambda: day["today"],
        )
        first = {r.document_number: r.status for r in live.sync().records}
        assert first["1002"] is PendencyStatus.PRIORITY

        day["today"] = date(2024, 3, 16)
        second = {r.document_number: r.status for r in live.sync().records}
        assert second["1002"] is PendencyStatus.LATE

    def test_read_marks_survive_sync(self, session: PendencySession, mock_api: requests_mock.Mocker) -> None:
        session.sync()
        session.notifications.mark_read("rec-1003-1")
        result = session.sync(force_refresh=True)
        assert result.notifications.search == 1
        assert mock_api.call_count == 2

    def test_polling_stops_on_close(self, session: PendencySession) -> None:
        with session:
            session.start_polling()
            assert session.polling is True
        assert session.polling is False
