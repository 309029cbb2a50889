"""User session: data sync, background polling and identity refresh."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from .config import settings
from .models import AppConfig, PendencyRecord, User
from .normalizer import refresh_statuses
from .notifications import NotificationCenter, NotificationCounts, build_notification_items
from .repository import PendencyRepository
from .state import ReadStateStore, StateStore
from .utils import normalize_text
from .views import SidebarCounts, scope_records, sidebar_counts

logger = logging.getLogger(__name__)

UNIT_ROLES = {"unidade"}


def merge_user(current: User, fresh: Optional[User]) -> User:
    """Apply role/unit changes from the user list to the session identity.

    A unit-role user whose unit links would both disappear without a role
    change keeps the previous links; an accidental blank cell in the sheet
    must not widen that user's scope to every unit.
    """
    if fresh is None:
        return current

    role_changed = fresh.role != current.role
    origin_changed = fresh.linked_origin_unit != current.linked_origin_unit
    dest_changed = fresh.linked_dest_unit != current.linked_dest_unit
    if not (role_changed or origin_changed or dest_changed):
        return current

    is_protected_role = normalize_text(current.role) in UNIT_ROLES
    becomes_orphan = not fresh.linked_origin_unit and not fresh.linked_dest_unit
    if is_protected_role and becomes_orphan and not role_changed:
        logger.warning(
            f"Ignoring unit unlink for {current.username!r}: links would be emptied"
        )
        return User(
            id=fresh.id,
            username=fresh.username,
            role=fresh.role,
            name=fresh.name or current.name,
            linked_origin_unit=current.linked_origin_unit,
            linked_dest_unit=current.linked_dest_unit,
        )

    return User(
        id=fresh.id,
        username=fresh.username,
        role=fresh.role,
        name=fresh.name or current.name,
        linked_origin_unit=fresh.linked_origin_unit,
        linked_dest_unit=fresh.linked_dest_unit,
    )


@dataclass
class SyncResult:
    """What one sync pass produced for the UI"""

    records: List[PendencyRecord] = field(default_factory=list)
    scoped: List[PendencyRecord] = field(default_factory=list)
    sidebar: SidebarCounts = field(default_factory=SidebarCounts)
    notifications: NotificationCounts = field(default_factory=NotificationCounts)
    config: AppConfig = field(default_factory=AppConfig)
    is_placeholder: bool = False


class Poller:
    """Calls a function on a fixed interval from a background thread."""

    def __init__(self, callback: Callable[[], object], interval_seconds: float = 60.0):
        self.callback = callback
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="pendency-poller", daemon=True
        )
        self._thread.start()
        logger.info(f"Polling every {self.interval_seconds:g}s")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Background refresh failed: {e}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.debug("Poller stopped")


class PendencySession:
    """Ties one signed-in user to the repository and their notifications."""

    def __init__(
        self,
        repository: PendencyRepository,
        store: StateStore,
        user: User,
        poll_interval_seconds: Optional[float] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        self.repository = repository
        self.store = store
        self.user = user
        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else settings.poll_interval_seconds
        )
        self.today_provider = today_provider or repository.today_provider
        self.notifications = NotificationCenter(ReadStateStore(store, user.username))
        self.last_result: Optional[SyncResult] = None
        self._poller: Optional[Poller] = None

    def sync(self, force_refresh: bool = False) -> SyncResult:
        """Fetch (or reuse) the snapshot and rebuild everything derived from it."""
        snapshot = self.repository.fetch_all(force_refresh)
        records = refresh_statuses(snapshot.records, snapshot.config, self.today_provider())

        fresh = next(
            (
                u
                for u in snapshot.users
                if normalize_text(u.username) == normalize_text(self.user.username)
            ),
            None,
        )
        self.user = merge_user(self.user, fresh)

        scoped = scope_records(records, self.user)
        self.notifications.set_items(build_notification_items(records, scoped))

        result = SyncResult(
            records=records,
            scoped=scoped,
            sidebar=sidebar_counts(records, scoped),
            notifications=self.notifications.counts(),
            config=snapshot.config,
            is_placeholder=snapshot.is_placeholder,
        )
        self.last_result = result
        return result

    def switch_user(self, user: User) -> None:
        self.user = user
        self.notifications.switch_user(ReadStateStore(self.store, user.username))

    def start_polling(self) -> None:
        if self._poller is None:
            self._poller = Poller(
                lambda: self.sync(force_refresh=True), self.poll_interval_seconds
            )
        self._poller.start()

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def close(self) -> None:
        """End the session; the background poll must not outlive it."""
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def __enter__(self) -> "PendencySession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
