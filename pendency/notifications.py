"""Notification aggregation with per-user read state.

Notifications are derived from the normalized records on every sync (goods
under search, plus critical pendencies in the user's scope); only the set of
acknowledged ids is persisted. Because record ids are deterministic, a
re-fetch of unchanged data maps onto the same read state: no lost read
marks, no duplicate alerts.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from .models import PendencyRecord
from .state import ReadStateStore
from .views import is_open_critical

logger = logging.getLogger(__name__)


@dataclass
class NotificationCounts:
    """Unread notifications per category"""

    search: int = 0
    critical: int = 0

    @property
    def total(self) -> int:
        return self.search + self.critical


def _dedupe(records: Iterable[PendencyRecord]) -> List[PendencyRecord]:
    seen: Set[str] = set()
    unique = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def build_notification_items(
    records: Iterable[PendencyRecord], scoped: Iterable[PendencyRecord]
) -> List[PendencyRecord]:
    """Search records (all units) followed by open critical records in scope."""
    search = [r for r in records if r.is_search]
    critical = [r for r in scoped if is_open_critical(r)]
    return _dedupe(search + critical)


class NotificationCenter:
    """Read/unread model over the current notification items.

    A session's poller replaces the items from its own thread while the
    caller marks notifications read, so every access goes through one lock.
    """

    def __init__(self, read_state: ReadStateStore):
        self._lock = threading.RLock()
        self.read_state = read_state
        self._items: List[PendencyRecord] = []
        self._read_ids: List[str] = []
        self._read_set: Set[str] = set()
        self._load()

    def _load(self) -> None:
        self._read_ids = []
        self._read_set = set()
        for read_id in self.read_state.load():
            if read_id not in self._read_set:
                self._read_set.add(read_id)
                self._read_ids.append(read_id)
        logger.debug(
            f"Loaded {len(self._read_ids)} read notifications for "
            f"{self.read_state.username!r}"
        )

    def _persist(self) -> None:
        self.read_state.save(self._read_ids)

    @property
    def items(self) -> List[PendencyRecord]:
        with self._lock:
            return list(self._items)

    @property
    def read_ids(self) -> List[str]:
        with self._lock:
            return list(self._read_ids)

    def switch_user(self, read_state: ReadStateStore) -> None:
        """Load another user's read state; nothing carries over."""
        with self._lock:
            self.read_state = read_state
            self._load()

    def set_items(self, items: Iterable[PendencyRecord]) -> None:
        unique = _dedupe(items)
        with self._lock:
            self._items = unique

    def is_read(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._read_set

    def counts(self) -> NotificationCounts:
        """Unread counts by category."""
        counts = NotificationCounts()
        with self._lock:
            for item in self._items:
                if item.id in self._read_set:
                    continue
                if item.is_search:
                    counts.search += 1
                else:
                    counts.critical += 1
        return counts

    def has_unread(self) -> bool:
        with self._lock:
            return any(item.id not in self._read_set for item in self._items)

    def ordered(self) -> List[PendencyRecord]:
        """Unread first, read after; input order kept inside each group."""
        with self._lock:
            unread = [item for item in self._items if item.id not in self._read_set]
            read = [item for item in self._items if item.id in self._read_set]
        return unread + read

    def _add_read(self, item_id: str) -> bool:
        if item_id in self._read_set:
            return False
        self._read_set.add(item_id)
        self._read_ids.append(item_id)
        return True

    def mark_read(self, item_id: str) -> bool:
        """Acknowledge one notification.

        Returns:
            True if the id was newly marked, False if it was already read
        """
        with self._lock:
            if not self._add_read(item_id):
                return False
            self._persist()
            return True

    def mark_all_read(self, visible: Optional[Iterable[PendencyRecord]] = None) -> int:
        """Acknowledge every currently visible notification.

        Args:
            visible: The notifications on screen; defaults to all current items

        Returns:
            Number of newly acknowledged ids
        """
        with self._lock:
            targets = self._items if visible is None else list(visible)
            added = sum(1 for item in targets if self._add_read(item.id))
            if added:
                self._persist()
            return added

    def select(self, item_id: str) -> Optional[PendencyRecord]:
        """Acknowledge a current notification and return its record.

        Unknown ids are left untouched and give None.
        """
        with self._lock:
            for item in self._items:
                if item.id == item_id:
                    self.mark_read(item_id)
                    return item
        return None
