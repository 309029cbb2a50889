"""Time-boxed snapshot cache.

A single slot holding the last normalized Snapshot. Reads within the TTL are
served from the slot; forced reads and reads after expiry (or after an
invalidation) go to the loader. There is no locking and no request
coalescing: the slot is only ever fully replaced or cleared, so the last
writer wins.
"""

import logging
import time
from typing import Callable, Optional

from .models import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 120.0


class SnapshotCache:
    """Snapshot cache with injected loader and clock."""

    def __init__(
        self,
        loader: Callable[[], Snapshot],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: Optional[Snapshot] = None
        self._fetched_at: float = 0.0

    @property
    def fetched_at(self) -> float:
        return self._fetched_at

    def peek(self) -> Optional[Snapshot]:
        """Return the cached snapshot without loading or checking expiry."""
        return self._snapshot

    def is_fresh(self) -> bool:
        if self._snapshot is None:
            return False
        return self.clock() - self._fetched_at < self.ttl_seconds

    def get(self, force_refresh: bool = False) -> Snapshot:
        """Return the cached snapshot, loading a new one when needed.

        Args:
            force_refresh: Bypass the TTL unconditionally

        Returns:
            A snapshot; the loader is expected to degrade to placeholder data
            rather than raise
        """
        if not force_refresh and self.is_fresh():
            logger.debug("Using cached snapshot")
            return self._snapshot  # type: ignore[return-value]

        logger.info("Fetching fresh snapshot" + (" (forced)" if force_refresh else ""))
        snapshot = self.loader()
        self._snapshot = snapshot
        self._fetched_at = self.clock()
        return snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next read refetches."""
        logger.debug("Snapshot cache invalidated")
        self._snapshot = None
        self._fetched_at = 0.0
