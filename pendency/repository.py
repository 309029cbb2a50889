"""Read and write operations against the remote source.

Reads go through the snapshot cache; writes go straight to the endpoint and,
on success only, invalidate the cache so the next read sees them. A failed
write leaves the cache alone: stale but consistent data stays visible.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from .api import ApiClient
from .cache import DEFAULT_TTL_SECONDS, SnapshotCache
from .models import Note, PendencyRecord, Profile, Snapshot, User
from .normalizer import normalize_notes, normalize_snapshot, placeholder_snapshot
from .status import business_today

logger = logging.getLogger(__name__)


@dataclass
class WriteResult:
    """Outcome of a write action"""

    success: bool
    message: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


def response_message(response: Optional[Dict[str, Any]], fallback: str) -> str:
    """Pick the most specific failure message a response carries."""
    if not isinstance(response, dict):
        return fallback
    data = response.get("data")
    candidates = [
        response.get("error"),
        response.get("message"),
        data.get("message") if isinstance(data, dict) else None,
    ]
    for candidate in candidates:
        if candidate:
            return str(candidate)
    return fallback


class PendencyRepository:
    """Cached data access for records, users and profiles."""

    def __init__(
        self,
        client: ApiClient,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        today_provider: Callable[[], date] = business_today,
    ):
        self.client = client
        self.today_provider = today_provider
        self.cache = SnapshotCache(self._load_snapshot, ttl_seconds, clock)

    def _load_snapshot(self) -> Snapshot:
        response = self.client.get_all()
        data = response.get("data") if response.get("success") else None
        if not isinstance(data, dict):
            logger.warning(
                "Remote source unavailable, serving placeholder data: "
                f"{response_message(response, 'empty response')}"
            )
            return placeholder_snapshot(today=self.today_provider())
        try:
            return normalize_snapshot(data, today=self.today_provider())
        except Exception as e:
            logger.error(f"Could not normalize remote data, serving placeholder data: {e}")
            return placeholder_snapshot(today=self.today_provider())

    # Reads

    def fetch_all(self, force_refresh: bool = False) -> Snapshot:
        return self.cache.get(force_refresh)

    def fetch_users(self) -> List[User]:
        return self.fetch_all().users

    def fetch_notes(self, record: PendencyRecord) -> List[Note]:
        """Load the note history of a record (on demand, not cached)."""
        lookup = record.document_number or record.id
        response = self.client.get_notes(lookup)
        if not response.get("success") or not isinstance(response.get("data"), list):
            return []
        return normalize_notes(response["data"], record.id)

    # Writes

    def _write(self, action: str, call: Callable[[], Dict[str, Any]]) -> WriteResult:
        response = call()
        if response.get("success"):
            self.cache.invalidate()
            data = response.get("data")
            return WriteResult(
                success=True,
                message=response.get("message"),
                data=data if isinstance(data, dict) else {},
            )
        message = response_message(response, f"Action {action} failed.")
        logger.warning(f"Write {action} rejected: {message}")
        return WriteResult(success=False, message=message)

    def add_note(self, note: Note, record: Optional[PendencyRecord] = None) -> WriteResult:
        payload = {
            "cteId": note.record_id,
            "cteNumber": record.document_number if record else note.record_id,
            "serie": record.series if record else "",
            "author": note.author,
            "text": note.text,
            "imageUrl": note.image_url,
            "attachments": [a.to_dict() for a in note.attachments],
            "markInSearch": note.is_search_process,
        }
        return self._write("addNote", lambda: self.client.add_note(payload))

    def create_user(self, user: User, password: Optional[str] = None) -> WriteResult:
        payload = user.to_dict()
        if password:
            payload["password"] = password
        return self._write("createUser", lambda: self.client.create_user(payload))

    def update_user(self, user: User, password: Optional[str] = None) -> WriteResult:
        payload = user.to_dict()
        if password:
            payload["password"] = password
        return self._write("updateUser", lambda: self.client.update_user(payload))

    def delete_user(self, username: str) -> WriteResult:
        return self._write("deleteUser", lambda: self.client.delete_user(username))

    def save_profile(self, profile: Profile) -> WriteResult:
        return self._write(
            "saveProfile", lambda: self.client.save_profile(profile.to_dict())
        )

    def delete_profile(self, name: str) -> WriteResult:
        return self._write("deleteProfile", lambda: self.client.delete_profile(name))

    def change_password(self, user: User, new_password: str) -> WriteResult:
        if not new_password or not new_password.strip():
            return WriteResult(success=False, message="New password must not be empty.")
        return self.update_user(user, password=new_password.strip())
