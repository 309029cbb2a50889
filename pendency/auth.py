"""Authentication against the remote source.

The remote login action compares usernames case-sensitively, while people
type them however they like. Before authenticating, the typed name is
matched case-insensitively against the user list and replaced with the
stored spelling.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import Settings, settings as default_settings
from .models import User
from .repository import PendencyRepository, response_message
from .state import AUTH_TOKEN_KEY, AUTH_USER_KEY, StateStore

logger = logging.getLogger(__name__)

ADMIN_FALLBACK = User(
    id="admin-fallback-001",
    username="admin",
    role="ADMIN",
    name="Administrador (Fallback)",
)

DEFAULT_FAILURE_MESSAGE = "Authentication failed."
CONNECTION_FAILURE_MESSAGE = "Connection error."


@dataclass
class AuthResult:
    """Outcome of a login attempt"""

    success: bool
    user: Optional[User] = None
    token: Optional[str] = None
    message: Optional[str] = None


def _nested(response: Mapping[str, Any], key: str) -> Any:
    data = response.get("data")
    return data.get(key) if isinstance(data, Mapping) else None


def _looks_like_user(candidate: Any) -> bool:
    return isinstance(candidate, Mapping) and any(
        candidate.get(key) for key in ("username", "name", "role")
    )


# Where a login response may carry the user, in the order they are tried.
USER_SHAPES: List[Callable[[Mapping[str, Any]], Any]] = [
    lambda r: _nested(r, "user"),
    lambda r: r.get("user"),
    lambda r: r.get("data"),
    lambda r: r,
]


def extract_user_payload(response: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """Try each known response shape and return the first user-like object."""
    for shape in USER_SHAPES:
        candidate = shape(response)
        if _looks_like_user(candidate):
            return candidate
    return None


def extract_token(response: Mapping[str, Any]) -> Optional[str]:
    token = _nested(response, "token") or response.get("token")
    return str(token) if token else None


def is_accepted(response: Mapping[str, Any]) -> bool:
    """A login counts as accepted on a success flag, a user object or a token."""
    has_success_flag = response.get("success") is True
    has_user = bool(response.get("user") or _nested(response, "user"))
    return has_success_flag or has_user or bool(extract_token(response))


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_user(payload: Mapping[str, Any], resolved_username: str) -> User:
    username = str(payload.get("username") or resolved_username)
    return User(
        id=str(payload.get("id") or "api-user"),
        username=username,
        role=str(payload.get("role") or "USER"),
        name=_optional_str(payload.get("name")) or username,
        linked_origin_unit=_optional_str(payload.get("linkedOriginUnit")),
        linked_dest_unit=_optional_str(payload.get("linkedDestUnit")),
    )


class AuthService:
    """Login/logout and the persisted identity."""

    def __init__(
        self,
        repository: PendencyRepository,
        store: StateStore,
        config: Optional[Settings] = None,
    ):
        self.repository = repository
        self.store = store
        self.config = config or default_settings

    def _is_fallback_login(self, username: str, password: str) -> bool:
        return (
            username.lower() == self.config.fallback_admin_username.lower()
            and password in self.config.get_fallback_passwords()
        )

    def resolve_username(self, username: str) -> str:
        """Return the stored spelling of a username, or the input unchanged."""
        try:
            users = self.repository.fetch_users()
        except Exception as e:
            logger.warning(f"Could not load user list before login, using input: {e}")
            return username

        wanted = username.lower()
        for user in users:
            if user.username.strip().lower() == wanted:
                if user.username != username:
                    logger.info(f"Case match: {username!r} -> {user.username!r}")
                return user.username
        return username

    def _persist(self, user: User, token: str) -> None:
        self.store.set_json(AUTH_TOKEN_KEY, token)
        self.store.set_json(AUTH_USER_KEY, user.to_dict())

    def login(self, username: Optional[str], password: Optional[str]) -> AuthResult:
        """Authenticate a user.

        Args:
            username: Username as typed (any casing)
            password: Password

        Returns:
            AuthResult with the user and token on success, or a message
        """
        try:
            input_username = (username or "").strip()
            safe_password = (password or "").strip()
            logger.info(f"Starting login for {input_username!r}")

            if self._is_fallback_login(input_username, safe_password):
                logger.warning("Admin fallback login used")
                token = f"admin-fallback-token-{int(time.time() * 1000)}"
                self._persist(ADMIN_FALLBACK, token)
                return AuthResult(success=True, user=ADMIN_FALLBACK, token=token)

            username_to_send = self.resolve_username(input_username)
            response: Dict[str, Any] = self.repository.client.login(
                username_to_send, safe_password
            )

            if is_accepted(response):
                payload = extract_user_payload(response)
                if payload is not None:
                    user = build_user(payload, username_to_send)
                    token = extract_token(response) or "session-token"
                    self._persist(user, token)
                    logger.info(f"Login succeeded for {user.username!r}")
                    return AuthResult(success=True, user=user, token=token)

            message = response_message(response, DEFAULT_FAILURE_MESSAGE)
            logger.info(f"Login rejected for {username_to_send!r}: {message}")
            return AuthResult(success=False, message=message)

        except Exception as e:
            logger.error(f"Login failed with an unexpected error: {e}")
            return AuthResult(success=False, message=str(e) or CONNECTION_FAILURE_MESSAGE)

    def logout(self) -> None:
        self.store.delete(AUTH_TOKEN_KEY)
        self.store.delete(AUTH_USER_KEY)

    def current_user(self) -> Optional[User]:
        """Return the stored identity, or None when absent or unreadable."""
        data = self.store.get_json(AUTH_USER_KEY)
        if not isinstance(data, dict):
            return None
        try:
            user = User.from_dict(data)
        except KeyError:
            logger.warning("Stored identity is incomplete, ignoring it")
            return None
        return user if user.username else None

    def current_token(self) -> Optional[str]:
        token = self.store.get_json(AUTH_TOKEN_KEY)
        return str(token) if token else None

    def is_authenticated(self) -> bool:
        return self.current_user() is not None
