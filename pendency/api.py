"""Client for the remote spreadsheet endpoint.

The endpoint is a single POST URL taking ``{"action", "payload"}`` as a text
body and answering ``{"success", "data"?, "message"?, "error"?}``. Every
call returns a dictionary of that shape; transport problems are converted
into ``{"success": False, "error": ...}`` rather than raised.
"""

import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised internally when the endpoint cannot produce a usable response."""

    pass


class ApiClient:
    """Thin action-oriented client over a requests session."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        retries: int = 2,
        backoff: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or self._build_session(retries, backoff)

    @staticmethod
    def _build_session(retries: int, backoff: float) -> requests.Session:
        session = requests.Session()

        # Retry strategy for 429, 500, 502, 503, 504
        retry_strategy = Retry(
            total=retries,
            backoff_factor=backoff,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"User-Agent": "PendencyTracker/1.0"})
        return session

    def _post(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.url:
            raise ApiError("No endpoint URL configured")

        try:
            response = self.session.post(
                self.url,
                data=json.dumps({"action": action, "payload": payload}),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
                allow_redirects=True,
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request failed: {e}") from e

        if not response.ok:
            raise ApiError(f"HTTP Error: {response.status_code}")

        try:
            body = json.loads(response.text)
        except ValueError as e:
            logger.debug(f"Invalid JSON response: {response.text[:200]!r}")
            raise ApiError("Invalid JSON from server") from e

        if not isinstance(body, dict):
            raise ApiError("Unexpected response shape from server")
        return body

    def request(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call an action on the endpoint.

        Args:
            action: Action name (e.g. "GET_ALL", "addNote")
            payload: Action payload

        Returns:
            The decoded response, or a failure dictionary; never raises
        """
        try:
            return self._post(action, payload or {})
        except ApiError as e:
            logger.error(f"API Error [{action}]: {e}")
            return {"success": False, "error": str(e)}

    # Read actions

    def get_all(self) -> Dict[str, Any]:
        return self.request("GET_ALL")

    def get_notes(self, record_ref: str) -> Dict[str, Any]:
        return self.request("getNotes", {"cteId": record_ref})

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self.request("login", {"username": username, "password": password})

    # Write actions

    def add_note(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("addNote", payload)

    def create_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("createUser", payload)

    def update_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("updateUser", payload)

    def delete_user(self, username: str) -> Dict[str, Any]:
        return self.request("deleteUser", {"username": username})

    def save_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("saveProfile", payload)

    def delete_profile(self, name: str) -> Dict[str, Any]:
        return self.request("deleteProfile", {"name": name})


def create_api_client(settings_obj: Any = None) -> ApiClient:
    """Build a client from settings."""
    from .config import settings as default_settings

    cfg = settings_obj or default_settings
    return ApiClient(
        cfg.api_url,
        timeout=cfg.http_timeout_seconds,
        retries=cfg.http_retries,
        backoff=cfg.http_backoff,
    )
