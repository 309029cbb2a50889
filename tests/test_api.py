"""Tests for pendency/api.py - Remote endpoint client."""

import json

import requests
import requests_mock

from pendency.api import ApiClient, create_api_client
from pendency.config import Settings

from tests.conftest import API_URL


class TestApiClient:
    """Tests for ApiClient."""

    def test_request_body_format(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        """Action and payload are posted as a plain-text JSON body."""
        mock_api.post(API_URL, json={"success": True, "data": []})

        result = client.get_notes("1001")

        assert result == {"success": True, "data": []}
        request = mock_api.last_request
        assert request.headers["Content-Type"].startswith("text/plain")
        assert json.loads(request.text) == {"action": "getNotes", "payload": {"cteId": "1001"}}

    def test_default_payload_is_empty(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        mock_api.post(API_URL, json={"success": True, "data": {}})
        client.get_all()
        assert json.loads(mock_api.last_request.text) == {"action": "GET_ALL", "payload": {}}

    def test_http_error(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        mock_api.post(API_URL, status_code=500, text="boom")
        result = client.get_all()
        assert result == {"success": False, "error": "HTTP Error: 500"}

    def test_invalid_json(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        """An HTML error page never raises."""
        mock_api.post(API_URL, text="<html>Service unavailable</html>")
        result = client.get_all()
        assert result["success"] is False
        assert result["error"] == "Invalid JSON from server"

    def test_non_object_body(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        mock_api.post(API_URL, json=[1, 2, 3])
        result = client.get_all()
        assert result["success"] is False
        assert "Unexpected response shape" in result["error"]

    def test_connection_error(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        mock_api.post(API_URL, exc=requests.exceptions.ConnectionError("refused"))
        result = client.login("maria", "secret")
        assert result["success"] is False
        assert result["error"].startswith("Request failed:")

    def test_missing_url(self) -> None:
        """No configured URL fails without any network call."""
        client = ApiClient("", retries=0)
        with requests_mock.Mocker() as m:
            result = client.get_all()
            assert m.call_count == 0
        assert result == {"success": False, "error": "No endpoint URL configured"}

    def test_failure_body_passed_through(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        """A well-formed failure from the server is returned untouched."""
        mock_api.post(API_URL, json={"success": False, "error": "Usuário já existe"})
        result = client.create_user({"username": "maria"})
        assert result == {"success": False, "error": "Usuário já existe"}

    def test_write_actions(self, client: ApiClient, mock_api: requests_mock.Mocker) -> None:
        mock_api.post(API_URL, json={"success": True})

        client.delete_user("maria")
        assert json.loads(mock_api.last_request.text) == {
            "action": "deleteUser",
            "payload": {"username": "maria"},
        }

        client.delete_profile("UNIDADE")
        assert json.loads(mock_api.last_request.text)["payload"] == {"name": "UNIDADE"}


class TestCreateApiClient:
    """Tests for building a client from settings."""

    def test_uses_settings(self) -> None:
        cfg = Settings(_env_file=None, api_url=API_URL, http_timeout_seconds=7, http_retries=1)
        client = create_api_client(cfg)
        assert client.url == API_URL
        assert client.timeout == 7
