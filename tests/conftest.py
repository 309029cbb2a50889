"""Pytest configuration and fixtures."""

import json
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List

import pytest
import requests_mock

from pendency.api import ApiClient
from pendency.repository import PendencyRepository
from pendency.state import StateStore

API_URL = "https://script.example.com/macros/s/TEST/exec"
TODAY = date(2024, 3, 15)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def iso(days_from_today: int) -> str:
    return (TODAY + timedelta(days=days_from_today)).isoformat()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def raw_rows() -> List[Dict[str, Any]]:
    """Spreadsheet rows with deliberately inconsistent column names."""
    return [
        {
            "CTE": 1001,
            "SERIE": "1",
            "DATA EMISSAO": iso(-20),
            "DATA LIMITE DE BAIXA": iso(-10),
            "STATUS": "pendente",
            "COLETA": " sao paulo ",
            "ENTREGA": "Cuiaba",
            "VALOR DO CTE": "R$ 1.234,56",
            "DESTINATARIO": "Cliente A",
            "FRETE_PAGO": "cif",
        },
        {
            "cteNumber": "1002",
            "serie": "2",
            "emissao": iso(-3),
            "Data Limite": iso(0),
            "Situação": "Pendente",
            "origem": "Cuiaba",
            "destino": "Rondonopolis",
            "Valor": "1,234.56",
            "Destinatário": "Cliente B",
            "Tipo Frete": "fob",
        },
        {
            "Numero": "1003",
            "Série": "1",
            "limite": "16/03/2024",
            "STATUS": "EM BUSCA",
            "Coleta": "Rondonopolis",
            "Entrega": "Cuiaba",
            "valor": "-",
            "cliente": "Cliente C",
            "Pagamento": "Faturar remetente",
        },
        {
            "CTE": "1004",
            "SERIE": "1",
            "DATA LIMITE DE BAIXA": iso(10),
            "COLETA": "Sao Paulo",
            "ENTREGA": "Rondonopolis",
            "VALOR DO CTE": 300,
            "FRETE_PAGO": "a combinar",
        },
    ]


@pytest.fixture
def raw_payload(raw_rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A GET_ALL data payload."""
    return {
        "ctes": raw_rows,
        "processData": [{"cte": "1004"}],
        "config": {"PRAZO_LIMITE": "5", "URL_DRIVE_UPLOAD": "https://drive.example.com/f"},
        "users": [
            {"usuario": "Rondonopolis", "perfil": "UNIDADE", "Unidade Destino": "RONDONOPOLIS"},
            {"username": "Maria.Silva", "role": "ADMIN", "nome": "Maria Silva"},
            {"perfil": "USER"},
        ],
        "profiles": [
            {"name": "ADMIN", "description": "Everything", "permissions": ["VIEW_DASHBOARD"]},
            {"name": "UNIDADE", "description": "Unit", "permissions": "VIEW_PENDENCIES,EDIT_NOTES"},
        ],
    }


@pytest.fixture
def mock_api() -> Generator[requests_mock.Mocker, None, None]:
    """Mock the remote endpoint (register responses per test)."""
    with requests_mock.Mocker() as m:
        yield m


def action_router(handlers: Dict[str, Any]) -> Callable[[Any, Any], Any]:
    """Build a requests-mock callback dispatching on the posted action."""

    def respond(request: Any, context: Any) -> Any:
        body = json.loads(request.text)
        handler = handlers.get(body["action"], {"success": False, "error": "unknown action"})
        if callable(handler):
            return handler(body.get("payload", {}))
        return handler

    return respond


@pytest.fixture
def client() -> ApiClient:
    return ApiClient(API_URL, timeout=5, retries=0)


@pytest.fixture
def repository(client: ApiClient, clock: FakeClock) -> PendencyRepository:
    return PendencyRepository(client, ttl_seconds=120, clock=clock, today_provider=lambda: TODAY)


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(str(tmp_path / "state.db"))
