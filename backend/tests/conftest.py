from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List

import pytest

from sheetgame_core import GameSync, LocalCache, SheetStore
from sheetgame_core import client as client_module

SHEET_URL = "https://sheetdb.example/api/v1/test-sheet"
FIXED_NOW = dt.datetime(2026, 10, 19, 10, 15, 30, tzinfo=dt.UTC)


class _SheetClient:
    """Stands in for httpx.Client against an in-memory sheet."""

    rows: List[Dict[str, Any]] = []
    requests: List[Dict[str, Any]] = []
    mode = "ok"  # "ok", "down" (transport error) or "reject" (HTTP 500)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        pass

    def __enter__(self) -> "_SheetClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - nothing to clean
        return None

    def _respond(self, method: str, endpoint: str, payload: Any, status: int = 200):
        httpx = client_module.httpx
        request = httpx.Request(method, endpoint)
        if _SheetClient.mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if _SheetClient.mode == "reject":
            return httpx.Response(500, request=request, json={"error": "quota exceeded"})
        return httpx.Response(status, request=request, json=payload)

    def get(self, endpoint: str, headers: Dict[str, str], params: Dict[str, Any] | None = None):
        _SheetClient.requests.append({"method": "GET", "endpoint": endpoint, "params": params, "headers": headers})
        rows = _SheetClient.rows
        if params and "search" in params:
            field, value = params["search"].split(":", 1)
            rows = [row for row in rows if str(row.get(field)) == value]
        return self._respond("GET", endpoint, {"data": [dict(row) for row in rows]})

    def post(self, endpoint: str, headers: Dict[str, str], json: Any):
        _SheetClient.requests.append({"method": "POST", "endpoint": endpoint, "json": json, "headers": headers})
        if _SheetClient.mode == "ok":
            _SheetClient.rows.append(dict(json["data"]))
        return self._respond("POST", endpoint, {"created": 1}, status=201)

    def patch(self, endpoint: str, headers: Dict[str, str], json: Any):
        _SheetClient.requests.append({"method": "PATCH", "endpoint": endpoint, "json": json, "headers": headers})
        updated = 0
        if _SheetClient.mode == "ok":
            for row in _SheetClient.rows:
                if all(str(row.get(key)) == str(value) for key, value in json["search"].items()):
                    row.update(json["data"])
                    updated += 1
        return self._respond("PATCH", endpoint, {"updated": updated})


@pytest.fixture(autouse=True)
def reset_env(monkeypatch: pytest.MonkeyPatch):
    for name in ("SHEETDB_URL", "SHEETDB_TOKEN", "SHEETDB_TIMEOUT", "SHEETGAME_TIMEZONE", "SHEETGAME_DATA_DIR"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def sheet(monkeypatch: pytest.MonkeyPatch):
    _SheetClient.rows = []
    _SheetClient.requests = []
    _SheetClient.mode = "ok"
    monkeypatch.setattr(client_module.httpx, "Client", _SheetClient)
    return _SheetClient


@pytest.fixture
def store() -> SheetStore:
    return SheetStore(base_url=SHEET_URL)


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    return LocalCache(data_dir=tmp_path)


@pytest.fixture
def game(sheet, store: SheetStore, cache: LocalCache) -> GameSync:
    return GameSync(store=store, cache=cache, clock=lambda: FIXED_NOW, timezone="Asia/Kolkata")


def student_row(roll: int, score: Any = 0, level: Any = 1, points: Any = 0, name: str | None = None) -> Dict[str, Any]:
    return {
        "Name": name or f"Student {roll}",
        "Roll": str(roll),
        "Branch": "CSE",
        "Session": "2024-28",
        "Contact": "Not Provided",
        "Score": str(score),
        "Level": str(level),
        "Points": str(points),
        "LastPlayed": "01/10/2026, 9:00:00 am",
    }
