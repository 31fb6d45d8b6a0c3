from __future__ import annotations

import pytest

from sheetgame_core import GameSync, RegistrationForm, SessionPhase, SessionState, ValidationError
from sheetgame_core import client as client_module

from conftest import student_row


def _form(roll: str = "42", contact: str = "") -> RegistrationForm:
    return RegistrationForm.parse(
        {"name": "Asha", "roll": roll, "branch": "CSE", "session": "2024-28", "contact": contact}
    )


def test_register_new_student_inserts_once(game: GameSync, sheet) -> None:
    outcome = game.register(_form(), SessionState())

    posts = [request for request in sheet.requests if request["method"] == "POST"]
    assert len(posts) == 1
    assert len(sheet.rows) == 1
    inserted = sheet.rows[0]
    assert (inserted["Score"], inserted["Level"], inserted["Points"]) == (0, 1, 0)
    assert inserted["LastPlayed"] == "19/10/2026, 3:45:30 pm"

    assert outcome.source == "remote"
    assert outcome.notice is None
    assert outcome.redirect_to == "game"
    assert outcome.state.phase is SessionPhase.REGISTERED_ONLINE
    assert game.cache.load_player() == outcome.record
    assert game.cache.load_player().to_row() == inserted
    assert game.current_state() == outcome.state


def test_register_existing_student_keeps_progress(game: GameSync, sheet) -> None:
    sheet.rows = [student_row(42, score=40, level=2, points=40)]

    outcome = game.register(_form(), SessionState())

    methods = [request["method"] for request in sheet.requests]
    assert methods == ["GET", "PATCH"]
    assert sheet.requests[1]["json"]["data"] == {"LastPlayed": "19/10/2026, 3:45:30 pm"}
    assert len(sheet.rows) == 1

    cached = game.cache.load_player()
    assert (cached.score, cached.level, cached.points) == (40, 2, 40)
    assert cached.roll == 42
    assert outcome.state.connected


def test_register_falls_back_to_local_when_offline(game: GameSync, sheet) -> None:
    sheet.mode = "down"

    outcome = game.register(_form(), SessionState())

    assert outcome.source == "local"
    assert outcome.notice
    assert outcome.redirect_to == "game"
    assert outcome.record.local_id.startswith("local_")
    assert outcome.state.phase is SessionPhase.REGISTERED_OFFLINE
    assert game.cache.load_player() == outcome.record
    assert game.current_state().offline


def test_register_keeps_progress_when_patch_fails(game: GameSync, sheet, monkeypatch: pytest.MonkeyPatch) -> None:
    sheet.rows = [student_row(42, score=40, level=2, points=40)]

    class _PatchRejected(sheet):
        def patch(self, endpoint, headers, json):
            request = client_module.httpx.Request("PATCH", endpoint)
            return client_module.httpx.Response(503, request=request, text="unavailable")

    monkeypatch.setattr(client_module.httpx, "Client", _PatchRejected)

    outcome = game.register(_form(), SessionState())

    assert outcome.source == "local"
    assert (outcome.record.score, outcome.record.level, outcome.record.points) == (40, 2, 40)


def test_short_contact_rejected_before_network(sheet) -> None:
    with pytest.raises(ValidationError):
        _form(contact="12345")

    assert sheet.requests == []
    assert _form(contact="9876543210").contact == "9876543210"
