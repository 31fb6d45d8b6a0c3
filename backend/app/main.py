from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from sheetgame_core import (
    GameSync,
    NotFoundError,
    RegistrationForm,
    SessionState,
    StudentRecord,
    ValidationError,
)

app = FastAPI(title="Student Game Sheet API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger(__name__)


class RegistrationPayload(BaseModel):
    name: str = Field(min_length=1)
    roll: str = Field(min_length=1)
    branch: str = Field(min_length=1)
    session: str = Field(min_length=1)
    contact: Optional[str] = Field(default=None, pattern=r"^([0-9]{10})?$")


class PlayerModel(BaseModel):
    name: str = Field(alias="Name")
    roll: int = Field(alias="Roll")
    branch: str = Field(alias="Branch")
    session: Optional[str] = Field(default=None, alias="Session")
    contact: Optional[str] = Field(default=None, alias="Contact")
    score: int = Field(alias="Score")
    level: int = Field(alias="Level")
    points: int = Field(alias="Points")
    last_played: str = Field(alias="LastPlayed")
    id: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class SessionModel(BaseModel):
    phase: str
    registered: bool
    offline: bool
    needs_sync: bool = Field(alias="needsSync")
    connected: bool

    model_config = ConfigDict(populate_by_name=True)


class RegistrationResponse(BaseModel):
    player: PlayerModel
    session: SessionModel
    source: str
    redirect_to: str = Field(alias="redirectTo")
    redirect_after: float = Field(alias="redirectAfter")
    notice: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ResumeResponse(BaseModel):
    player: Optional[PlayerModel] = None
    session: SessionModel
    message: Optional[str] = None
    redirect_to: Optional[str] = Field(default=None, alias="redirectTo")

    model_config = ConfigDict(populate_by_name=True)


class ScoreUpdatePayload(BaseModel):
    points: int = Field(ge=0)
    level: Optional[int] = Field(default=None, ge=1)


class ScoreUpdateResponse(BaseModel):
    success: bool
    player: Optional[PlayerModel] = None
    session: SessionModel


class SyncResponse(BaseModel):
    success: bool
    attempted: bool
    session: SessionModel
    reason: Optional[str] = None


class LeaderboardResponse(BaseModel):
    success: bool
    data: List[Dict[str, Any]]
    source: str
    count: Optional[int] = None
    warning: Optional[str] = None
    timestamp: Optional[str] = None


@lru_cache(maxsize=1)
def service() -> GameSync:
    return GameSync()


def _player(record: StudentRecord | None) -> PlayerModel | None:
    if record is None:
        return None
    return PlayerModel(**record.to_row())


def _session(state: SessionState) -> SessionModel:
    return SessionModel(
        phase=state.phase.value,
        registered=state.registered,
        offline=state.offline,
        needsSync=state.needs_sync,
        connected=state.connected,
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/session", response_model=ResumeResponse, response_model_exclude_none=True)
def current_session():
    state = service().current_state()
    resumed = service().resume(state)
    if resumed is None:
        return ResumeResponse(session=_session(state))
    return ResumeResponse(
        player=_player(resumed.record),
        session=_session(state),
        message=resumed.message,
        redirectTo=resumed.redirect_to,
    )


@app.delete("/session", response_model=SessionModel)
def end_session():
    return _session(service().logout())


@app.post("/register", response_model=RegistrationResponse, status_code=201)
def register(payload: RegistrationPayload):
    try:
        form = RegistrationForm.parse(payload.model_dump())
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    outcome = service().register(form, service().current_state())
    if outcome.source == "local":
        logger.warning("Player %s registered in offline mode", form.roll)
    return RegistrationResponse(
        player=_player(outcome.record),
        session=_session(outcome.state),
        source=outcome.source,
        redirectTo=outcome.redirect_to,
        redirectAfter=outcome.redirect_after,
        notice=outcome.notice,
    )


@app.post("/score", response_model=ScoreUpdateResponse)
def update_score(payload: ScoreUpdatePayload):
    try:
        outcome = service().update_score(service().current_state(), payload.points, payload.level)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if outcome.record is None:
        raise HTTPException(status_code=409, detail="No registered player")
    return ScoreUpdateResponse(
        success=outcome.success,
        player=_player(outcome.record),
        session=_session(outcome.state),
    )


@app.get("/leaderboard", response_model=LeaderboardResponse, response_model_exclude_none=True)
def leaderboard(limit: int = Query(default=10, ge=1, le=100)):
    return LeaderboardResponse(**service().leaderboard(limit).as_dict())


@app.get("/students/{roll}")
def student(roll: int):
    try:
        result = service().lookup_student(roll)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if not result["success"]:
        raise HTTPException(status_code=502, detail=result["error"])
    return result


@app.post("/sync", response_model=SyncResponse, response_model_exclude_none=True)
def sync():
    outcome = service().sync(service().current_state())
    return SyncResponse(
        success=outcome.success,
        attempted=outcome.attempted,
        session=_session(outcome.state),
        reason=outcome.reason,
    )


@app.post("/connectivity/online", response_model=SyncResponse, response_model_exclude_none=True)
def connectivity_online():
    outcome = service().go_online(service().current_state())
    return SyncResponse(
        success=outcome.success,
        attempted=outcome.attempted,
        session=_session(outcome.state),
        reason=outcome.reason,
    )


@app.post("/connectivity/offline", response_model=SessionModel)
def connectivity_offline():
    return _session(service().go_offline(service().current_state()))
