from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from .cache import LocalCache
from .client import SheetStore
from .errors import NotFoundError
from .records import DEFAULT_TIMEZONE, RegistrationForm, StudentRecord, played_at
from .results import Failure, Ok, StoreResult
from .session import SessionState


logger = logging.getLogger(__name__)

GAME_VIEW = "game"
REDIRECT_DELAY_SECONDS = 1.5
LEADERBOARD_SIZE = 10
OFFLINE_NOTICE = "Offline Mode: Using local storage. Data will sync when online."
LOCAL_LEADERBOARD_WARNING = "Offline mode - showing local data only"


@dataclass
class RegistrationOutcome:
    record: StudentRecord
    state: SessionState
    source: str
    redirect_to: str = GAME_VIEW
    redirect_after: float = REDIRECT_DELAY_SECONDS
    notice: str | None = None


@dataclass
class ScoreUpdateOutcome:
    success: bool
    state: SessionState
    record: StudentRecord | None = None
    reason: str | None = None


@dataclass
class SyncOutcome:
    success: bool
    state: SessionState
    attempted: bool = False
    reason: str | None = None


@dataclass
class ResumeOutcome:
    record: StudentRecord
    message: str
    redirect_to: str = GAME_VIEW


@dataclass
class LeaderboardResult:
    success: bool
    data: List[StudentRecord] = field(default_factory=list)
    source: str = "remote"
    count: int | None = None
    warning: str | None = None
    timestamp: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "data": [record.leaderboard_row() for record in self.data],
            "source": self.source,
        }
        if self.count is not None:
            payload["count"] = self.count
        if self.warning:
            payload["warning"] = self.warning
        if self.timestamp:
            payload["timestamp"] = self.timestamp
        return payload


def rank_by_score(records: List[StudentRecord], limit: int = LEADERBOARD_SIZE) -> List[StudentRecord]:
    # sorted() is stable, so equal scores keep their sheet order
    return sorted(records, key=lambda record: record.score, reverse=True)[:limit]


class GameSync:
    """Registration, scoring, leaderboard and resync over a sheet and a local cache.

    Each flow takes the current :class:`SessionState`, persists the state it
    produces to the cache and returns it on the outcome.
    """

    def __init__(
        self,
        store: SheetStore | None = None,
        cache: LocalCache | None = None,
        clock: Callable[[], dt.datetime] | None = None,
        timezone: str | None = None,
    ) -> None:
        self.store = store or SheetStore()
        self.cache = cache or LocalCache()
        self.clock = clock or (lambda: dt.datetime.now(dt.UTC))
        self.timezone = timezone or os.getenv("SHEETGAME_TIMEZONE", DEFAULT_TIMEZONE)

    def current_state(self) -> SessionState:
        return self.cache.load_state()

    # ------------------------------------------------------------------
    # Registration

    def register(self, form: RegistrationForm, state: SessionState) -> RegistrationOutcome:
        candidate = form.new_record(self._now())

        existing = self.store.find_by_roll(form.roll)
        if isinstance(existing, Ok) and existing.value:
            logger.info("Student %s already registered; updating LastPlayed", form.roll)
            candidate = candidate.carry_progress(existing.value[0])
            result = self.store.patch_by_roll(form.roll, {"LastPlayed": candidate.last_played})
        elif isinstance(existing, Ok):
            logger.info("Adding new student %s to remote store", form.roll)
            result = self.store.insert(candidate)
        else:
            result = existing

        if isinstance(result, Failure):
            logger.warning("Registration for %s failed (%s); using local fallback", form.roll, result.reason)
            record = replace(candidate, local_id=f"local_{int(self.clock().timestamp() * 1000)}")
            new_state = state.registered_offline()
            self.cache.save_player(record)
            self.cache.save_state(new_state)
            return RegistrationOutcome(record=record, state=new_state, source="local", notice=OFFLINE_NOTICE)

        new_state = state.registered_online()
        self.cache.save_player(candidate)
        self.cache.save_state(new_state)
        return RegistrationOutcome(record=candidate, state=new_state, source="remote")

    def resume(self, state: SessionState) -> Optional[ResumeOutcome]:
        if not state.registered:
            return None
        player = self.cache.load_player()
        if player is None or not player.name:
            return None
        return ResumeOutcome(record=player, message=f"Welcome back, {player.name}! Continue to game?")

    # ------------------------------------------------------------------
    # Score updates

    def update_score(
        self,
        state: SessionState,
        points_to_add: int,
        level: int | None = None,
    ) -> ScoreUpdateOutcome:
        player = self.cache.load_player()
        if player is None:
            return ScoreUpdateOutcome(success=False, state=state, reason="No active player")

        player = player.with_progress(points_to_add, level, self._now())
        self.cache.save_player(player)

        if not state.remote_enabled:
            # kept locally; the next sync pushes it
            new_state = state.pending_sync()
            self.cache.save_state(new_state)
            return ScoreUpdateOutcome(success=True, state=new_state, record=player)

        result = self.store.patch_by_roll(player.roll, player.progress_fields())
        if isinstance(result, Failure):
            logger.info("Background score sync failed for %s (%s)", player.roll, result.reason)
            new_state = state.pending_sync()
            self.cache.save_state(new_state)
            return ScoreUpdateOutcome(success=False, state=new_state, record=player, reason=result.reason)

        logger.debug("Score updated remotely for %s", player.roll)
        return ScoreUpdateOutcome(success=True, state=state, record=player)

    # ------------------------------------------------------------------
    # Reads

    def leaderboard(self, limit: int = LEADERBOARD_SIZE) -> LeaderboardResult:
        result = self.store.list_all()
        if isinstance(result, Ok):
            ranked = rank_by_score(result.value, limit)
            return LeaderboardResult(
                success=True,
                data=ranked,
                count=len(ranked),
                source="remote",
                timestamp=dt.datetime.now(dt.UTC).isoformat().replace("+00:00", "Z"),
            )

        logger.warning("Leaderboard fetch failed (%s); using local fallback", result.reason)
        player = self.cache.load_player()
        return LeaderboardResult(
            success=True,
            data=[player] if player is not None else [],
            source="local",
            warning=LOCAL_LEADERBOARD_WARNING,
        )

    def lookup_student(self, roll: int) -> Dict[str, Any]:
        result = self.store.find_by_roll(roll)
        if isinstance(result, Failure):
            logger.error("Failed to get student data for %s: %s", roll, result.reason)
            return {"success": False, "error": result.reason}
        if not result.value:
            raise NotFoundError("Student not found")
        return {"success": True, "data": result.value[0].to_row(), "source": "remote"}

    # ------------------------------------------------------------------
    # Connectivity and resync

    def sync(self, state: SessionState) -> SyncOutcome:
        if not state.needs_sync:
            return SyncOutcome(success=True, state=state)
        player = self.cache.load_player()
        if player is None:
            return SyncOutcome(success=False, state=state, reason="No active player")

        if state.connected:
            result = self.store.patch_by_roll(player.roll, player.progress_fields())
        else:
            result = self._push_unconfirmed(player)

        if isinstance(result, Failure):
            logger.error("Sync failed for %s: %s", player.roll, result.reason)
            return SyncOutcome(success=False, state=state, attempted=True, reason=result.reason)

        new_state = state.synced()
        self.cache.save_state(new_state)
        logger.info("Offline data synced successfully for %s", player.roll)
        return SyncOutcome(success=True, state=new_state, attempted=True)

    def go_online(self, state: SessionState) -> SyncOutcome:
        logger.info("Back online - attempting to sync data")
        state = state.went_online()
        self.cache.save_state(state)
        return self.sync(state)

    def go_offline(self, state: SessionState) -> SessionState:
        logger.warning("Offline mode activated")
        state = state.went_offline()
        self.cache.save_state(state)
        return state

    def logout(self) -> SessionState:
        self.cache.clear()
        return SessionState()

    def _push_unconfirmed(self, player: StudentRecord) -> StoreResult:
        # Registered while offline: the sheet may not have this Roll yet.
        existing = self.store.find_by_roll(player.roll)
        if isinstance(existing, Failure):
            return existing
        if existing.value:
            return self.store.patch_by_roll(player.roll, player.progress_fields())
        return self.store.insert(player)

    def _now(self) -> str:
        return played_at(self.clock(), self.timezone)
