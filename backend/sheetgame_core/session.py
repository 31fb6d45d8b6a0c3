from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping


class SessionPhase(str, Enum):
    UNREGISTERED = "unregistered"
    REGISTERED_ONLINE = "registered_online"
    REGISTERED_OFFLINE = "registered_offline"
    OFFLINE_PENDING_SYNC = "offline_pending_sync"


@dataclass(frozen=True)
class SessionState:
    """Connectivity and registration flags for the active player.

    Flows receive the current state and hand back a new one; nothing mutates
    a state in place. ``connected`` records whether the remote store
    acknowledged the player at registration time.
    """

    registered: bool = False
    offline: bool = False
    needs_sync: bool = False
    connected: bool = False

    @property
    def phase(self) -> SessionPhase:
        if not self.registered:
            return SessionPhase.UNREGISTERED
        if self.needs_sync:
            return SessionPhase.OFFLINE_PENDING_SYNC
        if self.offline:
            return SessionPhase.REGISTERED_OFFLINE
        return SessionPhase.REGISTERED_ONLINE

    @property
    def remote_enabled(self) -> bool:
        return self.connected and not self.offline

    def registered_online(self) -> "SessionState":
        return replace(self, registered=True, offline=False, connected=True)

    def registered_offline(self) -> "SessionState":
        return replace(self, registered=True, offline=True, connected=False)

    def pending_sync(self) -> "SessionState":
        return replace(self, needs_sync=True)

    def synced(self) -> "SessionState":
        return replace(self, needs_sync=False, offline=False, connected=True)

    def went_online(self) -> "SessionState":
        return replace(self, offline=False)

    def went_offline(self) -> "SessionState":
        return replace(self, offline=True)

    def to_flags(self) -> Dict[str, bool]:
        return {
            "playerRegistered": self.registered,
            "offlineMode": self.offline,
            "needsSync": self.needs_sync,
            "sheetsConnected": self.connected,
        }

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> "SessionState":
        def flag(key: str) -> bool:
            value = flags.get(key)
            if isinstance(value, str):
                return value.strip().lower() == "true"
            return bool(value)

        return cls(
            registered=flag("playerRegistered"),
            offline=flag("offlineMode"),
            needs_sync=flag("needsSync"),
            connected=flag("sheetsConnected"),
        )
