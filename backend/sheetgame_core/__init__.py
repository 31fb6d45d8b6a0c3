"""Student game records synced between a spreadsheet API and a local cache."""

from .cache import LocalCache
from .client import SheetStore
from .errors import MalformedRecordError, NetworkError, NotFoundError, ValidationError
from .flows import GameSync, LeaderboardResult
from .records import RegistrationForm, StudentRecord
from .results import Failure, Ok
from .session import SessionPhase, SessionState

__all__ = [
    "Failure",
    "GameSync",
    "LeaderboardResult",
    "LocalCache",
    "MalformedRecordError",
    "NetworkError",
    "NotFoundError",
    "Ok",
    "RegistrationForm",
    "SessionPhase",
    "SessionState",
    "SheetStore",
    "StudentRecord",
    "ValidationError",
]
