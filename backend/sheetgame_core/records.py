from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping
from zoneinfo import ZoneInfo

from .errors import MalformedRecordError, ValidationError


CONTACT_PLACEHOLDER = "Not Provided"
DEFAULT_TIMEZONE = "Asia/Kolkata"

_CONTACT_PATTERN = re.compile(r"[0-9]{10}")
_ROLL_PATTERN = re.compile(r"[0-9]+")


def played_at(moment: dt.datetime | None = None, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Format a timestamp the way the sheet's LastPlayed column stores it.

    Mirrors the ``en-IN`` locale rendering, e.g. ``19/10/2026, 3:45:12 pm``.
    """

    zone = ZoneInfo(timezone)
    local = (moment or dt.datetime.now(dt.UTC)).astimezone(zone)
    hour = local.hour % 12 or 12
    suffix = "am" if local.hour < 12 else "pm"
    return f"{local:%d/%m/%Y}, {hour}:{local:%M:%S} {suffix}"


def _coerce_int(value: Any, default: int, minimum: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        return default
    if number < minimum:
        return default
    return number


@dataclass(frozen=True)
class StudentRecord:
    """One row of the student sheet, keyed by ``roll``."""

    name: str
    roll: int
    branch: str
    session: str
    contact: str = CONTACT_PLACEHOLDER
    score: int = 0
    level: int = 1
    points: int = 0
    last_played: str = ""
    local_id: str | None = None  # set only for records never confirmed remotely

    @classmethod
    def from_row(cls, row: Any) -> "StudentRecord":
        if not isinstance(row, Mapping):
            raise MalformedRecordError(f"Expected a mapping for a student row, got {type(row).__name__}")

        roll_raw = row.get("Roll")
        try:
            roll = int(str(roll_raw).strip())
        except (TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Student row has an invalid Roll: {roll_raw!r}") from exc

        local_id = row.get("id")
        return cls(
            name=str(row.get("Name") or "").strip(),
            roll=roll,
            branch=str(row.get("Branch") or "").strip(),
            session=str(row.get("Session") or "").strip(),
            contact=str(row.get("Contact") or CONTACT_PLACEHOLDER).strip(),
            score=_coerce_int(row.get("Score"), 0, 0),
            level=_coerce_int(row.get("Level"), 1, 1),
            points=_coerce_int(row.get("Points"), 0, 0),
            last_played=str(row.get("LastPlayed") or ""),
            local_id=str(local_id) if isinstance(local_id, str) and local_id.startswith("local_") else None,
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "Name": self.name,
            "Roll": self.roll,
            "Branch": self.branch,
            "Session": self.session,
            "Contact": self.contact,
            "Score": self.score,
            "Level": self.level,
            "Points": self.points,
            "LastPlayed": self.last_played,
        }
        if self.local_id:
            row["id"] = self.local_id
        return row

    def leaderboard_row(self) -> Dict[str, Any]:
        return {
            "Name": self.name,
            "Roll": self.roll,
            "Branch": self.branch,
            "Score": self.score,
            "Level": self.level,
            "Points": self.points,
            "LastPlayed": self.last_played,
        }

    def progress_fields(self) -> Dict[str, Any]:
        """Fields pushed to the sheet after a score change."""

        return {
            "Score": self.score,
            "Points": self.points,
            "Level": self.level,
            "LastPlayed": self.last_played,
        }

    def with_progress(self, points_to_add: int, level: int | None, last_played: str) -> "StudentRecord":
        if isinstance(points_to_add, bool) or not isinstance(points_to_add, int) or points_to_add < 0:
            raise ValidationError("points_to_add must be a non-negative integer")
        new_level = self.level
        if level is not None:
            new_level = max(self.level, int(level))
        return replace(
            self,
            score=self.score + points_to_add,
            points=self.points + points_to_add,
            level=new_level,
            last_played=last_played,
        )

    def carry_progress(self, existing: "StudentRecord") -> "StudentRecord":
        return replace(self, score=existing.score, level=existing.level, points=existing.points)


@dataclass(frozen=True)
class RegistrationForm:
    name: str
    roll: int
    branch: str
    session: str
    contact: str | None = None

    @classmethod
    def parse(cls, raw: Mapping[str, Any]) -> "RegistrationForm":
        """Validate a submitted form; raises ValidationError on bad input."""

        values = {key: str(raw.get(key) or "").strip() for key in ("name", "roll", "branch", "session", "contact")}

        missing = [key for key in ("name", "roll", "branch", "session") if not values[key]]
        if missing:
            raise ValidationError(
                "Please fill all required fields (Name, Roll, Branch, Session); missing: " + ", ".join(missing)
            )

        if not _ROLL_PATTERN.fullmatch(values["roll"]):
            raise ValidationError(f"Roll must be a whole number, got {values['roll']!r}")

        contact = values["contact"] or None
        if contact is not None and not _CONTACT_PATTERN.fullmatch(contact):
            raise ValidationError("Please enter a valid 10-digit contact number")

        return cls(
            name=values["name"],
            roll=int(values["roll"]),
            branch=values["branch"],
            session=values["session"],
            contact=contact,
        )

    def new_record(self, last_played: str) -> StudentRecord:
        return StudentRecord(
            name=self.name,
            roll=self.roll,
            branch=self.branch,
            session=self.session,
            contact=self.contact or CONTACT_PLACEHOLDER,
            last_played=last_played,
        )
