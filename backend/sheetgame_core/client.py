from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

import httpx

from .errors import MalformedRecordError
from .records import StudentRecord
from .results import Failure, Ok, StoreResult


logger = logging.getLogger(__name__)


class SheetStore:
    """Thin client for the spreadsheet-backed REST endpoint.

    Every operation returns :class:`Ok` or :class:`Failure`; transport errors,
    non-2xx responses (PATCH included) and unexpected bodies all become
    failures instead of exceptions.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else os.getenv("SHEETDB_URL", "")).rstrip("/")
        self.token = token if token is not None else os.getenv("SHEETDB_TOKEN", "")
        if timeout is None:
            try:
                timeout = float(os.getenv("SHEETDB_TIMEOUT", "10"))
            except ValueError:
                logger.warning("Ignoring invalid SHEETDB_TIMEOUT; using 10 seconds")
                timeout = 10.0
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def find_by_roll(self, roll: int) -> StoreResult:
        result = self._send("get", params={"search": f"Roll:{roll}"})
        if isinstance(result, Failure):
            return result
        return self._records_from_payload(result.value, strict=True)

    def insert(self, record: StudentRecord) -> StoreResult:
        row = record.to_row()
        row.pop("id", None)
        return self._send("post", json={"data": row})

    def patch_by_roll(self, roll: int, fields: Dict[str, Any]) -> StoreResult:
        return self._send("patch", json={"data": dict(fields), "search": {"Roll": roll}})

    def list_all(self) -> StoreResult:
        result = self._send("get")
        if isinstance(result, Failure):
            return result
        return self._records_from_payload(result.value, strict=False)

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _send(self, method: str, **kwargs: Any) -> StoreResult:
        if not self.configured:
            return Failure("Remote store is not configured (set SHEETDB_URL)", kind="unconfigured")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = getattr(client, method)(self.base_url, headers=self._headers(), **kwargs)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            detail = self._extract_detail(exc.response)
            status = exc.response.status_code if exc.response is not None else None
            logger.warning("Remote store %s failed with HTTP %s (%s)", method.upper(), status, detail or exc)
            return Failure(detail or f"Remote store rejected request: {exc}", kind="status", status=status)
        except httpx.HTTPError as exc:
            logger.warning("Remote store %s request failed (%s)", method.upper(), exc)
            return Failure(f"Remote store request failed: {exc}")
        except ValueError:
            logger.warning("Remote store %s returned a non-JSON body", method.upper())
            return Failure("Remote store returned a non-JSON body", kind="malformed")

        return Ok(payload)

    def _records_from_payload(self, payload: Any, strict: bool) -> StoreResult:
        if isinstance(payload, dict) and isinstance(payload.get("data"), list):
            rows = payload["data"]
        elif isinstance(payload, list):
            rows = payload
        else:
            logger.warning("Remote store returned unexpected payload: %s", type(payload))
            return Failure("Unexpected payload from remote store", kind="malformed")

        records: List[StudentRecord] = []
        for row in rows:
            try:
                records.append(StudentRecord.from_row(row))
            except MalformedRecordError as exc:
                if strict:
                    return Failure(str(exc), kind="malformed")
                logger.warning("Skipping malformed student row: %s", exc)
        return Ok(records)

    @staticmethod
    def _extract_detail(response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, dict):
            for key in ("error", "message", "detail"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None
