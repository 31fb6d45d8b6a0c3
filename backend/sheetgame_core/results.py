"""Success/failure values returned by every remote store operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .errors import NetworkError


@dataclass(frozen=True)
class Ok:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Failure:
    """A remote call that did not succeed.

    ``kind`` is one of ``network`` (transport error), ``status`` (non-2xx
    response), ``malformed`` (unexpected body) or ``unconfigured``.
    """

    reason: str
    kind: str = "network"
    status: int | None = None

    @property
    def ok(self) -> bool:
        return False

    def as_error(self) -> NetworkError:
        return NetworkError(self.reason, status=self.status)

    def unwrap(self) -> Any:
        raise self.as_error()


StoreResult = Union[Ok, Failure]
