from __future__ import annotations

"""Status-carrying errors shared by the dispatcher and the batching queue.

A StatusError crosses the wire verbatim as the ``error`` member of a
JSON-RPC response: ``{"code": <int>, "message": <str>}`` and nothing else.
"""

import json
from typing import Any

JsonObject = dict[str, Any]

INTERNAL_ERROR_MESSAGE = "Internal server error"
_STATUS_ATTRIBUTES = ("status_code", "status", "code")


class StatusError(Exception):
    """A failed call: an HTTP-style status code and a message."""

    __slots__ = ("_code", "_message")

    def __init__(self, code: int, message: str):
        super().__init__(code, message)
        self._code = int(code)
        self._message = str(message)

    @property
    def code(self) -> int:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    def to_json(self) -> JsonObject:
        return {"code": self._code, "message": self._message}

    @classmethod
    def from_json(cls, payload: Any) -> StatusError:
        """Rebuild the error carried in a response's ``error`` member."""
        if isinstance(payload, dict):
            code = payload.get("code")
            message = payload.get("message")
            if isinstance(code, int) and not isinstance(code, bool) and isinstance(message, str):
                return cls(code, message)
        return cls(500, "Unexpected return value " + json.dumps(payload, default=str))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatusError):
            return NotImplemented
        return (self._code, self._message) == (other._code, other._message)

    def __hash__(self) -> int:
        return hash((self._code, self._message))

    def __str__(self) -> str:
        return f"{self._code} {self._message}"

    def __repr__(self) -> str:
        return f"StatusError({self._code!r}, {self._message!r})"


def internal_error() -> StatusError:
    return StatusError(500, INTERNAL_ERROR_MESSAGE)


def status_of(exc: BaseException) -> int | None:
    """Return the HTTP error status an exception already carries, if any.

    Only 4xx/5xx integers count; anything else is treated as unknown so the
    caller falls back to a generic 500.
    """
    if isinstance(exc, StatusError):
        return exc.code
    for attr in _STATUS_ATTRIBUTES:
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 400 <= value <= 599:
            return value
    return None
