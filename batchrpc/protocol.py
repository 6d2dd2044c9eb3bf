from __future__ import annotations

"""JSON-RPC 2.0 wire types and request validation.

Requests and responses travel over HTTP either as a bare object (one call)
or as a JSON array (a batch). Receivers accept both shapes.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
import json
import logging
from typing import Any, Union

from batchrpc.errors import JsonObject, StatusError

logger = logging.getLogger("batchrpc.protocol")

JSONRPC_VERSION = "2.0"

ID = Union[str, int]

_MISSING: Any = object()


class InvalidRequest(ValueError):
    """Raised when a decoded body is not a well-formed request or batch."""


@dataclass(frozen=True)
class RPCRequest:
    id: ID
    method: str
    params: list[Any] = field(default_factory=list)

    def to_json(self) -> JsonObject:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": self.id,
            "method": self.method,
            "params": list(self.params),
        }


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class Failure:
    error: StatusError


Outcome = Union[Success, Failure]


@dataclass(frozen=True)
class RPCResponse:
    """A single response. Exactly one of ``result`` / ``error`` is set."""

    id: ID
    result: Any = _MISSING
    error: StatusError | None = None

    def __post_init__(self) -> None:
        has_result = self.result is not _MISSING
        if has_result == (self.error is not None):
            raise ValueError("response must carry exactly one of result or error")

    @classmethod
    def success(cls, req_id: ID, value: Any) -> RPCResponse:
        return cls(id=req_id, result=value)

    @classmethod
    def failure(cls, req_id: ID, error: StatusError) -> RPCResponse:
        return cls(id=req_id, error=error)

    @classmethod
    def from_outcome(cls, req_id: ID, outcome: Outcome) -> RPCResponse:
        if isinstance(outcome, Failure):
            return cls.failure(req_id, outcome.error)
        return cls.success(req_id, outcome.value)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_json(self) -> JsonObject:
        payload: JsonObject = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.to_json()
        else:
            payload["result"] = self.result
        return payload


def encode(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"))


def parse_outcome(payload: Any) -> Outcome:
    """Interpret one response element received from the server."""
    if isinstance(payload, dict):
        if "result" in payload:
            return Success(payload["result"])
        if "error" in payload:
            return Failure(StatusError.from_json(payload["error"]))
    return Failure(StatusError(500, "Unexpected return value " + json.dumps(payload, default=str)))


def is_valid_id(value: Any, *, allow_string_ids: bool = False) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value >= 0
    if isinstance(value, float):
        # JSON has one number type; 1.0 on the wire is the id 1.
        return value.is_integer() and value >= 0
    if allow_string_ids and isinstance(value, str):
        return bool(value)
    return False


def _validate_one(
    payload: Any,
    procedures: Mapping[str, Any],
    allow_string_ids: bool,
) -> RPCRequest:
    if not isinstance(payload, dict):
        raise InvalidRequest("request must be a JSON object")
    if payload.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequest("jsonrpc must be '2.0'")

    req_id = payload.get("id", _MISSING)
    if req_id is _MISSING or not is_valid_id(req_id, allow_string_ids=allow_string_ids):
        raise InvalidRequest("id must be a non-negative integer")
    if isinstance(req_id, float):
        req_id = int(req_id)

    method = payload.get("method")
    if not isinstance(method, str) or method not in procedures:
        raise InvalidRequest(f"unknown method {method!r}")

    params = payload.get("params")
    if not isinstance(params, list):
        raise InvalidRequest("params must be an array")

    try:
        accepted = procedures[method].validate_args(params)
    except Exception as exc:
        logger.debug("argument validator for %r raised: %s", method, exc)
        accepted = False
    if not accepted:
        raise InvalidRequest(f"invalid params for {method!r}")

    return RPCRequest(id=req_id, method=method, params=params)


def validate_request(
    payload: Any,
    procedures: Mapping[str, Any],
    *,
    allow_string_ids: bool = False,
) -> RPCRequest | list[RPCRequest]:
    """Validate a decoded body as a single request or a batch of requests.

    A batch is accepted only if every element is well-formed; one bad
    element rejects the whole body.
    """
    if isinstance(payload, list):
        if not payload:
            raise InvalidRequest("batch must not be empty")
        return [_validate_one(item, procedures, allow_string_ids) for item in payload]
    return _validate_one(payload, procedures, allow_string_ids)
