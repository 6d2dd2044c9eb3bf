from __future__ import annotations

"""Server-side JSON-RPC dispatcher.

Validates an inbound HTTP exchange, runs every call against the procedure
registry concurrently and builds one physical response:

- wrong verb       -> 405 text/plain "Method not allowed"
- malformed body   -> 400 text/plain "Bad request"
- single call      -> 200 (or the call's own error code) with one object
- batch            -> 200 with an array in request order
"""

from collections.abc import Awaitable, Callable, Mapping
import asyncio
from dataclasses import dataclass
from http import HTTPStatus
import inspect
import logging
from typing import Any, Union

from batchrpc.errors import StatusError, internal_error, status_of
from batchrpc.protocol import (
    Failure,
    InvalidRequest,
    Outcome,
    RPCRequest,
    RPCResponse,
    Success,
    encode,
    validate_request,
)
from batchrpc.registry import Procedure

logger = logging.getLogger("batchrpc.dispatcher")

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"

BodyReader = Callable[[Any], Union[Any, Awaitable[Any]]]
ContextFactory = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class PhysicalResponse:
    status: int
    content_type: str
    body: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Type": self.content_type}


@dataclass(frozen=True)
class InboundRequest:
    """Transport-neutral view of an inbound HTTP request."""

    method: str
    body: Any = None
    raw: Any = None


METHOD_NOT_ALLOWED = PhysicalResponse(405, TEXT_CONTENT_TYPE, "Method not allowed")
BAD_REQUEST = PhysicalResponse(400, TEXT_CONTENT_TYPE, "Bad request")
INTERNAL_SERVER_ERROR = PhysicalResponse(500, TEXT_CONTENT_TYPE, "Internal server error")


def _body_attribute(inbound: Any) -> Any:
    return getattr(inbound, "body", None)


def _no_context(_inbound: Any, _outbound: Any) -> None:
    return None


def _reason(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Error"


class Dispatcher:
    """Runs validated JSON-RPC calls against a procedure registry.

    ``body_reader(inbound)`` extracts the decoded JSON body and may be sync
    or async. ``context_factory(inbound, outbound)`` builds the value passed
    as the first argument of every procedure; it runs once per exchange.
    """

    def __init__(
        self,
        procedures: Mapping[str, Procedure],
        context_factory: ContextFactory | None = None,
        body_reader: BodyReader | None = None,
        *,
        write_verb: str = "POST",
        allow_string_ids: bool = False,
    ):
        self._procedures = procedures
        self._context_factory = context_factory or _no_context
        self._body_reader = body_reader or _body_attribute
        self._write_verb = write_verb.upper()
        self._allow_string_ids = allow_string_ids

    @property
    def procedures(self) -> Mapping[str, Procedure]:
        return self._procedures

    async def handle(self, inbound: Any, outbound: Any = None) -> PhysicalResponse:
        """Serve one physical exchange. Procedure failures never escape."""
        verb = str(getattr(inbound, "method", "") or "").upper()
        if verb != self._write_verb:
            logger.debug("rejecting %s request: method not allowed", verb or "<none>")
            return METHOD_NOT_ALLOWED

        try:
            body = self._body_reader(inbound)
            if inspect.isawaitable(body):
                body = await body
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("rejecting unreadable request body: %s", exc)
            return BAD_REQUEST

        try:
            request = validate_request(
                body,
                self._procedures,
                allow_string_ids=self._allow_string_ids,
            )
        except InvalidRequest as exc:
            logger.debug("rejecting malformed request: %s", exc)
            return BAD_REQUEST

        try:
            context = self._context_factory(inbound, outbound)
        except Exception:
            logger.exception("context factory failed; no procedure was run")
            return INTERNAL_SERVER_ERROR

        if isinstance(request, list):
            outcomes = await asyncio.gather(*(self._call(req, context) for req in request))
            encoded = [
                self._encode(RPCResponse.from_outcome(req.id, out))[1]
                for req, out in zip(request, outcomes)
            ]
            return PhysicalResponse(200, JSON_CONTENT_TYPE, "[" + ",".join(encoded) + "]")

        response, body_text = self._encode(
            RPCResponse.from_outcome(request.id, await self._call(request, context))
        )
        status = response.error.code if response.error is not None else 200
        return PhysicalResponse(status, JSON_CONTENT_TYPE, body_text)

    async def _call(self, request: RPCRequest, context: Any) -> Outcome:
        proc = self._procedures[request.method]
        try:
            value = proc.execute(context, *request.params)
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            raise
        except StatusError as exc:
            logger.warning("rpc %s (id=%r) failed: %s", request.method, request.id, exc)
            return Failure(exc)
        except Exception as exc:
            logger.exception("rpc %s (id=%r) raised", request.method, request.id)
            code = status_of(exc)
            if code is None or code == 500:
                return Failure(internal_error())
            return Failure(StatusError(code, _reason(code)))

        if isinstance(value, StatusError):
            logger.warning("rpc %s (id=%r) returned error: %s", request.method, request.id, value)
            return Failure(value)
        return Success(value)

    def _encode(self, response: RPCResponse) -> tuple[RPCResponse, str]:
        try:
            return response, encode(response.to_json())
        except (TypeError, ValueError):
            logger.exception("rpc result for id=%r is not JSON serializable", response.id)
        fallback = RPCResponse.failure(response.id, internal_error())
        return fallback, encode(fallback.to_json())
