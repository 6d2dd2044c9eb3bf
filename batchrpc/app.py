from __future__ import annotations

"""FastAPI binding for the JSON-RPC dispatcher."""

from collections.abc import Mapping
import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import Response

from batchrpc.dispatcher import ContextFactory, Dispatcher
from batchrpc.registry import Procedure

logger = logging.getLogger("batchrpc.app")

_DROPPED_HEADERS = {"content-length", "content-type"}


async def read_json_body(request: Request) -> Any:
    """Decode the request body; undecodable input becomes ``None``."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, RecursionError) as exc:
        logger.debug("unparseable rpc body: %s", exc)
        return None


def create_rpc_app(
    procedures: Mapping[str, Procedure],
    context_factory: ContextFactory | None = None,
    *,
    path: str = "/rpc",
    title: str = "batchrpc",
    allow_string_ids: bool = False,
) -> FastAPI:
    """Create a FastAPI app serving ``procedures`` over JSON-RPC at ``path``.

    ``context_factory(request, response)`` receives the FastAPI request and a
    scratch ``Response``; headers it sets on that response are copied to the
    reply. The dispatcher is available as ``app.state.dispatcher``.
    """
    dispatcher = Dispatcher(
        procedures,
        context_factory,
        read_json_body,
        allow_string_ids=allow_string_ids,
    )
    app = FastAPI(title=title)
    app.state.dispatcher = dispatcher

    async def _rpc(request: Request) -> Response:
        outbound = Response()
        physical = await dispatcher.handle(request, outbound)
        extra = {k: v for k, v in outbound.headers.items() if k.lower() not in _DROPPED_HEADERS}
        return Response(
            content=physical.body,
            status_code=physical.status,
            media_type=physical.content_type,
            headers=extra,
        )

    # Routed without a method list so the dispatcher, not the framework, answers 405.
    app.add_route(path, _rpc, include_in_schema=False)
    return app
