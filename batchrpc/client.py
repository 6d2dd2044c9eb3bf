from __future__ import annotations

"""Client-side JSON-RPC batching queue (JSON-RPC 2.0 over HTTP POST).

Calls made before the next scheduling boundary share one physical request:
a bare object for a single call, an array otherwise. Responses are matched
back to callers by id, and every caller's future settles exactly once:

- ``result``                -> future result
- ``error``                 -> StatusError(code, message)
- id missing from response  -> StatusError(500, "did not receive response for some reason")
- transport failure         -> StatusError(500, <transport error message>)

The queue and the pending tables are only touched from the event loop
thread, so no locking is done.
"""

from collections import deque
from collections.abc import Callable
import asyncio
from dataclasses import dataclass
from functools import partial
import itertools
import logging
import random
from typing import Any

import httpx

from batchrpc.config import QueueConfig
from batchrpc.errors import StatusError
from batchrpc.protocol import ID, Failure, RPCRequest, encode, parse_outcome

logger = logging.getLogger("batchrpc.client")

NO_RESPONSE_MESSAGE = "did not receive response for some reason"
MAX_RANDOM_ID = 2**53 - 1

IDSource = Callable[[], ID]
Scheduler = Callable[[Callable[[], None]], Any]
RemoteCall = Callable[..., "asyncio.Future[Any]"]


def random_id() -> int:
    """Draw an id from the JavaScript-safe integer range."""
    return random.randint(0, MAX_RANDOM_ID)


def counter_ids(start: int = 1) -> IDSource:
    return partial(next, itertools.count(start))


def _next_tick(callback: Callable[[], None]) -> Any:
    return asyncio.get_running_loop().call_soon(callback)


@dataclass
class _QueuedCall:
    request: RPCRequest
    future: asyncio.Future[Any]


def _id_key(value: Any) -> Any:
    # True == 1 in Python; a boolean id must never match an integer one.
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return value


def _settle(fut: asyncio.Future[Any], outcome: Any) -> None:
    if fut.done():
        return
    if isinstance(outcome, Failure):
        fut.set_exception(outcome.error)
    else:
        fut.set_result(outcome.value)


def _fail(fut: asyncio.Future[Any], code: int, message: str) -> None:
    if not fut.done():
        fut.set_exception(StatusError(code, message))


class BatchingQueue:
    """Coalesces remote calls into as few HTTP exchanges as possible.

    ``http`` is anything with an async ``post(url, *, content, headers)``
    returning an httpx-style response; by default an ``httpx.AsyncClient``
    owned by the queue is created on first use. ``schedule(callback)`` runs
    ``callback`` at the next scheduling boundary (default: ``loop.call_soon``).
    """

    def __init__(
        self,
        endpoint: str,
        *,
        id_source: IDSource | None = None,
        schedule: Scheduler | None = None,
        http: Any | None = None,
        max_batch_size: int | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ):
        if not endpoint:
            raise ValueError("endpoint is required")
        if max_batch_size is not None and max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")

        self._endpoint = endpoint
        self._id_source = id_source or counter_ids()
        self._schedule = schedule or _next_tick
        self._http = http
        self._owns_http = http is None
        self._max_batch_size = max_batch_size
        self._headers = dict(headers or {})
        self._timeout = timeout

        self._queue: deque[_QueuedCall] = deque()
        self._in_flight: set[Any] = set()
        self._exchanges: set[asyncio.Task[None]] = set()
        self._scheduled = False
        self._closed = False

    @classmethod
    def from_config(cls, config: QueueConfig, **kwargs: Any) -> BatchingQueue:
        return cls(
            config.endpoint,
            max_batch_size=config.max_batch_size,
            headers=config.headers,
            timeout=config.timeout,
            **kwargs,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def pending_count(self) -> int:
        """Number of calls queued or awaiting a response."""
        return len(self._in_flight)

    def make_caller(self, method: str) -> RemoteCall:
        """Return a function that enqueues ``method`` calls.

        Each call returns an ``asyncio.Future`` immediately; it must be made
        from inside a running event loop.
        """
        if not method:
            raise ValueError("method is required")

        def _call(*params: Any) -> asyncio.Future[Any]:
            return self._enqueue(method, list(params))

        _call.__name__ = method
        return _call

    def call(self, method: str, *params: Any) -> asyncio.Future[Any]:
        return self.make_caller(method)(*params)

    async def flush(self) -> None:
        """Send everything queued now and wait for all exchanges to settle."""
        while self._queue or self._exchanges:
            if self._queue:
                self._commit()
            if self._exchanges:
                await asyncio.gather(*list(self._exchanges), return_exceptions=True)

    async def aclose(self) -> None:
        self._closed = True
        await self.flush()
        if self._owns_http and self._http is not None:
            client = self._http
            self._http = None
            await client.aclose()

    async def __aenter__(self) -> BatchingQueue:
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.aclose()

    def _enqueue(self, method: str, params: list[Any]) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[Any] = loop.create_future()

        if self._closed:
            fut.set_exception(StatusError(500, "batching queue is closed"))
            return fut

        req_id = self._id_source()
        key = _id_key(req_id)
        if key is None:
            fut.set_exception(StatusError(500, f"unusable request id {req_id!r}"))
            return fut
        if key in self._in_flight:
            fut.set_exception(StatusError(500, f"duplicate request id {req_id!r}"))
            return fut

        self._in_flight.add(key)
        self._queue.append(_QueuedCall(RPCRequest(id=req_id, method=method, params=params), fut))

        if not self._scheduled:
            self._scheduled = True
            self._schedule(self._commit)
        return fut

    def _commit(self) -> None:
        self._scheduled = False
        if not self._queue:
            return

        limit = self._max_batch_size or len(self._queue)
        batch: list[_QueuedCall] = []
        while self._queue and len(batch) < limit:
            batch.append(self._queue.popleft())

        task = asyncio.get_running_loop().create_task(
            self._exchange(batch),
            name="batchrpc-exchange",
        )
        self._exchanges.add(task)
        task.add_done_callback(self._exchange_done)

    def _exchange_done(self, task: asyncio.Task[None]) -> None:
        self._exchanges.discard(task)
        # Leftovers beyond max_batch_size go out without waiting for a new tick.
        if self._queue and not self._scheduled:
            self._commit()

    async def _exchange(self, batch: list[_QueuedCall]) -> None:
        pending: dict[Any, asyncio.Future[Any]] = {
            _id_key(call.request.id): call.future for call in batch
        }
        requests = [call.request.to_json() for call in batch]
        body = encode(requests[0] if len(requests) == 1 else requests)

        logger.debug("posting %d call(s) to %s", len(batch), self._endpoint)
        try:
            try:
                payload = await self._post(body)
            except asyncio.CancelledError:
                for fut in pending.values():
                    fut.cancel()
                raise
            except StatusError as exc:
                logger.warning("rpc exchange with %s rejected: %s", self._endpoint, exc)
                for fut in pending.values():
                    _fail(fut, exc.code, exc.message)
                return
            except Exception as exc:
                logger.warning("rpc exchange with %s failed: %s", self._endpoint, exc)
                message = str(exc) or exc.__class__.__name__
                for fut in pending.values():
                    _fail(fut, 500, message)
                return

            for item in payload if isinstance(payload, list) else [payload]:
                if not isinstance(item, dict):
                    continue
                fut = pending.pop(_id_key(item.get("id")), None)
                if fut is None:
                    continue
                _settle(fut, parse_outcome(item))

            if pending:
                logger.warning(
                    "rpc exchange with %s left %d call(s) unanswered",
                    self._endpoint,
                    len(pending),
                )
            for fut in pending.values():
                _fail(fut, 500, NO_RESPONSE_MESSAGE)
        finally:
            for call in batch:
                self._in_flight.discard(_id_key(call.request.id))

    async def _post(self, body: str) -> Any:
        headers = {**self._headers, "Content-Type": "application/json"}
        response = await self._client().post(self._endpoint, content=body, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            status = int(getattr(response, "status_code", 0) or 0)
            if status >= 400:
                text = str(getattr(response, "text", "") or "").strip()
                raise StatusError(status, text or f"HTTP {status}") from exc
            raise

    def _client(self) -> Any:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        return self._http
