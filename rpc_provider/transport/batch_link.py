"""HTTP link that coalesces calls issued in the same event loop tick."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Union

import httpx

from rpc_provider.errors import RpcClientError
from rpc_provider.telemetry.metrics import rpc_batch_size, rpc_batches_sent_total, rpc_calls_total
from rpc_provider.transport.links import Forward, Link, Operation
from rpc_provider.transport.transformer import RichJSONTransformer

logger = logging.getLogger(__name__)

HeadersOption = Union[Dict[str, str], Callable[[List[Operation]], Dict[str, str]], None]


@dataclass
class _PendingCall:
    op: Operation
    future: asyncio.Future
    # Serialized input, or None when the operation has no input
    encoded: Optional[Dict[str, Any]] = None


class HttpBatchLink(Link):
    """
    Terminating link sending queued operations as batched HTTP requests.

    Every call made before the event loop gets back to its scheduler lands in
    the same flush. On flush, queries are sent as one ``GET`` and mutations as
    one ``POST`` (split further only by ``max_items`` / ``max_url_length``).
    """

    def __init__(
        self,
        url: str,
        transformer: Optional[RichJSONTransformer] = None,
        max_items: Optional[int] = None,
        max_url_length: Optional[int] = None,
        headers: HeadersOption = None,
        timeout: float = 10.0,
        base_url: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the batch link.

        Args:
            url: Endpoint URL, absolute or relative to base_url
            transformer: Serializer applied to inputs and results
            max_items: Maximum operations per HTTP request (None = unlimited)
            max_url_length: Maximum length of a query URL (None = unlimited)
            headers: Extra headers, or a callable building them from the batch
            timeout: Request timeout in seconds
            base_url: Origin used to resolve a relative url
            transport: Optional httpx transport (e.g. ASGI or mock transport)
        """
        self.url = url.rstrip("/")
        self.transformer = transformer or RichJSONTransformer()
        self.max_items = max_items
        self.max_url_length = max_url_length
        self.headers = headers

        client_kwargs: Dict[str, Any] = {"timeout": timeout}
        if base_url:
            client_kwargs["base_url"] = base_url
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.AsyncClient(**client_kwargs)

        self._pending: Dict[str, List[_PendingCall]] = {"query": [], "mutation": []}
        self._flush_scheduled = False
        self._tasks: Set[asyncio.Task] = set()

    async def request(self, op: Operation, forward: Optional[Forward] = None) -> Any:
        if op.type == "subscription":
            raise RpcClientError(
                "Subscriptions are not supported by the batch link",
                code="METHOD_NOT_SUPPORTED",
                path=op.path,
            )

        # Serialize up front so a bad input fails only its own call
        encoded = self.transformer.serialize(op.input) if op.input is not None else None

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending[op.type].append(_PendingCall(op, future, encoded))
        if not self._flush_scheduled:
            self._flush_scheduled = True
            loop.call_soon(self._flush)
        return await future

    async def aclose(self) -> None:
        """Send queued calls, wait for in-flight batches and close the HTTP client."""
        if any(self._pending.values()):
            self._flush()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.client.aclose()

    def _flush(self) -> None:
        self._flush_scheduled = False
        for op_type, calls in self._pending.items():
            live = [call for call in calls if not call.future.done()]
            self._pending[op_type] = []
            for batch in self._split(op_type, live):
                task = asyncio.ensure_future(self._dispatch(op_type, batch))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    def _split(self, op_type: str, calls: List[_PendingCall]) -> List[List[_PendingCall]]:
        batches: List[List[_PendingCall]] = []
        current: List[_PendingCall] = []
        for call in calls:
            candidate = current + [call]
            too_many = self.max_items is not None and len(candidate) > self.max_items
            too_long = (
                self.max_url_length is not None
                and op_type == "query"
                and len(self._build_url(op_type, candidate)) > self.max_url_length
            )
            if current and (too_many or too_long):
                batches.append(current)
                current = [call]
            else:
                current = candidate
        if current:
            batches.append(current)
        return batches

    def _encode_inputs(self, calls: List[_PendingCall]) -> Dict[str, Any]:
        return {str(index): call.encoded for index, call in enumerate(calls) if call.encoded is not None}

    def _build_url(self, op_type: str, calls: List[_PendingCall]) -> str:
        params = {"batch": "1"}
        if op_type == "query":
            inputs = self._encode_inputs(calls)
            if inputs:
                params["input"] = json.dumps(inputs, separators=(",", ":"))
        paths = ",".join(call.op.path for call in calls)
        return str(httpx.URL(f"{self.url}/{paths}", params=params))

    def _build_headers(self, calls: List[_PendingCall]) -> Dict[str, str]:
        if callable(self.headers):
            return dict(self.headers([call.op for call in calls]))
        return dict(self.headers or {})

    async def _dispatch(self, op_type: str, calls: List[_PendingCall]) -> None:
        try:
            await self._send(op_type, calls)
        except Exception as e:
            logger.error(f"Error dispatching {op_type} batch: {e}")
            self._reject_all(calls, e, RpcClientError(f"Batch dispatch failed: {e}", code="INTERNAL_SERVER_ERROR"))

    async def _send(self, op_type: str, calls: List[_PendingCall]) -> None:
        url = self._build_url(op_type, calls)
        headers = self._build_headers(calls)
        rpc_batches_sent_total.labels(type=op_type).inc()
        rpc_batch_size.labels(type=op_type).observe(len(calls))
        logger.debug("Dispatching %s batch of %d call(s) to %s", op_type, len(calls), url)

        try:
            if op_type == "query":
                response = await self.client.get(url, headers=headers)
            else:
                response = await self.client.post(url, json=self._encode_inputs(calls), headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error sending {op_type} batch to {url}: {e}")
            self._reject_all(calls, e, RpcClientError(f"Request to {url} failed: {e}", code="INTERNAL_SERVER_ERROR"))
            return

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Non-JSON response ({response.status_code}) from {url}")
            error = RpcClientError(
                f"Unexpected non-JSON response with status {response.status_code}",
                code="PARSE_ERROR",
                http_status=response.status_code,
            )
            self._reject_all(calls, e, error)
            return

        if not isinstance(payload, list) or len(payload) != len(calls):
            # A whole-request failure comes back as a single error item
            shape = payload.get("error") if isinstance(payload, dict) else None
            if shape is not None:
                error = RpcClientError.from_shape(self._deserialize_quietly(shape))
            else:
                error = RpcClientError(
                    f"Expected {len(calls)} result(s) from batch, got {payload!r}",
                    code="PARSE_ERROR",
                    http_status=response.status_code,
                )
            self._reject_all(calls, None, error)
            return

        for call, item in zip(calls, payload):
            self._settle(call, item)

    def _settle(self, call: _PendingCall, item: Any) -> None:
        if call.future.done():
            return
        op = call.op
        try:
            if isinstance(item, dict) and "error" in item:
                error = RpcClientError.from_shape(self.transformer.deserialize(item["error"]), path=op.path)
                rpc_calls_total.labels(type=op.type, status="error").inc()
                call.future.set_exception(error)
                return
            result = (item or {}).get("result") or {}
            data = self.transformer.deserialize(result["data"]) if "data" in result else None
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            rpc_calls_total.labels(type=op.type, status="error").inc()
            error = RpcClientError(f"Malformed response item for {op.path}: {e}", code="PARSE_ERROR", path=op.path)
            error.__cause__ = e
            call.future.set_exception(error)
            return
        rpc_calls_total.labels(type=op.type, status="success").inc()
        call.future.set_result(data)

    def _deserialize_quietly(self, shape: Any) -> Any:
        try:
            return self.transformer.deserialize(shape)
        except (ValueError, TypeError, KeyError):
            return shape

    @staticmethod
    def _reject_all(calls: List[_PendingCall], cause: Optional[BaseException], error: RpcClientError) -> None:
        for call in calls:
            if call.future.done():
                continue
            per_call = RpcClientError(
                error.message,
                code=error.code,
                http_status=error.http_status,
                path=call.op.path,
                data=error.data,
            )
            per_call.__cause__ = cause
            rpc_calls_total.labels(type=call.op.type, status="error").inc()
            call.future.set_exception(per_call)
