"""Batch-aware HTTP endpoint serving registered procedures."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from rpc_provider.api.procedures import ProcedureError, ProcedureRouter
from rpc_provider.core.endpoint import API_PATH
from rpc_provider.errors import error_shape, http_status
from rpc_provider.telemetry.metrics import procedure_calls_total
from rpc_provider.transport.transformer import RichJSONTransformer

logger = logging.getLogger(__name__)


async def _read_inputs(request: Request, is_batch: bool) -> Any:
    """Parse the raw (still serialized) input from the query string or body."""
    if request.method == "GET":
        raw = request.query_params.get("input")
    else:
        raw = (await request.body()).decode("utf-8") or None
    parsed = json.loads(raw) if raw else None
    if is_batch:
        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ValueError("batch input must be an object keyed by call index")
    return parsed


def _batch_status(statuses: List[int]) -> int:
    if all(status == 200 for status in statuses):
        return 200
    error_statuses = {status for status in statuses if status != 200}
    if len(error_statuses) == 1 and 200 not in statuses:
        return error_statuses.pop()
    return 207


def build_rpc_router(procedures: ProcedureRouter, transformer: Optional[RichJSONTransformer] = None) -> APIRouter:
    """
    Create the router serving procedures under the RPC endpoint path.

    Args:
        procedures: Registered procedures
        transformer: Serializer for inputs and results (rich JSON by default)

    Returns:
        APIRouter handling GET (queries) and POST (mutations)
    """
    transformer = transformer or RichJSONTransformer()
    router = APIRouter()

    def _error(name: str, message: str, path: Optional[str]) -> Tuple[Dict[str, Any], int]:
        return {"error": transformer.serialize(error_shape(name, message, path))}, http_status(name)

    async def _call(path: str, raw_input: Any, expected_type: str) -> Tuple[Dict[str, Any], int]:
        procedure = procedures.get(path)
        if procedure is None:
            return _error("NOT_FOUND", f'No procedure found on path "{path}"', path)
        if procedure.type != expected_type:
            return _error(
                "METHOD_NOT_SUPPORTED",
                f'Unsupported {expected_type} call to {procedure.type} procedure at path "{path}"',
                path,
            )

        try:
            value = transformer.deserialize(raw_input) if raw_input is not None else None
        except (ValueError, TypeError, KeyError, IndexError) as e:
            return _error("BAD_REQUEST", f"Invalid input: {e}", path)

        try:
            data = await procedure.call(value)
            item = {"result": {"data": transformer.serialize(data)}}
        except ProcedureError as e:
            procedure_calls_total.labels(type=procedure.type, status="error").inc()
            return _error(e.code, e.message, path)
        except Exception as e:
            logger.error(f"Error in procedure {path}: {e}")
            procedure_calls_total.labels(type=procedure.type, status="error").inc()
            return _error("INTERNAL_SERVER_ERROR", str(e) or type(e).__name__, path)

        procedure_calls_total.labels(type=procedure.type, status="success").inc()
        return item, 200

    @router.api_route(API_PATH + "/{paths:path}", methods=["GET", "POST"])
    async def handle_rpc(paths: str, request: Request) -> JSONResponse:
        """Serve a single call or a comma-separated batch of calls."""
        is_batch = request.query_params.get("batch") == "1"
        names = paths.split(",") if is_batch else [paths]
        expected_type = "query" if request.method == "GET" else "mutation"

        try:
            inputs = await _read_inputs(request, is_batch)
        except ValueError as e:
            item, status = _error("PARSE_ERROR", f"Unable to parse request input: {e}", None)
            return JSONResponse(status_code=status, content=item)

        results = await asyncio.gather(
            *(
                _call(name, inputs.get(str(index)) if is_batch else inputs, expected_type)
                for index, name in enumerate(names)
            )
        )
        items: List[Dict[str, Any]] = [item for item, _status in results]
        statuses: List[int] = [status for _item, status in results]

        logger.debug("Served %s %s call(s): %s", len(names), expected_type, paths)
        if is_batch:
            return JSONResponse(status_code=_batch_status(statuses), content=items)
        return JSONResponse(status_code=statuses[0], content=items[0])

    return router
