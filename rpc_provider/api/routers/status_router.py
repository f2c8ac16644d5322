"""Health and metrics endpoints."""

import logging
import time

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health/live")
async def health_live() -> JSONResponse:
    """
    Liveness probe endpoint.
    Returns 200 if the application is running and responsive.
    """
    return JSONResponse(content={"status": "alive", "timestamp": time.time()})


@router.get("/api/procedures")
async def list_procedures(request: Request) -> JSONResponse:
    """List the registered procedure paths."""
    procedures = request.app.state.procedures
    return JSONResponse(content={"ok": True, "procedures": procedures.list_paths()})


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data = generate_latest()
    return Response(content=metrics_data, media_type=CONTENT_TYPE_LATEST)
