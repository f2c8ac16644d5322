"""FastAPI server hosting the RPC endpoint."""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rpc_provider import __version__
from rpc_provider.api.middleware import RpcProviderMiddleware
from rpc_provider.api.procedures import ProcedureRouter
from rpc_provider.api.routers import status_router
from rpc_provider.api.routers.rpc_router import build_rpc_router
from rpc_provider.config import Settings
from rpc_provider.transport.transformer import RichJSONTransformer

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings,
    procedures: ProcedureRouter,
    transformer: Optional[RichJSONTransformer] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings
        procedures: Procedures served under the RPC endpoint
        transformer: Serializer shared by the endpoint (rich JSON by default)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(title="RPC Provider", description="Batched RPC endpoint with provider mounting", version=__version__)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RpcProviderMiddleware)

    # Store settings and procedures in app state
    app.state.settings = settings
    app.state.procedures = procedures
    app.state.rpc_transport = None

    if not settings.app_url:
        logger.warning("APP_URL is not set; server-side provider scopes will fail to resolve the endpoint")

    # Include routers
    app.include_router(status_router.router)
    app.include_router(build_rpc_router(procedures, transformer))

    logger.info("Serving %d procedure(s): %s", len(procedures.list_paths()), ", ".join(procedures.list_paths()))
    return app
