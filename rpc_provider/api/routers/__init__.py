"""Router initialization.

This module re-exports router modules so they can be imported both as FastAPI
routers and as modules for testing/monkeypatching.
"""

from . import status_router
from . import rpc_router

__all__ = [
    "status_router",
    "rpc_router",
]
