"""HTTP API: procedure endpoint, provider middleware and application factory."""

from rpc_provider.api.procedures import Procedure, ProcedureError, ProcedureRouter
from rpc_provider.api.middleware import RpcProviderMiddleware
from rpc_provider.api.server import create_app

__all__ = ["Procedure", "ProcedureError", "ProcedureRouter", "RpcProviderMiddleware", "create_app"]
