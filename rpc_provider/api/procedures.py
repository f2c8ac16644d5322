"""Procedure registry served by the RPC endpoint."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from rpc_provider.errors import ERROR_CODES
from rpc_provider.utils.async_helpers import call_maybe_async

logger = logging.getLogger(__name__)


class ProcedureError(Exception):
    """Raised by a procedure to return a typed error to the caller."""

    def __init__(self, code: str, message: str):
        if code not in ERROR_CODES:
            raise ValueError(f"Unknown error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class Procedure:
    """A registered procedure.

    Attributes:
        path: Dotted name, e.g. "post.by_id".
        type: "query" or "mutation".
        handler: Function called with the deserialized input (async or sync).
    """

    path: str
    type: str
    handler: Callable[..., Any]

    async def call(self, input: Any) -> Any:
        return await call_maybe_async(self.handler, input)


class ProcedureRouter:
    """Registry of query and mutation procedures keyed by dotted path."""

    def __init__(self) -> None:
        self._procedures: Dict[str, Procedure] = {}

    def register(self, procedure: Procedure) -> None:
        """
        Register a procedure.

        Raises:
            ValueError: A procedure with the same path already exists.
        """
        if procedure.type not in ("query", "mutation"):
            raise ValueError(f"Unsupported procedure type: {procedure.type}")
        if procedure.path in self._procedures:
            raise ValueError(f"Procedure '{procedure.path}' already registered")
        self._procedures[procedure.path] = procedure
        logger.debug("Registered %s procedure: %s", procedure.type, procedure.path)

    def query(self, path: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a query procedure."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(Procedure(path=path, type="query", handler=func))
            return func

        return decorator

    def mutation(self, path: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering a mutation procedure."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register(Procedure(path=path, type="mutation", handler=func))
            return func

        return decorator

    def get(self, path: str) -> Optional[Procedure]:
        return self._procedures.get(path)

    def list_paths(self) -> List[str]:
        return sorted(self._procedures)
