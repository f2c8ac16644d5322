"""Runtime context classification (per-request server or long-lived browser session)."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Iterator, Optional

from rpc_provider.config import Settings, settings as default_settings


class RuntimeContext(str, Enum):
    """Where the current code is executing."""

    SERVER = "server"  # Per-request, ephemeral
    BROWSER = "browser"  # Persistent session


_current_context: ContextVar[Optional[RuntimeContext]] = ContextVar("rpc_runtime_context", default=None)


def current_runtime_context(settings: Optional[Settings] = None) -> RuntimeContext:
    """Return the bound context, falling back to the configured default."""
    bound = _current_context.get()
    if bound is not None:
        return bound
    return RuntimeContext((settings or default_settings).runtime_context)


@contextmanager
def runtime_context(context: RuntimeContext) -> Iterator[RuntimeContext]:
    """Bind a runtime context for the duration of the block."""
    token = _current_context.set(RuntimeContext(context))
    try:
        yield RuntimeContext(context)
    finally:
        _current_context.reset(token)
