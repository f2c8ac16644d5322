"""Telemetry and monitoring module."""

from rpc_provider.telemetry.metrics import (
    query_clients_created_total,
    rpc_batches_sent_total,
    rpc_batch_size,
    rpc_calls_total,
    query_cache_hits_total,
    query_cache_misses_total,
    procedure_calls_total,
)

__all__ = [
    "query_clients_created_total",
    "rpc_batches_sent_total",
    "rpc_batch_size",
    "rpc_calls_total",
    "query_cache_hits_total",
    "query_cache_misses_total",
    "procedure_calls_total",
]
