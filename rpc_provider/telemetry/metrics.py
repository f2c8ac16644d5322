"""Prometheus metrics for monitoring the RPC transport and query cache."""

from prometheus_client import Counter, Histogram

# Lifecycle metrics
query_clients_created_total = Counter(
    'query_clients_created_total',
    'Total number of query clients created by the lifecycle policy',
    ['context'],
)

# Transport metrics
rpc_batches_sent_total = Counter(
    'rpc_batches_sent_total',
    'Total number of batched HTTP requests sent',
    ['type'],
)

rpc_batch_size = Histogram(
    'rpc_batch_size',
    'Number of calls coalesced into one HTTP request',
    ['type'],
    buckets=[1, 2, 4, 8, 16, 32, 64],
)

rpc_calls_total = Counter(
    'rpc_calls_total',
    'Total number of procedure calls resolved by the batch link',
    ['type', 'status'],
)

# Cache metrics
query_cache_hits_total = Counter('query_cache_hits_total', 'Total query cache hits')

query_cache_misses_total = Counter('query_cache_misses_total', 'Total query cache misses')

# Server metrics
procedure_calls_total = Counter(
    'procedure_calls_total',
    'Total number of procedure calls served',
    ['type', 'status'],
)
