"""
rpc-provider - environment-aware remote procedure client for server and browser sessions.

This package provides:
- Lifecycle policy for the query cache (fresh per server request, shared per browser session)
- Batching HTTP transport link with a rich-value JSON transformer
- Provider scope exposing the client pair to descendant code
- FastAPI endpoint and middleware for serving and mounting procedures
"""

__version__ = "0.1.0"
