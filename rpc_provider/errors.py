"""Error types and JSON-RPC error codes shared by the client and the endpoint."""

from typing import Any, Dict, Optional

# Error code name -> (JSON-RPC code, HTTP status)
ERROR_CODES: Dict[str, tuple] = {
    "PARSE_ERROR": (-32700, 400),
    "BAD_REQUEST": (-32600, 400),
    "INTERNAL_SERVER_ERROR": (-32603, 500),
    "UNAUTHORIZED": (-32001, 401),
    "FORBIDDEN": (-32003, 403),
    "NOT_FOUND": (-32004, 404),
    "METHOD_NOT_SUPPORTED": (-32005, 405),
    "TIMEOUT": (-32008, 408),
    "CONFLICT": (-32009, 409),
    "PRECONDITION_FAILED": (-32012, 412),
    "PAYLOAD_TOO_LARGE": (-32013, 413),
    "UNPROCESSABLE_CONTENT": (-32022, 422),
    "TOO_MANY_REQUESTS": (-32029, 429),
    "CLIENT_CLOSED_REQUEST": (-32099, 499),
}

_NAMES_BY_JSON_RPC_CODE = {code: name for name, (code, _status) in ERROR_CODES.items()}


def json_rpc_code(name: str) -> int:
    return ERROR_CODES.get(name, ERROR_CODES["INTERNAL_SERVER_ERROR"])[0]


def http_status(name: str) -> int:
    return ERROR_CODES.get(name, ERROR_CODES["INTERNAL_SERVER_ERROR"])[1]


def error_shape(name: str, message: str, path: Optional[str] = None) -> Dict[str, Any]:
    """Build the error object placed under ``"error"`` in a response item."""
    data: Dict[str, Any] = {"code": name, "httpStatus": http_status(name)}
    if path is not None:
        data["path"] = path
    return {"message": message, "code": json_rpc_code(name), "data": data}


class RpcClientError(Exception):
    """A remote call failed, either on the wire or inside the procedure."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_SERVER_ERROR",
        http_status: Optional[int] = None,
        path: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.json_rpc_code = json_rpc_code(code)
        self.http_status = http_status
        self.path = path
        self.data = data or {}

    @classmethod
    def from_shape(cls, shape: Any, path: Optional[str] = None) -> "RpcClientError":
        """Create an error from a deserialized error shape of a response item."""
        if not isinstance(shape, dict):
            return cls(f"Malformed error response: {shape!r}", path=path)
        data = shape.get("data") if isinstance(shape.get("data"), dict) else {}
        name = data.get("code") or _NAMES_BY_JSON_RPC_CODE.get(shape.get("code"), "INTERNAL_SERVER_ERROR")
        return cls(
            str(shape.get("message", "Unknown error")),
            code=name,
            http_status=data.get("httpStatus"),
            path=data.get("path", path),
            data=data,
        )

    def __repr__(self) -> str:
        return f"RpcClientError(code={self.code!r}, path={self.path!r}, message={self.message!r})"


class ProviderScopeError(RuntimeError):
    """The lookup hook was used outside of any provider scope."""


class ConfigurationError(ValueError):
    """A required configuration value is missing."""
