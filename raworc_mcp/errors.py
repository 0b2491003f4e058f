from typing import Optional


class RaworcError(Exception):
    """Base class for every error the adapter reports back to a client."""

    prefix = "Error"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.prefix}: {self.detail}"


class HttpError(RaworcError):
    prefix = "HTTP request failed"


class SerializationError(RaworcError):
    prefix = "JSON serialization/deserialization failed"


class AuthError(RaworcError):
    prefix = "Authentication failed"


class ApiError(RaworcError):
    prefix = "API error"

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class NotFoundError(RaworcError):
    prefix = "Resource not found"


class ConfigError(RaworcError):
    prefix = "Invalid configuration"


class ValidationError(RaworcError):
    prefix = "Invalid input"


class RequestTimeout(RaworcError):
    prefix = "Timeout error"


class McpError(RaworcError):
    prefix = "MCP protocol error"


class UnknownToolError(McpError):
    def __init__(self, name: Optional[str]):
        super().__init__(f"Unknown tool: {name}")
        self.name = name
