"""Exception taxonomy for the Argo MCP server."""

from __future__ import annotations

from typing import Any, Dict, Optional


class ArgoMCPError(Exception):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(ArgoMCPError):
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"Configuration error: {message}", context)


class SchemaParseError(ArgoMCPError):
    """Raised when a schema document (or part of it) cannot be interpreted."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(f"Schema parse error: {message}", {**(context or {}), "source": source})
        self.source = source


class ReferenceResolutionError(SchemaParseError):
    def __init__(self, ref: str, source: Optional[str] = None) -> None:
        super().__init__(f"Cannot resolve $ref: {ref}", source, {"ref": ref})
        self.ref = ref


class ArgoAPIError(ArgoMCPError):
    def __init__(
        self,
        message: str,
        status_code: int,
        response: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message, {**(context or {}), "status_code": status_code, "response": response}
        )
        self.status_code = status_code
        self.response = response


class AuthenticationError(ArgoMCPError):
    def __init__(
        self, message: str = "Authentication failed", context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, context)


class ArgoTimeoutError(ArgoMCPError):
    def __init__(
        self, operation: str, timeout_seconds: float, context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            {**(context or {}), "operation": operation, "timeout_seconds": timeout_seconds},
        )


class UnknownOperationError(ArgoMCPError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown operation: {tool_name}", {"tool": tool_name})
        self.tool_name = tool_name


class UnsupportedMethodError(ArgoMCPError):
    def __init__(self, method: str, tool_name: Optional[str] = None) -> None:
        super().__init__(
            f"Unsupported HTTP method: {method}", {"method": method, "tool": tool_name}
        )
        self.method = method


def handle_error(error: BaseException) -> ArgoMCPError:
    """Normalize any exception into an ``ArgoMCPError``."""
    if isinstance(error, ArgoMCPError):
        return error
    return ArgoMCPError(str(error) or type(error).__name__, {"original_error": type(error).__name__})
