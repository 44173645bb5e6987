"""
Error types raised while compiling an API description and invoking its tools.

Two phases, two policies:

- Compile time: a single operation whose schema can't be turned into a
  validator raises SpecCompileError. The compiler logs it and skips that
  operation; the rest of the document still compiles.
- Call time: ScopeViolation, APIError and TransportError propagate unchanged
  to whoever invoked the tool. Only the MCP adapter in server.py turns them
  into user-facing text.
"""


class SpecCompileError(Exception):
    """
    Raised when one operation's schema can't be compiled.

    The schema translator doesn't know which operation it is working on, so
    `operation` is filled in by the compiler when it re-raises or logs.

    Attributes:
        reason: What was wrong with the schema node
        operation: The operationId (or "METHOD /path") that failed, if known
    """

    def __init__(self, reason: str, operation: str | None = None):
        self.reason = reason
        self.operation = operation
        if operation:
            super().__init__(f"Failed to compile tool for {operation}: {reason}")
        else:
            super().__init__(reason)


class ScopeViolation(PermissionError):
    """
    Raised when a caller explicitly targets a project or config outside the
    configured scope.

    The message is meant to be shown to the caller as-is.
    """


class ScopeConfigurationError(ValueError):
    """Raised at startup when the explicit scope settings can't be satisfied."""


class APIError(Exception):
    """
    The upstream API answered with a non-success status.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        message: Short, best-effort message extracted from the error body
        details: The raw error body (pretty-printed JSON or text)
    """

    def __init__(self, details: str, message: str, status_code: int):
        self.details = details
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TransportError(APIError):
    """No HTTP response was obtained at all (DNS, connect, TLS, timeout...)."""

    def __init__(self, message: str):
        super().__init__("Network or request error", message, 0)
