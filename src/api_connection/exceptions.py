"""
Custom exceptions for api_connection.

This module defines the exception hierarchy used throughout
the library. Transport failures are never raised to callers of a
task; connectors capture them into ``Response.error``.
"""

from typing import Optional


class APIConnectionError(Exception):
    """Base exception for all api_connection errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class TransportError(APIConnectionError):
    """Base class for failures of the underlying transport."""


class ConnectionError(TransportError):
    """Raised when there's an error with network connections."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Connection error: {message}", cause)


class ProtocolError(TransportError):
    """Raised when there's an error with HTTP protocol handling."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Protocol error: {message}", cause)


class TimeoutError(TransportError):
    """Raised when an operation times out."""

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        if timeout is not None:
            message = f"{message} (timeout: {timeout}s)"
        super().__init__(f"Timeout error: {message}")
        self.timeout = timeout


class DecodeError(APIConnectionError):
    """Raised when percent-encoded text is malformed."""

    def __init__(
        self,
        message: str,
        position: Optional[int] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        if position is not None:
            message = f"{message} (at index {position})"
        super().__init__(f"Decode error: {message}", cause)
        self.position = position


class ResourceError(APIConnectionError):
    """Raised when reading or writing a body file fails."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(f"Resource error: {message}", cause)
        self.path = path


class SerializationError(APIConnectionError):
    """Raised when a payload cannot be serialized or deserialized."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Serialization error: {message}", cause)
