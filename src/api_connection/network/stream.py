"""
Network stream interface for api_connection.

This module defines the NetworkStream interface that the HTTP/1.1
connection talks to, so the transport can be swapped for tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class NetworkStream(ABC):
    """
    Interface for network streams with async I/O operations.

    This interface defines the contract that all network stream implementations
    must follow. It provides methods for reading, writing, and managing
    network connections in an asynchronous manner.
    """

    @abstractmethod
    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the stream.

        Args:
            max_bytes: Maximum number of bytes to read.

        Returns:
            The data read from the stream; ``b""`` once the peer closed it.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """
        Write data to the stream.

        Args:
            data: The data to write to the stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If a network error occurs.
        """
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """
        Close the stream and cleanup resources.

        Safe to call more than once.
        """
        pass

    @abstractmethod
    def abort(self) -> None:
        """
        Close the stream immediately, without waiting.

        Used to interrupt an in-flight request from synchronous code.
        Pending reads and writes fail. Safe to call more than once.
        """
        pass

    @abstractmethod
    def get_extra_info(self, name: str) -> Optional[Any]:
        """
        Get extra information about the stream.

        Args:
            name: The name of the information to retrieve. Common values include:
                 - "peername": The remote endpoint address
                 - "sockname": The local endpoint address
                 - "ssl_object": The SSL object of a TLS stream

        Returns:
            The requested information or None if not available.
        """
        pass

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """
        Check if the stream is closed.

        Returns:
            True if the stream is closed, False otherwise.
        """
        pass
