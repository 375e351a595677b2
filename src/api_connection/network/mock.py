"""
Mock network implementations for testing.

This module provides mock implementations of NetworkStream and NetworkBackend
that can be used for unit testing without requiring actual network connections.
"""

import asyncio
import ssl
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from .backend import NetworkBackend
from .stream import NetworkStream


class MockNetworkStream(NetworkStream):
    """
    Mock network stream for testing.

    This implementation simulates a network stream in memory,
    allowing tests to verify network behavior without actual I/O.
    With ``hang`` set, reading past the end of the data waits until
    the stream is closed instead of reporting EOF.
    """

    def __init__(self, data: bytes = b"", hang: bool = False):
        """
        Initialize the mock stream.

        Args:
            data: Initial data to be available for reading.
            hang: Block at the end of the data instead of returning EOF.
        """
        self._data = data
        self._position = 0
        self._closed = False
        self._aborted = False
        self._hang = hang
        self._close_event = asyncio.Event()
        self._extra_info: Dict[str, Any] = {}
        self._write_buffer: List[bytes] = []

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        """
        Read data from the mock stream.

        Raises:
            RuntimeError: If the stream is closed.
            OSError: If the stream was aborted while waiting.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")

        if self._position >= len(self._data):
            if not self._hang:
                return b""
            await self._close_event.wait()
            raise OSError("Stream aborted")

        if max_bytes is None:
            result = self._data[self._position:]
            self._position = len(self._data)
        else:
            end = min(self._position + max_bytes, len(self._data))
            result = self._data[self._position:end]
            self._position = end

        return result

    async def write(self, data: bytes) -> None:
        """
        Write data to the mock stream.

        Raises:
            RuntimeError: If the stream is closed.
        """
        if self._closed:
            raise RuntimeError("Stream is closed")

        self._write_buffer.append(data)

    async def aclose(self) -> None:
        """Close the mock stream."""
        self._closed = True
        self._close_event.set()

    def abort(self) -> None:
        """Abort the mock stream."""
        self._aborted = True
        self._closed = True
        self._close_event.set()

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self._extra_info.get(name)

    @property
    def is_closed(self) -> bool:
        """Check if the mock stream is closed."""
        return self._closed

    @property
    def is_aborted(self) -> bool:
        return self._aborted

    @property
    def written_data(self) -> bytes:
        """Get all data that was written to the stream."""
        return b"".join(self._write_buffer)

    def set_extra_info(self, name: str, value: Any) -> None:
        self._extra_info[name] = value

    def add_data(self, data: bytes) -> None:
        """Add data to be available for reading."""
        self._data += data


class MockNetworkBackend(NetworkBackend):
    """
    Mock network backend for testing.

    Responses are queued per ``(host, port)``; every connection takes the
    next queued payload, so a redirect chain is scripted by queuing one
    payload per hop.
    """

    def __init__(self):
        """Initialize the mock backend."""
        self._responses: Dict[Tuple[str, int], Deque[Tuple[bytes, bool]]] = defaultdict(deque)
        self._failures: Dict[Tuple[str, int], Exception] = {}
        self._connections: List[Tuple[Tuple[str, int], MockNetworkStream]] = []
        self.connect_timeouts: List[Optional[float]] = []

    def add_response(self, host: str, port: int, data: bytes, hang: bool = False) -> None:
        """
        Queue the bytes the next connection to ``host:port`` will read.

        Args:
            host: The hostname.
            port: The port number.
            data: Raw HTTP response bytes.
            hang: Keep the connection open after the data.
        """
        self._responses[(host, port)].append((data, hang))

    def fail_connect(self, host: str, port: int, error: Exception) -> None:
        """Make connections to ``host:port`` raise ``error``."""
        self._failures[(host, port)] = error

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> MockNetworkStream:
        """
        Create a mock connection.

        Raises:
            Exception: The error registered with ``fail_connect``.
        """
        key = (host, port)
        self.connect_timeouts.append(timeout)

        if key in self._failures:
            raise self._failures[key]

        queued = self._responses[key]
        data, hang = queued.popleft() if queued else (b"", False)

        stream = MockNetworkStream(data, hang=hang)
        stream.set_extra_info("peername", (host, port))
        stream.set_extra_info("sockname", ("127.0.0.1", 12345))
        stream.set_extra_info("ssl_object", ssl_context is not None)
        self._connections.append((key, stream))
        return stream

    def get_connection(self, host: str, port: int) -> Optional[MockNetworkStream]:
        """Get the latest mock connection to ``host:port``."""
        for key, stream in reversed(self._connections):
            if key == (host, port):
                return stream
        return None

    @property
    def connections(self) -> List[MockNetworkStream]:
        """All streams created, in connection order."""
        return [stream for _, stream in self._connections]

    def reset(self) -> None:
        """Reset all mock connections."""
        self._responses.clear()
        self._failures.clear()
        self._connections.clear()
        self.connect_timeouts.clear()
