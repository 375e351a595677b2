"""
HTTP/1.1 connection implementation for api_connection.

This module implements the HTTP11Connection class that drives one
request/response exchange with h11 over a NetworkStream.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, List, Optional, Sequence, Tuple

import h11

from .exceptions import ConnectionError, ProtocolError, TimeoutError
from .network.stream import NetworkStream

logger = logging.getLogger(__name__)

HeaderPairs = List[Tuple[str, str]]


class ConnectionState(Enum):
    """States of an HTTP/1.1 connection."""
    NEW = "new"                    # Connection created, nothing sent
    SENDING = "sending"            # Request being written
    RECEIVING = "receiving"        # Waiting for or reading the response
    DONE = "done"                  # Response body fully received
    CLOSED = "closed"              # Connection closed, cannot be used


@dataclass
class ResponseHead:
    """Status line and headers of a response, header spelling preserved."""

    status_code: int
    reason: str
    headers: HeaderPairs
    http_version: str = "1.1"

    def get_header(self, name: str) -> Optional[str]:
        name_lower = name.lower()
        for key, value in self.headers:
            if key.lower() == name_lower:
                return value
        return None

    @property
    def content_length(self) -> Optional[int]:
        value = self.get_header("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None


class HTTP11Connection:
    """
    HTTP/1.1 connection for a single exchange.

    The connector opens one connection per request and sends
    ``Connection: close``, so there is no keep-alive handling here.
    """

    # Default configuration
    DEFAULT_READ_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_WRITE_TIMEOUT = 30.0  # 30 seconds
    DEFAULT_READ_SIZE = 65536  # 64KB reads

    def __init__(
        self,
        stream: NetworkStream,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        read_size: Optional[int] = None,
    ):
        """
        Initialize HTTP/1.1 connection.

        Args:
            stream: The NetworkStream to use for communication
            read_timeout: Timeout for each read operation in seconds
            write_timeout: Timeout for each write operation in seconds
            read_size: Maximum bytes requested per read
        """
        self._stream = stream
        self._h11_connection = h11.Connection(h11.CLIENT)
        self._state = ConnectionState.NEW

        self._read_timeout = read_timeout or self.DEFAULT_READ_TIMEOUT
        self._write_timeout = write_timeout or self.DEFAULT_WRITE_TIMEOUT
        self._read_size = read_size or self.DEFAULT_READ_SIZE

        self._bytes_sent = 0
        self._bytes_received = 0

    async def send_request(
        self,
        method: str,
        target: str,
        headers: Sequence[Tuple[Any, Any]],
        body: Optional[bytes] = None,
        body_chunks: Optional[AsyncIterator[bytes]] = None,
    ) -> None:
        """
        Send the request line, headers and body.

        Args:
            method: HTTP method
            target: Origin-form request target
            headers: Header pairs in sending order; must include Host
            body: Body buffer, sent in one piece
            body_chunks: Body source used when ``body`` is None

        Raises:
            ConnectionError: If writing to the stream fails
            ProtocolError: If h11 rejects the request
            TimeoutError: If a write times out
        """
        self._state = ConnectionState.SENDING
        try:
            h11_request = h11.Request(method=method, target=target, headers=list(headers))
        except h11.LocalProtocolError as e:
            self._state = ConnectionState.CLOSED
            raise ProtocolError(f"Invalid request: {e}", cause=e) from e

        await self._send_event(h11_request)

        if body is not None:
            if body:
                await self._send_event(h11.Data(data=body))
        elif body_chunks is not None:
            async for chunk in body_chunks:
                if chunk:
                    await self._send_event(h11.Data(data=chunk))

        await self._send_event(h11.EndOfMessage())
        self._state = ConnectionState.RECEIVING
        logger.debug(f"Sent {method} {target} ({self._bytes_sent} bytes)")

    async def _send_event(self, event: h11.Event) -> None:
        """
        Send an h11 event to the network stream.

        Args:
            event: The h11 event to send
        """
        try:
            data = self._h11_connection.send(event)
        except h11.LocalProtocolError as e:
            self._state = ConnectionState.CLOSED
            raise ProtocolError(str(e), cause=e) from e

        if not data:
            return

        try:
            await asyncio.wait_for(self._stream.write(data), timeout=self._write_timeout)
        except asyncio.TimeoutError:
            self._state = ConnectionState.CLOSED
            raise TimeoutError("Write timed out", self._write_timeout)
        except (OSError, RuntimeError) as e:
            self._state = ConnectionState.CLOSED
            raise ConnectionError(f"Write failed: {e}", cause=e) from e
        self._bytes_sent += len(data)

    async def _read_into_parser(self) -> None:
        try:
            data = await asyncio.wait_for(
                self._stream.read(self._read_size),
                timeout=self._read_timeout,
            )
        except asyncio.TimeoutError:
            self._state = ConnectionState.CLOSED
            raise TimeoutError("Read timed out", self._read_timeout)
        except (OSError, RuntimeError) as e:
            self._state = ConnectionState.CLOSED
            raise ConnectionError(f"Read failed: {e}", cause=e) from e

        self._bytes_received += len(data)
        # An empty read tells h11 the peer closed; it decides whether the
        # message was complete (close-delimited body) or truncated
        self._h11_connection.receive_data(data)

    async def _next_event(self) -> h11.Event:
        while True:
            try:
                event = self._h11_connection.next_event()
            except h11.RemoteProtocolError as e:
                self._state = ConnectionState.CLOSED
                raise ProtocolError(str(e), cause=e) from e

            if event is h11.NEED_DATA:
                await self._read_into_parser()
                continue
            return event

    async def receive_response_head(self) -> ResponseHead:
        """
        Receive the response status line and headers.

        Informational (1xx) responses are skipped.

        Raises:
            ConnectionError: If reading from the stream fails
            ProtocolError: If the response is malformed or the peer closed
            TimeoutError: If a read times out
        """
        while True:
            event = await self._next_event()

            if isinstance(event, h11.InformationalResponse):
                continue

            if isinstance(event, h11.Response):
                headers = [
                    (name.decode("latin-1"), value.decode("latin-1"))
                    for name, value in event.headers.raw_items()
                ]
                head = ResponseHead(
                    status_code=event.status_code,
                    reason=event.reason.decode("latin-1"),
                    headers=headers,
                    http_version=event.http_version.decode("ascii"),
                )
                logger.debug(f"Received response head: {head.status_code} {head.reason}")
                return head

            if isinstance(event, h11.ConnectionClosed):
                self._state = ConnectionState.CLOSED
                raise ProtocolError("Connection closed by server")

            self._state = ConnectionState.CLOSED
            raise ProtocolError(f"Unexpected event: {type(event).__name__}")

    async def iter_body(self) -> AsyncIterator[bytes]:
        """
        Iterate over the response body chunks.

        Raises:
            ConnectionError: If reading from the stream fails
            ProtocolError: If the body is truncated or malformed
            TimeoutError: If a read times out
        """
        while True:
            event = await self._next_event()

            if isinstance(event, h11.Data):
                yield bytes(event.data)
                continue

            if isinstance(event, h11.EndOfMessage):
                self._state = ConnectionState.DONE
                return

            self._state = ConnectionState.CLOSED
            raise ProtocolError("Connection closed before the response body ended")

    async def close(self) -> None:
        """
        Close the connection and cleanup resources.
        """
        self._state = ConnectionState.CLOSED
        if not self._stream.is_closed:
            await self._stream.aclose()
        logger.debug(
            f"Connection closed (sent {self._bytes_sent} bytes, "
            f"received {self._bytes_received} bytes)"
        )

    def abort(self) -> None:
        """Close the underlying stream immediately."""
        self._state = ConnectionState.CLOSED
        self._stream.abort()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        """Check if connection is closed."""
        return self._state == ConnectionState.CLOSED

    @property
    def bytes_sent(self) -> int:
        return self._bytes_sent

    @property
    def bytes_received(self) -> int:
        return self._bytes_received
