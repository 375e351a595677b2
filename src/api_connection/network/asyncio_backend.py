"""
asyncio stream based network backend.
"""

import asyncio
import logging
import ssl
from typing import Any, Optional

from .backend import NetworkBackend
from .stream import NetworkStream
from .utils import validate_port

logger = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 65536


class AsyncioNetworkStream(NetworkStream):
    """Network stream over an asyncio StreamReader/StreamWriter pair."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.reader = reader
        self.writer = writer
        self.closed = False

    async def read(self, max_bytes: Optional[int] = None) -> bytes:
        if self.closed:
            raise RuntimeError("Stream is closed")
        return await self.reader.read(max_bytes or DEFAULT_READ_SIZE)

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise RuntimeError("Stream is closed")
        self.writer.write(data)
        await self.writer.drain()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            # Peer may already be gone; the transport is closed either way
            logger.debug(f"Error while closing stream: {e}")

    def abort(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.writer.transport.abort()

    def get_extra_info(self, name: str) -> Optional[Any]:
        return self.writer.get_extra_info(name)

    @property
    def is_closed(self) -> bool:
        return self.closed


class AsyncioNetworkBackend(NetworkBackend):
    """Network backend using ``asyncio.open_connection``."""

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> AsyncioNetworkStream:
        port = validate_port(port)
        logger.debug(f"Connecting to {host}:{port} (tls={ssl_context is not None})")
        connect = asyncio.open_connection(
            host,
            port,
            ssl=ssl_context,
            server_hostname=host if ssl_context is not None else None,
        )
        if timeout is not None:
            reader, writer = await asyncio.wait_for(connect, timeout)
        else:
            reader, writer = await connect
        return AsyncioNetworkStream(reader, writer)
