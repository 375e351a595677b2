"""
Streaming helpers for api_connection.

Bodies are moved in bounded chunks so large uploads and downloads never
have to sit in memory as a whole. Blocking file I/O runs in worker
threads so the event loop keeps serving other tasks.
"""

import asyncio
import io
import logging
import os
from pathlib import Path
from typing import AsyncIterator, BinaryIO, List, Optional, Union

from .exceptions import ResourceError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 65536  # 64KB chunks

PathLike = Union[str, "os.PathLike[str]"]


def copy_stream(
    source: BinaryIO,
    destination: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Copy a binary stream into another until the source is exhausted.

    Args:
        source: Readable binary stream
        destination: Writable binary stream
        chunk_size: Maximum bytes read per step

    Returns:
        Number of bytes copied
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    total = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        destination.write(chunk)
        total += len(chunk)
    return total


async def iter_file(
    path: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Iterate over the content of a file in chunks.

    Args:
        path: File to read
        chunk_size: Maximum bytes per chunk

    Yields:
        Non-empty chunks of the file

    Raises:
        ResourceError: If the file cannot be opened or read
    """
    try:
        handle = await asyncio.to_thread(open, path, "rb")
    except OSError as e:
        raise ResourceError("Cannot open body file", path=str(path), cause=e) from e

    try:
        while True:
            try:
                chunk = await asyncio.to_thread(handle.read, chunk_size)
            except OSError as e:
                raise ResourceError("Cannot read body file", path=str(path), cause=e) from e
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


async def read_file(path: PathLike) -> bytes:
    """
    Read an entire file without blocking the event loop.

    Raises:
        ResourceError: If the file cannot be read
    """
    try:
        return await asyncio.to_thread(Path(path).read_bytes)
    except OSError as e:
        raise ResourceError("Cannot read file", path=str(path), cause=e) from e


class BodyWriter:
    """
    Destination of a response body.

    Chunks go to ``output_file`` when one is given, otherwise they are
    collected in memory.
    """

    def __init__(self, output_file: Optional[PathLike] = None) -> None:
        self._output_file = Path(output_file) if output_file is not None else None
        self._chunks: List[bytes] = []
        self._handle: Optional[io.BufferedWriter] = None
        self._bytes_written = 0
        self._closed = False

    async def open(self) -> None:
        """
        Prepare the destination.

        Raises:
            ResourceError: If the output file cannot be created
        """
        if self._output_file is None:
            return
        try:
            self._handle = await asyncio.to_thread(open, self._output_file, "wb")
        except OSError as e:
            raise ResourceError(
                "Cannot open output file", path=str(self._output_file), cause=e
            ) from e

    async def write(self, chunk: bytes) -> None:
        """
        Append a chunk.

        Raises:
            ResourceError: If writing to the output file fails
        """
        if self._closed:
            raise ResourceError("Body writer is closed")

        if self._handle is not None:
            try:
                await asyncio.to_thread(self._handle.write, chunk)
            except OSError as e:
                raise ResourceError(
                    "Cannot write output file", path=str(self._output_file), cause=e
                ) from e
        else:
            self._chunks.append(chunk)
        self._bytes_written += len(chunk)

    async def aclose(self) -> None:
        """Flush and close the destination."""
        if self._closed:
            return
        self._closed = True
        if self._handle is not None:
            try:
                await asyncio.to_thread(self._handle.close)
            except OSError as e:
                raise ResourceError(
                    "Cannot close output file", path=str(self._output_file), cause=e
                ) from e

    def discard(self) -> None:
        """Close and delete a partially written output file."""
        self._closed = True
        if self._handle is not None:
            self._handle.close()
        if self._output_file is not None:
            try:
                self._output_file.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Error removing partial output {self._output_file}: {e}")
        self._chunks.clear()

    @property
    def body(self) -> Optional[bytes]:
        """The collected body when writing to memory."""
        if self._output_file is not None:
            return None
        return b"".join(self._chunks)

    @property
    def body_file(self) -> Optional[Path]:
        """The output file when writing to disk."""
        return self._output_file

    @property
    def bytes_written(self) -> int:
        return self._bytes_written
