"""
Default HTTP/1.1 connector for api_connection.

The connector opens one connection per request through a NetworkBackend,
speaks HTTP/1.1 with h11, optionally follows redirects and stores the
response body in memory or in a file. Transport failures are never
raised; they are captured into ``Response.error``.
"""

import asyncio
import inspect
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable, List, Optional, Tuple, Union
from urllib.parse import urljoin

from .contracts import Connector
from .encoding import PercentEncoder
from .exceptions import (
    APIConnectionError,
    ConnectionError,
    ProtocolError,
    ResourceError,
    TimeoutError,
)
from .http11 import HTTP11Connection, ResponseHead
from .http_primitives import Headers, Request, Response, find_header_name
from .network.asyncio_backend import AsyncioNetworkBackend
from .network.backend import NetworkBackend
from .network.utils import create_ssl_context, default_port, format_host_header
from .settings import DEFAULT_CONNECTOR_SETTINGS
from .streams import BodyWriter, iter_file
from .url import Url

if TYPE_CHECKING:
    import ssl

    from .task import Task  # Forward reference

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})

# Headers describing a body, dropped when a redirect switches to GET
_BODY_HEADERS = ("Content-Length", "Content-Type", "Transfer-Encoding")


@dataclass(frozen=True)
class ProgressInfo:
    """
    Download progress of a response body.

    Reported after every received chunk and once more when the body is
    complete, with ``received == 0`` and ``supposed_size`` set to the
    total.
    """

    begin: datetime
    time_interval: float  # seconds since the previous report
    received: int
    total_received: int
    supposed_size: Optional[int]

    @property
    def is_last(self) -> bool:
        return (
            self.received == 0
            and self.supposed_size is not None
            and self.total_received == self.supposed_size
        )


ProgressAction = Callable[[ProgressInfo], Union[None, Awaitable[None]]]


class HTTP11Connector(Connector):
    """
    Connector performing requests over HTTP/1.1.

    A connector tracks the connection of the request it is performing,
    so each task should get its own instance.
    """

    DEFAULT_CONNECT_TIMEOUT = DEFAULT_CONNECTOR_SETTINGS.connect_timeout
    DEFAULT_READ_TIMEOUT = DEFAULT_CONNECTOR_SETTINGS.read_timeout
    DEFAULT_ENABLE_CACHING = DEFAULT_CONNECTOR_SETTINGS.enable_caching
    DEFAULT_REDIRECT = DEFAULT_CONNECTOR_SETTINGS.redirect
    DEFAULT_MAX_REDIRECTS = DEFAULT_CONNECTOR_SETTINGS.max_redirects

    def __init__(
        self,
        output_file: Optional[Union[str, "os.PathLike[str]"]] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        enable_caching: Optional[bool] = None,
        redirect: Optional[bool] = None,
        max_redirects: Optional[int] = None,
        progress_action: Optional[ProgressAction] = None,
        backend: Optional[NetworkBackend] = None,
        ssl_context: Optional["ssl.SSLContext"] = None,
        encoder: Optional[PercentEncoder] = None,
    ):
        """
        Initialize the connector.

        Args:
            output_file: Write the response body to this file instead of memory
            connect_timeout: Timeout for establishing the connection in seconds
            read_timeout: Timeout for each read or write in seconds
            enable_caching: When False, send ``Cache-Control: no-cache``
            redirect: Follow 3xx responses carrying a Location header
            max_redirects: Maximum number of redirects followed
            progress_action: Called with a ProgressInfo after each body chunk
                (sync or async callable)
            backend: Network backend (default: AsyncioNetworkBackend)
            ssl_context: SSL context for https (default: create_ssl_context())
            encoder: Encoder used to render the URL
        """
        self.output_file = Path(output_file) if output_file is not None else None
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else self.DEFAULT_CONNECT_TIMEOUT
        )
        self.read_timeout = read_timeout if read_timeout is not None else self.DEFAULT_READ_TIMEOUT
        self.enable_caching = (
            enable_caching if enable_caching is not None else self.DEFAULT_ENABLE_CACHING
        )
        self.redirect = redirect if redirect is not None else self.DEFAULT_REDIRECT
        self.max_redirects = (
            max_redirects if max_redirects is not None else self.DEFAULT_MAX_REDIRECTS
        )
        self.progress_action = progress_action
        self.backend = backend or AsyncioNetworkBackend()
        self.ssl_context = ssl_context
        self.encoder = encoder or PercentEncoder()

        self._connection: Optional[HTTP11Connection] = None
        self._stopped = False

    async def perform(self, task: "Task", request: Request) -> Response:
        """
        Perform the request, following redirects when enabled.

        Returns:
            The final response, or a failure response carrying the error
        """
        self._stopped = False
        start_time = time.time()
        origin_url: Optional[str] = None

        try:
            origin_url = request.url.build(self.encoder)
            response = await self._perform(request, origin_url)
            logger.debug(
                f"{request.method or 'GET'} {origin_url} -> {response.status_code} "
                f"({time.time() - start_time:.3f}s)"
            )
            return response

        except APIConnectionError as e:
            error: Exception = e
        except asyncio.TimeoutError as e:
            error = TimeoutError("Request timed out", self.read_timeout)
            error.__cause__ = e
        except OSError as e:
            error = ConnectionError(str(e) or type(e).__name__, cause=e)
        except Exception as e:
            error = e

        logger.error(f"Request to {origin_url} failed: {error} ({time.time() - start_time:.3f}s)")
        return Response.from_error(error, origin_url=origin_url, user_info=request.user_info)

    async def _perform(self, request: Request, origin_url: str) -> Response:
        url = request.url
        current_url = origin_url
        method = request.method or "GET"
        headers = request.headers
        body = request.body
        body_file = request.body_file
        redirects = 0

        while True:
            connection = await self._connect(url)
            try:
                head = await self._exchange(connection, url, method, headers, body, body_file)

                location = head.get_header("Location")
                if (
                    self.redirect
                    and head.status_code in REDIRECT_STATUSES
                    and location
                    and redirects < self.max_redirects
                ):
                    redirects += 1
                    url = self._redirect_url(current_url, location)
                    current_url = url.build(self.encoder)
                    if head.status_code == 303 or (
                        head.status_code in (301, 302) and method == "POST"
                    ):
                        method = "GET"
                        body = None
                        body_file = None
                        headers = _without_headers(headers, _BODY_HEADERS)
                    logger.debug(f"Redirect {redirects} ({head.status_code}) to {current_url}")
                    continue

                return await self._read_response(
                    connection, head, origin_url, current_url, request
                )
            finally:
                self._connection = None
                await connection.close()

    async def _connect(self, url: Url) -> HTTP11Connection:
        if self._stopped:
            raise ConnectionError("Request stopped")

        scheme = url.scheme.lower()
        try:
            port = url.port or default_port(scheme)
        except ValueError as e:
            raise ProtocolError(str(e), cause=e) from e

        ssl_context = None
        if scheme == "https":
            ssl_context = self.ssl_context or create_ssl_context()

        host = url.host.strip("/").strip("[]")
        try:
            stream = await self.backend.connect_tcp(
                host, port, timeout=self.connect_timeout, ssl_context=ssl_context
            )
        except asyncio.TimeoutError:
            raise TimeoutError(f"Connecting to {host}:{port} timed out", self.connect_timeout)
        except OSError as e:
            raise ConnectionError(f"Cannot connect to {host}:{port}: {e}", cause=e) from e

        connection = HTTP11Connection(
            stream,
            read_timeout=self.read_timeout,
            write_timeout=self.read_timeout,
        )
        self._connection = connection
        if self._stopped:
            connection.abort()
            raise ConnectionError("Request stopped")
        return connection

    async def _exchange(
        self,
        connection: HTTP11Connection,
        url: Url,
        method: str,
        headers: Headers,
        body: Optional[bytes],
        body_file: Optional[Path],
    ) -> ResponseHead:
        scheme = url.scheme.lower()
        host = url.host.strip("/").strip("[]")
        port = url.port or default_port(scheme)

        body_chunks: Optional[AsyncIterator[bytes]] = None
        content_length: Optional[int] = None
        if body is not None:
            content_length = len(body)
        elif body_file is not None:
            try:
                content_length = await asyncio.to_thread(os.path.getsize, body_file)
            except OSError as e:
                raise ResourceError("Cannot read body file", path=str(body_file), cause=e) from e
            body_chunks = iter_file(body_file)

        pairs = self._header_pairs(headers, host, port, scheme, content_length)
        await connection.send_request(
            method,
            url.target(self.encoder),
            pairs,
            body=body,
            body_chunks=body_chunks,
        )
        return await connection.receive_response_head()

    def _header_pairs(
        self,
        headers: Headers,
        host: str,
        port: int,
        scheme: str,
        content_length: Optional[int],
    ) -> List[Tuple[bytes, bytes]]:
        defaults = [("Host", format_host_header(host, port, scheme)), ("Connection", "close")]
        if content_length is not None:
            defaults.append(("Content-Length", str(content_length)))
        if not self.enable_caching:
            defaults.append(("Cache-Control", "no-cache"))

        pairs = []
        for name, value in defaults:
            if find_header_name(headers, name) is None:
                pairs.append((name, value))
        for name, values in headers.items():
            for value in values:
                pairs.append((name, value))

        try:
            return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in pairs]
        except UnicodeEncodeError as e:
            raise ProtocolError(f"Header is not ISO-8859-1 text: {e.object!r}", cause=e) from e

    def _redirect_url(self, current_url: str, location: str) -> Url:
        try:
            return Url.parse(urljoin(current_url, location), self.encoder)
        except (ValueError, APIConnectionError) as e:
            raise ProtocolError(f"Invalid redirect location: {location}", cause=e) from e

    async def _read_response(
        self,
        connection: HTTP11Connection,
        head: ResponseHead,
        origin_url: str,
        final_url: str,
        request: Request,
    ) -> Response:
        writer = BodyWriter(self.output_file)
        begin = datetime.now()
        last_time = time.monotonic()
        supposed_size = head.content_length
        total = 0

        await writer.open()
        try:
            async for chunk in connection.iter_body():
                await writer.write(chunk)
                total += len(chunk)
                now = time.monotonic()
                await self._report_progress(
                    ProgressInfo(begin, now - last_time, len(chunk), total, supposed_size)
                )
                last_time = now
            await writer.aclose()
        except BaseException:
            writer.discard()
            raise

        await self._report_progress(
            ProgressInfo(begin, time.monotonic() - last_time, 0, total, total)
        )

        return Response.create(
            status_code=head.status_code,
            headers=head.headers,
            body=writer.body,
            body_file=writer.body_file,
            origin_url=origin_url,
            final_url=final_url,
            user_info=request.user_info,
        )

    async def _report_progress(self, info: ProgressInfo) -> None:
        if self.progress_action is None:
            return
        result = self.progress_action(info)
        if inspect.isawaitable(result):
            await result

    def stop(self) -> None:
        """Abort the in-flight connection, if any."""
        self._stopped = True
        connection, self._connection = self._connection, None
        if connection is not None:
            logger.debug("Aborting in-flight connection")
            connection.abort()

    def __repr__(self) -> str:
        return (
            f"HTTP11Connector(output_file={self.output_file!r}, "
            f"connect_timeout={self.connect_timeout}, read_timeout={self.read_timeout}, "
            f"redirect={self.redirect})"
        )


def _without_headers(headers: Headers, names: Tuple[str, ...]) -> Headers:
    drop = {name.lower() for name in names}
    return {name: list(values) for name, values in headers.items() if name.lower() not in drop}

