"""
Tests for the HTTP/1.1 connector.

The connector runs against MockNetworkBackend, which serves one queued
raw response per connection.
"""

import asyncio

import pytest

from api_connection.connector import HTTP11Connector, ProgressInfo
from api_connection.exceptions import (
    ConnectionError,
    ProtocolError,
    ResourceError,
    TimeoutError,
)
from api_connection.http_primitives import Request


@pytest.fixture
def connector(mock_backend):
    """Create a connector on the mock backend."""
    return HTTP11Connector(backend=mock_backend)


class TestBasicExchange:
    """Test single request/response exchanges."""

    @pytest.mark.asyncio
    async def test_get(self, connector, mock_backend, http_response):
        """Test a GET request and its response."""
        mock_backend.add_response(
            "example.com", 80,
            http_response(body=b"hello", headers=[("Content-Type", "text/plain")]),
        )
        request = Request.create("http://example.com/a?b=1", user_info={"id": 7})

        response = await connector.perform(None, request)

        assert response.error is None
        assert response.status_code == 200
        assert response.body == b"hello"
        assert response.get_header("content-type") == "text/plain"
        assert response.origin_url == "http://example.com/a?b=1"
        assert response.final_url == "http://example.com/a?b=1"
        assert response.user_info == {"id": 7}

        written = mock_backend.get_connection("example.com", 80).written_data
        assert written.startswith(b"GET /a?b=1 HTTP/1.1\r\n")
        assert b"host: example.com\r\n" in written.lower()
        assert b"connection: close\r\n" in written.lower()
        assert mock_backend.connect_timeouts == [connector.connect_timeout]

    @pytest.mark.asyncio
    async def test_connection_closed(self, connector, mock_backend, http_response):
        """Test the connection is closed after the exchange."""
        mock_backend.add_response("example.com", 80, http_response())
        await connector.perform(None, Request.create("http://example.com"))
        assert mock_backend.get_connection("example.com", 80).is_closed

    @pytest.mark.asyncio
    async def test_https(self, connector, mock_backend, http_response):
        """Test https connects to port 443 with an SSL context."""
        mock_backend.add_response("example.com", 443, http_response())
        response = await connector.perform(None, Request.create("https://example.com"))
        assert response.status_code == 200
        stream = mock_backend.get_connection("example.com", 443)
        assert stream.get_extra_info("ssl_object") is True

    @pytest.mark.asyncio
    async def test_explicit_port(self, connector, mock_backend, http_response):
        """Test the Host header carries a non-default port."""
        mock_backend.add_response("localhost", 8080, http_response())
        await connector.perform(None, Request.create("http://localhost:8080/x"))
        written = mock_backend.get_connection("localhost", 8080).written_data
        assert b"host: localhost:8080\r\n" in written.lower()

    @pytest.mark.asyncio
    async def test_ipv6_host(self, connector, mock_backend, http_response):
        """Test an IPv6 literal connects bare and is bracketed in URLs."""
        mock_backend.add_response("::1", 8080, http_response(body=b"v6"))

        response = await connector.perform(None, Request.create("http://[::1]:8080/x"))

        assert response.body == b"v6"
        assert response.origin_url == "http://[::1]:8080/x"
        written = mock_backend.get_connection("::1", 8080).written_data
        assert b"host: [::1]:8080\r\n" in written.lower()

    @pytest.mark.asyncio
    async def test_ipv6_redirect(self, connector, mock_backend, http_response):
        """Test a relative redirect on an IPv6 host keeps a valid URL."""
        mock_backend.add_response(
            "::1", 80, http_response(302, "Found", headers=[("Location", "/next")])
        )
        mock_backend.add_response("::1", 80, http_response())

        response = await connector.perform(None, Request.create("http://[::1]/start"))

        assert response.status_code == 200
        assert response.final_url == "http://[::1]/next"

    @pytest.mark.asyncio
    async def test_post_body(self, connector, mock_backend, http_response):
        """Test the body and its Content-Length are sent."""
        mock_backend.add_response("example.com", 80, http_response(status=201, reason="Created"))
        request = Request.create("http://example.com/items", method="POST", body=b"payload")

        response = await connector.perform(None, request)

        assert response.status_code == 201
        written = mock_backend.get_connection("example.com", 80).written_data
        assert b"content-length: 7\r\n" in written.lower()
        assert written.endswith(b"\r\n\r\npayload")

    @pytest.mark.asyncio
    async def test_body_file(self, connector, mock_backend, http_response, tmp_path):
        """Test a body file is streamed."""
        path = tmp_path / "upload.bin"
        path.write_bytes(b"file body")
        mock_backend.add_response("example.com", 80, http_response())
        request = Request.create("http://example.com/up", method="PUT", body_file=path)

        await connector.perform(None, request)

        written = mock_backend.get_connection("example.com", 80).written_data
        assert b"content-length: 9\r\n" in written.lower()
        assert written.endswith(b"\r\n\r\nfile body")

    @pytest.mark.asyncio
    async def test_caller_headers_win(self, connector, mock_backend, http_response):
        """Test caller headers replace the defaults of the same name."""
        mock_backend.add_response("example.com", 80, http_response())
        request = Request.create(
            "http://example.com", headers={"Host": "virtual.example.com", "X-Id": "1"}
        )
        await connector.perform(None, request)
        written = mock_backend.get_connection("example.com", 80).written_data.lower()
        assert written.count(b"host:") == 1
        assert b"host: virtual.example.com\r\n" in written
        assert b"x-id: 1\r\n" in written

    @pytest.mark.asyncio
    async def test_caching_disabled(self, mock_backend, http_response):
        """Test Cache-Control is sent when caching is disabled."""
        connector = HTTP11Connector(enable_caching=False, backend=mock_backend)
        mock_backend.add_response("example.com", 80, http_response())
        await connector.perform(None, Request.create("http://example.com"))
        written = mock_backend.get_connection("example.com", 80).written_data.lower()
        assert b"cache-control: no-cache\r\n" in written


class TestRedirects:
    """Test redirect handling."""

    @pytest.mark.asyncio
    async def test_follow(self, connector, mock_backend, http_response):
        """Test a relative redirect is followed."""
        mock_backend.add_response(
            "example.com", 80, http_response(302, "Found", headers=[("Location", "/next")])
        )
        mock_backend.add_response("example.com", 80, http_response(body=b"final"))

        response = await connector.perform(None, Request.create("http://example.com/start"))

        assert response.status_code == 200
        assert response.body == b"final"
        assert response.origin_url == "http://example.com/start"
        assert response.final_url == "http://example.com/next"
        assert len(mock_backend.connections) == 2
        assert mock_backend.connections[1].written_data.startswith(b"GET /next HTTP/1.1")

    @pytest.mark.asyncio
    async def test_other_host(self, connector, mock_backend, http_response):
        """Test an absolute redirect to another host."""
        mock_backend.add_response(
            "example.com", 80,
            http_response(301, "Moved", headers=[("Location", "http://other.com/x")]),
        )
        mock_backend.add_response("other.com", 80, http_response(body=b"moved"))

        response = await connector.perform(None, Request.create("http://example.com/"))

        assert response.body == b"moved"
        assert response.final_url == "http://other.com/x"

    @pytest.mark.asyncio
    async def test_see_other_switches_to_get(self, connector, mock_backend, http_response):
        """Test 303 turns a POST into a GET without body."""
        mock_backend.add_response(
            "example.com", 80, http_response(303, "See Other", headers=[("Location", "/done")])
        )
        mock_backend.add_response("example.com", 80, http_response())
        request = Request.create(
            "http://example.com/form",
            method="POST",
            headers={"Content-Type": "text/plain"},
            body=b"data",
        )

        await connector.perform(None, request)

        second = mock_backend.connections[1].written_data
        assert second.startswith(b"GET /done HTTP/1.1")
        assert b"content-type" not in second.lower()
        assert not second.endswith(b"data")

    @pytest.mark.asyncio
    async def test_temporary_redirect_keeps_method(self, connector, mock_backend, http_response):
        """Test 307 repeats the method and body."""
        mock_backend.add_response(
            "example.com", 80, http_response(307, "Temporary Redirect", headers=[("Location", "/b")])
        )
        mock_backend.add_response("example.com", 80, http_response())
        request = Request.create("http://example.com/a", method="POST", body=b"data")

        await connector.perform(None, request)

        second = mock_backend.connections[1].written_data
        assert second.startswith(b"POST /b HTTP/1.1")
        assert second.endswith(b"\r\n\r\ndata")

    @pytest.mark.asyncio
    async def test_disabled(self, mock_backend, http_response):
        """Test redirects are returned as-is when disabled."""
        connector = HTTP11Connector(redirect=False, backend=mock_backend)
        mock_backend.add_response(
            "example.com", 80, http_response(302, "Found", headers=[("Location", "/next")])
        )
        response = await connector.perform(None, Request.create("http://example.com/"))
        assert response.status_code == 302
        assert response.get_header("Location") == "/next"
        assert len(mock_backend.connections) == 1

    @pytest.mark.asyncio
    async def test_max_redirects(self, mock_backend, http_response):
        """Test the last redirect response is returned past the limit."""
        connector = HTTP11Connector(max_redirects=1, backend=mock_backend)
        for target in ("/one", "/two"):
            mock_backend.add_response(
                "example.com", 80, http_response(302, "Found", headers=[("Location", target)])
            )

        response = await connector.perform(None, Request.create("http://example.com/"))

        assert response.status_code == 302
        assert response.get_header("Location") == "/two"
        assert response.final_url == "http://example.com/one"


class TestBodyDestination:
    """Test storing bodies in files and reporting progress."""

    @pytest.mark.asyncio
    async def test_output_file(self, mock_backend, http_response, tmp_path):
        """Test the body is written to the output file."""
        output = tmp_path / "download.bin"
        connector = HTTP11Connector(output_file=output, backend=mock_backend)
        mock_backend.add_response("example.com", 80, http_response(body=b"file content"))

        response = await connector.perform(None, Request.create("http://example.com/f"))

        assert response.body is None
        assert response.body_file == output
        assert output.read_bytes() == b"file content"

    @pytest.mark.asyncio
    async def test_failed_download_removes_file(self, mock_backend, tmp_path):
        """Test a truncated body leaves no partial file."""
        output = tmp_path / "download.bin"
        connector = HTTP11Connector(output_file=output, backend=mock_backend)
        mock_backend.add_response(
            "example.com", 80, b"HTTP/1.1 200 OK\r\nContent-Length: 100\r\n\r\npartial"
        )

        response = await connector.perform(None, Request.create("http://example.com/f"))

        assert isinstance(response.error, ProtocolError)
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_progress(self, mock_backend, http_response):
        """Test progress reports end with a final report."""
        reports = []
        connector = HTTP11Connector(progress_action=reports.append, backend=mock_backend)
        mock_backend.add_response("example.com", 80, http_response(body=b"abcdef"))

        await connector.perform(None, Request.create("http://example.com/f"))

        assert all(isinstance(info, ProgressInfo) for info in reports)
        assert sum(info.received for info in reports) == 6
        assert reports[0].supposed_size == 6
        assert reports[-1].received == 0
        assert reports[-1].total_received == 6
        assert reports[-1].is_last
        assert not reports[0].is_last

    @pytest.mark.asyncio
    async def test_async_progress(self, mock_backend, http_response):
        """Test an async progress action is awaited."""
        totals = []

        async def progress(info):
            totals.append(info.total_received)

        connector = HTTP11Connector(progress_action=progress, backend=mock_backend)
        mock_backend.add_response("example.com", 80, http_response(body=b"abc"))
        await connector.perform(None, Request.create("http://example.com/f"))
        assert totals[-1] == 3


class TestFailures:
    """Test failures are captured into the response."""

    @pytest.mark.asyncio
    async def test_connect_failure(self, connector, mock_backend):
        """Test a refused connection."""
        mock_backend.fail_connect("example.com", 80, OSError("refused"))

        response = await connector.perform(
            None, Request.create("http://example.com/x", user_info={"k": "v"})
        )

        assert isinstance(response.error, ConnectionError)
        assert response.status_code is None
        assert response.origin_url == "http://example.com/x"
        assert response.user_info == {"k": "v"}
        assert not response.is_success

    @pytest.mark.asyncio
    async def test_connect_timeout(self, mock_backend):
        """Test a connect timeout."""
        connector = HTTP11Connector(connect_timeout=2.0, backend=mock_backend)
        mock_backend.fail_connect("example.com", 80, asyncio.TimeoutError())

        response = await connector.perform(None, Request.create("http://example.com"))

        assert isinstance(response.error, TimeoutError)
        assert response.error.timeout == 2.0

    @pytest.mark.asyncio
    async def test_malformed_response(self, connector, mock_backend):
        """Test a response that is not HTTP."""
        mock_backend.add_response("example.com", 80, b"not http\r\n\r\n")
        response = await connector.perform(None, Request.create("http://example.com"))
        assert isinstance(response.error, ProtocolError)

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self, connector):
        """Test schemes other than http and https."""
        response = await connector.perform(None, Request.create("ftp://example.com/file"))
        assert isinstance(response.error, ProtocolError)

    @pytest.mark.asyncio
    async def test_missing_body_file(self, connector, mock_backend, tmp_path):
        """Test a body file that does not exist."""
        request = Request.create(
            "http://example.com", method="PUT", body_file=tmp_path / "missing.bin"
        )
        response = await connector.perform(None, request)
        assert isinstance(response.error, ResourceError)

    @pytest.mark.asyncio
    async def test_non_latin1_header(self, connector, mock_backend):
        """Test header values that cannot be sent."""
        request = Request.create("http://example.com", headers={"X-Name": "日本"})
        response = await connector.perform(None, request)
        assert isinstance(response.error, ProtocolError)
        assert mock_backend.connections[0].is_closed

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, mock_backend, http_response):
        """Test an exception from a callback is captured, not raised."""
        def progress(info):
            raise ValueError("boom")

        connector = HTTP11Connector(progress_action=progress, backend=mock_backend)
        mock_backend.add_response("example.com", 80, http_response(body=b"x"))

        response = await connector.perform(None, Request.create("http://example.com"))

        assert isinstance(response.error, ValueError)


class TestStop:
    """Test stopping an in-flight request."""

    @pytest.mark.asyncio
    async def test_stop_aborts_connection(self, connector, mock_backend):
        """Test stop() aborts a request waiting for the response."""
        mock_backend.add_response("example.com", 80, b"", hang=True)
        pending = asyncio.create_task(
            connector.perform(None, Request.create("http://example.com"))
        )
        while not mock_backend.connections:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)

        connector.stop()
        response = await asyncio.wait_for(pending, timeout=1.0)

        assert isinstance(response.error, ConnectionError)
        assert mock_backend.connections[0].is_aborted

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, connector):
        """Test stop() without a request is harmless."""
        connector.stop()
        connector.stop()

    def test_repr(self):
        """Test the connector repr."""
        connector = HTTP11Connector(read_timeout=5.0)
        assert "read_timeout=5.0" in repr(connector)
