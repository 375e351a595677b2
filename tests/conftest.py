"""
Pytest configuration for api_connection tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import asyncio
from typing import List, Optional

import pytest
import pytest_asyncio

from api_connection.contracts import Connector, RequestBuilder
from api_connection.http_primitives import Request, Response
from api_connection.network.mock import MockNetworkBackend
from api_connection.session import Session


class FakeConnector(Connector):
    """
    Deterministic connector for task and session tests.

    Records every request it performs and answers with a canned
    response. With ``gate`` set, ``perform`` waits for the event before
    answering so tests can observe a running task.
    """

    def __init__(
        self,
        status_code: int = 200,
        body: bytes = b"",
        headers: Optional[dict] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.error = error
        self.gate = gate
        self.requests: List[Request] = []
        self.stop_calls = 0

    async def perform(self, task, request: Request) -> Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            return Response.from_error(self.error, origin_url=str(request.url))
        return Response.create(
            status_code=self.status_code,
            headers=self.headers,
            body=self.body,
            origin_url=str(request.url),
            user_info=request.user_info,
        )

    def stop(self) -> None:
        self.stop_calls += 1


class RecordingBuilder(RequestBuilder):
    """Request builder that records its calls."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.fill_calls = 0
        self.clean_calls = 0

    async def fill_request(self, request: Request) -> Request:
        self.fill_calls += 1
        if self.error is not None:
            raise self.error
        return request.add_header("X-Filled", "yes")

    def clean(self) -> None:
        self.clean_calls += 1


@pytest.fixture
def fake_connector():
    """Create a fake connector answering 200 OK."""
    return FakeConnector(body=b"ok")


@pytest.fixture
def recording_builder():
    """Create a request builder that records its calls."""
    return RecordingBuilder()


@pytest.fixture
def mock_backend():
    """Create an in-memory network backend."""
    return MockNetworkBackend()


@pytest_asyncio.fixture
async def session(mock_backend):
    """Create a session whose connectors use the mock backend."""
    session = Session(backend=mock_backend)
    yield session
    await session.aclose()


@pytest.fixture
def sample_url():
    """Sample URL for testing."""
    return "https://api.example.com/v1/items"


@pytest.fixture
def http_response():
    """Build raw HTTP/1.1 response bytes."""
    def _build(
        status: int = 200,
        reason: str = "OK",
        body: bytes = b"",
        headers: Optional[List[tuple]] = None,
    ) -> bytes:
        lines = [f"HTTP/1.1 {status} {reason}"]
        header_list = list(headers or [])
        if not any(name.lower() == "content-length" for name, _ in header_list):
            header_list.append(("Content-Length", str(len(body))))
        lines.extend(f"{name}: {value}" for name, value in header_list)
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1") + body
    return _build
