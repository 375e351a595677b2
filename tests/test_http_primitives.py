"""
Unit tests for HTTP primitives.

Tests the Request and Response classes and the header multimap helpers
to ensure they work correctly and maintain immutability.
"""

import dataclasses

import pytest

from api_connection.exceptions import ConnectionError
from api_connection.http_primitives import (
    Request,
    Response,
    find_header_name,
    merge_headers,
    normalize_headers,
)
from api_connection.url import Url


class TestHeaderHelpers:
    """Test the header multimap helpers."""

    def test_normalize_mapping(self) -> None:
        """Test a mapping with single and multiple values."""
        headers = normalize_headers({"Accept": "text/html", "X-Tag": ["a", "b"]})
        assert headers == {"Accept": ["text/html"], "X-Tag": ["a", "b"]}

    def test_normalize_pairs_merge_case(self) -> None:
        """Test names differing in case merge under the first spelling."""
        headers = normalize_headers([("X-Tag", "a"), ("x-tag", "b")])
        assert headers == {"X-Tag": ["a", "b"]}

    def test_normalize_bytes(self) -> None:
        """Test byte values are decoded."""
        assert normalize_headers({"A": b"v"}) == {"A": ["v"]}

    def test_find_header_name(self) -> None:
        """Test case-insensitive lookup of the stored spelling."""
        assert find_header_name({"Content-Type": []}, "content-type") == "Content-Type"
        assert find_header_name({}, "content-type") is None

    def test_merge_headers(self) -> None:
        """Test merged values keep the primary values first."""
        merged = merge_headers({"Accept": ["a"]}, {"accept": ["b"], "X-Id": ["1"]})
        assert merged == {"Accept": ["a", "b"], "X-Id": ["1"]}

    def test_merge_does_not_mutate(self) -> None:
        """Test merging leaves its inputs unchanged."""
        primary = {"Accept": ["a"]}
        merge_headers(primary, {"Accept": ["b"]})
        assert primary == {"Accept": ["a"]}


class TestRequest:
    """Test Request class functionality."""

    def test_create_from_string(self, sample_url) -> None:
        """Test creating a request from a URL string."""
        request = Request.create(sample_url, method="post", body="data")
        assert request.url == Url.parse(sample_url)
        assert request.method == "POST"
        assert request.body == b"data"
        assert request.headers == {}

    def test_create_defaults(self) -> None:
        """Test the method is left unset for builders to fill."""
        request = Request.create("https://example.com")
        assert request.method is None
        assert request.body is None
        assert request.body_file is None
        assert request.user_info == {}

    def test_body_file_path(self, tmp_path) -> None:
        """Test body_file is stored as a Path."""
        request = Request.create("https://example.com", body_file=str(tmp_path / "f"))
        assert request.body_file == tmp_path / "f"

    def test_immutability(self) -> None:
        """Test Request cannot be mutated."""
        request = Request.create("https://example.com")
        with pytest.raises(dataclasses.FrozenInstanceError):
            request.method = "GET"

    def test_add_header(self) -> None:
        """Test adding headers returns a new request."""
        request = Request.create("https://example.com", headers={"Accept": "a"})
        new_request = request.add_header("accept", "b")
        assert new_request.get_header_values("Accept") == ["a", "b"]
        assert request.get_header_values("Accept") == ["a"]

    def test_header_access(self) -> None:
        """Test case-insensitive header access."""
        request = Request.create("https://example.com", headers=[("X-Id", "1")])
        assert request.has_header("x-id")
        assert request.get_header("X-ID") == "1"
        assert request.get_header("Missing") is None
        assert request.get_header_values("Missing") == []

    def test_with_methods(self) -> None:
        """Test the with_* helpers."""
        request = Request.create("https://example.com")
        assert request.with_method("put").method == "PUT"
        assert request.with_url("https://other.com/x").url.host == "other.com"
        assert request.with_body(b"b").body == b"b"
        assert request.with_headers({"A": "1"}).headers == {"A": ["1"]}

    def test_invalid_body(self) -> None:
        """Test body type validation."""
        with pytest.raises(ValueError):
            Request(url=Url(host="example.com"), body="text")

    def test_invalid_url(self) -> None:
        """Test URL type validation."""
        with pytest.raises(ValueError):
            Request(url="https://example.com")

    def test_describe(self) -> None:
        """Test the diagnostic snapshot."""
        request = Request.create(
            "https://example.com/a",
            method="POST",
            headers={"Accept": "text/plain"},
            body=b"hello",
            description="extra",
        )
        text = request.describe()
        assert text.splitlines()[0] == "HTTP REQUEST:"
        assert " - URL: https://example.com/a" in text
        assert " - METHOD: POST" in text
        assert '    + "Accept" = "text/plain"' in text
        assert " - BODY BYTES: 5" in text
        assert '"hello"' in text
        assert text.endswith("extra")

    def test_describe_binary_body(self) -> None:
        """Test binary bodies are not previewed."""
        request = Request.create("https://example.com", body=b"\xff\xfe")
        text = request.describe()
        assert " - BODY BYTES: 2" in text
        assert '"' not in text


class TestResponse:
    """Test Response class functionality."""

    def test_create(self) -> None:
        """Test creating a response."""
        response = Response.create(
            200,
            headers=[("Content-Type", "text/plain")],
            body=b"ok",
            origin_url="https://example.com",
            user_info={"id": 1},
        )
        assert response.status_code == 200
        assert response.get_header("content-type") == "text/plain"
        assert response.final_url == "https://example.com"
        assert response.user_info == {"id": 1}
        assert response.error is None

    @pytest.mark.parametrize(
        "status,expected",
        [(200, True), (204, True), (299, True), (199, False), (301, False), (404, False)],
    )
    def test_is_success(self, status, expected) -> None:
        """Test 2xx detection."""
        assert Response.create(status).is_success is expected

    def test_from_error(self) -> None:
        """Test a failure response."""
        error = ConnectionError("refused")
        response = Response.from_error(error, origin_url="https://example.com")
        assert response.error is error
        assert response.status_code is None
        assert response.is_success is False

    def test_invalid_status(self) -> None:
        """Test status code validation."""
        with pytest.raises(ValueError):
            Response(status_code="200")

    def test_describe(self) -> None:
        """Test the diagnostic snapshot."""
        response = Response.create(
            404, body=b"missing", origin_url="https://a.com", final_url="https://b.com"
        )
        text = response.describe()
        assert " - URL (origin): https://a.com" in text
        assert " - URL (final): https://b.com" in text
        assert " - STATUS: 404" in text
        assert '"missing"' in text

    def test_describe_error(self) -> None:
        """Test errors appear in the snapshot."""
        response = Response.from_error(ConnectionError("refused"))
        assert " - ERROR: " in response.describe()
