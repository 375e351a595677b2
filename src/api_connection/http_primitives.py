"""
HTTP primitives for api_connection.

This module defines the core data structures for HTTP requests and responses.
All classes are immutable to ensure safe sharing between tasks; request
builders return new Request instances instead of mutating.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .url import Url

# Ordered multimap of header name -> values
Headers = Dict[str, List[str]]
HeadersLike = Union[Mapping[str, Union[str, Iterable[str]]], Iterable[Tuple[str, str]]]
StatusCode = int

# Bytes of a body shown in diagnostics
_PREVIEW_LIMIT = 1024


def normalize_headers(headers: Optional[HeadersLike]) -> Headers:
    """
    Convert header input into the ordered multimap form.

    Accepts a mapping of name to a value or list of values, or an
    iterable of ``(name, value)`` pairs. Names that differ only in case
    are merged under the first spelling seen.
    """
    result: Headers = {}
    if headers is None:
        return result

    if isinstance(headers, Mapping):
        items: Iterable[Tuple[str, Any]] = headers.items()
    else:
        items = headers

    for name, values in items:
        if isinstance(values, (str, bytes)):
            values = [values]
        for value in values:
            if isinstance(value, bytes):
                value = value.decode("latin-1")
            add_header_value(result, str(name), str(value))
    return result


def find_header_name(headers: Mapping[str, Any], name: str) -> Optional[str]:
    """Find the stored spelling of a header name (case-insensitive)."""
    name_lower = name.lower()
    for existing in headers:
        if existing.lower() == name_lower:
            return existing
    return None


def add_header_value(headers: Headers, name: str, value: str) -> None:
    """Append a value to a header multimap in place."""
    existing = find_header_name(headers, name)
    if existing is None:
        headers[name] = [value]
    else:
        headers[existing].append(value)


def merge_headers(primary: Mapping[str, List[str]], secondary: Mapping[str, List[str]]) -> Headers:
    """
    Merge two header multimaps.

    Values are concatenated per header name, ``primary`` values first.
    Header name matching is case-insensitive.
    """
    result: Headers = {name: list(values) for name, values in primary.items()}
    for name, values in secondary.items():
        for value in values:
            add_header_value(result, name, value)
    return result


def _body_preview(body: bytes) -> Optional[str]:
    try:
        return body[:_PREVIEW_LIMIT].decode("utf-8")
    except UnicodeDecodeError:
        return None


def _describe_headers(headers: Headers, lines: List[str]) -> None:
    if not headers:
        return
    lines.append(" - HEADERS:")
    for name, values in headers.items():
        for value in values:
            lines.append(f'    + "{name}" = "{value}"')


def _describe_file(path: Path, lines: List[str]) -> None:
    try:
        size = os.path.getsize(path)
    except OSError:
        size = None
    lines.append(f" - BODY FILE: {os.path.abspath(path)} ({size})")


class _HeaderAccess:
    """Case-insensitive header lookups shared by Request and Response."""

    headers: Headers

    def get_header(self, name: str) -> Optional[str]:
        """Get the first value of a header (case-insensitive)."""
        values = self.get_header_values(name)
        return values[0] if values else None

    def get_header_values(self, name: str) -> List[str]:
        """Get all values of a header (case-insensitive)."""
        existing = find_header_name(self.headers, name)
        return list(self.headers[existing]) if existing is not None else []

    def has_header(self, name: str) -> bool:
        """Check if a header exists (case-insensitive)."""
        return find_header_name(self.headers, name) is not None


@dataclass(frozen=True)
class Request(_HeaderAccess):
    """
    Immutable HTTP request representation.

    A present ``body`` is authoritative over ``body_file``. Once created,
    the request cannot be modified - any changes must create a new
    Request instance.
    """

    url: Url
    method: Optional[str] = None
    headers: Headers = field(default_factory=dict)
    body: Optional[bytes] = None
    body_file: Optional[Path] = None
    user_info: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if not isinstance(self.url, Url):
            raise ValueError("url must be a Url")

        if self.method is not None and not isinstance(self.method, str):
            raise ValueError("method must be str")

        if not isinstance(self.headers, dict):
            raise ValueError("headers must be a dict of lists")

        for name, values in self.headers.items():
            if not isinstance(name, str) or not isinstance(values, list):
                raise ValueError("header names must be str and values lists of str")

        if self.body is not None and not isinstance(self.body, bytes):
            raise ValueError("body must be bytes")

        if self.body_file is not None and not isinstance(self.body_file, Path):
            object.__setattr__(self, "body_file", Path(self.body_file))

    @classmethod
    def create(
        cls,
        url: Union[str, Url],
        method: Optional[str] = None,
        headers: Optional[HeadersLike] = None,
        body: Optional[Union[bytes, str]] = None,
        body_file: Optional[Union[str, "os.PathLike[str]"]] = None,
        user_info: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
    ) -> "Request":
        """
        Create a Request with proper type conversion.

        Args:
            url: URL string or Url
            method: HTTP method (GET, POST, etc.); builders fill it if None
            headers: Mapping or (name, value) pairs
            body: Optional body; strings are encoded as UTF-8
            body_file: Optional path of a file to send as body
            user_info: Free-form caller data carried to the response
            description: Text appended to diagnostics

        Returns:
            New Request instance
        """
        if isinstance(url, str):
            url = Url.parse(url)

        if isinstance(body, str):
            body = body.encode("utf-8")

        return cls(
            url=url,
            method=method.upper() if method else None,
            headers=normalize_headers(headers),
            body=body,
            body_file=Path(body_file) if body_file is not None else None,
            user_info=dict(user_info or {}),
            description=description,
        )

    def replace(self, **changes: Any) -> "Request":
        """Create a new request with some fields changed."""
        return dataclasses.replace(self, **changes)

    def with_method(self, method: str) -> "Request":
        """Create a new request with a different method."""
        return self.replace(method=method.upper())

    def with_url(self, url: Union[str, Url]) -> "Request":
        """Create a new request with a different URL."""
        if isinstance(url, str):
            url = Url.parse(url)
        return self.replace(url=url)

    def with_headers(self, headers: HeadersLike) -> "Request":
        """Create a new request with different headers."""
        return self.replace(headers=normalize_headers(headers))

    def with_body(self, body: Optional[bytes]) -> "Request":
        """Create a new request with a different body."""
        return self.replace(body=body)

    def add_header(self, name: str, value: str) -> "Request":
        """Add a header value to the request."""
        headers = {key: list(values) for key, values in self.headers.items()}
        add_header_value(headers, name, value)
        return self.replace(headers=headers)

    def describe(self) -> str:
        """Render a diagnostic snapshot of the request."""
        lines = ["HTTP REQUEST:"]
        try:
            lines.append(f" - URL: {self.url.build()}")
        except ValueError as e:
            lines.append(f" - URL: <invalid: {e}>")
        if self.method is not None:
            lines.append(f" - METHOD: {self.method}")
        _describe_headers(self.headers, lines)
        if self.body is not None:
            lines.append(f" - BODY BYTES: {len(self.body)}")
            preview = _body_preview(self.body)
            if preview is not None:
                lines.append(f'"{preview}"')
        if self.body_file is not None:
            _describe_file(self.body_file, lines)
        if self.description:
            lines.append(self.description)
        return "\n".join(lines)


@dataclass(frozen=True)
class Response(_HeaderAccess):
    """
    Immutable HTTP response representation.

    A Response always exists after a connector runs. Transport failures
    are carried in ``error``, in which case ``status_code`` is None.
    """

    status_code: Optional[StatusCode] = None
    headers: Headers = field(default_factory=dict)
    body: Optional[bytes] = None
    body_file: Optional[Path] = None
    origin_url: Optional[str] = None
    final_url: Optional[str] = None
    error: Optional[Exception] = None
    user_info: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate response data after initialization."""
        if self.status_code is not None and not isinstance(self.status_code, int):
            raise ValueError("status_code must be int")

        if not isinstance(self.headers, dict):
            raise ValueError("headers must be a dict of lists")

        if self.body is not None and not isinstance(self.body, bytes):
            raise ValueError("body must be bytes")

        if self.error is not None and not isinstance(self.error, BaseException):
            raise ValueError("error must be an exception")

    @classmethod
    def create(
        cls,
        status_code: Optional[StatusCode],
        headers: Optional[HeadersLike] = None,
        body: Optional[bytes] = None,
        body_file: Optional[Union[str, "os.PathLike[str]"]] = None,
        origin_url: Optional[str] = None,
        final_url: Optional[str] = None,
        user_info: Optional[Dict[str, Any]] = None,
    ) -> "Response":
        """
        Create a Response with proper validation.

        Args:
            status_code: HTTP status code
            headers: Mapping or (name, value) pairs
            body: Optional body buffer
            body_file: Optional path of the file holding the body
            origin_url: URL that was requested
            final_url: URL after redirects (defaults to origin_url)
            user_info: Caller data copied from the request

        Returns:
            New Response instance
        """
        return cls(
            status_code=status_code,
            headers=normalize_headers(headers),
            body=body,
            body_file=Path(body_file) if body_file is not None else None,
            origin_url=origin_url,
            final_url=final_url if final_url is not None else origin_url,
            user_info=dict(user_info or {}),
        )

    @classmethod
    def from_error(
        cls,
        error: Exception,
        origin_url: Optional[str] = None,
        user_info: Optional[Dict[str, Any]] = None,
    ) -> "Response":
        """Create a failure response carrying a captured error."""
        return cls(
            error=error,
            origin_url=origin_url,
            user_info=dict(user_info or {}),
        )

    def replace(self, **changes: Any) -> "Response":
        """Create a new response with some fields changed."""
        return dataclasses.replace(self, **changes)

    @property
    def is_success(self) -> bool:
        """True when no error was captured and the status is 2xx."""
        return (
            self.error is None
            and self.status_code is not None
            and 200 <= self.status_code <= 299
        )

    def describe(self) -> str:
        """Render a diagnostic snapshot of the response."""
        lines = ["HTTP RESPONSE:"]
        if self.origin_url is not None:
            lines.append(f" - URL (origin): {self.origin_url}")
        if self.final_url is not None:
            lines.append(f" - URL (final): {self.final_url}")
        if self.status_code is not None:
            lines.append(f" - STATUS: {self.status_code}")
        _describe_headers(self.headers, lines)
        if self.body is not None:
            lines.append(f" - BODY BYTES: {len(self.body)}")
            preview = _body_preview(self.body)
            if preview is not None:
                lines.append(f'"{preview}"')
        if self.body_file is not None:
            _describe_file(self.body_file, lines)
        if self.error is not None:
            lines.append(f" - ERROR: {self.error!r}")
        return "\n".join(lines)
