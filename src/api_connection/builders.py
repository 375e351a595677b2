"""
Request builders for form-url-encoded and JSON bodies.
"""

import logging
from typing import Any, Optional

from .contracts import RequestBuilder
from .encoding import PercentEncoder
from .headers import ContentType
from .http_primitives import Request, add_header_value
from .serialization import JsonSerializer

logger = logging.getLogger(__name__)


def _fill_body_headers(request: Request, content_type: ContentType, length: int) -> dict:
    headers = {name: list(values) for name, values in request.headers.items()}
    if not request.has_header("Content-Type"):
        add_header_value(headers, "Content-Type", content_type.body)
    if not request.has_header("Content-Length"):
        add_header_value(headers, "Content-Length", str(length))
    return headers


class FormUrlEncodedRequestBuilder(RequestBuilder):
    """
    Fill a request with ``application/x-www-form-urlencoded`` data.

    With ``is_body`` the encoded parameters become a POST body, otherwise
    they become the URL query of a GET request. Fields already present
    on the request are left alone.
    """

    def __init__(
        self,
        is_body: bool,
        params: Any,
        encoder: Optional[PercentEncoder] = None,
    ) -> None:
        """
        Args:
            is_body: Put the data into the body (True) or URL query (False)
            params: Mapping, pairs or FormFields object to encode
            encoder: Percent-encoder (default settings if None)
        """
        self.is_body = is_body
        self.params = params
        self.encoder = encoder or PercentEncoder()

    async def fill_request(self, request: Request) -> Request:
        if self.params is None:
            return request

        if self.is_body:
            if request.body is not None or request.body_file is not None:
                return request.replace(method=request.method or "POST")
            body = self.encoder.encode_map(self.params).encode(self.encoder.charset)
            content_type = ContentType.form_url_encoded(self.encoder.charset)
            return request.replace(
                method=request.method or "POST",
                headers=_fill_body_headers(request, content_type, len(body)),
                body=body,
            )

        url = request.url
        if url.query is None:
            url = url.with_query(self.encoder.encode_map(self.params))
        return request.replace(method=request.method or "GET", url=url)

    def clean(self) -> None:
        pass


class JsonBodyRequestBuilder(RequestBuilder):
    """Fill a request with a JSON body, POST by default."""

    def __init__(
        self,
        params: Any,
        serializer: Optional[JsonSerializer] = None,
        charset: str = "UTF-8",
    ) -> None:
        self.params = params
        self.serializer = serializer or JsonSerializer(charset=charset)
        self.charset = charset

    async def fill_request(self, request: Request) -> Request:
        if request.body is not None or request.body_file is not None:
            return request.replace(method=request.method or "POST")

        body = self.serializer.encode(self.params, charset=self.charset)
        logger.debug(f"Encoded JSON body of {len(body)} bytes")
        return request.replace(
            method=request.method or "POST",
            headers=_fill_body_headers(
                request, ContentType.application_json(self.charset), len(body)
            ),
            body=body,
        )

    def clean(self) -> None:
        pass
