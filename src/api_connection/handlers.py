"""
Built-in response handlers.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, Type, TypeVar, Union

from .contracts import ResponseHandler
from .exceptions import APIConnectionError
from .headers import ContentType
from .http_primitives import Response
from .serialization import JsonSerializer
from .streams import read_file

logger = logging.getLogger(__name__)

S = TypeVar("S")
F = TypeVar("F")

Completion = Callable[[Any], Union[None, Awaitable[None]]]


async def _call_completion(completion: Optional[Completion], handler: Any) -> None:
    if completion is None:
        return
    result = completion(handler)
    if inspect.isawaitable(result):
        await result


def _status_ok(response: Optional[Response]) -> Optional[bool]:
    if response is None:
        return None
    return response.is_success


class BasicResponseHandler(ResponseHandler):
    """
    Store the response and notify a completion callback.

    ``completion`` receives the handler itself and may be a plain
    function or a coroutine function.
    """

    def __init__(self, completion: Optional[Completion] = None) -> None:
        self.completion = completion
        self._response: Optional[Response] = None

    @property
    def response(self) -> Optional[Response]:
        return self._response

    @property
    def is_success(self) -> Optional[bool]:
        """None before a response arrived, else whether it is a 2xx without error."""
        return _status_ok(self._response)

    async def handle_response(self, response: Response) -> None:
        self._response = response
        await _call_completion(self.completion, self)


class JsonResponseHandler(ResponseHandler, Generic[S, F]):
    """
    Decode a JSON response body into typed objects.

    On a 2xx response the body is decoded into ``success_type``; otherwise,
    when ``failure_type`` is given and a body exists, into ``failure_type``.
    Decoding failures are stored in ``json_error`` and never raised.
    """

    DEFAULT_CHARSET = "UTF-8"

    def __init__(
        self,
        success_type: Optional[Type[S]] = None,
        failure_type: Optional[Type[F]] = None,
        serializer: Optional[JsonSerializer] = None,
        completion: Optional[Completion] = None,
    ) -> None:
        self.success_type = success_type
        self.failure_type = failure_type
        self.serializer = serializer or JsonSerializer()
        self.completion = completion
        self._response: Optional[Response] = None
        self._success_object: Optional[S] = None
        self._failure_object: Optional[F] = None
        self._json_error: Optional[Exception] = None

    @property
    def response(self) -> Optional[Response]:
        return self._response

    @property
    def success_object(self) -> Optional[S]:
        return self._success_object

    @property
    def failure_object(self) -> Optional[F]:
        return self._failure_object

    @property
    def json_error(self) -> Optional[Exception]:
        return self._json_error

    @property
    def is_success(self) -> bool:
        """True for a 2xx response whose body decoded cleanly."""
        return bool(_status_ok(self._response)) and self._json_error is None

    def _find_charset(self, response: Response) -> str:
        content_type = response.get_header("Content-Type")
        parsed = ContentType.parse(content_type) if content_type else None
        if parsed is not None and parsed.charset:
            return parsed.charset
        return self.DEFAULT_CHARSET

    async def _read_body(self, response: Response) -> Optional[bytes]:
        if response.body is not None:
            return response.body
        if response.body_file is not None:
            return await read_file(response.body_file)
        return None

    async def handle_response(self, response: Response) -> None:
        self._response = response
        self._success_object = None
        self._failure_object = None
        self._json_error = None

        try:
            if response.is_success:
                payload = await self._read_body(response)
                self._success_object = self.serializer.decode(
                    payload or b"", self.success_type, self._find_charset(response)
                )
            elif self.failure_type is not None and response.error is None:
                payload = await self._read_body(response)
                if payload:
                    self._failure_object = self.serializer.decode(
                        payload, self.failure_type, self._find_charset(response)
                    )
        except APIConnectionError as e:
            logger.debug(f"JSON response decoding failed: {e}")
            self._json_error = e

        await _call_completion(self.completion, self)
