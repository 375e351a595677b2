"""
api_connection - asyncio HTTP client toolkit

Tasks run a request through a pluggable pipeline: a request builder
(form-url-encoded, JSON or multipart/form-data), a connector that
performs the exchange over HTTP/1.1, and a response handler. A Session
schedules tasks and carries shared headers and component settings.
"""

__version__ = "0.1.0"
__author__ = "Developer"
__email__ = "dev@example.com"

# Import main components for easy access
from .url import Url
from .encoding import PercentEncoder
from .headers import ContentDisposition, ContentType, HeaderLine
from .http_primitives import Request, Response
from .fields import FormFields
from .contracts import Connector, RequestBuilder, ResponseHandler
from .builders import FormUrlEncodedRequestBuilder, JsonBodyRequestBuilder
from .multipart import (
    MultipartBody,
    MultipartFormDataRequestBuilder,
    MultipartSection,
    build_multipart,
)
from .serialization import JsonSerializer
from .handlers import BasicResponseHandler, JsonResponseHandler
from .connector import HTTP11Connector, ProgressInfo
from .http11 import HTTP11Connection, ConnectionState
from .settings import (
    ConnectorSettings,
    EncoderSettings,
    MultipartSettings,
    UrlSettings,
    resolve_settings,
)
from .task import Task, TaskState
from .session import Session
from .exceptions import (
    APIConnectionError,
    TransportError,
    ConnectionError,
    ProtocolError,
    TimeoutError,
    DecodeError,
    ResourceError,
    SerializationError,
)

__all__ = [
    "Url",
    "PercentEncoder",
    "ContentDisposition",
    "ContentType",
    "HeaderLine",
    "Request",
    "Response",
    "FormFields",
    "Connector",
    "RequestBuilder",
    "ResponseHandler",
    "FormUrlEncodedRequestBuilder",
    "JsonBodyRequestBuilder",
    "MultipartBody",
    "MultipartFormDataRequestBuilder",
    "MultipartSection",
    "build_multipart",
    "JsonSerializer",
    "BasicResponseHandler",
    "JsonResponseHandler",
    "HTTP11Connector",
    "ProgressInfo",
    "HTTP11Connection",
    "ConnectionState",
    "ConnectorSettings",
    "EncoderSettings",
    "MultipartSettings",
    "UrlSettings",
    "resolve_settings",
    "Task",
    "TaskState",
    "Session",
    "APIConnectionError",
    "TransportError",
    "ConnectionError",
    "ProtocolError",
    "TimeoutError",
    "DecodeError",
    "ResourceError",
    "SerializationError",
]
