"""
JSON serializer boundary.

Request builders and response handlers exchange opaque byte payloads
with the serializer; turning JSON into typed objects is done here.
"""

import dataclasses
import json
from typing import Any, Callable, Optional

from .exceptions import SerializationError


def _default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonSerializer:
    """
    Encode objects to JSON bytes and decode JSON bytes into types.

    Dataclass instances are encoded through ``dataclasses.asdict``.
    """

    def __init__(
        self,
        charset: str = "UTF-8",
        default: Optional[Callable[[Any], Any]] = None,
        sort_keys: bool = False,
    ) -> None:
        self.charset = charset
        self._default = default or _default
        self._sort_keys = sort_keys

    def encode(self, value: Any, charset: Optional[str] = None) -> bytes:
        """
        Serialize a value into a JSON payload.

        Raises:
            SerializationError: If the value cannot be represented as JSON
        """
        try:
            text = json.dumps(
                value,
                default=self._default,
                ensure_ascii=False,
                sort_keys=self._sort_keys,
            )
            return text.encode(charset or self.charset)
        except (TypeError, ValueError, UnicodeEncodeError) as e:
            raise SerializationError(f"Cannot encode {type(value).__name__}", cause=e) from e

    def decode(
        self,
        payload: bytes,
        type_: Optional[Callable[..., Any]] = None,
        charset: Optional[str] = None,
    ) -> Any:
        """
        Deserialize a JSON payload.

        Args:
            payload: The JSON bytes
            type_: Target type. Dataclasses are built from JSON objects by
                keyword; other callables receive the parsed value; ``None``
                returns the parsed value unchanged.
            charset: Charset of the payload (default: serializer charset)

        Returns:
            The decoded value

        Raises:
            SerializationError: If the payload is not valid JSON or does
                not fit ``type_``
        """
        try:
            data = json.loads(payload.decode(charset or self.charset))
        except (UnicodeDecodeError, LookupError, ValueError) as e:
            raise SerializationError("Invalid JSON payload", cause=e) from e

        if type_ is None:
            return data

        try:
            if dataclasses.is_dataclass(type_):
                if not isinstance(data, dict):
                    raise TypeError(f"expected a JSON object, got {type(data).__name__}")
                names = {f.name for f in dataclasses.fields(type_) if f.init}
                return type_(**{k: v for k, v in data.items() if k in names})
            return type_(data)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Cannot convert JSON into {getattr(type_, '__name__', type_)!s}",
                cause=e,
            ) from e
