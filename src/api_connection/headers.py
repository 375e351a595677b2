"""
Structured header lines (RFC 2045, RFC 2183, RFC 5322).

This module builds ``Content-Type`` and ``Content-Disposition`` values
with properly quoted parameters, and infers content types from file
names.
"""

import mimetypes
from dataclasses import dataclass
from typing import FrozenSet, Mapping, Optional, Tuple, Union

from .encoding import PercentEncoder
from .rfc3986 import UNRESERVED

MIME_SPECIALS = '()<>@,;:"/[]?.='

Parameters = Tuple[Tuple[str, str], ...]


def should_quote(text: str) -> bool:
    """Check whether a parameter value must be written as a quoted string."""
    return not text or any(char in MIME_SPECIALS or char.isspace() for char in text)


def quote_string(text: str) -> str:
    """Render text as a quoted string."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _as_parameters(
    parameters: Optional[Union[Mapping[str, str], Parameters]],
) -> Parameters:
    if parameters is None:
        return ()
    if isinstance(parameters, Mapping):
        return tuple((str(k), str(v)) for k, v in parameters.items())
    return tuple(parameters)


@dataclass(frozen=True)
class HeaderLine:
    """
    Header field of the form ``name: value; key=param; key2="param 2"``.

    Parameter values are quoted when they contain MIME specials or
    whitespace, or when their key is listed in ``always_quote``.
    """

    name: str
    value: str
    parameters: Parameters = ()
    always_quote: FrozenSet[str] = frozenset()

    @property
    def body(self) -> str:
        """The field body without the name."""
        parts = [self.value]
        for key, param in self.parameters:
            if key in self.always_quote or should_quote(param):
                parts.append(f"{key}={quote_string(param)}")
            else:
                parts.append(f"{key}={param}")
        return "; ".join(parts)

    @property
    def full_line(self) -> str:
        """The complete ``name: body`` line."""
        return f"{self.name}: {self.body}"

    def get_parameter(self, key: str) -> Optional[str]:
        """Get a parameter value by key (case-insensitive)."""
        key = key.lower()
        for name, param in self.parameters:
            if name.lower() == key:
                return param
        return None

    def __str__(self) -> str:
        return self.full_line


class ContentType(HeaderLine):
    """``Content-Type: main/sub; param=value`` header line."""

    PARAM_CHARSET = "charset"
    PARAM_BOUNDARY = "boundary"

    def __init__(
        self,
        main_type: str,
        sub_type: str,
        parameters: Optional[Union[Mapping[str, str], Parameters]] = None,
    ) -> None:
        super().__init__(
            name="Content-Type",
            value=f"{main_type}/{sub_type}",
            parameters=_as_parameters(parameters),
        )

    @property
    def main_type(self) -> str:
        return self.value.split("/", 1)[0]

    @property
    def sub_type(self) -> str:
        return self.value.split("/", 1)[1]

    @property
    def charset(self) -> Optional[str]:
        return self.get_parameter(self.PARAM_CHARSET)

    @classmethod
    def parse(cls, text: str) -> Optional["ContentType"]:
        """
        Parse a Content-Type field body.

        Args:
            text: Value such as ``application/json; charset="utf-8"``

        Returns:
            The parsed ContentType, or None if the media type is malformed
        """
        media_type, _, rest = text.partition(";")
        main_type, slash, sub_type = media_type.strip().partition("/")
        if not slash or not main_type or not sub_type:
            return None

        parameters = []
        for item in rest.split(";"):
            key, equals, value = item.strip().partition("=")
            if not equals or not key:
                continue
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1].replace('\\"', '"').replace("\\\\", "\\")
            parameters.append((key.strip().lower(), value))

        return cls(main_type.lower(), sub_type.lower(), tuple(parameters))

    @classmethod
    def text_plain(cls, charset: str) -> "ContentType":
        return cls("text", "plain", {cls.PARAM_CHARSET: charset})

    @classmethod
    def application_octet_stream(cls) -> "ContentType":
        return cls("application", "octet-stream")

    @classmethod
    def application_json(cls, charset: str) -> "ContentType":
        return cls("application", "json", {cls.PARAM_CHARSET: charset})

    @classmethod
    def form_url_encoded(cls, charset: str) -> "ContentType":
        return cls("application", "x-www-form-urlencoded", {cls.PARAM_CHARSET: charset})

    @classmethod
    def multipart_form_data(cls, boundary: str) -> "ContentType":
        return cls("multipart", "form-data", {cls.PARAM_BOUNDARY: boundary})

    @classmethod
    def for_filename(cls, filename: str) -> Optional["ContentType"]:
        """Infer the content type from a file name's extension."""
        guessed, _ = mimetypes.guess_type(filename, strict=False)
        if guessed is None:
            return None
        main_type, _, sub_type = guessed.partition("/")
        return cls(main_type, sub_type)


class ContentDisposition(HeaderLine):
    """``Content-Disposition`` header line (RFC 2183)."""

    PARAM_NAME = "name"
    PARAM_FILENAME = "filename"

    def __init__(
        self,
        disposition_type: str,
        parameters: Optional[Union[Mapping[str, str], Parameters]] = None,
    ) -> None:
        super().__init__(
            name="Content-Disposition",
            value=disposition_type,
            parameters=_as_parameters(parameters),
            always_quote=frozenset({self.PARAM_NAME, self.PARAM_FILENAME}),
        )

    @property
    def field_name(self) -> Optional[str]:
        return self.get_parameter(self.PARAM_NAME)

    @property
    def filename(self) -> Optional[str]:
        return self.get_parameter(self.PARAM_FILENAME)

    @classmethod
    def form_data(
        cls,
        name: str,
        filename: Optional[str] = None,
        charset: str = "UTF-8",
    ) -> "ContentDisposition":
        """
        Make the disposition of one multipart/form-data section.

        The file name is percent-encoded with the RFC 3986 unreserved
        characters so it is safe in any charset.
        """
        parameters = []
        if name:
            parameters.append((cls.PARAM_NAME, name))
        if filename:
            encoder = PercentEncoder(charset=charset, unreserved_chars=UNRESERVED)
            parameters.append((cls.PARAM_FILENAME, encoder.encode(filename)))
        return cls("form-data", tuple(parameters))
