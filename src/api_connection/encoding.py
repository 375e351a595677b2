"""
Percent-encoding for api_connection (RFC 3986).

The PercentEncoder escapes every character whose charset rendering is
not a single unreserved printable ASCII byte, and decodes runs of
``%XX`` triplets as a whole so multi-byte characters survive.
"""

import codecs
from typing import Any, Callable, Optional

from .exceptions import DecodeError
from .fields import iter_form_fields
from .rfc3986 import HEX_DIGITS, QUERY_VALUE
from .settings import EncoderSettings


class PercentEncoder:
    """
    Reversible percent-encoder.

    The encoder is configured with a charset, the set of characters that
    are left unescaped, the hex case of escapes and whether a space maps
    to ``+``.
    """

    DEFAULT_CHARSET = "UTF-8"
    DEFAULT_UNRESERVED_CHARS = QUERY_VALUE

    def __init__(
        self,
        charset: Optional[str] = None,
        space_as_plus: bool = False,
        lower_case: bool = False,
        unreserved_chars: Optional[str] = None,
        unreserved_predicate: Optional[Callable[[str], bool]] = None,
    ) -> None:
        """
        Initialize the encoder.

        Args:
            charset: Charset used to render characters (default UTF-8)
            space_as_plus: Encode " " as "+" and decode "+" as " "
            lower_case: Emit lower case hex digits in escapes
            unreserved_chars: Characters that are never escaped
            unreserved_predicate: Extra test for characters that are
                never escaped, e.g. ``str.isalpha``
        """
        self.charset = charset or self.DEFAULT_CHARSET
        # Fail early on unknown charsets
        codecs.lookup(self.charset)
        self.space_as_plus = space_as_plus
        self.lower_case = lower_case
        self.unreserved_chars = (
            self.DEFAULT_UNRESERVED_CHARS if unreserved_chars is None else unreserved_chars
        )
        self.unreserved_predicate = unreserved_predicate

    @classmethod
    def from_settings(cls, settings: EncoderSettings) -> "PercentEncoder":
        """Create an encoder from resolved EncoderSettings."""
        return cls(
            charset=settings.charset,
            space_as_plus=bool(settings.space_as_plus),
            lower_case=bool(settings.lower_case),
            unreserved_chars=settings.unreserved_chars,
            unreserved_predicate=settings.unreserved_predicate,
        )

    def _render(self, char: str) -> bytes:
        try:
            return char.encode(self.charset)
        except UnicodeEncodeError:
            return char.encode("utf-8", "surrogatepass")

    def _is_unreserved(self, char: str) -> bool:
        if char in self.unreserved_chars:
            return True
        if self.unreserved_predicate is not None:
            return bool(self.unreserved_predicate(char))
        return False

    def encode(self, text: str) -> str:
        """
        Percent-encode text.

        Args:
            text: The text to encode

        Returns:
            The encoded text. This never fails.
        """
        hex_format = "%{:02x}" if self.lower_case else "%{:02X}"
        result = []
        for char in text:
            if self.space_as_plus:
                if char == " ":
                    result.append("+")
                    continue
                if char == "+":
                    result.append(hex_format.format(ord("+")))
                    continue

            rendered = self._render(char)
            if (
                len(rendered) == 1
                and 0x20 <= rendered[0] <= 0x7E
                and self._is_unreserved(char)
            ):
                result.append(char)
            else:
                result.extend(hex_format.format(byte) for byte in rendered)
        return "".join(result)

    def decode(self, text: str) -> str:
        """
        Decode percent-encoded text.

        Consecutive escapes are collected into one byte run before
        decoding, because one character may span several triplets.

        Args:
            text: The text to decode

        Returns:
            The decoded text

        Raises:
            DecodeError: If an escape is malformed or truncated, or a byte
                run is not valid in the configured charset
        """
        result = []
        pending = bytearray()
        run_start = 0
        index = 0
        length = len(text)

        while index < length:
            char = text[index]
            if char == "%":
                digits = text[index + 1:index + 3]
                if len(digits) < 2:
                    raise DecodeError("input ends inside an escape", position=index)
                if digits[0] not in HEX_DIGITS or digits[1] not in HEX_DIGITS:
                    raise DecodeError(
                        f"invalid escape '%{digits}'", position=index
                    )
                if not pending:
                    run_start = index
                pending.append(int(digits, 16))
                index += 3
                continue

            if pending:
                result.append(self._flush(pending, run_start))
                pending = bytearray()

            if char == "+" and self.space_as_plus:
                result.append(" ")
            else:
                result.append(char)
            index += 1

        if pending:
            result.append(self._flush(pending, run_start))

        return "".join(result)

    def _flush(self, pending: bytearray, position: int) -> str:
        try:
            return bytes(pending).decode(self.charset)
        except UnicodeDecodeError as e:
            raise DecodeError(
                f"escaped bytes are not valid {self.charset}", position=position, cause=e
            ) from e

    def encode_map(self, params: Any) -> str:
        """
        Encode form parameters as ``key1=value1&key2=value2``.

        Args:
            params: A mapping, an iterable of pairs or a FormFields object.
                ``None`` values are skipped; other values go through ``str()``.

        Returns:
            The encoded parameter string
        """
        parts = []
        for name, value, _ in iter_form_fields(params):
            if value is None:
                continue
            parts.append(f"{self.encode(name)}={self.encode(str(value))}")
        return "&".join(parts)

    def __repr__(self) -> str:
        return (
            f"PercentEncoder(charset={self.charset!r}, "
            f"space_as_plus={self.space_as_plus}, lower_case={self.lower_case})"
        )
