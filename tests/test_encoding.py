"""
Tests for percent-encoding.
"""

import pytest

from api_connection.encoding import PercentEncoder
from api_connection.exceptions import DecodeError
from api_connection.fields import FormFields
from api_connection.rfc3986 import ALPHA_LOW, DIGITS, QUERY_VALUE, UNRESERVED


class TestEncode:
    """Test PercentEncoder.encode."""

    @pytest.fixture
    def encoder(self):
        return PercentEncoder()

    def test_unreserved_passes_through(self, encoder):
        """Test unreserved printable ASCII is unchanged."""
        text = ALPHA_LOW + DIGITS + "-._~"
        assert encoder.encode(text) == text

    def test_space(self, encoder):
        """Test space becomes %20 by default."""
        assert encoder.encode("x y") == "x%20y"

    def test_query_delimiters_escaped(self, encoder):
        """Test query delimiters are escaped inside a query value."""
        assert encoder.encode("a&b=c?d/e") == "a%26b%3Dc%3Fd%2Fe"

    def test_multibyte_character(self, encoder):
        """Test a multi-byte character emits one escape per byte."""
        assert encoder.encode("é") == "%C3%A9"
        assert encoder.encode("日") == "%E6%97%A5"

    def test_lower_case(self):
        """Test lower case hex digits."""
        encoder = PercentEncoder(lower_case=True)
        assert encoder.encode("é") == "%c3%a9"

    def test_space_as_plus(self):
        """Test space as plus also escapes a literal plus."""
        encoder = PercentEncoder(space_as_plus=True)
        assert encoder.encode("a b+c") == "a+b%2Bc"

    def test_other_charset(self):
        """Test encoding with a single-byte charset."""
        encoder = PercentEncoder(charset="ISO-8859-1")
        assert encoder.encode("é") == "%E9"

    def test_unrepresentable_falls_back_to_utf8(self):
        """Test characters outside the charset still encode."""
        encoder = PercentEncoder(charset="ascii")
        assert encoder.encode("é") == "%C3%A9"

    def test_unreserved_predicate(self):
        """Test an extra predicate widens the unreserved set."""
        encoder = PercentEncoder(unreserved_chars="", unreserved_predicate=str.isalpha)
        assert encoder.encode("ab1") == "ab%31"

    def test_control_characters_escaped(self, encoder):
        """Test non-printable ASCII is escaped even when listed unreserved."""
        encoder = PercentEncoder(unreserved_chars="\t")
        assert encoder.encode("\t") == "%09"

    def test_default_unreserved_set(self, encoder):
        """Test the default unreserved set is the query set minus delimiters."""
        assert encoder.unreserved_chars == QUERY_VALUE
        for char in "?/&=":
            assert char not in QUERY_VALUE

    def test_unknown_charset(self):
        """Test an unknown charset is rejected at construction."""
        with pytest.raises(LookupError):
            PercentEncoder(charset="no-such-charset")


class TestDecode:
    """Test PercentEncoder.decode."""

    @pytest.fixture
    def encoder(self):
        return PercentEncoder()

    @pytest.mark.parametrize(
        "text",
        ["", "plain", "x y", "a&b=c", "é日本", "100% sure", "tab\there", "😀"],
    )
    def test_reverses_encode(self, encoder, text):
        """Test decode(encode(s)) returns s."""
        assert encoder.decode(encoder.encode(text)) == text

    def test_reverses_encode_space_as_plus(self):
        """Test the round trip with space as plus."""
        encoder = PercentEncoder(space_as_plus=True)
        text = "1 + 1 = 2"
        assert encoder.decode(encoder.encode(text)) == text

    def test_plus_kept_by_default(self, encoder):
        """Test '+' is literal unless space_as_plus is set."""
        assert encoder.decode("a+b") == "a+b"

    def test_mixed_case_hex(self, encoder):
        """Test hex digits of either case decode."""
        assert encoder.decode("%c3%A9") == "é"

    def test_truncated_escape(self, encoder):
        """Test an escape cut by the end of input."""
        with pytest.raises(DecodeError) as exc_info:
            encoder.decode("%2")
        assert exc_info.value.position == 0

    def test_invalid_hex(self, encoder):
        """Test non-hex escape digits."""
        with pytest.raises(DecodeError) as exc_info:
            encoder.decode("ab%ZZ")
        assert exc_info.value.position == 2

    def test_invalid_byte_run(self, encoder):
        """Test escaped bytes that are not valid UTF-8."""
        with pytest.raises(DecodeError):
            encoder.decode("%C3")

    def test_non_ascii_copied(self, encoder):
        """Test unescaped non-ASCII characters are copied."""
        assert encoder.decode("é%20x") == "é x"


class TestEncodeMap:
    """Test PercentEncoder.encode_map."""

    def test_mapping(self):
        """Test encoding an ordered mapping."""
        encoder = PercentEncoder()
        assert encoder.encode_map({"q": "x y", "n": 2}) == "q=x%20y&n=2"

    def test_none_values_skipped(self):
        """Test None values are omitted."""
        encoder = PercentEncoder()
        assert encoder.encode_map({"a": None, "b": "1"}) == "b=1"

    def test_pairs(self):
        """Test encoding repeated keys from pairs."""
        encoder = PercentEncoder()
        assert encoder.encode_map([("k", "1"), ("k", "2")]) == "k=1&k=2"

    def test_form_fields_object(self):
        """Test encoding an object implementing FormFields."""

        class Query:
            def form_fields(self):
                return [("name", "Ann Lee", None), ("page", 3, None)]

        assert isinstance(Query(), FormFields)
        assert PercentEncoder().encode_map(Query()) == "name=Ann%20Lee&page=3"

    def test_keys_encoded(self):
        """Test keys are percent-encoded too."""
        assert PercentEncoder().encode_map({"a b": "c"}) == "a%20b=c"

    def test_invalid_params(self):
        """Test unsupported parameter shapes."""
        with pytest.raises(TypeError):
            PercentEncoder().encode_map("a=b")


class TestUnreservedConstants:
    """Test character set constants."""

    def test_unreserved(self):
        """Test the RFC 3986 unreserved set."""
        assert set("-._~") <= set(UNRESERVED)
        assert " " not in UNRESERVED
