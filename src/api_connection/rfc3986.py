"""
Character categories from RFC 3986.

These sets decide which characters a PercentEncoder may leave
unescaped in the different URI components.
"""

ALPHA_HIGH = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ALPHA_LOW = "abcdefghijklmnopqrstuvwxyz"
DIGITS = "0123456789"
ALPHA_NUMERIC = ALPHA_HIGH + ALPHA_LOW + DIGITS
HEX_DIGITS = "ABCDEFabcdef" + DIGITS

UNRESERVED = "-._~" + ALPHA_NUMERIC
GEN_DELIMS = ":/?#[]@"
SUB_DELIMS = "!$&'()*+;="
RESERVED = GEN_DELIMS + SUB_DELIMS

SCHEME = "+-." + ALPHA_NUMERIC
USER_INFO = UNRESERVED + SUB_DELIMS + ":"
DOMAIN_NAME = UNRESERVED + SUB_DELIMS
PATH_COMPONENT = UNRESERVED + SUB_DELIMS + "@:"
QUERY = PATH_COMPONENT + "/?"
FRAGMENT = QUERY


def remove_characters(source: str, target: str) -> str:
    """Return ``source`` without any of the characters in ``target``."""
    return "".join(char for char in source if char not in target)


def append_characters(source: str, target: str) -> str:
    """Return ``source`` extended with the characters of ``target`` it lacks."""
    result = source
    for char in target:
        if char not in result:
            result += char
    return result


# Default set for query keys and values: separators must stay escaped.
QUERY_VALUE = remove_characters(QUERY, "?/&=")
