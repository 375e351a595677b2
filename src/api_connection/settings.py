"""
Layered component settings for api_connection.

Every configurable component has a settings dataclass whose fields
are all optional. A concrete value is resolved per field from three
ordered sources: the call-site argument, the settings stored on the
session, and the library default.
"""

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Type, TypeVar

from .rfc3986 import QUERY_VALUE

SettingsT = TypeVar("SettingsT")


@dataclass(frozen=True)
class UrlSettings:
    """Settings used when a session creates a Url."""

    scheme: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    user_name: Optional[str] = None
    password: Optional[str] = None


@dataclass(frozen=True)
class EncoderSettings:
    """Settings of a PercentEncoder."""

    charset: Optional[str] = None
    space_as_plus: Optional[bool] = None
    lower_case: Optional[bool] = None
    unreserved_chars: Optional[str] = None
    unreserved_predicate: Optional[Callable[[str], bool]] = None


@dataclass(frozen=True)
class ConnectorSettings:
    """Settings of the default HTTP/1.1 connector."""

    connect_timeout: Optional[float] = None
    read_timeout: Optional[float] = None
    enable_caching: Optional[bool] = None
    redirect: Optional[bool] = None
    max_redirects: Optional[int] = None


@dataclass(frozen=True)
class MultipartSettings:
    """Settings of the multipart/form-data request builder."""

    output_dir: Optional[Path] = None
    auto_delete_output: Optional[bool] = None
    charset: Optional[str] = None


DEFAULT_URL_SETTINGS = UrlSettings(scheme="https", host="")
DEFAULT_ENCODER_SETTINGS = EncoderSettings(
    charset="UTF-8",
    space_as_plus=False,
    lower_case=False,
    unreserved_chars=QUERY_VALUE,
)
DEFAULT_CONNECTOR_SETTINGS = ConnectorSettings(
    connect_timeout=30.0,
    read_timeout=30.0,
    enable_caching=True,
    redirect=True,
    max_redirects=10,
)
DEFAULT_MULTIPART_SETTINGS = MultipartSettings(
    auto_delete_output=True,
    charset="UTF-8",
)


def first_not_none(*values: Any) -> Any:
    """Return the first value that is not ``None``, or ``None``."""
    for value in values:
        if value is not None:
            return value
    return None


def resolve_settings(
    settings_type: Type[SettingsT],
    overrides: Optional[Mapping[str, Any]],
    session_settings: Optional[SettingsT],
    defaults: SettingsT,
) -> SettingsT:
    """
    Resolve a complete settings object from three ordered sources.

    Args:
        settings_type: The settings dataclass to build
        overrides: Call-site values keyed by field name; ``None`` means unset
        session_settings: Settings stored on the session, if any
        defaults: Library defaults

    Returns:
        A new ``settings_type`` instance holding, for every field, the
        first non-``None`` value among the three sources
    """
    if not dataclasses.is_dataclass(settings_type):
        raise TypeError(f"{settings_type!r} is not a settings dataclass")

    overrides = overrides or {}
    unknown = set(overrides) - {f.name for f in dataclasses.fields(settings_type)}
    if unknown:
        raise TypeError(
            f"Unknown {settings_type.__name__} fields: {', '.join(sorted(unknown))}"
        )

    values = {}
    for field in dataclasses.fields(settings_type):
        values[field.name] = first_not_none(
            overrides.get(field.name),
            getattr(session_settings, field.name, None),
            getattr(defaults, field.name, None),
        )
    return settings_type(**values)
