"""
Form field sources.

Request builders accept their parameters as a mapping, as an iterable
of pairs, or as any object implementing the FormFields protocol.
"""

from typing import Any, Iterator, List, Mapping, Optional, Tuple

from typing_extensions import Protocol, runtime_checkable

FormField = Tuple[str, Any, Optional[str]]


@runtime_checkable
class FormFields(Protocol):
    """
    Object that knows how to present itself as form fields.

    ``form_fields`` returns an ordered list of ``(name, value, filename)``
    triples. ``filename`` is only used by multipart bodies and may be
    ``None``.
    """

    def form_fields(self) -> List[FormField]:
        ...


def iter_form_fields(params: Any) -> Iterator[FormField]:
    """
    Normalize request parameters into ``(name, value, filename)`` triples.

    Args:
        params: ``None``, a FormFields object, a mapping or an iterable
            of ``(name, value)`` / ``(name, value, filename)`` tuples

    Yields:
        One triple per field, in order

    Raises:
        TypeError: If ``params`` has an unsupported shape
    """
    if params is None:
        return

    if isinstance(params, FormFields):
        for name, value, filename in params.form_fields():
            yield str(name), value, filename
        return

    if isinstance(params, Mapping):
        for name, value in params.items():
            yield str(name), value, None
        return

    if isinstance(params, (str, bytes)):
        raise TypeError("form parameters must be a mapping, pairs or FormFields")

    try:
        items = iter(params)
    except TypeError:
        raise TypeError(
            f"Unsupported form parameters type: {type(params).__name__}"
        ) from None

    for item in items:
        if not isinstance(item, tuple) or len(item) not in (2, 3):
            raise TypeError("form parameter items must be 2- or 3-tuples")
        filename = item[2] if len(item) == 3 else None
        yield str(item[0]), item[1], filename
