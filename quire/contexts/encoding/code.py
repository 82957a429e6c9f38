"""
Typst Code Encoding

Converts Python values into Typst source literals.

The dispatch is a functools.singledispatch function, so new host types are
supported with ``register_encoder(MyType)``. Composite record types subclass
``Encodable`` instead and only decide which of their fields are visible.

Type mapping:
- None                -> none
- bool                -> true / false
- int                 -> int(42)
- float               -> float(3.0)
- Decimal             -> decimal("1.50")
- str                 -> "escaped string"
- datetime/date/time  -> datetime(year: .., month: .., ...)
- list/tuple          -> (a, b) / (a,) / ()
- Mapping             -> ("key": value) / (:)
- Enum                -> encoding of its value
- Encodable, dataclass, namedtuple -> dictionary of visible fields

Anything else raises TypeError.
"""

import dataclasses
import math
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import singledispatch
from typing import Any, Dict, Iterable, Union
from zoneinfo import ZoneInfo

from quire.contexts.encoding.context import EncodingContext

ContextLike = Union[EncodingContext, Mapping, None]

# Applied in order: backslash first so later escapes are not doubled
STRING_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)

EMPTY_ARRAY = "()"
EMPTY_DICTIONARY = "(:)"


class Encodable:
    """
    Capability interface for composite values.

    Subclasses control which fields become dictionary entries by overriding
    ``typst_fields``. A ``struct_keys`` allowlist for the class in the encoding
    context always takes precedence over ``typst_fields``. Override
    ``encode_typst`` to emit a completely custom literal.
    """

    def typst_fields(self) -> Dict[str, Any]:
        """Fields visible by default: every public instance attribute."""
        return {key: value for key, value in vars(self).items() if not key.startswith("_")}

    def encode_typst(self, context: EncodingContext) -> str:
        return encode_mapping(select_fields(self, context), context)


def encode(value: Any, context: ContextLike = None) -> str:
    """
    Convert a Python value into Typst code.

    Args:
        value: Value to encode
        context: EncodingContext or plain mapping (e.g. {"timezone": "America/New_York"})

    Returns:
        Typst source literal

    Raises:
        TypeError: If the value's type has no encoding

    Example:
        >>> encode(datetime(2015, 1, 13, 13, 0, 7, tzinfo=timezone.utc), {"timezone": "America/New_York"})
        'datetime(year: 2015, month: 1, day: 13, hour: 8, minute: 0, second: 7)'
    """
    return _encode(value, EncodingContext.coerce(context))


@singledispatch
def _encode(value: Any, context: EncodingContext) -> str:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return encode_mapping(select_fields(value, context), context)

    raise TypeError(
        f"Cannot encode value of type {type(value).__qualname__} as Typst code. "
        "Subclass Encodable or register an encoder with register_encoder()."
    )


# Public registration hook: @register_encoder(MyType) def _(value, context): ...
register_encoder = _encode.register


@_encode.register(type(None))
def _encode_none(value: None, context: EncodingContext) -> str:
    return "none"


@_encode.register(bool)
def _encode_bool(value: bool, context: EncodingContext) -> str:
    return "true" if value else "false"


@_encode.register(int)
def _encode_int(value: int, context: EncodingContext) -> str:
    return f"int({value})"


@_encode.register(float)
def _encode_float(value: float, context: EncodingContext) -> str:
    if math.isnan(value):
        return "float.nan"
    if math.isinf(value):
        return "float.inf" if value > 0 else "-float.inf"
    return f"float({value!r})"


@_encode.register(Decimal)
def _encode_decimal(value: Decimal, context: EncodingContext) -> str:
    if not value.is_finite():
        raise ValueError(f"Typst decimals must be finite, got {value}")
    return f'decimal("{value:f}")'


@_encode.register(str)
def _encode_str(value: str, context: EncodingContext) -> str:
    return f'"{escape_string(value)}"'


@_encode.register(datetime)
def _encode_datetime(value: datetime, context: EncodingContext) -> str:
    if value.tzinfo is not None and value.utcoffset() is not None:
        value = value.astimezone(ZoneInfo(context.timezone))

    return (
        f"datetime(year: {value.year}, month: {value.month}, day: {value.day}, "
        f"hour: {value.hour}, minute: {value.minute}, second: {value.second})"
    )


@_encode.register(date)
def _encode_date(value: date, context: EncodingContext) -> str:
    return f"datetime(year: {value.year}, month: {value.month}, day: {value.day})"


@_encode.register(time)
def _encode_time(value: time, context: EncodingContext) -> str:
    return f"datetime(hour: {value.hour}, minute: {value.minute}, second: {value.second})"


@_encode.register(list)
def _encode_list(value: list, context: EncodingContext) -> str:
    return encode_array(value, context)


@_encode.register(tuple)
def _encode_tuple(value: tuple, context: EncodingContext) -> str:
    # namedtuples are records, not arrays
    if hasattr(value, "_asdict"):
        return encode_mapping(select_fields(value, context), context)
    return encode_array(value, context)


@_encode.register(Mapping)
def _encode_mapping(value: Mapping, context: EncodingContext) -> str:
    return encode_mapping(value, context)


@_encode.register(Enum)
def _encode_enum(value: Enum, context: EncodingContext) -> str:
    return _encode(value.value, context)


@_encode.register(Encodable)
def _encode_encodable(value: Encodable, context: EncodingContext) -> str:
    return value.encode_typst(context)


# =============================================================================
# Building blocks
# =============================================================================


def escape_string(value: str) -> str:
    """Escape the characters Typst string literals reserve."""
    for raw, escaped in STRING_ESCAPES:
        value = value.replace(raw, escaped)
    return value


def encode_array(items: Iterable[Any], context: ContextLike = None) -> str:
    """Encode items as a Typst array; a single item keeps its trailing comma."""
    context = EncodingContext.coerce(context)
    encoded = [_encode(item, context) for item in items]

    if not encoded:
        return EMPTY_ARRAY
    if len(encoded) == 1:
        return f"({encoded[0]},)"
    return f"({', '.join(encoded)})"


def encode_mapping(mapping: Mapping, context: ContextLike = None) -> str:
    """Encode a mapping as a Typst dictionary, keys in the mapping's order."""
    context = EncodingContext.coerce(context)
    if not mapping:
        return EMPTY_DICTIONARY

    fields = ", ".join(
        f'"{escape_string(_key_name(key))}": {_encode(value, context)}'
        for key, value in mapping.items()
    )
    return f"({fields})"


def select_fields(value: Any, context: EncodingContext) -> Dict[str, Any]:
    """
    Pick the fields of a composite value that become dictionary entries.

    An explicit ``struct_keys`` allowlist for the value's class wins; keys the
    value does not have are skipped. Otherwise the value's default visibility
    applies.
    """
    allowlist = context.keys_for(type(value))
    fields = _default_fields(value)

    if allowlist is None:
        return fields

    selected = {}
    for key in allowlist:
        if key in fields:
            selected[key] = fields[key]
        elif hasattr(value, key):
            selected[key] = getattr(value, key)
    return selected


def _default_fields(value: Any) -> Dict[str, Any]:
    if isinstance(value, Encodable):
        return value.typst_fields()
    if dataclasses.is_dataclass(value):
        # Shallow on purpose: nested values are encoded by their own rules
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, tuple) and hasattr(value, "_asdict"):
        return dict(value._asdict())
    raise TypeError(f"{type(value).__qualname__} is not a composite value")


def _key_name(key: Any) -> str:
    if isinstance(key, Enum):
        key = key.value
    return str(key)


def encode_binding(name: str, value: Any, context: ContextLike = None) -> str:
    """Render a ``#let name = <value>`` line for a data file."""
    return f"#let {name} = {encode(value, context)}\n"

