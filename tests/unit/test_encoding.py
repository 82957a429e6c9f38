"""Unit tests for the Typst value encoder."""

import math
from collections import namedtuple
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from enum import Enum

import pytest

from quire.contexts.encoding import (
    Encodable,
    EncodingContext,
    encode,
    encode_binding,
    register_encoder,
)


@pytest.mark.unit
def test_encode_scalars():
    """Test literals for none, booleans and numbers."""
    assert encode(None) == "none"
    assert encode(True) == "true"
    assert encode(False) == "false"
    assert encode(42) == "int(42)"
    assert encode(-7) == "int(-7)"
    assert encode(3.0) == "float(3.0)"
    assert encode(0.5) == "float(0.5)"


@pytest.mark.unit
def test_encode_non_finite_floats():
    """Test infinities and NaN use the float constants."""
    assert encode(math.inf) == "float.inf"
    assert encode(-math.inf) == "-float.inf"
    assert encode(math.nan) == "float.nan"


@pytest.mark.unit
def test_encode_decimal_keeps_exact_digits():
    """Test decimals are emitted as strings, never through float."""
    assert encode(Decimal("1.50")) == 'decimal("1.50")'
    assert encode(Decimal("0.1")) == 'decimal("0.1")'
    assert encode(Decimal("1E+3")) == 'decimal("1000")'


@pytest.mark.unit
def test_encode_non_finite_decimal_rejected():
    with pytest.raises(ValueError):
        encode(Decimal("NaN"))


@pytest.mark.unit
def test_encode_string_escapes():
    """Test backslash, quote and control characters are escaped."""
    assert encode("plain") == '"plain"'
    assert encode('say "hi"') == '"say \\"hi\\""'
    assert encode("a\\b") == '"a\\\\b"'
    assert encode("line1\nline2\r\tend") == '"line1\\nline2\\r\\tend"'


@pytest.mark.unit
def test_encode_string_backslash_before_quote():
    """Test a backslash followed by a quote is not double-escaped."""
    assert encode('\\"') == '"\\\\\\""'


@pytest.mark.unit
def test_encode_sequences():
    """Test empty, single-element and multi-element arrays."""
    assert encode([]) == "()"
    assert encode([1]) == "(int(1),)"
    assert encode((1, "a")) == '(int(1), "a")'
    assert encode([[1], []]) == "((int(1),), ())"


@pytest.mark.unit
def test_encode_mappings():
    """Test dictionaries keep insertion order and stringify keys."""
    assert encode({}) == "(:)"
    assert encode({"b": 1, "a": None}) == '("b": int(1), "a": none)'
    assert encode({1: True}) == '("1": true)'
    assert encode({'k"ey': 1}) == '("k\\"ey": int(1))'


@pytest.mark.unit
def test_encode_dates_and_times():
    """Test date/time values use the datetime constructor."""
    assert encode(date(2024, 2, 29)) == "datetime(year: 2024, month: 2, day: 29)"
    assert encode(time(9, 5, 1)) == "datetime(hour: 9, minute: 5, second: 1)"
    assert encode(datetime(2024, 1, 2, 3, 4, 5)) == (
        "datetime(year: 2024, month: 1, day: 2, hour: 3, minute: 4, second: 5)"
    )


@pytest.mark.unit
def test_encode_aware_datetime_shifts_to_context_timezone():
    """Test aware datetimes are shifted before their components are read."""
    value = datetime(2015, 1, 13, 13, 0, 7, tzinfo=timezone.utc)

    assert encode(value) == "datetime(year: 2015, month: 1, day: 13, hour: 13, minute: 0, second: 7)"
    assert encode(value, {"timezone": "America/New_York"}) == (
        "datetime(year: 2015, month: 1, day: 13, hour: 8, minute: 0, second: 7)"
    )


@pytest.mark.unit
def test_encode_aware_datetime_crossing_midnight():
    value = datetime(2024, 3, 1, 1, 30, tzinfo=timezone(timedelta(hours=2)))
    assert encode(value) == "datetime(year: 2024, month: 2, day: 29, hour: 23, minute: 30, second: 0)"


@pytest.mark.unit
def test_context_reaches_nested_values():
    """Test the timezone applies inside arrays and dictionaries."""
    value = {"at": [datetime(2020, 6, 1, 12, tzinfo=timezone.utc)]}
    encoded = encode(value, EncodingContext(timezone="Asia/Tokyo"))
    assert encoded == '("at": (datetime(year: 2020, month: 6, day: 1, hour: 21, minute: 0, second: 0),))'


@pytest.mark.unit
def test_encode_enum_uses_value():
    class Status(Enum):
        OPEN = "open"
        COUNT = 3

    assert encode(Status.OPEN) == '"open"'
    assert encode({"n": Status.COUNT}) == '("n": int(3))'


@pytest.mark.unit
def test_encode_dataclass_and_namedtuple():
    """Test plain records become dictionaries of their fields."""

    @dataclass
    class Point:
        x: int
        y: int

    Pair = namedtuple("Pair", ["left", "right"])

    assert encode(Point(1, 2)) == '("x": int(1), "y": int(2))'
    assert encode(Pair("a", None)) == '("left": "a", "right": none)'


@pytest.mark.unit
def test_struct_keys_override_default_fields():
    """Test an allowlist in the context replaces default visibility."""

    @dataclass
    class User:
        name: str
        email: str
        password_hash: str

    user = User("Ada", "ada@example.com", "x")

    by_class = encode(user, {"struct_keys": {User: ["name"]}})
    by_name = encode(user, {"struct_keys": {"User": ["email", "name"]}})

    assert by_class == '("name": "Ada")'
    assert by_name == '("email": "ada@example.com", "name": "Ada")'


@pytest.mark.unit
def test_encodable_subclass_controls_fields():
    class Card(Encodable):
        def __init__(self, title, secret):
            self.title = title
            self._secret = secret

    assert encode(Card("Hello", "hidden")) == '("title": "Hello")'


@pytest.mark.unit
def test_register_encoder_extends_dispatch():
    """Test callers can teach the encoder a new type."""

    class Money:
        def __init__(self, cents):
            self.cents = cents

    @register_encoder(Money)
    def _encode_money(value, context):
        return encode(Decimal(value.cents) / 100, context)

    assert encode([Money(1999)]) == '(decimal("19.99"),)'


@pytest.mark.unit
def test_unsupported_type_raises_type_error():
    with pytest.raises(TypeError):
        encode(object())
    with pytest.raises(TypeError):
        encode({"nested": {1, 2}})


@pytest.mark.unit
def test_encode_binding_line():
    assert encode_binding("args", {"id": 1}) == '#let args = ("id": int(1))\n'


@pytest.mark.unit
def test_context_coerce_keeps_extra_options():
    context = EncodingContext.coerce({"timezone": "Europe/Paris", "locale": "fr"})
    assert context.timezone == "Europe/Paris"
    assert context.get("locale") == "fr"
    assert context.get("timezone") == "Europe/Paris"
    assert EncodingContext.coerce(context) is context
