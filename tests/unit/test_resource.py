"""Unit tests for Resource visibility filtering."""

from decimal import Decimal

import pytest

from quire.contexts.encoding import NOT_LOADED, CiString, Resource, encode


class Customer(Resource):
    attributes = ("id", "name")
    relationships = ()


class Invoice(Resource):
    attributes = ("id", "number", "total", "internal_note")
    relationships = ("customer", "line_items")


@pytest.mark.unit
def test_unselected_attributes_are_dropped():
    """Test only attributes that were loaded are encoded."""
    invoice = Invoice(id=1, number="INV-1")

    assert encode(invoice) == (
        '("id": int(1), "number": "INV-1", "customer": none, "line_items": none, '
        '"calculations": (:), "aggregates": (:))'
    )


@pytest.mark.unit
def test_relationships_are_always_kept():
    """Test loaded relationships encode recursively, unloaded ones as none."""
    invoice = Invoice(id=2, customer=Customer(id=7, name="Acme"))

    encoded = encode(invoice)
    assert '"customer": ("id": int(7), "name": "Acme", "calculations": (:), "aggregates": (:))' in encoded
    assert '"line_items": none' in encoded


@pytest.mark.unit
def test_calculations_and_aggregates_ride_along():
    invoice = Invoice(id=3, calculations={"tax": Decimal("1.20")}, aggregates={"count": 4})

    encoded = encode(invoice)
    assert '"calculations": ("tax": decimal("1.20"))' in encoded
    assert '"aggregates": ("count": int(4))' in encoded


@pytest.mark.unit
def test_selected_narrows_loaded_attributes():
    """Test an explicit selection hides attributes that were passed in."""
    invoice = Invoice(id=4, number="INV-4", internal_note="do not print", selected=["id", "number"])

    assert "internal_note" not in encode(invoice)
    assert invoice.is_loaded("internal_note")


@pytest.mark.unit
def test_with_selection_returns_narrowed_copy():
    invoice = Invoice(id=5, number="INV-5", total=Decimal("9.99"))
    narrowed = invoice.with_selection(["number"])

    assert narrowed.id is NOT_LOADED
    assert narrowed.number == "INV-5"
    assert invoice.id == 5
    assert '"id"' not in encode(narrowed)

    with pytest.raises(ValueError):
        invoice.with_selection(["nope"])


@pytest.mark.unit
def test_struct_keys_override_resource_visibility():
    invoice = Invoice(id=6, number="INV-6", internal_note="note")

    assert encode(invoice, {"struct_keys": {"Invoice": ["number", "total"]}}) == (
        '("number": "INV-6", "total": none)'
    )


@pytest.mark.unit
def test_unknown_fields_rejected():
    with pytest.raises(TypeError):
        Invoice(id=1, colour="red")


@pytest.mark.unit
def test_not_loaded_encodes_as_none():
    assert encode(NOT_LOADED) == "none"
    assert not NOT_LOADED


@pytest.mark.unit
def test_ci_string():
    """Test case-insensitive strings compare loosely and encode verbatim."""
    value = CiString("Hello")

    assert value == "HELLO"
    assert value == CiString("hello")
    assert hash(value) == hash(CiString("hELLo"))
    assert encode(value) == '"Hello"'
