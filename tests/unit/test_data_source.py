"""Unit tests for queries and the in-memory data source."""

import pytest

from quire.contexts.encoding import NOT_LOADED, Resource
from quire.contexts.pipeline import ArgumentError, ExecutionContext, InMemoryDataSource, Query
from quire.contexts.pipeline.data_source import resolve_filter
from quire.contexts.pipeline.specs import ReadSpec

ORDERS = [
    {"id": 1, "customer": "acme", "total": 30, "status": "open"},
    {"id": 2, "customer": "globex", "total": 10, "status": "paid"},
    {"id": 3, "customer": "acme", "total": None, "status": "open"},
    {"id": 4, "customer": "acme", "total": 20, "status": "paid"},
]


class Order(Resource):
    attributes = ("id", "customer", "total")
    relationships = ()


def run(**query):
    return InMemoryDataSource(ORDERS).read(Query(**query), ExecutionContext())


@pytest.mark.unit
def test_resolve_filter_argument_references():
    """Test "^arg:name" values are replaced, nested mappings included."""
    resolved = resolve_filter({"id": "^arg:id", "meta": {"owner": "^arg:user"}, "kind": "x"}, {"id": 7, "user": "u"})

    assert resolved == {"id": 7, "meta": {"owner": "u"}, "kind": "x"}


@pytest.mark.unit
def test_resolve_filter_unknown_argument():
    with pytest.raises(ArgumentError, match="unknown argument 'id'"):
        resolve_filter({"id": "^arg:id"}, {})


@pytest.mark.unit
def test_query_build_carries_arguments_and_context():
    read = ReadSpec(cardinality="many", filter={"customer": "^arg:who"}, sort="-total", limit=2, select=["id"])
    query = Query.build(read, {"who": "acme"}, ExecutionContext(actor="alice", extra={"region": "eu"}))

    assert query.filter == {"customer": "acme"}
    assert query.sort == "-total"
    assert query.limit == 2
    assert query.select == ("id",)
    assert query.arguments == {"who": "acme"}
    assert query.context == {"region": "eu"}


@pytest.mark.unit
def test_mapping_filter():
    assert [r["id"] for r in run(filter={"customer": "acme", "status": "open"})] == [1, 3]


@pytest.mark.unit
def test_callable_filter_receives_arguments():
    found = run(filter=lambda record, args: record["status"] == args["status"], arguments={"status": "paid"})
    assert [r["id"] for r in found] == [2, 4]


@pytest.mark.unit
@pytest.mark.parametrize(
    "sort, expected",
    [
        ("total", [2, 4, 1, 3]),
        ("-total", [1, 4, 2, 3]),
        ({"total": "desc"}, [1, 4, 2, 3]),
        (["customer", "-id"], [4, 3, 1, 2]),
        ([{"status": "asc"}, "total"], [1, 3, 2, 4]),
    ],
)
def test_sort(sort, expected):
    """Test sort orders, with missing values last."""
    assert [r["id"] for r in run(sort=sort)] == expected


@pytest.mark.unit
def test_limit_applies_after_sort():
    assert [r["id"] for r in run(sort="-id", limit=2)] == [4, 3]


@pytest.mark.unit
def test_select_on_mappings_and_resources():
    assert run(select=("id",), limit=1) == [{"id": 1}]

    source = InMemoryDataSource([Order(id=1, customer="acme", total=5)])
    (order,) = source.read(Query(select=("total",)), ExecutionContext())
    assert order.total == 5
    assert order.id is NOT_LOADED


@pytest.mark.unit
def test_read_one():
    source = InMemoryDataSource(ORDERS)

    assert source.read_one(Query(filter={"id": 3}), ExecutionContext())["customer"] == "acme"
    assert source.read_one(Query(filter={"id": 99}), ExecutionContext()) is None


@pytest.mark.unit
def test_object_records():
    source = InMemoryDataSource([Order(id=1, customer="acme"), Order(id=2, customer="globex")])
    (found,) = source.read(Query(filter={"customer": "globex"}), ExecutionContext())
    assert found.id == 2
