import json

import pytest

from moedb.schema import Column, Schema, SchemaError, Sequence, Table, get_schema
from moedb.values import PgType


def _sample_schema():
    return Schema(
        tables=[
            Table(
                "show",
                [Column("show_id", PgType.INT8), Column("season", PgType.INT4)],
            ),
            Table("state", [Column("key", PgType.TEXT), Column("value", PgType.JSONB)]),
        ],
        sequences=[Sequence("show_show_id_seq", PgType.INT8)],
    )


class FakeConn:
    def __init__(self, tables, columns, sequences):
        self.tables = tables
        self.columns = columns
        self.sequences = sequences
        self.calls = []

    async def fetch(self, query, *args):
        self.calls.append((query, args))
        if "pg_tables" in query:
            return [(name,) for name in self.tables]
        if "pg_attribute" in query:
            return self.columns[args[0]]
        if "pg_sequences" in query:
            return self.sequences
        raise AssertionError(f"unexpected query {query}")


def test_json_round_trip():
    schema = _sample_schema()
    assert Schema.from_json(schema.to_json()) == schema


def test_json_structure_uses_oids():
    data = json.loads(_sample_schema().to_json())
    assert data["tables"][0]["name"] == "show"
    assert data["tables"][0]["columns"][0] == {
        "name": "show_id",
        "ty": int(PgType.INT8),
    }
    assert data["sequences"][0]["ty"] == int(PgType.INT8)


def test_empty_schema_round_trip():
    assert Schema.from_json(Schema().to_json()) == Schema()


def test_schemas_differ_on_column_type():
    other = Schema(
        tables=[Table("show", [Column("show_id", PgType.INT4)])],
        sequences=[],
    )
    assert Schema.from_json(other.to_json()) != _sample_schema()


def test_from_json_unknown_oid():
    text = json.dumps(
        {"tables": [], "sequences": [{"name": "s", "ty": 999999}]}
    )
    with pytest.raises(ValueError, match="unknown oid"):
        Schema.from_json(text)


@pytest.mark.parametrize(
    "data",
    [
        {"tables": []},
        {"sequences": []},
        {"tables": [{"columns": []}], "sequences": []},
        {"tables": [], "sequences": [{"name": "s"}]},
        [],
    ],
)
def test_from_json_missing_fields(data):
    with pytest.raises(ValueError):
        Schema.from_json(json.dumps(data))


@pytest.mark.asyncio
async def test_get_schema_reads_tables_columns_and_sequences():
    conn = FakeConn(
        tables=["show", "state"],
        columns={
            "show": [("show_id", int(PgType.INT8)), ("season", int(PgType.INT4))],
            "state": [("key", int(PgType.TEXT)), ("value", int(PgType.JSONB))],
        },
        sequences=[("show_show_id_seq", int(PgType.INT8))],
    )
    schema = await get_schema(conn)
    assert schema == _sample_schema()
    column_queries = [args for query, args in conn.calls if "pg_attribute" in query]
    assert column_queries == [("show",), ("state",)]


@pytest.mark.asyncio
async def test_get_schema_unknown_column_type():
    conn = FakeConn(
        tables=["show"],
        columns={"show": [("weird", 999999)]},
        sequences=[],
    )
    with pytest.raises(SchemaError, match="cannot load schema"):
        await get_schema(conn)


@pytest.mark.asyncio
async def test_get_schema_wraps_connection_errors():
    class BrokenConn:
        async def fetch(self, query, *args):
            raise ConnectionError("gone")

    with pytest.raises(SchemaError) as info:
        await get_schema(BrokenConn())
    assert isinstance(info.value.__cause__, ConnectionError)