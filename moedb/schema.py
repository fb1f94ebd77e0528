"""Description of the tables and sequences of the ``magnets`` schema."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from moedb.values import PgType

__all__ = ["SchemaError", "Column", "Sequence", "Table", "Schema", "get_schema"]

_TABLES_SQL = (
    "select tablename from pg_catalog.pg_tables "
    "where schemaname = 'magnets' order by tablename"
)

_SEQUENCES_SQL = (
    "select sequencename, data_type::oid from pg_sequences order by sequencename"
)

_COLUMNS_SQL = """
        select col.attname, col.atttypid
        from pg_namespace schm
        join pg_class tbl on schm.oid = tbl.relnamespace
        join pg_attribute col on tbl.oid = col.attrelid
        where schm.nspname = 'magnets' and tbl.relname = $1 and tbl.relkind = 'r' and col.attnum > 0
        order by col.attnum"""


class SchemaError(Exception):
    """The schema could not be loaded from the database."""


@dataclass(frozen=True)
class Column:
    name: str
    type: PgType

    def _to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ty": int(self.type)}

    @classmethod
    def _from_dict(cls, data: Any) -> Column:
        return cls(_str_field(data, "name"), _type_field(data))


@dataclass(frozen=True)
class Sequence:
    name: str
    type: PgType

    def _to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ty": int(self.type)}

    @classmethod
    def _from_dict(cls, data: Any) -> Sequence:
        return cls(_str_field(data, "name"), _type_field(data))


@dataclass(frozen=True)
class Table:
    name: str
    columns: list[Column] = field(default_factory=list)

    def _to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "columns": [c._to_dict() for c in self.columns]}

    @classmethod
    def _from_dict(cls, data: Any) -> Table:
        return cls(
            _str_field(data, "name"),
            [Column._from_dict(c) for c in _list_field(data, "columns")],
        )


@dataclass(frozen=True)
class Schema:
    tables: list[Table] = field(default_factory=list)
    sequences: list[Sequence] = field(default_factory=list)

    def to_json(self) -> str:
        """Return the schema as pretty-printed JSON."""
        data = {
            "tables": [t._to_dict() for t in self.tables],
            "sequences": [s._to_dict() for s in self.sequences],
        }
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, text: str) -> Schema:
        """Parse the JSON produced by :meth:`to_json`."""
        data = json.loads(text)
        return cls(
            [Table._from_dict(t) for t in _list_field(data, "tables")],
            [Sequence._from_dict(s) for s in _list_field(data, "sequences")],
        )


def _require_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def _str_field(data: Any, name: str) -> str:
    value = _require_object(data).get(name)
    if not isinstance(value, str):
        raise ValueError(f"missing or invalid field `{name}`")
    return value


def _list_field(data: Any, name: str) -> list[Any]:
    value = _require_object(data).get(name)
    if not isinstance(value, list):
        raise ValueError(f"missing or invalid field `{name}`")
    return value


def _type_field(data: Any) -> PgType:
    value = _require_object(data).get("ty")
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError("missing or invalid field `ty`")
    return PgType.from_oid(value)


async def _get_columns(conn: Any, table: str) -> list[Column]:
    rows = await conn.fetch(_COLUMNS_SQL, table)
    return [Column(row[0], PgType.from_oid(row[1])) for row in rows]


async def get_schema(conn: Any) -> Schema:
    """Read the tables, their columns and the sequences from the database."""
    try:
        tables = [
            Table(row[0], await _get_columns(conn, row[0]))
            for row in await conn.fetch(_TABLES_SQL)
        ]
        sequences = [
            Sequence(row[0], PgType.from_oid(row[1]))
            for row in await conn.fetch(_SEQUENCES_SQL)
        ]
    except Exception as exc:
        raise SchemaError("cannot load schema") from exc
    return Schema(tables, sequences)