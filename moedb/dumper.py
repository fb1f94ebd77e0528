"""Dumping the ``magnets`` schema to a directory tree and loading it back."""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from moedb.schema import Schema, Sequence, Table, get_schema
from moedb.values import PgType, codec_for

__all__ = ["DumpError", "dump", "load"]

_SEQUENCE_VALUES_SQL = """
                select sequencename, data_type::oid, nextval('magnets.' || sequencename)
                from pg_catalog.pg_sequences
                where schemaname = 'magnets'"""


class DumpError(Exception):
    """The database could not be dumped or loaded."""


@contextmanager
def _context(message: str) -> Iterator[None]:
    """Wrap any error raised in the block in a :class:`DumpError`."""
    try:
        yield
    except Exception as exc:
        raise DumpError(message) from exc


async def dump(location: str | os.PathLike[str], conn: Any) -> None:
    """Write every table, sequence and the schema of ``magnets`` below ``location``.

    ``location`` must not exist yet.
    """
    path = Path(location)
    if path.exists():
        raise DumpError(f"{location} already exists")
    path.mkdir(parents=True)
    schema = await get_schema(conn)
    with _context("cannot dump tables"):
        await _dump_tables(path, schema, conn)
    with _context("cannot dump sequences"):
        await _dump_sequences(path, conn)
    with _context("cannot dump schema.json"):
        (path / "schema.json").write_text(schema.to_json(), encoding="utf-8")


def _write_lines(path: Path, lines: Iterator[str]) -> None:
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.writelines(lines)


async def _dump_tables(path: Path, schema: Schema, conn: Any) -> None:
    root = path / "tables"
    root.mkdir()
    for table in schema.tables:
        with _context(f"cannot dump table {table.name}"):
            await _dump_table(root, table, conn)


async def _dump_table(root: Path, table: Table, conn: Any) -> None:
    codecs = [codec_for(column.type) for column in table.columns]
    rows = await conn.fetch(f"select * from magnets.{table.name}")
    directory = root / table.name
    directory.mkdir()
    for row in rows:
        values = list(row)
        file = codecs[0].create_file(directory, values[0])
        _write_lines(
            file,
            (codec.serialize(value) for codec, value in zip(codecs, values, strict=True)),
        )


async def _dump_sequences(path: Path, conn: Any) -> None:
    directory = path / "sequences"
    directory.mkdir()
    for name, oid, value in await conn.fetch(_SEQUENCE_VALUES_SQL):
        with _context(f"cannot serialize sequence {name}"):
            codec = codec_for(PgType.from_oid(oid))
            _write_lines(directory / name, iter([codec.serialize(value)]))


async def load(root: str | os.PathLike[str], conn: Any) -> None:
    """Load a dump written by :func:`dump` into empty tables of ``magnets``."""
    root = Path(root)
    created_schema = await get_schema(conn)
    with _context("cannot deserialize schema.json"):
        data_schema = Schema.from_json((root / "schema.json").read_text(encoding="utf-8"))
    if created_schema != data_schema:
        raise DumpError("schema.json is different from actual schema")
    with _context("cannot load tables"):
        await _load_tables(root / "tables", data_schema, conn)
    with _context("cannot load sequences"):
        for sequence in data_schema.sequences:
            await _load_sequence(root / "sequences", sequence, conn)


async def _load_sequence(root: Path, sequence: Sequence, conn: Any) -> None:
    text = (root / sequence.name).read_text(encoding="utf-8")
    value = codec_for(sequence.type).read(text.strip())
    await conn.execute(f"select setval('magnets.{sequence.name}', $1, false)", value)


async def _load_tables(root: Path, schema: Schema, conn: Any) -> None:
    for table in schema.tables:
        await _check_table_empty(table, conn)
        with _context(f"cannot load table {table.name}"):
            await _load_table(root, table, conn)


async def _check_table_empty(table: Table, conn: Any) -> None:
    row = await conn.fetchrow(f"select count(*) from magnets.{table.name}")
    if row[0] > 0:
        raise DumpError(f"table {table.name} is not empty")


def _row_files(directory: Path) -> Iterator[Path]:
    if not directory.is_dir():
        raise FileNotFoundError(f"{directory} is not a directory")
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath, name)


def _read_lines(path: Path) -> list[str]:
    with path.open("r", encoding="utf-8", newline="") as fh:
        pieces = fh.read().split("\n")
    last = pieces.pop()
    lines = [piece.removesuffix("\r") for piece in pieces]
    if last:
        lines.append(last)
    return lines


def _read_row(table: Table, path: Path) -> tuple[Any, ...]:
    columns = table.columns
    values = []
    for idx, line in enumerate(_read_lines(path)):
        if idx >= len(columns):
            raise ValueError("too many columns")
        values.append(codec_for(columns[idx].type).read(line))
    if len(values) < len(columns):
        raise ValueError("too few columns")
    return tuple(values)


async def _load_table(root: Path, table: Table, conn: Any) -> None:
    records = []
    for path in _row_files(root / table.name):
        with _context(f"cannot load row {path}"):
            records.append(_read_row(table, path))
    if not records:
        return
    names = ", ".join(column.name for column in table.columns)
    params = ", ".join(f"${i}" for i in range(1, len(table.columns) + 1))
    await conn.executemany(
        f"insert into magnets.{table.name} ({names}) values ({params})", records
    )