"""Line-oriented text encoding of column values for database dumps."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

__all__ = [
    "PgType",
    "Codec",
    "codec_for",
    "escape_text",
    "read_text",
]

NULL = "null"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")
_ESCAPED = re.compile(r"(?:[^\\]|\\.)*", re.S)
_ESCAPE_SEQ = re.compile(r"\\(.)", re.S)
_U64_MAX = 2**64 - 1


class PgType(IntEnum):
    """PostgreSQL column types, identified by their oid."""

    BOOL = 16
    BYTEA = 17
    INT8 = 20
    INT2 = 21
    INT4 = 23
    TEXT = 25
    JSON = 114
    FLOAT4 = 700
    FLOAT8 = 701
    VARCHAR = 1043
    DATE = 1082
    TIMESTAMP = 1114
    TIMESTAMPTZ = 1184
    NUMERIC = 1700
    UUID = 2950
    JSONB = 3802

    @classmethod
    def from_oid(cls, oid: int) -> PgType:
        """Return the type with the given oid."""
        try:
            return cls(oid)
        except ValueError:
            raise ValueError(f"unknown oid {oid}") from None


def escape_text(text: str) -> str:
    """Quote ``text``, escaping quotes, backslashes and newlines."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def read_text(line: str) -> str:
    """Parse a quoted string produced by :func:`escape_text`."""
    if len(line) < 2:
        raise ValueError("text line is too small")
    if not (line.startswith('"') and line.endswith('"')):
        raise ValueError('text line is not delimited by "')
    inner = line[1:-1]
    if not _ESCAPED.fullmatch(inner):
        raise ValueError("text line contains a trailing \\")
    return _ESCAPE_SEQ.sub(
        lambda m: "\n" if m.group(1) == "n" else m.group(1), inner
    )


class Codec(ABC):
    """Converts values of one column type to and from dump lines."""

    pg_type: PgType

    def serialize(self, value: Any) -> str:
        """Return the dump line for ``value``, including the newline."""
        if value is None:
            return f"{NULL}\n"
        return self._format(value) + "\n"

    def create_file(self, root: str | Path, key: Any) -> Path:
        """Return the file path of a row whose first column holds ``key``."""
        raise TypeError(f"rows keyed by {self.pg_type.name} cannot be stored as files")

    def read(self, line: str) -> Any:
        """Parse a dump line (without newline); ``null`` gives ``None``."""
        if line == NULL:
            return None
        return self._parse(line)

    @abstractmethod
    def _format(self, value: Any) -> str: ...

    @abstractmethod
    def _parse(self, line: str) -> Any: ...


class _IntCodec(Codec):
    def __init__(self, pg_type: PgType, bits: int) -> None:
        self.pg_type = pg_type
        self._min = -(2 ** (bits - 1))
        self._max = 2 ** (bits - 1) - 1

    def _format(self, value: Any) -> str:
        return str(int(value))

    def _parse(self, line: str) -> int:
        if not _INTEGER.fullmatch(line):
            raise ValueError(f"invalid integer {line!r}")
        value = int(line)
        if not self._min <= value <= self._max:
            raise ValueError(f"integer {line} is out of range for {self.pg_type.name}")
        return value

    def create_file(self, root: str | Path, key: Any) -> Path:
        key = int(key)
        bucket = key // 1000 if key >= 0 else -(-key // 1000)
        directory = Path(root) / str(bucket)
        directory.mkdir(parents=True, exist_ok=True)
        return directory / str(key)


class _TextCodec(Codec):
    pg_type = PgType.TEXT

    def _format(self, value: Any) -> str:
        return escape_text(str(value))

    def _parse(self, line: str) -> str:
        return read_text(line)

    def create_file(self, root: str | Path, key: Any) -> Path:
        return Path(root) / str(key)


class _TimestamptzCodec(Codec):
    pg_type = PgType.TIMESTAMPTZ

    def _format(self, value: Any) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return str((value - _EPOCH) // _MICROSECOND)

    def _parse(self, line: str) -> datetime:
        if not _INTEGER.fullmatch(line):
            raise ValueError(f"invalid timestamp {line!r}")
        micros = int(line)
        if not 0 <= micros <= _U64_MAX:
            raise ValueError(f"timestamp {line} is out of range")
        duration = timedelta(microseconds=micros)
        try:
            return _EPOCH + duration
        except OverflowError:
            raise ValueError(f"duration {duration} is out of bounds") from None


class _JsonCodec(Codec):
    pg_type = PgType.JSONB

    def _format(self, value: Any) -> str:
        text = value if isinstance(value, str) else json.dumps(value)
        return escape_text(text)

    def _parse(self, line: str) -> str:
        return read_text(line)


class _ByteaCodec(Codec):
    pg_type = PgType.BYTEA

    def _format(self, value: Any) -> str:
        return f'"{bytes(value).hex()}"'

    def _parse(self, line: str) -> bytes:
        text = read_text(line)
        if not _HEX.fullmatch(text):
            raise ValueError(f"invalid hex string {text!r}")
        return bytes.fromhex(text)


class _BoolCodec(Codec):
    pg_type = PgType.BOOL

    def _format(self, value: Any) -> str:
        return "true" if value else "false"

    def _parse(self, line: str) -> bool:
        if line == "true":
            return True
        if line == "false":
            return False
        raise ValueError(f"invalid boolean {line!r}")


_CODECS: dict[PgType, Codec] = {
    PgType.TEXT: _TextCodec(),
    PgType.INT4: _IntCodec(PgType.INT4, 32),
    PgType.INT8: _IntCodec(PgType.INT8, 64),
    PgType.TIMESTAMPTZ: _TimestamptzCodec(),
    PgType.JSONB: _JsonCodec(),
    PgType.BYTEA: _ByteaCodec(),
    PgType.BOOL: _BoolCodec(),
}


def codec_for(pg_type: PgType) -> Codec:
    """Return the codec of a column type."""
    try:
        return _CODECS[pg_type]
    except KeyError:
        raise ValueError(f"cannot serialize type {pg_type}") from None