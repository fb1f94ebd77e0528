"""Loading of ``config.toml`` and the processor configuration."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

__all__ = [
    "ConfigError",
    "load",
    "parse_duration",
    "DbConfig",
    "HttpConfig",
    "AnilistConfig",
    "NyaaConfig",
    "ProcessorConfig",
    "load_processor_config",
]

DEFAULT_PATH = "config.toml"


class ConfigError(Exception):
    """The configuration could not be loaded."""


def load(path: str | Path = DEFAULT_PATH) -> dict[str, Any]:
    """Read and parse the TOML configuration file."""
    path = Path(path)
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"cannot load {path}") from exc


_YEAR = Decimal(31_557_600)
_UNITS: dict[str, Decimal] = {}
for _names, _secs in [
    (("ns", "nsec", "nanosecond", "nanoseconds"), Decimal("1e-9")),
    (("us", "µs", "μs", "usec", "microsecond", "microseconds"), Decimal("1e-6")),
    (("ms", "msec", "millisecond", "milliseconds"), Decimal("1e-3")),
    (("", "s", "sec", "secs", "second", "seconds"), Decimal(1)),
    (("m", "min", "mins", "minute", "minutes"), Decimal(60)),
    (("h", "hr", "hrs", "hour", "hours"), Decimal(3600)),
    (("d", "day", "days"), Decimal(86_400)),
    (("w", "wk", "wks", "week", "weeks"), Decimal(604_800)),
    (("mon", "mons", "month", "months"), _YEAR / 12),
    (("y", "yr", "yrs", "year", "years"), _YEAR),
]:
    for _name in _names:
        _UNITS[_name] = _secs

_TERM_PATTERN = re.compile(r"\s*([0-9]+(?:\.[0-9]*)?|\.[0-9]+)\s*([^\s0-9.,]*)\s*,?")


def parse_duration(text: str) -> timedelta:
    """Parse a human-written duration such as ``1h 30m`` or ``10 minutes``."""
    if not text.strip():
        raise ValueError("empty duration")
    total = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _TERM_PATTERN.match(text, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"unexpected input at position {pos}")
        number, unit = match.groups()
        factor = _UNITS.get(unit.lower())
        if factor is None:
            raise ValueError(f"unknown unit `{unit}`")
        total += Decimal(number) * factor
        pos = match.end()
    micros = (total * 1_000_000).to_integral_value()
    return timedelta(microseconds=int(micros))


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if not isinstance(value, dict):
        raise ConfigError(f"missing section `{name}`")
    return value


def _string(section: dict[str, Any], name: str) -> str:
    value = section.get(name)
    if not isinstance(value, str):
        raise ConfigError(f"missing or invalid string field `{name}`")
    return value


def _duration(section: dict[str, Any], name: str) -> timedelta:
    text = _string(section, name)
    try:
        return parse_duration(text)
    except ValueError as exc:
        raise ConfigError(f"cannot parse duration `{text}`: {exc}") from exc


@dataclass(frozen=True)
class DbConfig:
    connection_string: str


@dataclass(frozen=True)
class HttpConfig:
    user_agent: str


@dataclass(frozen=True)
class AnilistConfig:
    startup_grace_period: timedelta
    schedule_poll_interval: timedelta
    shows_poll_interval: timedelta


@dataclass(frozen=True)
class NyaaConfig:
    scrape_interval: timedelta


@dataclass(frozen=True)
class ProcessorConfig:
    db: DbConfig
    anilist: AnilistConfig
    nyaa: NyaaConfig
    http: HttpConfig

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessorConfig:
        """Build the configuration from parsed TOML data."""
        db = _section(data, "db")
        anilist = _section(data, "anilist")
        nyaa = _section(data, "nyaa")
        http = _section(data, "http")
        return cls(
            db=DbConfig(_string(db, "connection_string")),
            anilist=AnilistConfig(
                startup_grace_period=_duration(anilist, "startup_grace_period"),
                schedule_poll_interval=_duration(anilist, "schedule_poll_interval"),
                shows_poll_interval=_duration(anilist, "shows_poll_interval"),
            ),
            nyaa=NyaaConfig(_duration(nyaa, "scrape_interval")),
            http=HttpConfig(_string(http, "user_agent")),
        )


def load_processor_config(path: str | Path = DEFAULT_PATH) -> ProcessorConfig:
    """Load the processor configuration from a TOML file."""
    data = load(path)
    try:
        return ProcessorConfig.from_dict(data)
    except ConfigError as exc:
        raise ConfigError(f"cannot load {Path(path)}") from exc