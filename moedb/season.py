"""Seasons and year/season pairs in which shows aired."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

__all__ = ["Season", "YearSeason"]

_MAX_YEAR = 0xFFFF
_YEAR_RE = re.compile(r"\+?[0-9]+")


class Season(Enum):
    """The part of the year in which a show aired."""

    WINTER = 1
    SPRING = 2
    SUMMER = 3
    FALL = 4

    def to_db(self) -> int:
        """Return the database constant of the season."""
        return self.value

    @classmethod
    def from_db(cls, value: int) -> Season:
        """Parse a database season constant."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid season {value}") from None

    @classmethod
    def from_anilist_str(cls, s: str) -> Season:
        """Parse a season name returned by the anilist API."""
        season = cls.__members__.get(s)
        if season is None:
            raise ValueError(f"invalid season {s}")
        return season

    @classmethod
    def from_display_string(cls, s: str) -> Season:
        """Parse the string produced by ``str(season)``."""
        for season in cls:
            if str(season) == s:
                return season
        raise ValueError(f"invalid season {s}")

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class YearSeason:
    """The year and season in which a show aired."""

    year: int
    season: Season

    def __post_init__(self) -> None:
        if not 0 <= self.year <= _MAX_YEAR:
            raise ValueError(f"invalid year {self.year}")

    def to_db(self) -> int:
        """Return the database form, e.g. Spring 2020 is 202002."""
        return self.year * 100 + self.season.to_db()

    @classmethod
    def from_db(cls, value: int) -> YearSeason:
        """Parse the database form of a year and season."""
        year, rest = divmod(abs(value), 100)
        if value < 0:
            year, rest = -year, -rest
        if not 0 <= year <= _MAX_YEAR:
            raise ValueError(f"invalid year {year}")
        return cls(year, Season.from_db(rest))

    @classmethod
    def current(cls, today: date | None = None) -> YearSeason:
        """Return the season of ``today`` (the current UTC date by default)."""
        if today is None:
            today = datetime.now(timezone.utc).date()
        season = (Season.WINTER, Season.SPRING, Season.SUMMER, Season.FALL)[
            (today.month - 1) // 3
        ]
        return cls(today.year, season)

    def display_name(self) -> str:
        """Return a human-readable name such as ``Spring 2020``."""
        return f"{self.season} {self.year}"

    def prev(self) -> YearSeason:
        """Return the previous season."""
        if self.season is Season.WINTER:
            return YearSeason(self.year - 1, Season.FALL)
        return YearSeason(self.year, Season(self.season.value - 1))

    def next(self) -> YearSeason:
        """Return the next season."""
        if self.season is Season.FALL:
            return YearSeason(self.year + 1, Season.WINTER)
        return YearSeason(self.year, Season(self.season.value + 1))

    def to_url_str(self) -> str:
        """Return a unique identifier suitable for use in a URL."""
        return f"{self.season}-{self.year}"

    @classmethod
    def from_url_str(cls, s: str) -> YearSeason:
        """Parse the identifier produced by :meth:`to_url_str`."""
        left, sep, right = s.partition("-")
        if not sep:
            raise ValueError(f"invalid year season {s}")
        season = Season.from_display_string(left)
        if not _YEAR_RE.fullmatch(right) or int(right) > _MAX_YEAR:
            raise ValueError(f"invalid year season {s}")
        return cls(int(right), season)

    def __repr__(self) -> str:
        return f"{self.year} {self.season}"