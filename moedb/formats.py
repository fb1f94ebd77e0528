"""Show formats and show name types."""

from __future__ import annotations

from enum import Enum

__all__ = ["Format", "ShowNameType"]


class Format(Enum):
    """Format of a "show": the generic term for any of these."""

    TV = 1
    TV_SHORT = 2
    MOVIE = 3
    SPECIAL = 4
    OVA = 5
    ONA = 6

    @classmethod
    def from_anilist(cls, name: str) -> Format:
        """Parse a format string returned by the anilist API."""
        try:
            return _ANILIST_NAMES[name]
        except (KeyError, TypeError):
            raise ValueError(f"invalid format {name}") from None

    @classmethod
    def from_db(cls, value: int) -> Format:
        """Parse a database format constant."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"invalid format {value}") from None

    def to_db(self) -> int:
        """Return the database constant of the format."""
        return self.value

    def as_str(self) -> str:
        """Return the human-readable name of the format."""
        return _LABELS[self]

    def __str__(self) -> str:
        return self.as_str()


_ANILIST_NAMES = {
    "TV": Format.TV,
    "TV_SHORT": Format.TV_SHORT,
    "MOVIE": Format.MOVIE,
    "SPECIAL": Format.SPECIAL,
    "OVA": Format.OVA,
    "ONA": Format.ONA,
}

_LABELS = {
    Format.TV: "TV Show",
    Format.TV_SHORT: "TV Short",
    Format.MOVIE: "Movie",
    Format.SPECIAL: "Special",
    Format.OVA: "OVA",
    Format.ONA: "ONA",
}


class ShowNameType:
    """Values of the `show_name_type` column."""

    ROMAJI = 1
    ENGLISH = 2
    ADDITIONAL = 3