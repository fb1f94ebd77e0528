"""Synchronisation of ``magnets.show`` and ``magnets.show_name`` with anilist."""

from __future__ import annotations

import itertools
import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Any

from moedb.anilist import PageInfo
from moedb.formats import Format, ShowNameType
from moedb.season import Season, YearSeason

__all__ = [
    "SHOWS_QUERY",
    "Name",
    "Show",
    "load_shows_from_db",
    "load_shows_page",
    "load_shows_now",
]

log = logging.getLogger(__name__)

SHOWS_QUERY = """
query ($page: Int) {
  page: Page(perPage: 50, page: $page) {
    page_info: pageInfo {
      total
      per_page: perPage
      current_page: currentPage
      last_page: lastPage
      has_next_page: hasNextPage
    }
    media(sort: ID, format_in: [TV, TV_SHORT, MOVIE, SPECIAL, OVA, ONA]) {
      id
      title {
        romaji
        english
      }
      season_year: seasonYear
      season
      format
    }
  }
}"""

_LOAD_SHOWS_SQL = "select show_id, show_format, season, anilist_id from magnets.show"
_LOAD_NAMES_SQL = (
    "select show_name_id, show_id, name, show_name_type from magnets.show_name"
)
_UPDATE_FORMAT_SQL = "update magnets.show set show_format = $1 where show_id = $2"
_UPDATE_SEASON_SQL = "update magnets.show set season = $1 where show_id = $2"
_UPDATE_NAME_SQL = "update magnets.show_name set name = $1 where show_name_id = $2"
_INSERT_NAME_SQL = (
    "insert into magnets.show_name (show_id, show_name_type, name) values ($1, $2, $3)"
)
_INSERT_SHOW_SQL = (
    "insert into magnets.show (anilist_id, show_format, season) "
    "values ($1, $2, $3) returning show_id"
)


@dataclass(frozen=True)
class Name:
    show_name_id: int
    name: str
    show_name_type: int


@dataclass
class Show:
    show_id: int
    anilist_id: int
    format: Format
    season: YearSeason | None
    names: list[Name] = field(default_factory=list)


async def load_shows_from_db(conn: Any) -> dict[int, Show]:
    """Return the stored shows with their names, keyed by anilist id."""
    async with conn.transaction(isolation="repeatable_read"):
        by_id: dict[int, Show] = {}
        for row in await conn.fetch(_LOAD_SHOWS_SQL):
            season = row["season"]
            show = Show(
                show_id=row["show_id"],
                anilist_id=row["anilist_id"],
                format=Format.from_db(row["show_format"]),
                season=YearSeason.from_db(season) if season is not None else None,
            )
            by_id[show.show_id] = show
        for row in await conn.fetch(_LOAD_NAMES_SQL):
            show = by_id.get(row["show_id"])
            if show is None:
                raise LookupError(f"show name refers to unknown show {row['show_id']}")
            show.names.append(
                Name(row["show_name_id"], row["name"], row["show_name_type"])
            )
    return {show.anilist_id: show for show in by_id.values()}


def _nfc(text: str) -> str:
    return unicodedata.normalize("NFC", text)


def _season_of(media: Any) -> tuple[bool, YearSeason | None]:
    """Return whether the season is usable, and the season if one is given."""
    year, name = media.get("season_year"), media.get("season")
    if year is None or name is None:
        return True, None
    try:
        season = Season.from_anilist_str(name)
    except ValueError:
        log.warning("cannot parse anilist season: %s", name)
        return False, None
    return True, YearSeason(year, season)


def _names_of(media: Any) -> list[Name]:
    title = media["title"]
    romaji = _nfc(title["romaji"])
    names = []
    english = title.get("english")
    if english is not None:
        english = _nfc(english)
        if english != romaji:
            names.append(Name(-1, english, ShowNameType.ENGLISH))
    names.append(Name(-1, romaji, ShowNameType.ROMAJI))
    return names


async def _update_show(
    conn: Any, show: Show, fmt: Format, season: YearSeason | None, names: list[Name]
) -> None:
    if show.format != fmt:
        log.info(
            "updating format of show %d from %s to %s", show.show_id, show.format, fmt
        )
        await conn.execute(_UPDATE_FORMAT_SQL, fmt.to_db(), show.show_id)
    if show.season != season:
        log.info(
            "updating season of show %d from %r to %r", show.show_id, show.season, season
        )
        await conn.execute(
            _UPDATE_SEASON_SQL,
            season.to_db() if season is not None else None,
            show.show_id,
        )
    for name in names:
        old = next(
            (n for n in show.names if n.show_name_type == name.show_name_type), None
        )
        if old is None:
            log.info(
                "adding new name (%d) to show %d: %s",
                name.show_name_type,
                show.show_id,
                name.name,
            )
            await conn.execute(
                _INSERT_NAME_SQL, show.show_id, name.show_name_type, name.name
            )
        elif old.name != name.name:
            log.info(
                "updating name (%d) of show %d from %s to %s",
                old.show_name_type,
                show.show_id,
                old.name,
                name.name,
            )
            await conn.execute(_UPDATE_NAME_SQL, name.name, old.show_name_id)


async def load_shows_page(
    conn: Any, existing: dict[int, Show], client: Any, page: int
) -> bool:
    """Apply one page of anilist shows; return whether another page follows.

    Each page is applied in its own transaction. Shows whose format or season
    cannot be parsed are skipped.
    """
    log.info("loading anilist shows page %d", page)
    data = await client.request(SHOWS_QUERY, {"page": page})
    page_data = data["page"]
    async with conn.transaction(isolation="repeatable_read"):
        for media in page_data["media"]:
            try:
                fmt = Format.from_anilist(media["format"])
            except ValueError:
                log.warning("cannot parse format of anilist show: %s", media["format"])
                continue
            usable, season = _season_of(media)
            if not usable:
                continue
            names = _names_of(media)
            show = existing.get(media["id"])
            if show is not None:
                await _update_show(conn, show, fmt, season, names)
                continue
            log.info("adding new show %s", media["title"]["romaji"])
            row = await conn.fetchrow(
                _INSERT_SHOW_SQL,
                media["id"],
                fmt.to_db(),
                season.to_db() if season is not None else None,
            )
            show_id = row["show_id"]
            for name in names:
                await conn.execute(
                    _INSERT_NAME_SQL, show_id, name.show_name_type, name.name
                )
    return PageInfo.from_dict(page_data["page_info"]).has_next_page


async def load_shows_now(conn: Any, client: Any) -> None:
    """Refresh the stored copy of the anilist shows database."""
    shows = await load_shows_from_db(conn)
    log.info("loaded %d existing shows", len(shows))
    # Pages follow anilist's ids, so shows are only missed if older ones are deleted.
    for page in itertools.count(1):
        if not await load_shows_page(conn, shows, client, page):
            break