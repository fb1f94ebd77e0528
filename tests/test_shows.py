import unicodedata
from contextlib import asynccontextmanager

import pytest

from moedb.formats import Format, ShowNameType
from moedb.season import Season, YearSeason
from moedb.shows import (
    SHOWS_QUERY,
    Name,
    Show,
    load_shows_from_db,
    load_shows_now,
    load_shows_page,
)


class FakeConn:
    def __init__(self, shows=None, names=None, new_show_id=0):
        self.shows = shows or []
        self.names = names or []
        self.new_show_id = new_show_id
        self.executed = []
        self.isolations = []
        self.committed = 0

    @asynccontextmanager
    async def transaction(self, isolation=None):
        self.isolations.append(isolation)
        yield
        self.committed += 1

    async def fetch(self, sql, *args):
        if "magnets.show_name" in sql:
            return self.names
        if "magnets.show" in sql:
            return self.shows
        raise AssertionError(sql)

    async def execute(self, sql, *args):
        self.executed.append((" ".join(sql.split()), args))

    async def fetchrow(self, sql, *args):
        self.executed.append((" ".join(sql.split()), args))
        return {"show_id": self.new_show_id}


class FakeClient:
    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def request(self, query, variables):
        self.calls.append((query, dict(variables)))
        return self.pages[variables["page"] - 1]


def media(anilist_id, romaji, english=None, fmt="TV", season=None, year=None):
    return {
        "id": anilist_id,
        "title": {"romaji": romaji, "english": english},
        "season_year": year,
        "season": season,
        "format": fmt,
    }


def page(items, has_next=False):
    return {
        "page": {
            "page_info": {
                "total": 0,
                "per_page": 50,
                "current_page": 1,
                "last_page": 1,
                "has_next_page": has_next,
            },
            "media": items,
        }
    }


@pytest.mark.asyncio
async def test_load_shows_from_db_keys_by_anilist_id():
    conn = FakeConn(
        shows=[
            {"show_id": 1, "show_format": 3, "season": 202002, "anilist_id": 500},
            {"show_id": 2, "show_format": 1, "season": None, "anilist_id": 600},
        ],
        names=[{"show_name_id": 9, "show_id": 1, "name": "Foo", "show_name_type": 1}],
    )
    shows = await load_shows_from_db(conn)
    assert set(shows) == {500, 600}
    assert shows[500] == Show(
        1, 500, Format.MOVIE, YearSeason(2020, Season.SPRING), [Name(9, "Foo", 1)]
    )
    assert shows[600].season is None
    assert shows[600].names == []
    assert conn.isolations == ["repeatable_read"]


@pytest.mark.asyncio
async def test_load_shows_from_db_unknown_show_name():
    conn = FakeConn(
        names=[{"show_name_id": 9, "show_id": 1, "name": "Foo", "show_name_type": 1}]
    )
    with pytest.raises(LookupError):
        await load_shows_from_db(conn)


@pytest.mark.asyncio
async def test_new_show_inserted_with_names():
    conn = FakeConn(new_show_id=42)
    client = FakeClient(
        [page([media(7, "Romaji", "English", "OVA", "FALL", 2020)], has_next=True)]
    )
    assert await load_shows_page(conn, {}, client, 1) is True
    assert client.calls == [(SHOWS_QUERY, {"page": 1})]
    sql, args = conn.executed[0]
    assert sql.startswith("insert into magnets.show (anilist_id")
    assert args == (7, Format.OVA.to_db(), YearSeason(2020, Season.FALL).to_db())
    assert [a for _, a in conn.executed[1:]] == [
        (42, ShowNameType.ENGLISH, "English"),
        (42, ShowNameType.ROMAJI, "Romaji"),
    ]
    assert conn.committed == 1


@pytest.mark.asyncio
async def test_english_equal_to_romaji_is_dropped_and_nfc_applied():
    conn = FakeConn(new_show_id=3)
    decomposed = "Cafe\u0301"
    client = FakeClient([page([media(8, decomposed, decomposed)])])
    assert await load_shows_page(conn, {}, client, 1) is False
    inserted = [a for _, a in conn.executed[1:]]
    assert inserted == [(3, ShowNameType.ROMAJI, unicodedata.normalize("NFC", decomposed))]
    assert conn.executed[0][1][2] is None


@pytest.mark.asyncio
async def test_unparsable_format_or_season_skipped():
    conn = FakeConn()
    client = FakeClient(
        [page([media(1, "A", fmt="MUSIC"), media(2, "B", season="MONSOON", year=2020)])]
    )
    await load_shows_page(conn, {}, client, 1)
    assert conn.executed == []
    assert conn.committed == 1


@pytest.mark.asyncio
async def test_existing_show_updated():
    show = Show(
        5,
        100,
        Format.TV,
        YearSeason(2020, Season.SPRING),
        [Name(11, "Old", ShowNameType.ROMAJI)],
    )
    conn = FakeConn()
    client = FakeClient([page([media(100, "New", "Eng", "MOVIE", "SUMMER", 2020)])])
    await load_shows_page(conn, {100: show}, client, 1)
    assert conn.executed == [
        ("update magnets.show set show_format = $1 where show_id = $2",
         (Format.MOVIE.to_db(), 5)),
        ("update magnets.show set season = $1 where show_id = $2",
         (YearSeason(2020, Season.SUMMER).to_db(), 5)),
        ("insert into magnets.show_name (show_id, show_name_type, name) values ($1, $2, $3)",
         (5, ShowNameType.ENGLISH, "Eng")),
        ("update magnets.show_name set name = $1 where show_name_id = $2", ("New", 11)),
    ]


@pytest.mark.asyncio
async def test_unchanged_existing_show_needs_no_statements():
    show = Show(5, 100, Format.TV, None, [Name(11, "Same", ShowNameType.ROMAJI)])
    conn = FakeConn()
    client = FakeClient([page([media(100, "Same")])])
    await load_shows_page(conn, {100: show}, client, 1)
    assert conn.executed == []


@pytest.mark.asyncio
async def test_load_shows_now_walks_all_pages():
    conn = FakeConn(new_show_id=1)
    client = FakeClient(
        [page([], True), page([media(1, "X")], True), page([], False), page([], True)]
    )
    await load_shows_now(conn, client)
    assert [v["page"] for _, v in client.calls] == [1, 2, 3]
    assert conn.executed[0][1][0] == 1
    assert conn.committed == 4