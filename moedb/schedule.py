"""Synchronisation of ``magnets.schedule`` with the anilist airing schedule."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from operator import attrgetter
from typing import Any

from moedb.anilist import PageInfo

__all__ = [
    "SCHEDULE_QUERY",
    "Item",
    "ExistingItem",
    "DiffKind",
    "Diff",
    "compute_diff",
    "load_existing_items",
    "load_new_items",
    "apply_diff",
    "load_schedule_now",
]

log = logging.getLogger(__name__)

SCHEDULE_QUERY = """
query ($start: Int, $stop: Int, $page: Int) {
  page: Page(perPage: 50, page: $page) {
    page_info: pageInfo {
      total
      per_page: perPage
      current_page: currentPage
      last_page: lastPage
      has_next_page: hasNextPage
    }
    airing_schedule: airingSchedules(airingAt_greater: $start, airingAt_lesser: $stop) {
      airing_at: airingAt
      episode
      media_id: mediaId
    }
  }
}"""

_LOAD_ITEMS_SQL = """
    select sch.schedule_id, sch.show_id, sch.episode, sch.airs_at, sho.anilist_id
    from magnets.schedule sch
    join magnets.show sho using (show_id)"""

_DELETE_SQL = "delete from magnets.schedule where schedule_id = $1"

_INSERT_SQL = """
                    insert into magnets.schedule (show_id, episode, airs_at)
                    select show_id, $2, $3
                    from magnets.show
                    where anilist_id = $1"""


@dataclass(frozen=True, order=True)
class Item:
    """One episode airing at a given time."""

    airs_at: datetime
    anilist_id: int
    episode: int


@dataclass(frozen=True)
class ExistingItem:
    """An item already stored in the database."""

    item: Item
    schedule_id: int


class DiffKind(Enum):
    ADD = "add"
    DELETE = "delete"


@dataclass(frozen=True)
class Diff:
    """A change to apply to the stored schedule."""

    kind: DiffKind
    item: Item
    schedule_id: int | None = None

    @classmethod
    def add(cls, item: Item) -> Diff:
        return cls(DiffKind.ADD, item)

    @classmethod
    def delete(cls, existing: ExistingItem) -> Diff:
        return cls(DiffKind.DELETE, existing.item, existing.schedule_id)


def compute_diff(existing: Iterable[ExistingItem], new: Iterable[Item]) -> list[Diff]:
    """Return the additions and deletions that turn ``existing`` into ``new``."""
    old_items = sorted(reversed(list(existing)), key=attrgetter("item"))
    new_items = sorted(new)
    result: list[Diff] = []
    i = j = 0
    while i < len(old_items) and j < len(new_items):
        old, fresh = old_items[i], new_items[j]
        if old.item < fresh:
            result.append(Diff.delete(old))
            i += 1
        elif old.item > fresh:
            result.append(Diff.add(fresh))
            j += 1
        else:
            i += 1
            j += 1
    result.extend(Diff.add(item) for item in new_items[j:])
    result.extend(Diff.delete(old) for old in old_items[i:])
    return result


async def load_existing_items(conn: Any) -> list[ExistingItem]:
    """Return the schedule currently stored in the database."""
    rows = await conn.fetch(_LOAD_ITEMS_SQL)
    return [
        ExistingItem(
            Item(row["airs_at"], row["anilist_id"], row["episode"]),
            row["schedule_id"],
        )
        for row in rows
    ]


def _item_from_anilist(data: Any) -> Item:
    return Item(
        datetime.fromtimestamp(data["airing_at"], timezone.utc),
        data["media_id"],
        data["episode"],
    )


async def load_new_items(client: Any, today: date | None = None) -> list[Item]:
    """Fetch the airing schedule from yesterday up to a week after ``today``.

    One day more than is displayed is loaded to cover the time between
    midnight and the next reload.
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    midnight = datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    start = int((midnight - timedelta(days=1)).timestamp())
    stop = int((midnight + timedelta(days=7)).timestamp())
    items: list[Item] = []
    for page in itertools.count(1):
        log.info("loading schedule page %d", page)
        data = await client.request(
            SCHEDULE_QUERY, {"start": start, "stop": stop, "page": page}
        )
        page_data = data["page"]
        items.extend(_item_from_anilist(a) for a in page_data["airing_schedule"])
        if not PageInfo.from_dict(page_data["page_info"]).has_next_page:
            break
    return items


async def apply_diff(conn: Any, diff: Iterable[Diff]) -> None:
    """Apply the changes to ``magnets.schedule``."""
    for change in diff:
        if change.kind is DiffKind.DELETE:
            await conn.execute(_DELETE_SQL, change.schedule_id)
        else:
            item = change.item
            await conn.execute(_INSERT_SQL, item.anilist_id, item.episode, item.airs_at)


async def load_schedule_now(
    conn: Any, client: Any, today: date | None = None
) -> list[Diff]:
    """Bring the stored schedule up to date in one transaction; return the changes."""
    async with conn.transaction(isolation="repeatable_read"):
        existing = await load_existing_items(conn)
        new = await load_new_items(client, today)
        diff = compute_diff(existing, new)
        log.info("found %d schedule changes", len(diff))
        await apply_diff(conn, diff)
    return diff