"""Client for the anilist GraphQL API."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import httpx

from moedb.timeutil import MINUTE

__all__ = [
    "ANILIST_URL",
    "AnilistError",
    "PageInfo",
    "AnilistClient",
    "make_http_client",
    "wait_for_grace_period",
]

log = logging.getLogger(__name__)

ANILIST_URL = "https://graphql.anilist.co"

# One request per second keeps us below the API's limit of 90 requests per minute.
REQUEST_INTERVAL = timedelta(seconds=1)
RETRY_MARGIN_SECS = 10

_RETRY_AFTER = re.compile(r"\+?[0-9]+")
_U64_MAX = 2**64 - 1


class AnilistError(Exception):
    """A request to the anilist API failed."""


@dataclass(frozen=True)
class PageInfo:
    total: int
    per_page: int
    current_page: int
    last_page: int
    has_next_page: bool

    @classmethod
    def from_dict(cls, data: Any) -> PageInfo:
        """Build the page information from a decoded ``pageInfo`` object."""
        if not isinstance(data, dict):
            raise ValueError("page info is not an object")
        values = {}
        for name in ("total", "per_page", "current_page", "last_page"):
            value = data.get(name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"missing or invalid field `{name}`")
            values[name] = value
        has_next = data.get("has_next_page")
        if not isinstance(has_next, bool):
            raise ValueError("missing or invalid field `has_next_page`")
        return cls(has_next_page=has_next, **values)


class AnilistClient:
    """Serialises requests, spaces them out and retries failures forever.

    Rate-limit responses are retried after the server's ``Retry-After`` delay
    plus a margin; other failures after a minute.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client
        self._lock = asyncio.Lock()
        self._last_start: float | None = None
        self._retry_after: int | None = None

    async def _pace(self) -> None:
        if self._last_start is not None:
            remaining = (
                self._last_start + REQUEST_INTERVAL.total_seconds() - time.monotonic()
            )
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_start = time.monotonic()

    async def request(self, query: str, variables: Any) -> Any:
        """Perform a GraphQL request and return its ``data`` member."""
        async with self._lock:
            await self._pace()
            while True:
                try:
                    return await self._request_once(query, variables)
                except Exception as exc:
                    log.error("could not perform request: %s", exc)
                    retry_after, self._retry_after = self._retry_after, None
                    delay = (
                        retry_after
                        if retry_after is not None
                        else MINUTE.total_seconds()
                    )
                    log.info("sleeping for %d seconds", delay)
                    await asyncio.sleep(delay)
                    self._last_start = time.monotonic()

    async def _request_once(self, query: str, variables: Any) -> Any:
        response = await self._client.post(
            ANILIST_URL,
            json={"query": query, "variables": variables},
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )
        limit = response.headers.get("Retry-After")
        if limit is not None:
            if _RETRY_AFTER.fullmatch(limit) and int(limit) <= _U64_MAX:
                num = int(limit)
                self._retry_after = num + RETRY_MARGIN_SECS
                raise AnilistError(f"Retry-After header is set: {num}")
            raise AnilistError("Retry-After header is set but the value is invalid")
        text = response.text
        try:
            body = json.loads(text)
        except ValueError:
            raise AnilistError(f"cannot parse response {text}") from None
        if not isinstance(body, dict):
            raise AnilistError(f"cannot parse response {text}")
        data = body.get("data")
        if data is not None:
            return data
        raise AnilistError(f"response data is null, errors: {body.get('errors')!r}")


def make_http_client(user_agent: str) -> httpx.AsyncClient:
    """Return the shared HTTP client, identifying us by ``user_agent``."""
    return httpx.AsyncClient(headers={"User-Agent": user_agent})


async def wait_for_grace_period(startup_time: float, grace_period: timedelta) -> None:
    """Sleep until ``grace_period`` after ``startup_time`` (a ``time.monotonic`` value).

    This keeps a repeatedly crashing process from putting load on the API.
    """
    delay = startup_time + grace_period.total_seconds() - time.monotonic()
    if delay > 0:
        await asyncio.sleep(delay)