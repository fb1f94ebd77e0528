"""Access to ``magnets.state`` and notifications of its changes."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from datetime import date, datetime
from typing import Any

__all__ = [
    "MAX_NYAA_SI_ID",
    "REMATCH_UNMATCHED",
    "LAST_SHOWS_UPDATE",
    "LAST_SCHEDULE_UPDATE",
    "INITIAL_SETUP",
    "STATE_CHANNEL",
    "DbStateError",
    "DbWatcher",
    "WatchMessageHandler",
    "set_state",
    "get_state",
]

log = logging.getLogger(__name__)

MAX_NYAA_SI_ID = "max_nyaa_si_id"
REMATCH_UNMATCHED = "rematch_unmatched"
LAST_SHOWS_UPDATE = "last_shows_update"
LAST_SCHEDULE_UPDATE = "last_schedule_update"
INITIAL_SETUP = "initial_setup"

STATE_CHANNEL = "state_change"

_WATCHED = (MAX_NYAA_SI_ID, REMATCH_UNMATCHED, LAST_SHOWS_UPDATE, LAST_SCHEDULE_UPDATE)


class DbStateError(Exception):
    """A state value could not be read, written or watched."""


class _Notify:
    """Wakes one waiter, or stores a single permit if nobody is waiting."""

    def __init__(self) -> None:
        self._permit = False
        self._waiters: deque[asyncio.Future[None]] = deque()

    def notify(self) -> None:
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._permit = True

    async def notified(self) -> None:
        if self._permit:
            self._permit = False
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut in self._waiters:
                self._waiters.remove(fut)
            elif fut.done() and not fut.cancelled():
                self.notify()
            raise


class DbWatcher:
    """One notifier per watched row of ``magnets.state``."""

    def __init__(self) -> None:
        self.max_nyaa_si_id = _Notify()
        self.rematch_unmatched = _Notify()
        self.last_shows_update = _Notify()
        self.last_schedule_update = _Notify()

    def _notifiers(self) -> dict[str, _Notify]:
        return {name: getattr(self, name) for name in _WATCHED}

    def notify_all(self) -> None:
        """Wake every watcher."""
        for notifier in self._notifiers().values():
            notifier.notify()

    def handle_str(self, s: str) -> None:
        """Wake the watcher of the row named ``s``; unknown names are logged."""
        notifier = self._notifiers().get(s)
        if notifier is None:
            log.warning("received unknown state change: %s", s)
            return
        log.info("received state change of row %s", s)
        notifier.notify()

    def message_handler(self) -> WatchMessageHandler:
        """Return a message handler that feeds this watcher."""
        return WatchMessageHandler(self)


class WatchMessageHandler:
    """Subscribes a connection to state changes and dispatches them."""

    def __init__(self, watcher: DbWatcher) -> None:
        self.watcher = watcher

    async def listen(self, client: Any) -> None:
        """Subscribe ``client`` and wake all watchers, since changes may have been missed."""
        try:
            await client.execute(f"listen {STATE_CHANNEL}")
        except Exception as exc:
            raise DbStateError(f"could not execute `listen {STATE_CHANNEL}`") from exc
        self.watcher.notify_all()

    def handle(self, channel: str, payload: str) -> None:
        """Handle a notification received on ``channel``."""
        if channel != STATE_CHANNEL:
            raise ValueError(f"unexpected notification channel {channel}")
        self.watcher.handle_str(payload)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"cannot serialize {type(value).__name__}")


async def set_state(conn: Any, key: str, value: Any) -> None:
    """Store ``value`` as JSON under ``key`` in ``magnets.state``."""
    try:
        encoded = json.dumps(value, default=_json_default)
        await conn.execute(
            "update magnets.state set value = $1 where key = $2", encoded, key
        )
    except Exception as exc:
        raise DbStateError(f"cannot set database state of {key} to {value!r}") from exc


async def get_state(conn: Any, key: str) -> Any:
    """Return the decoded JSON value stored under ``key`` in ``magnets.state``."""
    try:
        row = await conn.fetchrow("select value from magnets.state where key = $1", key)
        if row is None:
            raise LookupError(f"no state row {key}")
        raw = row[0]
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        return json.loads(raw) if isinstance(raw, str) else raw
    except Exception as exc:
        raise DbStateError(f"cannot retrieve database state of {key}") from exc