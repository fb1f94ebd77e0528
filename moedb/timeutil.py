"""Time helpers."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta

__all__ = ["MINUTE", "HOUR", "sleep_until", "format_duration"]

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)

_SECS_PER_DAY = 86_400


async def sleep_until(when: datetime) -> None:
    """Sleep until ``when``; return at once if it lies in the past."""
    delay = when.timestamp() - time.time()
    if delay > 0:
        await asyncio.sleep(delay)


def format_duration(duration: timedelta) -> str:
    """Format a non-negative duration in ISO 8601 form, or ``?`` if negative."""
    if duration < timedelta(0):
        return "?"
    micros_total = duration // timedelta(microseconds=1)
    secs_total, micros = divmod(micros_total, 1_000_000)
    days, secs = divmod(secs_total, _SECS_PER_DAY)
    nanos = micros * 1000
    parts = ["P"]
    if days:
        parts.append(f"{days}D")
    if secs or nanos or not days:
        if nanos == 0:
            parts.append(f"T{secs}S")
        elif nanos % 1_000_000 == 0:
            parts.append(f"T{secs}.{nanos // 1_000_000:03}S")
        else:
            parts.append(f"T{secs}.{micros:06}S")
    return "".join(parts)