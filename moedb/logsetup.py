"""Logger configuration, with systemd-journald aware formatting."""

from __future__ import annotations

import logging
import os
import re
import sys

__all__ = ["logging_to_journal", "configure_logger", "JournalFormatter"]

_NUMBER = re.compile(r"\+?[0-9]+")


def logging_to_journal() -> bool:
    """Return whether stderr is connected to the systemd journal."""
    stream = os.environ.get("JOURNAL_STREAM")
    if stream is None:
        return False
    dev, sep, ino = stream.partition(":")
    if not sep or not _NUMBER.fullmatch(dev) or not _NUMBER.fullmatch(ino):
        return False
    try:
        st = os.fstat(2)
    except OSError:
        return False
    return (st.st_dev, st.st_ino) == (int(dev), int(ino))


class JournalFormatter(logging.Formatter):
    """Formatter that prefixes each record with a journald priority."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR:
            prefix = "<3>"
        elif record.levelno >= logging.WARNING:
            prefix = "<4>"
        elif record.levelno >= logging.INFO:
            prefix = "<6>"
        else:
            prefix = "<7>"
        parts = [prefix]
        if record.name:
            parts.append(f"[{record.name}] ")
        parts.append(record.getMessage())
        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))
        return "".join(parts)


def configure_logger() -> logging.Handler:
    """Log INFO and above to stderr; return the installed handler."""
    handler = logging.StreamHandler(sys.stderr)
    if logging_to_journal():
        handler.setFormatter(JournalFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("[%(asctime)s %(levelname)s %(name)s] %(message)s")
        )
    root = logging.getLogger()
    root.setLevel(logging.INFO)
    root.addHandler(handler)
    return handler