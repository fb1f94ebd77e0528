"""Show formats, seasons, prefix search, database dump and load, and AniList synchronisation."""

__version__ = "0.1.0"