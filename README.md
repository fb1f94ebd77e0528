# moedb

Building blocks for a service that indexes anime shows and the torrents
released for them.

- `moedb.formats`: the `Format` of a show (TV, TV short, movie, special,
  OVA, ONA) and the `ShowNameType` constants (`ROMAJI`, `ENGLISH`,
  `ADDITIONAL`). Formats convert to and from AniList strings and database
  constants.
- `moedb.season`: `Season` and `YearSeason`, the part of the year in which
  a show aired. Each has a database form, a display form and a URL form,
  and a `YearSeason` can step to the previous or next season.
- `moedb.timeutil`: `sleep_until`, `format_duration` (ISO 8601 form, `?`
  for negative durations) and the `MINUTE` and `HOUR` constants.
- `moedb.config`: `load` reads a TOML file (`config.toml` by default) into
  a dict. `parse_duration` parses human-written intervals such as
  `1h 30m` or `10 minutes`. `load_processor_config` builds a
  `ProcessorConfig` with `db`, `anilist`, `nyaa` and `http` sections.
  Failures raise `ConfigError`.
- `moedb.logsetup`: `configure_logger` logs INFO and above to stderr. It
  switches to systemd-journald priority prefixes (`JournalFormatter`) when
  `logging_to_journal()` finds that stderr is the journal.
- `moedb.heap`: `AsciiHeap`, a compact prefix-search structure over
  `[a-z0-9]` keys.
- `moedb.dbstate`: `get_state` and `set_state` read and write JSON values
  in `magnets.state`. `DbWatcher` and `WatchMessageHandler` react to
  `state_change` notifications.
- `moedb.values` and `moedb.schema`: the line-based text encoding of column
  values (`PgType`, `codec_for`, `escape_text`, `read_text`) and the
  description of tables and sequences (`Schema`, `Table`, `Column`,
  `Sequence`, `get_schema`).
- `moedb.dumper`: `dump` writes the `magnets` schema into a directory tree,
  and `load` reads it back into empty tables.
- `moedb.anilist`: `AnilistClient`, a client for the AniList GraphQL API.
  It runs one request at a time with at least a second between requests,
  honours `Retry-After`, and retries failures until they succeed. The
  module also provides `make_http_client` and `wait_for_grace_period`.
- `moedb.schedule` and `moedb.shows`: synchronise the airing schedule
  (`compute_diff`, `load_schedule_now`) and the show catalogue
  (`load_shows_now`) from AniList into the database.

## Seasons and formats

```python
from moedb.formats import Format
from moedb.season import Season, YearSeason

fmt = Format.from_anilist("TV_SHORT")
fmt.as_str()          # "TV Short"
fmt.to_db()           # 2

ys = YearSeason.from_url_str("Spring-2020")
ys.to_db()            # 202002
ys.display_name()     # "Spring 2020"
ys.next().to_url_str()  # "Summer-2020"
ys.prev().prev().to_url_str()  # "Fall-2019"

YearSeason.from_db(202004).season is Season.FALL
```

Invalid input raises `ValueError`.

## Prefix search

You build an `AsciiHeap` from `(name, payload)` pairs. Each name is
lowercased and reduced to its `[a-z0-9]` characters to form its key.
`find` returns the node of the longest stored prefix of a string. `iter`
yields every payload at or below that node.

```python
from moedb.heap import AsciiHeap

heap = AsciiHeap([("Shingeki no Kyojin", 1), ("Shingeki no Bahamut", 2)])
node = heap.find("shingekino")
sorted(heap.iter(node))   # [1, 2]
```

## Dumping values

Each supported column type (`TEXT`, `INT4`, `INT8`, `TIMESTAMPTZ`, `JSONB`,
`BYTEA`, `BOOL`) has a codec. The codec writes one line per value and reads
it back. Text is quoted and escaped, and NULL is written as `null`.

```python
from moedb.values import PgType, codec_for

codec = codec_for(PgType.TEXT)
line = codec.serialize('say "hi"')
codec.read(line.rstrip("\n"))   # 'say "hi"'
```

`dump(location, conn)` creates `location` and fills it as follows. It
refuses to run if `location` already exists.

- `tables/<table>/` holds one file per row, with one line per column.
- `sequences/<name>` holds each sequence's next value.
- `schema.json` describes the tables and sequences.

`load(root, conn)` first checks that `schema.json` matches the database.
It then inserts the rows and sets the sequences.

## Schedule diffs

`compute_diff` compares the schedule items stored in the database with the
items fetched from AniList. It returns the additions and deletions needed
to bring the stored schedule up to date:

```python
from moedb.schedule import compute_diff

changes = compute_diff(existing_items, fetched_items)
```

## What this package does not do

- It opens no database connections of its own and does not depend on a
  database driver. The functions in `dbstate`, `schema`, `dumper`,
  `schedule` and `shows` take a connection object that you supply. That
  object must offer asyncpg-style `fetch`, `fetchrow`, `execute`,
  `executemany` and `transaction(isolation=...)` methods.
- It has no command-line program. Dumping, loading and synchronising are
  library calls.
- It has no long-running service. Nothing here polls AniList on a timer or
  scrapes torrent sites. Torrent titles are not matched to shows either,
  although `AsciiHeap` can serve as the index for such matching.

## Tests

The test suite uses pytest, pytest-asyncio and respx. Install them with
the `test` extra.