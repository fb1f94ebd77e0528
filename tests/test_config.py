from datetime import timedelta

import pytest

from moedb.config import (
    ConfigError,
    ProcessorConfig,
    load,
    load_processor_config,
    parse_duration,
)

GOOD = """
[db]
connection_string = "host=localhost user=user"

[http]
user_agent = "moedb-test"

[anilist]
startup_grace_period = "1m"
schedule_poll_interval = "1 hour"
shows_poll_interval = "1d"

[nyaa]
scrape_interval = "90s"
"""


def _write(tmp_path, text):
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_returns_parsed_toml(tmp_path):
    data = load(_write(tmp_path, GOOD))
    assert data["http"]["user_agent"] == "moedb-test"


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="cannot load"):
        load(tmp_path / "absent.toml")


def test_load_invalid_toml(tmp_path):
    with pytest.raises(ConfigError) as info:
        load(_write(tmp_path, "[db\n"))
    assert info.value.__cause__ is not None
    assert "cannot load" in str(info.value)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1h", timedelta(hours=1)),
        ("10 minutes", timedelta(minutes=10)),
        ("1h 30m", timedelta(hours=1, minutes=30)),
        ("90", timedelta(seconds=90)),
        ("2 days, 3 hours", timedelta(days=2, hours=3)),
        ("1.5s", timedelta(seconds=1.5)),
        ("250ms", timedelta(milliseconds=250)),
        ("2 weeks", timedelta(weeks=2)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "10 parsecs", "-5s", "1h x"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_load_processor_config(tmp_path):
    config = load_processor_config(_write(tmp_path, GOOD))
    assert config.db.connection_string == "host=localhost user=user"
    assert config.http.user_agent == "moedb-test"
    assert config.anilist.startup_grace_period == timedelta(minutes=1)
    assert config.anilist.schedule_poll_interval == timedelta(hours=1)
    assert config.anilist.shows_poll_interval == timedelta(days=1)
    assert config.nyaa.scrape_interval == timedelta(seconds=90)


def test_bad_duration_in_config(tmp_path):
    text = GOOD.replace('"90s"', '"soon"')
    with pytest.raises(ConfigError) as info:
        load_processor_config(_write(tmp_path, text))
    assert "cannot parse duration `soon`" in str(info.value.__cause__)


def test_missing_section():
    data = {"db": {"connection_string": "x"}, "http": {"user_agent": "y"}}
    with pytest.raises(ConfigError, match="anilist"):
        ProcessorConfig.from_dict(data)


def test_non_string_duration():
    data = {
        "db": {"connection_string": "x"},
        "http": {"user_agent": "y"},
        "anilist": {
            "startup_grace_period": 60,
            "schedule_poll_interval": "1h",
            "shows_poll_interval": "1d",
        },
        "nyaa": {"scrape_interval": "1m"},
    }
    with pytest.raises(ConfigError, match="startup_grace_period"):
        ProcessorConfig.from_dict(data)