import pytest

from moedb.formats import Format


@pytest.mark.parametrize("fmt", list(Format))
def test_db_round_trip(fmt):
    assert Format.from_db(fmt.to_db()) is fmt


@pytest.mark.parametrize(
    "name, expected",
    [
        ("TV", Format.TV),
        ("TV_SHORT", Format.TV_SHORT),
        ("MOVIE", Format.MOVIE),
        ("SPECIAL", Format.SPECIAL),
        ("OVA", Format.OVA),
        ("ONA", Format.ONA),
    ],
)
def test_from_anilist(name, expected):
    assert Format.from_anilist(name) is expected


def test_db_constants_cover_every_format():
    decoded = {Format.from_db(value) for value in range(1, 7)}
    assert decoded == set(Format)


def test_movie_db_constant():
    assert Format.MOVIE.to_db() == 3


@pytest.mark.parametrize(
    "fmt, label",
    [
        (Format.TV, "TV Show"),
        (Format.TV_SHORT, "TV Short"),
        (Format.MOVIE, "Movie"),
        (Format.OVA, "OVA"),
    ],
)
def test_labels(fmt, label):
    assert fmt.as_str() == label
    assert str(fmt) == label


def test_invalid_anilist_name():
    with pytest.raises(ValueError, match="invalid format tv"):
        Format.from_anilist("tv")


@pytest.mark.parametrize("value", [0, 7, -1])
def test_invalid_db_value(value):
    with pytest.raises(ValueError, match="invalid format"):
        Format.from_db(value)