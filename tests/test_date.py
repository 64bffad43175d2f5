from datetime import datetime, timezone

import pytest

from rctkit.date import Date, DateMode

SAMPLES = [0, 86400 * 200 + 3723, 1_700_000_000, 951_782_400]


def test_default_is_epoch():
    assert Date().is_epoch()
    assert not Date(1).is_epoch()


def test_epoch_fields():
    d = Date(0)
    assert d.year() == 1970
    assert d.month() == 0
    assert d.date() == 1
    assert d.hours() == d.minutes() == d.seconds() == 0


@pytest.mark.parametrize("t", SAMPLES)
def test_utc_fields_match_calendar(t):
    d = Date(t)
    expected = datetime.fromtimestamp(t, timezone.utc)
    assert d.year() == expected.year
    assert d.month() == expected.month - 1
    assert d.date() == expected.day
    assert d.hours() == expected.hour
    assert d.minutes() == expected.minute
    assert d.seconds() == expected.second
    assert d.day() == expected.isoweekday() % 7


@pytest.mark.parametrize("t", SAMPLES)
def test_utc_time_round_trip(t):
    d = Date(t)
    assert d.time() == t
    d.set_time(t + 5)
    assert d.time(DateMode.UTC) == t + 5


@pytest.mark.parametrize("t", SAMPLES[1:])
def test_local_time_round_trip(t):
    assert Date(t).time(DateMode.LOCAL) == t


@pytest.mark.parametrize("t", SAMPLES[1:])
def test_local_set_shifts_fields(t):
    shifted = Date(t, DateMode.LOCAL)
    plain = Date(t)
    assert shifted.hours() == plain.hours(DateMode.LOCAL)
    assert shifted.minutes() == plain.minutes(DateMode.LOCAL)
    assert shifted.date() == plain.date(DateMode.LOCAL)
    assert shifted.year() == plain.year(DateMode.LOCAL)


def test_equality_follows_stored_time():
    assert Date(42) == Date(42)
    assert Date(42) != Date(43)