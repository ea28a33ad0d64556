# tests/test_schedule.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from hypothesis import given, strategies as st

from miqat.core.models import (
    Configuration,
    ConfigurationError,
    Event,
    HighLatitudeRule,
    Madhab,
    Method,
    Parameters,
    TimeAdjustment,
)
from miqat.core.schedule import CFG, PrayerSchedule, PrayerTimes
from miqat.core.units import Coordinates


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _hm(value: datetime) -> str:
    return value.strftime("%H:%M")


# ───────────────────────── reference day ─────────────────────────
def test_daily_times(raleigh_times):
    t = raleigh_times
    assert t.fajr == _utc(2015, 7, 12, 8, 42)
    assert t.sunrise == _utc(2015, 7, 12, 10, 8)
    assert t.dhuhr == _utc(2015, 7, 12, 17, 21)
    assert t.asr == _utc(2015, 7, 12, 22, 22)
    assert t.maghrib == _utc(2015, 7, 13, 0, 32)
    assert t.isha == _utc(2015, 7, 13, 1, 57)


def test_night_division(raleigh_times):
    t = raleigh_times
    assert t.midnight == _utc(2015, 7, 13, 4, 38)
    assert t.qiyam == _utc(2015, 7, 13, 5, 59)
    assert t.fajr_tomorrow == _utc(2015, 7, 13, 8, 43)
    assert t.midnight_yesterday < t.qiyam_yesterday < t.fajr


def test_time_lookup_by_event_and_name(raleigh_times):
    t = raleigh_times
    assert t.time(Event.FAJR) == t.fajr
    assert t.time("isha") == t.isha
    assert t.time(Event.QIYAM) == t.qiyam
    assert t.time(Event.DURING_SUNRISE) == t.sunrise
    assert t.time(Event.DURING_SUNSET) == t.maghrib - timedelta(minutes=CFG.forbidden_window_min)
    assert t.time(Event.AFTER_MIDNIGHT) == t.midnight
    with pytest.raises(ConfigurationError):
        t.time("tahajjud")


def test_as_dict_is_time_ordered(raleigh_times):
    d = raleigh_times.as_dict()
    assert list(d) == list(PrayerTimes._FIELDS)
    values = list(d.values())
    assert values == sorted(values)
    assert raleigh_times.missing == []


def test_repr_shows_clock_times(raleigh_times):
    text = repr(raleigh_times)
    assert "2015-07-12" in text
    assert "fajr=08:42" in text
    assert "isha=01:57" in text


# ───────────────────────── state machine ─────────────────────────
@pytest.mark.parametrize(
    "at, current",
    [
        (_utc(2015, 7, 12, 9, 0), Event.FAJR),
        (_utc(2015, 7, 12, 11, 0), Event.SUNRISE),
        (_utc(2015, 7, 12, 19, 0), Event.DHUHR),
        (_utc(2015, 7, 12, 22, 26), Event.ASR),
        (_utc(2015, 7, 13, 1, 0), Event.MAGHRIB),
        (_utc(2015, 7, 13, 2, 0), Event.ISHA),
        (_utc(2015, 7, 12, 8, 0), Event.QIYAM),
        (_utc(2015, 7, 13, 5, 0), Event.AFTER_MIDNIGHT),
        (_utc(2015, 7, 13, 6, 30), Event.QIYAM),
        (_utc(2015, 7, 13, 9, 0), Event.FAJR),
    ],
)
def test_current(raleigh_times, at, current):
    assert raleigh_times.current(at) is current


def test_restricted_windows(raleigh_times):
    t = raleigh_times
    assert t.current(t.sunrise + timedelta(minutes=5)) is Event.DURING_SUNRISE
    assert t.next(t.sunrise + timedelta(minutes=5)) is Event.DHUHR
    assert t.current(t.sunrise + timedelta(minutes=25)) is Event.SUNRISE

    assert t.current(t.maghrib - timedelta(minutes=10)) is Event.DURING_SUNSET
    assert t.next(t.maghrib - timedelta(minutes=10)) is Event.MAGHRIB
    assert t.current(t.maghrib + timedelta(minutes=10)) is Event.MAGHRIB


def test_boundaries_are_inclusive(raleigh_times):
    t = raleigh_times
    assert t.current(t.dhuhr) is Event.DHUHR
    assert t.current(t.dhuhr - timedelta(seconds=1)) is Event.SUNRISE


def test_next_and_next_time(raleigh_times):
    t = raleigh_times
    at = _utc(2015, 7, 12, 19, 0)
    assert t.next(at) is Event.ASR
    assert t.next_time(at) == t.asr
    assert t.next(_utc(2015, 7, 13, 2, 0)) is Event.QIYAM
    assert t.next_time(_utc(2015, 7, 13, 2, 0)) == t.qiyam
    assert t.next_time(_utc(2015, 7, 12, 8, 0)) == t.fajr


def test_time_remaining(raleigh_times):
    t = raleigh_times
    assert t.time_remaining(_utc(2015, 7, 12, 9, 0)) == (1, 8)
    assert t.time_remaining(_utc(2015, 7, 13, 5, 0)) == (0, 59)
    # 29 s rounds down, 30 s rounds up.
    assert t.time_remaining(_utc(2015, 7, 12, 9, 0, 31)) == (1, 7)
    assert t.time_remaining(_utc(2015, 7, 12, 9, 0, 30)) == (1, 8)


def test_time_remaining_is_none_after_tomorrows_fajr(raleigh_times):
    t = raleigh_times
    assert t.current(t.fajr_tomorrow) is Event.FAJR
    assert t.time_remaining(t.fajr_tomorrow) is None
    assert t.next_time(t.fajr_tomorrow + timedelta(hours=1)) is None


# ───────────────────────── zones ─────────────────────────
def test_local_zone_output(ensure_tzdata, raleigh):
    params = Parameters.from_method(Method.NORTH_AMERICA).with_madhab(Madhab.HANAFI)
    t = (
        PrayerSchedule()
        .on(date(2015, 7, 12))
        .for_location(raleigh)
        .with_parameters(params)
        .in_timezone("America/New_York")
        .calculate()
    )
    assert _hm(t.time(Event.FAJR)) == "04:42"
    assert _hm(t.time(Event.ISHA)) == "21:57"
    assert t.time(Event.FAJR).utcoffset() == timedelta(hours=-4)
    # Naive instants are read as New York wall time.
    assert t.current(datetime(2015, 7, 12, 5, 0)) is Event.FAJR


def test_aware_datetime_date_keeps_its_zone(ensure_tzdata, raleigh):
    ny = ZoneInfo("America/New_York")
    params = Parameters.from_method(Method.NORTH_AMERICA).with_madhab(Madhab.HANAFI)
    t = PrayerSchedule().with_date(datetime(2015, 7, 12, 12, 0, tzinfo=ny)).with_coordinates(raleigh) \
        .with_parameters(params).build()
    assert t.tzinfo is ny
    assert t.date == date(2015, 7, 12)
    assert _hm(t.time(Event.DHUHR)) == "13:21"


def test_friday_dhuhr_is_jumuah(raleigh):
    t = PrayerTimes(date(2015, 7, 17), raleigh, Parameters.from_method(Method.NORTH_AMERICA))
    assert Event.DHUHR.display_name(t.date) == "Jumu'ah"


# ───────────────────────── other methods ─────────────────────────
def test_moonsighting_committee(raleigh):
    params = Parameters.from_method(Method.MOONSIGHTING_COMMITTEE).with_madhab(Madhab.SHAFI)
    t = PrayerSchedule().with_date(date(2016, 1, 31)).with_coordinates(raleigh).with_parameters(params).build()
    assert t.fajr == _utc(2016, 1, 31, 10, 48)
    assert t.sunrise == _utc(2016, 1, 31, 12, 16)
    assert t.dhuhr == _utc(2016, 1, 31, 17, 33)
    assert t.asr == _utc(2016, 1, 31, 20, 20)
    assert t.maghrib == _utc(2016, 1, 31, 22, 43)
    assert t.isha == _utc(2016, 2, 1, 0, 5)


def test_moonsighting_committee_above_55_degrees():
    params = Parameters.from_method(Method.MOONSIGHTING_COMMITTEE).with_madhab(Madhab.HANAFI)
    t = PrayerTimes(date(2016, 1, 1), Coordinates(59.9094, 10.7349), params)
    assert t.fajr == _utc(2016, 1, 1, 6, 34)
    assert t.sunrise == _utc(2016, 1, 1, 8, 19)
    assert t.dhuhr == _utc(2016, 1, 1, 11, 25)
    assert t.asr == _utc(2016, 1, 1, 12, 36)
    assert t.maghrib == _utc(2016, 1, 1, 14, 25)
    assert t.isha == _utc(2016, 1, 1, 16, 2)


def test_egyptian_with_local_adjustments():
    params = (
        Configuration.with_method(Method.EGYPTIAN, Madhab.SHAFI)
        .method_adjustments(TimeAdjustment(fajr=-10, sunrise=-2, dhuhr=2, asr=1, maghrib=2, isha=4))
        .build()
    )
    wib = timezone(timedelta(hours=7))
    t = (
        PrayerSchedule()
        .with_date(date(2021, 1, 12))
        .with_coordinates((-6.18233995, 106.84287154))
        .with_parameters(params)
        .in_timezone(wib)
        .build()
    )
    got = [_hm(t.time(e)) for e in (Event.FAJR, Event.SUNRISE, Event.DHUHR, Event.ASR, Event.MAGHRIB, Event.ISHA)]
    assert got == ["04:15", "05:45", "12:03", "15:28", "18:16", "19:31"]


def test_isha_interval_follows_maghrib(raleigh):
    params = Parameters.from_method(Method.UMM_AL_QURA)
    t = PrayerTimes(date(2015, 7, 12), raleigh, params)
    assert t.isha - t.maghrib == timedelta(minutes=90)


def test_maghrib_angle_delays_maghrib(raleigh):
    base = PrayerTimes(date(2015, 7, 12), raleigh, Parameters(fajr_angle=17.7, isha_angle=14.0))
    tehran = PrayerTimes(date(2015, 7, 12), raleigh, Parameters.from_method(Method.TEHRAN))
    assert tehran.maghrib > base.maghrib
    assert tehran.sunrise == base.sunrise


def test_user_adjustments_shift_each_prayer(raleigh_times, raleigh):
    params = (
        Configuration.with_method(Method.NORTH_AMERICA, Madhab.HANAFI)
        .adjustments(TimeAdjustment(fajr=2, asr=-3, isha=5))
        .build()
    )
    t = PrayerTimes(date(2015, 7, 12), raleigh, params)
    assert t.fajr - raleigh_times.fajr == timedelta(minutes=2)
    assert t.asr - raleigh_times.asr == timedelta(minutes=-3)
    assert t.isha - raleigh_times.isha == timedelta(minutes=5)
    assert t.dhuhr == raleigh_times.dhuhr


# ───────────────────────── builder ─────────────────────────
def test_builder_requires_all_inputs():
    with pytest.raises(ConfigurationError) as ei:
        PrayerSchedule().with_date(date(2015, 7, 12)).with_parameters(
            Parameters.from_method(Method.NORTH_AMERICA)
        ).build()
    assert ei.value.code == "missing_inputs"
    assert "coordinates" in str(ei.value)


def test_builder_rejects_bad_values():
    with pytest.raises(ConfigurationError) as ei:
        PrayerSchedule().with_parameters({"fajr_angle": 18})
    assert ei.value.code == "invalid_parameters"
    with pytest.raises(ConfigurationError) as ei:
        PrayerSchedule().in_timezone("Mars/Olympus_Mons")
    assert ei.value.code == "invalid_timezone"
    with pytest.raises(ConfigurationError) as ei:
        PrayerSchedule().with_date("2015-07-12")
    assert ei.value.code == "invalid_date"
    with pytest.raises(ConfigurationError):
        PrayerSchedule().with_coordinates((95.0, 0.0))


# ───────────────────────── polar ─────────────────────────
def test_midnight_sun_leaves_gaps(caplog):
    params = Parameters.from_method(Method.MUSLIM_WORLD_LEAGUE)
    with caplog.at_level(logging.WARNING, logger="miqat.core.schedule"):
        t = PrayerTimes(date(2020, 6, 21), Coordinates(69.65, 18.96), params)
    assert t.sunrise is None
    assert t.maghrib is None
    assert t.dhuhr is not None
    assert "sunrise" in t.missing and "maghrib" in t.missing
    assert any("no sunrise time" in r.getMessage() for r in caplog.records)
    # Queries still answer.
    after_noon = t.dhuhr + timedelta(minutes=1)
    assert t.current(after_noon) is Event.DHUHR
    assert t.next(after_noon) is Event.ASR
    assert isinstance(t.time_remaining(after_noon), tuple)


def test_polar_night_has_no_sunrise():
    t = PrayerTimes(date(2020, 12, 21), Coordinates(69.65, 18.96), Parameters.from_method(Method.MUSLIM_WORLD_LEAGUE))
    assert t.sunrise is None
    assert t.time(Event.DURING_SUNRISE) is None


# ───────────────────────── properties ─────────────────────────
@given(
    lat=st.floats(min_value=-40.0, max_value=40.0),
    lon=st.floats(min_value=-180.0, max_value=180.0),
    day=st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
    method=st.sampled_from([Method.MUSLIM_WORLD_LEAGUE, Method.KARACHI]),
)
def test_instants_are_strictly_ordered(lat, lon, day, method):
    t = PrayerTimes(day, Coordinates(lat, lon), Parameters.from_method(method))
    values = [getattr(t, name) for name in PrayerTimes._FIELDS]
    assert None not in values
    assert all(a < b for a, b in zip(values, values[1:]))
    assert all(v.second == 0 and v.microsecond == 0 for v in values)


@given(
    magnitude=st.floats(min_value=48.5, max_value=58.0),
    sign=st.sampled_from([1.0, -1.0]),
    lon=st.floats(min_value=-180.0, max_value=180.0),
    day=st.dates(min_value=date(2000, 1, 1), max_value=date(2040, 12, 31)),
)
def test_high_latitude_instants_are_ordered_under_the_recommended_rule(magnitude, sign, lon, day):
    coords = Coordinates(sign * magnitude, lon)
    params = (
        Configuration.with_method(Method.MUSLIM_WORLD_LEAGUE)
        .high_latitude_rule(HighLatitudeRule.recommended(coords))
        .build()
    )
    t = PrayerTimes(day, coords, params)
    values = [getattr(t, name) for name in PrayerTimes._FIELDS]
    assert None not in values
    assert all(a < b for a, b in zip(values, values[1:]))
    assert all(v.second == 0 and v.microsecond == 0 for v in values)


def test_middle_of_the_night_lets_isha_reach_fajr_above_48_degrees():
    coords = Coordinates(50.0, 0.0)
    t = PrayerTimes(date(2021, 6, 15), coords, Parameters.from_method(Method.MUSLIM_WORLD_LEAGUE))
    assert t.isha >= t.midnight
    seventh = (
        Configuration.with_method(Method.MUSLIM_WORLD_LEAGUE)
        .high_latitude_rule(HighLatitudeRule.recommended(coords))
        .build()
    )
    t = PrayerTimes(date(2021, 6, 15), coords, seventh)
    assert t.maghrib < t.isha < t.midnight < t.fajr_tomorrow

@given(
    lat=st.floats(min_value=-40.0, max_value=40.0),
    minutes=st.integers(min_value=0, max_value=48 * 60 - 1),
)
def test_current_then_next_time_is_later(lat, minutes):
    t = PrayerTimes(date(2021, 3, 1), Coordinates(lat, 0.0), Parameters.from_method(Method.MUSLIM_WORLD_LEAGUE))
    at = _utc(2021, 2, 28, 12, 0) + timedelta(minutes=minutes)
    following = t.next_time(at)
    if following is not None:
        assert following > at
        assert t.time_remaining(at) is not None
