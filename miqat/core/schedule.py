# miqat/core/schedule.py
from __future__ import annotations

"""
Daily prayer schedule and the "what is now / what is next" state machine.

Construction is a pure function of (date, coordinates, parameters):

  fajr      later of the angle time and the high-latitude floor
  sunrise   apparent sunrise
  dhuhr     solar transit
  asr       shadow = madhab ratio + noon shadow
  maghrib   sunset (or the method's Maghrib depression, when later)
  isha      fixed interval, or earlier of the angle time and the ceiling
  midnight  half of maghrib → fajr_tomorrow
  qiyam     last third of maghrib → fajr_tomorrow

plus the same night division anchored on yesterday's Maghrib so instants
before today's Fajr resolve correctly. All instants are held in UTC; `time()`
converts to the zone the schedule was requested in.

Events whose solar altitude is never reached (polar day/night) are None.
"""

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from miqat.core import ops
from miqat.core.models import ConfigurationError, Event, Method, Parameters, Rounding, parse_enum
from miqat.core.solar import SolarTime
from miqat.core.units import Angle, Coordinates, adjust_time, rounded_minute, tomorrow, yesterday

__all__ = ["PrayerTimes", "PrayerSchedule", "CFG"]

log = logging.getLogger(__name__)


# ───────────────────────────── Env config ─────────────────────────────
@dataclass(frozen=True)
class _ScheduleCfg:
    polar_warn_lat: float
    forbidden_window_min: int
    default_method: str


CFG = _ScheduleCfg(
    polar_warn_lat=float(os.getenv("MIQAT_POLAR_WARN_LAT", "65")),
    forbidden_window_min=int(os.getenv("MIQAT_FORBIDDEN_WINDOW_MIN", "20")),
    default_method=(os.getenv("MIQAT_DEFAULT_METHOD", "muslim_world_league").strip().lower() or "muslim_world_league"),
)

# Latitude above which the Moonsighting Committee uses the 1/7-of-night rule.
_MOONSIGHTING_SEVENTH_LAT = 55.0

Instant = Optional[datetime]


# ───────────────────────────── helpers ─────────────────────────────
def _later(a: Instant, b: Instant) -> Instant:
    if a is None:
        return b
    if b is None:
        return a
    return a if a > b else b


def _earlier(a: Instant, b: Instant) -> Instant:
    if a is None:
        return b
    if b is None:
        return a
    return a if a < b else b


def _shift_seconds(value: Instant, seconds: int) -> Instant:
    return None if value is None else value + timedelta(seconds=seconds)


def _finish(value: Instant, minutes: int, rounding: Rounding) -> Instant:
    if value is None:
        return None
    return rounded_minute(adjust_time(value, minutes), rounding)


def _night_seconds(solar: SolarTime, solar_next: SolarTime) -> Optional[int]:
    if solar.sunset is None or solar_next.sunrise is None:
        return None
    return int((solar_next.sunrise - solar.sunset).total_seconds())


def _day_of_year(day: date) -> int:
    return day.timetuple().tm_yday


# ───────────────────────────── per-prayer rules ─────────────────────────────
def _fajr(params: Parameters, solar: SolarTime, night: Optional[int]) -> Instant:
    """Unrounded Fajr with its minute adjustment applied."""
    lat = solar.observer.latitude
    moonsighting = params.method is Method.MOONSIGHTING_COMMITTEE

    if moonsighting and lat >= _MOONSIGHTING_SEVENTH_LAT:
        base = None if night is None else _shift_seconds(solar.sunrise, -(night // 7))
    else:
        base = solar.time_for_solar_angle(Angle(-params.fajr_angle), after_transit=False)

    if solar.sunrise is None:
        floor = None
    elif moonsighting:
        floor = ops.season_adjusted_morning_twilight(lat, _day_of_year(solar.date), solar.date.year, solar.sunrise)
    elif night is None:
        floor = None
    else:
        floor = _shift_seconds(solar.sunrise, -int(params.night_portions()[0] * night))

    fajr = _later(base, floor)
    if fajr is None:
        return None
    return adjust_time(fajr, params.time_adjustment(Event.FAJR))


def _isha(params: Parameters, solar: SolarTime, night: Optional[int]) -> Instant:
    """Unrounded Isha with its minute adjustment applied."""
    if params.isha_interval > 0:
        isha = _shift_seconds(solar.sunset, params.isha_interval * 60)
    else:
        lat = solar.observer.latitude
        moonsighting = params.method is Method.MOONSIGHTING_COMMITTEE

        if solar.sunset is None:
            ceiling = None
        elif moonsighting:
            ceiling = ops.season_adjusted_evening_twilight(
                lat, _day_of_year(solar.date), solar.date.year, solar.sunset, params.shafaq
            )
        elif night is None:
            ceiling = None
        else:
            ceiling = _shift_seconds(solar.sunset, int(params.night_portions()[1] * night))

        if moonsighting and lat >= _MOONSIGHTING_SEVENTH_LAT:
            base = None if night is None else _shift_seconds(solar.sunset, night // 7)
        else:
            base = solar.time_for_solar_angle(Angle(-params.isha_angle), after_transit=True)

        isha = _earlier(base, ceiling)

    if isha is None:
        return None
    return adjust_time(isha, params.time_adjustment(Event.ISHA))


def _maghrib(params: Parameters, solar: SolarTime) -> Instant:
    """Rounded Maghrib: sunset, or the Maghrib depression time when the method sets one."""
    maghrib = solar.sunset
    if params.maghrib_angle > 0.0:
        at_angle = solar.time_for_solar_angle(Angle(-params.maghrib_angle), after_transit=True)
        if at_angle is not None and (maghrib is None or at_angle > maghrib):
            maghrib = at_angle
    return _finish(maghrib, params.time_adjustment(Event.MAGHRIB), params.rounding)


def _divide_night(maghrib: Instant, next_fajr: Instant) -> Tuple[Instant, Instant]:
    """(middle, start of last third) of maghrib → next_fajr, on the nearest minute."""
    if maghrib is None or next_fajr is None:
        return None, None
    duration = int((next_fajr - maghrib).total_seconds())
    middle = maghrib + timedelta(seconds=int(duration / 2.0))
    last_third = maghrib + timedelta(seconds=int(duration * (2.0 / 3.0)))
    return rounded_minute(middle, Rounding.NEAREST), rounded_minute(last_third, Rounding.NEAREST)


# ───────────────────────────── PrayerTimes ─────────────────────────────
class PrayerTimes:
    """
    Prayer instants for one date and place.

    Query with `time(event)`, `current(at)`, `next(at)`, `time_remaining(at)`.
    Every query takes the reference instant explicitly.
    """

    def __init__(
        self,
        day: date,
        coordinates: Coordinates,
        parameters: Parameters,
        tz: Optional[tzinfo] = None,
    ):
        if isinstance(day, datetime):
            if tz is None and day.tzinfo is not None:
                tz = day.tzinfo
            day = day.date()
        self.date: date = day
        self.coordinates = coordinates
        self.parameters = parameters
        self.tzinfo: tzinfo = tz or timezone.utc

        p = parameters
        solar_prev = SolarTime(yesterday(day), coordinates)
        solar = SolarTime(day, coordinates)
        solar_next = SolarTime(tomorrow(day), coordinates)
        solar_after = SolarTime(tomorrow(tomorrow(day)), coordinates)

        night = _night_seconds(solar, solar_next)
        night_next = _night_seconds(solar_next, solar_after)

        fajr_raw = _fajr(p, solar, night)
        self.fajr: Instant = _finish(fajr_raw, 0, p.rounding)
        self.sunrise: Instant = _finish(solar.sunrise, p.time_adjustment(Event.SUNRISE), p.rounding)
        self.dhuhr: Instant = _finish(solar.transit, p.time_adjustment(Event.DHUHR), p.rounding)
        self.asr: Instant = _finish(solar.afternoon(p.madhab.shadow), p.time_adjustment(Event.ASR), p.rounding)
        self.maghrib: Instant = _maghrib(p, solar)
        self.isha: Instant = _finish(_isha(p, solar, night), 0, p.rounding)

        fajr_next_raw = _fajr(p, solar_next, night_next)
        self.fajr_tomorrow: Instant = _finish(fajr_next_raw, 0, p.rounding)
        self.midnight, self.qiyam = _divide_night(self.maghrib, fajr_next_raw)

        maghrib_prev = _maghrib(p, solar_prev)
        self.midnight_yesterday, self.qiyam_yesterday = _divide_night(maghrib_prev, fajr_raw)

        log.debug(
            "schedule built date=%s lat=%.4f lon=%.4f method=%s madhab=%s",
            day.isoformat(), coordinates.latitude, coordinates.longitude,
            p.method.value, p.madhab.value,
        )
        missing = self.missing
        if missing:
            for name in missing:
                log.warning("no %s time on %s at latitude %.4f", name, day.isoformat(), coordinates.latitude)
        elif abs(coordinates.latitude) >= CFG.polar_warn_lat:
            log.info(
                "high latitude %.4f on %s resolved with %s",
                coordinates.latitude, day.isoformat(), p.high_latitude_rule.value,
            )

    # ───── lookups ─────
    _FIELDS: Tuple[str, ...] = (
        "midnight_yesterday", "qiyam_yesterday", "fajr", "sunrise", "dhuhr", "asr",
        "maghrib", "isha", "midnight", "qiyam", "fajr_tomorrow",
    )

    @property
    def missing(self) -> List[str]:
        """Names of instants that could not be computed (polar day/night)."""
        return [name for name in self._FIELDS if getattr(self, name) is None]

    @property
    def _window(self) -> timedelta:
        return timedelta(minutes=CFG.forbidden_window_min)

    def _utc_time(self, event: Event) -> Instant:
        if event is Event.DURING_SUNRISE:
            return self.sunrise
        if event is Event.DURING_SUNSET:
            return None if self.maghrib is None else self.maghrib - self._window
        if event is Event.AFTER_MIDNIGHT:
            return self.midnight
        return getattr(self, event.value)

    def _local(self, value: Instant) -> Instant:
        return None if value is None else value.astimezone(self.tzinfo)

    def time(self, event: Union[Event, str]) -> Instant:
        """Start of `event` today, in the schedule's zone; None when it does not occur."""
        event = parse_enum(Event, event)
        return self._local(self._utc_time(event))

    def as_dict(self) -> Dict[str, Instant]:
        """All instants, in time order, in the schedule's zone."""
        return {name: self._local(getattr(self, name)) for name in self._FIELDS}

    # ───── state machine ─────
    def _as_utc(self, at: datetime) -> datetime:
        if at.tzinfo is None:
            at = at.replace(tzinfo=self.tzinfo)
        return at.astimezone(timezone.utc)

    def _locate(self, at: datetime) -> Tuple[Event, Event, Instant]:
        """(current event, next event, start of the next event) for instant `at`."""
        t = self._as_utc(at)
        window = self._window
        sunrise_end = None if self.sunrise is None else self.sunrise + window
        sunset_start = None if self.maghrib is None else self.maghrib - window

        # Latest boundary first.
        chain: Tuple[Tuple[Instant, Event, Event, Instant], ...] = (
            (self.fajr_tomorrow, Event.FAJR, Event.SUNRISE, None),
            (self.qiyam, Event.QIYAM, Event.FAJR, self.fajr_tomorrow),
            (self.midnight, Event.AFTER_MIDNIGHT, Event.QIYAM, self.qiyam),
            (self.isha, Event.ISHA, Event.QIYAM, self.qiyam),
            (self.maghrib, Event.MAGHRIB, Event.ISHA, self.isha),
            (sunset_start, Event.DURING_SUNSET, Event.MAGHRIB, self.maghrib),
            (self.asr, Event.ASR, Event.MAGHRIB, self.maghrib),
            (self.dhuhr, Event.DHUHR, Event.ASR, self.asr),
            (sunrise_end, Event.SUNRISE, Event.DHUHR, self.dhuhr),
            (self.sunrise, Event.DURING_SUNRISE, Event.DHUHR, self.dhuhr),
            (self.fajr, Event.FAJR, Event.SUNRISE, self.sunrise),
            (self.qiyam_yesterday, Event.QIYAM, Event.FAJR, self.fajr),
        )
        for start, current, following, following_at in chain:
            if start is not None and t >= start:
                return current, following, following_at
        return Event.AFTER_MIDNIGHT, Event.QIYAM, self.qiyam_yesterday

    def current(self, at: datetime) -> Event:
        """Event in progress at `at` (naive values are read in the schedule's zone)."""
        return self._locate(at)[0]

    def next(self, at: datetime) -> Event:
        return self._locate(at)[1]

    def next_time(self, at: datetime) -> Instant:
        return self._local(self._locate(at)[2])

    def time_remaining(self, at: datetime) -> Optional[Tuple[int, int]]:
        """
        (hours, minutes) until the next event, rounded to the nearest minute.

        None when the next event has no instant in this schedule (after
        tomorrow's Fajr, or at polar latitudes).
        """
        following_at = self._locate(at)[2]
        if following_at is None:
            return None
        seconds = (following_at - self._as_utc(at)).total_seconds()
        minutes = int(seconds // 60 + (1 if seconds % 60 >= 30 else 0))
        hours, minutes = divmod(max(minutes, 0), 60)
        return hours, minutes

    def __repr__(self) -> str:
        def hm(v: Instant) -> str:
            return "--:--" if v is None else v.astimezone(self.tzinfo).strftime("%H:%M")
        body = " ".join(f"{n}={hm(getattr(self, n))}" for n in ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha"))
        return f"<PrayerTimes {self.date.isoformat()} {body}>"


# ───────────────────────────── builder ─────────────────────────────
class PrayerSchedule:
    """
    Collects the three build inputs and validates them once.

        times = (PrayerSchedule()
                 .with_date(date(2015, 7, 12))
                 .with_coordinates(Coordinates(35.775, -78.6336))
                 .with_parameters(Parameters.from_method("north_america"))
                 .build())
    """

    def __init__(self) -> None:
        self._date: Optional[date] = None
        self._tz: Optional[tzinfo] = None
        self._coordinates: Optional[Coordinates] = None
        self._parameters: Optional[Parameters] = None

    def with_date(self, value: Union[date, datetime]) -> "PrayerSchedule":
        """A calendar date, or an aware datetime whose local date and zone are used."""
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                self._tz = value.tzinfo
            value = value.date()
        if not isinstance(value, date):
            raise ConfigurationError("invalid_date", f"expected a date, got {value!r}")
        self._date = value
        return self

    def with_coordinates(self, value: Union[Coordinates, Tuple[float, float]]) -> "PrayerSchedule":
        self._coordinates = value if isinstance(value, Coordinates) else Coordinates.from_pair(value)
        return self

    def with_parameters(self, value: Parameters) -> "PrayerSchedule":
        if not isinstance(value, Parameters):
            raise ConfigurationError("invalid_parameters", f"expected Parameters, got {type(value).__name__}")
        self._parameters = value
        return self

    def in_timezone(self, tz: Union[str, tzinfo]) -> "PrayerSchedule":
        if isinstance(tz, str):
            try:
                tz = ZoneInfo(tz)
            except (KeyError, ValueError) as e:
                raise ConfigurationError("invalid_timezone", f"unknown time zone '{tz}'") from e
        self._tz = tz
        return self

    # Short aliases.
    on = with_date
    for_location = with_coordinates

    def build(self) -> PrayerTimes:
        missing = [
            name for name, value in (
                ("date", self._date), ("coordinates", self._coordinates), ("parameters", self._parameters),
            ) if value is None
        ]
        if missing:
            raise ConfigurationError(
                "missing_inputs",
                f"date, coordinates and parameters are required to calculate prayer times; missing: {', '.join(missing)}",
            )
        return PrayerTimes(self._date, self._coordinates, self._parameters, self._tz)

    calculate = build
