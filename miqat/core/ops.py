# miqat/core/ops.py
# -----------------------------------------------------------------------------
# Positional-astronomy primitives for the Sun (Meeus, "Astronomical Algorithms").
#
# Conventions:
#   • T is the Julian century from J2000.0: (JD − 2451545.0) / 36525.
#   • Angles are miqat.core.units.Angle (degrees); plain floats elsewhere.
#   • Times returned by the transit / hour-angle corrections are fractional
#     hours of the UTC day (may be < 0 or ≥ 24).
#   • corrected_hour_angle returns NaN when the requested altitude is never
#     reached (polar day/night); callers must treat that as "no time".
#   • All functions are pure.
# -----------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Union
import math

from miqat.core.models import Rounding, Shafaq
from miqat.core.units import Angle, Coordinates, normalized_to_scale, round_half_away, rounded_minute

__all__ = [
    "mean_solar_longitude",
    "mean_lunar_longitude",
    "ascending_lunar_node_longitude",
    "mean_solar_anomaly",
    "solar_equation_of_the_center",
    "apparent_solar_longitude",
    "mean_obliquity_of_the_ecliptic",
    "apparent_obliquity_of_the_ecliptic",
    "mean_sidereal_time",
    "nutation_in_longitude",
    "nutation_in_obliquity",
    "altitude_of_celestial_body",
    "approximate_transit",
    "corrected_transit",
    "corrected_hour_angle",
    "interpolate",
    "interpolate_angles",
    "julian_day",
    "julian_century",
    "datetime_julian_day",
    "is_leap_year",
    "days_since_solstice",
    "season_adjusted_morning_twilight",
    "season_adjusted_evening_twilight",
]

J2000: float = 2451545.0
DAYS_PER_CENTURY: float = 36525.0
SIDEREAL_RATE_DEG_PER_DAY: float = 360.985647


# ───────────────────────────── Solar / lunar arguments ─────────────────────────────
def mean_solar_longitude(julian_century: float) -> Angle:
    """Geometric mean longitude of the Sun (Meeus p.163)."""
    t = julian_century
    return Angle(280.4664567 + 36000.76983 * t + 0.0003032 * t ** 2).unwound()


def mean_lunar_longitude(julian_century: float) -> Angle:
    """Mean longitude of the Moon (Meeus p.144)."""
    return Angle(218.3165 + 481267.8813 * julian_century).unwound()


def ascending_lunar_node_longitude(julian_century: float) -> Angle:
    # Meeus p.144
    t = julian_century
    return Angle(125.04452 - 1934.136261 * t + 0.0020708 * t ** 2 + t ** 3 / 450000.0).unwound()


def mean_solar_anomaly(julian_century: float) -> Angle:
    """Mean anomaly of the Sun (Meeus p.163)."""
    t = julian_century
    return Angle(357.52911 + 35999.05029 * t - 0.0001537 * t ** 2).unwound()


def solar_equation_of_the_center(julian_century: float, mean_anomaly: Angle) -> Angle:
    """Sun's equation of the centre (Meeus p.164)."""
    t = julian_century
    m = mean_anomaly.radians()
    term1 = (1.914602 - 0.004817 * t - 0.000014 * t ** 2) * math.sin(m)
    term2 = (0.019993 - 0.000101 * t) * math.sin(2.0 * m)
    term3 = 0.000289 * math.sin(3.0 * m)
    return Angle(term1 + term2 + term3)


def apparent_solar_longitude(julian_century: float, mean_longitude: Angle) -> Angle:
    """Apparent longitude of the Sun, referred to the true equinox of date (Meeus p.164)."""
    longitude = mean_longitude + solar_equation_of_the_center(julian_century, mean_solar_anomaly(julian_century))
    omega = Angle(125.04 - 1934.136 * julian_century)
    return Angle(longitude.degrees - 0.00569 - 0.00478 * math.sin(omega.radians())).unwound()


def mean_obliquity_of_the_ecliptic(julian_century: float) -> Angle:
    """IAU mean obliquity (Meeus p.147)."""
    t = julian_century
    return Angle(23.439291 - 0.013004167 * t - 0.0000001639 * t ** 2 + 0.0000005036 * t ** 3)


def apparent_obliquity_of_the_ecliptic(julian_century: float, mean_obliquity: Angle) -> Angle:
    # Meeus p.165
    omega = Angle(125.04 - 1934.136 * julian_century)
    return Angle(mean_obliquity.degrees + 0.00256 * math.cos(omega.radians()))


def mean_sidereal_time(julian_century: float) -> Angle:
    """Mean sidereal time at Greenwich, the hour angle of the vernal equinox (Meeus p.165)."""
    t = julian_century
    jd = t * DAYS_PER_CENTURY + J2000
    degrees = (
        280.46061837
        + 360.98564736629 * (jd - J2000)
        + 0.000387933 * t ** 2
        - t ** 3 / 38710000.0
    )
    return Angle(degrees).unwound()


def nutation_in_longitude(solar_longitude: Angle, lunar_longitude: Angle, ascending_node: Angle) -> float:
    """Δψ in degrees (Meeus p.144, low-precision series)."""
    term1 = (-17.2 / 3600.0) * math.sin(ascending_node.radians())
    term2 = (1.32 / 3600.0) * math.sin(2.0 * solar_longitude.radians())
    term3 = (0.23 / 3600.0) * math.sin(2.0 * lunar_longitude.radians())
    term4 = (0.21 / 3600.0) * math.sin(2.0 * ascending_node.radians())
    return term1 - term2 - term3 + term4


def nutation_in_obliquity(solar_longitude: Angle, lunar_longitude: Angle, ascending_node: Angle) -> float:
    """Δε in degrees (Meeus p.144, low-precision series)."""
    term1 = (9.2 / 3600.0) * math.cos(ascending_node.radians())
    term2 = (0.57 / 3600.0) * math.cos(2.0 * solar_longitude.radians())
    term3 = (0.10 / 3600.0) * math.cos(2.0 * lunar_longitude.radians())
    term4 = (0.09 / 3600.0) * math.cos(2.0 * ascending_node.radians())
    return term1 + term2 + term3 - term4


# ───────────────────────────── Horizon geometry ─────────────────────────────
def altitude_of_celestial_body(observer_latitude: Angle, declination: Angle, local_hour_angle: Angle) -> Angle:
    # Meeus p.93
    phi, delta, h = observer_latitude.radians(), declination.radians(), local_hour_angle.radians()
    s = math.sin(phi) * math.sin(delta) + math.cos(phi) * math.cos(delta) * math.cos(h)
    return Angle.from_radians(math.asin(max(-1.0, min(1.0, s))))


def approximate_transit(longitude: Angle, sidereal_time: Angle, right_ascension: Angle) -> float:
    """Fraction of the UTC day, in [0, 1), at which the body crosses the meridian (Meeus p.102)."""
    west_longitude = longitude * -1.0
    return normalized_to_scale(((right_ascension + west_longitude - sidereal_time) / 360.0).degrees, 1.0)


def corrected_transit(
    approximate_transit: float,
    longitude: Angle,
    sidereal_time: Angle,
    right_ascension: Angle,
    previous_right_ascension: Angle,
    next_right_ascension: Angle,
) -> float:
    """Hour (UTC) of the Sun's upper transit after one Newton correction (Meeus p.102)."""
    west_longitude = longitude * -1.0
    theta = Angle(sidereal_time.degrees + SIDEREAL_RATE_DEG_PER_DAY * approximate_transit).unwound()
    alpha = interpolate_angles(
        right_ascension, previous_right_ascension, next_right_ascension, approximate_transit
    ).unwound()
    hour_angle = (theta - west_longitude - alpha).quadrant_shifted()
    delta_m = (hour_angle / -360.0).degrees
    return (approximate_transit + delta_m) * 24.0


def corrected_hour_angle(
    approximate_transit: float,
    angle: Angle,
    coordinates: Coordinates,
    after_transit: bool,
    sidereal_time: Angle,
    right_ascension: Angle,
    previous_right_ascension: Angle,
    next_right_ascension: Angle,
    declination: Angle,
    previous_declination: Angle,
    next_declination: Angle,
) -> float:
    """
    Hour (UTC) at which the Sun reaches altitude `angle`, before or after transit.

    Solves cos(H0) = (sin h0 − sin φ sin δ) / (cos φ cos δ), then applies one
    interpolated correction (Meeus p.102). Returns NaN if the altitude is never
    reached on this day.
    """
    west_longitude = coordinates.longitude_angle * -1.0
    phi = coordinates.latitude_angle.radians()
    numerator = math.sin(angle.radians()) - math.sin(phi) * math.sin(declination.radians())
    denominator = math.cos(phi) * math.cos(declination.radians())
    if denominator == 0.0:
        return math.nan
    ratio = numerator / denominator
    if not -1.0 <= ratio <= 1.0:
        return math.nan
    h0 = Angle.from_radians(math.acos(ratio))

    if after_transit:
        m = approximate_transit + h0.degrees / 360.0
    else:
        m = approximate_transit - h0.degrees / 360.0

    theta = Angle(sidereal_time.degrees + SIDEREAL_RATE_DEG_PER_DAY * m).unwound()
    alpha = interpolate_angles(right_ascension, previous_right_ascension, next_right_ascension, m).unwound()
    delta = Angle(interpolate(declination.degrees, previous_declination.degrees, next_declination.degrees, m))
    hour_angle = theta - west_longitude - alpha
    altitude = altitude_of_celestial_body(coordinates.latitude_angle, delta, hour_angle)

    term3 = (altitude - angle).degrees
    term4 = 360.0 * math.cos(delta.radians()) * math.cos(phi) * math.sin(hour_angle.radians())
    if term4 == 0.0:
        return math.nan
    return (m + term3 / term4) * 24.0


# ───────────────────────────── Interpolation ─────────────────────────────
def interpolate(value: float, previous_value: float, next_value: float, factor: float) -> float:
    """Three-point interpolation of equidistant samples; `factor` is the fractional step (Meeus p.24)."""
    a = value - previous_value
    b = next_value - value
    c = b - a
    return value + (factor / 2.0) * (a + b + factor * c)


def interpolate_angles(value: Angle, previous_value: Angle, next_value: Angle, factor: float) -> Angle:
    """Like interpolate(), with the differences unwound so a 360° wrap does not jump."""
    a = (value - previous_value).unwound().degrees
    b = (next_value - value).unwound().degrees
    c = b - a
    return Angle(value.degrees + (factor / 2.0) * (a + b + factor * c))


# ───────────────────────────── Calendar ─────────────────────────────
def julian_day(year: int, month: int, day: int, hours: float = 0.0) -> float:
    """Julian Day for a Gregorian calendar date (Meeus p.60)."""
    y = year if month > 2 else year - 1
    m = month if month > 2 else month + 12
    d = day + hours / 24.0

    a = int(y / 100)
    b = 2 - a + int(a / 4)
    i0 = int(365.25 * (y + 4716))
    i1 = int(30.6001 * (m + 1))
    return i0 + i1 + d + b - 1524.5


def julian_century(julian_day: float) -> float:
    return (julian_day - J2000) / DAYS_PER_CENTURY


def datetime_julian_day(value: Union[date, datetime]) -> float:
    """Julian Day of a date (0h UTC) or of an aware datetime (converted to UTC)."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError("datetime must be timezone-aware")
        v = value.astimezone(timezone.utc)
        hours = v.hour + (v.minute + (v.second + v.microsecond / 1e6) / 60.0) / 60.0
        return julian_day(v.year, v.month, v.day, hours)
    return julian_day(value.year, value.month, value.day, 0.0)


def is_leap_year(year: int) -> bool:
    return year % 400 == 0 or (year % 4 == 0 and year % 100 != 0)


def days_since_solstice(day_of_year: int, year: int, latitude: float) -> int:
    """Days elapsed since the winter solstice of the observer's hemisphere."""
    days_in_year = 366 if is_leap_year(year) else 365
    if latitude >= 0.0:
        elapsed = day_of_year + 10
        if elapsed >= days_in_year:
            elapsed -= days_in_year
        return elapsed
    southern_offset = 173 if is_leap_year(year) else 172
    elapsed = day_of_year - southern_offset
    if elapsed < 0:
        elapsed += days_in_year
    return elapsed


# ───────────────────────────── Moonsighting Committee twilight ─────────────────────────────
@dataclass(frozen=True)
class _SeasonalCoefficients:
    a: float
    b: float
    c: float
    d: float


def _morning_coefficients(latitude: float) -> _SeasonalCoefficients:
    lat = abs(latitude)
    return _SeasonalCoefficients(
        a=75.0 + 28.65 / 55.0 * lat,
        b=75.0 + 19.44 / 55.0 * lat,
        c=75.0 + 32.74 / 55.0 * lat,
        d=75.0 + 48.10 / 55.0 * lat,
    )


def _evening_coefficients(latitude: float, shafaq: Shafaq) -> _SeasonalCoefficients:
    lat = abs(latitude)
    if shafaq is Shafaq.AHMER:
        return _SeasonalCoefficients(
            a=62.0 + 17.40 / 55.0 * lat,
            b=62.0 - 7.160 / 55.0 * lat,
            c=62.0 + 5.120 / 55.0 * lat,
            d=62.0 + 19.44 / 55.0 * lat,
        )
    if shafaq is Shafaq.ABYAD:
        return _SeasonalCoefficients(
            a=75.0 + 25.60 / 55.0 * lat,
            b=75.0 + 7.160 / 55.0 * lat,
            c=75.0 + 36.84 / 55.0 * lat,
            d=75.0 + 81.84 / 55.0 * lat,
        )
    return _SeasonalCoefficients(
        a=75.0 + 25.60 / 55.0 * lat,
        b=75.0 + 2.050 / 55.0 * lat,
        c=75.0 - 9.210 / 55.0 * lat,
        d=75.0 + 6.140 / 55.0 * lat,
    )


def _seasonal_minutes(k: _SeasonalCoefficients, dyy: int) -> float:
    """Piecewise-linear minutes between the solstice/equinox breakpoints."""
    if dyy < 91:
        return k.a + (k.b - k.a) / 91.0 * dyy
    if dyy < 137:
        return k.b + (k.c - k.b) / 46.0 * (dyy - 91)
    if dyy < 183:
        return k.c + (k.d - k.c) / 46.0 * (dyy - 137)
    if dyy < 229:
        return k.d + (k.c - k.d) / 46.0 * (dyy - 183)
    if dyy < 275:
        return k.c + (k.b - k.c) / 46.0 * (dyy - 229)
    return k.b + (k.a - k.b) / 91.0 * (dyy - 275)


def season_adjusted_morning_twilight(latitude: float, day_of_year: int, year: int, sunrise: datetime) -> datetime:
    """Moonsighting Committee Fajr: sunrise minus an observed, season-dependent interval."""
    dyy = days_since_solstice(day_of_year, year, latitude)
    minutes = _seasonal_minutes(_morning_coefficients(latitude), dyy)
    return sunrise + timedelta(seconds=round_half_away(minutes * -60.0))


def season_adjusted_evening_twilight(
    latitude: float,
    day_of_year: int,
    year: int,
    sunset: datetime,
    shafaq: Shafaq = Shafaq.GENERAL,
) -> datetime:
    """Moonsighting Committee Isha: sunset plus a shafaq- and season-dependent interval."""
    dyy = days_since_solstice(day_of_year, year, latitude)
    minutes = _seasonal_minutes(_evening_coefficients(latitude, shafaq), dyy)
    adjusted = sunset + timedelta(seconds=round_half_away(minutes * 60.0))
    return rounded_minute(adjusted, Rounding.NEAREST)
