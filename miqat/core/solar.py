# miqat/core/solar.py
from __future__ import annotations

"""
Solar position for one day and the times the Sun crosses given altitudes.

SolarCoordinates : declination / right ascension / apparent sidereal time at a JD.
SolarTime        : transit, sunrise and sunset for a (date, observer) pair, plus
                   on-demand `time_for_solar_angle` and `afternoon` (Asr) queries.

Every instant produced here is an aware UTC datetime, or None when the Sun
never reaches the requested altitude on that date.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Tuple
import logging
import math

from miqat.core import ops
from miqat.core.units import Angle, Coordinates, round_half_away, tomorrow, yesterday

__all__ = ["SolarCoordinates", "SolarTime", "SUNRISE_ALTITUDE", "setting_hour"]

log = logging.getLogger(__name__)

# Geometric depression of the Sun's centre at apparent rise/set (refraction + semi-diameter).
SUNRISE_ALTITUDE = Angle(-50.0 / 60.0)


@dataclass(frozen=True)
class SolarCoordinates:
    declination: Angle
    right_ascension: Angle
    apparent_sidereal_time: Angle

    @classmethod
    def from_julian_day(cls, julian_day: float) -> "SolarCoordinates":
        t = ops.julian_century(julian_day)
        l0 = ops.mean_solar_longitude(t)
        lp = ops.mean_lunar_longitude(t)
        omega = ops.ascending_lunar_node_longitude(t)
        lam = ops.apparent_solar_longitude(t, l0).radians()

        theta0 = ops.mean_sidereal_time(t)
        d_psi = ops.nutation_in_longitude(l0, lp, omega)
        d_epsilon = ops.nutation_in_obliquity(l0, lp, omega)

        epsilon0 = ops.mean_obliquity_of_the_ecliptic(t)
        epsilon_app = ops.apparent_obliquity_of_the_ecliptic(t, epsilon0).radians()

        declination = Angle.from_radians(math.asin(math.sin(epsilon_app) * math.sin(lam)))
        right_ascension = Angle.from_radians(
            math.atan2(math.cos(epsilon_app) * math.sin(lam), math.cos(lam))
        ).unwound()
        # Equation of the equinoxes: Δψ cos(ε0 + Δε), done in arc-seconds.
        apparent_sidereal_time = Angle(
            theta0.degrees
            + (d_psi * 3600.0) * math.cos(Angle(epsilon0.degrees + d_epsilon).radians()) / 3600.0
        )
        return cls(declination, right_ascension, apparent_sidereal_time)


# ───────────────────────────── hours → instant ─────────────────────────────
def _hour_adjustment(hours: float, day: date) -> Tuple[int, date]:
    if hours < 0.0:
        return int(hours + 24.0), yesterday(day)
    if hours >= 24.0:
        return int(hours - 24.0), tomorrow(day)
    return int(hours), day


def setting_hour(hours: float, day: date) -> Optional[datetime]:
    """
    Turn fractional UTC hours relative to `day` into an instant on the whole minute.

    Returns None for non-finite input (the Sun never reaches the altitude).
    """
    if not math.isfinite(hours):
        return None
    whole_hours = math.floor(hours)
    whole_minutes = math.floor((hours - whole_hours) * 60.0)
    whole_seconds = math.floor((hours - (whole_hours + whole_minutes / 60.0)) * 3600.0)

    hour, adjusted_day = _hour_adjustment(whole_hours, day)
    minutes = round_half_away(whole_minutes + whole_seconds / 60.0)

    if minutes >= 60:
        hour += minutes // 60
        minutes %= 60
    if hour >= 24:
        adjusted_day = adjusted_day.fromordinal(adjusted_day.toordinal() + hour // 24)
        hour %= 24

    return datetime(adjusted_day.year, adjusted_day.month, adjusted_day.day, hour, minutes, tzinfo=timezone.utc)


# ───────────────────────────── SolarTime ─────────────────────────────
class SolarTime:
    """Solar events of one UTC calendar day for one observer."""

    def __init__(self, day: date, coordinates: Coordinates):
        if isinstance(day, datetime):
            day = day.date()
        self.date: date = day
        self.observer: Coordinates = coordinates

        self.prev_solar = SolarCoordinates.from_julian_day(ops.datetime_julian_day(yesterday(day)))
        self.solar = SolarCoordinates.from_julian_day(ops.datetime_julian_day(day))
        self.next_solar = SolarCoordinates.from_julian_day(ops.datetime_julian_day(tomorrow(day)))

        self.approx_transit: float = ops.approximate_transit(
            coordinates.longitude_angle,
            self.solar.apparent_sidereal_time,
            self.solar.right_ascension,
        )
        transit_hours = ops.corrected_transit(
            self.approx_transit,
            coordinates.longitude_angle,
            self.solar.apparent_sidereal_time,
            self.solar.right_ascension,
            self.prev_solar.right_ascension,
            self.next_solar.right_ascension,
        )
        self.transit: Optional[datetime] = setting_hour(transit_hours, day)
        self.sunrise: Optional[datetime] = self._crossing(SUNRISE_ALTITUDE, after_transit=False)
        self.sunset: Optional[datetime] = self._crossing(SUNRISE_ALTITUDE, after_transit=True)

        if self.sunrise is None or self.sunset is None:
            log.debug("no sunrise/sunset on %s at latitude %.4f", day.isoformat(), coordinates.latitude)

    def _crossing(self, angle: Angle, after_transit: bool) -> Optional[datetime]:
        hours = ops.corrected_hour_angle(
            self.approx_transit,
            angle,
            self.observer,
            after_transit,
            self.solar.apparent_sidereal_time,
            self.solar.right_ascension,
            self.prev_solar.right_ascension,
            self.next_solar.right_ascension,
            self.solar.declination,
            self.prev_solar.declination,
            self.next_solar.declination,
        )
        return setting_hour(hours, self.date)

    def time_for_solar_angle(self, angle: Angle, after_transit: bool) -> Optional[datetime]:
        """Instant the Sun's centre reaches `angle` altitude (negative = below horizon)."""
        return self._crossing(angle, after_transit)

    def afternoon(self, shadow_length: float) -> Optional[datetime]:
        """Asr: when an object's shadow equals `shadow_length` times its height plus the noon shadow."""
        zenith_at_noon = Angle(abs(self.observer.latitude - self.solar.declination.degrees))
        inverse = shadow_length + math.tan(zenith_at_noon.radians())
        angle = Angle.from_radians(math.atan(1.0 / inverse))
        return self.time_for_solar_angle(angle, after_transit=True)
