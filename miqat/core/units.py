# miqat/core/units.py
from __future__ import annotations

"""
Angle / coordinate value types and calendar-stepping helpers.

Everything here is immutable and side-effect free:
- Angle        : degree-valued angle with degree-wise arithmetic,
                 `unwound()` → [0, 360) and `quadrant_shifted()` → [-180, 180].
- Coordinates  : validated (latitude, longitude) pair in degrees.
- tomorrow / yesterday / adjust_time / rounded_minute : small datetime helpers
  shared by the solar and schedule layers.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Tuple, TypeVar, Union
import math

from miqat.core.models import ConfigurationError, Rounding

__all__ = [
    "Angle",
    "Coordinates",
    "normalized_to_scale",
    "round_half_away",
    "tomorrow",
    "yesterday",
    "adjust_time",
    "rounded_minute",
]

_D = TypeVar("_D", date, datetime)

Number = Union[int, float]


# ───────────────────────────── scalar helpers ─────────────────────────────
def normalized_to_scale(value: float, scale: float) -> float:
    """Wrap `value` into [0, scale) (or (scale, 0] for a negative scale)."""
    wrapped = value - scale * math.floor(value / scale)
    # Tiny negative inputs round up to exactly `scale`.
    return 0.0 if wrapped == scale else wrapped


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (not banker's)."""
    magnitude = abs(value)
    whole = math.floor(magnitude)
    rounded = int(whole) + (1 if magnitude - whole >= 0.5 else 0)
    return -rounded if value < 0 else rounded


# ───────────────────────────── Angle ─────────────────────────────
@dataclass(frozen=True)
class Angle:
    degrees: float

    @classmethod
    def from_radians(cls, radians: float) -> "Angle":
        return cls(math.degrees(radians))

    def radians(self) -> float:
        return math.radians(self.degrees)

    def unwound(self) -> "Angle":
        return Angle(normalized_to_scale(self.degrees, 360.0))

    def quadrant_shifted(self) -> "Angle":
        if -180.0 <= self.degrees <= 180.0:
            return self
        shifted = self.degrees - 360.0 * round_half_away(self.degrees / 360.0)
        # d / 360 can round onto a .5 tie; pull the result back into range.
        if shifted < -180.0:
            shifted += 360.0
        elif shifted > 180.0:
            shifted -= 360.0
        return Angle(shifted)

    # Degree-wise arithmetic; plain numbers are treated as degrees.
    @staticmethod
    def _deg(other: Union["Angle", Number]) -> float:
        return other.degrees if isinstance(other, Angle) else float(other)

    def __add__(self, other: Union["Angle", Number]) -> "Angle":
        return Angle(self.degrees + self._deg(other))

    def __sub__(self, other: Union["Angle", Number]) -> "Angle":
        return Angle(self.degrees - self._deg(other))

    def __mul__(self, other: Union["Angle", Number]) -> "Angle":
        return Angle(self.degrees * self._deg(other))

    def __truediv__(self, other: Union["Angle", Number]) -> "Angle":
        divisor = self._deg(other)
        if divisor == 0.0:
            raise ZeroDivisionError("Cannot divide an angle by zero")
        return Angle(self.degrees / divisor)

    def __neg__(self) -> "Angle":
        return Angle(-self.degrees)


# ───────────────────────────── Coordinates ─────────────────────────────
@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat, lon = float(self.latitude), float(self.longitude)
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ConfigurationError("invalid_coordinates", "latitude/longitude must be finite numbers")
        if not -90.0 <= lat <= 90.0:
            raise ConfigurationError("invalid_coordinates", f"latitude must be between -90 and 90, got {lat}")
        if not -180.0 <= lon <= 180.0:
            raise ConfigurationError("invalid_coordinates", f"longitude must be between -180 and 180, got {lon}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lon)

    @classmethod
    def from_pair(cls, pair: Tuple[Number, Number]) -> "Coordinates":
        latitude, longitude = pair
        return cls(latitude, longitude)

    @property
    def latitude_angle(self) -> Angle:
        return Angle(self.latitude)

    @property
    def longitude_angle(self) -> Angle:
        return Angle(self.longitude)


# ───────────────────────────── calendar stepping ─────────────────────────────
def tomorrow(value: _D) -> _D:
    return value + timedelta(days=1)


def yesterday(value: _D) -> _D:
    return value - timedelta(days=1)


def adjust_time(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=minutes)


def rounded_minute(value: datetime, rounding: Rounding) -> datetime:
    """
    Snap an instant onto a whole minute.

    NEAREST rounds 30 s and above up; UP rounds any leftover seconds up;
    NONE returns the instant untouched.
    """
    if rounding is Rounding.NONE:
        return value
    trimmed = value.replace(microsecond=0)
    seconds = trimmed.second
    if rounding is Rounding.NEAREST:
        if seconds >= 30:
            return trimmed + timedelta(seconds=60 - seconds)
        return trimmed - timedelta(seconds=seconds)
    # Rounding.UP
    if seconds == 0 and value.microsecond == 0:
        return trimmed
    return trimmed + timedelta(seconds=60 - seconds)
