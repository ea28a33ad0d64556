# miqat/core/models.py
"""
Calculation settings and event names.

Parameters is the single immutable configuration value consumed by the
schedule. It is either built field-by-field (validated in __post_init__), from
a method preset (`Parameters.from_method`), or through the fluent
`Configuration` builder whose `build()` validates once and raises
ConfigurationError on bad input.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Type, TypeVar
import math

if TYPE_CHECKING:  # pragma: no cover
    from miqat.core.units import Coordinates

__all__ = [
    "ConfigurationError",
    "Method",
    "Madhab",
    "HighLatitudeRule",
    "Rounding",
    "Shafaq",
    "Event",
    "TimeAdjustment",
    "Parameters",
    "Configuration",
    "parse_enum",
]


# ───────────────────────────── Exceptions ─────────────────────────────
class ConfigurationError(ValueError):
    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(f"{code}: {message}")


# ───────────────────────────── Enums ─────────────────────────────
class Method(str, Enum):
    MUSLIM_WORLD_LEAGUE = "muslim_world_league"
    EGYPTIAN = "egyptian"
    KARACHI = "karachi"
    UMM_AL_QURA = "umm_al_qura"
    DUBAI = "dubai"
    MOONSIGHTING_COMMITTEE = "moonsighting_committee"
    NORTH_AMERICA = "north_america"
    KUWAIT = "kuwait"
    QATAR = "qatar"
    SINGAPORE = "singapore"
    TEHRAN = "tehran"
    TURKEY = "turkey"
    OTHER = "other"


class Madhab(str, Enum):
    """School used for Asr; the Hanafi Asr is later than the Shafi one."""
    SHAFI = "shafi"
    HANAFI = "hanafi"

    @property
    def shadow(self) -> int:
        return 2 if self is Madhab.HANAFI else 1


class HighLatitudeRule(str, Enum):
    """
    Bounds on Fajr/Isha when the twilight angle is reached late or never.

    MIDDLE_OF_THE_NIGHT : Fajr no earlier / Isha no later than mid-night.
    SEVENTH_OF_THE_NIGHT: bounds at the last / first seventh of the night.
    TWILIGHT_ANGLE      : night portion = angle / 60.
    """
    MIDDLE_OF_THE_NIGHT = "middle_of_the_night"
    SEVENTH_OF_THE_NIGHT = "seventh_of_the_night"
    TWILIGHT_ANGLE = "twilight_angle"

    @classmethod
    def recommended(cls, coordinates: "Coordinates") -> "HighLatitudeRule":
        if coordinates.latitude > 48.0:
            return cls.SEVENTH_OF_THE_NIGHT
        return cls.MIDDLE_OF_THE_NIGHT


class Rounding(str, Enum):
    NEAREST = "nearest"
    UP = "up"
    NONE = "none"


class Shafaq(str, Enum):
    """Twilight glow used by the Moonsighting Committee Isha rule."""
    GENERAL = "general"
    AHMER = "ahmer"   # red glow
    ABYAD = "abyad"   # white glow


class Event(str, Enum):
    FAJR = "fajr"
    SUNRISE = "sunrise"
    DHUHR = "dhuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"
    QIYAM = "qiyam"
    DURING_SUNRISE = "during_sunrise"
    DURING_SUNSET = "during_sunset"
    AFTER_MIDNIGHT = "after_midnight"

    @property
    def is_restricted(self) -> bool:
        return self in (Event.DURING_SUNRISE, Event.DURING_SUNSET, Event.AFTER_MIDNIGHT)

    @property
    def is_daily(self) -> bool:
        return self in (Event.FAJR, Event.DHUHR, Event.ASR, Event.MAGHRIB, Event.ISHA)

    @property
    def label(self) -> str:
        return _EVENT_LABELS[self]

    def display_name(self, on: Optional[date] = None) -> str:
        """Label for display; Dhuhr is called Jumu'ah when `on` is a Friday."""
        if self is Event.DHUHR and on is not None and on.weekday() == 4:
            return "Jumu'ah"
        return self.label


_EVENT_LABELS: Dict[Event, str] = {
    Event.FAJR: "Fajr",
    Event.SUNRISE: "Sunrise",
    Event.DHUHR: "Dhuhr",
    Event.ASR: "Asr",
    Event.MAGHRIB: "Maghrib",
    Event.ISHA: "Isha",
    Event.QIYAM: "Qiyam",
    Event.DURING_SUNRISE: "During Sunrise (Cannot perform Fajr)",
    Event.DURING_SUNSET: "During Sunset (Cannot perform Asr)",
    Event.AFTER_MIDNIGHT: "After Midnight (Cannot perform Isha)",
}

_E = TypeVar("_E", bound=Enum)


def parse_enum(enum_cls: Type[_E], value: Any) -> _E:
    """Accept an enum member, its value, or a loose name ('North America', 'north-america')."""
    if isinstance(value, enum_cls):
        return value
    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    squashed = key.replace("_", "")
    for member in enum_cls:
        if key in (member.value, member.name.lower()) or squashed == member.value.replace("_", ""):
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(
        f"invalid_{enum_cls.__name__.lower()}",
        f"unknown {enum_cls.__name__} '{value}' (expected one of: {allowed})",
    )


# ───────────────────────────── Adjustments ─────────────────────────────
@dataclass(frozen=True)
class TimeAdjustment:
    """Signed minute offsets per event."""
    fajr: int = 0
    sunrise: int = 0
    dhuhr: int = 0
    asr: int = 0
    maghrib: int = 0
    isha: int = 0

    def __post_init__(self) -> None:
        for f in fields(self):
            v = getattr(self, f.name)
            if isinstance(v, bool) or not isinstance(v, int):
                raise ConfigurationError("invalid_adjustment", f"{f.name} adjustment must be whole minutes, got {v!r}")

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "TimeAdjustment":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError("invalid_adjustment", f"unknown adjustment keys: {unknown}")
        try:
            return cls(**{k: int(v) for k, v in data.items()})
        except (TypeError, ValueError) as e:
            raise ConfigurationError("invalid_adjustment", str(e)) from e

    def minutes_for(self, event: Event) -> int:
        return int(getattr(self, event.value, 0))

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# ───────────────────────────── Parameters ─────────────────────────────
def _check_angle(name: str, value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError("invalid_angle", f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v) or not 0.0 <= v < 90.0:
        raise ConfigurationError("invalid_angle", f"{name} must be within [0, 90), got {value!r}")
    return v


@dataclass(frozen=True)
class Parameters:
    fajr_angle: float
    isha_angle: float
    method: Method = Method.OTHER
    maghrib_angle: float = 0.0
    isha_interval: int = 0
    madhab: Madhab = Madhab.SHAFI
    high_latitude_rule: HighLatitudeRule = HighLatitudeRule.MIDDLE_OF_THE_NIGHT
    adjustments: TimeAdjustment = field(default_factory=TimeAdjustment)
    method_adjustments: TimeAdjustment = field(default_factory=TimeAdjustment)
    rounding: Rounding = Rounding.NEAREST
    shafaq: Shafaq = Shafaq.GENERAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "fajr_angle", _check_angle("fajr_angle", self.fajr_angle))
        object.__setattr__(self, "isha_angle", _check_angle("isha_angle", self.isha_angle))
        object.__setattr__(self, "maghrib_angle", _check_angle("maghrib_angle", self.maghrib_angle))
        if isinstance(self.isha_interval, bool) or not isinstance(self.isha_interval, int):
            raise ConfigurationError("invalid_isha_interval", f"isha_interval must be whole minutes, got {self.isha_interval!r}")
        if self.isha_interval < 0:
            raise ConfigurationError("invalid_isha_interval", f"isha_interval must be >= 0, got {self.isha_interval}")
        for name, cls in (
            ("method", Method), ("madhab", Madhab), ("high_latitude_rule", HighLatitudeRule),
            ("rounding", Rounding), ("shafaq", Shafaq),
        ):
            object.__setattr__(self, name, parse_enum(cls, getattr(self, name)))
        for name in ("adjustments", "method_adjustments"):
            if not isinstance(getattr(self, name), TimeAdjustment):
                raise ConfigurationError("invalid_adjustment", f"{name} must be a TimeAdjustment")

    @classmethod
    def from_method(cls, method: Method | str) -> "Parameters":
        from miqat.core.methods import method_parameters
        return method_parameters(parse_enum(Method, method))

    def with_madhab(self, madhab: Madhab | str) -> "Parameters":
        return replace(self, madhab=parse_enum(Madhab, madhab))

    def night_portions(self) -> Tuple[float, float]:
        """(fajr, isha) share of the night used for the safe bounds."""
        rule = self.high_latitude_rule
        if rule is HighLatitudeRule.SEVENTH_OF_THE_NIGHT:
            return 1.0 / 7.0, 1.0 / 7.0
        if rule is HighLatitudeRule.TWILIGHT_ANGLE:
            return self.fajr_angle / 60.0, self.isha_angle / 60.0
        return 1.0 / 2.0, 1.0 / 2.0

    def time_adjustment(self, event: Event) -> int:
        """Total minute offset (user + method) for an event; 0 for non-prayer events."""
        return self.adjustments.minutes_for(event) + self.method_adjustments.minutes_for(event)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "fajr_angle": self.fajr_angle,
            "maghrib_angle": self.maghrib_angle,
            "isha_angle": self.isha_angle,
            "isha_interval": self.isha_interval,
            "madhab": self.madhab.value,
            "high_latitude_rule": self.high_latitude_rule.value,
            "adjustments": self.adjustments.to_dict(),
            "method_adjustments": self.method_adjustments.to_dict(),
            "rounding": self.rounding.value,
            "shafaq": self.shafaq.value,
        }


class Configuration:
    """
    Fluent builder for Parameters.

        params = (Configuration.with_method(Method.NORTH_AMERICA, Madhab.HANAFI)
                  .high_latitude_rule(HighLatitudeRule.SEVENTH_OF_THE_NIGHT)
                  .build())
    """

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {"fajr_angle": 0.0, "isha_angle": 0.0}

    @classmethod
    def with_method(cls, method: Method | str, madhab: Madhab | str = Madhab.SHAFI) -> "Configuration":
        cfg = cls()
        preset = Parameters.from_method(method)
        cfg._values = {f.name: getattr(preset, f.name) for f in fields(Parameters)}
        return cfg.madhab(madhab)

    def _set(self, key: str, value: Any) -> "Configuration":
        self._values[key] = value
        return self

    def method(self, value: Method | str) -> "Configuration":
        return self._set("method", value)

    def fajr_angle(self, value: float) -> "Configuration":
        return self._set("fajr_angle", value)

    def isha_angle(self, value: float) -> "Configuration":
        return self._set("isha_angle", value)

    def maghrib_angle(self, value: float) -> "Configuration":
        return self._set("maghrib_angle", value)

    def isha_interval(self, minutes: int) -> "Configuration":
        # A positive interval replaces the angle-based Isha; 0 keeps the angle.
        if isinstance(minutes, int) and not isinstance(minutes, bool) and minutes > 0:
            self._values["isha_angle"] = 0.0
        return self._set("isha_interval", minutes)

    def madhab(self, value: Madhab | str) -> "Configuration":
        return self._set("madhab", value)

    def high_latitude_rule(self, value: HighLatitudeRule | str) -> "Configuration":
        return self._set("high_latitude_rule", value)

    def adjustments(self, value: TimeAdjustment) -> "Configuration":
        return self._set("adjustments", value)

    def method_adjustments(self, value: TimeAdjustment) -> "Configuration":
        return self._set("method_adjustments", value)

    def rounding(self, value: Rounding | str) -> "Configuration":
        return self._set("rounding", value)

    def shafaq(self, value: Shafaq | str) -> "Configuration":
        return self._set("shafaq", value)

    def build(self) -> Parameters:
        return Parameters(**self._values)
