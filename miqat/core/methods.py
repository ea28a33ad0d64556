# miqat/core/methods.py
"""
Calculation-method presets.

A data-only table: each Method maps to the angles, Isha interval, intrinsic
minute adjustments and rounding published by that authority. No behaviour
lives on the enum itself.
"""
from __future__ import annotations

from typing import Any, Dict, Final

from miqat.core.models import Method, Parameters, Rounding, TimeAdjustment

__all__ = ["METHOD_PRESETS", "method_parameters", "describe_methods"]

_DHUHR_PLUS_1: Final = TimeAdjustment(dhuhr=1)

METHOD_PRESETS: Final[Dict[Method, Dict[str, Any]]] = {
    # Muslim World League: Fajr 18°, Isha 17°.
    Method.MUSLIM_WORLD_LEAGUE: {"fajr_angle": 18.0, "isha_angle": 17.0, "method_adjustments": _DHUHR_PLUS_1},
    # Egyptian General Authority of Survey: early Fajr 19.5°, Isha 17.5°.
    Method.EGYPTIAN: {"fajr_angle": 19.5, "isha_angle": 17.5, "method_adjustments": _DHUHR_PLUS_1},
    # University of Islamic Sciences, Karachi.
    Method.KARACHI: {"fajr_angle": 18.0, "isha_angle": 18.0, "method_adjustments": _DHUHR_PLUS_1},
    # Umm al-Qura, Makkah: Isha 90 min after Maghrib (add +30 in Ramadan).
    Method.UMM_AL_QURA: {"fajr_angle": 18.5, "isha_angle": 0.0, "isha_interval": 90},
    # UAE.
    Method.DUBAI: {
        "fajr_angle": 18.2,
        "isha_angle": 18.2,
        "method_adjustments": TimeAdjustment(sunrise=-3, dhuhr=3, asr=3, maghrib=3),
    },
    # Moonsighting Committee Worldwide: seasonal twilight, 1/7 rule above 55°.
    Method.MOONSIGHTING_COMMITTEE: {
        "fajr_angle": 18.0,
        "isha_angle": 18.0,
        "method_adjustments": TimeAdjustment(dhuhr=5, maghrib=3),
    },
    # ISNA.
    Method.NORTH_AMERICA: {"fajr_angle": 15.0, "isha_angle": 15.0, "method_adjustments": _DHUHR_PLUS_1},
    Method.KUWAIT: {"fajr_angle": 18.0, "isha_angle": 17.5},
    Method.QATAR: {"fajr_angle": 18.0, "isha_angle": 0.0, "isha_interval": 90},
    # Singapore / Malaysia / Indonesia.
    Method.SINGAPORE: {
        "fajr_angle": 20.0,
        "isha_angle": 18.0,
        "method_adjustments": _DHUHR_PLUS_1,
        "rounding": Rounding.UP,
    },
    # Institute of Geophysics, University of Tehran: Maghrib at 4.5° depression.
    Method.TEHRAN: {"fajr_angle": 17.7, "isha_angle": 14.0, "maghrib_angle": 4.5},
    # Approximation of Diyanet (Turkey).
    Method.TURKEY: {
        "fajr_angle": 18.0,
        "isha_angle": 17.0,
        "method_adjustments": TimeAdjustment(sunrise=-7, dhuhr=5, asr=4, maghrib=7),
    },
    Method.OTHER: {"fajr_angle": 0.0, "isha_angle": 0.0},
}


def method_parameters(method: Method) -> Parameters:
    return Parameters(method=method, **METHOD_PRESETS[method])


def describe_methods() -> Dict[str, Dict[str, Any]]:
    """JSON-friendly view of the preset table."""
    return {m.value: method_parameters(m).to_dict() for m in Method}
