# miqat/core/qiblah.py
from __future__ import annotations

import math
from typing import Final

from miqat.core.units import Angle, Coordinates

__all__ = ["MAKKAH", "qiblah"]

MAKKAH: Final = Coordinates(21.4225241, 39.8261818)


def qiblah(coordinates: Coordinates) -> float:
    """
    Initial great-circle bearing from `coordinates` to the Kaaba.

    Degrees clockwise from true north, in [0, 360).
    """
    d_lon = MAKKAH.longitude_angle.radians() - coordinates.longitude_angle.radians()
    lat = coordinates.latitude_angle.radians()
    term1 = math.sin(d_lon)
    term2 = math.tan(MAKKAH.latitude_angle.radians()) * math.cos(lat)
    term3 = math.cos(d_lon) * math.sin(lat)
    return Angle.from_radians(math.atan2(term1, term2 - term3)).unwound().degrees
