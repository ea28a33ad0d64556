# miqat/core/validators.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from miqat.core.models import (
    ConfigurationError,
    HighLatitudeRule,
    Madhab,
    Method,
    Rounding,
    Shafaq,
    TimeAdjustment,
    parse_enum,
)
from miqat.core.units import Coordinates

__all__ = [
    "ValidationError",
    "parse_date",
    "parse_latlon",
    "parse_tz",
    "parse_instant",
    "parse_prayer_payload",
    "PrayerPayload",
]

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured request error; `.errors()` is a list of {loc, msg, type}."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        else:
            self._details = list(details)
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        x = float(v)
    except (TypeError, ValueError):
        return None
    if x != x or x in (float("inf"), float("-inf")):
        return None
    return x


# ───────────────────────── atomic parsers ─────────────────────────

def parse_date(s: Any) -> date:
    if not isinstance(s, str):
        raise ValidationError(_err("date", "date must be 'YYYY-MM-DD'", "value_error.date"))
    try:
        return datetime.strptime(s.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(_err("date", "date must be 'YYYY-MM-DD'", "value_error.date")) from None

def parse_latlon(lat: Any, lon: Any, lat_key="latitude", lon_key="longitude") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise ValidationError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    if not (-90.0 <= lat_f <= 90.0):
        raise ValidationError(_err(lat_key, "latitude must be between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise ValidationError(_err(lon_key, "longitude must be between -180 and 180"))
    return lat_f, lon_f

def parse_tz(tz: Any, loc: str = "tz") -> ZoneInfo:
    if tz is None:
        return ZoneInfo("UTC")
    if not isinstance(tz, str) or not tz.strip():
        raise ValidationError(_err(loc, "must be a string (IANA)"))
    try:
        return ZoneInfo(tz.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(_err(loc, "must be a valid IANA zone like 'America/New_York'")) from None

def parse_instant(s: Any, tz: ZoneInfo, loc: str = "at") -> datetime:
    """ISO-8601 instant; a value without an offset is read in `tz`."""
    if not isinstance(s, str) or not s.strip():
        raise ValidationError(_err(loc, "must be an ISO-8601 datetime string", "value_error.datetime"))
    raw = s.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(_err(loc, "must be an ISO-8601 datetime string", "value_error.datetime")) from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(timezone.utc)

def _parse_choice(body: Dict[str, Any], key: str, enum_cls, default: Any = None):
    raw = body.get(key)
    if raw is None:
        return default
    try:
        return parse_enum(enum_cls, raw)
    except ConfigurationError as e:
        raise ValidationError(_err(key, str(e), f"value_error.{key}")) from None


# ───────────────────────── prayer-times payload ─────────────────────────

class PrayerPayload(TypedDict, total=False):
    date: date
    latitude: float
    longitude: float
    tz: ZoneInfo
    method: Optional[Method]
    madhab: Optional[Madhab]
    high_latitude_rule: Optional[HighLatitudeRule]
    rounding: Optional[Rounding]
    shafaq: Optional[Shafaq]
    adjustments: TimeAdjustment
    at: Optional[datetime]

def parse_prayer_payload(body: Dict[str, Any]) -> PrayerPayload:
    """
    Normalize /api/prayer-times input.

    Required: date, latitude, longitude. Everything else is optional; None
    means "use the service default". Enum fields take loose names ('North America', 'north-america').
    `high_latitude_rule` may be 'recommended' to pick by latitude.
    """
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")

    errs: List[Dict[str, Any]] = []
    if not isinstance(body.get("date"), str) or not body["date"].strip():
        errs.append(_err("date", "required string"))
    lat_in = body.get("latitude") if "latitude" in body else body.get("lat")
    lon_in = body.get("longitude") if "longitude" in body else body.get("lon")
    if lat_in is None:
        errs.append(_err("latitude", "required number", "type_error.float"))
    if lon_in is None:
        errs.append(_err("longitude", "required number", "type_error.float"))
    if errs:
        raise ValidationError(errs)

    d = parse_date(body["date"])
    lat, lon = parse_latlon(lat_in, lon_in)
    tz = parse_tz(body.get("tz") or body.get("timezone"))

    method = _parse_choice(body, "method", Method)
    madhab = _parse_choice(body, "madhab", Madhab)

    rule_raw = body.get("high_latitude_rule")
    if isinstance(rule_raw, str) and rule_raw.strip().lower() == "recommended":
        rule: Optional[HighLatitudeRule] = HighLatitudeRule.recommended(Coordinates(lat, lon))
    else:
        rule = _parse_choice(body, "high_latitude_rule", HighLatitudeRule)

    adjustments_raw = body.get("adjustments")
    if adjustments_raw is not None and not isinstance(adjustments_raw, dict):
        raise ValidationError(_err("adjustments", "must be an object of minute offsets", "type_error.dict"))
    try:
        adjustments = TimeAdjustment.from_mapping(adjustments_raw)
    except ConfigurationError as e:
        raise ValidationError(_err("adjustments", str(e))) from None

    at_raw = body.get("at")
    at = parse_instant(at_raw, tz) if at_raw is not None else None

    return {
        "date": d,
        "latitude": lat,
        "longitude": lon,
        "tz": tz,
        "method": method,
        "madhab": madhab,
        "high_latitude_rule": rule,
        "rounding": _parse_choice(body, "rounding", Rounding),
        "shafaq": _parse_choice(body, "shafaq", Shafaq),
        "adjustments": adjustments,
        "at": at,
    }
