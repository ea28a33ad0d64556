# miqat/api/routes.py
"""
Prayer-times API routes
- GET  /api/health
- GET  /api/methods        preset table
- POST /api/prayer-times   schedule for one date and place

Errors:
- 400 {"ok": false, "error": "validation_error", "details": [{loc, msg, type}]}
- 422 {"ok": false, "error": "<configuration code>", "details": "..."}
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from miqat.version import VERSION
from miqat.core.methods import describe_methods
from miqat.core.models import ConfigurationError, Event, Parameters
from miqat.core.qiblah import qiblah
from miqat.core.schedule import CFG, PrayerSchedule, PrayerTimes
from miqat.core.units import Coordinates
from miqat.core.validators import ValidationError, parse_prayer_payload
from miqat.utils.config import parameters_from_config
from miqat.utils.metrics import MET_SCHEDULES, MET_WARNINGS

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)

DEBUG_VERBOSE = os.getenv("MIQAT_DEBUG_VERBOSE", "0").lower() in ("1", "true", "yes", "on")


# ───────────────────────── helpers ─────────────────────────
def _json_error(code: str, details: Any = None, http: int = 400):
    out: Dict[str, Any] = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    return jsonify(out), http


def _iso(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None


# Config keys that only apply to the service-default method.
_PRESET_KEYS = ("fajr_angle", "isha_angle", "maghrib_angle", "isha_interval")


def _parameters_for(payload: Dict[str, Any]) -> Parameters:
    """Service defaults (app.cfg) overlaid with the request's choices."""
    merged: Dict[str, Any] = dict(getattr(current_app, "cfg", None) or {})
    merged.setdefault("method", CFG.default_method)
    if payload.get("method") is not None:
        # A method named in the request brings its own preset angles.
        for key in _PRESET_KEYS:
            merged.pop(key, None)
    for key in ("method", "madhab", "high_latitude_rule", "rounding", "shafaq"):
        if payload.get(key) is not None:
            merged[key] = payload[key]
    if any(payload["adjustments"].to_dict().values()):
        merged["adjustments"] = payload["adjustments"].to_dict()
    return parameters_from_config(merged)


def _schedule_blob(times: PrayerTimes, on: date) -> Dict[str, Any]:
    return {
        "times": {name: _iso(v) for name, v in times.as_dict().items()},
        "names": {e.value: e.display_name(on=on) for e in Event if e.is_daily},
        "missing": times.missing,
    }


# ───────────────────────── health / ops ─────────────────────────
@api.get("/api/health")
def health():
    return jsonify({"ok": True, "status": "ok", "version": VERSION}), 200


@api.get("/api/methods")
def methods():
    return jsonify({"ok": True, "methods": describe_methods()}), 200


# ───────────────────────── prayer times ─────────────────────────
@api.post("/api/prayer-times")
def prayer_times():
    body = request.get_json(force=True, silent=True)
    try:
        payload = parse_prayer_payload(body)
    except ValidationError as e:
        return _json_error("validation_error", e.errors(), 400)

    try:
        params = _parameters_for(payload)
        coords = Coordinates(payload["latitude"], payload["longitude"])
        times = (
            PrayerSchedule()
            .with_date(payload["date"])
            .with_coordinates(coords)
            .with_parameters(params)
            .in_timezone(payload["tz"])
            .build()
        )
    except ConfigurationError as e:
        return _json_error(e.code, str(e), 422)

    MET_SCHEDULES.labels(method=params.method.value).inc()
    if times.missing:
        MET_WARNINGS.labels(kind="polar_missing_event").inc()

    out: Dict[str, Any] = {
        "ok": True,
        "date": payload["date"].isoformat(),
        "tz": payload["tz"].key,
        "coordinates": {"latitude": coords.latitude, "longitude": coords.longitude},
        "parameters": params.to_dict(),
        **_schedule_blob(times, payload["date"]),
        "qiblah": qiblah(coords),
    }

    at = payload.get("at")
    if at is not None:
        remaining = times.time_remaining(at)
        out["at"] = at.astimezone(payload["tz"]).isoformat()
        out["current"] = times.current(at).value
        out["next"] = times.next(at).value
        out["next_time"] = _iso(times.next_time(at))
        out["time_remaining"] = (
            {"hours": remaining[0], "minutes": remaining[1]} if remaining is not None else None
        )

    if DEBUG_VERBOSE:
        log.debug("prayer-times %s", out)
    return jsonify(out), 200
