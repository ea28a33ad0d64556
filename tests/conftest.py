# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the miqat suite.

- Registers Hypothesis profiles for local dev and CI.
- Freezes the process TZ to UTC; every test passes zones explicitly.
- Shared schedule fixtures (Raleigh, NC, the reference location).
"""

import os
from datetime import date

import pytest
from hypothesis import settings, HealthCheck

from miqat.core.models import Madhab, Method, Parameters
from miqat.core.schedule import PrayerSchedule
from miqat.core.units import Coordinates


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # schedule builds are a few ms each
        max_examples=40,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=120,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def freeze_tz_env():
    """Process TZ is UTC so nothing can leak the runner's local zone."""
    prev = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    try:
        yield
    finally:
        if prev is None:
            os.environ.pop("TZ", None)
        else:
            os.environ["TZ"] = prev


@pytest.fixture(scope="session")
def ensure_erfa():
    """Fail early if pyERFA isn't importable or lacks the calendar routines."""
    import erfa
    assert hasattr(erfa, "cal2jd"), "ERFA.cal2jd not available"
    return erfa


@pytest.fixture(scope="session")
def ensure_tzdata():
    from zoneinfo import ZoneInfo
    for name in ("UTC", "America/New_York", "Asia/Jakarta"):
        ZoneInfo(name)


@pytest.fixture(scope="session")
def raleigh() -> Coordinates:
    return Coordinates(35.7750, -78.6336)


@pytest.fixture(scope="session")
def raleigh_times(raleigh):
    """North America method, Hanafi Asr, 2015-07-12 (UTC)."""
    params = Parameters.from_method(Method.NORTH_AMERICA).with_madhab(Madhab.HANAFI)
    return (
        PrayerSchedule()
        .with_date(date(2015, 7, 12))
        .with_coordinates(raleigh)
        .with_parameters(params)
        .build()
    )
