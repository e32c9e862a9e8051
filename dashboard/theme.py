# dashboard/theme.py
"""
Automatisk lyst/mørkt tema per orientering (globals.autoThemeSwitch.<orientering>).

Lyst fra 30 min før soloppgang til 30 min etter solnedgang, ellers mørkt.
Uten aktivert oppsett eller posisjon brukes globals.theme.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from astral import LocationInfo
from astral.sun import sun

from .settings import TZ

log = logging.getLogger(__name__)

LIGHT_BUFFER = timedelta(minutes=30)


def _zone(name: Any) -> tzinfo:
    if not name:
        return TZ
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("unknown timezone %r; using %s", name, TZ)
        return TZ


def _coord(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def light_window(lat: float, lon: float, day: date, tz: tzinfo) -> Tuple[datetime, datetime, Dict[str, datetime]]:
    """(lys start, lys slutt, sol-hendelser) for én dag. ValueError ved midnattssol/mørketid."""
    loc = LocationInfo(latitude=lat, longitude=lon)
    events = sun(loc.observer, date=day, tzinfo=tz)
    return events["sunrise"] - LIGHT_BUFFER, events["sunset"] + LIGHT_BUFFER, events


def _manual(theme: str, error: Optional[str] = None) -> Dict[str, Any]:
    out: Dict[str, Any] = {"theme": theme, "autoMode": False, "nextSwitch": None, "sunTimes": None}
    if error:
        out["error"] = error
    return out


def current_theme(
    auto_cfg: Optional[Mapping[str, Any]], manual_theme: Any = "dark", now: Optional[datetime] = None
) -> Dict[str, Any]:
    manual = manual_theme if isinstance(manual_theme, str) and manual_theme else "dark"
    if not isinstance(auto_cfg, Mapping) or auto_cfg.get("enabled") is not True:
        return _manual(manual)
    lat, lon = _coord(auto_cfg.get("latitude")), _coord(auto_cfg.get("longitude"))
    if lat is None or lon is None:
        return _manual(manual, "location not configured")

    tz = _zone(auto_cfg.get("timezone"))
    now = now or datetime.now(tz)
    now = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    try:
        start, end, events = light_window(lat, lon, now.date(), tz)
    except ValueError as e:
        log.warning("sun times unavailable at %.3f,%.3f: %s", lat, lon, e)
        return _manual(manual, str(e))

    if start <= now <= end:
        theme, next_switch = "light", end
    elif now < start:
        theme, next_switch = "dark", start
    else:
        theme = "dark"
        try:
            next_switch, _end, _events = light_window(lat, lon, now.date() + timedelta(days=1), tz)
        except ValueError:
            next_switch = None
    return {
        "theme": theme,
        "autoMode": True,
        "nextSwitch": next_switch.isoformat() if next_switch else None,
        "sunTimes": {
            "sunrise": events["sunrise"].isoformat(),
            "sunset": events["sunset"].isoformat(),
            "lightStart": start.isoformat(),
            "lightEnd": end.isoformat(),
        },
    }
