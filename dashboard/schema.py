# File: dashboard/schema.py
# Purpose: Standardverdier, felt-skjema per widget-type og validering av dokumentet.
from __future__ import annotations
import copy
import json
import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from .errors import ValidationError

CURRENT_SCHEMA_VERSION = 3
ORIENTATIONS: Tuple[str, str] = ("portrait", "landscape")
POSITION_KEYS: Tuple[str, ...] = ("x", "y", "width", "height")
DISPLAY_MODES: Tuple[str, ...] = ("cycle", "simultaneous", "priority")


class FieldKind(Enum):
    PRESERVABLE_SECRET = "preservable_secret"
    REPLACEABLE = "replaceable"


S = FieldKind.PRESERVABLE_SECRET

# Felt som ikke står her er REPLACEABLE.
WIDGET_FIELD_SCHEMAS: Dict[str, Dict[str, FieldKind]] = {
    "clock": {},
    "calendar": {},
    "news": {},
    "weather": {"apiKey": S},
    "forecast": {"apiKey": S},
    "media": {"homeAssistantToken": S},
    "smartWidget": {"homeAssistantToken": S, "apiKey": S},
}
# Ukjente typer: vanlige nøkkelnavn regnes som hemmelige
GENERIC_FIELD_SCHEMA: Dict[str, FieldKind] = {"apiKey": S, "token": S}


def widget_type(widget_id: str, widget: Mapping[str, Any] | None) -> str:
    t = (widget or {}).get("type")
    return t if isinstance(t, str) and t else widget_id


def field_schema(widget_id: str, widget: Mapping[str, Any] | None) -> Dict[str, FieldKind]:
    return WIDGET_FIELD_SCHEMAS.get(widget_type(widget_id, widget), GENERIC_FIELD_SCHEMA)


def secret_fields(widget_id: str, widget: Mapping[str, Any] | None) -> List[str]:
    return [k for k, kind in field_schema(widget_id, widget).items() if kind is S]


def redaction_marker(field: str) -> str:
    """apiKey -> hasApiKey, homeAssistantToken -> hasHomeAssistantToken."""
    return "has" + field[:1].upper() + field[1:]


# ── defaults ──────────────────────────────────────────────────────────────────
_DEFAULT_WIDGETS: Dict[str, Any] = {
    "clock": {"enabled": True, "type": "clock", "format24h": True, "additionalTimezones": []},
    "calendar": {"enabled": True, "type": "calendar", "calendarUrls": [], "maxEvents": 10},
    "weather": {
        "enabled": False,
        "type": "weather",
        "apiKey": "",
        "location": "",
        "units": "imperial",
    },
    "forecast": {
        "enabled": False,
        "type": "forecast",
        "apiKey": "",
        "location": "",
        "units": "imperial",
        "days": 5,
    },
    "news": {"enabled": False, "type": "news", "feedUrls": []},
    "media": {
        "enabled": False,
        "type": "media",
        "homeAssistantUrl": "",
        "homeAssistantToken": "",
        "entityIds": [],
    },
    "smartWidget": {
        "enabled": False,
        "type": "smartWidget",
        "displayMode": "cycle",  # cycle | simultaneous | priority
        "cycleSpeed": 10,  # sekunder per sub-widget
        "apiKey": "",
        "location": "",
        "homeAssistantUrl": "",
        "homeAssistantToken": "",
        "subWidgets": [
            {"id": "rain", "type": "rainForecast", "enabled": True, "priority": 1},
            {"id": "vacation", "type": "upcomingVacation", "enabled": True, "priority": 2},
            {"id": "media", "type": "homeAssistantMedia", "enabled": True, "priority": 3},
            {"id": "party", "type": "party", "enabled": False, "priority": 4},
        ],
    },
}

# portrait: 4 kolonner × 6 rader, landscape: 8 × 4
_DEFAULT_LAYOUTS: Dict[str, Dict[str, Dict[str, int]]] = {
    "portrait": {
        "clock": {"x": 0, "y": 0, "width": 2, "height": 2},
        "calendar": {"x": 2, "y": 0, "width": 2, "height": 4},
        "weather": {"x": 0, "y": 2, "width": 2, "height": 2},
        "forecast": {"x": 0, "y": 4, "width": 4, "height": 2},
        "news": {"x": 2, "y": 2, "width": 2, "height": 2},
        "media": {"x": 0, "y": 4, "width": 4, "height": 2},
        "smartWidget": {"x": 0, "y": 4, "width": 4, "height": 2},
    },
    "landscape": {
        "clock": {"x": 0, "y": 0, "width": 2, "height": 1},
        "calendar": {"x": 2, "y": 0, "width": 4, "height": 3},
        "weather": {"x": 6, "y": 0, "width": 2, "height": 1},
        "news": {"x": 0, "y": 1, "width": 2, "height": 2},
        "forecast": {"x": 0, "y": 3, "width": 8, "height": 1},
        "media": {"x": 6, "y": 1, "width": 2, "height": 2},
        "smartWidget": {"x": 6, "y": 1, "width": 2, "height": 2},
    },
}

_DEFAULT_GLOBALS: Dict[str, Any] = {
    "enabled": False,
    "theme": "dark",
    "refreshInterval": 60000,
    "gridSize": {
        "portrait": {"columns": 4, "rows": 6},
        "landscape": {"columns": 8, "rows": 4},
    },
    "autoThemeSwitch": {
        o: {"enabled": False, "latitude": None, "longitude": None, "timezone": "America/New_York"}
        for o in ORIENTATIONS
    },
}


def get_defaults() -> Dict[str, Any]:
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "globals": copy.deepcopy(_DEFAULT_GLOBALS),
        "widgets": copy.deepcopy(_DEFAULT_WIDGETS),
        "layouts": copy.deepcopy(_DEFAULT_LAYOUTS),
    }


def default_widgets() -> Dict[str, Any]:
    return copy.deepcopy(_DEFAULT_WIDGETS)


def default_layout(orientation: str) -> Dict[str, Dict[str, int]]:
    return copy.deepcopy(_DEFAULT_LAYOUTS.get(orientation, {}))


def default_grid_size(orientation: str) -> Dict[str, int]:
    return dict(_DEFAULT_GLOBALS["gridSize"][orientation])


def parse_grid(v: Any) -> Dict[str, int] | None:
    """{"columns": n, "rows": m} med positive heltall, ellers None."""
    if not isinstance(v, dict):
        return None
    cols, rows = v.get("columns"), v.get("rows")
    if _is_int(cols) and _is_int(rows) and cols > 0 and rows > 0:
        return {"columns": cols, "rows": rows}
    return None


def grid_size(doc: Mapping[str, Any], orientation: str) -> Dict[str, int]:
    g = doc.get("globals")
    gs = g.get("gridSize") if isinstance(g, dict) else None
    per = gs.get(orientation) if isinstance(gs, dict) else None
    return parse_grid(per) or default_grid_size(orientation)


def fit_position(
    pos: Mapping[str, int], from_grid: Mapping[str, int], to_grid: Mapping[str, int]
) -> Dict[str, int]:
    """Skaler en posisjon fra ett grid til et annet og klem den inn i det nye."""
    sx = to_grid["columns"] / from_grid["columns"]
    sy = to_grid["rows"] / from_grid["rows"]
    x = min(int(pos["x"] * sx), to_grid["columns"] - 1)
    y = min(int(pos["y"] * sy), to_grid["rows"] - 1)
    width = max(1, round(pos["width"] * sx))
    height = max(1, round(pos["height"] * sy))
    return {
        "x": x,
        "y": y,
        "width": min(width, to_grid["columns"] - x),
        "height": min(height, to_grid["rows"] - y),
    }


def is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


# ── redaction ─────────────────────────────────────────────────────────────────
def redact(doc: Mapping[str, Any]) -> Dict[str, Any]:
    """Kopi uten hemmeligheter: verdien blankes og has<Felt> sier om den finnes."""
    out = json.loads(json.dumps(doc))  # dyp kopi
    for wid, w in (out.get("widgets") or {}).items():
        if not isinstance(w, dict):
            continue
        for f in secret_fields(wid, w):
            if f in w:
                w[redaction_marker(f)] = not is_blank(w[f])
                w[f] = ""
    return out


def strip_redaction_markers(partial: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(partial)
    widgets = out.get("widgets")
    if isinstance(widgets, dict):
        cleaned: Dict[str, Any] = {}
        for wid, w in widgets.items():
            if isinstance(w, dict):
                markers = {redaction_marker(f) for f in secret_fields(wid, w)}
                w = {k: v for k, v in w.items() if k not in markers}
            cleaned[wid] = w
        out["widgets"] = cleaned
    return out


# ── validate ──────────────────────────────────────────────────────────────────
def _validate_position(path: str, pos: Any, grid: Mapping[str, int], errors: Dict[str, str]) -> None:
    if not isinstance(pos, dict):
        errors[path] = "position must be an object with x, y, width, height"
        return
    for k in POSITION_KEYS:
        v = pos.get(k)
        if not _is_int(v) or v < 0:
            errors[f"{path}.{k}"] = "must be a non-negative integer"
    if any(f"{path}.{k}" in errors for k in POSITION_KEYS):
        return
    if pos["width"] < 1 or pos["height"] < 1:
        errors[path] = "width and height must be at least 1"
    elif pos["x"] + pos["width"] > grid["columns"]:
        errors[path] = f"exceeds grid width ({grid['columns']} columns)"
    elif pos["y"] + pos["height"] > grid["rows"]:
        errors[path] = f"exceeds grid height ({grid['rows']} rows)"


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _check_coordinate(path: str, v: Any, limit: int, errors: Dict[str, str]) -> None:
    if v is None:
        return
    if not _is_number(v) or not -limit <= v <= limit:
        errors[path] = f"must be a number between -{limit} and {limit} (or null)"


def _collect_global_errors(doc: Mapping[str, Any], errors: Dict[str, str]) -> None:
    g = doc.get("globals")
    if g is None:
        return
    if not isinstance(g, dict):
        errors["globals"] = "must be an object"
        return
    if "enabled" in g and not isinstance(g["enabled"], bool):
        errors["globals.enabled"] = "must be a boolean"
    if "gridSize" in g:
        gs = g["gridSize"]
        if not isinstance(gs, dict):
            errors["globals.gridSize"] = "must be an object keyed by orientation"
        else:
            for o, v in gs.items():
                if o not in ORIENTATIONS:
                    errors[f"globals.gridSize.{o}"] = "unknown orientation (expected portrait|landscape)"
                elif parse_grid(v) is None:
                    errors[f"globals.gridSize.{o}"] = "must have positive integer columns and rows"
    if "autoThemeSwitch" in g:
        ats = g["autoThemeSwitch"]
        if not isinstance(ats, dict):
            errors["globals.autoThemeSwitch"] = "must be an object keyed by orientation"
            return
        for o, v in ats.items():
            base = f"globals.autoThemeSwitch.{o}"
            if o not in ORIENTATIONS:
                errors[base] = "unknown orientation (expected portrait|landscape)"
                continue
            if not isinstance(v, dict):
                errors[base] = "must be an object"
                continue
            if "enabled" in v and not isinstance(v["enabled"], bool):
                errors[f"{base}.enabled"] = "must be a boolean"
            _check_coordinate(f"{base}.latitude", v.get("latitude"), 90, errors)
            _check_coordinate(f"{base}.longitude", v.get("longitude"), 180, errors)


def collect_errors(doc: Mapping[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    _collect_global_errors(doc, errors)
    widgets = doc.get("widgets")
    if not isinstance(widgets, dict):
        errors["widgets"] = "must be an object"
        return errors
    for wid, w in widgets.items():
        if not isinstance(w, dict):
            errors[f"widgets.{wid}"] = "must be an object"
            continue
        if "enabled" in w and not isinstance(w["enabled"], bool):
            errors[f"widgets.{wid}.enabled"] = "must be a boolean"
        if "displayMode" in w and w["displayMode"] not in DISPLAY_MODES:
            errors[f"widgets.{wid}.displayMode"] = "must be one of " + "|".join(DISPLAY_MODES)
        if "cycleSpeed" in w and not (_is_number(w["cycleSpeed"]) and w["cycleSpeed"] > 0):
            errors[f"widgets.{wid}.cycleSpeed"] = "must be a positive number of seconds"
        for arr in ("subWidgets", "entityIds", "calendarUrls", "feedUrls"):
            if arr in w and not isinstance(w[arr], list):
                errors[f"widgets.{wid}.{arr}"] = "must be an array"
    layouts = doc.get("layouts")
    if layouts is None:
        return errors
    if not isinstance(layouts, dict):
        errors["layouts"] = "must be an object"
        return errors
    enabled = [wid for wid, w in widgets.items() if isinstance(w, dict) and w.get("enabled") is True]
    for orientation, layout in layouts.items():
        base = f"layouts.{orientation}"
        if orientation not in ORIENTATIONS:
            errors[base] = "unknown orientation (expected portrait|landscape)"
            continue
        if not isinstance(layout, dict):
            errors[base] = "must be an object"
            continue
        grid = grid_size(doc, orientation)
        for wid, pos in layout.items():
            if wid not in widgets:
                errors[f"{base}.{wid}"] = "references unknown widget"
                continue
            _validate_position(f"{base}.{wid}", pos, grid, errors)
        if layout:
            for wid in enabled:
                if wid not in layout:
                    errors[f"{base}.{wid}"] = "missing position for enabled widget"
    return errors


def validate(doc: Mapping[str, Any]) -> None:
    errors = collect_errors(doc)
    if errors:
        raise ValidationError("invalid configuration", errors)
