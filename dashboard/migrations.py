# File: dashboard/migrations.py
"""
Versjonert migreringskjede for konfigurasjonsdokumentet.

  v1  hver widget har egen `gridPosition`, ingen `layouts`, globale felt på roten
  v2  `layouts.portrait` / `layouts.landscape`, globale felt fortsatt på roten
  v3  globale felt samlet i `globals`, `gridSize` per orientering (gjeldende)

Hvert steg er en ren funksjon dict -> dict og kan testes alene. Ingen data
kastes: verdier flyttes uendret, ukjente former logges og blir liggende.
"""
from __future__ import annotations
import copy
import logging
import warnings
from typing import Any, Callable, Dict, Mapping

from .errors import MigrationWarning
from .schema import (
    CURRENT_SCHEMA_VERSION,
    ORIENTATIONS,
    POSITION_KEYS,
    default_grid_size,
    default_layout,
    default_widgets,
    fit_position,
    get_defaults,
    parse_grid,
)

log = logging.getLogger(__name__)

Step = Callable[[Dict[str, Any]], Dict[str, Any]]

# Felt som lå på roten før v3
LEGACY_GLOBAL_KEYS = ("enabled", "theme", "refreshInterval", "gridSize", "autoThemeSwitch")
_FALLBACK_POSITION = {"x": 0, "y": 0, "width": 1, "height": 1}


def _warn(message: str) -> None:
    log.warning("migration: %s", message)
    warnings.warn(message, MigrationWarning, stacklevel=3)


def _widgets(raw: Mapping[str, Any]) -> Dict[str, Any]:
    w = raw.get("widgets")
    return w if isinstance(w, dict) else {}


def _has_grid_positions(raw: Mapping[str, Any]) -> bool:
    return any(isinstance(w, dict) and "gridPosition" in w for w in _widgets(raw).values())


def _has_root_globals(raw: Mapping[str, Any]) -> bool:
    return any(k in raw for k in LEGACY_GLOBAL_KEYS)


def _tag(raw: Mapping[str, Any]) -> int | None:
    tag = raw.get("schemaVersion")
    if isinstance(tag, int) and not isinstance(tag, bool) and tag > 0:
        return tag
    return None


def schema_version(raw: Mapping[str, Any]) -> int:
    """
    Versjonen dokumentet faktisk har. Eksplisitt `schemaVersion` gjelder, med mindre
    det fortsatt ligger legacy-markører i dokumentet (f.eks. etter en oppdatering
    med gammel form); da rapporteres den eldste versjonen som trengs.
    """
    if _has_grid_positions(raw):
        return 1
    tag = _tag(raw)
    if tag is None and not isinstance(raw.get("layouts"), dict):
        return 1
    if _has_root_globals(raw):
        return 2 if tag is None else min(tag, 2)
    return tag if tag is not None else CURRENT_SCHEMA_VERSION


# ── steps ─────────────────────────────────────────────────────────────────────
def _target_grid(doc: Mapping[str, Any], orientation: str) -> Dict[str, int]:
    """Grid som gjelder for dokumentet: globals.gridSize, deretter legacy gridSize på roten."""
    g = doc.get("globals")
    for gs in (g.get("gridSize") if isinstance(g, dict) else None, doc.get("gridSize")):
        if not isinstance(gs, dict):
            continue
        grid = parse_grid(gs.get(orientation)) or parse_grid(gs)
        if grid:
            return grid
    return default_grid_size(orientation)


def _fill_position(doc: Mapping[str, Any], widget_id: str, orientation: str) -> Dict[str, int]:
    """Standardplass for en widget, skalert til dokumentets grid."""
    pos = default_layout(orientation).get(widget_id)
    if pos is None:
        return dict(_FALLBACK_POSITION)
    return fit_position(pos, default_grid_size(orientation), _target_grid(doc, orientation))


def _is_position(v: Any) -> bool:
    return isinstance(v, dict) and all(
        isinstance(v.get(k), int) and not isinstance(v.get(k), bool) for k in POSITION_KEYS
    )


def v1_to_v2(doc: Dict[str, Any]) -> Dict[str, Any]:
    """gridPosition per widget -> like oppføringer i begge layouts."""
    out = copy.deepcopy(doc)
    layouts = out.get("layouts") if isinstance(out.get("layouts"), dict) else {}
    for o in ORIENTATIONS:
        if not isinstance(layouts.get(o), dict):
            layouts[o] = {}
    moved = False
    for wid, widget in _widgets(out).items():
        if not isinstance(widget, dict) or "gridPosition" not in widget:
            continue
        pos = widget["gridPosition"]
        if not _is_position(pos):
            _warn(f"widget {wid!r}: unrecognised gridPosition {pos!r}; left in place")
            continue
        for o in ORIENTATIONS:
            layouts[o][wid] = {k: pos[k] for k in POSITION_KEYS}
        del widget["gridPosition"]
        moved = True
    if moved:
        # widgets uten gridPosition får standardplass (eller 1×1 i hjørnet), tilpasset gridet
        for wid in _widgets(out):
            for o in ORIENTATIONS:
                if wid not in layouts[o]:
                    layouts[o][wid] = _fill_position(out, wid, o)
    out["layouts"] = layouts
    return out


def v2_to_v3(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Globale felt inn i `globals`, gridSize per orientering, manglende standard-widgets."""
    out = copy.deepcopy(doc)
    g = out.get("globals") if isinstance(out.get("globals"), dict) else {}
    for key in LEGACY_GLOBAL_KEYS:
        if key not in out:
            continue
        value = out.pop(key)
        if key == "gridSize" and isinstance(value, dict) and "columns" in value:
            value = {o: dict(value) for o in ORIENTATIONS}
        elif key == "gridSize" and not isinstance(value, dict):
            _warn(f"unrecognised gridSize {value!r}; kept as globals.legacyGridSize")
            g["legacyGridSize"] = value
            continue
        g[key] = value
    defaults = get_defaults()["globals"]
    for key, value in defaults.items():
        g.setdefault(key, value)
    out["globals"] = g

    widgets = out.get("widgets") if isinstance(out.get("widgets"), dict) else {}
    layouts = out.get("layouts") if isinstance(out.get("layouts"), dict) else {}
    for wid, widget in default_widgets().items():
        if wid in widgets:
            continue
        log.info("migration: adding missing widget %s", wid)
        widgets[wid] = widget
        for o in ORIENTATIONS:
            layout = layouts.get(o)
            # tomme layouts forblir tomme (faller tilbake ved oppslag)
            if isinstance(layout, dict) and layout and wid in default_layout(o) and wid not in layout:
                layout[wid] = _fill_position(out, wid, o)
    out["widgets"] = widgets
    out["layouts"] = layouts
    return out


# versjon -> steg som løfter dokumentet til versjon + 1
MIGRATIONS: Dict[int, Step] = {
    1: v1_to_v2,
    2: v2_to_v3,
}


def migrate(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Løft `raw` til CURRENT_SCHEMA_VERSION. Et dokument som allerede er gjeldende
    returneres som en lik kopi (ingen endring, ingen stempling).
    """
    doc: Dict[str, Any] = copy.deepcopy(dict(raw or {}))
    version = schema_version(doc)
    if version >= CURRENT_SCHEMA_VERSION:
        if version > CURRENT_SCHEMA_VERSION:
            _warn(f"schemaVersion {version} is newer than supported {CURRENT_SCHEMA_VERSION}")
        return doc
    start = version
    while version < CURRENT_SCHEMA_VERSION:
        doc = MIGRATIONS[version](doc)
        version += 1
    doc["schemaVersion"] = CURRENT_SCHEMA_VERSION
    log.info("migration: document upgraded from v%d to v%d", start, CURRENT_SCHEMA_VERSION)
    return doc
