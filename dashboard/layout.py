# File: dashboard/layout.py
"""
Valg av orientering og grid-layout for en forespørsel.

Rekkefølge: låst rute > klientens orientering > bredde/høyde > "portrait".
Tom layout for valgt orientering -> den andre orienteringen -> innebygde standarder.
Ren funksjon: ingen I/O, ingen mutasjon av dokumentet.
"""
from __future__ import annotations
import copy
from typing import Any, Dict, Mapping, Optional

from .errors import ValidationError
from .models import OrientationHint, ResolvedLayout
from .schema import ORIENTATIONS, default_layout, grid_size

DEFAULT_ORIENTATION = "portrait"


def _other(orientation: str) -> str:
    return "landscape" if orientation == "portrait" else "portrait"


def _checked(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    o = str(value).strip().lower()
    if not o:
        return None
    if o not in ORIENTATIONS:
        raise ValidationError("unknown orientation", {field: f"{value!r} is not portrait|landscape"})
    return o


def resolve_orientation(hint: Optional[OrientationHint]) -> str:
    if hint is None:
        return DEFAULT_ORIENTATION
    locked = _checked(hint.locked, "locked")
    if locked:
        return locked
    reported = _checked(hint.reported, "orientation")
    if reported:
        return reported
    if hint.width and hint.height and hint.width > 0 and hint.height > 0:
        return "landscape" if hint.width > hint.height else "portrait"
    return DEFAULT_ORIENTATION


def _layout(doc: Mapping[str, Any], orientation: str) -> Dict[str, Any]:
    layout = (doc.get("layouts") or {}).get(orientation)
    return layout if isinstance(layout, dict) else {}


def resolve(hint: Optional[OrientationHint], doc: Mapping[str, Any]) -> ResolvedLayout:
    orientation = resolve_orientation(hint)
    other = _other(orientation)

    primary = _layout(doc, orientation)
    secondary = _layout(doc, other)
    defaults = default_layout(orientation)
    if primary:
        chosen, source = primary, "document"
    elif secondary:
        chosen, source = secondary, "fallback"
    else:
        chosen, source = defaults, "defaults"

    widgets = doc.get("widgets") or {}
    positions: Dict[str, Dict[str, int]] = {}
    filled = []
    for wid, widget in widgets.items():
        if not (isinstance(widget, dict) and widget.get("enabled") is True):
            continue
        pos = chosen.get(wid) or secondary.get(wid) or defaults.get(wid)
        if pos is None:
            continue
        if wid not in chosen:
            filled.append(wid)
        positions[wid] = copy.deepcopy(pos)

    return ResolvedLayout(
        orientation=orientation,
        source=source,
        grid=grid_size(doc, orientation),
        positions=positions,
        filled=tuple(filled),
    )
