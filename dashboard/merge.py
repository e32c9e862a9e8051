# File: dashboard/merge.py
"""
Sammenfletting av eksisterende dokument og en delvis oppdatering fra admin.

Reglene styres av felt-skjemaet i schema.py (FieldKind), ikke av egne grener per
widget:
- seksjoner/nøkler som ikke finnes i oppdateringen beholdes uendret
- dicts flettes rekursivt, lister erstattes i sin helhet
- PRESERVABLE_SECRET: tom/blank/utelatt verdi beholder eksisterende verdi
- REPLACEABLE: innkommende verdi vinner alltid når den er oppgitt (også "" og False)

Resultatet valideres før det returneres. Inndata muteres aldri.
"""
from __future__ import annotations
import copy
import logging
from typing import Any, Dict, Mapping

from .schema import (
    FieldKind,
    field_schema,
    is_blank,
    strip_redaction_markers,
    validate,
)

audit = logging.getLogger("dashboard.audit")

# Nøkler klienten aldri får sette direkte
_IGNORED_TOP_LEVEL = ("schemaVersion",)


def _deep_merge(dst: Dict[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    for k, v in (src or {}).items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = copy.deepcopy(v)
    return dst


def _merge_widget(widget_id: str, existing: Any, incoming: Any) -> Any:
    if not isinstance(incoming, dict):
        return copy.deepcopy(incoming)
    base: Dict[str, Any] = copy.deepcopy(existing) if isinstance(existing, dict) else {}
    # typen kan endres i samme oppdatering; skjemaet følger resultatet
    schema = field_schema(widget_id, {**base, **incoming})
    for field, value in incoming.items():
        kind = schema.get(field, FieldKind.REPLACEABLE)
        if kind is FieldKind.PRESERVABLE_SECRET and is_blank(value):
            if not is_blank(base.get(field)):
                audit.info("preserved secret field %r on widget %r", field, widget_id)
            else:
                base[field] = "" if value is None else value
            continue
        if isinstance(value, dict) and isinstance(base.get(field), dict):
            _deep_merge(base[field], value)
        else:
            base[field] = copy.deepcopy(value)
    return base


def _merge_keyed(existing: Any, incoming: Mapping[str, Any], merge_item) -> Dict[str, Any]:
    out: Dict[str, Any] = copy.deepcopy(existing) if isinstance(existing, dict) else {}
    for key, value in incoming.items():
        out[key] = merge_item(key, out.get(key), value)
    return out


def _merge_orientation(_orientation: str, existing: Any, incoming: Any) -> Any:
    if not isinstance(incoming, dict):
        return copy.deepcopy(incoming)
    # posisjoner per widget erstattes feltvis
    return _merge_keyed(
        existing,
        incoming,
        lambda _wid, old, new: _deep_merge(copy.deepcopy(old), new)
        if isinstance(old, dict) and isinstance(new, dict)
        else copy.deepcopy(new),
    )


def _merge_document(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> Dict[str, Any]:
    incoming = strip_redaction_markers(incoming or {})
    out: Dict[str, Any] = copy.deepcopy(dict(existing or {}))
    for section, value in incoming.items():
        if section in _IGNORED_TOP_LEVEL:
            continue
        if section == "widgets" and isinstance(value, dict):
            out["widgets"] = _merge_keyed(out.get("widgets"), value, _merge_widget)
        elif section == "layouts" and isinstance(value, dict):
            out["layouts"] = _merge_keyed(out.get("layouts"), value, _merge_orientation)
        elif isinstance(value, dict) and isinstance(out.get(section), dict):
            _deep_merge(out[section], value)
        else:
            out[section] = copy.deepcopy(value)
    return out


def merge(existing: Mapping[str, Any], incoming: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Flett `incoming` inn i `existing` og returner et nytt, validert dokument.
    Kaster ValidationError (med felt-diagnostikk) hvis resultatet er ugyldig.
    """
    merged = _merge_document(existing, incoming)
    validate(merged)
    return merged
