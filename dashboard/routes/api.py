# File: dashboard/routes/api.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict
from flask import Blueprint, Response, current_app, request

from ..errors import PersistenceError, ValidationError
from ..layout import resolve
from ..models import OrientationHint
from ..runtime import runtime
from ..schema import DISPLAY_MODES, get_defaults, redact, widget_type
from ..settings import TZ
from ..sources import build_sub_widgets, parse_when
from ..sse import sse_stream
from .config import persistence_error, validation_error
from .responses import json_err, json_ok

bp = Blueprint("api", __name__, url_prefix="/api")


# ── utils ──────────────────────────────────────────────────────────────────────
def _coerce_positive_int(v: Any) -> int | None:
    try:
        iv = int(v) if not (isinstance(v, str) and not v.strip()) else None
    except (TypeError, ValueError):
        iv = None
    return iv if (iv is not None and iv > 0) else None


def _request_now() -> datetime:
    """?now=ISO overstyrer klokka (diagnose/forhåndsvisning)."""
    raw = request.args.get("now")
    if raw:
        when = parse_when(raw)
        if isinstance(when, datetime):
            return when
        if when is not None:
            return datetime.combine(when, datetime.min.time(), tzinfo=TZ)
        raise ValidationError("invalid timestamp", {"now": f"{raw!r} is not ISO-8601"})
    return datetime.now(TZ)


def _layout_response(hint: OrientationHint) -> Response:
    try:
        doc = runtime().store.load()
        return json_ok({"layout": resolve(hint, doc).to_dict()})
    except ValidationError as e:
        return validation_error(e)
    except PersistenceError as e:
        return persistence_error(e)


# ── defaults / layout ─────────────────────────────────────────────────────────
@bp.get("/defaults")
def defaults() -> Response:
    return json_ok({"defaults": redact(get_defaults())})


@bp.get("/layout")
def layout() -> Response:
    hint = OrientationHint(
        reported=request.args.get("orientation"),
        width=_coerce_positive_int(request.args.get("width")),
        height=_coerce_positive_int(request.args.get("height")),
    )
    return _layout_response(hint)


@bp.get("/layout/<orientation>")
def layout_locked(orientation: str) -> Response:
    return _layout_response(OrientationHint(locked=orientation))


# ── widgets ───────────────────────────────────────────────────────────────────
def _widget_or_404(widget_id: str) -> Dict[str, Any] | None:
    widgets = runtime().store.load().get("widgets") or {}
    widget = widgets.get(widget_id)
    return widget if isinstance(widget, dict) else None


@bp.get("/widgets/<widget_id>/compose")
def compose_widget(widget_id: str) -> Response:
    try:
        widget = _widget_or_404(widget_id)
        if widget is None:
            return json_err("unknown widget", status=404, code="not_found")
        mode = str(widget.get("displayMode") or "cycle")
        if mode not in DISPLAY_MODES:
            mode = "cycle"
        if widget.get("enabled") is not True:
            return json_ok({"widget": widget_id, "mode": mode, "active": [], "hasContent": False})
        now = _request_now()
        rt = runtime()
        subs = build_sub_widgets(widget_id, widget, rt.sources, rt.polls, now)
        composer = rt.composer_for(widget_id, widget.get("cycleSpeed"))
        active = composer.compose(subs, mode, now)
        return json_ok(
            {
                "widget": widget_id,
                "mode": mode,
                "active": [a.to_dict() for a in active],
                "hasContent": bool(active),
            }
        )
    except ValidationError as e:
        return validation_error(e)
    except PersistenceError as e:
        return persistence_error(e)
    except Exception:
        current_app.logger.exception("compose %s failed", widget_id)
        return json_err("internal error", status=500, code="internal_error")


@bp.get("/widgets/<widget_id>/content")
def widget_content(widget_id: str) -> Response:
    try:
        widget = _widget_or_404(widget_id)
        if widget is None:
            return json_err("unknown widget", status=404, code="not_found")
        if widget.get("enabled") is not True:
            return json_ok({"widget": widget_id, "hasContent": False, "content": None})
        rt = runtime()
        source = widget_type(widget_id, widget)
        content = rt.polls.poll(widget_id, "", lambda: rt.sources.fetch(source, widget, {}))
        return json_ok(
            {"widget": widget_id, "hasContent": bool(content), "content": content or None}
        )
    except PersistenceError as e:
        return persistence_error(e)
    except Exception:
        current_app.logger.exception("content %s failed", widget_id)
        return json_err("internal error", status=500, code="internal_error")


# ── events ────────────────────────────────────────────────────────────────────
@bp.get("/events")
def events() -> Response:
    return sse_stream()
