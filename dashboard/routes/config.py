# File: dashboard/routes/config.py
"""
GET/POST /config. Registreres både på "/" og "/api" (se create_app).
Hemmeligheter sendes aldri ut; de blankes og erstattes med has<Felt>.
"""
from __future__ import annotations
from flask import Blueprint, Response, current_app, request

from ..errors import PersistenceError, ValidationError
from ..layout import resolve
from ..models import OrientationHint
from ..runtime import runtime
from ..schema import redact
from ..theme import current_theme
from .responses import is_json_request, json_err, json_ok

bp = Blueprint("config", __name__)


def validation_error(e: ValidationError) -> Response:
    return json_err(str(e), status=400, code="validation_error", extra={"fields": e.fields})


def persistence_error(e: PersistenceError) -> Response:
    current_app.logger.error("configuration storage failed: %s", e)
    return json_err(
        "configuration storage failed, please retry",
        status=503,
        code="persistence_error",
        extra={"retry": True},
    )


@bp.get("/config")
def get_config() -> Response:
    try:
        rt = runtime()
        revision, doc = rt.store.snapshot()
        public = redact(doc)
        orientation = request.args.get("orientation")
        if orientation is None:
            return json_ok({"config": public, "revision": revision})
        resolved = resolve(OrientationHint(reported=orientation), doc)
        g = doc.get("globals") if isinstance(doc.get("globals"), dict) else {}
        auto = g.get("autoThemeSwitch")
        theme = current_theme(
            auto.get(resolved.orientation) if isinstance(auto, dict) else None, g.get("theme")
        )
        return json_ok(
            {
                "schemaVersion": public.get("schemaVersion"),
                "globals": public.get("globals") or {},
                "widgets": public.get("widgets") or {},
                "layout": resolved.to_dict(),
                "calculatedTheme": theme["theme"],
                "themeInfo": theme,
                "revision": revision,
            }
        )
    except ValidationError as e:
        return validation_error(e)
    except PersistenceError as e:
        return persistence_error(e)
    except Exception:
        current_app.logger.exception("GET /config failed")
        return json_err("internal error", status=500, code="internal_error")


@bp.post("/config")
def post_config() -> Response:
    if not is_json_request():
        return json_err("expected application/json", status=415, code="unsupported_media_type")
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return json_err("payload must be a JSON object", status=400, code="bad_request")
    try:
        rt = runtime()
        doc = rt.store.update(data)
        return json_ok({"config": redact(doc), "revision": rt.store.revision})
    except ValidationError as e:
        return validation_error(e)
    except PersistenceError as e:
        return persistence_error(e)
    except Exception:
        current_app.logger.exception("POST /config failed")
        return json_err("internal error", status=500, code="internal_error")
