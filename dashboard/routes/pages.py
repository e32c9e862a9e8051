# dashboard/routes/pages.py
"""
Helse- og diagnoseendepunkter. Lettvekts; API-ansvar ligger i routes/api.py.
"""
from __future__ import annotations
from flask import Blueprint, Response, jsonify

from ..errors import PersistenceError
from ..runtime import runtime
from ..sse import subscriber_count
from .responses import now_iso

bp = Blueprint("pages", __name__)


def _json_nostore(payload, status: int = 200) -> Response:
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    return resp


@bp.get("/health")
def health():
    return _json_nostore({"ok": True})


@bp.get("/diag")
def diag():
    rt = runtime()
    result = {
        "ok": True,
        "server_time": now_iso(),
        "config_path": str(rt.store.path),
        "sse_subscribers": subscriber_count(),
        "composers": sorted(rt.composers),
    }
    try:
        doc = rt.store.load()
        result["revision"] = rt.store.revision
        result["schemaVersion"] = doc.get("schemaVersion")
        result["enabled_widgets"] = sorted(
            wid for wid, w in (doc.get("widgets") or {}).items()
            if isinstance(w, dict) and w.get("enabled") is True
        )
    except PersistenceError as e:
        result["ok"] = False
        result["error"] = str(e)
    return _json_nostore(result, 200 if result["ok"] else 503)
