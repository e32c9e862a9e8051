# dashboard/routes/responses.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict
from flask import Response, jsonify, request
from ..settings import TZ


def now_iso() -> str:
    return datetime.now(TZ).isoformat()


def json_ok(payload: Dict[str, Any], status: int = 200) -> Response:
    resp = jsonify({"ok": True, "server_time": now_iso(), **payload})
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    return resp


def json_err(
    message: str,
    *,
    status: int = 400,
    code: str | None = None,
    extra: Dict[str, Any] | None = None,
) -> Response:
    data = {"ok": False, "error": message, "server_time": now_iso()}
    if code:
        data["code"] = code
    if extra:
        data.update(extra)
    resp = jsonify(data)
    resp.status_code = status
    resp.headers["Cache-Control"] = "no-store"
    return resp


def is_json_request() -> bool:
    ctype = (request.headers.get("Content-Type") or "").lower()
    return "application/json" in ctype or request.is_json
