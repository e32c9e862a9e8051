# dashboard/__init__.py
from __future__ import annotations
from typing import Any, Mapping, Optional
from flask import Flask, Response, request

from . import settings
from .crypto import FernetCipher
from .runtime import EXTENSION_KEY, Runtime
from .sources import PollGuard, SourceRegistry
from .sse import publish_config_change
from .store import ConfigStore


def _build_runtime(overrides: Mapping[str, Any]) -> Runtime:
    cipher = overrides.get("CIPHER")
    if cipher is None:
        cipher = FernetCipher.from_settings(
            overrides.get("ENCRYPTION_KEY", settings.ENCRYPTION_KEY),
            overrides.get("KEY_PATH", settings.KEY_PATH),
        )
    store = ConfigStore(overrides.get("CONFIG_PATH", settings.CONFIG_PATH), cipher)
    sources = overrides.get("SOURCES") or SourceRegistry(
        timeout=float(overrides.get("SOURCE_TIMEOUT", settings.SOURCE_TIMEOUT))
    )
    polls = PollGuard(store)
    store.subscribe(publish_config_change)
    return Runtime(store=store, sources=sources, polls=polls)


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    overrides = dict(overrides or {})
    app = Flask(__name__)
    app.config.update({k: v for k, v in overrides.items() if k.isupper()})
    app.extensions[EXTENSION_KEY] = _build_runtime(overrides)

    # Registrer blueprints fra routes-pakken
    from .routes import pages_bp, api_bp, config_bp

    app.register_blueprint(pages_bp)
    app.register_blueprint(config_bp)
    app.register_blueprint(config_bp, url_prefix="/api", name="api_config")
    app.register_blueprint(api_bp)

    @app.after_request
    def apply_common_headers(resp: Response) -> Response:
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        path = (request.path or "").lower()
        is_dynamic = path.startswith("/api/") or path in ("/config", "/diag", "/health")
        if is_dynamic and path != "/api/events":
            resp.headers["Cache-Control"] = "no-store"
        return resp

    return app
