from __future__ import annotations
# Re-eksporter blueprint-objektene. Ingen @app-dekoratorer her.
from .pages import bp as pages_bp
from .api import bp as api_bp
from .config import bp as config_bp
__all__ = ["pages_bp", "api_bp", "config_bp"]
