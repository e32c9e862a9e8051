# file: wsgi.py
"""
wsgi.py
"""
from __future__ import annotations

import logging

from dashboard import create_app
from dashboard.settings import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    # Lokal dev: Flask dev-server eller waitress om installert.
    try:
        from waitress import serve  # type: ignore[reportMissingImports]
        serve(app, listen="0.0.0.0:5000")
    except ImportError:
        app.run(host="0.0.0.0", port=5000, debug=True)
