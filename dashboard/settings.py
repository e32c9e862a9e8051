# dashboard/settings.py
"""
Grunninnstillinger: baner, nøkler, tidssone og timeouts.
Alt kan overstyres med miljøvariabler (DASHBOARD_*).
"""
from __future__ import annotations
import os
from pathlib import Path
from zoneinfo import ZoneInfo

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = Path(os.environ.get("DASHBOARD_CONFIG_DIR") or PROJECT_ROOT / "config")
CONFIG_PATH = Path(os.environ.get("DASHBOARD_CONFIG") or CONFIG_DIR / "dashboard-config.json.enc")
KEY_PATH = Path(os.environ.get("DASHBOARD_KEY_FILE") or CONFIG_DIR / ".dashboard-key")
# Fernet-nøkkel (urlsafe base64, 32 bytes). Tom = bruk/lag KEY_PATH.
ENCRYPTION_KEY = (os.environ.get("DASHBOARD_KEY") or "").strip()
TZ = ZoneInfo(os.environ.get("DASHBOARD_TZ") or "Europe/Oslo")
LOG_LEVEL = (os.environ.get("DASHBOARD_LOG_LEVEL") or "INFO").upper()
# sekunder før en datakilde regnes som "ingen innhold"
SOURCE_TIMEOUT = float(os.environ.get("DASHBOARD_SOURCE_TIMEOUT") or 8.0)
