#!/usr/bin/env python3
# tools/migrate_config.py
"""
Migrerer konfigurasjonsfilen til gjeldende schemaVersion.
Kjører trygt; lager backup <fil>.YYYYMMDDHHMMSS.bak før skriving.
"""
from __future__ import annotations
import argparse
import logging
import shutil
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dashboard import settings  # noqa: E402
from dashboard.crypto import FernetCipher  # noqa: E402
from dashboard.errors import PersistenceError, ValidationError  # noqa: E402
from dashboard.migrations import schema_version  # noqa: E402
from dashboard.schema import CURRENT_SCHEMA_VERSION  # noqa: E402
from dashboard.store import ConfigStore  # noqa: E402


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--config", type=Path, default=settings.CONFIG_PATH)
    ap.add_argument("--dry-run", action="store_true", help="vis resultatet uten å skrive")
    args = ap.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    cfg = args.config
    if not cfg.exists():
        print(f"Fant ikke {cfg} – ingenting å migrere.")
        return 0

    store = ConfigStore(cfg, FernetCipher.from_settings(settings.ENCRYPTION_KEY, settings.KEY_PATH))
    try:
        doc = store.load()
    except PersistenceError as e:
        print(f"Kunne ikke lese {cfg}: {e}", file=sys.stderr)
        return 2

    if args.dry_run:
        print(f"schemaVersion etter migrering: {schema_version(doc)}")
        return 0

    ts = time.strftime("%Y%m%d%H%M%S")
    backup = cfg.with_name(f"{cfg.name}.{ts}.bak")
    shutil.copy2(cfg, backup)
    try:
        store.replace(doc)
    except (ValidationError, PersistenceError) as e:
        print(f"Migrering feilet: {e}", file=sys.stderr)
        if isinstance(e, ValidationError):
            for path, msg in sorted(e.fields.items()):
                print(f"  {path}: {msg}", file=sys.stderr)
        return 1
    print(f"OK (v{CURRENT_SCHEMA_VERSION}). Backup lagret som {backup}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
