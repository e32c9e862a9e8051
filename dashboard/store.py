# File: dashboard/store.py
# Purpose: Kryptert config-IO. Ett dokument, én skriver, atomisk bytte på disk.
from __future__ import annotations
import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from .errors import PersistenceError, ValidationError
from .merge import merge
from .migrations import migrate, schema_version
from .schema import get_defaults, validate

log = logging.getLogger(__name__)

CommitListener = Callable[[Dict[str, Any], int], None]


class Cipher(Protocol):
    def encrypt(self, data: bytes) -> bytes: ...

    def decrypt(self, token: bytes) -> bytes: ...


def _atomic_write(path: Path, text: str) -> None:
    """Skriv til temp-fil i samme katalog, fsync, og bytt inn med os.replace."""
    dirpath = str(path.parent)
    os.makedirs(dirpath, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".config.", dir=dirpath)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.unlink(tmp)
        except OSError:
            log.warning("could not remove temp file %s", tmp)


class ConfigStore:
    """
    Eier konfigurasjonsdokumentet.

    - load(): kopi av sist committede dokument (aldri et halvferdig merge)
    - update(partial): merge -> migrer -> valider -> skriv -> commit, under én skrivelås
    - revision: øker for hver vellykket skriving (brukes til å forkaste utdaterte poll-svar)
    """

    def __init__(self, path: Path | str, cipher: Cipher) -> None:
        self.path = Path(path)
        self._cipher = cipher
        self._lock = threading.Lock()
        # (revisjon, dokument) byttes som ett objekt ved commit
        self._current: Optional[Tuple[int, Dict[str, Any]]] = None
        self._persisted_version = 0
        self._listeners: List[CommitListener] = []

    # ── read ──────────────────────────────────────────────────────────────────
    @property
    def revision(self) -> int:
        return self._loaded()[0]

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._loaded()[1])

    def snapshot(self) -> Tuple[int, Dict[str, Any]]:
        """Revisjon og kopi av dokumentet fra samme commit."""
        revision, doc = self._loaded()
        return revision, copy.deepcopy(doc)

    def _loaded(self) -> Tuple[int, Dict[str, Any]]:
        self._ensure_loaded()
        return self._current

    def _ensure_loaded(self) -> None:
        if self._current is not None:
            return
        with self._lock:
            if self._current is not None:
                return
            if not self.path.exists():
                log.info("no configuration at %s; writing defaults", self.path)
                doc = get_defaults()
                self._write(doc, revision=1)
                self._commit(doc, 1, notify=False)
                return
            doc, revision, version = self._read()
            self._persisted_version = version
            self._commit(doc, revision, notify=False)

    def _read(self) -> Tuple[Dict[str, Any], int, int]:
        try:
            text = self.path.read_text(encoding="utf-8")
            envelope = json.loads(text)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"could not read {self.path}: {e}") from e
        if not isinstance(envelope, dict):
            raise PersistenceError(f"{self.path}: unexpected file content")
        if isinstance(envelope.get("data"), str):
            payload = self._cipher.decrypt(envelope["data"].encode("ascii"))
            try:
                raw = json.loads(payload.decode("utf-8"))
            except ValueError as e:
                raise PersistenceError(f"{self.path}: decrypted payload is not JSON") from e
            revision = int(envelope.get("revision") or 0)
        else:
            # ukryptert legacy-fil; krypteres ved neste skriving
            log.warning("%s is not encrypted; treating it as a legacy document", self.path)
            raw, revision = envelope, 0
        if not isinstance(raw, dict):
            raise PersistenceError(f"{self.path}: document is not an object")
        version = schema_version(raw)
        doc = migrate(raw)
        if version != schema_version(doc):
            log.info("configuration migrated in memory (v%d -> v%d)", version, schema_version(doc))
        return doc, revision, version

    # ── write ─────────────────────────────────────────────────────────────────
    def _write(self, doc: Dict[str, Any], *, revision: int) -> None:
        version = schema_version(doc)
        doc["schemaVersion"] = version
        try:
            token = self._cipher.encrypt(json.dumps(doc, ensure_ascii=False).encode("utf-8"))
            envelope = {"schemaVersion": version, "revision": revision, "data": token.decode("ascii")}
            _atomic_write(self.path, json.dumps(envelope, indent=2) + "\n")
        except PersistenceError:
            raise
        except Exception as e:
            log.exception("writing configuration failed")
            raise PersistenceError(f"could not persist configuration: {e}") from e
        self._persisted_version = version

    def _commit(self, doc: Dict[str, Any], revision: int, *, notify: bool = True) -> None:
        self._current = (revision, doc)
        if not notify:
            return
        for listener in list(self._listeners):
            try:
                listener(copy.deepcopy(doc), revision)
            except Exception:
                log.exception("commit listener failed")

    def _prepare(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        out = migrate(doc)
        validate(out)
        version = schema_version(out)
        if version < self._persisted_version:
            raise ValidationError(
                "schema version cannot decrease",
                {"schemaVersion": f"{version} < stored {self._persisted_version}"},
            )
        return out

    def update(self, incoming: Mapping[str, Any]) -> Dict[str, Any]:
        """Flett inn en delvis oppdatering og lagre. Ved feil er forrige tilstand urørt."""
        self._ensure_loaded()
        with self._lock:
            current, existing = self._current
            doc = self._prepare(merge(existing, incoming))
            revision = current + 1
            self._write(doc, revision=revision)
            self._commit(doc, revision)
            log.info("configuration updated (revision %d)", revision)
            return copy.deepcopy(doc)

    def replace(self, new_doc: Mapping[str, Any]) -> Dict[str, Any]:
        """Erstatt hele dokumentet (brukes av verktøy/migrering)."""
        self._ensure_loaded()
        with self._lock:
            doc = self._prepare(copy.deepcopy(dict(new_doc)))
            revision = self._current[0] + 1
            self._write(doc, revision=revision)
            self._commit(doc, revision)
            return copy.deepcopy(doc)

    def subscribe(self, listener: CommitListener) -> None:
        self._listeners.append(listener)
