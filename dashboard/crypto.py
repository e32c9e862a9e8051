# dashboard/crypto.py
"""
Kryptering av konfigurasjonsfilen (Fernet: AES-128-CBC + HMAC).
Nøkkel fra DASHBOARD_KEY, ellers fra nøkkelfil som lages ved første oppstart.
"""
from __future__ import annotations
import logging
import os
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from .errors import PersistenceError

log = logging.getLogger(__name__)


def load_or_create_key(path: Path) -> bytes:
    path = Path(path)
    if path.exists():
        return path.read_bytes().strip()
    path.parent.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(key)
    log.info("created new encryption key at %s", path)
    return key


class FernetCipher:
    """encrypt(bytes) -> bytes / decrypt(bytes) -> bytes."""

    def __init__(self, key: bytes | str) -> None:
        if isinstance(key, str):
            key = key.encode("ascii")
        self._fernet = Fernet(key)

    @classmethod
    def from_settings(cls, key: str, key_path: Path) -> "FernetCipher":
        if key:
            return cls(key)
        log.warning("DASHBOARD_KEY not set; using key file %s", key_path)
        return cls(load_or_create_key(key_path))

    def encrypt(self, data: bytes) -> bytes:
        return self._fernet.encrypt(data)

    def decrypt(self, token: bytes) -> bytes:
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as e:
            raise PersistenceError("configuration could not be decrypted (wrong key?)") from e
