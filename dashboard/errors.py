# dashboard/errors.py
"""Feiltyper for konfigurasjon, lagring og datakilder."""
from __future__ import annotations
from typing import Dict, Optional


class ValidationError(ValueError):
    """Ugyldig dokument. `fields` mapper sti ("layouts.portrait.clock.x") -> melding."""

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.fields: Dict[str, str] = dict(fields or {})

    def to_dict(self) -> Dict[str, object]:
        return {"error": str(self), "fields": dict(self.fields)}


class PersistenceError(RuntimeError):
    """Kryptering eller disk feilet. Gjelder kun den ene forespørselen."""


class MigrationWarning(UserWarning):
    """Ukjent legacy-form; migreringen fortsetter best-effort."""


class CollaboratorError(RuntimeError):
    """Ekstern datakilde feilet eller fikk timeout."""
