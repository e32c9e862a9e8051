# dashboard/runtime.py
"""Delte objekter per app (store, datakilder, composere) i app.extensions."""
from __future__ import annotations
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict

from flask import current_app

from .composer import WidgetComposer
from .sources import PollGuard, SourceRegistry
from .store import ConfigStore

log = logging.getLogger(__name__)

EXTENSION_KEY = "dashboard"
DEFAULT_CYCLE_SECONDS = 10.0
MIN_CYCLE_SECONDS = 1.0


def cycle_seconds(value: Any) -> float:
    """cycleSpeed fra config; ugyldige verdier gir standardintervallet."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = math.nan
    if isinstance(value, bool) or not math.isfinite(seconds) or seconds <= 0:
        if value is not None:
            log.warning("invalid cycleSpeed %r; using %ss", value, DEFAULT_CYCLE_SECONDS)
        return DEFAULT_CYCLE_SECONDS
    return max(MIN_CYCLE_SECONDS, seconds)


@dataclass
class Runtime:
    store: ConfigStore
    sources: SourceRegistry
    polls: PollGuard
    composers: Dict[str, WidgetComposer] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def composer_for(self, widget_id: str, cycle_speed: Any) -> WidgetComposer:
        interval = timedelta(seconds=cycle_seconds(cycle_speed))
        with self._lock:
            composer = self.composers.get(widget_id)
            if composer is None:
                composer = self.composers[widget_id] = WidgetComposer(interval)
            # cycleSpeed kan endres i admin uten at rotasjonen nullstilles
            composer.interval = interval
            return composer


def runtime() -> Runtime:
    return current_app.extensions[EXTENSION_KEY]
