# dashboard/composer.py
"""
Komposisjon av sammensatte widgets (smartWidget) + fase-beregning.

Visningsmoduser:
- cycle:        én sub-widget om gangen, roterer hvert intervall, hopper over tomme
- simultaneous: alle med innhold, stigende prioritet (lik prioritet: deklarasjonsrekkefølge)
- priority:     kun den med høyest prioritet (lavest tall; lik: første deklarerte)

Rotasjonen er en ren funksjon advance(state, available, now, interval) -> state'.
WidgetComposer holder bare tilstanden og kalles per tick (forespørsel).
"""
from __future__ import annotations
import logging
import threading
from datetime import date, datetime, time as dtime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from .models import ActiveSubWidget, CycleState, Phase, PhaseWindow, SubWidget
from .schema import DISPLAY_MODES
from .settings import TZ

log = logging.getLogger(__name__)

VISIBLE_PHASES = (Phase.PRE_EVENT, Phase.DURING_EVENT)


# ── phase ─────────────────────────────────────────────────────────────────────
def _as_datetime(v: datetime | date, tz) -> datetime:
    if isinstance(v, datetime):
        return v if v.tzinfo is not None else v.replace(tzinfo=tz)
    return datetime.combine(v, dtime.min, tzinfo=tz)


def end_of_day(v: datetime | date, tz) -> datetime:
    d = _as_datetime(v, tz)
    return datetime.combine(d.date(), dtime.max, tzinfo=d.tzinfo)


def compute_phase(now: datetime, window: PhaseWindow) -> Phase:
    tz = now.tzinfo or TZ
    now = _as_datetime(now, tz)
    starts = _as_datetime(window.starts_at, tz)
    visible_from = starts - timedelta(days=max(0, int(window.lead_days or 0)))
    if now < visible_from:
        return Phase.NOT_YET_VISIBLE
    if now < starts:
        return Phase.PRE_EVENT
    if now <= end_of_day(window.ends_at, tz):
        return Phase.DURING_EVENT
    return Phase.PAST


def _evaluate(sw: SubWidget, now: datetime) -> Optional[ActiveSubWidget]:
    """Sub-widget -> aktiv visning, eller None når den ikke har innhold nå."""
    phase = compute_phase(now, sw.window) if sw.window is not None else None
    if phase is not None and phase not in VISIBLE_PHASES:
        return None
    try:
        content = sw.content()
    except Exception as e:
        # timeout og feil fra datakilden behandles likt: ikke noe innhold
        log.warning("sub-widget %s: content source failed: %s", sw.id, e)
        return None
    if not content:
        return None
    shown: Dict[str, Any] = {}
    for key, value in content.items():
        allowed = sw.phase_fields.get(key)
        if allowed is not None and phase not in allowed:
            continue
        shown[key] = value
    return ActiveSubWidget(
        id=sw.id, type=sw.type or sw.id, priority=sw.priority, phase=phase, content=shown
    )


# ── cycle ─────────────────────────────────────────────────────────────────────
def _next_available(available: Sequence[bool], start: int) -> Optional[int]:
    n = len(available)
    for off in range(n):
        i = (start + off) % n
        if available[i]:
            return i
    return None


def advance(
    state: CycleState, available: Sequence[bool], now: datetime, interval: timedelta
) -> CycleState:
    """
    Neste rotasjonstilstand. `available[i]` sier om sub-widget i har innhold nå.
    Uendret tilstand returneres når intervallet ikke er passert og gjeldende
    sub-widget fortsatt har innhold.
    """
    if not any(available):
        return CycleState(index=None, last_advance=now)
    idx = state.index
    if idx is None or idx >= len(available) or not available[idx]:
        start = 0 if idx is None or idx >= len(available) else idx
        return CycleState(index=_next_available(available, start), last_advance=now)
    if state.last_advance is None or now - state.last_advance >= interval:
        return CycleState(index=_next_available(available, idx + 1), last_advance=now)
    return state


class WidgetComposer:
    """Holder rotasjonstilstand for én sammensatt widget."""

    def __init__(self, interval: timedelta = timedelta(seconds=10)) -> None:
        self.interval = interval
        self.state = CycleState()
        self._lock = threading.Lock()

    def compose(
        self, widgets: Sequence[SubWidget], mode: str, now: datetime
    ) -> List[ActiveSubWidget]:
        if mode not in DISPLAY_MODES:
            raise ValueError(f"unknown display mode {mode!r}")
        evaluated = [_evaluate(sw, now) for sw in widgets]
        active = [a for a in evaluated if a is not None]
        if mode == "simultaneous":
            return sorted(active, key=lambda a: a.priority)  # sorted() er stabil
        if mode == "priority":
            return [min(active, key=lambda a: a.priority)] if active else []
        with self._lock:
            self.state = advance(self.state, [a is not None for a in evaluated], now, self.interval)
            idx = self.state.index
        if idx is None:
            return []
        chosen = evaluated[idx]
        return [chosen] if chosen is not None else []
