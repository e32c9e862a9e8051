# File: dashboard/sources.py
"""
Datakilder for widgets og sub-widgets (grensen mot eksterne API-er).

- SourceRegistry: type -> fetcher(widget_cfg, sub_cfg). Kall kjøres med timeout;
  feil og timeout blir "ingen innhold" (None), aldri en exception ut herfra.
- PollGuard: poll-resultater forkastes hvis konfigurasjonen endret seg mens
  kallet pågikk, eller widgeten ble deaktivert.
- build_sub_widgets: smartWidget-config -> SubWidget-beskrivelser for composeren.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import CollaboratorError
from .models import Phase, PhaseWindow, SubWidget
from .settings import TZ

log = logging.getLogger(__name__)

Fetcher = Callable[[Mapping[str, Any], Mapping[str, Any]], Optional[Mapping[str, Any]]]

DEFAULT_LEAD_DAYS = 14

# felt som bare vises i én fase
PARTY_PHASE_FIELDS = {
    "tasks": (Phase.PRE_EVENT,),
    "invitees": (Phase.PRE_EVENT,),
    "menu": (Phase.DURING_EVENT,),
    "events": (Phase.DURING_EVENT,),
}
VACATION_PHASE_FIELDS = {
    "daysUntil": (Phase.PRE_EVENT,),
}


# ── dates ─────────────────────────────────────────────────────────────────────
def parse_when(v: Any) -> datetime | date | None:
    """ISO-dato ("2025-06-01") eller ISO-tidspunkt; None hvis ugyldig."""
    if isinstance(v, (datetime, date)):
        return v
    s = str(v or "").strip()
    if not s:
        return None
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
        return dt if dt.tzinfo else dt.replace(tzinfo=TZ)
    except ValueError:
        return None


def _day(v: datetime | date) -> date:
    return v.date() if isinstance(v, datetime) else v


def _window(item: Mapping[str, Any], start_key: str, end_key: str) -> Optional[PhaseWindow]:
    starts = parse_when(item.get(start_key))
    if starts is None:
        return None
    ends = parse_when(item.get(end_key)) or starts
    try:
        lead = int(item.get("leadDays", DEFAULT_LEAD_DAYS))
    except (TypeError, ValueError):
        lead = DEFAULT_LEAD_DAYS
    return PhaseWindow(starts_at=starts, ends_at=ends, lead_days=max(0, lead))


# ── built-in fetchers (data ligger i selve sub-widget-configen) ───────────────
def next_vacation(sub_cfg: Mapping[str, Any], today: date) -> Optional[Mapping[str, Any]]:
    upcoming: List[Tuple[date, Mapping[str, Any]]] = []
    for v in sub_cfg.get("dates") or []:
        if not isinstance(v, dict):
            continue
        starts = parse_when(v.get("startDate"))
        ends = parse_when(v.get("endDate")) or starts
        if starts is None or _day(ends) < today:
            continue
        upcoming.append((_day(starts), v))
    if not upcoming:
        return None
    upcoming.sort(key=lambda t: t[0])
    return upcoming[0][1]


def _vacation_content(today: date) -> Fetcher:
    def fetch(_widget_cfg: Mapping[str, Any], sub_cfg: Mapping[str, Any]):
        v = next_vacation(sub_cfg, today)
        if v is None:
            return None
        starts = _day(parse_when(v.get("startDate")))
        return {
            "destination": v.get("destination") or "",
            "startDate": str(v.get("startDate")),
            "endDate": str(v.get("endDate") or v.get("startDate")),
            "notes": v.get("notes") or "",
            "daysUntil": max(0, (starts - today).days),
        }

    return fetch


def _party_content(today: date) -> Fetcher:
    def fetch(_widget_cfg: Mapping[str, Any], sub_cfg: Mapping[str, Any]):
        event = sub_cfg.get("event")
        if not isinstance(event, dict) or parse_when(event.get("startsAt")) is None:
            return None
        starts = _day(parse_when(event.get("startsAt")))
        return {
            "name": event.get("name") or "",
            "location": event.get("location") or "",
            "daysUntil": max(0, (starts - today).days),
            "tasks": list(event.get("tasks") or []),
            "invitees": list(event.get("invitees") or []),
            "menu": list(event.get("menu") or []),
            "events": list(event.get("events") or []),
        }

    return fetch


# ── registry ──────────────────────────────────────────────────────────────────
class SourceRegistry:
    def __init__(self, timeout: float = 8.0, max_workers: int = 4) -> None:
        self.timeout = timeout
        self._fetchers: Dict[str, Fetcher] = {}
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="source")

    def register(self, source_type: str, fetcher: Fetcher) -> None:
        self._fetchers[source_type] = fetcher

    def has(self, source_type: str) -> bool:
        return source_type in self._fetchers

    def call(
        self, source_type: str, widget_cfg: Mapping[str, Any], sub_cfg: Mapping[str, Any]
    ) -> Optional[Mapping[str, Any]]:
        """Kjør fetcheren med timeout. Kaster CollaboratorError ved feil/timeout."""
        fetcher = self._fetchers.get(source_type)
        if fetcher is None:
            return None
        future = self._pool.submit(fetcher, widget_cfg, sub_cfg)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as e:
            future.cancel()
            raise CollaboratorError(f"{source_type}: timed out after {self.timeout}s") from e
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(f"{source_type}: {e}") from e

    def fetch(
        self, source_type: str, widget_cfg: Mapping[str, Any], sub_cfg: Mapping[str, Any]
    ) -> Optional[Mapping[str, Any]]:
        """Som call(), men feil blir None ("ingen innhold")."""
        try:
            return self.call(source_type, widget_cfg, sub_cfg)
        except CollaboratorError as e:
            log.warning("content source failed: %s", e)
            return None


# ── stale-poll guard ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PollTicket:
    widget_id: str
    key: str
    revision: int


class PollGuard:
    """
    Forkaster poll-resultater som er utdatert når kallet er ferdig: config-revisjonen
    er endret siden pollen startet, eller widgeten er ikke lenger aktiv.
    """

    def __init__(self, store) -> None:
        self._store = store

    def begin(self, widget_id: str, key: str = "") -> PollTicket:
        revision, _doc = self._store.snapshot()
        return PollTicket(widget_id, key, revision)

    def complete(self, ticket: PollTicket) -> bool:
        # revisjon og dokument fra samme commit
        revision, doc = self._store.snapshot()
        if revision != ticket.revision:
            log.info("discarding stale poll for %s/%s (config changed)", ticket.widget_id, ticket.key)
            return False
        widget = (doc.get("widgets") or {}).get(ticket.widget_id) or {}
        if widget.get("enabled") is not True:
            log.info("discarding poll for disabled widget %s", ticket.widget_id)
            return False
        return True

    def poll(
        self, widget_id: str, key: str, fetch: Callable[[], Optional[Mapping[str, Any]]]
    ) -> Optional[Mapping[str, Any]]:
        ticket = self.begin(widget_id, key)
        result = fetch()
        return result if self.complete(ticket) else None

# ── descriptors ───────────────────────────────────────────────────────────────
def build_sub_widgets(
    widget_id: str,
    widget_cfg: Mapping[str, Any],
    registry: SourceRegistry,
    polls: PollGuard,
    now: datetime,
) -> List[SubWidget]:
    """Aktiverte sub-widgets fra config, i deklarasjonsrekkefølge."""
    today = now.astimezone(TZ).date() if now.tzinfo else now.date()
    builtins: Dict[str, Fetcher] = {
        "upcomingVacation": _vacation_content(today),
        "party": _party_content(today),
    }
    out: List[SubWidget] = []
    for i, sub in enumerate(widget_cfg.get("subWidgets") or []):
        if not isinstance(sub, dict) or sub.get("enabled") is False:
            continue
        sub_type = str(sub.get("type") or "")
        sub_id = str(sub.get("id") or sub_type or f"sub-{i + 1}")
        try:
            priority = int(sub.get("priority", i + 1))
        except (TypeError, ValueError):
            priority = i + 1

        window: Optional[PhaseWindow] = None
        phase_fields: Mapping[str, Any] = {}
        if sub_type == "party" and isinstance(sub.get("event"), dict):
            window = _window(sub["event"], "startsAt", "endsAt")
            phase_fields = PARTY_PHASE_FIELDS
        elif sub_type == "upcomingVacation":
            nxt = next_vacation(sub, today)
            window = _window(nxt, "startDate", "endDate") if nxt else None
            phase_fields = VACATION_PHASE_FIELDS

        def content(sub=sub, sub_type=sub_type, sub_id=sub_id):
            if registry.has(sub_type):
                fetch = lambda: registry.call(sub_type, widget_cfg, sub)
            elif sub_type in builtins:
                fetch = lambda: builtins[sub_type](widget_cfg, sub)
            else:
                return None
            return polls.poll(widget_id, sub_id, fetch)

        out.append(
            SubWidget(
                id=sub_id,
                type=sub_type,
                priority=priority,
                content=content,
                window=window,
                phase_fields=phase_fields,
            )
        )
    return out
