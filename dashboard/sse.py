# dashboard/sse.py
"""
Server-Sent Events: skjermene får et `config`-event etter hver lagring og laster
konfigurasjonen på nytt. Innholdet sendes aldri, bare revisjon og schemaVersion.
"""
from __future__ import annotations
import json
import queue
import threading
import time
from typing import Any, Dict, Iterator, Mapping, Set, Tuple
from flask import Response, stream_with_context

__all__ = ["hub", "publish", "publish_config_change", "sse_stream", "subscriber_count"]

Event = Tuple[int, str, Dict[str, Any]]


class EventHub:
    """En bounded kø per klient. Full kø = treg klient, som kobles fra (den kobler til igjen)."""

    def __init__(self, maxsize: int = 20) -> None:
        self._maxsize = maxsize
        self._lock = threading.Lock()
        self._queues: Set["queue.Queue[Event]"] = set()
        self._last_id = 0

    def subscribe(self) -> "queue.Queue[Event]":
        q: "queue.Queue[Event]" = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._queues.add(q)
        return q

    def unsubscribe(self, q: "queue.Queue[Event]") -> None:
        with self._lock:
            self._queues.discard(q)

    def __len__(self) -> int:
        with self._lock:
            return len(self._queues)

    def publish(self, etype: str, data: Dict[str, Any]) -> int:
        with self._lock:
            self._last_id += 1
            event = (self._last_id, etype, data)
            targets = list(self._queues)
        for q in targets:
            try:
                q.put_nowait(event)
            except queue.Full:
                self.unsubscribe(q)
        return event[0]


hub = EventHub()


def subscriber_count() -> int:
    return len(hub)


def publish(event: Dict[str, Any]) -> int:
    """{"type": ..., ...} til alle abonnenter. Returnerer event-id."""
    data = dict(event)
    etype = str(data.pop("type", None) or "message")
    data.setdefault("ts", time.time())
    return hub.publish(etype, data)


def publish_config_change(doc: Mapping[str, Any], revision: int) -> None:
    """Commit-lytter for ConfigStore."""
    publish({"type": "config", "revision": revision, "schemaVersion": doc.get("schemaVersion")})


def _format(eid: int, etype: str, data: Dict[str, Any]) -> str:
    body = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return f"id: {eid}\nevent: {etype}\ndata: {body}\n\n"


def sse_stream(ping_interval: float = 15.0) -> Response:
    def generate() -> Iterator[str]:
        q = hub.subscribe()
        try:
            yield "retry: 15000\n\n"
            while True:
                try:
                    yield _format(*q.get(timeout=ping_interval))
                except queue.Empty:
                    # kommentar-linje holder proxyer fra å kutte forbindelsen
                    yield ": ping\n\n"
        finally:
            hub.unsubscribe(q)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
