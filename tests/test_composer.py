# tests/test_composer.py
"""
Visningsmoduser for sammensatte widgets: cycle, simultaneous, priority.
"""
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from dashboard.composer import WidgetComposer, advance
from dashboard.errors import CollaboratorError
from dashboard.models import CycleState, Phase, PhaseWindow, SubWidget
from dashboard.sources import SourceRegistry

TZ = ZoneInfo("Europe/Oslo")
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=TZ)
TICK = timedelta(seconds=10)


def _sub(id, priority, content):
    return SubWidget(id=id, priority=priority, content=lambda: content)


def _ids(active):
    return [a.id for a in active]


def test_cycle_skips_empty_and_alternates():
    subs = [_sub("a", 1, {"v": 1}), _sub("b", 2, None), _sub("c", 3, {"v": 3})]
    comp = WidgetComposer(interval=TICK)
    seen = [_ids(comp.compose(subs, "cycle", NOW + i * TICK)) for i in range(5)]
    assert seen == [["a"], ["c"], ["a"], ["c"], ["a"]]


def test_cycle_holds_until_interval_elapsed():
    subs = [_sub("a", 1, {"v": 1}), _sub("b", 2, {"v": 2})]
    comp = WidgetComposer(interval=TICK)
    assert _ids(comp.compose(subs, "cycle", NOW)) == ["a"]
    assert _ids(comp.compose(subs, "cycle", NOW + timedelta(seconds=3))) == ["a"]
    assert _ids(comp.compose(subs, "cycle", NOW + TICK)) == ["b"]


def test_cycle_moves_on_when_current_loses_content():
    content = {"a": {"v": 1}, "b": {"v": 2}}
    subs = [
        SubWidget(id="a", priority=1, content=lambda: content["a"]),
        SubWidget(id="b", priority=2, content=lambda: content["b"]),
    ]
    comp = WidgetComposer(interval=TICK)
    assert _ids(comp.compose(subs, "cycle", NOW)) == ["a"]
    content["a"] = None
    assert _ids(comp.compose(subs, "cycle", NOW + timedelta(seconds=1))) == ["b"]


def test_cycle_with_no_content_is_empty():
    subs = [_sub("a", 1, None), _sub("b", 2, {})]
    comp = WidgetComposer()
    assert comp.compose(subs, "cycle", NOW) == []
    assert comp.state.index is None


def test_advance_is_pure():
    state = CycleState(index=0, last_advance=NOW)
    nxt = advance(state, [True, False, True], NOW + TICK, TICK)
    assert nxt == CycleState(index=2, last_advance=NOW + TICK)
    assert state == CycleState(index=0, last_advance=NOW)
    assert advance(nxt, [True, False, True], NOW + TICK + timedelta(seconds=1), TICK) is nxt


def test_simultaneous_orders_by_priority_stable_on_ties():
    subs = [
        _sub("x", 2, {"v": 1}),
        _sub("y", 1, {"v": 1}),
        _sub("z", 2, {"v": 1}),
        _sub("empty", 0, None),
    ]
    active = WidgetComposer().compose(subs, "simultaneous", NOW)
    assert _ids(active) == ["y", "x", "z"]


def test_priority_picks_lowest_number_first_declared_on_tie():
    subs = [_sub("late", 5, {"v": 1}), _sub("first", 2, {"v": 1}), _sub("second", 2, {"v": 1})]
    assert _ids(WidgetComposer().compose(subs, "priority", NOW)) == ["first"]


def test_priority_skips_sub_widget_without_content():
    subs = [_sub("top", 1, None), _sub("next", 2, {"v": 1})]
    assert _ids(WidgetComposer().compose(subs, "priority", NOW)) == ["next"]


def test_collaborator_failure_is_no_content():
    def boom():
        raise CollaboratorError("weather API down")

    subs = [SubWidget(id="rain", priority=1, content=boom), _sub("media", 2, {"title": "x"})]
    assert _ids(WidgetComposer().compose(subs, "simultaneous", NOW)) == ["media"]
    assert _ids(WidgetComposer().compose(subs, "priority", NOW)) == ["media"]


def test_collaborator_timeout_is_no_content():
    registry = SourceRegistry(timeout=0.05)
    registry.register("slow", lambda _w, _s: time.sleep(0.5) or {"late": True})
    subs = [
        SubWidget(id="slow", priority=1, content=lambda: registry.call("slow", {}, {})),
        _sub("fast", 2, {"v": 1}),
    ]
    assert _ids(WidgetComposer().compose(subs, "priority", NOW)) == ["fast"]


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        WidgetComposer().compose([], "random", NOW)


def test_phase_filters_fields_and_hides_past_events():
    window = PhaseWindow(starts_at=NOW + timedelta(days=3), ends_at=NOW + timedelta(days=3), lead_days=14)
    fields = {"tasks": (Phase.PRE_EVENT,), "menu": (Phase.DURING_EVENT,)}
    sub = SubWidget(
        id="party",
        priority=1,
        content=lambda: {"name": "Sankthans", "tasks": ["ved"], "menu": ["pølser"]},
        window=window,
        phase_fields=fields,
    )
    comp = WidgetComposer()
    [before] = comp.compose([sub], "simultaneous", NOW)
    assert before.phase is Phase.PRE_EVENT
    assert before.content == {"name": "Sankthans", "tasks": ["ved"]}

    [during] = comp.compose([sub], "simultaneous", NOW + timedelta(days=3))
    assert during.phase is Phase.DURING_EVENT
    assert during.content == {"name": "Sankthans", "menu": ["pølser"]}

    assert comp.compose([sub], "simultaneous", NOW + timedelta(days=5)) == []
