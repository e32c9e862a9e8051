# tests/test_layout.py
import copy

import pytest

from dashboard.errors import ValidationError
from dashboard.layout import resolve, resolve_orientation
from dashboard.models import OrientationHint
from dashboard.schema import default_layout, get_defaults


def test_orientation_precedence():
    assert resolve_orientation(None) == "portrait"
    assert resolve_orientation(OrientationHint()) == "portrait"
    assert resolve_orientation(OrientationHint(width=1920, height=1080)) == "landscape"
    assert resolve_orientation(OrientationHint(width=1080, height=1920)) == "portrait"
    assert resolve_orientation(
        OrientationHint(reported="portrait", width=1920, height=1080)
    ) == "portrait"
    assert resolve_orientation(
        OrientationHint(locked="landscape", reported="portrait", width=10, height=20)
    ) == "landscape"


def test_reported_orientation_is_case_insensitive():
    assert resolve_orientation(OrientationHint(reported=" Landscape ")) == "landscape"


def test_unknown_orientation_rejected():
    with pytest.raises(ValidationError) as ei:
        resolve(OrientationHint(reported="sideways"), get_defaults())
    assert "orientation" in ei.value.fields
    with pytest.raises(ValidationError):
        resolve(OrientationHint(locked="upside-down"), get_defaults())


def test_uses_layout_for_orientation():
    r = resolve(OrientationHint(reported="landscape"), get_defaults())
    assert r.orientation == "landscape"
    assert r.source == "document"
    assert r.grid == {"columns": 8, "rows": 4}
    assert r.positions["clock"] == default_layout("landscape")["clock"]


def test_only_enabled_widgets_are_placed():
    r = resolve(OrientationHint(reported="portrait"), get_defaults())
    assert set(r.positions) == {"clock", "calendar"}


def test_empty_layout_falls_back_to_other_orientation():
    doc = get_defaults()
    doc["layouts"]["landscape"] = {}
    r = resolve(OrientationHint(reported="landscape"), doc)
    assert r.source == "fallback"
    assert r.positions["clock"] == doc["layouts"]["portrait"]["clock"]


def test_both_layouts_empty_use_defaults():
    doc = get_defaults()
    doc["layouts"] = {"portrait": {}, "landscape": {}}
    r = resolve(OrientationHint(reported="portrait"), doc)
    assert r.source == "defaults"
    assert r.positions["calendar"] == default_layout("portrait")["calendar"]


def test_missing_enabled_widget_is_gap_filled():
    doc = get_defaults()
    doc["widgets"]["weather"]["enabled"] = True
    del doc["layouts"]["landscape"]["weather"]
    r = resolve(OrientationHint(locked="landscape"), doc)
    assert r.positions["weather"] == doc["layouts"]["portrait"]["weather"]
    assert r.filled == ("weather",)


def test_resolve_is_pure_and_deterministic():
    doc = get_defaults()
    before = copy.deepcopy(doc)
    a = resolve(OrientationHint(width=800, height=480), doc)
    b = resolve(OrientationHint(width=800, height=480), doc)
    assert a == b
    assert doc == before
    a.positions["clock"]["x"] = 99
    assert doc["layouts"]["landscape"]["clock"]["x"] == 0


def test_to_dict_shape():
    d = resolve(OrientationHint(reported="portrait"), get_defaults()).to_dict()
    assert set(d) == {"orientation", "source", "gridSize", "layout", "filled"}
    assert d["gridSize"] == {"columns": 4, "rows": 6}
