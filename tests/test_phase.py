# tests/test_phase.py
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from dashboard.composer import compute_phase
from dashboard.models import Phase, PhaseWindow

TZ = ZoneInfo("Europe/Oslo")
T = datetime(2025, 6, 20, 18, 0, tzinfo=TZ)


def test_party_phases_around_event():
    window = PhaseWindow(starts_at=T, ends_at=T + timedelta(hours=6), lead_days=14)
    assert compute_phase(T - timedelta(days=3), window) is Phase.PRE_EVENT
    assert compute_phase(T, window) is Phase.DURING_EVENT
    assert compute_phase(T + timedelta(days=1), window) is Phase.PAST


def test_not_yet_visible_before_lead_time():
    window = PhaseWindow(starts_at=T, ends_at=T, lead_days=7)
    assert compute_phase(T - timedelta(days=8), window) is Phase.NOT_YET_VISIBLE
    assert compute_phase(T - timedelta(days=7), window) is Phase.PRE_EVENT


def test_date_only_end_covers_whole_day():
    window = PhaseWindow(starts_at=date(2025, 7, 1), ends_at=date(2025, 7, 14), lead_days=14)
    assert compute_phase(datetime(2025, 7, 14, 23, 30, tzinfo=TZ), window) is Phase.DURING_EVENT
    assert compute_phase(datetime(2025, 7, 15, 0, 1, tzinfo=TZ), window) is Phase.PAST
    assert compute_phase(datetime(2025, 6, 30, 12, 0, tzinfo=TZ), window) is Phase.PRE_EVENT


def test_naive_now_uses_configured_timezone():
    window = PhaseWindow(starts_at=T, ends_at=T, lead_days=1)
    assert compute_phase(datetime(2025, 6, 20, 12, 0), window) is Phase.PRE_EVENT
