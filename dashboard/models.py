from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class OrientationHint:
    # Rutelås (f.eks. /api/layout/landscape) vinner over alt annet
    locked: Optional[str] = None
    # Orientering rapportert av klienten (?orientation=)
    reported: Optional[str] = None
    # Skjermstørrelse brukt som siste utvei
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class ResolvedLayout:
    orientation: str
    source: str  # document | fallback | defaults
    grid: Dict[str, int]
    positions: Dict[str, Dict[str, int]]
    # widgets hvis plass ble hentet fra annen orientering/standard
    filled: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orientation": self.orientation,
            "source": self.source,
            "gridSize": dict(self.grid),
            "layout": {k: dict(v) for k, v in self.positions.items()},
            "filled": list(self.filled),
        }


class Phase(str, Enum):
    NOT_YET_VISIBLE = "not-yet-visible"
    PRE_EVENT = "pre-event"
    DURING_EVENT = "during-event"
    PAST = "past"


@dataclass(frozen=True)
class PhaseWindow:
    starts_at: Union[datetime, date]
    ends_at: Union[datetime, date]
    lead_days: int = 0


ContentFn = Callable[[], Optional[Mapping[str, Any]]]


@dataclass
class SubWidget:
    id: str
    priority: int
    content: ContentFn
    type: str = ""
    window: Optional[PhaseWindow] = None
    # felt -> faser der feltet vises (felt som ikke står her vises alltid)
    phase_fields: Mapping[str, Sequence[Phase]] = field(default_factory=dict)


@dataclass(frozen=True)
class ActiveSubWidget:
    id: str
    type: str
    priority: int
    phase: Optional[Phase]
    content: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority,
            "phase": self.phase.value if self.phase else None,
            "content": self.content,
        }


@dataclass(frozen=True)
class CycleState:
    index: Optional[int] = None
    last_advance: Optional[datetime] = None
