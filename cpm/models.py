from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class Activity:
    """Represents a project activity in its canonical, parsed form."""

    reference_number: int
    name: str
    duration: float
    predecessors: FrozenSet[int] = field(default_factory=frozenset)

    def __str__(self) -> str:
        preds = ",".join(str(p) for p in sorted(self.predecessors)) or "-"
        return f"{self.reference_number}:{self.name} (D={self.duration}, pred={preds})"


@dataclass(frozen=True)
class ScheduledActivity:
    """Represents an activity with all CPM scheduling attributes."""

    reference_number: int
    name: str
    duration: float
    predecessors: FrozenSet[int]

    # Forward pass results
    earliest_start: float  # ES
    earliest_finish: float  # EF

    # Backward pass results
    latest_start: float  # LS
    latest_finish: float  # LF

    # Float calculations
    total_float: float  # TF
    free_float: float  # FF

    is_critical: bool

    # Adjacency restricted to activities present in the plan
    resolved_predecessors: Tuple[int, ...] = ()
    successors: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referenceNumber": self.reference_number,
            "name": self.name,
            "duration": self.duration,
            "predecessors": sorted(self.predecessors),
            "earliestStart": self.earliest_start,
            "earliestFinish": self.earliest_finish,
            "latestStart": self.latest_start,
            "latestFinish": self.latest_finish,
            "totalFloat": self.total_float,
            "freeFloat": self.free_float,
            "isCritical": self.is_critical,
            "successors": list(self.successors),
        }


@dataclass(frozen=True)
class Diagnostic:
    """A recoverable input problem noticed while building the activity graph."""

    code: str
    reference_number: Optional[int]
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ScheduleSummary:
    project_duration: float
    activity_count: int
    critical_count: int
    edge_count: int
