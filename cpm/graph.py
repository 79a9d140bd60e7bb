from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import heapq
import math
import re

from .errors import CyclicDependencyError
from .logger import configure_logging
from .models import Activity, Diagnostic

logger = configure_logging(__name__)

REFERENCE_KEYS = ("reference_number", "referenceNumber", "ref_number", "ref")
NAME_KEYS = ("name", "activityName", "description")
DURATION_KEYS = ("duration", "dauer")
PREDECESSOR_KEYS = ("predecessors", "vorgaenger", "vorgaengerid")

_SEPARATORS = re.compile(r"[;,\s]+")


def _field(record: Any, keys: Sequence[str]) -> Any:
    for key in keys:
        if isinstance(record, Mapping):
            value = record.get(key)
        else:
            value = getattr(record, key, None)
        if value is not None:
            return value
    return None


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_int(value: object) -> Optional[int]:
    if isinstance(value, bool) or _is_blank(value):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        pass
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return None


def parse_duration(value: object) -> Tuple[float, bool]:
    """
    Parse a duration leniently.

    Returns:
        Tuple of (duration, ok). Blank input is ok and yields 0.0; anything
        unparsable, non-finite or negative yields 0.0 with ok=False.
    """
    if _is_blank(value):
        return 0.0, True
    if isinstance(value, bool):
        return 0.0, False
    try:
        duration = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return 0.0, False
    if not math.isfinite(duration) or duration < 0:
        return 0.0, False
    return duration, True


def parse_predecessors(value: object) -> Tuple[List[int], List[str]]:
    """
    Parse predecessor references from a list or a comma/semicolon separated string.

    Returns:
        Tuple of (reference numbers in first-seen order, rejected tokens)
    """
    if _is_blank(value):
        return [], []
    if isinstance(value, str):
        tokens: Iterable[object] = [t for t in _SEPARATORS.split(value.strip()) if t]
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        tokens = [value]
    else:
        try:
            tokens = list(value)  # type: ignore[arg-type]
        except TypeError:
            return [], [str(value)]

    refs: List[int] = []
    rejected: List[str] = []
    for token in tokens:
        ref = _to_int(token)
        if ref is None:
            if not _is_blank(token):
                rejected.append(str(token))
            continue
        if ref not in refs:
            refs.append(ref)
    return refs, rejected


class ActivityGraph:
    """
    Validated in-memory activity network.

    Nodes are keyed by reference number, edges run from each predecessor to
    its dependent. Only predecessors present in the plan become edges.
    """

    def __init__(self, activities: Sequence[Activity], diagnostics: Sequence[Diagnostic] = ()):
        self.activities: List[Activity] = list(activities)
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        self.by_reference: Dict[int, Activity] = {a.reference_number: a for a in self.activities}
        self.order: List[int] = sorted(self.by_reference)

        self._predecessors: Dict[int, Tuple[int, ...]] = {}
        successors: Dict[int, List[int]] = defaultdict(list)
        for ref in self.order:
            resolved = tuple(sorted(p for p in self.by_reference[ref].predecessors if p in self.by_reference))
            self._predecessors[ref] = resolved
            for pred in resolved:
                successors[pred].append(ref)
        self._successors: Dict[int, Tuple[int, ...]] = {
            ref: tuple(successors.get(ref, ())) for ref in self.order
        }

    def __len__(self) -> int:
        return len(self.activities)

    def __contains__(self, reference_number: object) -> bool:
        return reference_number in self.by_reference

    def predecessors_of(self, reference_number: int) -> Tuple[int, ...]:
        return self._predecessors[reference_number]

    def successors_of(self, reference_number: int) -> Tuple[int, ...]:
        return self._successors[reference_number]

    @property
    def edge_count(self) -> int:
        return sum(len(preds) for preds in self._predecessors.values())

    def topological_order(self) -> List[int]:
        """
        Get reference numbers in topological order (predecessors before successors).

        Ready activities are taken lowest reference number first, so plans
        numbered in creation order keep that order.

        Raises:
            CyclicDependencyError: if some activities can never become ready
        """
        in_degree = {ref: len(self._predecessors[ref]) for ref in self.order}
        ready = [ref for ref, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: List[int] = []

        while ready:
            node = heapq.heappop(ready)
            order.append(node)
            for succ in self._successors[node]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    heapq.heappush(ready, succ)

        if len(order) < len(self.order):
            blocked = [ref for ref in self.order if in_degree[ref] > 0]
            cycle = self.find_cycle() or blocked
            logger.error("Cyclic dependency among activities %s", blocked)
            raise CyclicDependencyError(cycle, blocked)

        return order

    def find_cycle(self) -> Optional[List[int]]:
        """
        Detect a cycle using depth-first search over predecessor edges.

        Returns:
            The cycle in dependency order with its first activity repeated at
            the end (e.g. [2, 1, 2]), or None for an acyclic graph.
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        color = {ref: WHITE for ref in self.order}

        for root in self.order:
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            path = [root]
            pending = [iter(self._predecessors[root])]

            while pending:
                advanced = False
                for pred in pending[-1]:
                    if color[pred] == GRAY:
                        cycle = list(reversed(path[path.index(pred):]))
                        return cycle + [cycle[0]]
                    if color[pred] == WHITE:
                        color[pred] = GRAY
                        path.append(pred)
                        pending.append(iter(self._predecessors[pred]))
                        advanced = True
                        break
                if not advanced:
                    color[path.pop()] = BLACK
                    pending.pop()

        return None


def _record_reference(record: Any) -> Optional[int]:
    if isinstance(record, Activity):
        ref: Optional[int] = record.reference_number
    else:
        ref = _to_int(_field(record, REFERENCE_KEYS))
    if ref is None or ref <= 0:
        return None
    return ref


def build(raw_activities: Iterable[Any]) -> ActivityGraph:
    """
    Parse raw activity records into an ActivityGraph.

    Records may be Activity instances, mappings or plain objects. Malformed
    values degrade to defaults and are reported in ``graph.diagnostics``;
    nothing is raised.
    """
    diagnostics: List[Diagnostic] = []
    activities: List[Activity] = []
    positions: Dict[int, int] = {}

    def note(code: str, ref: Optional[int], message: str) -> None:
        diagnostics.append(Diagnostic(code, ref, message))
        logger.warning(message)

    records = list(raw_activities)
    explicit = [_record_reference(record) for record in records]
    # Unnumbered records are placed after every explicitly numbered one
    next_ref = max((ref for ref in explicit if ref is not None), default=0) + 1

    for index, (record, ref) in enumerate(zip(records, explicit)):
        if ref is None:
            ref, next_ref = next_ref, next_ref + 1
            given = record.reference_number if isinstance(record, Activity) else _field(record, REFERENCE_KEYS)
            note(
                "invalid_reference",
                ref,
                f"Record #{index + 1} has no positive reference number ({given!r}); using {ref}.",
            )

        if isinstance(record, Activity):
            activity = record
            if activity.reference_number != ref:
                activity = Activity(ref, activity.name, activity.duration, activity.predecessors)
        else:
            name = _field(record, NAME_KEYS)
            name = "" if name is None else str(name).strip()

            raw_duration = _field(record, DURATION_KEYS)
            duration, ok = parse_duration(raw_duration)
            if not ok:
                note("invalid_duration", ref, f"Activity {ref}: invalid duration '{raw_duration}', using 0.")

            preds, rejected = parse_predecessors(_field(record, PREDECESSOR_KEYS))
            for token in rejected:
                note("invalid_predecessor", ref, f"Activity {ref}: ignoring unparsable predecessor '{token}'.")
            activity = Activity(ref, name, duration, frozenset(preds))

        ref = activity.reference_number
        if ref in activity.predecessors:
            note("self_reference", ref, f"Activity {ref} cannot be its own predecessor; reference dropped.")
            activity = Activity(ref, activity.name, activity.duration, activity.predecessors - {ref})

        if ref in positions:
            note("duplicate_reference", ref, f"Reference number {ref} is used twice; the later activity wins.")
            activities[positions[ref]] = activity
        else:
            positions[ref] = len(activities)
            activities.append(activity)

    known = set(positions)
    for activity in sorted(activities, key=lambda a: a.reference_number):
        for pred in sorted(activity.predecessors - known):
            note(
                "dangling_predecessor",
                activity.reference_number,
                f"Activity {activity.reference_number} references undefined predecessor {pred}; ignored.",
            )

    return ActivityGraph(activities, diagnostics)
