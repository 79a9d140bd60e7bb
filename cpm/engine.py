from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import networkx as nx
import pandas as pd

from .errors import CyclicDependencyError
from .graph import ActivityGraph, build, parse_duration, parse_predecessors
from .logger import configure_logging
from .models import Activity, Diagnostic, ScheduledActivity, ScheduleSummary
from .settings import settings

logger = configure_logging(__name__)


def _fmt(value: float) -> str:
    return f"{value:g}"


class CPMScheduler:
    """
    Critical Path Method scheduler for finish-to-start activity networks.

    Runs the forward pass (ES/EF), the backward pass (LS/LF) and derives total
    float, free float and criticality. Every calculation starts from scratch;
    the step-by-step trace of the last run is kept in ``calculation_log``.
    """

    def __init__(self, precision: Optional[int] = None):
        self.activities: Dict[int, Activity] = {}
        self.diagnostics: List[Diagnostic] = []
        self.calculation_log: List[str] = []
        self.project_duration: float = 0.0
        self.critical_path: List[int] = []
        self.critical_paths: List[List[int]] = []
        self.results: Dict[int, ScheduledActivity] = {}
        self.precision = settings.PRECISION if precision is None else precision
        if self.precision < 0:
            raise ValueError(f"precision must be >= 0, got {self.precision}")

    def clear(self) -> None:
        """Clear all activities and calculations."""
        self.activities.clear()
        self.diagnostics = []
        self._reset_results()

    def _reset_results(self) -> None:
        self.calculation_log.clear()
        self.project_duration = 0.0
        self.critical_path = []
        self.critical_paths = []
        self.results = {}

    def load(self, raw_activities: Iterable[Any]) -> ActivityGraph:
        """Replace the plan with parsed raw records and return the built graph."""
        self.clear()
        graph = build(raw_activities)
        for activity in graph.activities:
            self.activities[activity.reference_number] = activity
        self.diagnostics = list(graph.diagnostics)
        return graph

    def add_activity(
        self,
        reference_number: Any,
        name: str,
        duration: Any,
        predecessors: Any = "",
    ) -> Tuple[bool, str]:
        """
        Add an activity to the plan.

        Args:
            reference_number: Unique positive reference number
            name: Activity name
            duration: Duration in time units; unparsable values become 0
            predecessors: Reference numbers as a list or "1,2,3" string

        Returns:
            Tuple of (success, message)
        """
        try:
            ref = int(reference_number)
        except (TypeError, ValueError):
            return False, f"Invalid reference number '{reference_number}'."
        if ref <= 0:
            return False, "Reference number must be a positive integer."
        if ref in self.activities:
            return False, f"Activity {ref} already exists."

        parsed_duration, ok = parse_duration(duration)
        if not ok:
            self.diagnostics.append(
                Diagnostic("invalid_duration", ref, f"Activity {ref}: invalid duration '{duration}', using 0.")
            )

        preds, rejected = parse_predecessors(predecessors)
        for token in rejected:
            self.diagnostics.append(
                Diagnostic("invalid_predecessor", ref, f"Activity {ref}: ignoring unparsable predecessor '{token}'.")
            )
        if ref in preds:
            return False, "An activity cannot be its own predecessor."

        self.activities[ref] = Activity(ref, (name or "").strip(), parsed_duration, frozenset(preds))
        self.results = {}
        return True, f"Activity {ref} added successfully."

    def remove_activity(self, reference_number: int) -> Tuple[bool, str]:
        """Remove an activity from the plan."""
        if reference_number not in self.activities:
            return False, f"Activity {reference_number} not found."

        for act in self.activities.values():
            if reference_number in act.predecessors:
                return (
                    False,
                    f"Cannot remove {reference_number}: Activity {act.reference_number} depends on it.",
                )

        del self.activities[reference_number]
        self.results = {}
        return True, f"Activity {reference_number} removed."

    def validate_network(self) -> Tuple[bool, str]:
        """
        Validate the network for calculation readiness.

        Undefined predecessors are tolerated; only an empty plan or a circular
        dependency makes the network invalid.
        """
        if not self.activities:
            return False, "No activities defined."

        cycle = build(self.activities.values()).find_cycle()
        if cycle:
            return False, f"Circular dependency detected: {' -> '.join(str(r) for r in cycle)}"

        return True, "Network is valid."

    def calculate(self) -> Tuple[bool, str]:
        """
        Perform full CPM calculation on the current plan.
        """
        if not self.activities:
            self._reset_results()
            return False, "No activities defined."

        graph = build(self.activities.values())
        for diagnostic in graph.diagnostics:
            if diagnostic not in self.diagnostics:
                self.diagnostics.append(diagnostic)

        try:
            self.run(graph)
        except CyclicDependencyError as exc:
            self._log(f"ERROR: {exc}")
            return False, str(exc)

        return True, "Calculation completed successfully."

    def run(self, graph: ActivityGraph) -> List[ScheduledActivity]:
        """
        Schedule ``graph`` and return results in the graph's input order.

        Raises:
            CyclicDependencyError: if the predecessor relation is cyclic
        """
        self._reset_results()
        self._log("=" * 70)
        self._log("CPM CALCULATION")
        self._log("Critical Path Method (Activity-on-Node, finish-to-start)")
        self._log("=" * 70)

        for diagnostic in graph.diagnostics:
            self._log(f"WARNING: {diagnostic.message}")

        if not len(graph):
            self._log("No activities to schedule.")
            return []

        order = graph.topological_order()

        es, ef = self._forward_pass(graph, order)
        self.project_duration = max(ef.values())
        self._log(f"\nProject Finish = max(all EF values) = {_fmt(self.project_duration)}")
        ls, lf = self._backward_pass(graph, order)
        total, free = self._calculate_floats(graph, es, ef, ls)

        for act in graph.activities:
            ref = act.reference_number
            self.results[ref] = ScheduledActivity(
                reference_number=ref,
                name=act.name,
                duration=act.duration,
                predecessors=act.predecessors,
                earliest_start=es[ref],
                earliest_finish=ef[ref],
                latest_start=ls[ref],
                latest_finish=lf[ref],
                total_float=total[ref],
                free_float=free[ref],
                is_critical=total[ref] == 0,
                resolved_predecessors=graph.predecessors_of(ref),
                successors=graph.successors_of(ref),
            )

        self._identify_critical_paths(graph)

        self._log("")
        self._log("=" * 70)
        self._log("CALCULATION COMPLETE")
        self._log(f"Project Duration: {_fmt(self.project_duration)}")
        if self.critical_paths:
            self._log(f"Critical Paths: {len(self.critical_paths)}")
            for idx, path in enumerate(self.critical_paths, start=1):
                self._log(f"  {idx}. {' -> '.join(str(r) for r in path)}")
        self._log("=" * 70)

        logger.info(
            "Scheduled %d activities, project duration %s, %d critical",
            len(graph), _fmt(self.project_duration), sum(r.is_critical for r in self.results.values()),
        )
        return [self.results[act.reference_number] for act in graph.activities]

    def _log(self, message: str) -> None:
        self.calculation_log.append(message)

    def _round(self, value: float) -> float:
        # Floats only; ES/EF/LS/LF stay exact
        return round(value, self.precision) + 0.0

    def _forward_pass(self, graph: ActivityGraph, order: List[int]) -> Tuple[Dict[int, float], Dict[int, float]]:
        """
        Forward pass calculation to determine Early Start (ES) and Early Finish (EF).
        """
        self._log("\nFORWARD PASS (Calculating ES and EF)")
        self._log("-" * 50)

        es: Dict[int, float] = {}
        ef: Dict[int, float] = {}

        for ref in order:
            act = graph.by_reference[ref]
            preds = graph.predecessors_of(ref)

            if not preds:
                es[ref] = 0.0
                self._log(f"\n{ref} (no predecessors):")
                self._log("  ES = Project Start = 0")
            else:
                self._log(f"\n{ref} (predecessors: {', '.join(str(p) for p in preds)}):")
                for pred in preds:
                    self._log(f"  From {pred}: ES >= EF({pred}) = {_fmt(ef[pred])}")
                es[ref] = max(ef[pred] for pred in preds)
                self._log(f"  -> ES = {_fmt(es[ref])}")

            ef[ref] = es[ref] + act.duration
            self._log(f"  EF = ES + Duration = {_fmt(es[ref])} + {_fmt(act.duration)} = {_fmt(ef[ref])}")

        return es, ef

    def _backward_pass(self, graph: ActivityGraph, order: List[int]) -> Tuple[Dict[int, float], Dict[int, float]]:
        """
        Backward pass calculation to determine Late Start (LS) and Late Finish (LF).
        """
        self._log("\n\nBACKWARD PASS (Calculating LS and LF)")
        self._log("-" * 50)

        ls: Dict[int, float] = {}
        lf: Dict[int, float] = {}

        for ref in reversed(order):
            act = graph.by_reference[ref]
            succs = graph.successors_of(ref)

            if not succs:
                lf[ref] = self.project_duration
                self._log(f"\n{ref} (no successors):")
                self._log(f"  LF = Project Finish = {_fmt(self.project_duration)}")
            else:
                self._log(f"\n{ref} (successors: {', '.join(str(s) for s in succs)}):")
                for succ in succs:
                    self._log(f"  To {succ}: LF <= LS({succ}) = {_fmt(ls[succ])}")
                lf[ref] = min(ls[succ] for succ in succs)
                self._log(f"  -> LF = {_fmt(lf[ref])}")

            ls[ref] = lf[ref] - act.duration
            self._log(f"  LS = LF - Duration = {_fmt(lf[ref])} - {_fmt(act.duration)} = {_fmt(ls[ref])}")

        return ls, lf

    def _calculate_floats(
        self,
        graph: ActivityGraph,
        es: Dict[int, float],
        ef: Dict[int, float],
        ls: Dict[int, float],
    ) -> Tuple[Dict[int, float], Dict[int, float]]:
        """
        Calculate Total Float (TF) and Free Float (FF) for all activities.
        """
        self._log("\n\nFLOAT CALCULATIONS")
        self._log("-" * 50)

        total: Dict[int, float] = {}
        free: Dict[int, float] = {}

        for ref in graph.order:
            total[ref] = self._round(ls[ref] - es[ref])
            self._log(f"\n{ref}:")
            self._log(f"  Total Float (TF) = LS - ES = {_fmt(ls[ref])} - {_fmt(es[ref])} = {_fmt(total[ref])}")

            succs = graph.successors_of(ref)
            if not succs:
                free[ref] = total[ref]
                self._log(f"  Free Float (FF) = TF = {_fmt(free[ref])} (no successors)")
                continue

            min_es = min(es[succ] for succ in succs)
            free[ref] = max(0.0, self._round(min_es - ef[ref]))
            self._log(
                f"  Free Float (FF) = min(ES of successors) - EF = {_fmt(min_es)} - {_fmt(ef[ref])}"
                f" -> {_fmt(free[ref])}"
            )

        return total, free

    def _identify_critical_paths(self, graph: ActivityGraph) -> None:
        """Identify critical activities and build critical path sequences."""
        self._log("\n\nCRITICAL PATH IDENTIFICATION")
        self._log("-" * 50)

        critical_set = set()
        for ref in graph.order:
            result = self.results[ref]
            if result.is_critical:
                critical_set.add(ref)
                self._log(f"{ref}: TF = {_fmt(result.total_float)} -> CRITICAL")
            else:
                self._log(f"{ref}: TF = {_fmt(result.total_float)} -> Not critical")

        self.critical_paths = self._build_critical_paths(graph, critical_set)
        self.critical_path = self.critical_paths[0] if self.critical_paths else []

    def _is_critical_link(self, pred: int, succ: int) -> bool:
        pred_result, succ_result = self.results[pred], self.results[succ]
        return (
            pred_result.is_critical
            and succ_result.is_critical
            and succ_result.earliest_start == pred_result.earliest_finish
        )

    def _build_critical_paths(self, graph: ActivityGraph, critical_set: set) -> List[List[int]]:
        """Build sequential representations of all critical paths."""
        if not critical_set:
            return []

        successors: Dict[int, List[int]] = defaultdict(list)
        incoming: Dict[int, int] = defaultdict(int)

        for succ in graph.order:
            if succ not in critical_set:
                continue
            for pred in graph.predecessors_of(succ):
                if self._is_critical_link(pred, succ):
                    successors[pred].append(succ)
                    incoming[succ] += 1

        def sort_key(ref: int) -> Tuple[float, int]:
            return self.results[ref].earliest_start, ref

        start_nodes = sorted((ref for ref in critical_set if incoming[ref] == 0), key=sort_key)
        paths: List[List[int]] = []

        stack = [[ref] for ref in reversed(start_nodes)]
        while stack:
            path = stack.pop()
            nexts = sorted(successors.get(path[-1], ()), key=sort_key)
            if not nexts:
                paths.append(path)
                continue
            for succ in reversed(nexts):
                stack.append(path + [succ])

        return paths

    def scheduled_activities(self) -> List[ScheduledActivity]:
        """Results of the last calculation in plan order."""
        return [self.results[ref] for ref in self.activities if ref in self.results]

    def get_results_dataframe(self) -> pd.DataFrame:
        """Get calculation results as a pandas DataFrame."""
        data = []
        for ref in sorted(self.activities):
            act = self.activities[ref]
            result = self.results.get(ref)
            data.append(
                {
                    "Ref": ref,
                    "Name": act.name,
                    "Duration": act.duration,
                    "ES": result.earliest_start if result else "-",
                    "EF": result.earliest_finish if result else "-",
                    "LS": result.latest_start if result else "-",
                    "LF": result.latest_finish if result else "-",
                    "TF": result.total_float if result else "-",
                    "FF": result.free_float if result else "-",
                    "Critical": "Yes" if result and result.is_critical else "No",
                }
            )
        return pd.DataFrame(data)

    def get_activities_dataframe(self) -> pd.DataFrame:
        """Get activities list as a pandas DataFrame."""
        data = []
        for ref in sorted(self.activities):
            act = self.activities[ref]
            data.append(
                {
                    "Ref": ref,
                    "Name": act.name,
                    "Duration": act.duration,
                    "Predecessors": ",".join(str(p) for p in sorted(act.predecessors)),
                }
            )
        return pd.DataFrame(data)

    def get_gantt_dataframe(self) -> pd.DataFrame:
        """Get the rows a Gantt renderer needs, one bar per scheduled activity."""
        columns = [
            "referenceNumber", "name", "earliestStart", "duration",
            "earliestFinish", "totalFloat", "isCritical",
        ]
        rows = [
            {
                "referenceNumber": r.reference_number,
                "name": r.name,
                "earliestStart": r.earliest_start,
                "duration": r.duration,
                "earliestFinish": r.earliest_finish,
                "totalFloat": r.total_float,
                "isCritical": r.is_critical,
            }
            for r in self.scheduled_activities()
        ]
        return pd.DataFrame(rows, columns=columns)

    def to_networkx(self) -> nx.DiGraph:
        """
        Export the scheduled network as a directed graph (predecessor -> successor).

        Node attributes carry the ScheduledActivity fields; edges are flagged
        ``critical`` when they link two critical activities without slack.
        """
        G = nx.DiGraph()
        for result in self.scheduled_activities():
            G.add_node(result.reference_number, **result.to_dict())
        for result in self.scheduled_activities():
            for pred in result.resolved_predecessors:
                G.add_edge(pred, result.reference_number, critical=self._is_critical_link(pred, result.reference_number))
        return G

    def to_dict(self) -> Dict[str, Any]:
        return {
            "precision": self.precision,
            "activities": [
                {
                    "referenceNumber": act.reference_number,
                    "name": act.name,
                    "duration": act.duration,
                    "predecessors": sorted(act.predecessors),
                }
                for act in self.activities.values()
            ],
            "calculated": bool(self.results),
            "projectDuration": self.project_duration,
            "criticalPaths": [list(path) for path in self.critical_paths],
            "schedule": [r.to_dict() for r in self.scheduled_activities()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CPMScheduler":
        scheduler = cls(precision=data.get("precision"))
        scheduler.load(data.get("activities", []))
        if data.get("calculated"):
            scheduler.calculate()
        return scheduler


def schedule(
    activities: Union[ActivityGraph, Iterable[Any]],
    precision: Optional[int] = None,
) -> List[ScheduledActivity]:
    """
    Compute the CPM schedule for a plan.

    Args:
        activities: An ActivityGraph or raw activity records
        precision: Decimal places kept on total and free float (settings default)

    Returns:
        One ScheduledActivity per activity, in input order. Empty input
        returns an empty list.

    Raises:
        CyclicDependencyError: if the predecessor relation is cyclic
    """
    graph = activities if isinstance(activities, ActivityGraph) else build(activities)
    return CPMScheduler(precision=precision).run(graph)


def summarize(scheduled: Sequence[ScheduledActivity]) -> ScheduleSummary:
    """Headline figures of a computed schedule."""
    return ScheduleSummary(
        project_duration=max((r.earliest_finish for r in scheduled), default=0),
        activity_count=len(scheduled),
        critical_count=sum(1 for r in scheduled if r.is_critical),
        edge_count=sum(len(r.resolved_predecessors) for r in scheduled),
    )
