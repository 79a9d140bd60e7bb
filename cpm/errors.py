from __future__ import annotations

from typing import Iterable, List, Sequence


class SchedulingError(Exception):
    """Base class for errors that stop a CPM calculation."""


class CyclicDependencyError(SchedulingError):
    """Raised when the predecessor relation contains a cycle."""

    def __init__(self, cycle: Sequence[int], reference_numbers: Iterable[int] = ()):
        self.cycle: List[int] = list(cycle)
        self.reference_numbers: List[int] = sorted(set(reference_numbers) or set(self.cycle))
        path = " -> ".join(str(ref) for ref in self.cycle)
        super().__init__(f"Circular dependency detected: {path}")
