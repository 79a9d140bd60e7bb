"""Sample plans in the raw record shape the plan editor hands to the scheduler."""
from typing import Any, Dict, List

SOFTWARE_PROJECT: List[Dict[str, Any]] = [
    {"referenceNumber": 1, "name": "Project Planning", "duration": "3", "predecessors": []},
    {"referenceNumber": 2, "name": "Requirements Analysis", "duration": "5", "predecessors": [1]},
    {"referenceNumber": 3, "name": "Design", "duration": "4", "predecessors": [2]},
    {"referenceNumber": 4, "name": "Development Phase 1", "duration": "8", "predecessors": [3]},
    {"referenceNumber": 5, "name": "Development Phase 2", "duration": "6", "predecessors": [3]},
    {"referenceNumber": 6, "name": "Testing", "duration": "5", "predecessors": [4, 5]},
    {"referenceNumber": 7, "name": "Documentation", "duration": "3", "predecessors": [4]},
    {"referenceNumber": 8, "name": "Deployment", "duration": "2", "predecessors": [6, 7]},
]

# Stored rows as the persistence layer returns them: string durations and
# comma separated predecessor lists.
STORED_ROWS: List[Dict[str, Any]] = [
    {"ref_number": 1, "name": "Foundation Work", "dauer": "5", "vorgaenger": ""},
    {"ref_number": 2, "name": "Parallel Prep Work", "dauer": "2.5", "vorgaenger": "1"},
    {"ref_number": 3, "name": "Main Construction", "dauer": "10", "vorgaenger": "1, 2"},
    {"ref_number": 4, "name": "Finishing Work", "dauer": "", "vorgaenger": "3"},
    {"ref_number": 5, "name": "Inspection", "dauer": "2", "vorgaenger": "3,4"},
]

SAMPLES: Dict[str, List[Dict[str, Any]]] = {
    "software": SOFTWARE_PROJECT,
    "construction": STORED_ROWS,
}


def get_sample(name: str) -> List[Dict[str, Any]]:
    """Return a copy of a sample plan so callers may edit it freely."""
    return [dict(record) for record in SAMPLES[name]]
