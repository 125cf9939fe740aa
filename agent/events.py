"""
Worker pool progress event data types.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict

RUNNING = "running"
COMPLETE = "complete"
ERROR = "error"


@dataclass
class WorkerProgressEvent:
    """Emitted whenever a worker's status changes"""
    worker_id: str
    label: str  # first 80 chars of the instruction
    status: str  # running, complete, error
    type: str = "worker_progress"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
