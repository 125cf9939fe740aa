"""
Agent package - parallel sub-investigation workers.

- events: WorkerProgressEvent and status constants
- prompts: worker system prompt composition
- worker_pool: bounded-concurrency WorkerPool with per-worker timeouts
"""

from .events import WorkerProgressEvent, RUNNING, COMPLETE, ERROR
from .prompts import compose_worker_prompt
from .worker_pool import WorkerPool, WorkerTask, WorkerResult, scope_files

__all__ = [
    "WorkerPool",
    "WorkerTask",
    "WorkerResult",
    "WorkerProgressEvent",
    "RUNNING",
    "COMPLETE",
    "ERROR",
    "compose_worker_prompt",
    "scope_files",
]
