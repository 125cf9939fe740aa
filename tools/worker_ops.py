"""spawn_workers: fan a task out to the parallel worker pool."""

import logging
from typing import Any, Dict, List, Optional

from config import MAX_WORKERS
from tools._common import ToolContext, ToolResult, error_result

logger = logging.getLogger(__name__)


def _parse_tasks(tasks: Any) -> tuple:
    """(worker_tasks, error_message)."""
    from agent.worker_pool import WorkerTask

    if not isinstance(tasks, list) or not tasks:
        return None, f"tasks must be a list of 1-{MAX_WORKERS} items with an instruction each."
    if len(tasks) > MAX_WORKERS:
        return None, f"Too many tasks ({len(tasks)}); spawn_workers accepts at most {MAX_WORKERS}. Merge related tasks."
    parsed = []
    for i, t in enumerate(tasks):
        if not isinstance(t, dict) or not str(t.get("instruction", "")).strip():
            return None, f"Task {i + 1} is missing an instruction."
        files = t.get("files") or []
        if not isinstance(files, list):
            files = [files]
        parsed.append(WorkerTask(
            id=str(t.get("id") or f"worker-{i}"),
            instruction=str(t["instruction"]).strip(),
            files=[str(f) for f in files],
        ))
    return parsed, None


async def spawn_workers(tasks: List[Dict[str, Any]], max_concurrency: Optional[int] = None,
                        *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Run up to four research sub-tasks in parallel and return one labeled report."""
    from agent.worker_pool import WorkerPool
    from tools.schemas import WORKER_TOOL_DEFINITIONS

    worker_tasks, problem = _parse_tasks(tasks)
    if problem:
        return error_result(problem)
    if ctx.reasoning is None:
        return error_result("No reasoning backend is configured, so workers cannot run. Do the investigation directly.")

    executor = None
    if ctx.dispatcher is not None:
        async def executor(call_id: str, name: str, inputs: Dict[str, Any]) -> ToolResult:
            return await ctx.dispatcher.execute_read_only(call_id, name, inputs, ctx)

    pool = WorkerPool(ctx.reasoning, max_concurrency, ctx.workers.timeout_seconds, config=ctx.workers)
    logger.info(f"Spawning {len(worker_tasks)} worker(s), concurrency {pool.max_concurrency}")
    results = await pool.execute(
        worker_tasks,
        ctx.working_set.files,
        tool_executor=executor,
        tool_definitions=WORKER_TOOL_DEFINITIONS if executor else None,
        on_progress=ctx.on_progress,
    )
    succeeded = sum(1 for r in results if r.success)
    report = WorkerPool.format_results(results)
    header = f"{succeeded}/{len(results)} worker(s) succeeded."
    return ToolResult(content=header + "\n\n" + report, is_error=succeeded == 0)
