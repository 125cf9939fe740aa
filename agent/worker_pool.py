"""
Parallel worker pool for sub-investigations.

Up to four workers run concurrently, each a short, timeboxed conversation
with the reasoning backend over a scoped file list. Workers may issue
read-only tool calls through an injected executor. One worker failing or
timing out never affects its siblings; every task gets a result.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from backend import FileContext
from config import WorkerConfig, clamp_concurrency, worker_config
from tools._common import ToolResult, truncate

from .events import COMPLETE, ERROR, RUNNING, WorkerProgressEvent
from .prompts import compose_worker_prompt

logger = logging.getLogger(__name__)

# Per tool result fed back into a worker conversation
_WORKER_TOOL_OUTPUT_CHARS = 4000

ToolExecutor = Callable[[str, str, Dict[str, Any]], Awaitable[ToolResult]]
ProgressCallback = Callable[[WorkerProgressEvent], Any]


@dataclass
class WorkerTask:
    id: str
    instruction: str
    # Optional file names/paths to scope the worker's context
    files: List[str] = field(default_factory=list)


@dataclass
class WorkerResult:
    id: str
    success: bool
    content: str
    elapsed_ms: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: int = 0


def scope_files(files: List[FileContext], wanted: List[str]) -> List[FileContext]:
    """Files whose name or path matches one of wanted (case-insensitive); all files if none match."""
    if not wanted:
        return list(files)
    names = {w.lower() for w in wanted}
    scoped = [f for f in files if f.file_name.lower() in names or f.path.lower() in names]
    return scoped or list(files)


class WorkerPool:
    """Bounded-concurrency executor for WorkerTasks."""

    def __init__(
        self,
        reasoning: Any,
        max_concurrency: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        config: WorkerConfig = worker_config,
    ):
        self.reasoning = reasoning
        self.config = config
        self.max_concurrency = clamp_concurrency(max_concurrency or config.max_concurrency)
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else config.timeout_seconds

    async def execute(
        self,
        tasks: List[WorkerTask],
        files: List[FileContext],
        tool_executor: Optional[ToolExecutor] = None,
        tool_definitions: Optional[List[Dict[str, Any]]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[WorkerResult]:
        """Run all tasks, at most max_concurrency at a time. Results are in task order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _run(index: int, task: WorkerTask) -> WorkerResult:
            worker_id = task.id or f"worker-{index}"
            label = task.instruction[:80]
            async with semaphore:
                start = time.monotonic()
                await self._emit(on_progress, WorkerProgressEvent(worker_id, label, RUNNING))
                try:
                    result = await asyncio.wait_for(
                        self._execute_worker(task, worker_id, files, tool_executor, tool_definitions),
                        timeout=self.timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"Worker {worker_id} timed out after {self.timeout_seconds:g}s")
                    result = WorkerResult(
                        id=worker_id, success=False,
                        content=f"Worker {worker_id} timed out after {self.timeout_seconds:g}s",
                    )
                except Exception as e:
                    logger.warning(f"Worker {worker_id} failed: {e}")
                    result = WorkerResult(id=worker_id, success=False, content=f"Worker error: {type(e).__name__}: {e}")
                result.elapsed_ms = int((time.monotonic() - start) * 1000)
                await self._emit(on_progress, WorkerProgressEvent(worker_id, label, COMPLETE if result.success else ERROR))
                return result

        return list(await asyncio.gather(*(_run(i, t) for i, t in enumerate(tasks))))

    async def _emit(self, on_progress: Optional[ProgressCallback], event: WorkerProgressEvent) -> None:
        if on_progress is None:
            return
        try:
            out = on_progress(event)
            if inspect.isawaitable(out):
                await out
        except Exception as e:
            logger.debug(f"Progress callback failed for {event.worker_id}: {e}")

    async def _execute_worker(
        self,
        task: WorkerTask,
        worker_id: str,
        files: List[FileContext],
        tool_executor: Optional[ToolExecutor],
        tool_definitions: Optional[List[Dict[str, Any]]],
    ) -> WorkerResult:
        cfg = self.config
        use_tools = tool_executor is not None and bool(tool_definitions)
        system_prompt = compose_worker_prompt(scope_files(files, task.files), cfg.max_listed_files, use_tools)
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": task.instruction},
        ]
        result = WorkerResult(id=worker_id, success=True, content="")

        for round_no in range(cfg.max_tool_rounds + 1):
            completion = await self.reasoning.complete(
                messages,
                model=cfg.model,
                max_tokens=cfg.max_tokens,
                temperature=cfg.temperature,
                tools=tool_definitions if use_tools else None,
            )
            result.input_tokens += getattr(completion, "input_tokens", 0) or 0
            result.output_tokens += getattr(completion, "output_tokens", 0) or 0
            result.content = completion.content or result.content
            tool_uses = list(getattr(completion, "tool_uses", None) or [])
            if not use_tools or not tool_uses or round_no == cfg.max_tool_rounds:
                break

            assistant: List[Dict[str, Any]] = []
            if completion.content:
                assistant.append({"type": "text", "text": completion.content})
            assistant.extend(
                {"type": "tool_use", "id": tu.id, "name": tu.name, "input": tu.input} for tu in tool_uses
            )
            messages.append({"role": "assistant", "content": assistant})

            outputs = await asyncio.gather(*(tool_executor(tu.id, tu.name, tu.input) for tu in tool_uses))
            result.tool_calls += len(tool_uses)
            blocks = []
            for tu, out in zip(tool_uses, outputs):
                block: Dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": tu.id,
                    "content": truncate(out.content, _WORKER_TOOL_OUTPUT_CHARS),
                }
                if out.is_error:
                    block["is_error"] = True
                blocks.append(block)
            messages.append({"role": "user", "content": blocks})

        if not result.content.strip():
            result.content = "(worker returned no findings)"
        return result

    @staticmethod
    def format_results(results: List[WorkerResult]) -> str:
        """Concatenate worker outcomes into one labeled report."""
        blocks = []
        for r in results:
            status = "SUCCESS" if r.success else "FAILED"
            blocks.append(f"--- Worker {r.id} [{status}] ({r.elapsed_ms / 1000:.1f}s) ---\n{r.content}")
        return "\n\n".join(blocks)
