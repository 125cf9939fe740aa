"""Tool execution dispatch: the single call surface for the controller."""

import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional

from codebase_index import UnavailableVectorSearch, VectorSearch
from config import AppConfig, EditConfig, SearchConfig, WorkerConfig, app_config, edit_config, search_config, worker_config
from sessions import SessionState
from tools._common import ToolCall, ToolContext, ToolResult, error_result, truncate
from tools.file_ops import (
    read_file, read_lines, parallel_batch_read, extract_region,
    search_replace, edit_lines, write_file, delete_file, rename_file, undo_edit,
)
from tools.schemas import READ_ONLY_TOOLS, TOOL_NAME_NORMALIZE, TOOLS_BY_NAME, required_inputs
from tools.search_ops import grep_content, glob_files, semantic_search, list_files
from tools.session_ops import update_scratchpad, read_scratchpad
from tools.worker_ops import spawn_workers
from workspace import WorkingSet

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[ToolResult]]

TOOL_IMPLEMENTATIONS: Dict[str, Handler] = {
    "read_file": read_file,
    "read_lines": read_lines,
    "parallel_batch_read": parallel_batch_read,
    "list_files": list_files,
    "grep_content": grep_content,
    "glob_files": glob_files,
    "semantic_search": semantic_search,
    "extract_region": extract_region,
    "read_scratchpad": read_scratchpad,
    "search_replace": search_replace,
    "edit_lines": edit_lines,
    "write_file": write_file,
    "delete_file": delete_file,
    "rename_file": rename_file,
    "undo_edit": undo_edit,
    "update_scratchpad": update_scratchpad,
    "spawn_workers": spawn_workers,
}


def _check_registry() -> None:
    """Every declared capability has a handler and every handler is declared."""
    declared, implemented = set(TOOLS_BY_NAME), set(TOOL_IMPLEMENTATIONS)
    if declared != implemented:
        raise RuntimeError(
            f"Tool registry mismatch: undeclared={sorted(implemented - declared)} "
            f"unimplemented={sorted(declared - implemented)}"
        )


_check_registry()


def available_tools() -> str:
    return ", ".join(sorted(TOOL_IMPLEMENTATIONS))


class ToolDispatcher:
    """Routes ToolCalls to handlers and contains every failure.

    Always returns exactly one ToolResult per call, stamped with the call id.
    """

    def __init__(
        self,
        working_set: WorkingSet,
        session: Optional[SessionState] = None,
        *,
        vector_search: Optional[VectorSearch] = None,
        reasoning: Optional[Any] = None,
        on_progress: Optional[Callable[[Any], Any]] = None,
        search: SearchConfig = search_config,
        edit: EditConfig = edit_config,
        workers: WorkerConfig = worker_config,
        app: AppConfig = app_config,
    ):
        self.context = ToolContext(
            working_set=working_set,
            session=session or SessionState(),
            vector_search=vector_search or UnavailableVectorSearch(),
            reasoning=reasoning,
            on_progress=on_progress,
            search=search,
            edit=edit,
            workers=workers,
            app=app,
            dispatcher=self,
        )

    async def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call against this dispatcher's context."""
        return await self._run(call.id, call.name, call.input, self.context)

    async def execute_read_only(self, call_id: str, name: str, inputs: Dict[str, Any],
                                ctx: Optional[ToolContext] = None) -> ToolResult:
        """Execute only if the tool cannot mutate anything (used by workers)."""
        return await self._run(call_id, name, inputs, ctx or self.context, allowed=READ_ONLY_TOOLS)

    async def _run(self, call_id: str, name: str, inputs: Any, ctx: ToolContext,
                   allowed: Optional[FrozenSet[str]] = None) -> ToolResult:
        result = await self._invoke(name, inputs, ctx, allowed)
        content = truncate(result.content, ctx.app.max_result_chars)
        return dataclasses.replace(result, tool_use_id=call_id, content=content)

    async def _invoke(self, name: str, inputs: Any, ctx: ToolContext,
                      allowed: Optional[FrozenSet[str]]) -> ToolResult:
        original_name = name
        name = TOOL_NAME_NORMALIZE.get(name, name)
        impl = TOOL_IMPLEMENTATIONS.get(name)
        if impl is None:
            return error_result(f"Unknown tool: {original_name}. Available tools: {available_tools()}")
        if allowed is not None and name not in allowed:
            return error_result(f"Tool {name} is not available here; only read-only tools may be used.")
        if inputs is None:
            inputs = {}
        if not isinstance(inputs, dict):
            return error_result(f"Invalid arguments for {name}: input must be an object")
        missing = [key for key in required_inputs(name) if inputs.get(key) is None]
        if missing:
            return error_result(f"Missing required input(s) for {name}: {', '.join(missing)}")

        kwargs = {k: v for k, v in inputs.items() if k != "ctx"}
        try:
            out = impl(**kwargs, ctx=ctx)
            if inspect.isawaitable(out):
                out = await out
        except TypeError as e:
            return error_result(f"Invalid arguments for {name}: {e}")
        except Exception as e:
            logger.exception(f"Tool execution error: {name}")
            return error_result(f"Tool error ({type(e).__name__}): {e}")
        if not isinstance(out, ToolResult):
            logger.error(f"Tool {name} returned {type(out).__name__} instead of a ToolResult")
            return error_result(f"Tool error (InvalidResult): {name} returned no result")
        return out
