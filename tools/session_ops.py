"""Session memory tools: a per-session scratchpad."""

from typing import Any

from tools._common import ToolContext, ToolResult, error_result, truncate


async def update_scratchpad(content: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Replace the session scratchpad."""
    if not isinstance(content, str):
        return error_result("content must be a string")
    limit = ctx.app.scratchpad_max_chars
    ctx.session.scratchpad = content[:limit]
    note = f" (cut to {limit} chars)" if len(content) > limit else ""
    return ToolResult(content=f"Scratchpad updated ({len(ctx.session.scratchpad)} chars){note}.")


async def read_scratchpad(*, ctx: ToolContext, **kw: Any) -> ToolResult:
    text = ctx.session.scratchpad
    if not text.strip():
        return ToolResult(content="(empty)")
    return ToolResult(content=truncate(text, ctx.app.max_result_chars))
