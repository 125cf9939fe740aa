"""
Prompt composition for worker sub-tasks.
"""

from typing import List

from backend import FileContext

_WORKER_IDENTITY = """You are a research worker inside a theme development IDE. Your task is to investigate and report findings."""

_WORKER_INSTRUCTIONS = """Instructions:
- Be concise and factual
- Report specific file names, line numbers, and code snippets
- You may only read; do not propose edits as if they were applied
- If you can't find what you're looking for, say so clearly"""


def compose_worker_prompt(files: List[FileContext], max_listed: int = 30, can_use_tools: bool = False) -> str:
    """System prompt for one worker, listing (a bounded number of) its scoped files."""
    listed = "\n".join(f"- {f.path} ({f.file_type})" for f in files[:max_listed])
    if len(files) > max_listed:
        listed += f"\n... and {len(files) - max_listed} more files"
    parts = [_WORKER_IDENTITY, f"Available files:\n{listed or '(none)'}", _WORKER_INSTRUCTIONS]
    if can_use_tools:
        parts.append("Use the read-only tools to look at file content. Batch independent tool calls in one response.")
    return "\n\n".join(parts)
