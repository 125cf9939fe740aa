"""Shared types for the tools package."""

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from codebase_index import UnavailableVectorSearch, VectorSearch
from config import (
    AppConfig, EditConfig, SearchConfig, WorkerConfig,
    app_config, edit_config, search_config, worker_config,
)
from sessions import SessionState
from workspace import WorkingSet


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation emitted by the controller."""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Result from executing a tool"""
    content: str
    is_error: bool = False
    tool_use_id: str = ""
    # Side channel: file ids a search touched (for the controller to pre-load)
    matched_file_ids: List[str] = field(default_factory=list)

    def to_message_block(self) -> Dict[str, Any]:
        """Anthropic tool_result content block."""
        block: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            block["is_error"] = True
        return block


def error_result(message: str) -> ToolResult:
    return ToolResult(content=message, is_error=True)


@dataclass
class ToolContext:
    """Everything a handler may touch during one call."""
    working_set: WorkingSet
    session: SessionState
    vector_search: VectorSearch = field(default_factory=UnavailableVectorSearch)
    reasoning: Optional[Any] = None
    on_progress: Optional[Callable[[Any], Any]] = None
    search: SearchConfig = field(default_factory=lambda: search_config)
    edit: EditConfig = field(default_factory=lambda: edit_config)
    workers: WorkerConfig = field(default_factory=lambda: worker_config)
    app: AppConfig = field(default_factory=lambda: app_config)
    # Set by the dispatcher so workers can issue read-only tool calls
    dispatcher: Optional[Any] = None


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def truncate(text: str, max_chars: int) -> str:
    """Cut text to max_chars, appending an explicit truncation marker."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + f"\n... [truncated {len(text) - max_chars} chars]"


def number_lines(lines: List[str], first_line: int, width: int = 4, sep: str = " | ") -> str:
    """Render lines with 1-based line numbers starting at first_line."""
    return "\n".join(f"{first_line + i:{width}d}{sep}{line}" for i, line in enumerate(lines))
