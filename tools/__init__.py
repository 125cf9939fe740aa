"""
Tool definitions and implementations for the theme tool runtime.
Each tool has an Anthropic-compatible schema and an async implementation.
Tools operate on a WorkingSet whose content comes from a Backend (in-memory or local).
"""

from tools._common import ToolCall, ToolContext, ToolResult, error_result  # noqa: F401
from tools.gitignore import IgnoreRules, SKIP_DIRS, SKIP_EXTENSIONS  # noqa: F401
from tools.replacer import replace, ReplaceError, MatchCascadeOutcome  # noqa: F401
from tools.region import RegionMatch  # noqa: F401
from tools.synonyms import SynonymTable, load_synonyms  # noqa: F401
from tools.file_ops import (  # noqa: F401
    read_file,
    read_lines,
    parallel_batch_read,
    extract_region,
    search_replace,
    edit_lines,
    write_file,
    delete_file,
    rename_file,
    undo_edit,
)
from tools.search_ops import (  # noqa: F401
    grep_content,
    glob_files,
    semantic_search,
    list_files,
)
from tools.session_ops import update_scratchpad, read_scratchpad  # noqa: F401
from tools.worker_ops import spawn_workers  # noqa: F401
from tools.schemas import (  # noqa: F401
    TOOL_DEFINITIONS,
    WORKER_TOOL_DEFINITIONS,
    READ_ONLY_TOOLS,
    TOOL_NAME_NORMALIZE,
    TOOLS_BY_NAME,
)
from tools.dispatch import ToolDispatcher, TOOL_IMPLEMENTATIONS  # noqa: F401
