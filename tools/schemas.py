"""Tool schema definitions (Bedrock/Anthropic Messages API) and capability sets."""

from typing import Any, Dict, FrozenSet, List


def _tool(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {
        "name": name,
        "description": description,
        "input_schema": {"type": "object", "properties": properties, "required": required},
    }


_STR = {"type": "string"}
_INT = {"type": "integer"}
_BOOL = {"type": "boolean"}

_CHUNK = {
    "type": "object",
    "properties": {"file_path": _STR, "start_line": _INT, "end_line": _INT},
    "required": ["file_path", "start_line", "end_line"],
}

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    _tool(
        "read_file",
        "Read a whole file with line numbers. Accepts a file id, path, or file name. Large files show the first lines only; use read_lines or extract_region for the rest.",
        {"file_id": {"type": "string", "description": "File id, path, or file name"}},
        ["file_id"],
    ),
    _tool(
        "read_lines",
        "Read an inclusive 1-based line range of a file (two lines of padding are added on each side).",
        {"file_path": _STR, "start_line": _INT, "end_line": _INT},
        ["file_path", "start_line", "end_line"],
    ),
    _tool(
        "parallel_batch_read",
        "Read up to 10 line ranges, possibly from different files, in one call.",
        {"chunks": {"type": "array", "items": _CHUNK, "maxItems": 10}},
        ["chunks"],
    ),
    _tool(
        "list_files",
        "List every file in the project, grouped by directory, with its type.",
        {},
        [],
    ),
    _tool(
        "grep_content",
        "Regex search across file contents. Returns 'path:line: content' lines ranked by relevance. An optional file_pattern glob narrows the search; if nothing matches there the search widens automatically (synonyms, extension, directory, whole project) and says so.",
        {
            "pattern": {"type": "string", "description": "Regular expression (case-insensitive by default)"},
            "file_pattern": {"type": "string", "description": "Glob filter, e.g. 'sections/*.liquid' or '*.{css,js}'"},
            "case_sensitive": _BOOL,
            "max_results": {"type": "integer", "description": "Maximum matches shown (default 50)"},
            "max_tokens": {"type": "integer", "description": "Output budget in tokens (default 5000)"},
        },
        ["pattern"],
    ),
    _tool(
        "glob_files",
        "Find files whose path matches a glob pattern. Widens by synonym, extension, then directory when nothing matches.",
        {"pattern": {"type": "string", "description": "Glob, e.g. 'snippets/*cart*' or '**/*.json'"}},
        ["pattern"],
    ),
    _tool(
        "semantic_search",
        "Find the files most relevant to a natural-language query (file names, paths and, when available, content embeddings). Shows the best-matching excerpt of the top files.",
        {"query": _STR, "limit": {"type": "integer", "description": "Maximum files (default 10)"}},
        ["query"],
    ),
    _tool(
        "extract_region",
        "Locate a function, CSS selector, Liquid block, or setting in a file and return its exact lines with line numbers. Call this before search_replace on a file you have not fully read.",
        {
            "file_id": {"type": "string", "description": "File id, path, or file name"},
            "hint": {"type": "string", "description": "Symbol, selector, or tag, e.g. 'addToCart', '.hero', '{% schema %}'"},
            "context_lines": {"type": "integer", "description": "Context lines for non-block matches (default 4)"},
        },
        ["file_id", "hint"],
    ),
    _tool(
        "read_scratchpad",
        "Read this session's scratchpad notes.",
        {},
        [],
    ),
    _tool(
        "search_replace",
        "Replace old_text with new_text in a file. Tolerates indentation/whitespace and escaping differences. Only the first match is replaced unless replace_all is true; use near_line to target a match near a specific line.",
        {
            "file_path": _STR,
            "old_text": {"type": "string", "description": "Text to find (include a few lines of context)"},
            "new_text": {"type": "string", "description": "Replacement text"},
            "replace_all": _BOOL,
            "near_line": {"type": "integer", "description": "Prefer a match within ~20 lines of this line"},
            "reasoning": _STR,
        },
        ["file_path", "old_text", "new_text"],
    ),
    _tool(
        "edit_lines",
        "Replace an inclusive 1-based line range with new content. Re-read the lines first so the numbers are current.",
        {"file_path": _STR, "start_line": _INT, "end_line": _INT, "new_content": _STR, "reasoning": _STR},
        ["file_path", "start_line", "end_line", "new_content"],
    ),
    _tool(
        "write_file",
        "Create a new file, or overwrite an existing one with complete content. Refuses empty content and overwrites that would drop most of an existing file.",
        {"file_name": {"type": "string", "description": "Project-relative path"}, "content": _STR, "reasoning": _STR},
        ["file_name", "content"],
    ),
    _tool(
        "delete_file",
        "Delete a file from the project.",
        {"file_name": _STR},
        ["file_name"],
    ),
    _tool(
        "rename_file",
        "Move/rename a file.",
        {"file_name": _STR, "new_file_name": _STR},
        ["file_name", "new_file_name"],
    ),
    _tool(
        "undo_edit",
        "Restore a file to its content before the first edit made to it in this session.",
        {"file_path": _STR},
        ["file_path"],
    ),
    _tool(
        "update_scratchpad",
        "Replace this session's scratchpad notes (persist plans and findings between turns).",
        {"content": _STR},
        ["content"],
    ),
    _tool(
        "spawn_workers",
        "Run 1-4 independent research tasks in parallel. Each worker gets a short instruction, optionally a list of files to focus on, read-only tools, and a 60s time limit. Returns one report with every worker's result.",
        {
            "tasks": {
                "type": "array",
                "minItems": 1,
                "maxItems": 4,
                "items": {
                    "type": "object",
                    "properties": {
                        "id": _STR,
                        "instruction": _STR,
                        "files": {"type": "array", "items": _STR},
                    },
                    "required": ["instruction"],
                },
            },
            "max_concurrency": {"type": "integer", "description": "Parallel workers (1-4, default 4)"},
        },
        ["tasks"],
    ),
]

# Tools that never mutate files or session state
READ_ONLY_TOOLS: FrozenSet[str] = frozenset({
    "read_file", "read_lines", "parallel_batch_read", "list_files",
    "grep_content", "glob_files", "semantic_search", "extract_region", "read_scratchpad",
})

# Legacy / alternate names accepted from the controller
TOOL_NAME_NORMALIZE: Dict[str, str] = {
    "grep": "grep_content",
    "glob": "glob_files",
    "read_chunk": "read_lines",
    "search_files": "semantic_search",
    "read": "read_file",
    "edit": "search_replace",
}

TOOLS_BY_NAME: Dict[str, Dict[str, Any]] = {t["name"]: t for t in TOOL_DEFINITIONS}

WORKER_TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    t for t in TOOL_DEFINITIONS if t["name"] in READ_ONLY_TOOLS and t["name"] != "read_scratchpad"
]


def required_inputs(name: str) -> List[str]:
    tool = TOOLS_BY_NAME.get(name)
    return list(tool["input_schema"].get("required", [])) if tool else []
