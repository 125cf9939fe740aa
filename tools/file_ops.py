"""File operation tools: read, region extraction, replace, line edits, write, delete, rename, undo."""

import difflib
import logging
from typing import Any, Dict, List, Optional

from backend import FileContext, PersistenceError
from tools._common import ToolContext, ToolResult, error_result, number_lines
from tools.region import NONE, extract_region as locate_region
from tools.replacer import ReplaceError, replace

logger = logging.getLogger(__name__)

_MAX_FULL_READ_LINES = 500
_HEAD_LINES = 300


def _require(value: Any, name: str) -> Optional[ToolResult]:
    """Return an error ToolResult if a required string input is empty/whitespace; else None."""
    if not isinstance(value, str) or not value.strip():
        return error_result(f"{name} is required")
    return None


def _validate_path(path: str) -> Optional[str]:
    if ".." in path or path.startswith("/") or ":" in path:
        return f"Invalid file path: {path}. Use a project-relative path such as sections/header.liquid."
    return None


def _not_found(ref: str) -> ToolResult:
    return error_result(f"File not found: {ref}. Use list_files or glob_files to find the right path.")


def _compact_diff(old_content: str, new_content: str, path: str, max_lines: int = 60) -> str:
    """Generate a compact unified diff of an edit."""
    old_lines = old_content.splitlines(keepends=True)
    new_lines = new_content.splitlines(keepends=True)
    diff = list(difflib.unified_diff(old_lines, new_lines, fromfile=path, tofile=path, lineterm=""))
    if not diff:
        return ""
    if len(diff) > max_lines:
        diff = diff[:max_lines] + [f"... ({len(diff) - max_lines} more diff lines)"]
    return "\n".join(line.rstrip() for line in diff)


async def _load(ctx: ToolContext, ref: str) -> tuple:
    """(file, content, error). Exactly one of content/error is set."""
    f = ctx.working_set.resolve(ref)
    if f is None:
        return None, None, _not_found(ref)
    content = await ctx.working_set.read(f)
    if content is None:
        return f, None, error_result(f"Cannot load content for {f.path}. Try again or read another file.")
    return f, content, None


async def _commit(ctx: ToolContext, f: FileContext, old: str, new: str) -> Optional[ToolResult]:
    """Persist an edit and record history. Returns an error result on persistence failure."""
    try:
        await ctx.working_set.apply_write(f, new)
    except PersistenceError as e:
        logger.warning(f"Write failed for {f.path}: {e}")
        return error_result(f"Write failed: {e}")
    ctx.session.remember_original(f.file_id, old)
    ctx.vector_search.notify_file_changed(f.file_id)
    return None


# ── Reads ────────────────────────────────────────────────────────────────────

async def read_file(file_id: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Read a whole file with line numbers (large files show the head only)."""
    err = _require(file_id, "file_id")
    if err:
        return err
    f, content, err = await _load(ctx, file_id)
    if err:
        return err
    lines = content.split("\n")
    header = f"File: {f.path} ({f.file_type}, {len(lines)} lines)"
    if len(lines) <= _MAX_FULL_READ_LINES:
        return ToolResult(content=header + "\n" + number_lines(lines, 1))
    return ToolResult(content="\n".join([
        header,
        number_lines(lines[:_HEAD_LINES], 1),
        f"... ({len(lines) - _HEAD_LINES} more lines; use read_lines or extract_region for the rest)",
    ]))


def _line_range(lines: List[str], start: int, end: int, padding: int) -> tuple:
    lo = max(1, start - padding)
    hi = min(len(lines), end + padding)
    return lo, hi


async def _read_chunk(ctx: ToolContext, file_path: str, start_line: Any, end_line: Any) -> ToolResult:
    try:
        start, end = int(start_line), int(end_line)
    except (TypeError, ValueError):
        return error_result("start_line and end_line must be integers")
    if start < 1 or end < start:
        return error_result(f"Invalid line range {start}-{end}: start_line must be >= 1 and <= end_line.")
    f, content, err = await _load(ctx, file_path)
    if err:
        return err
    lines = content.split("\n")
    if start > len(lines):
        return error_result(f"{f.path} has only {len(lines)} lines; start_line {start} is past the end.")
    lo, hi = _line_range(lines, start, min(end, len(lines)), ctx.edit.read_padding_lines)
    body = number_lines(lines[lo - 1:hi], lo)
    return ToolResult(content=f"{f.path} lines {lo}-{hi} of {len(lines)}:\n{body}")


async def read_lines(file_path: str, start_line: int, end_line: int, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Read a line range (with a little padding on both sides)."""
    err = _require(file_path, "file_path")
    if err:
        return err
    return await _read_chunk(ctx, file_path, start_line, end_line)


async def parallel_batch_read(chunks: List[Dict[str, Any]], *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Read several line ranges in one call."""
    if not isinstance(chunks, list) or not chunks:
        return error_result("chunks must be a non-empty list of {file_path, start_line, end_line}")
    limit = ctx.edit.max_batch_chunks
    if len(chunks) > limit:
        return error_result(f"Too many chunks ({len(chunks)}); at most {limit} per call.")
    parts: List[str] = []
    failures = 0
    for i, chunk in enumerate(chunks, 1):
        if not isinstance(chunk, dict) or not chunk.get("file_path"):
            parts.append(f"[{i}] invalid chunk: file_path is required")
            failures += 1
            continue
        res = await _read_chunk(ctx, chunk["file_path"], chunk.get("start_line"), chunk.get("end_line"))
        if res.is_error:
            failures += 1
        parts.append(f"[{i}] {res.content}")
    return ToolResult(content="\n\n".join(parts), is_error=failures == len(chunks))


async def extract_region(file_id: str, hint: str, context_lines: Optional[int] = None,
                         *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Return the block around a symbol/selector/tag hint."""
    err = _require(file_id, "file_id") or _require(hint, "hint")
    if err:
        return err
    f, content, err = await _load(ctx, file_id)
    if err:
        return err
    ctx_lines = int(context_lines) if context_lines is not None else 4
    region = locate_region(content, hint, max(0, ctx_lines))
    if region.match_type == NONE:
        return ToolResult(content=(
            f'No region matching "{hint}" in {f.path}. '
            "Try a shorter hint, grep_content across files, or read_file."
        ))
    return ToolResult(content="\n".join([
        f"File: {f.path}",
        f"Match type: {region.match_type}",
        f"Lines: {region.start_line}-{region.end_line}",
        "",
        region.snippet,
    ]))


# ── Edits ────────────────────────────────────────────────────────────────────

async def search_replace(file_path: str, old_text: str, new_text: str, replace_all: bool = False,
                         near_line: Optional[int] = None, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Replace old_text with new_text using the tolerant matching cascade."""
    err = _require(file_path, "file_path") or _require(old_text, "old_text")
    if err:
        return err
    if not isinstance(new_text, str):
        return error_result("new_text must be a string")
    if old_text == new_text:
        return error_result("old_text and new_text are identical; no change needed.")
    f, content, err = await _load(ctx, file_path)
    if err:
        return err

    try:
        outcome = replace(
            content, old_text, new_text,
            replace_all=bool(replace_all),
            near_line=int(near_line) if near_line else None,
            near_line_window=ctx.edit.near_line_window,
        )
    except ReplaceError as e:
        return error_result(f"{f.path}: {e}")

    err = await _commit(ctx, f, content, outcome.content)
    if err:
        return err

    size = len(outcome.content.encode("utf-8"))
    msg = (f"File updated: {f.path} ({size} bytes, {outcome.replaced_count} replacement(s), "
           f"matched by {outcome.replacer_used}).")
    if outcome.match_count > 1 and not replace_all:
        msg += (f" Warning: old_text matched {outcome.match_count} locations; only the first occurrence "
                "was replaced. Add more surrounding context or pass near_line to target another one.")
    if outcome.near_line_ignored:
        msg += f" Note: no match near line {near_line}; the whole file was searched."
    diff = _compact_diff(content, outcome.content, f.path)
    return ToolResult(content=msg + ("\n" + diff if diff else ""))


async def edit_lines(file_path: str, start_line: int, end_line: int, new_content: str,
                     *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Replace an inclusive 1-based line range with new_content."""
    err = _require(file_path, "file_path")
    if err:
        return err
    if not isinstance(new_content, str):
        return error_result("new_content must be a string")
    try:
        start, end = int(start_line), int(end_line)
    except (TypeError, ValueError):
        return error_result("start_line and end_line must be integers")
    f, content, err = await _load(ctx, file_path)
    if err:
        return err
    lines = content.split("\n")
    if start < 1 or end < start or end > len(lines):
        return error_result(
            f"Invalid line range {start}-{end} for {f.path} ({len(lines)} lines). "
            "Re-read the file with read_lines to get current line numbers."
        )

    replacement = new_content.split("\n") if new_content else []
    if replacement and replacement[-1] == "" and new_content.endswith("\n"):
        replacement.pop()
    updated = "\n".join(lines[:start - 1] + replacement + lines[end:])

    cfg = ctx.edit
    if len(content) > cfg.overwrite_min_chars and len(updated) < len(content) * (1 - cfg.edit_lines_max_removed_ratio):
        return error_result(
            f"edit_lines rejected: this would remove most of {f.path} ({len(content)} -> {len(updated)} chars). "
            "Edit a narrower line range or use search_replace for targeted changes."
        )

    err = await _commit(ctx, f, content, updated)
    if err:
        return err
    diff = _compact_diff(content, updated, f.path)
    msg = f"Replaced lines {start}-{end} of {f.path} with {len(replacement)} line(s)."
    return ToolResult(content=msg + ("\n" + diff if diff else ""))


async def write_file(file_name: str, content: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Create a file or overwrite an existing one, with guards against destructive overwrites."""
    err = _require(file_name, "file_name")
    if err:
        return err
    bad = _validate_path(file_name)
    if bad:
        return error_result(bad)
    if not isinstance(content, str) or not content.strip():
        return error_result(
            "write_file rejected: content is empty. This would erase the file. "
            "Use search_replace or edit_lines for targeted edits."
        )
    cfg = ctx.edit
    size = len(content.encode("utf-8"))
    if size > cfg.max_write_bytes:
        return error_result(f"write_file rejected: content is {size} bytes; the limit is {cfg.max_write_bytes}.")

    existing = next((f for f in ctx.working_set.files if f.path == file_name), None)
    if existing is None:
        try:
            created = await ctx.working_set.create(file_name, content)
        except PersistenceError as e:
            return error_result(f"Write failed: {e}")
        ctx.vector_search.notify_file_changed(created.file_id)
        return ToolResult(content=f"Created {file_name} ({size} bytes).")

    old = await ctx.working_set.read(existing)
    if old is None:
        return error_result(f"Cannot load current content of {file_name}; refusing to overwrite blindly.")
    if len(old) > cfg.overwrite_min_chars and len(content) < len(old) * (1 - cfg.overwrite_max_shrink):
        return error_result(
            f"write_file rejected: new content ({len(content)} chars) is less than "
            f"{int((1 - cfg.overwrite_max_shrink) * 100)}% of the existing file ({len(old)} chars). "
            "Use search_replace or edit_lines to change part of the file instead of rewriting it."
        )
    err = await _commit(ctx, existing, old, content)
    if err:
        return err
    diff = _compact_diff(old, content, file_name)
    return ToolResult(content=f"Overwrote {file_name} ({len(old)} -> {len(content)} chars)." + ("\n" + diff if diff else ""))


async def delete_file(file_name: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    err = _require(file_name, "file_name")
    if err:
        return err
    bad = _validate_path(file_name)
    if bad:
        return error_result(bad)
    f = ctx.working_set.resolve(file_name)
    if f is None:
        return _not_found(file_name)
    try:
        await ctx.working_set.delete(f)
    except PersistenceError as e:
        return error_result(f"Delete failed: {e}")
    ctx.session.forget(f.file_id)
    ctx.vector_search.notify_file_changed(f.file_id)
    return ToolResult(content=f"Deleted {f.path}.")


async def rename_file(file_name: str, new_file_name: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    err = _require(file_name, "file_name") or _require(new_file_name, "new_file_name")
    if err:
        return err
    bad = _validate_path(file_name) or _validate_path(new_file_name)
    if bad:
        return error_result(bad)
    f = ctx.working_set.resolve(file_name)
    if f is None:
        return _not_found(file_name)
    old_path = f.path
    try:
        await ctx.working_set.rename(f, new_file_name)
    except PersistenceError as e:
        return error_result(f"Rename failed: {e}")
    ctx.vector_search.notify_file_changed(f.file_id)
    return ToolResult(content=f"Renamed {old_path} -> {new_file_name}.")


async def undo_edit(file_path: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Restore a file to its content before the first edit of this session."""
    err = _require(file_path, "file_path")
    if err:
        return err
    f = ctx.working_set.resolve(file_path)
    if f is None:
        return _not_found(file_path)
    original = ctx.session.revert_history.get(f.file_id)
    if original is None:
        return error_result(f"No edits to undo for {f.path} in this session.")
    try:
        await ctx.working_set.apply_write(f, original)
    except PersistenceError as e:
        return error_result(f"Write failed: {e}")
    ctx.session.pop_original(f.file_id)
    ctx.vector_search.notify_file_changed(f.file_id)
    return ToolResult(content=f"Reverted {f.path} to its content before the first edit of this session.")
