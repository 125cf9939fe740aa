"""Search, discovery, and navigation tools.

Every search here widens its own scope before admitting defeat: a scoped
search that finds nothing is retried with synonym-rewritten, extension-only,
directory-only and finally unscoped filters, and only then falls back to
suggesting related file names.
"""

import asyncio
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from backend import FileContext
from tools._common import ToolContext, ToolResult, error_result, estimate_tokens, number_lines
from tools.globbing import compile_glob, directory_only, extension_only, matches, split_filters
from tools.ranking import (
    SearchMatch, best_region, fuzzy_path_score, normalize_scores, tfidf_rerank,
)
from tools.synonyms import SynonymTable, extract_terms, load_synonyms

logger = logging.getLogger(__name__)

# Upper bound on lines collected per grep, independent of how many are shown
MAX_SCAN_MATCHES = 2000
MAX_LISTED_PATHS = 300

SOURCE_FUZZY = "fuzzy"
SOURCE_SEMANTIC = "semantic"
SOURCE_HYBRID = "hybrid"


@dataclass
class WideningStep:
    """One scope to try: a label, the path filters (None = whole project) and a note."""
    label: str
    filters: Optional[List[str]]
    note: str = ""


@dataclass
class SemanticHit:
    file_id: str
    file_name: str
    path: str
    score: float
    source: str


def _synonyms(ctx: ToolContext) -> SynonymTable:
    return load_synonyms(ctx.search.synonym_table_path)


def _positive_int(value: Any, default: int) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _widening_steps(file_filter: Optional[str], synonyms: SynonymTable, *, unscoped: bool) -> List[WideningStep]:
    """Scopes to try in order for a path filter."""
    if not file_filter or not file_filter.strip():
        return [WideningStep("unscoped", None)]
    original = split_filters(file_filter)
    steps = [WideningStep("scoped", original)]

    variants = synonyms.expand_filter(file_filter)
    if variants:
        widened = [v for variant, _, _ in variants for v in split_filters(variant)]
        pairs = ", ".join(f"{term} ≈ {syn}" for _, term, syn in variants)
        steps.append(WideningStep(
            "synonym", widened,
            f'No matches in "{file_filter}"; widened by synonym ({pairs}) to "{", ".join(widened)}".',
        ))
    ext = extension_only(file_filter)
    if ext:
        steps.append(WideningStep(
            "extension", split_filters(ext),
            f'No matches in "{file_filter}"; widened to extension filter "{ext}".',
        ))
    directory = directory_only(file_filter)
    if directory:
        steps.append(WideningStep(
            "directory", split_filters(directory),
            f'No matches in "{file_filter}"; widened to directory filter "{directory}".',
        ))
    if unscoped:
        steps.append(WideningStep(
            "unscoped", None,
            f'No matches in "{file_filter}"; widened to the whole project.',
        ))
    return steps


def _filter_files(files: List[FileContext], filters: Optional[List[str]]) -> List[FileContext]:
    if filters is None:
        return list(files)
    spec = compile_glob(filters)
    return [f for f in files if matches(spec, f.path)]


def _synonym_note(step: WideningStep, hit_paths: List[str], synonyms: SynonymTable, file_filter: str) -> str:
    """Name only the synonym substitutions that actually produced hits."""
    used, filters = [], []
    for variant, term, syn in synonyms.expand_filter(file_filter):
        spec = compile_glob(split_filters(variant))
        if any(matches(spec, p) for p in hit_paths):
            used.append(f"{term} ≈ {syn}")
            filters.append(variant)
    if not used:
        return step.note
    return f'No matches in "{file_filter}"; widened by synonym ({", ".join(used)}) to "{", ".join(filters)}".'


def _related_files(
    files: List[FileContext], texts: List[str], synonyms: SynonymTable, limit: int,
) -> Tuple[List[FileContext], List[str]]:
    """Files whose names contain a search term or one of its synonyms."""
    extensions = {posixpath.splitext(f.path)[1].lstrip(".").lower() for f in files}
    terms: List[str] = []
    for text in texts:
        for term in extract_terms(text or ""):
            if term not in extensions and term not in terms:
                terms.append(term)
    found: List[FileContext] = []
    reasons: List[str] = []
    for term in terms:
        for candidate in [term] + synonyms.related(term):
            hits = [f for f in files if candidate in f.file_name.lower() and f not in found]
            if hits:
                found.extend(hits)
                reason = f"{term} ≈ {candidate}" if candidate != term else f"name contains {term}"
                if reason not in reasons:
                    reasons.append(reason)
    return found[:limit], reasons


def _compile_pattern(pattern: str, case_sensitive: bool) -> Tuple["re.Pattern[str]", str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags), ""
    except re.error as e:
        logger.debug(f"Invalid regex {pattern!r} ({e}); searching as literal")
        return re.compile(re.escape(pattern), flags), f"(invalid regex: {e}; searched as literal text)"


async def _scan(ctx: ToolContext, regex: "re.Pattern[str]", candidates: List[FileContext]) -> Tuple[List[SearchMatch], Dict[str, str]]:
    """Hydrate candidates and collect per-line matches. Stubs that cannot be loaded are skipped."""
    hydrated = await ctx.working_set.hydrate(candidates)
    found: List[SearchMatch] = []
    documents: Dict[str, str] = {}
    for f in hydrated:
        for i, line in enumerate(f.content.split("\n")):
            if regex.search(line):
                found.append(SearchMatch(f.file_id, f.path, i + 1, line.strip()))
                documents[f.file_id] = f.content
                if len(found) >= MAX_SCAN_MATCHES:
                    return found, documents
    return found, documents


def _apply_budgets(found: List[SearchMatch], max_results: int, max_tokens: int, min_kept: int) -> List[SearchMatch]:
    shown: List[SearchMatch] = []
    used = 0
    for m in found[:max_results]:
        cost = estimate_tokens(m.render())
        if len(shown) >= min_kept and used + cost > max_tokens:
            break
        shown.append(m)
        used += cost
    return shown


async def grep_content(pattern: str, file_pattern: Optional[str] = None, case_sensitive: bool = False,
                       max_results: Optional[int] = None, max_tokens: Optional[int] = None,
                       *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Regex search over file content, widening the path filter when nothing matches."""
    if not (pattern or "").strip():
        return error_result("pattern is required")
    files = ctx.working_set.files
    if not files:
        return ToolResult(content="The project has no files to search. Create one with write_file first.")

    cfg = ctx.search
    max_results = _positive_int(max_results, cfg.grep_max_results)
    max_tokens = _positive_int(max_tokens, cfg.grep_max_tokens)
    regex, regex_note = _compile_pattern(pattern, bool(case_sensitive))
    synonyms = _synonyms(ctx)

    found: List[SearchMatch] = []
    documents: Dict[str, str] = {}
    step: Optional[WideningStep] = None
    for step in _widening_steps(file_pattern, synonyms, unscoped=True):
        candidates = _filter_files(files, step.filters)
        if not candidates:
            continue
        found, documents = await _scan(ctx, regex, candidates)
        if found:
            break
        logger.debug(f"grep {pattern!r}: no matches at step {step.label}")

    if not found:
        related, reasons = _related_files(files, [pattern, file_pattern or ""], synonyms, cfg.related_files_limit)
        scope = f' in "{file_pattern}" or anywhere else' if file_pattern else ""
        if related:
            lines = [f'No content matches for "{pattern}"{scope}. Related files ({"; ".join(reasons)}):']
            lines.extend(f"  {f.path} ({f.file_type})" for f in related)
            lines.append("Read one of these with read_file, or retry grep_content with a term that appears in them.")
            return ToolResult(content="\n".join(lines), matched_file_ids=[f.file_id for f in related])
        return ToolResult(content=(
            f'No matches found for "{pattern}"{scope}. Broaden the pattern, check the spelling, '
            "or use semantic_search to locate the code by meaning."
        ))

    found = tfidf_rerank(found, documents, pattern)
    shown = _apply_budgets(found, max_results, max_tokens, cfg.grep_min_kept)
    file_ids = list(dict.fromkeys(m.file_id for m in found))
    total_files = len(file_ids)

    parts: List[str] = []
    if file_pattern and step is not None and step.label != "scoped":
        note = step.note
        if step.label == "synonym":
            note = _synonym_note(step, [m.path for m in found], synonyms, file_pattern or "")
        parts.append(note)
    if regex_note:
        parts.append(regex_note)
    parts.extend(m.render() for m in shown)
    total = f"{len(found)}+" if len(found) >= MAX_SCAN_MATCHES else str(len(found))
    if len(shown) < len(found):
        parts.append(f"... ({len(found) - len(shown)} more matches not shown, {total} total across {total_files} files)")
    else:
        parts.append(f"{total} match(es) across {total_files} file(s).")
    return ToolResult(content="\n".join(parts), matched_file_ids=file_ids)


async def glob_files(pattern: str, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Match file paths against a glob, widening by synonym/extension/directory when nothing matches."""
    if not (pattern or "").strip():
        return error_result("pattern is required")
    files = ctx.working_set.files
    synonyms = _synonyms(ctx)

    hits: List[FileContext] = []
    step: Optional[WideningStep] = None
    for step in _widening_steps(pattern, synonyms, unscoped=False):
        hits = _filter_files(files, step.filters)
        if hits:
            break

    if not hits:
        related, reasons = _related_files(files, [pattern], synonyms, ctx.search.related_files_limit)
        if related:
            lines = [f'No files match "{pattern}". Related files ({"; ".join(reasons)}):']
            lines.extend(f"  {f.path} ({f.file_type})" for f in related)
            return ToolResult(content="\n".join(lines), matched_file_ids=[f.file_id for f in related])
        return ToolResult(content=(
            f'No files match pattern "{pattern}". Try a broader pattern such as "*.liquid", '
            "or call list_files to see the project layout."
        ))

    parts: List[str] = []
    if step is not None and step.label != "scoped":
        note = step.note
        if step.label == "synonym":
            note = _synonym_note(step, [f.path for f in hits], synonyms, pattern)
        parts.append(note)
    parts.append(f'{len(hits)} file(s) match "{pattern}":')
    parts.extend(f"  {f.path} ({f.file_type})" for f in hits[:MAX_LISTED_PATHS])
    if len(hits) > MAX_LISTED_PATHS:
        parts.append(f"  ... [{len(hits) - MAX_LISTED_PATHS} more]")
    return ToolResult(content="\n".join(parts), matched_file_ids=[f.file_id for f in hits])


async def _vector_scores(ctx: ToolContext, query: str, limit: int) -> Dict[str, float]:
    """Similarity per file id from the vector collaborator; empty when unavailable or failing."""
    if not ctx.vector_search.available:
        return {}
    try:
        hydrated = await ctx.working_set.hydrate(ctx.working_set.files)
        loop = asyncio.get_running_loop()
        scored = await loop.run_in_executor(None, ctx.vector_search.search, query, hydrated, limit)
    except Exception as e:
        logger.debug(f"Vector search unavailable, using lexical only: {e}")
        return {}
    return {fid: min(max(float(sim), 0.0), 1.0) for fid, sim in scored if sim > 0}


def merge_hits(files: List[FileContext], fuzzy: Dict[str, float], semantic: Dict[str, float]) -> List[SemanticHit]:
    """Deduplicate by file id. A file found by both signals scores 1 + mean of the two,
    which is strictly above any single-signal score (each is within (0, 1])."""
    by_id = {f.file_id: f for f in files}
    hits: List[SemanticHit] = []
    for fid in dict.fromkeys(list(fuzzy) + list(semantic)):
        f = by_id.get(fid)
        if f is None:
            continue
        if fid in fuzzy and fid in semantic:
            score, source = 1.0 + (fuzzy[fid] + semantic[fid]) / 2, SOURCE_HYBRID
        elif fid in fuzzy:
            score, source = fuzzy[fid], SOURCE_FUZZY
        else:
            score, source = semantic[fid], SOURCE_SEMANTIC
        hits.append(SemanticHit(fid, f.file_name, f.path, score, source))
    hits.sort(key=lambda h: (-h.score, h.path))
    return hits


async def semantic_search(query: str, limit: Optional[int] = None, *, ctx: ToolContext, **kw: Any) -> ToolResult:
    """Hybrid lexical/vector file search returning the best-matching excerpt of the top files."""
    if not (query or "").strip():
        return error_result("query is required")
    cfg = ctx.search
    limit = _positive_int(limit, cfg.semantic_limit)
    files = ctx.working_set.files
    synonyms = _synonyms(ctx)

    fuzzy = normalize_scores([(f.file_id, fuzzy_path_score(f.path, query, synonyms)) for f in files])
    semantic = await _vector_scores(ctx, query, limit * 2)
    hits = merge_hits(files, fuzzy, semantic)[:limit]

    if not hits:
        related, reasons = _related_files(files, [query], synonyms, cfg.related_files_limit)
        if related:
            lines = [f'No ranked matches for "{query}". Related files ({"; ".join(reasons)}):']
            lines.extend(f"  {f.path} ({f.file_type})" for f in related)
            return ToolResult(content="\n".join(lines), matched_file_ids=[f.file_id for f in related])
        return ToolResult(content=(
            f'No files relevant to "{query}". Try grep_content with a literal pattern, '
            "or list_files to browse the project."
        ))

    top = [ctx.working_set.get(h.file_id) for h in hits[:cfg.semantic_excerpt_files]]
    await ctx.working_set.hydrate([f for f in top if f is not None])

    mode = "lexical + vector" if semantic else "lexical only"
    parts = [f'{len(hits)} relevant file(s) for "{query}" ({mode}):']
    for rank, h in enumerate(hits, 1):
        parts.append(f"{rank}. {h.path} [{h.source} {h.score:.2f}]")
        f = ctx.working_set.get(h.file_id)
        if rank <= cfg.semantic_excerpt_files and f is not None and not f.is_stub:
            start, end, lines = best_region(f.content, query, cfg.excerpt_context_lines)
            parts.append(f"   lines {start}-{end}:")
            parts.append(number_lines(lines, start))
    return ToolResult(content="\n".join(parts), matched_file_ids=[h.file_id for h in hits])


async def list_files(*, ctx: ToolContext, **kw: Any) -> ToolResult:
    """List every file in the working set, grouped by directory."""
    files = sorted(ctx.working_set.files, key=lambda f: f.path)
    if not files:
        return ToolResult(content="The project has no files.")
    parts = [f"{len(files)} file(s):"]
    current_dir = None
    for f in files[:MAX_LISTED_PATHS]:
        directory = posixpath.dirname(f.path) or "."
        if directory != current_dir:
            parts.append(f"{directory}/")
            current_dir = directory
        parts.append(f"  {f.file_name} ({f.file_type})")
    if len(files) > MAX_LISTED_PATHS:
        parts.append(f"  ... [{len(files) - MAX_LISTED_PATHS} more]")
    return ToolResult(content="\n".join(parts))
