"""
Region extraction: locate a named region (function, CSS selector, Liquid
block, schema setting) in file content and return its exact lines.

Tiers, in order: exact line match (a declaration-shaped line such as
"function hint" or ".hint {" wins over a mere mention, and a line that opens
a block is expanded to it), token-overlap fuzzy window, none.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

EXACT = "exact"
BLOCK_BOUNDARY = "block-boundary"
FUZZY = "fuzzy"
NONE = "none"

MAX_EXPAND = 120
DEFAULT_CONTEXT_LINES = 4

BLOCK_OPENER_RE = re.compile(
    r"^(\s*)(export\s+)?(async\s+)?function\s+"
    r"|^(\s*)(export\s+)?(default\s+)?class\s+"
    r"|^\s*[\w$-]+\s*[({]"
    r"|^\s*\{%[-\s]*(block|schema|for|if|unless|case|form|capture|tablerow)\b",
    re.IGNORECASE,
)
_LIQUID_TAG_RE = re.compile(r"\{%-?\s*(\w+)")
_LIQUID_BLOCK_RE = re.compile(r"\{%-?\s*(?:block|schema|for|if|unless|case|form|capture|tablerow)\b", re.IGNORECASE)
# {{ output }} and {% tag %} delimiters are not code braces
_LIQUID_DELIMITED_RE = re.compile(r"\{\{.*?\}\}|\{%.*?%\}")


@dataclass
class RegionMatch:
    """Located region. Line numbers are 1-based and inclusive; 0 when nothing matched."""
    start_line: int
    end_line: int
    snippet: str
    match_type: str


def make_snippet(lines: List[str], start: int, end: int) -> str:
    """Line-numbered snippet for 0-based inclusive start..end."""
    return "\n".join(f"{start + i + 1:5d}: {line}" for i, line in enumerate(lines[start:end + 1]))


def _expand_liquid(lines: List[str], seed: int, tag: str, max_expand: int) -> Tuple[int, int]:
    end_re = re.compile(r"\{%-?\s*end" + re.escape(tag) + r"\b")
    depth = 0
    end = seed
    for i in range(seed, min(len(lines), seed + max_expand)):
        if _LIQUID_BLOCK_RE.search(lines[i]):
            depth += 1
        if end_re.search(lines[i]):
            depth -= 1
            if depth <= 0:
                end = i
                break
    opener_re = re.compile(r"\{%-?\s*" + re.escape(tag) + r"\b")
    start = seed
    for i in range(seed, max(0, seed - max_expand) - 1, -1):
        if opener_re.search(lines[i]):
            start = i
            break
    return start, end


def _code_braces(line: str) -> str:
    return _LIQUID_DELIMITED_RE.sub("", line)


def _brace_delta(line: str) -> int:
    code = _code_braces(line)
    return code.count("{") - code.count("}")


def _expand_braces(lines: List[str], seed: int, max_expand: int) -> Tuple[int, int]:
    depth = _brace_delta(lines[seed])
    if depth <= 0:
        return seed, seed
    end = seed
    for i in range(seed + 1, min(len(lines), seed + max_expand)):
        depth += _brace_delta(lines[i])
        if depth <= 0:
            end = i
            break
    start = seed
    for i in range(seed, max(0, seed - max_expand) - 1, -1):
        if BLOCK_OPENER_RE.search(lines[i]):
            start = i
            break
    return start, end


def expand_to_block_boundary(lines: List[str], seed: int, max_expand: int = MAX_EXPAND) -> Tuple[int, int]:
    """Grow a seed line to its enclosing block: Liquid {% tag %}..{% endtag %} or {...}."""
    text = lines[seed]
    liquid = _LIQUID_TAG_RE.search(text)
    if liquid:
        return _expand_liquid(lines, seed, liquid.group(1), max_expand)
    if "{" in _code_braces(text):
        return _expand_braces(lines, seed, max_expand)
    return seed, seed


def _window(lines: List[str], idx: int, context_lines: int, match_type: str) -> RegionMatch:
    start = max(0, idx - context_lines)
    end = min(len(lines) - 1, idx + context_lines)
    return RegionMatch(start + 1, end + 1, make_snippet(lines, start, end), match_type)


def _block(lines: List[str], idx: int, context_lines: int) -> RegionMatch:
    start, end = expand_to_block_boundary(lines, idx)
    if start == end == idx:
        return _window(lines, idx, context_lines, EXACT)
    return RegionMatch(start + 1, end + 1, make_snippet(lines, start, end), BLOCK_BOUNDARY)


def _opens_block(line: str) -> bool:
    return bool(BLOCK_OPENER_RE.search(line) or "{" in _code_braces(line) or _LIQUID_TAG_RE.search(line))


def extract_region(content: str, hint: str, context_lines: int = DEFAULT_CONTEXT_LINES) -> RegionMatch:
    """Locate the region of content best described by hint ("addToCart", ".hero", "{% schema %}")."""
    lines = content.split("\n")
    hint_lower = (hint or "").lower().strip()
    if not hint_lower:
        return RegionMatch(0, 0, "", NONE)

    # 1. Exact substring; declarations ("function hint", ".hint {", "hint:") first
    hits = [i for i, line in enumerate(lines) if hint_lower in line.lower()]
    if hits:
        escaped = re.escape(hint_lower)
        decl_re = re.compile(
            rf"(?:function|class|const|let|var|def)\s+{escaped}|[.#]{escaped}\s*\{{|{escaped}\s*[:({{]",
            re.IGNORECASE,
        )
        for i in hits:
            if decl_re.search(lines[i]) and _opens_block(lines[i]):
                return _block(lines, i, context_lines)
        first = hits[0]
        if _opens_block(lines[first]):
            return _block(lines, first, context_lines)
        return _window(lines, first, context_lines, EXACT)

    # 2. Token overlap
    tokens = [t for t in re.split(r"\W+", hint_lower) if len(t) > 1]
    best_line, best_score = -1, 0
    for i, line in enumerate(lines):
        lower = line.lower()
        score = sum(1 for t in tokens if t in lower)
        if score > best_score:
            best_line, best_score = i, score
    if best_line >= 0:
        return _window(lines, best_line, context_lines, FUZZY)

    return RegionMatch(0, 0, "", NONE)
