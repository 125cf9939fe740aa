"""
Multi-tier find/replace matching cascade.

Each strategy yields candidate (start, end) spans of the searched text that
match the find text under a progressively looser notion of equality. The
cascade takes the first strategy that yields anything:

    Simple -> WhitespaceNormalized -> EscapeNormalized -> TrimmedBoundary
           -> ContextAware -> BlockAnchor

BlockAnchor runs last because Levenshtein similarity on middle lines is the
most prone to false positives.
"""

import difflib
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Span = Tuple[int, int]
Strategy = Callable[[str, str], Iterator[Span]]

NOT_FOUND_MESSAGE = (
    "old_text not found in the file. Re-read the file with read_lines to see the exact "
    "current content, then retry with the exact text or use edit_lines with line numbers."
)

SINGLE_CANDIDATE_SIMILARITY = 0.6
MULTI_CANDIDATE_SIMILARITY = 0.5
CONTEXT_MIDDLE_AGREEMENT = 0.5


class ReplaceError(ValueError):
    """The cascade could not apply the edit."""
    pass


@dataclass
class MatchCascadeOutcome:
    """New full content plus diagnostics for one replace call."""
    content: str
    match_count: int
    replacer_used: str
    replaced_count: int = 1
    near_line_ignored: bool = False


# ── Line helpers ─────────────────────────────────────────────────────────────

def _split_lines(text: str) -> Tuple[List[str], List[int]]:
    """Lines of text and the offset at which each starts."""
    lines = text.split("\n")
    starts: List[int] = []
    pos = 0
    for line in lines:
        starts.append(pos)
        pos += len(line) + 1
    return lines, starts


def _find_lines(find: str) -> List[str]:
    lines = find.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


def _block_span(lines: Sequence[str], starts: Sequence[int], first: int, last: int) -> Span:
    return starts[first], starts[last] + len(lines[last])


def _line_blocks(text: str, size: int, predicate: Callable[[List[str]], bool]) -> Iterator[Span]:
    lines, starts = _split_lines(text)
    for i in range(len(lines) - size + 1):
        if predicate(lines[i:i + size]):
            yield _block_span(lines, starts, i, i + size - 1)


def _occurrences(text: str, needle: str) -> Iterator[Span]:
    if not needle:
        return
    start = text.find(needle)
    while start != -1:
        yield start, start + len(needle)
        start = text.find(needle, start + len(needle))


# ── Strategies ───────────────────────────────────────────────────────────────

def simple(text: str, find: str) -> Iterator[Span]:
    yield from _occurrences(text, find)


def _normalize_ws(line: str) -> str:
    return " ".join(line.split())


def whitespace_normalized(text: str, find: str) -> Iterator[Span]:
    """Line-wise match ignoring indentation and runs of whitespace.

    Spans always cover the original, un-normalized lines. A single-line find
    that sits inside a longer line is matched with a whitespace-tolerant regex.
    """
    find_lines = _find_lines(find)
    wanted = [_normalize_ws(line) for line in find_lines]
    if not any(wanted):
        return
    found = False
    for span in _line_blocks(text, len(wanted), lambda block: [_normalize_ws(b) for b in block] == wanted):
        found = True
        yield span
    if found or len(find_lines) != 1:
        return
    words = find_lines[0].split()
    pattern = r"[ \t]+".join(re.escape(w) for w in words)
    for m in re.finditer(pattern, text):
        yield m.span()


_ESCAPE_RE = re.compile(r"\\(n|t|r|'|\"|`|\\|\n|\$)")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\n": "\n"}


def _unescape(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text)


def escape_normalized(text: str, find: str) -> Iterator[Span]:
    """Match after resolving backslash escapes (\\n, \\t, \\", ...) in the find text and content."""
    unescaped = _unescape(find)
    if unescaped != find:
        yield from _occurrences(text, unescaped)
    size = len(unescaped.split("\n"))
    yield from _line_blocks(text, size, lambda block: _unescape("\n".join(block)) == unescaped)


def trimmed_boundary(text: str, find: str) -> Iterator[Span]:
    """Match the find text with leading/trailing blank space removed."""
    trimmed = find.strip()
    if not trimmed or trimmed == find:
        return
    yield from _occurrences(text, trimmed)
    size = len(find.split("\n"))
    yield from _line_blocks(text, size, lambda block: "\n".join(block).strip() == trimmed)


def _anchored_candidates(lines: Sequence[str], first: str, last: str) -> Iterator[Tuple[int, int]]:
    """(i, j) line pairs where line i trims to first and j (>= i+2) is the next line trimming to last."""
    for i, line in enumerate(lines):
        if line.strip() != first:
            continue
        for j in range(i + 2, len(lines)):
            if lines[j].strip() == last:
                yield i, j
                break


def context_aware(text: str, find: str) -> Iterator[Span]:
    """Anchor on exact first/last lines; require half of the middle lines to agree."""
    find_lines = _find_lines(find)
    if len(find_lines) < 3:
        return
    lines, starts = _split_lines(text)
    for i, j in _anchored_candidates(lines, find_lines[0].strip(), find_lines[-1].strip()):
        block = lines[i:j + 1]
        if len(block) != len(find_lines):
            continue
        matching = total = 0
        for b, f in zip(block[1:-1], find_lines[1:-1]):
            b, f = b.strip(), f.strip()
            if b or f:
                total += 1
                if b == f:
                    matching += 1
        if total == 0 or matching / total >= CONTEXT_MIDDLE_AGREEMENT:
            yield _block_span(lines, starts, i, j)


def block_anchor(text: str, find: str) -> Iterator[Span]:
    """Anchor on first/last lines and pick the candidate whose middle lines are most similar."""
    find_lines = _find_lines(find)
    if len(find_lines) < 3:
        return
    lines, starts = _split_lines(text)
    candidates = list(_anchored_candidates(lines, find_lines[0].strip(), find_lines[-1].strip()))
    if not candidates:
        return
    threshold = SINGLE_CANDIDATE_SIMILARITY if len(candidates) == 1 else MULTI_CANDIDATE_SIMILARITY
    best: Optional[Tuple[int, int]] = None
    best_similarity = -1.0
    for i, j in candidates:
        actual_size = j - i + 1
        to_check = min(len(find_lines), actual_size) - 2
        similarity = 0.0
        if to_check > 0:
            for k in range(1, to_check + 1):
                orig, want = lines[i + k].strip(), find_lines[k].strip()
                if not orig and not want:
                    continue
                similarity += difflib.SequenceMatcher(None, orig, want).ratio() / to_check
        else:
            similarity = 1.0
        if similarity > best_similarity:
            best_similarity = similarity
            best = (i, j)
    if best is not None and best_similarity >= threshold:
        yield _block_span(lines, starts, best[0], best[1])


REPLACERS: List[Tuple[str, Strategy]] = [
    ("Simple", simple),
    ("WhitespaceNormalized", whitespace_normalized),
    ("EscapeNormalized", escape_normalized),
    ("TrimmedBoundary", trimmed_boundary),
    ("ContextAware", context_aware),
    ("BlockAnchor", block_anchor),
]


# ── Cascade ──────────────────────────────────────────────────────────────────

def _normalize_spans(text: str, find: str, spans: Iterator[Span]) -> List[Span]:
    """Sort, drop empty/overlapping spans, and swallow the line break a
    line-wise match left behind when the find text ended with one."""
    eat_newline = find.endswith("\n")
    out: List[Span] = []
    for start, end in sorted(set(spans)):
        if end <= start:
            continue
        if eat_newline and text[end - 1] != "\n" and end < len(text) and text[end] == "\n":
            end += 1
        if out and start < out[-1][1]:
            continue
        out.append((start, end))
    return out


def first_success(
    text: str, find: str, replacers: Sequence[Tuple[str, Strategy]] = REPLACERS,
) -> Optional[Tuple[str, List[Span]]]:
    """Run strategies in order; return (name, spans) of the first that matches."""
    for name, strategy in replacers:
        spans = _normalize_spans(text, find, strategy(text, find))
        if spans:
            logger.debug(f"Replacer {name} matched {len(spans)} span(s)")
            return name, spans
    return None


def _window(content: str, near_line: int, radius: int) -> Tuple[str, int]:
    """Text of lines near_line±radius and its offset in content."""
    lines, starts = _split_lines(content)
    center = min(max(near_line - 1, 0), len(lines) - 1)
    lo = max(0, center - radius)
    hi = min(len(lines), center + radius + 1)
    text = "\n".join(lines[lo:hi])
    if hi < len(lines):
        text += "\n"
    return text, starts[lo]


def replace(
    content: str,
    old_text: str,
    new_text: str,
    replace_all: bool = False,
    near_line: Optional[int] = None,
    near_line_window: int = 20,
) -> MatchCascadeOutcome:
    """Apply old_text -> new_text to content using the matching cascade.

    With near_line, matching is first confined to near_line±near_line_window;
    if that window has no match the whole file is searched. When several
    locations match and replace_all is False, only the first is replaced.
    Raises ReplaceError when nothing matches.
    """
    if not old_text:
        raise ReplaceError("old_text is required and cannot be empty.")
    if old_text == new_text:
        raise ReplaceError("No changes to apply: old_text and new_text are identical.")

    hit = None
    near_line_ignored = False
    if near_line:
        window, offset = _window(content, int(near_line), near_line_window)
        hit = first_success(window, old_text)
        if hit is not None:
            name, spans = hit
            hit = name, [(s + offset, e + offset) for s, e in spans]
        else:
            near_line_ignored = True
    if hit is None:
        hit = first_success(content, old_text)
    if hit is None:
        raise ReplaceError(NOT_FOUND_MESSAGE)

    name, spans = hit
    targets = spans if replace_all else spans[:1]
    result = content
    for start, end in reversed(targets):
        result = result[:start] + new_text + result[end:]
    return MatchCascadeOutcome(
        content=result,
        match_count=len(spans),
        replacer_used=name,
        replaced_count=len(targets),
        near_line_ignored=near_line_ignored,
    )
