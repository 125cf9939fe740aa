"""Lexical relevance helpers: TF-IDF re-ranking, fuzzy path scoring, best-region excerpts."""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from tools.synonyms import SynonymTable

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_SEGMENT_SPLIT_RE = re.compile(r"[/._\-\s]+")


def tokenize(text: str) -> List[str]:
    return [t for t in _TOKEN_RE.findall((text or "").lower()) if len(t) > 1]


@dataclass
class SearchMatch:
    """One pattern-search hit."""
    file_id: str
    path: str
    line: int  # 1-based
    content: str  # trimmed line text

    def render(self) -> str:
        return f"{self.path}:{self.line}: {self.content}"


def tfidf_rerank(matches: List[SearchMatch], documents: Dict[str, str], query: str) -> List[SearchMatch]:
    """Order matches by TF-IDF relevance of their file to the query terms,
    boosted by how many query terms the matching line itself contains.
    Ties keep scan order.
    """
    terms = sorted(set(tokenize(query)))
    if len(matches) < 2 or not terms:
        return matches
    doc_ids = list(documents)
    counts = np.zeros((len(doc_ids), len(terms)), dtype=np.float64)
    lengths = np.ones(len(doc_ids), dtype=np.float64)
    for i, fid in enumerate(doc_ids):
        tokens = tokenize(documents[fid])
        lengths[i] = max(len(tokens), 1)
        c = Counter(tokens)
        for j, term in enumerate(terms):
            counts[i, j] = c.get(term, 0)
    tf = counts / lengths[:, None]
    df = np.count_nonzero(counts, axis=0)
    idf = np.log((1 + len(doc_ids)) / (1 + df)) + 1.0
    doc_scores = dict(zip(doc_ids, (tf * idf).sum(axis=1)))

    scores = np.empty(len(matches), dtype=np.float64)
    for k, m in enumerate(matches):
        line_tokens = set(tokenize(m.content))
        line_hits = sum(1 for t in terms if t in line_tokens)
        scores[k] = doc_scores.get(m.file_id, 0.0) * (1 + line_hits) + line_hits * 1e-6
    order = np.argsort(-scores, kind="stable")
    return [matches[i] for i in order]


def fuzzy_path_score(path: str, query: str, synonyms: Optional[SynonymTable] = None) -> float:
    """Score a path against a free-text query.

    Exact file stem +10, whole path segment +5 per word, filename substring +3
    per word, synonym segment +2 per word.
    """
    words = tokenize(query)
    if not words:
        return 0.0
    lower = path.lower()
    name = lower.rsplit("/", 1)[-1]
    stem = name.rsplit(".", 1)[0]
    segments = set(s for s in _SEGMENT_SPLIT_RE.split(lower) if s)
    score = 0.0
    joined = "-".join(words)
    if stem == joined or stem == "".join(words) or stem.replace("_", "-") == joined:
        score += 10
    for w in words:
        if w in segments:
            score += 5
        if w in name:
            score += 3
        elif synonyms is not None:
            for syn in synonyms.related(w):
                if syn in segments or syn in stem:
                    score += 2
                    break
    return score


def best_region(content: str, query: str, context_lines: int = 3) -> Tuple[int, int, List[str]]:
    """Window of lines around the line with the highest query-token overlap.

    Returns (start_line, end_line, lines) with 1-based inclusive line numbers.
    Falls back to the top of the file when no line shares a token with the query.
    """
    lines = content.split("\n")
    tokens = set(tokenize(query))
    best_idx, best_score = 0, 0
    if tokens:
        for i, line in enumerate(lines):
            line_tokens = set(tokenize(line))
            score = len(tokens & line_tokens)
            if score == 0:
                lower = line.lower()
                score = sum(0.5 for t in tokens if t in lower)
            if score > best_score:
                best_idx, best_score = i, score
    if best_score == 0:
        end = min(len(lines), 2 * context_lines + 1)
        return 1, end, lines[:end]
    start = max(0, best_idx - context_lines)
    end = min(len(lines) - 1, best_idx + context_lines)
    return start + 1, end + 1, lines[start:end + 1]


def normalize_scores(scored: Sequence[Tuple[str, float]]) -> Dict[str, float]:
    """Scale positive scores into (0, 1] by the maximum."""
    positive = [(k, s) for k, s in scored if s > 0]
    if not positive:
        return {}
    top = max(s for _, s in positive)
    return {k: s / top for k, s in positive}
