"""Domain synonym table used by search widening.

The table is plain JSON ({term: [related, ...]}) so it can be swapped via
SYNONYM_TABLE_PATH without touching code. Lookups are symmetric: a term
listed as a related word maps back to its key and that key's siblings.
"""

import json
import logging
import re
from functools import lru_cache
from typing import Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z][a-z0-9]*(?:[-_][a-z0-9]+)*")


def extract_terms(text: str) -> List[str]:
    """Lowercase word-like terms (hyphenated words kept whole) from a pattern or path."""
    seen: List[str] = []
    for m in _WORD_RE.finditer((text or "").lower()):
        term = m.group(0).replace("_", "-")
        if len(term) > 1 and term not in seen:
            seen.append(term)
    return seen


class SynonymTable:
    """Bidirectional synonym lookup."""

    def __init__(self, mapping: Dict[str, List[str]]):
        self._groups: Dict[str, Set[str]] = {}
        for key, related in mapping.items():
            key = key.lower()
            group = {key, *(r.lower() for r in related)}
            for term in group:
                self._groups.setdefault(term, set()).update(group)

    @classmethod
    def from_file(cls, path: str) -> "SynonymTable":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Synonym table must be a JSON object: {path}")
        return cls({str(k): [str(v) for v in vals] for k, vals in data.items()})

    def __contains__(self, term: str) -> bool:
        return term.lower() in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def related(self, term: str) -> List[str]:
        """Synonyms of term, excluding the term itself, sorted for stable output."""
        term = term.lower()
        return sorted(self._groups.get(term, set()) - {term})

    def expand_filter(self, file_filter: str) -> List[Tuple[str, str, str]]:
        """Rewrite a path filter by substituting synonyms for its terms.

        Returns [(variant_filter, original_term, synonym)].
        """
        variants: List[Tuple[str, str, str]] = []
        lowered = file_filter.lower()
        for term in extract_terms(file_filter):
            if term not in self:
                continue
            for syn in self.related(term):
                variant = lowered.replace(term, syn)
                if variant != lowered and all(v[0] != variant for v in variants):
                    variants.append((variant, term, syn))
        return variants


@lru_cache(maxsize=8)
def load_synonyms(path: Optional[str] = None) -> SynonymTable:
    """Load (and cache) the synonym table from path or the configured default."""
    if path is None:
        from config import search_config
        path = search_config.synonym_table_path
    try:
        table = SynonymTable.from_file(path)
    except (OSError, ValueError) as e:
        logger.warning(f"Synonym table unavailable ({path}): {e}")
        return SynonymTable({})
    logger.debug(f"Loaded {len(table)} synonym terms from {path}")
    return table
