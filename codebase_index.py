"""
Optional vector-similarity search over file content embeddings.

Files are embedded per content hash (Bedrock Cohere Embed by default) and
ranked by cosine similarity. When no embedding collaborator is configured,
UnavailableVectorSearch is used and semantic search runs lexical-only.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from backend import FileContext

logger = logging.getLogger(__name__)

# Chunk text max length for embedding (Cohere ~512 tokens, ~1500 chars safe)
CHUNK_TEXT_MAX = 1500

EmbedFn = Callable[..., List[List[float]]]


def _file_content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def _embedding_text(f: FileContext) -> str:
    return f"{f.path}\n{f.content[:CHUNK_TEXT_MAX]}"


@dataclass
class _Entry:
    content_hash: str
    embedding: List[float]


class VectorSearch(ABC):
    """Ranks files by embedding similarity to a query."""

    available: bool = True

    @abstractmethod
    def search(self, query: str, files: List[FileContext], limit: int = 10) -> List[Tuple[str, float]]:
        """Return [(file_id, similarity)] best first. Only hydrated files are considered."""

    def notify_file_changed(self, file_id: str) -> None:
        pass


class UnavailableVectorSearch(VectorSearch):
    """No-op vector search used when embeddings are not configured."""

    available = False

    def search(self, query: str, files: List[FileContext], limit: int = 10) -> List[Tuple[str, float]]:
        return []


class EmbeddingIndex(VectorSearch):
    """In-memory embedding index keyed by file id, refreshed by content hash."""

    def __init__(self, embed_fn: EmbedFn):
        self.embed_fn = embed_fn
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def notify_file_changed(self, file_id: str) -> None:
        self._entries.pop(file_id, None)

    def refresh(self, files: List[FileContext]) -> int:
        """Embed files whose content changed since last time. Returns count embedded."""
        stale: List[FileContext] = []
        for f in files:
            if f.is_stub or not f.content.strip():
                continue
            entry = self._entries.get(f.file_id)
            if entry is None or entry.content_hash != _file_content_hash(f.content):
                stale.append(f)
        if not stale:
            return 0
        vectors = self.embed_fn([_embedding_text(f) for f in stale], input_type="search_document")
        for f, vec in zip(stale, vectors):
            if vec:
                self._entries[f.file_id] = _Entry(_file_content_hash(f.content), list(vec))
        logger.info("Embedded %d file(s)", len(stale))
        return len(stale)

    def search(self, query: str, files: List[FileContext], limit: int = 10) -> List[Tuple[str, float]]:
        """Semantic search: return top files most similar to query."""
        self.refresh(files)
        wanted = {f.file_id for f in files}
        ids = [fid for fid in self._entries if fid in wanted]
        if not ids:
            return []
        query_emb = self.embed_fn([query], input_type="search_query")[0]
        matrix = np.array([self._entries[fid].embedding for fid in ids], dtype=np.float32)
        q = np.array(query_emb, dtype=np.float32)
        norms = np.linalg.norm(matrix, axis=1)
        q_norm = np.linalg.norm(q)
        if q_norm < 1e-9:
            return []
        norms[norms < 1e-9] = np.inf
        sim = (matrix @ q) / (norms * q_norm)
        top_indices = np.argsort(sim)[::-1][:limit]
        return [(ids[i], float(sim[i])) for i in top_indices if sim[i] > 0]


def build_vector_search(enabled: bool, service: Optional[Any] = None) -> VectorSearch:
    """Pick the vector search implementation once, at construction time."""
    if enabled and service is not None and hasattr(service, "embed_texts"):
        return EmbeddingIndex(service.embed_texts)
    if enabled:
        logger.warning("Vector search enabled but no embedding service available; using lexical search only")
    return UnavailableVectorSearch()
