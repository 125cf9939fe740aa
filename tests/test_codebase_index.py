"""Tests for the embedding index."""

import pytest

from backend import FileContext
from codebase_index import EmbeddingIndex, UnavailableVectorSearch, build_vector_search

VOCAB = ["cart", "header", "hero"]


class KeywordEmbedder:
    """Embeds text as keyword counts so similarities are predictable."""

    def __init__(self):
        self.calls = []

    def __call__(self, texts, input_type="search_document"):
        self.calls.append((input_type, len(texts)))
        return [[float(t.lower().count(w)) for w in VOCAB] for t in texts]


def _files():
    return [
        FileContext("f1", "snippets/mini-cart.liquid", content="cart cart items"),
        FileContext("f2", "sections/header.liquid", content="header nav"),
        FileContext("f3", "sections/hero.liquid", content="[120 chars - not loaded]"),
    ]


def test_ranks_by_cosine_similarity():
    index = EmbeddingIndex(KeywordEmbedder())
    results = index.search("cart", _files())
    assert [fid for fid, _ in results] == ["f1"]
    assert results[0][1] == pytest.approx(1.0, abs=1e-3)


def test_stubs_are_not_embedded():
    index = EmbeddingIndex(KeywordEmbedder())
    index.refresh(_files())
    assert len(index) == 2


def test_unchanged_files_are_not_re_embedded():
    embedder = KeywordEmbedder()
    index = EmbeddingIndex(embedder)
    files = _files()
    assert index.refresh(files) == 2
    assert index.refresh(files) == 0
    files[1].content = "header header hero"
    assert index.refresh(files) == 1


def test_changed_file_is_dropped_until_refresh():
    index = EmbeddingIndex(KeywordEmbedder())
    index.refresh(_files())
    index.notify_file_changed("f1")
    assert len(index) == 1


def test_zero_query_vector_returns_nothing():
    index = EmbeddingIndex(KeywordEmbedder())
    assert index.search("checkout", _files()) == []


def test_build_vector_search_without_service():
    assert isinstance(build_vector_search(True, None), UnavailableVectorSearch)
    assert not build_vector_search(False, object()).available
