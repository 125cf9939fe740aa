"""Tests for session state, the synonym table, and the working set."""

import json

import pytest

from backend import InMemoryBackend, make_stub
from sessions import SessionState, SessionStore
from tools.synonyms import SynonymTable, extract_terms, load_synonyms
from workspace import WorkingSet


class TestSessions:

    def test_store_returns_same_state_for_id(self):
        store = SessionStore()
        first = store.get("abc")
        first.scratchpad = "notes"
        assert store.get("abc") is first
        assert store.get("other").scratchpad == ""
        assert sorted(store.list_ids()) == ["abc", "other"]

    def test_generated_ids_are_distinct(self):
        store = SessionStore()
        assert store.get().session_id != store.get().session_id

    def test_drop(self):
        store = SessionStore()
        store.get("abc")
        assert store.drop("abc")
        assert not store.drop("abc")

    def test_first_original_wins(self):
        state = SessionState()
        state.remember_original("f1", "v1")
        state.remember_original("f1", "v2")
        assert state.pop_original("f1") == "v1"
        assert state.pop_original("f1") is None

    @pytest.mark.asyncio
    async def test_sessions_do_not_share_scratchpads(self, working_set):
        from tools.session_ops import read_scratchpad, update_scratchpad
        from tools._common import ToolContext

        a = ToolContext(working_set=working_set, session=SessionState())
        b = ToolContext(working_set=working_set, session=SessionState())
        await update_scratchpad("only in a", ctx=a)
        assert (await read_scratchpad(ctx=a)).content == "only in a"
        assert (await read_scratchpad(ctx=b)).content == "(empty)"


class TestSynonyms:

    def test_default_table_is_symmetric(self):
        table = load_synonyms()
        assert "cart" in table.related("basket")
        assert "basket" in table.related("cart")
        assert "basket" not in table.related("basket")

    def test_expand_filter(self):
        table = SynonymTable({"cart": ["basket", "bag"]})
        variants = table.expand_filter("snippets/*basket*")
        assert ("snippets/*cart*", "basket", "cart") in variants
        assert ("snippets/*bag*", "basket", "bag") in variants

    def test_extract_terms_keeps_hyphenated_words(self):
        assert extract_terms("sections/mini_cart-drawer.liquid") == ["sections", "mini-cart-drawer", "liquid"]
        assert extract_terms("*.{css,js}") == ["css", "js"]

    def test_missing_file_gives_empty_table(self, tmp_path):
        table = load_synonyms(str(tmp_path / "missing.json"))
        assert len(table) == 0
        assert table.related("cart") == []

    def test_custom_table_from_file(self, tmp_path):
        path = tmp_path / "synonyms.json"
        path.write_text(json.dumps({"drawer": ["flyout"]}), encoding="utf-8")
        table = load_synonyms(str(path))
        assert table.related("flyout") == ["drawer"]


class TestWorkingSet:

    def test_files_start_as_stubs(self, working_set):
        f = working_set.resolve("assets/cart.js")
        assert f.content.startswith("[")
        assert make_stub(10) == "[10 chars - not loaded]"

    def test_resolve_by_file_name(self, working_set):
        assert working_set.resolve("cart.js").path == "assets/cart.js"
        assert working_set.resolve("nope.js") is None

    def test_in_memory_backend_write_and_read(self):
        backend = InMemoryBackend({"a.liquid": "x"})
        ws = WorkingSet(backend)
        assert len(ws.files) == 1
        assert backend.content_of(ws.files[0].file_id) == "x"
