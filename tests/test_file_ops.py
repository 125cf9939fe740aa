"""Tests for read/edit/write file tools and their guardrails."""

import pytest

from backend import InMemoryBackend, is_stub, make_stub
from tools.dispatch import ToolDispatcher
from tools.search_ops import grep_content
from tools._common import ToolContext
from workspace import WorkingSet
from conftest import CART_JS, HEADER_LIQUID, IMAGE_BANNER_LIQUID, content_of
from tools.file_ops import (
    delete_file, edit_lines, extract_region, parallel_batch_read, read_file, read_lines,
    rename_file, search_replace, undo_edit, write_file,
)


class TestReads:

    @pytest.mark.asyncio
    async def test_read_file_numbers_lines(self, ctx):
        result = await read_file("cart.js", ctx=ctx)
        lines = result.content.splitlines()
        assert lines[0] == "File: assets/cart.js (javascript, 11 lines)"
        assert lines[1] == "   1 | function addToCart(variantId, quantity) {"

    @pytest.mark.asyncio
    async def test_read_file_not_found(self, ctx):
        result = await read_file("sections/footer.liquid", ctx=ctx)
        assert result.is_error
        assert result.content.startswith("File not found: sections/footer.liquid.")

    @pytest.mark.asyncio
    async def test_read_lines_adds_padding(self, ctx):
        result = await read_lines("assets/cart.js", 8, 8, ctx=ctx)
        lines = result.content.splitlines()
        assert lines[0] == "assets/cart.js lines 6-10 of 11:"
        assert "   8 | function updateCartCount(count) {" in lines

    @pytest.mark.asyncio
    async def test_read_lines_rejects_bad_range(self, ctx):
        result = await read_lines("assets/cart.js", 5, 2, ctx=ctx)
        assert result.is_error

    @pytest.mark.asyncio
    async def test_parallel_batch_read(self, ctx):
        result = await parallel_batch_read([
            {"file_path": "assets/cart.js", "start_line": 1, "end_line": 1},
            {"file_path": "missing.liquid", "start_line": 1, "end_line": 2},
        ], ctx=ctx)
        assert not result.is_error
        parts = result.content.split("\n\n")
        assert parts[0].startswith("[1] assets/cart.js lines 1-3 of 11:")
        assert parts[1].startswith("[2] File not found: missing.liquid")

    @pytest.mark.asyncio
    async def test_parallel_batch_read_limit(self, ctx):
        chunks = [{"file_path": "assets/cart.js", "start_line": 1, "end_line": 1}] * 11
        result = await parallel_batch_read(chunks, ctx=ctx)
        assert result.is_error

    @pytest.mark.asyncio
    async def test_extract_region_tool(self, ctx):
        result = await extract_region("assets/cart.js", "addToCart", ctx=ctx)
        lines = result.content.splitlines()
        assert lines[:3] == ["File: assets/cart.js", "Match type: block-boundary", "Lines: 1-6"]

    @pytest.mark.asyncio
    async def test_extract_region_no_match_is_not_an_error(self, ctx):
        result = await extract_region("assets/cart.js", "zzqx", ctx=ctx)
        assert not result.is_error
        assert result.content.startswith('No region matching "zzqx" in assets/cart.js.')


class TestSearchReplace:

    @pytest.mark.asyncio
    async def test_replace_persists_and_updates_working_set(self, ctx, backend, working_set):
        result = await search_replace("sections/image-banner.liquid", "<h1>", "<h2>", ctx=ctx)
        assert not result.is_error
        assert "matched by Simple" in result.content
        expected = IMAGE_BANNER_LIQUID.replace("<h1>", "<h2>")
        assert content_of(backend, working_set, "sections/image-banner.liquid") == expected
        assert working_set.resolve("sections/image-banner.liquid").content == expected

        reread = await read_lines("sections/image-banner.liquid", 2, 2, ctx=ctx)
        assert "<h2>{{ section.settings.heading }}</h1>" in reread.content

    @pytest.mark.asyncio
    async def test_multiple_matches_warns(self, ctx):
        await write_file("snippets/values.liquid", "a = 1\nb = 1\na = 1\n", ctx=ctx)
        result = await search_replace("snippets/values.liquid", "a = 1", "a = 2", ctx=ctx)
        assert "old_text matched 2 locations; only the first occurrence was replaced" in result.content
        assert ctx.working_set.resolve("snippets/values.liquid").content == "a = 2\nb = 1\na = 1\n"

    @pytest.mark.asyncio
    async def test_not_found(self, ctx):
        result = await search_replace("assets/cart.js", "removeFromCart", "x", ctx=ctx)
        assert result.is_error
        assert "read_lines" in result.content

    @pytest.mark.asyncio
    async def test_identical_texts(self, ctx):
        result = await search_replace("assets/cart.js", "addToCart", "addToCart", ctx=ctx)
        assert result.is_error

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_content_untouched(self, ctx, backend, working_set, session):
        backend.fail_writes = "disk full"
        result = await search_replace("assets/cart.js", "addToCart", "addItem", ctx=ctx)
        assert result.is_error
        assert result.content == "Write failed: disk full"
        assert working_set.resolve("assets/cart.js").content == CART_JS
        assert content_of(backend, working_set, "assets/cart.js") == CART_JS
        assert session.revert_history == {}

    @pytest.mark.asyncio
    async def test_undo_restores_first_version(self, ctx, backend, working_set):
        await search_replace("assets/cart.js", "addToCart", "addItem", ctx=ctx)
        await search_replace("assets/cart.js", "addItem", "addLine", ctx=ctx)
        result = await undo_edit("assets/cart.js", ctx=ctx)
        assert not result.is_error
        assert content_of(backend, working_set, "assets/cart.js") == CART_JS
        again = await undo_edit("assets/cart.js", ctx=ctx)
        assert again.is_error


class TestEditLines:

    @pytest.mark.asyncio
    async def test_replace_one_line(self, ctx, working_set):
        result = await edit_lines("sections/image-banner.liquid", 2, 2, "  <h2>Hi</h2>", ctx=ctx)
        assert not result.is_error
        assert working_set.resolve("sections/image-banner.liquid").content == '<div class="hero">\n  <h2>Hi</h2>\n</div>\n'

    @pytest.mark.asyncio
    async def test_invalid_range(self, ctx):
        result = await edit_lines("sections/image-banner.liquid", 3, 40, "x", ctx=ctx)
        assert result.is_error
        assert "read_lines" in result.content

    @pytest.mark.asyncio
    async def test_rejects_removing_most_of_file(self, ctx, working_set):
        n = len(HEADER_LIQUID.split("\n"))
        result = await edit_lines("sections/header.liquid", 1, n, "x", ctx=ctx)
        assert result.is_error
        assert working_set.resolve("sections/header.liquid").content == HEADER_LIQUID


class TestWriteFile:

    @pytest.mark.asyncio
    async def test_create(self, ctx, backend):
        result = await write_file("snippets/badge.liquid", "<span class=\"badge\"></span>\n", ctx=ctx)
        assert result.content == "Created snippets/badge.liquid (28 bytes)."
        assert backend.content_of("snippets/badge.liquid") == "<span class=\"badge\"></span>\n"
        assert ctx.working_set.resolve("badge.liquid") is not None

    @pytest.mark.asyncio
    async def test_rejects_empty_content(self, ctx):
        result = await write_file("snippets/badge.liquid", "   \n", ctx=ctx)
        assert result.is_error
        assert "empty" in result.content

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../outside.liquid", "/etc/passwd", "C:/theme.liquid"])
    async def test_rejects_unsafe_paths(self, ctx, path):
        result = await write_file(path, "content", ctx=ctx)
        assert result.is_error
        assert result.content.startswith("Invalid file path")

    @pytest.mark.asyncio
    async def test_rejects_drastic_shrink(self, ctx, backend, working_set):
        result = await write_file("sections/header.liquid", "<header></header>\n", ctx=ctx)
        assert result.is_error
        assert "search_replace" in result.content
        assert content_of(backend, working_set, "sections/header.liquid") == HEADER_LIQUID

    @pytest.mark.asyncio
    async def test_overwrite(self, ctx, working_set):
        new = HEADER_LIQUID.replace("site-header", "page-header")
        result = await write_file("sections/header.liquid", new, ctx=ctx)
        assert result.content.startswith("Overwrote sections/header.liquid")
        assert working_set.resolve("sections/header.liquid").content == new

    @pytest.mark.asyncio
    async def test_rejects_oversized_content(self, ctx):
        result = await write_file("assets/huge.css", "a" * (1024 * 1024 + 1), ctx=ctx)
        assert result.is_error


class TestDeleteRename:

    @pytest.mark.asyncio
    async def test_delete(self, ctx, backend, working_set):
        file_id = working_set.resolve("assets/theme.css").file_id
        result = await delete_file("assets/theme.css", ctx=ctx)
        assert result.content == "Deleted assets/theme.css."
        assert working_set.resolve("assets/theme.css") is None
        assert backend.content_of(file_id) is None

    @pytest.mark.asyncio
    async def test_delete_failure_reported(self, ctx, backend, working_set):
        backend.fail_writes = "read-only theme"
        result = await delete_file("assets/theme.css", ctx=ctx)
        assert result.is_error
        assert result.content == "Delete failed: read-only theme"
        assert working_set.resolve("assets/theme.css") is not None

    @pytest.mark.asyncio
    async def test_rename(self, ctx, working_set):
        result = await rename_file("assets/cart.js", "assets/cart-drawer.js", ctx=ctx)
        assert result.content == "Renamed assets/cart.js -> assets/cart-drawer.js."
        f = working_set.resolve("assets/cart-drawer.js")
        assert f is not None
        assert f.file_name == "cart-drawer.js"
        assert working_set.resolve("assets/cart.js") is None

    @pytest.mark.asyncio
    async def test_rename_onto_existing_file(self, ctx):
        result = await rename_file("assets/cart.js", "assets/theme.css", ctx=ctx)
        assert result.is_error
        assert result.content.startswith("Rename failed")


@pytest.mark.asyncio
async def test_stub_that_cannot_be_hydrated(session):
    backend = InMemoryBackend({"sections/a.liquid": "a"})
    working_set = WorkingSet(backend)
    working_set.files[0].file_id = "gone"
    ctx = ToolContext(working_set=working_set, session=session)
    result = await read_file("sections/a.liquid", ctx=ctx)
    assert result.is_error
    assert result.content.startswith("Cannot load content for sections/a.liquid")


SETTINGS_SCHEMA_JSON = '[\n  {\n    "name": "theme_info",\n    "theme_version": "1.0.0"\n  }\n]\n'


def test_is_stub_matches_placeholder_shape_only():
    assert is_stub(make_stub(4821))
    assert is_stub(None)
    assert not is_stub("[1, 2]")
    assert not is_stub(SETTINGS_SCHEMA_JSON)
    assert not is_stub("[4821 chars - not loaded] plus more")


class TestJsonArrayFiles:

    @pytest.fixture
    def schema_ctx(self, session):
        backend = InMemoryBackend({"config/settings_schema.json": SETTINGS_SCHEMA_JSON})
        return ToolDispatcher(WorkingSet(backend), session).context

    @pytest.mark.asyncio
    async def test_read_file(self, schema_ctx):
        result = await read_file("config/settings_schema.json", ctx=schema_ctx)
        assert not result.is_error
        assert '"name": "theme_info"' in result.content

    @pytest.mark.asyncio
    async def test_grep_content(self, schema_ctx):
        result = await grep_content("theme_info", ctx=schema_ctx)
        assert "config/settings_schema.json:3:" in result.content

    @pytest.mark.asyncio
    async def test_search_replace(self, schema_ctx):
        result = await search_replace("config/settings_schema.json", "theme_info", "theme_meta", ctx=schema_ctx)
        assert not result.is_error
        f = schema_ctx.working_set.resolve("config/settings_schema.json")
        assert f.content == SETTINGS_SCHEMA_JSON.replace("theme_info", "theme_meta")


@pytest.mark.asyncio
async def test_create_at_path_freed_by_rename(session):
    backend = InMemoryBackend()
    # ids equal to paths, as the local backend assigns them
    backend.add("sections/a.liquid", "<div>old</div>\n", file_id="sections/a.liquid")
    working_set = WorkingSet(backend)
    ctx = ToolDispatcher(working_set, session).context

    await rename_file("sections/a.liquid", "sections/b.liquid", ctx=ctx)
    result = await write_file("sections/a.liquid", "<div>new</div>\n", ctx=ctx)
    assert result.content.startswith("Created sections/a.liquid")

    created = working_set.resolve("sections/a.liquid")
    renamed = working_set.resolve("sections/b.liquid")
    assert created.path == "sections/a.liquid"
    assert created.file_id != renamed.file_id
    assert len({f.file_id for f in working_set}) == len(working_set)
    assert "<div>new</div>" in (await read_file("sections/a.liquid", ctx=ctx)).content
    assert "<div>old</div>" in (await read_file("sections/b.liquid", ctx=ctx)).content
    assert backend.content_of(renamed.file_id) == "<div>old</div>\n"
