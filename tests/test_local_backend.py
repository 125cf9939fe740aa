"""Tests for the local directory backend and the CLI."""

import pytest

from backend import LocalBackend, PersistenceError
from cli import main, parse_inputs
from workspace import WorkingSet


@pytest.fixture
def theme_dir(tmp_path):
    (tmp_path / "sections").mkdir()
    (tmp_path / "sections" / "header.liquid").write_text("<header>{{ shop.name }}</header>\n", encoding="utf-8")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "theme.css").write_text(".hero { color: red; }\n", encoding="utf-8")
    (tmp_path / "assets" / "logo.png").write_bytes(b"\x89PNG")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("x", encoding="utf-8")
    (tmp_path / "tmp").mkdir()
    (tmp_path / "tmp" / "scratch.liquid").write_text("x", encoding="utf-8")
    (tmp_path / ".gitignore").write_text("tmp/\n", encoding="utf-8")
    return tmp_path


class TestLocalBackend:

    def test_listing_skips_ignored_files(self, theme_dir):
        paths = [f.path for f in LocalBackend(str(theme_dir)).list_files()]
        assert paths == [".gitignore", "assets/theme.css", "sections/header.liquid"]

    @pytest.mark.asyncio
    async def test_hydrate_and_write(self, theme_dir):
        backend = LocalBackend(str(theme_dir))
        ws = WorkingSet(backend)
        f = ws.resolve("header.liquid")
        assert f.is_stub
        assert await ws.read(f) == "<header>{{ shop.name }}</header>\n"

        await backend.write_content(f.file_id, f.path, "<header></header>\n")
        assert (theme_dir / "sections" / "header.liquid").read_text(encoding="utf-8") == "<header></header>\n"

    @pytest.mark.asyncio
    async def test_rename_then_hydrate(self, theme_dir):
        backend = LocalBackend(str(theme_dir))
        await backend.rename("assets/theme.css", "assets/theme.css", "assets/base.css")
        loaded = await backend.hydrate(["assets/theme.css"])
        assert loaded == {"assets/theme.css": ".hero { color: red; }\n"}

    @pytest.mark.asyncio
    async def test_create_at_path_freed_by_rename(self, theme_dir):
        ws = WorkingSet(LocalBackend(str(theme_dir)))
        await ws.rename(ws.resolve("assets/theme.css"), "assets/base.css")
        created = await ws.create("assets/theme.css", ".new { color: blue; }\n")

        renamed = ws.resolve("assets/base.css")
        assert created.file_id != renamed.file_id
        assert ws.resolve("assets/theme.css") is created
        assert (theme_dir / "assets" / "theme.css").read_text(encoding="utf-8") == ".new { color: blue; }\n"
        assert (theme_dir / "assets" / "base.css").read_text(encoding="utf-8") == ".hero { color: red; }\n"

        loaded = await ws.backend.hydrate([renamed.file_id, created.file_id])
        assert loaded[renamed.file_id] == ".hero { color: red; }\n"
        assert loaded[created.file_id] == ".new { color: blue; }\n"

    @pytest.mark.asyncio
    async def test_json_array_file_is_not_a_stub(self, theme_dir):
        (theme_dir / "config").mkdir()
        (theme_dir / "config" / "settings_schema.json").write_text('[\n  {"name": "theme_info"}\n]\n', encoding="utf-8")
        ws = WorkingSet(LocalBackend(str(theme_dir)))
        assert await ws.read(ws.resolve("settings_schema.json")) == '[\n  {"name": "theme_info"}\n]\n'

    @pytest.mark.asyncio
    async def test_write_outside_directory_rejected(self, theme_dir):
        backend = LocalBackend(str(theme_dir / "sections"))
        with pytest.raises(PersistenceError):
            await backend.write_content("x", "../../escape.liquid", "x")

    @pytest.mark.asyncio
    async def test_delete_missing_file(self, theme_dir):
        with pytest.raises(PersistenceError):
            await LocalBackend(str(theme_dir)).delete("nope", "sections/nope.liquid")


class TestCli:

    def test_parse_inputs(self):
        inputs = parse_inputs('{"pattern": "hero"}', ["max_results=5", "file_pattern=assets/*", "replace_all=true"])
        assert inputs == {"pattern": "hero", "max_results": 5, "file_pattern": "assets/*", "replace_all": True}

    def test_parse_inputs_rejects_bad_pair(self):
        with pytest.raises(ValueError):
            parse_inputs("", ["no-equals-sign"])

    def test_parse_inputs_rejects_non_object(self):
        with pytest.raises(ValueError):
            parse_inputs("[1, 2]", [])

    def test_runs_a_tool(self, theme_dir, capsys):
        code = main(["--dir", str(theme_dir), "grep_content", "pattern=hero"])
        assert code == 0
        assert "assets/theme.css:1:" in capsys.readouterr().out

    def test_tool_error_exit_code(self, theme_dir, capsys):
        code = main(["--dir", str(theme_dir), "read_file", "file_id=sections/footer.liquid"])
        assert code == 1
        assert "File not found" in capsys.readouterr().out

    def test_missing_directory(self, tmp_path):
        assert main(["--dir", str(tmp_path / "missing"), "list_files"]) == 2

    def test_list_tools(self, capsys):
        assert main(["--list-tools"]) == 0
        assert "spawn_workers" in capsys.readouterr().out


def test_ignore_rules(theme_dir):
    from tools.gitignore import IgnoreRules
    rules = IgnoreRules.for_directory(str(theme_dir))
    assert rules.skips_dir("tmp")
    assert rules.skips_dir("assets/node_modules")
    assert not rules.skips_dir("sections")
    assert rules.skips_file("assets/logo.PNG")
    assert not rules.skips_file("sections/header.liquid")
    assert IgnoreRules.for_directory(str(theme_dir)) is rules
