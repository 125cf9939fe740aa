"""Tests for the tool dispatcher: routing, input errors, fault containment."""

import asyncio

import pytest

from config import AppConfig
from tools import dispatch
from tools._common import ToolCall, ToolResult
from tools.dispatch import TOOL_IMPLEMENTATIONS, ToolDispatcher
from tools.schemas import READ_ONLY_TOOLS, TOOL_DEFINITIONS, TOOLS_BY_NAME, WORKER_TOOL_DEFINITIONS


def test_every_declared_tool_has_a_handler():
    assert set(TOOLS_BY_NAME) == set(TOOL_IMPLEMENTATIONS)
    assert len(TOOL_DEFINITIONS) == 17


def test_worker_tools_are_read_only():
    names = {t["name"] for t in WORKER_TOOL_DEFINITIONS}
    assert names <= READ_ONLY_TOOLS
    assert "write_file" not in names
    assert "spawn_workers" not in names


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher):
    result = await dispatcher.execute(ToolCall(id="t1", name="frobnicate", input={}))
    assert result.is_error
    assert result.tool_use_id == "t1"
    assert result.content.startswith("Unknown tool: frobnicate. Available tools: ")
    assert "grep_content" in result.content


@pytest.mark.asyncio
async def test_alias_is_normalized(dispatcher):
    result = await dispatcher.execute(ToolCall(id="t2", name="grep", input={"pattern": "addToCart"}))
    assert not result.is_error
    assert "assets/cart.js:1:" in result.content


@pytest.mark.asyncio
async def test_missing_required_input(dispatcher):
    result = await dispatcher.execute(ToolCall(id="t3", name="read_lines", input={"file_path": "assets/cart.js"}))
    assert result.is_error
    assert result.content == "Missing required input(s) for read_lines: start_line, end_line"


@pytest.mark.asyncio
async def test_non_object_input(dispatcher):
    result = await dispatcher.execute(ToolCall(id="t4", name="read_file", input="assets/cart.js"))
    assert result.is_error
    assert result.content.startswith("Invalid arguments for read_file")


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_result(dispatcher, monkeypatch):
    async def broken(**kw):
        raise RuntimeError("index corrupted")

    monkeypatch.setitem(dispatch.TOOL_IMPLEMENTATIONS, "list_files", broken)
    result = await dispatcher.execute(ToolCall(id="t5", name="list_files", input={}))
    assert result.is_error
    assert result.tool_use_id == "t5"
    assert result.content == "Tool error (RuntimeError): index corrupted"


@pytest.mark.asyncio
async def test_unexpected_argument_reported(dispatcher, monkeypatch):
    async def strict(file_id, *, ctx):
        return ToolResult(content=file_id)

    monkeypatch.setitem(dispatch.TOOL_IMPLEMENTATIONS, "read_file", strict)
    result = await dispatcher.execute(ToolCall(id="t6", name="read_file", input={"file_id": "a", "bogus": 1}))
    assert result.is_error
    assert result.content.startswith("Invalid arguments for read_file:")


@pytest.mark.asyncio
async def test_handler_returning_nothing(dispatcher, monkeypatch):
    async def silent(**kw):
        return None

    monkeypatch.setitem(dispatch.TOOL_IMPLEMENTATIONS, "list_files", silent)
    result = await dispatcher.execute(ToolCall(id="t7", name="list_files", input={}))
    assert result.is_error
    assert result.tool_use_id == "t7"


@pytest.mark.asyncio
async def test_long_output_truncated(working_set, session):
    dispatcher = ToolDispatcher(working_set, session, app=AppConfig(max_result_chars=40))
    result = await dispatcher.execute(ToolCall(id="t8", name="read_file", input={"file_id": "sections/header.liquid"}))
    assert result.content.startswith("File: sections/header.liquid")
    assert "\n... [truncated " in result.content
    assert len(result.content.split("\n... [truncated ")[0]) == 40


@pytest.mark.asyncio
async def test_one_result_per_call(dispatcher):
    calls = [
        ToolCall(id=f"c{i}", name=name, input=inputs)
        for i, (name, inputs) in enumerate([
            ("read_file", {"file_id": "cart.js"}),
            ("glob_files", {"pattern": "*.liquid"}),
            ("nope", {}),
            ("read_lines", {}),
            ("semantic_search", {"query": "header"}),
        ])
    ]
    results = await asyncio.gather(*(dispatcher.execute(c) for c in calls))
    assert [r.tool_use_id for r in results] == [c.id for c in calls]
    assert [r.is_error for r in results] == [False, False, True, True, False]


@pytest.mark.asyncio
async def test_read_only_execution_refuses_writes(dispatcher, working_set):
    result = await dispatcher.execute_read_only("w1", "write_file", {"file_name": "x.liquid", "content": "x"})
    assert result.is_error
    assert result.tool_use_id == "w1"
    assert working_set.resolve("x.liquid") is None

    ok = await dispatcher.execute_read_only("w2", "read_file", {"file_id": "cart.js"})
    assert not ok.is_error


@pytest.mark.asyncio
async def test_scratchpad_round_trip(dispatcher):
    await dispatcher.execute(ToolCall(id="s1", name="update_scratchpad", input={"content": "plan: fix header"}))
    result = await dispatcher.execute(ToolCall(id="s2", name="read_scratchpad", input={}))
    assert result.content == "plan: fix header"


def test_tool_result_message_block():
    block = ToolResult(content="boom", is_error=True, tool_use_id="x").to_message_block()
    assert block == {"type": "tool_result", "tool_use_id": "x", "content": "boom", "is_error": True}
