"""
CLI entry point for the theme tool runtime.

Run one tool call against a local project directory:

    theme-tools --dir ./my-theme grep_content --input '{"pattern": "mini-cart"}'
    theme-tools --dir ./my-theme read_lines file_path=sections/header.liquid start_line=10 end_line=40
    theme-tools --list-tools
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from typing import Any, Dict, List

from backend import LocalBackend
from codebase_index import build_vector_search
from config import app_config, get_credentials_info
from sessions import SessionStore
from tools._common import ToolCall, ToolResult
from tools.dispatch import ToolDispatcher
from tools.schemas import TOOL_DEFINITIONS
from workspace import WorkingSet

logger = logging.getLogger(__name__)


def _coerce(value: str) -> Any:
    """key=value values: JSON when it parses (numbers, booleans, lists), else the raw string."""
    try:
        return json.loads(value)
    except ValueError:
        return value


def parse_inputs(raw_json: str, pairs: List[str]) -> Dict[str, Any]:
    inputs: Dict[str, Any] = {}
    if raw_json:
        loaded = json.loads(raw_json)
        if not isinstance(loaded, dict):
            raise ValueError("--input must be a JSON object")
        inputs.update(loaded)
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        inputs[key.strip()] = _coerce(value)
    return inputs


def _build_dispatcher(args: argparse.Namespace) -> ToolDispatcher:
    backend = LocalBackend(args.dir)
    working_set = WorkingSet(backend)
    session = SessionStore().get(args.session)
    reasoning = None
    if args.vector or args.workers:
        from bedrock_service import BedrockService
        logger.info(get_credentials_info())
        reasoning = BedrockService()
    vector_search = build_vector_search(args.vector or app_config.vector_search_enabled, reasoning)
    logger.info(f"Loaded {len(working_set)} file(s) from {backend.working_directory}")
    return ToolDispatcher(
        working_set,
        session,
        vector_search=vector_search,
        reasoning=reasoning if args.workers else None,
        on_progress=lambda event: logger.info(f"[{event.worker_id}] {event.status}: {event.label}"),
    )


async def run(args: argparse.Namespace, inputs: Dict[str, Any]) -> ToolResult:
    dispatcher = _build_dispatcher(args)
    call = ToolCall(id=f"cli-{uuid.uuid4().hex[:8]}", name=args.tool, input=inputs)
    return await dispatcher.execute(call)


def main(argv: List[str] = None) -> int:
    parser = argparse.ArgumentParser(description=f"{app_config.title} - run a single tool call")
    parser.add_argument("tool", nargs="?", help="Tool name, e.g. grep_content")
    parser.add_argument("pairs", nargs="*", help="Tool inputs as key=value (values parsed as JSON when possible)")
    parser.add_argument("--dir", default=app_config.working_directory, help="Project directory (default: .)")
    parser.add_argument("--input", default="", help="Tool inputs as a JSON object")
    parser.add_argument("--session", default=None, help="Session id (default: new session)")
    parser.add_argument("--vector", action="store_true", help="Enable embedding-based vector search (Bedrock)")
    parser.add_argument("--workers", action="store_true", help="Enable spawn_workers via Bedrock")
    parser.add_argument("--json", action="store_true", help="Print the tool_result block as JSON")
    parser.add_argument("--list-tools", action="store_true", help="List available tools and exit")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, app_config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.list_tools:
        for tool in TOOL_DEFINITIONS:
            print(f"  {tool['name']:<22} {tool['description'].split('. ')[0]}")
        return 0
    if not args.tool:
        parser.error("a tool name is required (see --list-tools)")

    args.dir = os.path.abspath(os.path.expanduser(args.dir))
    if not os.path.isdir(args.dir):
        print(f"Error: directory not found: {args.dir}", file=sys.stderr)
        return 2

    try:
        inputs = parse_inputs(args.input, args.pairs)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    result = asyncio.run(run(args, inputs))
    if args.json:
        print(json.dumps(result.to_message_block(), indent=2))
    else:
        print(result.content)
    return 1 if result.is_error else 0


if __name__ == "__main__":
    raise SystemExit(main())
