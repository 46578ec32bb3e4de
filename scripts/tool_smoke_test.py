"""
Smoke test against a live ERP.

Run:
  ERP_BASE=https://erp.example.com ERP_TOKEN=... python scripts/tool_smoke_test.py
  python scripts/tool_smoke_test.py --tool searchProjectNodes --args '{"query": "Tower"}'

Expected:
- Tool list
- One ToolResult per read-only tool (or the single tool asked for)

Mutating tools (createIndent, updateIndentStatus) only run when named
explicitly with --tool.
"""

from __future__ import annotations

import argparse
import asyncio
import json

from erp_adapter.config import get_settings
from erp_adapter.tools.executor import ToolCall, ToolExecutor
from erp_adapter.tools.factory import build_tool_registry
from erp_adapter.upstream.client import UpstreamClient
from erp_adapter.upstream.credentials import CredentialResolver
from erp_adapter.utils.logging import setup_logging

_READ_ONLY = [
    "generateIndentNumber",
    "fetchProjects",
    "listLocations",
    "listItems",
    "listUnits",
]


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--tool", default=None, type=str)
    parser.add_argument("--args", default="{}", type=str, help="JSON object of tool arguments")
    args = parser.parse_args()

    s = get_settings()
    setup_logging(s.log_level)

    registry = build_tool_registry(s)
    resolver = CredentialResolver(s)

    print("Registered tools:", registry.names())
    print("")

    if args.tool:
        calls = [ToolCall(name=registry.require(args.tool).name, args=json.loads(args.args))]
    else:
        calls = [ToolCall(name=name, args={}) for name in _READ_ONLY]

    async with UpstreamClient(settings=s) as client:
        executor = ToolExecutor(registry=registry, client=client)
        for call in calls:
            result = await executor.execute(resolver.resolve(), call)
            print(f"{call.name}:", json.dumps(result.to_wire(), indent=2, ensure_ascii=False)[:2000])
            print("")


if __name__ == "__main__":
    asyncio.run(main())
