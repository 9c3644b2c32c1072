"""Compile an OpenAPI / Swagger document and print the generated MCP tools."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Dict, List

from argo_mcp.compiler import compile_document
from argo_mcp.errors import SchemaParseError
from argo_mcp.models import OperationIndex
from argo_mcp.openapi import SchemaLoader


def _summary(tools: List[Dict[str, Any]], index: OperationIndex) -> str:
    lines = []
    for tool in tools:
        marker = "" if index[tool["name"]].operation.declared_id else " (generated name)"
        lines.append(f"{tool['name']}{marker}: {tool['description'].splitlines()[0]}")
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(description="Dump MCP tool descriptors generated from a schema")
    parser.add_argument(
        "--schema",
        default=os.getenv("SCHEMA_PATH", "./schema/argo-openapi.json"),
        help="Path or URL of the OpenAPI / Swagger document",
    )
    parser.add_argument(
        "--names-only",
        action="store_true",
        help="Print one line per tool instead of full JSON descriptors",
    )
    parser.add_argument(
        "--tool",
        action="append",
        default=[],
        help="Only include the named tool (repeatable)",
    )

    args = parser.parse_args()

    try:
        document = asyncio.run(SchemaLoader().load(args.schema))
        compiled = compile_document(document)
    except SchemaParseError as exc:
        raise SystemExit(str(exc))

    tools = [tool.to_dict() for tool in compiled.tools]
    if args.tool:
        wanted = set(args.tool)
        tools = [tool for tool in tools if tool["name"] in wanted]

    if args.names_only:
        print(_summary(tools, compiled.index))
    else:
        print(json.dumps(tools, indent=2))

    for skipped in compiled.skipped:
        print(
            f"skipped {skipped.method.upper()} {skipped.path}: {skipped.reason}",
            file=sys.stderr,
        )
    print(f"Compiled tools: {len(compiled.tools)} generated, {len(compiled.skipped)} skipped", file=sys.stderr)


if __name__ == "__main__":
    main()
