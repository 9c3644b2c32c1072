"""Compile the operations of a schema document into MCP tool descriptors."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Set

from .errors import SchemaParseError
from .models import (
    CompiledTools,
    IndexEntry,
    OperationIndex,
    OperationSpec,
    SkippedOperation,
    ToolDescriptor,
)
from .openapi import SchemaDocument, iter_path_operations, parse_operation
from .resolver import ReferenceResolver


logger = logging.getLogger(__name__)


def compile_document(document: SchemaDocument) -> CompiledTools:
    """Build one tool per unique operation plus the index used to dispatch calls.

    Operations that fail to resolve are dropped and reported in ``skipped``;
    a document that yields no tools at all is rejected.
    """
    resolver = ReferenceResolver(document)
    tools: List[ToolDescriptor] = []
    entries: Dict[str, IndexEntry] = {}
    skipped: List[SkippedOperation] = []
    seen: Set[str] = set()

    for path, method, value, shared_parameters in iter_path_operations(document):
        try:
            operation = parse_operation(method, path, value, shared_parameters, resolver)
        except SchemaParseError as exc:
            _skip(skipped, method, path, _declared_id(value), exc)
            continue
        if operation is None:
            continue
        if not operation.declared_id:
            logger.debug(
                "No operationId for %s %s, using %s", method.upper(), path, operation.operation_id
            )

        if operation.operation_id in seen:
            logger.debug(
                "Skipping duplicate operation %s (%s %s)",
                operation.operation_id,
                method.upper(),
                path,
            )
            continue

        try:
            input_schema = build_input_schema(operation, resolver)
        except SchemaParseError as exc:
            _skip(skipped, method, path, operation.operation_id, exc)
            continue

        tools.append(
            ToolDescriptor(
                name=operation.operation_id,
                description=build_description(operation),
                input_schema=input_schema,
            )
        )
        entries[operation.operation_id] = IndexEntry(method=method, path=path, operation=operation)
        seen.add(operation.operation_id)

    if not tools:
        raise SchemaParseError("No operations could be compiled into tools", document.source)

    logger.info(
        "Generated tools from OpenAPI schema: count=%s skipped=%s", len(tools), len(skipped)
    )
    return CompiledTools(tools=tools, index=OperationIndex(entries), skipped=skipped)


def build_input_schema(operation: OperationSpec, resolver: ReferenceResolver) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    required: List[str] = []

    for parameter in operation.parameters:
        if parameter.location == "body":
            continue
        schema = resolver.resolve(parameter.schema)
        if parameter.description:
            schema["description"] = parameter.description
        properties[parameter.name] = schema
        if parameter.required:
            required.append(parameter.name)

    if operation.has_body:
        body = resolver.resolve(operation.body_schema)
        body["description"] = operation.body_description or "Request body"
        properties["body"] = body
        if operation.body_required:
            required.append("body")

    input_schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        input_schema["required"] = required
    input_schema["additionalProperties"] = False
    return input_schema


def build_description(operation: OperationSpec) -> str:
    parts: List[str] = []
    if operation.summary:
        parts.append(operation.summary)
    elif operation.description:
        parts.append(operation.description.split("\n")[0])
    else:
        parts.append(f"{operation.method.upper()} {operation.path}")

    if operation.tags:
        parts.append(f"[{', '.join(operation.tags)}]")

    if operation.description and operation.summary and operation.description != operation.summary:
        parts.append("\n\n" + operation.description)

    return " ".join(parts)


def _declared_id(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("operationId") or "")
    return ""


def _skip(
    skipped: List[SkippedOperation], method: str, path: str, operation_id: str, exc: Exception
) -> None:
    logger.warning(
        "Failed to generate tool for operation %s (%s %s): %s",
        operation_id or "<unnamed>",
        method.upper(),
        path,
        exc,
    )
    skipped.append(
        SkippedOperation(method=method, path=path, operation_id=operation_id, reason=str(exc))
    )
