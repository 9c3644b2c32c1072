"""Resolve ``$ref`` pointers and composition keywords into self-contained schemas."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from .errors import ReferenceResolutionError
from .openapi import SchemaDocument, VersionAdapter


logger = logging.getLogger(__name__)

_COMPOSITION_KEYS = ("allOf", "oneOf", "anyOf")

# Keywords whose value is a single sub-schema.
_SCHEMA_KEYS = frozenset(
    {"items", "additionalProperties", "additionalItems", "not", "contains", "propertyNames", "if", "then", "else"}
)
# Keywords whose value maps names to sub-schemas.
_SCHEMA_MAP_KEYS = frozenset(
    {"properties", "patternProperties", "dependencies", "dependentSchemas", "definitions", "$defs"}
)
# Keywords whose value is a list of sub-schemas.
_SCHEMA_LIST_KEYS = frozenset({"items", "prefixItems"})


class ReferenceResolver:
    """Expands schema fragments of one document.

    The resolver keeps no state between calls: every ``resolve`` walks the
    fragment from scratch with a fresh in-flight set, so resolving the same
    fragment twice yields equal, independent results.
    """

    def __init__(self, document: SchemaDocument) -> None:
        self.document = document
        self.adapter: VersionAdapter = document.adapter

    def resolve_ref(self, ref: str) -> Dict[str, Any]:
        """Return the raw target of a local reference such as ``#/definitions/Foo``."""
        if not isinstance(ref, str) or not ref.startswith("#/"):
            raise ReferenceResolutionError(str(ref), self.document.source)

        parts = [_unescape(part) for part in ref[2:].split("/")]
        current: Any = self.document.raw
        if parts and parts[0] == self.adapter.ref_root:
            current = self.adapter.definitions(self.document)
            parts = parts[1:]

        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                raise ReferenceResolutionError(ref, self.document.source)

        if not isinstance(current, dict):
            raise ReferenceResolutionError(ref, self.document.source)
        return current

    def resolve(self, schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return self._resolve(schema, set())

    def _resolve(self, schema: Any, in_flight: Set[str]) -> Any:
        if schema is None:
            return {"type": "string"}
        if not isinstance(schema, dict):
            return copy.deepcopy(schema)

        ref = schema.get("$ref")
        if ref is not None:
            return self._resolve_reference(ref, schema, in_flight)

        all_of = schema.get("allOf")
        if isinstance(all_of, list) and all_of:
            return self._merge_all_of(all_of, schema, in_flight)

        for keyword in ("oneOf", "anyOf"):
            branches = schema.get(keyword)
            if isinstance(branches, list) and branches:
                resolved = self._resolve(branches[0], in_flight)
                return self._overlay(resolved, schema, in_flight)

        return self._resolve_nested(schema, in_flight)

    def _resolve_reference(
        self, ref: str, schema: Dict[str, Any], in_flight: Set[str]
    ) -> Dict[str, Any]:
        if ref in in_flight:
            logger.debug("Circular reference detected: %s", ref)
            return {"type": "object", "description": f"Circular reference: {ref}"}

        target = self.resolve_ref(ref)
        in_flight.add(ref)
        try:
            resolved = self._resolve(target, in_flight)
        finally:
            in_flight.discard(ref)
        return self._overlay(resolved, schema, in_flight)

    def _merge_all_of(
        self, branches: List[Any], schema: Dict[str, Any], in_flight: Set[str]
    ) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        properties: Dict[str, Any] = {}
        required: List[str] = []

        siblings = {key: value for key, value in schema.items() if key != "allOf"}
        parts = [self._resolve(branch, in_flight) for branch in branches]
        if siblings:
            parts.append(self._resolve(siblings, in_flight))

        for part in parts:
            if not isinstance(part, dict):
                continue
            properties.update(part.pop("properties", None) or {})
            required.extend(part.pop("required", None) or [])
            merged.update(part)

        merged.setdefault("type", "object")
        merged["properties"] = properties
        unique_required = _dedupe(required)
        if unique_required:
            merged["required"] = unique_required
        return merged

    def _resolve_nested(self, schema: Dict[str, Any], in_flight: Set[str]) -> Dict[str, Any]:
        resolved: Dict[str, Any] = {}
        for key, value in schema.items():
            if key in _SCHEMA_MAP_KEYS and isinstance(value, dict):
                # Non-schema values (e.g. "dependencies" name lists) are copied as-is.
                resolved[key] = {
                    name: self._resolve(sub_schema, in_flight)
                    for name, sub_schema in value.items()
                }
            elif key in _SCHEMA_LIST_KEYS and isinstance(value, list):
                resolved[key] = [self._resolve(item, in_flight) for item in value]
            elif key in _SCHEMA_KEYS and isinstance(value, dict):
                resolved[key] = self._resolve(value, in_flight)
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _overlay(
        self, resolved: Dict[str, Any], schema: Dict[str, Any], in_flight: Set[str]
    ) -> Dict[str, Any]:
        # Keys written next to a $ref / oneOf (usually "description") win over the target's.
        siblings = {
            key: value
            for key, value in schema.items()
            if key != "$ref" and key not in _COMPOSITION_KEYS
        }
        if siblings and isinstance(resolved, dict):
            resolved.update(self._resolve_nested(siblings, in_flight))
        return resolved


def _unescape(part: str) -> str:
    return part.replace("~1", "/").replace("~0", "~")


def _dedupe(values: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    unique: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique
