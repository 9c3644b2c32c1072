"""OpenAPI / Swagger document loader, version adapters and operation parser."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

import httpx

from .errors import SchemaParseError
from .models import OperationSpec, ParameterSpec

if TYPE_CHECKING:
    from .resolver import ReferenceResolver


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")

# Presence of any of these keys marks a path-item entry as an operation.
OPERATION_MARKERS = frozenset({"operationId", "summary", "description", "parameters", "responses"})

# Swagger 2.0 parameter keywords that carry over verbatim into a JSON schema.
_LEGACY_SCHEMA_KEYS = (
    "type",
    "format",
    "enum",
    "items",
    "default",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
)


class SchemaVersion(str, Enum):
    OPENAPI3 = "openapi3"
    SWAGGER2 = "swagger2"


def detect_version(raw: Dict[str, Any], source: Optional[str] = None) -> SchemaVersion:
    openapi = raw.get("openapi")
    if isinstance(openapi, str) and openapi.startswith("3."):
        return SchemaVersion.OPENAPI3
    if raw.get("swagger") == "2.0":
        return SchemaVersion.SWAGGER2
    raise SchemaParseError(
        "Unsupported API specification version. Only OpenAPI 3.x and Swagger 2.0 are supported",
        source,
    )


@dataclass(frozen=True)
class SchemaDocument:
    version: SchemaVersion
    paths: Dict[str, Dict[str, Any]]
    raw: Dict[str, Any]
    source: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any, source: Optional[str] = None) -> "SchemaDocument":
        if not isinstance(raw, dict):
            raise SchemaParseError("Schema document must be a JSON object", source)
        version = detect_version(raw, source)
        paths = raw.get("paths")
        if not isinstance(paths, dict) or not paths:
            raise SchemaParseError("No paths found in schema", source)
        return cls(version=version, paths=paths, raw=raw, source=source)

    @property
    def title(self) -> str:
        return (self.raw.get("info") or {}).get("title") or "untitled"

    @property
    def api_version(self) -> Optional[str]:
        return (self.raw.get("info") or {}).get("version")

    @property
    def adapter(self) -> "VersionAdapter":
        return adapter_for(self.version)

    def describe_version(self) -> str:
        if self.version is SchemaVersion.OPENAPI3:
            return f"OpenAPI {self.raw.get('openapi')}"
        return f"Swagger {self.raw.get('swagger')}"


class VersionAdapter(ABC):
    """The points where OpenAPI 3.x and Swagger 2.0 documents diverge."""

    version: SchemaVersion
    ref_root: str

    def definitions(self, document: SchemaDocument) -> Dict[str, Any]:
        return document.raw.get(self.ref_root) or {}

    @abstractmethod
    def parameter_schema(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    def body(
        self,
        operation: Dict[str, Any],
        parameters: List[ParameterSpec],
        resolver: "ReferenceResolver",
    ) -> Optional[Tuple[Dict[str, Any], bool, Optional[str]]]:
        ...


class OpenAPI3Adapter(VersionAdapter):
    version = SchemaVersion.OPENAPI3
    ref_root = "components"

    def parameter_schema(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        return parameter.get("schema") or {"type": "string"}

    def body(self, operation, parameters, resolver):
        request_body = operation.get("requestBody")
        if not isinstance(request_body, dict):
            return None
        if "$ref" in request_body:
            request_body = resolver.resolve_ref(request_body["$ref"])
        content = request_body.get("content") or {}
        schema = (content.get("application/json") or {}).get("schema")
        if not schema:
            return None
        return schema, bool(request_body.get("required")), request_body.get("description")


class Swagger2Adapter(VersionAdapter):
    version = SchemaVersion.SWAGGER2
    ref_root = "definitions"

    def parameter_schema(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        if parameter.get("schema"):
            return parameter["schema"]
        schema = {key: parameter[key] for key in _LEGACY_SCHEMA_KEYS if key in parameter}
        schema.setdefault("type", "string")
        return schema

    def body(self, operation, parameters, resolver):
        for parameter in parameters:
            if parameter.location == "body":
                return parameter.schema, parameter.required, parameter.description
        return None


_ADAPTERS: Dict[SchemaVersion, VersionAdapter] = {
    SchemaVersion.OPENAPI3: OpenAPI3Adapter(),
    SchemaVersion.SWAGGER2: Swagger2Adapter(),
}


def adapter_for(version: SchemaVersion) -> VersionAdapter:
    return _ADAPTERS[version]


def synthesize_operation_id(method: str, path: str) -> str:
    parts = [part for part in path.split("/") if part and not part.startswith("{")]
    camel = "".join(part if index == 0 else part[:1].upper() + part[1:] for index, part in enumerate(parts))
    return f"{method.lower()}{camel[:1].upper()}{camel[1:]}"


def iter_path_operations(document: SchemaDocument) -> Iterator[Tuple[str, str, Any, List[Any]]]:
    """Yield ``(path, method, value, shared_parameters)`` for every HTTP verb key."""
    for path, path_item in document.paths.items():
        if not isinstance(path_item, dict):
            continue
        shared = path_item.get("parameters") or []
        for method, value in path_item.items():
            if method.lower() not in HTTP_METHODS:
                continue
            yield path, method.lower(), value, shared


def parse_operation(
    method: str,
    path: str,
    value: Any,
    shared_parameters: List[Any],
    resolver: "ReferenceResolver",
) -> Optional[OperationSpec]:
    """Validate a path-item entry and turn it into an ``OperationSpec``.

    Returns ``None`` when the entry does not look like an operation at all.
    Raises ``SchemaParseError`` when it does but a parameter reference
    cannot be resolved.
    """
    if not isinstance(value, dict) or not OPERATION_MARKERS.intersection(value):
        return None

    adapter = resolver.adapter
    parameters = _merge_parameters(
        [_parse_parameter(item, adapter, resolver) for item in shared_parameters],
        [_parse_parameter(item, adapter, resolver) for item in value.get("parameters") or []],
    )

    declared = value.get("operationId")
    operation_id = declared if isinstance(declared, str) and declared else synthesize_operation_id(method, path)

    body = adapter.body(value, parameters, resolver)
    body_schema, body_required, body_description = body if body else (None, False, None)

    tags = value.get("tags") or []
    return OperationSpec(
        operation_id=operation_id,
        method=method,
        path=path,
        summary=value.get("summary") or None,
        description=value.get("description") or None,
        tags=tuple(str(tag) for tag in tags),
        parameters=tuple(parameters),
        body_schema=body_schema,
        body_required=body_required,
        body_description=body_description,
        declared_id=operation_id == declared,
    )


def _parse_parameter(
    item: Any, adapter: VersionAdapter, resolver: "ReferenceResolver"
) -> Optional[ParameterSpec]:
    if not isinstance(item, dict):
        return None
    if "$ref" in item:
        item = resolver.resolve_ref(item["$ref"])
    name = item.get("name")
    location = item.get("in")
    if not name or not location:
        return None
    if location == "body":
        schema = item.get("schema") or {"type": "object"}
    else:
        schema = adapter.parameter_schema(item)
    return ParameterSpec(
        name=name,
        location=location,
        required=bool(item.get("required", False)),
        schema=schema,
        description=item.get("description"),
    )


def _merge_parameters(
    shared: List[Optional[ParameterSpec]], own: List[Optional[ParameterSpec]]
) -> List[ParameterSpec]:
    merged: Dict[Tuple[str, str], ParameterSpec] = {}
    for parameter in [*shared, *own]:
        if parameter is not None:
            merged[(parameter.name, parameter.location)] = parameter
    return list(merged.values())


class SchemaLoader:
    def __init__(self, timeout_seconds: float = 30, verify_ssl: bool = True) -> None:
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl

    async def load(self, location: str) -> SchemaDocument:
        logger.info("Loading OpenAPI schema from %s", location)
        if location.startswith(("http://", "https://")):
            raw = await self._fetch(location)
        else:
            raw = self._read(location)

        document = SchemaDocument.from_dict(raw, location)
        logger.info(
            "OpenAPI schema loaded: title=%s version=%s spec=%s paths=%s",
            document.title,
            document.api_version,
            document.describe_version(),
            len(document.paths),
        )
        return document

    async def _fetch(self, url: str) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, verify=self.verify_ssl) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SchemaParseError(f"Failed to fetch schema: {exc}", url) from exc

    def _read(self, location: str) -> Any:
        path = Path(location).expanduser().resolve()
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except OSError as exc:
            raise SchemaParseError(f"Cannot read schema file: {exc}", str(path)) from exc
        except json.JSONDecodeError as exc:
            raise SchemaParseError(f"Invalid JSON: {exc}", str(path)) from exc
