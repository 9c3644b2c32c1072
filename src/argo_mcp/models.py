"""Internal models for compiled tools and the operation index."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .errors import UnknownOperationError


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    location: str
    required: bool = False
    schema: Optional[Dict[str, Any]] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class OperationSpec:
    operation_id: str
    method: str
    path: str
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    parameters: Tuple[ParameterSpec, ...] = ()
    body_schema: Optional[Dict[str, Any]] = None
    body_required: bool = False
    body_description: Optional[str] = None
    declared_id: bool = True

    @property
    def has_body(self) -> bool:
        return self.body_schema is not None


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass(frozen=True)
class IndexEntry:
    method: str
    path: str
    operation: OperationSpec


class OperationIndex(Mapping[str, IndexEntry]):
    """Read-only lookup from tool name to the operation it was compiled from."""

    def __init__(self, entries: Mapping[str, IndexEntry]) -> None:
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> IndexEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def require(self, name: str) -> IndexEntry:
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownOperationError(name)
        return entry

    def names(self) -> List[str]:
        return list(self._entries)


@dataclass(frozen=True)
class SkippedOperation:
    method: str
    path: str
    operation_id: str
    reason: str


@dataclass(frozen=True)
class CompiledTools:
    tools: List[ToolDescriptor]
    index: OperationIndex
    skipped: List[SkippedOperation] = field(default_factory=list)
