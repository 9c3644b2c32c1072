"""Turn a flat tool argument map back into the HTTP request it describes."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Set
from urllib.parse import quote

from .errors import UnsupportedMethodError
from .logging import redact_payload
from .models import IndexEntry, OperationIndex

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

BODY_KEY = "body"
RESERVED_PREFIX = "_"
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
SUPPORTED_METHODS = BODY_METHODS | {"GET", "DELETE"}


class HttpCollaborator(Protocol):
    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any: ...


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    path: str
    query: Dict[str, Any] = field(default_factory=dict)
    body: Any = None


def build_request(name: str, entry: IndexEntry, arguments: Dict[str, Any]) -> PreparedRequest:
    """Split ``arguments`` into path, query and body for ``entry``.

    A placeholder without a matching argument is left in the path as-is.
    """
    method = entry.method.upper()
    if method not in SUPPORTED_METHODS:
        raise UnsupportedMethodError(entry.method, name)

    used: Set[str] = set()

    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in arguments and arguments[key] is not None:
            used.add(key)
            return quote(str(arguments[key]), safe="")
        return match.group(0)

    path = _PLACEHOLDER.sub(substitute, entry.path)

    query = {
        key: value
        for key, value in arguments.items()
        if key != BODY_KEY
        and key not in used
        and not key.startswith(RESERVED_PREFIX)
        and value is not None
    }
    body = arguments.get(BODY_KEY) if method in BODY_METHODS else None
    return PreparedRequest(method=method, path=path, query=query, body=body)


class RequestDispatcher:
    def __init__(self, index: OperationIndex, client: HttpCollaborator) -> None:
        self.index = index
        self.client = client

    async def dispatch(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        arguments = dict(arguments or {})
        entry = self.index.require(name)
        prepared = build_request(name, entry, arguments)
        logger.info(
            "Dispatching tool=%s %s %s args=%s",
            name,
            prepared.method,
            prepared.path,
            redact_payload(arguments),
        )
        return await self.client.request(
            prepared.method,
            prepared.path,
            params=prepared.query or None,
            json=prepared.body,
        )
