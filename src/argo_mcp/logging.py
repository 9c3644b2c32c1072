"""Logging setup and redaction of tool arguments and error details."""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, Dict


REDACTED = "***REDACTED***"

_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password|authorization|credential)", re.IGNORECASE)
_BEARER_VALUE = re.compile(r"^\s*bearer\s+[\w.~+/=-]+\s*$", re.IGNORECASE)

_QUIET_LOGGERS = ("httpx", "httpcore", "mcp.server.lowlevel")


def configure_logging(level: str) -> None:
    # stdout carries the MCP stream when running over stdio.
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if level != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def redact_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` that is safe to log.

    Values under secret-looking keys are masked at any depth, including
    inside lists, and so is any string carrying a bearer token.
    """
    return {
        key: REDACTED if _SENSITIVE_KEYS.search(str(key)) else _redact(value)
        for key, value in payload.items()
    }


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return redact_payload(value)
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    if isinstance(value, str) and _BEARER_VALUE.match(value):
        return REDACTED
    return value
