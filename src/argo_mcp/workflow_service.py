"""High-level workflow helpers exposed alongside the generated tools."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union
from urllib.parse import quote

from .argo_client import ArgoClient

logger = logging.getLogger(__name__)

PHASE_LABEL = "workflows.argoproj.io/phase"
COMPLETED_LABEL = "workflows.argoproj.io/completed"
MAX_LIST_LIMIT = 1000
SORT_FIELDS = {
    "name": ("metadata", "name"),
    "creationTimestamp": ("metadata", "creationTimestamp"),
    "startedAt": ("status", "startedAt"),
    "finishedAt": ("status", "finishedAt"),
    "phase": ("status", "phase"),
}


class WorkflowService:
    def __init__(self, client: ArgoClient, default_namespace: str) -> None:
        self.client = client
        self.default_namespace = default_namespace

    async def list_workflows(
        self,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        continue_token: Optional[str] = None,
        phase: Union[str, Sequence[str], None] = None,
        name: Optional[str] = None,
        name_prefix: Optional[str] = None,
        created_after: Optional[str] = None,
        created_before: Optional[str] = None,
        started_after: Optional[str] = None,
        started_before: Optional[str] = None,
        finished_after: Optional[str] = None,
        finished_before: Optional[str] = None,
        sort_by: str = "creationTimestamp",
        sort_order: str = "desc",
        include_completed: bool = True,
        resource_version: Optional[str] = None,
    ) -> Dict[str, Any]:
        namespace = namespace or self.default_namespace
        limit = min(max(int(limit), 1), MAX_LIST_LIMIT)
        offset = max(int(offset), 0)

        selectors = [label_selector] if label_selector else []
        phases = _as_list(phase)
        if len(phases) == 1:
            selectors.append(f"{PHASE_LABEL}={phases[0]}")
        elif phases:
            selectors.append(f"{PHASE_LABEL} in ({','.join(phases)})")
        if not include_completed:
            selectors.append(f"{COMPLETED_LABEL}!=true")

        fields = [field_selector] if field_selector else []
        if name:
            fields.append(f"metadata.name={name}")

        windows = {
            ("metadata", "creationTimestamp"): (created_after, created_before),
            ("status", "startedAt"): (started_after, started_before),
            ("status", "finishedAt"): (finished_after, finished_before),
        }
        filters_locally = bool(name_prefix) or any(a or b for a, b in windows.values())
        # Argo lists newest first; any other order needs the full list before paging.
        sort_key = SORT_FIELDS.get(sort_by, SORT_FIELDS["creationTimestamp"])
        native_order = sort_key == SORT_FIELDS["creationTimestamp"] and sort_order != "asc"

        params: Dict[str, Any] = {}
        if selectors:
            params["listOptions.labelSelector"] = ",".join(selectors)
        if fields:
            params["listOptions.fieldSelector"] = ",".join(fields)
        if continue_token:
            params["listOptions.continue"] = continue_token
        if resource_version:
            params["listOptions.resourceVersion"] = resource_version
        if native_order and not filters_locally:
            params["listOptions.limit"] = limit + offset

        payload = await self.client.get(f"/api/v1/workflows/{_segment(namespace)}", params=params)
        if not isinstance(payload, dict):
            payload = {}
        items: List[Dict[str, Any]] = list(payload.get("items") or [])

        if name_prefix:
            items = [item for item in items if _field(item, ("metadata", "name")).startswith(name_prefix)]
        for location, (after, before) in windows.items():
            if after or before:
                items = [item for item in items if _within(_field(item, location), after, before)]

        items.sort(key=lambda item: _field(item, sort_key), reverse=sort_order != "asc")

        total = len(items)
        page = items[offset : offset + limit]
        return {
            "namespace": namespace,
            "count": len(page),
            "total": total,
            "continue": (payload.get("metadata") or {}).get("continue"),
            "workflows": [summarize_workflow(item) for item in page],
        }

    async def get_workflow(self, namespace: Optional[str], name: str) -> Any:
        namespace = namespace or self.default_namespace
        return await self.client.get(f"/api/v1/workflows/{_segment(namespace)}/{_segment(name)}")

    async def get_workflow_logs(
        self,
        namespace: Optional[str],
        name: str,
        pod_name: Optional[str] = None,
        container: str = "main",
        follow: bool = False,
    ) -> Dict[str, Any]:
        namespace = namespace or self.default_namespace
        params: Dict[str, Any] = {"logOptions.container": container, "logOptions.follow": follow}
        if pod_name:
            params["podName"] = pod_name
        payload = await self.client.get(
            f"/api/v1/workflows/{_segment(namespace)}/{_segment(name)}/log", params=params
        )
        lines = list(_log_lines(payload))
        return {"namespace": namespace, "name": name, "count": len(lines), "lines": lines}

    async def submit_workflow(
        self,
        namespace: Optional[str],
        template: str,
        parameters: Optional[Dict[str, Any]] = None,
        labels: Optional[Dict[str, str]] = None,
    ) -> Any:
        namespace = namespace or self.default_namespace
        submit_options: Dict[str, Any] = {}
        if parameters:
            submit_options["parameters"] = [f"{key}={value}" for key, value in parameters.items()]
        if labels:
            submit_options["labels"] = _label_selector(labels)
        body = {
            "namespace": namespace,
            "resourceKind": "WorkflowTemplate",
            "resourceName": template,
            "submitOptions": submit_options,
        }
        logger.info("Submitting workflow from template=%s namespace=%s", template, namespace)
        return await self.client.post(f"/api/v1/workflows/{_segment(namespace)}/submit", json=body)

    async def retry_workflow(self, namespace: Optional[str], name: str) -> Any:
        namespace = namespace or self.default_namespace
        return await self.client.put(
            f"/api/v1/workflows/{_segment(namespace)}/{_segment(name)}/retry",
            json={"name": name, "namespace": namespace},
        )

    async def terminate_workflow(
        self, namespace: Optional[str], name: str, reason: Optional[str] = None
    ) -> Any:
        namespace = namespace or self.default_namespace
        logger.info("Terminating workflow %s/%s reason=%s", namespace, name, reason)
        result = await self.client.put(
            f"/api/v1/workflows/{_segment(namespace)}/{_segment(name)}/terminate",
            json={"name": name, "namespace": namespace},
        )
        if reason and isinstance(result, dict):
            result = {**result, "terminationReason": reason}
        return result

    async def get_recent_workflows(self, namespace: Optional[str] = None, limit: int = 10) -> Dict[str, Any]:
        return await self.list_workflows(
            namespace=namespace, limit=limit, sort_by="creationTimestamp", sort_order="desc"
        )

    async def get_failed_workflows(
        self, namespace: Optional[str] = None, since: Optional[str] = None, limit: int = 100
    ) -> Dict[str, Any]:
        return await self.list_workflows(
            namespace=namespace, phase=["Failed", "Error"], finished_after=since, limit=limit
        )

    async def get_running_workflows(self, namespace: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
        return await self.list_workflows(namespace=namespace, phase="Running", limit=limit)

    async def search_workflows_by_name(
        self, name_pattern: str, namespace: Optional[str] = None, limit: int = 100
    ) -> Dict[str, Any]:
        return await self.list_workflows(namespace=namespace, name_prefix=name_pattern, limit=limit)

    async def get_workflows_by_label(
        self, labels: Dict[str, str], namespace: Optional[str] = None, limit: int = 100
    ) -> Dict[str, Any]:
        return await self.list_workflows(
            namespace=namespace, label_selector=_label_selector(labels), limit=limit
        )


def summarize_workflow(workflow: Dict[str, Any]) -> Dict[str, Any]:
    metadata = workflow.get("metadata") or {}
    status = workflow.get("status") or {}
    return {
        "name": metadata.get("name"),
        "namespace": metadata.get("namespace"),
        "phase": status.get("phase"),
        "createdAt": metadata.get("creationTimestamp"),
        "startedAt": status.get("startedAt"),
        "finishedAt": status.get("finishedAt"),
        "progress": status.get("progress"),
        "message": status.get("message"),
        "labels": metadata.get("labels") or {},
    }


def _as_list(value: Union[str, Sequence[str], None]) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in labels.items())


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _field(item: Dict[str, Any], location: Sequence[str]) -> str:
    section, key = location
    return str((item.get(section) or {}).get(key) or "")


def _parse_time(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _within(value: str, after: Optional[str], before: Optional[str]) -> bool:
    moment = _parse_time(value)
    if moment is None:
        return False
    lower = _parse_time(after) if after else None
    upper = _parse_time(before) if before else None
    if lower and moment <= lower:
        return False
    if upper and moment >= upper:
        return False
    return True


def _log_lines(payload: Any) -> Iterable[Dict[str, Any]]:
    # The log endpoint streams newline-delimited {"result": {...}} objects.
    if isinstance(payload, dict):
        entries: List[Any] = [payload]
    elif isinstance(payload, str):
        entries = []
        for raw_line in payload.splitlines():
            raw_line = raw_line.strip()
            if not raw_line:
                continue
            try:
                entries.append(json.loads(raw_line))
            except ValueError:
                entries.append({"result": {"content": raw_line}})
    else:
        entries = []

    for entry in entries:
        result = entry.get("result", entry) if isinstance(entry, dict) else {}
        yield {"podName": result.get("podName"), "content": result.get("content", "")}
