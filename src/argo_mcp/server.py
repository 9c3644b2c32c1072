"""MCP server setup for the Argo Workflows tools."""

from __future__ import annotations

import json
import logging
import secrets
from typing import Annotated, Any, Awaitable, Dict, List, Optional, Set, Tuple, Union

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from pydantic import Field
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from .argo_client import ArgoClient
from .compiler import compile_document
from .config import Settings
from .dispatcher import RequestDispatcher
from .errors import handle_error
from .logging import redact_payload
from .models import ToolDescriptor
from .openapi import SchemaLoader
from .workflow_service import WorkflowService

logger = logging.getLogger(__name__)

Namespace = Annotated[
    Optional[str], Field(description="Kubernetes namespace (defaults to the configured namespace)")
]
WorkflowName = Annotated[str, Field(description="Name of the workflow")]
Limit = Annotated[int, Field(description="Maximum number of workflows to return", ge=1, le=1000)]


class CompiledTool(Tool):
    """A tool generated from one operation of the OpenAPI document."""

    def __init__(self, descriptor: ToolDescriptor, dispatcher: RequestDispatcher) -> None:
        super().__init__(
            name=descriptor.name,
            description=descriptor.description,
            parameters=descriptor.input_schema,
        )
        self._dispatcher = dispatcher

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        try:
            result = await self._dispatcher.dispatch(self.name, arguments)
        except Exception as exc:
            raise _tool_error(self.name, exc) from exc
        return ToolResult(content=json.dumps(result, indent=2, default=str))


async def build_server(settings: Settings) -> Tuple[FastMCP, Any, ArgoClient]:
    client = ArgoClient(settings)
    loader = SchemaLoader(
        timeout_seconds=settings.api_timeout_seconds,
        verify_ssl=not settings.argo_insecure_skip_verify,
    )
    try:
        document = await loader.load(settings.schema_path)
        compiled = compile_document(document)
    except Exception:
        await client.aclose()
        raise

    dispatcher = RequestDispatcher(compiled.index, client)
    service = WorkflowService(client, settings.argo_namespace)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    custom_names = register_workflow_tools(mcp, service, client)
    registered = register_compiled_tools(mcp, compiled.tools, dispatcher, custom_names)
    _attach_healthcheck(mcp, client)

    logger.info(
        "Server initialized: schema_tools=%s custom_tools=%s skipped=%s",
        registered,
        len(custom_names),
        len(compiled.skipped),
    )

    health = await client.health_check()
    logger.info("Initial health check: healthy=%s version=%s", health["healthy"], health.get("version"))

    app = _get_http_app(mcp, settings)
    return mcp, app, client


def register_compiled_tools(
    mcp: FastMCP,
    tools: List[ToolDescriptor],
    dispatcher: RequestDispatcher,
    reserved: Set[str],
) -> int:
    count = 0
    for descriptor in tools:
        if descriptor.name in reserved:
            logger.warning("Generated tool %s shadowed by a built-in tool", descriptor.name)
            continue
        mcp.add_tool(CompiledTool(descriptor, dispatcher))
        logger.debug("Registered tool: %s", descriptor.name)
        count += 1
    return count


def register_workflow_tools(mcp: FastMCP, service: WorkflowService, client: ArgoClient) -> Set[str]:
    @mcp.tool(name="health_check", description="Check the health and connectivity of the Argo server")
    async def health_check() -> Dict[str, Any]:
        return await client.health_check()

    @mcp.tool(
        name="list_workflows",
        description="List workflows with advanced filtering, pagination, and sorting options",
    )
    async def list_workflows(
        namespace: Namespace = None,
        label_selector: Annotated[Optional[str], Field(description='Label selector, e.g. "app=myapp,version=v1"')] = None,
        field_selector: Annotated[Optional[str], Field(description="Field selector to filter workflows")] = None,
        limit: Limit = 100,
        offset: Annotated[int, Field(description="Number of workflows to skip", ge=0)] = 0,
        continue_token: Annotated[Optional[str], Field(description="Continue token for pagination")] = None,
        phase: Annotated[
            Optional[Union[str, List[str]]],
            Field(description="Workflow phase(s): Pending, Running, Succeeded, Failed, Error"),
        ] = None,
        name: Annotated[Optional[str], Field(description="Exact workflow name")] = None,
        name_prefix: Annotated[Optional[str], Field(description="Workflow name prefix")] = None,
        created_after: Annotated[Optional[str], Field(description="ISO 8601 lower bound on creation time")] = None,
        created_before: Annotated[Optional[str], Field(description="ISO 8601 upper bound on creation time")] = None,
        started_after: Annotated[Optional[str], Field(description="ISO 8601 lower bound on start time")] = None,
        started_before: Annotated[Optional[str], Field(description="ISO 8601 upper bound on start time")] = None,
        finished_after: Annotated[Optional[str], Field(description="ISO 8601 lower bound on finish time")] = None,
        finished_before: Annotated[Optional[str], Field(description="ISO 8601 upper bound on finish time")] = None,
        sort_by: Annotated[
            str, Field(description="name, creationTimestamp, startedAt, finishedAt or phase")
        ] = "creationTimestamp",
        sort_order: Annotated[str, Field(description="asc or desc")] = "desc",
        include_completed: Annotated[bool, Field(description="Include completed workflows")] = True,
        resource_version: Annotated[Optional[str], Field(description="Resource version")] = None,
    ) -> Dict[str, Any]:
        return await _guard(
            "list_workflows",
            service.list_workflows(
                namespace=namespace,
                label_selector=label_selector,
                field_selector=field_selector,
                limit=limit,
                offset=offset,
                continue_token=continue_token,
                phase=phase,
                name=name,
                name_prefix=name_prefix,
                created_after=created_after,
                created_before=created_before,
                started_after=started_after,
                started_before=started_before,
                finished_after=finished_after,
                finished_before=finished_before,
                sort_by=sort_by,
                sort_order=sort_order,
                include_completed=include_completed,
                resource_version=resource_version,
            ),
        )

    @mcp.tool(name="get_workflow", description="Get detailed information about a specific workflow")
    async def get_workflow(name: WorkflowName, namespace: Namespace = None) -> Any:
        return await _guard("get_workflow", service.get_workflow(namespace, name))

    @mcp.tool(name="workflow_logs", description="Get logs from a workflow")
    async def workflow_logs(
        name: WorkflowName,
        namespace: Namespace = None,
        pod_name: Annotated[Optional[str], Field(description="Specific pod name")] = None,
        container: Annotated[str, Field(description="Container name")] = "main",
        follow: Annotated[bool, Field(description="Follow log stream")] = False,
    ) -> Dict[str, Any]:
        return await _guard(
            "workflow_logs", service.get_workflow_logs(namespace, name, pod_name, container, follow)
        )

    @mcp.tool(name="submit_workflow", description="Submit a new workflow from a template")
    async def submit_workflow(
        template: Annotated[str, Field(description="Workflow template name")],
        namespace: Namespace = None,
        parameters: Annotated[Optional[Dict[str, Any]], Field(description="Workflow parameters")] = None,
        labels: Annotated[Optional[Dict[str, str]], Field(description="Labels to add to the workflow")] = None,
    ) -> Any:
        return await _guard(
            "submit_workflow", service.submit_workflow(namespace, template, parameters, labels)
        )

    @mcp.tool(name="retry_workflow", description="Retry a failed workflow")
    async def retry_workflow(name: WorkflowName, namespace: Namespace = None) -> Any:
        return await _guard("retry_workflow", service.retry_workflow(namespace, name))

    @mcp.tool(name="terminate_workflow", description="Terminate a running workflow")
    async def terminate_workflow(
        name: WorkflowName,
        namespace: Namespace = None,
        reason: Annotated[Optional[str], Field(description="Reason for termination")] = None,
    ) -> Any:
        return await _guard("terminate_workflow", service.terminate_workflow(namespace, name, reason))

    @mcp.tool(name="get_recent_workflows", description="Get the most recently created workflows")
    async def get_recent_workflows(namespace: Namespace = None, limit: Limit = 10) -> Dict[str, Any]:
        return await _guard("get_recent_workflows", service.get_recent_workflows(namespace, limit))

    @mcp.tool(name="get_failed_workflows", description="Get workflows that have failed")
    async def get_failed_workflows(
        namespace: Namespace = None,
        since: Annotated[Optional[str], Field(description="Failures since this date (ISO 8601)")] = None,
        limit: Limit = 100,
    ) -> Dict[str, Any]:
        return await _guard("get_failed_workflows", service.get_failed_workflows(namespace, since, limit))

    @mcp.tool(name="get_running_workflows", description="Get currently running workflows")
    async def get_running_workflows(namespace: Namespace = None, limit: Limit = 100) -> Dict[str, Any]:
        return await _guard("get_running_workflows", service.get_running_workflows(namespace, limit))

    @mcp.tool(name="search_workflows_by_name", description="Search workflows by name prefix")
    async def search_workflows_by_name(
        name_pattern: Annotated[str, Field(description="Name prefix to search for")],
        namespace: Namespace = None,
        limit: Limit = 100,
    ) -> Dict[str, Any]:
        return await _guard(
            "search_workflows_by_name", service.search_workflows_by_name(name_pattern, namespace, limit)
        )

    @mcp.tool(name="get_workflows_by_label", description="Get workflows matching specific labels")
    async def get_workflows_by_label(
        labels: Annotated[Dict[str, str], Field(description="Label key-value pairs to match")],
        namespace: Namespace = None,
        limit: Limit = 100,
    ) -> Dict[str, Any]:
        return await _guard(
            "get_workflows_by_label", service.get_workflows_by_label(labels, namespace, limit)
        )

    return {
        "health_check",
        "list_workflows",
        "get_workflow",
        "workflow_logs",
        "submit_workflow",
        "retry_workflow",
        "terminate_workflow",
        "get_recent_workflows",
        "get_failed_workflows",
        "get_running_workflows",
        "search_workflows_by_name",
        "get_workflows_by_label",
    }


async def _guard(name: str, call: Awaitable[Any]) -> Any:
    try:
        return await call
    except Exception as exc:
        raise _tool_error(name, exc) from exc


def _tool_error(name: str, exc: Exception) -> ToolError:
    error = handle_error(exc)
    logger.error("Tool execution failed: tool=%s error=%s", name, error.message)
    data = error.to_dict()
    payload = {"error": data["message"], "type": data["name"], "details": redact_payload(data["context"])}
    return ToolError(json.dumps(payload, indent=2, default=str))


class BearerAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: Any, token: str) -> None:
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS" or request.url.path.endswith("/health"):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        scheme, _, token = auth_header.strip().partition(" ")
        token = token.strip() if scheme.lower() == "bearer" else ""
        if token and secrets.compare_digest(token, self.token):
            return await call_next(request)

        return JSONResponse(
            {"jsonrpc": "2.0", "error": {"code": -32000, "message": "Unauthorized"}, "id": None},
            status_code=401,
        )


def _attach_healthcheck(mcp: FastMCP, client: ArgoClient) -> None:
    @mcp.custom_route("/health", methods=["GET"])
    async def healthcheck(_request: Request) -> JSONResponse:
        health = await client.health_check()
        return JSONResponse({"status": "ok", "argo": health["healthy"]})


def _instructions() -> str:
    return (
        "Argo Workflows MCP server. "
        "Tools are generated from the Argo Server OpenAPI schema, plus helpers "
        "for listing, inspecting, submitting and managing workflows."
    )


def _http_middleware(settings: Settings) -> List[Middleware]:
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins(),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["mcp-session-id"],
        )
    ]
    if settings.http_auth_token:
        middleware.append(Middleware(BearerAuthMiddleware, token=settings.http_auth_token))
    else:
        logger.warning("HTTP_AUTH_TOKEN not set; MCP endpoint is unauthenticated")
    return middleware


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.transport_type
    if transport == "http":
        return mcp.http_app(
            path=settings.http_path,
            middleware=_http_middleware(settings),
            transport="http",
            stateless_http=True,
            json_response=True,
        )
    if transport in {"streamable-http", "streamablehttp"}:
        return mcp.http_app(
            path=settings.http_path,
            middleware=_http_middleware(settings),
            transport="streamable-http",
        )
    if transport == "sse":
        return mcp.http_app(path=settings.http_path, middleware=_http_middleware(settings), transport="sse")
    return None
