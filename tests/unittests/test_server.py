"""Tool registration and HTTP guard tests for the MCP server."""

import json

import pytest
from fastmcp import Client, FastMCP
from fastmcp.exceptions import ToolError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from argo_mcp.compiler import compile_document
from argo_mcp.errors import ArgoAPIError
from argo_mcp.server import BearerAuthMiddleware, register_compiled_tools, register_workflow_tools
from argo_mcp.workflow_service import WorkflowService


class FakeDispatcher:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def dispatch(self, name, arguments):
        self.calls.append((name, arguments))
        if self.error:
            raise self.error
        return {"tool": name, "arguments": arguments}


class FakeArgoClient:
    def __init__(self):
        self.calls = []

    async def get(self, path, params=None):
        self.calls.append(("GET", path, params))
        return {"metadata": {"name": path.rsplit("/", 1)[-1]}}

    async def health_check(self):
        return {"healthy": True, "version": "v3.5.0", "details": {}}


def _server(openapi3_document, dispatcher, client=None):
    client = client or FakeArgoClient()
    mcp = FastMCP("test")
    reserved = register_workflow_tools(mcp, WorkflowService(client, "argo"), client)
    compiled = compile_document(openapi3_document)
    count = register_compiled_tools(mcp, compiled.tools, dispatcher, reserved)
    return mcp, reserved, count


class TestToolRegistration:
    @pytest.mark.asyncio
    async def test_lists_workflow_and_compiled_tools(self, openapi3_document):
        mcp, reserved, count = _server(openapi3_document, FakeDispatcher())

        async with Client(mcp) as client:
            names = {tool.name for tool in await client.list_tools()}

        assert len(reserved) == 12
        assert count == 6
        assert reserved <= names
        assert {"WorkflowService_ListWorkflows", "putApiV1WorkflowsRetry"} <= names

    @pytest.mark.asyncio
    async def test_compiled_tool_schema_is_exposed(self, openapi3_document):
        mcp, _, _ = _server(openapi3_document, FakeDispatcher())

        async with Client(mcp) as client:
            tools = {tool.name: tool for tool in await client.list_tools()}

        schema = tools["WorkflowService_GetWorkflow"].inputSchema
        assert schema["required"] == ["namespace", "name"]
        assert schema["additionalProperties"] is False

    def test_workflow_tools_shadow_generated_names(self, openapi3_document):
        mcp = FastMCP("test")
        compiled = compile_document(openapi3_document)

        count = register_compiled_tools(
            mcp, compiled.tools, FakeDispatcher(), {"InfoService_GetVersion"}
        )

        assert count == 5

    @pytest.mark.asyncio
    async def test_compiled_tool_dispatches(self, openapi3_document):
        dispatcher = FakeDispatcher()
        mcp, _, _ = _server(openapi3_document, dispatcher)

        async with Client(mcp) as client:
            result = await client.call_tool(
                "WorkflowService_GetWorkflow", {"namespace": "argo", "name": "wf"}
            )

        assert dispatcher.calls == [("WorkflowService_GetWorkflow", {"namespace": "argo", "name": "wf"})]
        payload = json.loads(result.content[0].text)
        assert payload["tool"] == "WorkflowService_GetWorkflow"

    @pytest.mark.asyncio
    async def test_compiled_tool_errors_are_reported(self, openapi3_document):
        dispatcher = FakeDispatcher(error=ArgoAPIError("Resource not found: /x", 404, {"code": 5}))
        mcp, _, _ = _server(openapi3_document, dispatcher)

        async with Client(mcp) as client:
            with pytest.raises(ToolError, match="Resource not found") as exc_info:
                await client.call_tool("WorkflowService_GetWorkflow", {"namespace": "argo", "name": "x"})

        assert '"type": "ArgoAPIError"' in str(exc_info.value)
        assert '"status_code": 404' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_workflow_tool_uses_default_namespace(self, openapi3_document):
        argo = FakeArgoClient()
        mcp, _, _ = _server(openapi3_document, FakeDispatcher(), argo)

        async with Client(mcp) as client:
            await client.call_tool("get_workflow", {"name": "wf-1"})

        assert argo.calls == [("GET", "/api/v1/workflows/argo/wf-1", None)]


class TestBearerAuthMiddleware:
    @pytest.fixture
    def http(self):
        async def ok(_request):
            return PlainTextResponse("ok")

        app = Starlette(
            routes=[Route("/mcp", ok, methods=["GET", "OPTIONS"]), Route("/health", ok)],
            middleware=[Middleware(BearerAuthMiddleware, token="s3cret")],
        )
        return TestClient(app)

    def test_rejects_missing_token(self, http):
        response = http.get("/mcp")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Unauthorized"

    def test_rejects_wrong_token(self, http):
        assert http.get("/mcp", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_accepts_valid_token(self, http):
        assert http.get("/mcp", headers={"Authorization": "Bearer s3cret"}).text == "ok"

    def test_scheme_is_case_insensitive(self, http):
        assert http.get("/mcp", headers={"Authorization": "bearer s3cret"}).text == "ok"
        assert http.get("/mcp", headers={"Authorization": "BEARER  s3cret"}).text == "ok"

    def test_rejects_other_schemes(self, http):
        assert http.get("/mcp", headers={"Authorization": "Basic s3cret"}).status_code == 401

    def test_health_and_preflight_skip_auth(self, http):
        assert http.get("/health").status_code == 200
        assert http.options("/mcp").status_code == 200
