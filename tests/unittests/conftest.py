import copy

import pytest

from argo_mcp.config import Settings
from argo_mcp.openapi import SchemaDocument


OPENAPI3_DOC = {
    "openapi": "3.0.1",
    "info": {"title": "Argo Workflows API", "version": "3.5.0"},
    "paths": {
        "/api/v1/workflows/{namespace}": {
            "parameters": [
                {"name": "namespace", "in": "path", "required": True, "schema": {"type": "string"}}
            ],
            "get": {
                "operationId": "WorkflowService_ListWorkflows",
                "summary": "List workflows",
                "tags": ["WorkflowService"],
                "parameters": [
                    {
                        "name": "listOptions.labelSelector",
                        "in": "query",
                        "description": "A selector to restrict the list of returned objects by their labels.",
                        "schema": {"type": "string"},
                    },
                    {"name": "listOptions.limit", "in": "query", "schema": {"type": "string", "format": "int64"}},
                ],
                "responses": {"200": {"description": "A successful response."}},
            },
            "post": {
                "operationId": "WorkflowService_CreateWorkflow",
                "summary": "Create a workflow",
                "description": "Creates a new workflow in the namespace.",
                "tags": ["WorkflowService"],
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {"$ref": "#/components/schemas/WorkflowCreateRequest"}
                        }
                    },
                },
                "responses": {"200": {"description": "A successful response."}},
            },
        },
        "/api/v1/workflows/{namespace}/{name}": {
            "get": {
                "operationId": "WorkflowService_GetWorkflow",
                "description": "Get a single workflow.\nReturns the full object.",
                "parameters": [
                    {"name": "namespace", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "name", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "fields", "in": "query", "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "A successful response."}},
            },
            "delete": {
                "operationId": "WorkflowService_DeleteWorkflow",
                "parameters": [
                    {"name": "namespace", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "name", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "A successful response."}},
            },
        },
        "/api/v1/workflows/{namespace}/{name}/retry": {
            "put": {
                "summary": "Retry a workflow",
                "parameters": [
                    {"name": "namespace", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "name", "in": "path", "required": True, "schema": {"type": "string"}},
                ],
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {"$ref": "#/components/schemas/WorkflowRetryRequest"}
                        }
                    }
                },
                "responses": {"200": {"description": "A successful response."}},
            }
        },
        "/api/v1/version": {
            "get": {
                "operationId": "InfoService_GetVersion",
                "responses": {"200": {"description": "A successful response."}},
            },
            "x-internal": True,
        },
    },
    "components": {
        "schemas": {
            "WorkflowCreateRequest": {
                "type": "object",
                "properties": {
                    "namespace": {"type": "string"},
                    "serverDryRun": {"type": "boolean"},
                    "workflow": {"$ref": "#/components/schemas/Workflow"},
                },
            },
            "WorkflowRetryRequest": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "namespace": {"type": "string"},
                    "restartSuccessful": {"type": "boolean"},
                },
            },
            "Workflow": {
                "type": "object",
                "required": ["metadata", "spec"],
                "properties": {
                    "metadata": {"$ref": "#/components/schemas/ObjectMeta"},
                    "spec": {"$ref": "#/components/schemas/WorkflowSpec"},
                },
            },
            "ObjectMeta": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "labels": {"type": "object", "additionalProperties": {"type": "string"}},
                },
            },
            "WorkflowSpec": {
                "type": "object",
                "properties": {
                    "entrypoint": {"type": "string"},
                    "templates": {"type": "array", "items": {"$ref": "#/components/schemas/Template"}},
                },
            },
            "Template": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "steps": {
                        "type": "array",
                        "items": {"$ref": "#/components/schemas/Template"},
                    },
                },
            },
        }
    },
}


SWAGGER2_DOC = {
    "swagger": "2.0",
    "info": {"title": "Argo Server API", "version": "v3.4"},
    "paths": {
        "/api/v1/workflow-templates/{namespace}": {
            "get": {
                "tags": ["WorkflowTemplateService"],
                "summary": "List workflow templates",
                "parameters": [
                    {"name": "namespace", "in": "path", "required": True, "type": "string"},
                    {
                        "name": "listOptions.limit",
                        "in": "query",
                        "type": "integer",
                        "format": "int64",
                        "description": "Page size.",
                    },
                    {
                        "name": "phase",
                        "in": "query",
                        "type": "array",
                        "items": {"type": "string", "enum": ["Running", "Failed"]},
                    },
                ],
                "responses": {"200": {"description": "ok"}},
            },
            "post": {
                "operationId": "WorkflowTemplateService_CreateWorkflowTemplate",
                "parameters": [
                    {"name": "namespace", "in": "path", "required": True, "type": "string"},
                    {
                        "name": "body",
                        "in": "body",
                        "required": True,
                        "schema": {"$ref": "#/definitions/WorkflowTemplateCreateRequest"},
                    },
                ],
                "responses": {"200": {"description": "ok"}},
            },
        }
    },
    "definitions": {
        "WorkflowTemplateCreateRequest": {
            "type": "object",
            "properties": {
                "namespace": {"type": "string"},
                "template": {"$ref": "#/definitions/WorkflowTemplate"},
            },
        },
        "WorkflowTemplate": {
            "type": "object",
            "properties": {"metadata": {"type": "object"}, "spec": {"type": "object"}},
        },
    },
}


@pytest.fixture
def openapi3_raw():
    return copy.deepcopy(OPENAPI3_DOC)


@pytest.fixture
def swagger2_raw():
    return copy.deepcopy(SWAGGER2_DOC)


@pytest.fixture
def openapi3_document(openapi3_raw):
    return SchemaDocument.from_dict(openapi3_raw, "openapi3.json")


@pytest.fixture
def swagger2_document(swagger2_raw):
    return SchemaDocument.from_dict(swagger2_raw, "swagger2.json")


@pytest.fixture
def settings():
    return Settings(
        argo_server_url="http://argo.test",
        argo_token="Bearer secret-token",
        argo_namespace="argo",
        api_retry_attempts=3,
        api_retry_delay_seconds=0.01,
        api_retry_max_delay_seconds=0.02,
    )
