"""
Structural JSON Schema for OpenAPI 3.0 / 3.1 documents.

Covers the parts of the OpenAPI meta-schema the mock engine relies on:
document root, info, paths and operations, parameters, request bodies,
responses, components and security. Schema Objects themselves are only
checked to be objects (or booleans, as 3.1 allows).
"""

from __future__ import annotations

from typing import Any

import jsonschema

_HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_EXTENSIONS = {"^x-": {}}


def _reference_or(definition: dict[str, Any]) -> dict[str, Any]:
    return {"type": "object", "anyOf": [{"required": ["$ref"]}, definition]}


OPENAPI_3: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "OpenAPI 3.x structural schema",
    "type": "object",
    "required": ["openapi", "info"],
    "properties": {
        "openapi": {"type": "string", "pattern": r"^3\.[0-9]+(\.[0-9]+)?"},
        "info": {"$ref": "#/$defs/info"},
        "jsonSchemaDialect": {"type": "string"},
        "servers": {"type": "array", "items": {"$ref": "#/$defs/server"}},
        "paths": {"$ref": "#/$defs/paths"},
        "webhooks": {"type": "object"},
        "components": {"$ref": "#/$defs/components"},
        "security": {"$ref": "#/$defs/securityRequirements"},
        "tags": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {"name": {"type": "string"}},
            },
        },
        "externalDocs": {"type": "object", "required": ["url"]},
    },
    "$defs": {
        "info": {
            "type": "object",
            "required": ["title", "version"],
            "properties": {
                "title": {"type": "string"},
                "version": {"type": "string"},
                "description": {"type": "string"},
            },
        },
        "server": {
            "type": "object",
            "required": ["url"],
            "properties": {"url": {"type": "string"}},
        },
        "paths": {
            "type": "object",
            "patternProperties": {"^/": {"$ref": "#/$defs/pathItem"}, **_EXTENSIONS},
            "additionalProperties": False,
        },
        "pathItem": {
            "type": "object",
            "properties": {
                "$ref": {"type": "string"},
                "summary": {"type": "string"},
                "description": {"type": "string"},
                "parameters": {"$ref": "#/$defs/parameters"},
                **{method: {"$ref": "#/$defs/operation"} for method in _HTTP_METHODS},
            },
        },
        "operation": {
            "type": "object",
            "properties": {
                "operationId": {"type": "string"},
                "summary": {"type": "string"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "parameters": {"$ref": "#/$defs/parameters"},
                "requestBody": {"$ref": "#/$defs/requestBodyOrReference"},
                "responses": {"$ref": "#/$defs/responses"},
                "security": {"$ref": "#/$defs/securityRequirements"},
                "deprecated": {"type": "boolean"},
            },
        },
        "parameters": {
            "type": "array",
            "items": {"$ref": "#/$defs/parameterOrReference"},
        },
        "parameterOrReference": _reference_or(
            {
                "required": ["name", "in"],
                "properties": {
                    "name": {"type": "string"},
                    "in": {"enum": ["query", "header", "path", "cookie"]},
                    "required": {"type": "boolean"},
                    "schema": {"$ref": "#/$defs/schema"},
                },
            }
        ),
        "requestBodyOrReference": _reference_or(
            {
                "required": ["content"],
                "properties": {
                    "content": {"$ref": "#/$defs/content"},
                    "required": {"type": "boolean"},
                },
            }
        ),
        "content": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {"schema": {"$ref": "#/$defs/schema"}},
            },
        },
        "responses": {
            "type": "object",
            "patternProperties": {
                "^([1-5][0-9X]{2}|default)$": {"$ref": "#/$defs/responseOrReference"},
                **_EXTENSIONS,
            },
            "additionalProperties": False,
        },
        "responseOrReference": _reference_or(
            {
                "required": ["description"],
                "properties": {
                    "description": {"type": "string"},
                    "content": {"$ref": "#/$defs/content"},
                    "headers": {"type": "object"},
                },
            }
        ),
        "schema": {"type": ["object", "boolean"]},
        "components": {
            "type": "object",
            "properties": {
                "schemas": {"type": "object", "additionalProperties": {"$ref": "#/$defs/schema"}},
                "responses": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/$defs/responseOrReference"},
                },
                "parameters": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/$defs/parameterOrReference"},
                },
                "requestBodies": {
                    "type": "object",
                    "additionalProperties": {"$ref": "#/$defs/requestBodyOrReference"},
                },
                "securitySchemes": {
                    "type": "object",
                    "additionalProperties": _reference_or({"$ref": "#/$defs/securityScheme"}),
                },
            },
        },
        "securityScheme": {
            "type": "object",
            "required": ["type"],
            "properties": {
                "type": {"enum": ["apiKey", "http", "oauth2", "openIdConnect", "mutualTLS"]},
            },
            "allOf": [
                {
                    "if": {"properties": {"type": {"const": "apiKey"}}},
                    "then": {
                        "required": ["name", "in"],
                        "properties": {"in": {"enum": ["query", "header", "cookie"]}},
                    },
                },
                {
                    "if": {"properties": {"type": {"const": "http"}}},
                    "then": {"required": ["scheme"]},
                },
                {
                    "if": {"properties": {"type": {"const": "oauth2"}}},
                    "then": {"required": ["flows"]},
                },
                {
                    "if": {"properties": {"type": {"const": "openIdConnect"}}},
                    "then": {"required": ["openIdConnectUrl"]},
                },
            ],
        },
        "securityRequirements": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
}


def make_validator(schema: dict[str, Any] = OPENAPI_3) -> jsonschema.protocols.Validator:
    return jsonschema.validators.validator_for(schema)(schema)
