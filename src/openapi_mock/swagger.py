"""
Swagger 2.0 to OpenAPI 3.x conversion.

Runs as the processor's upgrade step, before validation and dereferencing,
so a converted document goes through the same pipeline as a native one:

- ``definitions`` -> ``components.schemas`` (``#/definitions/*`` refs rewritten)
- ``securityDefinitions`` -> ``components.securitySchemes``
- ``body`` / ``formData`` parameters + ``consumes`` -> ``requestBody``
- response ``schema`` + ``produces`` -> response ``content``
- ``host`` / ``basePath`` / ``schemes`` -> ``servers``

Shared ``#/parameters/*`` entries are inlined into the operations that use
them, since a body parameter has no 3.x parameter equivalent.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/json"

_FORM_MEDIA_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

_REF_PREFIXES = {
    "#/definitions/": "#/components/schemas/",
    "#/responses/": "#/components/responses/",
    "#/parameters/": "#/components/parameters/",
}

_OPERATION_KEYS = ("get", "put", "post", "delete", "options", "head", "patch")

# Top-level fields that mean the same thing in both versions
_CARRIED_FIELDS = ("info", "tags", "externalDocs", "security")

# Parameter keywords that describe the value and move under ``schema`` in 3.x
_PARAM_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
)

_OAUTH2_FLOWS = {
    "implicit": ("implicit", ("authorizationUrl",)),
    "password": ("password", ("tokenUrl",)),
    "application": ("clientCredentials", ("tokenUrl",)),
    "accessCode": ("authorizationCode", ("authorizationUrl", "tokenUrl")),
}


def is_swagger2(raw: dict[str, Any]) -> bool:
    return str(raw.get("swagger", "")).startswith("2")


def convert_swagger2(raw: dict[str, Any], openapi_version: str) -> dict[str, Any]:
    """Convert a parsed Swagger 2.0 document to an OpenAPI 3.x document.

    Args:
        raw: The parsed Swagger document. Not modified.
        openapi_version: Value for the converted document's ``openapi`` field.

    Returns:
        A new document. Vendor extensions (``x-*``) are carried over.
    """
    document: dict[str, Any] = {"openapi": openapi_version}
    for key, value in raw.items():
        if key in _CARRIED_FIELDS or key.startswith("x-"):
            document[key] = copy.deepcopy(value)

    servers = _servers(raw)
    if servers:
        document["servers"] = servers

    consumes = raw.get("consumes") or [DEFAULT_MEDIA_TYPE]
    produces = raw.get("produces") or [DEFAULT_MEDIA_TYPE]
    shared_params = raw.get("parameters") or {}

    document["paths"] = {
        path: _path_item(item, shared_params, consumes, produces)
        for path, item in (raw.get("paths") or {}).items()
        if isinstance(item, dict)
    }

    components: dict[str, Any] = {}
    if raw.get("definitions"):
        components["schemas"] = copy.deepcopy(raw["definitions"])
    if raw.get("responses"):
        components["responses"] = {
            name: _response(response, produces) for name, response in raw["responses"].items()
        }
    if raw.get("securityDefinitions"):
        components["securitySchemes"] = {
            name: _security_scheme(scheme)
            for name, scheme in raw["securityDefinitions"].items()
            if isinstance(scheme, dict)
        }
    if components:
        document["components"] = components

    logger.debug(
        "Converted Swagger %s document with %d path(s)", raw.get("swagger"), len(document["paths"])
    )
    result: dict[str, Any] = rewrite_refs(document)
    return result


def rewrite_refs(node: Any) -> Any:
    """Point Swagger 2.0 local ``$ref`` values at their 3.x component locations."""
    if isinstance(node, dict):
        out = {}
        for key, value in node.items():
            if key == "$ref" and isinstance(value, str):
                out[key] = _rewrite_ref(value)
            else:
                out[key] = rewrite_refs(value)
        return out
    if isinstance(node, list):
        return [rewrite_refs(v) for v in node]
    return node


def _rewrite_ref(ref: str) -> str:
    for old, new in _REF_PREFIXES.items():
        if ref.startswith(old):
            return new + ref[len(old) :]
    return ref


def _servers(raw: dict[str, Any]) -> list[dict[str, str]]:
    host = raw.get("host")
    base_path = raw.get("basePath") or ""
    if host:
        schemes = raw.get("schemes") or ["https"]
        return [{"url": f"{scheme}://{host}{base_path}"} for scheme in schemes]
    if base_path:
        return [{"url": base_path}]
    return []


# =============================================================================
# Paths & operations
# =============================================================================


def _path_item(
    item: dict[str, Any],
    shared_params: dict[str, Any],
    consumes: list[str],
    produces: list[str],
) -> dict[str, Any]:
    path_params = [_inline_param(p, shared_params) for p in item.get("parameters") or []]
    carried = [p for p in path_params if p.get("in") not in ("body", "formData")]
    inherited_body = [p for p in path_params if p.get("in") in ("body", "formData")]

    out: dict[str, Any] = {}
    for key, value in item.items():
        if key == "parameters":
            if carried:
                out["parameters"] = [_parameter(p) for p in carried]
        elif isinstance(value, dict) and key in _OPERATION_KEYS:
            out[key] = _operation(value, inherited_body, shared_params, consumes, produces)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _operation(
    operation: dict[str, Any],
    inherited_body: list[dict[str, Any]],
    shared_params: dict[str, Any],
    consumes: list[str],
    produces: list[str],
) -> dict[str, Any]:
    out = {
        k: copy.deepcopy(v)
        for k, v in operation.items()
        if k not in ("parameters", "responses", "consumes", "produces", "schemes")
    }
    op_consumes = operation.get("consumes") or consumes
    op_produces = operation.get("produces") or produces

    params = [_inline_param(p, shared_params) for p in operation.get("parameters") or []]
    params = inherited_body + params
    plain = [p for p in params if p.get("in") not in ("body", "formData")]
    body = next((p for p in params if p.get("in") == "body"), None)
    form = [p for p in params if p.get("in") == "formData"]

    if plain:
        out["parameters"] = [_parameter(p) for p in plain]
    if body is not None:
        out["requestBody"] = _body_request(body, op_consumes)
    elif form:
        out["requestBody"] = _form_request(form, op_consumes)

    out["responses"] = {
        str(code): _response(response, op_produces)
        for code, response in (operation.get("responses") or {}).items()
    }
    return out


def _inline_param(param: Any, shared_params: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(param, dict):
        return {}
    ref = param.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/parameters/"):
        target = shared_params.get(ref[len("#/parameters/") :])
        if isinstance(target, dict):
            return target
    return param


def _parameter(param: dict[str, Any]) -> dict[str, Any]:
    if "$ref" in param:
        return copy.deepcopy(param)
    out = {k: copy.deepcopy(v) for k, v in param.items() if k not in _PARAM_SCHEMA_KEYS}
    out.pop("collectionFormat", None)
    out.pop("allowEmptyValue", None)
    out["schema"] = _param_schema(param)
    if param.get("in") == "path":
        out["required"] = True
    return out


def _param_schema(param: dict[str, Any]) -> dict[str, Any]:
    schema = {k: copy.deepcopy(param[k]) for k in _PARAM_SCHEMA_KEYS if k in param}
    if schema.get("type") == "file":
        schema["type"] = "string"
        schema["format"] = "binary"
    return schema


def _body_request(param: dict[str, Any], consumes: list[str]) -> dict[str, Any]:
    schema = copy.deepcopy(param.get("schema") or {})
    request: dict[str, Any] = {
        "content": {media_type: {"schema": schema} for media_type in consumes},
        "required": bool(param.get("required")),
    }
    if param.get("description"):
        request["description"] = param["description"]
    return request


def _form_request(params: list[dict[str, Any]], consumes: list[str]) -> dict[str, Any]:
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {p["name"]: _param_schema(p) for p in params if "name" in p},
    }
    required = [p["name"] for p in params if p.get("required") and "name" in p]
    if required:
        schema["required"] = required

    media_types = [m for m in consumes if m in _FORM_MEDIA_TYPES]
    if not media_types:
        has_file = any(p.get("type") == "file" for p in params)
        media_types = ["multipart/form-data" if has_file else "application/x-www-form-urlencoded"]
    return {
        "content": {media_type: {"schema": copy.deepcopy(schema)} for media_type in media_types},
        "required": bool(required),
    }


def _response(response: Any, produces: list[str]) -> Any:
    if not isinstance(response, dict) or "$ref" in response:
        return copy.deepcopy(response)

    out: dict[str, Any] = {"description": response.get("description", "")}
    schema = response.get("schema")
    if schema is not None:
        content = {media_type: {"schema": copy.deepcopy(schema)} for media_type in produces}
        for media_type, example in (response.get("examples") or {}).items():
            if media_type in content:
                content[media_type]["example"] = copy.deepcopy(example)
        out["content"] = content
    if response.get("headers"):
        out["headers"] = {
            name: {"description": header.get("description", ""), "schema": _param_schema(header)}
            for name, header in response["headers"].items()
            if isinstance(header, dict)
        }
    for key, value in response.items():
        if key.startswith("x-"):
            out[key] = copy.deepcopy(value)
    return out


# =============================================================================
# Security
# =============================================================================


def _security_scheme(scheme: dict[str, Any]) -> dict[str, Any]:
    kind = scheme.get("type")
    out: dict[str, Any]
    if kind == "basic":
        out = {"type": "http", "scheme": "basic"}
    elif kind == "apiKey":
        out = {"type": "apiKey", "name": scheme.get("name", ""), "in": scheme.get("in", "header")}
    elif kind == "oauth2":
        flow_name, url_keys = _OAUTH2_FLOWS.get(
            scheme.get("flow", ""), ("implicit", ("authorizationUrl",))
        )
        flow = {key: scheme.get(key, "") for key in url_keys}
        flow["scopes"] = copy.deepcopy(scheme.get("scopes") or {})
        out = {"type": "oauth2", "flows": {flow_name: flow}}
    else:
        out = copy.deepcopy(scheme)
    if scheme.get("description"):
        out["description"] = scheme["description"]
    return out
