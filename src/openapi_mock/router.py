"""
Route compiler - turns a processed OpenAPI document into FastAPI routes.

Every path x method becomes one route whose body runs a fixed chain:

1. ``on_request`` hook
2. security check (401 with ``WWW-Authenticate`` on failure)
3. simulation lookup (optional delay, then the configured response)
4. developer handler, through the handler executor
5. fallback: store-backed CRUD or data generated from the response schema
6. ``on_response`` hook

Routes close over the handler map they were compiled with. Swapping
handlers at runtime only refreshes the registry flags (see
``update_registry_handlers``); rebuild the routes to rebind them.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from openapi_mock.data_generators import DataGenerator
from openapi_mock.errors import StoreDuplicateIdError, StoreError, UnauthorizedError
from openapi_mock.handlers import (
    HandlerContext,
    HandlerFn,
    HandlerRequest,
    HandlerResponse,
    execute_handler,
    normalize_status,
)
from openapi_mock.processor import HTTP_METHODS
from openapi_mock.registry import EndpointRegistry, RegistryEntry
from openapi_mock.security import (
    SecurityEvaluator,
    SecurityRequest,
    SecurityRequirementSet,
    effective_security,
)
from openapi_mock.simulation import SimulationManager, simulation_key
from openapi_mock.state import DEFAULT_ID_FIELD, MockStore

logger = logging.getLogger(__name__)

RequestHook = Callable[[dict[str, Any]], None]

_BODYLESS_STATUSES = {204, 205, 304}
_PARAM_RE = re.compile(r"\{([^}]+)\}")


@dataclass
class RouteBuildResult:
    """Compiled routes plus their descriptive registry."""

    router: APIRouter
    registry: EndpointRegistry
    operations: list[CompiledOperation] = field(default_factory=list)


# =============================================================================
# Path conversion
# =============================================================================


def _path_to_fastapi(path: str) -> tuple[str, dict[str, str]]:
    """Convert an OpenAPI path template to a FastAPI path.

    Parameter names that are not Python identifiers are rewritten.

    Returns:
        The FastAPI path and a mapping of rewritten name -> original name.

    Examples:
        /pets/{petId}        -> /pets/{petId}, {"petId": "petId"}
        /files/{file-name}   -> /files/{file_name}, {"file_name": "file-name"}
    """
    names: dict[str, str] = {}

    def replace(match: re.Match[str]) -> str:
        original = match.group(1)
        safe = re.sub(r"\W", "_", original)
        if not safe or safe[0].isdigit():
            safe = f"p_{safe}"
        candidate = safe
        counter = 2
        while candidate in names:
            candidate = f"{safe}_{counter}"
            counter += 1
        names[candidate] = original
        return "{" + candidate + "}"

    return _PARAM_RE.sub(replace, path), names


def _route_sort_key(path: str) -> list[int]:
    # Static segments sort before templated ones at the same position
    return [1 if "{" in segment else 0 for segment in path.strip("/").split("/")]


def _default_operation_id(method: str, path: str) -> str:
    slug = re.sub(r"[^0-9a-zA-Z]+", "_", path).strip("_")
    return f"{method.lower()}_{slug}" if slug else method.lower()


# =============================================================================
# Schema helpers
# =============================================================================


def _json_content_schema(content: Any) -> Any:
    if not isinstance(content, dict) or not content:
        return None
    for media_type in ("application/json", "application/problem+json"):
        if isinstance(content.get(media_type), dict):
            return content[media_type].get("schema")
    for media_type, media in content.items():
        if "json" in media_type and isinstance(media, dict):
            return media.get("schema")
    first = next(iter(content.values()))
    return first.get("schema") if isinstance(first, dict) else None


def success_response(operation: dict[str, Any]) -> tuple[int, Any, set[str]]:
    """Pick the success status and schema an operation responds with.

    Returns:
        (status, response schema or None, declared status keys).
    """
    responses = operation.get("responses") or {}
    declared = {str(code) for code in responses}
    success_codes = sorted(
        int(code) for code in declared if code.isdigit() and 200 <= int(code) < 300
    )
    if success_codes:
        status = success_codes[0]
        response = responses.get(str(status)) or responses.get(status)
    elif "2XX" in declared:
        status, response = 200, responses["2XX"]
    elif "default" in declared:
        status, response = 200, responses["default"]
    else:
        status, response = 200, None
    schema = _json_content_schema(response.get("content")) if isinstance(response, dict) else None
    return status, schema, declared


def request_body_schema(operation: dict[str, Any]) -> Any:
    body = operation.get("requestBody")
    if not isinstance(body, dict):
        return None
    return _json_content_schema(body.get("content"))


def _item_schema(schema: Any) -> Any:
    if isinstance(schema, dict) and (schema.get("type") == "array" or "items" in schema):
        return schema.get("items")
    return schema


def resolve_schema_name(schema: Any, document: dict[str, Any]) -> str | None:
    """Name of the component schema a (possibly array) schema describes.

    Uses the schema's ``title`` when present, otherwise finds the schema by
    identity among ``components.schemas`` (dereferenced documents share
    component objects with every place that referenced them).
    """
    item = _item_schema(schema)
    if not isinstance(item, dict):
        return None
    title = item.get("title")
    if isinstance(title, str) and title:
        return title
    for name, candidate in ((document.get("components") or {}).get("schemas") or {}).items():
        if candidate is item:
            return name
    return None


# =============================================================================
# Compilation
# =============================================================================


def build_routes(
    document: dict[str, Any],
    *,
    store: MockStore,
    simulation_manager: SimulationManager,
    handlers: dict[str, HandlerFn] | None = None,
    seeds: dict[str, Any] | None = None,
    generator: DataGenerator | None = None,
    on_request: RequestHook | None = None,
    on_response: RequestHook | None = None,
    log: Any = None,
) -> RouteBuildResult:
    """Compile every operation in a processed document into a route.

    Args:
        document: Output of ``process_openapi_document``.
        store: Store backing the fallback CRUD behaviour.
        simulation_manager: Simulation table consulted on every request.
        handlers: operationId -> handler. Captured at compile time.
        seeds: Seed definitions, only used to set registry ``has_seed`` flags.
        generator: Data generator for fallback responses.
        on_request: Called once per request before any other step.
        on_response: Called once per request with the final response.
        log: Logger (defaults to this module's logger).

    Returns:
        An ``APIRouter`` with one route per operation and the registry.
    """
    handlers = handlers if handlers is not None else {}
    seed_names = set(seeds or {})
    generator = generator or DataGenerator()
    evaluator = SecurityEvaluator.from_document(document)
    log = log or logger

    router = APIRouter()
    registry = EndpointRegistry()
    operations: list[CompiledOperation] = []

    paths = [
        (path, item)
        for path, item in (document.get("paths") or {}).items()
        if path.startswith("/") and isinstance(item, dict)
    ]
    for path, path_item in sorted(paths, key=lambda p: _route_sort_key(p[0])):
        fastapi_path, param_names = _path_to_fastapi(path)
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId") or _default_operation_id(method, path)
            status, response_schema, declared = success_response(operation)
            req_schema = request_body_schema(operation)
            security = effective_security(operation, document)
            resource = resolve_schema_name(response_schema, document) or resolve_schema_name(
                req_schema, document
            )

            entry = RegistryEntry(
                operation_id=operation_id,
                method=method.upper(),
                path=path,
                summary=operation.get("summary"),
                has_handler=operation_id in handlers,
                has_seed=resource is not None and resource in seed_names,
                request_schema=resolve_schema_name(req_schema, document),
                response_schema=resource,
                effective_security=security,
            )
            registry.add(entry)

            compiled = CompiledOperation(
                entry=entry,
                param_names=param_names,
                security=security,
                success_status=status,
                response_schema=response_schema,
                request_schema=req_schema,
                declared_statuses=declared,
                resource=resource,
                store=store,
                simulation_manager=simulation_manager,
                handlers=handlers,
                generator=generator,
                evaluator=evaluator,
                on_request=on_request,
                on_response=on_response,
                log=log,
            )
            operations.append(compiled)
            router.add_api_route(
                fastapi_path,
                compiled.endpoint(),
                methods=[method.upper()],
                name=operation_id,
                summary=operation.get("summary"),
                include_in_schema=False,
            )

    log.debug("Compiled %d route(s)", len(operations))
    return RouteBuildResult(router=router, registry=registry, operations=operations)


@dataclass
class CompiledOperation:
    """One operation's compiled request pipeline."""

    entry: RegistryEntry
    param_names: dict[str, str]
    security: list[SecurityRequirementSet]
    success_status: int
    response_schema: Any
    request_schema: Any
    declared_statuses: set[str]
    resource: str | None
    store: MockStore
    simulation_manager: SimulationManager
    handlers: dict[str, HandlerFn]
    generator: DataGenerator
    evaluator: SecurityEvaluator
    on_request: RequestHook | None = None
    on_response: RequestHook | None = None
    log: Any = logger

    @property
    def key(self) -> str:
        return simulation_key(self.entry.method, self.entry.path)

    @property
    def item_param(self) -> str | None:
        """Original name of the trailing path parameter, if the path ends in one."""
        last = self.entry.path.rstrip("/").rsplit("/", 1)[-1]
        match = _PARAM_RE.fullmatch(last)
        return match.group(1) if match else None

    def endpoint(self) -> Callable[[Request], Any]:
        async def endpoint(request: Request) -> Response:
            return await self.handle(request)

        endpoint.__name__ = re.sub(r"\W", "_", self.entry.operation_id)
        return endpoint

    async def handle(self, request: Request) -> Response:
        started = time.perf_counter()
        req = await self._handler_request(request)
        entry_id = uuid.uuid4().hex
        self._emit(
            self.on_request,
            {
                "id": entry_id,
                "method": req.method,
                "path": req.path,
                "operation_id": self.entry.operation_id,
                "timestamp": datetime.now(UTC).isoformat(),
                "headers": dict(req.headers),
                "query": dict(req.query),
                "body": req.body,
            },
        )

        response, simulated = await self.evaluate(req, request)

        self._emit(
            self.on_response,
            {
                "id": entry_id,
                "operation_id": self.entry.operation_id,
                "status": response.status,
                "duration": round((time.perf_counter() - started) * 1000, 2),
                "headers": dict(response.headers),
                "body": response.data,
                "simulated": simulated,
            },
        )
        return _to_http_response(response, req.method)

    async def evaluate(self, req: HandlerRequest, request: Request) -> tuple[HandlerResponse, bool]:
        """Run security, simulation, handler and fallback in order.

        Returns:
            The response and whether it came from a simulation.
        """
        try:
            security = self.evaluator.evaluate(
                self.security,
                SecurityRequest(headers=req.headers, query=req.query, cookies=dict(request.cookies)),
            )
        except UnauthorizedError as e:
            return (
                HandlerResponse(
                    status=401,
                    data={"error": "Unauthorized", "message": str(e)},
                    headers={"WWW-Authenticate": e.challenge},
                ),
                False,
            )

        simulation = self.simulation_manager.get(self.key)
        if simulation is not None:
            await simulation.wait()
            return (
                HandlerResponse(
                    status=normalize_status(simulation.status, self.log),
                    data=simulation.body,
                    headers=dict(simulation.headers),
                ),
                True,
            )

        handler = self.handlers.get(self.entry.operation_id)
        if handler is not None:
            context = HandlerContext(
                req=req,
                store=self.store,
                faker=self.generator.faker,
                logger=self.log,
                security=security,
                operation_id=self.entry.operation_id,
            )
            return await execute_handler(handler, context), False

        try:
            return self.fallback(req), False
        except StoreDuplicateIdError as e:
            return HandlerResponse(status=409, data={"error": "Conflict", "message": str(e)}), False
        except StoreError as e:
            return HandlerResponse(status=400, data={"error": "Bad Request", "message": str(e)}), False

    # =========================================================================
    # Fallback
    # =========================================================================

    def fallback(self, req: HandlerRequest) -> HandlerResponse:
        """Store-backed CRUD when the resource has a collection, else generated data."""
        method = self.entry.method
        name = self.resource
        item_id = req.params.get(self.item_param) if self.item_param else None

        if name is not None and method == "POST":
            return self._create(name, req.body)

        if name is not None and self.store.has_schema(name):
            is_list = isinstance(self.response_schema, dict) and (
                self.response_schema.get("type") == "array" or "items" in self.response_schema
            )
            if method == "GET" and is_list:
                return HandlerResponse(status=200, data=self.store.list(name))
            if item_id is not None:
                if method == "GET":
                    return self._found(self.store.get(name, item_id))
                if method in ("PUT", "PATCH"):
                    if not isinstance(req.body, dict):
                        return _bad_request("Request body must be a JSON object")
                    updated = self.store.update(name, item_id, req.body, replace=method == "PUT")
                    return self._found(updated)
                if method == "DELETE":
                    if not self.store.delete(name, item_id):
                        return _not_found()
                    if "204" in self.declared_statuses:
                        return HandlerResponse(status=204)
                    return HandlerResponse(status=200, data={"ok": True})

        response = self._generated()
        if item_id is not None and isinstance(response.data, dict):
            self._stamp_path_id(response.data, name, item_id)
        return response

    def _stamp_path_id(self, record: dict[str, Any], name: str | None, item_id: str) -> None:
        """Make a generated single-resource record carry the id from the URL."""
        id_field = self.store.get_id_field(name) if name is not None else DEFAULT_ID_FIELD
        item_schema = _item_schema(self.response_schema)
        properties = (item_schema.get("properties") or {}) if isinstance(item_schema, dict) else {}
        if id_field not in record and id_field not in properties:
            return
        id_schema = properties.get(id_field)
        id_type = id_schema.get("type") if isinstance(id_schema, dict) else None
        if id_type is None:
            id_type = type(record.get(id_field)).__name__
        record[id_field] = _coerce_path_id(item_id, id_type)

    def _found(self, record: dict[str, Any] | None) -> HandlerResponse:
        return HandlerResponse(status=200, data=record) if record is not None else _not_found()

    def _generated(self) -> HandlerResponse:
        status = self.success_status
        if status in _BODYLESS_STATUSES or self.response_schema is None:
            return HandlerResponse(status=status)
        return HandlerResponse(status=status, data=self.generator.generate(self.response_schema))

    def _create(self, name: str, body: Any) -> HandlerResponse:
        if not isinstance(body, dict):
            return _bad_request("Request body must be a JSON object")

        request_schema = self.request_schema if isinstance(self.request_schema, dict) else {}
        required = request_schema.get("required") or []
        missing = [field_name for field_name in required if field_name not in body]
        if missing:
            return HandlerResponse(
                status=400,
                data={"error": "Missing required field(s)", "fields": missing},
            )

        item_schema = _item_schema(self.response_schema) or _item_schema(self.request_schema)
        record = self.generator.generate(item_schema) if isinstance(item_schema, dict) else {}
        if not isinstance(record, dict):
            record = {}
        record.update(body)

        id_field = self.store.get_id_field(name)
        if record.get(id_field) is None or id_field not in body:
            record[id_field] = self._next_id(name, id_field, item_schema)

        return HandlerResponse(status=201, data=self.store.create(name, record))

    def _next_id(self, name: str, id_field: str, item_schema: Any) -> Any:
        id_schema = {}
        if isinstance(item_schema, dict):
            id_schema = (item_schema.get("properties") or {}).get(id_field) or {}
        existing = [r.get(id_field) for r in self.store.list(name)]
        numeric = [v for v in existing if isinstance(v, int) and not isinstance(v, bool)]
        if id_schema.get("type") == "integer" or (numeric and "type" not in id_schema):
            return max(numeric, default=0) + 1
        value = self.generator.generate_id(id_schema)
        while self.store.has(name, value):
            value = self.generator.generate_id(id_schema)
        return value

    # =========================================================================
    # Plumbing
    # =========================================================================

    async def _handler_request(self, request: Request) -> HandlerRequest:
        return HandlerRequest(
            method=request.method.upper(),
            path=request.url.path,
            params={self.param_names.get(k, k): v for k, v in request.path_params.items()},
            query=_query_dict(request),
            body=await _read_body(request),
            headers=dict(request.headers),
        )

    def _emit(self, hook: RequestHook | None, entry: dict[str, Any]) -> None:
        if hook is None:
            return
        try:
            hook(entry)
        except Exception:
            self.log.exception("Request hook failed for %s", self.key)


def _query_dict(request: Request) -> dict[str, str | list[str]]:
    query: dict[str, str | list[str]] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        query[key] = values[0] if len(values) == 1 else values
    return query


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type:
        return dict(parse_qsl(raw.decode("utf-8", errors="replace")))
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _not_found() -> HandlerResponse:
    return HandlerResponse(status=404, data={"error": "Not found"})


def _bad_request(message: str) -> HandlerResponse:
    return HandlerResponse(status=400, data={"error": "Bad Request", "message": message})


def _coerce_path_id(value: str, id_type: Any) -> Any:
    """Convert a path segment to the id field's type; unparseable values stay strings."""
    types = id_type if isinstance(id_type, list) else [id_type]
    try:
        if "integer" in types or "int" in types:
            return int(value)
        if "number" in types or "float" in types:
            return float(value)
    except ValueError:
        return value
    return value


def _to_http_response(response: HandlerResponse, method: str) -> Response:
    headers = dict(response.headers)
    if response.status in _BODYLESS_STATUSES or method == "HEAD" or response.data is None:
        return Response(status_code=response.status, headers=headers)
    if isinstance(response.data, bytes):
        return Response(content=response.data, status_code=response.status, headers=headers)
    content_type = next((v for k, v in headers.items() if k.lower() == "content-type"), None)
    if isinstance(response.data, str) and content_type and "json" not in content_type:
        return Response(content=response.data, status_code=response.status, headers=headers)
    return JSONResponse(
        content=jsonable_encoder(response.data), status_code=response.status, headers=headers
    )
