"""
Internal introspection API, mounted under ``/_api``.

Lets external tooling read and drive engine state: the endpoint registry,
store contents, the request timeline, active simulations and the processed
document. Every route maps onto one store, simulation manager, registry or
timeline method.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from openapi_mock._version import __version__
from openapi_mock.errors import SimulationValidationError, StoreError
from openapi_mock.processor import dump_document
from openapi_mock.registry import EndpointRegistry
from openapi_mock.simulation import SimulationConfig, SimulationManager, normalize_simulation_key
from openapi_mock.state import MockStore
from openapi_mock.timeline import Timeline

logger = logging.getLogger(__name__)

INTERNAL_PREFIX = "/_api"


@dataclass
class InternalApiDeps:
    store: MockStore
    registry: EndpointRegistry
    simulation_manager: SimulationManager
    timeline: Timeline
    document: dict[str, Any]


# =============================================================================
# Request Models
# =============================================================================


class SimulationRequest(BaseModel):
    """Body of ``POST /_api/simulations``. ``path`` is accepted as an alias of ``key``."""

    key: str | None = None
    path: str | None = None
    operation_id: str | None = None
    status: int
    delay_ms: float | None = None
    body: Any = None
    headers: dict[str, Any] = Field(default_factory=dict)

    @property
    def lookup_key(self) -> str | None:
        return self.key or self.path


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    return json.loads(raw) if raw else None


def _error(message: str, status: int = 400, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status)


def build_internal_router(deps: InternalApiDeps) -> APIRouter:
    """Create the ``/_api`` router for one server instance."""
    router = APIRouter(prefix=INTERNAL_PREFIX, include_in_schema=False)
    store = deps.store
    registry = deps.registry
    simulations = deps.simulation_manager
    timeline = deps.timeline

    # =========================================================================
    # Registry
    # =========================================================================

    @router.get("/registry")
    async def get_registry() -> dict[str, Any]:
        return registry.to_dict()

    # =========================================================================
    # Store
    # =========================================================================

    @router.get("/store")
    async def list_store_schemas() -> dict[str, Any]:
        return {
            "schemas": [
                {
                    "name": name,
                    "count": store.get_count(name),
                    "id_field": store.get_id_field(name),
                }
                for name in store.get_schemas()
            ]
        }

    @router.get("/store/{schema}")
    async def list_store_items(schema: str) -> dict[str, Any]:
        items = store.list(schema)
        return {
            "schema": schema,
            "count": len(items),
            "id_field": store.get_id_field(schema),
            "items": items,
        }

    @router.post("/store/{schema}", response_model=None)
    async def replace_store_items(schema: str, request: Request) -> dict[str, Any] | JSONResponse:
        try:
            data = await _json_body(request)
        except ValueError:
            return _error("Invalid JSON body")
        if not isinstance(data, list):
            return _error("Request body must be an array")

        store.clear(schema)
        created = 0
        errors: list[str] = []
        for item in data:
            try:
                store.create(schema, item)
                created += 1
            except StoreError as e:
                errors.append(str(e))

        logger.info("Store '%s' replaced with %d item(s)", schema, created)
        result: dict[str, Any] = {"success": True, "schema": schema, "created": created}
        if errors:
            result["errors"] = errors
        return result

    @router.delete("/store/{schema}")
    async def clear_store_schema(schema: str) -> dict[str, Any]:
        deleted = store.get_count(schema)
        store.clear(schema)
        return {"success": True, "schema": schema, "deleted": deleted}

    # =========================================================================
    # Timeline
    # =========================================================================

    @router.get("/timeline")
    async def get_timeline(limit: int | None = None) -> dict[str, Any]:
        entries = timeline.entries(limit or timeline.limit)
        return {"entries": entries, "count": len(entries), "total": len(timeline)}

    @router.delete("/timeline")
    async def clear_timeline() -> dict[str, Any]:
        return {"success": True, "cleared": timeline.clear()}

    # =========================================================================
    # Simulations
    # =========================================================================

    @router.get("/simulations")
    async def list_simulations() -> dict[str, Any]:
        return {
            "simulations": [sim.to_dict() for sim in simulations.list()],
            "count": simulations.count(),
        }

    @router.post("/simulations", response_model=None)
    async def add_simulation(request: Request) -> dict[str, Any] | JSONResponse:
        try:
            data = await _json_body(request)
        except ValueError:
            return _error("Invalid JSON body")
        if not isinstance(data, dict):
            return _error("Invalid simulation object")
        try:
            payload = SimulationRequest.model_validate(data)
        except PydanticValidationError as e:
            details = [err["msg"] for err in e.errors()]
            return _error("Simulation requires key and status", details=details)
        if not payload.lookup_key:
            return _error("Simulation requires key and status")

        try:
            key = normalize_simulation_key(payload.lookup_key)
        except SimulationValidationError as e:
            return _error(str(e), field=e.field)

        entry = registry.get(key)
        config = SimulationConfig(
            key=key,
            operation_id=payload.operation_id or (entry.operation_id if entry else ""),
            status=payload.status,
            delay_ms=payload.delay_ms,
            body=payload.body,
            headers=payload.headers,
        )
        try:
            stored = simulations.set(config)
        except SimulationValidationError as e:
            return _error(str(e), field=e.field)
        return {"success": True, "simulation": stored.to_dict()}

    @router.delete("/simulations")
    async def clear_simulations() -> dict[str, Any]:
        return {"success": True, "cleared": simulations.clear()}

    @router.delete("/simulations/{key:path}")
    async def remove_simulation(key: str) -> dict[str, Any]:
        return {"success": simulations.remove(key), "key": key}

    # =========================================================================
    # Document & health
    # =========================================================================

    @router.get("/document")
    async def get_document() -> JSONResponse:
        return JSONResponse(dump_document(deps.document))

    @router.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "endpoints": len(registry),
            "schemas": len(store.get_schemas()),
            "simulations": simulations.count(),
        }

    return router
