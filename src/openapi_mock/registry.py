"""
Endpoint registry for introspection.

One ``RegistryEntry`` per compiled operation, keyed by the same
``"<method>:<path>"`` key simulations use. Entries describe routes; they
never drive request handling.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from openapi_mock.security import SecurityRequirementSet
from openapi_mock.simulation import simulation_key


@dataclass
class RegistryEntry:
    """Descriptive record of one compiled operation.

    Attributes:
        operation_id: The operation's ``operationId`` (or a derived one).
        method: Upper-case HTTP method.
        path: OpenAPI path template.
        has_handler: Whether a developer handler is registered.
        has_seed: Whether seed data exists for the response schema.
        request_schema: Schema name of the request body, if resolvable.
        response_schema: Schema name of the success response, if resolvable.
        effective_security: OR-list of requirement sets in force.
    """

    operation_id: str
    method: str
    path: str
    summary: str | None = None
    has_handler: bool = False
    has_seed: bool = False
    request_schema: str | None = None
    response_schema: str | None = None
    effective_security: list[SecurityRequirementSet] = field(default_factory=list)

    @property
    def key(self) -> str:
        return simulation_key(self.method, self.path)

    @property
    def secured(self) -> bool:
        # [{}] (or any empty alternative) means credentials are optional
        return bool(self.effective_security) and all(self.effective_security)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "operation_id": self.operation_id,
            "method": self.method,
            "path": self.path,
            "summary": self.summary,
            "has_handler": self.has_handler,
            "has_seed": self.has_seed,
            "request_schema": self.request_schema,
            "response_schema": self.response_schema,
            "effective_security": [dict(req) for req in self.effective_security],
        }


@dataclass
class RegistryStats:
    total_endpoints: int = 0
    with_handler: int = 0
    with_seed: int = 0
    secured: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_endpoints": self.total_endpoints,
            "with_handler": self.with_handler,
            "with_seed": self.with_seed,
            "secured": self.secured,
        }


class EndpointRegistry:
    """Registry of compiled endpoints, keyed by ``"<method>:<path>"``."""

    def __init__(self) -> None:
        self.endpoints: dict[str, RegistryEntry] = {}

    def add(self, entry: RegistryEntry) -> None:
        self.endpoints[entry.key] = entry

    def get(self, key: str) -> RegistryEntry | None:
        return self.endpoints.get(key)

    def find_by_operation_id(self, operation_id: str) -> RegistryEntry | None:
        for entry in self.endpoints.values():
            if entry.operation_id == operation_id:
                return entry
        return None

    @property
    def stats(self) -> RegistryStats:
        """Counts computed from the current entry flags."""
        entries = list(self.endpoints.values())
        return RegistryStats(
            total_endpoints=len(entries),
            with_handler=sum(1 for e in entries if e.has_handler),
            with_seed=sum(1 for e in entries if e.has_seed),
            secured=sum(1 for e in entries if e.secured),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoints": [entry.to_dict() for entry in self.endpoints.values()],
            "stats": self.stats.to_dict(),
        }

    def __len__(self) -> int:
        return len(self.endpoints)

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self.endpoints.values())


def update_registry_handlers(registry: EndpointRegistry, handler_ids: Iterable[str]) -> None:
    """Refresh ``has_handler`` flags from a new set of handler operation IDs."""
    ids = set(handler_ids)
    for entry in registry:
        entry.has_handler = entry.operation_id in ids


def update_registry_seeds(registry: EndpointRegistry, seed_schemas: Iterable[str]) -> None:
    """Refresh ``has_seed`` flags from a new set of seeded schema names."""
    names = set(seed_schemas)
    for entry in registry:
        entry.has_seed = entry.response_schema is not None and entry.response_schema in names
