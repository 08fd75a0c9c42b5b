"""
Simulation manager for fault injection.

Operators register simulations that override a route's normal response
with a fixed status, body, headers and optional delay. Simulations are
keyed by ``"<method>:<path>"`` (lower-case method, OpenAPI path template),
e.g. ``"get:/pets/{petId}"``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from openapi_mock.errors import SimulationValidationError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options", "trace")


def simulation_key(method: str, path: str) -> str:
    """Build the canonical simulation key for an operation.

    Examples:
        simulation_key("GET", "/pets") -> "get:/pets"
    """
    return f"{method.lower()}:{path}"


def normalize_simulation_key(key: str) -> str:
    """Lower-case the method prefix of a key, validating its shape.

    Raises:
        SimulationValidationError: If the key is not ``method:/path``.
    """
    if not isinstance(key, str) or ":" not in key:
        raise SimulationValidationError("key", f"expected '<method>:<path>', got {key!r}")
    method, _, path = key.partition(":")
    if method.lower() not in HTTP_METHODS:
        raise SimulationValidationError("key", f"unknown HTTP method '{method}'")
    if not path.startswith("/"):
        raise SimulationValidationError("key", f"path must start with '/', got {path!r}")
    return simulation_key(method, path)


@dataclass
class SimulationConfig:
    """A configured response override for one operation.

    Attributes:
        key: Lookup key, ``"<method>:<path>"``.
        operation_id: Operation the simulation targets (informational).
        status: HTTP status code to return.
        delay_ms: Delay in milliseconds before responding.
        body: Response body (any JSON value).
        headers: Extra response headers.
    """

    key: str
    operation_id: str
    status: int
    delay_ms: int | float | None = None
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "operation_id": self.operation_id,
            "status": self.status,
            "delay_ms": self.delay_ms,
            "body": self.body,
            "headers": dict(self.headers),
        }

    async def wait(self) -> None:
        """Sleep for the configured delay, if any."""
        if self.delay_ms:
            await asyncio.sleep(self.delay_ms / 1000.0)


def validate_simulation(config: SimulationConfig) -> None:
    """Check a simulation config before it is accepted.

    Raises:
        SimulationValidationError: Naming the first offending field.
    """
    status = config.status
    if isinstance(status, bool) or not isinstance(status, int):
        raise SimulationValidationError("status", f"must be an integer, got {status!r}")
    if not 100 <= status <= 599:
        raise SimulationValidationError("status", f"must be between 100 and 599, got {status}")

    delay = config.delay_ms
    if delay is not None:
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            raise SimulationValidationError("delay_ms", f"must be a number, got {delay!r}")
        if delay < 0:
            raise SimulationValidationError("delay_ms", f"must be >= 0, got {delay}")

    if config.headers is not None and not isinstance(config.headers, dict):
        raise SimulationValidationError("headers", "must be a mapping of header names to values")


class SimulationManager:
    """Keyed table of active simulations.

    The manager knows nothing about routes; callers choose the key. Reads
    return copies so a running request never observes a later mutation.
    """

    def __init__(self) -> None:
        self._simulations: dict[str, SimulationConfig] = {}

    def set(self, config: SimulationConfig) -> SimulationConfig:
        """Register a simulation, replacing any existing one for its key.

        Raises:
            SimulationValidationError: If the config is invalid. Prior
                state is left untouched.
        """
        validate_simulation(config)
        stored = copy.deepcopy(config)
        stored.key = normalize_simulation_key(config.key)
        stored.headers = {str(k): str(v) for k, v in (config.headers or {}).items()}
        if stored.key in self._simulations:
            logger.debug("Replacing simulation for %s", stored.key)
        self._simulations[stored.key] = stored
        logger.info("Simulation set: %s -> %d", stored.key, stored.status)
        return copy.deepcopy(stored)

    def get(self, key: str) -> SimulationConfig | None:
        sim = self._simulations.get(_lookup_key(key))
        return copy.deepcopy(sim) if sim is not None else None

    def has(self, key: str) -> bool:
        return _lookup_key(key) in self._simulations

    def remove(self, key: str) -> bool:
        """Remove a simulation. Returns True if one existed."""
        removed = self._simulations.pop(_lookup_key(key), None)
        if removed is not None:
            logger.info("Simulation removed: %s", removed.key)
        return removed is not None

    def list(self) -> list[SimulationConfig]:
        return [copy.deepcopy(s) for s in self._simulations.values()]

    def clear(self) -> int:
        """Remove every simulation. Returns how many were removed."""
        count = len(self._simulations)
        self._simulations.clear()
        return count

    def count(self) -> int:
        return len(self._simulations)


def _lookup_key(key: str) -> str:
    # Lookups never raise: malformed keys simply match nothing.
    method, sep, path = key.partition(":")
    return f"{method.lower()}{sep}{path}" if sep else key


def create_simulation_manager() -> SimulationManager:
    return SimulationManager()
