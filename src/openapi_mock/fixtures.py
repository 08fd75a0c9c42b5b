"""
Pytest fixtures for OpenAPI mock servers.

Provides a ``mock_api`` helper that compiles a document into a server and
wraps it in a TestClient, plus a ``mock_api_factory`` fixture that builds
as many independent servers as a test needs.

Registered as a pytest plugin via pyproject.toml entry point::

    [project.entry-points."pytest11"]
    openapi_mock = "openapi_mock.fixtures"
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from openapi_mock.assertions import RequestRecorder
from openapi_mock.server import OpenApiServer, OpenApiServerConfig, create_openapi_server
from openapi_mock.simulation import SimulationConfig, simulation_key

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

__all__ = ["MockApiClient", "mock_api", "mock_api_factory", "simulation_key"]


class MockApiClient(TestClient):
    """TestClient bound to one mock server.

    ``recorder`` reads the server's timeline; ``simulate`` forces a
    canned response for one operation.
    """

    def __init__(self, server: OpenApiServer) -> None:
        super().__init__(server.app, raise_server_exceptions=False)
        self.server = server
        self.recorder = RequestRecorder(server.timeline)

    @property
    def store(self) -> Any:
        return self.server.store

    def simulate(
        self,
        method: str,
        path: str,
        status: int,
        *,
        body: Any = None,
        headers: dict[str, str] | None = None,
        delay_ms: float | None = None,
    ) -> SimulationConfig:
        key = simulation_key(method, path)
        entry = self.server.registry.get(key)
        return self.server.simulation_manager.set(
            SimulationConfig(
                key=key,
                operation_id=entry.operation_id if entry else "",
                status=status,
                delay_ms=delay_ms,
                body=body,
                headers=headers or {},
            )
        )


def mock_api(spec: Any, **config: Any) -> MockApiClient:
    """Create a mock server with a TestClient for direct testing.

    Args:
        spec: File path, URL, YAML/JSON text or dict.
        **config: Any ``OpenApiServerConfig`` field.

    Example::

        def test_list_pets():
            client = mock_api("openapi.yaml", seed=42)
            resp = client.get("/pets")
            assert resp.status_code == 200
            client.recorder.assert_called(method="GET", path="/pets")
    """
    server = asyncio.run(create_openapi_server(OpenApiServerConfig(spec=spec), **config))
    return MockApiClient(server)


@pytest.fixture()
def mock_api_factory() -> Generator[Callable[..., MockApiClient], None, None]:
    """Build mock API clients that are closed at teardown.

    Yields:
        A callable with the same signature as ``mock_api``.
    """
    clients: list[MockApiClient] = []

    def factory(spec: Any, **config: Any) -> MockApiClient:
        client = mock_api(spec, **config)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
