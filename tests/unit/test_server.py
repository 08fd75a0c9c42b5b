"""Tests for server assembly and lifecycle."""

from __future__ import annotations

import asyncio
import logging
import socket
import time
from typing import Any

import httpx
import pytest

from openapi_mock.errors import SeedExecutionError, ValidationError
from openapi_mock.fixtures import mock_api
from openapi_mock.handlers import HandlerContext
from openapi_mock.server import (
    DEFAULT_PORT,
    OpenApiServer,
    OpenApiServerConfig,
    create_openapi_server,
)


def _create(spec: Any, **kwargs: Any) -> OpenApiServer:
    return asyncio.run(create_openapi_server(spec=spec, **kwargs))


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestCreateServer:
    def test_minimal_document(self) -> None:
        server = _create({"paths": {}})
        assert len(server.registry) == 0
        assert server.port == DEFAULT_PORT
        assert server.store.get_schemas() == []
        assert server.document["openapi"].startswith("3.")

    def test_config_object_with_overrides(self, petstore: dict[str, Any]) -> None:
        config = OpenApiServerConfig(spec=petstore, port=4010)
        server = asyncio.run(create_openapi_server(config, host="0.0.0.0"))
        assert server.base_url == "http://0.0.0.0:4010"
        assert config.host == "127.0.0.1"

    def test_app_state(self, petstore: dict[str, Any]) -> None:
        server = _create(petstore)
        assert server.app.state.mock_server is server
        assert server.app.state.store is server.store
        assert server.app.state.timeline is server.timeline

    def test_invalid_document(self) -> None:
        with pytest.raises(ValidationError):
            _create({"openapi": "3.0.0", "info": {"title": "t"}, "paths": {}})

    def test_swagger_document_served(self, swagger_petstore: dict[str, Any]) -> None:
        client = mock_api(swagger_petstore)
        assert client.server.document["openapi"].startswith("3.1.")
        assert len(client.server.registry) == 5

        created = client.post("/pets", json={"name": "Rex"})
        assert created.status_code == 201
        assert client.get(f"/pets/{created.json()['id']}").json()["name"] == "Rex"
        assert client.get("/reports").status_code == 401
        assert client.get("/reports", headers={"X-API-Key": "k"}).status_code == 200

    def test_logs_ready(self, petstore: dict[str, Any], caplog: pytest.LogCaptureFixture) -> None:
        log = logging.getLogger("tests.server")
        with caplog.at_level(logging.INFO, logger="tests.server"):
            _create(petstore, logger=log)
        assert any("9 endpoint(s)" in r.getMessage() for r in caplog.records)


class TestSeeding:
    def test_seeds_populate_store(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore, seeds={"Pet": [{"id": 1, "name": "Rex"}]})
        assert client.get("/pets").json() == [{"id": 1, "name": "Rex"}]
        assert client.server.registry.get("get:/pets").has_seed
        assert client.server.seed_result.total_items == 1

    def test_seed_function(self, petstore: dict[str, Any]) -> None:
        def pets(ctx: Any) -> list[dict[str, Any]]:
            return ctx.seed.count(3, lambda i: {"id": i + 1, "name": ctx.faker.first_name()})

        client = mock_api(petstore, seeds={"Pet": pets}, seed=3)
        assert len(client.get("/pets").json()) == 3

    def test_failing_seed_aborts_creation(self, petstore: dict[str, Any]) -> None:
        def broken(ctx: Any) -> list[Any]:
            raise RuntimeError("no data")

        with pytest.raises(SeedExecutionError):
            _create(petstore, seeds={"Pet": broken})

    def test_update_seeds_replaces_store(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore, seeds={"Pet": [{"id": 1, "name": "Old"}]})
        client.store.create("Toy", {"id": 1})

        result = asyncio.run(client.server.update_seeds({"Pet": [{"id": 2, "name": "New"}]}))

        assert result.total_items == 1
        assert client.get("/pets").json() == [{"id": 2, "name": "New"}]
        assert client.store.get_schemas() == ["Pet"]


class TestHandlers:
    def test_configured_handler(self, petstore: dict[str, Any]) -> None:
        def list_pets(ctx: HandlerContext) -> list[str]:
            return ["from handler"]

        client = mock_api(petstore, handlers={"listPets": list_pets})
        assert client.get("/pets").json() == ["from handler"]
        assert client.server.registry.stats.with_handler == 1

    def test_update_handlers_only_changes_flags(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore, seeds={"Pet": [{"id": 1, "name": "Rex"}]})
        client.server.update_handlers({"listPets": lambda ctx: ["new"]})

        assert client.server.registry.get("get:/pets").has_handler
        assert client.get("/pets").json() == [{"id": 1, "name": "Rex"}]


class TestIsolation:
    def test_servers_do_not_share_state(self, petstore: dict[str, Any]) -> None:
        first = mock_api(petstore)
        second = mock_api(petstore)

        first.post("/pets", json={"name": "only here"})
        first.simulate("GET", "/pets/{petId}", 500)

        assert first.store.get_count("Pet") == 1
        assert second.store.get_count("Pet") == 0
        assert second.get("/pets/1").status_code == 200
        assert len(second.server.timeline) == 2

    def test_same_seed_same_data(self, petstore: dict[str, Any]) -> None:
        first = mock_api(petstore, seed=11)
        second = mock_api(petstore, seed=11)
        assert first.get("/pets/1").json() == second.get("/pets/1").json()


class TestCors:
    def test_cors_headers(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore)
        response = client.get("/pets", headers={"Origin": "http://localhost:5173"})
        assert "access-control-allow-origin" in response.headers

        preflight = client.options(
            "/pets",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "X-API-Key",
            },
        )
        assert preflight.status_code == 200
        assert "POST" in preflight.headers["access-control-allow-methods"]

    def test_cors_disabled(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore, cors=False)
        response = client.get("/pets", headers={"Origin": "http://localhost:5173"})
        assert "access-control-allow-origin" not in response.headers


class TestLifecycle:
    def test_start_and_stop(self, petstore: dict[str, Any]) -> None:
        server = _create(petstore, port=_free_port(), seeds={"Pet": [{"id": 1, "name": "Rex"}]})
        server.start()
        try:
            deadline = time.monotonic() + 5
            while not (server._server and server._server.started) and time.monotonic() < deadline:
                time.sleep(0.05)
            assert server.is_running

            response = httpx.get(f"{server.base_url}/pets/1", timeout=5)
            assert response.status_code == 200
            assert response.json()["name"] == "Rex"
        finally:
            server.stop()
        assert not server.is_running

    def test_stop_without_start(self, petstore: dict[str, Any]) -> None:
        server = _create(petstore)
        server.stop()
        assert not server.is_running
