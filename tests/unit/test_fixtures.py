"""Tests for the pytest helpers shipped with the package."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from openapi_mock.fixtures import MockApiClient, mock_api, mock_api_factory  # noqa: F401


class TestMockApi:
    def test_from_dict(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore, seed=42)
        response = client.get("/pets")
        assert response.status_code == 200
        client.recorder.assert_called(method="GET", path="/pets")

    def test_from_yaml_file(self, petstore: dict[str, Any], tmp_path: Path) -> None:
        spec_file = tmp_path / "openapi.yaml"
        spec_file.write_text(yaml.safe_dump(petstore))

        client = mock_api(str(spec_file))
        assert len(client.server.registry) == 9

    def test_store_property(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore)
        client.post("/pets", json={"name": "Rex"})
        assert client.store is client.server.store
        assert client.store.get_count("Pet") == 1

    def test_server_errors_become_responses(self, petstore: dict[str, Any]) -> None:
        def broken(ctx: Any) -> Any:
            raise RuntimeError("boom")

        client = mock_api(petstore, handlers={"listPets": broken})
        assert client.get("/pets").status_code == 500


class TestSimulate:
    def test_simulate(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore)
        config = client.simulate("GET", "/pets/{petId}", 404, body={"error": "gone"})

        assert config.key == "get:/pets/{petId}"
        assert config.operation_id == "getPetById"
        response = client.get("/pets/1")
        assert response.status_code == 404
        assert response.json() == {"error": "gone"}
        assert client.recorder.last_request["simulated"] is True

    def test_simulate_headers(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore)
        client.simulate("POST", "/pets", 429, headers={"Retry-After": 30})
        assert client.post("/pets", json={"name": "a"}).headers["retry-after"] == "30"

    def test_unknown_operation_still_keyed(self, petstore: dict[str, Any]) -> None:
        client = mock_api(petstore)
        assert client.simulate("GET", "/nowhere", 500).operation_id == ""


class TestMockApiFactory:
    def test_independent_clients(
        self,
        petstore: dict[str, Any],
        secured_api: dict[str, Any],
        mock_api_factory: Callable[..., MockApiClient],  # noqa: F811
    ) -> None:
        pets = mock_api_factory(petstore, seeds={"Pet": [{"id": 1, "name": "Rex"}]})
        secured = mock_api_factory(secured_api)

        assert pets.get("/pets/1").json()["name"] == "Rex"
        assert secured.get("/me").status_code == 401
        assert secured.get("/health").status_code == 200
        assert pets.recorder.request_count == 1
        assert secured.recorder.request_count == 2
