"""Tests for seed execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from openapi_mock.errors import SeedExecutionError
from openapi_mock.seeds import ExecuteSeedsResult, SeedContext, SeedHelper, execute_seeds
from openapi_mock.state import create_store

DOCUMENT: dict[str, Any] = {
    "components": {"schemas": {"Pet": {"type": "object", "title": "Pet"}, "Tag": {}}}
}


def _seed(seeds: dict[str, Any], store=None, **kwargs: Any) -> ExecuteSeedsResult:
    return asyncio.run(execute_seeds(seeds, store or create_store(), DOCUMENT, **kwargs))


class TestSeedHelper:
    def test_list_passthrough(self) -> None:
        assert SeedHelper()([{"id": 1}]) == [{"id": 1}]

    def test_factory_called_once(self) -> None:
        assert SeedHelper()(lambda: {"id": 1}) == [{"id": 1}]

    def test_count(self) -> None:
        assert SeedHelper().count(3, lambda i: {"id": i}) == [{"id": 0}, {"id": 1}, {"id": 2}]

    @pytest.mark.parametrize("n", [0, -1, True])
    def test_count_ignores_invalid(self, n: Any) -> None:
        assert SeedHelper().count(n, lambda i: {"id": i}) == []


class TestExecuteSeeds:
    def test_static_lists(self) -> None:
        store = create_store()
        result = _seed({"Pet": [{"id": 1}, {"id": 2}], "Tag": [{"id": "a"}]}, store)
        assert result.schema_count == 2
        assert result.total_items == 3
        assert result.items_per_schema == {"Pet": 2, "Tag": 1}
        assert store.get_count("Pet") == 2

    def test_seed_function_receives_context(self) -> None:
        seen: list[SeedContext] = []

        def pets(ctx: SeedContext) -> list[dict[str, Any]]:
            seen.append(ctx)
            return ctx.seed.count(5, lambda i: {"id": i + 1, "name": ctx.faker.first_name()})

        store = create_store()
        result = _seed({"Pet": pets}, store)
        assert result.items_per_schema == {"Pet": 5}
        assert seen[0].schema == {"type": "object", "title": "Pet"}
        assert seen[0].store is store
        assert all(isinstance(p["name"], str) for p in store.list("Pet"))

    def test_async_seed_function(self) -> None:
        async def pets(ctx: SeedContext) -> list[dict[str, Any]]:
            await asyncio.sleep(0)
            return [{"id": 1}]

        assert _seed({"Pet": pets}).total_items == 1

    def test_seed_function_for_unknown_schema_gets_object_schema(self) -> None:
        schemas: list[dict[str, Any]] = []
        _seed({"Ghost": lambda ctx: schemas.append(ctx.schema) or []})
        assert schemas == [{"type": "object"}]

    def test_duplicates_logged_and_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        store = create_store()
        with caplog.at_level(logging.WARNING):
            result = _seed({"Pet": [{"id": 1}, {"id": 1}, {"id": 2}]}, store)
        assert store.get_count("Pet") == 2
        assert result.items_per_schema == {"Pet": 2}
        assert len(result.warnings) == 1
        assert "already exists" in result.warnings[0]
        assert any("already exists" in r.getMessage() for r in caplog.records)

    def test_items_without_id_skipped(self) -> None:
        result = _seed({"Pet": [{"name": "no id"}, {"id": 1}]})
        assert result.total_items == 1
        assert result.warnings

    def test_non_list_result_skipped(self) -> None:
        result = _seed({"Pet": lambda ctx: {"id": 1}})
        assert result.skipped_schemas == ["Pet"]
        assert result.schema_count == 0

    def test_failing_seed_function_raises(self) -> None:
        def broken(ctx: SeedContext) -> list[Any]:
            raise RuntimeError("db down")

        with pytest.raises(SeedExecutionError, match=r"\[seed:Pet\].*db down") as exc_info:
            _seed({"Pet": broken})
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_validate_schemas_skips_undeclared(self) -> None:
        result = _seed({"Pet": [{"id": 1}], "Ghost": [{"id": 1}]}, validate_schemas=True)
        assert result.skipped_schemas == ["Ghost"]
        assert result.items_per_schema == {"Pet": 1}

    def test_clear_before_seeding(self) -> None:
        store = create_store()
        store.create("Old", {"id": 1})
        _seed({"Pet": [{"id": 1}]}, store, clear_before_seeding=True)
        assert store.get_schemas() == ["Pet"]

    def test_custom_id_field(self) -> None:
        store = create_store({"User": "email"})
        _seed({"User": [{"email": "a@example.com"}]}, store)
        assert store.get("User", "a@example.com") is not None

    def test_result_to_dict(self) -> None:
        result = _seed({"Pet": [{"id": 1}]})
        assert result.to_dict() == {
            "schema_count": 1,
            "total_items": 1,
            "items_per_schema": {"Pet": 1},
            "skipped_schemas": [],
            "warnings": [],
        }
