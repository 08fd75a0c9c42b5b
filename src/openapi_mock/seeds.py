"""
Seed data for the mock store.

Seeds are keyed by schema name. Each value is either a list of records or
a seed function that receives a ``SeedContext`` and returns (or awaits)
a list of records::

    seeds = {
        "Pet": lambda ctx: ctx.seed.count(10, lambda i: {"id": i + 1, "name": ctx.faker.first_name()}),
        "Tag": [{"id": 1, "name": "friendly"}],
    }

Records that cannot be stored (duplicate IDs, missing ID, wrong shape) are
logged and skipped; they never abort the seed pass.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from faker import Faker

from openapi_mock.errors import SeedExecutionError, StoreError

if TYPE_CHECKING:
    from openapi_mock.state import MockStore

logger = logging.getLogger(__name__)

SeedFn = Callable[["SeedContext"], Any]
SeedSource = list[Any] | SeedFn


class SeedHelper:
    """Builds lists of seed records.

    ``seed(items)`` returns the list as-is, ``seed(factory)`` calls the
    factory once, and ``seed.count(n, factory)`` calls ``factory(index)``
    ``n`` times.
    """

    def __call__(self, data_or_factory: list[Any] | Callable[[], Any]) -> list[Any]:
        if isinstance(data_or_factory, list):
            return data_or_factory
        if callable(data_or_factory):
            return [data_or_factory()]
        return []

    def count(self, n: int, factory: Callable[[int], Any]) -> list[Any]:
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            return []
        return [factory(index) for index in range(n)]


@dataclass
class SeedContext:
    """Context passed to seed functions."""

    seed: SeedHelper
    store: MockStore
    faker: Faker
    schema: dict[str, Any]
    logger: Any


@dataclass
class ExecuteSeedsResult:
    """Summary of a seed pass."""

    schema_count: int = 0
    total_items: int = 0
    items_per_schema: dict[str, int] = field(default_factory=dict)
    skipped_schemas: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_count": self.schema_count,
            "total_items": self.total_items,
            "items_per_schema": dict(self.items_per_schema),
            "skipped_schemas": list(self.skipped_schemas),
            "warnings": list(self.warnings),
        }


async def execute_seeds(
    seeds: dict[str, SeedSource],
    store: MockStore,
    document: dict[str, Any],
    *,
    faker: Faker | None = None,
    log: Any = None,
    validate_schemas: bool = False,
    clear_before_seeding: bool = False,
) -> ExecuteSeedsResult:
    """Populate the store from seed definitions.

    Args:
        seeds: Schema name -> list of records or seed function.
        store: Store to populate.
        document: Processed document, used to look up schema definitions.
        faker: Faker instance handed to seed functions.
        log: Logger for warnings (defaults to this module's logger).
        validate_schemas: Skip seeds whose schema is not declared in
            ``components.schemas``.
        clear_before_seeding: Empty the whole store first.

    Returns:
        Counts per schema plus any non-fatal warnings.

    Raises:
        SeedExecutionError: If a seed function raises.
    """
    log = log or logger
    result = ExecuteSeedsResult()
    document_schemas = (document.get("components") or {}).get("schemas") or {}

    if faker is None:
        faker = Faker()

    if clear_before_seeding:
        store.clear_all()
        log.debug("Cleared store before seeding")

    for schema_name, source in seeds.items():
        if validate_schemas and schema_name not in document_schemas:
            _warn(result, log, f"Schema '{schema_name}' not found in OpenAPI document. Skipping.")
            result.skipped_schemas.append(schema_name)
            continue

        if callable(source):
            context = SeedContext(
                seed=SeedHelper(),
                store=store,
                faker=faker,
                schema=document_schemas.get(schema_name) or {"type": "object"},
                logger=log,
            )
            try:
                items = source(context)
                if inspect.isawaitable(items):
                    items = await items
            except Exception as e:
                raise SeedExecutionError(schema_name, f"Seed function failed: {e}", cause=e) from e
        else:
            items = source

        if not isinstance(items, list):
            _warn(result, log, f"Seed for '{schema_name}' did not produce a list. Skipping.")
            result.skipped_schemas.append(schema_name)
            continue

        created = 0
        for item in items:
            try:
                store.create(schema_name, item)
                created += 1
            except StoreError as e:
                _warn(result, log, f"Failed to seed {schema_name}: {e}")

        result.schema_count += 1
        result.total_items += created
        result.items_per_schema[schema_name] = created
        log.debug("Seeded %d item(s) for schema '%s'", created, schema_name)

    log.info(
        "Seeding complete: %d item(s) across %d schema(s)",
        result.total_items,
        result.schema_count,
    )
    return result


def _warn(result: ExecuteSeedsResult, log: Any, message: str) -> None:
    result.warnings.append(message)
    log.warning("%s", message)
