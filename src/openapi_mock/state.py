"""
In-memory record store for mock servers.

Provides stateful CRUD tracking so that resources created via POST
can be retrieved via GET, matching real API behaviour. Records are
grouped into per-schema collections and keyed by their ID field.
"""

from __future__ import annotations

import copy
from typing import Any

from openapi_mock.errors import StoreDuplicateIdError, StoreError

DEFAULT_ID_FIELD = "id"


class MockStore:
    """Per-server in-memory store with CRUD operations.

    Records are deep-copied on the way in and out, so callers can never
    mutate stored state by accident.

    Args:
        id_fields: Mapping of schema name -> ID field name. Schemas not
            listed use ``"id"``. Fixed for the lifetime of the store.
    """

    def __init__(self, id_fields: dict[str, str] | None = None) -> None:
        for schema, field_name in (id_fields or {}).items():
            if not isinstance(field_name, str) or not field_name:
                raise StoreError(f"ID field for '{schema}' must be a non-empty string", schema)
        self._id_fields: dict[str, str] = dict(id_fields or {})
        self._store: dict[str, dict[str, dict[str, Any]]] = {}  # schema -> {id -> record}

    def get_id_field(self, schema: str) -> str:
        """Return the configured ID field for a schema (default ``"id"``)."""
        return self._id_fields.get(schema, DEFAULT_ID_FIELD)

    def _ensure_collection(self, schema: str) -> dict[str, dict[str, Any]]:
        if schema not in self._store:
            self._store[schema] = {}
        return self._store[schema]

    def _extract_id(self, schema: str, item: Any) -> Any:
        if not isinstance(item, dict):
            raise StoreError(
                f"Cannot store {type(item).__name__} in '{schema}': items must be objects",
                schema,
            )
        id_field = self.get_id_field(schema)
        record_id = item.get(id_field)
        if record_id is None:
            raise StoreError(f"Item in '{schema}' is missing required ID field '{id_field}'", schema)
        if isinstance(record_id, bool) or not isinstance(record_id, (str, int, float)):
            raise StoreError(
                f"ID field '{id_field}' in '{schema}' must be a string or number", schema
            )
        return record_id

    def create(self, schema: str, item: dict[str, Any]) -> dict[str, Any]:
        """Store a new record.

        Args:
            schema: Collection name (usually an OpenAPI schema name).
            item: The record. Must carry a value for the schema's ID field.

        Returns:
            A copy of the stored record.

        Raises:
            StoreDuplicateIdError: If a record with the same ID exists.
            StoreError: If the item is not an object or has no usable ID.
        """
        record_id = self._extract_id(schema, item)
        collection = self._ensure_collection(schema)
        key = str(record_id)
        if key in collection:
            raise StoreDuplicateIdError(schema, record_id)
        collection[key] = copy.deepcopy(item)
        return copy.deepcopy(item)

    def get(self, schema: str, record_id: Any) -> dict[str, Any] | None:
        """Retrieve a record by ID, or None if absent.

        IDs are compared by their string form, so ``get("Pet", "1")``
        finds a record stored with ``id: 1``.
        """
        record = self._store.get(schema, {}).get(str(record_id))
        return copy.deepcopy(record) if record is not None else None

    def has(self, schema: str, record_id: Any) -> bool:
        return str(record_id) in self._store.get(schema, {})

    def list(self, schema: str) -> list[dict[str, Any]]:
        """List all records of a schema in insertion order."""
        return [copy.deepcopy(r) for r in self._store.get(schema, {}).values()]

    def update(
        self,
        schema: str,
        record_id: Any,
        data: dict[str, Any],
        *,
        replace: bool = False,
    ) -> dict[str, Any] | None:
        """Update a record.

        Args:
            schema: Collection name.
            record_id: ID of the record to update.
            data: Fields to merge (or the full replacement when ``replace``).
            replace: Replace the record instead of merging into it.

        Returns:
            The updated record, or None if not found. The ID field is
            always preserved.
        """
        collection = self._store.get(schema, {})
        key = str(record_id)
        current = collection.get(key)
        if current is None:
            return None
        if not isinstance(data, dict):
            raise StoreError(f"Update for '{schema}' must be an object", schema)

        id_field = self.get_id_field(schema)
        updated = copy.deepcopy(data) if replace else {**current, **copy.deepcopy(data)}
        updated[id_field] = current[id_field]
        collection[key] = updated
        return copy.deepcopy(updated)

    def delete(self, schema: str, record_id: Any) -> bool:
        """Delete a record. Returns True if it existed."""
        collection = self._store.get(schema, {})
        key = str(record_id)
        if key in collection:
            del collection[key]
            return True
        return False

    def clear(self, schema: str) -> None:
        """Remove every record of one schema.

        The emptied collection is kept, so the schema stays store-backed and
        routes over it answer ``[]`` and 404 instead of generated data.
        """
        self._store[schema] = {}

    def clear_all(self) -> None:
        """Remove every record of every schema."""
        self._store.clear()

    def get_count(self, schema: str) -> int:
        return len(self._store.get(schema, {}))

    def get_schemas(self) -> list[str]:
        """Names of schemas that currently hold a collection."""
        return list(self._store)

    def has_schema(self, schema: str) -> bool:
        return schema in self._store


def create_store(id_fields: dict[str, str] | None = None) -> MockStore:
    """Create an empty store with per-schema ID field configuration."""
    return MockStore(id_fields=id_fields)
