"""
Error taxonomy for the mock engine.

Load-time document errors are fatal to one server instance. Simulation,
security, handler and store errors are scoped to a single call or request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class OpenApiMockError(Exception):
    """Base class for all mock engine errors."""

    pass


# =============================================================================
# Document processing
# =============================================================================


class DocumentError(OpenApiMockError):
    """Base exception for OpenAPI document loading failures.

    Attributes:
        step: Pipeline step that failed ("load", "parse", "validate", "dereference").
    """

    def __init__(self, message: str, step: str = "validate"):
        self.step = step
        super().__init__(message)


class NotFoundError(DocumentError):
    """Raised when a spec source (file or URL) cannot be located."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message, step="load")


class ParseError(DocumentError):
    """Raised when a spec source is neither valid YAML nor valid JSON."""

    def __init__(self, message: str):
        super().__init__(message, step="parse")


@dataclass
class ValidationIssue:
    """A single schema validation failure."""

    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


class ValidationError(DocumentError):
    """Raised when a document fails OpenAPI structural validation."""

    def __init__(self, message: str, errors: list[ValidationIssue] | None = None):
        self.errors = errors or []
        super().__init__(message, step="validate")


# =============================================================================
# Per-call / per-request errors
# =============================================================================


class SimulationValidationError(OpenApiMockError):
    """Raised when a simulation config is rejected at the manager boundary."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid simulation '{field}': {message}")


class UnauthorizedError(OpenApiMockError):
    """Raised when no security requirement set is satisfied by a request.

    Attributes:
        challenge: Value for the ``WWW-Authenticate`` response header.
        schemes: Scheme names the operation accepts.
    """

    def __init__(self, message: str, challenge: str, schemes: list[str] | None = None):
        self.challenge = challenge
        self.schemes = schemes or []
        super().__init__(message)


class HandlerExecutionError(OpenApiMockError):
    """Wraps an exception raised by a developer handler."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)


class StoreError(OpenApiMockError):
    """Raised for invalid store operations (bad item shape, bad ID)."""

    def __init__(self, message: str, schema: str | None = None):
        self.schema = schema
        super().__init__(message)


class StoreDuplicateIdError(StoreError):
    """Raised when ``create`` would overwrite an existing record."""

    def __init__(self, schema: str, record_id: Any):
        self.record_id = record_id
        super().__init__(f"{schema} with id '{record_id}' already exists", schema=schema)


class SeedExecutionError(OpenApiMockError):
    """Raised when a seed function itself fails for a schema."""

    def __init__(self, schema: str, message: str, cause: BaseException | None = None):
        self.schema = schema
        self.cause = cause
        super().__init__(f"[seed:{schema}] {message}")
