"""
Developer handler execution.

A handler is any callable (sync or async) taking a ``HandlerContext`` and
returning either plain data (implies 200) or one of the tagged return
types below. Whatever it returns is normalized to a ``HandlerResponse``;
whatever it raises becomes a 500. Nothing a handler does escapes to the
route layer.

Example::

    def get_pet_by_id(ctx: HandlerContext) -> HandlerReturn:
        pet = ctx.store.get("Pet", ctx.req.params["petId"])
        if pet is None:
            return StatusReturn(404, {"message": "Pet not found"})
        return RawReturn(pet)

    handlers = {"getPetById": get_pet_by_id}
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from openapi_mock.errors import HandlerExecutionError
from openapi_mock.security import SecurityContext

if TYPE_CHECKING:
    from faker import Faker

    from openapi_mock.state import MockStore

logger = logging.getLogger(__name__)

INTERNAL_ERROR_STATUS = 500


@dataclass
class HandlerRequest:
    """The request as seen by a handler.

    ``params`` uses the path parameter names from the OpenAPI document.
    """

    method: str
    path: str
    params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str | list[str]] = field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class HandlerContext:
    """Everything a handler gets to work with."""

    req: HandlerRequest
    store: MockStore
    faker: Faker
    logger: Any
    security: SecurityContext = field(default_factory=SecurityContext)
    operation_id: str = ""


# =============================================================================
# Return types
# =============================================================================


@dataclass
class RawReturn:
    """Plain data with status 200."""

    data: Any


@dataclass
class StatusReturn:
    """Data with an explicit status."""

    status: int
    data: Any = None


@dataclass
class FullReturn:
    """Data with an explicit status and response headers."""

    status: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


HandlerReturn = RawReturn | StatusReturn | FullReturn
HandlerFn = Callable[[HandlerContext], "HandlerReturn | Any | Awaitable[HandlerReturn | Any]"]


@dataclass
class HandlerResponse:
    """Normalized response produced from any handler result."""

    status: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)


def normalize_status(status: Any, log: Any = None) -> int:
    """Return ``status`` if it is a valid HTTP status, otherwise 500.

    Invalid values (non-integers, bools, anything outside 100-599) are
    logged as a warning and never raised.
    """
    if isinstance(status, int) and not isinstance(status, bool) and 100 <= status <= 599:
        return status
    (log or logger).warning(
        "Invalid HTTP status %r, responding with %d instead", status, INTERNAL_ERROR_STATUS
    )
    return INTERNAL_ERROR_STATUS


def normalize_response(result: Any, log: Any = None) -> HandlerResponse:
    """Convert any handler return value into a ``HandlerResponse``."""
    if isinstance(result, FullReturn):
        return HandlerResponse(
            status=normalize_status(result.status, log),
            data=result.data,
            headers={str(k): str(v) for k, v in (result.headers or {}).items()},
        )
    if isinstance(result, StatusReturn):
        return HandlerResponse(status=normalize_status(result.status, log), data=result.data)
    if isinstance(result, RawReturn):
        return HandlerResponse(status=200, data=result.data)
    return HandlerResponse(status=200, data=result)


async def execute_handler(handler: HandlerFn, context: HandlerContext) -> HandlerResponse:
    """Run a handler and normalize its result.

    Exceptions raised by the handler (or by the awaitable it returns) are
    converted to a 500 response with ``{"error", "message"}``.
    """
    log = context.logger or logger
    try:
        result = handler(context)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        error = HandlerExecutionError(f"Handler for '{context.operation_id}' failed: {e}", cause=e)
        log.error("%s", error, exc_info=True)
        return HandlerResponse(
            status=INTERNAL_ERROR_STATUS,
            data={"error": "Handler execution failed", "message": str(e) or type(e).__name__},
        )
    return normalize_response(result, log)
