"""
Mock server assembly and lifecycle.

``create_openapi_server`` processes a document, seeds a store, compiles
the routes and wraps everything in a FastAPI app. Each server owns its
own store, simulation manager, registry and timeline, so several servers
can live in one process independently.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any

import uvicorn
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from openapi_mock.data_generators import DataGenerator
from openapi_mock.handlers import HandlerFn
from openapi_mock.internal_api import InternalApiDeps, build_internal_router
from openapi_mock.processor import SpecSource, process_openapi_document
from openapi_mock.registry import EndpointRegistry, update_registry_handlers, update_registry_seeds
from openapi_mock.router import build_routes
from openapi_mock.seeds import ExecuteSeedsResult, SeedSource, execute_seeds
from openapi_mock.simulation import SimulationManager, create_simulation_manager
from openapi_mock.state import MockStore, create_store
from openapi_mock.timeline import DEFAULT_TIMELINE_LIMIT, Timeline

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"

_CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
_CORS_EXPOSE_HEADERS = ["Content-Length", "X-Request-Id", "WWW-Authenticate"]


@dataclass
class OpenApiServerConfig:
    """Configuration for one mock server.

    Args:
        spec: File path, URL, inline YAML/JSON text or dict.
        port: Port for standalone hosting.
        host: Interface for standalone hosting.
        id_fields: Schema name -> ID field (default ``"id"``).
        handlers: operationId -> handler.
        seeds: Schema name -> list of records or seed function.
        timeline_limit: Maximum timeline entries kept.
        cors: Add CORS headers to every response.
        cors_origin: Allowed origin(s).
        seed: Random seed for generated data.
        logger: Logger for the server and its routes.
    """

    spec: SpecSource = None
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    id_fields: dict[str, str] = field(default_factory=dict)
    handlers: dict[str, HandlerFn] = field(default_factory=dict)
    seeds: dict[str, SeedSource] = field(default_factory=dict)
    timeline_limit: int = DEFAULT_TIMELINE_LIMIT
    cors: bool = True
    cors_origin: str | list[str] = "*"
    seed: int | None = None
    logger: Any = None


class OpenApiServer:
    """A compiled mock server.

    Use ``app`` directly with a test client, or ``start()``/``stop()`` to
    host it with uvicorn on a background thread.
    """

    def __init__(
        self,
        *,
        app: FastAPI,
        store: MockStore,
        registry: EndpointRegistry,
        document: dict[str, Any],
        simulation_manager: SimulationManager,
        timeline: Timeline,
        generator: DataGenerator,
        config: OpenApiServerConfig,
        seed_result: ExecuteSeedsResult,
    ) -> None:
        self.app = app
        self.store = store
        self.registry = registry
        self.document = document
        self.simulation_manager = simulation_manager
        self.timeline = timeline
        self.generator = generator
        self.config = config
        self.seed_result = seed_result
        self.handlers: dict[str, HandlerFn] = dict(config.handlers)
        self.seeds: dict[str, SeedSource] = dict(config.seeds)
        self.log = config.logger or logger
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self.config.port

    @property
    def base_url(self) -> str:
        return f"http://{self.config.host}:{self.config.port}"

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Serve the app with uvicorn on a daemon thread."""
        if self._thread is not None:
            return

        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level="warning",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            name=f"openapi-mock-{self.config.port}",
            daemon=True,
        )
        self._thread.start()
        self.log.info("Mock server started on %s", self.base_url)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal uvicorn to exit and wait for the thread."""
        if self._server is None or self._thread is None:
            return
        self._server.should_exit = True
        self._thread.join(timeout)
        self._server = None
        self._thread = None
        self.log.info("Mock server stopped")

    def update_handlers(self, handlers: dict[str, HandlerFn]) -> None:
        """Record a new handler map.

        Only the registry's ``has_handler`` flags change; compiled routes
        keep calling the handlers they were built with.
        """
        self.handlers = dict(handlers)
        update_registry_handlers(self.registry, self.handlers)
        self.log.info("Handlers updated: %d handler(s)", len(self.handlers))

    async def update_seeds(self, seeds: dict[str, SeedSource]) -> ExecuteSeedsResult:
        """Clear the store and repopulate it from new seed definitions."""
        self.seeds = dict(seeds)
        self.seed_result = await execute_seeds(
            self.seeds,
            self.store,
            self.document,
            faker=self.generator.faker,
            log=self.log,
            clear_before_seeding=True,
        )
        update_registry_seeds(self.registry, self.seeds)
        self.log.info("Seeds updated: %d schema(s)", len(self.seeds))
        return self.seed_result


async def create_openapi_server(
    config: OpenApiServerConfig | None = None, **overrides: Any
) -> OpenApiServer:
    """Build a mock server from a config.

    Keyword arguments override fields of ``config`` (or of a default
    config), so ``await create_openapi_server(spec="openapi.yaml", seed=1)``
    works without building a config object.

    Raises:
        NotFoundError, ParseError, ValidationError: If the document cannot
            be loaded.
        SeedExecutionError: If a seed function raises.
    """
    config = replace(config or OpenApiServerConfig(), **overrides)
    log = config.logger or logger

    document = await process_openapi_document(config.spec)
    store = create_store(config.id_fields)
    generator = DataGenerator(seed=config.seed)
    seed_result = await execute_seeds(
        config.seeds, store, document, faker=generator.faker, log=log
    )

    simulation_manager = create_simulation_manager()
    timeline = Timeline(config.timeline_limit)

    routes = build_routes(
        document,
        store=store,
        simulation_manager=simulation_manager,
        handlers=dict(config.handlers),
        seeds=config.seeds,
        generator=generator,
        on_request=timeline.record_request,
        on_response=timeline.record_response,
        log=log,
    )

    info = document.get("info") or {}
    app = FastAPI(
        title=info.get("title", "OpenAPI Mock Server"),
        version=str(info.get("version", "1.0.0")),
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    if config.cors:
        origins = [config.cors_origin] if isinstance(config.cors_origin, str) else config.cors_origin
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=_CORS_METHODS,
            allow_headers=["*"],
            expose_headers=_CORS_EXPOSE_HEADERS,
            allow_credentials=True,
            max_age=86400,
        )

    app.include_router(
        build_internal_router(
            InternalApiDeps(
                store=store,
                registry=routes.registry,
                simulation_manager=simulation_manager,
                timeline=timeline,
                document=document,
            )
        )
    )
    app.include_router(routes.router)

    server = OpenApiServer(
        app=app,
        store=store,
        registry=routes.registry,
        document=document,
        simulation_manager=simulation_manager,
        timeline=timeline,
        generator=generator,
        config=config,
        seed_result=seed_result,
    )
    app.state.mock_server = server
    app.state.store = store
    app.state.timeline = timeline

    log.info(
        "Mock server ready: %d endpoint(s), %d seeded schema(s)",
        len(routes.registry),
        seed_result.schema_count,
    )
    return server
