"""
OpenAPI mock server.

Compiles an OpenAPI 3.x document into a running mock HTTP server with
schema-driven fake data, an in-memory CRUD store, seeding, custom
handlers, security enforcement and fault simulation.
"""

from openapi_mock._version import __version__
from openapi_mock.data_generators import DataGenerator, generate_from_schema
from openapi_mock.errors import (
    DocumentError,
    NotFoundError,
    OpenApiMockError,
    ParseError,
    SeedExecutionError,
    SimulationValidationError,
    StoreDuplicateIdError,
    StoreError,
    ValidationError,
)
from openapi_mock.handlers import (
    FullReturn,
    HandlerContext,
    HandlerRequest,
    HandlerReturn,
    RawReturn,
    StatusReturn,
)
from openapi_mock.processor import process_openapi_document
from openapi_mock.registry import EndpointRegistry, RegistryEntry
from openapi_mock.router import RouteBuildResult, build_routes
from openapi_mock.seeds import SeedContext, execute_seeds
from openapi_mock.server import OpenApiServer, OpenApiServerConfig, create_openapi_server
from openapi_mock.simulation import (
    SimulationConfig,
    SimulationManager,
    create_simulation_manager,
    simulation_key,
)
from openapi_mock.state import MockStore, create_store

__all__ = [
    "__version__",
    "DataGenerator",
    "DocumentError",
    "EndpointRegistry",
    "FullReturn",
    "HandlerContext",
    "HandlerRequest",
    "HandlerReturn",
    "MockStore",
    "NotFoundError",
    "OpenApiMockError",
    "OpenApiServer",
    "OpenApiServerConfig",
    "ParseError",
    "RawReturn",
    "RegistryEntry",
    "RouteBuildResult",
    "SeedContext",
    "SeedExecutionError",
    "SimulationConfig",
    "SimulationManager",
    "SimulationValidationError",
    "StatusReturn",
    "StoreDuplicateIdError",
    "StoreError",
    "ValidationError",
    "build_routes",
    "create_openapi_server",
    "create_simulation_manager",
    "create_store",
    "execute_seeds",
    "generate_from_schema",
    "process_openapi_document",
    "simulation_key",
]
