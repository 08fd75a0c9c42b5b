"""Shared pytest fixtures for openapi-mock tests."""

from __future__ import annotations

from typing import Any

import pytest

from openapi_mock.processor import clear_document_cache


def _pet_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["id", "name"],
        "properties": {
            "id": {"type": "integer", "minimum": 1},
            "name": {"type": "string", "minLength": 1, "maxLength": 40},
            "tag": {"type": "string"},
            "status": {"type": "string", "enum": ["available", "pending", "sold"]},
        },
    }


def build_petstore() -> dict[str, Any]:
    """A small petstore document with CRUD paths and per-operation security."""
    pet_ref = {"$ref": "#/components/schemas/Pet"}
    pet_json = {"application/json": {"schema": pet_ref}}
    return {
        "openapi": "3.0.3",
        "info": {"title": "Petstore", "version": "1.0.0"},
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "summary": "List pets",
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {"schema": {"type": "array", "items": pet_ref}}
                            },
                        }
                    },
                },
                "post": {
                    "operationId": "createPet",
                    "requestBody": {
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/NewPet"}
                            }
                        }
                    },
                    "responses": {"201": {"description": "created", "content": pet_json}},
                },
            },
            "/pets/mine": {
                "get": {
                    "operationId": "listMyPets",
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {"schema": {"type": "array", "items": pet_ref}}
                            },
                        }
                    },
                },
            },
            "/pets/{petId}": {
                "get": {
                    "operationId": "getPetById",
                    "responses": {"200": {"description": "ok", "content": pet_json}},
                },
                "put": {
                    "operationId": "replacePet",
                    "responses": {"200": {"description": "ok", "content": pet_json}},
                },
                "patch": {
                    "operationId": "updatePet",
                    "responses": {"200": {"description": "ok", "content": pet_json}},
                },
                "delete": {
                    "operationId": "deletePet",
                    "responses": {"204": {"description": "deleted"}},
                },
            },
            "/reports": {
                "get": {
                    "operationId": "getReport",
                    "security": [{"apiKeyAuth": []}, {"bearerAuth": []}],
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "required": ["total"],
                                        "properties": {"total": {"type": "integer"}},
                                    }
                                }
                            },
                        }
                    },
                }
            },
            "/admin": {
                "get": {
                    "operationId": "getAdmin",
                    "security": [{"bearerAuth": [], "apiKeyAuth": []}],
                    "responses": {"200": {"description": "ok"}},
                }
            },
        },
        "components": {
            "schemas": {
                "Pet": _pet_schema(),
                "NewPet": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string"},
                        "tag": {"type": "string"},
                    },
                },
            },
            "securitySchemes": {
                "bearerAuth": {"type": "http", "scheme": "bearer"},
                "apiKeyAuth": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
            },
        },
    }


def build_secured_api() -> dict[str, Any]:
    """A document whose default security is overridden by one public operation."""
    return {
        "openapi": "3.1.0",
        "info": {"title": "Secured", "version": "2.0.0"},
        "security": [{"bearerAuth": []}],
        "paths": {
            "/health": {
                "get": {
                    "operationId": "health",
                    "security": [],
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {"status": {"type": "string", "const": "ok"}},
                                    }
                                }
                            },
                        }
                    },
                }
            },
            "/me": {
                "get": {
                    "operationId": "getMe",
                    "responses": {
                        "200": {
                            "description": "ok",
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {"email": {"type": "string", "format": "email"}},
                                    }
                                }
                            },
                        }
                    },
                }
            },
            "/session": {
                "get": {
                    "operationId": "getSession",
                    "security": [{"sessionToken": []}],
                    "responses": {"200": {"description": "ok"}},
                }
            },
        },
        "components": {
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer"}},
        },
    }


def build_swagger_petstore() -> dict[str, Any]:
    """The petstore as a Swagger 2.0 document."""
    return {
        "swagger": "2.0",
        "info": {"title": "Swagger Petstore", "version": "2.0.0"},
        "host": "petstore.example.com",
        "basePath": "/v2",
        "schemes": ["https", "http"],
        "consumes": ["application/json"],
        "produces": ["application/json"],
        "paths": {
            "/pets": {
                "get": {
                    "operationId": "listPets",
                    "parameters": [{"$ref": "#/parameters/limit"}],
                    "responses": {
                        "200": {
                            "description": "ok",
                            "schema": {"type": "array", "items": {"$ref": "#/definitions/Pet"}},
                        }
                    },
                },
                "post": {
                    "operationId": "createPet",
                    "parameters": [
                        {
                            "name": "pet",
                            "in": "body",
                            "required": True,
                            "schema": {"$ref": "#/definitions/NewPet"},
                        }
                    ],
                    "responses": {
                        "201": {"description": "created", "schema": {"$ref": "#/definitions/Pet"}}
                    },
                },
            },
            "/pets/{petId}": {
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "type": "integer"}
                ],
                "get": {
                    "operationId": "getPetById",
                    "produces": ["application/json", "application/xml"],
                    "responses": {
                        "200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}},
                        "404": {"$ref": "#/responses/NotFound"},
                    },
                },
            },
            "/pets/{petId}/photo": {
                "post": {
                    "operationId": "uploadPhoto",
                    "consumes": ["multipart/form-data"],
                    "security": [{"basicAuth": []}],
                    "parameters": [
                        {"name": "petId", "in": "path", "required": True, "type": "integer"},
                        {"name": "caption", "in": "formData", "type": "string", "maxLength": 80},
                        {"name": "file", "in": "formData", "type": "file", "required": True},
                    ],
                    "responses": {"204": {"description": "uploaded"}},
                }
            },
            "/reports": {
                "get": {
                    "operationId": "getReport",
                    "security": [{"apiKeyAuth": []}, {"oauth": ["reports:read"]}],
                    "responses": {
                        "200": {
                            "description": "ok",
                            "schema": {
                                "type": "object",
                                "properties": {"total": {"type": "integer"}},
                            },
                        }
                    },
                }
            },
        },
        "parameters": {
            "limit": {
                "name": "limit",
                "in": "query",
                "type": "integer",
                "minimum": 1,
                "maximum": 100,
            }
        },
        "responses": {
            "NotFound": {
                "description": "not found",
                "schema": {"$ref": "#/definitions/Error"},
            }
        },
        "definitions": {
            "Pet": _pet_schema(),
            "NewPet": {
                "type": "object",
                "required": ["name"],
                "properties": {"name": {"type": "string"}, "tag": {"type": "string"}},
            },
            "Error": {
                "type": "object",
                "properties": {"message": {"type": "string"}},
            },
        },
        "securityDefinitions": {
            "basicAuth": {"type": "basic"},
            "apiKeyAuth": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
            "oauth": {
                "type": "oauth2",
                "flow": "accessCode",
                "authorizationUrl": "https://auth.example.com/authorize",
                "tokenUrl": "https://auth.example.com/token",
                "scopes": {"reports:read": "read reports"},
            },
        },
    }


@pytest.fixture
def swagger_petstore() -> dict[str, Any]:
    return build_swagger_petstore()


@pytest.fixture
def petstore() -> dict[str, Any]:
    return build_petstore()


@pytest.fixture
def secured_api() -> dict[str, Any]:
    return build_secured_api()


@pytest.fixture(autouse=True)
def _fresh_document_cache() -> None:
    clear_document_cache()
