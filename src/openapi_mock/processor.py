"""
OpenAPI document processor.

Turns a raw spec source into a processed document:

1. Load   - read a file, fetch a URL, or take inline text / a dict
2. Parse  - YAML or JSON by extension, else try YAML then JSON
3. Upgrade - convert Swagger 2.0; fill ``openapi`` / ``info`` on bare documents
4. Validate - structural OpenAPI 3.x schema check (jsonschema)
5. Dereference - inline every ``$ref``
6. Normalize security - synthesize missing ``securitySchemes``

File sources are cached by absolute path and invalidated when the file's
modification time changes.

This processor is meant for development use: it reads any path and fetches
any URL it is given.
"""

from __future__ import annotations

import copy
import datetime
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import httpx
import yaml

from openapi_mock.errors import DocumentError, NotFoundError, ParseError, ValidationError, ValidationIssue
from openapi_mock.openapi_schema import make_validator
from openapi_mock.swagger import convert_swagger2, is_swagger2

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

DEFAULT_OPENAPI_VERSION = "3.1.0"
DEFAULT_INFO = {"title": "OpenAPI Mock Server", "version": "1.0.0"}

_YAML_SUFFIXES = (".yaml", ".yml")
_JSON_SUFFIXES = (".json",)

SpecSource = str | Path | dict[str, Any] | None


@dataclass
class _CacheEntry:
    mtime: float
    document: dict[str, Any]


_CACHE: dict[str, _CacheEntry] = {}


def clear_document_cache() -> None:
    """Forget every cached processed document."""
    _CACHE.clear()


async def process_openapi_document(source: SpecSource, *, use_cache: bool = True) -> dict[str, Any]:
    """Process an OpenAPI document into its dereferenced, security-complete form.

    Args:
        source: File path, ``http(s)`` URL, inline YAML/JSON text, or a dict.
            Empty input produces a minimal valid document.
        use_cache: Reuse the processed result for unchanged files.

    Returns:
        The processed document. Treat it as read-only.

    Raises:
        NotFoundError: If a file or URL cannot be located.
        ParseError: If the source is not valid YAML or JSON.
        ValidationError: If the document fails OpenAPI validation.
        DocumentError: If a ``$ref`` cannot be resolved.
    """
    if _is_empty(source):
        return empty_document()

    if isinstance(source, dict):
        return process_raw_document(copy.deepcopy(source), base_dir=Path.cwd())

    if isinstance(source, str) and source.startswith(("http://", "https://")):
        text = await _fetch_url(source)
        return process_raw_document(parse_text(text, source), base_dir=Path.cwd())

    if isinstance(source, str) and _looks_inline(source):
        return process_raw_document(parse_text(source), base_dir=Path.cwd())

    path = Path(source).expanduser().resolve()
    if not path.is_file():
        raise NotFoundError(f"OpenAPI document not found: {path}", source=str(path))

    mtime = path.stat().st_mtime
    cache_key = str(path)
    cached = _CACHE.get(cache_key)
    if use_cache and cached is not None and cached.mtime == mtime:
        logger.debug("Using cached document for %s", cache_key)
        return cached.document

    document = process_raw_document(load_file(path), base_dir=path.parent, base_file=path)
    _CACHE[cache_key] = _CacheEntry(mtime=mtime, document=document)
    logger.info("Processed OpenAPI document %s (%d paths)", path, len(document.get("paths", {})))
    return document


def process_raw_document(
    raw: dict[str, Any],
    *,
    base_dir: Path,
    base_file: Path | None = None,
) -> dict[str, Any]:
    """Run upgrade, validation, dereferencing and security normalization."""
    upgraded = upgrade_document(raw)
    validate_document(upgraded)
    document = Dereferencer(upgraded, base_dir=base_dir, base_file=base_file).dereference()
    normalize_security_schemes(document)
    return document


def empty_document() -> dict[str, Any]:
    return {
        "openapi": DEFAULT_OPENAPI_VERSION,
        "info": dict(DEFAULT_INFO),
        "paths": {},
        "components": {"securitySchemes": {}},
    }


# =============================================================================
# Load & parse
# =============================================================================


def _is_empty(source: SpecSource) -> bool:
    if source is None:
        return True
    if isinstance(source, dict):
        return not source
    if isinstance(source, str):
        return source.strip() in ("", "{}", "[]")
    return False


def _looks_inline(text: str) -> bool:
    stripped = text.lstrip()
    return "\n" in text or stripped.startswith(("{", "["))


async def _fetch_url(url: str) -> str:
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise NotFoundError(f"Failed to fetch OpenAPI document {url}: {e}", source=url) from e
    if response.status_code >= 400:
        raise NotFoundError(
            f"Failed to fetch OpenAPI document {url}: HTTP {response.status_code}", source=url
        )
    return response.text


def load_file(path: Path) -> dict[str, Any]:
    """Read and parse a spec file."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(f"OpenAPI document not found: {path}", source=str(path)) from e
    return parse_text(text, str(path))


def parse_text(text: str, name: str | None = None) -> dict[str, Any]:
    """Parse YAML or JSON text into a JSON-compatible dict.

    The file extension in ``name`` picks the parser; unknown extensions try
    YAML first, then JSON.

    Raises:
        ParseError: If neither parser accepts the text, or it is not a mapping.
    """
    label = name or "<inline>"
    suffix = Path(name).suffix.lower() if name and not name.startswith("http") else ""
    if name and name.startswith("http"):
        suffix = Path(name.split("?", 1)[0]).suffix.lower()

    if suffix in _JSON_SUFFIXES:
        parsed = _parse_json(text, label)
    elif suffix in _YAML_SUFFIXES:
        parsed = _parse_yaml(text, label)
    else:
        try:
            parsed = _parse_yaml(text, label)
        except ParseError:
            parsed = _parse_json(text, label)

    if not isinstance(parsed, dict):
        raise ParseError(f"{label}: expected a mapping at the document root")
    return _json_compatible(parsed)


def _parse_yaml(text: str, label: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"{label}: invalid YAML: {e}") from e


def _parse_json(text: str, label: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"{label}: invalid JSON: {e}") from e


def _json_compatible(value: Any) -> Any:
    """Stringify mapping keys (YAML reads ``200:`` as an int) and dates."""
    if isinstance(value, dict):
        return {str(k): _json_compatible(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_compatible(v) for v in value]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


# =============================================================================
# Upgrade & validate
# =============================================================================


def upgrade_document(raw: dict[str, Any]) -> dict[str, Any]:
    """Bring a parsed document up to OpenAPI 3.x.

    Swagger 2.0 documents are converted (see ``openapi_mock.swagger``) and
    bare documents get the fields they commonly omit. OpenAPI 3.0 and 3.1
    documents keep their declared version.

    Raises:
        ValidationError: For ``swagger`` versions other than 2.x.
    """
    if "swagger" in raw:
        if not is_swagger2(raw):
            raise ValidationError(
                f"Unsupported Swagger version: {raw['swagger']}",
                [ValidationIssue(path="/swagger", message="unsupported specification version")],
            )
        logger.info(
            "Converting Swagger %s document to OpenAPI %s", raw["swagger"], DEFAULT_OPENAPI_VERSION
        )
        raw = convert_swagger2(raw, DEFAULT_OPENAPI_VERSION)
    document = dict(raw)
    if "openapi" not in document:
        logger.debug("Document has no 'openapi' field; assuming %s", DEFAULT_OPENAPI_VERSION)
        document["openapi"] = DEFAULT_OPENAPI_VERSION
    if "info" not in document:
        document["info"] = dict(DEFAULT_INFO)
    document.setdefault("paths", {})
    return document


def validate_document(document: dict[str, Any]) -> None:
    """Validate a document against the OpenAPI 3.x structural schema.

    Raises:
        ValidationError: Listing every ``{path, message}`` failure.
    """
    validator = make_validator()
    issues = [
        ValidationIssue(path=_json_pointer(error.absolute_path), message=error.message)
        for error in sorted(validator.iter_errors(document), key=lambda e: list(map(str, e.path)))
    ]
    if issues:
        summary = "; ".join(f"{i.path}: {i.message}" for i in issues[:5])
        raise ValidationError(f"Invalid OpenAPI document: {summary}", issues)


def _json_pointer(parts: Any) -> str:
    return "/" + "/".join(str(p).replace("~", "~0").replace("/", "~1") for p in parts)


# =============================================================================
# Dereference
# =============================================================================


class Dereferencer:
    """Inline every ``$ref`` in a document.

    Each referenced location is resolved once and shared, so
    ``components.schemas.Pet`` and every place that referenced it end up as
    the *same* dict. Circular references therefore become cyclic Python
    structures rather than infinite copies.

    Relative file references (``common.yaml#/components/schemas/Error``) are
    loaded from ``base_dir``.
    """

    def __init__(
        self,
        document: dict[str, Any],
        *,
        base_dir: Path,
        base_file: Path | None = None,
    ) -> None:
        self._root_key = str(base_file) if base_file else "#root"
        self._base_dir = base_dir
        self._docs: dict[str, Any] = {self._root_key: document}
        self._resolved: dict[tuple[str, str], Any] = {}
        self._resolving: set[tuple[str, str]] = set()

    def dereference(self) -> dict[str, Any]:
        result: dict[str, Any] = self._walk(self._docs[self._root_key], self._root_key, "")
        return result

    def _walk(self, node: Any, doc_key: str, pointer: str) -> Any:
        if isinstance(node, dict):
            ref = node.get("$ref")
            if isinstance(ref, str):
                target = self._resolve_ref(ref, doc_key)
                siblings = {k: v for k, v in node.items() if k != "$ref"}
                if not siblings or not isinstance(target, dict):
                    return target
                merged = dict(target)
                for key, value in siblings.items():
                    merged[key] = self._walk(value, doc_key, f"{pointer}/{_escape(key)}")
                return merged

            memo_key = (doc_key, pointer)
            if memo_key in self._resolved:
                return self._resolved[memo_key]
            out: dict[str, Any] = {}
            self._resolved[memo_key] = out
            for key, value in node.items():
                out[key] = self._walk(value, doc_key, f"{pointer}/{_escape(key)}")
            return out

        if isinstance(node, list):
            return [self._walk(item, doc_key, f"{pointer}/{i}") for i, item in enumerate(node)]

        return node

    def _resolve_ref(self, ref: str, doc_key: str) -> Any:
        file_part, _, fragment = ref.partition("#")
        target_key = doc_key
        if file_part:
            target_key = self._load_external(file_part, doc_key)
        pointer = unquote(fragment)
        memo_key = (target_key, pointer)

        if memo_key in self._resolved:
            return self._resolved[memo_key]
        if memo_key in self._resolving:
            raise DocumentError(f"Circular $ref alias: {ref}", step="dereference")

        self._resolving.add(memo_key)
        try:
            target = _lookup_pointer(self._docs[target_key], pointer, ref)
            return self._walk(target, target_key, pointer)
        finally:
            self._resolving.discard(memo_key)

    def _load_external(self, file_part: str, doc_key: str) -> str:
        if file_part.startswith(("http://", "https://")):
            raise DocumentError(
                f"Remote $ref '{file_part}' is not supported; inline it or use a local file",
                step="dereference",
            )
        base = Path(doc_key).parent if doc_key != "#root" else self._base_dir
        path = (base / file_part).resolve()
        key = str(path)
        if key not in self._docs:
            if not path.is_file():
                raise DocumentError(f"Referenced file not found: {path}", step="dereference")
            self._docs[key] = load_file(path)
        return key


def _escape(key: str) -> str:
    return str(key).replace("~", "~0").replace("/", "~1")


def _lookup_pointer(document: Any, pointer: str, ref: str) -> Any:
    if pointer in ("", "/"):
        return document
    node = document
    for raw_part in pointer.lstrip("/").split("/"):
        part = raw_part.replace("~1", "/").replace("~0", "~")
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and part.isdigit() and int(part) < len(node):
            node = node[int(part)]
        else:
            raise DocumentError(f"Cannot resolve $ref '{ref}'", step="dereference")
    return node


# =============================================================================
# Security normalization
# =============================================================================


def collect_security_scheme_names(document: dict[str, Any]) -> list[str]:
    """Every scheme name referenced by document- or operation-level security."""
    names: dict[str, None] = {}
    requirement_lists = [document.get("security") or []]
    for path_item in (document.get("paths") or {}).values():
        if not isinstance(path_item, dict):
            continue
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if isinstance(operation, dict):
                requirement_lists.append(operation.get("security") or [])
    for requirements in requirement_lists:
        for requirement in requirements:
            for name in requirement or {}:
                names[name] = None
    return list(names)


def infer_security_scheme(name: str) -> dict[str, Any]:
    """Guess a scheme definition from its name.

    Case-insensitive, first match wins: "oauth" -> oauth2, "bearer"/"token"
    -> http bearer (JWT), "basic" -> http basic, anything else -> an API
    key in the ``X-API-Key`` header.
    """
    lower = name.lower()
    if "oauth" in lower:
        return {
            "type": "oauth2",
            "flows": {
                "authorizationCode": {
                    "authorizationUrl": "https://example.com/oauth/authorize",
                    "tokenUrl": "https://example.com/oauth/token",
                    "scopes": {},
                }
            },
        }
    if "bearer" in lower or "token" in lower:
        return {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
    if "basic" in lower:
        return {"type": "http", "scheme": "basic"}
    return {"type": "apiKey", "in": "header", "name": "X-API-Key"}


def normalize_security_schemes(document: dict[str, Any]) -> dict[str, Any]:
    """Ensure every referenced scheme has a definition. Mutates ``document``.

    Existing definitions are never overwritten.
    """
    components = document.setdefault("components", {})
    schemes = components.setdefault("securitySchemes", {})
    for name in collect_security_scheme_names(document):
        if name not in schemes:
            schemes[name] = infer_security_scheme(name)
            logger.info(
                "Security scheme '%s' is referenced but not defined; assuming %s",
                name,
                schemes[name]["type"],
            )
    return document


# =============================================================================
# Serialization
# =============================================================================


def dump_document(document: Any) -> Any:
    """Return a JSON-safe copy of a processed document.

    Cycles left by circular references are replaced with
    ``{"$circular": "<title or pointer>"}``.
    """
    return _dump(document, [], "")


def _dump(node: Any, stack: list[int], pointer: str) -> Any:
    if isinstance(node, dict):
        if id(node) in stack:
            return {"$circular": node.get("title") or pointer or "#"}
        stack.append(id(node))
        try:
            return {k: _dump(v, stack, f"{pointer}/{_escape(k)}") for k, v in node.items()}
        finally:
            stack.pop()
    if isinstance(node, list):
        return [_dump(item, stack, f"{pointer}/{i}") for i, item in enumerate(node)]
    return node
