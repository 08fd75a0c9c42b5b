"""
Security evaluation for mock routes.

Resolves ``components.securitySchemes`` into credential lookups and checks
incoming requests against an operation's effective security requirement.

This is a development mock: it checks that credentials are *present* and
well-formed, never that they are valid. Any non-empty token or key passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from openapi_mock.errors import UnauthorizedError

logger = logging.getLogger(__name__)

MOCK_REALM = "openapi-mock"

# A requirement set maps scheme name -> required scopes (AND within the set).
# An effective requirement is a list of sets (OR across the list).
SecurityRequirementSet = dict[str, list[str]]


@dataclass(frozen=True)
class ResolvedSecurityScheme:
    """Where and how to find a credential for one named scheme.

    Attributes:
        name: Scheme name as declared in ``securitySchemes``.
        type: OpenAPI scheme type (apiKey, http, oauth2, openIdConnect, mutualTLS).
        location: "header", "query" or "cookie".
        param_name: Header, query parameter or cookie name.
        http_scheme: Lower-cased HTTP auth scheme ("bearer", "basic", ...).
    """

    name: str
    type: str
    location: str = "header"
    param_name: str = "authorization"
    http_scheme: str | None = None


@dataclass
class SecurityContext:
    """Outcome of a successful security check, handed to handlers."""

    authenticated: bool = True
    scheme: str | None = None
    credentials: str | None = None
    scopes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "authenticated": self.authenticated,
            "scheme": self.scheme,
            "credentials": self.credentials,
            "scopes": list(self.scopes),
        }


@dataclass
class SecurityRequest:
    """The parts of a request security checks need.

    Header names are matched case-insensitively.
    """

    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, str] | None = None

    def header(self, name: str) -> str | None:
        lower = name.lower()
        if lower in self.headers:
            return self.headers[lower]
        for key, value in self.headers.items():
            if key.lower() == lower:
                return value
        return None

    def cookie(self, name: str) -> str | None:
        if self.cookies is not None:
            return self.cookies.get(name)
        raw = self.header("cookie")
        if not raw:
            return None
        for part in raw.split(";"):
            cookie_name, _, value = part.strip().partition("=")
            if cookie_name.strip() == name:
                return value.strip()
        return None


# =============================================================================
# Scheme resolution
# =============================================================================


def resolve_security_schemes(document: dict[str, Any]) -> dict[str, ResolvedSecurityScheme]:
    """Resolve every security scheme declared in a processed document.

    Returns:
        Mapping of scheme name -> resolved scheme.
    """
    schemes = (document.get("components") or {}).get("securitySchemes") or {}
    resolved: dict[str, ResolvedSecurityScheme] = {}
    for name, scheme in schemes.items():
        if isinstance(scheme, dict):
            resolved[name] = resolve_scheme(name, scheme)
    return resolved


def resolve_scheme(name: str, scheme: dict[str, Any]) -> ResolvedSecurityScheme:
    scheme_type = scheme.get("type", "apiKey")

    if scheme_type == "apiKey":
        return ResolvedSecurityScheme(
            name=name,
            type="apiKey",
            location=scheme.get("in", "header"),
            param_name=scheme.get("name", "X-API-Key"),
        )
    if scheme_type == "http":
        return ResolvedSecurityScheme(
            name=name,
            type="http",
            http_scheme=(scheme.get("scheme") or "bearer").lower(),
        )
    if scheme_type in ("oauth2", "openIdConnect"):
        # Both carry an access token as "Authorization: Bearer <token>"
        return ResolvedSecurityScheme(name=name, type=scheme_type, http_scheme="bearer")

    return ResolvedSecurityScheme(name=name, type=scheme_type)


# =============================================================================
# Effective requirements
# =============================================================================


def effective_security(
    operation: dict[str, Any], document: dict[str, Any]
) -> list[SecurityRequirementSet]:
    """Return an operation's effective security requirement.

    The operation's own ``security`` wins when present, even when it is an
    empty list (explicitly public). Otherwise the document default applies.
    """
    if "security" in operation and operation["security"] is not None:
        return _copy_requirements(operation["security"])
    if document.get("security") is not None:
        return _copy_requirements(document["security"])
    return []


def _copy_requirements(requirements: list[Any]) -> list[SecurityRequirementSet]:
    return [
        {name: list(scopes or []) for name, scopes in (req or {}).items()} for req in requirements
    ]


# =============================================================================
# Evaluation
# =============================================================================


class SecurityEvaluator:
    """Checks requests against OR-of-AND security requirements.

    Args:
        schemes: Resolved schemes, usually from ``resolve_security_schemes``.
    """

    def __init__(self, schemes: dict[str, ResolvedSecurityScheme]) -> None:
        self._schemes = schemes
        self._warned: set[str] = set()

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> SecurityEvaluator:
        return cls(resolve_security_schemes(document))

    def evaluate(
        self,
        requirements: list[SecurityRequirementSet],
        request: SecurityRequest,
    ) -> SecurityContext:
        """Evaluate an effective requirement against a request.

        Sets are tried in document order; the first fully satisfied set
        wins and its first scheme is reported.

        Raises:
            UnauthorizedError: If no set is satisfied.
        """
        if not requirements:
            return SecurityContext(authenticated=True, scheme=None)

        for requirement in requirements:
            if not requirement:
                # {} inside the list means credentials are optional
                return SecurityContext(authenticated=True, scheme=None)

            matched = self._match_set(requirement, request)
            if matched is not None:
                scheme_name = next(iter(requirement))
                return SecurityContext(
                    authenticated=True,
                    scheme=scheme_name,
                    credentials=matched[scheme_name],
                    scopes=list(requirement[scheme_name]),
                )

        names = list(dict.fromkeys(name for req in requirements for name in req))
        raise UnauthorizedError(
            f"Missing credentials. Required security scheme(s): {', '.join(names)}",
            challenge=self.challenge_for(requirements),
            schemes=names,
        )

    def _match_set(
        self, requirement: SecurityRequirementSet, request: SecurityRequest
    ) -> dict[str, str] | None:
        credentials: dict[str, str] = {}
        for name in requirement:
            scheme = self._schemes.get(name)
            if scheme is None:
                self._warn_once(
                    name,
                    "Unknown security scheme '%s' referenced; requirement cannot be satisfied",
                )
                return None
            value = extract_credential(scheme, request)
            if value is None:
                return None
            credentials[name] = value
        return credentials

    def challenge_for(self, requirements: list[SecurityRequirementSet]) -> str:
        """Build the ``WWW-Authenticate`` value for a failed check.

        Uses the first scheme of the first requirement set.
        """
        first_set = next((req for req in requirements if req), None)
        if not first_set:
            return f'realm="{MOCK_REALM}"'
        scheme = self._schemes.get(next(iter(first_set)))
        if scheme is None:
            return f'realm="{MOCK_REALM}"'
        if scheme.type == "apiKey":
            return f'realm="{MOCK_REALM}", {scheme.location}="{scheme.param_name}"'
        if scheme.http_scheme:
            return f'{scheme.http_scheme.capitalize()} realm="{MOCK_REALM}"'
        return f'realm="{MOCK_REALM}"'

    def _warn_once(self, name: str, message: str) -> None:
        if name not in self._warned:
            self._warned.add(name)
            logger.warning(message, name)


def extract_credential(scheme: ResolvedSecurityScheme, request: SecurityRequest) -> str | None:
    """Return the credential a request carries for a scheme, or None."""
    if scheme.type == "mutualTLS":
        # Client certificates are negotiated below HTTP; nothing to inspect here.
        return None

    if scheme.location == "query":
        value = request.query.get(scheme.param_name)
        if isinstance(value, list):
            value = value[0] if value else None
        return _non_empty(value)

    if scheme.location == "cookie":
        return _non_empty(request.cookie(scheme.param_name))

    header_value = _non_empty(request.header(scheme.param_name))
    if header_value is None:
        return None
    if scheme.type == "apiKey":
        return header_value
    return _authorization_value(header_value, scheme.http_scheme)


def _authorization_value(header_value: str, http_scheme: str | None) -> str | None:
    """Split ``"<Scheme> <token>"`` and check the scheme prefix."""
    if not http_scheme:
        return header_value
    prefix, _, token = header_value.partition(" ")
    if prefix.lower() != http_scheme.lower():
        return None
    return _non_empty(token)


def _non_empty(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
