"""
Request recording and assertion helpers for mock API testing.

Provides a ``RequestRecorder`` over a server's timeline with convenience
methods for asserting request counts, methods, paths and bodies.
"""

from __future__ import annotations

from typing import Any

from openapi_mock.timeline import Timeline


class RequestRecorder:
    """Wraps a server timeline for test assertions.

    Each recorded request is a dict with keys:
        id, operation_id, method, path, query, headers, body, timestamp,
        status, duration, response_body, simulated

    ``status`` and the response fields are None until the response has
    been recorded.

    Args:
        timeline: The ``server.timeline`` of a mock server.
    """

    def __init__(self, timeline: Timeline) -> None:
        self._timeline = timeline

    @property
    def requests(self) -> list[dict[str, Any]]:
        """All recorded requests that are still in the timeline, oldest first."""
        exchanges: dict[str, dict[str, Any]] = {}
        for entry in self._timeline.entries():
            data = entry["data"]
            if entry["type"] == "request":
                exchanges[data["id"]] = {
                    **data,
                    "status": None,
                    "duration": None,
                    "response_body": None,
                    "simulated": False,
                }
            elif entry["type"] == "response" and data["id"] in exchanges:
                exchanges[data["id"]].update(
                    status=data["status"],
                    duration=data["duration"],
                    response_body=data["body"],
                    simulated=data["simulated"],
                )
        return list(exchanges.values())

    @property
    def request_count(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> dict[str, Any] | None:
        """The most recently recorded request, or None."""
        requests = self.requests
        return requests[-1] if requests else None

    def filter(
        self,
        *,
        method: str | None = None,
        path: str | None = None,
        operation_id: str | None = None,
        status: int | None = None,
    ) -> list[dict[str, Any]]:
        """Filter recorded requests by criteria.

        Args:
            method: HTTP method (e.g. "POST").
            path: URL path (substring match).
            operation_id: Operation ID from the document.
            status: Response status code.
        """
        results = self.requests
        if method is not None:
            results = [r for r in results if r["method"] == method.upper()]
        if path is not None:
            results = [r for r in results if path in r["path"]]
        if operation_id is not None:
            results = [r for r in results if r["operation_id"] == operation_id]
        if status is not None:
            results = [r for r in results if r["status"] == status]
        return results

    def assert_called(self, *, method: str, path: str, times: int | None = None) -> None:
        """Assert that a request matching method and path was recorded.

        Args:
            method: Expected HTTP method.
            path: Expected path (substring match).
            times: If given, assert exactly this many matches.
        """
        matches = self.filter(method=method, path=path)
        recorded = [f"{r['method']} {r['path']}" for r in self.requests]
        if times is not None:
            assert len(matches) == times, (
                f"Expected {times} {method} {path} request(s), got {len(matches)}. "
                f"Recorded: {recorded}"
            )
        else:
            assert matches, f"Expected at least one {method} {path} request, got none. Recorded: {recorded}"

    def assert_not_called(self, *, method: str, path: str) -> None:
        matches = self.filter(method=method, path=path)
        assert not matches, f"Expected no {method} {path} requests, but found {len(matches)}"

    def assert_body_contains(self, key: str, value: Any | None = None) -> None:
        """Assert the last request body contains a key (and optionally a value)."""
        last = self.last_request
        assert last is not None, "No requests recorded"
        body = last.get("body") or {}
        assert key in body, f"Key '{key}' not found in request body: {body}"
        if value is not None:
            assert body[key] == value, f"Expected body['{key}'] == {value!r}, got {body[key]!r}"

    def clear(self) -> None:
        self._timeline.clear()


def get_recorder(server_or_app: Any) -> RequestRecorder:
    """Create a RequestRecorder from a mock server or its FastAPI app."""
    timeline = getattr(server_or_app, "timeline", None)
    if timeline is None:
        timeline = server_or_app.state.timeline
    return RequestRecorder(timeline)
