"""
Synchronous client for the orchestration REST API.

Wraps :class:`httpx.Client` and is the only place flowpilot touches the
network. Every method maps transport failures and error statuses onto the
flowpilot error hierarchy, so tasks and triggers never see httpx types.

┌──────────────────────────────────────────────────────────────────────────────┐
│  OrchestratorClient                                                          │
│                                                                              │
│  search_* (page, size, filters) ──► GET  /api/v1/{tenant}/<resource>/search  │
│        └── returns PageResult(records=<raw dicts>, total=<int>)              │
│                                                                              │
│  Filter wire format (query parameters):                                      │
│    filters[namespace][PREFIX]=company.team                                   │
│    filters[state][IN]=FAILED&filters[state][IN]=KILLED                       │
│    filters[metadata][EQUALS][owner]=data-team                                │
│    filters[updated][LESS_THAN_OR_EQUAL_TO]=2025-01-15T10:00:00+00:00         │
│                                                                              │
│  Errors:                                                                     │
│    httpx.TransportError / timeout  → TransportFailure (retryable)            │
│    404                             → NotFoundError                           │
│    other 4xx / 5xx                 → RemoteApiError(status_code=...)         │
│    non-JSON body where JSON needed → ResponseParseError                      │
└──────────────────────────────────────────────────────────────────────────────┘

Example:
    >>> client = OrchestratorClient.from_settings(FlowpilotSettings())
    >>> page = client.search_triggers(1, 100, [FilterExpression(FilterField.NAMESPACE, FilterOperator.PREFIX, "company")])
    >>> page.total
    42
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from enum import Enum
from typing import Any

import httpx
import yaml

from flowpilot.core.clock import ensure_utc
from flowpilot.core.errors import (
    ConfigError,
    NotFoundError,
    RemoteApiError,
    ResponseParseError,
    TransportFailure,
)
from flowpilot.core.logging import get_logger
from flowpilot.core.settings import FlowpilotSettings
from flowpilot.query.filters import FilterExpression, FilterField, FilterOperator
from flowpilot.query.paging import PageResult

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def _wire_value(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_filters(filters: Iterable[FilterExpression]) -> list[tuple[str, str]]:
    """Encode filter expressions as ``filters[field][OP]=value`` pairs.

    Examples:
        >>> encode_filters([FilterExpression(FilterField.TYPE, FilterOperator.IN, ["a", "b"])])
        [('filters[type][IN]', 'a'), ('filters[type][IN]', 'b')]
    """
    params: list[tuple[str, str]] = []
    for expr in filters:
        key = f"filters[{expr.field.value}][{expr.operator.value}]"
        if expr.field is FilterField.METADATA:
            for meta_key, meta_value in expr.value.items():
                params.append((f"{key}[{meta_key}]", _wire_value(meta_value)))
        elif expr.operator is FilterOperator.IN:
            params.extend((key, _wire_value(v)) for v in expr.value)
        else:
            params.append((key, _wire_value(expr.value)))
    return params


class OrchestratorClient:
    """Blocking client bound to one API base URL and default tenant."""

    def __init__(
        self,
        base_url: str,
        *,
        tenant_id: str = "main",
        api_token: str | None = None,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if api_token is not None and (username is not None or password is not None):
            raise ConfigError("Cannot use both API token authentication and HTTP Basic authentication")
        if (username is None) != (password is None):
            raise ConfigError("Both username and password are required for HTTP Basic authentication")

        self.base_url = base_url.strip().rstrip("/")
        self.tenant_id = tenant_id

        headers = {"Accept": "application/json"}
        auth: httpx.Auth | None = None
        if api_token is not None:
            headers["Authorization"] = f"Bearer {api_token}"
        elif username is not None and password is not None:
            auth = httpx.BasicAuth(username, password)

        self._http = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: FlowpilotSettings, *, transport: httpx.BaseTransport | None = None
    ) -> OrchestratorClient:
        """Build a client from :class:`FlowpilotSettings`."""
        return cls(
            settings.api_url,
            tenant_id=settings.tenant_id,
            api_token=settings.api_token.get_secret_value() if settings.api_token else None,
            username=settings.username,
            password=settings.password.get_secret_value() if settings.password else None,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> OrchestratorClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _path(self, tenant_id: str | None, *parts: str) -> str:
        return "/".join([API_PREFIX, tenant_id or self.tenant_id, *parts])

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransportFailure(f"{method} {path} failed: {e}", cause=e).with_context(
                url=f"{self.base_url}{path}"
            ) from e

        logger.debug("api_request", method=method, path=path, status=response.status_code)

        if response.status_code >= 400:
            error_cls = NotFoundError if response.status_code == 404 else RemoteApiError
            raise error_cls(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            ).with_context(url=str(response.request.url))
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError(
                f"Invalid JSON from {response.request.url}", cause=e
            ) from e

    def _search(
        self,
        resource: str,
        page: int,
        size: int,
        filters: Sequence[FilterExpression],
        tenant_id: str | None,
        sort: Sequence[str] | None = None,
        extra: Sequence[tuple[str, str]] = (),
    ) -> PageResult[dict[str, Any]]:
        params: list[tuple[str, str]] = [("page", str(page)), ("size", str(size))]
        params.extend(("sort", s) for s in sort or ())
        params.extend(extra)
        params.extend(encode_filters(filters))

        body = self._json(self._request("GET", self._path(tenant_id, resource, "search"), params=params))
        if not isinstance(body, Mapping) or "results" not in body:
            raise ResponseParseError(f"Unexpected search response for {resource}")
        return PageResult(records=list(body["results"] or []), total=int(body.get("total") or 0))

    def _count(self, response: httpx.Response) -> int:
        body = self._json(response)
        if not isinstance(body, Mapping):
            raise ResponseParseError("Expected a count object")
        return int(body.get("count") or 0)

    # ------------------------------------------------------------------ #
    # Executions
    # ------------------------------------------------------------------ #

    def search_executions(
        self,
        page: int,
        size: int,
        filters: Sequence[FilterExpression] = (),
        *,
        tenant_id: str | None = None,
        sort: Sequence[str] | None = None,
    ) -> PageResult[dict[str, Any]]:
        return self._search("executions", page, size, filters, tenant_id, sort)

    def get_execution(self, execution_id: str, *, tenant_id: str | None = None) -> dict[str, Any]:
        return self._json(self._request("GET", self._path(tenant_id, "executions", execution_id)))

    def delete_execution(
        self,
        execution_id: str,
        *,
        tenant_id: str | None = None,
        delete_logs: bool = True,
        delete_metrics: bool = True,
        delete_storage: bool = True,
    ) -> None:
        self._request(
            "DELETE",
            self._path(tenant_id, "executions", execution_id),
            params={
                "deleteLogs": _wire_value(delete_logs),
                "deleteMetrics": _wire_value(delete_metrics),
                "deleteStorage": _wire_value(delete_storage),
            },
        )

    def kill_execution(
        self, execution_id: str, *, propagate_kill: bool = True, tenant_id: str | None = None
    ) -> None:
        self._request(
            "DELETE",
            self._path(tenant_id, "executions", execution_id, "kill"),
            params={"isOnKillCascade": _wire_value(propagate_kill)},
        )

    def resume_execution(
        self,
        execution_id: str,
        *,
        inputs: Mapping[str, Any] | None = None,
        tenant_id: str | None = None,
    ) -> None:
        self._request(
            "POST",
            self._path(tenant_id, "executions", execution_id, "resume"),
            data={k: _wire_value(v) for k, v in (inputs or {}).items()},
        )

    def create_execution(
        self,
        namespace: str,
        flow_id: str,
        *,
        inputs: Mapping[str, Any] | None = None,
        labels: Mapping[str, str] | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        params = [("labels", f"{k}:{v}") for k, v in (labels or {}).items()]
        response = self._request(
            "POST",
            self._path(tenant_id, "executions", namespace, flow_id),
            params=params,
            data={k: _wire_value(v) for k, v in (inputs or {}).items()},
        )
        return self._json(response)

    # ------------------------------------------------------------------ #
    # Logs / namespaces
    # ------------------------------------------------------------------ #

    def search_logs(
        self,
        page: int,
        size: int,
        filters: Sequence[FilterExpression] = (),
        *,
        tenant_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        return self._search("logs", page, size, filters, tenant_id)

    def search_namespaces(
        self,
        page: int,
        size: int,
        *,
        prefix: str = "",
        existing_only: bool = False,
        tenant_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        extra = [("q", prefix), ("existing", _wire_value(existing_only))]
        return self._search("namespaces", page, size, (), tenant_id, extra=extra)

    # ------------------------------------------------------------------ #
    # Assets
    # ------------------------------------------------------------------ #

    def search_assets(
        self,
        page: int,
        size: int,
        filters: Sequence[FilterExpression] = (),
        *,
        tenant_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        return self._search("assets", page, size, filters, tenant_id)

    def create_asset(self, asset: Mapping[str, Any], *, tenant_id: str | None = None) -> None:
        """Create or update an asset from its definition (sent as YAML)."""
        body = yaml.safe_dump(
            {k: v for k, v in asset.items() if v is not None}, sort_keys=False
        )
        self._request(
            "POST",
            self._path(tenant_id, "assets"),
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/x-yaml"},
        )

    def delete_asset(self, asset_id: str, *, tenant_id: str | None = None) -> None:
        self._request("DELETE", self._path(tenant_id, "assets", asset_id))

    def delete_assets_by_query(
        self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        params = [("deleteFromDb", "true"), *encode_filters(filters)]
        return self._count(self._request("DELETE", self._path(tenant_id, "assets", "by-query"), params=params))

    def delete_asset_usages_by_query(
        self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        return self._count(
            self._request(
                "DELETE",
                self._path(tenant_id, "assets", "usages", "by-query"),
                params=encode_filters(filters),
            )
        )

    def delete_asset_lineages_by_query(
        self, filters: Sequence[FilterExpression], *, tenant_id: str | None = None
    ) -> int:
        return self._count(
            self._request(
                "DELETE",
                self._path(tenant_id, "assets", "lineage-events", "by-query"),
                params=encode_filters(filters),
            )
        )

    # ------------------------------------------------------------------ #
    # Triggers / test suites
    # ------------------------------------------------------------------ #

    def search_triggers(
        self,
        page: int,
        size: int,
        filters: Sequence[FilterExpression] = (),
        *,
        tenant_id: str | None = None,
    ) -> PageResult[dict[str, Any]]:
        return self._search("triggers", page, size, filters, tenant_id)

    def set_triggers_disabled_by_query(
        self,
        disabled: bool,
        filters: Sequence[FilterExpression],
        *,
        tenant_id: str | None = None,
    ) -> int:
        params = [("disabled", _wire_value(disabled)), *encode_filters(filters)]
        return self._count(
            self._request("POST", self._path(tenant_id, "triggers", "set-disabled", "by-query"), params=params)
        )

    def run_test_suite(
        self,
        namespace: str,
        test_suite_id: str,
        *,
        test_cases: Sequence[str] | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        response = self._request(
            "POST",
            self._path(tenant_id, "tests", namespace, test_suite_id, "run"),
            json={"testCases": list(test_cases) if test_cases else None},
        )
        return self._json(response)


__all__ = ["API_PREFIX", "OrchestratorClient", "encode_filters"]
