"""HTTP client for the gateway, holding the session cookie between calls."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sankey_proxy.config import api_base_url
from sankey_proxy.models.data_models import CategoryRecord, FilterSelection, FlowRecord

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionExpiredError(ApiError):
    """The gateway answered 401: the session is missing or no longer valid."""


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(data, dict):
        return str(data.get("details") or data.get("message") or data.get("error") or data)
    return str(data)


class SankeyApiClient:
    def __init__(self, base_url: str | None = None, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(base_url=base_url or api_base_url(), transport=transport)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Request to %s failed: %s", path, exc)
            raise ApiError(f"Network error: {exc}") from exc

        if resp.status_code == 401:
            raise SessionExpiredError(_error_message(resp), status_code=401)
        if resp.status_code >= 400:
            raise ApiError(_error_message(resp), status_code=resp.status_code)
        return resp.json()

    def send_auth_token(self, token: str) -> dict[str, Any]:
        return self._request("POST", "/auth/token", json={"token": token})

    def get_auth_status(self) -> dict[str, Any]:
        return self._request("GET", "/auth/status")

    def logout(self) -> dict[str, Any]:
        result = self._request("POST", "/auth/logout", json={})
        self._client.cookies.clear()
        return result

    def get_filter_categories(self) -> list[CategoryRecord]:
        return [CategoryRecord.model_validate(row) for row in self._request("GET", "/filters/categories")]

    def get_sankey_data(self, filters: FilterSelection | None = None) -> list[FlowRecord]:
        filters = filters or FilterSelection()
        payload = {"filters": filters.active()}
        return [FlowRecord.model_validate(row) for row in self._request("POST", "/data/sankey", json=payload)]

    def close(self) -> None:
        self._client.close()
