from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the greenhouse monitor service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_latest(self) -> Dict[str, Any]:
        return self._request("GET", "/state/latest")

    def get_logs(
        self,
        search: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        page: int = 1,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"instance": self._config.instance, "page": page}
        if search:
            params["search"] = search
        if start:
            params["start"] = start
        if end:
            params["end"] = end
        return self._request("GET", "/logs", params=params)

    def write_reading(
        self, updates: Dict[str, Any], sensors: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"updates": updates, "instance": self._config.instance}
        if sensors:
            body["active_sensors"] = sensors
        return self._request("POST", "/readings", json=body)

    def get_series(self, sensors: Optional[List[str]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"instance": self._config.instance}
        if sensors:
            params["sensors"] = sensors
        return self._request("GET", "/series", params=params)

    def list_automations(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/automations")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
