from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
import typer

from cli.config import CLIConfig


def _tag_path(tag: str) -> str:
    return quote(tag, safe="")


class ApiClient:
    """Minimal HTTP client for the scalar reading store service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.http_timeout)

    def close(self) -> None:
        self._client.close()

    def add_reading(
        self, tag: str, timestamp_millis: int, value: float, resolution_tier: int = 0
    ) -> Dict[str, Any]:
        payload = {
            "tag": tag,
            "timestamp_millis": timestamp_millis,
            "value": value,
            "resolution_tier": resolution_tier,
        }
        return self._request("POST", "/readings", json=payload)

    def get_readings(self, tag: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("GET", f"/readings/{_tag_path(tag)}", params=params)

    def get_summary(self, tag: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("GET", f"/readings/{_tag_path(tag)}/summary", params=params)

    def delete_readings(self, tag: str, params: Dict[str, Any]) -> int:
        payload = self._request("DELETE", f"/readings/{_tag_path(tag)}", params=params)
        return int(payload.get("deleted", 0))

    def first_tag_after(self, timestamp_millis: int) -> Optional[str]:
        response = self._send("GET", "/tags/first-after", params={"timestamp": timestamp_millis})
        if response.status_code == 404:
            return None
        self._raise_for_status(response)
        return response.json().get("tag")

    def import_file(self, path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise typer.BadParameter(f"Path {path} is not a file.")
        with path.open("rb") as handle:
            return self._request(
                "POST",
                "/readings/import",
                files={"file": (path.name, handle, "text/csv")},
            )

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._send(method, url, **kwargs)
        self._raise_for_status(response)
        return response.json()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            typer.secho(
                f"Cannot reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True
            )
            raise typer.Exit(code=1) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            ApiClient._handle_http_error(exc)

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
