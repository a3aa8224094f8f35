from __future__ import annotations

from typing import Any, Dict

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the analysis worker."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_reading(self, reading: Dict[str, Any]) -> str:
        try:
            response = self._client.post("/readings", json=reading)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        payload = response.json()
        message_id = payload.get("message_id")
        if not isinstance(message_id, str):
            raise typer.BadParameter("Unexpected response payload when publishing a reading.")
        return message_id

    def health(self) -> Dict[str, Any]:
        return self._get_json("/health")

    def queue_stats(self) -> Dict[str, Any]:
        return self._get_json("/queue")

    def metrics_text(self) -> str:
        try:
            response = self._client.get("/metrics")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.text

    def _get_json(self, path: str) -> Dict[str, Any]:
        try:
            response = self._client.get(path)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
