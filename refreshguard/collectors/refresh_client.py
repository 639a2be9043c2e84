"""HTTP client that fetches fresh data on every background refresh."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from refreshguard.config import RefreshEndpointConfig


class RefreshError(RuntimeError):
    """Raised when the refresh endpoint cannot be fetched."""


@dataclass(slots=True)
class RefreshResult:
    """Outcome of a single successful refresh."""

    status_code: int
    fetched_at: datetime
    payload: Any


class RefreshClient:
    """Thin wrapper around :class:`httpx.Client` for the refresh endpoint.

    JSON responses are decoded; anything else is kept as text in
    :attr:`RefreshResult.payload`.
    """

    def __init__(
        self,
        config: RefreshEndpointConfig,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            timeout=config.request_timeout,
            follow_redirects=True,
            transport=transport,
        )

    def fetch(self) -> RefreshResult:
        """GET the configured path and return its decoded body."""

        try:
            response = self._client.get(self._config.path)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RefreshError(
                f"refresh endpoint returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RefreshError(str(exc) or exc.__class__.__name__) from exc

        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                payload: Any = response.json()
            except ValueError as exc:
                raise RefreshError("refresh endpoint returned invalid JSON") from exc
        else:
            payload = response.text
        return RefreshResult(
            status_code=response.status_code,
            fetched_at=datetime.now(timezone.utc),
            payload=payload,
        )

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`."""

        self._client.close()

    def __enter__(self) -> "RefreshClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()
