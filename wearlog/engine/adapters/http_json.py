"""HTTP JSON activity provider.

Fetches hourly samples from a JSON endpoint:

    GET {base_url}/hourly?date=2026-02-23
    Authorization: Bearer <token>

    {"data": [{"hour": 9, "steps": 512, "distance_km": 0.41}, ...]}

A 404 for a day means the provider has nothing recorded and is treated as
no activity.  Other non-2xx responses raise ``httpx.HTTPStatusError``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from wearlog.engine.base import ActivityProvider, RawSample

logger = logging.getLogger("wearlog.engine.adapters.http")


class HttpActivityProvider(ActivityProvider):
    """Pulls hourly step and distance samples from an HTTP service."""

    SOURCE_ID = "http"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url:    Root URL of the activity service.
            token:       Optional bearer token.
            http_client: Optional pre-configured httpx client (for testing).
            timeout:     Request timeout in seconds for the owned client.
        """
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def fetch_hourly_samples(self, day: date) -> list[RawSample]:
        response = await self._http_client.get(
            f"{self._base_url}/hourly",
            params={"date": day.isoformat()},
            headers=self._build_headers(),
        )
        if response.status_code == 404:
            logger.debug("HTTP provider: no data for %s", day)
            return []
        response.raise_for_status()
        payload = response.json()
        return self.parse_payload(payload, day)

    def parse_payload(self, payload: Any, day: date) -> list[RawSample]:
        """Turn a response body into samples, skipping malformed entries."""
        entries = (payload.get("data") or []) if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            logger.warning("HTTP provider: malformed body for %s: %r", day, payload)
            return []
        by_hour: dict[int, RawSample] = {}
        for entry in entries:
            try:
                hour = int(entry["hour"])
                steps = int(entry.get("steps") or 0)
                distance_km = float(entry.get("distance_km") or 0.0)
            except (KeyError, TypeError, ValueError):
                logger.warning("HTTP provider: skipping malformed entry %r", entry)
                continue
            if not 0 <= hour <= 23 or steps < 0 or distance_km < 0:
                logger.warning("HTTP provider: skipping out-of-range entry %r", entry)
                continue
            by_hour[hour] = RawSample(day=day, hour=hour, steps=steps, distance_km=distance_km)
        return [by_hour[h] for h in sorted(by_hour)]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
