"""HTTP client for the chat-completions backend behind the enhanced optimizer."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Sequence

import httpx

from ...config import settings
from ...models.domain import FarrierProfile, Stop
from .errors import MalformedOptimizerResponse, OptimizerCallFailure

SYSTEM_PROMPT = "You are a route optimization assistant. Always respond with valid JSON only."

logger = logging.getLogger(__name__)


def build_route_prompt(
    farrier: FarrierProfile,
    stops: Sequence[Stop],
    *,
    work_minutes_per_horse: int | None = None,
    day_start: str | None = None,
) -> str:
    """Describe the day's scheduling problem; stops are indexed 0..n-1 as given."""
    per_horse = work_minutes_per_horse or settings.work_minutes_per_horse
    start = day_start or settings.day_start
    home = f"{farrier.home.latitude}, {farrier.home.longitude}" if farrier.home else "unknown"
    lines = [
        f"{index}: {stop.customer_name} at {stop.full_address or 'unknown address'} "
        f"({stop.coordinates.latitude}, {stop.coordinates.longitude}) - {stop.horse_count} horses"
        for index, stop in enumerate(stops)
        if stop.coordinates is not None
    ]
    appointments = "\n".join(lines)
    return f"""
You are an AI assistant helping optimize a farrier's daily route. Analyze the appointments and suggest the most efficient travel order.

Farrier Home Base:
- Address: {farrier.address or 'unknown'}
- City: {farrier.city or 'unknown'}
- Coordinates: {home}

Appointments to visit (index, customer, location, horses):
{appointments}

Guidelines:
1. Start from farrier's home base
2. Minimize total travel distance
3. Allow {per_horse} minutes per horse for work time
4. Estimate 10 minutes per 10km for travel time
5. Consider starting at {start}
6. Use actual coordinates for distance calculations

Return ONLY a JSON object with this exact format (no markdown, no explanation):
{{
  "order": [2, 0, 1],
  "total_estimated_minutes": 180,
  "steps": [
    {{
      "appointment_index": 2,
      "departure_time": "08:00",
      "arrival_time": "08:25",
      "work_duration_minutes": 45,
      "maps_url": "https://www.google.com/maps/dir/START_LAT,START_LNG/DEST_LAT,DEST_LNG"
    }}
  ]
}}

Where:
- order: array of appointment indices in optimal visit order
- total_estimated_minutes: sum of all travel + work time
- steps: detailed breakdown for each stop with Google Maps URLs"""


def extract_json_object(content: str) -> dict:
    """Return the first well-formed JSON object embedded in ``content``.

    Models sometimes wrap the answer in prose or markdown fences, so every
    opening brace is tried until one decodes to an object.
    """
    decoder = json.JSONDecoder()
    position = content.find("{")
    while position != -1:
        try:
            value, _ = decoder.raw_decode(content, position)
        except json.JSONDecodeError:
            position = content.find("{", position + 1)
            continue
        if isinstance(value, dict):
            return value
        position = content.find("{", position + 1)
    raise MalformedOptimizerResponse("No JSON object found in optimizer response")


class RouteOptimizerClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.optimizer_api_key
        if not self.api_key:
            raise ValueError("Optimizer API key is not configured.")
        self.base_url = (base_url or settings.optimizer_base_url).rstrip("/")
        self.model = model or settings.optimizer_model
        self.timeout = timeout if timeout is not None else settings.optimizer_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.optimizer_max_retries
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    async def _post_once(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> dict:
        response = await client.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()
        return response.json()

    async def complete(self, prompt: str) -> str:
        """Send the prompt and return the assistant message content.

        Transport errors and timeouts are retried up to ``max_retries`` times;
        HTTP error statuses and undecodable bodies are not.
        """
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": settings.optimizer_temperature,
        }
        attempt = 0
        async with self._get_client() as client:
            while True:
                try:
                    data = await asyncio.wait_for(self._post_once(client, payload), timeout=self.timeout)
                    break
                except (asyncio.TimeoutError, httpx.TimeoutException, httpx.TransportError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Optimizer request failed after {attempt} attempt(s): {exc!r}")
                        raise OptimizerCallFailure(f"Optimizer request failed: {exc!r}") from exc
                    logger.debug(f"Optimizer request error, retrying (attempt {attempt}/{self.max_retries}): {exc!r}")
                except httpx.HTTPStatusError as exc:
                    logger.warning(f"Optimizer returned HTTP {exc.response.status_code}")
                    raise OptimizerCallFailure(
                        f"Optimizer request failed with status {exc.response.status_code}"
                    ) from exc
                except httpx.HTTPError as exc:
                    # decoding errors and redirect loops fail without a retry
                    logger.warning(f"Optimizer request failed: {exc!r}")
                    raise OptimizerCallFailure(f"Optimizer request failed: {exc!r}") from exc
                except ValueError as exc:
                    raise MalformedOptimizerResponse("Optimizer response body is not JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedOptimizerResponse("Optimizer response has no message content") from exc
        if not isinstance(content, str):
            raise MalformedOptimizerResponse("Optimizer message content is not text")
        return content.strip()

    async def propose_route(self, farrier: FarrierProfile, stops: Sequence[Stop]) -> dict:
        """Ask for a visiting order over ``stops``; returns the raw decoded JSON object."""
        content = await self.complete(build_route_prompt(farrier, stops))
        return extract_json_object(content)
