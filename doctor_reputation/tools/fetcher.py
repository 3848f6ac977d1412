from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx

from doctor_reputation.config import settings
from doctor_reputation.errors import SourceMalformed, SourceUnavailable

JSON_HEADERS = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class FetchedDocument:
    url: str
    status_code: int
    body: str


def default_headers(extra: dict[str, str] | None = None) -> dict[str, str]:
    headers = {"User-Agent": settings.http_user_agent}
    if extra:
        headers.update(extra)
    return headers


async def fetch(
    source_id: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FetchedDocument:
    """GET a document; timeouts and non-2xx responses raise SourceUnavailable."""

    async def _do_request(client: httpx.AsyncClient) -> httpx.Response:
        response = await client.get(url, params=params, headers=default_headers(headers))
        response.raise_for_status()
        return response

    try:
        if http_client is None:
            async with httpx.AsyncClient(
                timeout=settings.http_timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await _do_request(client)
        else:
            response = await _do_request(http_client)
    except httpx.HTTPStatusError as exc:
        raise SourceUnavailable(
            source_id, f"HTTP {exc.response.status_code} from {url}"
        ) from exc
    except httpx.HTTPError as exc:
        raise SourceUnavailable(source_id, f"{type(exc).__name__} fetching {url}") from exc

    return FetchedDocument(url=str(response.url), status_code=response.status_code, body=response.text)


async def fetch_json(
    source_id: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """GET a JSON object; a body that is not a JSON object raises SourceMalformed."""
    merged = dict(JSON_HEADERS)
    if headers:
        merged.update(headers)
    document = await fetch(source_id, url, params=params, headers=merged, http_client=http_client)
    try:
        payload = json.loads(document.body)
    except ValueError as exc:
        raise SourceMalformed(source_id, f"invalid JSON from {url}") from exc
    if not isinstance(payload, dict):
        raise SourceMalformed(source_id, f"expected a JSON object from {url}")
    return payload
