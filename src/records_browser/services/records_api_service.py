"""Internal records API helpers for page fetches, unread counts, and payload parsing."""

from __future__ import annotations

from typing import Any

import httpx

from records_browser.models import DEFAULT_ITEMS_KEY, PageRequest, PageResponse
from records_browser.query import build_list_params

USER_AGENT = "records-browser/1.0"


def build_collection_url(base_url: str, collection: str, *suffix: str) -> str:
    """Join the API base, a collection path, and optional sub-paths."""
    parts = [base_url.rstrip("/"), collection.strip("/")]
    parts.extend(part.strip("/") for part in suffix if part)
    return "/".join(parts)


def build_headers(api_token: str, user_agent: str = USER_AGENT) -> dict[str, str]:
    """Build request headers, adding bearer auth when a token is configured."""
    headers = {"User-Agent": user_agent, "Accept": "application/json"}
    if api_token:
        headers["Authorization"] = f"Bearer {api_token}"
    return headers


def _coerce_optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return max(0, value)


def parse_page_response(data: Any, items_key: str = DEFAULT_ITEMS_KEY) -> PageResponse:
    """Parse a list response body into a :class:`PageResponse`.

    Raises:
        ValueError: If the body is not an object holding a list of records.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    raw_items = data.get(items_key)
    if raw_items is None and items_key != DEFAULT_ITEMS_KEY:
        raw_items = data.get(DEFAULT_ITEMS_KEY)
    if not isinstance(raw_items, list):
        raise ValueError(f"Response has no {items_key!r} list")
    items = [item for item in raw_items if isinstance(item, dict)]
    has_more = data.get("has_more", data.get("hasMore"))
    return PageResponse(
        items=items,
        total=_coerce_optional_int(data.get("total")),
        has_more=has_more if isinstance(has_more, bool) else None,
    )


async def _get(
    client: httpx.AsyncClient | None,
    url: str,
    *,
    params: list[tuple[str, str]] | None,
    headers: dict[str, str],
    timeout_seconds: int,
) -> httpx.Response:
    if client is not None:
        return await client.get(url, params=params, headers=headers, timeout=timeout_seconds)
    async with httpx.AsyncClient() as tmp_client:
        return await tmp_client.get(url, params=params, headers=headers, timeout=timeout_seconds)


async def fetch_page(
    *,
    client: httpx.AsyncClient | None,
    base_url: str,
    collection: str,
    request: PageRequest,
    items_key: str,
    api_token: str,
    timeout_seconds: int,
    user_agent: str = USER_AGENT,
) -> PageResponse:
    """Fetch one bounded page of a collection and parse it."""
    response = await _get(
        client,
        build_collection_url(base_url, collection),
        params=build_list_params(request),
        headers=build_headers(api_token, user_agent),
        timeout_seconds=timeout_seconds,
    )
    response.raise_for_status()
    return parse_page_response(response.json(), items_key)


async def fetch_unread_count(
    *,
    client: httpx.AsyncClient | None,
    base_url: str,
    collection: str,
    api_token: str,
    timeout_seconds: int,
    user_agent: str = USER_AGENT,
) -> int:
    """Fetch the collection's unread/pending counter."""
    response = await _get(
        client,
        build_collection_url(base_url, collection, "unread-count"),
        params=None,
        headers=build_headers(api_token, user_agent),
        timeout_seconds=timeout_seconds,
    )
    response.raise_for_status()
    data = response.json()
    count = data.get("unread_count") if isinstance(data, dict) else None
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError("Response has no integer 'unread_count'")
    return max(0, count)


__all__ = [
    "USER_AGENT",
    "build_collection_url",
    "build_headers",
    "fetch_page",
    "fetch_unread_count",
    "parse_page_response",
]
