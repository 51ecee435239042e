"""Service interfaces + default adapters for app-level dependency injection."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from records_browser.models import PageRequest, PageResponse, UserConfig
from records_browser.services import records_api_service as _records_api


@runtime_checkable
class RecordsApiService(Protocol):
    """Interface for records API app operations."""

    async def fetch_page(
        self,
        *,
        client: httpx.AsyncClient | None,
        base_url: str,
        collection: str,
        request: PageRequest,
        items_key: str,
        api_token: str,
        timeout_seconds: int,
    ) -> PageResponse:
        """Fetch one page of records."""
        ...

    async def fetch_unread_count(
        self,
        *,
        client: httpx.AsyncClient | None,
        base_url: str,
        collection: str,
        api_token: str,
        timeout_seconds: int,
    ) -> int:
        """Fetch the unread/pending counter for a collection."""
        ...


class DefaultRecordsApiService:
    """Default adapter that delegates to function-based records API services."""

    async def fetch_page(
        self,
        *,
        client: httpx.AsyncClient | None,
        base_url: str,
        collection: str,
        request: PageRequest,
        items_key: str,
        api_token: str,
        timeout_seconds: int,
    ) -> PageResponse:
        return await _records_api.fetch_page(
            client=client,
            base_url=base_url,
            collection=collection,
            request=request,
            items_key=items_key,
            api_token=api_token,
            timeout_seconds=timeout_seconds,
        )

    async def fetch_unread_count(
        self,
        *,
        client: httpx.AsyncClient | None,
        base_url: str,
        collection: str,
        api_token: str,
        timeout_seconds: int,
    ) -> int:
        return await _records_api.fetch_unread_count(
            client=client,
            base_url=base_url,
            collection=collection,
            api_token=api_token,
            timeout_seconds=timeout_seconds,
        )


@dataclass(slots=True)
class AppServices:
    """Aggregated service interfaces consumed by the app layer."""

    records_api: RecordsApiService


def build_default_app_services() -> AppServices:
    """Build default app services backed by existing function-based modules."""
    return AppServices(records_api=DefaultRecordsApiService())


def bind_page_fetcher(
    services: AppServices,
    config: UserConfig,
    client: httpx.AsyncClient | None = None,
) -> Callable[[PageRequest], Awaitable[PageResponse]]:
    """Close a records API service over the configured collection and credentials."""

    async def _fetch(request: PageRequest) -> PageResponse:
        return await services.records_api.fetch_page(
            client=client,
            base_url=config.api_base_url,
            collection=config.collection,
            request=request,
            items_key=config.items_key,
            api_token=config.api_token,
            timeout_seconds=config.request_timeout_seconds,
        )

    return _fetch


def bind_unread_count_fetcher(
    services: AppServices,
    config: UserConfig,
    client: httpx.AsyncClient | None = None,
) -> Callable[[], Awaitable[int]]:
    async def _fetch() -> int:
        return await services.records_api.fetch_unread_count(
            client=client,
            base_url=config.api_base_url,
            collection=config.collection,
            api_token=config.api_token,
            timeout_seconds=config.request_timeout_seconds,
        )

    return _fetch


__all__ = [
    "AppServices",
    "DefaultRecordsApiService",
    "RecordsApiService",
    "bind_page_fetcher",
    "bind_unread_count_fetcher",
    "build_default_app_services",
]
