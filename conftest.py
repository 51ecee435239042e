"""Shared test fixtures for records browser tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from records_browser.models import PageRequest, PageResponse, Record
from records_browser.refresh import RefreshCoordinator
from records_browser.scheduling import ManualScheduler

# ── Factories ────────────────────────────────────────────────────────────────


@pytest.fixture
def make_record():
    """Factory fixture for call-record dicts shaped like the call-logs backend."""

    def _make(
        record_id: str = "1",
        caller_name: str = "Ada Lovelace",
        caller_number: str = "+15550100",
        duration: str | None = "2 minutes",
        status: str = "completed",
        recording_url: str | None = None,
        **extra: Any,
    ) -> Record:
        record: Record = {
            "id": record_id,
            "caller_name": caller_name,
            "caller_number": caller_number,
            "Duration": duration,
            "status": status,
        }
        if recording_url is not None:
            record["recording_url"] = recording_url
        record.update(extra)
        return record

    return _make


@pytest.fixture
def make_records(make_record):
    """Factory for ``count`` records with sequential string ids."""

    def _make(count: int, start: int = 1) -> list[Record]:
        return [make_record(record_id=str(i)) for i in range(start, start + count)]

    return _make


class FakeBackend:
    """Paged in-memory collection honoring skip/limit, with request recording."""

    def __init__(self, records: list[Record], *, has_more_flag: bool = False) -> None:
        self.records = records
        self.requests: list[PageRequest] = []
        self.has_more_flag = has_more_flag

    async def __call__(self, request: PageRequest) -> PageResponse:
        self.requests.append(request)
        items = self.records[request.skip : request.skip + request.limit]
        has_more = request.skip + len(items) < len(self.records) if self.has_more_flag else None
        return PageResponse(items=list(items), has_more=has_more)


class ControlledFetcher:
    """Fetcher whose responses are resolved by the test, in any order."""

    def __init__(self) -> None:
        self.calls: list[tuple[PageRequest, asyncio.Future[PageResponse]]] = []

    async def __call__(self, request: PageRequest) -> PageResponse:
        future: asyncio.Future[PageResponse] = asyncio.get_running_loop().create_future()
        self.calls.append((request, future))
        return await future

    def resolve(self, index: int, response: PageResponse) -> None:
        self.calls[index][1].set_result(response)

    def fail(self, index: int, exc: BaseException) -> None:
        self.calls[index][1].set_exception(exc)


@pytest.fixture
def fake_backend(make_records):
    """Factory building a :class:`FakeBackend` over ``count`` generated records."""

    def _make(count: int, *, has_more_flag: bool = False) -> FakeBackend:
        return FakeBackend(make_records(count), has_more_flag=has_more_flag)

    return _make


@pytest.fixture
def controlled_fetcher() -> ControlledFetcher:
    return ControlledFetcher()


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def coordinator() -> RefreshCoordinator:
    return RefreshCoordinator()


@pytest.fixture
def isolated_config_path(tmp_path, monkeypatch):
    """Point config load/save at a temporary file."""
    config_file = tmp_path / "config.json"
    monkeypatch.setattr("records_browser.config.get_config_path", lambda: config_file)
    return config_file
