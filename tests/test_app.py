"""Pilot tests for the RecordsBrowser screen."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from textual.widgets import DataTable

from records_browser.app import RecordsBrowser
from records_browser.models import ListQuery, PageResponse, UserConfig
from records_browser.playback import PlayerState
from records_browser.services.interfaces import AppServices


class StubPlayer:
    def __init__(self, source: str, *, fail: bool = False) -> None:
        self.source = source
        self.position = 0.0
        self.fail = fail
        self.paused = False

    @property
    def duration(self) -> float | None:
        return 120.0

    async def play(self) -> None:
        if self.fail:
            raise OSError("player missing")

    def pause(self) -> None:
        self.paused = True

    def set_callbacks(self, *, on_ended, on_error) -> None:
        self.on_ended = on_ended
        self.on_error = on_error


def _services(records, *, unread: int = 0) -> AppServices:
    async def _fetch_page(*, request, **_kwargs):
        return PageResponse(items=records[request.skip : request.skip + request.limit])

    api = MagicMock()
    api.fetch_page = AsyncMock(side_effect=_fetch_page)
    api.fetch_unread_count = AsyncMock(return_value=unread)
    return AppServices(records_api=api)


def _app(records, *, unread: int = 0, query: ListQuery | None = None, fail_play=False):
    return RecordsBrowser(
        config=UserConfig(unread_poll_seconds=0),
        initial_query=query,
        restore_session=False,
        services=_services(records, unread=unread),
        player_factory=lambda source: StubPlayer(source, fail=fail_play),
    )


async def _wait_for(pilot, predicate, timeout: float = 2.0) -> None:
    end = asyncio.get_running_loop().time() + timeout
    while not predicate() and asyncio.get_running_loop().time() < end:
        await pilot.pause(0.02)
    assert predicate()


def _idle(app: RecordsBrowser) -> bool:
    return app.controller is not None and not app.controller.get_view().loading


@pytest.mark.asyncio
async def test_first_window_renders(make_records):
    app = _app(make_records(25), unread=4)
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            table = app.query_one("#records-table", DataTable)
            await _wait_for(pilot, lambda: table.row_count == 10)
            state = app.controller.get_view()
            assert state.displayed_total == 11
            assert state.total_is_exact is False
            await _wait_for(pilot, lambda: app.badge.count == 4)


@pytest.mark.asyncio
async def test_next_page_key_fetches_following_window(make_records):
    app = _app(make_records(25))
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            table = app.query_one("#records-table", DataTable)
            await _wait_for(pilot, lambda: table.row_count == 10)
            await pilot.press("n")
            await _wait_for(pilot, lambda: app.controller.query.page_index == 2 and _idle(app))
            request = app._services.records_api.fetch_page.await_args.kwargs["request"]
            assert request.skip == 10
            await pilot.press("n")
            await _wait_for(pilot, lambda: table.row_count == 5)
            assert app.controller.get_view().total_is_exact is True
            assert app.controller.get_view().displayed_total == 25


@pytest.mark.asyncio
async def test_realtime_event_refetches_window(make_records):
    app = _app(make_records(3))
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            api = app._services.records_api
            await _wait_for(pilot, lambda: api.fetch_page.await_count == 1 and _idle(app))
            unread_before = api.fetch_unread_count.await_count

            assert app.feed_realtime({"topic": "call_log_created", "payload": {"id": "99"}})

            await _wait_for(pilot, lambda: api.fetch_page.await_count == 2)
            await _wait_for(pilot, lambda: api.fetch_unread_count.await_count > unread_before)
            duplicate = {"topic": "call_log_created", "payload": {"id": "99"}}
            assert app.feed_realtime(duplicate) is False


@pytest.mark.asyncio
async def test_search_submit_applies_immediately(make_records):
    app = _app(make_records(3))
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            await _wait_for(pilot, lambda: _idle(app))
            await pilot.press("slash")
            for ch in "ada":
                await pilot.press(ch)
            await pilot.press("enter")
            await _wait_for(pilot, lambda: app.controller.query.search_text == "ada")
            api = app._services.records_api
            await _wait_for(
                pilot, lambda: api.fetch_page.await_args.kwargs["request"].search == "ada"
            )


@pytest.mark.asyncio
async def test_space_toggles_playback_for_cursor_row(make_record):
    records = [
        make_record(record_id="1", recording_url="https://cdn.test/1.mp3"),
        make_record(record_id="2", recording_url="https://cdn.test/2.mp3"),
    ]
    app = _app(records)
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            table = app.query_one("#records-table", DataTable)
            await _wait_for(pilot, lambda: table.row_count == 2)
            await pilot.press("space")
            await _wait_for(pilot, lambda: app.playback.is_playing("1"))
            await pilot.press("down")
            await pilot.press("space")
            await _wait_for(pilot, lambda: app.playback.is_playing("2"))
            assert app.playback.is_playing("1") is False
            await pilot.press("x")
            assert app.playback.state is PlayerState.IDLE


@pytest.mark.asyncio
async def test_playback_start_failure_notifies(make_record):
    app = _app([make_record(record_id="1", recording_url="bad.mp3")], fail_play=True)
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            table = app.query_one("#records-table", DataTable)
            await _wait_for(pilot, lambda: table.row_count == 1)
            with patch.object(app, "notify") as notify:
                await pilot.press("space")
                await _wait_for(pilot, lambda: notify.called)
            assert "Could not play recording 1." in notify.call_args.args[0]
            assert app.playback.state is PlayerState.IDLE


@pytest.mark.asyncio
async def test_player_error_during_playback_notifies(make_record):
    players: list[StubPlayer] = []

    def _factory(source):
        players.append(StubPlayer(source))
        return players[-1]

    app = RecordsBrowser(
        config=UserConfig(unread_poll_seconds=0),
        restore_session=False,
        services=_services([make_record(record_id="1", recording_url="https://cdn.test/1.mp3")]),
        player_factory=_factory,
    )
    with patch("records_browser.app.save_config", return_value=True):
        async with app.run_test(size=(140, 40)) as pilot:
            table = app.query_one("#records-table", DataTable)
            await _wait_for(pilot, lambda: table.row_count == 1)
            await pilot.press("space")
            await _wait_for(pilot, lambda: app.playback.is_playing("1"))
            with patch.object(app, "notify") as notify:
                players[0].on_error("Exit 1: connection reset")
            assert "Could not play recording 1." in notify.call_args.args[0]
            assert notify.call_args.kwargs["severity"] == "error"
            assert app.playback.state is PlayerState.IDLE

@pytest.mark.asyncio
async def test_unmount_saves_session(make_records):
    app = _app(make_records(3), query=ListQuery(search_text="ada", page_size=25))
    with patch("records_browser.app.save_config", return_value=True) as save:
        async with app.run_test(size=(140, 40)) as pilot:
            await _wait_for(pilot, lambda: _idle(app))
            await app.on_unmount()
            assert app._http_client is None
    save.assert_called()
    saved = save.call_args_list[0].args[0]
    assert saved.session.search == "ada"
    assert saved.session.page_size == 25
