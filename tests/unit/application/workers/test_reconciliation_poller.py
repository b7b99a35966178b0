"""Tests for ReconciliationPoller, the per-view state machine.

Hey future me - these run on the real event loop. Timing-sensitive tests use a tiny
poll_interval and wait_for(); everything grace-window related uses the FakeClock fixture,
so no test ever sleeps through a 30s window.
"""

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from jellystreaming.application.services.action_dispatcher import ActionDispatcher
from jellystreaming.application.services.reconciliation_service import (
    ReconciliationService,
)
from jellystreaming.application.workers.reconciliation_poller import (
    PollPhase,
    ReconciliationPoller,
)
from jellystreaming.domain.entities import LibraryEntry, PlaybackOptions, TitleReference
from jellystreaming.domain.exceptions import (
    AcquisitionRequestError,
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    InvalidStateException,
)
from jellystreaming.domain.value_objects import ActionKind, DisplayState


class Gate:
    """Makes an AsyncMock block until released."""

    def __init__(self, result=None) -> None:
        self.entered = asyncio.Event()
        self.released = asyncio.Event()
        self.result = result

    async def call(self, *args, **kwargs):
        self.entered.set()
        await self.released.wait()
        return self.result


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def service(
    library_client: AsyncMock, movie_client: AsyncMock, series_client: AsyncMock
) -> ReconciliationService:
    return ReconciliationService(library_client, movie_client, series_client)


@pytest.fixture
def dispatcher(
    movie_client: AsyncMock,
    series_client: AsyncMock,
    metadata_client: AsyncMock,
    playback: MagicMock,
    radarr_settings,
    sonarr_settings,
) -> ActionDispatcher:
    return ActionDispatcher(
        movie_client, series_client, metadata_client, playback, radarr_settings, sonarr_settings
    )


@pytest.fixture
async def make_poller(service, dispatcher, movie_ref: TitleReference, clock):
    created: list[ReconciliationPoller] = []

    def _make(poll_interval: float = 100.0, reference: TitleReference | None = None):
        poller = ReconciliationPoller(
            "view-1",
            reference or movie_ref,
            service,
            dispatcher,
            poll_interval=poll_interval,
            grace_window=30.0,
            clock=clock,
        )
        created.append(poller)
        return poller

    yield _make
    for poller in created:
        await poller.close()


class TestInitialCheck:
    """start() runs one pass right away and settles or starts polling."""

    async def test_available_is_stable(
        self, make_poller, library_client: AsyncMock, matrix_entry: LibraryEntry
    ) -> None:
        library_client.search_movies.return_value = [matrix_entry]
        poller = make_poller()

        await poller.start()

        assert poller.state.display_state is DisplayState.AVAILABLE
        assert poller.state.enabled_action is ActionKind.PLAY
        assert poller.phase is PollPhase.STABLE
        assert not poller.is_polling

    async def test_not_requested_is_stable(self, make_poller) -> None:
        poller = make_poller()
        await poller.start()
        assert poller.state.display_state is DisplayState.NOT_REQUESTED
        assert poller.phase is PollPhase.STABLE

    async def test_downloading_starts_polling(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry()]
        poller = make_poller()

        await poller.start()

        assert poller.state.display_state is DisplayState.DOWNLOADING
        assert poller.phase is PollPhase.POLLING
        assert poller.is_polling

    async def test_read_failure_before_any_state_is_unknown_and_polls(
        self, make_poller, movie_client: AsyncMock
    ) -> None:
        movie_client.list_records.side_effect = ExternalServiceError("down", "radarr")
        poller = make_poller()

        await poller.start()

        assert poller.state.display_state is DisplayState.UNKNOWN
        assert poller.state.enabled_action is ActionKind.NONE
        assert poller.is_polling

    async def test_start_twice_runs_one_pass(self, make_poller, movie_client: AsyncMock) -> None:
        poller = make_poller()
        await poller.start()
        await poller.start()
        assert movie_client.list_records.await_count == 1


class TestCollaboratorRejection:
    """A 401 or missing configuration stops the view instead of polling UNKNOWN forever."""

    @pytest.mark.parametrize(
        "error",
        [AuthenticationError("radarr rejected"), ConfigurationError("radarr is not configured")],
    )
    async def test_start_raises_and_does_not_poll(
        self, make_poller, movie_client: AsyncMock, error: Exception
    ) -> None:
        movie_client.list_records.side_effect = error
        poller = make_poller(poll_interval=0.01)

        with pytest.raises(type(error)):
            await poller.start()

        assert poller.phase is PollPhase.FAILED
        assert poller.failure is error
        assert not poller.is_polling

    async def test_background_tick_stops_polling(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry()]
        poller = make_poller(poll_interval=0.01)
        await poller.start()
        assert poller.is_polling

        movie_client.list_records.side_effect = AuthenticationError("radarr rejected")
        await wait_for(lambda: poller.phase is PollPhase.FAILED)
        passes = poller.get_status()["stats"]["passes"]
        await asyncio.sleep(0.05)

        assert not poller.is_polling
        assert poller.get_status()["stats"]["passes"] == passes
        with pytest.raises(AuthenticationError):
            poller.raise_if_failed()

    async def test_successful_refresh_clears_failure(
        self, make_poller, movie_client: AsyncMock
    ) -> None:
        movie_client.list_records.side_effect = AuthenticationError("radarr rejected")
        poller = make_poller()
        with pytest.raises(AuthenticationError):
            await poller.start()

        movie_client.list_records.side_effect = None
        movie_client.list_records.return_value = []
        assert await poller.refresh() is True

        assert poller.failure is None
        assert poller.phase is PollPhase.STABLE
        assert poller.state.display_state is DisplayState.NOT_REQUESTED
        poller.raise_if_failed()


class TestPolling:
    async def test_poll_loop_stops_when_title_lands_in_library(
        self,
        make_poller,
        library_client: AsyncMock,
        movie_client: AsyncMock,
        matrix_entry: LibraryEntry,
        make_record,
        make_queue_entry,
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry()]
        poller = make_poller(poll_interval=0.01)
        await poller.start()
        assert poller.is_polling

        library_client.search_movies.return_value = [matrix_entry]
        await wait_for(lambda: poller.state.display_state is DisplayState.AVAILABLE)
        await wait_for(lambda: not poller.is_polling)

        assert poller.phase is PollPhase.STABLE
        assert poller.library_match is matrix_entry

    async def test_progress_never_goes_backwards(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry(total=1000, remaining=500)]
        poller = make_poller()
        await poller.start()
        assert poller.state.progress_percent == 50.0

        movie_client.get_queue.return_value = [make_queue_entry(total=1000, remaining=600)]
        assert await poller.refresh() is True

        assert poller.state.progress_percent == 50.0

        movie_client.get_queue.return_value = [make_queue_entry(total=1000, remaining=250)]
        await poller.refresh()
        assert poller.state.progress_percent == 75.0

    async def test_failed_read_keeps_previous_state_stale(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry()]
        poller = make_poller()
        await poller.start()

        movie_client.list_records.side_effect = ExternalServiceError("timeout", "radarr")
        await poller.refresh()

        assert poller.state.display_state is DisplayState.DOWNLOADING
        assert poller.state.stale is True
        assert poller.is_polling
        assert poller.get_status()["stats"]["incomplete_passes"] == 1

    async def test_tick_while_pass_in_flight_is_coalesced(
        self, make_poller, movie_client: AsyncMock
    ) -> None:
        poller = make_poller()
        await poller.start()

        gate = Gate(result=[])
        movie_client.list_records.side_effect = gate.call
        first = asyncio.create_task(poller.refresh())
        await gate.entered.wait()

        assert await poller.refresh() is False
        assert poller.get_status()["stats"]["coalesced_ticks"] == 1

        gate.released.set()
        assert await first is True
        assert movie_client.list_records.await_count == 2


class TestRequest:
    """REQUEST opens the grace window; SEARCHING shows up immediately."""

    async def test_request_shows_searching_immediately(
        self, make_poller, movie_client: AsyncMock, make_record
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.return_value = make_record()
        passes_before = poller.get_status()["stats"]["passes"]

        result = await poller.request()

        assert result.record.acquisition_id == 7
        assert poller.state.display_state is DisplayState.SEARCHING
        assert poller.get_status()["stats"]["passes"] == passes_before
        assert poller.grace_active
        assert poller.is_polling

    async def test_lagging_listing_does_not_flicker_back(
        self, make_poller, movie_client: AsyncMock, make_record
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.return_value = make_record()
        await poller.request()

        # The service hasn't listed the new record yet
        movie_client.list_records.return_value = []
        await poller.refresh()

        assert poller.state.display_state is DisplayState.SEARCHING

    async def test_grace_expiry_without_download_is_not_available(
        self, make_poller, movie_client: AsyncMock, make_record, clock
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.return_value = make_record()
        await poller.request()

        movie_client.list_records.return_value = [make_record()]
        clock.advance(31)
        await poller.refresh()

        assert poller.state.display_state is DisplayState.NOT_AVAILABLE
        assert poller.phase is PollPhase.STABLE
        assert not poller.is_polling
        assert not poller.grace_active

    async def test_download_starting_inside_grace(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.return_value = make_record()
        await poller.request()

        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry(total=100, remaining=90)]
        await poller.refresh()

        assert poller.state.display_state is DisplayState.DOWNLOADING
        assert poller.state.progress_percent == pytest.approx(10.0)

    async def test_failed_request_leaves_not_requested(
        self, make_poller, movie_client: AsyncMock
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.side_effect = ExternalServiceError("already added", "radarr", 400)

        with pytest.raises(AcquisitionRequestError):
            await poller.request()

        assert poller.state.display_state is DisplayState.NOT_REQUESTED
        assert poller.state.enabled_action is ActionKind.REQUEST
        assert not poller.grace_active
        assert not poller.is_polling

    async def test_concurrent_request_rejected(
        self, make_poller, movie_client: AsyncMock, make_record
    ) -> None:
        poller = make_poller()
        await poller.start()
        gate = Gate(result=make_record())
        movie_client.add.side_effect = gate.call

        first = asyncio.create_task(poller.request())
        await gate.entered.wait()
        with pytest.raises(InvalidStateException):
            await poller.request()

        gate.released.set()
        await first
        assert movie_client.add.await_count == 1

    async def test_result_fetched_before_request_is_discarded(
        self, make_poller, movie_client: AsyncMock, make_record
    ) -> None:
        poller = make_poller()
        await poller.start()

        gate = Gate(result=[])
        movie_client.list_records.side_effect = gate.call
        stale_pass = asyncio.create_task(poller.refresh())
        await gate.entered.wait()

        movie_client.add.return_value = make_record()
        await poller.request()
        gate.released.set()

        assert await stale_pass is False
        assert poller.state.display_state is DisplayState.SEARCHING
        assert poller.get_status()["stats"]["discarded_results"] == 1

    async def test_play_not_enabled_while_not_requested(self, make_poller) -> None:
        poller = make_poller()
        await poller.start()
        with pytest.raises(InvalidStateException):
            await poller.dispatch(ActionKind.PLAY)


class TestPlay:
    async def test_play_returns_stream_url(
        self,
        make_poller,
        library_client: AsyncMock,
        matrix_entry: LibraryEntry,
        playback: MagicMock,
    ) -> None:
        library_client.search_movies.return_value = [matrix_entry]
        poller = make_poller()
        await poller.start()

        result = await poller.dispatch(ActionKind.PLAY)

        assert result.stream_url == playback.launch.return_value
        playback.launch.assert_called_once_with(matrix_entry, PlaybackOptions())


class TestClose:
    async def test_close_during_in_flight_pass(
        self, make_poller, movie_client: AsyncMock, make_record, make_queue_entry
    ) -> None:
        movie_client.list_records.return_value = [make_record()]
        movie_client.get_queue.return_value = [make_queue_entry()]
        poller = make_poller()
        await poller.start()
        before = poller.state

        gate = Gate(result=[])
        movie_client.list_records.side_effect = gate.call
        pending = asyncio.create_task(poller.refresh())
        await gate.entered.wait()

        await poller.close()
        gate.released.set()

        assert await pending is False
        assert poller.state is before
        assert poller.phase is PollPhase.IDLE
        assert not poller.is_polling

    async def test_close_is_idempotent_and_blocks_actions(self, make_poller) -> None:
        poller = make_poller()
        handle = await poller.start()

        await handle.cancel()
        await poller.close()

        assert handle.cancelled
        assert await poller.refresh() is False
        with pytest.raises(InvalidStateException):
            await poller.request()

    async def test_context_manager(self, make_poller) -> None:
        poller = make_poller()
        async with poller as view:
            assert view.state is not None
        assert poller.closed


class TestSeasons:
    async def test_more_seasons_needs_tracked_series(self, make_poller) -> None:
        poller = make_poller()
        await poller.start()
        with pytest.raises(InvalidStateException):
            await poller.request_more_seasons([1])
        assert poller.season_statuses() == []


class TestRefreshMonitoredDownloads:
    async def test_triggers_service_then_rechecks(
        self, make_poller, movie_client: AsyncMock
    ) -> None:
        poller = make_poller()
        await poller.start()

        await poller.refresh_monitored_downloads()

        movie_client.refresh_monitored_downloads.assert_awaited_once()
        assert movie_client.list_records.await_count == 2


class TestStatus:
    async def test_status_fields(
        self, make_poller, movie_client: AsyncMock, make_record, clock
    ) -> None:
        poller = make_poller()
        await poller.start()
        movie_client.add.return_value = make_record()
        await poller.request()
        clock.advance(10)

        status = poller.get_status()

        assert status["view_id"] == "view-1"
        assert status["phase"] == "polling"
        assert status["display_state"] == "searching"
        assert status["display_label"] == "Searching"
        assert status["enabled_action"] == "none"
        assert status["grace_active"] is True
        assert status["grace_remaining_seconds"] == 20.0
