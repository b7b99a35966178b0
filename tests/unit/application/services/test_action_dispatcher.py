"""Tests for ActionDispatcher (PLAY / REQUEST / more seasons)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from jellystreaming.application.services.action_dispatcher import (
    ActionDispatcher,
    DispatchContext,
)
from jellystreaming.config.settings import RadarrSettings, SonarrSettings
from jellystreaming.domain.entities import (
    LibraryEntry,
    MediaKind,
    PlaybackOptions,
    SeasonInfo,
    TitleReference,
)
from jellystreaming.domain.exceptions import (
    AcquisitionRequestError,
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    InvalidStateException,
    ValidationError,
)
from jellystreaming.domain.value_objects import ActionKind, DisplayState, ReconciledState

NOT_REQUESTED = ReconciledState(DisplayState.NOT_REQUESTED, ActionKind.REQUEST)
AVAILABLE = ReconciledState(DisplayState.AVAILABLE, ActionKind.PLAY)


@pytest.fixture
def dispatcher(
    movie_client: AsyncMock,
    series_client: AsyncMock,
    metadata_client: AsyncMock,
    playback: MagicMock,
    radarr_settings: RadarrSettings,
    sonarr_settings: SonarrSettings,
) -> ActionDispatcher:
    return ActionDispatcher(
        movie_client,
        series_client,
        metadata_client,
        playback,
        radarr_settings,
        sonarr_settings,
    )


class TestGuard:
    """Only the enabled action may run."""

    async def test_play_while_not_available(
        self, dispatcher: ActionDispatcher, movie_ref: TitleReference
    ) -> None:
        with pytest.raises(InvalidStateException):
            await dispatcher.dispatch(ActionKind.PLAY, DispatchContext(movie_ref, NOT_REQUESTED))

    async def test_request_while_available(
        self, dispatcher: ActionDispatcher, movie_ref: TitleReference, movie_client: AsyncMock
    ) -> None:
        with pytest.raises(InvalidStateException):
            await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(movie_ref, AVAILABLE))
        movie_client.add.assert_not_awaited()

    async def test_none_is_never_dispatchable(
        self, dispatcher: ActionDispatcher, movie_ref: TitleReference
    ) -> None:
        state = ReconciledState(DisplayState.QUEUED)
        with pytest.raises(InvalidStateException):
            await dispatcher.dispatch(ActionKind.NONE, DispatchContext(movie_ref, state))


class TestPlay:
    async def test_play_hands_off_library_entry(
        self,
        dispatcher: ActionDispatcher,
        movie_ref: TitleReference,
        matrix_entry: LibraryEntry,
        playback: MagicMock,
    ) -> None:
        context = DispatchContext(movie_ref, AVAILABLE, library_match=matrix_entry)

        result = await dispatcher.dispatch(ActionKind.PLAY, context)

        playback.launch.assert_called_once_with(matrix_entry, PlaybackOptions())
        assert result.action is ActionKind.PLAY
        assert result.stream_url.endswith("master.m3u8")

    async def test_play_without_match(
        self, dispatcher: ActionDispatcher, movie_ref: TitleReference
    ) -> None:
        with pytest.raises(InvalidStateException):
            await dispatcher.dispatch(ActionKind.PLAY, DispatchContext(movie_ref, AVAILABLE))


class TestRequestMovie:
    async def test_payload(
        self,
        dispatcher: ActionDispatcher,
        movie_client: AsyncMock,
        movie_ref: TitleReference,
        make_record,
    ) -> None:
        movie_client.add.return_value = make_record()

        result = await dispatcher.dispatch(
            ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED)
        )

        movie_client.add.assert_awaited_once_with(
            {
                "title": "The Matrix",
                "tmdbId": 603,
                "qualityProfileId": 1,
                "rootFolderPath": "/data/movies",
                "monitored": True,
                "addOptions": {"searchForMovie": True},
                "year": 1999,
            }
        )
        assert result.record.acquisition_id == 7

    async def test_refresh_fired_after_success(
        self,
        dispatcher: ActionDispatcher,
        movie_client: AsyncMock,
        movie_ref: TitleReference,
        make_record,
    ) -> None:
        movie_client.add.return_value = make_record()
        await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED))
        movie_client.refresh_monitored_downloads.assert_awaited_once()

    async def test_refresh_failure_does_not_fail_request(
        self,
        dispatcher: ActionDispatcher,
        movie_client: AsyncMock,
        movie_ref: TitleReference,
        make_record,
    ) -> None:
        movie_client.add.return_value = make_record()
        movie_client.refresh_monitored_downloads.side_effect = ExternalServiceError(
            "busy", "radarr", 503
        )
        result = await dispatcher.dispatch(
            ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED)
        )
        assert result.record is not None

    async def test_configured_root_folder_skips_discovery(
        self,
        movie_client: AsyncMock,
        series_client: AsyncMock,
        metadata_client: AsyncMock,
        playback: MagicMock,
        sonarr_settings: SonarrSettings,
        movie_ref: TitleReference,
        make_record,
    ) -> None:
        settings = RadarrSettings(url="http://r", api_key="k", root_folder_path="/mnt/films")
        dispatcher = ActionDispatcher(
            movie_client, series_client, metadata_client, playback, settings, sonarr_settings
        )
        movie_client.add.return_value = make_record()

        await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED))

        movie_client.get_root_folders.assert_not_awaited()
        assert movie_client.add.call_args.args[0]["rootFolderPath"] == "/mnt/films"

    async def test_root_folder_discovery_failure_uses_fallback(
        self,
        dispatcher: ActionDispatcher,
        movie_client: AsyncMock,
        movie_ref: TitleReference,
        make_record,
    ) -> None:
        movie_client.get_root_folders.side_effect = ExternalServiceError("x", "radarr", 500)
        movie_client.add.return_value = make_record()

        await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED))

        assert movie_client.add.call_args.args[0]["rootFolderPath"] == "/movies"

    async def test_service_error_becomes_acquisition_request_error(
        self, dispatcher: ActionDispatcher, movie_client: AsyncMock, movie_ref: TitleReference
    ) -> None:
        movie_client.add.side_effect = ExternalServiceError("already exists", "radarr", 400)

        with pytest.raises(AcquisitionRequestError) as exc_info:
            await dispatcher.dispatch(
                ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED)
            )

        assert exc_info.value.status_code == 400
        assert "The Matrix" in exc_info.value.message
        movie_client.refresh_monitored_downloads.assert_not_awaited()

    @pytest.mark.parametrize(
        "error",
        [AuthenticationError("radarr rejected our credentials"), ConfigurationError("nope")],
    )
    async def test_auth_and_config_errors_pass_through(
        self,
        dispatcher: ActionDispatcher,
        movie_client: AsyncMock,
        movie_ref: TitleReference,
        error: Exception,
    ) -> None:
        movie_client.add.side_effect = error
        with pytest.raises(type(error)):
            await dispatcher.dispatch(
                ActionKind.REQUEST, DispatchContext(movie_ref, NOT_REQUESTED)
            )


class TestRequestSeries:
    async def test_payload_with_tvdb_id(
        self,
        dispatcher: ActionDispatcher,
        series_client: AsyncMock,
        series_ref: TitleReference,
        make_record,
    ) -> None:
        series_client.add.return_value = make_record(media_kind=MediaKind.SERIES)
        context = DispatchContext(series_ref, NOT_REQUESTED, selected_seasons=(2,))

        await dispatcher.dispatch(ActionKind.REQUEST, context)

        payload = series_client.add.call_args.args[0]
        assert payload["tvdbId"] == 81189
        assert payload["tmdbId"] == 1396
        assert payload["rootFolderPath"] == "/data/tv"
        assert payload["seasonFolder"] is True
        assert payload["addOptions"] == {"searchForMissingEpisodes": True}
        assert payload["seasons"] == [
            {"seasonNumber": 1, "monitored": False},
            {"seasonNumber": 2, "monitored": True},
            {"seasonNumber": 3, "monitored": False},
        ]
        series_client.lookup.assert_not_awaited()

    async def test_season_list_failure_adds_without_seasons(
        self,
        dispatcher: ActionDispatcher,
        series_client: AsyncMock,
        metadata_client: AsyncMock,
        series_ref: TitleReference,
        make_record,
    ) -> None:
        metadata_client.get_season_numbers.side_effect = ExternalServiceError("x", "tmdb")
        series_client.add.return_value = make_record(media_kind=MediaKind.SERIES)

        await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(series_ref, NOT_REQUESTED))

        assert "seasons" not in series_client.add.call_args.args[0]

    async def test_lookup_when_tvdb_id_unknown(
        self,
        dispatcher: ActionDispatcher,
        series_client: AsyncMock,
        make_record,
    ) -> None:
        ref = TitleReference(1396, "Breaking Bad", 2008, MediaKind.SERIES)
        series_client.lookup.return_value = [
            {
                "title": "Breaking Bad",
                "tvdbId": 81189,
                "seasons": [{"seasonNumber": 0}, {"seasonNumber": 1}, {"seasonNumber": 2}],
            },
            {"title": "Something else", "tvdbId": 1},
        ]
        series_client.add.return_value = make_record(media_kind=MediaKind.SERIES)

        await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(ref, NOT_REQUESTED))

        series_client.lookup.assert_awaited_once_with("tmdb:1396")
        payload = series_client.add.call_args.args[0]
        assert payload["tvdbId"] == 81189
        assert payload["qualityProfileId"] == 1
        assert [s["monitored"] for s in payload["seasons"]] == [False, True, True]

    async def test_empty_lookup_is_request_failure(
        self, dispatcher: ActionDispatcher, series_client: AsyncMock
    ) -> None:
        ref = TitleReference(1396, "Breaking Bad", 2008, MediaKind.SERIES)

        with pytest.raises(AcquisitionRequestError, match="not available in the series database"):
            await dispatcher.dispatch(ActionKind.REQUEST, DispatchContext(ref, NOT_REQUESTED))

        series_client.add.assert_not_awaited()


class TestRequestMoreSeasons:
    @pytest.fixture
    def tracked(self, make_record):
        return make_record(
            acquisition_id=12,
            external_id=1396,
            media_kind=MediaKind.SERIES,
            title="Breaking Bad",
            seasons=(SeasonInfo(1, True), SeasonInfo(2, False)),
            raw={
                "id": 12,
                "title": "Breaking Bad",
                "monitored": False,
                "seasons": [
                    {"seasonNumber": 0, "monitored": False},
                    {"seasonNumber": 1, "monitored": True},
                    {"seasonNumber": 2, "monitored": False},
                    {"seasonNumber": 3, "monitored": False},
                ],
            },
        )

    async def test_union_update(
        self, dispatcher: ActionDispatcher, series_client: AsyncMock, tracked
    ) -> None:
        series_client.update.return_value = tracked

        await dispatcher.request_more_seasons(tracked, [3])

        payload = series_client.update.call_args.args[0]
        assert payload["id"] == 12
        assert payload["monitored"] is True
        assert payload["addOptions"] == {"searchForMissingEpisodes": True}
        assert [s["monitored"] for s in payload["seasons"]] == [False, True, False, True]
        series_client.refresh_monitored_downloads.assert_awaited_once()

    async def test_raw_record_not_mutated(
        self, dispatcher: ActionDispatcher, series_client: AsyncMock, tracked
    ) -> None:
        series_client.update.return_value = tracked
        await dispatcher.request_more_seasons(tracked, [2])
        assert tracked.raw["seasons"][2]["monitored"] is False

    async def test_empty_selection(self, dispatcher: ActionDispatcher, tracked) -> None:
        with pytest.raises(ValidationError):
            await dispatcher.request_more_seasons(tracked, [0])

    async def test_movie_rejected(self, dispatcher: ActionDispatcher, make_record) -> None:
        with pytest.raises(InvalidStateException):
            await dispatcher.request_more_seasons(make_record(), [1])

    async def test_update_failure_wrapped(
        self, dispatcher: ActionDispatcher, series_client: AsyncMock, tracked
    ) -> None:
        series_client.update.side_effect = ExternalServiceError("boom", "sonarr", 500)
        with pytest.raises(AcquisitionRequestError):
            await dispatcher.request_more_seasons(tracked, [2])


class TestRefreshMonitoredDownloads:
    async def test_routes_by_media_kind(
        self, dispatcher: ActionDispatcher, movie_client: AsyncMock, series_client: AsyncMock
    ) -> None:
        await dispatcher.refresh_monitored_downloads(MediaKind.SERIES)
        series_client.refresh_monitored_downloads.assert_awaited_once()
        movie_client.refresh_monitored_downloads.assert_not_awaited()
