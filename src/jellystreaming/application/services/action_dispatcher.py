"""Action Dispatcher - performs the single enabled action of a detail view.

Hey future me - PLAY is a pure hand-off (build the stream URL, done). REQUEST is the only
write, and it is STRICTLY ADDITIVE: we add titles and monitor more seasons, we never delete
or unmonitor anything. A service failure on the write path becomes AcquisitionRequestError
so the API layer always shows it to the user; 401s and missing config pass through as-is.
"""

import logging
from dataclasses import dataclass
from typing import Any

from jellystreaming.application.services.season_selection import (
    apply_selection_to_lookup,
    build_new_series_seasons,
    merge_monitored_seasons,
)
from jellystreaming.config.settings import RadarrSettings, SonarrSettings
from jellystreaming.domain.entities import (
    AcquisitionRecord,
    LibraryEntry,
    MediaKind,
    PlaybackOptions,
    TitleReference,
)
from jellystreaming.domain.exceptions import (
    AcquisitionRequestError,
    AuthenticationError,
    ConfigurationError,
    DomainException,
    InvalidStateException,
    ValidationError,
)
from jellystreaming.domain.ports import (
    IAcquisitionClient,
    IMetadataClient,
    IPlaybackLauncher,
    ISeriesAcquisitionClient,
)
from jellystreaming.domain.value_objects import ActionKind, ReconciledState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchContext:
    """Everything the dispatcher needs, passed in explicitly."""

    reference: TitleReference
    state: ReconciledState
    library_match: LibraryEntry | None = None
    record: AcquisitionRecord | None = None
    selected_seasons: tuple[int, ...] = ()
    playback: PlaybackOptions = PlaybackOptions()


@dataclass(frozen=True)
class DispatchResult:
    action: ActionKind
    stream_url: str | None = None
    record: AcquisitionRecord | None = None


class ActionDispatcher:
    """Runs PLAY and REQUEST against the playback launcher and acquisition services."""

    def __init__(
        self,
        movie_client: IAcquisitionClient,
        series_client: ISeriesAcquisitionClient,
        metadata_client: IMetadataClient,
        playback: IPlaybackLauncher,
        radarr_settings: RadarrSettings,
        sonarr_settings: SonarrSettings,
    ) -> None:
        self._movies = movie_client
        self._series = series_client
        self._metadata = metadata_client
        self._playback = playback
        self._radarr_settings = radarr_settings
        self._sonarr_settings = sonarr_settings

    async def dispatch(self, action: ActionKind, context: DispatchContext) -> DispatchResult:
        """Perform an action if the current state enables it.

        Args:
            action: PLAY or REQUEST
            context: Reference, current state and matched entities

        Returns:
            DispatchResult with the stream URL (PLAY) or created record (REQUEST)

        Raises:
            InvalidStateException: If the action isn't the enabled one
            AcquisitionRequestError: If the acquisition service rejected the request
        """
        if action is ActionKind.NONE or action is not context.state.enabled_action:
            raise InvalidStateException(
                f"Action {action.value} is not available while "
                f"{context.state.display_state.value}"
            )

        if action is ActionKind.PLAY:
            return self._play(context)
        return await self._request(context)

    def _play(self, context: DispatchContext) -> DispatchResult:
        if context.library_match is None:
            raise InvalidStateException("Nothing to play: no library match")
        url = self._playback.launch(context.library_match, context.playback)
        logger.info(
            "Playback handed off for '%s' (library item %s)",
            context.reference.display_title,
            context.library_match.library_id,
        )
        return DispatchResult(ActionKind.PLAY, stream_url=url)

    async def _request(self, context: DispatchContext) -> DispatchResult:
        ref = context.reference
        try:
            if ref.media_kind is MediaKind.SERIES:
                record = await self._add_series(ref, context.selected_seasons)
                client: IAcquisitionClient = self._series
            else:
                record = await self._add_movie(ref)
                client = self._movies
        except (AcquisitionRequestError, AuthenticationError, ConfigurationError):
            logger.error("Request for '%s' rejected", ref.display_title, exc_info=True)
            raise
        except DomainException as e:
            logger.error("Request for '%s' failed: %s", ref.display_title, e.message)
            raise AcquisitionRequestError(
                f"Could not request '{ref.display_title}': {e.message}",
                service=getattr(e, "service", None),
                status_code=getattr(e, "status_code", None),
            ) from e

        logger.info(
            "Requested '%s' (%s), acquisition id %s",
            ref.display_title,
            ref.media_kind.value,
            record.acquisition_id,
        )
        await self._refresh_quietly(client)
        return DispatchResult(ActionKind.REQUEST, record=record)

    async def request_more_seasons(
        self, record: AcquisitionRecord, selected: tuple[int, ...] | list[int]
    ) -> AcquisitionRecord:
        """Monitor additional seasons of an already tracked series.

        Raises:
            InvalidStateException: If the record isn't a series
            ValidationError: If no regular season was selected
            AcquisitionRequestError: If the update was rejected
        """
        if record.media_kind is not MediaKind.SERIES:
            raise InvalidStateException("Only series have seasons")
        wanted = sorted({number for number in selected if number > 0})
        if not wanted:
            raise ValidationError("Select at least one season")

        payload = dict(record.raw)
        payload["seasons"] = merge_monitored_seasons(payload.get("seasons", []), wanted)
        payload["monitored"] = True
        payload["addOptions"] = {"searchForMissingEpisodes": True}

        try:
            updated = await self._series.update(payload)
        except (AuthenticationError, ConfigurationError):
            raise
        except DomainException as e:
            logger.error("Season update for '%s' failed: %s", record.title, e.message)
            raise AcquisitionRequestError(
                f"Could not update seasons of '{record.title}': {e.message}",
                service="sonarr",
                status_code=getattr(e, "status_code", None),
            ) from e

        logger.info("Monitoring seasons %s of '%s'", wanted, record.title)
        await self._refresh_quietly(self._series)
        return updated

    async def refresh_monitored_downloads(self, media_kind: MediaKind) -> None:
        """Trigger a download re-scan on the matching acquisition service."""
        client = self._series if media_kind is MediaKind.SERIES else self._movies
        await client.refresh_monitored_downloads()

    async def _add_movie(self, ref: TitleReference) -> AcquisitionRecord:
        payload: dict[str, Any] = {
            "title": ref.display_title,
            "tmdbId": ref.external_id,
            "qualityProfileId": self._radarr_settings.quality_profile_id,
            "rootFolderPath": await self._root_folder(
                self._movies,
                self._radarr_settings.root_folder_path,
                self._radarr_settings.fallback_root_folder_path,
            ),
            "monitored": True,
            "addOptions": {"searchForMovie": True},
        }
        if ref.release_year is not None:
            payload["year"] = ref.release_year
        return await self._movies.add(payload)

    async def _add_series(
        self, ref: TitleReference, selected: tuple[int, ...]
    ) -> AcquisitionRecord:
        root_folder = await self._root_folder(
            self._series,
            self._sonarr_settings.root_folder_path,
            self._sonarr_settings.fallback_root_folder_path,
        )
        common: dict[str, Any] = {
            "qualityProfileId": self._sonarr_settings.quality_profile_id,
            "rootFolderPath": root_folder,
            "monitored": True,
            "seasonFolder": True,
            "addOptions": {"searchForMissingEpisodes": True},
        }

        if ref.tvdb_id is not None:
            payload: dict[str, Any] = {
                "title": ref.display_title,
                "tvdbId": ref.tvdb_id,
                "tmdbId": ref.external_id,
                **common,
            }
            if ref.release_year is not None:
                payload["year"] = ref.release_year
            seasons = await self._provider_season_numbers(ref)
            if seasons:
                payload["seasons"] = build_new_series_seasons(seasons, selected)
            return await self._series.add(payload)

        # No TVDB id: let the series service resolve the TMDB id itself
        results = await self._series.lookup(f"tmdb:{ref.external_id}")
        if not results:
            raise AcquisitionRequestError(
                f"'{ref.display_title}' is not available in the series database",
                service="sonarr",
            )
        payload = {**results[0], **common}
        payload["seasons"] = apply_selection_to_lookup(payload.get("seasons", []), selected)
        return await self._series.add(payload)

    async def _provider_season_numbers(self, ref: TitleReference) -> list[int]:
        try:
            return await self._metadata.get_season_numbers(ref.external_id)
        except DomainException as e:
            # The series service fills seasons in itself when we send none
            logger.warning(
                "Could not load seasons for '%s', adding without: %s",
                ref.display_title,
                e.message,
            )
            return []

    async def _root_folder(
        self, client: IAcquisitionClient, configured: str, fallback: str
    ) -> str:
        if configured:
            return configured
        try:
            folders = await client.get_root_folders()
        except DomainException as e:
            logger.warning("Root folder discovery failed, using %s: %s", fallback, e.message)
            return fallback
        return folders[0] if folders else fallback

    async def _refresh_quietly(self, client: IAcquisitionClient) -> None:
        try:
            await client.refresh_monitored_downloads()
        except DomainException as e:
            logger.warning("RefreshMonitoredDownloads failed: %s", e.message)


__all__ = ["ActionDispatcher", "DispatchContext", "DispatchResult"]
