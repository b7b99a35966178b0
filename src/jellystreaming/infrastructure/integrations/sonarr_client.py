"""Sonarr HTTP client (series acquisition)."""

from typing import Any

import httpx

from jellystreaming.config.settings import SonarrSettings
from jellystreaming.domain.entities import AcquisitionRecord, MediaKind, SeasonInfo
from jellystreaming.domain.ports import ISeriesAcquisitionClient
from jellystreaming.infrastructure.integrations.arr_client import API_PREFIX, ArrClient


def _season_info(season: dict[str, Any]) -> SeasonInfo:
    statistics = season.get("statistics") or {}
    return SeasonInfo(
        season_number=int(season.get("seasonNumber", 0)),
        monitored=bool(season.get("monitored")),
        episode_file_count=int(statistics.get("episodeFileCount") or 0),
    )


class SonarrClient(ArrClient, ISeriesAcquisitionClient):
    """Sonarr v3: series keyed on tvdbId (tmdbId when Sonarr knows it).

    Hey future me - Sonarr queues one entry PER EPISODE, all sharing the seriesId. The
    reconciliation service folds them into one entry per series, don't do it here: the
    downloads overview wants the individual episodes.
    """

    SERVICE_NAME = "sonarr"
    media_kind = MediaKind.SERIES
    RECORD_ENDPOINT = "series"
    QUEUE_ID_FIELD = "seriesId"
    QUEUE_EXTRA_PARAMS = {
        "includeUnknownSeriesItems": "true",
        "includeSeries": "true",
        "includeEpisode": "true",
    }

    def __init__(
        self,
        settings: SonarrSettings,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            url=settings.url,
            api_key=settings.api_key,
            configured=settings.is_configured,
            queue_page_size=settings.queue_page_size,
            timeout=timeout,
            transport=transport,
        )
        self.settings = settings

    def to_record(self, data: dict[str, Any]) -> AcquisitionRecord:
        statistics = data.get("statistics") or {}
        seasons = tuple(_season_info(s) for s in data.get("seasons") or [])
        has_file = int(statistics.get("episodeFileCount") or 0) > 0 or any(
            s.episode_file_count > 0 for s in seasons
        )
        tvdb_id = data.get("tvdbId")
        return AcquisitionRecord(
            acquisition_id=int(data.get("id") or 0),
            external_id=int(data.get("tmdbId") or 0),
            has_file=has_file,
            monitored=bool(data.get("monitored")),
            title=str(data.get("title", "")),
            media_kind=MediaKind.SERIES,
            tvdb_id=int(tvdb_id) if tvdb_id else None,
            seasons=seasons,
            raw=data,
        )

    async def update(self, payload: dict[str, Any]) -> AcquisitionRecord:
        series_id = payload.get("id")
        data = await self._request(
            "PUT", f"{API_PREFIX}/series/{series_id}", json=payload
        )
        return self.to_record(data or payload)

    async def lookup(self, term: str) -> list[dict[str, Any]]:
        data = await self._request(
            "GET", f"{API_PREFIX}/series/lookup", params={"term": term}
        )
        return list(data or [])

    def overview_title(self, item: dict[str, Any]) -> str:
        series = item.get("series") or {}
        episode = item.get("episode") or {}
        title = series.get("title") or item.get("title", "")
        if episode.get("seasonNumber") is not None and episode.get("episodeNumber") is not None:
            return f"{title} S{int(episode['seasonNumber']):02d}E{int(episode['episodeNumber']):02d}"
        return str(title)


__all__ = ["SonarrClient"]
