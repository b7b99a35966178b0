"""Radarr HTTP client (movie acquisition)."""

from typing import Any

import httpx

from jellystreaming.config.settings import RadarrSettings
from jellystreaming.domain.entities import AcquisitionRecord, MediaKind
from jellystreaming.infrastructure.integrations.arr_client import ArrClient


class RadarrClient(ArrClient):
    """Radarr v3: movies keyed on tmdbId, queue entries keyed on movieId."""

    SERVICE_NAME = "radarr"
    media_kind = MediaKind.MOVIE
    RECORD_ENDPOINT = "movie"
    QUEUE_ID_FIELD = "movieId"
    QUEUE_EXTRA_PARAMS = {"includeUnknownMovieItems": "true", "includeMovie": "true"}

    def __init__(
        self,
        settings: RadarrSettings,
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
        return AcquisitionRecord(
            acquisition_id=int(data.get("id") or 0),
            external_id=int(data.get("tmdbId") or 0),
            has_file=bool(data.get("hasFile")),
            monitored=bool(data.get("monitored")),
            title=str(data.get("title", "")),
            media_kind=MediaKind.MOVIE,
            raw=data,
        )

    def overview_title(self, item: dict[str, Any]) -> str:
        movie = item.get("movie") or {}
        return str(movie.get("title") or item.get("title", ""))


__all__ = ["RadarrClient"]
