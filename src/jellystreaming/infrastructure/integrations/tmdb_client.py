"""TMDB HTTP client (metadata provider)."""

from typing import Any

import httpx

from jellystreaming.config.settings import TMDBSettings
from jellystreaming.domain.entities import MediaKind, TitleReference
from jellystreaming.domain.ports import IMetadataClient
from jellystreaming.infrastructure.integrations.base_client import BaseServiceClient


def _year(date_string: str | None) -> int | None:
    # TMDB dates are "YYYY-MM-DD", or "" for unreleased titles
    if not date_string or len(date_string) < 4 or not date_string[:4].isdigit():
        return None
    return int(date_string[:4])


def _path_segment(media_kind: MediaKind) -> str:
    return "tv" if media_kind is MediaKind.SERIES else "movie"


class TMDBClient(BaseServiceClient, IMetadataClient):
    """Reads titles, external ids and season lists from TMDB (v4 bearer token)."""

    SERVICE_NAME = "tmdb"

    def __init__(
        self,
        settings: TMDBSettings,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=settings.api_url,
            headers={"Authorization": f"Bearer {settings.token}"},
            timeout=timeout,
            configured=settings.is_configured,
            transport=transport,
        )
        self.settings = settings

    async def get_title(self, external_id: int, media_kind: MediaKind) -> TitleReference:
        data = await self._details(external_id, media_kind)
        if media_kind is MediaKind.SERIES:
            title = data.get("name") or data.get("original_name") or ""
            year = _year(data.get("first_air_date"))
        else:
            title = data.get("title") or data.get("original_title") or ""
            year = _year(data.get("release_date"))
        return TitleReference(
            external_id=int(data.get("id", external_id)),
            display_title=title,
            release_year=year,
            media_kind=media_kind,
        )

    async def get_external_ids(
        self, external_id: int, media_kind: MediaKind
    ) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/{_path_segment(media_kind)}/{external_id}/external_ids"
        )
        return data or {}

    async def get_season_numbers(self, external_id: int) -> list[int]:
        data = await self._details(external_id, MediaKind.SERIES)
        return sorted(
            int(season["season_number"])
            for season in data.get("seasons") or []
            if season.get("season_number") is not None
        )

    async def _details(self, external_id: int, media_kind: MediaKind) -> dict[str, Any]:
        data = await self._request(
            "GET",
            f"/{_path_segment(media_kind)}/{external_id}",
            params={"language": self.settings.language},
        )
        return data or {}


__all__ = ["TMDBClient"]
