"""Jellyfin HTTP client (playback library)."""

import logging
from typing import Any

import httpx

from jellystreaming.config.settings import JellyfinSettings
from jellystreaming.domain.entities import LibraryEntry
from jellystreaming.domain.ports import ILibraryClient
from jellystreaming.infrastructure.integrations.base_client import BaseServiceClient

logger = logging.getLogger(__name__)


def _to_library_entry(item: dict[str, Any]) -> LibraryEntry:
    provider_ids = item.get("ProviderIds") or {}
    return LibraryEntry(
        library_id=str(item.get("Id", "")),
        display_title=item.get("Name") or "",
        production_year=item.get("ProductionYear"),
        external_ids={str(k): str(v) for k, v in provider_ids.items() if v is not None},
    )


class JellyfinClient(BaseServiceClient, ILibraryClient):
    """Reads movies and series from a Jellyfin user's library."""

    SERVICE_NAME = "jellyfin"
    SERIES_PAGE_SIZE = 200

    def __init__(
        self,
        settings: JellyfinSettings,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=settings.url,
            headers={"X-Emby-Token": settings.api_key},
            timeout=timeout,
            configured=settings.is_configured and bool(settings.user_id),
            transport=transport,
        )
        self.settings = settings

    async def search_movies(self, title: str) -> list[LibraryEntry]:
        """Search movies by title.

        Hey future me - Jellyfin's SearchTerm is fuzzy on its side, so the result list often
        holds unrelated titles. That's fine: the identity matcher picks (or rejects) the winner.
        """
        params: dict[str, Any] = {
            "SearchTerm": title,
            "IncludeItemTypes": "Movie",
            "Recursive": "true",
            "Fields": "ProductionYear,ProviderIds",
            "Limit": self.settings.search_limit,
        }
        if self.settings.movies_parent_id:
            params["ParentId"] = self.settings.movies_parent_id

        data = await self._request("GET", self._items_path(), params=params)
        return [_to_library_entry(item) for item in (data or {}).get("Items", [])]

    async def list_series(self) -> list[LibraryEntry]:
        """List all series, following StartIndex paging until TotalRecordCount."""
        entries: list[LibraryEntry] = []
        start_index = 0
        while True:
            params: dict[str, Any] = {
                "IncludeItemTypes": "Series",
                "Recursive": "true",
                "Fields": "ProductionYear,ProviderIds",
                "SortBy": "SortName",
                "StartIndex": start_index,
                "Limit": self.SERIES_PAGE_SIZE,
            }
            if self.settings.series_parent_id:
                params["ParentId"] = self.settings.series_parent_id

            data = await self._request("GET", self._items_path(), params=params) or {}
            items = data.get("Items", [])
            entries.extend(_to_library_entry(item) for item in items)

            start_index += len(items)
            total = data.get("TotalRecordCount", start_index)
            if not items or start_index >= total:
                break

        logger.debug("Jellyfin returned %d series", len(entries))
        return entries

    def _items_path(self) -> str:
        return f"/Users/{self.settings.user_id}/Items"


__all__ = ["JellyfinClient"]
