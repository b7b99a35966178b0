"""Port interfaces for the external collaborators.

The reconciliation core only talks to these ABCs. The HTTP adapters in
infrastructure/integrations implement them; tests use AsyncMock stand-ins.
"""

from abc import ABC, abstractmethod
from typing import Any

from jellystreaming.domain.entities import (
    AcquisitionRecord,
    DownloadOverviewItem,
    LibraryEntry,
    MediaKind,
    PlaybackOptions,
    QueueEntry,
    TitleReference,
)


class ILibraryClient(ABC):
    """Port for the playback library (Jellyfin)."""

    @abstractmethod
    async def search_movies(self, title: str) -> list[LibraryEntry]:
        """Search library movies by title.

        Args:
            title: Search term (display title as-is)

        Returns:
            Candidate entries, possibly empty
        """
        pass

    @abstractmethod
    async def list_series(self) -> list[LibraryEntry]:
        """List every series in the library."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class IAcquisitionClient(ABC):
    """Port for a download-automation service (Radarr or Sonarr).

    Hey future me - all methods here are READ or ADDITIVE. There is deliberately no
    delete/cancel on this port; nothing in the app is allowed to remove a tracked title.
    """

    media_kind: MediaKind

    @abstractmethod
    async def list_records(self) -> list[AcquisitionRecord]:
        """List every title the service tracks."""
        pass

    @abstractmethod
    async def get_queue(self) -> list[QueueEntry]:
        """Get live queue entries (all pages), normalized to QueueStatus.

        Entries with a status outside QueueStatus (failed, unknown) are dropped.
        """
        pass

    @abstractmethod
    async def list_downloads(self) -> list[DownloadOverviewItem]:
        """Get every queue entry (all pages) as overview rows, failed ones included."""
        pass

    @abstractmethod
    async def add(self, payload: dict[str, Any]) -> AcquisitionRecord:
        """Start tracking a title (monitored, with automatic search).

        Args:
            payload: Service-specific add payload

        Returns:
            The record the service created
        """
        pass

    @abstractmethod
    async def get_root_folders(self) -> list[str]:
        """List configured storage root paths, in service order."""
        pass

    @abstractmethod
    async def refresh_monitored_downloads(self) -> None:
        """Ask the service to re-scan its download clients right now."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class ISeriesAcquisitionClient(IAcquisitionClient):
    """Series flavour of the acquisition port: season updates and lookups."""

    @abstractmethod
    async def update(self, payload: dict[str, Any]) -> AcquisitionRecord:
        """Replace a tracked series (used to monitor extra seasons).

        Args:
            payload: Full series object as returned by the service, modified

        Returns:
            The updated record
        """
        pass

    @abstractmethod
    async def lookup(self, term: str) -> list[dict[str, Any]]:
        """Look a series up in the service's own database.

        Args:
            term: Search term, e.g. "tmdb:1399"

        Returns:
            Raw lookup results, usable as add payloads
        """
        pass


class IMetadataClient(ABC):
    """Port for the metadata provider (TMDB)."""

    @abstractmethod
    async def get_title(self, external_id: int, media_kind: MediaKind) -> TitleReference:
        """Fetch a title by its provider id."""
        pass

    @abstractmethod
    async def get_external_ids(
        self, external_id: int, media_kind: MediaKind
    ) -> dict[str, Any]:
        """Fetch cross-provider ids (tvdb_id, imdb_id, ...) for a title."""
        pass

    @abstractmethod
    async def get_season_numbers(self, external_id: int) -> list[int]:
        """List the season numbers the provider knows for a series."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class IPlaybackLauncher(ABC):
    """Port for starting playback of a library entry."""

    @abstractmethod
    def launch(self, entry: LibraryEntry, options: PlaybackOptions) -> str:
        """Build the streaming URL the player should open for this entry."""
        pass


__all__ = [
    "IAcquisitionClient",
    "ILibraryClient",
    "IMetadataClient",
    "IPlaybackLauncher",
    "ISeriesAcquisitionClient",
]
