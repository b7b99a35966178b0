"""Domain entities.

Hey future me - these are all TRANSIENT. Nothing here is persisted: a detail view fetches
fresh LibraryEntry/AcquisitionRecord/QueueEntry values on every poll tick and throws them
away when it closes. Keep them as plain frozen dataclasses (no pydantic in the domain layer).
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any


class MediaKind(str, Enum):
    """What kind of title a detail view is showing."""

    MOVIE = "movie"
    SERIES = "series"


# Hey future me, the acquisition services report a zoo of status strings ("delay",
# "downloadClientUnavailable", "warning"...). The client adapters squash them into these four.
# Anything that doesn't fit (e.g. "failed") is dropped at the adapter boundary, so the resolver
# only ever sees these values.
class QueueStatus(str, Enum):
    """Normalized status of an in-progress download."""

    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TitleReference:
    """A title as described by the metadata provider (TMDB).

    Immutable once a detail view is opened. `tvdb_id` is only meaningful for
    series; the series acquisition service is keyed on it.
    """

    external_id: int
    display_title: str
    release_year: int | None = None
    media_kind: MediaKind = MediaKind.MOVIE
    tvdb_id: int | None = None


@dataclass(frozen=True)
class LibraryEntry:
    """An item already present in the playback library (Jellyfin)."""

    library_id: str
    display_title: str
    production_year: int | None = None
    # Provider name -> id, exactly as the library reports them ("Tmdb" -> "550")
    external_ids: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlaybackOptions:
    """What the player asked for when pressing PLAY."""

    # Key of the launcher's bitrate table; unknown keys mean "auto"
    quality: str = "auto"
    audio_stream_index: int | None = None
    # Negative means subtitles off
    subtitle_stream_index: int | None = None


@dataclass(frozen=True)
class SeasonInfo:
    """Season-level monitoring state of a tracked series."""

    season_number: int
    monitored: bool
    episode_file_count: int = 0

    @property
    def is_special(self) -> bool:
        return self.season_number == 0


@dataclass(frozen=True)
class AcquisitionRecord:
    """A title tracked by the download-automation service (Radarr/Sonarr).

    `raw` keeps the service's own JSON so a later update can send the object back
    unchanged apart from the fields we touch.
    """

    acquisition_id: int
    external_id: int
    has_file: bool
    monitored: bool
    title: str = ""
    media_kind: MediaKind = MediaKind.MOVIE
    tvdb_id: int | None = None
    seasons: tuple[SeasonInfo, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class QueueEntry:
    """An in-progress download, at most one live entry per AcquisitionRecord.

    Sizes are clamped on construction so `size_bytes_remaining <= size_bytes_total`
    always holds, whatever the service sent us.
    """

    acquisition_id: int
    size_bytes_total: int
    size_bytes_remaining: int
    status: QueueStatus
    time_remaining: timedelta | None = None
    title: str = ""
    tracked_state: str | None = None

    def __post_init__(self) -> None:
        total = max(0, int(self.size_bytes_total))
        remaining = min(max(0, int(self.size_bytes_remaining)), total)
        object.__setattr__(self, "size_bytes_total", total)
        object.__setattr__(self, "size_bytes_remaining", remaining)


@dataclass(frozen=True)
class DownloadOverviewItem:
    """One row of the downloads overview page."""

    title: str
    media_kind: MediaKind
    status: str
    status_label: str
    progress_percent: float
    size_bytes_total: int
    size_bytes_remaining: int
    time_left: str | None = None


__all__ = [
    "AcquisitionRecord",
    "DownloadOverviewItem",
    "LibraryEntry",
    "MediaKind",
    "PlaybackOptions",
    "QueueEntry",
    "QueueStatus",
    "SeasonInfo",
    "TitleReference",
]
