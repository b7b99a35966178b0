"""Shared test fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from jellystreaming.config.settings import (
    RadarrSettings,
    ReconciliationSettings,
    SonarrSettings,
)
from jellystreaming.domain.entities import (
    AcquisitionRecord,
    LibraryEntry,
    MediaKind,
    QueueEntry,
    QueueStatus,
    TitleReference,
)
from jellystreaming.domain.ports import (
    IAcquisitionClient,
    ILibraryClient,
    IMetadataClient,
    IPlaybackLauncher,
    ISeriesAcquisitionClient,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def movie_ref() -> TitleReference:
    return TitleReference(603, "The Matrix", 1999, MediaKind.MOVIE)


@pytest.fixture
def series_ref() -> TitleReference:
    return TitleReference(1396, "Breaking Bad", 2008, MediaKind.SERIES, tvdb_id=81189)


@pytest.fixture
def matrix_entry() -> LibraryEntry:
    return LibraryEntry("jf-603", "The Matrix", 1999, {"Tmdb": "603", "Imdb": "tt0133093"})


def _make_record(
    acquisition_id: int = 7,
    external_id: int = 603,
    has_file: bool = False,
    media_kind: MediaKind = MediaKind.MOVIE,
    **kwargs,
) -> AcquisitionRecord:
    return AcquisitionRecord(
        acquisition_id=acquisition_id,
        external_id=external_id,
        has_file=has_file,
        monitored=True,
        media_kind=media_kind,
        **kwargs,
    )


def _make_queue_entry(
    status: QueueStatus = QueueStatus.DOWNLOADING,
    total: int = 1000,
    remaining: int = 500,
    acquisition_id: int = 7,
) -> QueueEntry:
    return QueueEntry(acquisition_id, total, remaining, status)


@pytest.fixture
def library_client() -> AsyncMock:
    client = AsyncMock(spec=ILibraryClient)
    client.search_movies = AsyncMock(return_value=[])
    client.list_series = AsyncMock(return_value=[])
    return client


@pytest.fixture
def movie_client() -> AsyncMock:
    client = AsyncMock(spec=IAcquisitionClient)
    client.media_kind = MediaKind.MOVIE
    client.list_records = AsyncMock(return_value=[])
    client.get_queue = AsyncMock(return_value=[])
    client.list_downloads = AsyncMock(return_value=[])
    client.get_root_folders = AsyncMock(return_value=["/data/movies"])
    client.refresh_monitored_downloads = AsyncMock(return_value=None)
    return client


@pytest.fixture
def series_client() -> AsyncMock:
    client = AsyncMock(spec=ISeriesAcquisitionClient)
    client.media_kind = MediaKind.SERIES
    client.list_records = AsyncMock(return_value=[])
    client.get_queue = AsyncMock(return_value=[])
    client.list_downloads = AsyncMock(return_value=[])
    client.get_root_folders = AsyncMock(return_value=["/data/tv"])
    client.refresh_monitored_downloads = AsyncMock(return_value=None)
    client.lookup = AsyncMock(return_value=[])
    return client


@pytest.fixture
def metadata_client() -> AsyncMock:
    client = AsyncMock(spec=IMetadataClient)
    client.get_season_numbers = AsyncMock(return_value=[0, 1, 2, 3])
    client.get_external_ids = AsyncMock(return_value={})
    return client


@pytest.fixture
def playback() -> MagicMock:
    launcher = MagicMock(spec=IPlaybackLauncher)
    launcher.launch.return_value = "http://jellyfin.local/Videos/jf-603/master.m3u8"
    return launcher


@pytest.fixture
def radarr_settings() -> RadarrSettings:
    return RadarrSettings(url="http://radarr.local", api_key="radarr-key")


@pytest.fixture
def sonarr_settings() -> SonarrSettings:
    return SonarrSettings(url="http://sonarr.local", api_key="sonarr-key")


@pytest.fixture
def reconciliation_settings() -> ReconciliationSettings:
    return ReconciliationSettings(
        poll_interval_seconds=5.0,
        grace_window_seconds=30.0,
        max_open_views=3,
        view_idle_timeout_seconds=60.0,
    )


@pytest.fixture
def make_record():
    """Factory for AcquisitionRecord."""
    return _make_record


@pytest.fixture
def make_queue_entry():
    """Factory for QueueEntry."""
    return _make_queue_entry
