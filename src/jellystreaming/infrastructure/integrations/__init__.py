"""External integration client implementations."""

from jellystreaming.infrastructure.integrations.jellyfin_client import JellyfinClient
from jellystreaming.infrastructure.integrations.playback import JellyfinPlaybackLauncher
from jellystreaming.infrastructure.integrations.radarr_client import RadarrClient
from jellystreaming.infrastructure.integrations.sonarr_client import SonarrClient
from jellystreaming.infrastructure.integrations.tmdb_client import TMDBClient

__all__ = [
    "JellyfinClient",
    "JellyfinPlaybackLauncher",
    "RadarrClient",
    "SonarrClient",
    "TMDBClient",
]
