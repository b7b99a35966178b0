"""Configuration module for jellystreaming."""

from .settings import (
    JellyfinSettings,
    ObservabilitySettings,
    RadarrSettings,
    ReconciliationSettings,
    Settings,
    SonarrSettings,
    TMDBSettings,
    get_settings,
)

__all__ = [
    "JellyfinSettings",
    "ObservabilitySettings",
    "RadarrSettings",
    "ReconciliationSettings",
    "Settings",
    "SonarrSettings",
    "TMDBSettings",
    "get_settings",
]
