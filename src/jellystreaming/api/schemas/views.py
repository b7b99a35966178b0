"""Detail view request/response models."""

from typing import Any

from pydantic import BaseModel, Field

from jellystreaming.application.services.season_selection import SeasonAvailability
from jellystreaming.domain.entities import MediaKind
from jellystreaming.domain.value_objects import ActionKind


class OpenViewRequest(BaseModel):
    media_kind: MediaKind
    external_id: int = Field(gt=0)
    # Missing title is fetched from TMDB
    title: str | None = None
    release_year: int | None = Field(default=None, ge=1800, le=3000)


class ViewStateResponse(BaseModel):
    view_id: str
    phase: str
    display_state: str | None
    display_label: str | None
    enabled_action: str | None
    progress_percent: float | None = None
    time_remaining_seconds: int | None = None
    stale: bool = False
    grace_active: bool = False
    grace_remaining_seconds: float | None = None

    @classmethod
    def from_status(cls, status: dict[str, Any]) -> "ViewStateResponse":
        return cls(**{k: v for k, v in status.items() if k in cls.model_fields})


class ActionRequest(BaseModel):
    # Defaults to whatever the view currently enables
    action: ActionKind | None = None
    seasons: list[int] = Field(default_factory=list)
    # PLAY only
    quality: str = "auto"
    audio_stream_index: int | None = Field(default=None, ge=0)
    subtitle_stream_index: int | None = None


class ActionResponse(BaseModel):
    action: ActionKind
    stream_url: str | None = None
    state: ViewStateResponse


class SeasonSelectionRequest(BaseModel):
    seasons: list[int] = Field(min_length=1)


class SeasonStatusResponse(BaseModel):
    season_number: int
    availability: SeasonAvailability
    episode_file_count: int = 0
