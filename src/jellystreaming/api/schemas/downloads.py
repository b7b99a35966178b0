"""Downloads overview response models."""

from pydantic import BaseModel, Field

from jellystreaming.domain.entities import MediaKind


class DownloadItemResponse(BaseModel):
    title: str
    media_kind: MediaKind
    status: str = Field(description="Status key, e.g. downloading, import_pending")
    status_label: str
    progress_percent: float
    size_bytes_total: int
    size_bytes_remaining: int
    time_left: str | None = None


class DownloadsResponse(BaseModel):
    items: list[DownloadItemResponse]
    # Services whose queue couldn't be read this time
    unavailable: list[str] = Field(default_factory=list)
