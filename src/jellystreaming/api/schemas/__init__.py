"""Pydantic request/response models for the API."""

from jellystreaming.api.schemas.downloads import DownloadItemResponse, DownloadsResponse
from jellystreaming.api.schemas.views import (
    ActionRequest,
    ActionResponse,
    OpenViewRequest,
    SeasonSelectionRequest,
    SeasonStatusResponse,
    ViewStateResponse,
)

__all__ = [
    "ActionRequest",
    "ActionResponse",
    "DownloadItemResponse",
    "DownloadsResponse",
    "OpenViewRequest",
    "SeasonSelectionRequest",
    "SeasonStatusResponse",
    "ViewStateResponse",
]
