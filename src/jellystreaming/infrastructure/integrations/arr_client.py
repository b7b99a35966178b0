"""Common Radarr/Sonarr v3 API client code.

Hey future me - Radarr and Sonarr share the v3 API shape for queue, rootfolder and command,
so all of that lives here. The subclasses only know their own record endpoint and how to turn
a movie/series JSON object into an AcquisitionRecord.
"""

import logging
import re
from abc import abstractmethod
from datetime import timedelta
from typing import Any, ClassVar

import httpx

from jellystreaming.domain.entities import (
    AcquisitionRecord,
    DownloadOverviewItem,
    MediaKind,
    QueueEntry,
    QueueStatus,
)
from jellystreaming.domain.ports import IAcquisitionClient
from jellystreaming.domain.value_objects import compute_progress
from jellystreaming.infrastructure.integrations.base_client import BaseServiceClient

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v3"

# Lower-cased service status -> normalized status. Not listed (failed, unknown) = dropped.
QUEUE_STATUS_MAP: dict[str, QueueStatus] = {
    "queued": QueueStatus.QUEUED,
    "delay": QueueStatus.QUEUED,
    "downloadclientunavailable": QueueStatus.QUEUED,
    "fallback": QueueStatus.QUEUED,
    "downloading": QueueStatus.DOWNLOADING,
    "warning": QueueStatus.DOWNLOADING,
    "paused": QueueStatus.PAUSED,
    "completed": QueueStatus.COMPLETED,
}

_TIMELEFT_RE = re.compile(r"^(?:(\d+)\.)?(\d{1,2}):(\d{2}):(\d{2})(?:\.\d+)?$")


def parse_timeleft(value: str | None) -> timedelta | None:
    """Parse the services' "[d.]hh:mm:ss" timeleft strings."""
    if not value:
        return None
    match = _TIMELEFT_RE.match(value.strip())
    if match is None:
        return None
    days, hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


def queue_status_label(item: dict[str, Any]) -> tuple[str, str]:
    """Overview (status key, label) for a raw queue item, as the downloads page shows it."""
    status = str(item.get("status", "")).lower()
    tracked_state = str(item.get("trackedDownloadState", "")).lower()
    tracked_status = str(item.get("trackedDownloadStatus", "")).lower()

    if status == "downloading":
        return "downloading", "Downloading"
    if status == "paused":
        return "paused", "Paused"
    if status == "queued":
        return "queued", "Queued"
    if status == "completed":
        if tracked_state == "importpending":
            return "import_pending", "Import pending"
        if tracked_state == "importblocked":
            return "import_blocked", "Import blocked"
        if tracked_status == "warning":
            return "completed_with_warnings", "Completed with warnings"
        return "completed", "Completed"
    if status == "failed":
        return "failed", "Failed"
    raw = str(item.get("status") or "unknown")
    return status or "unknown", raw[:1].upper() + raw[1:]


class ArrClient(BaseServiceClient, IAcquisitionClient):
    """Base class for the *arr acquisition clients."""

    media_kind: ClassVar[MediaKind]
    RECORD_ENDPOINT: ClassVar[str]
    QUEUE_ID_FIELD: ClassVar[str]
    QUEUE_EXTRA_PARAMS: ClassVar[dict[str, Any]] = {}

    def __init__(
        self,
        url: str,
        api_key: str,
        configured: bool,
        queue_page_size: int = 50,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=url,
            headers={"X-Api-Key": api_key},
            timeout=timeout,
            configured=configured,
            transport=transport,
        )
        self.queue_page_size = queue_page_size

    @abstractmethod
    def to_record(self, data: dict[str, Any]) -> AcquisitionRecord:
        """Convert a movie/series JSON object into an AcquisitionRecord."""

    def overview_title(self, item: dict[str, Any]) -> str:
        return str(item.get("title", ""))

    async def list_records(self) -> list[AcquisitionRecord]:
        data = await self._request("GET", f"{API_PREFIX}/{self.RECORD_ENDPOINT}")
        return [self.to_record(item) for item in data or []]

    async def add(self, payload: dict[str, Any]) -> AcquisitionRecord:
        data = await self._request("POST", f"{API_PREFIX}/{self.RECORD_ENDPOINT}", json=payload)
        return self.to_record(data or payload)

    async def get_root_folders(self) -> list[str]:
        data = await self._request("GET", f"{API_PREFIX}/rootfolder")
        return [str(folder["path"]) for folder in data or [] if folder.get("path")]

    async def refresh_monitored_downloads(self) -> None:
        await self._request(
            "POST", f"{API_PREFIX}/command", json={"name": "RefreshMonitoredDownloads"}
        )
        logger.debug("%s: RefreshMonitoredDownloads sent", self.SERVICE_NAME)

    async def fetch_queue_records(self) -> list[dict[str, Any]]:
        """Fetch every raw queue record, page by page, until totalRecords is reached."""
        records: list[dict[str, Any]] = []
        page = 1
        while True:
            params = {
                "page": page,
                "pageSize": self.queue_page_size,
                "sortDirection": "ascending",
                "sortKey": "timeleft",
                **self.QUEUE_EXTRA_PARAMS,
            }
            data = await self._request("GET", f"{API_PREFIX}/queue", params=params) or {}
            batch = data.get("records") or []
            records.extend(batch)

            total = int(data.get("totalRecords", len(records)))
            if not batch or len(records) >= total:
                return records
            page += 1

    async def get_queue(self) -> list[QueueEntry]:
        entries: list[QueueEntry] = []
        for item in await self.fetch_queue_records():
            status = QUEUE_STATUS_MAP.get(str(item.get("status", "")).lower())
            acquisition_id = item.get(self.QUEUE_ID_FIELD)
            if status is None or acquisition_id is None:
                continue
            entries.append(
                QueueEntry(
                    acquisition_id=int(acquisition_id),
                    size_bytes_total=int(item.get("size") or 0),
                    size_bytes_remaining=int(item.get("sizeleft") or 0),
                    status=status,
                    time_remaining=parse_timeleft(item.get("timeleft")),
                    title=str(item.get("title", "")),
                    tracked_state=item.get("trackedDownloadState"),
                )
            )
        return entries

    async def list_downloads(self) -> list[DownloadOverviewItem]:
        items: list[DownloadOverviewItem] = []
        for item in await self.fetch_queue_records():
            total = max(0, int(item.get("size") or 0))
            remaining = min(max(0, int(item.get("sizeleft") or 0)), total)
            status, label = queue_status_label(item)
            items.append(
                DownloadOverviewItem(
                    title=self.overview_title(item),
                    media_kind=self.media_kind,
                    status=status,
                    status_label=label,
                    progress_percent=compute_progress(total, remaining),
                    size_bytes_total=total,
                    size_bytes_remaining=remaining,
                    time_left=item.get("timeleft"),
                )
            )
        return items


__all__ = [
    "API_PREFIX",
    "QUEUE_STATUS_MAP",
    "ArrClient",
    "parse_timeleft",
    "queue_status_label",
]
