"""Downloads overview: every queue entry from Radarr and Sonarr."""

import asyncio
import logging

from fastapi import APIRouter, Depends

from jellystreaming.api.dependencies import get_acquisition_clients
from jellystreaming.api.schemas import DownloadItemResponse, DownloadsResponse
from jellystreaming.domain.exceptions import AuthenticationError, DomainException
from jellystreaming.domain.ports import IAcquisitionClient

logger = logging.getLogger(__name__)

router = APIRouter()


# Hey future me - one service being down (or not configured) must not blank the whole page.
# Its items are simply missing and its name lands in `unavailable`. A 401 is different: the
# user has to fix credentials, so it goes out as-is.
@router.get("")
async def list_downloads(
    clients: list[IAcquisitionClient] = Depends(get_acquisition_clients),
) -> DownloadsResponse:
    """List the download queues of both acquisition services."""
    results = await asyncio.gather(
        *(client.list_downloads() for client in clients), return_exceptions=True
    )

    items: list[DownloadItemResponse] = []
    unavailable: list[str] = []
    for client, result in zip(clients, results, strict=True):
        if isinstance(result, AuthenticationError):
            raise result
        if isinstance(result, DomainException):
            logger.warning(
                "Queue of %s unavailable: %s", client.media_kind.value, result.message
            )
            unavailable.append(client.media_kind.value)
            continue
        if isinstance(result, BaseException):
            raise result
        items.extend(
            DownloadItemResponse(
                title=item.title,
                media_kind=item.media_kind,
                status=item.status,
                status_label=item.status_label,
                progress_percent=item.progress_percent,
                size_bytes_total=item.size_bytes_total,
                size_bytes_remaining=item.size_bytes_remaining,
                time_left=item.time_left,
            )
            for item in result
        )

    return DownloadsResponse(items=items, unavailable=unavailable)
