"""Detail view endpoints: open, poll, act on and close a detail view."""

# Hey future me - the browser opens one view per title detail page, polls GET /views/{id}
# while the state is pending and DELETEs the view when the page goes away. All the real work
# happens in the ReconciliationPoller; these handlers only translate HTTP <-> poller calls.
# Domain exceptions bubble up to the global handlers (api/exception_handlers.py).

import logging

from fastapi import APIRouter, Depends, status

from jellystreaming.api.dependencies import get_registry, get_view
from jellystreaming.api.schemas import (
    ActionRequest,
    ActionResponse,
    OpenViewRequest,
    SeasonSelectionRequest,
    SeasonStatusResponse,
    ViewStateResponse,
)
from jellystreaming.application.services.detail_view_registry import DetailViewRegistry
from jellystreaming.application.workers.reconciliation_poller import (
    ReconciliationPoller,
)
from jellystreaming.domain.entities import PlaybackOptions
from jellystreaming.domain.value_objects import ActionKind

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_view(
    body: OpenViewRequest,
    registry: DetailViewRegistry = Depends(get_registry),
) -> ViewStateResponse:
    """Open a detail view and run its first check.

    The response already carries the checked state, so the page can render the right
    button without a second round-trip.
    """
    poller = await registry.open(
        body.media_kind,
        body.external_id,
        title=body.title,
        release_year=body.release_year,
    )
    return ViewStateResponse.from_status(poller.get_status())


@router.get("/{view_id}")
async def get_view_state(
    poller: ReconciliationPoller = Depends(get_view),
) -> ViewStateResponse:
    """Current state of a detail view (cheap, no collaborator calls).

    A view whose polling stopped on a 401 or a missing API key answers with that error.
    """
    poller.raise_if_failed()
    return ViewStateResponse.from_status(poller.get_status())


@router.post("/{view_id}/action")
async def dispatch_action(
    body: ActionRequest,
    poller: ReconciliationPoller = Depends(get_view),
) -> ActionResponse:
    """Run the view's enabled action (PLAY or REQUEST).

    Omitting `action` runs whatever the view currently enables. Asking for an action the
    view doesn't offer answers 409.
    """
    action = body.action
    if action is None:
        action = poller.state.enabled_action if poller.state else ActionKind.NONE

    playback = PlaybackOptions(
        quality=body.quality,
        audio_stream_index=body.audio_stream_index,
        subtitle_stream_index=body.subtitle_stream_index,
    )
    result = await poller.dispatch(action, tuple(body.seasons), playback)
    return ActionResponse(
        action=result.action,
        stream_url=result.stream_url,
        state=ViewStateResponse.from_status(poller.get_status()),
    )


@router.get("/{view_id}/seasons")
async def list_seasons(
    poller: ReconciliationPoller = Depends(get_view),
) -> list[SeasonStatusResponse]:
    """Per-season status of the tracked series (empty when not tracked)."""
    return [
        SeasonStatusResponse(
            season_number=s.season_number,
            availability=s.availability,
            episode_file_count=s.episode_file_count,
        )
        for s in poller.season_statuses()
    ]


@router.post("/{view_id}/seasons")
async def request_more_seasons(
    body: SeasonSelectionRequest,
    poller: ReconciliationPoller = Depends(get_view),
) -> list[SeasonStatusResponse]:
    """Monitor additional seasons of a tracked series. Never un-monitors anything."""
    await poller.request_more_seasons(body.seasons)
    return await list_seasons(poller)


@router.post("/{view_id}/refresh")
async def refresh_downloads(
    poller: ReconciliationPoller = Depends(get_view),
) -> ViewStateResponse:
    """Ask the acquisition service to re-scan its download clients, then re-check."""
    await poller.refresh_monitored_downloads()
    return ViewStateResponse.from_status(poller.get_status())


@router.delete("/{view_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_view(
    view_id: str,
    registry: DetailViewRegistry = Depends(get_registry),
) -> None:
    """Close the view. Its polling stops and late responses are dropped."""
    await registry.close(view_id)
