"""Detail View Registry - open, look up and close detail-view sessions.

Hey future me - the browser can't hold our asyncio tasks, so every open detail view lives here
as a ReconciliationPoller keyed by a random view id. Each view owns its own poller, so no
cross-view state at all. Views the browser forgot to DELETE (tab closed, crash) are reaped once
they haven't been read for view_idle_timeout_seconds.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable

from jellystreaming.application.services.action_dispatcher import ActionDispatcher
from jellystreaming.application.services.reconciliation_service import (
    ReconciliationService,
)
from jellystreaming.application.workers.reconciliation_poller import (
    ReconciliationPoller,
)
from jellystreaming.config.settings import ReconciliationSettings
from jellystreaming.domain.entities import MediaKind, TitleReference
from jellystreaming.domain.exceptions import (
    DomainException,
    EntityNotFoundException,
    ViewLimitExceededError,
)
from jellystreaming.domain.ports import IMetadataClient
from jellystreaming.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)


class DetailViewRegistry:
    """Owns every open detail view and its poller."""

    def __init__(
        self,
        service: ReconciliationService,
        dispatcher: ActionDispatcher,
        metadata_client: IMetadataClient,
        settings: ReconciliationSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._dispatcher = dispatcher
        self._metadata = metadata_client
        self._settings = settings
        self._clock = clock
        self._views: dict[str, ReconciliationPoller] = {}
        # Slots held by open() calls still waiting on the metadata provider
        self._reserved = 0

    def __len__(self) -> int:
        return len(self._views)

    @property
    def view_ids(self) -> list[str]:
        return list(self._views)

    async def open(
        self,
        media_kind: MediaKind,
        external_id: int,
        title: str | None = None,
        release_year: int | None = None,
    ) -> ReconciliationPoller:
        """Open a detail view and run its first check.

        Missing title data is fetched from the metadata provider. For series the TVDB id
        is looked up as well; if that lookup fails the view still opens without it.

        Raises:
            ViewLimitExceededError: If max_open_views views are already open
            ExternalServiceError: If the title itself couldn't be loaded
        """
        if len(self._views) + self._reserved >= self._settings.max_open_views:
            raise ViewLimitExceededError(
                f"Too many open views ({self._settings.max_open_views}), close one first"
            )

        view_id = uuid.uuid4().hex
        # Tasks spawned below copy this context, so every poll log line carries the view id
        set_correlation_id(view_id)

        self._reserved += 1
        try:
            reference = await self._build_reference(
                media_kind, external_id, title, release_year
            )
        finally:
            self._reserved -= 1

        # No await between releasing the reservation and registering the view
        poller = ReconciliationPoller(
            view_id,
            reference,
            self._service,
            self._dispatcher,
            poll_interval=self._settings.poll_interval_seconds,
            grace_window=self._settings.grace_window_seconds,
            clock=self._clock,
        )
        self._views[view_id] = poller
        logger.info(
            "Opened view %s for %s '%s' (tmdb %s)",
            view_id,
            media_kind.value,
            reference.display_title,
            external_id,
        )

        try:
            await poller.start()
        except BaseException:
            self._views.pop(view_id, None)
            await poller.close()
            raise
        return poller

    def get(self, view_id: str) -> ReconciliationPoller:
        """Look up an open view and mark it as recently used.

        Raises:
            EntityNotFoundException: If no such view is open
        """
        poller = self._views.get(view_id)
        if poller is None:
            raise EntityNotFoundException("DetailView", view_id)
        poller.touch()
        return poller

    async def close(self, view_id: str) -> None:
        """Close a view. Closing an unknown view raises EntityNotFoundException."""
        poller = self._views.pop(view_id, None)
        if poller is None:
            raise EntityNotFoundException("DetailView", view_id)
        await poller.close()
        logger.info("Closed view %s", view_id)

    async def close_all(self) -> None:
        views = list(self._views.values())
        self._views.clear()
        if views:
            await asyncio.gather(*(view.close() for view in views), return_exceptions=True)
            logger.info("Closed %d open views", len(views))

    async def reap_idle(self) -> int:
        """Close views nobody has read for view_idle_timeout_seconds.

        Returns:
            Number of views closed
        """
        timeout = self._settings.view_idle_timeout_seconds
        stale = [vid for vid, view in self._views.items() if view.idle_seconds() >= timeout]
        for view_id in stale:
            poller = self._views.pop(view_id, None)
            if poller is not None:
                await poller.close()
        if stale:
            logger.info("Reaped %d idle views", len(stale))
        return len(stale)

    async def run_reaper(self, interval: float | None = None) -> None:
        """Reap idle views forever; cancel the task to stop it."""
        sweep_every = interval or max(self._settings.view_idle_timeout_seconds / 4, 1.0)
        logger.info("Idle view reaper started (every %.0fs)", sweep_every)
        while True:
            await asyncio.sleep(sweep_every)
            try:
                await self.reap_idle()
            except Exception as e:
                logger.exception("Idle view sweep failed: %s", e)

    async def _build_reference(
        self,
        media_kind: MediaKind,
        external_id: int,
        title: str | None,
        release_year: int | None,
    ) -> TitleReference:
        if title:
            reference = TitleReference(external_id, title, release_year, media_kind)
        else:
            reference = await self._metadata.get_title(external_id, media_kind)

        if media_kind is not MediaKind.SERIES or reference.tvdb_id is not None:
            return reference

        try:
            external_ids = await self._metadata.get_external_ids(external_id, media_kind)
        except DomainException as e:
            logger.warning("No TVDB id for tmdb %s: %s", external_id, e.message)
            return reference

        tvdb_id = external_ids.get("tvdb_id")
        if not tvdb_id:
            return reference
        return TitleReference(
            reference.external_id,
            reference.display_title,
            reference.release_year,
            reference.media_kind,
            tvdb_id=int(tvdb_id),
        )


__all__ = ["DetailViewRegistry"]
