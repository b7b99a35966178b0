"""Reconciliation Service - one resolution pass across library and acquisition services.

Hey future me - the library check and the acquisition check run IN PARALLEL
(asyncio.gather) and may finish in any order. The resolver only runs once both are back.
Collaborator outages (ExternalServiceError) never escape this module: a failed side becomes
"no data this tick", logged at WARNING, and evaluate() falls back to the last known state
(marked stale) or UNKNOWN. A 401 or a missing API key is not an outage and propagates.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from jellystreaming.application.services.acquisition_state_resolver import resolve
from jellystreaming.application.services.identity_matcher import IdentityMatcher
from jellystreaming.domain.entities import (
    AcquisitionRecord,
    LibraryEntry,
    MediaKind,
    QueueEntry,
    QueueStatus,
    TitleReference,
)
from jellystreaming.domain.exceptions import ExternalServiceError
from jellystreaming.domain.ports import (
    IAcquisitionClient,
    ILibraryClient,
    ISeriesAcquisitionClient,
)
from jellystreaming.domain.value_objects import ReconciledState

logger = logging.getLogger(__name__)

# Which status a series shows when its episodes are in different states
_STATUS_PRIORITY: dict[QueueStatus, int] = {
    QueueStatus.DOWNLOADING: 0,
    QueueStatus.QUEUED: 1,
    QueueStatus.PAUSED: 2,
    QueueStatus.COMPLETED: 3,
}


@dataclass(frozen=True)
class ReconciliationSnapshot:
    """Raw inputs of one pass, before the resolver runs."""

    library_match: LibraryEntry | None = None
    record: AcquisitionRecord | None = None
    queue_entry: QueueEntry | None = None
    library_ok: bool = True
    acquisition_ok: bool = True

    @property
    def complete(self) -> bool:
        return self.library_ok and self.acquisition_ok

    def with_record(self, record: AcquisitionRecord) -> "ReconciliationSnapshot":
        return replace(self, record=record)


def find_record(
    ref: TitleReference, records: Iterable[AcquisitionRecord]
) -> AcquisitionRecord | None:
    """Find the acquisition record for a reference.

    Movies are keyed on the TMDB id. Series are keyed on the TMDB id too, or on the
    TVDB id when the service never learned the TMDB one.
    """
    for record in records:
        if record.external_id == ref.external_id:
            return record
        if (
            ref.media_kind is MediaKind.SERIES
            and ref.tvdb_id is not None
            and record.tvdb_id == ref.tvdb_id
        ):
            return record
    return None


def aggregate_queue_entries(
    acquisition_id: int, entries: Iterable[QueueEntry]
) -> QueueEntry | None:
    """Fold every queue entry of one record into a single entry.

    Sonarr queues one entry per episode; the view wants one per series. Sizes are
    summed, the status is the most active one (downloading > queued > paused > completed).
    """
    own = [e for e in entries if e.acquisition_id == acquisition_id]
    if not own:
        return None
    if len(own) == 1:
        return own[0]

    leading = min(own, key=lambda e: _STATUS_PRIORITY[e.status])
    return QueueEntry(
        acquisition_id=acquisition_id,
        size_bytes_total=sum(e.size_bytes_total for e in own),
        size_bytes_remaining=sum(e.size_bytes_remaining for e in own),
        status=leading.status,
        time_remaining=leading.time_remaining,
        title=leading.title,
        tracked_state=leading.tracked_state,
    )


class ReconciliationService:
    """Runs one library + acquisition check and turns it into a ReconciledState."""

    def __init__(
        self,
        library_client: ILibraryClient,
        movie_client: IAcquisitionClient,
        series_client: ISeriesAcquisitionClient,
        matcher: IdentityMatcher | None = None,
    ) -> None:
        self._library = library_client
        self._movies = movie_client
        self._series = series_client
        self._matcher = matcher or IdentityMatcher()

    def acquisition_client_for(self, media_kind: MediaKind) -> IAcquisitionClient:
        return self._series if media_kind is MediaKind.SERIES else self._movies

    async def fetch_snapshot(self, ref: TitleReference) -> ReconciliationSnapshot:
        """Query library and acquisition service in parallel.

        ExternalServiceError on either side is downgraded and reported through the
        *_ok flags. AuthenticationError and ConfigurationError propagate.
        """
        library_result, acquisition_result = await asyncio.gather(
            self._check_library(ref),
            self._check_acquisition(ref),
            return_exceptions=True,
        )

        library_ok = not isinstance(library_result, BaseException)
        acquisition_ok = not isinstance(acquisition_result, BaseException)

        for side, result in (
            ("library", library_result),
            ("acquisition", acquisition_result),
        ):
            if not isinstance(result, BaseException):
                continue
            if not isinstance(result, ExternalServiceError):
                # Only collaborator outages count as "no data this tick"
                raise result
            logger.warning(
                "%s check failed for '%s' (tmdb %s): %s",
                side.capitalize(),
                ref.display_title,
                ref.external_id,
                result,
            )

        record: AcquisitionRecord | None = None
        queue_entry: QueueEntry | None = None
        if acquisition_ok:
            record, queue_entry = acquisition_result  # type: ignore[misc]

        return ReconciliationSnapshot(
            library_match=library_result if library_ok else None,  # type: ignore[arg-type]
            record=record,
            queue_entry=queue_entry,
            library_ok=library_ok,
            acquisition_ok=acquisition_ok,
        )

    def evaluate(
        self,
        snapshot: ReconciliationSnapshot,
        grace_active: bool,
        previous: ReconciledState | None = None,
    ) -> ReconciledState:
        """Resolve a snapshot, degrading gracefully when a side failed.

        Args:
            snapshot: Result of fetch_snapshot()
            grace_active: Whether the grace window is running
            previous: Last state shown, used when this pass is incomplete

        Returns:
            Resolved state, the previous state marked stale, or UNKNOWN
        """
        if snapshot.library_ok and snapshot.library_match is not None:
            # Library presence is terminal; the acquisition side doesn't matter
            return resolve(snapshot.library_match, None, None, grace_active)

        if snapshot.complete:
            return resolve(None, snapshot.record, snapshot.queue_entry, grace_active)

        if previous is not None:
            return previous.as_stale()
        return ReconciledState.unknown()

    async def _check_library(self, ref: TitleReference) -> LibraryEntry | None:
        if ref.media_kind is MediaKind.SERIES:
            candidates = await self._library.list_series()
        else:
            candidates = await self._library.search_movies(ref.display_title)
        return self._matcher.match(ref, candidates)

    async def _check_acquisition(
        self, ref: TitleReference
    ) -> tuple[AcquisitionRecord | None, QueueEntry | None]:
        client = self.acquisition_client_for(ref.media_kind)
        record = find_record(ref, await client.list_records())
        if record is None:
            return None, None

        queue = await client.get_queue()
        return record, aggregate_queue_entries(record.acquisition_id, queue)


__all__ = [
    "ReconciliationService",
    "ReconciliationSnapshot",
    "aggregate_queue_entries",
    "find_record",
]
