"""Acquisition State Resolver - pure decision table from inputs to ReconciledState.

Precedence (highest wins):
1. library match                         -> AVAILABLE, PLAY
2. queue downloading / queued with bytes -> DOWNLOADING(progress)
3. queue queued, nothing fetched yet     -> QUEUED
4. queue paused                          -> PAUSED(progress)
5. queue completed                       -> PROCESSING
6. record has file, no queue entry       -> PROCESSING (waiting for library sync)
7. record without file, grace active     -> SEARCHING
8. record without file, grace expired    -> NOT_AVAILABLE
9. nothing at all                        -> NOT_REQUESTED, REQUEST

No I/O, no clock, no hidden state: same inputs, same output.
"""

from jellystreaming.domain.entities import (
    AcquisitionRecord,
    LibraryEntry,
    QueueEntry,
    QueueStatus,
)
from jellystreaming.domain.value_objects import (
    ActionKind,
    DisplayState,
    ReconciledState,
    compute_progress,
)


def resolve(
    library_match: LibraryEntry | None,
    acquisition_record: AcquisitionRecord | None,
    queue_entry: QueueEntry | None,
    grace_active: bool,
) -> ReconciledState:
    """Derive the display state and the single enabled action.

    Args:
        library_match: Entry chosen by the identity matcher, if any
        acquisition_record: Record tracked by the acquisition service, if any
        queue_entry: Live queue entry for that record, if any
        grace_active: Whether a fresh REQUEST is still inside its grace window

    Returns:
        ReconciledState for these inputs
    """
    if library_match is not None:
        return ReconciledState(DisplayState.AVAILABLE, ActionKind.PLAY)

    if queue_entry is not None:
        return _resolve_queue(queue_entry)

    if acquisition_record is not None:
        if acquisition_record.has_file:
            return ReconciledState(DisplayState.PROCESSING)
        if grace_active:
            return ReconciledState(DisplayState.SEARCHING)
        return ReconciledState(DisplayState.NOT_AVAILABLE)

    return ReconciledState(DisplayState.NOT_REQUESTED, ActionKind.REQUEST)


def _resolve_queue(entry: QueueEntry) -> ReconciledState:
    progress = compute_progress(entry.size_bytes_total, entry.size_bytes_remaining)
    # "Queued with progress" means bytes actually arrived, not the size-0 convention of 100%
    fetched_bytes = entry.size_bytes_total - entry.size_bytes_remaining

    if entry.status is QueueStatus.DOWNLOADING or (
        entry.status is QueueStatus.QUEUED and fetched_bytes > 0
    ):
        return ReconciledState(DisplayState.DOWNLOADING, progress_percent=progress)
    if entry.status is QueueStatus.QUEUED:
        return ReconciledState(DisplayState.QUEUED)
    if entry.status is QueueStatus.PAUSED:
        return ReconciledState(DisplayState.PAUSED, progress_percent=progress)
    return ReconciledState(DisplayState.PROCESSING)


__all__ = ["resolve"]
