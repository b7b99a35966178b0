"""Reconciliation Poller - the poll-driven state machine behind one detail view.

Hey future me - ONE poller per open detail view, and it owns everything about that view:
the current ReconciledState, the grace-window deadline, the progress floor and its tasks.
Nothing is shared between views, so there are no locks here; everything runs on the one
event loop.

Phases:
    IDLE -> CHECKING -> STABLE | POLLING -> IDLE (on close)
    any -> FAILED when a collaborator rejects our credentials or is not configured

- start() runs one pass immediately (CHECKING).
- AVAILABLE / NOT_REQUESTED / NOT_AVAILABLE -> STABLE, no timer.
- SEARCHING / QUEUED / DOWNLOADING / PAUSED / PROCESSING / UNKNOWN -> POLLING every
  poll_interval seconds until a non-pending state shows up.
- At most ONE pass in flight. A tick that fires while a pass is outstanding is skipped
  (coalesced), never queued.
- FAILED stops the timer; the error is re-raised to whoever awaits the pass and kept for
  raise_if_failed(). A later successful pass (manual refresh) clears it.
- close() cancels the timer and the in-flight pass. Results that land after close, or
  after a REQUEST superseded them, are dropped via the generation counter.

The grace window is a deadline on an injectable monotonic clock, not a state flag. While it
runs, the record returned by the REQUEST call stands in for the listing (the service's
list endpoint lags a few seconds behind the add), so the view shows SEARCHING instead of
flickering back to NOT_REQUESTED.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from jellystreaming.application.services.acquisition_state_resolver import resolve
from jellystreaming.application.services.action_dispatcher import (
    ActionDispatcher,
    DispatchContext,
    DispatchResult,
)
from jellystreaming.application.services.reconciliation_service import (
    ReconciliationService,
    ReconciliationSnapshot,
)
from jellystreaming.application.services.season_selection import (
    SeasonStatus,
    season_statuses,
)
from jellystreaming.domain.entities import (
    AcquisitionRecord,
    LibraryEntry,
    PlaybackOptions,
    QueueEntry,
    TitleReference,
)
from jellystreaming.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    InvalidStateException,
)
from jellystreaming.domain.value_objects import (
    ActionKind,
    DisplayState,
    ReconciledState,
)

logger = logging.getLogger(__name__)


class PollPhase(str, Enum):
    """Lifecycle phase of a detail view's polling loop."""

    IDLE = "idle"
    CHECKING = "checking"
    STABLE = "stable"
    POLLING = "polling"
    FAILED = "failed"


class PollHandle:
    """Cancellable handle returned by ReconciliationPoller.start()."""

    def __init__(self, poller: "ReconciliationPoller") -> None:
        self._poller = poller

    @property
    def cancelled(self) -> bool:
        return self._poller.closed

    async def cancel(self) -> None:
        await self._poller.close()


class ReconciliationPoller:
    """Drives one detail view through resolution passes until it settles."""

    def __init__(
        self,
        view_id: str,
        reference: TitleReference,
        service: ReconciliationService,
        dispatcher: ActionDispatcher,
        poll_interval: float = 5.0,
        grace_window: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the poller.

        Args:
            view_id: Id of the detail view this poller belongs to
            reference: The title shown by the view (immutable)
            service: Runs the library + acquisition checks
            dispatcher: Performs PLAY / REQUEST
            poll_interval: Seconds between passes while pending
            grace_window: Seconds SEARCHING is forced after a successful REQUEST
            clock: Monotonic clock, injectable for tests
        """
        self.view_id = view_id
        self.reference = reference
        self._service = service
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._grace_window = grace_window
        self._clock = clock

        self._phase = PollPhase.IDLE
        self._state: ReconciledState | None = None
        self._library_match: LibraryEntry | None = None
        self._record: AcquisitionRecord | None = None
        self._queue_entry: QueueEntry | None = None

        self._grace_deadline: float | None = None
        self._submitted_record: AcquisitionRecord | None = None
        self._progress_floor: dict[int, float] = {}

        self._generation = 0
        self._started = False
        self._closed = False
        self._request_running = False
        self._failure: DomainException | None = None
        self._in_flight: asyncio.Task[bool] | None = None
        self._loop_task: asyncio.Task[None] | None = None

        self.last_accessed = clock()
        self._stats: dict[str, int] = {
            "passes": 0,
            "coalesced_ticks": 0,
            "discarded_results": 0,
            "incomplete_passes": 0,
        }

    # -- read-only view -----------------------------------------------------------------

    @property
    def phase(self) -> PollPhase:
        return self._phase

    @property
    def state(self) -> ReconciledState | None:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def library_match(self) -> LibraryEntry | None:
        return self._library_match

    @property
    def record(self) -> AcquisitionRecord | None:
        return self._record

    @property
    def grace_active(self) -> bool:
        return self._grace_deadline is not None and self._clock() < self._grace_deadline

    @property
    def is_polling(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def failure(self) -> DomainException | None:
        return self._failure

    def raise_if_failed(self) -> None:
        """Re-raise the error that stopped polling, if any."""
        if self._failure is not None:
            raise self._failure

    def touch(self) -> None:
        self.last_accessed = self._clock()

    def idle_seconds(self) -> float:
        return self._clock() - self.last_accessed

    def get_status(self) -> dict[str, Any]:
        """Snapshot of the view for the API and for debugging."""
        state = self._state
        grace_remaining = None
        if self.grace_active and self._grace_deadline is not None:
            grace_remaining = round(self._grace_deadline - self._clock(), 1)
        time_remaining = None
        if self._queue_entry is not None and self._queue_entry.time_remaining is not None:
            time_remaining = int(self._queue_entry.time_remaining.total_seconds())
        return {
            "view_id": self.view_id,
            "phase": self._phase.value,
            "display_state": state.display_state.value if state else None,
            "display_label": state.display_label if state else None,
            "enabled_action": state.enabled_action.value if state else None,
            "progress_percent": state.progress_percent if state else None,
            "time_remaining_seconds": time_remaining,
            "stale": state.stale if state else False,
            "grace_active": self.grace_active,
            "grace_remaining_seconds": grace_remaining,
            "stats": self._stats.copy(),
        }

    # -- lifecycle ----------------------------------------------------------------------

    async def start(self) -> PollHandle:
        """Run the immediate CHECKING pass and start polling if needed.

        Calling start() again on a started view is a no-op.

        Returns:
            Handle whose cancel() closes the view
        """
        self._ensure_open()
        if not self._started:
            self._started = True
            self._phase = PollPhase.CHECKING
            logger.debug("View %s checking '%s'", self.view_id, self.reference.display_title)
            await self.refresh()
        return PollHandle(self)

    async def close(self) -> None:
        """Stop polling and drop anything still in flight. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1

        tasks = [t for t in (self._loop_task, self._in_flight) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._loop_task = None
        self._in_flight = None
        self._phase = PollPhase.IDLE
        logger.debug("View %s closed", self.view_id)

    async def __aenter__(self) -> "ReconciliationPoller":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -- passes -------------------------------------------------------------------------

    async def refresh(self) -> bool:
        """Run one pass now unless one is already in flight.

        Returns:
            True if a fresh result was applied, False if the pass was coalesced,
            superseded or the view is closed
        """
        if self._closed:
            return False
        task = self._launch_pass()
        if task is None:
            return False
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                # The pass was cancelled by close(), not our caller
                return False
            raise

    def _launch_pass(self) -> asyncio.Task[bool] | None:
        if self._in_flight is not None and not self._in_flight.done():
            self._stats["coalesced_ticks"] += 1
            logger.debug("View %s: pass still in flight, tick skipped", self.view_id)
            return None

        task = asyncio.create_task(
            self._run_pass(self._generation), name=f"reconcile-{self.view_id}"
        )
        task.add_done_callback(self._on_pass_done)
        self._in_flight = task
        return task

    def _on_pass_done(self, task: asyncio.Task[bool]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is None or error is self._failure:
            # _fail() already logged it
            return
        logger.error(
            "Reconciliation pass crashed for view %s", self.view_id, exc_info=error
        )

    async def _run_pass(self, generation: int) -> bool:
        self._stats["passes"] += 1
        try:
            snapshot = await self._service.fetch_snapshot(self.reference)
        except (AuthenticationError, ConfigurationError) as e:
            if self._closed or generation != self._generation:
                self._stats["discarded_results"] += 1
                return False
            self._fail(e)
            raise

        if self._closed or generation != self._generation:
            self._stats["discarded_results"] += 1
            logger.debug("View %s: discarding superseded result", self.view_id)
            return False

        self._apply(snapshot)
        return True

    async def _poll_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._poll_interval)
            if self._closed:
                return
            self._launch_pass()

    # -- state updates ------------------------------------------------------------------

    def _fail(self, error: DomainException) -> None:
        self._failure = error
        self._phase = PollPhase.FAILED
        if self.is_polling:
            self._loop_task.cancel()  # type: ignore[union-attr]
        self._loop_task = None
        logger.error(
            "View %s '%s' stopped polling: %s",
            self.view_id,
            self.reference.display_title,
            error.message,
        )

    def _apply(self, snapshot: ReconciliationSnapshot) -> None:
        self._failure = None
        grace = self.grace_active
        if not grace:
            self._grace_deadline = None
            self._submitted_record = None

        if snapshot.acquisition_ok:
            if snapshot.record is not None:
                self._submitted_record = None
            elif self._submitted_record is not None:
                snapshot = snapshot.with_record(self._submitted_record)
            self._record = snapshot.record
            self._queue_entry = snapshot.queue_entry
        if snapshot.library_ok:
            self._library_match = snapshot.library_match

        if not snapshot.complete:
            self._stats["incomplete_passes"] += 1

        state = self._service.evaluate(snapshot, grace, previous=self._state)
        state = self._hold_progress(state, snapshot.queue_entry)

        if state.display_state is DisplayState.AVAILABLE:
            # Library presence ends the grace window early
            self._grace_deadline = None
            self._submitted_record = None

        self._set_state(state)
        self._schedule()

    def _hold_progress(
        self, state: ReconciledState, entry: QueueEntry | None
    ) -> ReconciledState:
        if state.progress_percent is None or entry is None:
            return state
        if not 0 < entry.size_bytes_remaining < entry.size_bytes_total:
            return state

        progress = state.progress_percent
        floor = self._progress_floor.get(entry.acquisition_id)
        if floor is not None and progress < floor:
            progress = floor
            state = state.with_progress(floor)
        self._progress_floor[entry.acquisition_id] = progress
        return state

    def _set_state(self, state: ReconciledState) -> None:
        previous = self._state
        self._state = state
        if previous is None or previous.display_state is not state.display_state:
            logger.info(
                "View %s '%s': %s -> %s",
                self.view_id,
                self.reference.display_title,
                previous.display_state.value if previous else "none",
                state.display_state.value,
            )

    def _schedule(self) -> None:
        if self._closed or self._state is None:
            return

        if self._state.is_pending:
            self._phase = PollPhase.POLLING
            if not self.is_polling:
                self._loop_task = asyncio.create_task(
                    self._poll_loop(), name=f"poll-{self.view_id}"
                )
            return

        self._phase = PollPhase.STABLE
        if self.is_polling and self._loop_task is not asyncio.current_task():
            self._loop_task.cancel()  # type: ignore[union-attr]
        self._loop_task = None

    # -- actions ------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidStateException(f"View {self.view_id} is closed")

    def _context(
        self,
        selected_seasons: tuple[int, ...] = (),
        playback: PlaybackOptions | None = None,
    ) -> DispatchContext:
        if self._state is None:
            raise InvalidStateException(f"View {self.view_id} has not been checked yet")
        return DispatchContext(
            reference=self.reference,
            state=self._state,
            library_match=self._library_match,
            record=self._record,
            selected_seasons=selected_seasons,
            playback=playback or PlaybackOptions(),
        )

    async def play(self, options: PlaybackOptions | None = None) -> DispatchResult:
        """Hand the matched library entry off to playback."""
        self._ensure_open()
        return await self._dispatcher.dispatch(
            ActionKind.PLAY, self._context(playback=options)
        )

    async def request(self, selected_seasons: tuple[int, ...] = ()) -> DispatchResult:
        """Submit the title to the acquisition service and open the grace window.

        On failure the state is left untouched (NOT_REQUESTED) and the error
        propagates so the user sees it and can retry.
        """
        self._ensure_open()
        if self._request_running:
            raise InvalidStateException("A request for this title is already running")

        context = self._context(selected_seasons)
        self._request_running = True
        try:
            result = await self._dispatcher.dispatch(ActionKind.REQUEST, context)
        finally:
            self._request_running = False

        if self._closed:
            return result

        # Anything fetched before the request landed describes the old world
        self._generation += 1
        self._grace_deadline = self._clock() + self._grace_window
        self._submitted_record = result.record
        self._record = result.record
        self._queue_entry = None

        self._set_state(resolve(None, result.record, None, grace_active=True))
        self._schedule()
        return result

    async def dispatch(
        self,
        action: ActionKind,
        selected_seasons: tuple[int, ...] = (),
        playback: PlaybackOptions | None = None,
    ) -> DispatchResult:
        if action is ActionKind.PLAY:
            return await self.play(playback)
        if action is ActionKind.REQUEST:
            return await self.request(selected_seasons)
        raise InvalidStateException("No action available")

    async def request_more_seasons(self, selected: list[int]) -> AcquisitionRecord:
        """Monitor extra seasons of the tracked series behind this view."""
        self._ensure_open()
        if self._record is None:
            raise InvalidStateException("Series is not tracked by the acquisition service")

        updated = await self._dispatcher.request_more_seasons(self._record, selected)
        if not self._closed:
            self._record = updated
        return updated

    def season_statuses(self) -> list[SeasonStatus]:
        if self._record is None:
            return []
        return season_statuses(self._record)

    async def refresh_monitored_downloads(self) -> None:
        """Ask the acquisition service to re-scan now, then re-check this view."""
        self._ensure_open()
        await self._dispatcher.refresh_monitored_downloads(self.reference.media_kind)
        await self.refresh()


__all__ = ["PollHandle", "PollPhase", "ReconciliationPoller"]
