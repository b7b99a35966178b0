"""ReconciledState - what a detail view shows and which single button it enables.

Hey future me - this REPLACES the old pile of independent booleans (checking, downloading,
success, justAdded). One tagged value, one enabled action. The grace window lives elsewhere
(it's a timestamp owned by the poller), it is NOT a field here.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum


class DisplayState(str, Enum):
    """Every state a title can be displayed in."""

    AVAILABLE = "available"
    DOWNLOADING = "downloading"
    QUEUED = "queued"
    PAUSED = "paused"
    PROCESSING = "processing"
    SEARCHING = "searching"
    NOT_AVAILABLE = "not_available"
    NOT_REQUESTED = "not_requested"
    # Nothing known yet because a read failed before the first good pass
    UNKNOWN = "unknown"


class ActionKind(str, Enum):
    """The single action a detail view can offer."""

    PLAY = "play"
    REQUEST = "request"
    NONE = "none"


# States that keep the poller ticking. NOT_AVAILABLE is intentionally missing: it's shown
# but we don't keep hammering a service that already failed to source the title.
PENDING_STATES: frozenset[DisplayState] = frozenset(
    {
        DisplayState.SEARCHING,
        DisplayState.QUEUED,
        DisplayState.DOWNLOADING,
        DisplayState.PAUSED,
        DisplayState.PROCESSING,
        DisplayState.UNKNOWN,
    }
)

STATES_WITH_PROGRESS: frozenset[DisplayState] = frozenset(
    {DisplayState.DOWNLOADING, DisplayState.PAUSED}
)

_LABELS: dict[DisplayState, str] = {
    DisplayState.AVAILABLE: "Watch Now",
    DisplayState.DOWNLOADING: "Downloading",
    DisplayState.QUEUED: "Queued",
    DisplayState.PAUSED: "Paused",
    DisplayState.PROCESSING: "Processing",
    DisplayState.SEARCHING: "Searching",
    DisplayState.NOT_AVAILABLE: "Not Available",
    DisplayState.NOT_REQUESTED: "Request",
    DisplayState.UNKNOWN: "Checking",
}


def compute_progress(size_total: int, size_remaining: int) -> float:
    """Download progress in percent, clamped to [0, 100].

    A total of 0 means "nothing left to fetch" and is reported as 100.
    When 0 < remaining < total the result is kept strictly inside (0, 100)
    so a tiny remainder on a huge file never rounds to a finished download.

    Args:
        size_total: Total bytes of the download
        size_remaining: Bytes still to fetch

    Returns:
        Progress percentage
    """
    if size_total <= 0:
        return 100.0

    percent = (size_total - size_remaining) / size_total * 100
    percent = max(0.0, min(100.0, percent))

    if 0 < size_remaining < size_total:
        percent = min(max(percent, math.nextafter(0.0, 1.0)), math.nextafter(100.0, 0.0))
    return percent


@dataclass(frozen=True)
class ReconciledState:
    """Derived view state: display state, enabled action, optional progress.

    `stale` marks a state carried over from an earlier pass because the latest
    read failed. It's display-only; the state machine treats it like the
    underlying state.
    """

    display_state: DisplayState
    enabled_action: ActionKind = ActionKind.NONE
    progress_percent: float | None = None
    stale: bool = False

    @property
    def display_label(self) -> str:
        label = _LABELS[self.display_state]
        if self.progress_percent is not None and self.display_state in STATES_WITH_PROGRESS:
            return f"{label} {round(self.progress_percent)}%"
        return label

    @property
    def is_pending(self) -> bool:
        return self.display_state in PENDING_STATES

    def as_stale(self) -> "ReconciledState":
        return replace(self, stale=True)

    def with_progress(self, progress_percent: float | None) -> "ReconciledState":
        return replace(self, progress_percent=progress_percent)

    @classmethod
    def unknown(cls) -> "ReconciledState":
        return cls(DisplayState.UNKNOWN, ActionKind.NONE, None, stale=True)


__all__ = [
    "PENDING_STATES",
    "STATES_WITH_PROGRESS",
    "ActionKind",
    "DisplayState",
    "ReconciledState",
    "compute_progress",
]
