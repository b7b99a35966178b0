"""Value objects for the reconciliation domain."""

from jellystreaming.domain.value_objects.reconciled_state import (
    PENDING_STATES,
    ActionKind,
    DisplayState,
    ReconciledState,
    compute_progress,
)
from jellystreaming.domain.value_objects.title_normalization import (
    first_word,
    normalize_title,
)

__all__ = [
    "PENDING_STATES",
    "ActionKind",
    "DisplayState",
    "ReconciledState",
    "compute_progress",
    "first_word",
    "normalize_title",
]
