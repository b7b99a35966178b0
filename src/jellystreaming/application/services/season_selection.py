"""Season selection helpers for series requests.

Rules:
- Season 0 (specials) is never switched ON by us.
- An empty selection on a NEW series means "every regular season".
- Requesting more seasons is a union: a monitored season stays monitored.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from jellystreaming.domain.entities import AcquisitionRecord


class SeasonAvailability(str, Enum):
    """Per-season status shown in the season picker."""

    DOWNLOADED = "downloaded"
    MONITORED = "monitored"
    NOT_MONITORED = "not_monitored"


@dataclass(frozen=True)
class SeasonStatus:
    season_number: int
    availability: SeasonAvailability
    episode_file_count: int = 0


def _wants(season_number: int, selected: set[int]) -> bool:
    if season_number == 0:
        return False
    return not selected or season_number in selected


def build_new_series_seasons(
    season_numbers: Iterable[int], selected: Iterable[int] = ()
) -> list[dict[str, Any]]:
    """Season list for adding a series from provider season numbers.

    Specials are left out entirely.
    """
    chosen = set(selected)
    return [
        {"seasonNumber": number, "monitored": _wants(number, chosen)}
        for number in sorted(set(season_numbers))
        if number > 0
    ]


def apply_selection_to_lookup(
    seasons: Iterable[dict[str, Any]], selected: Iterable[int] = ()
) -> list[dict[str, Any]]:
    """Set monitored flags on a lookup result's own season list."""
    chosen = set(selected)
    return [
        {**season, "monitored": _wants(int(season.get("seasonNumber", 0)), chosen)}
        for season in seasons
    ]


def merge_monitored_seasons(
    seasons: Iterable[dict[str, Any]], selected: Iterable[int]
) -> list[dict[str, Any]]:
    """Monitor the union of currently monitored and newly selected seasons."""
    chosen = {number for number in selected if number > 0}
    return [
        {
            **season,
            "monitored": bool(season.get("monitored"))
            or int(season.get("seasonNumber", 0)) in chosen,
        }
        for season in seasons
    ]


def season_statuses(record: AcquisitionRecord) -> list[SeasonStatus]:
    """Status of every regular season of a tracked series."""
    statuses = []
    for season in sorted(record.seasons, key=lambda s: s.season_number):
        if season.is_special:
            continue
        if season.episode_file_count > 0:
            availability = SeasonAvailability.DOWNLOADED
        elif season.monitored:
            availability = SeasonAvailability.MONITORED
        else:
            availability = SeasonAvailability.NOT_MONITORED
        statuses.append(
            SeasonStatus(season.season_number, availability, season.episode_file_count)
        )
    return statuses


__all__ = [
    "SeasonAvailability",
    "SeasonStatus",
    "apply_selection_to_lookup",
    "build_new_series_seasons",
    "merge_monitored_seasons",
    "season_statuses",
]
