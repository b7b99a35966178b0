"""Identity Matcher - find the library entry for a metadata title.

Hey future me - this is an ordered list of (predicate, selector) rules, evaluated top to
bottom with early exit. Add or reorder rules by editing DEFAULT_RULES; every rule can be
tested on its own through `IdentityMatcher(rules=[rule])`.

MATCHING PRIORITY:
1. Canonical id (library ProviderIds[provider] == TMDB id, string-compared)
2. Year known: exact title (case-insensitive) + year
3. Year known: normalized title + year
4. Year known: year + candidate title contains the reference's first word
5. Year unknown: exact title (case-insensitive)
6. Year unknown: normalized title

Cascade exhausted -> None. ALWAYS None, at every call site. We never fall back to
"first candidate", because a wrong PLAY button is worse than a REQUEST button.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from jellystreaming.domain.entities import LibraryEntry, TitleReference
from jellystreaming.domain.value_objects import first_word, normalize_title

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "Tmdb"

Predicate = Callable[[TitleReference, LibraryEntry, str], bool]
Selector = Callable[[list[LibraryEntry]], LibraryEntry | None]


def select_first(hits: list[LibraryEntry]) -> LibraryEntry | None:
    """Pick the first hit. Only safe where every hit is the same title."""
    return hits[0] if hits else None


def select_unique(hits: list[LibraryEntry]) -> LibraryEntry | None:
    """Pick the hit only when it is the only one; ambiguity falls through."""
    return hits[0] if len(hits) == 1 else None


@dataclass(frozen=True)
class MatchRule:
    """One step of the matching cascade.

    Attributes:
        name: Short rule name (shows up in debug logs)
        applies: Whether the rule is evaluated at all for this reference
        predicate: Candidate filter
        select: Turns the filtered candidates into a winner (or None to fall through)
    """

    name: str
    applies: Callable[[TitleReference], bool]
    predicate: Predicate
    select: Selector = select_unique


def _year_known(ref: TitleReference) -> bool:
    return ref.release_year is not None


def _year_unknown(ref: TitleReference) -> bool:
    return ref.release_year is None


def _always(ref: TitleReference) -> bool:
    return True


def _canonical_id(ref: TitleReference, candidate: LibraryEntry, provider: str) -> bool:
    value = candidate.external_ids.get(provider)
    return value is not None and str(value).strip() == str(ref.external_id)


def _same_year(ref: TitleReference, candidate: LibraryEntry) -> bool:
    return candidate.production_year == ref.release_year


def _exact_title(ref: TitleReference, candidate: LibraryEntry) -> bool:
    return candidate.display_title.lower() == ref.display_title.lower()


def _normalized_title(ref: TitleReference, candidate: LibraryEntry) -> bool:
    return normalize_title(candidate.display_title) == normalize_title(ref.display_title)


def _contains_first_word(ref: TitleReference, candidate: LibraryEntry) -> bool:
    word = first_word(ref.display_title)
    # An empty first word is "contained" in everything; that's not a match
    return bool(word) and word in normalize_title(candidate.display_title)


DEFAULT_RULES: tuple[MatchRule, ...] = (
    MatchRule(
        "canonical_id",
        _always,
        _canonical_id,
        # Duplicates carrying the same canonical id are the same title
        select_first,
    ),
    MatchRule(
        "exact_title_and_year",
        _year_known,
        lambda ref, c, _p: _exact_title(ref, c) and _same_year(ref, c),
    ),
    MatchRule(
        "normalized_title_and_year",
        _year_known,
        lambda ref, c, _p: _normalized_title(ref, c) and _same_year(ref, c),
    ),
    MatchRule(
        "year_and_first_word",
        _year_known,
        lambda ref, c, _p: _same_year(ref, c) and _contains_first_word(ref, c),
    ),
    MatchRule(
        "exact_title",
        _year_unknown,
        lambda ref, c, _p: _exact_title(ref, c),
    ),
    MatchRule(
        "normalized_title",
        _year_unknown,
        lambda ref, c, _p: _normalized_title(ref, c),
    ),
)


class IdentityMatcher:
    """Deterministic, total matcher: returns one entry or None, never raises."""

    def __init__(
        self,
        rules: Sequence[MatchRule] = DEFAULT_RULES,
        provider: str = DEFAULT_PROVIDER,
    ) -> None:
        self.rules = tuple(rules)
        self.provider = provider

    def match(
        self, ref: TitleReference, candidates: Iterable[LibraryEntry]
    ) -> LibraryEntry | None:
        """Select the best library entry for a reference.

        Args:
            ref: Title from the metadata provider
            candidates: Library entries to choose from

        Returns:
            The matched entry, or None when no rule resolves
        """
        pool = list(candidates)
        if not pool:
            return None

        for rule in self.rules:
            if not rule.applies(ref):
                continue
            hits = [c for c in pool if rule.predicate(ref, c, self.provider)]
            winner = rule.select(hits)
            if winner is not None:
                logger.debug(
                    "Matched '%s' to library item %s via %s",
                    ref.display_title,
                    winner.library_id,
                    rule.name,
                )
                return winner
            if hits:
                logger.debug(
                    "Rule %s ambiguous for '%s' (%d candidates), falling through",
                    rule.name,
                    ref.display_title,
                    len(hits),
                )

        return None


_default_matcher = IdentityMatcher()


def match_title(
    ref: TitleReference, candidates: Iterable[LibraryEntry]
) -> LibraryEntry | None:
    """Match with the default rule cascade and provider."""
    return _default_matcher.match(ref, candidates)


__all__ = [
    "DEFAULT_PROVIDER",
    "DEFAULT_RULES",
    "IdentityMatcher",
    "MatchRule",
    "match_title",
    "select_first",
    "select_unique",
]
