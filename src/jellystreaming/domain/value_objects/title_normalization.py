"""Title normalization for library matching.

Hey future me - this is the FALLBACK key only! Canonical ids (TMDB id in Jellyfin's
ProviderIds) always win. We only get here when the library item has no provider ids yet
(fresh import, metadata not refreshed), and then "Spider-Man: No Way Home" from TMDB has to
line up with "Spider-Man No Way Home" from Jellyfin.

The rules are deliberately tiny: lowercase, drop `:` and the three dash characters
(hyphen, en dash, em dash), collapse whitespace, trim. Don't add accent stripping or
article removal here without updating the matcher tests - the matcher's
"first word" rule depends on exactly this output.

Examples:
    >>> normalize_title("Spider-Man: No Way Home")
    'spiderman no way home'
    >>> normalize_title("  Mission:   Impossible – Fallout ")
    'mission impossible fallout'
"""

import re

# Characters removed outright (not replaced by a space)
STRIPPED_CHARACTERS: tuple[str, ...] = (":", "-", "–", "—")

_STRIP_RE = re.compile("[" + re.escape("".join(STRIPPED_CHARACTERS)) + "]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Convert a display title into a comparison key.

    Total and idempotent: never raises, and normalize_title(normalize_title(x))
    equals normalize_title(x).

    Args:
        title: Display title (may be empty or None-ish)

    Returns:
        Lowercased title without `: - – —`, whitespace collapsed and trimmed
    """
    if not title:
        return ""

    normalized = _STRIP_RE.sub("", title.lower())
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def first_word(title: str) -> str:
    """First word of the normalized title, or "" for an empty title."""
    normalized = normalize_title(title)
    if not normalized:
        return ""
    return normalized.split(" ", 1)[0]


__all__ = ["STRIPPED_CHARACTERS", "first_word", "normalize_title"]
