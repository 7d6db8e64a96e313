from __future__ import annotations

from typing import FrozenSet, Set

from .normalize import tokenize

STOP_WORDS: FrozenSet[str] = frozenset(
    {"and", "or", "the", "in", "at", "for", "a", "an", "of", "inc", "corp", "llc", "company"}
)


def significant_tokens(text: str) -> Set[str]:
    return {t for t in tokenize(text) if len(t) > 1 and t not in STOP_WORDS}


def is_relevant(title: str, role: str) -> bool:
    """Keep a listing iff its title shares at least one significant token with the role.

    Inclusion filter only; nothing is scored or ranked.
    """
    title_tokens = significant_tokens(title)
    if not title_tokens:
        return False
    return bool(title_tokens & significant_tokens(role))
