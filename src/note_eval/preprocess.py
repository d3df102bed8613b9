from __future__ import annotations
import re
from typing import Iterable, List, Optional, Set

from unidecode import unidecode

_RE_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_RE_MULTISPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text for comparison.

    Transliterates to ASCII, lower-cases, replaces anything outside
    ``[a-z0-9\\s]`` with a space and collapses whitespace runs.

    Args:
        text: Raw text (``None`` is treated as empty)

    Returns:
        Normalized text, ``""`` for empty input
    """
    if not text:
        return ""
    text = unidecode(text).lower()
    text = _RE_NON_ALNUM.sub(" ", text)
    text = _RE_MULTISPACE.sub(" ", text)
    return text.strip()


def tokenize(text: Optional[str]) -> List[str]:
    """Split normalized text into word tokens."""
    return [t for t in normalize_text(text).split(" ") if t]


def token_set(text: Optional[str]) -> Set[str]:
    return set(tokenize(text))


def ngrams(tokens: Iterable[str], n: int) -> Set[str]:
    """Return the set of space-joined word n-grams of a token sequence."""
    if n < 1:
        raise ValueError(f"n-gram order must be >= 1, got {n}")
    seq = list(tokens)
    return {" ".join(seq[i:i + n]) for i in range(len(seq) - n + 1)}
