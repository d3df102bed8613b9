# context.py
# Rule-based negation extraction (EN clinical)
# - Trigger word followed by one or two words
# - Matches are returned verbatim, in order of appearance
#
# Usage:
#   negations = extract_negations("Denies fever. No vomiting or diarrhoea.")

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple


# ----------------------------
# Triggers
# ----------------------------

_OBJECT = r"\s+\w+(?:\s+\w+)?"

NEG_TRIGGERS = [
    r"\bno" + _OBJECT,
    r"\bnil" + _OBJECT,
    r"\bdenies" + _OBJECT,
    r"\bwithout" + _OBJECT,
    r"\bnegative\s+for" + _OBJECT,
]


def _compile_many(patterns: List[str]) -> List[Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


NEGATION_PATTERNS: Tuple[Pattern, ...] = tuple(_compile_many(NEG_TRIGGERS))


# ----------------------------
# Public API
# ----------------------------

def extract_negations(text: str, patterns: Sequence[Pattern] = NEGATION_PATTERNS) -> List[str]:
    """
    Extract negated phrases ("no rash", "denies fever") from free text.

    Args:
        text: narrative text
        patterns: negation patterns, each matching trigger + object words

    Returns:
        Matched phrases verbatim, duplicates kept, ordered by position
    """
    if not text:
        return []

    found: List[Tuple[int, int, str]] = []
    for order, pat in enumerate(patterns):
        for m in pat.finditer(text):
            found.append((m.start(), order, m.group(0)))

    found.sort(key=lambda x: (x[0], x[1]))
    return [phrase for _, _, phrase in found]
