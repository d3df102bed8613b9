from __future__ import annotations
from pathlib import Path
from typing import List, Sequence, Tuple

from .preprocess import normalize_text

# Symptom keywords looked up as substrings of normalized text.
# Multi-word entries ("chest pain") are matched as phrases.
SYMPTOM_KEYWORDS: Tuple[str, ...] = (
    "pain", "ache", "headache", "fever", "cough", "vomit", "nausea",
    "diarrhea", "diarrhoea", "itchy", "sore", "bleeding", "discharge",
    "fatigue", "weak", "tired", "sweat", "hot", "cold", "rash",
    "shortness of breath", "sob", "chest pain", "abdominal", "crampy",
    "burning", "throbbing", "stiff", "numbness", "tingling",
    "blurred vision", "photophobia", "lethargy", "myalgia",
)


def load_symptom_lexicon(filepath: Path | str) -> Tuple[str, ...]:
    """
    Load a symptom lexicon file (one term per line).

    Terms are normalized the same way as the text they are matched against,
    so "Shortness-of-breath" and "shortness of breath" are the same entry.
    Blank lines, comments (#) and duplicates are skipped.

    Args:
        filepath: Path to the lexicon file

    Returns:
        Tuple of normalized terms in file order
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Lexicon file not found: {filepath}")

    terms: List[str] = []
    seen = set()
    with open(filepath, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            term = normalize_text(line)
            if term and term not in seen:
                seen.add(term)
                terms.append(term)

    if not terms:
        raise ValueError(f"Lexicon file has no terms: {filepath}")
    return tuple(terms)


def extract_symptoms(text: str, keywords: Sequence[str] = SYMPTOM_KEYWORDS) -> List[str]:
    """Return every vocabulary keyword found in the normalized text, in vocabulary order."""
    norm = normalize_text(text)
    if not norm:
        return []
    return [kw for kw in keywords if kw in norm]
