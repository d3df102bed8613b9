"""
Text similarity primitives for comparing notes.

All functions work on normalized word tokens (see ``preprocess.tokenize``).
"""
from __future__ import annotations
from typing import AbstractSet, Sequence

from rapidfuzz.distance import LCSseq

from ..preprocess import ngrams, normalize_text, tokenize

DEFAULT_FUZZY_THRESHOLD = 0.7


def jaccard(set1: AbstractSet[str], set2: AbstractSet[str]) -> float:
    """
    Jaccard similarity of two sets.

    Two empty sets agree vacuously and score 1.0.
    """
    if not set1 and not set2:
        return 1.0
    return len(set1 & set2) / len(set1 | set2)


def lcs_length(a: Sequence[str], b: Sequence[str]) -> int:
    """Length of the longest common subsequence of two token sequences."""
    if not a or not b:
        return 0
    # Token lists, so LCS is over words rather than characters
    return int(LCSseq.similarity(list(a), list(b)))


def rouge_l(reference: str, candidate: str) -> float:
    """
    ROUGE-L F1 between two texts.

    Args:
        reference: Reference text
        candidate: Generated text

    Returns:
        Harmonic mean of LCS precision and recall, 0.0 if either text is empty
    """
    ref_tokens = tokenize(reference)
    cand_tokens = tokenize(candidate)
    if not ref_tokens or not cand_tokens:
        return 0.0

    lcs = lcs_length(ref_tokens, cand_tokens)
    precision = lcs / len(cand_tokens)
    recall = lcs / len(ref_tokens)
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def fuzzy_contains(text: str, phrase: str, threshold: float = DEFAULT_FUZZY_THRESHOLD) -> bool:
    """
    Check whether a phrase occurs in text, tolerating OCR/paraphrase noise.

    Exact containment of the normalized phrase wins; otherwise the phrase
    matches when at least ``threshold`` of its tokens appear anywhere in text.
    """
    norm_text = normalize_text(text)
    norm_phrase = normalize_text(phrase)
    if norm_phrase in norm_text:
        return True

    phrase_tokens = norm_phrase.split(" ")
    text_tokens = set(norm_text.split(" "))
    hits = sum(1 for t in phrase_tokens if t in text_tokens)
    return hits >= len(phrase_tokens) * threshold


def ngram_overlap(reference: str, candidate: str, n: int = 2) -> float:
    """Jaccard similarity over word n-grams."""
    return jaccard(ngrams(tokenize(reference), n), ngrams(tokenize(candidate), n))
