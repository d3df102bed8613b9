"""
Per-record metrics: one structured note against one reference consultation.

Every function here is pure; the only entry point that builds a full
record is ``evaluate_candidate``.
"""
from __future__ import annotations
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from ..config import ScoringConfig
from ..context import extract_negations
from ..flatten import flatten_note
from ..lexicon import extract_symptoms
from ..patterns import IMPRESSION_RE, any_match
from ..preprocess import normalize_text, token_set, tokenize
from ..schema import SECTION_NAMES, CandidateOutput, StructuredNote
from .matching import fuzzy_contains, jaccard, rouge_l
from .schema import EvaluationRecord, ReferenceRecord

DEFAULT_CONFIG = ScoringConfig()

NO_DATA_VALUES = ("Pending/None mentioned", "None")


# ----------------------------
# Structure
# ----------------------------

def schema_valid(note: Optional[StructuredNote]) -> bool:
    """All four SOAP sections are present as keys (content not checked)."""
    if note is None:
        return False
    return all(note.has_section(s) for s in SECTION_NAMES)


def section_completeness(note: Optional[StructuredNote]) -> float:
    """Fraction of SOAP sections that are present and non-empty objects."""
    if note is None:
        return 0.0
    tree = note.raw_tree()
    filled = sum(1 for s in SECTION_NAMES if isinstance(tree.get(s), dict) and tree[s])
    return filled / len(SECTION_NAMES)


def null_field_ratio(note: Union[StructuredNote, Dict[str, Any], None], max_depth: int = 3) -> float:
    """
    Share of null or empty fields in a note.

    Scalars count once and are null when None or ""; lists count once and
    are null when empty. Objects are walked down to ``max_depth``. Pass the
    decoded JSON object to score what the model actually wrote; a parsed
    note is walked after coercion.
    """
    if note is None:
        return 1.0
    tree = note.raw_tree() if isinstance(note, StructuredNote) else note

    total = 0
    empty = 0

    def walk(value: Any, depth: int) -> None:
        nonlocal total, empty
        if depth > max_depth:
            return
        if isinstance(value, dict):
            for child in value.values():
                walk(child, depth + 1)
            return
        total += 1
        if isinstance(value, list):
            if not value:
                empty += 1
        elif value is None or value == "":
            empty += 1

    walk(tree, 0)
    return empty / total if total > 0 else 0.0


# ----------------------------
# Content coverage
# ----------------------------

def highlight_recall(
    note: Optional[StructuredNote],
    highlights: Sequence[str],
    config: ScoringConfig = DEFAULT_CONFIG,
) -> Tuple[float, int, int]:
    """
    Fraction of reference highlight phrases found in the note.

    Returns:
        (recall, covered, total); recall is 0.0 with no note or no highlights
    """
    total = len(highlights)
    if note is None or total == 0:
        return 0.0, 0, total

    text = flatten_note(note, config.labs_no_data_sentinel)
    covered = sum(1 for h in highlights if fuzzy_contains(text, h, config.fuzzy_threshold))
    return covered / total, covered, total


def negation_preservation(
    note: Optional[StructuredNote],
    reference_note: str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> Tuple[int, float]:
    """
    Check that negated findings of the reference ("denies fever") survive.

    Returns:
        (errors, rate); a reference without negations is preserved vacuously
    """
    negations = extract_negations(reference_note, config.negation_patterns)
    if not negations or note is None:
        return 0, 1.0

    text = flatten_note(note, config.labs_no_data_sentinel)
    preserved = sum(1 for n in negations if fuzzy_contains(text, n, config.fuzzy_threshold))
    return len(negations) - preserved, preserved / len(negations)


def symptom_recall(
    note: Optional[StructuredNote],
    reference_note: str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> float:
    ref_symptoms = extract_symptoms(reference_note, config.symptom_keywords)
    if not ref_symptoms or note is None:
        # No detectable symptoms in the reference: any note gets full credit
        return 1.0 if note is not None else 0.0

    found = set(extract_symptoms(flatten_note(note, config.labs_no_data_sentinel), config.symptom_keywords))
    matched = sum(1 for s in ref_symptoms if s in found)
    return matched / len(ref_symptoms)


# ----------------------------
# Hallucination / grounding
# ----------------------------

def hallucinated_vitals(
    note: Optional[StructuredNote],
    reference_note: str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> bool:
    """
    Note reports a vital sign the reference gives no evidence for.

    Each reported vital is checked against its own pattern group, so a
    reference that only states a blood pressure does not support a heart rate.
    """
    if note is None or note.objective is None or note.objective.vitals is None:
        return False
    for name in note.objective.vitals.reported():
        patterns = config.vital_patterns.get(name, ())
        if not any_match(patterns, reference_note):
            return True
    return False


def _labs_reported(labs: Optional[str], sentinel: str) -> bool:
    if not labs:
        return False
    if labs in (sentinel,) + NO_DATA_VALUES:
        return False
    return "none" not in labs.lower()


def hallucinated_labs(
    note: Optional[StructuredNote],
    reference_note: str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> bool:
    """Note reports labs/imaging while the reference mentions none."""
    if note is None or note.objective is None:
        return False
    if not _labs_reported(note.objective.labs_imaging, config.labs_no_data_sentinel):
        return False
    return not any_match(config.lab_patterns, reference_note)


def impression(reference_note: str) -> str:
    """Normalized text after the clinician's "Imp:" marker, or ""."""
    m = IMPRESSION_RE.search(reference_note or "")
    return normalize_text(m.group(1)) if m else ""


def diagnosis_grounded(
    note: Optional[StructuredNote],
    reference: ReferenceRecord,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> bool:
    """
    Primary diagnosis traces back to the reference.

    Grounded when it overlaps the "Imp:" line as a substring (either way),
    covers enough of the impression's tokens, or fuzzy-matches a highlight.
    """
    if note is None or note.assessment is None or note.assessment.primary_diagnosis is None:
        return False
    value = note.assessment.primary_diagnosis.value
    diagnosis = normalize_text(value)
    if not diagnosis:
        return False

    ref_imp = impression(reference.note)
    if ref_imp:
        if ref_imp in diagnosis or diagnosis in ref_imp:
            return True
        diag_tokens = set(tokenize(diagnosis))
        imp_tokens = tokenize(ref_imp)
        overlap = sum(1 for t in imp_tokens if t in diag_tokens)
        if overlap >= len(imp_tokens) * config.diagnosis_token_overlap:
            return True

    for highlight in reference.highlights:
        if not normalize_text(highlight):
            continue
        if (fuzzy_contains(diagnosis, highlight, config.fuzzy_threshold)
                or fuzzy_contains(highlight, diagnosis, config.fuzzy_threshold)):
            return True
    return False


# ----------------------------
# Text similarity
# ----------------------------

def text_similarity(note: Optional[StructuredNote], reference_note: str,
                    config: ScoringConfig = DEFAULT_CONFIG) -> Tuple[float, float]:
    """(ROUGE-L F1, word-set Jaccard) of reference note vs flattened note."""
    if note is None:
        return 0.0, 0.0
    text = flatten_note(note, config.labs_no_data_sentinel)
    return rouge_l(reference_note, text), jaccard(token_set(reference_note), token_set(text))


# ----------------------------
# Record
# ----------------------------

def _failed_record(candidate: CandidateOutput, reference: ReferenceRecord,
                   source_file: Optional[str]) -> EvaluationRecord:
    meta = candidate.metadata
    return EvaluationRecord(
        image=meta.image,
        model=meta.model,
        model_name=meta.model_name,
        prompt=meta.prompt,
        schema_valid=False,
        section_completeness=0.0,
        null_field_ratio=1.0,
        highlight_recall=0.0,
        highlights_covered=0,
        highlights_total=len(reference.highlights),
        negation_errors=0,
        negation_preservation_rate=0.0,
        symptom_recall=0.0,
        hallucinated_vitals=False,
        hallucinated_labs=False,
        diagnosis_grounded=False,
        rouge_l_score=0.0,
        word_overlap=0.0,
        latency_ms=meta.latency_ms or 0.0,
        has_error=True,
        error_message=meta.error or "No output",
        source_file=source_file,
    )


def evaluate_candidate(
    reference: ReferenceRecord,
    candidate: CandidateOutput,
    config: ScoringConfig = DEFAULT_CONFIG,
    source_file: Optional[str] = None,
) -> EvaluationRecord:
    """
    Score one candidate output against its reference.

    Failed generations (error set or no output) yield a record with
    ``has_error=True`` and every quality metric at its worst value.

    Args:
        reference: Annotated reference consultation
        candidate: Model output with metadata
        config: Thresholds and vocabularies
        source_file: Result file name, kept for traceability

    Returns:
        EvaluationRecord
    """
    if candidate.failed:
        return _failed_record(candidate, reference, source_file)

    note = candidate.note
    meta = candidate.metadata
    recall, covered, total = highlight_recall(note, reference.highlights, config)
    neg_errors, neg_rate = negation_preservation(note, reference.note, config)
    rouge, overlap = text_similarity(note, reference.note, config)

    return EvaluationRecord(
        image=meta.image,
        model=meta.model,
        model_name=meta.model_name,
        prompt=meta.prompt,
        schema_valid=schema_valid(note),
        section_completeness=section_completeness(note),
        null_field_ratio=null_field_ratio(candidate.raw_note, config.null_walk_max_depth),
        highlight_recall=recall,
        highlights_covered=covered,
        highlights_total=total,
        negation_errors=neg_errors,
        negation_preservation_rate=neg_rate,
        symptom_recall=symptom_recall(note, reference.note, config),
        hallucinated_vitals=hallucinated_vitals(note, reference.note, config),
        hallucinated_labs=hallucinated_labs(note, reference.note, config),
        diagnosis_grounded=diagnosis_grounded(note, reference, config),
        rouge_l_score=rouge,
        word_overlap=overlap,
        latency_ms=meta.latency_ms or 0.0,
        has_error=False,
        error_message=None,
        source_file=source_file,
    )
