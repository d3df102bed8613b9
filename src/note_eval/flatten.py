"""
Projection of a structured note onto plain text for comparison.

This is not a validator: missing or null fields are skipped silently.
"""
from __future__ import annotations
from typing import List, Optional

from .schema import SECTION_NAMES, Diagnosis, PhysicalExam, StructuredNote

NO_DATA_SENTINEL = "Pending/None mentioned"


def _subjective_parts(note: StructuredNote) -> List[str]:
    s = note.subjective
    if s is None:
        return []
    parts = []
    if s.chief_complaint:
        parts.append(s.chief_complaint)
    if s.hpi:
        parts.append(s.hpi)
    if s.symptoms is not None:
        parts.append(" ".join(s.symptoms))
    if s.patient_history:
        parts.append(s.patient_history)
    return parts


def _objective_parts(note: StructuredNote, no_data_sentinel: str) -> List[str]:
    o = note.objective
    if o is None:
        return []
    parts = []
    exam = o.physical_exam
    if isinstance(exam, str):
        if exam:
            parts.append(exam)
    elif isinstance(exam, PhysicalExam):
        if exam.findings:
            parts.append(" ".join(exam.findings))
        if exam.text_raw:
            parts.append(exam.text_raw)
    if o.labs_imaging and o.labs_imaging != no_data_sentinel:
        parts.append(o.labs_imaging)
    return parts


def _assessment_parts(note: StructuredNote) -> List[str]:
    a = note.assessment
    if a is None:
        return []
    parts = []
    if a.primary_diagnosis is not None and a.primary_diagnosis.value:
        parts.append(a.primary_diagnosis.value)
    for d in a.differential_diagnosis or []:
        if isinstance(d, str):
            if d:
                parts.append(d)
        elif isinstance(d, Diagnosis) and d.value:
            parts.append(d.value)
    return parts


def _plan_parts(note: StructuredNote) -> List[str]:
    p = note.plan
    if p is None:
        return []
    parts = []
    for m in p.medications or []:
        if m.drug:
            parts.append(m.drug)
        if m.dosage:
            parts.append(m.dosage)
        if m.sig:
            parts.append(m.sig)
    if p.procedures_ordered is not None:
        parts.append(" ".join(p.procedures_ordered))
    if p.patient_instructions:
        parts.append(p.patient_instructions)
    return parts


def section_text(note: Optional[StructuredNote], section: str,
                 no_data_sentinel: str = NO_DATA_SENTINEL) -> str:
    """Flattened text of a single SOAP section."""
    if section not in SECTION_NAMES:
        raise ValueError(f"Unknown SOAP section: {section!r}")
    if note is None:
        return ""
    if section == "subjective":
        parts = _subjective_parts(note)
    elif section == "objective":
        parts = _objective_parts(note, no_data_sentinel)
    elif section == "assessment":
        parts = _assessment_parts(note)
    else:
        parts = _plan_parts(note)
    return " ".join(parts)


def flatten_note(note: Optional[StructuredNote], no_data_sentinel: str = NO_DATA_SENTINEL) -> str:
    """
    Concatenate every text-bearing field of a note.

    Order is subjective, objective, assessment, plan. Vital signs are not
    included; they are checked separately for hallucination.

    Args:
        note: Structured note (``None`` gives ``""``)
        no_data_sentinel: labs/imaging value meaning "nothing reported"

    Returns:
        Space-joined text
    """
    if note is None:
        return ""
    parts: List[str] = []
    parts.extend(_subjective_parts(note))
    parts.extend(_objective_parts(note, no_data_sentinel))
    parts.extend(_assessment_parts(note))
    parts.extend(_plan_parts(note))
    return " ".join(parts)
