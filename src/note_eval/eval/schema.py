from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Tuple


@dataclass(frozen=True)
class ReferenceRecord:
    """Annotated reference consultation (ground truth)."""
    note: str
    highlights: Tuple[str, ...] = ()
    presenting_complaint: str = ""
    day: Optional[int] = None
    consultation: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "day": self.day,
            "consultation": self.consultation,
            "presenting_complaint": self.presenting_complaint,
            "note": self.note,
            "highlights": list(self.highlights),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ReferenceRecord:
        """Create from a reference annotation file."""
        if not isinstance(d.get("note"), str):
            raise ValueError("Reference record needs a 'note' string")
        highlights = d.get("highlights") or []
        if not isinstance(highlights, list):
            raise ValueError("Reference 'highlights' must be a list")
        return cls(
            note=d["note"],
            highlights=tuple(str(h) for h in highlights if h is not None),
            presenting_complaint=d.get("presenting_complaint") or "",
            day=d.get("day"),
            consultation=d.get("consultation"),
        )


@dataclass(frozen=True)
class EvaluationRecord:
    """Metrics for one (reference, candidate) pair."""
    image: str
    model: str
    model_name: str
    prompt: str

    # Structural
    schema_valid: bool
    section_completeness: float
    null_field_ratio: float

    # Content coverage
    highlight_recall: float
    highlights_covered: int
    highlights_total: int
    negation_errors: int
    negation_preservation_rate: float
    symptom_recall: float

    # Hallucination / grounding
    hallucinated_vitals: bool
    hallucinated_labs: bool
    diagnosis_grounded: bool

    # Text similarity
    rouge_l_score: float
    word_overlap: float

    # Meta
    latency_ms: float = 0.0
    has_error: bool = False
    error_message: Optional[str] = None
    source_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> EvaluationRecord:
        return cls(**d)


@dataclass
class AggregatedResults:
    """
    Evaluation records grouped by model, image and prompt.

    The groups are indexes over the same record objects held in ``all``.
    """
    by_model: Dict[str, List[EvaluationRecord]] = field(default_factory=dict)
    by_image: Dict[str, List[EvaluationRecord]] = field(default_factory=dict)
    by_prompt: Dict[str, List[EvaluationRecord]] = field(default_factory=dict)
    all: List[EvaluationRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        def group(g: Dict[str, List[EvaluationRecord]]) -> Dict[str, List[Dict[str, Any]]]:
            return {k: [r.to_dict() for r in v] for k, v in g.items()}

        return {
            "by_model": group(self.by_model),
            "by_image": group(self.by_image),
            "by_prompt": group(self.by_prompt),
            "all": [r.to_dict() for r in self.all],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> AggregatedResults:
        """
        Rebuild from a JSON dump.

        Only ``all`` is read; the groupings are rebuilt from it so they index
        the same record objects again.
        """
        from .aggregate import aggregate

        return aggregate(EvaluationRecord.from_dict(r) for r in d.get("all", []))
