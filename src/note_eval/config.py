"""
Configuration for scoring and batch runs.

Thresholds, vocabularies, regex sets and composite weights are judgment
calls, so they are kept here as data and passed in explicitly.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Pattern, Tuple

from .context import NEGATION_PATTERNS
from .flatten import NO_DATA_SENTINEL
from .lexicon import SYMPTOM_KEYWORDS, load_symptom_lexicon
from .patterns import LAB_IMAGING_PATTERNS, VITAL_SIGN_PATTERNS
from .preprocess import normalize_text


DEFAULT_IMAGE_TO_REFERENCE: Dict[str, str] = {
    "medical_note_05": "5.json",
    "medical_note_06": "6.json",
    "medical_note_07": "7.json",
    "medical_note_08": "8.json",
    "medical_note_09": "9.json",
}

DEFAULT_IMAGE_DESCRIPTIONS: Dict[str, str] = {
    "medical_note_05.png": "Eczema Flare-up",
    "medical_note_06.png": "Migraine",
    "medical_note_07.png": "Viral URTI/Influenza",
    "medical_note_08.png": "UTI",
    "medical_note_09.png": "Gastroenteritis",
}


@dataclass(frozen=True)
class ScoringConfig:
    """Knobs used by the per-record metric evaluator."""
    fuzzy_threshold: float = 0.7
    diagnosis_token_overlap: float = 0.5
    null_walk_max_depth: int = 3
    symptom_keywords: Tuple[str, ...] = SYMPTOM_KEYWORDS
    negation_patterns: Tuple[Pattern, ...] = NEGATION_PATTERNS
    vital_patterns: Mapping[str, Tuple[Pattern, ...]] = field(
        default_factory=lambda: {k: tuple(v) for k, v in VITAL_SIGN_PATTERNS.items()}
    )
    lab_patterns: Tuple[Pattern, ...] = tuple(LAB_IMAGING_PATTERNS)
    labs_no_data_sentinel: str = NO_DATA_SENTINEL

    def __post_init__(self):
        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ValueError(f"fuzzy_threshold must be in [0, 1], got {self.fuzzy_threshold}")
        if not 0.0 <= self.diagnosis_token_overlap <= 1.0:
            raise ValueError(
                f"diagnosis_token_overlap must be in [0, 1], got {self.diagnosis_token_overlap}"
            )
        if self.null_walk_max_depth < 0:
            raise ValueError("null_walk_max_depth must be >= 0")


@dataclass(frozen=True)
class CompositeWeights:
    """Weights of the composite ranking score (before the error-rate penalty)."""
    schema_valid: float = 0.15
    section_completeness: float = 0.15
    highlight_recall: float = 0.25
    symptom_recall: float = 0.15
    diagnosis_grounded: float = 0.15
    rouge_l: float = 0.15

    def __post_init__(self):
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"Composite weight {f.name} must be non-negative")

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_SCORING_OVERRIDES = {
    "fuzzy_threshold",
    "diagnosis_token_overlap",
    "null_walk_max_depth",
    "symptom_keywords",
    "symptom_lexicon",
    "labs_no_data_sentinel",
}

_SCORING_NUMBERS = {
    "fuzzy_threshold": float,
    "diagnosis_token_overlap": float,
    "null_walk_max_depth": int,
}


def _coerce(key: str, value: Any, kind: type) -> Any:
    if isinstance(value, bool):
        raise ValueError(f"Config value {key} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Config value {key} must be a number, got {value!r}") from exc


@dataclass
class RunConfig:
    """
    Batch run configuration.

    Attributes:
        results_dir: Directory holding batch result JSON files
        reference_dir: Directory holding reference annotation files
        image_to_reference: Result file prefix (image id) -> reference file name
        image_descriptions: Optional labels for images in the report
        primary_prompt: Prompt variant used for cross-model ranking
        output_markdown: Markdown report path
        output_json: Aggregated data dump path
        output_csv: Per-record table path (None to skip)
        strict: Raise on malformed result files instead of skipping them
        scoring: Metric thresholds and vocabularies
        weights: Composite score weights
    """
    results_dir: Path = Path("data") / "batch-results"
    reference_dir: Path = Path(".")
    image_to_reference: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_IMAGE_TO_REFERENCE)
    )
    image_descriptions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_IMAGE_DESCRIPTIONS)
    )
    primary_prompt: str = "soap_enhanced"
    output_markdown: Path = Path("results.md")
    output_json: Path = Path("data") / "evaluation-results.json"
    output_csv: Path | None = Path("data") / "evaluation-results.csv"
    strict: bool = False
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    weights: CompositeWeights = field(default_factory=CompositeWeights)

    def __post_init__(self):
        self.results_dir = Path(self.results_dir)
        self.reference_dir = Path(self.reference_dir)
        self.output_markdown = Path(self.output_markdown)
        self.output_json = Path(self.output_json)
        if self.output_csv is not None:
            self.output_csv = Path(self.output_csv)

    @classmethod
    def from_dict(cls, d: Dict[str, Any], base_dir: Path | None = None) -> RunConfig:
        """
        Build a config from plain data (e.g. a JSON file).

        Relative paths are resolved against ``base_dir`` when given. Scoring
        overrides accept ``fuzzy_threshold``, ``diagnosis_token_overlap``,
        ``null_walk_max_depth``, ``symptom_keywords`` (list) and
        ``symptom_lexicon`` (path to a one-term-per-line file).
        """
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown run config keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key in ("results_dir", "reference_dir", "output_markdown", "output_json", "output_csv"):
            if key in d:
                value = d[key]
                if value is not None:
                    value = Path(value)
                    if base_dir is not None and not value.is_absolute():
                        value = base_dir / value
                kwargs[key] = value
        for key in ("image_to_reference", "image_descriptions"):
            if key in d:
                kwargs[key] = dict(d[key])
        if "primary_prompt" in d:
            kwargs["primary_prompt"] = str(d["primary_prompt"])
        if "strict" in d:
            kwargs["strict"] = bool(d["strict"])

        scoring = dict(d.get("scoring") or {})
        unknown = set(scoring) - _SCORING_OVERRIDES
        if unknown:
            raise ValueError(f"Unknown scoring config keys: {sorted(unknown)}")
        for key, kind in _SCORING_NUMBERS.items():
            if key in scoring:
                scoring[key] = _coerce(key, scoring[key], kind)
        lexicon_path = scoring.pop("symptom_lexicon", None)
        if lexicon_path is not None:
            lexicon_path = Path(lexicon_path)
            if base_dir is not None and not lexicon_path.is_absolute():
                lexicon_path = base_dir / lexicon_path
            scoring["symptom_keywords"] = load_symptom_lexicon(lexicon_path)
        elif "symptom_keywords" in scoring:
            scoring["symptom_keywords"] = tuple(
                t for t in (normalize_text(str(k)) for k in scoring["symptom_keywords"]) if t
            )
        if scoring:
            kwargs["scoring"] = replace(ScoringConfig(), **scoring)

        if d.get("weights"):
            weights = dict(d["weights"])
            unknown = set(weights) - {f.name for f in fields(CompositeWeights)}
            if unknown:
                raise ValueError(f"Unknown composite weight keys: {sorted(unknown)}")
            kwargs["weights"] = CompositeWeights(**{k: _coerce(k, v, float) for k, v in weights.items()})

        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Path | str) -> RunConfig:
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Run config must be a JSON object: {path}")
        return cls.from_dict(data, base_dir=path.parent)
