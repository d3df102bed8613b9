"""
Grouping, per-model summaries and composite ranking.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Iterable, List, Optional

from ..config import CompositeWeights
from .schema import AggregatedResults, EvaluationRecord


@dataclass(frozen=True)
class ModelSummary:
    """Per-model averages over one prompt variant."""
    model: str
    schema_valid_rate: float
    avg_section_completeness: float
    avg_highlight_recall: float
    avg_symptom_recall: float
    avg_negation_preservation: float
    diagnosis_grounded_rate: float
    avg_rouge_l: float
    error_rate: float
    avg_latency_ms: float
    count: int
    valid_count: int

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ModelRanking:
    model: str
    composite_score: float
    summary: ModelSummary

    def to_dict(self):
        return {
            "model": self.model,
            "composite_score": self.composite_score,
            "summary": self.summary.to_dict(),
        }


def aggregate(records: Iterable[EvaluationRecord]) -> AggregatedResults:
    """
    Group a complete set of records by model, image and prompt.

    Groups keep first-seen key order and reference the same record objects.
    """
    results = AggregatedResults()
    for record in records:
        results.all.append(record)
        results.by_model.setdefault(record.model, []).append(record)
        results.by_image.setdefault(record.image, []).append(record)
        results.by_prompt.setdefault(record.prompt, []).append(record)
    return results


def _mean(records: List[EvaluationRecord], value: Callable[[EvaluationRecord], float]) -> float:
    return sum(value(r) for r in records) / max(len(records), 1)


def _rate(records: List[EvaluationRecord], flag: Callable[[EvaluationRecord], bool], denominator: int) -> float:
    return sum(1 for r in records if flag(r)) / max(denominator, 1)


def summarize_model(model: str, records: List[EvaluationRecord],
                    prompt: Optional[str] = None) -> ModelSummary:
    """
    Summarize one model's records.

    Averages use non-error records only; rates (schema valid, diagnosis
    grounded, error) use every record so failures count against the model.

    Args:
        model: Model id
        records: That model's records
        prompt: Restrict to this prompt variant (None for all)

    Returns:
        ModelSummary
    """
    scoped = [r for r in records if prompt is None or r.prompt == prompt]
    valid = [r for r in scoped if not r.has_error]
    n = len(scoped)

    return ModelSummary(
        model=model,
        schema_valid_rate=_rate(valid, lambda r: r.schema_valid, n),
        avg_section_completeness=_mean(valid, lambda r: r.section_completeness),
        avg_highlight_recall=_mean(valid, lambda r: r.highlight_recall),
        avg_symptom_recall=_mean(valid, lambda r: r.symptom_recall),
        avg_negation_preservation=_mean(valid, lambda r: r.negation_preservation_rate),
        diagnosis_grounded_rate=_rate(valid, lambda r: r.diagnosis_grounded, n),
        avg_rouge_l=_mean(valid, lambda r: r.rouge_l_score),
        error_rate=_rate(scoped, lambda r: r.has_error, n),
        avg_latency_ms=_mean(valid, lambda r: r.latency_ms),
        count=n,
        valid_count=len(valid),
    )


def summarize_models(results: AggregatedResults, prompt: Optional[str]) -> Dict[str, ModelSummary]:
    return {model: summarize_model(model, recs, prompt) for model, recs in results.by_model.items()}


def composite_score(summary: ModelSummary, weights: CompositeWeights = CompositeWeights()) -> float:
    """
    Weighted quality score penalized by the error rate.

    (w1*schema + w2*completeness + w3*highlight + w4*symptom
     + w5*diagnosis + w6*rougeL) * (1 - errorRate)
    """
    quality = (
        weights.schema_valid * summary.schema_valid_rate
        + weights.section_completeness * summary.avg_section_completeness
        + weights.highlight_recall * summary.avg_highlight_recall
        + weights.symptom_recall * summary.avg_symptom_recall
        + weights.diagnosis_grounded * summary.diagnosis_grounded_rate
        + weights.rouge_l * summary.avg_rouge_l
    )
    return quality * (1 - summary.error_rate)


def rank_models(
    results: AggregatedResults,
    primary_prompt: str,
    weights: CompositeWeights = CompositeWeights(),
) -> List[ModelRanking]:
    """
    Rank models by composite score on the primary prompt variant.

    Other prompt variants may use a different output schema, so they are
    left out of cross-model ranking. Ties keep input order.
    """
    rankings = [
        ModelRanking(model=model, composite_score=composite_score(summary, weights), summary=summary)
        for model, summary in summarize_models(results, primary_prompt).items()
    ]
    return sorted(rankings, key=lambda r: r.composite_score, reverse=True)


def best_by(summaries: Dict[str, ModelSummary], attribute: str) -> Optional[ModelSummary]:
    """Summary with the highest value of ``attribute`` (first wins on ties)."""
    best = None
    for summary in summaries.values():
        if best is None or getattr(summary, attribute) > getattr(best, attribute):
            best = summary
    return best


@dataclass(frozen=True)
class HallucinationCount:
    vitals: int
    labs: int
    valid_runs: int


def hallucination_counts(results: AggregatedResults) -> Dict[str, HallucinationCount]:
    """Hallucinated vitals/labs per model over non-error records."""
    counts = {}
    for model, records in results.by_model.items():
        valid = [r for r in records if not r.has_error]
        counts[model] = HallucinationCount(
            vitals=sum(1 for r in valid if r.hallucinated_vitals),
            labs=sum(1 for r in valid if r.hallucinated_labs),
            valid_runs=len(valid),
        )
    return counts
