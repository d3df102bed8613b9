"""
Evaluation report rendering.

Renders aggregated results as a Markdown document, a JSON dump and a
per-record CSV table.

Usage:
    # Re-render the Markdown report from a saved JSON dump:
    note-eval-report --data data/evaluation-results.json --out results.md
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from dataclasses import fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config import CompositeWeights, RunConfig
from .aggregate import (
    ModelRanking,
    best_by,
    hallucination_counts,
    rank_models,
    summarize_model,
    summarize_models,
)
from .schema import AggregatedResults, EvaluationRecord

LOG = logging.getLogger(__name__)

LOW_RECALL_THRESHOLD = 0.6

METRIC_DEFINITIONS = [
    ("Schema Valid", "All four SOAP sections present as keys", "true/false"),
    ("Section Completeness", "Share of SOAP sections present and non-empty", "0-1"),
    ("Null Field Ratio", "Share of null/empty fields (walked to depth 3)", "0-1"),
    ("Highlight Recall", "Share of reference key phrases found in the output (70% token fallback)", "0-100%"),
    ("Symptom Recall", "Share of reference symptom keywords captured (1 if the reference has none)", "0-100%"),
    ("Negation Preservation", "Share of reference negations (no X, denies Y) kept", "0-100%"),
    ("Diagnosis Grounded", "Primary diagnosis matches the reference Imp: line or a highlight", "true/false"),
    ("ROUGE-L", "LCS-based F1 between reference note and flattened output", "0-1"),
    ("Word Overlap", "Jaccard similarity of word sets", "0-1"),
    ("Hallucinated Vitals", "Vital sign reported without evidence in the reference", "true/false"),
    ("Hallucinated Labs", "Labs/imaging reported while the reference mentions none", "true/false"),
]


# ----------------------------
# Formatting
# ----------------------------

def fmt_pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def fmt_score(value: float) -> str:
    return f"{value:.3f}"


def fmt_flag(value: bool) -> str:
    return "yes" if value else "no"


def _cell(value: Any) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def _table(header: List[str], rows: List[List[Any]]) -> List[str]:
    lines = [
        "| " + " | ".join(header) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in header) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(c) for c in row) + " |")
    lines.append("")
    return lines


# ----------------------------
# Tabular views
# ----------------------------

RECORD_COLUMNS = [f.name for f in fields(EvaluationRecord)]


def records_frame(results: AggregatedResults) -> pd.DataFrame:
    """One row per evaluation record."""
    return pd.DataFrame([r.to_dict() for r in results.all], columns=RECORD_COLUMNS)


def latency_frame(results: AggregatedResults) -> pd.DataFrame:
    """
    Latency in seconds per model (avg/min/max).

    Only non-error records with a positive latency count. Models without any
    such record have NaN statistics. Rows follow first-seen model order.
    """
    df = records_frame(results)
    models = list(results.by_model)
    timed = df[(~df["has_error"].astype(bool)) & (df["latency_ms"] > 0)]
    if timed.empty:
        stats = pd.DataFrame(columns=["avg_s", "min_s", "max_s"], dtype=float)
    else:
        seconds = timed["latency_ms"].astype(float) / 1000.0
        stats = seconds.groupby(timed["model"], sort=False).agg(["mean", "min", "max"])
        stats.columns = ["avg_s", "min_s", "max_s"]
    return stats.reindex(models)


def write_frame(frame: pd.DataFrame, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def write_records_csv(results: AggregatedResults, path: Path | str) -> Path:
    return write_frame(records_frame(results), path)


# ----------------------------
# Markdown sections
# ----------------------------

def _executive_summary(rankings: List[ModelRanking], summaries) -> List[str]:
    lines = ["## Executive Summary", "", "### Top Performing Models (Composite Score)", ""]
    if not rankings:
        lines += ["_No results for the primary prompt; nothing to rank._", ""]
        return lines

    lines += _table(
        ["Rank", "Model", "Composite Score", "Runs", "Error Rate"],
        [[i, r.model, fmt_score(r.composite_score), r.summary.count, fmt_pct(r.summary.error_rate)]
         for i, r in enumerate(rankings, start=1)],
    )

    best, worst = rankings[0], rankings[-1]
    lines += ["### Key Findings", ""]
    lines.append(f"- **Best Overall**: `{best.model}` with composite score of {fmt_score(best.composite_score)}")
    lines.append(f"- **Needs Improvement**: `{worst.model}` with composite score of {fmt_score(worst.composite_score)}")
    top_recall = best_by(summaries, "avg_highlight_recall")
    top_diag = best_by(summaries, "diagnosis_grounded_rate")
    lines.append(f"- **Best Highlight Recall**: `{top_recall.model}` at {fmt_pct(top_recall.avg_highlight_recall)}")
    lines.append(f"- **Best Diagnosis Grounding**: `{top_diag.model}` at {fmt_pct(top_diag.diagnosis_grounded_rate)}")
    lines.append("")
    return lines


def _methodology(config: RunConfig) -> List[str]:
    w = config.weights
    lines = ["---", "", "## Methodology", "", "### Metrics Evaluated", ""]
    lines += _table(["Metric", "Description", "Range"], [list(m) for m in METRIC_DEFINITIONS])
    lines += [
        "### Composite Score Formula",
        "",
        "```",
        f"Composite = ({w.schema_valid:.2f}×SchemaValid + {w.section_completeness:.2f}×SectionCompleteness"
        f" + {w.highlight_recall:.2f}×HighlightRecall +",
        f"             {w.symptom_recall:.2f}×SymptomRecall + {w.diagnosis_grounded:.2f}×DiagnosisGrounded"
        f" + {w.rouge_l:.2f}×ROUGE-L) × (1 - ErrorRate)",
        "```",
        "",
        f"Only the `{config.primary_prompt}` prompt is ranked. Averages use successful runs; "
        "schema-valid, diagnosis and error rates use every run.",
        "",
    ]
    return lines


def _per_model(summaries) -> List[str]:
    lines = ["---", "", "## Per-Model Comparison", "", "### Overall Performance", ""]
    lines += _table(
        ["Model", "Schema Valid", "Section Complete", "Highlight Recall", "Symptom Recall",
         "Negation Kept", "Diagnosis OK", "ROUGE-L", "Error Rate"],
        [[s.model, fmt_pct(s.schema_valid_rate), fmt_pct(s.avg_section_completeness),
          fmt_pct(s.avg_highlight_recall), fmt_pct(s.avg_symptom_recall),
          fmt_pct(s.avg_negation_preservation), fmt_pct(s.diagnosis_grounded_rate),
          fmt_score(s.avg_rouge_l), fmt_pct(s.error_rate)]
         for s in summaries.values()],
    )
    return lines


def _per_prompt(results: AggregatedResults, primary_prompt: str) -> List[str]:
    lines = ["### By Prompt Type", ""]
    for prompt, records in results.by_prompt.items():
        if prompt == primary_prompt:
            lines += [f"#### {prompt} (ranked)", ""]
        else:
            lines += [
                f"#### {prompt}",
                "",
                "> Not ranked: this prompt may produce a different output schema, "
                "so low structural scores are not necessarily quality failures.",
                "",
            ]
        by_model: Dict[str, List[EvaluationRecord]] = {}
        for r in records:
            by_model.setdefault(r.model, []).append(r)
        rows = []
        for model, recs in by_model.items():
            s = summarize_model(model, recs)
            if s.valid_count == 0:
                rows.append([model, "-", "-", "-", "-", fmt_pct(s.error_rate)])
                continue
            rows.append([model, fmt_pct(s.avg_highlight_recall), fmt_pct(s.avg_symptom_recall),
                         fmt_pct(s.diagnosis_grounded_rate), fmt_score(s.avg_rouge_l), fmt_pct(s.error_rate)])
        lines += _table(["Model", "Highlight Recall", "Symptom Recall", "Diagnosis OK", "ROUGE-L", "Error Rate"], rows)
    return lines


def _per_image(results: AggregatedResults, config: RunConfig) -> List[str]:
    lines = ["---", "", "## Per-Image Analysis", ""]
    for image, records in results.by_image.items():
        desc = config.image_descriptions.get(image)
        lines += [f"### {image} - {desc}" if desc else f"### {image}", ""]

        primary = [r for r in records if r.prompt == config.primary_prompt and not r.has_error]
        if primary:
            lines += [f"**{config.primary_prompt} results:**", ""]
            lines += _table(
                ["Model", "Highlight Recall", "Diagnosis", "ROUGE-L", "Hallu. Vitals", "Hallu. Labs"],
                [[r.model, f"{fmt_pct(r.highlight_recall)} ({r.highlights_covered}/{r.highlights_total})",
                  fmt_flag(r.diagnosis_grounded), fmt_score(r.rouge_l_score),
                  fmt_flag(r.hallucinated_vitals), fmt_flag(r.hallucinated_labs)]
                 for r in primary],
            )

        failed = [r for r in records if r.has_error]
        if failed:
            lines.append(f"> {len(failed)} run(s) failed: {', '.join(r.model for r in failed)}")
            lines.append("")
    return lines


def _hallucinations(results: AggregatedResults) -> List[str]:
    lines = ["---", "", "## Hallucination Analysis", ""]
    counts = hallucination_counts(results)
    lines += _table(
        ["Model", "Hallucinated Vitals", "Hallucinated Labs", "Total Valid Runs"],
        [[model, f"{c.vitals}/{c.valid_runs}", f"{c.labs}/{c.valid_runs}", c.valid_runs]
         for model, c in counts.items()],
    )
    lines += ["> **Note**: Hallucination = model reported specific values the reference gives no evidence for.", ""]
    return lines


def _latency(results: AggregatedResults) -> List[str]:
    lines = ["---", "", "## Latency Analysis", ""]
    rows = []
    for model, row in latency_frame(results).iterrows():
        if pd.isna(row["avg_s"]):
            rows.append([model, "-", "-", "-"])
        else:
            rows.append([model, f"{row['avg_s']:.2f}", f"{row['min_s']:.2f}", f"{row['max_s']:.2f}"])
    lines += _table(["Model", "Avg Latency (s)", "Min (s)", "Max (s)"], rows)
    return lines


def _detailed(results: AggregatedResults) -> List[str]:
    lines = ["---", "", "## Detailed Results", "", "<details>",
             "<summary>Full results table</summary>", ""]
    rows = []
    for r in results.all:
        status = f"error: {(r.error_message or 'Error')[:20]}" if r.has_error else "ok"
        rows.append([
            r.image, r.model, r.prompt, fmt_flag(r.schema_valid), fmt_pct(r.section_completeness),
            fmt_pct(r.null_field_ratio), fmt_pct(r.highlight_recall), fmt_pct(r.symptom_recall),
            f"{r.negation_errors}", fmt_flag(r.diagnosis_grounded), fmt_score(r.rouge_l_score),
            fmt_score(r.word_overlap), status,
        ])
    lines += _table(
        ["Image", "Model", "Prompt", "Schema", "Sections", "Null Fields", "Highlight", "Symptom",
         "Neg. Errors", "Diagnosis", "ROUGE-L", "Word Overlap", "Status"],
        rows,
    )
    lines += ["</details>", ""]
    return lines


def _recommendations(results: AggregatedResults, rankings: List[ModelRanking], summaries) -> List[str]:
    lines = ["---", "", "## Recommendations", "", "### Best Models", ""]
    labels = ["Best overall composite score", "Strong runner-up", "Solid third option"]
    for i, (r, label) in enumerate(zip(rankings[:3], labels), start=1):
        lines.append(f"{i}. **{r.model}** - {label} ({fmt_score(r.composite_score)})")
    if not rankings:
        lines.append("_No ranked models._")
    lines += ["", "### Areas for Improvement", ""]

    hallucinating = [m for m, c in hallucination_counts(results).items() if c.vitals > 0 or c.labs > 0]
    if hallucinating:
        lines.append(f"- **Hallucination concerns**: {', '.join(hallucinating)} produced unsupported values")
    low_recall = [s.model for s in summaries.values()
                  if s.valid_count > 0 and s.avg_highlight_recall < LOW_RECALL_THRESHOLD]
    if low_recall:
        lines.append(f"- **Low content coverage**: {', '.join(low_recall)} missed significant key information")
    if not hallucinating and not low_recall:
        lines.append("- No hallucination or coverage concerns detected.")
    lines.append("")
    return lines


def render_markdown(
    results: AggregatedResults,
    config: Optional[RunConfig] = None,
    generated_at: Optional[str] = None,
) -> str:
    """
    Render the full Markdown report.

    Output depends only on the arguments, so the same results and timestamp
    always give the same document.
    """
    config = config or RunConfig()
    rankings = rank_models(results, config.primary_prompt, config.weights)
    summaries = summarize_models(results, config.primary_prompt)

    lines = ["# Medical Note Extraction - Model Evaluation Results", ""]
    if generated_at:
        lines.append(f"> Generated: {generated_at}")
    lines.append(f"> Total Evaluations: {len(results.all)}")
    lines.append("")

    lines += _executive_summary(rankings, summaries)
    lines += _methodology(config)
    lines += _per_model(summaries)
    lines += _per_prompt(results, config.primary_prompt)
    lines += _per_image(results, config)
    lines += _hallucinations(results)
    lines += _latency(results)
    lines += _detailed(results)
    lines += _recommendations(results, rankings, summaries)
    lines += ["---", "", "*Report generated by note_eval*", ""]
    return "\n".join(lines)


# ----------------------------
# Machine-readable dump
# ----------------------------

def build_dump(results: AggregatedResults, primary_prompt: str,
               weights: CompositeWeights, generated_at: Optional[str] = None) -> Dict[str, Any]:
    rankings = rank_models(results, primary_prompt, weights)
    return {
        "generated_at": generated_at,
        "primary_prompt": primary_prompt,
        "weights": weights.as_dict(),
        "rankings": [r.to_dict() for r in rankings],
        "results": results.to_dict(),
    }


def write_dump(dump: Dict[str, Any], path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(dump, f, ensure_ascii=False, indent=2)
    return path


def write_json(results: AggregatedResults, path: Path | str, primary_prompt: str,
               weights: CompositeWeights = CompositeWeights(),
               generated_at: Optional[str] = None) -> Path:
    return write_dump(build_dump(results, primary_prompt, weights, generated_at), path)


def load_dump(path: Path | str) -> AggregatedResults:
    """Load aggregated results from a JSON dump written by ``write_json``."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict) or "results" not in data:
        raise ValueError(f"Not an evaluation results dump: {path}")
    return AggregatedResults.from_dict(data["results"])


def write_text(text: str, path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def write_markdown(results: AggregatedResults, path: Path | str, config: RunConfig,
                   generated_at: Optional[str] = None) -> Path:
    return write_text(render_markdown(results, config, generated_at), path)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Render the Markdown report from an evaluation JSON dump")
    parser.add_argument(
        "--data",
        type=str,
        default=str(RunConfig().output_json),
        help="Path to evaluation results JSON (default: data/evaluation-results.json)"
    )
    parser.add_argument(
        "--out",
        type=str,
        default=str(RunConfig().output_markdown),
        help="Path to output Markdown report (default: results.md)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional run config JSON (primary prompt, weights, image descriptions)"
    )
    parser.add_argument(
        "--primary-prompt",
        type=str,
        default=None,
        help="Prompt variant to rank (overrides config)"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    try:
        config = RunConfig.from_json(args.config) if args.config else RunConfig()
        if args.primary_prompt:
            config.primary_prompt = args.primary_prompt
        results = load_dump(args.data)
        LOG.info("Loaded %d evaluation records from %s", len(results.all), args.data)
        out = write_markdown(results, args.out, config, generated_at=utc_timestamp())
    except (OSError, ValueError, TypeError) as exc:
        LOG.error("Report generation failed: %s", exc)
        return 1

    LOG.info("Report saved to %s", out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
