"""
Batch evaluation of structured-note outputs against reference consultations.

Usage:
    note-eval
    note-eval --results-dir data/batch-results --reference-dir refs --out-md results.md
    note-eval --config eval-config.json --strict
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..config import RunConfig
from ..ingest_json import discover_result_files, image_key, load_candidate, load_references
from .aggregate import aggregate, rank_models
from .metrics import evaluate_candidate
from .report import (
    build_dump,
    records_frame,
    render_markdown,
    utc_timestamp,
    write_dump,
    write_frame,
    write_text,
)
from .schema import AggregatedResults, EvaluationRecord

LOG = logging.getLogger(__name__)


def run_evaluation(config: RunConfig) -> AggregatedResults:
    """
    Evaluate every mapped result file against its reference.

    Args:
        config: Run configuration (directories, mapping, scoring knobs)

    Returns:
        AggregatedResults over all evaluated files

    Raises:
        FileNotFoundError: results directory does not exist
        ValueError, ValidationError: malformed reference or result file when
            ``config.strict`` is set
    """
    references = load_references(config.reference_dir, config.image_to_reference, config.strict)
    LOG.info("Loaded %d reference(s) from %s", len(references), config.reference_dir)

    files = discover_result_files(config.results_dir, config.image_to_reference)
    LOG.info("Found %d result file(s) in %s", len(files), config.results_dir)

    records: List[EvaluationRecord] = []
    for path in files:
        key = image_key(path)
        reference = references.get(key)
        if reference is None:
            LOG.warning("No reference for %s, skipping %s", key, path.name)
            continue

        try:
            candidate = load_candidate(path)
        except (OSError, ValueError, ValidationError) as exc:
            if config.strict:
                raise
            LOG.warning("Skipping malformed result file %s: %s", path.name, exc)
            continue

        records.append(evaluate_candidate(reference, candidate, config.scoring, source_file=path.name))

    LOG.info("Evaluated %d result(s)", len(records))
    return aggregate(records)


def write_outputs(results: AggregatedResults, config: RunConfig,
                  generated_at: Optional[str] = None) -> List[Path]:
    """
    Write the Markdown report, the JSON dump and (if configured) the CSV table.

    Everything is rendered before the first file is written. If a write
    fails, the artifacts already written are logged before the error is
    re-raised.
    """
    markdown = render_markdown(results, config, generated_at)
    dump = build_dump(results, config.primary_prompt, config.weights, generated_at)
    frame = records_frame(results) if config.output_csv is not None else None

    written: List[Path] = []
    try:
        written.append(write_text(markdown, config.output_markdown))
        written.append(write_dump(dump, config.output_json))
        if frame is not None:
            written.append(write_frame(frame, config.output_csv))
    except OSError:
        LOG.error("Output incomplete; written before failure: %s",
                  ", ".join(str(p) for p in written) or "none")
        raise
    return written


def _apply_overrides(config: RunConfig, args: argparse.Namespace) -> RunConfig:
    if args.results_dir:
        config.results_dir = Path(args.results_dir)
    if args.reference_dir:
        config.reference_dir = Path(args.reference_dir)
    if args.out_md:
        config.output_markdown = Path(args.out_md)
    if args.out_json:
        config.output_json = Path(args.out_json)
    if args.no_csv:
        config.output_csv = None
    elif args.out_csv:
        config.output_csv = Path(args.out_csv)
    if args.primary_prompt:
        config.primary_prompt = args.primary_prompt
    if args.strict:
        config.strict = True
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Evaluate structured-note outputs against reference notes")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to run config JSON (paths relative to the config file)"
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default=None,
        help="Directory with batch result JSON files (default: data/batch-results)"
    )
    parser.add_argument(
        "--reference-dir",
        type=str,
        default=None,
        help="Directory with reference annotation files (default: current directory)"
    )
    parser.add_argument(
        "--out-md",
        type=str,
        default=None,
        help="Path to output Markdown report (default: results.md)"
    )
    parser.add_argument(
        "--out-json",
        type=str,
        default=None,
        help="Path to output JSON dump (default: data/evaluation-results.json)"
    )
    parser.add_argument(
        "--out-csv",
        type=str,
        default=None,
        help="Path to output per-record CSV (default: data/evaluation-results.csv)"
    )
    parser.add_argument(
        "--no-csv",
        action="store_true",
        help="Do not write the per-record CSV"
    )
    parser.add_argument(
        "--primary-prompt",
        type=str,
        default=None,
        help="Prompt variant used for ranking (default: soap_enhanced)"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on malformed reference or result files instead of skipping them"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")

    try:
        config = RunConfig.from_json(args.config) if args.config else RunConfig()
        config = _apply_overrides(config, args)
        results = run_evaluation(config)
        written = write_outputs(results, config, generated_at=utc_timestamp())
    except (OSError, ValueError, TypeError, ValidationError) as exc:
        LOG.error("Evaluation failed: %s", exc)
        return 1

    rankings = rank_models(results, config.primary_prompt, config.weights)
    if rankings:
        LOG.info("Top model on %s: %s (%.3f)", config.primary_prompt,
                 rankings[0].model, rankings[0].composite_score)
    for path in written:
        LOG.info("Wrote %s", path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
