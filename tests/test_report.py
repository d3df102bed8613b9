"""
Unit tests for report rendering and exports.
"""
import json
import tempfile
import unittest
from pathlib import Path

import pandas as pd

from note_eval.config import RunConfig
from note_eval.eval.aggregate import aggregate
from note_eval.eval.report import (
    latency_frame,
    load_dump,
    main,
    records_frame,
    render_markdown,
    write_json,
    write_markdown,
    write_records_csv,
)

from helpers import make_error, make_record


def sample_results():
    return aggregate([
        make_record("alpha", "medical_note_06.png", latency_ms=1000.0),
        make_record("alpha", "medical_note_07.png", latency_ms=3000.0, hallucinated_vitals=True),
        make_record("beta", "medical_note_06.png", highlight_recall=0.4, latency_ms=500.0),
        make_error("beta", "medical_note_07.png"),
        make_record("beta", "medical_note_06.png", prompt="labs_diagnostics", schema_valid=False),
    ])


class TestMarkdown(unittest.TestCase):

    def test_sections_present(self):
        """Test that every report section is rendered."""
        md = render_markdown(sample_results(), RunConfig(), generated_at="2024-01-01T00:00:00Z")
        for heading in ("## Executive Summary", "## Methodology", "## Per-Model Comparison",
                        "### By Prompt Type", "## Per-Image Analysis", "## Hallucination Analysis",
                        "## Latency Analysis", "## Detailed Results", "## Recommendations"):
            self.assertIn(heading, md)
        self.assertIn("> Generated: 2024-01-01T00:00:00Z", md)
        self.assertIn("> Total Evaluations: 5", md)

    def test_ranking_and_findings(self):
        md = render_markdown(sample_results(), RunConfig())
        self.assertIn("**Best Overall**: `alpha`", md)
        self.assertIn("**Needs Improvement**: `beta`", md)

    def test_image_descriptions_and_failures(self):
        md = render_markdown(sample_results(), RunConfig())
        self.assertIn("### medical_note_06.png - Migraine", md)
        self.assertIn("> 1 run(s) failed: beta", md)

    def test_non_primary_prompt_flagged(self):
        md = render_markdown(sample_results(), RunConfig())
        self.assertIn("#### soap_enhanced (ranked)", md)
        self.assertIn("#### labs_diagnostics", md)
        self.assertIn("different output schema", md)

    def test_recommendations(self):
        """Test hallucination and low-recall callouts."""
        md = render_markdown(sample_results(), RunConfig())
        self.assertIn("**Hallucination concerns**: alpha", md)
        self.assertIn("**Low content coverage**: beta", md)

    def test_deterministic(self):
        results = sample_results()
        self.assertEqual(
            render_markdown(results, RunConfig(), "t"),
            render_markdown(results, RunConfig(), "t"),
        )

    def test_empty_results(self):
        md = render_markdown(aggregate([]), RunConfig())
        self.assertIn("nothing to rank", md)
        self.assertIn("> Total Evaluations: 0", md)

    def test_pipe_escaped(self):
        md = render_markdown(aggregate([make_record("org|model")]), RunConfig())
        self.assertIn("org\\|model", md)


class TestTables(unittest.TestCase):

    def test_records_frame(self):
        df = records_frame(sample_results())
        self.assertEqual(len(df), 5)
        self.assertIn("rouge_l_score", df.columns)
        self.assertEqual(df["model"].tolist()[:2], ["alpha", "alpha"])

    def test_latency_frame(self):
        """Test seconds per model over successful timed runs."""
        lat = latency_frame(sample_results())
        self.assertEqual(list(lat.index), ["alpha", "beta"])
        self.assertAlmostEqual(lat.loc["alpha", "avg_s"], 2.0)
        self.assertAlmostEqual(lat.loc["alpha", "min_s"], 1.0)
        self.assertAlmostEqual(lat.loc["alpha", "max_s"], 3.0)
        self.assertAlmostEqual(lat.loc["beta", "avg_s"], 1.25)

    def test_latency_without_timings(self):
        lat = latency_frame(aggregate([make_record("m1", latency_ms=0.0), make_error("m2")]))
        self.assertEqual(list(lat.index), ["m1", "m2"])
        self.assertTrue(lat["avg_s"].isna().all())
        md = render_markdown(aggregate([make_record("m1", latency_ms=0.0)]), RunConfig())
        self.assertIn("| m1 | - | - | - |", md)


class TestExports(unittest.TestCase):

    def test_json_dump_round_trip(self):
        """Test that the dump reloads to the same records."""
        results = sample_results()
        with tempfile.TemporaryDirectory() as tmp:
            path = write_json(results, Path(tmp) / "out" / "results.json", "soap_enhanced",
                              generated_at="t")
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            self.assertEqual(data["rankings"][0]["model"], "alpha")
            self.assertEqual(data["primary_prompt"], "soap_enhanced")
            self.assertEqual(load_dump(path).all, results.all)

    def test_load_dump_rejects_other_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "x.json"
            path.write_text("[1, 2]", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_dump(path)

    def test_csv(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_records_csv(sample_results(), Path(tmp) / "records.csv")
            df = pd.read_csv(path)
            self.assertEqual(len(df), 5)
            self.assertEqual(int(df["has_error"].sum()), 1)

    def test_write_markdown(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_markdown(sample_results(), Path(tmp) / "results.md", RunConfig(), "t")
            self.assertTrue(path.read_text(encoding="utf-8").startswith("# "))


class TestReportCli(unittest.TestCase):

    def test_rerender_from_dump(self):
        with tempfile.TemporaryDirectory() as tmp:
            dump = write_json(sample_results(), Path(tmp) / "results.json", "soap_enhanced")
            out = Path(tmp) / "results.md"
            self.assertEqual(main(["--data", str(dump), "--out", str(out)]), 0)
            self.assertIn("## Executive Summary", out.read_text(encoding="utf-8"))

    def test_missing_dump(self):
        with tempfile.TemporaryDirectory() as tmp:
            code = main(["--data", str(Path(tmp) / "missing.json"), "--out", str(Path(tmp) / "r.md")])
            self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
