"""
Unit tests for grouping, summaries and composite ranking.
"""
import unittest
from dataclasses import replace

from note_eval.config import CompositeWeights
from note_eval.eval.aggregate import (
    aggregate,
    best_by,
    composite_score,
    hallucination_counts,
    rank_models,
    summarize_model,
    summarize_models,
)
from note_eval.eval.schema import AggregatedResults

from helpers import make_error, make_record


class TestAggregate(unittest.TestCase):

    def test_grouping_shares_records(self):
        """Test that every grouping indexes the same record objects."""
        records = [
            make_record("m1", "a.png", "soap_enhanced"),
            make_record("m2", "a.png", "labs_diagnostics"),
            make_record("m1", "b.png", "soap_enhanced"),
        ]
        results = aggregate(records)
        self.assertEqual(list(results.by_model), ["m1", "m2"])
        self.assertEqual(list(results.by_image), ["a.png", "b.png"])
        self.assertEqual(list(results.by_prompt), ["soap_enhanced", "labs_diagnostics"])
        self.assertIs(results.by_model["m1"][1], records[2])
        for group in (results.by_model, results.by_image, results.by_prompt):
            self.assertEqual(sum(len(v) for v in group.values()), len(results.all))

    def test_empty(self):
        results = aggregate([])
        self.assertEqual(results.all, [])
        self.assertEqual(rank_models(results, "soap_enhanced"), [])

    def test_round_trip_regroups(self):
        """Test that a JSON-shaped dump rebuilds the groupings."""
        results = aggregate([make_record("m1"), make_error("m2")])
        rebuilt = AggregatedResults.from_dict(results.to_dict())
        self.assertEqual(rebuilt.all, results.all)
        self.assertIs(rebuilt.by_model["m2"][0], rebuilt.all[1])


class TestSummary(unittest.TestCase):

    def test_averages_skip_errors(self):
        """Test that averages use successful runs and rates use all runs."""
        records = [
            make_record(highlight_recall=0.6, latency_ms=1000.0),
            make_record(highlight_recall=1.0, latency_ms=3000.0, diagnosis_grounded=False),
            make_error(),
            make_error(),
        ]
        s = summarize_model("m1", records)
        self.assertAlmostEqual(s.avg_highlight_recall, 0.8)
        self.assertAlmostEqual(s.avg_latency_ms, 2000.0)
        self.assertAlmostEqual(s.error_rate, 0.5)
        self.assertAlmostEqual(s.schema_valid_rate, 0.5)
        self.assertAlmostEqual(s.diagnosis_grounded_rate, 0.25)
        self.assertEqual((s.count, s.valid_count), (4, 2))

    def test_prompt_filter(self):
        records = [make_record(prompt="soap_enhanced"), make_record(prompt="labs_diagnostics", symptom_recall=0.0)]
        self.assertEqual(summarize_model("m1", records, "soap_enhanced").count, 1)
        self.assertAlmostEqual(summarize_model("m1", records, "soap_enhanced").avg_symptom_recall, 0.9)
        self.assertEqual(summarize_model("m1", records).count, 2)

    def test_no_records(self):
        """Test that an empty scope yields zeros, not a division error."""
        s = summarize_model("m1", [make_record(prompt="other")], "soap_enhanced")
        self.assertEqual(s.count, 0)
        self.assertEqual(s.error_rate, 0.0)
        self.assertEqual(s.avg_highlight_recall, 0.0)


class TestComposite(unittest.TestCase):

    def test_perfect_score(self):
        """Test that perfect metrics with no errors score the weight sum."""
        s = summarize_model("m1", [make_record(
            section_completeness=1.0, highlight_recall=1.0, symptom_recall=1.0, rouge_l_score=1.0,
        )])
        self.assertAlmostEqual(composite_score(s), 1.0)

    def test_known_value(self):
        s = summarize_model("m1", [make_record()])
        # 0.15 + 0.15 + 0.25*0.8 + 0.15*0.9 + 0.15 + 0.15*0.4
        self.assertAlmostEqual(composite_score(s), 0.845)

    def test_monotonic_in_error_rate(self):
        """Test that a higher error rate never raises the score."""
        base = summarize_model("m1", [make_record()])
        scores = [composite_score(replace(base, error_rate=e)) for e in (0.0, 0.25, 0.5, 1.0)]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(scores[-1], 0.0)

    def test_custom_weights(self):
        s = summarize_model("m1", [make_record()])
        weights = CompositeWeights(0.0, 0.0, 1.0, 0.0, 0.0, 0.0)
        self.assertAlmostEqual(composite_score(s, weights), 0.8)

    def test_negative_weight_rejected(self):
        with self.assertRaises(ValueError):
            CompositeWeights(highlight_recall=-0.1)


class TestRanking(unittest.TestCase):

    def test_descending_and_primary_only(self):
        """Test order by composite over the primary prompt only."""
        results = aggregate([
            make_record("weak", highlight_recall=0.2),
            make_record("strong", highlight_recall=1.0),
            make_record("weak", prompt="labs_diagnostics", highlight_recall=1.0),
            make_record("flaky"),
            make_error("flaky"),
        ])
        rankings = rank_models(results, "soap_enhanced")
        self.assertEqual([r.model for r in rankings], ["strong", "weak", "flaky"])
        self.assertEqual(rankings[0].summary.count, 1)

    def test_ties_keep_input_order(self):
        results = aggregate([make_record("b"), make_record("a"), make_record("c")])
        self.assertEqual([r.model for r in rank_models(results, "soap_enhanced")], ["b", "a", "c"])

    def test_best_by(self):
        results = aggregate([make_record("m1", highlight_recall=0.5), make_record("m2", highlight_recall=0.9)])
        summaries = summarize_models(results, "soap_enhanced")
        self.assertEqual(best_by(summaries, "avg_highlight_recall").model, "m2")
        self.assertIsNone(best_by({}, "avg_highlight_recall"))

    def test_hallucination_counts(self):
        """Test counts over successful runs only."""
        results = aggregate([
            make_record("m1", hallucinated_vitals=True),
            make_record("m1", hallucinated_labs=True, hallucinated_vitals=True),
            make_error("m1"),
        ])
        counts = hallucination_counts(results)["m1"]
        self.assertEqual((counts.vitals, counts.labs, counts.valid_runs), (2, 1, 2))


if __name__ == "__main__":
    unittest.main()
