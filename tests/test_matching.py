"""
Unit tests for text similarity primitives.
"""
import unittest

from note_eval.eval.matching import jaccard, lcs_length, rouge_l, fuzzy_contains, ngram_overlap


class TestJaccard(unittest.TestCase):

    def test_partial_overlap(self):
        """Test intersection over union."""
        self.assertAlmostEqual(jaccard({"a", "b", "c"}, {"b", "c", "d"}), 0.5)

    def test_disjoint(self):
        self.assertEqual(jaccard({"a"}, {"b"}), 0.0)

    def test_both_empty(self):
        """Test that two empty sets agree vacuously."""
        self.assertEqual(jaccard(set(), set()), 1.0)

    def test_one_empty(self):
        self.assertEqual(jaccard({"a"}, set()), 0.0)


class TestRougeL(unittest.TestCase):

    def test_lcs_length(self):
        """Test LCS over token sequences."""
        self.assertEqual(lcs_length(["a", "b", "c", "d"], ["a", "c", "d"]), 3)
        self.assertEqual(lcs_length(["a", "b"], ["c", "d"]), 0)
        self.assertEqual(lcs_length([], ["a"]), 0)

    def test_lcs_is_token_level(self):
        """Test that tokens are compared whole, not character by character."""
        self.assertEqual(lcs_length(["ab"], ["a", "b"]), 0)
        self.assertEqual(lcs_length(["chest", "pain"], ["pain", "in", "chest"]), 1)

    def test_identical(self):
        """Test that identical texts score 1.0."""
        self.assertAlmostEqual(rouge_l("patient denies fever", "Patient denies fever."), 1.0)

    def test_partial(self):
        """Test F1 of LCS precision and recall."""
        # LCS = 2 ("denies fever"); P = 2/2, R = 2/3, F1 = 0.8
        self.assertAlmostEqual(rouge_l("patient denies fever", "denies fever"), 0.8)

    def test_empty(self):
        """Test that an empty side scores 0."""
        self.assertEqual(rouge_l("", "anything"), 0.0)
        self.assertEqual(rouge_l("anything", ""), 0.0)

    def test_bounds(self):
        """Test that ROUGE-L stays within [0, 1]."""
        score = rouge_l("headache for three days with nausea", "nausea and headache")
        self.assertGreaterEqual(score, 0.0)
        self.assertLessEqual(score, 1.0)


class TestFuzzyContains(unittest.TestCase):

    def test_exact_substring(self):
        """Test exact containment after normalization."""
        self.assertTrue(fuzzy_contains("Patient DENIES fever.", "denies fever"))

    def test_token_fallback(self):
        """Test that a reordered phrase matches via token overlap."""
        self.assertTrue(fuzzy_contains("patient reports pain in chest area", "chest pain"))

    def test_below_threshold(self):
        """Test that one of three tokens (33%) is not enough."""
        self.assertFalse(fuzzy_contains("mild headache", "severe chest pain"))

    def test_threshold_boundary(self):
        """Test that exactly the threshold share of tokens matches."""
        # 7 of 10 tokens present
        phrase = "a b c d e f g h i j"
        text = "a b c d e f g"
        self.assertTrue(fuzzy_contains(text, phrase, threshold=0.7))
        self.assertFalse(fuzzy_contains(text, phrase, threshold=0.71))


class TestNgramOverlap(unittest.TestCase):

    def test_bigram_overlap(self):
        """Test Jaccard over bigrams."""
        # {a b, b c} vs {b c, c d}: 1 / 3
        self.assertAlmostEqual(ngram_overlap("a b c", "b c d"), 1 / 3)


if __name__ == "__main__":
    unittest.main()
