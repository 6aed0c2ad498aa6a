"""
Tests for similarity matching.
"""

import unittest

from logdrain.clusters import ClusterRecord
from logdrain.matching import fast_match, seq_distance
from logdrain.models import PARAM_MARKER


def record(cluster_id, pattern):
    return ClusterRecord(cluster_id, pattern.split())


class TestSeqDistance(unittest.TestCase):
    """Test the similarity measure."""

    def test_wildcards_count_as_params_not_matches(self):
        similarity, param_count = seq_distance(["sent", PARAM_MARKER, "bytes"], ["sent", "9", "bytes"])
        self.assertAlmostEqual(similarity, 2 / 3)
        self.assertEqual(param_count, 1)

    def test_identical(self):
        self.assertEqual(seq_distance(["a", "b"], ["a", "b"]), (1.0, 0))

    @unittest.skipUnless(__debug__, "assertions disabled")
    def test_length_mismatch_is_fatal(self):
        with self.assertRaises(AssertionError):
            seq_distance(["a", "b"], ["a", "b", "c"])


class TestFastMatch(unittest.TestCase):
    """Test candidate selection."""

    def test_highest_similarity_wins(self):
        literal = record("literal", "a b c")
        general = record("general", "a <*> <*>")

        match = fast_match([general, literal], "a b x".split(), 0.4)
        self.assertIs(match, literal)

    def test_more_params_win_on_equal_similarity(self):
        literal = record("literal", "a b c")
        general = record("general", "a <*> c")

        match = fast_match([literal, general], "a x c".split(), 0.4)
        self.assertIs(match, general)

    def test_first_candidate_wins_full_tie(self):
        first = record("first", "a b c")
        second = record("second", "a b c")

        self.assertIs(fast_match([first, second], "a b x".split(), 0.4), first)
        self.assertIs(fast_match([second, first], "a b x".split(), 0.4), second)

    def test_threshold(self):
        candidate = record("c", "a b c d e")

        test_cases = [
            ("a x y z w", None),        # 0.2
            ("a b y z w", candidate),   # 0.4, inclusive
            ("a b c z w", candidate),   # 0.6
        ]
        for line, expected in test_cases:
            with self.subTest(line=line):
                self.assertIs(fast_match([candidate], line.split(), 0.4), expected)

    def test_threshold_of_one_requires_exact_literals(self):
        candidate = record("c", "a <*> c")
        # wildcards never count as similar tokens
        self.assertIsNone(fast_match([candidate], "a b c".split(), 1.0))
        self.assertEqual(fast_match([record("d", "a b c")], "a b c".split(), 1.0).cluster_id, "d")

    def test_empty_bucket(self):
        self.assertIsNone(fast_match([], ["a"], 0.4))


if __name__ == '__main__':
    unittest.main()
