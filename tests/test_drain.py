"""
Tests for the online template miner.
"""

import os
import unittest
from pathlib import Path

from logdrain.drain import DrainEngine
from logdrain.models import ConfigurationError, DrainConfig, PARAM_MARKER
from tests.test_data.log_samples import (
    BYTES_LINES,
    SSH_SAMPLE_CLUSTERS,
    SSH_SAMPLE_LINES,
    strip_syslog_prefix,
)


SSH_LOG = Path(os.environ.get("LOGDRAIN_SSH_LOG", Path(__file__).parent / "test_data" / "SSH.log"))


def patterns(engine):
    return {(cluster.pattern, cluster.sightings) for cluster in engine.clusters()}


class TestDrainConfig(unittest.TestCase):
    """Test configuration validation."""

    def test_defaults(self):
        config = DrainConfig()
        self.assertEqual(config.depth, 4)
        self.assertEqual(config.similarity_threshold, 0.4)
        self.assertEqual(config.max_child_per_node, 100)
        self.assertEqual(config.additional_delimiters, "")
        self.assertEqual(config.effective_depth, 2)

    def test_rejected_values(self):
        test_cases = [
            {"depth": 2},
            {"depth": "4"},
            {"similarity_threshold": 0.1},
            {"similarity_threshold": 1.5},
            {"similarity_threshold": "high"},
            {"max_child_per_node": 1},
            {"additional_delimiters": None},
        ]
        for overrides in test_cases:
            with self.subTest(**overrides):
                with self.assertRaises(ConfigurationError):
                    DrainEngine(**overrides)

    def test_boundary_values_accepted(self):
        self.assertEqual(DrainEngine(depth=3).config.effective_depth, 1)
        self.assertEqual(DrainEngine(similarity_threshold=1).config.similarity_threshold, 1.0)
        self.assertEqual(DrainEngine(max_child_per_node=2).config.max_child_per_node, 2)

    def test_configuration_error_is_value_error(self):
        with self.assertRaises(ValueError):
            DrainConfig(depth=0)

    def test_overrides_merge_into_config(self):
        base = DrainConfig(depth=5, additional_delimiters="_")
        engine = DrainEngine(base, similarity_threshold=0.7)

        self.assertEqual(engine.config.depth, 5)
        self.assertEqual(engine.config.additional_delimiters, "_")
        self.assertEqual(engine.config.similarity_threshold, 0.7)
        self.assertEqual(base.similarity_threshold, 0.4)


class TestParseLogMessage(unittest.TestCase):
    """Test clustering of individual lines."""

    def setUp(self):
        self.engine = DrainEngine()

    def test_variable_tokens_become_wildcards(self):
        for line in BYTES_LINES:
            self.engine.parse_log_message(line)

        self.assertEqual(len(self.engine), 2)
        self.assertEqual(patterns(self.engine), {
            ("sent <*> bytes", 4),
            ("received <*> bytes", 2),
        })

    def test_returns_snapshot_of_matched_cluster(self):
        first = self.engine.parse_log_message("sent 550 bytes")
        second = self.engine.parse_log_message("sent 110 bytes")

        self.assertEqual(first.cluster_id, second.cluster_id)
        self.assertEqual(first.template, ("sent", "550", "bytes"))
        self.assertEqual(first.sightings, 1)
        self.assertEqual(second.template, ("sent", PARAM_MARKER, "bytes"))
        self.assertEqual(second.sightings, 2)
        self.assertEqual(second.param_count, 1)

    def test_same_line_twice(self):
        first = self.engine.parse_log_message("Server listening on 0.0.0.0 port 22.")
        second = self.engine.parse_log_message("Server listening on 0.0.0.0 port 22.")

        self.assertEqual(len(self.engine), 1)
        self.assertEqual(first.cluster_id, second.cluster_id)
        self.assertEqual(second.template, first.template)
        self.assertEqual(second.sightings, 2)

    def test_empty_lines(self):
        for _ in range(3):
            cluster = self.engine.parse_log_message("")

        self.assertEqual(len(self.engine), 1)
        self.assertEqual(cluster.template, ())
        self.assertEqual(cluster.pattern, "")
        self.assertEqual(cluster.sightings, 3)

    def test_whitespace_only_line_joins_empty_cluster(self):
        empty = self.engine.parse_log_message("")
        blank = self.engine.parse_log_message("   \t ")
        self.assertEqual(empty.cluster_id, blank.cluster_id)

    def test_different_lengths_never_merge(self):
        self.engine.parse_log_message("user bob logged in")
        self.engine.parse_log_message("user bob logged in twice")
        self.assertEqual(len(self.engine), 2)

    def test_dissimilar_lines_split(self):
        self.engine.parse_log_message("alpha beta gamma delta epsilon")
        cluster = self.engine.parse_log_message("alpha one two three four")

        self.assertEqual(len(self.engine), 2)
        self.assertEqual(cluster.sightings, 1)

    def test_at_most_one_cluster_per_call(self):
        previous = 0
        for line in SSH_SAMPLE_LINES:
            self.engine.parse_log_message(strip_syslog_prefix(line))
            self.assertLessEqual(len(self.engine), previous + 1)
            previous = len(self.engine)

    def test_templates_only_get_coarser(self):
        wildcards = {}
        for line in SSH_SAMPLE_LINES:
            cluster = self.engine.parse_log_message(strip_syslog_prefix(line))
            self.assertGreaterEqual(cluster.param_count, wildcards.get(cluster.cluster_id, 0))
            wildcards[cluster.cluster_id] = cluster.param_count

    def test_ssh_sample(self):
        engine = DrainEngine(depth=4, additional_delimiters="_")
        for line in SSH_SAMPLE_LINES:
            engine.parse_log_message(strip_syslog_prefix(line))

        self.assertEqual(patterns(engine), SSH_SAMPLE_CLUSTERS)

        top = engine.sorted_clusters()
        self.assertEqual([c.sightings for c in top], [3, 3, 3, 2, 2, 2])

    def test_total_sightings_match_line_count(self):
        for line in SSH_SAMPLE_LINES:
            self.engine.parse_log_message(strip_syslog_prefix(line))
        self.assertEqual(sum(c.sightings for c in self.engine.clusters()), len(SSH_SAMPLE_LINES))


class TestSearch(unittest.TestCase):
    """Test read-only lookups."""

    def setUp(self):
        self.engine = DrainEngine()
        for line in BYTES_LINES:
            self.engine.parse_log_message(line)

    def test_search_finds_cluster(self):
        cluster = self.engine.search("sent 4096 bytes")
        self.assertIsNotNone(cluster)
        self.assertEqual(cluster.pattern, "sent <*> bytes")
        self.assertEqual(cluster.sightings, 4)

    def test_search_does_not_mutate(self):
        before = self.engine.clusters()

        self.engine.search("sent 4096 bytes")
        self.engine.search("received 1 bytes")

        self.assertEqual(self.engine.clusters(), before)

    def test_unseen_length_misses(self):
        before = self.engine.clusters()

        self.assertIsNone(self.engine.search("a line of a length never seen"))
        self.assertEqual(self.engine.clusters(), before)

    def test_dissimilar_line_misses(self):
        self.assertIsNone(self.engine.search("one two three"))

    def test_search_on_empty_engine(self):
        self.assertIsNone(DrainEngine().search("anything"))
        self.assertIsNone(DrainEngine().search(""))

    def test_search_empty_line(self):
        self.assertIsNone(self.engine.search(""))
        created = self.engine.parse_log_message("")
        self.assertEqual(self.engine.search("").cluster_id, created.cluster_id)


class TestClusterViews(unittest.TestCase):

    def test_clusters_in_creation_order(self):
        engine = DrainEngine()
        for line in ("first line here", "second", "sent 1 bytes", "second"):
            engine.parse_log_message(line)

        self.assertEqual([c.pattern for c in engine.clusters()],
                         ["first line here", "second", "sent 1 bytes"])
        self.assertEqual(engine.sorted_clusters()[0].pattern, "second")

    def test_prefix_tree_references_every_cluster(self):
        engine = DrainEngine(additional_delimiters="_")
        for line in SSH_SAMPLE_LINES:
            engine.parse_log_message(strip_syslog_prefix(line))

        referenced = sorted(engine.prefix_tree.referenced_cluster_ids())
        self.assertEqual(referenced, sorted(c.cluster_id for c in engine.clusters()))


@unittest.skipUnless(SSH_LOG.exists(), f"SSH.log corpus not found at {SSH_LOG}, see TestSSHCorpus")
class TestSSHCorpus(unittest.TestCase):
    """
    Mine the full LogHub SSH corpus (655 147 lines).

    The corpus ships in SSH.tar.gz from https://zenodo.org/record/3227177
    (also at https://github.com/logpai/loghub/tree/master/SSH). Extract
    SSH.log into tests/test_data/ or point LOGDRAIN_SSH_LOG at it.
    """

    @classmethod
    def setUpClass(cls):
        cls.engine = DrainEngine(depth=4, additional_delimiters="_")
        with open(SSH_LOG, 'r', encoding='utf-8') as f:
            for line in f:
                cls.engine.parse_log_message(strip_syslog_prefix(line.rstrip('\n')))

    def test_cluster_count(self):
        self.assertEqual(len(self.engine), 51)

    def test_top_clusters(self):
        top = self.engine.sorted_clusters()

        self.assertEqual(top[0].sightings, 140768)
        self.assertEqual(top[0].pattern, "Failed password for <*> from <*> port <*> ssh2")
        self.assertEqual(top[1].sightings, 140701)
        self.assertEqual(
            top[1].pattern,
            "pam unix(sshd:auth): authentication failure; logname= uid=0 euid=0 tty=ssh ruser= <*> <*>"
        )

    def test_search(self):
        cluster = self.engine.search("Received disconnect from 202.100.179.208: 11: Bye Bye [preauth]")
        self.assertEqual(cluster.sightings, 46642)
        self.assertEqual(cluster.pattern, "Received disconnect from <*> 11: <*> <*> <*>")


if __name__ == '__main__':
    unittest.main()
