"""
Online log template miner.

Implements the Drain clustering algorithm: a line is tokenized, routed
through a depth-bounded prefix tree to a small bucket of candidate clusters,
and either merged into the most similar candidate (coarsening its template)
or turned into a new cluster.
"""

import logging
from typing import List, Optional, Sequence

from .clusters import ClusterRecord, ClusterTable
from .matching import fast_match
from .models import DrainConfig, LogCluster
from .tokenizer import tokenize
from .trie import PrefixTree


logger = logging.getLogger(__name__)


class DrainEngine:
    """
    Mines log templates one line at a time.

    The engine is not thread-safe: ``parse_log_message`` mutates the prefix
    tree and cluster table in place, so callers sharing an engine between
    threads must serialize every call with their own lock. Read-only calls
    (``search``, ``clusters``) may run concurrently with each other but never
    with ``parse_log_message``.
    """

    def __init__(self, config: Optional[DrainConfig] = None, **overrides):
        """
        Args:
            config: Miner configuration (defaults to DrainConfig())
            overrides: Individual DrainConfig fields, applied on top of config

        Raises:
            ConfigurationError: if a parameter is out of range
        """
        if config is None:
            config = DrainConfig(**overrides)
        elif overrides:
            merged = config.to_dict()
            merged.update(overrides)
            config = DrainConfig(**merged)

        self._config = config
        self._table = ClusterTable()
        self._tree = PrefixTree(config.effective_depth, config.max_child_per_node)

    @classmethod
    def from_state(cls, config: DrainConfig, table: ClusterTable, tree: PrefixTree) -> 'DrainEngine':
        """Rebuild an engine around an existing cluster table and prefix tree."""
        if tree.effective_depth != config.effective_depth or \
                tree.max_child_per_node != config.max_child_per_node:
            raise ValueError("prefix tree settings do not match the configuration")

        engine = cls(config)
        engine._table = table
        engine._tree = tree
        logger.debug("Restored miner with %d clusters", len(table))
        return engine

    @property
    def config(self) -> DrainConfig:
        return self._config

    @property
    def cluster_table(self) -> ClusterTable:
        return self._table

    @property
    def prefix_tree(self) -> PrefixTree:
        return self._tree

    def tokenize(self, line: str) -> List[str]:
        return tokenize(line, self._config.additional_delimiters)

    def parse_log_message(self, line: str) -> LogCluster:
        """
        Attribute a log line to a cluster, creating one if nothing matches.

        Returns:
            Snapshot of the cluster the line was attributed to
        """
        tokens = self.tokenize(line)
        match = self._tree_search(tokens)

        if match is None:
            match = self._table.create(tokens)
            self._tree.insert(match.cluster_id, match.template)
        else:
            self._table.new_sighting(match, tokens)

        return match.snapshot()

    def search(self, line: str) -> Optional[LogCluster]:
        """Find the cluster a line belongs to without changing any state."""
        match = self._tree_search(self.tokenize(line))
        return match.snapshot() if match is not None else None

    def clusters(self) -> List[LogCluster]:
        """Snapshot of all clusters in creation order."""
        return self._table.snapshot()

    def sorted_clusters(self) -> List[LogCluster]:
        """Clusters ranked by sightings, most frequent first."""
        return sorted(self.clusters(), key=lambda c: c.sightings, reverse=True)

    def _tree_search(self, tokens: Sequence[str]) -> Optional[ClusterRecord]:
        bucket = self._tree.search(tokens)
        if not bucket:
            return None

        if not tokens:
            return self._table.get(bucket[0])

        candidates = (self._table.get(cluster_id) for cluster_id in bucket)
        return fast_match(candidates, tokens, self._config.similarity_threshold)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"DrainEngine(config={self._config}, clusters={len(self._table)})"
