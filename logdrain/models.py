"""
Core data models for online log template mining.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union

from dataclasses_json import dataclass_json, config


PARAM_MARKER = "<*>"
ROOT_AND_LEAF_LEVELS = 2


class ConfigurationError(ValueError):
    """Raised when a miner is configured with out-of-range parameters."""


class KeyKind(Enum):
    """Kinds of prefix tree node keys."""
    ROOT = "root"
    COUNT = "count"
    TOKEN = "token"
    WILDCARD = "wildcard"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NodeKey:
    """Tagged key of a prefix tree node."""
    kind: KeyKind
    value: Union[int, str, None] = None

    @classmethod
    def root(cls) -> 'NodeKey':
        return cls(KeyKind.ROOT)

    @classmethod
    def count(cls, token_count: int) -> 'NodeKey':
        return cls(KeyKind.COUNT, token_count)

    @classmethod
    def token(cls, token: str) -> 'NodeKey':
        if token == PARAM_MARKER:
            return cls.wildcard()
        return cls(KeyKind.TOKEN, token)

    @classmethod
    def wildcard(cls) -> 'NodeKey':
        return cls(KeyKind.WILDCARD, PARAM_MARKER)

    def __str__(self) -> str:
        if self.kind is KeyKind.ROOT:
            return "(ROOT)"
        return str(self.value)


@dataclass_json
@dataclass
class DrainConfig:
    """
    Miner configuration.

    depth counts the root and leaf levels, so the number of token-keyed
    levels walked below the token-count level is ``depth - 2``.
    """
    depth: int = 4
    similarity_threshold: float = 0.4
    max_child_per_node: int = 100
    additional_delimiters: str = ""

    def __post_init__(self):
        if isinstance(self.depth, bool) or not isinstance(self.depth, int):
            raise ConfigurationError(f"depth must be an integer, got {self.depth!r}")
        if self.depth < 3:
            raise ConfigurationError(f"depth must be at least 3, got {self.depth}")

        if isinstance(self.similarity_threshold, bool) or \
                not isinstance(self.similarity_threshold, (int, float)):
            raise ConfigurationError(
                f"similarity_threshold must be a number, got {self.similarity_threshold!r}")
        if not 0.1 < self.similarity_threshold <= 1.0:
            raise ConfigurationError(
                f"similarity_threshold must be in (0.1, 1], got {self.similarity_threshold}")
        self.similarity_threshold = float(self.similarity_threshold)

        if isinstance(self.max_child_per_node, bool) or not isinstance(self.max_child_per_node, int):
            raise ConfigurationError(
                f"max_child_per_node must be an integer, got {self.max_child_per_node!r}")
        if self.max_child_per_node < 2:
            raise ConfigurationError(
                f"max_child_per_node must be at least 2, got {self.max_child_per_node}")

        if not isinstance(self.additional_delimiters, str):
            raise ConfigurationError(
                f"additional_delimiters must be a string, got {self.additional_delimiters!r}")

    @property
    def effective_depth(self) -> int:
        return self.depth - ROOT_AND_LEAF_LEVELS


@dataclass_json
@dataclass(frozen=True)
class LogCluster:
    """Immutable view of a mined cluster."""
    cluster_id: str
    template: Tuple[str, ...] = field(metadata=config(
        encoder=list,
        decoder=tuple
    ))
    sightings: int = 1

    @property
    def pattern(self) -> str:
        return " ".join(self.template)

    @property
    def param_count(self) -> int:
        return sum(1 for token in self.template if token == PARAM_MARKER)

    def __str__(self) -> str:
        return f"{self.cluster_id} (size {self.sightings}): {self.pattern}"
