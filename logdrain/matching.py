"""
Similarity matching of a token sequence against candidate clusters.
"""

from typing import Iterable, NamedTuple, Optional, Sequence

from .clusters import ClusterRecord
from .models import PARAM_MARKER


class SeqDistance(NamedTuple):
    similarity: float
    param_count: int


def seq_distance(template: Sequence[str], tokens: Sequence[str]) -> SeqDistance:
    """
    Share of literal template positions equal to the content, over the
    template length, plus the number of wildcard positions.
    """
    assert len(template) == len(tokens), \
        f"template length {len(template)} does not match content length {len(tokens)}"

    similar_tokens = 0
    param_count = 0
    for template_token, token in zip(template, tokens):
        if template_token == PARAM_MARKER:
            param_count += 1
        elif template_token == token:
            similar_tokens += 1

    return SeqDistance(similar_tokens / len(template), param_count)


def fast_match(candidates: Iterable[ClusterRecord],
               tokens: Sequence[str],
               similarity_threshold: float) -> Optional[ClusterRecord]:
    """
    Pick the most similar candidate, preferring the one with more wildcards
    on equal similarity and the earliest candidate after that.

    Returns None when the best similarity is below the threshold.
    """
    max_similarity = -1.0
    max_param_count = -1
    max_cluster = None

    for cluster in candidates:
        similarity, param_count = seq_distance(cluster.template, tokens)
        if similarity > max_similarity or \
                (similarity == max_similarity and param_count > max_param_count):
            max_similarity = similarity
            max_param_count = param_count
            max_cluster = cluster

    if max_similarity >= similarity_threshold:
        return max_cluster
    return None
