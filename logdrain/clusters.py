"""
Cluster storage.

The ClusterTable is the single owner of cluster records. The prefix tree and
every other structure refer to clusters by id only.
"""

import logging
import uuid
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from dataclasses import dataclass, field
from dataclasses_json import dataclass_json

from .models import LogCluster, PARAM_MARKER


logger = logging.getLogger(__name__)


@dataclass_json
@dataclass
class ClusterRecord:
    """Mutable cluster state as owned by the table."""
    cluster_id: str
    template: List[str] = field(default_factory=list)
    sightings: int = 1

    def snapshot(self) -> LogCluster:
        return LogCluster(
            cluster_id=self.cluster_id,
            template=tuple(self.template),
            sightings=self.sightings
        )


def coarsen_template(template: Sequence[str], tokens: Sequence[str]) -> List[str]:
    """Keep tokens equal to the template, turn every other position into a wildcard."""
    assert len(template) == len(tokens), \
        f"template length {len(template)} does not match content length {len(tokens)}"

    return [
        template_token if template_token == token else PARAM_MARKER
        for template_token, token in zip(template, tokens)
    ]


class ClusterTable:
    """Arena of cluster records indexed by id, in creation order."""

    def __init__(self, records: Optional[Iterable[ClusterRecord]] = None):
        self._records: Dict[str, ClusterRecord] = {}
        for record in records or ():
            if record.cluster_id in self._records:
                raise ValueError(f"duplicate cluster id {record.cluster_id}")
            self._records[record.cluster_id] = record

    def create(self, tokens: Sequence[str]) -> ClusterRecord:
        cluster_id = uuid.uuid4().hex
        while cluster_id in self._records:
            cluster_id = uuid.uuid4().hex

        record = ClusterRecord(cluster_id=cluster_id, template=list(tokens))
        self._records[cluster_id] = record
        logger.debug("New cluster %s: %s", cluster_id, " ".join(record.template))
        return record

    def new_sighting(self, record: ClusterRecord, tokens: Sequence[str]) -> None:
        new_template = coarsen_template(record.template, tokens)
        if new_template != record.template:
            record.template = new_template
        record.sightings += 1

    def get(self, cluster_id: str) -> ClusterRecord:
        return self._records[cluster_id]

    def __contains__(self, cluster_id: str) -> bool:
        return cluster_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ClusterRecord]:
        return iter(self._records.values())

    def snapshot(self) -> List[LogCluster]:
        return [record.snapshot() for record in self._records.values()]
