"""
I/O utilities: miner state persistence, JSONL cluster exports and log line sources.
"""

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from .clusters import ClusterRecord, ClusterTable
from .drain import DrainEngine
from .models import ConfigurationError, DrainConfig, LogCluster
from .trie import PrefixTree


logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1

PathLike = Union[str, Path]


class StateFormatError(ValueError):
    """Raised when a persisted miner state cannot be decoded."""


class StateCodec:
    """
    Saves and restores miner state as a JSON document.

    Tree nodes reference clusters by id only, so a decoded miner shares each
    cluster record between its cluster table and its prefix tree.
    """

    def __init__(self, indent: Optional[int] = 2):
        self.indent = indent

    def encode(self, engine: DrainEngine) -> Dict[str, Any]:
        return {
            "format-version": STATE_FORMAT_VERSION,
            "config": engine.config.to_dict(),
            "clusters": [record.to_dict() for record in engine.cluster_table],
            "prefix-tree": engine.prefix_tree.to_dict(),
        }

    def decode(self, document: Dict[str, Any]) -> DrainEngine:
        """
        Rebuild a miner from an encoded document.

        Raises:
            StateFormatError: if the document is malformed
            ConfigurationError: if the stored configuration is invalid
        """
        try:
            version = document["format-version"]
            if version != STATE_FORMAT_VERSION:
                raise StateFormatError(f"unsupported state format version {version!r}")

            config = DrainConfig.from_dict(document["config"])
            table = ClusterTable(
                ClusterRecord(
                    cluster_id=str(data["cluster_id"]),
                    template=[str(token) for token in data["template"]],
                    sightings=int(data["sightings"])
                )
                for data in document["clusters"]
            )
            tree = PrefixTree.from_dict(
                document["prefix-tree"],
                config.effective_depth,
                config.max_child_per_node
            )
        except (StateFormatError, ConfigurationError):
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise StateFormatError(f"invalid miner state: {e!r}") from e

        self._check_references(table, tree)
        return DrainEngine.from_state(config, table, tree)

    @staticmethod
    def _check_references(table: ClusterTable, tree: PrefixTree) -> None:
        """Every cluster sits in exactly one bucket under the count node of its template length."""
        referenced = set()
        for token_count, cluster_id in tree.iter_bucket_entries():
            if cluster_id not in table:
                raise StateFormatError(f"prefix tree references unknown cluster {cluster_id}")
            if cluster_id in referenced:
                raise StateFormatError(f"cluster {cluster_id} is referenced by more than one bucket")
            referenced.add(cluster_id)

            template_length = len(table.get(cluster_id).template)
            if template_length != token_count:
                raise StateFormatError(f"cluster {cluster_id} has {template_length} tokens "
                                       f"but sits below the {token_count} token node")

        unreferenced = [record.cluster_id for record in table if record.cluster_id not in referenced]
        if unreferenced:
            raise StateFormatError(f"clusters missing from the prefix tree: {', '.join(unreferenced)}")

    def dumps(self, engine: DrainEngine) -> str:
        return json.dumps(self.encode(engine), indent=self.indent, ensure_ascii=False)

    def loads(self, text: str) -> DrainEngine:
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise StateFormatError(f"miner state is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise StateFormatError("miner state must be a JSON object")
        return self.decode(document)

    def save(self, engine: DrainEngine, path: PathLike) -> None:
        path = Path(path)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.dumps(engine))
            f.write('\n')
        logger.info("Saved %d clusters to %s", len(engine), path)

    def load(self, path: PathLike) -> DrainEngine:
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            engine = self.loads(f.read())
        logger.info("Loaded %d clusters from %s", len(engine), path)
        return engine


class JSONLWriter:
    """
    Writer for JSONL (JSON Lines) cluster exports.
    """

    def __init__(self, file_path: PathLike):
        self.file_path = Path(file_path)
        self.file_handle = None

    def __enter__(self):
        self.file_handle = open(self.file_path, 'w', encoding='utf-8')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.file_handle:
            self.file_handle.close()

    def write_cluster(self, cluster: LogCluster) -> None:
        """Write a single cluster to the JSONL file."""
        if not self.file_handle:
            raise ValueError("JSONLWriter not opened")

        record = cluster.to_dict()
        record["pattern"] = cluster.pattern
        json.dump(record, self.file_handle, ensure_ascii=False)
        self.file_handle.write('\n')

    def write_clusters(self, clusters: List[LogCluster]) -> None:
        for cluster in clusters:
            self.write_cluster(cluster)


class JSONLReader:
    """
    Reader for JSONL (JSON Lines) cluster exports.
    """

    def __init__(self, file_path: PathLike):
        self.file_path = Path(file_path)

    def read_clusters(self) -> List[LogCluster]:
        """Read all clusters from the JSONL file."""
        return list(self)

    def __iter__(self) -> Iterator[LogCluster]:
        if not self.file_path.exists():
            return

        with open(self.file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    record = json.loads(line)
                    record.pop("pattern", None)
                    yield LogCluster.from_dict(record)
                except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
                    logger.warning("Skipping invalid cluster at %s:%d: %s", self.file_path, line_num, e)


class FromLine:
    """
    Where to start reading a file, in the manner of ``tail -n``.

    ``"N"`` keeps the last N lines (0 meaning the whole file) and ``"+N"``
    starts at line N, counting from 1.
    """

    def __init__(self, number: int = 0, from_start: bool = False):
        if number < 0:
            raise ValueError(f"invalid number of lines '{number}': must be 0 or positive number.")
        self.number = number
        self.from_start = from_start

    @classmethod
    def parse(cls, value: str) -> 'FromLine':
        value = value.strip()
        from_start = value.startswith('+')
        if from_start:
            value = value[1:]
        try:
            number = int(value)
        except ValueError:
            raise ValueError(f"invalid number of lines '{value}': must be 0 or positive number.")
        return cls(number, from_start)

    @property
    def whole_file(self) -> bool:
        if self.from_start:
            return self.number <= 1
        return self.number == 0

    def __eq__(self, other):
        if not isinstance(other, FromLine):
            return NotImplemented
        return self.number == other.number and self.from_start == other.from_start

    def __repr__(self) -> str:
        return f"FromLine({'+' if self.from_start else ''}{self.number})"


class LinePreprocessor:
    """
    Drops a leading part of each line before mining, typically the timestamp
    and host prefix of syslog style records.
    """

    def __init__(self, parse_after_str: str = "", parse_after_col: int = 0):
        if parse_after_col < 0:
            raise ValueError("parse_after_col must be 0 or positive")
        self.parse_after_str = parse_after_str
        self.parse_after_col = parse_after_col

    def __call__(self, line: str) -> str:
        if self.parse_after_col > 0:
            return line[self.parse_after_col:]

        if self.parse_after_str:
            index = line.find(self.parse_after_str)
            if index >= 0:
                return line[index + len(self.parse_after_str):]
        return line


class LineSource:
    """
    Iterates the decoded lines of a log file, without line terminators.
    """

    def __init__(self, path: PathLike, from_line: Optional[FromLine] = None, encoding: str = 'utf-8'):
        self.path = Path(path)
        self.from_line = from_line or FromLine()
        self.encoding = encoding

    def __iter__(self) -> Iterator[str]:
        with open(self.path, 'r', encoding=self.encoding, errors='replace', newline='') as f:
            lines = (line.rstrip('\r\n') for line in f)

            if self.from_line.whole_file:
                yield from lines
            elif self.from_line.from_start:
                for line_num, line in enumerate(lines, 1):
                    if line_num >= self.from_line.number:
                        yield line
            else:
                yield from deque(lines, maxlen=self.from_line.number)

    def count_lines(self) -> int:
        """Count the lines that iteration would yield."""
        return sum(1 for _ in self)
