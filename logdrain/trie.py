"""
Depth-bounded prefix tree routing token sequences to cluster buckets.

The first level below the root is keyed by token count, the following
levels by the leading tokens of a message. Tokens that look variable
(they contain a digit) and tokens arriving once a node is full go to a
single wildcard child, so a node never has more than ``max_child_per_node``
children.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .models import KeyKind, NodeKey, PARAM_MARKER


def has_number(token: str) -> bool:
    return any(char.isdecimal() for char in token)


def _check_key(key: NodeKey, depth: int) -> None:
    """Token counts key the first level, tokens and the wildcard every level below it."""
    if depth == 1:
        if key.kind is not KeyKind.COUNT or isinstance(key.value, bool) \
                or not isinstance(key.value, int) or key.value < 0:
            raise ValueError(f"expected a token count key at depth 1, got {key.kind} {key.value!r}")
    elif key.kind is KeyKind.TOKEN:
        if not isinstance(key.value, str) or key.value == PARAM_MARKER:
            raise ValueError(f"invalid token key {key.value!r} at depth {depth}")
    elif key.kind is KeyKind.WILDCARD:
        if key.value != PARAM_MARKER:
            raise ValueError(f"invalid wildcard key {key.value!r} at depth {depth}")
    else:
        raise ValueError(f"unexpected {key.kind} key at depth {depth}")


class Node:
    """A node in the prefix tree."""

    def __init__(self, key: NodeKey, depth: int):
        self.key = key
        self.depth = depth
        self.children: Dict[Union[int, str], 'Node'] = {}
        self.wildcard_child: Optional['Node'] = None
        self.cluster_ids: List[str] = []

    def add_child(self, token: Union[int, str]) -> 'Node':
        """Add a child node for the given count or token, or return the existing one."""
        if token == PARAM_MARKER:
            return self.add_wildcard_child()
        if token not in self.children:
            if isinstance(token, int):
                key = NodeKey.count(token)
            else:
                key = NodeKey.token(token)
            self.children[token] = Node(key, self.depth + 1)
        return self.children[token]

    def add_wildcard_child(self) -> 'Node':
        if self.wildcard_child is None:
            self.wildcard_child = Node(NodeKey.wildcard(), self.depth + 1)
        return self.wildcard_child

    def get_child(self, token: Union[int, str]) -> Optional['Node']:
        """Get child node for the given count or token."""
        if token == PARAM_MARKER:
            return self.wildcard_child
        return self.children.get(token)

    def child_count(self) -> int:
        return len(self.children) + (1 if self.wildcard_child is not None else 0)

    def iter_children(self) -> Iterator['Node']:
        yield from self.children.values()
        if self.wildcard_child is not None:
            yield self.wildcard_child

    def to_dict(self) -> Dict[str, Any]:
        children = {str(child.key): child.to_dict() for child in self.iter_children()}
        return {
            "depth": self.depth,
            "key": {"kind": str(self.key.kind), "value": self.key.value},
            "clusters": list(self.cluster_ids),
            "children": children,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Node':
        key_data = data["key"]
        key = NodeKey(KeyKind(key_data["kind"]), key_data.get("value"))
        node = cls(key, int(data["depth"]))
        node.cluster_ids = [str(cluster_id) for cluster_id in data["clusters"]]

        for child_data in data["children"].values():
            child = cls.from_dict(child_data)
            if child.depth != node.depth + 1:
                raise ValueError(f"node {child.key} at depth {child.depth} "
                                 f"cannot be a child of depth {node.depth}")
            _check_key(child.key, child.depth)

            if child.key.kind is KeyKind.WILDCARD:
                if node.wildcard_child is not None:
                    raise ValueError(f"duplicate wildcard child below {node.key}")
                node.wildcard_child = child
            else:
                if child.key.value in node.children:
                    raise ValueError(f"duplicate child {child.key} below {node.key}")
                node.children[child.key.value] = child
        return node

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return (self.depth == other.depth
                and self.key == other.key
                and self.cluster_ids == other.cluster_ids
                and self.children == other.children
                and self.wildcard_child == other.wildcard_child)

    __hash__ = None

    def __repr__(self) -> str:
        return (f"Node(depth={self.depth}, key={self.key}, "
                f"children={self.child_count()}, clusters={self.cluster_ids})")


class PrefixTree:
    """
    Routes a token sequence to the bucket of candidate cluster ids.

    ``effective_depth`` is the configured depth minus the token-count level
    and the leaf level; it bounds the number of token-keyed steps.
    """

    def __init__(self, effective_depth: int, max_child_per_node: int, root: Optional[Node] = None):
        if effective_depth < 1:
            raise ValueError(f"effective depth must be at least 1, got {effective_depth}")
        self.effective_depth = effective_depth
        self.max_child_per_node = max_child_per_node
        self.root = root if root is not None else Node(NodeKey.root(), 0)

    def search(self, tokens: Sequence[str]) -> Optional[List[str]]:
        """Return the bucket the tokens route to, or None when no path exists yet."""
        token_count = len(tokens)
        node = self.root.get_child(token_count)
        if node is None:
            return None

        # the empty message has a single cluster in its bucket
        if token_count == 0:
            return node.cluster_ids

        current_depth = 1
        for token in tokens:
            if current_depth == self.effective_depth or current_depth == token_count:
                break

            next_node = node.get_child(token)
            if next_node is None:
                next_node = node.wildcard_child
            if next_node is None:
                return None
            node = next_node
            current_depth += 1

        return node.cluster_ids

    def insert(self, cluster_id: str, tokens: Sequence[str]) -> Node:
        """Insert a new cluster along the path of its template tokens and return its bucket node."""
        token_count = len(tokens)
        node = self.root.add_child(token_count)

        if token_count == 0:
            node.cluster_ids.append(cluster_id)
            return node

        current_depth = 1
        for token in tokens:
            if current_depth == self.effective_depth or current_depth == token_count:
                node.cluster_ids.append(cluster_id)
                return node

            child = node.get_child(token)
            if child is not None:
                node = child
            elif has_number(token):
                node = node.add_wildcard_child()
            elif node.wildcard_child is not None:
                if node.child_count() < self.max_child_per_node:
                    node = node.add_child(token)
                else:
                    node = node.wildcard_child
            elif node.child_count() + 1 < self.max_child_per_node:
                node = node.add_child(token)
            else:
                # last free slot goes to the wildcard
                node = node.add_wildcard_child()
            current_depth += 1

        # unreachable: the last token always stops the walk
        raise AssertionError(f"no bucket found for {token_count} tokens")

    def iter_nodes(self) -> Iterator[Node]:
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(node.iter_children())

    def referenced_cluster_ids(self) -> Iterator[str]:
        for node in self.iter_nodes():
            yield from node.cluster_ids

    def iter_bucket_entries(self) -> Iterator[Tuple[int, str]]:
        """Yield (token count, cluster id) for every cluster id stored below a count node."""
        for count_node in self.root.iter_children():
            stack = [count_node]
            while stack:
                node = stack.pop()
                for cluster_id in node.cluster_ids:
                    yield count_node.key.value, cluster_id
                stack.extend(node.iter_children())

    def to_dict(self) -> Dict[str, Any]:
        return self.root.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], effective_depth: int, max_child_per_node: int) -> 'PrefixTree':
        root = Node.from_dict(data)
        if root.key.kind is not KeyKind.ROOT or root.depth != 0:
            raise ValueError(f"prefix tree must start with a root node, got {root.key}")
        if root.cluster_ids:
            raise ValueError("the root node cannot hold clusters")

        tree = cls(effective_depth, max_child_per_node, root)
        for node in tree.iter_nodes():
            if node.depth > effective_depth:
                raise ValueError(f"node {node.key} at depth {node.depth} "
                                 f"is below the effective depth {effective_depth}")
            if node.depth > 0 and node.child_count() > max_child_per_node:
                raise ValueError(f"node {node.key} has {node.child_count()} children, "
                                 f"more than {max_child_per_node}")
        return tree

    def __eq__(self, other):
        if not isinstance(other, PrefixTree):
            return NotImplemented
        return (self.effective_depth == other.effective_depth
                and self.max_child_per_node == other.max_child_per_node
                and self.root == other.root)

    __hash__ = None
