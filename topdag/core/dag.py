"""
TOPDAG GRAPH STORE - The Acyclic Core

A key-indexed node store with bidirectional adjacency sets. Every node is
added together with its complete set of outgoing edges, and the store
refuses any addition that would close a cycle.

Architecture:
  _data:     Dict[Key, Payload]     (key -> payload)
  _outgoing: Dict[Key, Set[Key]]    (present for every node, possibly empty)
  _incoming: Dict[Key, Set[Key]]    (may hold keys that were never added)

Edges may point at keys that are not (yet) nodes. Those "dangling" edges are
legal; they are recorded in _incoming under the missing key and resolved at
query time (see topdag.core.sorting).

Invariants (held after every public call):
1. _data and _outgoing have identical key sets
2. No walk along outgoing edges returns to its starting node
3. For every edge (a, b) with b present, a is in _incoming[b]

Performance Characteristics:
- add_node: O(V+E) worst case (cycle guard), O(out-degree) otherwise
- remove_node: O(out-degree)
- path_exists: O(V+E) breadth-first search
- trim: O(V+E)
"""
import logging
from collections import deque
from typing import (
    Any, Dict, Hashable, Iterable, Iterator, List, Optional, Set, Tuple,
)

from topdag.infrastructure.config import DagConfig
from topdag.infrastructure.logger import MutationLogger

logger = logging.getLogger(__name__)

Key = Hashable


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NodeNotFoundError(GraphError):
    """Raised when an operation requires a key that is not in the graph."""
    def __init__(self, key: Key):
        self.key = key
        super().__init__(f"Node not found: {key!r}")


class DuplicateNodeError(GraphError):
    """Raised when attempting to add a node with an existing key."""
    def __init__(self, key: Key):
        self.key = key
        super().__init__(f"Node already exists: {key!r}")


class GraphInvariantError(GraphError):
    """Raised when a graph invariant is violated."""
    pass


class CycleDetectedError(GraphInvariantError):
    """Raised when adding a node with the given outgoing edges would create a cycle."""
    def __init__(self, key: Key, outgoing: Iterable[Key]):
        self.key = key
        self.outgoing = list(outgoing)
        super().__init__(
            f"Cannot add node {key!r} -> {self.outgoing!r}: would create cycle"
        )


class InvalidArgumentError(GraphError):
    """Raised when a required argument is missing."""
    pass


class TypeMismatchError(GraphError):
    """Raised when a payload lacks a capability a query requires."""
    def __init__(self, key: Key, payload: Any, capability: str):
        self.key = key
        self.payload_type = type(payload)
        self.capability = capability
        super().__init__(
            f"Payload of node {key!r} ({self.payload_type.__name__}) "
            f"does not provide {capability}"
        )


# =============================================================================
# DAG (The Graph Store)
# =============================================================================

class Dag:
    """
    In-memory directed acyclic graph keyed by arbitrary hashable values.

    Usage:
        dag = Dag()
        dag.add_node("build", payload, ["compile", "fetch"])
        dag.add_node("compile", payload, ["fetch"])
        dag.add_node("fetch", payload)

        dag.path_exists("build", "fetch")   # True
        dag.add_node("deploy", payload, ["deploy"])  # CycleDetectedError

    Thread Safety:
        NOT thread-safe. Use external locking if needed for concurrent access.
        shallow_copy() shares payload objects between instances, so mutating
        a payload through one graph is visible through the other.
    """

    def __init__(
        self,
        config: Optional[DagConfig] = None,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        """
        Initialize an empty graph.

        Args:
            config: Engine configuration. Defaults to DagConfig().
            mutation_logger: Explicit event log. If omitted, one is created
                             when config.log_mutations is set.
        """
        self.config = config or DagConfig()

        self._data: Dict[Key, Any] = {}
        self._outgoing: Dict[Key, Set[Key]] = {}
        self._incoming: Dict[Key, Set[Key]] = {}

        if mutation_logger is None and self.config.log_mutations:
            mutation_logger = MutationLogger(self.config)
        self._mutation_logger = mutation_logger

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return len(self._outgoing)

    @property
    def edge_count(self) -> int:
        """Number of edges, dangling edges included."""
        return sum(len(dests) for dests in self._outgoing.values())

    @property
    def is_empty(self) -> bool:
        """True if graph has no nodes."""
        return not self._outgoing

    @property
    def mutation_logger(self) -> Optional[MutationLogger]:
        """The event log, if mutation logging is enabled."""
        return self._mutation_logger

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_node(self, key: Key, payload: Any, outgoing: Iterable[Key] = ()) -> None:
        """
        Add a node together with all of its outgoing edges.

        The call is all-or-nothing: every check runs before the graph is
        touched, so a rejected call leaves no payload and no edges behind.

        Args:
            key: Unique node key
            payload: Value bound to the key
            outgoing: Destination keys. They need not be present yet.

        Raises:
            DuplicateNodeError: If key is already a node
            CycleDetectedError: If the new edges would close a cycle
        """
        destinations = set(outgoing)

        if key in self._outgoing:
            raise DuplicateNodeError(key)

        if self.causes_cycle(key, destinations):
            logger.debug("Rejected node %r: outgoing %r closes a cycle", key, destinations)
            if self._mutation_logger is not None:
                self._mutation_logger.log_cycle_rejected(key, destinations)
            raise CycleDetectedError(key, destinations)

        self._data[key] = payload
        self._outgoing[key] = destinations
        for dest in destinations:
            self._incoming.setdefault(dest, set()).add(key)

        if self._mutation_logger is not None:
            self._mutation_logger.log_node_added(key, destinations)

    def remove_node(self, key: Key) -> Any:
        """
        Remove a node and its outgoing edges.

        Edges from other nodes into `key` are kept and become dangling.

        Args:
            key: The node to remove

        Returns:
            The removed payload

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        if key not in self._outgoing:
            raise NodeNotFoundError(key)

        payload = self._data.pop(key)
        for dest in self._outgoing.pop(key):
            self._incoming[dest].discard(key)

        if self._mutation_logger is not None:
            self._mutation_logger.log_node_removed(key)

        return payload

    def get_node(self, key: Key) -> Any:
        """
        Retrieve the payload bound to a key.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        if key not in self._data:
            raise NodeNotFoundError(key)
        return self._data[key]

    def contains(self, key: Key) -> bool:
        """Check if a node exists."""
        return key in self._outgoing

    def keys(self) -> List[Key]:
        """All node keys, in insertion order."""
        return list(self._outgoing)

    def items(self) -> Iterator[Tuple[Key, Any]]:
        """Iterate (key, payload) pairs."""
        return iter(list(self._data.items()))

    # =========================================================================
    # EDGE QUERIES
    # =========================================================================

    def get_outgoing(self, key: Key) -> Set[Key]:
        """Destinations of a key's edges. Empty if the key is unknown."""
        return set(self._outgoing.get(key, ()))

    def get_incoming(self, key: Key) -> Set[Key]:
        """
        Sources of edges pointing at a key, whether or not the key itself
        has been added. Empty if nothing points at it.
        """
        return set(self._incoming.get(key, ()))

    def edges(self) -> Iterator[Tuple[Key, Key]]:
        """Iterate (source, destination) pairs, dangling edges included."""
        for source, dests in list(self._outgoing.items()):
            for dest in dests:
                yield source, dest

    def dangling_edges(self) -> List[Tuple[Key, Key]]:
        """Edges whose destination is not a node."""
        return [(s, d) for s, d in self.edges() if d not in self._outgoing]

    def get_root_keys(self) -> List[Key]:
        """Nodes with no incoming edges (entry points)."""
        return [k for k in self._outgoing if not self._incoming.get(k)]

    def get_leaf_keys(self) -> List[Key]:
        """Nodes with no outgoing edges (terminal nodes)."""
        return [k for k, dests in self._outgoing.items() if not dests]

    # =========================================================================
    # CYCLE GUARD
    # =========================================================================

    def path_exists(self, start: Key, end: Key) -> bool:
        """
        Breadth-first reachability over outgoing edges.

        A key reaches itself with a zero-length path, so
        path_exists(k, k) is always True. Unknown keys have no
        outgoing edges and reach nothing but themselves.
        """
        visited = {start}
        queue = deque([start])

        while queue:
            current = queue.popleft()
            if current == end:
                return True

            for dest in self._outgoing.get(current, ()):
                if dest not in visited:
                    visited.add(dest)
                    queue.append(dest)

        return False

    def causes_cycle(self, key: Key, outgoing: Iterable[Key]) -> bool:
        """
        Check whether adding `key` with these outgoing edges would close a cycle.

        A cycle needs a walk key -> d -> ... -> p -> key, so it suffices to
        test reachability from every new destination d to every existing
        predecessor p of key.
        """
        destinations = set(outgoing)
        if key in destinations:
            return True

        predecessors = self._incoming.get(key)
        if not predecessors:
            return False

        return any(
            self.path_exists(dest, pred)
            for dest in destinations
            for pred in predecessors
        )

    # =========================================================================
    # PRUNING
    # =========================================================================

    def trim(self, root_keys: Optional[Iterable[Key]]) -> List[Key]:
        """
        Remove every node that is not reachable from the given roots.

        Args:
            root_keys: Keys to keep, together with everything they reach.
                       An empty collection removes every node.

        Returns:
            The removed keys

        Raises:
            InvalidArgumentError: If root_keys is None
        """
        if root_keys is None:
            raise InvalidArgumentError("trim() requires a collection of root keys")

        unconnected = set(self._outgoing)
        queue = deque(root_keys)

        while queue:
            key = queue.popleft()
            if key not in unconnected:
                continue
            unconnected.discard(key)
            queue.extend(self._outgoing[key])

        removed = [k for k in self._outgoing if k in unconnected]
        for key in removed:
            self.remove_node(key)

        logger.debug("Trimmed %d nodes, %d retained", len(removed), self.node_count)
        if self._mutation_logger is not None:
            self._mutation_logger.log_trimmed(self.node_count, len(removed))

        return removed

    # =========================================================================
    # COPYING
    # =========================================================================

    def shallow_copy(self) -> "Dag":
        """
        Copy the topology into a new graph of the same class.

        The node map and every adjacency set are new containers; the payload
        objects are shared with this graph, not copied.

        If this graph logs mutations, the copy gets a fresh MutationLogger
        built from the same logger config, so its events stay separate.
        """
        clone_logger = None
        if self._mutation_logger is not None:
            clone_logger = MutationLogger(self._mutation_logger.config)

        clone = type(self)(config=self.config, mutation_logger=clone_logger)
        clone._data = dict(self._data)
        clone._outgoing = {k: set(v) for k, v in self._outgoing.items()}
        clone._incoming = {k: set(v) for k, v in self._incoming.items()}
        return clone

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Release the mutation logger's file handle, if any. The graph stays usable."""
        if self._mutation_logger is not None:
            self._mutation_logger.close()

    def __enter__(self) -> "Dag":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def _indices(self) -> Tuple[Dict[Key, Any], Dict[Key, Set[Key]], Dict[Key, Set[Key]]]:
        """Internal: raw containers, for validators that must see the real state."""
        return self._data, self._outgoing, self._incoming

    def __len__(self) -> int:
        """Return number of nodes."""
        return self.node_count

    def __contains__(self, key: Key) -> bool:
        """Check if node exists."""
        return key in self._outgoing

    def __getitem__(self, key: Key) -> Any:
        return self.get_node(key)

    def __iter__(self) -> Iterator[Tuple[Key, Any]]:
        return self.items()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(nodes={self.node_count}, edges={self.edge_count})"


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_empty_dag() -> Dag:
    """Create an empty Dag instance."""
    return Dag()


def create_dag_from_nodes(
    nodes: Iterable[Tuple[Key, Any, Iterable[Key]]],
    config: Optional[DagConfig] = None,
) -> Dag:
    """
    Create a Dag pre-populated with nodes.

    Args:
        nodes: (key, payload, outgoing) triples, added in order
        config: Optional engine configuration

    Returns:
        Populated Dag

    Raises:
        DuplicateNodeError, CycleDetectedError: As for Dag.add_node
    """
    dag = Dag(config=config)
    for key, payload, outgoing in nodes:
        dag.add_node(key, payload, outgoing)
    return dag
