"""
TOPDAG SATISFIABILITY - Paths Where Every Node Holds

Given a graph whose payloads can each report whether they are "satisfied",
find every root-to-sink path made only of satisfied nodes.

Algorithm:
1. topological_sort() the graph.
2. Walk the layers bottom-up and mark a node eligible when its own
   predicate holds and it is either a sink or has an eligible destination.
3. Detached nodes are judged on their own predicate alone and each
   satisfied one forms a single-node path.
4. From every eligible root (no incoming edges) run an explicit-stack
   depth-first search restricted to eligible nodes. Each time the stack
   tops out at a sink the stack is one path.

Cost:
The number of maximal paths through the eligible subgraph can grow
exponentially with fan-out (a ladder of n diamonds has 2**n paths).
find_satisfied_paths() materializes all of them. is_satisfied() stops at
the first one.
"""
import logging
from typing import Any, Dict, Iterator, List, Protocol, Set, runtime_checkable

from topdag.core.dag import Dag, Key, TypeMismatchError
from topdag.core.sorting import SortResult, topological_sort

logger = logging.getLogger(__name__)

_NOTHING = object()


@runtime_checkable
class SatisfiabilityNode(Protocol):
    """Payload capability required by SatisfiabilityDag."""

    def is_satisfied(self) -> bool:
        """Return whether this node holds. Must be free of side effects."""
        ...


class SatisfiabilityDag(Dag):
    """
    A Dag whose payloads implement SatisfiabilityNode.

    Any payload type may be stored; the capability is checked when a
    satisfiability query runs, and a payload without it raises
    TypeMismatchError. The plain Dag operations work regardless.

    Usage:
        dag = SatisfiabilityDag()
        dag.add_node("A", Check(ok=True), ["B", "C"])
        dag.add_node("B", Check(ok=True), ["D"])
        dag.add_node("C", Check(ok=False), ["D"])
        dag.add_node("D", Check(ok=True))

        dag.find_satisfied_paths()   # [["A", "B", "D"]]
    """

    # =========================================================================
    # PUBLIC QUERIES
    # =========================================================================

    def is_satisfied(self) -> bool:
        """True if at least one satisfied path exists."""
        return next(self.iter_satisfied_paths(), None) is not None

    def find_satisfied_paths(self) -> List[List[Key]]:
        """
        Every satisfied path, root first and sink last.

        Single-node paths for satisfied detached nodes come first.
        Returns an empty list if nothing is satisfied.

        Raises:
            TypeMismatchError: If any payload lacks is_satisfied()
        """
        return list(self.iter_satisfied_paths())

    def iter_satisfied_paths(self) -> Iterator[List[Key]]:
        """
        Lazily yield satisfied paths in the order find_satisfied_paths() uses.

        The capability check runs eagerly, before the iterator is returned.

        Raises:
            TypeMismatchError: If any payload lacks is_satisfied()
        """
        self._require_capability()
        return self._generate_paths(topological_sort(self))

    def get_satisfied_keys(self) -> Set[Key]:
        """
        Layered nodes that can start or continue a satisfied path.

        Raises:
            TypeMismatchError: If any payload lacks is_satisfied()
        """
        self._require_capability()
        return self._eligible_keys(topological_sort(self))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_capability(self) -> None:
        for key, payload in self.items():
            if not isinstance(payload, SatisfiabilityNode) or not callable(payload.is_satisfied):
                raise TypeMismatchError(key, payload, "is_satisfied()")

    def _holds(self, key: Key) -> bool:
        return bool(self.get_node(key).is_satisfied())

    def _eligible_keys(self, result: SortResult) -> Set[Key]:
        eligible: Set[Key] = set()
        for layer in result.layers:
            for key in layer:
                destinations = self.get_outgoing(key)
                if destinations and eligible.isdisjoint(destinations):
                    continue
                if self._holds(key):
                    eligible.add(key)
        return eligible

    def _generate_paths(self, result: SortResult) -> Iterator[List[Key]]:
        for key in result.detached:
            if self._holds(key):
                yield [key]

        eligible = self._eligible_keys(result)
        roots = [
            key
            for layer in result.layers
            for key in layer
            if key in eligible and not self.get_incoming(key)
        ]
        logger.debug("%d eligible nodes, %d eligible roots", len(eligible), len(roots))

        for root in roots:
            yield from self._paths_from_root(root, eligible)

    def _paths_from_root(self, root: Key, eligible: Set[Key]) -> Iterator[List[Key]]:
        """
        Depth-first enumeration with an explicit stack.

        tried[k] holds the children already explored below k on the current
        path. It is reset whenever k is pushed, because k reached through a
        different parent starts a new set of paths.
        """
        stack: List[Key] = [root]
        tried: Dict[Key, Set[Key]] = {root: set()}

        while stack:
            current = stack[-1]
            destinations = self.get_outgoing(current)
            following = next(
                (d for d in destinations if d in eligible and d not in tried[current]),
                _NOTHING,
            )

            if following is not _NOTHING:
                tried[following] = set()
                stack.append(following)
                continue

            if not destinations:
                yield list(stack)

            child = stack.pop()
            if stack:
                tried[stack[-1]].add(child)
