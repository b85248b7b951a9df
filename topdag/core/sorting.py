"""
TOPDAG LAYERING - Topological Sort With Detachment

Groups nodes into layers by frontier expansion from the sinks:

  layer 0      nodes with no outgoing edges
  layer n      nodes whose every destination sits in layers 0..n-1

A node whose edges lead, directly or through other nodes, to a key that was
never added can never be placed. Such nodes are reported as "detached"
instead of being silently dropped.

Complexity: O(V+E) plus the retries of deferred candidates.

Usage:
    layers, detached = topological_sort(dag)
    for depth, layer in enumerate(layers):
        ...
"""
import logging
from typing import Any, Dict, Iterator, List

import msgspec

from topdag.core.dag import Dag, Key

logger = logging.getLogger(__name__)


class SortResult(msgspec.Struct, kw_only=True):
    """
    Output of topological_sort.

    Order inside a layer, and inside `detached`, carries no meaning.
    Unpacks as (layers, detached).
    """
    layers: List[List[Any]] = []
    detached: List[Any] = []

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    def layer_of(self) -> Dict[Any, int]:
        """Map every placed key to its layer index."""
        return {key: depth for depth, layer in enumerate(self.layers) for key in layer}

    def __iter__(self) -> Iterator[List[Any]]:
        return iter((self.layers, self.detached))


def topological_sort(dag: Dag) -> SortResult:
    """
    Sort a graph into layers, sinks first.

    Args:
        dag: A finished graph. It is only read.

    Returns:
        SortResult with the non-empty layers and the detached keys
    """
    first_layer: List[Key] = []
    detached: List[Key] = []

    for key in dag.keys():
        destinations = dag.get_outgoing(key)
        if not destinations:
            first_layer.append(key)
        elif any(dest not in dag for dest in destinations):
            detached.append(key)

    layers: List[List[Key]] = [first_layer]
    placed = set(first_layer)
    excluded = set(detached)
    deferred: List[Key] = []

    while layers[-1]:
        # dict keeps first-seen order while removing repeats
        candidates: Dict[Key, None] = {}
        for previous in layers[-1]:
            for source in dag.get_incoming(previous):
                if source in dag and source not in placed and source not in excluded:
                    candidates[source] = None
        for key in deferred:
            candidates.setdefault(key, None)

        deferred = []
        current: List[Key] = []
        for candidate in candidates:
            if dag.get_outgoing(candidate) <= placed:
                current.append(candidate)
            else:
                deferred.append(candidate)

        layers.append(current)
        placed.update(current)

    layers.pop()

    # Nodes starved by a detached or never-placed destination
    detached.extend(k for k in dag.keys() if k not in placed and k not in excluded)

    logger.debug(
        "Sorted %d nodes into %d layers, %d detached",
        len(dag), len(layers), len(detached),
    )
    return SortResult(layers=layers, detached=detached)
