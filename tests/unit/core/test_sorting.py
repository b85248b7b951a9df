"""
Unit tests for topdag/core/sorting.py - topological_sort

Tests layering and detached-node detection:
- Layer 0 is exactly the set of sinks
- Every later layer depends only on earlier layers
- Dangling and starved nodes are reported as detached
"""
import random

import pytest

from topdag.core.dag import Dag
from topdag.core.sorting import SortResult, topological_sort


def _random_dag(seed: int, size: int = 12, dangling: bool = False) -> Dag:
    """Random DAG whose edges run from higher to lower keys."""
    rng = random.Random(seed)
    dag = Dag()
    for key in range(size):
        outgoing = [k for k in range(key) if rng.random() < 0.3]
        if dangling and rng.random() < 0.15:
            outgoing.append(f"missing-{key}")
        dag.add_node(key, None, outgoing)
    return dag


# =============================================================================
# BASIC LAYERING TESTS
# =============================================================================

def test_empty_graph(fresh_dag):
    """An empty graph has no layers and no detached nodes."""
    result = topological_sort(fresh_dag)

    assert result.layers == []
    assert result.detached == []


def test_multiple_layers(multiple_dag):
    """
    Validate the four-layer example.

    1 -> {2, 3, 4}, 2 -> {4}, 3 -> {2, 4}, 4 -> {}

    Verifies:
    - Four single-node layers, in order 4, 2, 3, 1
    - Nothing detached
    """
    layers, detached = topological_sort(multiple_dag)

    assert layers == [[4], [2], [3], [1]]
    assert detached == []
    assert [multiple_dag[layer[0]] for layer in layers] == [16, 4, 9, 1]


def test_flat_graph(fresh_dag):
    """Four isolated nodes form one layer."""
    for key in (1, 2, 3, 4):
        fresh_dag.add_node(key, 1, [])

    layers, detached = topological_sort(fresh_dag)

    assert len(layers) == 1
    assert sorted(layers[0]) == [1, 2, 3, 4]
    assert detached == []


def test_sort_result_helpers(multiple_dag):
    """SortResult exposes layer lookups and unpacks as a pair."""
    result = topological_sort(multiple_dag)

    assert isinstance(result, SortResult)
    assert result.layer_count == 4
    assert result.layer_of() == {4: 0, 2: 1, 3: 2, 1: 3}
    layers, detached = result
    assert layers is result.layers
    assert detached is result.detached


# =============================================================================
# DETACHED NODE TESTS
# =============================================================================

def test_single_dangling_node(fresh_dag):
    """4 -> {10} with 10 never added: no layers, 4 detached."""
    fresh_dag.add_node(4, 1, [10])

    layers, detached = topological_sort(fresh_dag)

    assert layers == []
    assert detached == [4]


def test_detached_and_starved(fresh_dag):
    """
    Validate detached detection with a starved dependent.

    1 <- 2 <- 3 <- 5 -> 4 -> (10, missing)

    Verifies:
    - Three layers: [1], [2], [3]
    - 4 is detached (dangling) and 5 is detached (waits on 4)
    """
    fresh_dag.add_node(1, 1, [])
    fresh_dag.add_node(2, 1, [1])
    fresh_dag.add_node(3, 1, [2])
    fresh_dag.add_node(4, 1, [10])
    fresh_dag.add_node(5, 1, [3, 4])

    layers, detached = topological_sort(fresh_dag)

    assert layers == [[1], [2], [3]]
    assert sorted(detached) == [4, 5]


def test_all_detached(fresh_dag):
    """Every node pointing at a missing key: no layers, all detached."""
    fresh_dag.add_node(1, 1, [10])
    fresh_dag.add_node(2, 1, [11])
    fresh_dag.add_node(3, 1, [12])
    fresh_dag.add_node(4, 1, [13])

    layers, detached = topological_sort(fresh_dag)

    assert layers == []
    assert sorted(detached) == [1, 2, 3, 4]


def test_node_waiting_only_on_detached_node(fresh_dag):
    """A node whose sole target is detached is itself detached."""
    fresh_dag.add_node("x", None, ["ghost"])
    fresh_dag.add_node("y", None, ["x"])
    fresh_dag.add_node("z", None, ["y"])

    layers, detached = topological_sort(fresh_dag)

    assert layers == []
    assert sorted(detached) == ["x", "y", "z"]


def test_dangling_node_with_placed_target_reported_once(fresh_dag):
    """A dangling node that also points at a sink appears in detached once."""
    fresh_dag.add_node("sink", None, [])
    fresh_dag.add_node("d", None, ["sink", "ghost"])

    layers, detached = topological_sort(fresh_dag)

    assert layers == [["sink"]]
    assert detached == ["d"]


def test_removed_target_detaches_dependents(multiple_dag):
    """Removing a sink leaves its sources pointing at a missing key."""
    multiple_dag.remove_node(4)

    layers, detached = topological_sort(multiple_dag)

    assert layers == []
    assert sorted(detached) == [1, 2, 3]


# =============================================================================
# PROPERTY TESTS
# =============================================================================

@pytest.mark.parametrize("seed", range(20))
def test_layer_properties_on_random_graphs(seed):
    """
    Validate layering invariants on random graphs.

    Verifies:
    - Layer 0 is exactly the set of nodes with no outgoing edges
    - Every destination of a layered node is in a strictly lower layer
    - Layers and detached partition the nodes
    - Without dangling edges nothing is detached
    """
    dag = _random_dag(seed, dangling=seed % 2 == 1)
    result = topological_sort(dag)
    layer_of = result.layer_of()

    sinks = {k for k in dag.keys() if not dag.get_outgoing(k)}
    assert set(result.layers[0]) == sinks if result.layers else not sinks

    for key, depth in layer_of.items():
        for dest in dag.get_outgoing(key):
            assert layer_of[dest] < depth

    placed = [k for layer in result.layers for k in layer]
    assert sorted(placed + result.detached) == sorted(dag.keys())
    assert len(set(placed + result.detached)) == len(dag)

    if not dag.dangling_edges():
        assert result.detached == []


@pytest.mark.parametrize("seed", range(10))
def test_trim_leaves_nothing_detached(seed):
    """Trimming to roots in a dangling-free graph sorts with zero detached."""
    dag = _random_dag(seed)
    rng = random.Random(seed)
    roots = rng.sample(dag.keys(), 3)

    dag.trim(roots)

    assert topological_sort(dag).detached == []
