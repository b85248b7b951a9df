"""
TOPDAG INTEROP - Export to rustworkx and polars

Read-only views of a Dag for tools that want a different representation:

- to_rustworkx:    PyDiGraph over present nodes, for rustworkx algorithms
- to_polars_nodes: one row per node with its layer and degrees
- to_polars_edges: one row per edge, dangling edges flagged

Dangling edges have no target vertex in rustworkx, so to_rustworkx leaves
them out. Both polars tables keep them.
"""
from typing import Any, Dict, Tuple

import polars as pl
import rustworkx as rx

from topdag.core.dag import Dag, Key
from topdag.core.sorting import topological_sort


def to_rustworkx(dag: Dag) -> Tuple[rx.PyDiGraph, Dict[Key, int]]:
    """
    Build a rustworkx PyDiGraph mirroring the present nodes and edges.

    Vertex payloads are the node keys; edge payloads are None.

    Returns:
        (graph, key -> vertex index)
    """
    graph = rx.PyDiGraph(multigraph=False)
    keys = dag.keys()
    indices = graph.add_nodes_from(keys)
    node_map: Dict[Key, int] = dict(zip(keys, indices))

    graph.add_edges_from([
        (node_map[source], node_map[dest], None)
        for source, dest in dag.edges()
        if dest in node_map
    ])
    return graph, node_map


def to_polars_nodes(dag: Dag) -> pl.DataFrame:
    """
    One row per node.

    Columns: key, layer (null for detached nodes), detached,
    in_degree, out_degree.
    """
    result = topological_sort(dag)
    layer_of = result.layer_of()
    detached = set(result.detached)
    keys = dag.keys()

    return pl.DataFrame({
        "key": keys,
        "layer": pl.Series([layer_of.get(k) for k in keys], dtype=pl.Int64),
        "detached": [k in detached for k in keys],
        "in_degree": pl.Series([len(dag.get_incoming(k)) for k in keys], dtype=pl.Int64),
        "out_degree": pl.Series([len(dag.get_outgoing(k)) for k in keys], dtype=pl.Int64),
    })


def to_polars_edges(dag: Dag) -> pl.DataFrame:
    """One row per edge. Columns: source, target, dangling."""
    edges = list(dag.edges())
    return pl.DataFrame({
        "source": [s for s, _ in edges],
        "target": [d for _, d in edges],
        "dangling": pl.Series([d not in dag for _, d in edges], dtype=pl.Boolean),
    })


def graph_metrics(dag: Dag) -> Dict[str, Any]:
    """Basic counts without full validation."""
    graph, _ = to_rustworkx(dag)
    return {
        "node_count": dag.node_count,
        "edge_count": dag.edge_count,
        "dangling_edge_count": len(dag.dangling_edges()),
        "root_count": len(dag.get_root_keys()),
        "leaf_count": len(dag.get_leaf_keys()),
        "weakly_connected_components": (
            rx.number_weakly_connected_components(graph) if graph.num_nodes() else 0
        ),
    }
