"""
TOPDAG - In-memory DAG engine.

Public API:

- Dag                 : key-indexed acyclic graph store with cycle guard and trim
- SatisfiabilityDag   : Dag that enumerates paths of satisfied nodes
- SatisfiabilityNode  : payload protocol required by SatisfiabilityDag
- topological_sort    : layered sort (sinks first) with detached-node detection
- SortResult          : (layers, detached) result of topological_sort
- DagConfig           : engine configuration
- Exceptions          : GraphError and its subclasses
"""
from topdag.core.dag import (
    Dag,
    GraphError,
    NodeNotFoundError,
    DuplicateNodeError,
    GraphInvariantError,
    CycleDetectedError,
    InvalidArgumentError,
    TypeMismatchError,
    create_empty_dag,
    create_dag_from_nodes,
)
from topdag.core.sorting import SortResult, topological_sort
from topdag.core.satisfiability import SatisfiabilityDag, SatisfiabilityNode
from topdag.infrastructure.config import DagConfig, load_toml_config

__version__ = "0.1.0"

__all__ = [
    "Dag",
    "SatisfiabilityDag",
    "SatisfiabilityNode",
    "SortResult",
    "topological_sort",
    "DagConfig",
    "load_toml_config",
    "create_empty_dag",
    "create_dag_from_nodes",
    "GraphError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "GraphInvariantError",
    "CycleDetectedError",
    "InvalidArgumentError",
    "TypeMismatchError",
]
