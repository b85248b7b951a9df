"""
TOPDAG GRAPH INVARIANTS - Independent Consistency Checks

The Dag maintains its invariants incrementally. This module re-derives them
from the raw containers after the fact, so tests and callers that mutate
through many paths can confirm nothing drifted.

Invariants Implemented:
1. Index Consistency: payload map and outgoing index share one key set
2. Incoming Mirror: for every edge (a, b) with b present, a in incoming[b],
   and every incoming entry is backed by a real edge
3. Handshaking: edges into present nodes, counted from both indices, agree
4. DAG Acyclicity: checked with rustworkx, not with the Dag's own guard

Violations are errors; dangling edges are reported as INFO metrics only,
since they are legal.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import rustworkx as rx

from topdag.core.dag import Dag, Key
from topdag.core.interop import graph_metrics, to_rustworkx


# =============================================================================
# INVARIANT RESULTS
# =============================================================================

class InvariantSeverity(Enum):
    """Severity levels for invariant violations."""
    ERROR = "error"      # The graph state is corrupt
    WARNING = "warning"  # Legal but suspicious
    INFO = "info"        # For metrics/diagnostics


@dataclass
class InvariantViolation:
    """A specific invariant violation."""
    invariant: str
    severity: InvariantSeverity
    message: str
    keys_involved: List[Key] = field(default_factory=list)
    edges_involved: List[Tuple[Key, Key]] = field(default_factory=list)


@dataclass
class InvariantReport:
    """Complete invariant validation report."""
    valid: bool
    violations: List[InvariantViolation]
    metrics: Dict[str, Any]

    @property
    def errors(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.ERROR]

    @property
    def warnings(self) -> List[InvariantViolation]:
        return [v for v in self.violations if v.severity == InvariantSeverity.WARNING]


# =============================================================================
# VALIDATORS
# =============================================================================

class DagInvariants:
    """
    Invariant validators over a Dag's raw containers.

    All methods are static. Each returns (is_valid, violation or None).
    """

    @staticmethod
    def validate_index_consistency(dag: Dag) -> Tuple[bool, Optional[InvariantViolation]]:
        """Every payload has an outgoing set and vice versa."""
        data, outgoing, _ = dag._indices()
        mismatched = list(set(data) ^ set(outgoing))
        if not mismatched:
            return True, None

        return False, InvariantViolation(
            invariant="index_consistency",
            severity=InvariantSeverity.ERROR,
            message=f"{len(mismatched)} keys present in only one of payloads/outgoing",
            keys_involved=mismatched,
        )

    @staticmethod
    def validate_incoming_mirror(dag: Dag) -> Tuple[bool, Optional[InvariantViolation]]:
        """Incoming sets mirror outgoing sets exactly."""
        _, outgoing, incoming = dag._indices()
        broken: List[Tuple[Key, Key]] = []

        for source, dests in outgoing.items():
            for dest in dests:
                if dest in outgoing and source not in incoming.get(dest, ()):
                    broken.append((source, dest))

        for dest, sources in incoming.items():
            for source in sources:
                if dest not in outgoing.get(source, ()):
                    broken.append((source, dest))

        if not broken:
            return True, None

        return False, InvariantViolation(
            invariant="incoming_mirror",
            severity=InvariantSeverity.ERROR,
            message=f"{len(broken)} edges missing from one adjacency index",
            edges_involved=broken,
        )

    @staticmethod
    def validate_handshaking(dag: Dag) -> Tuple[bool, Optional[InvariantViolation]]:
        """
        Count edges into present nodes from both sides.

        sum over present b of |incoming[b]| must equal the number of
        outgoing entries that name a present node.
        """
        _, outgoing, incoming = dag._indices()
        from_outgoing = sum(1 for dests in outgoing.values() for d in dests if d in outgoing)
        from_incoming = sum(len(incoming.get(k, ())) for k in outgoing)

        if from_outgoing == from_incoming:
            return True, None

        return False, InvariantViolation(
            invariant="handshaking",
            severity=InvariantSeverity.ERROR,
            message=f"outgoing count {from_outgoing} != incoming count {from_incoming}",
        )

    @staticmethod
    def validate_acyclicity(dag: Dag) -> Tuple[bool, Optional[InvariantViolation]]:
        """No cycles among present nodes, checked by rustworkx."""
        graph, _ = to_rustworkx(dag)
        if rx.is_directed_acyclic_graph(graph):
            return True, None

        cycle = rx.digraph_find_cycle(graph)
        keys = [graph[source] for source, _ in cycle]
        return False, InvariantViolation(
            invariant="dag_acyclicity",
            severity=InvariantSeverity.ERROR,
            message=f"Cycle detected involving {len(keys)} nodes",
            keys_involved=keys,
        )

    @staticmethod
    def validate_all(dag: Dag) -> InvariantReport:
        """Run every validator and collect the results."""
        violations: List[InvariantViolation] = []

        for check in (
            DagInvariants.validate_index_consistency,
            DagInvariants.validate_incoming_mirror,
            DagInvariants.validate_handshaking,
            DagInvariants.validate_acyclicity,
        ):
            valid, violation = check(dag)
            if not valid:
                violations.append(violation)

        metrics = graph_metrics(dag)
        if metrics["dangling_edge_count"]:
            violations.append(InvariantViolation(
                invariant="dangling_edges",
                severity=InvariantSeverity.INFO,
                message=f"{metrics['dangling_edge_count']} edges point at missing nodes",
                edges_involved=dag.dangling_edges(),
            ))

        return InvariantReport(
            valid=not any(v.severity == InvariantSeverity.ERROR for v in violations),
            violations=violations,
            metrics=metrics,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def validate_dag(dag: Dag) -> InvariantReport:
    """Convenience function to validate a graph."""
    return DagInvariants.validate_all(dag)


def is_valid_dag(dag: Dag) -> bool:
    """Quick check that a graph passes every error-level invariant."""
    return validate_dag(dag).valid
