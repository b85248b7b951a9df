"""
Pytest configuration and shared fixtures for the TopDag test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def fresh_dag():
    """Provide a fresh Dag instance."""
    from topdag.core.dag import Dag
    return Dag()


@pytest.fixture
def sat_dag():
    """Provide a fresh SatisfiabilityDag instance."""
    from topdag.core.satisfiability import SatisfiabilityDag
    return SatisfiabilityDag()


@pytest.fixture
def multiple_dag(fresh_dag):
    """
    1 -> {2, 3, 4}, 2 -> {4}, 3 -> {2, 4}, 4 -> {}

    Payloads are the squares of the keys.
    """
    fresh_dag.add_node(1, 1, [2, 3, 4])
    fresh_dag.add_node(2, 4, [4])
    fresh_dag.add_node(3, 9, [2, 4])
    fresh_dag.add_node(4, 16, [])
    return fresh_dag
