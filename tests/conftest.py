"""Pytest configuration and shared fixtures for TopoHound tests.

This module provides common fixtures used across multiple test modules,
including resource builders, a fresh emitter and clean settings.
"""

from __future__ import annotations

import os
import pytest
from typing import Any, Dict, List, Sequence, Tuple

from topohound.config import Settings
from topohound.emitter import TopologyEmitter
from topohound.graph import TopologyEdge
from topohound.resources import Resource


# ============================================================================
# Custom Pytest Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers", "scenario: end-to-end topology scenarios"
    )
    config.addinivalue_line(
        "markers", "reconcile: security-group reconciliation properties"
    )


# ============================================================================
# Resource Builders
# ============================================================================

def make_resource(
    resource_type: str,
    name: str,
    module_path: Sequence[str] = ("root",),
    index: int = 0,
    count: int = 1,
    variables: Dict[str, str] = None,
    **attributes: Any,
) -> Resource:
    """Build one resource occurrence as the driver would hand it over."""
    return Resource(
        type=resource_type,
        name=name,
        module_path=tuple(module_path),
        index=index,
        count=count,
        attributes=attributes,
        variables=variables or {},
    )


def ref(address: str) -> str:
    """Interpolated id reference, e.g. ref('aws_vpc.main') -> '${aws_vpc.main.id}'."""
    return "${%s.id}" % address


def edge_pairs(edges: List[TopologyEdge]) -> List[Tuple[str, str]]:
    return [(e.source, e.target) for e in edges]


@pytest.fixture
def emitter() -> TopologyEmitter:
    """Emitter with a fresh conversion context."""
    return TopologyEmitter()


@pytest.fixture
def network(emitter: TopologyEmitter) -> TopologyEmitter:
    """Emitter pre-loaded with a VPC and two /24 subnets.

    Subnets:
        aws_subnet.app: 10.0.0.0/24
        aws_subnet.data: 10.1.0.0/24
    """
    emitter.visit(make_resource("aws_vpc", "main", cidr_block="10.0.0.0/8"))
    emitter.visit(make_resource("aws_subnet", "app", vpc_id=ref("aws_vpc.main"), cidr_block="10.0.0.0/24"))
    emitter.visit(make_resource("aws_subnet", "data", vpc_id=ref("aws_vpc.main"), cidr_block="10.1.0.0/24"))
    return emitter


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def clean_environment():
    """Fixture that cleans TopoHound environment variables.

    Removes TOPOHOUND_* env vars before test and restores them after,
    dropping any the test itself set.
    """
    # Save current env vars
    saved = {k: v for k, v in os.environ.items() if k.upper().startswith("TOPOHOUND_")}

    # Clear them
    for key in saved:
        del os.environ[key]

    yield

    # Restore
    for key in [k for k in os.environ if k.upper().startswith("TOPOHOUND_")]:
        del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def strict_settings(clean_environment) -> Settings:
    return Settings(strict=True)


@pytest.fixture
def lenient_settings(clean_environment) -> Settings:
    return Settings(strict=False)
