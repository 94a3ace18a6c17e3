"""TopoHound - Infrastructure-as-code topology and reachability graphs.

A small conversion pipeline that:
- Loads Terraform JSON configuration into resource declarations
- Walks resources in dependency order, expanding ``count``
- Resolves security-group rules into a reachability graph
- Emits containment nodes and instance-to-instance edges for visualization
"""

__version__ = "0.3.0"

from topohound.context import ConversionContext
from topohound.driver import ConversionResult, Driver, convert
from topohound.emitter import TopologyEmitter
from topohound.errors import (
    ConfigurationError,
    SerializationError,
    TopoHoundError,
    UnresolvedReferenceError,
)
from topohound.graph import TopologyEdge, TopologyNode
from topohound.loader import load_configuration, load_file
from topohound.membership import MembershipIndex
from topohound.reachability import ReachabilityGraph, reconcile_security_group
from topohound.resources import Resource, ResourceDeclaration, ResourceKind

__all__ = [
    # Version info
    "__version__",
    # Records
    "TopologyNode",
    "TopologyEdge",
    "Resource",
    "ResourceDeclaration",
    "ResourceKind",
    # Core state
    "ConversionContext",
    "MembershipIndex",
    "ReachabilityGraph",
    "reconcile_security_group",
    "TopologyEmitter",
    # Pipeline
    "Driver",
    "ConversionResult",
    "convert",
    "load_configuration",
    "load_file",
    # Errors
    "TopoHoundError",
    "ConfigurationError",
    "UnresolvedReferenceError",
    "SerializationError",
]
