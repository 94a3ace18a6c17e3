"""Reachability graph over security groups and CIDR blocks.

Vertices are security-group identifiers or canonical CIDR strings; a
directed edge ``a -> b`` means traffic is allowed from ``a`` to ``b``.

Security groups are visited one at a time, in dependency order, and may
name each other before both exist. Each visit reconciles the persistent
graph against a disposable "shadow" graph built from that group's own
rules, so that the final edge set does not depend on visitation order.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import SENTINEL_CIDR
from .errors import ConfigurationError
from .identifiers import strip_interpolation
from .resources import as_list

logger = logging.getLogger(__name__)

INGRESS = "ingress"
EGRESS = "egress"
DIRECTIONS = (INGRESS, EGRESS)

# rule keys that name peers; a rule with none of them (and no self) is malformed
PEER_KEYS = ("cidr_blocks", "ipv6_cidr_blocks", "security_groups")

EdgeKey = Tuple[str, str]


def parse_cidr(literal: str):
    """Parse a CIDR literal into an ``ipaddress`` network (host bits ignored).

    Raises:
        ConfigurationError: literal is not a valid CIDR block
    """
    try:
        return ipaddress.ip_network(str(literal).strip(), strict=False)
    except ValueError as e:
        raise ConfigurationError(f"Invalid CIDR block '{literal}': {e}", field="cidr_blocks") from e


def canonical_cidr(literal: str) -> str:
    """Canonical network form, e.g. '10.0.1.7/16' -> '10.0.0.0/16'."""
    return str(parse_cidr(literal))


def is_cidr(vertex: str) -> bool:
    if "/" not in vertex:
        return False
    try:
        ipaddress.ip_network(vertex, strict=False)
    except ValueError:
        return False
    return True


def cidr_contains(outer: str, inner: str) -> bool:
    """True if every address of ``inner`` lies within ``outer``.

    A /16 rule contains a /24 subnet inside it; a /25 rule does not
    contain a /24 subnet, even when the subnet's base address falls in it.
    """
    outer_net = parse_cidr(outer)
    inner_net = parse_cidr(inner)
    if outer_net.version != inner_net.version:
        return False
    return inner_net.subnet_of(outer_net)


class ReachabilityGraph:
    """Directed graph with O(1) neighbor lookup in both directions.

    Vertices and edges keep insertion order so that conversions are
    reproducible. Edges may reference vertices that were never ensured;
    ``has_vertex`` only reports vertices added via ``ensure_vertex``.
    """

    def __init__(self) -> None:
        self._vertices: Dict[str, None] = {}
        self._edges: Dict[EdgeKey, None] = {}
        self._down: Dict[str, Dict[str, None]] = {}
        self._up: Dict[str, Dict[str, None]] = {}

    def __len__(self) -> int:
        return len(self._vertices)

    def __repr__(self) -> str:
        return f"ReachabilityGraph(vertices={len(self._vertices)}, edges={len(self._edges)})"

    def ensure_vertex(self, vertex: str) -> str:
        self._vertices.setdefault(vertex, None)
        return vertex

    def has_vertex(self, vertex: str) -> bool:
        return vertex in self._vertices

    def vertices(self) -> List[str]:
        return list(self._vertices)

    def cidr_vertices(self) -> List[str]:
        return [v for v in self._vertices if is_cidr(v)]

    def connect(self, source: str, target: str) -> bool:
        """Add ``source -> target``. Returns False if the edge already existed."""
        key = (source, target)
        if key in self._edges:
            return False
        self._edges[key] = None
        self._down.setdefault(source, {})[target] = None
        self._up.setdefault(target, {})[source] = None
        logger.debug(f"connect {source} -> {target}")
        return True

    def has_edge(self, source: str, target: str) -> bool:
        return (source, target) in self._edges

    def remove_edge(self, source: str, target: str) -> bool:
        key = (source, target)
        if key not in self._edges:
            return False
        del self._edges[key]
        self._down[source].pop(target, None)
        self._up[target].pop(source, None)
        logger.debug(f"remove {source} -> {target}")
        return True

    def edges(self) -> List[EdgeKey]:
        return list(self._edges)

    def up_edges(self, vertex: str) -> List[str]:
        """Vertices with an edge into ``vertex``."""
        return list(self._up.get(vertex, ()))

    def down_edges(self, vertex: str) -> List[str]:
        """Vertices ``vertex`` has an edge into."""
        return list(self._down.get(vertex, ()))

    @staticmethod
    def difference(a: Iterable[str], b: Iterable[str]) -> List[str]:
        """Members of ``a`` not in ``b``, in ``a``'s order."""
        exclude = set(b)
        return [v for v in a if v not in exclude]


@dataclass(frozen=True)
class Rule:
    """One ingress or egress rule, with references already normalized."""

    direction: str
    cidrs: Tuple[str, ...] = ()
    groups: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}")


@dataclass
class ReconcileResult:
    """Edge changes made while reconciling one security group."""

    group: str
    backfilled: List[EdgeKey] = field(default_factory=list)
    pruned: List[EdgeKey] = field(default_factory=list)
    merged: List[EdgeKey] = field(default_factory=list)


def _backfill(graph: ReachabilityGraph, sg: str) -> List[EdgeKey]:
    """Extend edges touching the sentinel to ``sg``; return the new ones."""
    added: List[EdgeKey] = []
    for source in graph.up_edges(SENTINEL_CIDR):
        if source != sg and graph.connect(source, sg):
            added.append((source, sg))
    for target in graph.down_edges(SENTINEL_CIDR):
        if target != sg and graph.connect(sg, target):
            added.append((sg, target))
    return added


def _connect_directed(shadow: ReachabilityGraph, sg: str, peer: str, direction: str) -> None:
    if direction == INGRESS:
        shadow.connect(peer, sg)
    else:
        shadow.connect(sg, peer)


def build_shadow(graph: ReachabilityGraph, sg: str, rules: Sequence[Rule]) -> ReachabilityGraph:
    """Graph of the edges implied by ``sg``'s own rules."""
    shadow = ReachabilityGraph()
    for rule in rules:
        for literal in rule.cidrs:
            cidr = graph.ensure_vertex(canonical_cidr(literal))
            _connect_directed(shadow, sg, cidr, rule.direction)
            if cidr != SENTINEL_CIDR:
                continue
            # open to everything: confirm every existing edge in this direction
            if rule.direction == INGRESS:
                peers = graph.up_edges(sg)
            else:
                peers = graph.down_edges(sg)
            for peer in peers:
                if graph.has_vertex(peer):
                    _connect_directed(shadow, sg, peer, rule.direction)
        for group in rule.groups:
            _connect_directed(shadow, sg, group, rule.direction)
    return shadow


def reconcile_security_group(graph: ReachabilityGraph, sg: str, rules: Sequence[Rule]) -> ReconcileResult:
    """Fold one security group's rules into the persistent graph.

    Steps: ensure the vertex, back-fill edges implied by earlier sentinel
    rules, build the shadow graph, prune back-filled edges the shadow does
    not confirm, then merge the shadow.
    """
    result = ReconcileResult(group=sg)
    graph.ensure_vertex(sg)

    result.backfilled = _backfill(graph, sg)
    backfilled = set(result.backfilled)

    shadow = build_shadow(graph, sg, rules)

    for source in graph.difference(graph.up_edges(sg), shadow.up_edges(sg)):
        if (source, sg) in backfilled and graph.remove_edge(source, sg):
            result.pruned.append((source, sg))
    for target in graph.difference(graph.down_edges(sg), shadow.down_edges(sg)):
        if (sg, target) in backfilled and graph.remove_edge(sg, target):
            result.pruned.append((sg, target))

    for source, target in shadow.edges():
        if graph.connect(source, target):
            result.merged.append((source, target))

    logger.debug(
        f"reconciled {sg}: backfilled={len(result.backfilled)} "
        f"pruned={len(result.pruned)} merged={len(result.merged)}"
    )
    return result


def parse_rules(
    raw_rules: Optional[Iterable[dict]],
    direction: str,
    resolve_group,
    group: Optional[str] = None,
) -> List[Rule]:
    """Turn raw ``ingress``/``egress`` blocks into normalized rules.

    Args:
        raw_rules: rule dictionaries from the resource's attributes
        direction: INGRESS or EGRESS
        resolve_group: callable normalizing a security-group reference
        group: identifier of the owning group, used for ``self = true``

    Raises:
        ConfigurationError: a rule names neither CIDR blocks nor groups.
            Present but empty lists are accepted and yield no edges.
    """
    rules: List[Rule] = []
    for raw in as_list(raw_rules):
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{direction} rule must be a map, got {type(raw).__name__}", field=direction)
        literals = as_list(raw.get("cidr_blocks")) + as_list(raw.get("ipv6_cidr_blocks"))
        cidrs = [canonical_cidr(strip_interpolation(str(c))) for c in literals]
        groups = [resolve_group(g) for g in as_list(raw.get("security_groups"))]
        if raw.get("self") in (True, "true") and group:
            groups.append(group)
        if not groups and not any(key in raw for key in PEER_KEYS):
            raise ConfigurationError(
                f"security group {direction} rule must have either cidr_blocks or security_groups",
                resource=group,
                field=direction,
            )
        rules.append(Rule(direction=direction, cidrs=tuple(cidrs), groups=tuple(groups)))
    return rules