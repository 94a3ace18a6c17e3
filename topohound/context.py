"""Per-run conversion state shared by every emitter handler."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Set, Tuple, Union

from .graph import TopologyEdge, TopologyNode
from .membership import MembershipIndex
from .reachability import ReachabilityGraph

logger = logging.getLogger(__name__)

Record = Union[TopologyNode, TopologyEdge]


class ConversionContext:
    """Output records plus the membership index and reachability graph.

    Created fresh for each conversion and passed explicitly to handlers.
    Records are only ever appended.
    """

    def __init__(self) -> None:
        self.records: List[Record] = []
        self.membership = MembershipIndex()
        self.graph = ReachabilityGraph()
        self._edge_keys: Set[Tuple[str, str]] = set()

    def add_node(self, node: TopologyNode) -> TopologyNode:
        logger.debug(f"add node: {node.id} parent={node.parent}")
        self.records.append(node)
        if node.parent:
            self.membership.add_parent(node.id, node.parent)
        return node

    def add_edge(self, source: str, target: str) -> bool:
        """Append ``source -> target`` unless it is a self-loop or already emitted."""
        if source == target:
            return False
        key = (source, target)
        if key in self._edge_keys:
            return False
        self._edge_keys.add(key)
        logger.debug(f"add edge: {source} -> {target}")
        self.records.append(TopologyEdge(source=source, target=target))
        return True

    @property
    def nodes(self) -> List[TopologyNode]:
        return [r for r in self.records if isinstance(r, TopologyNode)]

    @property
    def edges(self) -> List[TopologyEdge]:
        return [r for r in self.records if isinstance(r, TopologyEdge)]

    def to_records(self, fmt: str = "records") -> List[Dict[str, Any]]:
        if fmt == "cytoscape":
            return [r.to_cytoscape() for r in self.records]
        return [r.to_dict() for r in self.records]
