from dataclasses import dataclass, field
from typing import Any, Dict, Optional

EDGE_KIND = "edge"


@dataclass
class TopologyNode:
    id: str
    name: str
    kind: str
    parent: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "kind": self.kind}
        if self.parent:
            data["parent"] = self.parent
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data

    def to_cytoscape(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "type": self.kind}
        if self.attributes:
            data["node_data"] = dict(self.attributes)
        if self.parent:
            data["parent"] = self.parent
        return {"data": data}


@dataclass(frozen=True)
class TopologyEdge:
    """Directed edge: ``source`` is network-reachable to ``target``."""

    source: str
    target: str

    @property
    def kind(self) -> str:
        return EDGE_KIND

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": EDGE_KIND, "source": self.source, "target": self.target}

    def to_cytoscape(self) -> Dict[str, Any]:
        return {"data": {"type": EDGE_KIND, "source": self.source, "target": self.target}}
