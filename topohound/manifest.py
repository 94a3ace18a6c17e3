import uuid
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

OK = "ok"
SKIPPED = "skipped"
ERROR = "error"


@dataclass
class ResourceResult:
    """Outcome of converting one declared resource."""

    address: str
    type: str
    status: str
    occurrences: int = 0
    detail: Optional[str] = None


@dataclass
class Manifest:
    run_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    resources: List[ResourceResult] = field(default_factory=list)
    nodes: int = 0
    edges: int = 0
    schema_version: str = "0.1.0"

    @classmethod
    def new(cls) -> "Manifest":
        return cls(run_id=str(uuid.uuid4()), started_at=datetime.now(timezone.utc))

    def add_resource(
        self,
        address: str,
        type: str,
        status: str,
        occurrences: int = 0,
        detail: Optional[str] = None,
    ) -> ResourceResult:
        result = ResourceResult(address=address, type=type, status=status, occurrences=occurrences, detail=detail)
        self.resources.append(result)
        return result

    def finish(self, nodes: int, edges: int) -> None:
        self.nodes = nodes
        self.edges = edges
        self.finished_at = datetime.now(timezone.utc)

    @property
    def errors(self) -> List[ResourceResult]:
        return [r for r in self.resources if r.status == ERROR]

    def summary(self) -> Dict[str, int]:
        """Totals by resource status plus emitted record counts."""
        by_status = Counter(r.status for r in self.resources)
        return {
            "resources": len(self.resources),
            OK: by_status[OK],
            SKIPPED: by_status[SKIPPED],
            "errors": by_status[ERROR],
            "nodes": self.nodes,
            "edges": self.edges,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["summary"] = self.summary()
        return data
