"""Error types raised during topology conversion.

Provides a small exception hierarchy with a consistent dictionary form
so that the driver and the CLI can report failures uniformly.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TopoHoundError(Exception):
    """Base exception for conversion errors.

    Usage:
        raise TopoHoundError("Conversion failed")
        raise TopoHoundError("Bad input", details={"resource": "aws_vpc.main"})
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data: Dict[str, Any] = {"error": self.message, "type": type(self).__name__}
        if self.details:
            data["details"] = self.details
        return data


class ConfigurationError(TopoHoundError):
    """Raised for malformed input: bad rules, CIDR literals or counts.

    Aborts processing of the resource being visited.
    """

    def __init__(self, message: str, resource: Optional[str] = None, field: Optional[str] = None):
        details: Dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.resource = resource
        self.field = field


class UnresolvedReferenceError(TopoHoundError):
    """Raised when a reference cannot be resolved to a resource identifier.

    Never fatal: the normalizer catches it and falls back to a best-effort
    identifier.
    """

    def __init__(self, reference: str):
        super().__init__(f"Cannot resolve reference '{reference}'", details={"reference": reference})
        self.reference = reference


class SerializationError(TopoHoundError):
    """Raised when output records cannot be serialized or violate invariants."""
