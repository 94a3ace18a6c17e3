"""Resource kinds and the records passed between the driver and the emitter."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .constants import RESOURCE_KINDS, ROOT_MODULE


class ResourceKind(str, Enum):
    NETWORK = "network"
    SUBNET = "subnet"
    COMPUTE = "compute"
    INTERFACE = "interface"
    SECURITY_GROUP = "security_group"
    MULTI_CONTAINER = "multi_container"

    @classmethod
    def for_type(cls, resource_type: str) -> Optional["ResourceKind"]:
        """Return the kind handling ``resource_type``, or None if unsupported."""
        value = RESOURCE_KINDS.get(resource_type)
        return cls(value) if value else None


@dataclass
class ResourceDeclaration:
    """A resource block as declared in configuration, before expansion.

    Attributes:
        type: Terraform resource type (e.g. 'aws_subnet')
        name: Resource name within its module
        module_path: Module chain, starting with the root module
        attributes: Raw attribute map, references still interpolated
        count: Raw ``count`` value (int, numeric string or expression)
        depends_on: Explicit dependencies, as ``type.name`` addresses
    """

    type: str
    name: str
    module_path: Tuple[str, ...] = (ROOT_MODULE,)
    attributes: Dict[str, Any] = field(default_factory=dict)
    count: Any = None
    depends_on: List[str] = field(default_factory=list)

    @property
    def address(self) -> str:
        """Module-qualified ``type.name`` of the declaration."""
        base = f"{self.type}.{self.name}"
        if len(self.module_path) <= 1:
            return base
        return f"module.{'.'.join(self.module_path[1:])}.{base}"

    @property
    def kind(self) -> Optional[ResourceKind]:
        return ResourceKind.for_type(self.type)


@dataclass
class Resource:
    """One occurrence of a declared resource, as handed to the emitter.

    Attributes:
        type: Terraform resource type
        name: Resource name within its module
        module_path: Module chain, starting with the root module
        index: Expansion index of this occurrence
        count: Total number of occurrences of the declaration
        attributes: Interpolated attribute map
        variables: Alias table mapping interpolation tokens to ``type.name``
    """

    type: str
    name: str
    module_path: Tuple[str, ...] = (ROOT_MODULE,)
    index: int = 0
    count: int = 1
    attributes: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[ResourceKind]:
        return ResourceKind.for_type(self.type)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)


def as_list(value: Any) -> list:
    """Wrap single values the way Terraform JSON allows blocks to be written."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
