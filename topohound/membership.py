"""Structural containment and association records.

Every relation is an ordered multimap: values keep insertion order,
duplicates are allowed and nothing is ever deleted. Lookups of unknown
keys return an empty list.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import DefaultDict, Dict, List, Optional

logger = logging.getLogger(__name__)

RELATIONS = (
    "parent_of",
    "subnet_interfaces",
    "sg_interfaces",
    "interface_sgs",
    "interface_owner",
    "subnet_cidr",
    "sg_instances",
    "cidr_instances",
)


class MembershipIndex:
    """Append-only multimaps keyed by resource identifier.

    Relations:
        parent_of: node id -> containing node id
        subnet_interfaces: subnet id -> network interface ids
        sg_interfaces: security group id -> network interface ids
        interface_sgs: network interface id -> security group ids
        interface_owner: network interface id -> instance id
        subnet_cidr: subnet id -> CIDR block
        sg_instances: security group id -> instance ids
        cidr_instances: CIDR vertex -> instance ids
    """

    def __init__(self) -> None:
        self._relations: Dict[str, DefaultDict[str, List[str]]] = {
            name: defaultdict(list) for name in RELATIONS
        }

    def _record(self, relation: str, key: str, value: str) -> None:
        logger.debug(f"{relation}: {key} += {value}")
        self._relations[relation][key].append(value)

    def _lookup(self, relation: str, key: str) -> List[str]:
        values = self._relations[relation].get(key)
        return list(values) if values else []

    def _last(self, relation: str, key: str) -> Optional[str]:
        values = self._relations[relation].get(key)
        return values[-1] if values else None

    def add_parent(self, child: str, parent: str) -> None:
        self._record("parent_of", child, parent)

    def parent(self, child: str) -> Optional[str]:
        return self._last("parent_of", child)

    def add_subnet_interface(self, subnet: str, interface: str) -> None:
        self._record("subnet_interfaces", subnet, interface)

    def subnet_interfaces(self, subnet: str) -> List[str]:
        return self._lookup("subnet_interfaces", subnet)

    def add_sg_interface(self, sg: str, interface: str) -> None:
        self._record("sg_interfaces", sg, interface)

    def sg_interfaces(self, sg: str) -> List[str]:
        return self._lookup("sg_interfaces", sg)

    def add_interface_sg(self, interface: str, sg: str) -> None:
        self._record("interface_sgs", interface, sg)

    def interface_sgs(self, interface: str) -> List[str]:
        return self._lookup("interface_sgs", interface)

    def add_interface_owner(self, interface: str, instance: str) -> None:
        self._record("interface_owner", interface, instance)

    def interface_owner(self, interface: str) -> Optional[str]:
        return self._last("interface_owner", interface)

    def add_subnet_cidr(self, subnet: str, cidr: str) -> None:
        self._record("subnet_cidr", subnet, cidr)

    def subnet_cidr(self, subnet: str) -> Optional[str]:
        return self._last("subnet_cidr", subnet)

    def add_sg_instance(self, sg: str, instance: str) -> None:
        self._record("sg_instances", sg, instance)

    def sg_instances(self, sg: str) -> List[str]:
        return self._lookup("sg_instances", sg)

    def add_cidr_instance(self, cidr: str, instance: str) -> None:
        self._record("cidr_instances", cidr, instance)

    def cidr_instances(self, cidr: str) -> List[str]:
        return self._lookup("cidr_instances", cidr)

    def instances_behind(self, vertex: str) -> List[str]:
        """Instances recorded under a reachability vertex of either kind."""
        return self.sg_instances(vertex) + self.cidr_instances(vertex)

    def lookup(self, relation: str, key: str) -> List[str]:
        """Generic lookup by relation name.

        Raises:
            KeyError: unknown relation name
        """
        if relation not in self._relations:
            raise KeyError(relation)
        return self._lookup(relation, key)

    def to_dict(self) -> Dict[str, Dict[str, List[str]]]:
        return {name: {k: list(v) for k, v in rel.items()} for name, rel in self._relations.items()}
