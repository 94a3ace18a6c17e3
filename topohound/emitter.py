"""Topology emitter: one visitor operation per resource kind.

Each visit reads only the resource it is handed plus the shared
ConversionContext, updates the membership index and reachability graph,
and appends node and edge records.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .constants import CIDR_ATTRIBUTE, PRIMARY_DEVICE_INDEX, SENTINEL_CIDR
from .context import ConversionContext
from .errors import ConfigurationError
from .graph import TopologyNode
from .identifiers import clone_id, normalize, occurrence_id, strip_interpolation
from .reachability import EGRESS, INGRESS, canonical_cidr, cidr_contains, parse_rules, reconcile_security_group
from .resources import Resource, ResourceKind, as_list

logger = logging.getLogger(__name__)


class TopologyEmitter:
    """Visitor turning resource occurrences into topology records.

    Usage:
        emitter = TopologyEmitter()
        for resource in occurrences:
            emitter.visit(resource)
        records = emitter.context.to_records()
    """

    def __init__(self, context: Optional[ConversionContext] = None) -> None:
        self.context = context or ConversionContext()
        self._handlers: Dict[ResourceKind, Callable[[Resource], None]] = {
            ResourceKind.NETWORK: self.visit_network,
            ResourceKind.SUBNET: self.visit_subnet,
            ResourceKind.COMPUTE: self.visit_compute,
            ResourceKind.INTERFACE: self.visit_interface,
            ResourceKind.SECURITY_GROUP: self.visit_security_group,
            ResourceKind.MULTI_CONTAINER: self.visit_multi_container,
        }

    def visit(self, resource: Resource) -> Optional[dict]:
        """Dispatch one resource occurrence by kind.

        Returns:
            Computed-attribute diff for the driver; always None since
            provider diffing is not performed.

        Raises:
            ConfigurationError: the resource is malformed; nothing further
                is recorded for it
        """
        kind = resource.kind
        if kind is None:
            logger.debug(f"skipping unsupported resource type {resource.type}")
            return None
        ident = self.resource_id(resource)
        logger.debug(f"visit {kind.value}: {ident}")
        try:
            self._handlers[kind](resource)
        except ConfigurationError as e:
            if not e.resource:
                e.resource = ident
                e.details["resource"] = ident
            raise
        return None

    @staticmethod
    def resource_id(resource: Resource) -> str:
        return occurrence_id(resource.type, resource.name, resource.module_path, resource.index, resource.count)

    def _normalize(self, resource: Resource, raw) -> str:
        return normalize(resource.module_path, str(raw), resource.variables)

    def _references(self, resource: Resource, *keys: str) -> List[str]:
        refs: List[str] = []
        for key in keys:
            refs.extend(self._normalize(resource, v) for v in as_list(resource.get(key)))
        return refs

    def _cidr_attribute(self, resource: Resource) -> Optional[str]:
        raw = resource.get("cidr_block")
        if raw is None:
            return None
        return strip_interpolation(str(raw))

    # -- containers ----------------------------------------------------

    def visit_network(self, resource: Resource) -> None:
        attributes = {}
        cidr = self._cidr_attribute(resource)
        if cidr:
            attributes[CIDR_ATTRIBUTE] = cidr
        ident = self.resource_id(resource)
        self.context.add_node(TopologyNode(id=ident, name=ident, kind=resource.type, attributes=attributes))

    def visit_subnet(self, resource: Resource) -> None:
        ident = self.resource_id(resource)
        parent = None
        if resource.get("vpc_id"):
            parent = self._normalize(resource, resource.get("vpc_id"))

        attributes = {}
        cidr = self._cidr_attribute(resource)
        if cidr:
            canonical = canonical_cidr(cidr)
            attributes[CIDR_ATTRIBUTE] = cidr

        self.context.add_node(
            TopologyNode(id=ident, name=ident, kind=resource.type, parent=parent, attributes=attributes)
        )
        if cidr:
            self.context.membership.add_subnet_cidr(ident, canonical)

    # -- compute ---------------------------------------------------------

    def visit_compute(self, resource: Resource) -> None:
        ident = self.resource_id(resource)
        subnet, groups = self._placement(resource, ident)
        self.context.add_node(TopologyNode(id=ident, name=ident, kind=resource.type, parent=subnet))
        self._connect_instance(ident, subnet, groups)

    def _placement(self, resource: Resource, instance: str) -> Tuple[Optional[str], List[str]]:
        """Owning subnet and security groups of a compute instance.

        Only the primary network interface is considered.
        """
        if resource.get("subnet_id"):
            subnet = self._normalize(resource, resource.get("subnet_id"))
            return subnet, self._references(resource, "vpc_security_group_ids")

        for ni in as_list(resource.get("network_interface")):
            if not isinstance(ni, dict) or not ni.get("network_interface_id"):
                continue
            if _device_index(ni.get("device_index")) != PRIMARY_DEVICE_INDEX:
                continue
            interface = self._normalize(resource, ni["network_interface_id"])
            self.context.membership.add_interface_owner(interface, instance)
            subnet = self.context.membership.parent(interface)
            if subnet is None:
                logger.warning(f"{instance}: primary interface {interface} has no known subnet")
            return subnet, self.context.membership.interface_sgs(interface)

        logger.warning(f"{instance}: no subnet_id or primary network interface")
        return None, self._references(resource, "vpc_security_group_ids")

    def _connect_instance(self, instance: str, subnet: Optional[str], groups: List[str]) -> None:
        for sg in groups:
            self.connect_by_group(instance, sg)
        if subnet:
            self.connect_by_cidr(instance, subnet)

    def connect_by_group(self, instance: str, sg: str) -> None:
        """Edges between ``instance`` and instances behind ``sg``'s neighbors."""
        graph = self.context.graph
        membership = self.context.membership
        for source in graph.up_edges(sg):
            for peer in membership.instances_behind(source):
                self.context.add_edge(peer, instance)
        for target in graph.down_edges(sg):
            for peer in membership.instances_behind(target):
                self.context.add_edge(instance, peer)
        membership.add_sg_instance(sg, instance)

    def connect_by_cidr(self, instance: str, subnet: str) -> None:
        """Edges through CIDR rules whose block fully contains the subnet."""
        membership = self.context.membership
        subnet_cidr = membership.subnet_cidr(subnet)
        if subnet_cidr is None:
            logger.warning(f"{instance}: couldn't match subnet {subnet} to a CIDR block")
            return
        graph = self.context.graph
        for cidr in graph.cidr_vertices():
            if cidr == SENTINEL_CIDR or not cidr_contains(cidr, subnet_cidr):
                continue
            for source in graph.up_edges(cidr):
                for peer in membership.sg_instances(source):
                    self.context.add_edge(peer, instance)
            for target in graph.down_edges(cidr):
                for peer in membership.sg_instances(target):
                    self.context.add_edge(instance, peer)
            membership.add_cidr_instance(cidr, instance)

    # -- association only ------------------------------------------------

    def visit_interface(self, resource: Resource) -> None:
        ident = self.resource_id(resource)
        membership = self.context.membership
        if resource.get("subnet_id"):
            subnet = self._normalize(resource, resource.get("subnet_id"))
            membership.add_parent(ident, subnet)
            membership.add_subnet_interface(subnet, ident)
        for sg in self._references(resource, "security_groups"):
            membership.add_sg_interface(sg, ident)
            membership.add_interface_sg(ident, sg)

    def visit_security_group(self, resource: Resource) -> None:
        ident = self.resource_id(resource)

        def resolve(raw) -> str:
            return self._normalize(resource, raw)

        rules = parse_rules(resource.get("ingress"), INGRESS, resolve, ident)
        rules += parse_rules(resource.get("egress"), EGRESS, resolve, ident)
        reconcile_security_group(self.context.graph, ident, rules)

    # -- multi-parent ----------------------------------------------------

    def visit_multi_container(self, resource: Resource) -> None:
        """Clone the resource once per subnet it spans.

        Nodes nest under a single parent, so a load balancer in three
        subnets becomes three nodes sharing one name.
        """
        base = self.resource_id(resource)
        groups = self._references(resource, "security_groups")
        for i, raw in enumerate(as_list(resource.get("subnets"))):
            subnet = self._normalize(resource, raw)
            clone = clone_id(base, i, indexed=resource.count > 1)
            self.context.add_node(TopologyNode(id=clone, name=base, kind=resource.type, parent=subnet))
            self._connect_instance(clone, subnet, groups)


def _device_index(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(strip_interpolation(str(value)))
    except ValueError:
        return None
