"""Tests for topohound.membership module."""

import pytest

from topohound.membership import RELATIONS, MembershipIndex


class TestMembershipIndex:
    """Tests for the append-only multimaps."""

    def test_unknown_keys_are_empty(self):
        index = MembershipIndex()
        assert index.sg_instances("aws_security_group.none") == []
        assert index.subnet_interfaces("aws_subnet.none") == []
        assert index.parent("aws_instance.none") is None
        assert index.subnet_cidr("aws_subnet.none") is None
        assert index.interface_owner("aws_network_interface.none") is None

    def test_lookup_does_not_create_keys(self):
        index = MembershipIndex()
        index.sg_instances("aws_security_group.none")
        assert index.to_dict()["sg_instances"] == {}

    def test_insertion_order_and_duplicates(self):
        index = MembershipIndex()
        index.add_sg_instance("sg", "b")
        index.add_sg_instance("sg", "a")
        index.add_sg_instance("sg", "b")
        assert index.sg_instances("sg") == ["b", "a", "b"]

    def test_returned_lists_are_copies(self):
        index = MembershipIndex()
        index.add_interface_sg("eni", "sg")
        index.interface_sgs("eni").append("other")
        assert index.interface_sgs("eni") == ["sg"]

    def test_parent_returns_latest(self):
        index = MembershipIndex()
        index.add_parent("eni", "aws_subnet.a")
        index.add_parent("eni", "aws_subnet.b")
        assert index.parent("eni") == "aws_subnet.b"

    def test_interface_relations(self):
        index = MembershipIndex()
        index.add_subnet_interface("aws_subnet.a", "aws_network_interface.x")
        index.add_sg_interface("aws_security_group.web", "aws_network_interface.x")
        index.add_interface_owner("aws_network_interface.x", "aws_instance.web")
        assert index.subnet_interfaces("aws_subnet.a") == ["aws_network_interface.x"]
        assert index.sg_interfaces("aws_security_group.web") == ["aws_network_interface.x"]
        assert index.interface_owner("aws_network_interface.x") == "aws_instance.web"

    def test_instances_behind_combines_groups_and_cidrs(self):
        index = MembershipIndex()
        index.add_sg_instance("10.0.0.0/16", "aws_instance.a")
        index.add_cidr_instance("10.0.0.0/16", "aws_instance.b")
        assert index.instances_behind("10.0.0.0/16") == ["aws_instance.a", "aws_instance.b"]

    def test_generic_lookup(self):
        index = MembershipIndex()
        index.add_subnet_cidr("aws_subnet.a", "10.0.0.0/24")
        assert index.lookup("subnet_cidr", "aws_subnet.a") == ["10.0.0.0/24"]
        assert index.lookup("subnet_cidr", "aws_subnet.b") == []

    def test_generic_lookup_unknown_relation(self):
        with pytest.raises(KeyError):
            MembershipIndex().lookup("no_such_relation", "x")

    def test_to_dict_lists_every_relation(self):
        assert set(MembershipIndex().to_dict()) == set(RELATIONS)
