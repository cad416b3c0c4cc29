"""Unit tests for the EC2 operation routing table."""

import pytest

from splitrole.errors import UnsupportedOperationError
from splitrole.routing import (
    ROUTING_TABLE,
    Ec2Operation,
    Tier,
    operations_for,
    resolve_operation,
    tier_for,
)

DESCRIBE_AND_DELETE_OPERATIONS = {
    "describe_volumes",
    "delete_volume",
    "describe_instances",
    "describe_availability_zones",
    "delete_snapshot",
    "describe_snapshots",
    "describe_volumes_modifications",
    "describe_tags",
    "delete_tags",
}

CREATE_AND_MUTATE_OPERATIONS = {
    "create_volume",
    "attach_volume",
    "detach_volume",
    "create_snapshot",
    "modify_volume",
    "create_tags",
    "enable_fast_snapshot_restores",
}


class TestRoutingTable:
    """Test the static operation classification."""

    def test_every_operation_has_exactly_one_tier(self):
        """Test that the table covers the whole operation surface."""
        assert set(ROUTING_TABLE) == set(Ec2Operation)
        assert all(isinstance(tier, Tier) for tier in ROUTING_TABLE.values())

    def test_describe_and_delete_tier(self):
        """Test the describe/delete operations."""
        assert {op.value for op in operations_for(Tier.DESCRIBE_AND_DELETE)} == (
            DESCRIBE_AND_DELETE_OPERATIONS
        )

    def test_create_and_mutate_tier(self):
        """Test the create/mutate operations."""
        assert {op.value for op in operations_for(Tier.CREATE_AND_MUTATE)} == (
            CREATE_AND_MUTATE_OPERATIONS
        )

    def test_tiers_are_disjoint(self):
        """Test that no operation is dual-routed."""
        assert not DESCRIBE_AND_DELETE_OPERATIONS & CREATE_AND_MUTATE_OPERATIONS
        assert len(ROUTING_TABLE) == len(DESCRIBE_AND_DELETE_OPERATIONS) + len(
            CREATE_AND_MUTATE_OPERATIONS
        )

    @pytest.mark.parametrize("operation", ["delete_volume", "delete_snapshot", "delete_tags"])
    def test_deletes_use_describe_tier(self, operation):
        """Test that destructive deletes stay with the describe role."""
        assert tier_for(operation) == Tier.DESCRIBE_AND_DELETE

    @pytest.mark.parametrize("operation", ["attach_volume", "detach_volume", "modify_volume"])
    def test_state_transitions_use_mutate_tier(self, operation):
        """Test that attach, detach and modify use the mutate role."""
        assert tier_for(operation) == Tier.CREATE_AND_MUTATE

    def test_table_is_read_only(self):
        """Test that the classification cannot be changed at runtime."""
        with pytest.raises(TypeError):
            ROUTING_TABLE[Ec2Operation.DELETE_VOLUME] = Tier.CREATE_AND_MUTATE


class TestResolveOperation:
    """Test operation name resolution."""

    def test_resolves_boto3_method_names(self):
        """Test snake_case names."""
        assert resolve_operation("create_volume") is Ec2Operation.CREATE_VOLUME

    def test_resolves_api_names(self):
        """Test EC2 API names."""
        assert resolve_operation("CreateVolume") is Ec2Operation.CREATE_VOLUME
        assert (
            resolve_operation("DescribeVolumesModifications")
            is Ec2Operation.DESCRIBE_VOLUMES_MODIFICATIONS
        )

    def test_passes_enum_members_through(self):
        """Test that enum members resolve to themselves."""
        assert resolve_operation(Ec2Operation.DELETE_TAGS) is Ec2Operation.DELETE_TAGS

    @pytest.mark.parametrize("operation", ["run_instances", "RunInstances", "", "describe"])
    def test_unsupported_operations(self, operation):
        """Test that operations outside the surface are rejected."""
        with pytest.raises(UnsupportedOperationError):
            resolve_operation(operation)
