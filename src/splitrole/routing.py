"""Static classification of EC2 operations into credential tiers."""

from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Union

from .errors import UnsupportedOperationError


class Tier(str, Enum):
    """Trust tiers, each backed by its own IAM role."""

    DESCRIBE_AND_DELETE = "describe-and-delete"
    CREATE_AND_MUTATE = "create-and-mutate"


class Ec2Operation(str, Enum):
    """EC2 operations exposed by the split-role client, named as boto3 methods."""

    DESCRIBE_VOLUMES = "describe_volumes"
    CREATE_VOLUME = "create_volume"
    DELETE_VOLUME = "delete_volume"
    ATTACH_VOLUME = "attach_volume"
    DETACH_VOLUME = "detach_volume"
    DESCRIBE_INSTANCES = "describe_instances"
    DESCRIBE_AVAILABILITY_ZONES = "describe_availability_zones"
    CREATE_SNAPSHOT = "create_snapshot"
    DELETE_SNAPSHOT = "delete_snapshot"
    DESCRIBE_SNAPSHOTS = "describe_snapshots"
    MODIFY_VOLUME = "modify_volume"
    DESCRIBE_VOLUMES_MODIFICATIONS = "describe_volumes_modifications"
    DESCRIBE_TAGS = "describe_tags"
    CREATE_TAGS = "create_tags"
    DELETE_TAGS = "delete_tags"
    ENABLE_FAST_SNAPSHOT_RESTORES = "enable_fast_snapshot_restores"


# Deletes go with describes and attach/detach with creates. This follows the
# IAM policy split between the two roles, not the verb of the operation.
ROUTING_TABLE: Mapping[Ec2Operation, Tier] = MappingProxyType(
    {
        Ec2Operation.DESCRIBE_VOLUMES: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DELETE_VOLUME: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DESCRIBE_INSTANCES: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DESCRIBE_AVAILABILITY_ZONES: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DELETE_SNAPSHOT: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DESCRIBE_SNAPSHOTS: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DESCRIBE_VOLUMES_MODIFICATIONS: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DESCRIBE_TAGS: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.DELETE_TAGS: Tier.DESCRIBE_AND_DELETE,
        Ec2Operation.CREATE_VOLUME: Tier.CREATE_AND_MUTATE,
        Ec2Operation.ATTACH_VOLUME: Tier.CREATE_AND_MUTATE,
        Ec2Operation.DETACH_VOLUME: Tier.CREATE_AND_MUTATE,
        Ec2Operation.CREATE_SNAPSHOT: Tier.CREATE_AND_MUTATE,
        Ec2Operation.MODIFY_VOLUME: Tier.CREATE_AND_MUTATE,
        Ec2Operation.CREATE_TAGS: Tier.CREATE_AND_MUTATE,
        Ec2Operation.ENABLE_FAST_SNAPSHOT_RESTORES: Tier.CREATE_AND_MUTATE,
    }
)


def _check_routing_table() -> None:
    unrouted = [operation.value for operation in Ec2Operation if operation not in ROUTING_TABLE]
    if unrouted:
        raise RuntimeError(f"EC2 operations without a tier: {', '.join(unrouted)}")


_check_routing_table()


def resolve_operation(operation: Union[str, Ec2Operation]) -> Ec2Operation:
    """
    Resolve an operation name to its Ec2Operation.

    Accepts boto3 method names (``create_volume``) as well as EC2 API names
    (``CreateVolume``).

    Raises:
        UnsupportedOperationError: If the operation is not routed
    """
    if isinstance(operation, Ec2Operation):
        return operation

    try:
        return Ec2Operation(operation)
    except ValueError:
        pass

    for candidate in Ec2Operation:
        if candidate.value.replace("_", "") == str(operation).lower():
            return candidate

    raise UnsupportedOperationError(f"EC2 operation '{operation}' is not supported")


def tier_for(operation: Union[str, Ec2Operation]) -> Tier:
    """Return the tier an operation is routed to."""
    return ROUTING_TABLE[resolve_operation(operation)]


def operations_for(tier: Tier) -> List[Ec2Operation]:
    """List the operations routed to a tier, in declaration order."""
    return [operation for operation in Ec2Operation if ROUTING_TABLE[operation] is tier]
