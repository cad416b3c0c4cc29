"""Split-role EC2 client.

One EC2 interface backed by two clients, each signing with its own IAM role.
Every supported operation is routed through ``ROUTING_TABLE`` to exactly one of
them; parameters, results and errors pass through untouched.
"""

import asyncio
import functools
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Union

import boto3

from .clients import ScopedClient, ScopedClientFactory
from .config import SplitRoleConfig
from .instrumentation import InstrumentationHook
from .logging_config import enable_aws_sdk_debug_logging
from .routing import ROUTING_TABLE, Ec2Operation, Tier, resolve_operation

logger = logging.getLogger(__name__)


class SplitRoleEC2Client:
    """Routes EC2 calls to the describe/delete or the create/mutate role's client."""

    def __init__(self, describe_and_delete: ScopedClient, create_and_mutate: ScopedClient):
        """
        Initialize the split-role client.

        Args:
            describe_and_delete: Client for describe and delete operations
            create_and_mutate: Client for create, attach, detach and modify operations
        """
        self._clients = MappingProxyType(
            {
                Tier.DESCRIBE_AND_DELETE: describe_and_delete,
                Tier.CREATE_AND_MUTATE: create_and_mutate,
            }
        )

    @classmethod
    def from_config(
        cls,
        config: SplitRoleConfig,
        base_session: Optional[boto3.Session] = None,
        sts_client: Optional[Any] = None,
        instrumentation_hook: Optional[InstrumentationHook] = None,
    ) -> "SplitRoleEC2Client":
        """
        Build both scoped clients from configuration.

        No AWS calls are made; each role is assumed on its client's first request.
        When ``config.aws_sdk_debug_log`` is set, AWS SDK debug logging is
        switched on process-wide through a redacting stderr handler and stays on
        until ``configure_aws_sdk_logging(False)`` is called.

        Args:
            config: Split-role configuration
            base_session: Session holding the credentials used to assume both roles
            sts_client: Optional STS client to assume roles with
            instrumentation_hook: Optional hook invoked for every EC2 call

        Returns:
            Configured SplitRoleEC2Client

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.ensure_valid()

        if config.aws_sdk_debug_log:
            enable_aws_sdk_debug_logging()

        factory = ScopedClientFactory(
            config,
            base_session=base_session,
            sts_client=sts_client,
            instrumentation_hook=instrumentation_hook,
        )
        return cls(
            describe_and_delete=factory.create_client(config.describe_and_delete_role),
            create_and_mutate=factory.create_client(config.create_and_mutate_role),
        )

    @property
    def describe_and_delete(self) -> ScopedClient:
        return self._clients[Tier.DESCRIBE_AND_DELETE]

    @property
    def create_and_mutate(self) -> ScopedClient:
        return self._clients[Tier.CREATE_AND_MUTATE]

    def tier_for(self, operation: Union[str, Ec2Operation]) -> Tier:
        """Return the tier an operation is routed to."""
        return ROUTING_TABLE[resolve_operation(operation)]

    def client_for(self, operation: Union[str, Ec2Operation]) -> ScopedClient:
        """Return the scoped client an operation is routed to."""
        return self._clients[self.tier_for(operation)]

    def invoke(self, operation: Union[str, Ec2Operation], **params: Any) -> Any:
        """
        Call an EC2 operation on the client its tier maps to.

        Args:
            operation: Operation name, e.g. ``"create_volume"``
            **params: Request parameters, forwarded unchanged

        Returns:
            The scoped client's response, unchanged

        Raises:
            UnsupportedOperationError: If the operation is not routed
            Exception: Whatever the scoped client raises. The same exception
                object is re-raised with a ``split_role_tier`` attribute set to
                the Tier whose client raised it.
        """
        ec2_operation = resolve_operation(operation)
        tier = ROUTING_TABLE[ec2_operation]
        scoped = self._clients[tier]
        method = getattr(scoped.client, ec2_operation.value)

        try:
            return method(**params)
        except Exception as e:
            e.split_role_tier = tier
            if scoped.instrumentation is not None:
                scoped.instrumentation.report_unsent_failure(e)
            logger.debug(f"{ec2_operation.value} failed on the {tier.value} client: {e}")
            raise

    async def invoke_async(
        self,
        operation: Union[str, Ec2Operation],
        *,
        timeout: Optional[float] = None,
        **params: Any,
    ) -> Any:
        """
        Call an EC2 operation without blocking the event loop.

        The call runs in the loop's default executor. ``timeout`` or cancelling
        the awaiting task bounds how long the caller waits.

        Raises:
            asyncio.TimeoutError: If the call does not finish within ``timeout``
        """
        loop = asyncio.get_running_loop()
        call = functools.partial(self.invoke, operation, **params)
        return await asyncio.wait_for(loop.run_in_executor(None, call), timeout)

    def can_paginate(self, operation: Union[str, Ec2Operation]) -> bool:
        ec2_operation = resolve_operation(operation)
        return self.client_for(ec2_operation).client.can_paginate(ec2_operation.value)

    def get_paginator(self, operation: Union[str, Ec2Operation]) -> Any:
        """Return a paginator from the client the operation is routed to."""
        ec2_operation = resolve_operation(operation)
        return self.client_for(ec2_operation).client.get_paginator(ec2_operation.value)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        """Expose every routed operation as a method, e.g. ``client.describe_volumes(...)``."""
        if name.startswith("_"):
            raise AttributeError(name)

        try:
            ec2_operation = Ec2Operation(name)
        except ValueError:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{name}'"
            ) from None

        def operation_method(**params: Any) -> Any:
            return self.invoke(ec2_operation, **params)

        operation_method.__name__ = ec2_operation.value
        operation_method.__doc__ = (
            f"Call {ec2_operation.value} with the {ROUTING_TABLE[ec2_operation].value} role."
        )
        return operation_method

    def __dir__(self) -> List[str]:
        return sorted(set(super().__dir__()) | {operation.value for operation in Ec2Operation})

    def routes(self) -> Dict[str, str]:
        """Map each operation name to the role ARN that signs it."""
        return {
            operation.value: self._clients[tier].role_arn
            for operation, tier in ROUTING_TABLE.items()
        }
