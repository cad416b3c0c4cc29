"""Factory for EC2 clients that sign with an assumed role."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import boto3
import botocore.session
from botocore.config import Config

from .config import SplitRoleConfig
from .credentials import AssumeRoleProvider, CredentialCache, create_credential_resolver
from .instrumentation import (
    InstrumentationHandlers,
    InstrumentationHook,
    register_instrumentation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopedClient:
    """An EC2 client bound to one assumed role and one region."""

    role_arn: str
    client: Any
    credential_cache: CredentialCache
    instrumentation: Optional[InstrumentationHandlers] = None


class ScopedClientFactory:
    """
    Builds EC2 clients that sign every request with an assumed role.

    The base session (profile or default credential chain) is only used to
    call STS. Each scoped client gets its own botocore session whose sole
    credential source is the role's CredentialCache, so building clients makes
    no network calls.
    """

    def __init__(
        self,
        config: SplitRoleConfig,
        base_session: Optional[boto3.Session] = None,
        sts_client: Optional[Any] = None,
        instrumentation_hook: Optional[InstrumentationHook] = None,
    ):
        """
        Initialize the scoped client factory.

        Args:
            config: Split-role configuration carrying region, retry budget and endpoint override
            base_session: Session holding the credentials used to assume roles
            sts_client: STS client to use instead of one built from base_session
            instrumentation_hook: Optional hook invoked for every EC2 call
        """
        self.config = config
        self.base_session = base_session or self._create_base_session()
        self._sts_client = sts_client
        self.instrumentation_hook = instrumentation_hook

    def _create_base_session(self) -> boto3.Session:
        """Create the session used to call STS."""
        session_kwargs = {}
        if self.config.profile:
            session_kwargs["profile_name"] = self.config.profile
        if self.config.region:
            session_kwargs["region_name"] = self.config.region
        return boto3.Session(**session_kwargs)

    @property
    def sts_client(self) -> Any:
        """Get the STS client, creating it if needed."""
        if self._sts_client is None:
            self._sts_client = self.base_session.client("sts", region_name=self.config.region)
        return self._sts_client

    def create_credential_cache(self, role_arn: str) -> CredentialCache:
        """Create the credential cache for a role."""
        provider = AssumeRoleProvider(self.sts_client, role_arn)
        return CredentialCache(provider.fetch, name=role_arn)

    def create_client(self, role_arn: str) -> ScopedClient:
        """
        Create an EC2 client signed with the given role.

        Args:
            role_arn: ARN of the role the client assumes

        Returns:
            ScopedClient wrapping the configured boto3 EC2 client
        """
        credential_cache = self.create_credential_cache(role_arn)

        botocore_session = botocore.session.get_session()
        botocore_session.register_component(
            "credential_provider", create_credential_resolver(credential_cache)
        )
        session = boto3.Session(botocore_session=botocore_session, region_name=self.config.region)

        client = session.client(
            "ec2",
            config=self._client_config(),
            endpoint_url=self.config.endpoint_override,
        )

        instrumentation = None
        if self.instrumentation_hook is not None:
            instrumentation = register_instrumentation(client, self.instrumentation_hook)

        if self.config.endpoint_override:
            logger.debug(f"EC2 client for {role_arn} uses endpoint {self.config.endpoint_override}")
        logger.debug(f"Created EC2 client for role {role_arn} in {self.config.region}")

        return ScopedClient(
            role_arn=role_arn,
            client=client,
            credential_cache=credential_cache,
            instrumentation=instrumentation,
        )

    def _client_config(self) -> Config:
        return Config(
            region_name=self.config.region,
            retries={"total_max_attempts": self.config.max_retry_attempts, "mode": "standard"},
            user_agent_extra="splitrole",
        )
