"""Assumed-role credentials with an explicit, thread-safe refresh cache.

This module provides:
- ``Credential``: one set of temporary STS credentials
- ``AssumeRoleProvider``: fetches credentials for a role via ``sts:AssumeRole``
- ``CredentialCache``: hands out valid credentials, refreshing at most once at a time
- ``create_refreshable_credentials``: adapts a cache to botocore request signing
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from botocore.credentials import (
    CredentialProvider,
    CredentialResolver,
    DeferredRefreshableCredentials,
)
from botocore.exceptions import BotoCoreError, ClientError

from .errors import RoleAssumptionError

logger = logging.getLogger(__name__)

ASSUME_ROLE_SESSION_DURATION = timedelta(hours=1)

# botocore starts asking for new credentials 15 minutes before expiry, so the
# cache must treat credentials as stale at least that early.
DEFAULT_REFRESH_WINDOW = timedelta(minutes=15)

CREDENTIAL_METHOD = "splitrole-assume-role"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credential:
    """Temporary credentials for one assumed role."""

    access_key: str
    secret_key: str = field(repr=False)
    token: str = field(repr=False)
    expiry_time: datetime

    def expires_within(self, window: timedelta, now: datetime) -> bool:
        """Check whether the credential expires within ``window`` of ``now``."""
        return self.expiry_time - now <= window

    def to_botocore_metadata(self) -> Dict[str, str]:
        """Render the credential in the shape botocore's refresh callback expects."""
        return {
            "access_key": self.access_key,
            "secret_key": self.secret_key,
            "token": self.token,
            "expiry_time": self.expiry_time.isoformat(),
        }


class AssumeRoleProvider:
    """Fetches temporary credentials for a single IAM role."""

    def __init__(
        self,
        sts_client: Any,
        role_arn: str,
        session_name: Optional[str] = None,
        external_id: Optional[str] = None,
    ):
        """
        Initialize the assume-role provider.

        Args:
            sts_client: boto3 STS client signed with the base credentials
            role_arn: ARN of the role to assume
            session_name: Role session name (generated per fetch when omitted)
            external_id: Optional external ID required by the role's trust policy
        """
        self.sts_client = sts_client
        self.role_arn = role_arn
        self.session_name = session_name
        self.external_id = external_id

    def fetch(self) -> Credential:
        """
        Assume the role and return its credentials.

        Returns:
            Credential valid for ASSUME_ROLE_SESSION_DURATION

        Raises:
            RoleAssumptionError: If STS rejects the request or cannot be reached
        """
        assume_role_params = {
            "RoleArn": self.role_arn,
            "RoleSessionName": self.session_name or f"splitrole-{int(time.time())}",
            "DurationSeconds": int(ASSUME_ROLE_SESSION_DURATION.total_seconds()),
        }
        if self.external_id:
            assume_role_params["ExternalId"] = self.external_id

        try:
            response = self.sts_client.assume_role(**assume_role_params)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Failed to assume role {self.role_arn}: {error_code}")
            raise RoleAssumptionError(
                f"Could not assume role {self.role_arn} ({error_code}). "
                "Check the role ARN and its trust policy.",
                role_arn=self.role_arn,
                cause=e,
            ) from e
        except BotoCoreError as e:
            logger.error(f"Failed to reach STS while assuming role {self.role_arn}: {e}")
            raise RoleAssumptionError(
                f"Could not assume role {self.role_arn}: {e}", role_arn=self.role_arn, cause=e
            ) from e

        credentials = response["Credentials"]
        logger.info(f"Assumed role {self.role_arn}")
        return Credential(
            access_key=credentials["AccessKeyId"],
            secret_key=credentials["SecretAccessKey"],
            token=credentials["SessionToken"],
            expiry_time=credentials["Expiration"],
        )


class CredentialCache:
    """
    Caches one role's credentials and refreshes them before they expire.

    Reads are lock-free while the cached credential is fresh. Once it enters
    the refresh window, callers serialize on a lock and only the first one
    fetches; the rest reuse its result.
    """

    def __init__(
        self,
        fetcher: Callable[[], Credential],
        refresh_window: timedelta = DEFAULT_REFRESH_WINDOW,
        clock: Optional[Callable[[], datetime]] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize the credential cache.

        Args:
            fetcher: Callable returning fresh credentials, e.g. AssumeRoleProvider.fetch
            refresh_window: How long before expiry a credential counts as stale
            clock: Returns the current timezone-aware time (defaults to UTC now)
            name: Label used in log messages, usually the role ARN
        """
        self._fetcher = fetcher
        self.refresh_window = refresh_window
        self._clock = clock or _utc_now
        self.name = name or "credentials"
        self._credential: Optional[Credential] = None
        self._lock = threading.Lock()
        self._refresh_count = 0

    @property
    def refresh_count(self) -> int:
        """Number of completed fetches."""
        return self._refresh_count

    def get_valid_credential(self) -> Credential:
        """
        Return a credential that is outside the refresh window.

        Returns:
            Valid Credential

        Raises:
            RoleAssumptionError: If a refresh is needed and fails
        """
        credential = self._credential
        if credential is not None and not self._is_stale(credential):
            return credential

        with self._lock:
            credential = self._credential
            if credential is None or self._is_stale(credential):
                credential = self._refresh()
            return credential

    def invalidate(self) -> None:
        """Drop the cached credential so the next request fetches a new one."""
        with self._lock:
            self._credential = None
        logger.debug(f"Invalidated cached credentials for {self.name}")

    def _is_stale(self, credential: Credential) -> bool:
        return credential.expires_within(self.refresh_window, self._clock())

    def _refresh(self) -> Credential:
        logger.debug(f"Refreshing credentials for {self.name}")
        credential = self._fetcher()
        self._credential = credential
        self._refresh_count += 1
        logger.debug(f"Credentials for {self.name} valid until {credential.expiry_time.isoformat()}")
        return credential


class CachedCredentialProvider(CredentialProvider):
    """botocore credential provider backed by a CredentialCache."""

    METHOD = CREDENTIAL_METHOD
    CANONICAL_NAME = "SplitRoleAssumeRole"

    def __init__(self, cache: CredentialCache):
        super().__init__()
        self.cache = cache

    def load(self) -> DeferredRefreshableCredentials:
        return create_refreshable_credentials(self.cache)


def create_refreshable_credentials(cache: CredentialCache) -> DeferredRefreshableCredentials:
    """
    Adapt a credential cache to botocore signing.

    Nothing is fetched until botocore signs the first request.
    """
    return DeferredRefreshableCredentials(
        refresh_using=lambda: cache.get_valid_credential().to_botocore_metadata(),
        method=CREDENTIAL_METHOD,
    )


def create_credential_resolver(cache: CredentialCache) -> CredentialResolver:
    """Build a resolver whose only source of credentials is ``cache``."""
    return CredentialResolver(providers=[CachedCredentialProvider(cache)])
