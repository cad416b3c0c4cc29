"""splitrole - EC2 access split across two least-privilege IAM roles."""

from .clients import ScopedClient, ScopedClientFactory
from .config import SplitRoleConfig
from .credentials import (
    ASSUME_ROLE_SESSION_DURATION,
    AssumeRoleProvider,
    Credential,
    CredentialCache,
    create_refreshable_credentials,
)
from .dispatcher import SplitRoleEC2Client
from .errors import (
    ConfigurationError,
    ErrorCategory,
    RoleAssumptionError,
    SplitRoleError,
    UnsupportedOperationError,
    classify_error,
)
from .instrumentation import InstrumentationHook, RequestRecorder, register_instrumentation
from .routing import ROUTING_TABLE, Ec2Operation, Tier


# Version will be set by build system
def _get_version():
    """Get the version from package metadata or pyproject.toml."""
    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("splitrole")
    except PackageNotFoundError:
        # Fallback for running from a source checkout
        import re
        from pathlib import Path

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if not pyproject_path.exists():
            return "0.0.0"

        with open(pyproject_path, "r", encoding="utf-8") as f:
            version_match = re.search(r'^version\s*=\s*["\']([^"\']+)["\']', f.read(), re.M)
        return version_match.group(1) if version_match else "0.0.0"


__version__ = _get_version()

__all__ = [
    "__version__",
    # Dispatcher
    "SplitRoleEC2Client",
    "Ec2Operation",
    "Tier",
    "ROUTING_TABLE",
    # Clients and credentials
    "ScopedClient",
    "ScopedClientFactory",
    "AssumeRoleProvider",
    "Credential",
    "CredentialCache",
    "ASSUME_ROLE_SESSION_DURATION",
    "create_refreshable_credentials",
    # Configuration
    "SplitRoleConfig",
    # Instrumentation
    "InstrumentationHook",
    "RequestRecorder",
    "register_instrumentation",
    # Errors
    "SplitRoleError",
    "RoleAssumptionError",
    "ConfigurationError",
    "UnsupportedOperationError",
    "ErrorCategory",
    "classify_error",
]
