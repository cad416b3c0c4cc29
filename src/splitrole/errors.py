"""Error types and failure classification for split-role EC2 access."""

import asyncio
from enum import Enum
from typing import Optional

from botocore.exceptions import (
    ClientError,
    ConnectionError as BotocoreConnectionError,
    CredentialRetrievalError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)


class SplitRoleError(Exception):
    """Base exception for split-role errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class RoleAssumptionError(SplitRoleError):
    """Assuming an IAM role through STS failed."""

    def __init__(self, message: str, role_arn: str, cause: Optional[Exception] = None):
        super().__init__(message, cause)
        self.role_arn = role_arn


class ConfigurationError(SplitRoleError):
    """Invalid or incomplete split-role configuration."""

    pass


class UnsupportedOperationError(SplitRoleError, ValueError):
    """The operation is not part of the routed EC2 surface."""

    pass


class ErrorCategory(str, Enum):
    """Failure categories callers can distinguish."""

    AUTHENTICATION = "authentication"
    TRANSIENT = "transient"
    REQUEST = "request"


AUTHENTICATION_ERROR_CODES = frozenset(
    {
        "AuthFailure",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "RequestExpired",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)

TRANSIENT_ERROR_CODES = frozenset(
    {
        "EC2ThrottledException",
        "InternalError",
        "InternalFailure",
        "PriorRequestNotComplete",
        "RequestLimitExceeded",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "Throttling",
        "ThrottlingException",
        "TooManyRequestsException",
        "Unavailable",
    }
)


def classify_error(error: BaseException) -> ErrorCategory:
    """
    Classify an error raised by a split-role call.

    Classification only reads the structure the error already carries; it
    never changes how the error propagates.

    Args:
        error: Exception raised by a dispatched operation

    Returns:
        ErrorCategory for the error
    """
    if isinstance(
        error,
        (RoleAssumptionError, NoCredentialsError, PartialCredentialsError, CredentialRetrievalError),
    ):
        return ErrorCategory.AUTHENTICATION

    if isinstance(error, (BotocoreConnectionError, HTTPClientError, asyncio.TimeoutError)):
        return ErrorCategory.TRANSIENT

    if isinstance(error, ClientError):
        error_code = error.response.get("Error", {}).get("Code", "")
        if error_code in AUTHENTICATION_ERROR_CODES:
            return ErrorCategory.AUTHENTICATION
        if error_code in TRANSIENT_ERROR_CODES:
            return ErrorCategory.TRANSIENT
        status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if status_code >= 500:
            return ErrorCategory.TRANSIENT

    return ErrorCategory.REQUEST
