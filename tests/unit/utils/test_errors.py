"""Unit tests for error classification."""

import asyncio

import pytest
from botocore.exceptions import (
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    ReadTimeoutError,
)

from splitrole.errors import (
    ConfigurationError,
    ErrorCategory,
    RoleAssumptionError,
    SplitRoleError,
    UnsupportedOperationError,
    classify_error,
)


def client_error(code: str, status: int = 400) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "DescribeVolumes",
    )


class TestErrorTypes:
    """Test the exception hierarchy."""

    def test_split_role_error_keeps_cause(self):
        """Test that the original exception is kept."""
        cause = ValueError("bad")
        error = SplitRoleError("wrapped", cause)

        assert error.cause is cause
        assert str(error) == "wrapped"

    def test_role_assumption_error_carries_role(self):
        """Test role ARN on RoleAssumptionError."""
        error = RoleAssumptionError("denied", role_arn="arn:aws:iam::1:role/x")

        assert isinstance(error, SplitRoleError)
        assert error.role_arn == "arn:aws:iam::1:role/x"

    def test_unsupported_operation_is_value_error(self):
        """Test that UnsupportedOperationError can be caught as ValueError."""
        assert issubclass(UnsupportedOperationError, ValueError)
        assert issubclass(ConfigurationError, SplitRoleError)


class TestClassifyError:
    """Test failure categories."""

    @pytest.mark.parametrize(
        "error",
        [
            RoleAssumptionError("denied", role_arn="arn:aws:iam::1:role/x"),
            NoCredentialsError(),
            client_error("AuthFailure", 401),
            client_error("ExpiredToken", 400),
        ],
    )
    def test_authentication(self, error):
        """Test credential and role failures."""
        assert classify_error(error) == ErrorCategory.AUTHENTICATION

    @pytest.mark.parametrize(
        "error",
        [
            EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com"),
            ReadTimeoutError(endpoint_url="https://ec2.us-east-1.amazonaws.com"),
            client_error("RequestLimitExceeded", 503),
            client_error("SomethingUnexpected", 500),
            asyncio.TimeoutError(),
        ],
    )
    def test_transient(self, error):
        """Test network and throttling failures."""
        assert classify_error(error) == ErrorCategory.TRANSIENT

    @pytest.mark.parametrize(
        "error",
        [
            client_error("UnauthorizedOperation", 403),
            client_error("InvalidVolume.NotFound", 400),
            client_error("InvalidParameterValue", 400),
            ParamValidationError(report="Missing required parameter"),
            UnsupportedOperationError("nope"),
        ],
    )
    def test_request(self, error):
        """Test caller, permission and not-found failures."""
        assert classify_error(error) == ErrorCategory.REQUEST
