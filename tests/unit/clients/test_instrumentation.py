"""Unit tests for request instrumentation."""

import logging
from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ParamValidationError
from botocore.stub import Stubber

from splitrole.instrumentation import (
    InstrumentationHandlers,
    RequestRecorder,
    register_instrumentation,
)


def make_ec2_client():
    return boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


class TestRegisterInstrumentation:
    """Test instrumentation against a stubbed EC2 client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = make_ec2_client()
        self.hook = Mock()
        self.handlers = register_instrumentation(self.client, self.hook)
        self.stubber = Stubber(self.client)

    def test_hook_sees_request_and_response(self):
        """Test that a successful call reports its operation, request and response."""
        self.stubber.add_response("describe_volumes", {"Volumes": []}, {"VolumeIds": ["vol-1"]})
        self.stubber.activate()

        self.client.describe_volumes(VolumeIds=["vol-1"])

        self.hook.assert_called_once()
        operation_name, request, response, error = self.hook.call_args[0]
        assert operation_name == "DescribeVolumes"
        assert request == {"VolumeIds": ["vol-1"]}
        assert response["Volumes"] == []
        assert error is None

    def test_hook_sees_service_errors(self):
        """Test that service-side errors are reported as ClientError."""
        self.stubber.add_client_error(
            "create_volume",
            service_error_code="InvalidParameterValue",
            http_status_code=400,
        )
        self.stubber.activate()

        with pytest.raises(ClientError):
            self.client.create_volume(AvailabilityZone="us-east-1a", Size=8)

        operation_name, request, _, error = self.hook.call_args[0]
        assert operation_name == "CreateVolume"
        assert request == {"AvailabilityZone": "us-east-1a", "Size": 8}
        assert isinstance(error, ClientError)
        assert error.response["Error"]["Code"] == "InvalidParameterValue"

    def test_validation_failure_reported_once(self):
        """Test that a call rejected before sending is reported through report_unsent_failure."""
        with pytest.raises(ParamValidationError) as exc_info:
            self.client.create_volume(Size="not-an-int")

        self.hook.assert_not_called()
        assert self.handlers.report_unsent_failure(exc_info.value) is True
        self.hook.assert_called_once_with(
            "CreateVolume", {"Size": "not-an-int"}, None, exc_info.value
        )

        assert self.handlers.report_unsent_failure(exc_info.value) is False
        self.hook.assert_called_once()

    def test_sent_failure_not_reported_twice(self):
        """Test that errors already seen by after-call are not reported again."""
        self.stubber.add_client_error("delete_volume", service_error_code="VolumeInUse")
        self.stubber.activate()

        with pytest.raises(ClientError) as exc_info:
            self.client.delete_volume(VolumeId="vol-1")

        assert self.handlers.report_unsent_failure(exc_info.value) is False
        self.hook.assert_called_once()

    def test_failing_hook_does_not_change_outcome(self, caplog):
        """Test that a hook exception is logged and the call still succeeds."""
        self.hook.side_effect = RuntimeError("metrics backend down")
        self.stubber.add_response("describe_tags", {"Tags": []})
        self.stubber.activate()

        with caplog.at_level(logging.WARNING, logger="splitrole.instrumentation"):
            response = self.client.describe_tags()

        assert response["Tags"] == []
        assert "Instrumentation hook failed for DescribeTags" in caplog.text


class TestInstrumentationHandlers:
    """Test handler behaviour for transport failures."""

    def test_after_call_error_reports_exception(self):
        """Test that transport errors are reported with the remembered request."""
        hook = Mock()
        handlers = InstrumentationHandlers(hook)
        model = Mock()
        model.name = "DescribeInstances"
        context = {}
        error = EndpointConnectionError(endpoint_url="https://ec2.us-east-1.amazonaws.com")

        handlers.before_parameter_build(params={"MaxResults": 5}, model=model, context=context)
        handlers.after_call_error(exception=error, context=context)

        hook.assert_called_once_with("DescribeInstances", {"MaxResults": 5}, None, error)


class TestRequestRecorder:
    """Test the default instrumentation hook."""

    def test_counts_outcomes_per_operation(self):
        """Test success and error tallies."""
        recorder = RequestRecorder()

        recorder("CreateVolume", {}, {"VolumeId": "vol-1"}, None)
        recorder("CreateVolume", {}, {"VolumeId": "vol-2"}, None)
        recorder("DeleteVolume", {}, None, RuntimeError("boom"))

        assert recorder.snapshot() == {
            ("CreateVolume", "success"): 2,
            ("DeleteVolume", "error"): 1,
        }

    def test_reset(self):
        """Test that reset clears counts."""
        recorder = RequestRecorder()
        recorder("CreateVolume", {}, {}, None)

        recorder.reset()

        assert recorder.snapshot() == {}
