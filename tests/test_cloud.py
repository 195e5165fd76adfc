from __future__ import annotations

import pytest
from botocore.exceptions import ClientError, ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError

from s3broker import cloud
from s3broker.services.errors import (
    CloudCallError,
    ConflictException,
    DownstreamTimeoutException,
    DownstreamUnavailableException,
    ResourceExistsException,
    ResourceNotFoundException,
)
from s3broker.settings import BrokerSettings


def client_error(code: str, *, status: int = 400, message: str = "boom", operation: str = "Op") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


def _raising(exc: Exception):
    def head_bucket(**params):
        raise exc

    return head_bucket


@pytest.mark.parametrize(
    ("code", "status", "expected"),
    [
        ("SlowDown", 503, "retryable"),
        ("Throttling", 400, "retryable"),
        ("Whatever", 500, "retryable"),
        ("Whatever", 429, "retryable"),
        ("AccessDenied", 403, "fatal"),
        ("MalformedPolicyDocument", 400, "fatal"),
        (None, None, "fatal"),
    ],
)
def test_classify_client_error(code, status, expected) -> None:
    assert cloud.classify_client_error(code=code, status=status) == expected


def test_invoke_returns_method_result() -> None:
    def list_buckets(**params):
        return {"Buckets": [], "params": params}

    assert cloud.invoke(list_buckets, error_message="x", Prefix="p")["params"] == {"Prefix": "p"}


def test_not_found_codes_translate_to_resource_not_found() -> None:
    with pytest.raises(ResourceNotFoundException) as exc_info:
        cloud.invoke(_raising(client_error("NoSuchBucket", status=404)), error_message="Failed to check bucket b")
    exc = exc_info.value
    assert exc.code == "NoSuchBucket"
    assert exc.operation == "head_bucket"
    assert exc.retryable is False
    assert "Failed to check bucket b" in str(exc)


def test_already_exists_is_a_conflict() -> None:
    with pytest.raises(ResourceExistsException) as exc_info:
        cloud.invoke(_raising(client_error("EntityAlreadyExists", status=409)), error_message="create")
    assert isinstance(exc_info.value, ConflictException)


def test_throttling_is_retryable_unavailable() -> None:
    with pytest.raises(DownstreamUnavailableException) as exc_info:
        cloud.invoke(_raising(client_error("Throttling", status=400)), error_message="throttled")
    assert exc_info.value.retryable is True


def test_other_client_errors_are_fatal() -> None:
    with pytest.raises(CloudCallError) as exc_info:
        cloud.invoke(_raising(client_error("AccessDenied", status=403)), error_message="denied")
    assert type(exc_info.value) is CloudCallError
    assert exc_info.value.category == "fatal"


@pytest.mark.parametrize(
    "exc",
    [ConnectTimeoutError(endpoint_url="https://s3.amazonaws.com"), ReadTimeoutError(endpoint_url="https://s3.amazonaws.com")],
)
def test_timeouts_translate_to_retryable_timeout(exc) -> None:
    with pytest.raises(DownstreamTimeoutException) as exc_info:
        cloud.invoke(_raising(exc), error_message="slow")
    assert exc_info.value.retryable is True


def test_connection_failure_is_unavailable() -> None:
    with pytest.raises(DownstreamUnavailableException) as exc_info:
        cloud.invoke(_raising(EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")), error_message="down")
    assert not isinstance(exc_info.value, DownstreamTimeoutException)


def test_error_detail_is_truncated() -> None:
    with pytest.raises(CloudCallError) as exc_info:
        cloud.invoke(_raising(client_error("AccessDenied", status=403, message="x" * 5000)), error_message="denied")
    assert len(str(exc_info.value)) < 600


def test_build_client_applies_timeouts_and_endpoint(monkeypatch) -> None:
    seen: list[tuple[str, dict]] = []
    monkeypatch.setattr(cloud.boto3, "client", lambda name, **kwargs: seen.append((name, kwargs)) or object())
    settings = BrokerSettings(
        region_name="eu-west-1",
        endpoint_url="http://localhost:9000",
        connect_timeout_seconds=2,
        read_timeout_seconds=5,
    )

    cloud.build_client("s3", settings)
    cloud.build_client("iam", settings)

    s3_name, s3_kwargs = seen[0]
    assert s3_name == "s3"
    assert s3_kwargs["region_name"] == "eu-west-1"
    assert s3_kwargs["endpoint_url"] == "http://localhost:9000"
    assert s3_kwargs["config"].connect_timeout == 2
    assert s3_kwargs["config"].read_timeout == 5
    assert "endpoint_url" not in seen[1][1]
