from __future__ import annotations

import io

import pytest
from botocore.exceptions import ClientError

from s3broker.services.errors import CloudCallError, DownstreamUnavailableException, ResourceExistsException
from s3broker.services.s3_adapter import S3ObjectStore
from s3broker.settings import BrokerSettings

from fakes import FakeBotoClient


def client_error(code: str, *, status: int = 400, operation: str = "Op") -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


@pytest.fixture
def s3_client() -> FakeBotoClient:
    return FakeBotoClient()


@pytest.fixture
def store(s3_client) -> S3ObjectStore:
    return S3ObjectStore(client=s3_client, settings=BrokerSettings(region_name="us-east-1"))


def test_create_container_in_default_region_omits_location(store, s3_client) -> None:
    out = store.create_container("b1")

    assert out.changed is True
    assert s3_client.calls == [("create_bucket", {"Bucket": "b1"})]


def test_create_container_outside_default_region_sets_location(s3_client) -> None:
    store = S3ObjectStore(client=s3_client, settings=BrokerSettings(region_name="eu-west-1"))
    store.create_container("b1")
    assert s3_client.calls[0][1]["CreateBucketConfiguration"] == {"LocationConstraint": "eu-west-1"}


def test_create_container_owned_by_us_is_unchanged(store, s3_client) -> None:
    s3_client.queue("create_bucket", client_error("BucketAlreadyOwnedByYou", status=409))
    out = store.create_container("b1")
    assert out.exists is True
    assert out.changed is False


def test_create_container_taken_by_someone_else_raises(store, s3_client) -> None:
    s3_client.queue("create_bucket", client_error("BucketAlreadyExists", status=409))
    with pytest.raises(ResourceExistsException):
        store.create_container("b1")


def test_container_exists(store, s3_client) -> None:
    s3_client.queue("head_bucket", {}, client_error("404", status=404))
    assert store.container_exists("b1") is True
    assert store.container_exists("b2") is False


def test_container_exists_propagates_throttling(store, s3_client) -> None:
    s3_client.queue("head_bucket", client_error("SlowDown", status=503))
    with pytest.raises(DownstreamUnavailableException):
        store.container_exists("b1")


def test_delete_container_tolerates_missing_bucket(store, s3_client) -> None:
    s3_client.queue("delete_bucket", client_error("NoSuchBucket", status=404))
    out = store.delete_container("b1")
    assert out.exists is False
    assert out.changed is False


def test_list_containers_follows_continuation(store, s3_client) -> None:
    s3_client.queue(
        "list_buckets",
        {"Buckets": [{"Name": "a"}, {"Name": "b"}], "ContinuationToken": "t1"},
        {"Buckets": [{"Name": "c"}]},
    )

    assert store.list_containers() == ["a", "b", "c"]
    assert s3_client.calls[1] == ("list_buckets", {"ContinuationToken": "t1"})


def test_empty_container_pages_objects_and_versions(store, s3_client) -> None:
    s3_client.queue(
        "list_objects_v2",
        {"Contents": [{"Key": "k1"}, {"Key": "k2"}], "IsTruncated": True, "NextContinuationToken": "n1"},
        {"Contents": [{"Key": "k3"}], "IsTruncated": False},
    )
    s3_client.queue(
        "list_object_versions",
        {
            "Versions": [{"Key": "k1", "VersionId": "v1"}],
            "DeleteMarkers": [{"Key": "k2", "VersionId": "m1"}],
            "IsTruncated": False,
        },
    )

    deleted = store.empty_container("b1")

    assert deleted == 5
    assert s3_client.operations() == [
        "list_objects_v2",
        "delete_objects",
        "list_objects_v2",
        "delete_objects",
        "list_object_versions",
        "delete_objects",
    ]
    assert s3_client.calls[2][1]["ContinuationToken"] == "n1"
    assert s3_client.calls[5][1]["Delete"]["Objects"] == [
        {"Key": "k1", "VersionId": "v1"},
        {"Key": "k2", "VersionId": "m1"},
    ]


def test_empty_container_skips_delete_for_empty_pages(store, s3_client) -> None:
    assert store.empty_container("b1") == 0
    assert "delete_objects" not in s3_client.operations()


def test_empty_container_raises_on_partial_delete_failure(store, s3_client) -> None:
    s3_client.queue("list_objects_v2", {"Contents": [{"Key": "k1"}]})
    s3_client.queue("delete_objects", {"Errors": [{"Key": "k1", "Code": "AccessDenied"}]})
    with pytest.raises(CloudCallError) as exc_info:
        store.empty_container("b1")
    assert exc_info.value.code == "AccessDenied"


def test_get_object_reads_and_closes_body(store, s3_client) -> None:
    body = io.BytesIO(b'{"a": 1}')
    s3_client.queue("get_object", {"Body": body})

    assert store.get_object("b1", "config/i1") == b'{"a": 1}'
    assert body.closed is True


def test_get_object_missing_key_returns_none(store, s3_client) -> None:
    s3_client.queue("get_object", client_error("NoSuchKey", status=404))
    assert store.get_object("b1", "config/i1") is None


def test_put_object_writes_json(store, s3_client) -> None:
    store.put_object("b1", "config/i1", b"{}")
    assert s3_client.calls == [
        ("put_object", {"Bucket": "b1", "Key": "config/i1", "Body": b"{}", "ContentType": "application/json"})
    ]


def test_get_tags_without_tag_set_is_empty(store, s3_client) -> None:
    s3_client.queue("get_bucket_tagging", client_error("NoSuchTagSet", status=404))
    assert store.get_tags("b1") == {}


def test_get_tags_on_missing_bucket_raises(store, s3_client) -> None:
    s3_client.queue("get_bucket_tagging", client_error("NoSuchBucket", status=404))
    with pytest.raises(CloudCallError):
        store.get_tags("b1")


def test_set_and_get_tags(store, s3_client) -> None:
    store.set_tags("b1", {"serviceInstanceId": "i1", "planId": "s3-basic-plan"})
    s3_client.queue("get_bucket_tagging", {"TagSet": [{"Key": "serviceInstanceId", "Value": "i1"}]})

    assert s3_client.calls[0][1]["Tagging"] == {
        "TagSet": [{"Key": "serviceInstanceId", "Value": "i1"}, {"Key": "planId", "Value": "s3-basic-plan"}]
    }
    assert store.get_tags("b1") == {"serviceInstanceId": "i1"}
