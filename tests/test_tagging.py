from __future__ import annotations

from s3broker.models import ServiceInstance
from s3broker.services.tagging import INSTANCE_TAG_KEYS, decode_instance_tags, encode_instance_tags


def test_encode_uses_wire_tag_keys() -> None:
    instance = ServiceInstance(
        service_instance_id="i1",
        service_definition_id="s3",
        plan_id="s3-basic-plan",
        organization_guid="org",
        space_guid="space",
    )

    tags = encode_instance_tags(instance)

    assert tags == {
        "serviceInstanceId": "i1",
        "serviceDefinitionId": "s3",
        "planId": "s3-basic-plan",
        "organizationGuid": "org",
        "spaceGuid": "space",
    }
    assert set(tags) == set(INSTANCE_TAG_KEYS)


def test_encode_drops_missing_values() -> None:
    tags = encode_instance_tags(ServiceInstance(service_instance_id="i1", plan_id="s3-basic-plan"))
    assert tags == {"serviceInstanceId": "i1", "planId": "s3-basic-plan"}


def test_decode_rebuilds_instance() -> None:
    instance = decode_instance_tags(
        {"serviceInstanceId": "i1", "planId": "s3-basic-plan", "spaceGuid": "space", "unrelated": "x"}
    )
    assert instance is not None
    assert instance.service_instance_id == "i1"
    assert instance.plan_id == "s3-basic-plan"
    assert instance.space_guid == "space"
    assert instance.organization_guid is None


def test_decode_foreign_bucket_tags_returns_none() -> None:
    assert decode_instance_tags({}) is None
    assert decode_instance_tags({"owner": "someone-else"}) is None
    assert decode_instance_tags({"serviceInstanceId": ""}) is None
