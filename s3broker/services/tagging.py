from __future__ import annotations

from typing import Mapping, Optional

from s3broker.models import ServiceInstance

TAG_SERVICE_INSTANCE_ID = "serviceInstanceId"
TAG_SERVICE_DEFINITION_ID = "serviceDefinitionId"
TAG_PLAN_ID = "planId"
TAG_ORGANIZATION_GUID = "organizationGuid"
TAG_SPACE_GUID = "spaceGuid"

INSTANCE_TAG_KEYS = (
    TAG_SERVICE_INSTANCE_ID,
    TAG_SERVICE_DEFINITION_ID,
    TAG_PLAN_ID,
    TAG_ORGANIZATION_GUID,
    TAG_SPACE_GUID,
)


def encode_instance_tags(instance: ServiceInstance) -> dict[str, str]:
    """Flatten an instance into the single tag set stored on its bucket."""
    values = {
        TAG_SERVICE_INSTANCE_ID: instance.service_instance_id,
        TAG_SERVICE_DEFINITION_ID: instance.service_definition_id,
        TAG_PLAN_ID: instance.plan_id,
        TAG_ORGANIZATION_GUID: instance.organization_guid,
        TAG_SPACE_GUID: instance.space_guid,
    }
    # S3 tag values cannot be null.
    return {key: value for key, value in values.items() if value is not None}


def decode_instance_tags(tags: Mapping[str, str]) -> Optional[ServiceInstance]:
    """Rebuild an instance from bucket tags.

    Buckets that were not created by this broker carry no
    ``serviceInstanceId`` tag and decode to ``None``.
    """
    instance_id = tags.get(TAG_SERVICE_INSTANCE_ID)
    if not instance_id:
        return None
    return ServiceInstance(
        service_instance_id=instance_id,
        service_definition_id=tags.get(TAG_SERVICE_DEFINITION_ID),
        plan_id=tags.get(TAG_PLAN_ID),
        organization_guid=tags.get(TAG_ORGANIZATION_GUID),
        space_guid=tags.get(TAG_SPACE_GUID),
    )
