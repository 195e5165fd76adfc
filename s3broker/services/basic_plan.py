from __future__ import annotations

import logging
from typing import Optional

from s3broker.models import (
    BindingCredentials,
    PlanDescriptor,
    ServiceInstance,
    ServiceInstanceBinding,
)
from s3broker.services import naming
from s3broker.services.errors import (
    BindingNotFoundException,
    CloudCallError,
    ConflictException,
    InstanceNotFoundException,
    InvalidNameException,
)
from s3broker.services.plan import BASIC_PLAN_ID, Plan
from s3broker.services.plan_iam import PlanIam
from s3broker.services.ports import ObjectStore
from s3broker.services.tagging import decode_instance_tags, encode_instance_tags

logger = logging.getLogger(__name__)


class BasicPlan(Plan):
    """A dedicated bucket and IAM group per instance, a dedicated user per binding."""

    plan_id = BASIC_PLAN_ID
    descriptor = PlanDescriptor(
        id=BASIC_PLAN_ID,
        name="basic",
        description="An S3 plan providing a single bucket with unlimited storage.",
        bullets=["Single S3 bucket", "Unlimited storage", "Unlimited number of objects"],
    )

    def __init__(self, *, object_store: ObjectStore, iam: PlanIam, bucket_name_prefix: str) -> None:
        self._object_store = object_store
        self._iam = iam
        self._bucket_name_prefix = bucket_name_prefix

    def bucket_name_for_instance(self, instance_id: str) -> str:
        return naming.bucket_name_for_instance(self._bucket_name_prefix, instance_id)

    def provision(
        self,
        instance_id: str,
        service_definition_id: Optional[str],
        plan_id: str,
        organization_guid: Optional[str],
        space_guid: Optional[str],
    ) -> ServiceInstance:
        bucket_name = self.bucket_name_for_instance(instance_id)
        instance = ServiceInstance(
            service_instance_id=instance_id,
            service_definition_id=service_definition_id,
            plan_id=plan_id,
            organization_guid=organization_guid,
            space_guid=space_guid,
        )
        conflict = f"Bucket '{bucket_name}' for service instance '{instance_id}' already exists"
        # us-east-1 answers create_bucket on an owned bucket with 200, so check first.
        if self._object_store.container_exists(bucket_name):
            raise ConflictException(conflict)
        logger.info("Creating bucket '%s' for service instance '%s'", bucket_name, instance_id)
        created = self._object_store.create_container(bucket_name)
        if not created.changed:
            raise ConflictException(conflict)
        self._object_store.set_tags(bucket_name, encode_instance_tags(instance))

        # The group policy names the bucket, so the bucket must exist first.
        self._iam.create_group_for_instance(instance_id)
        self._iam.apply_group_policy_for_instance(instance_id, bucket_name)
        logger.info("Provisioned service instance '%s' (plan=%s)", instance_id, self.plan_id)
        return instance

    def deprovision(self, instance_id: str) -> ServiceInstance:
        instance = self.get_instance(instance_id)
        bucket_name = self.bucket_name_for_instance(instance_id)
        if instance is None:
            if not self._object_store.container_exists(bucket_name):
                raise InstanceNotFoundException(f"Service instance '{instance_id}' not found")
            # Bucket survived a partial earlier attempt but lost or never got its tags.
            instance = ServiceInstance(service_instance_id=instance_id, plan_id=self.plan_id)

        # Not transactional: a retry after partial failure sees already-deleted
        # resources as no-ops.
        self._iam.delete_group_policy_for_instance(instance_id)
        self._iam.delete_group_for_instance(instance_id)
        self._object_store.empty_container(bucket_name)
        self._object_store.delete_container(bucket_name)
        logger.info("Deprovisioned service instance '%s' (plan=%s)", instance_id, self.plan_id)
        return instance

    def bind(
        self,
        binding_id: str,
        instance_id: str,
        app_guid: Optional[str],
        service_definition_id: Optional[str] = None,
    ) -> ServiceInstanceBinding:
        bucket_name = self.bucket_name_for_instance(instance_id)
        if not self._object_store.container_exists(bucket_name):
            raise InstanceNotFoundException(f"Service instance '{instance_id}' not found")

        user = self._iam.create_user_for_binding(binding_id)
        access_key = self._iam.create_access_key(user)
        self._iam.add_user_to_instance_group(user, instance_id)

        credentials = BindingCredentials(
            bucket=bucket_name,
            username=user.user_name,
            access_key_id=access_key.access_key_id,
            secret_access_key=access_key.secret_access_key,
        )
        logger.info("Created binding '%s' for service instance '%s'", binding_id, instance_id)
        return ServiceInstanceBinding(
            binding_id=binding_id,
            service_instance_id=instance_id,
            credentials=credentials,
            app_guid=app_guid,
        )

    def unbind(self, binding_id: str, instance_id: str) -> ServiceInstanceBinding:
        if self._iam.get_user_for_binding(binding_id) is None:
            raise BindingNotFoundException(f"Service binding '{binding_id}' not found")
        self._iam.remove_user_from_group_for_instance(binding_id, instance_id)
        self._iam.delete_user_access_keys_for_binding(binding_id)
        self._iam.delete_user_for_binding(binding_id)
        logger.info("Deleted binding '%s' of service instance '%s'", binding_id, instance_id)
        return ServiceInstanceBinding(binding_id=binding_id, service_instance_id=instance_id)

    def get_instance(self, instance_id: str) -> Optional[ServiceInstance]:
        try:
            bucket_name = self.bucket_name_for_instance(instance_id)
        except InvalidNameException:
            return None
        if not self._object_store.container_exists(bucket_name):
            return None
        return decode_instance_tags(self._object_store.get_tags(bucket_name))

    def list_instances(self) -> list[ServiceInstance]:
        instances: list[ServiceInstance] = []
        for bucket_name in self._object_store.list_containers():
            try:
                tags = self._object_store.get_tags(bucket_name)
            except CloudCallError as exc:
                if exc.retryable:
                    raise
                logger.warning("Skipping bucket '%s' while listing instances: %s", bucket_name, exc)
                continue
            instance = decode_instance_tags(tags)
            if instance is not None:
                instances.append(instance)
        logger.debug("Found %s basic plan instance(s)", len(instances))
        return instances
