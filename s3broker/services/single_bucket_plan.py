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
from s3broker.services.errors import BindingNotFoundException
from s3broker.services.plan import SINGLE_BUCKET_PLAN_ID, SharedBucketPlan
from s3broker.services.plan_iam import PlanIam
from s3broker.services.ports import InstanceStateStore, ObjectStore

logger = logging.getLogger(__name__)


class SingleBucketPlan(SharedBucketPlan):
    """One shared bucket, one IAM user per binding restricted to the instance's key suffix."""

    plan_id = SINGLE_BUCKET_PLAN_ID
    descriptor = PlanDescriptor(
        id=SINGLE_BUCKET_PLAN_ID,
        name="singlebucket",
        description="An S3 plan providing a single bucket (separate IAM users) with unlimited storage.",
        bullets=["Shared S3 bucket (separate IAM users)", "Unlimited storage", "Unlimited number of objects"],
    )

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        state_store: InstanceStateStore,
        iam: PlanIam,
        shared_bucket: str,
    ) -> None:
        super().__init__(object_store=object_store, state_store=state_store, shared_bucket=shared_bucket)
        self._iam = iam

    def create_user_bucket_policy(self, user_name: str, key_suffix: str) -> bool:
        policy_name = naming.SINGLE_BUCKET_USER_POLICY_NAME
        if self._iam.user_policy_exists(user_name, policy_name):
            return False
        self._iam.apply_user_policy(
            user_name,
            policy_name,
            self._iam.single_bucket_policy_document(self._shared_bucket, key_suffix),
        )
        return True

    def delete_user_bucket_policy(self, user_name: str) -> bool:
        policy_name = naming.SINGLE_BUCKET_USER_POLICY_NAME
        if not self._iam.user_policy_exists(user_name, policy_name):
            return False
        return self._iam.delete_user_policy(user_name, policy_name).changed

    def provision(
        self,
        instance_id: str,
        service_definition_id: Optional[str],
        plan_id: str,
        organization_guid: Optional[str],
        space_guid: Optional[str],
    ) -> ServiceInstance:
        self._reject_existing_instance(instance_id)
        self.ensure_shared_bucket()
        self._write_instance_config(instance_id, organization_guid, space_guid)
        logger.info("Provisioned service instance '%s' (plan=%s)", instance_id, self.plan_id)
        return ServiceInstance(
            service_instance_id=instance_id,
            service_definition_id=service_definition_id,
            plan_id=plan_id,
            organization_guid=organization_guid,
            space_guid=space_guid,
        )

    def bind(
        self,
        binding_id: str,
        instance_id: str,
        app_guid: Optional[str],
        service_definition_id: Optional[str] = None,
    ) -> ServiceInstanceBinding:
        config = self._require_instance_config(instance_id)
        user = self._iam.create_user_for_binding(binding_id)
        access_key = self._iam.create_access_key(user)

        key_suffix = naming.key_suffix_for_instance(instance_id)
        self.create_user_bucket_policy(user.user_name, key_suffix)

        credentials = BindingCredentials(
            bucket=self._shared_bucket,
            username=user.user_name,
            access_key_id=access_key.access_key_id,
            secret_access_key=access_key.secret_access_key,
            key_suffix=key_suffix,
            encryption_keys=config.encryption_keys,
        )
        logger.info("Created binding '%s' for service instance '%s'", binding_id, instance_id)
        return ServiceInstanceBinding(
            binding_id=binding_id,
            service_instance_id=instance_id,
            credentials=credentials,
            app_guid=app_guid,
        )

    def unbind(self, binding_id: str, instance_id: str) -> ServiceInstanceBinding:
        user_name = self._iam.user_name_for_binding(binding_id)
        if self._iam.get_user_for_binding(binding_id) is None:
            raise BindingNotFoundException(f"Service binding '{binding_id}' not found")
        self.delete_user_bucket_policy(user_name)
        self._iam.delete_user_access_keys_for_binding(binding_id)
        self._iam.delete_user_for_binding(binding_id)
        logger.info("Deleted binding '%s' of service instance '%s'", binding_id, instance_id)
        return ServiceInstanceBinding(binding_id=binding_id, service_instance_id=instance_id)
