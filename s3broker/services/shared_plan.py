from __future__ import annotations

import logging
from typing import Optional

from s3broker.models import (
    BindingCredentials,
    PlanDescriptor,
    ServiceInstance,
    ServiceInstanceBinding,
    SharedCredentials,
)
from s3broker.services import naming
from s3broker.services.errors import NotFoundException
from s3broker.services.plan import SHARED_PLAN_ID, SharedBucketPlan
from s3broker.services.plan_iam import PlanIam
from s3broker.services.ports import IamUser, InstanceStateStore, ObjectStore

logger = logging.getLogger(__name__)


class SharedPlan(SharedBucketPlan):
    """One shared bucket and one shared IAM user for every instance and binding.

    Instances are separated only by the ``key_suffix`` convention; the
    per-instance encryption key is the only secret an instance owns.

    ``persist_shared_user`` is a check-then-write without a lock. Two
    first-time provisions racing through it each create an access key and
    the later write wins, leaving the other key active but unrecorded.
    """

    plan_id = SHARED_PLAN_ID
    descriptor = PlanDescriptor(
        id=SHARED_PLAN_ID,
        name="shared",
        description="An S3 plan providing a shared bucket with unlimited storage.",
        bullets=["Shared S3 bucket", "Unlimited storage", "Unlimited number of objects"],
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

    def ensure_shared_user(self) -> IamUser:
        return self._iam.ensure_shared_user()

    def persist_shared_user(self, shared_user: IamUser) -> SharedCredentials:
        logger.info(
            "Attempting to persist shared user to: s3://%s/config/shared_credentials",
            self._shared_bucket,
        )
        credentials = self._state_store.load_shared_credentials()
        if credentials is not None:
            return credentials

        access_key = self._iam.create_access_key(shared_user)
        credentials = SharedCredentials(
            access_key=access_key.access_key_id,
            secret_key=access_key.secret_access_key,
        )
        self._state_store.save_shared_credentials(credentials)
        logger.info(
            "Persisted new access key %s for shared user '%s'",
            access_key.access_key_id,
            shared_user.user_name,
        )
        return credentials

    def ensure_shared_user_policy(self, user_name: str) -> bool:
        policy_name = naming.SHARED_USER_POLICY_NAME
        if self._iam.user_policy_exists(user_name, policy_name):
            logger.debug("Policy '%s' already attached to shared user '%s'", policy_name, user_name)
            return False
        self._iam.apply_user_policy(
            user_name,
            policy_name,
            self._iam.shared_user_policy_document(self._shared_bucket),
        )
        return True

    def shared_credentials(self) -> SharedCredentials:
        credentials = self._state_store.load_shared_credentials()
        if credentials is None:
            raise NotFoundException(
                f"Shared credentials not found in s3://{self._shared_bucket}/config/shared_credentials"
            )
        return credentials

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
        shared_user = self.ensure_shared_user()
        self.persist_shared_user(shared_user)
        self.ensure_shared_user_policy(shared_user.user_name)
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
        # Read on every bind, never cached.
        shared = self.shared_credentials()
        credentials = BindingCredentials(
            bucket=self._shared_bucket,
            username=self._iam.shared_user_name(),
            access_key_id=shared.access_key,
            secret_access_key=shared.secret_key,
            key_suffix=naming.key_suffix_for_instance(instance_id),
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
        # The shared user outlives every binding.
        logger.info("Deleted binding '%s' of service instance '%s'", binding_id, instance_id)
        return ServiceInstanceBinding(binding_id=binding_id, service_instance_id=instance_id)
