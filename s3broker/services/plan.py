from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import ClassVar, Optional

from s3broker.models import (
    PlanDescriptor,
    ServiceInstance,
    ServiceInstanceBinding,
    ServiceInstanceConfig,
)
from s3broker.services.encryption import generate_instance_key
from s3broker.services.errors import ConflictException, InstanceListingUnsupported, InstanceNotFoundException
from s3broker.services.ports import InstanceStateStore, ObjectStore, ResourceResult

logger = logging.getLogger(__name__)

BASIC_PLAN_ID = "s3-basic-plan"
SHARED_PLAN_ID = "s3-shared-plan"
SINGLE_BUCKET_PLAN_ID = "s3-singlebucket-plan"


class Plan(ABC):
    """One resource-allocation strategy behind the common instance/binding lifecycle.

    An instance exists exactly when its backing resource exists: a tagged
    bucket for the basic plan, a config document for the shared-bucket
    plans. Nothing else records instance state.
    """

    plan_id: ClassVar[str]
    descriptor: ClassVar[PlanDescriptor]

    @abstractmethod
    def provision(
        self,
        instance_id: str,
        service_definition_id: Optional[str],
        plan_id: str,
        organization_guid: Optional[str],
        space_guid: Optional[str],
    ) -> ServiceInstance: ...

    @abstractmethod
    def deprovision(self, instance_id: str) -> ServiceInstance: ...

    @abstractmethod
    def bind(
        self,
        binding_id: str,
        instance_id: str,
        app_guid: Optional[str],
        service_definition_id: Optional[str] = None,
    ) -> ServiceInstanceBinding: ...

    @abstractmethod
    def unbind(self, binding_id: str, instance_id: str) -> ServiceInstanceBinding: ...

    @abstractmethod
    def get_instance(self, instance_id: str) -> Optional[ServiceInstance]: ...

    @abstractmethod
    def list_instances(self) -> list[ServiceInstance]: ...


class SharedBucketPlan(Plan):
    """Common ground of the plans that keep every instance in one shared bucket."""

    def __init__(self, *, object_store: ObjectStore, state_store: InstanceStateStore, shared_bucket: str) -> None:
        self._object_store = object_store
        self._state_store = state_store
        self._shared_bucket = shared_bucket

    @property
    def shared_bucket(self) -> str:
        return self._shared_bucket

    def ensure_shared_bucket(self) -> ResourceResult:
        # No lock: a concurrent creator makes this a BucketAlreadyOwnedByYou no-op.
        if self._object_store.container_exists(self._shared_bucket):
            logger.debug("Shared bucket already exists: %s", self._shared_bucket)
            return ResourceResult(name=self._shared_bucket, exists=True, changed=False)
        logger.info("Creating shared bucket '%s'", self._shared_bucket)
        return self._object_store.create_container(self._shared_bucket)

    def _reject_existing_instance(self, instance_id: str) -> None:
        # The config document and its encryption key are written exactly once.
        if self._state_store.instance_config_exists(instance_id):
            raise ConflictException(
                f"Service instance '{instance_id}' already exists in s3://{self._shared_bucket}/config/{instance_id}"
            )

    def _write_instance_config(
        self,
        instance_id: str,
        organization_guid: Optional[str],
        space_guid: Optional[str],
    ) -> ServiceInstanceConfig:
        config = ServiceInstanceConfig(
            organization_guid=organization_guid,
            space_guid=space_guid,
            encryption_keys=[generate_instance_key()],
        )
        logger.info(
            "Creating service instance config object in: s3://%s/config/%s",
            self._shared_bucket,
            instance_id,
        )
        self._state_store.save_instance_config(instance_id, config)
        return config

    def _require_instance_config(self, instance_id: str) -> ServiceInstanceConfig:
        config = self._state_store.load_instance_config(instance_id)
        if config is None:
            raise InstanceNotFoundException(f"Service instance '{instance_id}' not found")
        return config

    def deprovision(self, instance_id: str) -> ServiceInstance:
        config = self._require_instance_config(instance_id)
        self._state_store.delete_instance_config(instance_id)
        logger.info("Deprovisioned service instance '%s' (plan=%s)", instance_id, self.plan_id)
        return ServiceInstance(
            service_instance_id=instance_id,
            plan_id=self.plan_id,
            organization_guid=config.organization_guid,
            space_guid=config.space_guid,
        )

    def get_instance(self, instance_id: str) -> Optional[ServiceInstance]:
        config = self._state_store.load_instance_config(instance_id)
        if config is None:
            return None
        return ServiceInstance(
            service_instance_id=instance_id,
            plan_id=self.plan_id,
            organization_guid=config.organization_guid,
            space_guid=config.space_guid,
        )

    def list_instances(self) -> list[ServiceInstance]:
        # TODO: enumerate config/ documents once they record the plan they belong to.
        raise InstanceListingUnsupported(f"Listing instances is not implemented for plan '{self.plan_id}'")
