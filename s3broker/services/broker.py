from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Optional

from s3broker.cloud import build_client
from s3broker.models import ServiceDefinition, ServiceInstance, ServiceInstanceBinding
from s3broker.services.basic_plan import BasicPlan
from s3broker.services.config_store import ObjectStoreConfigStore
from s3broker.services.errors import InstanceListingUnsupported, UnsupportedPlanException
from s3broker.services.iam_adapter import IamIdentity
from s3broker.services.plan import Plan
from s3broker.services.plan_iam import PlanIam
from s3broker.services.s3_adapter import S3ObjectStore
from s3broker.services.shared_plan import SharedPlan
from s3broker.services.single_bucket_plan import SingleBucketPlan
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)

SERVICE_DEFINITION_ID = "s3"
SERVICE_NAME = "amazon-s3"
SERVICE_DESCRIPTION = "Amazon S3 storage with basic, shared and single-bucket plans."
SERVICE_TAGS = ["s3", "object-storage"]


@dataclass(frozen=True)
class InstanceListing:
    instances: list[ServiceInstance] = field(default_factory=list)
    # Plans whose instances cannot be enumerated; absent from ``instances``.
    unlisted_plans: list[str] = field(default_factory=list)


class ServiceBroker:
    """Routes broker requests to the plan named by their plan id.

    Plans are asked in registration order by ``get_instance``, so the basic
    plan must come first.
    """

    def __init__(self, plans: list[Plan]) -> None:
        self._plans: dict[str, Plan] = {plan.plan_id: plan for plan in plans}

    @property
    def plans(self) -> list[Plan]:
        return list(self._plans.values())

    def resolve(self, plan_id: Optional[str]) -> Plan:
        plan = self._plans.get(plan_id) if plan_id is not None else None
        if plan is None:
            raise UnsupportedPlanException(f"Unsupported plan: '{plan_id}'")
        return plan

    def catalog(self) -> ServiceDefinition:
        return ServiceDefinition(
            id=SERVICE_DEFINITION_ID,
            name=SERVICE_NAME,
            description=SERVICE_DESCRIPTION,
            bindable=True,
            tags=list(SERVICE_TAGS),
            plans=[plan.descriptor for plan in self._plans.values()],
        )

    def create_instance(
        self,
        instance_id: str,
        *,
        plan_id: str,
        service_definition_id: Optional[str] = None,
        organization_guid: Optional[str] = None,
        space_guid: Optional[str] = None,
    ) -> ServiceInstance:
        plan = self.resolve(plan_id)
        return plan.provision(instance_id, service_definition_id, plan_id, organization_guid, space_guid)

    def delete_instance(self, instance_id: str, *, plan_id: str) -> ServiceInstance:
        return self.resolve(plan_id).deprovision(instance_id)

    def create_binding(
        self,
        binding_id: str,
        instance_id: str,
        *,
        plan_id: str,
        app_guid: Optional[str] = None,
        service_definition_id: Optional[str] = None,
    ) -> ServiceInstanceBinding:
        return self.resolve(plan_id).bind(binding_id, instance_id, app_guid, service_definition_id)

    def delete_binding(self, binding_id: str, instance_id: str, *, plan_id: str) -> ServiceInstanceBinding:
        return self.resolve(plan_id).unbind(binding_id, instance_id)

    def get_instance(self, instance_id: str) -> Optional[ServiceInstance]:
        for plan in self._plans.values():
            instance = plan.get_instance(instance_id)
            if instance is not None:
                return instance
        return None

    def list_all_instances(self) -> InstanceListing:
        instances: list[ServiceInstance] = []
        unlisted: list[str] = []
        for plan in self._plans.values():
            try:
                instances.extend(plan.list_instances())
            except InstanceListingUnsupported:
                logger.debug("Plan '%s' does not support listing instances", plan.plan_id)
                unlisted.append(plan.plan_id)
        return InstanceListing(instances=instances, unlisted_plans=unlisted)


def build_broker(settings: BrokerSettings) -> ServiceBroker:
    object_store = S3ObjectStore(client=build_client("s3", settings), settings=settings)
    iam = PlanIam(
        identity=IamIdentity(client=build_client("iam", settings), settings=settings),
        settings=settings,
    )
    state_store = ObjectStoreConfigStore(object_store=object_store, bucket=settings.shared_bucket)
    logger.info(
        "Broker wired: region=%s shared_bucket=%s bucket_prefix=%s",
        settings.region_name,
        settings.shared_bucket,
        settings.bucket_name_prefix,
    )
    return ServiceBroker(
        [
            BasicPlan(object_store=object_store, iam=iam, bucket_name_prefix=settings.bucket_name_prefix),
            SharedPlan(
                object_store=object_store,
                state_store=state_store,
                iam=iam,
                shared_bucket=settings.shared_bucket,
            ),
            SingleBucketPlan(
                object_store=object_store,
                state_store=state_store,
                iam=iam,
                shared_bucket=settings.shared_bucket,
            ),
        ]
    )
