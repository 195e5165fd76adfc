from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from s3broker.dependencies import get_broker, get_settings
from s3broker.models import BindRequest, ProvisionRequest
from s3broker.services.broker import ServiceBroker
from s3broker.services.errors import NotFoundException
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)


def require_broker_auth(
    credentials: Optional[HTTPBasicCredentials] = Depends(_basic),
    settings: BrokerSettings = Depends(get_settings),
) -> None:
    if not settings.auth_enabled:
        return
    if credentials is not None:
        username_ok = secrets.compare_digest(
            credentials.username.encode(), (settings.broker_username or "").encode()
        )
        password_ok = secrets.compare_digest(
            credentials.password.encode(), (settings.broker_password or "").encode()
        )
        if username_ok and password_ok:
            return
    logger.warning("Rejected broker request with invalid or missing credentials")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid broker credentials",
        headers={"WWW-Authenticate": "Basic"},
    )


router = APIRouter(prefix="/v2", tags=["broker"], dependencies=[Depends(require_broker_auth)])


@router.get("/catalog")
def get_catalog(broker: ServiceBroker = Depends(get_broker)) -> dict[str, Any]:
    return broker.catalog().to_catalog()


@router.put("/service_instances/{instance_id}", status_code=status.HTTP_201_CREATED)
def provision_instance(
    instance_id: str,
    payload: ProvisionRequest,
    broker: ServiceBroker = Depends(get_broker),
) -> dict[str, Any]:
    broker.create_instance(
        instance_id,
        plan_id=payload.plan_id,
        service_definition_id=payload.service_id,
        organization_guid=payload.organization_guid,
        space_guid=payload.space_guid,
    )
    return {}


@router.get("/service_instances")
def list_instances(broker: ServiceBroker = Depends(get_broker)) -> dict[str, Any]:
    listing = broker.list_all_instances()
    return {
        "instances": [instance.model_dump() for instance in listing.instances],
        "unlisted_plans": list(listing.unlisted_plans),
    }


@router.get("/service_instances/{instance_id}")
def get_instance(instance_id: str, broker: ServiceBroker = Depends(get_broker)) -> dict[str, Any]:
    instance = broker.get_instance(instance_id)
    if instance is None:
        raise NotFoundException(f"Service instance '{instance_id}' not found")
    return {
        "service_id": instance.service_definition_id,
        "plan_id": instance.plan_id,
        "organization_guid": instance.organization_guid,
        "space_guid": instance.space_guid,
    }


@router.delete("/service_instances/{instance_id}")
def deprovision_instance(
    instance_id: str,
    plan_id: str = Query(...),
    service_id: Optional[str] = Query(None),
    broker: ServiceBroker = Depends(get_broker),
) -> dict[str, Any]:
    broker.delete_instance(instance_id, plan_id=plan_id)
    return {}


@router.put(
    "/service_instances/{instance_id}/service_bindings/{binding_id}",
    status_code=status.HTTP_201_CREATED,
)
def bind_instance(
    instance_id: str,
    binding_id: str,
    payload: BindRequest,
    broker: ServiceBroker = Depends(get_broker),
) -> dict[str, Any]:
    binding = broker.create_binding(
        binding_id,
        instance_id,
        plan_id=payload.plan_id,
        app_guid=payload.app_guid,
        service_definition_id=payload.service_id,
    )
    credentials = binding.credentials.to_payload() if binding.credentials is not None else {}
    return {"credentials": credentials}


@router.delete("/service_instances/{instance_id}/service_bindings/{binding_id}")
def unbind_instance(
    instance_id: str,
    binding_id: str,
    plan_id: str = Query(...),
    service_id: Optional[str] = Query(None),
    broker: ServiceBroker = Depends(get_broker),
) -> dict[str, Any]:
    broker.delete_binding(binding_id, instance_id, plan_id=plan_id)
    return {}
