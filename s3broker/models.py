from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from s3broker.services.encryption import EncryptionKey


class ServiceInstance(BaseModel):
    service_instance_id: str
    service_definition_id: Optional[str] = None
    plan_id: Optional[str] = None
    organization_guid: Optional[str] = None
    space_guid: Optional[str] = None


class ServiceInstanceConfig(BaseModel):
    """Per-instance document stored at ``config/<instanceId>`` in the shared bucket.

    All three keys must be present in stored JSON; documents written before
    ``encryptionKeys`` existed are rejected rather than read as keyless.
    """

    model_config = ConfigDict(populate_by_name=True)

    organization_guid: Optional[str] = Field(..., alias="organizationGuid")
    space_guid: Optional[str] = Field(..., alias="spaceGuid")
    encryption_keys: list[EncryptionKey] = Field(..., alias="encryptionKeys")


class SharedCredentials(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_key: str = Field(..., alias="accessKey")
    secret_key: str = Field(..., alias="secretKey")


class BindingCredentials(BaseModel):
    bucket: str
    username: str
    access_key_id: str
    secret_access_key: str
    key_suffix: Optional[str] = None
    encryption_keys: Optional[list[EncryptionKey]] = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ServiceInstanceBinding(BaseModel):
    binding_id: str
    service_instance_id: str
    credentials: Optional[BindingCredentials] = None
    app_guid: Optional[str] = None


class PlanDescriptor(BaseModel):
    id: str
    name: str
    description: str
    bullets: list[str] = Field(default_factory=list)

    def to_catalog(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "metadata": {"bullets": list(self.bullets)},
        }


class ServiceDefinition(BaseModel):
    id: str
    name: str
    description: str
    bindable: bool = True
    tags: list[str] = Field(default_factory=list)
    plans: list[PlanDescriptor] = Field(default_factory=list)

    def to_catalog(self) -> dict[str, Any]:
        return {
            "services": [
                {
                    "id": self.id,
                    "name": self.name,
                    "description": self.description,
                    "bindable": self.bindable,
                    "tags": list(self.tags),
                    "plans": [plan.to_catalog() for plan in self.plans],
                }
            ]
        }


class ProvisionRequest(BaseModel):
    service_id: Optional[str] = None
    plan_id: str
    organization_guid: Optional[str] = None
    space_guid: Optional[str] = None


class BindRequest(BaseModel):
    service_id: Optional[str] = None
    plan_id: str
    app_guid: Optional[str] = None
