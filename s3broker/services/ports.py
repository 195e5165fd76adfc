from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from s3broker.models import ServiceInstanceConfig, SharedCredentials


@dataclass(frozen=True)
class ResourceResult:
    name: str
    exists: bool
    changed: bool


@dataclass(frozen=True)
class IamUser:
    user_name: str
    arn: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class AccessKey:
    user_name: str
    access_key_id: str
    secret_access_key: str


class ObjectStore(Protocol):
    def create_container(self, name: str) -> ResourceResult: ...

    def container_exists(self, name: str) -> bool: ...

    def delete_container(self, name: str) -> ResourceResult: ...

    def empty_container(self, name: str) -> int: ...

    def list_containers(self) -> list[str]: ...

    def put_object(self, container: str, path: str, data: bytes) -> None: ...

    def get_object(self, container: str, path: str) -> Optional[bytes]: ...

    def delete_object(self, container: str, path: str) -> None: ...

    def get_tags(self, container: str) -> dict[str, str]: ...

    def set_tags(self, container: str, tags: dict[str, str]) -> None: ...


class IdentityCapability(Protocol):
    def create_user(self, name: str, *, path: str = "/") -> IamUser: ...

    def get_user(self, name: str) -> Optional[IamUser]: ...

    def delete_user(self, name: str) -> ResourceResult: ...

    def create_access_key(self, user_name: str) -> AccessKey: ...

    def delete_access_keys(self, user_name: str) -> int: ...

    def create_group(self, name: str, *, path: str = "/") -> ResourceResult: ...

    def delete_group(self, name: str) -> ResourceResult: ...

    def put_group_policy(self, group_name: str, policy_name: str, document: str) -> None: ...

    def delete_group_policy(self, group_name: str, policy_name: str) -> ResourceResult: ...

    def put_user_policy(self, user_name: str, policy_name: str, document: str) -> None: ...

    def user_policy_exists(self, user_name: str, policy_name: str) -> bool: ...

    def delete_user_policy(self, user_name: str, policy_name: str) -> ResourceResult: ...

    def add_user_to_group(self, user_name: str, group_name: str) -> None: ...

    def remove_user_from_group(self, user_name: str, group_name: str) -> ResourceResult: ...


class InstanceStateStore(Protocol):
    """Where Shared and SingleBucket plans keep their instance records."""

    def load_instance_config(self, instance_id: str) -> Optional[ServiceInstanceConfig]: ...

    def save_instance_config(self, instance_id: str, config: ServiceInstanceConfig) -> None: ...

    def delete_instance_config(self, instance_id: str) -> None: ...

    def instance_config_exists(self, instance_id: str) -> bool: ...

    def load_shared_credentials(self) -> Optional[SharedCredentials]: ...

    def save_shared_credentials(self, credentials: SharedCredentials) -> None: ...
