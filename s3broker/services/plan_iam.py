from __future__ import annotations

from functools import lru_cache
from importlib import resources
import logging

from s3broker.services import naming
from s3broker.services.errors import PolicyTemplateMissingException
from s3broker.services.ports import AccessKey, IamUser, IdentityCapability, ResourceResult
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)

POLICY_PACKAGE = "s3broker.policies"
BUCKET_GROUP_POLICY_TEMPLATE = "bucket-group-policy.json"
SHARED_USER_POLICY_TEMPLATE = "shared-bucket-shared-user-iam-policy.json"
SINGLE_BUCKET_USER_POLICY_TEMPLATE = "single-bucket-user-iam-policy.json"


@lru_cache(maxsize=None)
def load_policy_template(name: str, package: str = POLICY_PACKAGE) -> str:
    try:
        return resources.files(package).joinpath(name).read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError) as exc:
        raise PolicyTemplateMissingException(f"Policy template '{name}' not found in {package}") from exc


def render_policy(template: str, *, bucket_name: str, suffix: str | None = None) -> str:
    """Substitute ``${bucketName}`` and ``${suffix}`` placeholders verbatim."""
    document = template.replace("${bucketName}", bucket_name)
    if suffix is not None:
        document = document.replace("${suffix}", suffix)
    return document


class PlanIam:
    """IAM operations under this deployment's naming conventions."""

    def __init__(self, *, identity: IdentityCapability, settings: BrokerSettings) -> None:
        self._identity = identity
        self._settings = settings

    def group_name_for_instance(self, instance_id: str) -> str:
        return naming.group_name_for_instance(self._settings.group_name_prefix, instance_id)

    def group_policy_name_for_instance(self, instance_id: str) -> str:
        return naming.group_policy_name_for_instance(self._settings.policy_name_prefix, instance_id)

    def user_name_for_binding(self, binding_id: str) -> str:
        return naming.user_name_for_binding(self._settings.user_name_prefix, binding_id)

    def shared_user_name(self) -> str:
        return naming.shared_user_name(self._settings.user_name_prefix, self._settings.shared_user_name)

    def create_group_for_instance(self, instance_id: str) -> ResourceResult:
        group_name = self.group_name_for_instance(instance_id)
        logger.info("Creating group '%s' for service instance '%s'", group_name, instance_id)
        return self._identity.create_group(group_name, path=self._settings.group_path)

    def apply_group_policy_for_instance(self, instance_id: str, bucket_name: str) -> None:
        document = render_policy(load_policy_template(BUCKET_GROUP_POLICY_TEMPLATE), bucket_name=bucket_name)
        self._identity.put_group_policy(
            self.group_name_for_instance(instance_id),
            self.group_policy_name_for_instance(instance_id),
            document,
        )

    def delete_group_policy_for_instance(self, instance_id: str) -> ResourceResult:
        return self._identity.delete_group_policy(
            self.group_name_for_instance(instance_id),
            self.group_policy_name_for_instance(instance_id),
        )

    def delete_group_for_instance(self, instance_id: str) -> ResourceResult:
        group_name = self.group_name_for_instance(instance_id)
        logger.info("Deleting group '%s' for service instance '%s'", group_name, instance_id)
        return self._identity.delete_group(group_name)

    def create_user_for_binding(self, binding_id: str) -> IamUser:
        user_name = self.user_name_for_binding(binding_id)
        logger.info("Creating user '%s' for service binding '%s'", user_name, binding_id)
        return self._identity.create_user(user_name, path=self._settings.user_path)

    def get_user_for_binding(self, binding_id: str) -> IamUser | None:
        return self._identity.get_user(self.user_name_for_binding(binding_id))

    def create_access_key(self, user: IamUser) -> AccessKey:
        return self._identity.create_access_key(user.user_name)

    def add_user_to_instance_group(self, user: IamUser, instance_id: str) -> None:
        self._identity.add_user_to_group(user.user_name, self.group_name_for_instance(instance_id))

    def remove_user_from_group_for_instance(self, binding_id: str, instance_id: str) -> ResourceResult:
        return self._identity.remove_user_from_group(
            self.user_name_for_binding(binding_id),
            self.group_name_for_instance(instance_id),
        )

    def delete_user_access_keys_for_binding(self, binding_id: str) -> int:
        return self._identity.delete_access_keys(self.user_name_for_binding(binding_id))

    def delete_user_for_binding(self, binding_id: str) -> ResourceResult:
        user_name = self.user_name_for_binding(binding_id)
        logger.info("Deleting user '%s' of service binding '%s'", user_name, binding_id)
        return self._identity.delete_user(user_name)

    def ensure_shared_user(self) -> IamUser:
        user_name = self.shared_user_name()
        logger.info("Retrieving user '%s' for shared bucket", user_name)
        user = self._identity.get_user(user_name)
        if user is not None:
            return user
        logger.info("User doesn't exist, creating user '%s' for shared bucket", user_name)
        return self._identity.create_user(user_name, path=self._settings.user_path)

    def user_policy_exists(self, user_name: str, policy_name: str) -> bool:
        return self._identity.user_policy_exists(user_name, policy_name)

    def apply_user_policy(self, user_name: str, policy_name: str, document: str) -> None:
        self._identity.put_user_policy(user_name, policy_name, document)

    def delete_user_policy(self, user_name: str, policy_name: str) -> ResourceResult:
        return self._identity.delete_user_policy(user_name, policy_name)

    def shared_user_policy_document(self, bucket_name: str) -> str:
        return render_policy(load_policy_template(SHARED_USER_POLICY_TEMPLATE), bucket_name=bucket_name)

    def single_bucket_policy_document(self, bucket_name: str, key_suffix: str) -> str:
        return render_policy(
            load_policy_template(SINGLE_BUCKET_USER_POLICY_TEMPLATE),
            bucket_name=bucket_name,
            suffix=key_suffix,
        )
