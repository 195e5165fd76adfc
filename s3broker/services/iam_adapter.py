from __future__ import annotations

import logging
from typing import Any, Optional

from s3broker.cloud import build_client, invoke
from s3broker.services.errors import ResourceNotFoundException
from s3broker.services.ports import AccessKey, IamUser, ResourceResult
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)


class IamIdentity:
    """Adapter for IAM user, group, access key and inline policy operations."""

    def __init__(self, *, client: Any = None, settings: BrokerSettings | None = None) -> None:
        self._client = client if client is not None else build_client("iam", settings or BrokerSettings())

    @staticmethod
    def _user_from_payload(payload: dict[str, Any]) -> IamUser:
        return IamUser(user_name=payload["UserName"], arn=payload.get("Arn"), path=payload.get("Path"))

    def create_user(self, name: str, *, path: str = "/") -> IamUser:
        logger.info("Creating IAM user '%s' (path=%s)", name, path)
        response = invoke(
            self._client.create_user,
            error_message=f"Failed to create user {name}",
            UserName=name,
            Path=path,
        )
        return self._user_from_payload(response["User"])

    def get_user(self, name: str) -> Optional[IamUser]:
        try:
            response = invoke(self._client.get_user, error_message=f"Failed to fetch user {name}", UserName=name)
        except ResourceNotFoundException:
            logger.debug("IAM user not found: %s", name)
            return None
        return self._user_from_payload(response["User"])

    def delete_user(self, name: str) -> ResourceResult:
        logger.info("Deleting IAM user '%s'", name)
        try:
            invoke(self._client.delete_user, error_message=f"Failed to delete user {name}", UserName=name)
        except ResourceNotFoundException:
            logger.debug("IAM user was already absent: %s", name)
            return ResourceResult(name=name, exists=False, changed=False)
        return ResourceResult(name=name, exists=False, changed=True)

    def create_access_key(self, user_name: str) -> AccessKey:
        logger.info("Creating access key for IAM user '%s'", user_name)
        response = invoke(
            self._client.create_access_key,
            error_message=f"Failed to create access key for user {user_name}",
            UserName=user_name,
        )
        key = response["AccessKey"]
        return AccessKey(
            user_name=key["UserName"],
            access_key_id=key["AccessKeyId"],
            secret_access_key=key["SecretAccessKey"],
        )

    def _list_access_key_ids(self, user_name: str) -> list[str]:
        key_ids: list[str] = []
        params: dict[str, Any] = {"UserName": user_name}
        while True:
            response = invoke(
                self._client.list_access_keys,
                error_message=f"Failed to list access keys for user {user_name}",
                **params,
            )
            key_ids.extend(meta["AccessKeyId"] for meta in response.get("AccessKeyMetadata", []))
            if not response.get("IsTruncated"):
                return key_ids
            params["Marker"] = response["Marker"]

    def delete_access_keys(self, user_name: str) -> int:
        try:
            key_ids = self._list_access_key_ids(user_name)
        except ResourceNotFoundException:
            logger.debug("No access keys to delete, user is absent: %s", user_name)
            return 0
        deleted = 0
        for key_id in key_ids:
            try:
                invoke(
                    self._client.delete_access_key,
                    error_message=f"Failed to delete access key {key_id} of user {user_name}",
                    UserName=user_name,
                    AccessKeyId=key_id,
                )
                deleted += 1
            except ResourceNotFoundException:
                logger.debug("Access key %s of user %s was already absent", key_id, user_name)
        logger.info("Deleted %s access key(s) of IAM user '%s'", deleted, user_name)
        return deleted

    def create_group(self, name: str, *, path: str = "/") -> ResourceResult:
        logger.info("Creating IAM group '%s' (path=%s)", name, path)
        invoke(self._client.create_group, error_message=f"Failed to create group {name}", GroupName=name, Path=path)
        return ResourceResult(name=name, exists=True, changed=True)

    def delete_group(self, name: str) -> ResourceResult:
        logger.info("Deleting IAM group '%s'", name)
        try:
            invoke(self._client.delete_group, error_message=f"Failed to delete group {name}", GroupName=name)
        except ResourceNotFoundException:
            logger.debug("IAM group was already absent: %s", name)
            return ResourceResult(name=name, exists=False, changed=False)
        return ResourceResult(name=name, exists=False, changed=True)

    def put_group_policy(self, group_name: str, policy_name: str, document: str) -> None:
        logger.info("Applying policy '%s' to IAM group '%s'", policy_name, group_name)
        invoke(
            self._client.put_group_policy,
            error_message=f"Failed to apply policy {policy_name} to group {group_name}",
            GroupName=group_name,
            PolicyName=policy_name,
            PolicyDocument=document,
        )

    def delete_group_policy(self, group_name: str, policy_name: str) -> ResourceResult:
        logger.info("Deleting policy '%s' from IAM group '%s'", policy_name, group_name)
        try:
            invoke(
                self._client.delete_group_policy,
                error_message=f"Failed to delete policy {policy_name} from group {group_name}",
                GroupName=group_name,
                PolicyName=policy_name,
            )
        except ResourceNotFoundException:
            logger.debug("Group policy was already absent: %s/%s", group_name, policy_name)
            return ResourceResult(name=policy_name, exists=False, changed=False)
        return ResourceResult(name=policy_name, exists=False, changed=True)

    def put_user_policy(self, user_name: str, policy_name: str, document: str) -> None:
        logger.info("Applying policy '%s' to IAM user '%s'", policy_name, user_name)
        invoke(
            self._client.put_user_policy,
            error_message=f"Failed to apply policy {policy_name} to user {user_name}",
            UserName=user_name,
            PolicyName=policy_name,
            PolicyDocument=document,
        )

    def user_policy_exists(self, user_name: str, policy_name: str) -> bool:
        try:
            invoke(
                self._client.get_user_policy,
                error_message=f"Failed to fetch policy {policy_name} of user {user_name}",
                UserName=user_name,
                PolicyName=policy_name,
            )
        except ResourceNotFoundException:
            return False
        return True

    def delete_user_policy(self, user_name: str, policy_name: str) -> ResourceResult:
        logger.info("Deleting policy '%s' from IAM user '%s'", policy_name, user_name)
        try:
            invoke(
                self._client.delete_user_policy,
                error_message=f"Failed to delete policy {policy_name} from user {user_name}",
                UserName=user_name,
                PolicyName=policy_name,
            )
        except ResourceNotFoundException:
            logger.debug("User policy was already absent: %s/%s", user_name, policy_name)
            return ResourceResult(name=policy_name, exists=False, changed=False)
        return ResourceResult(name=policy_name, exists=False, changed=True)

    def add_user_to_group(self, user_name: str, group_name: str) -> None:
        logger.info("Adding IAM user '%s' to group '%s'", user_name, group_name)
        invoke(
            self._client.add_user_to_group,
            error_message=f"Failed to add user {user_name} to group {group_name}",
            UserName=user_name,
            GroupName=group_name,
        )

    def remove_user_from_group(self, user_name: str, group_name: str) -> ResourceResult:
        logger.info("Removing IAM user '%s' from group '%s'", user_name, group_name)
        try:
            invoke(
                self._client.remove_user_from_group,
                error_message=f"Failed to remove user {user_name} from group {group_name}",
                UserName=user_name,
                GroupName=group_name,
            )
        except ResourceNotFoundException:
            logger.debug("Membership was already absent: %s in %s", user_name, group_name)
            return ResourceResult(name=user_name, exists=False, changed=False)
        return ResourceResult(name=user_name, exists=False, changed=True)
