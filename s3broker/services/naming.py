from __future__ import annotations

import re

from s3broker.services.errors import InvalidNameException

BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_IP_ADDRESS_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")

MIN_BUCKET_NAME_LEN = 3
MAX_BUCKET_NAME_LEN = 63

SHARED_USER_SUFFIX = "shared"
SHARED_USER_POLICY_NAME = "CFSharedBucketIamPolicy"
SINGLE_BUCKET_USER_POLICY_NAME = "CFSingleBucketIamPolicy"


def is_valid_bucket_name(value: str) -> bool:
    if not BUCKET_NAME_RE.fullmatch(value):
        return False
    if ".." in value or ".-" in value or "-." in value:
        return False
    return not _IP_ADDRESS_RE.fullmatch(value)


def validate_bucket_name(value: str) -> str:
    if not is_valid_bucket_name(value):
        raise InvalidNameException(
            f"'{value}' is not a valid bucket name "
            f"({MIN_BUCKET_NAME_LEN}-{MAX_BUCKET_NAME_LEN} lowercase letters, digits, dots or hyphens)"
        )
    return value


def bucket_name_for_instance(prefix: str, instance_id: str) -> str:
    return validate_bucket_name(f"{prefix}{instance_id}")


def group_name_for_instance(prefix: str, instance_id: str) -> str:
    return f"{prefix}{instance_id}"


def group_policy_name_for_instance(prefix: str, instance_id: str) -> str:
    return f"{prefix}{instance_id}"


def user_name_for_binding(prefix: str, binding_id: str) -> str:
    return f"{prefix}{binding_id}"


def shared_user_name(prefix: str, override: str | None = None) -> str:
    if override:
        return override
    return f"{prefix}{SHARED_USER_SUFFIX}"


def key_suffix_for_instance(instance_id: str) -> str:
    return f"_{instance_id}"
