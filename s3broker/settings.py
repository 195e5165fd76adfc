from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}; must be a number") from exc


@dataclass(frozen=True)
class BrokerSettings:
    """Runtime configuration for the broker, read once from the environment.

    The IAM prefixes and paths let several broker deployments share one AWS
    account without their groups, users and policies colliding.
    """

    region_name: str = "us-east-1"
    endpoint_url: Optional[str] = None
    bucket_name_prefix: str = "cloud-foundry-"
    shared_bucket: str = "cloud-foundry-shared"
    shared_user_name: Optional[str] = None
    group_path: str = "/cloud-foundry/s3/"
    group_name_prefix: str = "cloud-foundry-s3-"
    policy_name_prefix: str = "cloud-foundry-s3-"
    user_path: str = "/cloud-foundry/s3/"
    user_name_prefix: str = "cloud-foundry-s3-"
    _DEFAULT_CONNECT_TIMEOUT_SECONDS: ClassVar[float] = 10.0
    _DEFAULT_READ_TIMEOUT_SECONDS: ClassVar[float] = 30.0
    connect_timeout_seconds: float = _DEFAULT_CONNECT_TIMEOUT_SECONDS
    read_timeout_seconds: float = _DEFAULT_READ_TIMEOUT_SECONDS
    broker_username: Optional[str] = None
    broker_password: Optional[str] = None

    @property
    def auth_enabled(self) -> bool:
        return bool(self.broker_password)

    @staticmethod
    def from_env() -> "BrokerSettings":
        region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or "us-east-1"
        bucket_name_prefix = os.getenv("BUCKET_NAME_PREFIX", "cloud-foundry-")
        shared_bucket = os.getenv("AWS_SHARED_BUCKET") or f"{bucket_name_prefix}shared"

        return BrokerSettings(
            region_name=region_name,
            endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
            bucket_name_prefix=bucket_name_prefix,
            shared_bucket=shared_bucket,
            shared_user_name=os.getenv("AWS_SHARED_USER_NAME") or None,
            group_path=os.getenv("GROUP_PATH", "/cloud-foundry/s3/"),
            group_name_prefix=os.getenv("GROUP_NAME_PREFIX", "cloud-foundry-s3-"),
            policy_name_prefix=os.getenv("POLICY_NAME_PREFIX", "cloud-foundry-s3-"),
            user_path=os.getenv("USER_PATH", "/cloud-foundry/s3/"),
            user_name_prefix=os.getenv("USER_NAME_PREFIX", "cloud-foundry-s3-"),
            connect_timeout_seconds=_env_float(
                "S3BROKER_CONNECT_TIMEOUT_SECONDS", BrokerSettings._DEFAULT_CONNECT_TIMEOUT_SECONDS
            ),
            read_timeout_seconds=_env_float(
                "S3BROKER_READ_TIMEOUT_SECONDS", BrokerSettings._DEFAULT_READ_TIMEOUT_SECONDS
            ),
            broker_username=os.getenv("SECURITY_USER_NAME") or None,
            broker_password=os.getenv("SECURITY_USER_PASSWORD") or None,
        )
