from __future__ import annotations

from contextlib import closing
import logging
from typing import Any, Iterator, Optional

from s3broker.cloud import build_client, invoke
from s3broker.services.errors import CloudCallError, ResourceExistsException, ResourceNotFoundException
from s3broker.services.ports import ResourceResult
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)

_DEFAULT_REGION = "us-east-1"


class S3ObjectStore:
    """Adapter for bucket, object and tag operations."""

    def __init__(self, *, client: Any = None, settings: BrokerSettings | None = None) -> None:
        settings = settings or BrokerSettings()
        self._client = client if client is not None else build_client("s3", settings)
        self._region = settings.region_name

    def create_container(self, name: str) -> ResourceResult:
        logger.info("Creating bucket '%s' in region '%s'", name, self._region)
        params: dict[str, Any] = {"Bucket": name}
        if self._region and self._region != _DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            invoke(self._client.create_bucket, error_message=f"Failed to create bucket {name}", **params)
        except ResourceExistsException as exc:
            if exc.code == "BucketAlreadyOwnedByYou":
                logger.debug("Bucket already exists and is owned by us: %s", name)
                return ResourceResult(name=name, exists=True, changed=False)
            raise
        logger.info("Created bucket: %s", name)
        return ResourceResult(name=name, exists=True, changed=True)

    def container_exists(self, name: str) -> bool:
        try:
            invoke(self._client.head_bucket, error_message=f"Failed to check bucket {name}", Bucket=name)
        except ResourceNotFoundException:
            logger.debug("Bucket not found: %s", name)
            return False
        logger.debug("Bucket exists: %s", name)
        return True

    def delete_container(self, name: str) -> ResourceResult:
        logger.info("Deleting bucket: %s", name)
        try:
            invoke(self._client.delete_bucket, error_message=f"Failed to delete bucket {name}", Bucket=name)
        except ResourceNotFoundException:
            logger.debug("Bucket was already absent: %s", name)
            return ResourceResult(name=name, exists=False, changed=False)
        logger.info("Deleted bucket: %s", name)
        return ResourceResult(name=name, exists=False, changed=True)

    def list_containers(self) -> list[str]:
        names: list[str] = []
        params: dict[str, Any] = {}
        while True:
            response = invoke(self._client.list_buckets, error_message="Failed to list buckets", **params)
            names.extend(bucket["Name"] for bucket in response.get("Buckets", []))
            token = response.get("ContinuationToken")
            if not token:
                return names
            params["ContinuationToken"] = token

    def _iter_object_pages(self, name: str) -> Iterator[list[dict[str, str]]]:
        params: dict[str, Any] = {"Bucket": name}
        while True:
            response = invoke(
                self._client.list_objects_v2,
                error_message=f"Failed to list objects in bucket {name}",
                **params,
            )
            yield [{"Key": item["Key"]} for item in response.get("Contents", [])]
            if not response.get("IsTruncated"):
                return
            params["ContinuationToken"] = response["NextContinuationToken"]

    def _iter_version_pages(self, name: str) -> Iterator[list[dict[str, str]]]:
        params: dict[str, Any] = {"Bucket": name}
        while True:
            response = invoke(
                self._client.list_object_versions,
                error_message=f"Failed to list object versions in bucket {name}",
                **params,
            )
            entries = response.get("Versions", []) + response.get("DeleteMarkers", [])
            yield [{"Key": item["Key"], "VersionId": item["VersionId"]} for item in entries]
            if not response.get("IsTruncated"):
                return
            params["KeyMarker"] = response.get("NextKeyMarker")
            params["VersionIdMarker"] = response.get("NextVersionIdMarker")

    def _delete_batch(self, name: str, objects: list[dict[str, str]]) -> int:
        if not objects:
            return 0
        response = invoke(
            self._client.delete_objects,
            error_message=f"Failed to delete objects from bucket {name}",
            Bucket=name,
            Delete={"Objects": objects, "Quiet": True},
        )
        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            raise CloudCallError(
                f"Failed to delete {len(errors)} object(s) from bucket {name} "
                f"(first key={first.get('Key')!r}, code={first.get('Code')})",
                operation="delete_objects",
                code=first.get("Code"),
                category="fatal",
            )
        return len(objects)

    def empty_container(self, name: str) -> int:
        """Delete every object and every object version, page by page."""
        logger.info("Deleting all objects from bucket '%s'", name)
        deleted = sum(self._delete_batch(name, page) for page in self._iter_object_pages(name))
        logger.info("Deleting all object versions from bucket '%s'", name)
        deleted += sum(self._delete_batch(name, page) for page in self._iter_version_pages(name))
        logger.debug("Removed %s object(s) and version(s) from bucket '%s'", deleted, name)
        return deleted

    def put_object(self, container: str, path: str, data: bytes) -> None:
        invoke(
            self._client.put_object,
            error_message=f"Failed to write s3://{container}/{path}",
            Bucket=container,
            Key=path,
            Body=data,
            ContentType="application/json",
        )

    def get_object(self, container: str, path: str) -> Optional[bytes]:
        try:
            response = invoke(
                self._client.get_object,
                error_message=f"Failed to read s3://{container}/{path}",
                Bucket=container,
                Key=path,
            )
        except ResourceNotFoundException:
            return None
        # The streaming body holds a pooled connection until closed.
        with closing(response["Body"]) as body:
            return body.read()

    def delete_object(self, container: str, path: str) -> None:
        invoke(
            self._client.delete_object,
            error_message=f"Failed to delete s3://{container}/{path}",
            Bucket=container,
            Key=path,
        )

    def get_tags(self, container: str) -> dict[str, str]:
        try:
            response = invoke(
                self._client.get_bucket_tagging,
                error_message=f"Failed to read tags of bucket {container}",
                Bucket=container,
            )
        except ResourceNotFoundException as exc:
            if exc.code in ("NoSuchTagSet", "NoSuchTagSetError"):
                return {}
            raise
        return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}

    def set_tags(self, container: str, tags: dict[str, str]) -> None:
        logger.debug("Tagging bucket '%s' with keys %s", container, sorted(tags))
        invoke(
            self._client.put_bucket_tagging,
            error_message=f"Failed to tag bucket {container}",
            Bucket=container,
            Tagging={"TagSet": [{"Key": key, "Value": value} for key, value in tags.items()]},
        )
