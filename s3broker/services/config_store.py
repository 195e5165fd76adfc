from __future__ import annotations

import json
import logging
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from s3broker.models import ServiceInstanceConfig, SharedCredentials
from s3broker.services.errors import SerializationException
from s3broker.services.ports import ObjectStore

logger = logging.getLogger(__name__)

CONFIG_DIR = "config"
CREDENTIALS_FILENAME = "shared_credentials"
SHARED_CREDENTIALS_PATH = f"{CONFIG_DIR}/{CREDENTIALS_FILENAME}"

ModelT = TypeVar("ModelT", bound=BaseModel)


def instance_config_path(instance_id: str) -> str:
    return f"{CONFIG_DIR}/{instance_id}"


def encode_document(document: BaseModel) -> bytes:
    return json.dumps(document.model_dump(by_alias=True)).encode("utf-8")


def decode_document(data: bytes, model: type[ModelT], *, location: str) -> ModelT:
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SerializationException(f"Invalid JSON document at {location}: {exc}") from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise SerializationException(
            f"Document at {location} does not match {model.__name__}: {exc.error_count()} error(s)"
        ) from exc


class ObjectStoreConfigStore:
    """JSON documents kept in the shared bucket, standing in for database rows."""

    def __init__(self, *, object_store: ObjectStore, bucket: str) -> None:
        self._object_store = object_store
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def _location(self, path: str) -> str:
        return f"s3://{self._bucket}/{path}"

    def read(self, path: str, model: type[ModelT]) -> Optional[ModelT]:
        data = self._object_store.get_object(self._bucket, path)
        if data is None:
            logger.debug("Config document not found: %s", self._location(path))
            return None
        return decode_document(data, model, location=self._location(path))

    def write(self, path: str, document: BaseModel) -> None:
        logger.info("Writing config document: %s", self._location(path))
        self._object_store.put_object(self._bucket, path, encode_document(document))

    def delete(self, path: str) -> None:
        logger.info("Deleting config document: %s", self._location(path))
        self._object_store.delete_object(self._bucket, path)

    def exists(self, path: str) -> bool:
        return self._object_store.get_object(self._bucket, path) is not None

    def load_instance_config(self, instance_id: str) -> Optional[ServiceInstanceConfig]:
        return self.read(instance_config_path(instance_id), ServiceInstanceConfig)

    def save_instance_config(self, instance_id: str, config: ServiceInstanceConfig) -> None:
        self.write(instance_config_path(instance_id), config)

    def delete_instance_config(self, instance_id: str) -> None:
        self.delete(instance_config_path(instance_id))

    def instance_config_exists(self, instance_id: str) -> bool:
        return self.exists(instance_config_path(instance_id))

    def load_shared_credentials(self) -> Optional[SharedCredentials]:
        return self.read(SHARED_CREDENTIALS_PATH, SharedCredentials)

    def save_shared_credentials(self, credentials: SharedCredentials) -> None:
        self.write(SHARED_CREDENTIALS_PATH, credentials)
