from __future__ import annotations

import logging
from typing import Any, Callable

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from s3broker.services.errors import (
    CloudCallError,
    DownstreamTimeoutException,
    DownstreamUnavailableException,
    ErrorCategory,
    ResourceExistsException,
    ResourceNotFoundException,
)
from s3broker.settings import BrokerSettings

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset(
    {
        "404",
        "NotFound",
        "NoSuchBucket",
        "NoSuchKey",
        "NoSuchVersion",
        "NoSuchEntity",
        "NoSuchTagSet",
        "NoSuchTagSetError",
    }
)
ALREADY_EXISTS_CODES = frozenset(
    {
        "EntityAlreadyExists",
        "BucketAlreadyExists",
        "BucketAlreadyOwnedByYou",
    }
)
_RETRYABLE_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "SlowDown",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "InternalError",
        "InternalFailure",
        "ServiceFailure",
        "OperationAborted",
    }
)
_MAX_DETAIL_LEN = 400


def build_client(service_name: str, settings: BrokerSettings) -> Any:
    """Create a boto3 client with the configured per-call deadlines."""
    config = Config(
        connect_timeout=settings.connect_timeout_seconds,
        read_timeout=settings.read_timeout_seconds,
    )
    kwargs: dict[str, Any] = {"region_name": settings.region_name, "config": config}
    if service_name == "s3" and settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
    return boto3.client(service_name, **kwargs)


def classify_client_error(*, code: str | None, status: int | None) -> ErrorCategory:
    if code in _RETRYABLE_CODES:
        return "retryable"
    if status is not None and (status >= 500 or status == 429):
        return "retryable"
    return "fatal"


def _truncate(detail: str) -> str:
    detail = detail.strip()
    if len(detail) > _MAX_DETAIL_LEN:
        return f"{detail[:_MAX_DETAIL_LEN - 3]}..."
    return detail


def translate_error(exc: Exception, *, operation: str, error_message: str) -> CloudCallError:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        detail = _truncate(error.get("Message") or str(exc))
        message = f"{error_message} (operation={operation}, code={code}, detail={detail!r})"
        if code in NOT_FOUND_CODES:
            return ResourceNotFoundException(message, operation=operation, code=code, category="fatal")
        if code in ALREADY_EXISTS_CODES:
            return ResourceExistsException(message, operation=operation, code=code, category="fatal")
        category = classify_client_error(code=code, status=status)
        if category == "retryable":
            return DownstreamUnavailableException(message, operation=operation, code=code, category=category)
        return CloudCallError(message, operation=operation, code=code, category=category)

    detail = _truncate(str(exc))
    message = f"{error_message} (operation={operation}, detail={detail!r})"
    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return DownstreamTimeoutException(message, operation=operation, code=None, category="retryable")
    if isinstance(exc, EndpointConnectionError):
        return DownstreamUnavailableException(message, operation=operation, code=None, category="retryable")
    return CloudCallError(message, operation=operation, code=None, category="fatal")


def invoke(method: Callable[..., Any], *, error_message: str, **params: Any) -> Any:
    """Call one SDK client method, translating botocore failures to typed errors."""
    operation = getattr(method, "__name__", repr(method))
    try:
        return method(**params)
    except (ClientError, BotoCoreError) as exc:
        error = translate_error(exc, operation=operation, error_message=error_message)
        logger.debug("Cloud call failed: %s", error)
        raise error from exc
