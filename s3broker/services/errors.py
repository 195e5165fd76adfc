from __future__ import annotations

from typing import Literal

ErrorCategory = Literal["retryable", "fatal"]


class BrokerException(Exception):
    retryable = False


class UnsupportedPlanException(BrokerException):
    pass


class InvalidNameException(BrokerException):
    pass


class NotFoundException(BrokerException):
    pass


class InstanceNotFoundException(NotFoundException):
    pass


class BindingNotFoundException(NotFoundException):
    pass


class ConflictException(BrokerException):
    pass


class SerializationException(BrokerException):
    pass


class PolicyTemplateMissingException(BrokerException):
    pass


class UnsupportedAlgorithmException(BrokerException):
    pass


class InstanceListingUnsupported(BrokerException):
    """Raised by plans whose instances cannot be enumerated from cloud state."""


class CloudCallError(BrokerException):
    def __init__(
        self,
        message: str,
        *,
        operation: str,
        code: str | None,
        category: ErrorCategory,
    ) -> None:
        self.operation = operation
        self.code = code
        self.category = category
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.category == "retryable"


class ResourceNotFoundException(CloudCallError):
    pass


class ResourceExistsException(CloudCallError, ConflictException):
    pass


class DownstreamUnavailableException(CloudCallError):
    pass


class DownstreamTimeoutException(DownstreamUnavailableException):
    pass
