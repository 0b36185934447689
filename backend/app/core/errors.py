"""Error kinds and result values returned by the billing services.

Services report expected failures (bad input, unknown references, provider
rejections, usage limits) as a ``Result`` carrying a ``ServiceError`` instead
of raising, so callers decide whether to retry or propagate. Provider adapters
raise ``ProviderError``; services convert it at their boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PROVIDER = "provider"
    LIMIT_REACHED = "limit_reached"
    DELIVERY = "delivery"


# Provider code for a referenced object the provider does not have
MISSING_RESOURCE_CODE = "resource_missing"


class ProviderError(Exception):
    """Raised by a payment provider adapter when the provider rejects or fails a call."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str
    code: str | None = None

    @classmethod
    def from_provider(cls, exc: ProviderError) -> "ServiceError":
        kind = ErrorKind.NOT_FOUND if exc.code == MISSING_RESOURCE_CODE else ErrorKind.PROVIDER
        return cls(kind=kind, message=exc.message, code=exc.code)


@dataclass
class Result(Generic[T]):
    """Outcome of a service operation: either a value or a ServiceError."""

    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(
        cls, kind: ErrorKind, message: str, code: str | None = None
    ) -> "Result[T]":
        return cls(error=ServiceError(kind=kind, message=message, code=code))

    @classmethod
    def provider_failure(cls, exc: ProviderError) -> "Result[T]":
        return cls(error=ServiceError.from_provider(exc))
