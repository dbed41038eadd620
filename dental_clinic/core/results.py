"""Explicit success/failure values returned by the scheduling services."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from dental_clinic.core.exceptions import AppException

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """Either a value or the error that prevented producing it."""

    value: T | None = None
    error: AppException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: AppException) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """
        Return the value or raise the carried error.

        Routers call this so the registered exception handlers render the
        failure; services never raise for expected failure paths.
        """
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
