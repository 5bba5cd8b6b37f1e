from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ServiceResponse(BaseModel, Generic[T]):
    """Outcome of a store call: ``data`` on success, ``error`` on failure.

    ``data=None, error=None`` is a valid success (e.g. a user with no metrics yet).
    """

    data: Optional[T] = None
    error: Optional[Any] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "ServiceResponse[T]":
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, error: Any) -> "ServiceResponse[T]":
        return cls(data=None, error=error)
