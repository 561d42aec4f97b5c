"""Uniform result envelope returned by every booking service operation."""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from inspection_booking.errors import BookingError

T = TypeVar("T")


class ServiceResult(BaseModel, Generic[T]):
    """``{success, data?, error?}`` shape handed to the UI layer."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: bool = False
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T] = None, message: Optional[str] = None) -> "ServiceResult[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, exc: BookingError, data: Optional[T] = None) -> "ServiceResult[T]":
        return cls(
            success=False,
            data=data,
            error=exc.message,
            error_code=exc.code,
            retryable=exc.retryable,
        )
