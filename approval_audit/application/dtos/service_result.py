"""Uniform result shape returned by every service boundary operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ServiceError:
    """Stable error code plus a human-readable message."""

    code: str
    message: str


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """``{success, data | error}``: exactly one of data or error is meaningful."""

    success: bool
    data: T | None = None
    error: ServiceError | None = None

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str) -> ServiceResult[T]:
        return cls(success=False, error=ServiceError(code=code, message=message))

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        assert self.error is not None
        return {
            "success": False,
            "error": {"code": self.error.code, "message": self.error.message},
        }
