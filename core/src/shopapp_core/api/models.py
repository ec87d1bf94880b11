from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel


class ApiError(BaseModel):
    code: str
    message: str
    details: Any | None = None


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    ok: bool
    data: T | None = None
    error: ApiError | None = None


def fail(*, code: str, message: str, details: Any | None = None) -> ApiResponse[None]:
    return ApiResponse(ok=False, error=ApiError(code=code, message=message, details=details))


class ProductCreateResult(BaseModel):
    success: bool
    error: str | None = None
