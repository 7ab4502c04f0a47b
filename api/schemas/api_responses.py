from __future__ import annotations

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ApiError(BaseModel):
    """Error payload; `details` names the offending query parameter when there is one."""

    code: str = Field(default="error")
    message: str
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")


class ApiMeta(BaseModel):
    """Response metadata.

    `row_count` is the number of rows in the reporting table the response was
    computed from (not the number returned after `limit`).
    """

    row_count: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


class ApiResponse(BaseModel, Generic[T]):
    ok: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None
    meta: ApiMeta = Field(default_factory=ApiMeta)

    model_config = ConfigDict(extra="ignore")


def ok(data: T = None, *, row_count: Optional[int] = None) -> Dict[str, Any]:
    """Success envelope as a JSON-ready dict."""

    payload = ApiResponse[T](ok=True, data=data, meta=ApiMeta(row_count=row_count))
    return payload.model_dump(mode="json")


def fail(message: str, *, code: str = "error", **details: Any) -> Dict[str, Any]:
    """Error envelope as a JSON-ready dict; keyword arguments become `error.details`."""

    payload = ApiResponse[None](
        ok=False,
        error=ApiError(code=code, message=message, details=details or None),
    )
    return payload.model_dump(mode="json")


def bad_param(param: str, value: Any, message: str) -> Dict[str, Any]:
    return fail(message, code="bad_request", param=param, value=value)
