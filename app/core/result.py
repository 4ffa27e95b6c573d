"""Tagged result type and its single conversion point to the wire format.

Services return ``Ok(value)`` or ``Err(kind, detail)`` instead of building
``{success, data, error}`` dictionaries inline. Routes call
``to_response`` exactly once per request.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.core.config import get_settings
from app.core.exceptions import ERROR_STATUS_CODES, AssessmentPlatformError, ErrorKind, StoreError

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_DETAIL = "The backing store could not complete the request"

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome with a stable error kind."""

    kind: ErrorKind
    detail: str = ""
    troubleshooting: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_exception(
        cls,
        exc: AssessmentPlatformError,
        troubleshooting: list[str] | None = None,
    ) -> "Err":
        return cls(kind=exc.kind, detail=exc.message, troubleshooting=troubleshooting or [])

    @classmethod
    def from_store_error(cls, error: StoreError, troubleshooting: list[str] | None = None) -> "Err":
        """StoreUnavailable with the driver message logged, shown on the wire only in debug."""
        logger.error(f"Backing store failure: {error.kind.value}: {error.message}")
        detail = error.message if get_settings().debug else STORE_UNAVAILABLE_DETAIL
        return cls(ErrorKind.STORE_UNAVAILABLE, detail, list(troubleshooting or []))


Result = Ok[T] | Err


def _encode(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_encode(v) for v in value]
    return value


def to_response(result: "Ok[Any] | Err", success_status: int = 200) -> JSONResponse:
    """Convert a service result into the JSON envelope the API returns."""
    if isinstance(result, Ok):
        body: dict[str, Any] = {"success": True, "data": _encode(result.value)}
        body.update({k: _encode(v) for k, v in result.extra.items()})
        return JSONResponse(status_code=success_status, content=body)

    body = {
        "success": False,
        "error": result.kind.value,
        "detail": result.detail,
    }
    if result.troubleshooting:
        body["troubleshooting"] = result.troubleshooting
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(result.kind, 500),
        content=body,
    )
