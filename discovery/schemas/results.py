"""Operation result envelope returned at the service boundary."""

from typing import Any

from pydantic import BaseModel

from discovery.core.exceptions import DiscoveryError


class ErrorDetail(BaseModel):
    code: str
    message: str


class OperationResult(BaseModel):
    success: bool
    data: Any = None
    error: ErrorDetail | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: DiscoveryError) -> "OperationResult":
        return cls(success=False, error=ErrorDetail(code=exc.code.value, message=exc.message))
