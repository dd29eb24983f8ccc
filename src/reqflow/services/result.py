"""ServiceResult and ServiceError — the contract every service returns.

INVARIANT: All service-layer methods return ServiceResult.
The CLI and any future adapter consume this type; none of them sees a
domain exception.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from reqflow.domain.errors import ErrorInfo


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_info(cls, info: ErrorInfo) -> ServiceError:
        """Lift an engine ``ErrorInfo`` into the service contract unchanged."""
        return cls(code=info.code, message=info.message, detail=dict(info.detail))


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"transition"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: str,
        message: str,
        **detail: Any,
    ) -> ServiceResult:
        return cls(ok=False, op=op, error=ServiceError(code=code, message=message, detail=detail))
