"""Tests for the ServiceResult contract."""

from __future__ import annotations

import pydantic
import pytest

from reqflow.domain.errors import ErrorInfo
from reqflow.services.result import ServiceError, ServiceResult


class TestServiceResult:
    def test_success_defaults(self) -> None:
        result = ServiceResult(ok=True, op="get_requisition", data={"id": "REQ-0001"})
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_failure_helper(self) -> None:
        result = ServiceResult.failure("transition", "CONFLICT", "stale", expected_version=3)
        assert not result.ok
        assert result.op == "transition"
        assert result.error == ServiceError(
            code="CONFLICT", message="stale", detail={"expected_version": 3}
        )
        assert result.data == {}

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="x")
        with pytest.raises(pydantic.ValidationError):
            result.ok = False  # type: ignore[misc]

    def test_json_dump(self) -> None:
        result = ServiceResult.failure("history", "NOT_FOUND", "missing")
        dumped = result.model_dump(mode="json")
        assert dumped["error"]["code"] == "NOT_FOUND"


class TestServiceError:
    def test_from_info_copies_fields(self) -> None:
        info = ErrorInfo(code="MISSING_REQUIREMENT", message="needs batch", detail={"r": "b"})
        err = ServiceError.from_info(info)
        assert err.code == "MISSING_REQUIREMENT"
        assert err.message == "needs batch"
        assert err.detail == {"r": "b"}
