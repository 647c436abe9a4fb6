"""
Tests for ServiceResult and BaseService.
"""

import pytest

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    """Tests for the ServiceResult wrapper."""

    def test_success_carries_data(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert result.error is None
        assert bool(result) is True

    def test_ok_is_alias_for_success(self):
        assert ServiceResult.ok(5) == ServiceResult.success(5)

    def test_failure_carries_code_and_optional_data(self):
        result = ServiceResult.failure("Pix key not verified", "PIX_KEY_NOT_VERIFIED", data="withdrawal")

        assert result.success is False
        assert bool(result) is False
        assert result.error_code == "PIX_KEY_NOT_VERIFIED"
        assert result.data == "withdrawal"

    def test_from_application_error_keeps_its_code(self):
        exc = NotFoundError("Withdrawal not found", error_code="WITHDRAWAL_NOT_FOUND")

        result = ServiceResult.from_exception(exc)

        assert result.error == "Withdrawal not found"
        assert result.error_code == "WITHDRAWAL_NOT_FOUND"

    def test_from_plain_exception_uses_class_name(self):
        result = ServiceResult.from_exception(KeyError("boom"))

        assert result.error_code == "KEYERROR"

    def test_from_exception_override_code(self):
        result = ServiceResult.from_exception(ValueError("bad"), error_code="CUSTOM")

        assert result.error_code == "CUSTOM"

    def test_to_response(self):
        assert ServiceResult.success(3).to_response() == {"success": True, "data": 3}
        assert ServiceResult.failure("nope", "NOPE", errors={"amount": ["required"]}).to_response() == {
            "success": False,
            "error": "nope",
            "error_code": "NOPE",
            "errors": {"amount": ["required"]},
        }

    def test_map_transforms_success_only(self):
        assert ServiceResult.success(2).map(lambda x: x * 10).data == 20

        failed = ServiceResult.failure("nope")
        assert failed.map(lambda x: x * 10) is failed


class TestBaseService:
    """Tests for BaseService helpers."""

    def test_logger_named_after_service(self):
        class SampleService(BaseService):
            pass

        assert SampleService.get_logger().name.endswith("test_service_result.SampleService")

    def test_atomic_rolls_back_on_error(self, db):
        from django.contrib.auth.models import Group

        with pytest.raises(RuntimeError):
            with BaseService.atomic():
                Group.objects.create(name="rolled-back")
                raise RuntimeError("abort")

        assert not Group.objects.filter(name="rolled-back").exists()
