"""
Tests for core/exceptions.py - error kinds and the service_operation wrapper.
"""

from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    AppError, BadRequestError, InternalServerError, NotFoundError, service_operation,
)


class FakeService:
    def __init__(self):
        self.db = MagicMock()

    @service_operation("Error doing work")
    def succeed(self, value):
        return value * 2

    @service_operation("Error doing work")
    def fail_with(self, error):
        raise error


class TestErrorKinds:

    @pytest.mark.parametrize("error_cls,status_code", [
        (BadRequestError, 400),
        (NotFoundError, 404),
        (InternalServerError, 500),
    ])
    def test_http_mapping(self, error_cls, status_code):
        http_exc = error_cls("Something happened").to_http_exception()

        assert http_exc.status_code == status_code
        assert http_exc.detail == "Something happened"

    def test_message_is_kept(self):
        error = NotFoundError("Brand not found")

        assert error.message == "Brand not found"
        assert str(error) == "Brand not found"
        assert isinstance(error, AppError)


class TestServiceOperation:

    def test_passes_return_value_through(self):
        service = FakeService()

        assert service.succeed(21) == 42
        service.db.rollback.assert_not_called()

    def test_domain_errors_propagate_unchanged(self):
        service = FakeService()
        error = BadRequestError("Cannot change status from pending to completed")

        with pytest.raises(BadRequestError) as exc_info:
            service.fail_with(error)

        assert exc_info.value is error
        service.db.rollback.assert_called_once()

    def test_unexpected_errors_are_wrapped(self, caplog):
        service = FakeService()

        with pytest.raises(InternalServerError) as exc_info:
            service.fail_with(ValueError("boom"))

        assert exc_info.value.message == "Error doing work"
        assert isinstance(exc_info.value.__cause__, ValueError)
        service.db.rollback.assert_called_once()
        assert "Error doing work: boom" in caplog.text

    def test_wrapper_keeps_method_name(self):
        assert FakeService.succeed.__name__ == "succeed"
