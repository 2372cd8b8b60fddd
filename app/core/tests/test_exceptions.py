"""
Tests for the application exception hierarchy.
"""

from core.exceptions import BaseApplicationError, ConflictError, ExternalServiceError


class TestBaseApplicationError:
    def test_default_error_code(self):
        exc = BaseApplicationError("Something broke")

        assert exc.message == "Something broke"
        assert exc.error_code == "APPLICATION_ERROR"
        assert exc.details == {}

    def test_str_includes_code(self):
        exc = ConflictError(
            "Cannot cancel payment request in 'paid' status",
            error_code="INVALID_STATE_TRANSITION",
        )

        assert str(exc) == (
            "[INVALID_STATE_TRANSITION] Cannot cancel payment request in 'paid' status"
        )

    def test_details_kept(self):
        exc = ConflictError("Busy", details={"payment_request_id": "abc"})

        assert exc.details == {"payment_request_id": "abc"}

    def test_subclass_default_codes(self):
        assert ConflictError("x").error_code == "CONFLICT"
        assert ExternalServiceError("x").error_code == "EXTERNAL_SERVICE_ERROR"
