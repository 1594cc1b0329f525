"""
Error taxonomy unit tests
"""

import pytest

from escrowmail.core.errors import (
    ConfigurationError,
    CustodyError,
    ErrorSeverity,
    EscrowMailError,
    InvalidStateError,
    MissingWalletError,
    NotFoundError,
    Result,
    UnauthorizedError,
    ValidationError,
)


class TestErrorSeverity:
    def test_severity_values(self):
        assert ErrorSeverity.WARNING.value == "warning"
        assert ErrorSeverity.ERROR.value == "error"
        assert ErrorSeverity.CRITICAL.value == "critical"


class TestEscrowMailError:
    def test_error_str(self):
        err = EscrowMailError(message="Test error", code="TEST")
        assert "[TEST] Test error" in str(err)

    def test_error_with_context(self):
        err = EscrowMailError(message="Failed", context={"key": "value"})
        assert err.context == {"key": "value"}
        assert err.severity == ErrorSeverity.ERROR

    @pytest.mark.parametrize(
        "cls, code",
        [
            (NotFoundError, "NOT_FOUND"),
            (InvalidStateError, "INVALID_STATE"),
            (UnauthorizedError, "UNAUTHORIZED"),
            (MissingWalletError, "MISSING_WALLET"),
            (CustodyError, "CUSTODY_FAILURE"),
            (ConfigurationError, "CONFIGURATION"),
            (ValidationError, "VALIDATION_ERROR"),
        ],
    )
    def test_subclass_codes(self, cls, code):
        err = cls(message="boom")
        assert err.code == code
        assert isinstance(err, EscrowMailError)
        assert str(err) == f"[{code}] boom"

    def test_severities(self):
        assert ConfigurationError(message="x").severity == ErrorSeverity.CRITICAL
        assert ValidationError(message="x").severity == ErrorSeverity.WARNING

    def test_invalid_state_carries_status(self):
        err = InvalidStateError(message="Transfer is already claimed", status="claimed")
        assert err.status == "claimed"

    def test_can_be_raised_and_caught(self):
        with pytest.raises(EscrowMailError):
            raise NotFoundError(message="missing")


class TestResult:
    def test_ok_result(self):
        assert Result.ok(42).is_ok()

    def test_err_result(self):
        assert not Result.err(CustodyError(message="ledger down")).is_ok()
