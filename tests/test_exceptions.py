"""Unit tests for exceptions module."""

import pytest

from omniledger.core.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    BalanceConflictError,
    ConfigurationError,
    InconsistentStateError,
    InsufficientFundsError,
    InvalidAmountError,
    OmniLedgerError,
    StorageError,
    TransientConflictError,
    ValidationError,
)


class TestOmniLedgerError:
    """Tests for base exception."""

    def test_basic_error(self) -> None:
        error = OmniLedgerError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details == {}

    def test_error_with_details(self) -> None:
        error = OmniLedgerError("Store failed", details={"collection": "accounts"})

        assert "Store failed" in str(error)
        assert "Details:" in str(error)
        assert error.details["collection"] == "accounts"

    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("bad config"),
            StorageError("bad document"),
            InvalidAmountError("bad amount", amount=0),
            AccountNotFoundError("missing", account_id=1),
            InsufficientFundsError("low", current_balance=1, required_amount=2),
            BalanceConflictError("raced"),
            TransientConflictError("busy", attempts=5),
            AccessDeniedError(),
            InconsistentStateError("gap", kind="deposit", account_ids=(1, 1), amount=5),
        ],
    )
    def test_is_catchable_as_base_type(self, error) -> None:
        with pytest.raises(OmniLedgerError):
            raise error


class TestInvalidAmountError:
    def test_is_validation_error(self) -> None:
        error = InvalidAmountError("Amount must be positive", amount=-3)

        assert isinstance(error, ValidationError)
        assert error.amount == -3


class TestInsufficientFundsError:
    def test_shortfall(self) -> None:
        error = InsufficientFundsError(
            "Insufficient funds",
            current_balance=150,
            required_amount=200,
            account_id=1,
        )

        assert error.shortfall == 50
        assert error.account_id == 1
        assert "Balance: 150" in str(error)
        assert "Required: 200" in str(error)
        assert "Shortfall: 50" in str(error)


class TestAccessDeniedError:
    def test_default_message_is_the_same_for_every_cause(self) -> None:
        assert str(AccessDeniedError()) == "access denied"


class TestInconsistentStateError:
    def test_carries_reconciliation_data(self) -> None:
        error = InconsistentStateError(
            "Balances committed but the transaction could not be recorded",
            kind="transfer",
            account_ids=(1, 2),
            amount=100,
        )

        assert error.kind == "transfer"
        assert error.account_ids == (1, 2)
        assert error.amount == 100
        assert not isinstance(error, TransientConflictError)
