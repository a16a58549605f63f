"""
Typed errors raised by the ledger core.

Every business failure is a BankingError subclass with a stable
code, so the collaborator layer can translate it without parsing
messages. InvalidStateTransition sits outside the hierarchy: it
signals a bug, and nothing in the core catches it.
"""


class BankingError(Exception):
    """Root of all recoverable banking errors."""

    code = "BANKING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- Not found ---

class NotFound(BankingError):
    code = "NOT_FOUND"


class AccountNotFound(NotFound):
    code = "ACCOUNT_NOT_FOUND"


class TransactionNotFound(NotFound):
    code = "TRANSACTION_NOT_FOUND"


class CustomerNotFound(NotFound):
    code = "CUSTOMER_NOT_FOUND"


# --- Caller errors ---

class InvalidInput(BankingError, ValueError):
    code = "INVALID_INPUT"


class InvalidAmount(InvalidInput):
    code = "INVALID_AMOUNT"


class InvalidTransfer(InvalidInput):
    code = "INVALID_TRANSFER"


class InvalidScheduleDate(InvalidInput):
    code = "INVALID_SCHEDULE_DATE"


class UnsupportedScheduledType(InvalidInput):
    code = "UNSUPPORTED_SCHEDULED_TYPE"


# --- Business rules and preconditions ---

class InsufficientFunds(BankingError):
    code = "INSUFFICIENT_FUNDS"


class AccountNotActive(BankingError):
    code = "ACCOUNT_NOT_ACTIVE"


class CustomerNotActive(BankingError):
    code = "CUSTOMER_NOT_ACTIVE"


class InvalidAccountState(BankingError):
    code = "INVALID_ACCOUNT_STATE"


class NonZeroBalance(InvalidAccountState):
    code = "NON_ZERO_BALANCE"


class InvalidReversalState(BankingError):
    code = "INVALID_REVERSAL_STATE"


class PermissionDenied(BankingError):
    code = "PERMISSION_DENIED"


# --- Infrastructure ---

class ConcurrentModification(BankingError):
    """Optimistic version check failed; the whole operation may be retried."""

    code = "CONCURRENT_MODIFICATION"


class StorageFailure(BankingError):
    code = "STORAGE_FAILURE"


class InvalidStateTransition(RuntimeError):
    """A transaction was asked to move along an edge the state machine forbids."""
