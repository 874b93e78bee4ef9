"""Errors raised by the ledger engine.

Every error is recoverable by the caller; the HTTP layer turns them into
``{"error": ..., "code": ...}`` responses using ``status_code``.
"""


class LedgerError(Exception):
    """Base ledger error"""
    code = "ledger_error"
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(LedgerError):
    """Invalid request"""
    code = "validation_error"


class InvalidAmountError(LedgerError):
    """Amount must be a positive number"""
    code = "invalid_amount"


class InsufficientFundsError(LedgerError):
    """Insufficient balance"""
    code = "insufficient_funds"


class BelowMinimumError(LedgerError):
    """Amount is below the configured minimum"""
    code = "below_minimum"


class UnknownPlanError(LedgerError):
    """Unknown investment plan"""
    code = "unknown_plan"


class NotFoundError(LedgerError):
    """Record not found"""
    code = "not_found"
    status_code = 404


class InvalidStateError(LedgerError):
    """Transition not allowed from the current status"""
    code = "invalid_state"
    status_code = 409


class ForbiddenError(LedgerError):
    """Staff privileges required"""
    code = "forbidden"
    status_code = 403
