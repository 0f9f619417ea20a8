"""
Exceptions raised by dj_settlements.

Every exception carries a stable ``code`` that callers (HTTP layers, task
runners) can map to a response without parsing the message.
"""


class SettlementException(Exception):
    """Base class for all settlement errors."""

    code = "settlement_error"
    default_message = "Settlement operation failed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class ValidationError(SettlementException):
    """Request rejected before any mutation (bad amount, missing bank details...)."""

    code = "validation_error"
    default_message = "Invalid settlement request."


class AmountInvalid(ValidationError):
    code = "invalid_amount"
    default_message = "Amount must be a positive number."


class InsufficientBalance(SettlementException):
    code = "insufficient_balance"
    default_message = "Insufficient available balance."


class InvalidStateTransition(SettlementException):
    code = "invalid_state_transition"
    default_message = "Settlement cannot move to the requested state."

    def __init__(self, current=None, target=None, message=None):
        self.current = current
        self.target = target
        if message is None and current is not None and target is not None:
            message = f"Illegal settlement transition: {current} -> {target}"
        super().__init__(message)


class ConcurrencyConflict(SettlementException):
    """A transaction lost a serialization race; the caller may retry."""

    code = "concurrency_conflict"
    default_message = "Concurrent update detected."


class TransientFailure(SettlementException):
    """Raised once the retry budget for concurrency conflicts is exhausted."""

    code = "transient_failure"
    default_message = "The operation could not be completed, please retry."


class NotFound(SettlementException):
    code = "not_found"
    default_message = "Resource not found."


class Unauthorized(SettlementException):
    code = "unauthorized"
    default_message = "You are not allowed to perform this operation."


class InternalError(SettlementException):
    """Storage failure mapped to a generic message; details stay in the server log."""

    code = "internal_error"
    default_message = "Internal error."
