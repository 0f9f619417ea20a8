"""
Payout state machine.

    pending -> approved -> processing -> completed
    pending | approved | processing -> failed
    pending | approved -> cancelled

completed, failed and cancelled are terminal.
"""

from .exceptions import InvalidStateTransition

PENDING = "pending"
APPROVED = "approved"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

ALLOWED = {
    PENDING: {APPROVED, FAILED, CANCELLED},
    APPROVED: {PROCESSING, FAILED, CANCELLED},
    PROCESSING: {COMPLETED, FAILED},
    COMPLETED: set(),
    FAILED: set(),
    CANCELLED: set(),
}

TERMINAL = frozenset(status for status, targets in ALLOWED.items() if not targets)

# Statuses whose amount is still reserved in TotalPendingWithdrawal
RESERVED = frozenset({PENDING, APPROVED, PROCESSING})


def can_transition(current, target):
    return target in ALLOWED.get(current, set())


def assert_transition(current, target):
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)


def is_terminal(status):
    return status in TERMINAL
