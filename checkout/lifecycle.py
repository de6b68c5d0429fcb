"""
Payment status lifecycle.

Statuses are reported by the buyer's client after it observes its own
on-chain transfer; the server records them but never verifies settlement.
Happy path::

    pending -> processing -> submitted -> confirmed | complete

``failed`` is reachable from any non-terminal state. Updates are applied
last-write-wins, so a late ``processing`` can overwrite ``complete``; such
regressions are logged, not rejected.
"""
from django.db import models


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PROCESSING = 'processing', 'Processing'
    SUBMITTED = 'submitted', 'Submitted'
    CONFIRMED = 'confirmed', 'Confirmed'
    COMPLETE = 'complete', 'Complete'
    FAILED = 'failed', 'Failed'

    @classmethod
    def stamps_confirmation(cls, status: str) -> bool:
        return status in (cls.CONFIRMED, cls.COMPLETE)


TERMINAL_STATUSES = frozenset({
    PaymentStatus.CONFIRMED,
    PaymentStatus.COMPLETE,
    PaymentStatus.FAILED,
})

# Forward position of each non-failed status; confirmed and complete are synonyms.
_RANK = {
    PaymentStatus.PENDING: 0,
    PaymentStatus.PROCESSING: 1,
    PaymentStatus.SUBMITTED: 2,
    PaymentStatus.CONFIRMED: 3,
    PaymentStatus.COMPLETE: 3,
}


def is_valid_status(value) -> bool:
    return value in PaymentStatus.values


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_regression(current: str, new: str) -> bool:
    """
    Return True when moving from ``current`` to ``new`` goes backwards.

    Leaving a terminal state is always a regression, except for the
    confirmed/complete synonyms. Entering ``failed`` from a non-terminal
    state never is.
    """
    if current == new:
        return False
    if new == PaymentStatus.FAILED:
        return is_terminal(current)
    if current == PaymentStatus.FAILED:
        return True
    return _RANK[new] < _RANK[current]
