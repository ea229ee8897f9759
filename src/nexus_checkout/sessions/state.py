"""Payment session lifecycle.

    pending_verification -> pending_payment -> paid_waiting_account -> paid

``canceled`` (purchase refused or canceled before payment) and ``expired``
(verification link unused past its TTL) only leave through a confirmed
payment. ``failed`` is terminal and only set by hand. Every write that
moves ``status`` is a conditional UPDATE whose WHERE clause lists the
allowed source states.
"""

from enum import Enum


class SessionStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    PENDING_PAYMENT = "pending_payment"
    PAID_WAITING_ACCOUNT = "paid_waiting_account"
    PAID = "paid"
    CANCELED = "canceled"
    FAILED = "failed"
    EXPIRED = "expired"


TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING_VERIFICATION: frozenset({
        SessionStatus.PENDING_PAYMENT,
        SessionStatus.PAID_WAITING_ACCOUNT,
        SessionStatus.CANCELED,
        SessionStatus.FAILED,
        SessionStatus.EXPIRED,
    }),
    SessionStatus.PENDING_PAYMENT: frozenset({
        SessionStatus.PAID_WAITING_ACCOUNT,
        SessionStatus.CANCELED,
        SessionStatus.FAILED,
        SessionStatus.EXPIRED,
    }),
    SessionStatus.PAID_WAITING_ACCOUNT: frozenset({SessionStatus.PAID}),
    SessionStatus.CANCELED: frozenset({SessionStatus.PAID_WAITING_ACCOUNT}),
    SessionStatus.PAID: frozenset(),
    SessionStatus.FAILED: frozenset(),
    SessionStatus.EXPIRED: frozenset({SessionStatus.PAID_WAITING_ACCOUNT}),
}

PAID_STATUSES: frozenset[SessionStatus] = frozenset({
    SessionStatus.PAID_WAITING_ACCOUNT,
    SessionStatus.PAID,
})


def can_transition(current: str, target: str) -> bool:
    try:
        return SessionStatus(target) in TRANSITIONS[SessionStatus(current)]
    except ValueError:
        return False


def sources_for(target: SessionStatus) -> list[str]:
    """States from which ``target`` may be entered, as stored strings."""
    return sorted(src.value for src, dests in TRANSITIONS.items() if target in dests)


def is_paid(status: str) -> bool:
    return status in {s.value for s in PAID_STATUSES}
