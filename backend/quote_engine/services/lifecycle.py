"""
Quote lifecycle state machine.

WHAT: The legal status transitions of a quote and the code that applies
them.

WHY: Status drives what a contractor and a client may do with a quote
(edit, send, accept). Every status change goes through transition() so no
caller can move a quote into a state the business does not allow.

HOW:
- ALLOWED_TRANSITIONS maps every QuoteStatus to the statuses it may move to;
  an import-time check fails loudly if a status is missing
- transition() validates first, then mutates status and the matching
  timestamp, so a rejected transition leaves the quote untouched
- Expiry is time-driven: any non-terminal quote may move to EXPIRED once
  now > valid_until; expire_if_due() applies it lazily on read paths and the
  periodic sweep applies it in bulk
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from quote_engine.core.exceptions import InvalidStateTransitionError
from quote_engine.models.base import utcnow
from quote_engine.models.quote import Quote, QuoteStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[QuoteStatus, FrozenSet[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset(
        {QuoteStatus.PENDING_REVIEW, QuoteStatus.SENT, QuoteStatus.EXPIRED}
    ),
    QuoteStatus.PENDING_REVIEW: frozenset({QuoteStatus.SENT, QuoteStatus.EXPIRED}),
    QuoteStatus.SENT: frozenset(
        {QuoteStatus.VIEWED, QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED}
    ),
    QuoteStatus.VIEWED: frozenset(
        {QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED}
    ),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
}

TERMINAL_STATES: FrozenSet[QuoteStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

OPEN_STATES: FrozenSet[QuoteStatus] = frozenset(QuoteStatus) - TERMINAL_STATES

_missing = set(QuoteStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"Quote transition table is missing statuses: {sorted(s.value for s in _missing)}")

# Timestamp column stamped when a quote enters each status
_TIMESTAMP_FIELDS: Dict[QuoteStatus, str] = {
    QuoteStatus.PENDING_REVIEW: "submitted_at",
    QuoteStatus.SENT: "sent_at",
    QuoteStatus.VIEWED: "viewed_at",
    QuoteStatus.ACCEPTED: "accepted_at",
    QuoteStatus.REJECTED: "rejected_at",
    QuoteStatus.EXPIRED: "expired_at",
}


def can_transition(current: QuoteStatus, target: QuoteStatus) -> bool:
    """True if the table allows current -> target (ignores the expiry time rule)."""
    return QuoteStatus(target) in ALLOWED_TRANSITIONS[QuoteStatus(current)]


def assert_transition(
    quote: Quote,
    target: QuoteStatus,
    now: Optional[datetime] = None,
) -> None:
    """
    Validate a transition without applying it.

    Raises:
        InvalidStateTransitionError: If the move is not allowed
    """
    current = QuoteStatus(quote.status)
    target = QuoteStatus(target)

    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move quote from {current.value} to {target.value}",
            quote_id=quote.id,
            current_state=current.value,
            requested_state=target.value,
        )

    if target == QuoteStatus.EXPIRED and not quote.is_past_validity(now):
        raise InvalidStateTransitionError(
            "Quote cannot expire before its validity date",
            quote_id=quote.id,
            current_state=current.value,
            requested_state=target.value,
            valid_until=quote.valid_until.isoformat(),
        )


def transition(
    quote: Quote,
    target: QuoteStatus,
    now: Optional[datetime] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> QuoteStatus:
    """
    Apply a status transition.

    Args:
        quote: Quote to move
        target: Requested status
        now: Clock reading (defaults to utcnow)
        reason: Rejection reason (REJECTED only)
        notes: Client decision notes (ACCEPTED/REJECTED)

    Returns:
        The previous status

    Raises:
        InvalidStateTransitionError: If the move is not allowed
    """
    now = now or utcnow()
    target = QuoteStatus(target)
    assert_transition(quote, target, now)

    previous = QuoteStatus(quote.status)
    quote.status = target
    setattr(quote, _TIMESTAMP_FIELDS[target], now)

    if target == QuoteStatus.REJECTED:
        quote.rejection_reason = reason
    if target in (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED) and notes is not None:
        quote.decision_notes = notes

    logger.info(f"Quote {quote.quote_number} moved {previous.value} -> {target.value}")
    return previous


def is_due_for_expiry(quote: Quote, now: Optional[datetime] = None) -> bool:
    """True if the quote is open and past its validity date."""
    return QuoteStatus(quote.status) in OPEN_STATES and quote.is_past_validity(now)


def expire_if_due(quote: Quote, now: Optional[datetime] = None) -> bool:
    """
    Lazily expire a quote on access.

    Returns:
        True if the quote was moved to EXPIRED
    """
    now = now or utcnow()
    if not is_due_for_expiry(quote, now):
        return False
    transition(quote, QuoteStatus.EXPIRED, now)
    return True


def effective_status(quote: Quote, now: Optional[datetime] = None) -> QuoteStatus:
    """Status the quote has after lazy expiry, without modifying it."""
    if is_due_for_expiry(quote, now):
        return QuoteStatus.EXPIRED
    return QuoteStatus(quote.status)
