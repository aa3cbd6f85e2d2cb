"""
Unit tests for the quote lifecycle state machine.

WHY: Status controls what contractors and clients may do with a quote.
These tests check every (status, status) pair against the transition
table and the time-driven expiry rule.
"""

from datetime import datetime, timedelta
from itertools import product

import pytest

from quote_engine.core.exceptions import InvalidStateTransitionError
from quote_engine.models.quote import Quote, QuoteStatus
from quote_engine.services import lifecycle

NOW = datetime(2026, 3, 15, 12, 0, 0)

LEGAL = {
    (QuoteStatus.DRAFT, QuoteStatus.PENDING_REVIEW),
    (QuoteStatus.DRAFT, QuoteStatus.SENT),
    (QuoteStatus.DRAFT, QuoteStatus.EXPIRED),
    (QuoteStatus.PENDING_REVIEW, QuoteStatus.SENT),
    (QuoteStatus.PENDING_REVIEW, QuoteStatus.EXPIRED),
    (QuoteStatus.SENT, QuoteStatus.VIEWED),
    (QuoteStatus.SENT, QuoteStatus.ACCEPTED),
    (QuoteStatus.SENT, QuoteStatus.REJECTED),
    (QuoteStatus.SENT, QuoteStatus.EXPIRED),
    (QuoteStatus.VIEWED, QuoteStatus.ACCEPTED),
    (QuoteStatus.VIEWED, QuoteStatus.REJECTED),
    (QuoteStatus.VIEWED, QuoteStatus.EXPIRED),
}


def _quote(status: QuoteStatus, valid_until: datetime = NOW + timedelta(days=10)) -> Quote:
    return Quote(id=1, quote_number="QT2603-0001", status=status, valid_until=valid_until)


class TestTransitionTable:
    """The table itself."""

    def test_every_status_has_an_entry(self):
        assert set(lifecycle.ALLOWED_TRANSITIONS) == set(QuoteStatus)

    def test_terminal_states(self):
        assert lifecycle.TERMINAL_STATES == {
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
        }

    @pytest.mark.parametrize("current,target", list(product(QuoteStatus, QuoteStatus)))
    def test_full_grid(self, current, target):
        # Past validity so the expiry rule never masks the table
        quote = _quote(current, valid_until=NOW - timedelta(days=1))
        legal = (current, target) in LEGAL

        assert lifecycle.can_transition(current, target) is legal
        if legal:
            previous = lifecycle.transition(quote, target, NOW)
            assert previous == current
            assert quote.status == target
        else:
            with pytest.raises(InvalidStateTransitionError) as exc_info:
                lifecycle.transition(quote, target, NOW)
            assert quote.status == current
            assert exc_info.value.context["current_state"] == current.value
            assert exc_info.value.context["requested_state"] == target.value


class TestTransition:
    """Side effects of applying a transition."""

    def test_draft_cannot_be_accepted(self):
        quote = _quote(QuoteStatus.DRAFT)
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.transition(quote, QuoteStatus.ACCEPTED, NOW)
        assert quote.accepted_at is None

    @pytest.mark.parametrize(
        "current,target,field",
        [
            (QuoteStatus.DRAFT, QuoteStatus.PENDING_REVIEW, "submitted_at"),
            (QuoteStatus.DRAFT, QuoteStatus.SENT, "sent_at"),
            (QuoteStatus.SENT, QuoteStatus.VIEWED, "viewed_at"),
            (QuoteStatus.VIEWED, QuoteStatus.ACCEPTED, "accepted_at"),
            (QuoteStatus.VIEWED, QuoteStatus.REJECTED, "rejected_at"),
        ],
    )
    def test_stamps_timestamp(self, current, target, field):
        quote = _quote(current)
        lifecycle.transition(quote, target, NOW)
        assert getattr(quote, field) == NOW

    def test_reject_records_reason_and_notes(self):
        quote = _quote(QuoteStatus.SENT)
        lifecycle.transition(quote, QuoteStatus.REJECTED, NOW, reason="Too expensive", notes="Went local")

        assert quote.rejection_reason == "Too expensive"
        assert quote.decision_notes == "Went local"

    def test_expire_before_validity_is_rejected(self):
        quote = _quote(QuoteStatus.SENT, valid_until=NOW + timedelta(hours=1))
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.transition(quote, QuoteStatus.EXPIRED, NOW)
        assert quote.status == QuoteStatus.SENT


class TestLazyExpiry:
    """expire_if_due / effective_status."""

    def test_open_quote_past_validity_expires(self):
        quote = _quote(QuoteStatus.SENT, valid_until=NOW - timedelta(seconds=1))

        assert lifecycle.expire_if_due(quote, NOW) is True
        assert quote.status == QuoteStatus.EXPIRED
        assert quote.expired_at == NOW

    def test_valid_until_equal_to_now_is_not_expired(self):
        quote = _quote(QuoteStatus.SENT, valid_until=NOW)
        assert lifecycle.expire_if_due(quote, NOW) is False

    @pytest.mark.parametrize("status", [QuoteStatus.ACCEPTED, QuoteStatus.REJECTED])
    def test_terminal_quotes_never_expire(self, status):
        quote = _quote(status, valid_until=NOW - timedelta(days=5))

        assert lifecycle.expire_if_due(quote, NOW) is False
        assert quote.status == status

    def test_effective_status_does_not_mutate(self):
        quote = _quote(QuoteStatus.VIEWED, valid_until=NOW - timedelta(days=1))

        assert lifecycle.effective_status(quote, NOW) == QuoteStatus.EXPIRED
        assert quote.status == QuoteStatus.VIEWED
