# =============================================================================
# BoxOffice - Door Validation Tests
# =============================================================================

import pytest
from datetime import timedelta
from unittest.mock import patch

from boxoffice.extensions import db
from boxoffice.models.order import OrderStatus
from boxoffice.models.scan import ScanType
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.services.scan_recorder import ScanRecorder
from boxoffice.services.scan_validation import (
    ScanValidator, ScanOutcome, ScanResult, coerce_scan_type, purchased_quantity,
)

from tests.conftest import make_order, make_guestlist, utc_today


def _record(order, tier, scan_type='entry'):
    return ScanRecorder.record_ticket_scan(
        order.id, tier.id, order.customer_email, order.event_id, scan_type,
        scanned_by='door@test.com'
    )


# =============================================================================
# ScanResult
# =============================================================================

class TestScanResult:

    def test_to_dict(self):
        result = ScanResult.deny(ScanOutcome.EXPIRED, 'Event has passed', event_date='2025-01-01')
        assert result.to_dict() == {
            'is_valid': False,
            'outcome': 'expired',
            'message': 'Event has passed',
            'details': {'event_date': '2025-01-01'},
        }

    def test_coerce_scan_type(self):
        assert coerce_scan_type('ENTRY') == ScanType.ENTRY
        assert coerce_scan_type(ScanType.EXIT) == ScanType.EXIT


# =============================================================================
# Ticket validation
# =============================================================================

class TestValidateTicket:
    """ScanValidator.validate_ticket outcomes."""

    def test_valid_ticket(self, completed_order, sample_tier, sample_event):
        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com'
        )

        assert result.is_valid
        assert result.outcome == ScanOutcome.ADMITTED
        assert result.message == 'Valid ticket - entry 1 of 2'
        assert result.details['event_title'] == 'Warehouse Rave'
        assert result.details['ticket_tier_name'] == 'General Admission'
        assert result.details['quantity'] == 2
        assert result.details['scan_count'] == 0

    def test_validation_does_not_record(self, completed_order, sample_tier):
        for _ in range(3):
            result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')
            assert result.is_valid

    def test_unknown_order(self, sample_tier):
        result = ScanValidator.validate_ticket('no-such-order', sample_tier.id, 'fan@example.com')

        assert not result.is_valid
        assert result.outcome == ScanOutcome.NOT_FOUND
        assert result.message == 'Order not found'

    def test_email_mismatch(self, completed_order, sample_tier):
        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'other@example.com')

        assert result.outcome == ScanOutcome.IDENTITY_MISMATCH
        assert result.message == 'Email does not match order'

    def test_email_compared_exactly(self, completed_order, sample_tier):
        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'FAN@example.com')
        assert result.outcome == ScanOutcome.IDENTITY_MISMATCH

    @pytest.mark.parametrize('status', [OrderStatus.REFUNDED, OrderStatus.PENDING, OrderStatus.FAILED])
    def test_order_not_completed(self, sample_event, sample_tier, status):
        order = make_order(sample_event, sample_tier, status=status)
        result = ScanValidator.validate_ticket(order.id, sample_tier.id, order.customer_email)

        assert result.outcome == ScanOutcome.STATUS_REJECTED
        assert result.message == f'Order is {status.value}'
        assert result.details['order_status'] == status.value

    def test_event_passed(self, past_event):
        tier = TicketTier(event_id=past_event.id, name='GA', price=1000, capacity=10)
        db.session.add(tier)
        db.session.commit()
        order = make_order(past_event, tier)

        result = ScanValidator.validate_ticket(order.id, tier.id, order.customer_email)
        assert result.outcome == ScanOutcome.EXPIRED
        assert result.message == 'Event has passed'

    def test_event_day_still_valid(self, completed_order, sample_tier, sample_event):
        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com', today=sample_event.date
        )
        assert result.is_valid

        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com',
            today=sample_event.date + timedelta(days=1)
        )
        assert result.outcome == ScanOutcome.EXPIRED

    def test_inactive_tier_refused(self, completed_order, sample_tier):
        """A tier switched off after sale is refused at the door."""
        sample_tier.is_active = False
        db.session.commit()

        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')
        assert not result.is_valid
        assert result.outcome == ScanOutcome.INACTIVE_INVENTORY
        assert 'no longer active' in result.message

    def test_tier_from_other_event(self, completed_order, past_event):
        tier = TicketTier(event_id=past_event.id, name='Other', price=500, capacity=5)
        db.session.add(tier)
        db.session.commit()

        result = ScanValidator.validate_ticket(completed_order.id, tier.id, 'fan@example.com')
        assert result.outcome == ScanOutcome.NOT_FOUND

    def test_missing_line_assumes_quantity_one(self, completed_order, sample_tier, free_tier):
        with patch('boxoffice.services.scan_validation.logger') as mock_logger:
            assert purchased_quantity(completed_order.id, free_tier.id) == 1
            mock_logger.warning.assert_called_once()

    def test_infrastructure_error(self, completed_order, sample_tier):
        with patch('boxoffice.services.scan_validation.count_ticket_scans',
                   side_effect=RuntimeError('db down')):
            result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')

        assert result.outcome == ScanOutcome.ERROR
        assert result.message == 'Failed to validate ticket'


# =============================================================================
# Entry / exit sequencing
# =============================================================================

class TestScanSequence:
    """Quantity caps on entry and exit scans."""

    def test_single_ticket_scan_round_trip(self, sample_event):
        tier = TicketTier(event_id=sample_event.id, name='GA', price=2000, capacity=50)
        db.session.add(tier)
        db.session.commit()
        order = make_order(sample_event, tier, quantity=1)

        first = ScanValidator.validate_ticket(order.id, tier.id, order.customer_email)
        assert first.is_valid
        assert _record(order, tier).is_valid

        second = ScanValidator.validate_ticket(order.id, tier.id, order.customer_email)
        assert not second.is_valid
        assert second.outcome == ScanOutcome.ALREADY_CONSUMED
        assert second.message == 'Ticket already scanned 1 time(s) (max quantity: 1)'

    def test_quantity_allows_multiple_entries(self, completed_order, sample_tier):
        _record(completed_order, sample_tier)

        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')
        assert result.is_valid
        assert result.message == 'Valid ticket - entry 2 of 2'

        _record(completed_order, sample_tier)
        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')
        assert result.outcome == ScanOutcome.ALREADY_CONSUMED

    def test_exit_without_entry(self, completed_order, sample_tier):
        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com', scan_type='exit'
        )
        assert result.outcome == ScanOutcome.INVALID_SEQUENCE
        assert result.message == 'Cannot exit without entry scan'

    def test_exit_after_entry(self, completed_order, sample_tier):
        _record(completed_order, sample_tier)

        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com', scan_type='exit'
        )
        assert result.is_valid

    def test_exits_capped_at_quantity(self, completed_order, sample_tier):
        _record(completed_order, sample_tier)
        _record(completed_order, sample_tier, 'exit')
        _record(completed_order, sample_tier, 'exit')

        result = ScanValidator.validate_ticket(
            completed_order.id, sample_tier.id, 'fan@example.com', scan_type='exit'
        )
        assert result.outcome == ScanOutcome.ALREADY_CONSUMED
        assert result.message == 'Ticket already exited 2 time(s)'

    def test_consumed_checked_before_order_lookup(self, completed_order, sample_tier):
        _record(completed_order, sample_tier)
        _record(completed_order, sample_tier)
        completed_order.status = OrderStatus.REFUNDED
        db.session.commit()

        result = ScanValidator.validate_ticket(completed_order.id, sample_tier.id, 'fan@example.com')
        assert result.outcome == ScanOutcome.ALREADY_CONSUMED


# =============================================================================
# Guestlist validation
# =============================================================================

class TestValidateGuestlist:
    """ScanValidator.validate_guestlist outcomes."""

    def test_valid_pass(self, sample_guestlist):
        result = ScanValidator.validate_guestlist(sample_guestlist.id)

        assert result.is_valid
        assert result.message == 'Valid guestlist - 3 of 3 remaining'
        assert result.details['lead_name'] == 'Sam Lead'
        assert result.details['category'] == 'GL'

    def test_unknown_pass(self, app):
        result = ScanValidator.validate_guestlist('guestlist_0_missing00')
        assert result.outcome == ScanOutcome.NOT_FOUND

    def test_exhausted_pass(self, sample_event):
        guestlist = make_guestlist(sample_event, total_tickets=2, remaining=0)

        result = ScanValidator.validate_guestlist(guestlist.id)
        assert result.outcome == ScanOutcome.ALREADY_CONSUMED
        assert result.message == 'All tickets on this guestlist have been used'

    def test_past_event(self, past_event):
        guestlist = make_guestlist(past_event)

        result = ScanValidator.validate_guestlist(guestlist.id)
        assert result.outcome == ScanOutcome.EXPIRED

    def test_exit_scan_type_is_accepted(self, sample_guestlist):
        assert ScanValidator.validate_guestlist(sample_guestlist.id, 'exit').is_valid

    def test_explicit_today(self, sample_guestlist):
        result = ScanValidator.validate_guestlist(sample_guestlist.id, today=utc_today())
        assert result.is_valid
