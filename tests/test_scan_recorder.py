# =============================================================================
# BoxOffice - Scan Recording Tests
# =============================================================================

from unittest.mock import patch

from boxoffice.extensions import db
from boxoffice.models.guestlist import GuestlistPass
from boxoffice.models.scan import TicketScan, GuestlistScan, ScanType
from boxoffice.services.scan_recorder import ScanRecorder
from boxoffice.services.scan_validation import ScanOutcome

from tests.conftest import make_guestlist


def _remaining(guestlist_id):
    db.session.expire_all()
    return db.session.get(GuestlistPass, guestlist_id).remaining_scans


# =============================================================================
# Ticket scans
# =============================================================================

class TestRecordTicketScan:
    """Plain append of a ticket scan."""

    def test_record_appends_scan(self, completed_order, sample_tier):
        result = ScanRecorder.record_ticket_scan(
            completed_order.id, sample_tier.id, 'fan@example.com', completed_order.event_id,
            'entry', scanned_by='door@test.com', location='Main gate'
        )

        assert result.is_valid
        assert result.message == 'Scan recorded'
        scan = db.session.get(TicketScan, result.details['scan_id'])
        assert scan.scan_type == ScanType.ENTRY
        assert scan.scanned_by == 'door@test.com'
        assert scan.location == 'Main gate'

    def test_record_does_not_recheck_quantity(self, completed_order, sample_tier):
        for _ in range(4):
            ScanRecorder.record_ticket_scan(
                completed_order.id, sample_tier.id, 'fan@example.com', completed_order.event_id,
                'entry', scanned_by='door@test.com'
            )
        assert TicketScan.query.filter_by(order_id=completed_order.id).count() == 4

    def test_invalid_scan_type(self, completed_order, sample_tier):
        result = ScanRecorder.record_ticket_scan(
            completed_order.id, sample_tier.id, 'fan@example.com', completed_order.event_id,
            'sideways', scanned_by='door@test.com'
        )
        assert result.outcome == ScanOutcome.ERROR
        assert TicketScan.query.count() == 0


class TestAdmitTicket:
    """Validate and record in one transaction."""

    def test_admits_up_to_quantity(self, completed_order, sample_tier):
        first = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                          'entry', scanned_by='door@test.com')
        second = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                           'entry', scanned_by='door@test.com')
        third = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                          'entry', scanned_by='door@test.com')

        assert first.is_valid and second.is_valid
        assert 'scan_id' in first.details
        assert second.message == 'Valid ticket - entry 2 of 2'
        assert third.outcome == ScanOutcome.ALREADY_CONSUMED
        assert TicketScan.query.filter_by(order_id=completed_order.id).count() == 2

    def test_refused_scan_writes_nothing(self, completed_order, sample_tier):
        result = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'wrong@example.com',
                                           'entry', scanned_by='door@test.com')

        assert result.outcome == ScanOutcome.IDENTITY_MISMATCH
        assert TicketScan.query.count() == 0

    def test_exit_after_entry(self, completed_order, sample_tier):
        ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                  'entry', scanned_by='door@test.com')
        result = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                           'exit', scanned_by='door@test.com')

        assert result.is_valid
        assert TicketScan.query.filter_by(scan_type=ScanType.EXIT).count() == 1

    def test_error_returns_result(self, completed_order, sample_tier):
        with patch('boxoffice.services.scan_recorder.ScanValidator.check_ticket',
                   side_effect=RuntimeError('boom')):
            result = ScanRecorder.admit_ticket(completed_order.id, sample_tier.id, 'fan@example.com',
                                               'entry', scanned_by='door@test.com')

        assert result.outcome == ScanOutcome.ERROR
        assert TicketScan.query.count() == 0


# =============================================================================
# Guestlist scans
# =============================================================================

class TestGuestlistScans:
    """Guarded decrement of remaining_scans."""

    def test_record_decrements(self, sample_guestlist, sample_event):
        result = ScanRecorder.record_guestlist_scan(
            sample_guestlist.id, sample_event.id, 'entry', scanned_by='door@test.com'
        )

        assert result.is_valid
        assert result.message == 'Guest admitted - 2 of 3 remaining'
        assert _remaining(sample_guestlist.id) == 2
        assert GuestlistScan.query.filter_by(guestlist_id=sample_guestlist.id).count() == 1

    def test_pass_admits_exactly_total_tickets(self, sample_event):
        guestlist = make_guestlist(sample_event, total_tickets=3)

        results = [
            ScanRecorder.admit_guestlist(guestlist.id, 'entry', scanned_by='door@test.com')
            for _ in range(5)
        ]

        assert [r.is_valid for r in results] == [True, True, True, False, False]
        assert results[3].outcome == ScanOutcome.ALREADY_CONSUMED
        assert _remaining(guestlist.id) == 0
        assert GuestlistScan.query.filter_by(guestlist_id=guestlist.id).count() == 3

    def test_record_on_exhausted_pass_writes_nothing(self, sample_event):
        guestlist = make_guestlist(sample_event, total_tickets=1, remaining=0)

        result = ScanRecorder.record_guestlist_scan(
            guestlist.id, sample_event.id, 'entry', scanned_by='door@test.com'
        )

        assert result.outcome == ScanOutcome.ALREADY_CONSUMED
        assert _remaining(guestlist.id) == 0
        assert GuestlistScan.query.count() == 0

    def test_record_unknown_pass(self, sample_event):
        result = ScanRecorder.record_guestlist_scan(
            'guestlist_0_missing00', sample_event.id, 'entry', scanned_by='door@test.com'
        )
        assert result.outcome == ScanOutcome.NOT_FOUND

    def test_exit_scan_also_consumes(self, sample_guestlist):
        result = ScanRecorder.admit_guestlist(sample_guestlist.id, 'exit', scanned_by='door@test.com')

        assert result.is_valid
        assert result.details['remaining_scans'] == 2
        assert result.details['event_title'] == 'Warehouse Rave'

    def test_admit_past_event_refused(self, past_event):
        guestlist = make_guestlist(past_event)

        result = ScanRecorder.admit_guestlist(guestlist.id, 'entry', scanned_by='door@test.com')
        assert result.outcome == ScanOutcome.EXPIRED
        assert _remaining(guestlist.id) == 3
