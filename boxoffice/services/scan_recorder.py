"""
Scan recording for the door.

record_ticket_scan / record_guestlist_scan are the plain "record after
validate" steps. admit_ticket / admit_guestlist validate and record inside
one transaction so two devices scanning the same code cannot both admit it.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update

from boxoffice.extensions import db
from boxoffice.models.guestlist import GuestlistPass
from boxoffice.models.order import Order
from boxoffice.models.scan import TicketScan, GuestlistScan, ScanType
from boxoffice.services.scan_validation import (
    ScanValidator, ScanResult, ScanOutcome, coerce_scan_type,
)

logger = logging.getLogger(__name__)


def _add_ticket_scan(order_id, ticket_tier_id, customer_email, event_id, scan_type,
                     scanned_by, location, notes) -> TicketScan:
    scan = TicketScan(
        order_id=order_id,
        ticket_tier_id=ticket_tier_id,
        customer_email=customer_email,
        event_id=event_id,
        scan_type=scan_type,
        scanned_at=datetime.utcnow(),
        scanned_by=scanned_by,
        location=location,
        notes=notes,
    )
    db.session.add(scan)
    return scan


def _decrement_guestlist(guestlist_id) -> bool:
    """Guarded decrement. False when the pass is missing or exhausted."""
    result = db.session.execute(
        update(GuestlistPass)
        .where(GuestlistPass.id == guestlist_id, GuestlistPass.remaining_scans > 0)
        .values(remaining_scans=GuestlistPass.remaining_scans - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class ScanRecorder:
    """Append-only scan logging."""

    @staticmethod
    def record_ticket_scan(order_id: str, ticket_tier_id: int, customer_email: str,
                           event_id: int, scan_type, scanned_by: str,
                           location: Optional[str] = None,
                           notes: Optional[str] = None) -> ScanResult:
        """Append a ticket scan. Quantity is not re-checked here."""
        try:
            scan_type = coerce_scan_type(scan_type)
            scan = _add_ticket_scan(order_id, ticket_tier_id, customer_email, event_id,
                                    scan_type, scanned_by, location, notes)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception('Failed to record ticket scan for order %s', order_id)
            return ScanResult.deny(ScanOutcome.ERROR, 'Failed to record scan')

        logger.info('Ticket %s scan recorded for order %s by %s',
                    scan_type.value, order_id, scanned_by)
        return ScanResult.admit('Scan recorded', scan_id=scan.id,
                                scanned_at=scan.scanned_at.isoformat())

    @staticmethod
    def record_guestlist_scan(guestlist_id: str, event_id: int, scan_type, scanned_by: str,
                              location: Optional[str] = None,
                              notes: Optional[str] = None) -> ScanResult:
        """
        Consume one admission from a pass and log the scan.

        Nothing is written when no admission is left.
        """
        try:
            scan_type = coerce_scan_type(scan_type)
            if not _decrement_guestlist(guestlist_id):
                db.session.rollback()
                if db.session.get(GuestlistPass, guestlist_id) is None:
                    return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Guestlist not found')
                return ScanResult.deny(
                    ScanOutcome.ALREADY_CONSUMED,
                    'All tickets on this guestlist have been used'
                )

            db.session.add(GuestlistScan(
                guestlist_id=guestlist_id,
                event_id=event_id,
                scan_type=scan_type,
                scanned_at=datetime.utcnow(),
                scanned_by=scanned_by,
                location=location,
                notes=notes,
            ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception('Failed to record guestlist scan for %s', guestlist_id)
            return ScanResult.deny(ScanOutcome.ERROR, 'Failed to record scan')

        guestlist = db.session.get(GuestlistPass, guestlist_id)
        db.session.refresh(guestlist)
        logger.info('Guestlist %s scanned by %s (%s left)',
                    guestlist_id, scanned_by, guestlist.remaining_scans)
        return ScanResult.admit(
            f'Guest admitted - {guestlist.remaining_scans} of {guestlist.total_tickets} remaining',
            guestlist_id=guestlist_id,
            remaining_scans=guestlist.remaining_scans,
            total_tickets=guestlist.total_tickets,
        )

    @staticmethod
    def admit_ticket(order_id: str, ticket_tier_id: int, customer_email: str, scan_type,
                     scanned_by: str, location: Optional[str] = None,
                     notes: Optional[str] = None, today=None) -> ScanResult:
        """
        Validate and record a ticket scan in one transaction.

        The order row is locked (SELECT ... FOR UPDATE) before scans are
        counted, so concurrent scans of the same order are serialized.
        """
        try:
            scan_type = coerce_scan_type(scan_type)
            db.session.query(Order).filter(Order.id == order_id).with_for_update().first()

            result = ScanValidator.check_ticket(
                order_id, ticket_tier_id, customer_email, scan_type,
                today or datetime.utcnow().date()
            )
            if not result.is_valid:
                db.session.rollback()
                return result

            scan = _add_ticket_scan(order_id, ticket_tier_id, customer_email,
                                    result.details['event_id'], scan_type,
                                    scanned_by, location, notes)
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception('Ticket admission failed for order %s', order_id)
            return ScanResult.deny(ScanOutcome.ERROR, 'Failed to validate ticket')

        result.details['scan_id'] = scan.id
        logger.info('Ticket %s admitted for order %s by %s',
                    scan_type.value, order_id, scanned_by)
        return result

    @staticmethod
    def admit_guestlist(guestlist_id: str, scan_type, scanned_by: str,
                        location: Optional[str] = None, notes: Optional[str] = None,
                        today=None) -> ScanResult:
        """Validate a pass, then consume one admission with the guarded decrement."""
        result = ScanValidator.validate_guestlist(guestlist_id, scan_type, today=today)
        if not result.is_valid:
            return result

        recorded = ScanRecorder.record_guestlist_scan(
            guestlist_id, result.details['event_id'], scan_type, scanned_by,
            location=location, notes=notes,
        )
        if not recorded.is_valid:
            return recorded

        details = dict(result.details)
        details.update(recorded.details)
        return ScanResult.admit(recorded.message, **details)
