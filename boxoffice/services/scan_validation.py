"""
Door validation for tickets and guestlist passes.

Validation is read-only and never raises: every branch returns a ScanResult
whose message is shown to the door operator as is. Infrastructure failures
are logged and turned into an ERROR result.
"""
import enum
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import func

from boxoffice.extensions import db
from boxoffice.models.event import Event
from boxoffice.models.guestlist import GuestlistPass
from boxoffice.models.order import Order, OrderTicket, OrderStatus
from boxoffice.models.scan import TicketScan, ScanType
from boxoffice.models.ticket_tier import TicketTier

logger = logging.getLogger(__name__)


class ScanOutcome(str, enum.Enum):
    """Why a scan was admitted or refused."""
    ADMITTED = 'admitted'
    NOT_FOUND = 'not_found'
    IDENTITY_MISMATCH = 'identity_mismatch'
    ALREADY_CONSUMED = 'already_consumed'
    INVALID_SEQUENCE = 'invalid_sequence'
    STATUS_REJECTED = 'status_rejected'
    EXPIRED = 'expired'
    INACTIVE_INVENTORY = 'inactive_inventory'
    ERROR = 'error'


@dataclass
class ScanResult:
    """Outcome of a validation or recording attempt."""
    is_valid: bool
    outcome: ScanOutcome
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def admit(cls, message: str, **details) -> 'ScanResult':
        return cls(True, ScanOutcome.ADMITTED, message, details)

    @classmethod
    def deny(cls, outcome: ScanOutcome, message: str, **details) -> 'ScanResult':
        return cls(False, outcome, message, details)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['outcome'] = self.outcome.value
        return data


def coerce_scan_type(scan_type) -> ScanType:
    if isinstance(scan_type, ScanType):
        return scan_type
    return ScanType(str(scan_type).lower())


def count_ticket_scans(order_id: str, ticket_tier_id: int, scan_type: ScanType) -> int:
    """Number of recorded scans of one direction for an order line."""
    return db.session.query(func.count(TicketScan.id)).filter(
        TicketScan.order_id == order_id,
        TicketScan.ticket_tier_id == ticket_tier_id,
        TicketScan.scan_type == scan_type,
    ).scalar() or 0


def purchased_quantity(order_id: str, ticket_tier_id: int) -> int:
    """Quantity bought for (order, tier).

    Falls back to 1 when no line item matches, so a ticket whose line was
    lost can still be admitted once.
    """
    line = OrderTicket.query.filter_by(order_id=order_id, ticket_tier_id=ticket_tier_id).first()
    if line is None:
        logger.warning(
            'No order line for order %s tier %s, assuming quantity 1',
            order_id, ticket_tier_id
        )
        return 1
    return line.quantity


class ScanValidator:
    """Admission checks for the door scanner."""

    @staticmethod
    def validate_ticket(order_id: str, ticket_tier_id: int, customer_email: str,
                        scan_type='entry', today=None) -> ScanResult:
        """
        Decide whether a ticket may be admitted (or let out).

        Args:
            order_id: Order id from the QR code
            ticket_tier_id: Tier id from the QR code
            customer_email: Email from the QR code, compared exactly
            scan_type: 'entry' or 'exit'
            today: Date to compare the event against (defaults to UTC today)

        Returns:
            ScanResult, never raises
        """
        try:
            return ScanValidator.check_ticket(
                order_id, ticket_tier_id, customer_email,
                coerce_scan_type(scan_type), today or datetime.utcnow().date()
            )
        except Exception:
            logger.exception('Ticket validation failed for order %s', order_id)
            return ScanResult.deny(ScanOutcome.ERROR, 'Failed to validate ticket')

    @staticmethod
    def check_ticket(order_id, ticket_tier_id, customer_email, scan_type, today) -> ScanResult:
        """Run the ticket checks in the current transaction. May raise."""
        quantity = purchased_quantity(order_id, ticket_tier_id)
        entries = count_ticket_scans(order_id, ticket_tier_id, ScanType.ENTRY)

        if scan_type == ScanType.ENTRY:
            if entries >= quantity:
                logger.info('Entry refused for order %s: %s/%s scans used', order_id, entries, quantity)
                return ScanResult.deny(
                    ScanOutcome.ALREADY_CONSUMED,
                    f'Ticket already scanned {entries} time(s) (max quantity: {quantity})',
                    scan_count=entries, quantity=quantity,
                )
        else:
            if entries == 0:
                return ScanResult.deny(ScanOutcome.INVALID_SEQUENCE, 'Cannot exit without entry scan')
            exits = count_ticket_scans(order_id, ticket_tier_id, ScanType.EXIT)
            if exits >= quantity:
                return ScanResult.deny(
                    ScanOutcome.ALREADY_CONSUMED,
                    f'Ticket already exited {exits} time(s)',
                    scan_count=exits, quantity=quantity,
                )

        order = Order.query.filter_by(id=order_id, customer_email=customer_email).first()
        if order is None:
            # Diagnostic lookup only, never admits
            exists = db.session.get(Order, order_id) is not None
            if exists:
                logger.info('Email mismatch for order %s', order_id)
                return ScanResult.deny(ScanOutcome.IDENTITY_MISMATCH, 'Email does not match order')
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Order not found')

        if order.status != OrderStatus.COMPLETED:
            return ScanResult.deny(
                ScanOutcome.STATUS_REJECTED,
                f'Order is {order.status.value}',
                order_status=order.status.value,
            )

        event = db.session.get(Event, order.event_id)
        if event is None:
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Event not found')
        if event.has_passed(today):
            return ScanResult.deny(
                ScanOutcome.EXPIRED, 'Event has passed',
                event_date=event.date.isoformat(),
            )

        tier = db.session.get(TicketTier, ticket_tier_id)
        if tier is None:
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Ticket tier not found')
        if tier.event_id != order.event_id:
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Ticket tier does not belong to this event')
        if not tier.is_active:
            return ScanResult.deny(
                ScanOutcome.INACTIVE_INVENTORY,
                f'Ticket tier "{tier.name}" is no longer active',
            )

        if scan_type == ScanType.ENTRY:
            message = f'Valid ticket - entry {entries + 1} of {quantity}'
        else:
            message = 'Valid ticket - exit recorded'
        return ScanResult.admit(
            message,
            order_id=order.id,
            event_id=event.id,
            event_title=event.title,
            event_date=event.date.isoformat(),
            ticket_tier_id=tier.id,
            ticket_tier_name=tier.name,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            order_status=order.status.value,
            quantity=quantity,
            scan_count=entries,
        )

    @staticmethod
    def validate_guestlist(guestlist_id: str, scan_type='entry', today=None) -> ScanResult:
        """
        Decide whether a guestlist pass still admits someone.

        Any scan type consumes one admission, so scan_type only reaches the log.
        """
        try:
            return ScanValidator._check_guestlist(guestlist_id, today or datetime.utcnow().date())
        except Exception:
            logger.exception('Guestlist validation failed for %s', guestlist_id)
            return ScanResult.deny(ScanOutcome.ERROR, 'Failed to validate guestlist')

    @staticmethod
    def _check_guestlist(guestlist_id, today) -> ScanResult:
        guestlist = db.session.get(GuestlistPass, guestlist_id)
        if guestlist is None:
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Guestlist not found')

        if guestlist.remaining_scans <= 0:
            return ScanResult.deny(
                ScanOutcome.ALREADY_CONSUMED,
                'All tickets on this guestlist have been used',
                remaining_scans=0, total_tickets=guestlist.total_tickets,
            )

        event = db.session.get(Event, guestlist.event_id)
        if event is None:
            return ScanResult.deny(ScanOutcome.NOT_FOUND, 'Event not found')
        if event.has_passed(today):
            return ScanResult.deny(
                ScanOutcome.EXPIRED, 'Event has passed',
                event_date=event.date.isoformat(),
            )

        return ScanResult.admit(
            f'Valid guestlist - {guestlist.remaining_scans} of {guestlist.total_tickets} remaining',
            guestlist_id=guestlist.id,
            event_id=event.id,
            event_title=event.title,
            event_date=event.date.isoformat(),
            lead_name=guestlist.lead_name,
            lead_email=guestlist.lead_email,
            category=guestlist.category.value,
            remaining_scans=guestlist.remaining_scans,
            total_tickets=guestlist.total_tickets,
        )
