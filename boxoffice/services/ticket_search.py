"""
Ticket lookup for door staff: find an order by id, email or name and see
how far each ticket got through the door.
"""
from typing import Optional, List, Dict, Any

from sqlalchemy import or_

from boxoffice.models.event import Event
from boxoffice.models.order import Order, OrderTicket
from boxoffice.models.scan import TicketScan, ScanType
from boxoffice.models.ticket_tier import TicketTier

MAX_RESULTS = 50


def _escape_like(value: str) -> str:
    """Treat % and _ in a search as literal characters."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def scan_status(scans: List[TicketScan]) -> str:
    """not_scanned, scanned_in, scanned_out or scanned_both."""
    has_entry = any(s.scan_type == ScanType.ENTRY for s in scans)
    has_exit = any(s.scan_type == ScanType.EXIT for s in scans)
    if has_entry and has_exit:
        return 'scanned_both'
    if has_entry:
        return 'scanned_in'
    if has_exit:
        return 'scanned_out'
    return 'not_scanned'


def search_tickets(query: str, event_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """One result per order line matching the query."""
    query = (query or '').strip()
    if not query:
        return []

    pattern = '%' + _escape_like(query) + '%'
    rows = Order.query.join(OrderTicket, OrderTicket.order_id == Order.id).join(
        Event, Event.id == Order.event_id
    ).join(TicketTier, TicketTier.id == OrderTicket.ticket_tier_id).filter(
        or_(
            Order.id.ilike(pattern, escape='\\'),
            Order.customer_email.ilike(pattern, escape='\\'),
            Order.customer_name.ilike(pattern, escape='\\'),
        )
    ).with_entities(Order, OrderTicket, Event, TicketTier)

    if event_id is not None:
        rows = rows.filter(Order.event_id == event_id)

    rows = rows.order_by(Order.created_at.desc()).limit(MAX_RESULTS).all()

    results = []
    for order, line, event, tier in rows:
        scans = TicketScan.query.filter_by(
            order_id=order.id, ticket_tier_id=line.ticket_tier_id
        ).order_by(TicketScan.scanned_at.asc()).all()
        results.append({
            'order_id': order.id,
            'customer_name': order.customer_name,
            'customer_email': order.customer_email,
            'event_id': event.id,
            'event_title': event.title,
            'event_date': event.date.isoformat(),
            'event_venue': event.venue,
            'ticket_tier_id': tier.id,
            'ticket_tier_name': tier.name,
            'quantity': line.quantity,
            'total_price': line.total_price,
            'order_status': order.status.value,
            'created_at': order.created_at.isoformat() if order.created_at else None,
            'scans': [scan.to_dict() for scan in scans],
            'scan_status': scan_status(scans),
            'last_scan_time': scans[-1].scanned_at.isoformat() if scans else None,
        })
    return results
