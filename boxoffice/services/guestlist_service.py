"""
Guestlist pass management.
"""
import logging
from typing import Optional, Dict, Any

from boxoffice.extensions import db
from boxoffice.models.event import Event
from boxoffice.models.guestlist import GuestlistPass, GuestlistCategory, generate_guestlist_id
from boxoffice.services.exceptions import (
    EventNotFound, GuestlistNotFound, InvalidInput, NotificationFailed,
)
from boxoffice.utils.email import send_guestlist_pass

logger = logging.getLogger(__name__)


class GuestlistService:
    """Service for creating and managing guestlist passes."""

    @staticmethod
    def create_guestlist(event_id: int, lead_name: str, lead_email: str, total_tickets: int,
                         lead_phone: Optional[str] = None, category='GL',
                         notes: Optional[str] = None, created_by: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a pass and email its QR code to the lead guest.

        An email failure is logged and reported but does not undo the pass.

        Returns:
            Dict with guestlist and email_sent
        """
        if db.session.get(Event, event_id) is None:
            raise EventNotFound(f"Event {event_id} not found")
        if not lead_name or not lead_email:
            raise InvalidInput("Lead name and email are required")
        if total_tickets is None or int(total_tickets) < 1:
            raise InvalidInput("A guestlist needs at least one ticket")

        total_tickets = int(total_tickets)
        guestlist_id = generate_guestlist_id()
        guestlist = GuestlistPass(
            id=guestlist_id,
            event_id=event_id,
            lead_name=lead_name,
            lead_email=lead_email,
            lead_phone=lead_phone,
            total_tickets=total_tickets,
            remaining_scans=total_tickets,
            category=category if isinstance(category, GuestlistCategory) else GuestlistCategory(category),
            notes=notes,
            created_by=created_by,
            qr_code_data=GuestlistPass.build_qr_payload(
                guestlist_id, event_id, total_tickets, lead_email, lead_name
            ),
        )
        db.session.add(guestlist)
        db.session.commit()
        logger.info('Guestlist %s created for event %s (%s tickets)',
                    guestlist.id, event_id, total_tickets)

        email_sent = send_guestlist_pass(guestlist)
        if not email_sent:
            logger.error('Guestlist email not sent for %s', guestlist.id)

        return {'guestlist': guestlist, 'email_sent': email_sent}

    @staticmethod
    def guestlist_query(event_id: Optional[int] = None):
        """Query for passes of an event (or all events), newest first."""
        query = GuestlistPass.query
        if event_id is not None:
            query = query.filter_by(event_id=event_id)
        return query.order_by(GuestlistPass.created_at.desc())

    @staticmethod
    def get_guestlist(guestlist_id: str) -> GuestlistPass:
        guestlist = db.session.get(GuestlistPass, guestlist_id)
        if guestlist is None:
            raise GuestlistNotFound(f"Guestlist {guestlist_id} not found")
        return guestlist

    @staticmethod
    def delete_guestlist(guestlist_id: str) -> None:
        """Delete a pass together with its scan history."""
        guestlist = GuestlistService.get_guestlist(guestlist_id)
        db.session.delete(guestlist)
        db.session.commit()
        logger.info('Guestlist %s deleted', guestlist_id)

    @staticmethod
    def resend_qr(guestlist_id: str) -> GuestlistPass:
        """
        Email the pass QR code again.

        Raises:
            GuestlistNotFound: unknown pass
            NotificationFailed: email could not be sent
        """
        guestlist = GuestlistService.get_guestlist(guestlist_id)
        if not send_guestlist_pass(guestlist):
            raise NotificationFailed("Failed to send guestlist email")
        logger.info('Guestlist QR resent for %s', guestlist_id)
        return guestlist
