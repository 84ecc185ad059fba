"""
SQLAlchemy models for BoxOffice.
All models are imported here for easy access.
"""
from boxoffice.models.user import User, AccessLevel, ACCESS_LEVEL_LABELS, ACCESS_HIERARCHY
from boxoffice.models.event import Event
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.models.order import Order, OrderTicket, OrderStatus, CustomerGender
from boxoffice.models.scan import TicketScan, GuestlistScan, ScanType
from boxoffice.models.guestlist import GuestlistPass, GuestlistCategory, generate_guestlist_id
from boxoffice.models.affiliate import (
    AffiliateSociety,
    AffiliateLink,
    AffiliateClick,
    AffiliateConversion,
)
from boxoffice.models.waitlist import WaitlistSignup

__all__ = [
    'User', 'AccessLevel', 'ACCESS_LEVEL_LABELS', 'ACCESS_HIERARCHY',
    'Event',
    'TicketTier',
    'Order', 'OrderTicket', 'OrderStatus', 'CustomerGender',
    'TicketScan', 'GuestlistScan', 'ScanType',
    'GuestlistPass', 'GuestlistCategory', 'generate_guestlist_id',
    'AffiliateSociety', 'AffiliateLink', 'AffiliateClick', 'AffiliateConversion',
    'WaitlistSignup',
]
