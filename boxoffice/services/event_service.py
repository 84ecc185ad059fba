"""
Event and ticket tier management.

Public event reads go through Flask-Caching; every mutation that changes
what a customer would see (event fields, tiers, sold counts) drops the
cached entries for that event and the listing.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

from boxoffice.extensions import db, cache
from boxoffice.models.event import Event
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.services.exceptions import EventNotFound, TierNotFound, EventNotArchived

logger = logging.getLogger(__name__)

EVENT_LIST_CACHE_KEY = 'events:list'
EVENT_FIELDS = ('title', 'date', 'time', 'venue', 'description', 'image', 'tags', 'booking_url')
TIER_FIELDS = (
    'name', 'description', 'benefits', 'price', 'original_price', 'capacity',
    'is_active', 'available_from', 'available_until', 'sort_order',
)


def event_cache_key(event_id) -> str:
    return f'events:{event_id}'


def invalidate_event_cache(event_id=None) -> None:
    """Drop the cached listing and, if given, one event's detail entry."""
    keys = [EVENT_LIST_CACHE_KEY]
    if event_id is not None:
        keys.append(event_cache_key(event_id))
    cache.delete_many(*keys)


class EventService:
    """Service for events and their ticket tiers."""

    @staticmethod
    def list_public_events() -> List[Dict[str, Any]]:
        """Upcoming, non-archived events with their tiers (cached)."""
        cached = cache.get(EVENT_LIST_CACHE_KEY)
        if cached is not None:
            return cached

        today = datetime.utcnow().date()
        events = Event.query.filter(
            Event.is_archived.is_(False),
            Event.date >= today
        ).order_by(Event.date.asc()).all()
        payload = [event.to_dict() for event in events]
        cache.set(EVENT_LIST_CACHE_KEY, payload)
        return payload

    @staticmethod
    def get_public_event(event_id: int) -> Dict[str, Any]:
        """One event with its tiers (cached).

        Raises:
            EventNotFound: no such event, or it is archived
        """
        key = event_cache_key(event_id)
        cached = cache.get(key)
        if cached is not None:
            return cached

        event = db.session.get(Event, event_id)
        if event is None or event.is_archived:
            raise EventNotFound(f"Event {event_id} not found")
        payload = event.to_dict()
        cache.set(key, payload)
        return payload

    @staticmethod
    def get_event(event_id: int) -> Event:
        event = db.session.get(Event, event_id)
        if event is None:
            raise EventNotFound(f"Event {event_id} not found")
        return event

    @staticmethod
    def create_event(data: Dict[str, Any], tiers: Optional[List[Dict[str, Any]]] = None) -> Event:
        """
        Create an event, optionally with its initial tiers.

        Args:
            data: Event fields (title and date required)
            tiers: Optional list of tier field dicts

        Returns:
            Created Event
        """
        event = Event(**{k: v for k, v in data.items() if k in EVENT_FIELDS})
        for index, tier_data in enumerate(tiers or []):
            tier_fields = {k: v for k, v in tier_data.items() if k in TIER_FIELDS}
            tier_fields.setdefault('sort_order', index)
            event.ticket_tiers.append(TicketTier(**tier_fields))

        db.session.add(event)
        db.session.commit()
        invalidate_event_cache(event.id)
        logger.info('Event created: %s (%s tiers)', event.id, len(event.ticket_tiers))
        return event

    @staticmethod
    def update_event(event_id: int, data: Dict[str, Any]) -> Event:
        event = EventService.get_event(event_id)
        for field in EVENT_FIELDS:
            if field in data:
                setattr(event, field, data[field])
        db.session.commit()
        invalidate_event_cache(event.id)
        return event

    @staticmethod
    def set_archived(event_id: int, archived: bool = True) -> Event:
        event = EventService.get_event(event_id)
        event.is_archived = archived
        db.session.commit()
        invalidate_event_cache(event.id)
        logger.info('Event %s archived=%s', event.id, archived)
        return event

    @staticmethod
    def delete_event(event_id: int) -> None:
        """
        Delete an archived event and its tiers.

        Raises:
            EventNotFound: no such event
            EventNotArchived: the event must be archived first
        """
        event = EventService.get_event(event_id)
        if not event.is_archived:
            raise EventNotArchived("Archive the event before deleting it")

        db.session.delete(event)
        db.session.commit()
        invalidate_event_cache(event_id)
        logger.info('Event deleted: %s', event_id)

    @staticmethod
    def add_tier(event_id: int, data: Dict[str, Any]) -> TicketTier:
        event = EventService.get_event(event_id)
        fields = {k: v for k, v in data.items() if k in TIER_FIELDS}
        fields.setdefault('sort_order', len(event.ticket_tiers))
        tier = TicketTier(event_id=event.id, **fields)
        db.session.add(tier)
        db.session.commit()
        invalidate_event_cache(event.id)
        return tier

    @staticmethod
    def update_tier(tier_id: int, data: Dict[str, Any]) -> TicketTier:
        """Update tier fields. sold_count is owned by the inventory ledger."""
        tier = db.session.get(TicketTier, tier_id)
        if tier is None:
            raise TierNotFound(f"Ticket tier {tier_id} not found")
        for field in TIER_FIELDS:
            if field in data:
                setattr(tier, field, data[field])
        db.session.commit()
        invalidate_event_cache(tier.event_id)
        return tier
