"""
Event model: a dated show with its ticket tiers.
"""
from datetime import datetime

from boxoffice.extensions import db


class Event(db.Model):
    """A ticketed event."""

    __tablename__ = 'events'

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(200), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(20))  # Free text, e.g. "22:00 - 03:00"
    venue = db.Column(db.String(200))
    description = db.Column(db.Text)
    image = db.Column(db.String(500))
    tags = db.Column(db.JSON, default=list)
    booking_url = db.Column(db.String(500))

    is_archived = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    ticket_tiers = db.relationship(
        'TicketTier',
        back_populates='event',
        cascade='all, delete-orphan',
        order_by='TicketTier.sort_order'
    )

    def __repr__(self):
        return f'<Event {self.title} ({self.date})>'

    def has_passed(self, today=None):
        """True once the event's calendar date is strictly before today."""
        today = today or datetime.utcnow().date()
        return self.date < today

    @property
    def tickets_sold(self):
        return sum(tier.sold_count or 0 for tier in self.ticket_tiers)

    @property
    def capacity(self):
        return sum(tier.capacity or 0 for tier in self.ticket_tiers)

    def to_dict(self, include_tiers=True):
        """Convert to dictionary for JSON serialization."""
        data = {
            'id': self.id,
            'title': self.title,
            'date': self.date.isoformat() if self.date else None,
            'time': self.time,
            'venue': self.venue,
            'description': self.description,
            'image': self.image,
            'tags': self.tags or [],
            'booking_url': self.booking_url,
            'is_archived': self.is_archived,
            'has_passed': self.has_passed(),
            'tickets_sold': self.tickets_sold,
            'capacity': self.capacity,
        }
        if include_tiers:
            data['ticket_tiers'] = [tier.to_dict() for tier in self.ticket_tiers]
        return data
