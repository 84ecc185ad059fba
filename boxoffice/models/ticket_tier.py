"""
TicketTier model for multi-tier ticket pricing.
Allows multiple price categories per event (Early Bird, General, VIP, etc.).
"""
from datetime import datetime

from boxoffice.extensions import db


class TicketTier(db.Model):
    """A ticket pricing tier for an event."""

    __tablename__ = 'ticket_tiers'

    id = db.Column(db.Integer, primary_key=True)

    # Event reference
    event_id = db.Column(
        db.Integer,
        db.ForeignKey('events.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    # Tier definition
    name = db.Column(db.String(80), nullable=False)
    description = db.Column(db.Text)
    benefits = db.Column(db.JSON, default=list)

    # Prices in minor units (pence)
    price = db.Column(db.Integer, nullable=False, default=0)
    original_price = db.Column(db.Integer, nullable=True)

    capacity = db.Column(db.Integer, nullable=False, default=0)
    sold_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Sales window, shown to customers but not enforced at the door
    available_from = db.Column(db.DateTime, nullable=True)
    available_until = db.Column(db.DateTime, nullable=True)

    # Display order (0 = first)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow, nullable=True)

    __table_args__ = (
        db.CheckConstraint('capacity >= 0', name='ck_ticket_tiers_capacity'),
        db.CheckConstraint('sold_count >= 0', name='ck_ticket_tiers_sold_count'),
    )

    # Relationships
    event = db.relationship('Event', back_populates='ticket_tiers')

    def __repr__(self):
        return f'<TicketTier {self.name} @ {self.price}>'

    @property
    def revenue(self):
        """Gross revenue for this tier in minor units (price * sold)."""
        return (self.price or 0) * (self.sold_count or 0)

    @property
    def remaining(self):
        """Remaining tickets for this tier."""
        return max(0, (self.capacity or 0) - (self.sold_count or 0))

    @property
    def is_sold_out(self):
        """Sold out when nothing remains or the tier was switched off."""
        return self.remaining <= 0 or not self.is_active

    @property
    def is_free(self):
        return (self.price or 0) == 0

    def to_dict(self):
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'event_id': self.event_id,
            'name': self.name,
            'description': self.description,
            'benefits': self.benefits or [],
            'price': self.price,
            'original_price': self.original_price,
            'capacity': self.capacity,
            'sold_count': self.sold_count,
            'revenue': self.revenue,
            'is_active': self.is_active,
            'is_sold_out': self.is_sold_out,
            'remaining': self.remaining,
            'available_from': self.available_from.isoformat() if self.available_from else None,
            'available_until': self.available_until.isoformat() if self.available_until else None,
            'sort_order': self.sort_order,
        }
