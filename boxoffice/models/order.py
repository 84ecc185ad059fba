"""
Order and OrderTicket models.
An order is one checkout for one event; it owns one line per ticket tier.
"""
import enum
import uuid
from datetime import datetime

from boxoffice.extensions import db


class OrderStatus(enum.Enum):
    """Order status enumeration."""
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class CustomerGender(enum.Enum):
    """Optional self-declared gender captured at checkout."""
    MALE = 'male'
    FEMALE = 'female'
    OTHER = 'other'
    PREFER_NOT_TO_SAY = 'prefer_not_to_say'


def _new_order_id():
    return str(uuid.uuid4())


class Order(db.Model):
    """A completed (or refunded) ticket purchase."""

    __tablename__ = 'orders'

    # UUID string, embedded in the ticket QR code
    id = db.Column(db.String(36), primary_key=True, default=_new_order_id)

    event_id = db.Column(
        db.Integer,
        db.ForeignKey('events.id'),
        nullable=False,
        index=True
    )

    # Null for free orders
    stripe_payment_intent_id = db.Column(db.String(255), unique=True, nullable=True, index=True)

    status = db.Column(
        db.Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    total_amount = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default='gbp')

    # Customer
    customer_email = db.Column(db.String(255), nullable=False, index=True)
    customer_name = db.Column(db.String(200))
    customer_phone = db.Column(db.String(50))
    customer_date_of_birth = db.Column(db.Date)
    customer_gender = db.Column(db.Enum(CustomerGender), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = db.relationship('Event')
    tickets = db.relationship(
        'OrderTicket',
        back_populates='order',
        cascade='all, delete-orphan',
        lazy='selectin'
    )

    def __repr__(self):
        return f'<Order {self.id} {self.status.value}>'

    @property
    def is_completed(self):
        return self.status == OrderStatus.COMPLETED

    @property
    def is_free(self):
        return self.stripe_payment_intent_id is None and self.total_amount == 0

    @property
    def ticket_count(self):
        return sum(line.quantity for line in self.tickets)

    def quantity_for(self, ticket_tier_id):
        """Purchased quantity for a tier, or None if the tier is not in the order."""
        for line in self.tickets:
            if line.ticket_tier_id == ticket_tier_id:
                return line.quantity
        return None


class OrderTicket(db.Model):
    """One order line: a quantity of a single ticket tier."""

    __tablename__ = 'order_tickets'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.String(36),
        db.ForeignKey('orders.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    ticket_tier_id = db.Column(
        db.Integer,
        db.ForeignKey('ticket_tiers.id'),
        nullable=False,
        index=True
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False, default=0)
    total_price = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('order_id', 'ticket_tier_id', name='uq_order_ticket_tier'),
        db.CheckConstraint('quantity >= 1', name='ck_order_tickets_quantity'),
    )

    # Relationships
    order = db.relationship('Order', back_populates='tickets')
    ticket_tier = db.relationship('TicketTier')

    def __repr__(self):
        return f'<OrderTicket {self.order_id} tier={self.ticket_tier_id} x{self.quantity}>'
