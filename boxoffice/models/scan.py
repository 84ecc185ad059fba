"""
Append-only scan logs for tickets and guestlist passes.
"""
import enum
from datetime import datetime

from boxoffice.extensions import db


class ScanType(enum.Enum):
    """Direction of a door scan."""
    ENTRY = 'entry'
    EXIT = 'exit'


class TicketScan(db.Model):
    """One door scan of a ticket. Rows are never updated or deleted."""

    __tablename__ = 'ticket_scans'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey('orders.id'), nullable=False)
    ticket_tier_id = db.Column(db.Integer, db.ForeignKey('ticket_tiers.id'), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    event_id = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False, index=True)
    scan_type = db.Column(db.Enum(ScanType), nullable=False, default=ScanType.ENTRY)
    scanned_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    scanned_by = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(120))
    notes = db.Column(db.Text)

    __table_args__ = (
        db.Index('ix_ticket_scans_order_tier_type', 'order_id', 'ticket_tier_id', 'scan_type'),
    )

    def __repr__(self):
        return f'<TicketScan {self.order_id} {self.scan_type.value}>'

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'ticket_tier_id': self.ticket_tier_id,
            'customer_email': self.customer_email,
            'event_id': self.event_id,
            'scan_type': self.scan_type.value,
            'scanned_at': self.scanned_at.isoformat() if self.scanned_at else None,
            'scanned_by': self.scanned_by,
            'location': self.location,
            'notes': self.notes,
        }


class GuestlistScan(db.Model):
    """One door scan of a guestlist pass."""

    __tablename__ = 'guestlist_scans'

    id = db.Column(db.Integer, primary_key=True)
    guestlist_id = db.Column(
        db.String(64),
        db.ForeignKey('guestlists.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    event_id = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False)
    scan_type = db.Column(db.Enum(ScanType), nullable=False, default=ScanType.ENTRY)
    scanned_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    scanned_by = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(120))
    notes = db.Column(db.Text)

    guestlist = db.relationship('GuestlistPass', back_populates='scans')

    def __repr__(self):
        return f'<GuestlistScan {self.guestlist_id} {self.scan_type.value}>'
