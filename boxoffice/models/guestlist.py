"""
GuestlistPass model: a multi-admission pass for a lead guest and their group.
"""
import enum
import json
import random
import string
import time
from datetime import datetime

from boxoffice.extensions import db


class GuestlistCategory(enum.Enum):
    """Guestlist category enumeration."""
    FREE = 'free'
    GL = 'GL'
    TABLES = 'tables'
    OTHER = 'other'


_BASE36 = string.digits + string.ascii_lowercase


def generate_guestlist_id():
    """Return an id of the form guestlist_<epoch ms>_<9 base-36 chars>."""
    suffix = ''.join(random.choice(_BASE36) for _ in range(9))
    return f'guestlist_{int(time.time() * 1000)}_{suffix}'


class GuestlistPass(db.Model):
    """A guestlist pass admitting up to total_tickets people."""

    __tablename__ = 'guestlists'

    id = db.Column(db.String(64), primary_key=True, default=generate_guestlist_id)

    event_id = db.Column(
        db.Integer,
        db.ForeignKey('events.id'),
        nullable=False,
        index=True
    )

    # Lead guest
    lead_name = db.Column(db.String(200), nullable=False)
    lead_email = db.Column(db.String(255), nullable=False)
    lead_phone = db.Column(db.String(50))

    total_tickets = db.Column(db.Integer, nullable=False, default=1)
    remaining_scans = db.Column(db.Integer, nullable=False, default=1)

    category = db.Column(
        db.Enum(GuestlistCategory),
        default=GuestlistCategory.GL,
        nullable=False
    )
    notes = db.Column(db.Text)
    qr_code_data = db.Column(db.Text, nullable=False)

    created_by = db.Column(db.String(120))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('total_tickets >= 1', name='ck_guestlists_total_tickets'),
        db.CheckConstraint(
            'remaining_scans >= 0 AND remaining_scans <= total_tickets',
            name='ck_guestlists_remaining_scans'
        ),
    )

    # Relationships
    event = db.relationship('Event')
    scans = db.relationship(
        'GuestlistScan',
        back_populates='guestlist',
        cascade='all, delete-orphan',
        order_by='GuestlistScan.scanned_at'
    )

    def __repr__(self):
        return f'<GuestlistPass {self.id} {self.remaining_scans}/{self.total_tickets}>'

    @property
    def used_scans(self):
        return self.total_tickets - self.remaining_scans

    @staticmethod
    def build_qr_payload(guestlist_id, event_id, total_tickets, lead_email, lead_name):
        """Serialize the JSON payload encoded in the pass QR code."""
        return json.dumps({
            'type': 'guestlist',
            'guestlistId': guestlist_id,
            'eventId': event_id,
            'totalTickets': total_tickets,
            'leadEmail': lead_email,
            'leadName': lead_name,
        })
