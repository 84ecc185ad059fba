"""
WaitlistSignup model for pre-launch marketing campaigns.
"""
from datetime import datetime

from boxoffice.extensions import db


class WaitlistSignup(db.Model):
    """An email registered for a campaign waitlist."""

    __tablename__ = 'waitlist_signups'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200))
    phone = db.Column(db.String(50))
    source = db.Column(db.String(80))
    campaign = db.Column(db.String(80), nullable=False, default='general')
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('email', 'campaign', name='uq_waitlist_email_campaign'),
    )

    def __repr__(self):
        return f'<WaitlistSignup {self.email} ({self.campaign})>'
