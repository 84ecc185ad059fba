"""
Affiliate tracking: student societies promote events through tracked links
and earn a commission on the orders those links convert.
"""
import secrets
from datetime import datetime

from boxoffice.extensions import db


class AffiliateSociety(db.Model):
    """A promoting society with its commission rate."""

    __tablename__ = 'affiliate_societies'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(40), unique=True, nullable=False, index=True)

    contact_name = db.Column(db.String(200))
    contact_email = db.Column(db.String(255))
    contact_phone = db.Column(db.String(50))
    university = db.Column(db.String(200))
    society_type = db.Column(db.String(80))

    # Percent of conversion value, 0-100
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 100',
            name='ck_affiliate_societies_commission_rate'
        ),
    )

    links = db.relationship(
        'AffiliateLink',
        back_populates='society',
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        return f'<AffiliateSociety {self.code}>'


class AffiliateLink(db.Model):
    """A tracked link for one society and one event."""

    __tablename__ = 'affiliate_links'

    id = db.Column(db.Integer, primary_key=True)
    society_id = db.Column(
        db.Integer,
        db.ForeignKey('affiliate_societies.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    event_id = db.Column(db.Integer, db.ForeignKey('events.id'), nullable=False, index=True)
    link_code = db.Column(db.String(60), unique=True, nullable=False, index=True)
    custom_url = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    society = db.relationship('AffiliateSociety', back_populates='links')
    event = db.relationship('Event')
    clicks = db.relationship('AffiliateClick', back_populates='link', cascade='all, delete-orphan')
    conversions = db.relationship('AffiliateConversion', back_populates='link', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<AffiliateLink {self.link_code}>'

    @staticmethod
    def generate_code(society_code):
        """Return <SOCIETY CODE>-<8 hex chars>."""
        return f'{society_code.upper()}-{secrets.token_hex(4)}'


class AffiliateClick(db.Model):
    """A recorded visit through an affiliate link."""

    __tablename__ = 'affiliate_clicks'

    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(
        db.Integer,
        db.ForeignKey('affiliate_links.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    referrer = db.Column(db.String(500))
    session_id = db.Column(db.String(100))
    clicked_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    link = db.relationship('AffiliateLink', back_populates='clicks')


class AffiliateConversion(db.Model):
    """An order attributed to an affiliate link."""

    __tablename__ = 'affiliate_conversions'

    id = db.Column(db.Integer, primary_key=True)
    link_id = db.Column(
        db.Integer,
        db.ForeignKey('affiliate_links.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    # One conversion per order
    order_id = db.Column(db.String(36), db.ForeignKey('orders.id'), unique=True, nullable=False)
    conversion_value = db.Column(db.Integer, nullable=False, default=0)
    commission_earned = db.Column(db.Integer, nullable=False, default=0)
    converted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    link = db.relationship('AffiliateLink', back_populates='conversions')
    order = db.relationship('Order')
