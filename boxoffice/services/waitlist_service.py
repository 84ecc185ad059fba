"""
Waitlist sign-ups for upcoming campaigns.
"""
import logging
import re
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError

from boxoffice.extensions import db
from boxoffice.models.waitlist import WaitlistSignup
from boxoffice.services.exceptions import InvalidInput

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
DEFAULT_CAMPAIGN = 'general'


def join_waitlist(email: str, name: Optional[str] = None, phone: Optional[str] = None,
                  source: Optional[str] = None, campaign: Optional[str] = None) -> Dict[str, Any]:
    """
    Register an email for a campaign.

    Returns:
        Dict with signup and already_registered. An existing sign-up is
        returned untouched.

    Raises:
        InvalidInput: email missing or malformed
    """
    email = (email or '').strip().lower()
    if not email or not EMAIL_RE.match(email):
        raise InvalidInput("A valid email address is required")
    campaign = (campaign or DEFAULT_CAMPAIGN).strip()

    existing = WaitlistSignup.query.filter_by(email=email, campaign=campaign).first()
    if existing:
        return {'signup': existing, 'already_registered': True}

    signup = WaitlistSignup(
        email=email,
        name=(name or '').strip() or None,
        phone=(phone or '').strip() or None,
        source=source,
        campaign=campaign,
    )
    db.session.add(signup)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = WaitlistSignup.query.filter_by(email=email, campaign=campaign).first()
        return {'signup': existing, 'already_registered': True}

    logger.info('Waitlist sign-up for campaign %s', campaign)
    return {'signup': signup, 'already_registered': False}
