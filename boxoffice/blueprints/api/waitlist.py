"""
API v1 Routes: marketing waitlist.
"""
from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.helpers import api_success, load_json
from boxoffice.blueprints.api.schemas import WaitlistRequestSchema, WaitlistSignupSchema
from boxoffice.extensions import limiter
from boxoffice.services.waitlist_service import join_waitlist


@api_bp.route('/waitlist', methods=['POST'])
@limiter.limit('10 per minute')
def api_join_waitlist():
    """Join a campaign waitlist.

    Returns 201 for a new sign-up, 200 with already_registered for a repeat.
    """
    data = load_json(WaitlistRequestSchema())
    result = join_waitlist(
        email=data['email'],
        name=data.get('name'),
        phone=data.get('phone'),
        source=data.get('source'),
        campaign=data.get('campaign'),
    )
    payload = WaitlistSignupSchema().dump(result['signup'])
    payload['already_registered'] = result['already_registered']
    return api_success(payload, 200 if result['already_registered'] else 201)
