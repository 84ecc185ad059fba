"""
API v1 Routes: guestlist passes.
"""
from flask import request, jsonify

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import manager_required
from boxoffice.blueprints.api.helpers import api_success, load_json, paginate_query
from boxoffice.blueprints.api.schemas import GuestlistSchema, GuestlistCreateSchema
from boxoffice.services.guestlist_service import GuestlistService


@api_bp.route('/guestlists', methods=['GET'])
@manager_required
def api_list_guestlists():
    """List guestlist passes, newest first.

    Query params:
        event_id (int): Filter by event
        page, per_page: Pagination
    """
    query = GuestlistService.guestlist_query(request.args.get('event_id', type=int))
    return jsonify(paginate_query(query, GuestlistSchema())), 200


@api_bp.route('/guestlists', methods=['POST'])
@manager_required
def api_create_guestlist():
    """Create a guestlist pass and email its QR code to the lead guest."""
    data = load_json(GuestlistCreateSchema())
    result = GuestlistService.create_guestlist(
        event_id=data['event_id'],
        lead_name=data['lead_name'],
        lead_email=data['lead_email'],
        lead_phone=data.get('lead_phone'),
        total_tickets=data['total_tickets'],
        category=data['category'],
        notes=data.get('notes'),
        created_by=request.api_user.email,
    )
    payload = GuestlistSchema().dump(result['guestlist'])
    payload['email_sent'] = result['email_sent']
    return api_success(payload, 201)


@api_bp.route('/guestlists/<guestlist_id>', methods=['GET'])
@manager_required
def api_get_guestlist(guestlist_id):
    guestlist = GuestlistService.get_guestlist(guestlist_id)
    return api_success(GuestlistSchema().dump(guestlist))


@api_bp.route('/guestlists/<guestlist_id>', methods=['DELETE'])
@manager_required
def api_delete_guestlist(guestlist_id):
    GuestlistService.delete_guestlist(guestlist_id)
    return api_success({'deleted': True, 'id': guestlist_id})


@api_bp.route('/guestlists/<guestlist_id>/resend', methods=['POST'])
@manager_required
def api_resend_guestlist(guestlist_id):
    """Email the pass QR code to the lead guest again."""
    guestlist = GuestlistService.resend_qr(guestlist_id)
    return api_success({'sent': True, 'id': guestlist.id, 'lead_email': guestlist.lead_email})
