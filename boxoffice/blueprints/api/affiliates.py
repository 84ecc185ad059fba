"""
API v1 Routes: affiliate societies, tracked links and referral redirects.
"""
from flask import request, jsonify, redirect, current_app

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import manager_required
from boxoffice.blueprints.api.helpers import api_error, api_success, load_json, paginate_query
from boxoffice.blueprints.api.schemas import (
    AffiliateSocietySchema, AffiliateSocietyInputSchema, AffiliateLinkSchema, GenerateLinksSchema,
)
from boxoffice.extensions import limiter
from boxoffice.models.affiliate import AffiliateSociety
from boxoffice.services.affiliate_service import AffiliateService


@api_bp.route('/affiliates/societies', methods=['GET'])
@manager_required
def api_list_societies():
    query = AffiliateSociety.query.order_by(AffiliateSociety.name)
    return jsonify(paginate_query(query, AffiliateSocietySchema())), 200


@api_bp.route('/affiliates/societies', methods=['POST'])
@manager_required
def api_create_society():
    data = load_json(AffiliateSocietyInputSchema())
    society = AffiliateService.create_society(data)
    return api_success(AffiliateSocietySchema().dump(society), 201)


@api_bp.route('/affiliates/societies/<int:society_id>', methods=['GET'])
@manager_required
def api_get_society(society_id):
    """Society details with its links and performance."""
    society = AffiliateService.get_society(society_id)
    payload = AffiliateSocietySchema().dump(society)
    payload['links'] = AffiliateLinkSchema().dump(society.links, many=True)
    payload['performance'] = AffiliateService.society_performance(society)
    return api_success(payload)


@api_bp.route('/affiliates/societies/<int:society_id>', methods=['PATCH'])
@manager_required
def api_update_society(society_id):
    data = load_json(AffiliateSocietyInputSchema(), partial=True)
    society = AffiliateService.update_society(society_id, data)
    return api_success(AffiliateSocietySchema().dump(society))


@api_bp.route('/affiliates/societies/<int:society_id>', methods=['DELETE'])
@manager_required
def api_delete_society(society_id):
    AffiliateService.delete_society(society_id)
    return api_success({'deleted': True, 'id': society_id})


@api_bp.route('/affiliates/links', methods=['POST'])
@manager_required
def api_generate_links():
    """Generate one tracked link per society for an event.

    Request body:
        {"event_id": 1, "society_ids": [1, 2]}
    """
    data = load_json(GenerateLinksSchema())
    links = AffiliateService.generate_links(data['society_ids'], data['event_id'])
    return api_success(AffiliateLinkSchema().dump(links, many=True), 201)


@api_bp.route('/affiliates/stats', methods=['GET'])
@manager_required
def api_affiliate_stats():
    """Totals plus per-society performance."""
    stats = AffiliateService.get_stats()
    society_schema = AffiliateSocietySchema()
    stats['performance'] = [
        {**{k: v for k, v in row.items() if k != 'society'}, 'society': society_schema.dump(row['society'])}
        for row in stats['performance']
    ]
    return api_success(stats)


@api_bp.route('/r/<link_code>', methods=['GET'])
@limiter.limit('60 per minute')
def api_affiliate_redirect(link_code):
    """Record a click on a tracked link and send the visitor to the event page."""
    link = AffiliateService.record_click(
        link_code,
        ip_address=request.remote_addr,
        user_agent=request.headers.get('User-Agent'),
        referrer=request.referrer,
        session_id=request.args.get('sid'),
    )
    if link is None:
        return api_error('not_found', 'Link not found.', 404)

    target = link.custom_url or (
        f"{current_app.config['APP_URL'].rstrip('/')}/events/{link.event_id}?ref={link.link_code}"
    )
    return redirect(target, code=302)
