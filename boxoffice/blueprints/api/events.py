"""
API v1 Routes: events and ticket tiers.
Public reads are served from the event cache; writes need a manager.
"""
from flask import request, jsonify

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import manager_required
from boxoffice.blueprints.api.helpers import paginate_query, api_success, load_json
from boxoffice.blueprints.api.schemas import (
    EventSchema, EventInputSchema, TicketTierSchema, TierInputSchema, TierActiveSchema,
)
from boxoffice.models.event import Event
from boxoffice.services.event_service import EventService
from boxoffice.services.inventory import InventoryLedger


# ── Public ──────────────────────────────────────────────────

@api_bp.route('/events', methods=['GET'])
def api_list_events():
    """Upcoming, non-archived events with their ticket tiers."""
    return api_success(EventService.list_public_events())


@api_bp.route('/events/<int:event_id>', methods=['GET'])
def api_get_event(event_id):
    """One public event with its ticket tiers."""
    return api_success(EventService.get_public_event(event_id))


# ── Management ──────────────────────────────────────────────

@api_bp.route('/manage/events', methods=['GET'])
@manager_required
def api_manage_list_events():
    """All events, archived included, newest date first.

    Query params:
        archived (bool): true/false to filter on archive state
        page, per_page: Pagination
    """
    query = Event.query
    archived = request.args.get('archived')
    if archived is not None:
        query = query.filter(Event.is_archived.is_(archived.lower() == 'true'))
    query = query.order_by(Event.date.desc())
    return jsonify(paginate_query(query, EventSchema())), 200


@api_bp.route('/events', methods=['POST'])
@manager_required
def api_create_event():
    """Create an event with optional initial ticket tiers."""
    data = load_json(EventInputSchema())
    tiers = data.pop('ticket_tiers', [])
    event = EventService.create_event(data, tiers)
    return api_success(EventSchema().dump(event), 201)


@api_bp.route('/events/<int:event_id>', methods=['PATCH'])
@manager_required
def api_update_event(event_id):
    data = load_json(EventInputSchema(), partial=True)
    event = EventService.update_event(event_id, data)
    return api_success(EventSchema().dump(event))


@api_bp.route('/events/<int:event_id>/archive', methods=['POST'])
@manager_required
def api_archive_event(event_id):
    event = EventService.set_archived(event_id, True)
    return api_success(EventSchema().dump(event))


@api_bp.route('/events/<int:event_id>/unarchive', methods=['POST'])
@manager_required
def api_unarchive_event(event_id):
    event = EventService.set_archived(event_id, False)
    return api_success(EventSchema().dump(event))


@api_bp.route('/events/<int:event_id>', methods=['DELETE'])
@manager_required
def api_delete_event(event_id):
    """Delete an archived event and its tiers."""
    EventService.delete_event(event_id)
    return api_success({'deleted': True, 'id': event_id})


@api_bp.route('/events/<int:event_id>/tiers', methods=['POST'])
@manager_required
def api_add_tier(event_id):
    data = load_json(TierInputSchema())
    tier = EventService.add_tier(event_id, data)
    return api_success(TicketTierSchema().dump(tier), 201)


@api_bp.route('/tiers/<int:tier_id>', methods=['PATCH'])
@manager_required
def api_update_tier(tier_id):
    data = load_json(TierInputSchema(), partial=True)
    tier = EventService.update_tier(tier_id, data)
    return api_success(TicketTierSchema().dump(tier))


@api_bp.route('/tiers/<int:tier_id>/active', methods=['POST'])
@manager_required
def api_set_tier_active(tier_id):
    """Switch a tier on or off ("force sold out").

    Request body:
        {"is_active": false}
    """
    data = load_json(TierActiveSchema())
    tier = InventoryLedger.set_active(tier_id, data['is_active'])
    return api_success(TicketTierSchema().dump(tier))
