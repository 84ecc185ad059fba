"""
API v1 Routes: door scanner.

A refused scan is a normal answer, not an HTTP error: every scan endpoint
returns 200 with {"data": {"is_valid", "outcome", "message", "details"}}.
"""
from flask import request

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import door_staff_required
from boxoffice.blueprints.api.helpers import api_error, api_success, load_json
from boxoffice.blueprints.api.schemas import (
    TicketScanRequestSchema, TicketScanRecordSchema, GuestlistScanRequestSchema,
)
from boxoffice.extensions import limiter
from boxoffice.services.scan_recorder import ScanRecorder
from boxoffice.services.scan_validation import ScanValidator
from boxoffice.services.ticket_search import search_tickets


@api_bp.route('/scan/ticket/validate', methods=['POST'])
@limiter.limit('120 per minute')
@door_staff_required
def api_validate_ticket():
    """Check a ticket without recording anything."""
    data = load_json(TicketScanRequestSchema())
    result = ScanValidator.validate_ticket(
        data['order_id'], data['ticket_tier_id'], data['customer_email'], data['scan_type']
    )
    return api_success(result.to_dict())


@api_bp.route('/scan/ticket', methods=['POST'])
@limiter.limit('120 per minute')
@door_staff_required
def api_admit_ticket():
    """Validate and record a ticket scan in one step."""
    data = load_json(TicketScanRequestSchema())
    result = ScanRecorder.admit_ticket(
        data['order_id'], data['ticket_tier_id'], data['customer_email'], data['scan_type'],
        scanned_by=request.api_user.email,
        location=data.get('location'),
        notes=data.get('notes'),
    )
    return api_success(result.to_dict())


@api_bp.route('/scan/ticket/record', methods=['POST'])
@door_staff_required
def api_record_ticket_scan():
    """Record a scan that was already validated."""
    data = load_json(TicketScanRecordSchema())
    result = ScanRecorder.record_ticket_scan(
        data['order_id'], data['ticket_tier_id'], data['customer_email'], data['event_id'],
        data['scan_type'],
        scanned_by=request.api_user.email,
        location=data.get('location'),
        notes=data.get('notes'),
    )
    return api_success(result.to_dict())


@api_bp.route('/scan/guestlist/validate', methods=['POST'])
@limiter.limit('120 per minute')
@door_staff_required
def api_validate_guestlist():
    data = load_json(GuestlistScanRequestSchema())
    result = ScanValidator.validate_guestlist(data['guestlist_id'], data['scan_type'])
    return api_success(result.to_dict())


@api_bp.route('/scan/guestlist', methods=['POST'])
@limiter.limit('120 per minute')
@door_staff_required
def api_admit_guestlist():
    """Validate a guestlist pass and consume one admission."""
    data = load_json(GuestlistScanRequestSchema())
    result = ScanRecorder.admit_guestlist(
        data['guestlist_id'], data['scan_type'],
        scanned_by=request.api_user.email,
        location=data.get('location'),
        notes=data.get('notes'),
    )
    return api_success(result.to_dict())


@api_bp.route('/tickets/search', methods=['GET'])
@door_staff_required
def api_search_tickets():
    """Look up tickets by order id, customer email or name.

    Query params:
        q (str): Search text (required)
        event_id (int): Restrict to one event
    """
    query = request.args.get('q', '').strip()
    if not query:
        return api_error('validation_error', 'Query parameter q is required.', 422)
    return api_success(search_tickets(query, request.args.get('event_id', type=int)))
