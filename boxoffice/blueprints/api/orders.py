"""
API v1 Routes: orders (dashboard).
"""
from flask import request, jsonify
from sqlalchemy import or_

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import admin_required, manager_required
from boxoffice.blueprints.api.helpers import api_error, api_success, paginate_query
from boxoffice.blueprints.api.schemas import OrderSchema
from boxoffice.extensions import db
from boxoffice.models.order import Order, OrderStatus
from boxoffice.services.checkout_service import CheckoutService


@api_bp.route('/orders', methods=['GET'])
@manager_required
def api_list_orders():
    """List orders, newest first.

    Query params:
        event_id (int): Filter by event
        status (str): pending, completed, failed, refunded
        q (str): Match customer email or name
        page, per_page: Pagination
    """
    query = Order.query

    event_id = request.args.get('event_id', type=int)
    if event_id:
        query = query.filter(Order.event_id == event_id)

    status = request.args.get('status')
    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            return api_error('invalid_filter', f'Invalid status: {status}', 422)

    search = request.args.get('q', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            Order.customer_email.ilike(pattern),
            Order.customer_name.ilike(pattern),
        ))

    query = query.order_by(Order.created_at.desc())
    return jsonify(paginate_query(query, OrderSchema())), 200


@api_bp.route('/orders/<order_id>', methods=['GET'])
@manager_required
def api_get_order(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        return api_error('not_found', 'Order not found.', 404)
    return api_success(OrderSchema().dump(order))


@api_bp.route('/orders/<order_id>/refund', methods=['POST'])
@admin_required
def api_refund_order(order_id):
    """Refund an order and return its tickets to inventory."""
    order = CheckoutService.refund_order(order_id)
    return api_success(OrderSchema().dump(order))
