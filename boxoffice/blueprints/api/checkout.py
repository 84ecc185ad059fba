"""
API v1 Routes: public checkout (Stripe and free orders) and the Stripe webhook.
"""
from flask import request

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.helpers import api_error, api_success, load_json
from boxoffice.blueprints.api.schemas import (
    PaymentIntentRequestSchema, ConfirmPaymentSchema, FreeOrderSchema, OrderSchema,
)
from boxoffice.extensions import limiter
from boxoffice.services.checkout_service import CheckoutService


@api_bp.route('/checkout/payment-intent', methods=['POST'])
@limiter.limit('30 per minute')
def api_create_payment_intent():
    """Start a paid checkout.

    Request body:
        {"event_id": 1, "items": [{"ticket_tier_id": 2, "quantity": 1}],
         "customer": {"email": "...", "name": "...", "affiliate_code": "..."}}

    Returns:
        {"data": {"client_secret": "...", "payment_intent_id": "...", "amount": 2500, "currency": "gbp"}}
    """
    data = load_json(PaymentIntentRequestSchema())
    result = CheckoutService.create_payment_intent(data['event_id'], data['items'], data['customer'])
    return api_success(result, 201)


@api_bp.route('/checkout/confirm', methods=['POST'])
@limiter.limit('30 per minute')
def api_confirm_payment():
    """Complete a paid checkout once Stripe reports the payment succeeded.

    Returns 201 for a new order, 200 when the order already existed.
    """
    data = load_json(ConfirmPaymentSchema())
    order, created = CheckoutService.confirm_payment(data['payment_intent_id'], data.get('customer'))
    return api_success(OrderSchema().dump(order), 201 if created else 200)


@api_bp.route('/checkout/free-order', methods=['POST'])
@limiter.limit('10 per minute')
def api_create_free_order():
    """Issue tickets for free tiers.

    Request body:
        {"event_id": 1, "items": [...], "total_amount": 0,
         "customer": {"name": "...", "email": "...", "phone": "...", "date_of_birth": "2000-01-31"}}
    """
    data = load_json(FreeOrderSchema())
    order = CheckoutService.create_free_order(
        data['event_id'], data['items'], data['customer'], data['total_amount']
    )
    return api_success(OrderSchema().dump(order), 201)


@api_bp.route('/checkout/webhook', methods=['POST'])
@limiter.exempt
def api_stripe_webhook():
    """Stripe webhook endpoint."""
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature', '')
    try:
        result = CheckoutService.handle_webhook_event(payload, sig_header)
    except ValueError as e:
        return api_error('invalid_signature', str(e), 400)
    return api_success(result)
