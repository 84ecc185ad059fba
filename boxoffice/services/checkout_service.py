"""
Checkout service for BoxOffice.
Paid checkout through Stripe PaymentIntents, free checkout, and refunds.

Orders are created in one transaction together with the guarded sold_count
increments, so a checkout that would oversell a tier creates nothing.
"""
import json
import logging
from datetime import date, datetime
from typing import Optional, Dict, Any, List, Tuple

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from boxoffice.extensions import db
from boxoffice.models.event import Event
from boxoffice.models.order import Order, OrderTicket, OrderStatus, CustomerGender
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.services.affiliate_service import AffiliateService
from boxoffice.services.event_service import invalidate_event_cache
from boxoffice.services.exceptions import (
    EventNotFound, TierNotFound, InsufficientInventory, InvalidCheckout,
    PaymentNotCompleted, PaymentGatewayError, PaymentRefunded, CustomerTooYoung, OrderNotFound,
)
from boxoffice.services.inventory import InventoryLedger
from boxoffice.utils.email import send_ticket_confirmation

logger = logging.getLogger(__name__)


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Age in whole years on the given day."""
    today = today or datetime.utcnow().date()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def _merge_items(items: List[Dict[str, Any]]) -> Dict[int, int]:
    """Collapse requested items into {tier_id: quantity}, one entry per tier."""
    merged: Dict[int, int] = {}
    for item in items:
        tier_id = int(item['ticket_tier_id'])
        quantity = int(item['quantity'])
        if quantity < 1:
            raise InvalidCheckout(f"Quantity for tier {tier_id} must be at least 1")
        merged[tier_id] = merged.get(tier_id, 0) + quantity
    if not merged:
        raise InvalidCheckout("No tickets selected")
    return merged


def _load_priced_lines(event_id: int, items: List[Dict[str, Any]]) -> Tuple[Event, List[Tuple[TicketTier, int]]]:
    """Resolve items to tiers of the event and run the advisory availability check."""
    event = db.session.get(Event, event_id)
    if event is None or event.is_archived:
        raise EventNotFound(f"Event {event_id} not found")

    lines = []
    for tier_id, quantity in _merge_items(items).items():
        tier = db.session.get(TicketTier, tier_id)
        if tier is None or tier.event_id != event.id:
            raise TierNotFound(f"Ticket tier {tier_id} not found for this event")
        if not InventoryLedger.can_purchase(tier, quantity):
            raise InsufficientInventory(tier.id, quantity, tier.remaining)
        lines.append((tier, quantity))
    return event, lines


def _parse_gender(value) -> Optional[CustomerGender]:
    if not value:
        return None
    if isinstance(value, CustomerGender):
        return value
    try:
        return CustomerGender(value)
    except ValueError:
        raise InvalidCheckout(f"Unknown gender value: {value}")


def _create_order(event_id: int, lines: List[Dict[str, int]], customer: Dict[str, Any],
                  total_amount: int, currency: str,
                  payment_intent_id: Optional[str] = None) -> Order:
    """
    Insert a completed order and reserve its inventory in one transaction.

    Args:
        lines: dicts with ticket_tier_id, quantity, unit_price

    Raises:
        InsufficientInventory: any tier cannot cover its quantity (nothing is written)
    """
    order = Order(
        event_id=event_id,
        stripe_payment_intent_id=payment_intent_id,
        status=OrderStatus.COMPLETED,
        total_amount=total_amount,
        currency=currency,
        customer_email=customer['email'],
        customer_name=customer.get('name'),
        customer_phone=customer.get('phone'),
        customer_date_of_birth=customer.get('date_of_birth'),
        customer_gender=_parse_gender(customer.get('gender')),
    )
    for line in lines:
        order.tickets.append(OrderTicket(
            ticket_tier_id=line['ticket_tier_id'],
            quantity=line['quantity'],
            unit_price=line['unit_price'],
            total_price=line['unit_price'] * line['quantity'],
        ))

    try:
        db.session.add(order)
        for line in lines:
            InventoryLedger.reserve(line['ticket_tier_id'], line['quantity'])
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    invalidate_event_cache(event_id)
    return order


def _after_order(order: Order, affiliate_code: Optional[str] = None) -> None:
    """Side effects that must never fail a completed order."""
    if affiliate_code:
        try:
            AffiliateService.record_conversion(affiliate_code, order)
        except Exception:
            db.session.rollback()
            logger.exception('Affiliate conversion failed for order %s', order.id)

    if not send_ticket_confirmation(order):
        logger.error('Ticket confirmation email not sent for order %s', order.id)


def _refund_unfulfilled(payment_intent_id: str, intent, event_id: int, customer: Dict[str, Any]) -> Order:
    """
    Give the money back for a paid intent whose tickets sold out meanwhile.

    The payment is recorded as a ticketless order: REFUNDED when Stripe
    accepted the refund, FAILED when it did not and the refund has to be
    issued by hand.
    """
    try:
        stripe.Refund.create(
            payment_intent=payment_intent_id,
            idempotency_key=f'unfulfilled-{payment_intent_id}',
        )
        status = OrderStatus.REFUNDED
        logger.warning('Intent %s refunded: tickets sold out after payment', payment_intent_id)
    except stripe.StripeError as e:
        status = OrderStatus.FAILED
        logger.error('Intent %s paid for sold-out tickets and refund failed: %s', payment_intent_id, e)

    order = Order(
        event_id=event_id,
        stripe_payment_intent_id=payment_intent_id,
        status=status,
        total_amount=intent.amount,
        currency=intent.currency or current_app.config.get('DEFAULT_CURRENCY', 'gbp'),
        customer_email=customer['email'],
        customer_name=customer.get('name'),
        customer_phone=customer.get('phone'),
    )
    try:
        db.session.add(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Could not record unfulfilled intent %s (status %s)',
                         payment_intent_id, status.value)
        raise
    return order


def _unfulfilled_error(order: Order) -> PaymentRefunded:
    if order.status == OrderStatus.REFUNDED:
        message = "Tickets sold out before your payment completed. Your payment has been refunded."
    else:
        message = "Tickets sold out before your payment completed. A refund will be issued manually."
    return PaymentRefunded(message, details={
        'order_id': order.id,
        'payment_intent_id': order.stripe_payment_intent_id,
        'order_status': order.status.value,
    })


class CheckoutService:
    """Service for ticket checkout and refunds."""

    @staticmethod
    def create_payment_intent(event_id: int, items: List[Dict[str, Any]],
                              customer: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a Stripe PaymentIntent for the selected tickets.

        Args:
            event_id: Event being purchased
            items: List of {ticket_tier_id, quantity}
            customer: Customer details (email required, affiliate_code optional)

        Returns:
            Dict with client_secret, payment_intent_id, amount, currency

        Raises:
            EventNotFound, TierNotFound, InsufficientInventory, InvalidCheckout,
            PaymentGatewayError
        """
        if not customer.get('email'):
            raise InvalidCheckout("Customer email is required")

        event, lines = _load_priced_lines(event_id, items)
        amount = sum(tier.price * quantity for tier, quantity in lines)
        if amount <= 0:
            raise InvalidCheckout("Order total is zero, use free checkout")

        currency = current_app.config.get('DEFAULT_CURRENCY', 'gbp')
        metadata = {
            'event_id': str(event.id),
            'items': json.dumps([
                {'ticket_tier_id': tier.id, 'quantity': quantity, 'unit_price': tier.price}
                for tier, quantity in lines
            ]),
            'customer_email': customer['email'],
            'customer_name': customer.get('name') or '',
            'customer_phone': customer.get('phone') or '',
        }
        if customer.get('affiliate_code'):
            metadata['affiliate_code'] = customer['affiliate_code']

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                receipt_email=customer['email'],
                automatic_payment_methods={'enabled': True},
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error('PaymentIntent creation failed for event %s: %s', event.id, e)
            raise PaymentGatewayError("Payment provider error, please try again")

        logger.info('PaymentIntent %s created for event %s (%s %s)',
                    intent.id, event.id, amount, currency)
        return {
            'client_secret': intent.client_secret,
            'payment_intent_id': intent.id,
            'amount': amount,
            'currency': currency,
        }

    @staticmethod
    def confirm_payment(payment_intent_id: str, customer: Optional[Dict[str, Any]] = None) -> Tuple[Order, bool]:
        """
        Turn a succeeded PaymentIntent into a completed order.

        Idempotent: a second call for the same intent returns the existing order.

        Args:
            payment_intent_id: Stripe PaymentIntent id
            customer: Optional customer details overriding the intent metadata

        Returns:
            (order, created) tuple

        Raises:
            PaymentNotCompleted: intent has not succeeded
            PaymentRefunded: tickets sold out after payment, the intent was refunded
            PaymentGatewayError: Stripe unreachable
        """
        existing = Order.query.filter_by(stripe_payment_intent_id=payment_intent_id).first()
        if existing:
            if not existing.tickets:
                raise _unfulfilled_error(existing)
            return existing, False

        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            logger.error('PaymentIntent %s retrieval failed: %s', payment_intent_id, e)
            raise PaymentGatewayError("Payment provider error, please try again")

        if intent.status != 'succeeded':
            raise PaymentNotCompleted(f"Payment not completed (status: {intent.status})")

        metadata = dict(intent.metadata or {})
        try:
            event_id = int(metadata['event_id'])
            lines = json.loads(metadata['items'])
        except (KeyError, ValueError, TypeError):
            raise InvalidCheckout("Payment is missing order details")

        details = {
            'email': metadata.get('customer_email'),
            'name': metadata.get('customer_name') or None,
            'phone': metadata.get('customer_phone') or None,
        }
        details.update({k: v for k, v in (customer or {}).items() if v})
        if not details.get('email'):
            raise InvalidCheckout("Customer email is required")

        try:
            order = _create_order(
                event_id, lines, details,
                total_amount=intent.amount,
                currency=intent.currency or current_app.config.get('DEFAULT_CURRENCY', 'gbp'),
                payment_intent_id=payment_intent_id,
            )
        except IntegrityError:
            # Concurrent confirmation of the same intent won the race
            existing = Order.query.filter_by(stripe_payment_intent_id=payment_intent_id).first()
            if existing:
                return existing, False
            raise
        except InsufficientInventory as e:
            logger.error('Paid intent %s could not be fulfilled: tier %s sold out',
                         payment_intent_id, e.tier_id)
            unfulfilled = _refund_unfulfilled(payment_intent_id, intent, event_id, details)
            raise _unfulfilled_error(unfulfilled)

        logger.info('Order %s completed for intent %s', order.id, payment_intent_id)
        _after_order(order, metadata.get('affiliate_code') or details.get('affiliate_code'))
        return order, True

    @staticmethod
    def create_free_order(event_id: int, items: List[Dict[str, Any]], customer: Dict[str, Any],
                          total_amount: int, today: Optional[date] = None) -> Order:
        """
        Issue tickets for free tiers without payment.

        Args:
            event_id: Event id
            items: List of {ticket_tier_id, quantity}
            customer: name, email, phone, date_of_birth (date) required
            total_amount: Client-side total, must be 0

        Returns:
            Completed Order

        Raises:
            InvalidCheckout: non-zero total, missing details, or priced tier
            CustomerTooYoung: below MINIMUM_CUSTOMER_AGE
            InsufficientInventory: not enough tickets left
        """
        if total_amount != 0:
            raise InvalidCheckout("This endpoint is only for free orders")

        missing = [f for f in ('name', 'email', 'phone', 'date_of_birth') if not customer.get(f)]
        if missing:
            raise InvalidCheckout(
                "Missing required customer information",
                details={'missing': missing}
            )

        minimum_age = current_app.config.get('MINIMUM_CUSTOMER_AGE', 18)
        if calculate_age(customer['date_of_birth'], today) < minimum_age:
            raise CustomerTooYoung(f"You must be {minimum_age} or older to get tickets")

        event, priced = _load_priced_lines(event_id, items)
        priced_tiers = [tier.id for tier, _ in priced if tier.price != 0]
        if priced_tiers:
            raise InvalidCheckout(
                "Selected tickets are not free",
                details={'ticket_tier_ids': priced_tiers}
            )

        lines = [
            {'ticket_tier_id': tier.id, 'quantity': quantity, 'unit_price': 0}
            for tier, quantity in priced
        ]
        order = _create_order(
            event.id, lines, customer, total_amount=0,
            currency=current_app.config.get('DEFAULT_CURRENCY', 'gbp'),
        )
        logger.info('Free order %s completed for event %s', order.id, event.id)
        _after_order(order, customer.get('affiliate_code'))
        return order

    @staticmethod
    def refund_order(order_id: str) -> Order:
        """
        Refund a completed order and give its tickets back to inventory.

        Raises:
            OrderNotFound, InvalidCheckout (not completed), PaymentGatewayError
        """
        order = db.session.get(Order, order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found")
        if order.status != OrderStatus.COMPLETED:
            raise InvalidCheckout(f"Only completed orders can be refunded (status: {order.status.value})")

        intent_id = order.stripe_payment_intent_id
        # Written before Stripe is called so only the commit can fail afterwards
        order.status = OrderStatus.REFUNDED
        for line in order.tickets:
            InventoryLedger.release(line.ticket_tier_id, line.quantity)
        db.session.flush()

        if intent_id:
            try:
                stripe.Refund.create(payment_intent=intent_id)
            except stripe.StripeError as e:
                db.session.rollback()
                logger.error('Refund failed for order %s: %s', order_id, e)
                raise PaymentGatewayError("Refund failed at the payment provider")

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception('Order %s refunded at Stripe (intent %s) but not marked refunded',
                             order_id, intent_id)
            raise
        invalidate_event_cache(order.event_id)
        logger.info('Order %s refunded', order.id)
        return order

    @staticmethod
    def handle_webhook_event(payload: bytes, sig_header: str) -> Dict[str, Any]:
        """Handle an incoming Stripe webhook event.

        payment_intent.succeeded completes the order if the browser never
        called confirm (closed tab, lost connection).

        Raises:
            ValueError: If signature verification fails
        """
        webhook_secret = current_app.config['STRIPE_WEBHOOK_SECRET']

        try:
            event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        except stripe.SignatureVerificationError:
            raise ValueError("Invalid webhook signature")

        event_type = event['type']
        result = {'event_type': event_type, 'handled': False}

        if event_type == 'payment_intent.succeeded':
            intent_id = event['data']['object']['id']
            try:
                order, created = CheckoutService.confirm_payment(intent_id)
            except PaymentRefunded as e:
                # Acknowledged so Stripe stops retrying a payment already handled
                result.update({'handled': True, 'refunded': True, **e.details})
            else:
                result.update({'handled': True, 'order_id': order.id, 'created': created})

        return result
