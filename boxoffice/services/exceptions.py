"""
Exceptions raised by BoxOffice services.
Each carries an API error code and HTTP status so routes can map them with
api_error() without knowing the individual failure.
"""


class BoxOfficeError(Exception):
    """Base class for service-level failures."""

    code = 'boxoffice_error'
    status = 400

    def __init__(self, message: str, details=None):
        self.message = message
        self.details = details
        super().__init__(message)


class EventNotFound(BoxOfficeError):
    code = 'event_not_found'
    status = 404


class TierNotFound(BoxOfficeError):
    code = 'tier_not_found'
    status = 404


class OrderNotFound(BoxOfficeError):
    code = 'order_not_found'
    status = 404


class GuestlistNotFound(BoxOfficeError):
    code = 'guestlist_not_found'
    status = 404


class AffiliateNotFound(BoxOfficeError):
    code = 'affiliate_not_found'
    status = 404


class InsufficientInventory(BoxOfficeError):
    """Raised when a tier cannot cover the requested quantity."""

    code = 'insufficient_inventory'
    status = 409

    def __init__(self, tier_id: int, requested: int, remaining=None):
        self.tier_id = tier_id
        self.requested = requested
        self.remaining = remaining
        message = f"Not enough tickets available for tier {tier_id} (requested {requested}"
        if remaining is not None:
            message += f", remaining {remaining}"
        message += ")"
        super().__init__(message, details={'ticket_tier_id': tier_id, 'requested': requested,
                                           'remaining': remaining})


class PaymentNotCompleted(BoxOfficeError):
    code = 'payment_not_completed'
    status = 402


class InvalidInput(BoxOfficeError):
    code = 'validation_error'
    status = 400


class InvalidCheckout(InvalidInput):
    code = 'invalid_checkout'


class CustomerTooYoung(BoxOfficeError):
    code = 'customer_too_young'
    status = 400


class EventNotArchived(BoxOfficeError):
    code = 'event_not_archived'
    status = 409


class DuplicateAffiliateCode(BoxOfficeError):
    code = 'duplicate_code'
    status = 409


class NotificationFailed(BoxOfficeError):
    code = 'notification_failed'
    status = 500


class PaymentGatewayError(BoxOfficeError):
    """Wraps a stripe.StripeError."""

    code = 'payment_gateway_error'
    status = 502


class PaymentRefunded(BoxOfficeError):
    """A succeeded payment could not be turned into tickets and was refunded."""

    code = 'payment_refunded'
    status = 409
