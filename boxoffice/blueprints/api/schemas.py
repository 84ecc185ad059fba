"""
Marshmallow schemas for API serialization and request validation.
Dump schemas convert SQLAlchemy models to JSON-safe dictionaries; load
schemas validate incoming request bodies.
"""
from marshmallow import Schema, fields, validate, EXCLUDE

from boxoffice.models.guestlist import GuestlistCategory
from boxoffice.models.order import CustomerGender


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True
        unknown = EXCLUDE


def _enum_value(attr):
    """Dump an Enum column as its value."""
    def getter(obj):
        value = getattr(obj, attr)
        return value.value if value is not None else None
    return getter


# ── User ────────────────────────────────────────────────────

class UserSchema(BaseSchema):
    """Back-office user representation (for /me endpoint)."""
    id = fields.Int(dump_only=True)
    email = fields.Email()
    first_name = fields.Str()
    last_name = fields.Str()
    full_name = fields.Str(dump_only=True)
    access_level = fields.Function(_enum_value('access_level'))
    access_level_label = fields.Str(dump_only=True)
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')


class LoginSchema(BaseSchema):
    email = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=validate.Length(min=1))


class RefreshSchema(BaseSchema):
    refresh_token = fields.Str(required=True, validate=validate.Length(min=1))


# ── Events & tiers ──────────────────────────────────────────

class TicketTierSchema(BaseSchema):
    """Ticket tier representation."""
    id = fields.Int(dump_only=True)
    event_id = fields.Int(dump_only=True)
    name = fields.Str()
    description = fields.Str(allow_none=True)
    benefits = fields.List(fields.Str())
    price = fields.Int()
    original_price = fields.Int(allow_none=True)
    capacity = fields.Int()
    sold_count = fields.Int(dump_only=True)
    remaining = fields.Int(dump_only=True)
    is_sold_out = fields.Bool(dump_only=True)
    is_active = fields.Bool()
    available_from = fields.DateTime(format='iso', allow_none=True)
    available_until = fields.DateTime(format='iso', allow_none=True)
    sort_order = fields.Int()


class EventSchema(BaseSchema):
    """Event representation with its tiers."""
    id = fields.Int(dump_only=True)
    title = fields.Str()
    date = fields.Date()
    time = fields.Str(allow_none=True)
    venue = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    tags = fields.List(fields.Str())
    booking_url = fields.Str(allow_none=True)
    is_archived = fields.Bool(dump_only=True)
    tickets_sold = fields.Int(dump_only=True)
    capacity = fields.Int(dump_only=True)
    ticket_tiers = fields.List(fields.Nested(TicketTierSchema), dump_only=True)
    created_at = fields.DateTime(format='iso', dump_only=True)


class TierInputSchema(BaseSchema):
    """Tier fields accepted on create/update."""
    name = fields.Str(required=True, validate=validate.Length(min=1, max=80))
    description = fields.Str(allow_none=True)
    benefits = fields.List(fields.Str(), load_default=list)
    price = fields.Int(required=True, validate=validate.Range(min=0))
    original_price = fields.Int(allow_none=True, validate=validate.Range(min=0))
    capacity = fields.Int(required=True, validate=validate.Range(min=0))
    is_active = fields.Bool(load_default=True)
    available_from = fields.DateTime(allow_none=True)
    available_until = fields.DateTime(allow_none=True)
    sort_order = fields.Int()


class EventInputSchema(BaseSchema):
    """Event fields accepted on create/update."""
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    date = fields.Date(required=True)
    time = fields.Str(allow_none=True)
    venue = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)
    tags = fields.List(fields.Str(), load_default=list)
    booking_url = fields.Str(allow_none=True)
    ticket_tiers = fields.List(fields.Nested(TierInputSchema), load_default=list)


class TierActiveSchema(BaseSchema):
    is_active = fields.Bool(required=True)


# ── Orders ──────────────────────────────────────────────────

class OrderTicketSchema(BaseSchema):
    """Order line representation."""
    id = fields.Int(dump_only=True)
    ticket_tier_id = fields.Int()
    ticket_tier_name = fields.Function(lambda line: line.ticket_tier.name if line.ticket_tier else None)
    quantity = fields.Int()
    unit_price = fields.Int()
    total_price = fields.Int()


class OrderSchema(BaseSchema):
    """Order representation."""
    id = fields.Str(dump_only=True)
    event_id = fields.Int()
    event_title = fields.Function(lambda order: order.event.title if order.event else None)
    stripe_payment_intent_id = fields.Str(allow_none=True)
    status = fields.Function(_enum_value('status'))
    total_amount = fields.Int()
    currency = fields.Str()
    customer_email = fields.Str()
    customer_name = fields.Str(allow_none=True)
    customer_phone = fields.Str(allow_none=True)
    customer_date_of_birth = fields.Date(allow_none=True)
    customer_gender = fields.Function(_enum_value('customer_gender'))
    ticket_count = fields.Int(dump_only=True)
    tickets = fields.List(fields.Nested(OrderTicketSchema))
    created_at = fields.DateTime(format='iso')


# ── Checkout ────────────────────────────────────────────────

class CheckoutItemSchema(BaseSchema):
    ticket_tier_id = fields.Int(required=True)
    quantity = fields.Int(required=True, validate=validate.Range(min=1, max=50))


class CustomerSchema(BaseSchema):
    email = fields.Email(required=True)
    name = fields.Str(allow_none=True, validate=validate.Length(max=200))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=50))
    date_of_birth = fields.Date(allow_none=True)
    gender = fields.Str(allow_none=True, validate=validate.OneOf([g.value for g in CustomerGender]))
    affiliate_code = fields.Str(allow_none=True)


class PaymentIntentRequestSchema(BaseSchema):
    event_id = fields.Int(required=True)
    items = fields.List(fields.Nested(CheckoutItemSchema), required=True,
                        validate=validate.Length(min=1))
    customer = fields.Nested(CustomerSchema, required=True)


class ConfirmPaymentSchema(BaseSchema):
    payment_intent_id = fields.Str(required=True, validate=validate.Length(min=1))
    customer = fields.Nested(CustomerSchema, load_default=None, allow_none=True)


class FreeOrderSchema(BaseSchema):
    event_id = fields.Int(required=True)
    items = fields.List(fields.Nested(CheckoutItemSchema), required=True,
                        validate=validate.Length(min=1))
    customer = fields.Nested(CustomerSchema, required=True)
    total_amount = fields.Int(required=True)


# ── Scanning ────────────────────────────────────────────────

SCAN_TYPES = ['entry', 'exit']


class TicketScanRequestSchema(BaseSchema):
    order_id = fields.Str(required=True, validate=validate.Length(min=1))
    ticket_tier_id = fields.Int(required=True)
    customer_email = fields.Str(required=True, validate=validate.Length(min=1))
    scan_type = fields.Str(load_default='entry', validate=validate.OneOf(SCAN_TYPES))
    location = fields.Str(allow_none=True)
    notes = fields.Str(allow_none=True)


class TicketScanRecordSchema(TicketScanRequestSchema):
    event_id = fields.Int(required=True)


class GuestlistScanRequestSchema(BaseSchema):
    guestlist_id = fields.Str(required=True, validate=validate.Length(min=1))
    scan_type = fields.Str(load_default='entry', validate=validate.OneOf(SCAN_TYPES))
    location = fields.Str(allow_none=True)
    notes = fields.Str(allow_none=True)


# ── Guestlists ──────────────────────────────────────────────

class GuestlistSchema(BaseSchema):
    """Guestlist pass representation."""
    id = fields.Str(dump_only=True)
    event_id = fields.Int()
    lead_name = fields.Str()
    lead_email = fields.Str()
    lead_phone = fields.Str(allow_none=True)
    total_tickets = fields.Int()
    remaining_scans = fields.Int()
    used_scans = fields.Int(dump_only=True)
    category = fields.Function(_enum_value('category'))
    notes = fields.Str(allow_none=True)
    qr_code_data = fields.Str()
    created_by = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')


class GuestlistCreateSchema(BaseSchema):
    event_id = fields.Int(required=True)
    lead_name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    lead_email = fields.Email(required=True)
    lead_phone = fields.Str(allow_none=True)
    total_tickets = fields.Int(required=True, validate=validate.Range(min=1, max=500))
    category = fields.Str(load_default=GuestlistCategory.GL.value,
                          validate=validate.OneOf([c.value for c in GuestlistCategory]))
    notes = fields.Str(allow_none=True)


# ── Affiliates ──────────────────────────────────────────────

class AffiliateSocietySchema(BaseSchema):
    """Society representation."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    code = fields.Str()
    contact_name = fields.Str(allow_none=True)
    contact_email = fields.Str(allow_none=True)
    contact_phone = fields.Str(allow_none=True)
    university = fields.Str(allow_none=True)
    society_type = fields.Str(allow_none=True)
    commission_rate = fields.Float()
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')


class AffiliateSocietyInputSchema(BaseSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    code = fields.Str(required=True, validate=[
        validate.Length(min=2, max=40),
        validate.Regexp(r'^[A-Za-z0-9_]+$', error='Code may only contain letters, digits and underscores.'),
    ])
    contact_name = fields.Str(allow_none=True)
    contact_email = fields.Email(allow_none=True)
    contact_phone = fields.Str(allow_none=True)
    university = fields.Str(allow_none=True)
    society_type = fields.Str(allow_none=True)
    commission_rate = fields.Decimal(required=True, places=2, validate=validate.Range(min=0, max=100))
    is_active = fields.Bool(load_default=True)


class AffiliateLinkSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    society_id = fields.Int()
    society_code = fields.Function(lambda link: link.society.code if link.society else None)
    event_id = fields.Int()
    link_code = fields.Str()
    custom_url = fields.Str(allow_none=True)
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')


class GenerateLinksSchema(BaseSchema):
    event_id = fields.Int(required=True)
    society_ids = fields.List(fields.Int(), required=True, validate=validate.Length(min=1))


# ── Waitlist ────────────────────────────────────────────────

class WaitlistRequestSchema(BaseSchema):
    email = fields.Str(required=True)
    name = fields.Str(allow_none=True)
    phone = fields.Str(allow_none=True)
    source = fields.Str(allow_none=True)
    campaign = fields.Str(allow_none=True)


class WaitlistSignupSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    email = fields.Str()
    name = fields.Str(allow_none=True)
    campaign = fields.Str()
    created_at = fields.DateTime(format='iso')

