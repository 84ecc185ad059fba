# =============================================================================
# BoxOffice - Pytest Fixtures Configuration
# =============================================================================

import pytest
from datetime import datetime, timedelta

from boxoffice import create_app
from boxoffice.extensions import db, cache
from boxoffice.models.user import User, AccessLevel
from boxoffice.models.event import Event
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.models.order import Order, OrderTicket, OrderStatus
from boxoffice.models.guestlist import GuestlistPass, GuestlistCategory


def utc_today():
    return datetime.utcnow().date()


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        cache.clear()
        application.extensions['mailman'].outbox = []
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def outbox(app):
    """Messages sent through the locmem mail backend."""
    return app.extensions['mailman'].outbox


# =============================================================================
# User Fixtures
# =============================================================================

def _make_user(email, access_level, password='TestPass123!'):
    user = User(
        email=email,
        first_name='Test',
        last_name=access_level.value.title(),
        access_level=access_level,
        is_active=True,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    user_id = user.id
    db.session.expire_all()
    return db.session.get(User, user_id)


@pytest.fixture
def admin_user(app):
    return _make_user('admin@test.com', AccessLevel.ADMIN)


@pytest.fixture
def manager_user(app):
    return _make_user('manager@test.com', AccessLevel.MANAGER)


@pytest.fixture
def staff_user(app):
    return _make_user('door@test.com', AccessLevel.STAFF)


def get_auth_token(client, email, password='TestPass123!'):
    """Log in through the API and return the access token."""
    response = client.post('/api/v1/auth/login', json={'email': email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return response.get_json()['data']['access_token']


def auth_header(token):
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def staff_headers(client, staff_user):
    return auth_header(get_auth_token(client, staff_user.email))


@pytest.fixture
def manager_headers(client, manager_user):
    return auth_header(get_auth_token(client, manager_user.email))


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_header(get_auth_token(client, admin_user.email))


# =============================================================================
# Event & Tier Fixtures
# =============================================================================

@pytest.fixture
def sample_event(app):
    """An event one week from now."""
    event = Event(
        title='Warehouse Rave',
        date=utc_today() + timedelta(days=7),
        time='22:00',
        venue='The Depot',
        tags=['techno'],
    )
    db.session.add(event)
    db.session.commit()
    event_id = event.id
    db.session.expire_all()
    return db.session.get(Event, event_id)


@pytest.fixture
def past_event(app):
    event = Event(title='Last Week', date=utc_today() - timedelta(days=7), venue='The Depot')
    db.session.add(event)
    db.session.commit()
    event_id = event.id
    db.session.expire_all()
    return db.session.get(Event, event_id)


@pytest.fixture
def sample_tier(app, sample_event):
    """A paid tier: capacity 50, nothing sold."""
    tier = TicketTier(
        event_id=sample_event.id,
        name='General Admission',
        price=1500,
        capacity=50,
        sold_count=0,
        is_active=True,
    )
    db.session.add(tier)
    db.session.commit()
    tier_id = tier.id
    db.session.expire_all()
    return db.session.get(TicketTier, tier_id)


@pytest.fixture
def free_tier(app, sample_event):
    tier = TicketTier(
        event_id=sample_event.id,
        name='Free Entry',
        price=0,
        capacity=10,
        sold_count=0,
        is_active=True,
        sort_order=1,
    )
    db.session.add(tier)
    db.session.commit()
    tier_id = tier.id
    db.session.expire_all()
    return db.session.get(TicketTier, tier_id)


# =============================================================================
# Order & Guestlist Fixtures
# =============================================================================

def make_order(event, tier, quantity=1, email='fan@example.com',
               status=OrderStatus.COMPLETED, intent_id=None):
    """Insert an order with one line directly (bypassing checkout)."""
    order = Order(
        event_id=event.id,
        stripe_payment_intent_id=intent_id,
        status=status,
        total_amount=tier.price * quantity,
        currency='gbp',
        customer_email=email,
        customer_name='Alex Fan',
        customer_phone='07700900000',
    )
    order.tickets.append(OrderTicket(
        ticket_tier_id=tier.id,
        quantity=quantity,
        unit_price=tier.price,
        total_price=tier.price * quantity,
    ))
    db.session.add(order)
    db.session.commit()
    order_id = order.id
    db.session.expire_all()
    return db.session.get(Order, order_id)


@pytest.fixture
def completed_order(app, sample_event, sample_tier):
    """A completed order for two General Admission tickets."""
    return make_order(sample_event, sample_tier, quantity=2)


def make_guestlist(event, total_tickets=3, remaining=None):
    guestlist = GuestlistPass(
        event_id=event.id,
        lead_name='Sam Lead',
        lead_email='sam@example.com',
        total_tickets=total_tickets,
        remaining_scans=total_tickets if remaining is None else remaining,
        category=GuestlistCategory.GL,
        qr_code_data='{}',
        created_by='manager@test.com',
    )
    db.session.add(guestlist)
    db.session.commit()
    guestlist_id = guestlist.id
    db.session.expire_all()
    return db.session.get(GuestlistPass, guestlist_id)


@pytest.fixture
def sample_guestlist(app, sample_event):
    return make_guestlist(sample_event, total_tickets=3)
