# =============================================================================
# BoxOffice - Inventory Ledger Tests
# =============================================================================

import pytest

from boxoffice.extensions import db, cache
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.services.event_service import EVENT_LIST_CACHE_KEY
from boxoffice.services.exceptions import InsufficientInventory, TierNotFound
from boxoffice.services.inventory import InventoryLedger


def _sold(tier_id):
    db.session.expire_all()
    return db.session.get(TicketTier, tier_id).sold_count


class TestCanPurchase:
    """Advisory availability check."""

    def test_within_capacity(self, sample_tier):
        assert InventoryLedger.can_purchase(sample_tier, 50)

    def test_over_capacity(self, sample_tier):
        sample_tier.sold_count = 49
        assert not InventoryLedger.can_purchase(sample_tier, 2)

    def test_inactive_tier(self, sample_tier):
        sample_tier.is_active = False
        assert not InventoryLedger.can_purchase(sample_tier, 1)

    def test_zero_quantity(self, sample_tier):
        assert not InventoryLedger.can_purchase(sample_tier, 0)


class TestReserve:
    """Guarded sold_count increments."""

    def test_repeated_reservations_accumulate(self, sample_tier):
        for _ in range(5):
            InventoryLedger.reserve(sample_tier.id, 3)
            db.session.commit()

        assert _sold(sample_tier.id) == 15

    def test_reserve_exactly_to_capacity(self, sample_tier):
        InventoryLedger.reserve(sample_tier.id, 50)
        db.session.commit()

        tier = db.session.get(TicketTier, sample_tier.id)
        assert _sold(tier.id) == 50
        assert db.session.get(TicketTier, tier.id).is_sold_out

    def test_oversell_refused(self, sample_tier):
        InventoryLedger.reserve(sample_tier.id, 48)
        db.session.commit()

        with pytest.raises(InsufficientInventory) as exc:
            InventoryLedger.reserve(sample_tier.id, 3)
        db.session.rollback()

        assert exc.value.remaining == 2
        assert exc.value.requested == 3
        assert _sold(sample_tier.id) == 48

    def test_inactive_tier_refused(self, sample_tier):
        sample_tier.is_active = False
        db.session.commit()

        with pytest.raises(InsufficientInventory):
            InventoryLedger.reserve(sample_tier.id, 1)

    def test_unknown_tier_refused(self, app):
        with pytest.raises(InsufficientInventory) as exc:
            InventoryLedger.reserve(9999, 1)
        assert exc.value.remaining is None

    def test_release_never_goes_negative(self, sample_tier):
        InventoryLedger.reserve(sample_tier.id, 2)
        db.session.commit()

        InventoryLedger.release(sample_tier.id, 5)
        db.session.commit()
        assert _sold(sample_tier.id) == 2

        InventoryLedger.release(sample_tier.id, 2)
        db.session.commit()
        assert _sold(sample_tier.id) == 0


class TestSetActive:
    """Switching tiers on and off."""

    def test_force_sold_out(self, sample_tier):
        tier = InventoryLedger.set_active(sample_tier.id, False)

        assert tier.is_active is False
        assert tier.is_sold_out

    def test_reactivate(self, sample_tier):
        InventoryLedger.set_active(sample_tier.id, False)
        tier = InventoryLedger.set_active(sample_tier.id, True)
        assert tier.is_active is True

    def test_drops_cached_listing(self, sample_tier):
        cache.set(EVENT_LIST_CACHE_KEY, ['stale'])
        InventoryLedger.set_active(sample_tier.id, False)
        assert cache.get(EVENT_LIST_CACHE_KEY) is None

    def test_unknown_tier(self, app):
        with pytest.raises(TierNotFound):
            InventoryLedger.set_active(9999, False)
