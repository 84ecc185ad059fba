"""
Inventory ledger for ticket tiers.

sold_count only ever moves through the guarded UPDATE statements below, so
concurrent checkouts cannot push a tier past its capacity.
"""
import logging

from sqlalchemy import update

from boxoffice.extensions import db
from boxoffice.models.ticket_tier import TicketTier
from boxoffice.services.event_service import invalidate_event_cache
from boxoffice.services.exceptions import InsufficientInventory, TierNotFound

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Capacity checks and sold_count bookkeeping."""

    @staticmethod
    def can_purchase(tier: TicketTier, quantity: int) -> bool:
        """Advisory availability check. Not a reservation."""
        if tier is None or not tier.is_active or quantity < 1:
            return False
        return (tier.sold_count or 0) + quantity <= (tier.capacity or 0)

    @staticmethod
    def reserve(tier_id: int, quantity: int) -> None:
        """
        Atomically add quantity to a tier's sold_count.

        Runs inside the caller's transaction; the caller commits together
        with the order rows, or rolls everything back.

        Raises:
            InsufficientInventory: tier inactive, missing, or over capacity
        """
        if quantity < 1:
            raise InsufficientInventory(tier_id, quantity)

        result = db.session.execute(
            update(TicketTier)
            .where(
                TicketTier.id == tier_id,
                TicketTier.is_active.is_(True),
                TicketTier.sold_count + quantity <= TicketTier.capacity,
            )
            .values(sold_count=TicketTier.sold_count + quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            tier = db.session.get(TicketTier, tier_id)
            remaining = tier.remaining if tier else None
            logger.info(
                'Reservation refused for tier %s: requested %s, remaining %s',
                tier_id, quantity, remaining
            )
            raise InsufficientInventory(tier_id, quantity, remaining)

        logger.debug('Reserved %s ticket(s) on tier %s', quantity, tier_id)

    @staticmethod
    def release(tier_id: int, quantity: int) -> None:
        """Give quantity back to a tier (refunds). Never drops below zero."""
        db.session.execute(
            update(TicketTier)
            .where(TicketTier.id == tier_id, TicketTier.sold_count >= quantity)
            .values(sold_count=TicketTier.sold_count - quantity)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def set_active(tier_id: int, active: bool) -> TicketTier:
        """
        Switch a tier on or off ("force sold out").

        Inactive tiers are not sold and their tickets are refused at the door.
        """
        tier = db.session.get(TicketTier, tier_id)
        if tier is None:
            raise TierNotFound(f"Ticket tier {tier_id} not found")

        tier.is_active = bool(active)
        db.session.commit()
        invalidate_event_cache(tier.event_id)
        logger.info('Tier %s is_active set to %s', tier_id, tier.is_active)
        return tier
