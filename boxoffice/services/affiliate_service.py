"""
Affiliate service: societies, tracked links, clicks and conversions.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from boxoffice.extensions import db
from boxoffice.models.affiliate import (
    AffiliateSociety, AffiliateLink, AffiliateClick, AffiliateConversion,
)
from boxoffice.models.event import Event
from boxoffice.models.order import Order, OrderTicket, OrderStatus
from boxoffice.services.exceptions import (
    AffiliateNotFound, EventNotFound, DuplicateAffiliateCode,
)

logger = logging.getLogger(__name__)

SOCIETY_FIELDS = (
    'name', 'code', 'contact_name', 'contact_email', 'contact_phone',
    'university', 'society_type', 'commission_rate', 'is_active',
)


def calculate_commission(conversion_value: int, commission_rate) -> int:
    """Commission in minor units: value * rate / 100, rounded half up."""
    amount = Decimal(conversion_value) * Decimal(str(commission_rate)) / Decimal(100)
    return int(amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class AffiliateService:
    """Service for affiliate societies and referral tracking."""

    @staticmethod
    def get_society(society_id: int) -> AffiliateSociety:
        society = db.session.get(AffiliateSociety, society_id)
        if society is None:
            raise AffiliateNotFound(f"Society {society_id} not found")
        return society

    @staticmethod
    def create_society(data: Dict[str, Any]) -> AffiliateSociety:
        """
        Create a society. The code is stored upper-case and must be unique.

        Raises:
            DuplicateAffiliateCode: code already taken
        """
        fields = {k: v for k, v in data.items() if k in SOCIETY_FIELDS}
        fields['code'] = fields['code'].strip().upper()
        if AffiliateSociety.query.filter_by(code=fields['code']).first():
            raise DuplicateAffiliateCode(f"Society code {fields['code']} already exists")

        society = AffiliateSociety(**fields)
        db.session.add(society)
        db.session.commit()
        logger.info('Affiliate society created: %s', society.code)
        return society

    @staticmethod
    def update_society(society_id: int, data: Dict[str, Any]) -> AffiliateSociety:
        society = AffiliateService.get_society(society_id)
        for field in SOCIETY_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == 'code':
                value = value.strip().upper()
                clash = AffiliateSociety.query.filter(
                    AffiliateSociety.code == value, AffiliateSociety.id != society.id
                ).first()
                if clash:
                    raise DuplicateAffiliateCode(f"Society code {value} already exists")
            setattr(society, field, value)
        db.session.commit()
        return society

    @staticmethod
    def delete_society(society_id: int) -> None:
        society = AffiliateService.get_society(society_id)
        db.session.delete(society)
        db.session.commit()
        logger.info('Affiliate society deleted: %s', society_id)

    @staticmethod
    def generate_links(society_ids: List[int], event_id: int) -> List[AffiliateLink]:
        """Create one tracked link per society for an event."""
        if db.session.get(Event, event_id) is None:
            raise EventNotFound(f"Event {event_id} not found")

        links = []
        for society_id in society_ids:
            society = AffiliateService.get_society(society_id)
            link = AffiliateLink(
                society_id=society.id,
                event_id=event_id,
                link_code=AffiliateLink.generate_code(society.code),
            )
            db.session.add(link)
            links.append(link)
        db.session.commit()
        logger.info('Generated %s affiliate link(s) for event %s', len(links), event_id)
        return links

    @staticmethod
    def get_link(link_code: str) -> Optional[AffiliateLink]:
        return AffiliateLink.query.filter_by(link_code=link_code).first()

    @staticmethod
    def record_click(link_code: str, ip_address: Optional[str] = None,
                     user_agent: Optional[str] = None, referrer: Optional[str] = None,
                     session_id: Optional[str] = None) -> Optional[AffiliateLink]:
        """
        Record a visit through a link.

        Returns:
            The link, or None when it is unknown or inactive (nothing recorded)
        """
        link = AffiliateService.get_link(link_code)
        if link is None or not link.is_active or not link.society.is_active:
            logger.info('Ignoring click on unknown or inactive link %s', link_code)
            return None

        db.session.add(AffiliateClick(
            link_id=link.id,
            ip_address=ip_address,
            user_agent=(user_agent or '')[:500] or None,
            referrer=(referrer or '')[:500] or None,
            session_id=session_id,
        ))
        db.session.commit()
        return link

    @staticmethod
    def record_conversion(link_code: str, order: Order) -> Optional[AffiliateConversion]:
        """
        Attribute an order to a link. One conversion per order.

        Returns None (and records nothing) for unknown or inactive links,
        links for another event, or orders already attributed.
        """
        link = AffiliateService.get_link(link_code)
        if link is None or not link.is_active:
            logger.info('No active affiliate link %s for order %s', link_code, order.id)
            return None
        if link.event_id != order.event_id:
            logger.info('Affiliate link %s is not for event %s', link_code, order.event_id)
            return None

        conversion = AffiliateConversion(
            link_id=link.id,
            order_id=order.id,
            conversion_value=order.total_amount,
            commission_earned=calculate_commission(order.total_amount, link.society.commission_rate),
        )
        db.session.add(conversion)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info('Order %s already has an affiliate conversion', order.id)
            return None

        logger.info('Affiliate conversion: order %s via %s (commission %s)',
                    order.id, link_code, conversion.commission_earned)
        return conversion

    @staticmethod
    def society_performance(society: AffiliateSociety) -> Dict[str, Any]:
        """Clicks, tickets sold, revenue and commission for one society."""
        link_ids = [link.id for link in society.links]
        if not link_ids:
            return {'clicks': 0, 'tickets_sold': 0, 'revenue': 0, 'commission': 0}

        clicks = db.session.query(func.count(AffiliateClick.id)).filter(
            AffiliateClick.link_id.in_(link_ids)
        ).scalar() or 0

        revenue, commission = db.session.query(
            func.coalesce(func.sum(AffiliateConversion.conversion_value), 0),
            func.coalesce(func.sum(AffiliateConversion.commission_earned), 0),
        ).join(Order, Order.id == AffiliateConversion.order_id).filter(
            AffiliateConversion.link_id.in_(link_ids),
            Order.status == OrderStatus.COMPLETED,
        ).one()

        tickets_sold = db.session.query(
            func.coalesce(func.sum(OrderTicket.quantity), 0)
        ).join(AffiliateConversion, AffiliateConversion.order_id == OrderTicket.order_id
               ).join(Order, Order.id == OrderTicket.order_id).filter(
            AffiliateConversion.link_id.in_(link_ids),
            Order.status == OrderStatus.COMPLETED,
        ).scalar() or 0

        return {
            'clicks': clicks,
            'tickets_sold': int(tickets_sold),
            'revenue': int(revenue),
            'commission': int(commission),
        }

    @staticmethod
    def get_stats() -> Dict[str, Any]:
        """Totals across all societies plus per-society performance."""
        societies = AffiliateSociety.query.order_by(AffiliateSociety.name).all()
        performance = []
        totals = {'total_clicks': 0, 'total_tickets_sold': 0, 'total_revenue': 0, 'total_commission': 0}
        for society in societies:
            perf = AffiliateService.society_performance(society)
            performance.append({'society': society, **perf})
            totals['total_clicks'] += perf['clicks']
            totals['total_tickets_sold'] += perf['tickets_sold']
            totals['total_revenue'] += perf['revenue']
            totals['total_commission'] += perf['commission']

        return {
            'total_societies': len(societies),
            **totals,
            'performance': performance,
        }
