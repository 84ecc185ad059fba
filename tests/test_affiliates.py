# =============================================================================
# BoxOffice - Affiliate Service Tests
# =============================================================================

import pytest
from decimal import Decimal

from boxoffice.models.affiliate import AffiliateClick, AffiliateConversion
from boxoffice.models.order import OrderStatus
from boxoffice.services.affiliate_service import AffiliateService, calculate_commission
from boxoffice.services.exceptions import (
    AffiliateNotFound, DuplicateAffiliateCode, EventNotFound,
)

from tests.conftest import make_order


@pytest.fixture
def society(app):
    return AffiliateService.create_society({
        'name': 'Economics Society',
        'code': 'econsoc',
        'commission_rate': Decimal('12.50'),
        'university': 'UCL',
    })


@pytest.fixture
def link(society, sample_event):
    return AffiliateService.generate_links([society.id], sample_event.id)[0]


class TestCommission:

    def test_rounds_half_up(self):
        assert calculate_commission(1000, Decimal('12.50')) == 125
        assert calculate_commission(1004, Decimal('12.50')) == 126
        assert calculate_commission(0, 10) == 0


class TestSocieties:
    """Society CRUD."""

    def test_code_stored_upper_case(self, society):
        assert society.code == 'ECONSOC'
        assert society.is_active

    def test_duplicate_code_refused(self, society):
        with pytest.raises(DuplicateAffiliateCode):
            AffiliateService.create_society({'name': 'Other', 'code': 'EconSoc', 'commission_rate': 5})

    def test_update(self, society):
        updated = AffiliateService.update_society(society.id, {'commission_rate': Decimal('15.00'),
                                                               'name': 'Econ'})
        assert updated.name == 'Econ'
        assert updated.commission_rate == Decimal('15.00')

    def test_update_to_taken_code(self, society):
        other = AffiliateService.create_society({'name': 'Law', 'code': 'LAW', 'commission_rate': 5})
        with pytest.raises(DuplicateAffiliateCode):
            AffiliateService.update_society(other.id, {'code': 'econsoc'})

    def test_delete_removes_links(self, society, link):
        society_id, link_code = society.id, link.link_code
        AffiliateService.delete_society(society_id)

        with pytest.raises(AffiliateNotFound):
            AffiliateService.get_society(society_id)
        assert AffiliateService.get_link(link_code) is None


class TestLinksAndClicks:
    """Link generation and click tracking."""

    def test_generate_links(self, society, sample_event):
        links = AffiliateService.generate_links([society.id], sample_event.id)

        assert len(links) == 1
        assert links[0].link_code.startswith('ECONSOC-')
        assert links[0].event_id == sample_event.id

    def test_generate_links_unknown_event(self, society):
        with pytest.raises(EventNotFound):
            AffiliateService.generate_links([society.id], 999)

    def test_record_click(self, link):
        result = AffiliateService.record_click(link.link_code, ip_address='10.0.0.1', user_agent='UA')

        assert result.id == link.id
        assert AffiliateClick.query.filter_by(link_id=link.id).count() == 1

    def test_unknown_link_ignored(self, app):
        assert AffiliateService.record_click('NOPE-00000000') is None
        assert AffiliateClick.query.count() == 0

    def test_inactive_society_ignored(self, society, link):
        AffiliateService.update_society(society.id, {'is_active': False})

        assert AffiliateService.record_click(link.link_code) is None


class TestConversions:
    """Order attribution."""

    def test_record_conversion(self, link, sample_event, sample_tier):
        order = make_order(sample_event, sample_tier, quantity=2)

        conversion = AffiliateService.record_conversion(link.link_code, order)

        assert conversion.conversion_value == 3000
        assert conversion.commission_earned == 375

    def test_one_conversion_per_order(self, link, completed_order):
        assert AffiliateService.record_conversion(link.link_code, completed_order) is not None
        assert AffiliateService.record_conversion(link.link_code, completed_order) is None
        assert AffiliateConversion.query.count() == 1

    def test_link_for_other_event_ignored(self, society, past_event, completed_order):
        other = AffiliateService.generate_links([society.id], past_event.id)[0]

        assert AffiliateService.record_conversion(other.link_code, completed_order) is None

    def test_stats(self, society, link, sample_event, sample_tier):
        AffiliateService.record_click(link.link_code)
        AffiliateService.record_click(link.link_code)
        AffiliateService.record_conversion(link.link_code, make_order(sample_event, sample_tier, quantity=2))
        refunded = make_order(sample_event, sample_tier, quantity=1, status=OrderStatus.REFUNDED)
        AffiliateService.record_conversion(link.link_code, refunded)

        stats = AffiliateService.get_stats()

        assert stats['total_societies'] == 1
        assert stats['total_clicks'] == 2
        assert stats['total_tickets_sold'] == 2
        assert stats['total_revenue'] == 3000
        assert stats['total_commission'] == 375
        assert stats['performance'][0]['society'].id == society.id

    def test_performance_without_links(self, society):
        assert AffiliateService.society_performance(society) == {
            'clicks': 0, 'tickets_sold': 0, 'revenue': 0, 'commission': 0,
        }
