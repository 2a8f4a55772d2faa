# =============================================================================
# LogiBill - Rate Table Tests
# =============================================================================

import pytest
from datetime import date
from decimal import Decimal

from app.extensions import db
from app.models.pricing import RateRule
from app.services.exceptions import (
    DestinationNotFoundError,
    InvalidAmountError,
    InvalidInputError,
    OverlappingRuleError,
    RateNotFoundError,
    RateRuleNotFoundError,
    ServiceTypeNotFoundError,
)
from app.services.rate_service import RateService


def _new_rule(service_type, destination, start, end=None, base='12.00', active=True):
    return RateRule(
        service_type_id=service_type.id,
        destination_id=destination.id,
        base_rate=Decimal(base),
        weight_rate=Decimal('2.50'),
        volume_rate=Decimal('4.00'),
        min_charge=Decimal('20.00'),
        effective_from=start,
        effective_to=end,
        is_active=active,
    )


# =============================================================================
# resolve_active_rate
# =============================================================================

class TestResolveActiveRate:

    def test_resolves_open_ended_rule(self, app, rate_rule, service_type, destination):
        rule = RateService.resolve_active_rate(service_type.id, destination.id, date(2025, 6, 1))
        assert rule.id == rate_rule.id

    def test_start_date_is_inclusive(self, app, rate_rule, service_type, destination):
        rule = RateService.resolve_active_rate(service_type.id, destination.id, date(2024, 1, 1))
        assert rule.id == rate_rule.id

    def test_before_start_raises(self, app, rate_rule, service_type, destination):
        with pytest.raises(RateNotFoundError) as exc_info:
            RateService.resolve_active_rate(service_type.id, destination.id, date(2023, 12, 31))
        assert exc_info.value.details['as_of'] == '2023-12-31'

    def test_inactive_rule_ignored(self, app, rate_rule, service_type, destination):
        rate_rule.is_active = False
        db.session.commit()
        with pytest.raises(RateNotFoundError):
            RateService.resolve_active_rate(service_type.id, destination.id, date(2025, 1, 1))

    def test_unknown_route_raises(self, app, rate_rule, express_type, destination):
        with pytest.raises(RateNotFoundError):
            RateService.resolve_active_rate(express_type.id, destination.id, date(2025, 1, 1))

    def test_superseding_rule_resolves_by_date(self, app, service_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1), date(2024, 12, 31), base='10.00'))
        RateService.insert_rule(_new_rule(service_type, destination, date(2025, 1, 1), base='11.00'))

        assert RateService.resolve_active_rate(service_type.id, destination.id, date(2024, 12, 31)).base_rate == Decimal('10.00')
        assert RateService.resolve_active_rate(service_type.id, destination.id, date(2025, 1, 1)).base_rate == Decimal('11.00')


# =============================================================================
# insert_rule
# =============================================================================

class TestInsertRule:

    def test_overlapping_insert_rejected(self, app, service_type, destination):
        """[2024-01-01, open) blocks any later window until it is closed."""
        first = RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1)))

        with pytest.raises(OverlappingRuleError) as exc_info:
            RateService.insert_rule(_new_rule(service_type, destination, date(2024, 6, 1)))
        assert exc_info.value.existing_rule_id == first.id
        assert RateRule.query.count() == 1

    def test_window_ending_before_existing_start_accepted(self, app, service_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 6, 1)))
        rule = RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1), date(2024, 5, 31)))
        assert rule.id is not None
        assert RateRule.query.count() == 2

    def test_touching_bound_overlaps(self, app, service_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1), date(2024, 6, 30)))
        with pytest.raises(OverlappingRuleError):
            RateService.insert_rule(_new_rule(service_type, destination, date(2024, 6, 30)))

    def test_other_route_does_not_conflict(self, app, service_type, express_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1)))
        rule = RateService.insert_rule(_new_rule(express_type, destination, date(2024, 1, 1)))
        assert rule.service_type_id == express_type.id

    def test_inactive_rule_skips_overlap_check(self, app, service_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1)))
        draft = RateService.insert_rule(_new_rule(service_type, destination, date(2024, 3, 1), active=False))
        assert draft.is_active is False

    def test_deactivation_frees_window(self, app, service_type, destination):
        old = RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1)))
        RateService.deactivate_rule(old.id)
        new = RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1), base='15.00'))
        assert RateService.resolve_active_rate(service_type.id, destination.id, date(2024, 2, 1)).id == new.id

    def test_negative_amount_rejected(self, app, service_type, destination):
        rule = _new_rule(service_type, destination, date(2024, 1, 1))
        rule.min_charge = Decimal('-1')
        with pytest.raises(InvalidAmountError):
            RateService.insert_rule(rule)

    def test_inverted_window_rejected(self, app, service_type, destination):
        with pytest.raises(InvalidInputError):
            RateService.insert_rule(_new_rule(service_type, destination, date(2024, 6, 1), date(2024, 1, 1)))

    def test_unknown_service_type(self, app, destination):
        rule = RateRule(
            service_type_id=999, destination_id=destination.id,
            base_rate=Decimal('1'), weight_rate=Decimal('1'), volume_rate=Decimal('1'),
            min_charge=Decimal('1'), effective_from=date(2024, 1, 1),
        )
        with pytest.raises(ServiceTypeNotFoundError):
            RateService.insert_rule(rule)

    def test_unknown_destination(self, app, service_type):
        rule = RateRule(
            service_type_id=service_type.id, destination_id=999,
            base_rate=Decimal('1'), weight_rate=Decimal('1'), volume_rate=Decimal('1'),
            min_charge=Decimal('1'), effective_from=date(2024, 1, 1),
        )
        with pytest.raises(DestinationNotFoundError):
            RateService.insert_rule(rule)


# =============================================================================
# Admin helpers
# =============================================================================

class TestRuleAdmin:

    def test_list_rules_filters(self, app, service_type, express_type, destination):
        RateService.insert_rule(_new_rule(service_type, destination, date(2024, 1, 1)))
        RateService.insert_rule(_new_rule(express_type, destination, date(2024, 1, 1)))
        assert RateService.list_rules(service_type_id=express_type.id).count() == 1
        assert RateService.list_rules().count() == 2

    def test_deactivate_unknown_rule(self, app):
        with pytest.raises(RateRuleNotFoundError) as exc_info:
            RateService.deactivate_rule(12345)
        assert exc_info.value.details == {'rule_id': 12345}

    def test_get_unknown_rule(self, app):
        with pytest.raises(RateRuleNotFoundError):
            RateService.get_rule(404)

    def test_pricing_details(self, app, rate_rule, express_type, service_type, destination):
        details = RateService.get_pricing_details(service_type.id, destination.id, date(2025, 1, 1))
        assert details['rule'].id == rate_rule.id
        assert details['destination'].code == 'DZ-ALG'
        assert details['multiplier'] == Decimal('1.00')

        assert RateService.get_pricing_details(express_type.id, destination.id) is None
