# =============================================================================
# LogiBill - Price Calculator Tests
# =============================================================================

import pytest
from datetime import date
from decimal import Decimal

from app.extensions import db
from app.models.pricing import RateRule
from app.models.shipment import Shipment
from app.services.exceptions import (
    InvalidInputError,
    RateNotFoundError,
    ServiceTypeNotFoundError,
)
from app.services.pricing_service import PackageInput, PricingService


def _rate(base='10', weight='2', volume='5', minimum='15'):
    return RateRule(
        base_rate=Decimal(base),
        weight_rate=Decimal(weight),
        volume_rate=Decimal(volume),
        min_charge=Decimal(minimum),
    )


# =============================================================================
# calculate_price
# =============================================================================

class TestCalculatePrice:

    def test_components_and_total(self):
        """10 + (2 x 3kg x 2) + (5 x 0.5m3 x 2) = 10 + 12 + 5 = 27."""
        packages = [PackageInput(weight=Decimal('3'), volume=Decimal('0.5'), quantity=2)]
        result = PricingService.calculate_price(_rate(), packages)

        assert result.total_weight == Decimal('6')
        assert result.total_volume == Decimal('1.0')
        assert result.base_amount == Decimal('10.00')
        assert result.weight_amount == Decimal('12.00')
        assert result.volume_amount == Decimal('5.00')
        assert result.total_amount == Decimal('27.00')
        assert result.min_charge_applied is False

    def test_minimum_charge_floor(self):
        packages = [PackageInput(weight=Decimal('0.5'), volume=Decimal('0.1'))]
        result = PricingService.calculate_price(_rate(), packages)

        # 10 + 1 + 0.5 = 11.50 < 15
        assert result.total_amount == Decimal('15.00')
        assert result.min_charge_applied is True
        assert result.base_amount == Decimal('10.00')

    @pytest.mark.parametrize('weight, volume, quantity', [
        ('0', '0', 1),
        ('1.25', '0.3', 3),
        ('40', '2', 1),
        ('0.001', '0.001', 7),
    ])
    def test_total_never_below_minimum(self, weight, volume, quantity):
        packages = [PackageInput(weight=Decimal(weight), volume=Decimal(volume), quantity=quantity)]
        result = PricingService.calculate_price(_rate(), packages)
        assert result.total_amount >= Decimal('15.00')

    def test_service_multiplier_applies_to_base_only(self):
        packages = [PackageInput(weight=Decimal('10'), volume=Decimal('0'))]
        result = PricingService.calculate_price(_rate(), packages, Decimal('1.50'))

        assert result.base_amount == Decimal('15.00')
        assert result.weight_amount == Decimal('20.00')
        assert result.total_amount == Decimal('35.00')
        assert result.service_multiplier == Decimal('1.50')

    def test_components_rounded_independently(self):
        """Each half-cent line rounds up to 0.01 while the total 0.015 rounds to 0.02."""
        rate = _rate(base='0.005', weight='0.005', volume='0.005', minimum='0')
        packages = [PackageInput(weight=Decimal('1'), volume=Decimal('1'))]
        result = PricingService.calculate_price(rate, packages)

        assert result.base_amount == Decimal('0.01')
        assert result.weight_amount == Decimal('0.01')
        assert result.volume_amount == Decimal('0.01')
        assert result.total_amount == Decimal('0.02')

    def test_accepts_package_dicts(self):
        result = PricingService.calculate_price(_rate(), [{'weight': 5, 'volume': '0.2', 'quantity': 1}])
        assert result.total_amount == Decimal('21.00')


class TestPackageValidation:

    def test_empty_package_list(self):
        with pytest.raises(InvalidInputError):
            PricingService.calculate_price(_rate(), [])

    def test_negative_weight(self):
        with pytest.raises(InvalidInputError):
            PricingService.calculate_price(_rate(), [PackageInput(weight=Decimal('-1'), volume=Decimal('0'))])

    @pytest.mark.parametrize('quantity', [0, -2, 1.5, True])
    def test_bad_quantity(self, quantity):
        with pytest.raises(InvalidInputError):
            PricingService.calculate_price(
                _rate(), [PackageInput(weight=Decimal('1'), volume=Decimal('0'), quantity=quantity)]
            )


# =============================================================================
# calculate_shipment_price
# =============================================================================

class TestCalculateShipmentPrice:

    def test_uses_resolved_rate_and_multiplier(self, app, rate_rule, service_type, destination):
        service_type.multiplier = Decimal('2.00')
        db.session.commit()

        result = PricingService.calculate_shipment_price(
            service_type.id, destination.id,
            [PackageInput(weight=Decimal('2'), volume=Decimal('0'))],
            date(2025, 1, 1),
        )
        # 10 x 2 + 2 x 2 = 24
        assert result.total_amount == Decimal('24.00')

    def test_zero_multiplier_is_kept(self, app, rate_rule, service_type, destination):
        service_type.multiplier = Decimal('0.00')
        db.session.commit()

        result = PricingService.calculate_shipment_price(
            service_type.id, destination.id,
            [PackageInput(weight=Decimal('5'), volume=Decimal('0'))],
            date(2025, 1, 1),
        )
        # Base drops out entirely; 2 x 5 = 10 is then floored to 15
        assert result.base_amount == Decimal('0.00')
        assert result.service_multiplier == Decimal('0.00')
        assert result.total_amount == Decimal('15.00')

    def test_missing_rate_propagates(self, app, express_type, destination):
        with pytest.raises(RateNotFoundError):
            PricingService.calculate_shipment_price(
                express_type.id, destination.id,
                [PackageInput(weight=Decimal('1'), volume=Decimal('0'))],
            )

    def test_price_frozen_on_shipment(self, app, rate_rule, sample_client, make_shipment):
        shipment = db.session.get(Shipment, make_shipment(sample_client, total='0.00'))
        breakdown = PricingService.price_shipment(shipment, date(2025, 1, 1))
        db.session.commit()

        # 1 package: 1kg, 0.01m3 -> 10 + 2 + 0.05 = 12.05, floored to 15
        shipment = db.session.get(Shipment, shipment.id)
        assert breakdown.min_charge_applied is True
        assert shipment.total_amount == Decimal('15.00')
        assert shipment.weight_amount == Decimal('2.00')

        # Later rate changes never touch the frozen amount
        rate_rule.base_rate = Decimal('99')
        db.session.commit()
        assert db.session.get(Shipment, shipment.id).total_amount == Decimal('15.00')


# =============================================================================
# estimate_delivery_date
# =============================================================================

class TestEstimateDeliveryDate:

    def test_window_from_service_type(self, app, service_type):
        estimate = PricingService.estimate_delivery_date(service_type.id, date(2026, 1, 30))
        assert estimate.min_date == date(2026, 2, 2)
        assert estimate.max_date == date(2026, 2, 4)

    def test_unknown_service_type(self, app):
        with pytest.raises(ServiceTypeNotFoundError):
            PricingService.estimate_delivery_date(404)
