"""
Price calculator for LogiBill.
Turns package measurements and a resolved route rate into a price
breakdown, with a minimum-charge floor.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Union

from flask import current_app

from app.extensions import db
from app.models.catalog import ServiceType
from app.models.pricing import RateRule
from app.models.shipment import Shipment
from app.services.exceptions import InvalidInputError, ServiceTypeNotFoundError
from app.services.rate_service import RateService
from app.utils.money import ZERO, round2, to_decimal


@dataclass(frozen=True)
class PackageInput:
    """Measurements of one package line (weight in kg, volume in m3)."""
    weight: Decimal
    volume: Decimal
    quantity: int = 1
    description: Optional[str] = None

    @classmethod
    def from_value(cls, value: Union['PackageInput', Mapping[str, Any]]) -> 'PackageInput':
        if isinstance(value, PackageInput):
            return value
        try:
            return cls(
                weight=to_decimal(value.get('weight')),
                volume=to_decimal(value.get('volume')),
                quantity=value.get('quantity', 1),
                description=value.get('description'),
            )
        except (AttributeError, TypeError, ValueError):
            raise InvalidInputError('Invalid package definition.', {'package': repr(value)})


@dataclass(frozen=True)
class PriceBreakdown:
    """Immutable price of a shipment, frozen onto it at creation."""
    base_amount: Decimal
    weight_amount: Decimal
    volume_amount: Decimal
    total_amount: Decimal
    base_rate: Decimal
    weight_rate: Decimal
    volume_rate: Decimal
    total_weight: Decimal
    total_volume: Decimal
    service_multiplier: Decimal
    min_charge_applied: bool


@dataclass(frozen=True)
class DeliveryEstimate:
    min_date: date
    max_date: date


class PricingService:
    """Service for computing shipment prices."""

    @staticmethod
    def validate_packages(packages: Iterable[Any]) -> List[PackageInput]:
        """
        Normalize and check package lines.

        Raises:
            InvalidInputError: No package, negative measurement, or quantity below 1
        """
        items = [PackageInput.from_value(p) for p in (packages or [])]
        if not items:
            raise InvalidInputError('At least one package is required.')

        for index, item in enumerate(items):
            if item.weight < 0 or item.volume < 0:
                raise InvalidInputError(
                    'Package weight and volume must be zero or positive.',
                    {'package_index': index},
                )
            if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
                raise InvalidInputError(
                    'Package quantity must be a whole number of at least 1.',
                    {'package_index': index},
                )
        return items

    @staticmethod
    def calculate_price(
        rate: RateRule,
        packages: Iterable[Any],
        service_multiplier: Any = 1
    ) -> PriceBreakdown:
        """
        Price a set of packages against a rate.

        Each amount is rounded on its own, so the displayed lines may differ
        by a cent from the total.

        Args:
            rate: Resolved rule (base, per-kg, per-m3 rates and minimum charge)
            packages: Package lines
            service_multiplier: Applied to the base rate only

        Returns:
            PriceBreakdown with ``min_charge_applied`` set when the floor won
        """
        items = PricingService.validate_packages(packages)
        multiplier = to_decimal(service_multiplier)

        total_weight = sum((p.weight * p.quantity for p in items), ZERO)
        total_volume = sum((p.volume * p.quantity for p in items), ZERO)

        base_rate = to_decimal(rate.base_rate)
        weight_rate = to_decimal(rate.weight_rate)
        volume_rate = to_decimal(rate.volume_rate)
        min_charge = round2(rate.min_charge)

        base_amount = base_rate * multiplier
        weight_amount = total_weight * weight_rate
        volume_amount = total_volume * volume_rate
        subtotal = base_amount + weight_amount + volume_amount

        min_charge_applied = subtotal < min_charge
        total_amount = min_charge if min_charge_applied else subtotal

        return PriceBreakdown(
            base_amount=round2(base_amount),
            weight_amount=round2(weight_amount),
            volume_amount=round2(volume_amount),
            total_amount=round2(total_amount),
            base_rate=base_rate,
            weight_rate=weight_rate,
            volume_rate=volume_rate,
            total_weight=total_weight,
            total_volume=total_volume,
            service_multiplier=multiplier,
            min_charge_applied=min_charge_applied,
        )

    @staticmethod
    def calculate_shipment_price(
        service_type_id: int,
        destination_id: int,
        packages: Iterable[Any],
        as_of: Optional[date] = None
    ) -> PriceBreakdown:
        """
        Resolve the route rate and price the packages.

        A missing service type prices with a multiplier of 1.

        Raises:
            RateNotFoundError: No active rule for the route at ``as_of``
            InvalidInputError: Invalid packages
        """
        items = PricingService.validate_packages(packages)
        rate = RateService.resolve_active_rate(service_type_id, destination_id, as_of)

        service_type = db.session.get(ServiceType, service_type_id)
        multiplier = service_type.multiplier if service_type is not None else 1

        return PricingService.calculate_price(rate, items, multiplier)

    @staticmethod
    def price_shipment(shipment: Shipment, as_of: Optional[date] = None) -> PriceBreakdown:
        """Compute and freeze the price of a shipment from its packages (not committed)."""
        packages = [
            PackageInput(
                weight=to_decimal(p.weight),
                volume=to_decimal(p.volume),
                quantity=p.quantity,
                description=p.description,
            )
            for p in shipment.packages
        ]
        breakdown = PricingService.calculate_shipment_price(
            shipment.service_type_id, shipment.destination_id, packages, as_of
        )
        shipment.apply_price(breakdown)

        current_app.logger.debug(
            f"[PRICING] Shipment {shipment.number} priced at {breakdown.total_amount}"
            f"{' (minimum charge)' if breakdown.min_charge_applied else ''}"
        )
        return breakdown

    @staticmethod
    def estimate_delivery_date(
        service_type_id: int,
        pickup_date: Optional[date] = None
    ) -> DeliveryEstimate:
        """
        Earliest and latest delivery dates for a pickup.

        Raises:
            ServiceTypeNotFoundError: Unknown service type
        """
        service_type = db.session.get(ServiceType, service_type_id)
        if service_type is None:
            raise ServiceTypeNotFoundError(service_type_id)

        pickup_date = pickup_date or date.today()
        return DeliveryEstimate(
            min_date=pickup_date + timedelta(days=service_type.min_delivery_days),
            max_date=pickup_date + timedelta(days=service_type.max_delivery_days),
        )
