"""
Rate table service for LogiBill.
Resolves the pricing rule that applies to a route on a given date and
guards the no-overlap invariant when rules are added.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import or_

from app.extensions import db
from app.models.catalog import ServiceType, Destination
from app.models.pricing import RateRule
from app.services.concurrency import transactional
from app.services.exceptions import (
    DestinationNotFoundError,
    InvalidAmountError,
    InvalidInputError,
    OverlappingRuleError,
    RateNotFoundError,
    RateRuleNotFoundError,
    ServiceTypeNotFoundError,
)
from app.utils.money import to_decimal


class RateService:
    """Service for querying and maintaining the route rate table."""

    @staticmethod
    def resolve_active_rate(
        service_type_id: int,
        destination_id: int,
        as_of: Optional[date] = None
    ) -> RateRule:
        """
        Find the single active rule whose window contains ``as_of``.

        Args:
            service_type_id: Service type of the route
            destination_id: Destination of the route
            as_of: Pricing date (default today). Window bounds are inclusive.

        Returns:
            The matching RateRule

        Raises:
            RateNotFoundError: If no active rule covers the date
        """
        as_of = as_of or date.today()

        rule = RateRule.query.filter(
            RateRule.service_type_id == service_type_id,
            RateRule.destination_id == destination_id,
            RateRule.is_active.is_(True),
            RateRule.effective_from <= as_of,
            or_(RateRule.effective_to.is_(None), RateRule.effective_to >= as_of)
        ).order_by(RateRule.effective_from.desc()).first()

        if rule is None:
            raise RateNotFoundError(service_type_id, destination_id, as_of)
        return rule

    @staticmethod
    def find_overlapping(
        service_type_id: int,
        destination_id: int,
        effective_from: date,
        effective_to: Optional[date] = None,
        exclude_id: Optional[int] = None
    ) -> Optional[RateRule]:
        """
        Return an active rule of the route intersecting [from, to], if any.

        An open ``effective_to`` on either side counts as infinitely far in
        the future.
        """
        query = RateRule.query.filter(
            RateRule.service_type_id == service_type_id,
            RateRule.destination_id == destination_id,
            RateRule.is_active.is_(True),
            or_(RateRule.effective_to.is_(None), RateRule.effective_to >= effective_from)
        )
        if effective_to is not None:
            query = query.filter(RateRule.effective_from <= effective_to)
        if exclude_id is not None:
            query = query.filter(RateRule.id != exclude_id)
        return query.order_by(RateRule.effective_from).first()

    @staticmethod
    def validate_rule(rule: RateRule) -> None:
        """
        Check amounts and window of a rule before insertion.

        Raises:
            InvalidInputError: Missing route or inverted window
            InvalidAmountError: Negative rate or minimum charge
        """
        if rule.service_type_id is None or rule.destination_id is None:
            raise InvalidInputError('A pricing rule needs a service type and a destination.')
        if rule.effective_from is None:
            raise InvalidInputError('effective_from is required.')
        if rule.effective_to is not None and rule.effective_to < rule.effective_from:
            raise InvalidInputError(
                'effective_to must be on or after effective_from.',
                {'effective_from': rule.effective_from.isoformat(),
                 'effective_to': rule.effective_to.isoformat()},
            )

        for field in ('base_rate', 'weight_rate', 'volume_rate', 'min_charge'):
            value = getattr(rule, field)
            if value is None or to_decimal(value) < 0:
                raise InvalidAmountError(f'{field} must be zero or positive.', {'field': field})

    @staticmethod
    @transactional
    def insert_rule(rule: RateRule) -> RateRule:
        """
        Add a pricing rule to the table.

        The service type row is locked for the duration of the check so two
        concurrent inserts on the same route cannot both pass it.

        Args:
            rule: Unsaved RateRule

        Returns:
            The persisted rule

        Raises:
            ServiceTypeNotFoundError / DestinationNotFoundError: Unknown route
            OverlappingRuleError: An active rule already covers part of the window
        """
        RateService.validate_rule(rule)

        service_type = db.session.get(ServiceType, rule.service_type_id, with_for_update=True)
        if service_type is None:
            raise ServiceTypeNotFoundError(rule.service_type_id)
        if db.session.get(Destination, rule.destination_id) is None:
            raise DestinationNotFoundError(rule.destination_id)

        if rule.is_active is None:
            rule.is_active = True

        # Inactive rules never compete for a window
        if rule.is_active:
            existing = RateService.find_overlapping(
                rule.service_type_id,
                rule.destination_id,
                rule.effective_from,
                rule.effective_to,
            )
            if existing is not None:
                raise OverlappingRuleError(existing.id)

        db.session.add(rule)
        db.session.commit()

        current_app.logger.info(
            f"[PRICING] Rule {rule.id} added for route "
            f"({rule.service_type_id}, {rule.destination_id}) from {rule.effective_from}"
        )
        return rule

    @staticmethod
    def get_rule(rule_id: int) -> RateRule:
        rule = db.session.get(RateRule, rule_id)
        if rule is None:
            raise RateRuleNotFoundError(rule_id)
        return rule

    @staticmethod
    def list_rules(
        service_type_id: Optional[int] = None,
        destination_id: Optional[int] = None,
        active_only: bool = False
    ):
        """Build the rule listing query, newest window first."""
        query = RateRule.query
        if service_type_id is not None:
            query = query.filter(RateRule.service_type_id == service_type_id)
        if destination_id is not None:
            query = query.filter(RateRule.destination_id == destination_id)
        if active_only:
            query = query.filter(RateRule.is_active.is_(True))
        return query.order_by(RateRule.effective_from.desc(), RateRule.id.desc())

    @staticmethod
    @transactional
    def deactivate_rule(rule_id: int) -> RateRule:
        """Deactivate a rule, freeing its window for a replacement.

        Raises:
            RateRuleNotFoundError: Unknown rule
        """
        rule = db.session.get(RateRule, rule_id, with_for_update=True)
        if rule is None:
            raise RateRuleNotFoundError(rule_id)
        rule.is_active = False
        db.session.commit()

        current_app.logger.info(f"[PRICING] Rule {rule.id} deactivated")
        return rule

    @staticmethod
    def get_pricing_details(
        service_type_id: int,
        destination_id: int,
        as_of: Optional[date] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Active rule of a route together with its catalog entries.

        Returns:
            Dict with ``rule``, ``service_type``, ``destination`` and the
            effective ``multiplier``, or None when the route has no active rule
        """
        try:
            rule = RateService.resolve_active_rate(service_type_id, destination_id, as_of)
        except RateNotFoundError:
            return None

        service_type = db.session.get(ServiceType, service_type_id)
        return {
            'rule': rule,
            'service_type': service_type,
            'destination': db.session.get(Destination, destination_id),
            'multiplier': service_type.multiplier if service_type is not None else Decimal('1'),
        }
