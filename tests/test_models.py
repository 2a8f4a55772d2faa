# =============================================================================
# LogiBill - Model Tests
# =============================================================================

import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.extensions import db
from app.models import (
    Client, Destination, Invoice, InvoiceStatus, Payment, RateRule,
    ServiceType, Shipment, ShipmentStatus, seed_service_types,
)


# =============================================================================
# Document numbers
# =============================================================================

class TestDocumentNumbers:

    def test_first_invoice_number_of_month(self, app):
        assert Invoice.generate_number(date(2026, 1, 15)) == 'INV-202601-0001'

    def test_invoice_number_increments(self, app, sample_client):
        db.session.add(Invoice(
            number='INV-202601-0007', client_id=sample_client.id,
            issue_date=date(2026, 1, 3), due_date=date(2026, 2, 2),
        ))
        db.session.commit()
        assert Invoice.generate_number(date(2026, 1, 20)) == 'INV-202601-0008'
        # Another month restarts the sequence
        assert Invoice.generate_number(date(2026, 2, 1)) == 'INV-202602-0001'

    def test_payment_number_format(self, app):
        assert Payment.generate_number(date(2026, 3, 9)) == 'PAY-20260309-0001'

    def test_shipment_number_format(self, app):
        assert Shipment.generate_number(date(2026, 3, 9)) == 'SHP-20260309-0001'

    def test_client_code_sequence(self, app, sample_client):
        assert Client.generate_code() == 'CLT000002'

    def test_destination_code(self, app, destination):
        assert Destination.generate_code('Oran', 'Dz') == 'DZ-ORA'
        assert Destination.generate_code('Alger', 'Dz') == 'DZ-ALG-2'


# =============================================================================
# RateRule windows
# =============================================================================

class TestRateRuleWindow:

    def _rule(self, start, end=None):
        return RateRule(
            base_rate=Decimal('1'), weight_rate=Decimal('1'), volume_rate=Decimal('1'),
            min_charge=Decimal('0'), effective_from=start, effective_to=end, is_active=True,
        )

    def test_covers_is_inclusive(self):
        rule = self._rule(date(2024, 1, 1), date(2024, 6, 30))
        assert rule.covers(date(2024, 1, 1))
        assert rule.covers(date(2024, 6, 30))
        assert not rule.covers(date(2023, 12, 31))
        assert not rule.covers(date(2024, 7, 1))

    def test_open_end_covers_far_future(self):
        rule = self._rule(date(2024, 1, 1))
        assert rule.covers(date(2099, 1, 1))

    def test_overlaps_touching_bounds(self):
        rule = self._rule(date(2024, 1, 1), date(2024, 6, 30))
        assert rule.overlaps(date(2024, 6, 30), date(2024, 12, 31))
        assert not rule.overlaps(date(2024, 7, 1), None)

    def test_open_rule_overlaps_any_later_window(self):
        rule = self._rule(date(2024, 1, 1))
        assert rule.overlaps(date(2030, 1, 1), date(2030, 1, 2))
        assert not rule.overlaps(date(2023, 1, 1), date(2023, 12, 31))


# =============================================================================
# Invoice state helpers
# =============================================================================

class TestInvoiceState:

    def _invoice(self, ttc='178.50', due=None, status=InvoiceStatus.PENDING):
        invoice = Invoice(
            number='INV-202601-0001', client_id=1, status=status,
            issue_date=date(2026, 1, 1), due_date=due or date(2026, 1, 31),
            total_ttc=Decimal(ttc), amount_paid=Decimal('0.00'), amount_due=Decimal(ttc),
        )
        return invoice

    def test_partial_then_full_payment(self):
        invoice = self._invoice()
        invoice.apply_payment(Decimal('78.50'))
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID
        assert invoice.amount_due == Decimal('100.00')

        invoice.apply_payment(Decimal('100.00'))
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_due == Decimal('0.00')

    def test_reverse_to_pending(self):
        invoice = self._invoice()
        invoice.apply_payment(Decimal('50.00'))
        invoice.reverse_payment(Decimal('50.00'))
        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.amount_paid == Decimal('0.00')
        assert invoice.amount_due == Decimal('178.50')

    def test_check_overdue_is_idempotent(self):
        invoice = self._invoice(due=date(2026, 1, 31))
        assert invoice.check_overdue(date(2026, 2, 1)) is True
        assert invoice.status == InvoiceStatus.OVERDUE
        assert invoice.check_overdue(date(2026, 2, 1)) is True
        assert invoice.status == InvoiceStatus.OVERDUE

    def test_not_overdue_on_due_date(self):
        invoice = self._invoice(due=date(2026, 1, 31))
        assert invoice.check_overdue(date(2026, 1, 31)) is False
        assert invoice.status == InvoiceStatus.PENDING

    @pytest.mark.parametrize('status', [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_terminal_states_never_overdue(self, status):
        invoice = self._invoice(status=status)
        assert invoice.check_overdue(date(2030, 1, 1)) is False
        assert invoice.status == status

    def test_payment_progress(self):
        invoice = self._invoice(ttc='200.00')
        invoice.apply_payment(Decimal('50.00'))
        assert invoice.payment_progress == 25

    def test_payment_progress_zero_total(self):
        assert self._invoice(ttc='0.00').payment_progress == 100


# =============================================================================
# Shipments & catalog
# =============================================================================

class TestShipment:

    @pytest.mark.parametrize('status, billable', [
        (ShipmentStatus.DELIVERED, True),
        (ShipmentStatus.RETURNED, True),
        (ShipmentStatus.IN_TRANSIT, False),
        (ShipmentStatus.FAILED_DELIVERY, False),
        (ShipmentStatus.CANCELLED, False),
    ])
    def test_billable_statuses(self, status, billable):
        shipment = Shipment(status=status, is_invoiced=False)
        assert shipment.is_billable is billable

    def test_invoiced_shipment_not_billable(self):
        shipment = Shipment(status=ShipmentStatus.DELIVERED, is_invoiced=True)
        assert shipment.is_billable is False


class TestCatalogSeed:

    def test_seed_creates_three_service_types(self, app):
        assert seed_service_types() == 3
        express = ServiceType.query.filter_by(name='express').one()
        assert express.multiplier == Decimal('1.50')
        assert express.delivery_time_display == '1-2 days'

    def test_seed_is_idempotent(self, app):
        seed_service_types()
        assert seed_service_types() == 0
        assert ServiceType.query.count() == 3
