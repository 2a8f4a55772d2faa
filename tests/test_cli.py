# =============================================================================
# LogiBill - CLI Command Tests
# =============================================================================

from datetime import date

from app.extensions import db
from app.models.catalog import ServiceType
from app.models.invoices import Invoice, InvoiceStatus
from app.services.invoice_service import InvoiceService


class TestCheckOverdueCommand:

    def test_marks_past_due_invoices(self, app, runner, sample_client, make_shipment):
        late = InvoiceService.generate_invoice(sample_client.id, [make_shipment(sample_client)],
                                               issue_date=date(2026, 1, 1))
        fresh = InvoiceService.generate_invoice(sample_client.id, [make_shipment(sample_client)],
                                                issue_date=date(2026, 2, 25))
        late_id, fresh_id, late_number = late.id, fresh.id, late.number

        result = runner.invoke(args=['check-overdue', '--date', '2026-03-01'])

        assert result.exit_code == 0
        assert '1 invoice(s) marked overdue' in result.output
        assert late_number in result.output

        db.session.expire_all()
        assert db.session.get(Invoice, late_id).status == InvoiceStatus.OVERDUE
        assert db.session.get(Invoice, fresh_id).status == InvoiceStatus.PENDING

    def test_second_run_changes_nothing(self, app, runner, sample_client, make_shipment):
        InvoiceService.generate_invoice(sample_client.id, [make_shipment(sample_client)],
                                        issue_date=date(2026, 1, 1))
        runner.invoke(args=['check-overdue', '--date', '2026-03-01'])

        result = runner.invoke(args=['check-overdue', '--date', '2026-03-01'])
        assert result.exit_code == 0
        assert '0 invoice(s) marked overdue' in result.output

    def test_invalid_date_is_usage_error(self, app, runner):
        result = runner.invoke(args=['check-overdue', '--date', 'nope'])
        assert result.exit_code == 2
        assert "Invalid value for '--date'" in result.output


class TestSeedCatalogCommand:

    def test_seeds_service_types(self, app, runner):
        result = runner.invoke(args=['seed-catalog'])
        assert result.exit_code == 0
        assert '3 created' in result.output
        assert ServiceType.query.count() == 3

    def test_rerun_is_harmless(self, app, runner):
        runner.invoke(args=['seed-catalog'])
        result = runner.invoke(args=['seed-catalog'])
        assert '0 created, 3 service types available' in result.output
