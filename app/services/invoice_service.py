"""
Invoice service for LogiBill.
Generates invoices from delivered shipments, cancels them and drives the
overdue part of the invoice lifecycle.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.orm.exc import StaleDataError

from app.extensions import db
from app.models.client import Client
from app.models.invoices import Invoice, InvoiceShipment, InvoiceStatus, OPEN_STATUSES
from app.models.ledger import LedgerEntry, LedgerEntryType
from app.models.shipment import Shipment, BILLABLE_STATUSES
from app.services.concurrency import transactional
from app.services.exceptions import (
    CannotCancelPaidInvoiceError,
    ClientNotFoundError,
    IneligibleShipmentsError,
    InvalidInputError,
    InvoiceCancelledError,
    InvoiceNotFoundError,
)
from app.utils.money import ZERO, round2, to_decimal

DEFAULT_TVA_RATE = Decimal('0.19')
DEFAULT_DUE_DAYS = 30


@dataclass(frozen=True)
class InvoiceTotals:
    amount_ht: Decimal
    tva_rate: Decimal
    tva_amount: Decimal
    total_ttc: Decimal


class InvoiceService:
    """Service for invoice generation and lifecycle."""

    @staticmethod
    def get_tva_rate() -> Decimal:
        return to_decimal(current_app.config.get('BILLING_TVA_RATE', DEFAULT_TVA_RATE))

    @staticmethod
    def calculate_invoice_totals(amount_ht: Any, tva_rate: Any = None) -> InvoiceTotals:
        """
        Compute TVA and TTC from a tax-exclusive amount.

        Both derived amounts are rounded to the cent (halves away from zero).

        Args:
            amount_ht: Tax-exclusive total
            tva_rate: Rate to apply (default: configured BILLING_TVA_RATE)
        """
        rate = to_decimal(tva_rate) if tva_rate is not None else InvoiceService.get_tva_rate()
        amount_ht = round2(amount_ht)
        tva_amount = round2(amount_ht * rate)
        total_ttc = round2(amount_ht + tva_amount)
        return InvoiceTotals(
            amount_ht=amount_ht,
            tva_rate=rate,
            tva_amount=tva_amount,
            total_ttc=total_ttc,
        )

    @staticmethod
    def _unique_ids(shipment_ids: Iterable[int]) -> List[int]:
        """Collapse duplicates, keeping first occurrence order."""
        seen = set()
        unique = []
        for shipment_id in shipment_ids or []:
            if shipment_id not in seen:
                seen.add(shipment_id)
                unique.append(shipment_id)
        return unique

    @staticmethod
    def list_billable_shipments(client_id: int):
        """
        Shipments of a client that can go on a new invoice, oldest first.

        Raises:
            ClientNotFoundError: Unknown client
        """
        if db.session.get(Client, client_id) is None:
            raise ClientNotFoundError(client_id)

        return Shipment.query.filter(
            Shipment.client_id == client_id,
            Shipment.status.in_(BILLABLE_STATUSES),
            Shipment.is_invoiced.is_(False)
        ).order_by(Shipment.created_at, Shipment.id)

    @staticmethod
    @transactional
    def generate_invoice(
        client_id: int,
        shipment_ids: Iterable[int],
        due_in_days: Optional[int] = None,
        notes: Optional[str] = None,
        issue_date: Optional[date] = None
    ) -> Invoice:
        """
        Bill a batch of a client's delivered shipments.

        Either every requested shipment is claimed and the invoice created,
        or nothing changes.

        Args:
            client_id: Client being invoiced
            shipment_ids: Shipments to bill, in invoice order
            due_in_days: Payment term (default BILLING_DEFAULT_DUE_DAYS)
            notes: Free text printed on the invoice
            issue_date: Defaults to today

        Returns:
            The PENDING invoice

        Raises:
            ClientNotFoundError: Unknown client
            IneligibleShipmentsError: Some ids are missing, not delivered or
                returned, already invoiced, or belong to another client
        """
        if due_in_days is None:
            due_in_days = current_app.config.get('BILLING_DEFAULT_DUE_DAYS', DEFAULT_DUE_DAYS)
        if isinstance(due_in_days, bool) or not isinstance(due_in_days, int) or due_in_days < 1:
            raise InvalidInputError('due_in_days must be a positive number of days.',
                                    {'due_in_days': due_in_days})

        client = db.session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)

        requested = InvoiceService._unique_ids(shipment_ids)
        if not requested:
            raise IneligibleShipmentsError([])

        eligible = Shipment.query.filter(
            Shipment.id.in_(requested),
            Shipment.client_id == client_id,
            Shipment.status.in_(BILLABLE_STATUSES),
            Shipment.is_invoiced.is_(False)
        ).with_for_update().all()

        if len(eligible) != len(requested):
            found = {s.id for s in eligible}
            raise IneligibleShipmentsError([sid for sid in requested if sid not in found])

        by_id = {s.id: s for s in eligible}
        ordered = [by_id[sid] for sid in requested]

        amount_ht = sum((to_decimal(s.total_amount) for s in ordered), ZERO)
        totals = InvoiceService.calculate_invoice_totals(amount_ht)

        issue_date = issue_date or date.today()
        invoice = Invoice(
            number=Invoice.generate_number(issue_date),
            client_id=client_id,
            status=InvoiceStatus.PENDING,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_in_days),
            notes=notes,
        )
        invoice.apply_totals(totals)
        invoice.shipment_links = [
            InvoiceShipment(shipment_id=s.id, position=position)
            for position, s in enumerate(ordered)
        ]
        db.session.add(invoice)
        db.session.flush()

        # Conditional claim: a shipment invoiced concurrently no longer matches
        claimed = db.session.execute(
            update(Shipment)
            .where(
                Shipment.id.in_(requested),
                Shipment.is_invoiced.is_(False)
            )
            .values(
                is_invoiced=True,
                invoice_id=invoice.id,
                version_id=Shipment.version_id + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if claimed != len(requested):
            raise StaleDataError(
                f"claimed {claimed} of {len(requested)} shipments for invoice {invoice.number}"
            )

        db.session.commit()

        current_app.logger.info(
            f"[INVOICE] {invoice.number} generated for client {client.code}: "
            f"{len(ordered)} shipment(s), HT {totals.amount_ht}, TTC {totals.total_ttc}"
        )
        return invoice

    @staticmethod
    @transactional
    def cancel_invoice(invoice_id: int) -> Invoice:
        """
        Cancel an unpaid or partially paid invoice.

        Money already received is taken back off the client balance and the
        shipments become billable again. The shipment list of the invoice is
        kept for history.

        Raises:
            InvoiceNotFoundError: Unknown invoice
            CannotCancelPaidInvoiceError: Invoice is PAID
            InvoiceCancelledError: Invoice is already CANCELLED
        """
        invoice = db.session.get(Invoice, invoice_id, with_for_update=True)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.status == InvoiceStatus.PAID:
            raise CannotCancelPaidInvoiceError()
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceCancelledError('Invoice is already cancelled.')

        refunded = to_decimal(invoice.amount_paid)
        if refunded > 0:
            Client.adjust_balance(invoice.client_id, -refunded)
            LedgerEntry.record(
                LedgerEntryType.INVOICE_CANCELLATION,
                client_id=invoice.client_id,
                amount=-refunded,
                invoice=invoice,
                details={'invoice_number': invoice.number},
            )

        invoice.status = InvoiceStatus.CANCELLED
        invoice.cancelled_at = datetime.utcnow()

        for shipment in Shipment.query.filter_by(invoice_id=invoice.id).all():
            shipment.is_invoiced = False
            shipment.invoice_id = None

        db.session.commit()

        current_app.logger.info(
            f"[INVOICE] {invoice.number} cancelled"
            f"{f', {refunded} taken back from client balance' if refunded > 0 else ''}"
        )
        return invoice

    @staticmethod
    def get_invoice(invoice_id: int) -> Invoice:
        """
        Raises:
            InvoiceNotFoundError: Unknown invoice
        """
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    @staticmethod
    @transactional
    def check_overdue(invoice_id: int, today: Optional[date] = None) -> bool:
        """Evaluate one invoice against its due date; persists an OVERDUE transition."""
        invoice = db.session.get(Invoice, invoice_id, with_for_update=True)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        was_overdue = invoice.status == InvoiceStatus.OVERDUE
        overdue = invoice.check_overdue(today)
        if overdue and not was_overdue:
            db.session.commit()
            current_app.logger.info(f"[INVOICE] {invoice.number} is now overdue (due {invoice.due_date})")
        return overdue

    @staticmethod
    @transactional
    def sweep_overdue(today: Optional[date] = None) -> List[Invoice]:
        """
        Mark every open invoice past its due date as OVERDUE.

        Returns:
            Invoices that changed status during this sweep
        """
        today = today or date.today()
        candidates = Invoice.query.filter(
            Invoice.status.in_((InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID)),
            Invoice.due_date < today
        ).order_by(Invoice.due_date).all()

        changed = [invoice for invoice in candidates if invoice.check_overdue(today)]
        db.session.commit()

        if changed:
            current_app.logger.info(f"[INVOICE] Overdue sweep: {len(changed)} invoice(s) marked overdue")
        return changed

    @staticmethod
    def list_invoices(
        client_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None
    ):
        """Build the invoice listing query, newest first."""
        query = Invoice.query
        if client_id is not None:
            query = query.filter(Invoice.client_id == client_id)
        if status is not None:
            query = query.filter(Invoice.status == status)
        return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc())

    @staticmethod
    def list_pending(client_id: Optional[int] = None):
        """Invoices still expecting money (pending, partially paid or overdue), oldest due first."""
        query = Invoice.query.filter(Invoice.status.in_(OPEN_STATUSES))
        if client_id is not None:
            query = query.filter(Invoice.client_id == client_id)
        return query.order_by(Invoice.due_date, Invoice.id)

    @staticmethod
    def list_overdue(today: Optional[date] = None, client_id: Optional[int] = None):
        """Open invoices past their due date, whether or not the sweep has run yet."""
        today = today or date.today()
        query = Invoice.query.filter(
            Invoice.status.in_(OPEN_STATUSES),
            Invoice.due_date < today
        )
        if client_id is not None:
            query = query.filter(Invoice.client_id == client_id)
        return query.order_by(Invoice.due_date, Invoice.id)
