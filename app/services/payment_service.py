"""
Payment service for LogiBill.
Applies payments to invoices, reverses them, and keeps the client running
balance and its ledger in step.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from flask import current_app
from sqlalchemy import func

from app.extensions import db
from app.models.client import Client
from app.models.invoices import Invoice, InvoiceStatus, OPEN_STATUSES
from app.models.ledger import LedgerEntry, LedgerEntryType
from app.models.payments import Payment, PaymentMethod
from app.services.concurrency import transactional
from app.services.exceptions import (
    ClientNotFoundError,
    InvalidAmountError,
    InvalidInputError,
    InvoiceAlreadyPaidError,
    InvoiceCancelledError,
    InvoiceNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
)
from app.utils.money import ZERO, has_cents_only, round2, to_decimal


@dataclass
class PaymentResult:
    payment: Payment
    invoice: Invoice


class PaymentService:
    """Service for recording and reversing invoice payments."""

    @staticmethod
    def parse_amount(amount: Any) -> Decimal:
        """
        Convert a payment amount to Decimal.

        Raises:
            InvalidAmountError: Not a number, not positive, or finer than a cent
        """
        try:
            value = to_decimal(amount)
        except (TypeError, ValueError):
            raise InvalidAmountError('Payment amount must be a number.', {'amount': repr(amount)})

        if not value.is_finite() or value <= 0:
            raise InvalidAmountError('Payment amount must be positive.', {'amount': str(amount)})
        if not has_cents_only(value):
            raise InvalidAmountError(
                'Payment amount cannot have more than 2 decimals.', {'amount': str(amount)}
            )
        return value

    @staticmethod
    def parse_method(payment_method: Union[PaymentMethod, str]) -> PaymentMethod:
        if isinstance(payment_method, PaymentMethod):
            return payment_method
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise InvalidInputError(
                f'Unknown payment method: {payment_method}',
                {'payment_method': payment_method, 'allowed': PaymentMethod.values()},
            )

    @staticmethod
    @transactional
    def record_payment(
        invoice_id: int,
        amount: Any,
        payment_method: Union[PaymentMethod, str],
        payment_date: Optional[date] = None,
        reference: Optional[str] = None,
        notes: Optional[str] = None
    ) -> PaymentResult:
        """
        Record a payment against an invoice.

        Checks run in this order: invoice exists, not cancelled, not already
        paid, amount positive, amount within what is due.

        Args:
            invoice_id: Invoice being paid
            amount: Amount received (at most 2 decimals)
            payment_method: cash, bank_transfer, check or card
            payment_date: Defaults to today
            reference: Bank reference or cheque number
            notes: Free text

        Returns:
            PaymentResult with the new payment and the updated invoice

        Raises:
            InvoiceNotFoundError, InvoiceCancelledError, InvoiceAlreadyPaidError,
            InvalidAmountError, OverpaymentError
        """
        invoice = db.session.get(Invoice, invoice_id, with_for_update=True)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceCancelledError('Cannot record payment for a cancelled invoice.')
        if invoice.status == InvoiceStatus.PAID:
            raise InvoiceAlreadyPaidError()

        value = PaymentService.parse_amount(amount)
        amount_due = to_decimal(invoice.amount_due)
        if value > amount_due:
            raise OverpaymentError(value, amount_due)

        method = PaymentService.parse_method(payment_method)
        payment_date = payment_date or date.today()

        payment = Payment(
            number=Payment.generate_number(payment_date),
            invoice_id=invoice.id,
            client_id=invoice.client_id,
            amount=value,
            payment_method=method,
            payment_date=payment_date,
            reference=reference,
            notes=notes,
        )
        db.session.add(payment)

        invoice.apply_payment(value)

        # Positive balance = credit received from the client
        Client.adjust_balance(invoice.client_id, value)
        db.session.flush()
        LedgerEntry.record(
            LedgerEntryType.PAYMENT,
            client_id=invoice.client_id,
            amount=value,
            invoice=invoice,
            payment=payment,
            details={'payment_method': method.value},
        )

        db.session.commit()

        current_app.logger.info(
            f"[PAYMENT] {payment.number}: {value} ({method.value}) on {invoice.number}, "
            f"due now {invoice.amount_due} ({invoice.status.value})"
        )
        return PaymentResult(payment=payment, invoice=invoice)

    @staticmethod
    @transactional
    def cancel_payment(payment_id: int) -> Invoice:
        """
        Reverse a payment and delete it.

        The invoice goes back to PENDING when nothing remains paid, otherwise
        to PARTIALLY_PAID. A ``payment_reversal`` ledger entry keeps a copy of
        the deleted payment.

        Raises:
            PaymentNotFoundError: Unknown payment
            InvoiceNotFoundError: Payment points to a missing invoice
            InvoiceCancelledError: Invoice was cancelled (its payments were
                already taken back from the balance)
        """
        payment = db.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)

        invoice = db.session.get(Invoice, payment.invoice_id, with_for_update=True)
        if invoice is None:
            raise InvoiceNotFoundError(payment.invoice_id)
        if invoice.status == InvoiceStatus.CANCELLED:
            raise InvoiceCancelledError('Cannot cancel a payment of a cancelled invoice.')

        amount = to_decimal(payment.amount)
        invoice.reverse_payment(amount)

        Client.adjust_balance(payment.client_id, -amount)
        LedgerEntry.record(
            LedgerEntryType.PAYMENT_REVERSAL,
            client_id=payment.client_id,
            amount=-amount,
            invoice=invoice,
            payment=payment,
            details={
                'payment_method': payment.payment_method.value,
                'payment_date': payment.payment_date.isoformat(),
                'reference': payment.reference,
            },
        )

        payment_number = payment.number
        db.session.delete(payment)
        db.session.commit()

        current_app.logger.info(
            f"[PAYMENT] {payment_number} cancelled: {amount} reversed on {invoice.number} "
            f"({invoice.status.value})"
        )
        return invoice

    @staticmethod
    def get_payment(payment_id: int) -> Payment:
        payment = db.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    @staticmethod
    def list_payments(
        client_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
        payment_method: Optional[PaymentMethod] = None
    ):
        """Build the payment listing query, newest first."""
        query = Payment.query
        if client_id is not None:
            query = query.filter(Payment.client_id == client_id)
        if invoice_id is not None:
            query = query.filter(Payment.invoice_id == invoice_id)
        if payment_method is not None:
            query = query.filter(Payment.payment_method == payment_method)
        return query.order_by(Payment.payment_date.desc(), Payment.id.desc())

    @staticmethod
    def get_invoice_payments(invoice_id: int) -> Dict[str, Any]:
        """
        Payment history of an invoice.

        Returns:
            Dict with ``payments`` (newest first) and their ``total``
        """
        if db.session.get(Invoice, invoice_id) is None:
            raise InvoiceNotFoundError(invoice_id)

        payments = PaymentService.list_payments(invoice_id=invoice_id).all()
        total = db.session.query(
            func.coalesce(func.sum(Payment.amount), 0)
        ).filter(Payment.invoice_id == invoice_id).scalar()

        return {'payments': payments, 'total': round2(total)}

    @staticmethod
    def get_client_payments(client_id: int) -> Dict[str, Any]:
        """Payment history of a client, newest first, with their total."""
        if db.session.get(Client, client_id) is None:
            raise ClientNotFoundError(client_id)

        payments = PaymentService.list_payments(client_id=client_id).all()
        total = sum((to_decimal(p.amount) for p in payments), ZERO)
        return {'payments': payments, 'total': round2(total)}

    @staticmethod
    def get_client_balance_summary(client_id: int) -> Dict[str, Any]:
        """
        Running balance and outstanding invoices of a client.

        Returns:
            Dict with ``account_balance``, ``total_pending`` (sum of amount_due
            over pending, partially paid and overdue invoices) and
            ``pending_invoices_count``

        Raises:
            ClientNotFoundError: Unknown client
        """
        client = db.session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(client_id)

        pending = Invoice.query.filter(
            Invoice.client_id == client_id,
            Invoice.status.in_(OPEN_STATUSES)
        ).all()

        return {
            'account_balance': round2(client.account_balance),
            'total_pending': round2(sum((to_decimal(i.amount_due) for i in pending), ZERO)),
            'pending_invoices_count': len(pending),
        }

    @staticmethod
    def get_client_ledger(client_id: int):
        """Ledger entries of a client, newest first."""
        if db.session.get(Client, client_id) is None:
            raise ClientNotFoundError(client_id)
        return LedgerEntry.query.filter_by(client_id=client_id).order_by(
            LedgerEntry.created_at.desc(), LedgerEntry.id.desc()
        )
