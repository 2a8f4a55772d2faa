"""
Client ledger: append-only trail of account balance mutations.
Payment rows are deleted when a payment is cancelled; the ledger keeps a
snapshot of what was reversed.
"""
import enum
from datetime import datetime

from flask import request, has_request_context

from app.extensions import db


class LedgerEntryType(enum.Enum):
    """Types de mouvement sur le solde client"""
    PAYMENT = "payment"                             # +montant
    PAYMENT_REVERSAL = "payment_reversal"           # -montant
    INVOICE_CANCELLATION = "invoice_cancellation"   # -montant deja paye


class LedgerEntry(db.Model):
    """One signed change to a client's account balance."""
    __tablename__ = 'ledger_entries'

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=True, index=True)

    # Snapshot only: the payment row may no longer exist
    payment_id = db.Column(db.Integer)
    payment_number = db.Column(db.String(20))

    entry_type = db.Column(db.Enum(LedgerEntryType), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)   # Signe: + credit, - debit
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    client = db.relationship('Client', backref=db.backref('ledger_entries', lazy='dynamic'))
    invoice = db.relationship('Invoice')

    def __repr__(self):
        return f'<LedgerEntry {self.entry_type.value} {self.amount} client={self.client_id}>'

    @staticmethod
    def record(entry_type, client_id, amount, invoice=None, payment=None, details=None):
        """Stage a ledger entry in the current session.

        The entry is committed together with the balance change it
        describes, never on its own.
        """
        entry = LedgerEntry(
            client_id=client_id,
            invoice_id=invoice.id if invoice is not None else None,
            payment_id=payment.id if payment is not None else None,
            payment_number=payment.number if payment is not None else None,
            entry_type=entry_type,
            amount=amount,
            details=details,
            ip_address=request.remote_addr if has_request_context() else None,
        )
        db.session.add(entry)
        return entry
