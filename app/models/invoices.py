"""
Invoice models for LogiBill.
An invoice aggregates a client's delivered shipments, adds TVA and tracks
what has been paid against it.
"""
import enum
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP

from app.extensions import db
from app.utils.money import round2, to_decimal


class InvoiceStatus(enum.Enum):
    """Statuts de facture"""
    PENDING = "pending"                 # Emise, aucun paiement
    PARTIALLY_PAID = "partially_paid"   # Partiellement payee
    PAID = "paid"                       # Payee (terminal)
    OVERDUE = "overdue"                 # Echeance depassee
    CANCELLED = "cancelled"             # Annulee (terminal)


# Statuses that still expect money
OPEN_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE)


class Invoice(db.Model):
    """Client invoice built from a batch of shipments."""
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(20), unique=True, nullable=False, index=True)  # INV-202601-0001
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False, index=True)

    # === MONTANTS ===
    amount_ht = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tva_rate = db.Column(db.Numeric(5, 4), nullable=False, default=Decimal('0.19'))
    tva_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_ttc = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    amount_due = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # === STATUT / DATES ===
    status = db.Column(db.Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False, index=True)
    issue_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date, nullable=False)
    cancelled_at = db.Column(db.DateTime)

    notes = db.Column(db.Text)

    # Optimistic lock, bumped on every flush that touches the row
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    # === RELATIONS ===
    client = db.relationship('Client', backref=db.backref('invoices', lazy='dynamic'))
    shipment_links = db.relationship(
        'InvoiceShipment',
        backref='invoice',
        order_by='InvoiceShipment.position',
        cascade='all, delete-orphan',
    )
    shipments = db.relationship(
        'Shipment',
        secondary='invoice_shipments',
        order_by='InvoiceShipment.position',
        viewonly=True,
    )

    def __repr__(self):
        return f'<Invoice {self.number} - {self.total_ttc} ({self.status.value})>'

    @staticmethod
    def generate_number(issue_date=None):
        """Generate unique invoice number: INV-YYYYMM-NNNN"""
        issue_date = issue_date or date.today()
        prefix = f'INV-{issue_date:%Y%m}-'

        last_invoice = Invoice.query.filter(
            Invoice.number.like(f'{prefix}%')
        ).order_by(Invoice.number.desc()).first()

        if last_invoice:
            new_num = int(last_invoice.number.rsplit('-', 1)[1]) + 1
        else:
            new_num = 1

        return f'{prefix}{new_num:04d}'

    @property
    def shipment_ids(self):
        """Shipment ids in generation order (kept after cancellation)."""
        return [link.shipment_id for link in self.shipment_links]

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES

    @property
    def is_overdue(self):
        """Check if invoice is past its due date and still unpaid"""
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        return self.due_date is not None and date.today() > self.due_date

    @property
    def days_overdue(self):
        if not self.is_overdue:
            return 0
        return (date.today() - self.due_date).days

    @property
    def payment_progress(self):
        """Percentage of the TTC total already paid (100 for a zero total)."""
        total = to_decimal(self.total_ttc)
        if total <= 0:
            return 100
        ratio = to_decimal(self.amount_paid) / total * 100
        return int(ratio.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    def apply_totals(self, totals):
        """Copy computed totals onto a fresh invoice; nothing is paid yet."""
        self.amount_ht = totals.amount_ht
        self.tva_rate = totals.tva_rate
        self.tva_amount = totals.tva_amount
        self.total_ttc = totals.total_ttc
        self.amount_paid = Decimal('0.00')
        self.amount_due = totals.total_ttc

    def apply_payment(self, amount):
        """Add a payment. The caller has already checked it fits within amount_due."""
        self.amount_paid = round2(to_decimal(self.amount_paid) + to_decimal(amount))
        self.amount_due = round2(to_decimal(self.total_ttc) - self.amount_paid)

        if self.amount_due <= 0:
            self.amount_due = Decimal('0.00')
            self.status = InvoiceStatus.PAID
        else:
            self.status = InvoiceStatus.PARTIALLY_PAID

    def reverse_payment(self, amount):
        """Undo a payment. An invoice with nothing left paid goes back to PENDING."""
        self.amount_paid = round2(to_decimal(self.amount_paid) - to_decimal(amount))
        self.amount_due = round2(to_decimal(self.total_ttc) - self.amount_paid)

        if self.amount_paid <= 0:
            self.amount_paid = Decimal('0.00')
            self.status = InvoiceStatus.PENDING
        else:
            self.status = InvoiceStatus.PARTIALLY_PAID

    def check_overdue(self, today=None):
        """Mark OVERDUE when past due and unpaid. Returns True when overdue.

        Idempotent: calling it again on an OVERDUE invoice changes nothing.
        """
        today = today or date.today()
        if self.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            return False
        if self.due_date < today:
            self.status = InvoiceStatus.OVERDUE
            return True
        return False


class InvoiceShipment(db.Model):
    """Ordered link between an invoice and the shipments it bills"""
    __tablename__ = 'invoice_shipments'

    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey('shipments.id'), primary_key=True)
    position = db.Column(db.Integer, nullable=False)    # Ordre de la demande

    shipment = db.relationship('Shipment')

    def __repr__(self):
        return f'<InvoiceShipment {self.invoice_id}#{self.position} -> {self.shipment_id}>'
