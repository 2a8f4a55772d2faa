"""
Payment model for LogiBill.
A payment settles part or all of one invoice; the client id is copied from
the invoice so client histories need no join.
"""
import enum
from datetime import datetime, date

from app.extensions import db


class PaymentMethod(enum.Enum):
    """Methodes de paiement acceptees"""
    CASH = "cash"                       # Especes
    BANK_TRANSFER = "bank_transfer"     # Virement
    CHECK = "check"                     # Cheque
    CARD = "card"                       # Carte bancaire

    @classmethod
    def values(cls):
        return [method.value for method in cls]


class Payment(db.Model):
    """Paiement enregistre sur une facture"""
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(20), unique=True, nullable=False, index=True)  # PAY-20260115-0001

    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.Enum(PaymentMethod), nullable=False)
    payment_date = db.Column(db.Date, nullable=False, default=date.today)
    reference = db.Column(db.String(100))              # Reference bancaire / numero de cheque
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    invoice = db.relationship(
        'Invoice',
        backref=db.backref('payments', lazy='dynamic', order_by='Payment.payment_date.desc()'),
    )
    client = db.relationship('Client', backref=db.backref('payments', lazy='dynamic'))

    def __repr__(self):
        return f'<Payment {self.number} - {self.amount} ({self.payment_method.value})>'

    @staticmethod
    def generate_number(payment_date=None):
        """Generate unique payment number: PAY-YYYYMMDD-NNNN"""
        payment_date = payment_date or date.today()
        prefix = f'PAY-{payment_date:%Y%m%d}-'

        last_payment = Payment.query.filter(
            Payment.number.like(f'{prefix}%')
        ).order_by(Payment.number.desc()).first()

        if last_payment:
            new_num = int(last_payment.number.rsplit('-', 1)[1]) + 1
        else:
            new_num = 1

        return f'{prefix}{new_num:04d}'
