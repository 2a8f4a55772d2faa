"""
Client model.
Only the fields the billing core reads or mutates live here; the client
subsystem owns the rest of the record.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import update

from app.extensions import db
from app.utils.money import to_decimal


class Client(db.Model):
    """Shipping customer with a running account balance."""
    __tablename__ = 'clients'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)  # CLT000001

    company_name = db.Column(db.String(200))
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(30))

    # Adresse
    street = db.Column(db.String(200))
    city = db.Column(db.String(100))
    postal_code = db.Column(db.String(20))
    country = db.Column(db.String(100))

    # Running credit counter: + payments, - reversals and refunded cancellations.
    # Invoice.amount_due stays authoritative for what is owed.
    account_balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0.00'))

    notes = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<Client {self.code} - {self.display_name}>'

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    @property
    def display_name(self):
        """Company name when set, person name otherwise."""
        return self.company_name or self.full_name

    @staticmethod
    def generate_code():
        """Generate unique client code: CLT000001"""
        last_client = Client.query.filter(
            Client.code.like('CLT%')
        ).order_by(Client.code.desc()).first()

        next_num = 1
        if last_client:
            try:
                next_num = int(last_client.code[3:]) + 1
            except ValueError:
                next_num = Client.query.count() + 1

        return f'CLT{next_num:06d}'

    @staticmethod
    def adjust_balance(client_id, delta):
        """Atomically add ``delta`` to the stored balance.

        Runs as a single SQL ``UPDATE ... SET account_balance = account_balance + :delta``
        inside the caller's transaction, so concurrent adjustments never lose
        an increment. Returns the number of rows touched (0 when the client
        does not exist).
        """
        result = db.session.execute(
            update(Client)
            .where(Client.id == client_id)
            .values(
                account_balance=Client.account_balance + to_decimal(delta),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session='fetch')
        )
        return result.rowcount
