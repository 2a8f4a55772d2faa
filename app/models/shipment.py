"""
Shipment models (billing-relevant part).
The shipment subsystem owns these records; the billing core prices them once
at creation time and later reads and flags them when invoicing.
"""
import enum
from datetime import datetime, date

from app.extensions import db


class ShipmentStatus(enum.Enum):
    """Statuts d'expedition"""
    PENDING = "pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    AT_SORTING_CENTER = "at_sorting_center"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY = "failed_delivery"
    RETURNED = "returned"
    CANCELLED = "cancelled"


# Only finished shipments can be billed
BILLABLE_STATUSES = (ShipmentStatus.DELIVERED, ShipmentStatus.RETURNED)


class Shipment(db.Model):
    """Shipment with its frozen price breakdown and invoicing flag."""
    __tablename__ = 'shipments'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(20), unique=True, nullable=False, index=True)  # SHP-20260115-0001

    client_id = db.Column(db.Integer, db.ForeignKey('clients.id'), nullable=False, index=True)
    service_type_id = db.Column(db.Integer, db.ForeignKey('service_types.id'), nullable=False)
    destination_id = db.Column(db.Integer, db.ForeignKey('destinations.id'), nullable=False)

    status = db.Column(db.Enum(ShipmentStatus), default=ShipmentStatus.PENDING, nullable=False, index=True)

    # Mesures totales (somme poids/volume x quantite)
    total_weight = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    total_volume = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    # Detail du prix fige a la creation
    base_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    weight_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    volume_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)  # HT

    # Facturation
    is_invoiced = db.Column(db.Boolean, default=False, nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id'), nullable=True, index=True)

    delivered_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)

    # Optimistic lock: concurrent invoice generations cannot both claim a row
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {'version_id_col': version_id}

    client = db.relationship('Client', backref=db.backref('shipments', lazy='dynamic'))
    service_type = db.relationship('ServiceType')
    destination = db.relationship('Destination')
    invoice = db.relationship('Invoice', foreign_keys=[invoice_id])
    packages = db.relationship(
        'ShipmentPackage',
        backref='shipment',
        cascade='all, delete-orphan',
        order_by='ShipmentPackage.id',
    )

    def __repr__(self):
        return f'<Shipment {self.number} {self.status.value if self.status else None}>'

    @property
    def is_billable(self):
        """Delivered or returned, and not yet on an invoice."""
        return self.status in BILLABLE_STATUSES and not self.is_invoiced

    def apply_price(self, breakdown):
        """Freeze a price breakdown onto the shipment (never recomputed later)."""
        self.total_weight = breakdown.total_weight
        self.total_volume = breakdown.total_volume
        self.base_amount = breakdown.base_amount
        self.weight_amount = breakdown.weight_amount
        self.volume_amount = breakdown.volume_amount
        self.total_amount = breakdown.total_amount

    @staticmethod
    def generate_number(on_date=None):
        """Generate unique shipment number: SHP-YYYYMMDD-NNNN"""
        on_date = on_date or date.today()
        prefix = f'SHP-{on_date:%Y%m%d}-'
        last = Shipment.query.filter(
            Shipment.number.like(f'{prefix}%')
        ).order_by(Shipment.number.desc()).first()

        next_num = int(last.number.rsplit('-', 1)[1]) + 1 if last else 1
        return f'{prefix}{next_num:04d}'


class ShipmentPackage(db.Model):
    """Colis d'une expedition"""
    __tablename__ = 'shipment_packages'

    id = db.Column(db.Integer, primary_key=True)
    shipment_id = db.Column(db.Integer, db.ForeignKey('shipments.id'), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    weight = db.Column(db.Numeric(10, 3), nullable=False)          # kg
    volume = db.Column(db.Numeric(10, 3), nullable=False)          # m3
    quantity = db.Column(db.Integer, nullable=False, default=1)
    declared_value = db.Column(db.Numeric(12, 2))

    def __repr__(self):
        return f'<ShipmentPackage {self.quantity} x {self.weight}kg>'
