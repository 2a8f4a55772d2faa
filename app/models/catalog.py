"""
Service catalog models: service types and destinations.
Together they form the pricing route (service type x destination).
"""
from datetime import datetime
from decimal import Decimal

from app.extensions import db


class ServiceType(db.Model):
    """Delivery service level (standard, express, international)."""
    __tablename__ = 'service_types'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(10), unique=True, nullable=False)      # STA, EXP, INT
    name = db.Column(db.String(50), unique=True, nullable=False)      # standard, express, international
    display_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    # Applied to the route base rate by the price calculator
    multiplier = db.Column(db.Numeric(6, 2), nullable=False, default=Decimal('1.00'))

    # Fenetre de livraison estimee (jours calendaires)
    min_delivery_days = db.Column(db.Integer, nullable=False, default=1)
    max_delivery_days = db.Column(db.Integer, nullable=False, default=1)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<ServiceType {self.code} x{self.multiplier}>'

    @property
    def delivery_time_display(self):
        if self.min_delivery_days == self.max_delivery_days:
            return f'{self.min_delivery_days} day(s)'
        return f'{self.min_delivery_days}-{self.max_delivery_days} days'


class Destination(db.Model):
    """Delivery destination (city within a zone)."""
    __tablename__ = 'destinations'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False, index=True)  # DZ-ALG
    city = db.Column(db.String(100), nullable=False)
    country = db.Column(db.String(100), nullable=False)
    zone = db.Column(db.String(50), nullable=False, index=True)
    postal_code_from = db.Column(db.String(20))
    postal_code_to = db.Column(db.String(20))

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Destination {self.code}>'

    @property
    def display_name(self):
        return f'{self.city}, {self.country}'

    @staticmethod
    def generate_code(city, country):
        """Generate destination code from country and city: DZ-ALG, DZ-ALG-2, ..."""
        base_code = f'{country[:2].upper()}-{city[:3].upper()}'
        existing = Destination.query.filter(Destination.code.like(f'{base_code}%')).count()
        if existing == 0:
            return base_code
        return f'{base_code}-{existing + 1}'


SERVICE_TYPES_SEED = [
    {"code": "STA", "name": "standard", "display_name": "Standard", "multiplier": Decimal('1.00'),
     "min_delivery_days": 3, "max_delivery_days": 5,
     "description": "Livraison standard"},
    {"code": "EXP", "name": "express", "display_name": "Express", "multiplier": Decimal('1.50'),
     "min_delivery_days": 1, "max_delivery_days": 2,
     "description": "Livraison express sous 48h"},
    {"code": "INT", "name": "international", "display_name": "International", "multiplier": Decimal('2.00'),
     "min_delivery_days": 5, "max_delivery_days": 10,
     "description": "Livraison internationale"},
]


def seed_service_types():
    """Seed service_types table with default data. Returns the number of rows created."""
    created = 0
    for data in SERVICE_TYPES_SEED:
        existing = ServiceType.query.filter_by(name=data['name']).first()
        if not existing:
            db.session.add(ServiceType(**data))
            created += 1
    db.session.commit()
    return created
