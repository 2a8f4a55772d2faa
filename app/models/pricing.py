"""
Pricing rule model (rate table).
One rule prices one route (service type x destination) over an effective
date window. Rules are never edited in place to change prices: a new rule
with a later ``effective_from`` supersedes the old one.
"""
from datetime import datetime

from app.extensions import db


class RateRule(db.Model):
    """Time-bounded pricing rule for a route."""
    __tablename__ = 'pricing_rules'
    __table_args__ = (
        db.Index('ix_pricing_rules_route', 'service_type_id', 'destination_id'),
        db.Index('ix_pricing_rules_window', 'effective_from', 'effective_to'),
    )

    id = db.Column(db.Integer, primary_key=True)
    service_type_id = db.Column(db.Integer, db.ForeignKey('service_types.id'), nullable=False)
    destination_id = db.Column(db.Integer, db.ForeignKey('destinations.id'), nullable=False)

    # Tarifs
    base_rate = db.Column(db.Numeric(12, 4), nullable=False)     # Forfait par envoi
    weight_rate = db.Column(db.Numeric(12, 4), nullable=False)   # Par kg
    volume_rate = db.Column(db.Numeric(12, 4), nullable=False)   # Par m3
    min_charge = db.Column(db.Numeric(12, 2), nullable=False)    # Minimum facture

    # Fenetre d'application (bornes incluses, effective_to NULL = sans fin)
    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service_type = db.relationship('ServiceType', backref=db.backref('pricing_rules', lazy='dynamic'))
    destination = db.relationship('Destination', backref=db.backref('pricing_rules', lazy='dynamic'))

    def __repr__(self):
        end = self.effective_to.isoformat() if self.effective_to else 'open'
        return (
            f'<RateRule route=({self.service_type_id},{self.destination_id}) '
            f'{self.effective_from}..{end}>'
        )

    def covers(self, as_of):
        """True when ``as_of`` falls inside the effective window."""
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to

    def overlaps(self, start, end=None):
        """True when this rule's window intersects [start, end] (end None = open)."""
        if end is not None and end < self.effective_from:
            return False
        return self.effective_to is None or self.effective_to >= start
