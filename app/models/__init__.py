"""
SQLAlchemy models for LogiBill.
All models are imported here for easy access.
"""
from app.models.client import Client
from app.models.catalog import (
    ServiceType,
    Destination,
    SERVICE_TYPES_SEED,
    seed_service_types,
)
from app.models.pricing import RateRule
from app.models.shipment import (
    Shipment,
    ShipmentPackage,
    ShipmentStatus,
    BILLABLE_STATUSES,
)
from app.models.invoices import (
    Invoice,
    InvoiceShipment,
    InvoiceStatus,
    OPEN_STATUSES,
)
from app.models.payments import Payment, PaymentMethod
from app.models.ledger import LedgerEntry, LedgerEntryType

__all__ = [
    # Clients
    'Client',
    # Catalog
    'ServiceType',
    'Destination',
    'SERVICE_TYPES_SEED',
    'seed_service_types',
    # Pricing
    'RateRule',
    # Shipments
    'Shipment',
    'ShipmentPackage',
    'ShipmentStatus',
    'BILLABLE_STATUSES',
    # Invoices
    'Invoice',
    'InvoiceShipment',
    'InvoiceStatus',
    'OPEN_STATUSES',
    # Payments
    'Payment',
    'PaymentMethod',
    # Ledger
    'LedgerEntry',
    'LedgerEntryType',
]
