"""
Services package for LogiBill.
Contains business logic separated from routes.
"""

from app.services.rate_service import RateService
from app.services.pricing_service import PricingService, PackageInput, PriceBreakdown
from app.services.invoice_service import InvoiceService, InvoiceTotals
from app.services.payment_service import PaymentService, PaymentResult

__all__ = [
    'RateService',
    'PricingService',
    'PackageInput',
    'PriceBreakdown',
    'InvoiceService',
    'InvoiceTotals',
    'PaymentService',
    'PaymentResult',
]
