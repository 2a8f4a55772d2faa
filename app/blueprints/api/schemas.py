"""
Marshmallow schemas for API serialization.
Dump schemas turn models into JSON-safe dictionaries (money as strings);
load schemas validate request bodies before they reach a service.
"""
from marshmallow import Schema, fields, post_load, validate

from app.models.payments import PaymentMethod
from app.models.pricing import RateRule
from app.services.pricing_service import PackageInput


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""

    def get_status(self, obj):
        return obj.status.value if obj.status else None


# ── Catalog / Client ────────────────────────────────────────

class ServiceTypeMinimalSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    code = fields.Str()
    name = fields.Str()
    display_name = fields.Str()
    multiplier = fields.Decimal(as_string=True)
    min_delivery_days = fields.Int()
    max_delivery_days = fields.Int()
    delivery_time_display = fields.Str(dump_only=True)


class DestinationMinimalSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    code = fields.Str()
    city = fields.Str()
    country = fields.Str()
    zone = fields.Str()


class ClientMinimalSchema(BaseSchema):
    """Minimal client reference (for nested use)."""
    id = fields.Int(dump_only=True)
    code = fields.Str()
    display_name = fields.Str(dump_only=True)
    email = fields.Str()


# ── Pricing ─────────────────────────────────────────────────

class RateRuleSchema(BaseSchema):
    """Pricing rule, ids only."""
    id = fields.Int(dump_only=True)
    service_type_id = fields.Int()
    destination_id = fields.Int()
    base_rate = fields.Decimal(as_string=True)
    weight_rate = fields.Decimal(as_string=True)
    volume_rate = fields.Decimal(as_string=True)
    min_charge = fields.Decimal(as_string=True)
    effective_from = fields.Date(format='iso')
    effective_to = fields.Date(format='iso', allow_none=True)
    is_active = fields.Bool()
    created_at = fields.DateTime(format='iso')


class RateRuleDetailSchema(RateRuleSchema):
    """Pricing rule with its route expanded."""
    service_type = fields.Nested(ServiceTypeMinimalSchema, dump_only=True)
    destination = fields.Nested(DestinationMinimalSchema, dump_only=True)


class RateRuleInputSchema(Schema):
    """Body of POST /pricing. Amount signs are checked by the service."""
    service_type_id = fields.Int(required=True, strict=True)
    destination_id = fields.Int(required=True, strict=True)
    base_rate = fields.Decimal(required=True)
    weight_rate = fields.Decimal(required=True)
    volume_rate = fields.Decimal(required=True)
    min_charge = fields.Decimal(required=True)
    effective_from = fields.Date(required=True)
    effective_to = fields.Date(load_default=None, allow_none=True)
    is_active = fields.Bool(load_default=True)

    @post_load
    def make_rule(self, data, **kwargs):
        return RateRule(**data)


class PackageInputSchema(Schema):
    weight = fields.Decimal(required=True)
    volume = fields.Decimal(required=True)
    quantity = fields.Int(load_default=1, strict=True)
    description = fields.Str(load_default=None, allow_none=True)

    @post_load
    def make_package(self, data, **kwargs):
        return PackageInput(**data)


class PriceRequestSchema(Schema):
    """Body of POST /shipments/calculate-price."""
    service_type_id = fields.Int(required=True, strict=True)
    destination_id = fields.Int(required=True, strict=True)
    packages = fields.List(
        fields.Nested(PackageInputSchema), required=True, validate=validate.Length(min=1)
    )
    as_of = fields.Date(load_default=None, allow_none=True)


class PriceBreakdownSchema(Schema):
    base_amount = fields.Decimal(as_string=True)
    weight_amount = fields.Decimal(as_string=True)
    volume_amount = fields.Decimal(as_string=True)
    total_amount = fields.Decimal(as_string=True)
    min_charge_applied = fields.Bool()
    breakdown = fields.Method('get_breakdown')

    def get_breakdown(self, obj):
        return {
            'base_rate': str(obj.base_rate),
            'weight_rate': str(obj.weight_rate),
            'volume_rate': str(obj.volume_rate),
            'total_weight': str(obj.total_weight),
            'total_volume': str(obj.total_volume),
            'service_multiplier': str(obj.service_multiplier),
        }


class DeliveryEstimateSchema(Schema):
    min_date = fields.Date(format='iso')
    max_date = fields.Date(format='iso')


# ── Shipment ────────────────────────────────────────────────

class ShipmentMinimalSchema(BaseSchema):
    """Minimal shipment reference (invoice expansion)."""
    id = fields.Int(dump_only=True)
    number = fields.Str()
    status = fields.Method('get_status')
    total_weight = fields.Decimal(as_string=True)
    total_volume = fields.Decimal(as_string=True)
    total_amount = fields.Decimal(as_string=True)
    delivered_at = fields.DateTime(format='iso', allow_none=True)


# ── Invoice ─────────────────────────────────────────────────

class InvoiceSchema(BaseSchema):
    """Invoice, ids only."""
    id = fields.Int(dump_only=True)
    number = fields.Str()
    client_id = fields.Int()
    shipment_ids = fields.List(fields.Int(), dump_only=True)
    amount_ht = fields.Decimal(as_string=True)
    tva_rate = fields.Decimal(as_string=True)
    tva_amount = fields.Decimal(as_string=True)
    total_ttc = fields.Decimal(as_string=True)
    amount_paid = fields.Decimal(as_string=True)
    amount_due = fields.Decimal(as_string=True)
    payment_progress = fields.Int(dump_only=True)
    status = fields.Method('get_status')
    issue_date = fields.Date(format='iso')
    due_date = fields.Date(format='iso')
    notes = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')


class GenerateInvoiceSchema(Schema):
    """Body of POST /invoices/generate."""
    client_id = fields.Int(required=True, strict=True)
    shipment_ids = fields.List(fields.Int(strict=True), required=True)
    due_in_days = fields.Int(load_default=None, allow_none=True, strict=True,
                             validate=validate.Range(min=1))
    notes = fields.Str(load_default=None, allow_none=True)
    issue_date = fields.Date(load_default=None, allow_none=True)


# ── Payment ─────────────────────────────────────────────────

class PaymentSchema(BaseSchema):
    """Payment, ids only."""
    id = fields.Int(dump_only=True)
    number = fields.Str()
    invoice_id = fields.Int()
    client_id = fields.Int()
    amount = fields.Decimal(as_string=True)
    payment_method = fields.Method('get_payment_method')
    payment_date = fields.Date(format='iso')
    reference = fields.Str(allow_none=True)
    notes = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')

    def get_payment_method(self, obj):
        return obj.payment_method.value if obj.payment_method else None


class PaymentDetailSchema(PaymentSchema):
    """Payment with its invoice and client expanded."""
    invoice = fields.Nested(InvoiceSchema, dump_only=True,
                            only=('id', 'number', 'status', 'total_ttc', 'amount_due'))
    client = fields.Nested(ClientMinimalSchema, dump_only=True)


class RecordPaymentSchema(Schema):
    """Body of POST /invoices/<id>/payments."""
    amount = fields.Decimal(required=True)
    payment_method = fields.Enum(PaymentMethod, by_value=True, required=True)
    payment_date = fields.Date(load_default=None, allow_none=True)
    reference = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=100))
    notes = fields.Str(load_default=None, allow_none=True)


class InvoiceDetailSchema(InvoiceSchema):
    """Invoice with client, shipments and payments expanded."""
    client = fields.Nested(ClientMinimalSchema, dump_only=True)
    shipments = fields.List(fields.Nested(ShipmentMinimalSchema), dump_only=True)
    payments = fields.Method('get_payments')
    days_overdue = fields.Int(dump_only=True)
    cancelled_at = fields.DateTime(format='iso', allow_none=True)

    def get_payments(self, obj):
        return PaymentSchema(many=True).dump(obj.payments.all())


class PaymentHistorySchema(Schema):
    payments = fields.List(fields.Nested(PaymentSchema))
    total = fields.Decimal(as_string=True)


# ── Client account ──────────────────────────────────────────

class BalanceSummarySchema(Schema):
    account_balance = fields.Decimal(as_string=True)
    total_pending = fields.Decimal(as_string=True)
    pending_invoices_count = fields.Int()


class LedgerEntrySchema(BaseSchema):
    id = fields.Int(dump_only=True)
    entry_type = fields.Method('get_entry_type')
    amount = fields.Decimal(as_string=True)
    invoice_id = fields.Int(allow_none=True)
    payment_id = fields.Int(allow_none=True)
    payment_number = fields.Str(allow_none=True)
    details = fields.Dict(allow_none=True)
    created_at = fields.DateTime(format='iso')

    def get_entry_type(self, obj):
        return obj.entry_type.value
