"""
API v1 Routes: pricing, price calculation, invoices, payments, client accounts.
Business errors raised by services are rendered by the blueprint error handlers.
"""
from flask import request, jsonify
from sqlalchemy.orm import joinedload

from app.blueprints.api import api_bp
from app.blueprints.api.helpers import (
    paginate_query, api_error, api_success, date_arg, flag_arg,
)
from app.blueprints.api.schemas import (
    BalanceSummarySchema,
    DeliveryEstimateSchema,
    GenerateInvoiceSchema,
    InvoiceDetailSchema,
    InvoiceSchema,
    LedgerEntrySchema,
    PaymentDetailSchema,
    PaymentHistorySchema,
    PaymentSchema,
    PriceBreakdownSchema,
    PriceRequestSchema,
    RateRuleDetailSchema,
    RateRuleInputSchema,
    RateRuleSchema,
    RecordPaymentSchema,
    ShipmentMinimalSchema,
)
from app.extensions import limiter
from app.models.invoices import InvoiceStatus
from app.models.payments import PaymentMethod
from app.models.pricing import RateRule
from app.services.exceptions import InvalidInputError
from app.services.invoice_service import InvoiceService
from app.services.payment_service import PaymentService
from app.services.pricing_service import PricingService
from app.services.rate_service import RateService


def _json_body():
    return request.get_json(silent=True) or {}


def _enum_arg(name, enum_cls):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise InvalidInputError(f'Invalid {name}: {raw}', {name: raw})


# ── Pricing rules ───────────────────────────────────────────

@api_bp.route('/pricing', methods=['GET'])
def api_list_rules():
    """List pricing rules.

    Query params:
        service_type_id (int), destination_id (int): Route filters
        active (bool): Only active rules
        page, per_page: Pagination
    """
    query = RateService.list_rules(
        service_type_id=request.args.get('service_type_id', type=int),
        destination_id=request.args.get('destination_id', type=int),
        active_only=flag_arg('active'),
    ).options(joinedload(RateRule.service_type), joinedload(RateRule.destination))

    return jsonify(paginate_query(query, RateRuleDetailSchema())), 200


@api_bp.route('/pricing', methods=['POST'])
@limiter.limit('30 per minute')
def api_create_rule():
    """Add a pricing rule; rejected when it overlaps an active rule of the route."""
    rule = RateRuleInputSchema().load(_json_body())
    rule = RateService.insert_rule(rule)
    return api_success(RateRuleSchema().dump(rule), 201)


@api_bp.route('/pricing/resolve', methods=['GET'])
def api_resolve_rate():
    """Active rule of a route at a date (default today), with the route expanded."""
    service_type_id = request.args.get('service_type_id', type=int)
    destination_id = request.args.get('destination_id', type=int)
    if service_type_id is None or destination_id is None:
        return api_error('validation_error',
                         'service_type_id and destination_id are required.', 400)

    rule = RateService.resolve_active_rate(service_type_id, destination_id, date_arg('as_of'))
    return api_success(RateRuleDetailSchema().dump(rule))


@api_bp.route('/pricing/<int:rule_id>', methods=['GET'])
def api_get_rule(rule_id):
    rule = RateService.get_rule(rule_id)
    return api_success(RateRuleDetailSchema().dump(rule))


@api_bp.route('/pricing/<int:rule_id>/deactivate', methods=['POST'])
@limiter.limit('30 per minute')
def api_deactivate_rule(rule_id):
    rule = RateService.deactivate_rule(rule_id)
    return api_success(RateRuleSchema().dump(rule))


# ── Price calculation ───────────────────────────────────────

@api_bp.route('/shipments/calculate-price', methods=['POST'])
def api_calculate_price():
    """Quote a shipment price from its route and packages."""
    data = PriceRequestSchema().load(_json_body())
    breakdown = PricingService.calculate_shipment_price(
        data['service_type_id'],
        data['destination_id'],
        data['packages'],
        data['as_of'],
    )
    return api_success(PriceBreakdownSchema().dump(breakdown))


@api_bp.route('/service-types/<int:service_type_id>/delivery-estimate', methods=['GET'])
def api_delivery_estimate(service_type_id):
    """Delivery window for a pickup date (query param pickup_date, default today)."""
    estimate = PricingService.estimate_delivery_date(service_type_id, date_arg('pickup_date'))
    return api_success(DeliveryEstimateSchema().dump(estimate))


# ── Invoices ────────────────────────────────────────────────

@api_bp.route('/invoices/generate', methods=['POST'])
@limiter.limit('30 per minute')
def api_generate_invoice():
    """Invoice a batch of delivered shipments of one client."""
    data = GenerateInvoiceSchema().load(_json_body())
    invoice = InvoiceService.generate_invoice(
        data['client_id'],
        data['shipment_ids'],
        due_in_days=data['due_in_days'],
        notes=data['notes'],
        issue_date=data['issue_date'],
    )
    return api_success(InvoiceSchema().dump(invoice), 201)


@api_bp.route('/invoices', methods=['GET'])
def api_list_invoices():
    """List invoices.

    Query params:
        client_id (int): Filter by client
        status (str): pending, partially_paid, paid, overdue, cancelled
        pending (bool): Only invoices still expecting money
        overdue (bool): Only open invoices past their due date
        page, per_page: Pagination
    """
    client_id = request.args.get('client_id', type=int)

    if flag_arg('overdue'):
        query = InvoiceService.list_overdue(client_id=client_id)
    elif flag_arg('pending'):
        query = InvoiceService.list_pending(client_id=client_id)
    else:
        query = InvoiceService.list_invoices(
            client_id=client_id,
            status=_enum_arg('status', InvoiceStatus),
        )

    return jsonify(paginate_query(query, InvoiceSchema())), 200


@api_bp.route('/invoices/<int:invoice_id>', methods=['GET'])
def api_get_invoice(invoice_id):
    """Get an invoice; ``expand=1`` nests client, shipments and payments."""
    invoice = InvoiceService.get_invoice(invoice_id)
    schema = InvoiceDetailSchema() if flag_arg('expand') else InvoiceSchema()
    return api_success(schema.dump(invoice))


@api_bp.route('/invoices/<int:invoice_id>', methods=['DELETE'])
@limiter.limit('30 per minute')
def api_cancel_invoice(invoice_id):
    """Cancel an invoice (the record is kept with status cancelled)."""
    invoice = InvoiceService.cancel_invoice(invoice_id)
    return api_success(InvoiceSchema().dump(invoice))


@api_bp.route('/invoices/<int:invoice_id>/check-overdue', methods=['POST'])
def api_check_overdue(invoice_id):
    overdue = InvoiceService.check_overdue(invoice_id, date_arg('today'))
    invoice = InvoiceService.get_invoice(invoice_id)
    return api_success({'overdue': overdue, 'invoice': InvoiceSchema().dump(invoice)})


@api_bp.route('/invoices/<int:invoice_id>/payments', methods=['GET'])
def api_invoice_payments(invoice_id):
    history = PaymentService.get_invoice_payments(invoice_id)
    return api_success(PaymentHistorySchema().dump(history))


@api_bp.route('/invoices/<int:invoice_id>/payments', methods=['POST'])
@limiter.limit('60 per minute')
def api_record_payment(invoice_id):
    """Record a payment against an invoice."""
    data = RecordPaymentSchema().load(_json_body())
    result = PaymentService.record_payment(
        invoice_id,
        data['amount'],
        data['payment_method'],
        payment_date=data['payment_date'],
        reference=data['reference'],
        notes=data['notes'],
    )
    return api_success({
        'payment': PaymentSchema().dump(result.payment),
        'invoice': InvoiceSchema().dump(result.invoice),
    }, 201)


# ── Payments ────────────────────────────────────────────────

@api_bp.route('/payments', methods=['GET'])
def api_list_payments():
    """List payments.

    Query params:
        client_id (int), invoice_id (int): Filters
        payment_method (str): cash, bank_transfer, check, card
        page, per_page: Pagination
    """
    query = PaymentService.list_payments(
        client_id=request.args.get('client_id', type=int),
        invoice_id=request.args.get('invoice_id', type=int),
        payment_method=_enum_arg('payment_method', PaymentMethod),
    )
    return jsonify(paginate_query(query, PaymentSchema())), 200


@api_bp.route('/payments/<int:payment_id>', methods=['GET'])
def api_get_payment(payment_id):
    payment = PaymentService.get_payment(payment_id)
    return api_success(PaymentDetailSchema().dump(payment))


@api_bp.route('/payments/<int:payment_id>', methods=['DELETE'])
@limiter.limit('30 per minute')
def api_cancel_payment(payment_id):
    """Reverse and delete a payment; returns the updated invoice."""
    invoice = PaymentService.cancel_payment(payment_id)
    return api_success(InvoiceSchema().dump(invoice))


# ── Client accounts ─────────────────────────────────────────

@api_bp.route('/clients/<int:client_id>/balance', methods=['GET'])
def api_client_balance(client_id):
    summary = PaymentService.get_client_balance_summary(client_id)
    return api_success(BalanceSummarySchema().dump(summary))


@api_bp.route('/clients/<int:client_id>/payments', methods=['GET'])
def api_client_payments(client_id):
    history = PaymentService.get_client_payments(client_id)
    return api_success(PaymentHistorySchema().dump(history))


@api_bp.route('/clients/<int:client_id>/billable-shipments', methods=['GET'])
def api_client_billable_shipments(client_id):
    """Delivered or returned shipments not yet invoiced, oldest first."""
    query = InvoiceService.list_billable_shipments(client_id)
    return jsonify(paginate_query(query, ShipmentMinimalSchema())), 200


@api_bp.route('/clients/<int:client_id>/ledger', methods=['GET'])
def api_client_ledger(client_id):
    query = PaymentService.get_client_ledger(client_id)
    return jsonify(paginate_query(query, LedgerEntrySchema())), 200
