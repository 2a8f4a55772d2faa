"""
Billing error taxonomy.

Every error carries a stable ``code`` and the HTTP status the API maps it to,
so routes never translate business failures one by one.
"""


class BillingError(Exception):
    """Base class for all billing core failures."""

    code = 'billing_error'
    http_status = 400
    default_message = 'Billing operation failed.'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {'code': self.code, 'message': self.message}
        if self.details:
            body['details'] = self.details
        return body


# ── NotFound ────────────────────────────────────────────────

class NotFoundError(BillingError):
    code = 'not_found'
    http_status = 404
    default_message = 'Resource not found.'


class ClientNotFoundError(NotFoundError):
    code = 'client_not_found'

    def __init__(self, client_id):
        self.client_id = client_id
        super().__init__(f'Client {client_id} not found.', {'client_id': client_id})


class InvoiceNotFoundError(NotFoundError):
    code = 'invoice_not_found'

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f'Invoice {invoice_id} not found.', {'invoice_id': invoice_id})


class PaymentNotFoundError(NotFoundError):
    code = 'payment_not_found'

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f'Payment {payment_id} not found.', {'payment_id': payment_id})


class RateNotFoundError(NotFoundError):
    """No active pricing rule covers the route at the requested date."""

    code = 'rate_not_found'

    def __init__(self, service_type_id, destination_id, as_of=None):
        self.service_type_id = service_type_id
        self.destination_id = destination_id
        self.as_of = as_of
        details = {'service_type_id': service_type_id, 'destination_id': destination_id}
        if as_of is not None:
            details['as_of'] = as_of.isoformat()
        super().__init__(
            'No active pricing found for this service type and destination combination.',
            details,
        )


class RateRuleNotFoundError(NotFoundError):
    code = 'rate_rule_not_found'

    def __init__(self, rule_id):
        self.rule_id = rule_id
        super().__init__(f'Pricing rule {rule_id} not found.', {'rule_id': rule_id})


class ServiceTypeNotFoundError(NotFoundError):
    code = 'service_type_not_found'

    def __init__(self, service_type_id):
        self.service_type_id = service_type_id
        super().__init__(
            f'Service type {service_type_id} not found.',
            {'service_type_id': service_type_id},
        )


class DestinationNotFoundError(NotFoundError):
    code = 'destination_not_found'

    def __init__(self, destination_id):
        self.destination_id = destination_id
        super().__init__(
            f'Destination {destination_id} not found.',
            {'destination_id': destination_id},
        )


# ── InvalidInput ────────────────────────────────────────────

class InvalidInputError(BillingError):
    code = 'invalid_input'
    http_status = 422
    default_message = 'Invalid input.'


class InvalidAmountError(InvalidInputError):
    code = 'invalid_amount'
    default_message = 'Amount must be positive.'


class IneligibleShipmentsError(InvalidInputError):
    """Some requested shipments are missing, not billable, or already invoiced."""

    code = 'ineligible_shipments'

    def __init__(self, shipment_ids):
        self.shipment_ids = list(shipment_ids)
        if self.shipment_ids:
            message = (
                'Some shipments are invalid or already invoiced: '
                + ', '.join(str(sid) for sid in self.shipment_ids)
            )
        else:
            message = 'No valid shipments found for invoicing.'
        super().__init__(message, {'shipment_ids': self.shipment_ids})


# ── StateConflict ───────────────────────────────────────────

class StateConflictError(BillingError):
    code = 'invalid_state'
    http_status = 409
    default_message = 'Operation not allowed in the current state.'


class OverpaymentError(StateConflictError):
    code = 'overpayment'

    def __init__(self, amount, amount_due):
        self.amount = amount
        self.amount_due = amount_due
        super().__init__(
            f'Payment amount ({amount}) exceeds amount due ({amount_due}).',
            {'amount': str(amount), 'amount_due': str(amount_due)},
        )


class InvoiceAlreadyPaidError(StateConflictError):
    code = 'invoice_already_paid'
    default_message = 'Invoice is already fully paid.'


class InvoiceCancelledError(StateConflictError):
    code = 'invoice_cancelled'
    default_message = 'Invoice is cancelled.'


class CannotCancelPaidInvoiceError(StateConflictError):
    code = 'cannot_cancel_paid_invoice'
    default_message = 'Cannot cancel a paid invoice.'


class OverlappingRuleError(StateConflictError):
    code = 'overlapping_rule'

    def __init__(self, existing_rule_id):
        self.existing_rule_id = existing_rule_id
        super().__init__(
            'Overlapping pricing exists for this route.',
            {'existing_rule_id': existing_rule_id},
        )


# ── Concurrency ─────────────────────────────────────────────

class ConflictError(BillingError):
    """A concurrent update won the race too many times; the caller may retry."""

    code = 'conflict'
    http_status = 409
    default_message = 'The resource was modified concurrently. Please retry.'
