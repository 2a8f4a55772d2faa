"""
Error handlers of the API blueprint.
Routes never translate business failures themselves; every BillingError
raised by a service ends up here.
"""
from flask import current_app
from marshmallow import ValidationError

from app.blueprints.api import api_bp
from app.blueprints.api.helpers import api_error
from app.services.exceptions import BillingError, ConflictError


@api_bp.errorhandler(BillingError)
def handle_billing_error(error):
    details = dict(error.details or {})
    if isinstance(error, ConflictError):
        details['retryable'] = True
    if error.http_status >= 500:
        current_app.logger.error(f"[API] {error.code}: {error.message}")
    else:
        current_app.logger.info(f"[API] {error.code}: {error.message}")
    return api_error(error.code, error.message, error.http_status, details or None)


@api_bp.errorhandler(ValidationError)
def handle_validation_error(error):
    return api_error('validation_error', 'Invalid request body.', 400, error.messages)
