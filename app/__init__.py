"""
LogiBill Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import time
import uuid
from datetime import datetime, date, timezone

import click
from flask import Flask, jsonify, request, g

from app.config import config
from app.extensions import init_extensions, db


def _init_sentry(app):
    """Initialize Sentry error tracking for production."""
    dsn = app.config.get('SENTRY_DSN') or os.environ.get('SENTRY_DSN')
    if not dsn:
        app.logger.info('SENTRY_DSN not set, error tracking disabled.')
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration(), SqlalchemyIntegration()],
            traces_sample_rate=float(os.environ.get('SENTRY_TRACES_RATE', '0.1')),
            environment=os.environ.get('FLASK_ENV', 'production'),
            send_default_pii=False,
        )
        app.logger.info('Sentry error tracking initialized.')
    except ImportError:
        app.logger.warning('sentry-sdk not installed, error tracking disabled.')


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize Sentry (production only)
    if config_name == 'production':
        _init_sentry(app)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Enable response compression (gzip)
    from flask_compress import Compress
    Compress(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from app.blueprints.api import api_bp

    app.register_blueprint(api_bp, url_prefix='/api/v1')

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'}), 200


def register_error_handlers(app):
    """Register JSON error handlers for common HTTP errors."""

    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({'error': {'code': 'bad_request', 'message': 'Malformed request.'}}), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('check-overdue')
    @click.option('--date', 'as_of', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Evaluate as of this date (YYYY-MM-DD), default today')
    def check_overdue(as_of):
        """Mark every open invoice past its due date as overdue."""
        from app.services.invoice_service import InvoiceService

        today = as_of.date() if as_of else date.today()
        changed = InvoiceService.sweep_overdue(today)

        print(f"Overdue check as of {today.isoformat()}: {len(changed)} invoice(s) marked overdue.")
        for invoice in changed:
            print(f"  {invoice.number} due {invoice.due_date.isoformat()} ({invoice.amount_due} due)")

    @app.cli.command('seed-catalog')
    def seed_catalog_cmd():
        """Seed service types with default data (standard, express, international)."""
        from app.models.catalog import ServiceType, seed_service_types

        print("Seeding service types...")
        created = seed_service_types()
        print(f"Done! {created} created, {ServiceType.query.count()} service types available.")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])
        g.request_started = time.monotonic()

    if app.testing:
        return

    @app.after_request
    def log_request(response):
        elapsed_ms = int((time.monotonic() - g.get('request_started', time.monotonic())) * 1000)
        app.logger.info(
            '%s %s %s %dms',
            request.method,
            request.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    # Service modules log through their own loggers; route them to the app handlers
    services_logger = logging.getLogger('app.services')

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(logging.INFO)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(logging.INFO)
        services_logger.handlers.clear()
        services_logger.addHandler(stream_handler)
        services_logger.setLevel(logging.INFO)
        app.logger.info('LogiBill startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        services_logger.setLevel(logging.DEBUG)
        app.logger.info('LogiBill startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # JSON API: never framed
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Echo the request id so callers can correlate logs
        request_id = g.get('request_id')
        if request_id:
            response.headers['X-Request-ID'] = request_id

        return response
