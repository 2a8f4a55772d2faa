"""
API v1 Blueprint: JSON endpoints of the billing core.
Called by the back-office presentation layer.
"""
import os
from flask import Blueprint
from flask_cors import CORS

api_bp = Blueprint('api', __name__)

# Configure allowed origins via APP_CORS_ORIGINS env var (comma-separated)
_cors_origins = os.environ.get('APP_CORS_ORIGINS', 'http://localhost:5000,http://localhost:3000')
_allowed_origins = [o.strip() for o in _cors_origins.split(',') if o.strip()]

CORS(api_bp, resources={r"/*": {
    "origins": _allowed_origins,
    "methods": ["GET", "POST", "DELETE", "OPTIONS"],
    "allow_headers": ["Content-Type", "X-Request-ID"],
    "expose_headers": ["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "X-Request-ID"],
    "max_age": 600,
}})

from app.blueprints.api import errors, routes  # noqa: E402, F401
