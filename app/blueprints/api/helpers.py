"""
API helper functions: pagination, request parsing, response builders.
"""
from datetime import date
from urllib.parse import urlencode

from flask import current_app, request, jsonify

from app.services.exceptions import InvalidInputError


def paginate_query(query, schema, default_per_page=None, max_per_page=100):
    """Apply offset-based pagination to a SQLAlchemy query.

    Query params:
        page (int): Page number (1-indexed, default 1)
        per_page (int): Items per page (default ITEMS_PER_PAGE, max 100)

    Other query params (filters) are carried over into the links.

    Returns:
        JSON-ready dict with data, meta, and links.
    """
    page = max(1, request.args.get('page', 1, type=int))
    if default_per_page is None:
        default_per_page = current_app.config.get('ITEMS_PER_PAGE', 20)
    per_page = request.args.get('per_page', default_per_page, type=int)
    per_page = max(1, min(per_page, max_per_page))

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)
    total_pages = pagination.pages or 1

    filters = {k: v for k, v in request.args.items() if k not in ('page', 'per_page')}

    def link(target_page):
        return f'{request.base_url}?{urlencode({**filters, "page": target_page, "per_page": per_page})}'

    links = {'self': link(page)}
    if pagination.has_next:
        links['next'] = link(page + 1)
    if pagination.has_prev:
        links['prev'] = link(page - 1)
    links['first'] = link(1)
    links['last'] = link(total_pages)

    return {
        'data': schema.dump(pagination.items, many=True),
        'meta': {
            'total': pagination.total,
            'page': page,
            'per_page': per_page,
            'total_pages': total_pages,
        },
        'links': links,
    }


def date_arg(name):
    """Read an optional ISO date from the query string."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidInputError(f'Invalid date for {name}: {raw}', {name: raw})


def flag_arg(name):
    """Truthy query flag: 1, true, yes."""
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


def api_error(code, message, status=400, details=None):
    """Build a standard API error response."""
    error_body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        error_body['error']['details'] = details
    return jsonify(error_body), status


def api_success(data, status=200):
    """Build a standard API success response."""
    return jsonify({'data': data}), status
