"""
Transaction boundary for billing operations.

Each decorated operation runs as one database transaction. Lost races
(optimistic version mismatch, lock timeouts, duplicate document numbers)
roll back and replay the whole operation with exponential backoff; once the
retry budget is spent the caller gets a ``ConflictError``.
"""
import time
import logging
from functools import wraps

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from app.extensions import db
from app.services.exceptions import BillingError, ConflictError

logger = logging.getLogger(__name__)

# Retry configuration (overridable through app config)
MAX_RETRIES = 3
RETRY_BASE_DELAY = 0.05  # seconds

RETRYABLE_ERRORS = (StaleDataError, OperationalError, IntegrityError)


def transactional(fn):
    """Run ``fn`` as a single all-or-nothing unit with bounded conflict retries.

    Business errors (``BillingError``) roll back and propagate immediately;
    they are never retried.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        max_retries = max(1, current_app.config.get('BILLING_MAX_RETRIES', MAX_RETRIES))
        base_delay = current_app.config.get('BILLING_RETRY_DELAY', RETRY_BASE_DELAY)

        for attempt in range(1, max_retries + 1):
            try:
                return fn(*args, **kwargs)
            except BillingError:
                db.session.rollback()
                raise
            except RETRYABLE_ERRORS as e:
                db.session.rollback()
                if attempt < max_retries:
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.warning(
                        f"[BILLING] {fn.__name__}: attempt {attempt}/{max_retries} lost a race "
                        f"({type(e).__name__}), retry in {delay}s"
                    )
                    if delay:
                        time.sleep(delay)
                    continue
                logger.error(
                    f"[BILLING] {fn.__name__}: giving up after {max_retries} attempts "
                    f"({type(e).__name__}: {e})"
                )
                raise ConflictError() from e
            except Exception:
                db.session.rollback()
                raise

    return wrapper
