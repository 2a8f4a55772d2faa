# =============================================================================
# LogiBill - Gunicorn Production Configuration
# =============================================================================
import os
import multiprocessing

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Workers: 2 * CPU + 1 (minimum 2, capped at 4 for small instances)
workers = int(os.environ.get('WEB_CONCURRENCY', min(multiprocessing.cpu_count() * 2 + 1, 4)))
threads = int(os.environ.get('GUNICORN_THREADS', 2))
worker_class = "gthread"

# Billing writes are short transactions; a slow request means a lock wait
timeout = 30
graceful_timeout = 30
keepalive = 5

# Logging (app logs are JSON on stdout, see app.configure_logging)
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(L)s rid=%({x-request-id}i)s'

# Worker lifecycle
max_requests = 1000
max_requests_jitter = 50

# JSON bodies only: keep request limits tight
limit_request_line = 4094
limit_request_fields = 50
limit_request_field_size = 8190

forwarded_allow_ips = "*"
