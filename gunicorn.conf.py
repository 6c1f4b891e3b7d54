import os

bind = f"0.0.0.0:{os.getenv('PORT', 8000)}"
workers = int(os.getenv('WEB_CONCURRENCY', 2))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 1000
max_requests_jitter = 100

# Requests give up after REQUEST_TIMEOUT_SECONDS; leave the worker headroom past that
timeout = int(float(os.getenv('REQUEST_TIMEOUT_SECONDS', 10))) + 20
graceful_timeout = 30

loglevel = os.getenv('LOG_LEVEL', 'info').lower()
accesslog = "-"
errorlog = "-"
