# gunicornconf.py
# gunicorn -c gunicornconf.py "main:create_wsgi_app()"
#
# Request state lives in Redis, so workers share nothing and can be scaled
# freely. Callbacks and polls are short; the slowest call is the POST to the
# Verified ID request service, bounded by API_TIMEOUT.

workers = 5
worker_class = 'gevent'
worker_connections = 500   # browsers poll request-status every second or so
loglevel = 'info'

errorlog = "-"
accesslog = "-"

timeout = 60            # seconds, above API_TIMEOUT
graceful_timeout = 30   # seconds
keepalive = 5           # seconds, behind the load balancer
capture_output = True

# Environment variables (passed into workers)
raw_env = [
    "MYENV=aws",       # you can override this (aws, local)
    "FLASK_DEBUG=0",   # no debug in prod
    "API_TIMEOUT=30",
    "CACHE_EXPIRES_IN_SECONDS=300",
]
