import os, multiprocessing

wsgi_app = "config.wsgi:application"

def cpu():
    return max(1, (os.cpu_count() or multiprocessing.cpu_count() or 1))

# Worker processes
workers = min(max(2, cpu() * 2), 8)

# Threads per worker; handlers block on the gateway and the database
worker_class = "gthread"
threads = int(os.getenv("GTHREADS", "4"))

# Timeouts; keep above GATEWAY_TIMEOUT_SECS
timeout = int(os.getenv("GUNI_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNI_GRACEFUL_TIMEOUT", "30"))
keepalive = int(os.getenv("GUNI_KEEPALIVE", "5"))

# Robustness
preload_app = True
max_requests = int(os.getenv("GUNI_MAX_REQUESTS", "2000"))
max_requests_jitter = int(os.getenv("GUNI_MAX_REQUESTS_JITTER", "200"))

# Application logs are JSON (see LOGGING); gunicorn's own go to stdout/stderr
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNI_LOGLEVEL", "info")
