# gunicorn -c gunicorn_config.py 'azure_sql_exporter.app:create_app()'
bind = "0.0.0.0:9104"
workers = 1  # !!!KEEP THIS AS 1: the gauge registry lives in the worker process
threads = 4  # Concurrent scrape requests share the registry under its lock
worker_class = "gthread"

loglevel = "info"
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr

# Timeout settings for client disconnects and stuck requests
timeout = 45      # Worker timeout - kills workers stuck on requests (should be > max scrape time)
keepalive = 2     # Keep-alive for HTTP connections
graceful_timeout = 30  # Graceful shutdown timeout

# Load the config in the master so a bad file stops the boot
# (set AZURE_SQL_EXPORTER_CONFIG to point at it)
preload_app = True

# Enable proper signal handling for Docker
enable_stdio_inheritance = True


def worker_timeout(worker):
    """Called when a worker times out (client disconnect or stuck database)."""
    import logging
    logging.warning(f"Worker {worker.pid} timed out - likely a stalled database connection")


def on_exit(server):
    """Called when the master process is exiting."""
    import logging
    logging.info("Gunicorn master process exiting")
