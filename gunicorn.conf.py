"""
Gunicorn Configuration

Uvicorn workers serving freight_engine.main:app.
"""

import multiprocessing
import os

bind = os.getenv("BIND", "0.0.0.0:8000")
backlog = 2048

# Quotes are short CPU-bound requests; one worker per core plus one
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000
max_requests_jitter = 500
timeout = int(os.getenv("WORKER_TIMEOUT", 60))
keepalive = 5
graceful_timeout = 30

proc_name = "freight-engine-api"

errorlog = "-"
accesslog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")


def when_ready(server):
    server.log.info("Freight engine ready on %s with %s workers", bind, workers)


def worker_abort(worker):
    worker.log.warning("Worker %s aborted", worker.pid)
