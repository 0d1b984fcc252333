"""
Gunicorn configuration for the Culture Tracker API.

    gunicorn -c gunicorn.conf.py culture_tracker.main:app

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Requests are short and mostly wait on the GitHub API.
workers = int(os.environ.get("WORKERS", "2"))
worker_class = "uvicorn.workers.UvicornWorker"

# A submit is two GitHub round-trips; REQUEST_TIMEOUT bounds each of them.
timeout = 60
graceful_timeout = 20
keepalive = 5

# Stdout only; the platform captures it.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'
