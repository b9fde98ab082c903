"""Gunicorn configuration for the member onboarding service."""

from __future__ import annotations

import multiprocessing
import os

wsgi_app = "member_onboarding.main:create_app()"

# Bind to the port assigned by the hosting platform (defaults to 8000 locally).
port = os.getenv("PORT", "8000")
bind = f"0.0.0.0:{port}"

# Workers share nothing; the members table's version column guards
# concurrent approvals.
workers = int(os.getenv("GUNICORN_WORKERS", max(2, multiprocessing.cpu_count() // 2 + 1)))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", "4"))
worker_tmp_dir = "/tmp"

# Identity provisioning calls an external API during payment completion
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
keepalive = int(os.getenv("GUNICORN_KEEPALIVE", "5"))

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
