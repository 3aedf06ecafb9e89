"""Gunicorn settings for serving the viewer with several uvicorn workers.

Run deploy/fetch_manifest.py first: every worker opens the cached file
read-only and none of them should have to download it.
"""

import os

worker_class = "uvicorn.workers.UvicornWorker"
workers = int(os.environ.get("MANIFEST_WORKERS", "2"))
bind = f"127.0.0.1:{os.environ.get('MANIFEST_PORT', '8000')}"
loglevel = os.environ.get("MANIFEST_LOG_LEVEL", "info")
