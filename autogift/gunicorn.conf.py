import multiprocessing
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", str(multiprocessing.cpu_count() + 1)))
# Scans fan out onto their own thread pool; keep request threads modest.
threads = int(os.environ.get("GUNICORN_THREADS", "2"))
# Must exceed AUTOGIFT_SCAN_TIMEOUT_SECONDS so the scan deadline fires first.
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "90"))
worker_class = os.environ.get("GUNICORN_WORKER_CLASS", "gthread")
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("GUNICORN_LOGLEVEL", "info")
