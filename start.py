#!/usr/bin/env python3
"""
Autoblog Service Entrypoint

This script determines which process to run based on the SERVICE_TYPE
environment variable.

SERVICE_TYPE values:
  - web (default): Run the FastAPI web server via gunicorn
  - worker: Run the content-generation and publishing worker pools
"""

import os
import sys

SERVICE_TYPE = os.environ.get("SERVICE_TYPE", "web")
PORT = os.environ.get("PORT", "4000")

print("=" * 50)
print(f"Autoblog Service: {SERVICE_TYPE}")
print("=" * 50)

if SERVICE_TYPE == "web":
    print("Starting web server (gunicorn)...")
    # Single process: in-process worker pools assume one owner per queue
    cmd = [
        "gunicorn", "autoblog.api.main:app",
        "--workers", "1",
        "--worker-class", "uvicorn.workers.UvicornWorker",
        "--bind", f"0.0.0.0:{PORT}",
        "--timeout", "900",
        "--graceful-timeout", "120"
    ]
elif SERVICE_TYPE == "worker":
    print("Starting worker pools (content-generation + publishing queues)...")
    cmd = ["python", "-m", "autoblog.jobs.run_worker", "--queues", "content-generation", "publishing"]
else:
    print(f"ERROR: Unknown SERVICE_TYPE: {SERVICE_TYPE}")
    print("Valid values: web, worker")
    sys.exit(1)

print(f"Running: {' '.join(cmd)}")
print("=" * 50)

# Replace this process with the actual command
os.execvp(cmd[0], cmd)
