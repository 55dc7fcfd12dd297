"""Gunicorn configuration.

Run one process per service:
    SERVICES=user gunicorn -c gunicorn.conf.py saas_identity.flask_app:app
    SERVICES=tenant PORT=3003 gunicorn -c gunicorn.conf.py saas_identity.flask_app:app
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '3001')}"
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "120"))
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """Log which services this worker serves and whether static AWS keys are configured."""
    services = os.environ.get("SERVICES", "system,tenant,user")
    worker.log.info(f"Worker serving services: {services}")

    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode:
        worker.log.warning("DEMO_MODE=true - demo defaults in use, do not deploy")

    from pathlib import Path
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("aws_*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} AWS secrets in /run/secrets")
            return
    worker.log.info("No AWS secrets mounted; boto3 default credential chain in use")
