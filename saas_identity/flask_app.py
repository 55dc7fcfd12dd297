"""Flask application factory and bootstrap.

One factory serves all three services; SERVICES (or the `services` argument)
selects which blueprints a process registers, so the system registration,
tenant registration and user manager services can run as separate processes.
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from flask import Flask, request

from saas_identity.api import EXTENSION_KEY
from saas_identity.config import AppConfig, load_settings
from saas_identity.core.services import Services, build_services

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS, PUT, PATCH, DELETE",
    "Access-Control-Allow-Headers": (
        "Content-Type, Origin, X-Amz-Date, Authorization, X-Api-Key, X-Amz-Security-Token, "
        "Access-Control-Allow-Headers, X-Requested-With, Access-Control-Allow-Origin"
    ),
}


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    services: Optional[Iterable[str]] = None,
    cfg: Optional[AppConfig] = None,
    container: Optional[Services] = None,
) -> Flask:
    """Create and configure Flask application.

    Args:
        services: Blueprints to serve ("system", "tenant", "user"); defaults to cfg.services
        cfg: Preloaded configuration (load_settings() when omitted)
        container: Prebuilt service container (built from cfg when omitted)
    """
    cfg = cfg or load_settings()
    enabled = [name.lower() for name in (services or cfg.services)]

    _configure_logging(cfg)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode
    app.json.sort_keys = False
    app.extensions[EXTENSION_KEY] = container or build_services(cfg)

    # Register blueprints
    from saas_identity.api import errors
    from saas_identity.api.health import create_health_blueprint

    app.register_blueprint(create_health_blueprint(enabled))
    if "system" in enabled:
        from saas_identity.api import system_registration
        app.register_blueprint(system_registration.bp)
    if "tenant" in enabled:
        from saas_identity.api import tenant_registration
        app.register_blueprint(tenant_registration.bp)
    if "user" in enabled:
        from saas_identity.api import users
        app.register_blueprint(users.bp)

    # Register error handlers
    errors.register_error_handlers(app)

    # Register middleware
    _register_middleware(app)

    # Log startup info
    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print(f"[flask_app] Services: {', '.join(enabled) or 'none'}")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo credentials")

    return app


def _configure_logging(cfg: AppConfig) -> None:
    level = getattr(logging, cfg.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger("saas_identity").setLevel(level)
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))


def _register_middleware(app: Flask):
    """Register CORS and preflight handling."""

    @app.before_request
    def short_circuit_options():
        """Answer every preflight with 200 before routing."""
        if request.method == "OPTIONS":
            return ("", 200)
        return None

    @app.after_request
    def add_cors_headers(response):
        for header, value in CORS_HEADERS.items():
            response.headers[header] = value
        return response


# ─────────────────────────────────────────────────────────────────────────────
# Application Instance (for Gunicorn)
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
