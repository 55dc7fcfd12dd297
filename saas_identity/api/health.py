"""Health check endpoints."""
from typing import Iterable

from flask import Blueprint, jsonify

# service key -> (route, reported service name)
SERVICE_HEALTH = {
    "system": ("/sys/health", "System Registration"),
    "tenant": ("/reg/health", "Tenant Registration"),
    "user": ("/user/health", "User Manager"),
}


def create_health_blueprint(services: Iterable[str]) -> Blueprint:
    """Liveness routes for the services this process serves, plus /health and /ready."""
    bp = Blueprint("health", __name__)

    @bp.route("/health")
    def health_check():
        """Basic health check endpoint."""
        return ("ok", 200, {"Content-Type": "text/plain"})

    @bp.route("/ready")
    def readiness_check():
        return ("ready", 200, {"Content-Type": "text/plain"})

    for key in services:
        if key not in SERVICE_HEALTH:
            continue
        path, service_name = SERVICE_HEALTH[key]

        def service_health(service_name=service_name):
            return jsonify({"service": service_name, "isAlive": True}), 200

        bp.add_url_rule(path, endpoint=f"{key}_health", view_func=service_health)

    return bp
