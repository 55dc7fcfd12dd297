"""HTTP blueprints for the registration and user manager services."""
from flask import current_app

EXTENSION_KEY = "saas_identity"


def get_services():
    """Service container attached to the running app by create_app()."""
    return current_app.extensions[EXTENSION_KEY]


def text(body: str, status: int = 200):
    return (body, status, {"Content-Type": "text/plain"})
