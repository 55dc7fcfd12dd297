"""System registration service: system-admin registration and full teardown."""
import logging

from flask import Blueprint, request

from saas_identity.api import get_services, text
from saas_identity.core.errors import AlreadyExistsError, ProvisioningError
from saas_identity.core.validators import shape_registration

logger = logging.getLogger(__name__)

bp = Blueprint("system_registration", __name__)


@bp.route("/sys/admin", methods=["POST"])
def register_system_admin():
    """Register a new system admin user."""
    try:
        payload = shape_registration(request.get_json(silent=True))
        tenant = get_services().registration.register_system_admin(payload)
    except AlreadyExistsError:
        logger.error("Error registering new system admin user")
        return text("Error registering new system admin user", 400)
    except ProvisioningError as e:
        logger.error("Error registering new system admin user: %s", e.message)
        return text(f"Error registering system admin user: {e.message}", 400)

    logger.debug("System admin user registered: %s", tenant.id)
    return text(f"System admin user {tenant.id} registered")


@bp.route("/sys/admin", methods=["DELETE"])
def remove_system():
    """Delete all tenant infrastructure through the user manager."""
    try:
        get_services().registration.delete_infra()
    except ProvisioningError as e:
        logger.error("Error removing system: %s", e.message)
        return text("Error removing system", 400)

    logger.debug("System Infrastructure & Tables removed")
    return text("System Infrastructure & Tables removed")
