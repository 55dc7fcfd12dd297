"""Tenant registration service."""
import logging

from flask import Blueprint, request

from saas_identity.api import get_services, text
from saas_identity.core.errors import AlreadyExistsError, ProvisioningError
from saas_identity.core.validators import shape_registration

logger = logging.getLogger(__name__)

bp = Blueprint("tenant_registration", __name__)


@bp.route("/reg", methods=["POST"])
def register_tenant():
    """Register a new tenant and provision its admin user."""
    try:
        payload = shape_registration(request.get_json(silent=True))
        tenant = get_services().registration.register_tenant(payload)
    except AlreadyExistsError:
        logger.error("Error registering new tenant")
        return text("Error registering new tenant", 400)
    except ProvisioningError as e:
        logger.error("Error registering new tenant: %s", e.message)
        return text(f"Error registering tenant: {e.message}", 400)

    logger.debug("Tenant registered: %s", tenant.id)
    return text(f"Tenant {tenant.id} registered")
