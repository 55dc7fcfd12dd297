"""User manager service routes."""
import logging

from flask import Blueprint, jsonify, request

from saas_identity.api import get_services, text
from saas_identity.core.credentials import RequestContext, context_from_header
from saas_identity.core.errors import NotFoundError, ProvisioningError, UpstreamFailure
from saas_identity.core.validators import shape_admin_user, shape_user, validate_user_name

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)


def _context() -> RequestContext:
    return context_from_header(request.headers.get("Authorization"))


def _error(message: str):
    return jsonify({"Error": message}), 400


# ─────────────────────────────────────────────────────────────────────────────
# Infrastructure
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/user/tables", methods=["DELETE"])
def delete_tables():
    """Start dropping the user, tenant, product and order tables.

    Answers before the drops finish; per-table failures are only logged.
    """
    get_services().users.delete_tables()
    return text("Initiated removal of DynamoDB Tables")


@bp.route("/user/tenants", methods=["DELETE"])
def delete_tenants():
    """Delete every tenant's pools, roles and policies."""
    logger.debug("Cleaning up Identity Reference Architecture")
    try:
        count = get_services().users.delete_infra()
    except ProvisioningError as e:
        logger.debug("Teardown failed: %s", e.message)
        return text(e.message, 400)

    logger.debug("%d Tenants with Infrastructure removed", count)
    return text("Success")


# ─────────────────────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/user/pool/<user_id>", methods=["GET"])
def get_user_pool(user_id: str):
    """User pool data for any user (system context)."""
    logger.debug("Looking up user pool data for: %s", user_id)
    try:
        record = get_services().users.get_pool_record(user_id)
    except NotFoundError:
        return _error("User not found")
    except ProvisioningError:
        return _error("Error getting user")
    return jsonify(record.to_item()), 200


@bp.route("/user/<user_id>", methods=["GET"])
def get_user(user_id: str):
    logger.debug("Getting user id: %s", user_id)
    try:
        user = get_services().users.get_user(_context(), user_id)
    except UpstreamFailure as e:
        if e.step == "get_user":
            return jsonify(f"Error looking up user: {user_id}"), 400
        return _error("Error getting user")
    except ProvisioningError:
        return _error("Error getting user")
    return jsonify(user), 200


@bp.route("/users", methods=["GET"])
def list_users():
    """Users of the caller's user pool."""
    try:
        users = get_services().users.list_users(_context())
    except ProvisioningError as e:
        return text(f"Error retrieving user list: {e.message}", 400)
    return jsonify(users), 200


# ─────────────────────────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/user", methods=["POST"])
def create_user():
    """Create a user in the caller's tenant."""
    try:
        ctx = _context()
        user = shape_user(request.get_json(silent=True))
        logger.debug("Creating user: %s", user["userName"])
        get_services().users.create_tenant_user(ctx, user)
    except NotFoundError:
        return _error("User pool not found")
    except ProvisioningError as e:
        logger.error("Error creating new user: %s", e.message)
        return _error("Error creating user")
    return jsonify({"status": "success"}), 200


@bp.route("/user/system", methods=["POST"])
def provision_system_admin():
    """Provision a system admin user with the system admin/user roles."""
    try:
        user = shape_admin_user(request.get_json(silent=True))
        result = get_services().users.provision_system_admin(user)
    except ProvisioningError as e:
        logger.error("Error provisioning system admin user: %s", e.message)
        return text("Error provisioning system admin user", 400)
    return jsonify(result.to_dict()), 200


@bp.route("/user/reg", methods=["POST"])
def provision_tenant_admin():
    """Provision a tenant admin user with the tenant admin/user roles."""
    try:
        user = shape_admin_user(request.get_json(silent=True))
        result = get_services().users.provision_tenant_admin(user)
    except ProvisioningError as e:
        logger.error("Error provisioning tenant admin user: %s", e.message)
        return text("Error provisioning tenant admin user", 400)
    return jsonify(result.to_dict()), 200


# ─────────────────────────────────────────────────────────────────────────────
# Updates
# ─────────────────────────────────────────────────────────────────────────────
def _set_enabled(enabled: bool):
    try:
        body = request.get_json(silent=True) or {}
        user_name = validate_user_name(body.get("userName", "") if isinstance(body, dict) else "")
        result = get_services().users.set_enabled(_context(), user_name, enabled)
    except ProvisioningError as e:
        logger.error("Error updating enabled status: %s", e.message)
        return text("Error enabling user" if enabled else "Error disabling user", 400)
    return jsonify(result), 200


@bp.route("/user/enable", methods=["PUT"])
def enable_user():
    return _set_enabled(True)


@bp.route("/user/disable", methods=["PUT"])
def disable_user():
    return _set_enabled(False)


@bp.route("/user", methods=["PUT"])
def update_user():
    """Update first/last name and role of a user in the caller's pool."""
    try:
        user = shape_user(request.get_json(silent=True))
        updated = get_services().users.update_user(_context(), user)
    except ProvisioningError as e:
        return text(f"Error updating user: {e.message}", 400)
    return jsonify(updated), 200


@bp.route("/user/<user_id>", methods=["DELETE"])
def delete_user(user_id: str):
    logger.debug("Deleting user: %s", user_id)
    try:
        get_services().users.delete_user(_context(), user_id)
    except NotFoundError:
        return text("User does not exist", 400)
    except ProvisioningError as e:
        logger.error("Error deleting user: %s", e.message)
        return _error("Error deleting user")
    return jsonify({"status": "success"}), 200
