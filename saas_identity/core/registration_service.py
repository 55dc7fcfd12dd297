"""Tenant and system-admin registration.

Registration asks the user manager to provision the admin user and its
identity resources, then records the tenant with the returned identifiers.
"""
from __future__ import annotations
import logging
import uuid
from typing import Any, Callable, Dict

from ..config import AppConfig
from .aws.exceptions import RecordStoreError
from .aws.records import RecordStore
from .errors import AlreadyExistsError, PersistenceFailure, UpstreamFailure, ValidationError
from .models import SYSADMIN_PREFIX, STATUS_ACTIVE, TENANT_PREFIX, ProvisioningResult, TenantRecord
from .user_manager_client import UserManagerClient
from scripts import audit

logger = logging.getLogger(__name__)

PROVISION_PATHS = {
    TENANT_PREFIX: "reg",
    SYSADMIN_PREFIX: "system",
}


def generate_tenant_id(prefix: str) -> str:
    """`{prefix}` followed by a hyphen-free uuid4."""
    return prefix + uuid.uuid4().hex


class RegistrationService:
    """Registers tenants and system admins and triggers infrastructure teardown."""

    def __init__(self, cfg: AppConfig, user_manager: UserManagerClient, tenant_store: Callable[[], RecordStore]):
        self.cfg = cfg
        self.user_manager = user_manager
        self.tenant_store = tenant_store

    def register_tenant(self, payload: Dict[str, Any]) -> TenantRecord:
        return self.register(payload, TENANT_PREFIX, PROVISION_PATHS[TENANT_PREFIX])

    def register_system_admin(self, payload: Dict[str, Any]) -> TenantRecord:
        return self.register(payload, SYSADMIN_PREFIX, PROVISION_PATHS[SYSADMIN_PREFIX])

    def register(self, payload: Dict[str, Any], id_prefix: str, provision_path: str) -> TenantRecord:
        """Register a tenant whose admin is provisioned through /user/{provision_path}.

        Raises:
            AlreadyExistsError: the user manager already knows the user name
            UpstreamFailure: provisioning call failed or answered malformed data
            PersistenceFailure: the tenant record could not be written
        """
        tenant_id = generate_tenant_id(id_prefix)
        user_name = payload["userName"]
        logger.debug("Registering %s (admin %s)", tenant_id, user_name)

        if self.user_manager.user_exists(user_name):
            raise AlreadyExistsError(f"User already exists: {user_name}")

        admin = {
            "tenant_id": tenant_id,
            "companyName": payload.get("companyName", ""),
            "accountName": payload.get("accountName", ""),
            "ownerName": payload.get("ownerName", ""),
            "tier": payload.get("tier", ""),
            "email": payload.get("email", ""),
            "userName": user_name,
            "role": payload.get("role", ""),
            "firstName": payload.get("firstName", ""),
            "lastName": payload.get("lastName", ""),
        }

        if provision_path == "reg":
            result = self.user_manager.provision_tenant_admin(admin)
        elif provision_path == "system":
            result = self.user_manager.provision_system_admin(admin)
        else:
            raise ValidationError(f"Unknown provisioning path: {provision_path}")

        try:
            infrastructure = ProvisioningResult.tenant_fields(result)
        except ValueError as e:
            raise UpstreamFailure(f"provision_{provision_path}", e) from e

        tier = admin["tier"] or (self.cfg.system_tier if id_prefix == SYSADMIN_PREFIX else "")
        tenant = TenantRecord(
            id=tenant_id,
            userName=user_name,
            companyName=admin["companyName"],
            accountName=admin["accountName"],
            ownerName=admin["ownerName"],
            tier=tier,
            email=admin["email"],
            status=STATUS_ACTIVE,
            **infrastructure,
        )

        try:
            self.tenant_store().put_item(tenant.to_item())
        except RecordStoreError as e:
            logger.error("Tenant %s provisioned but not stored: %s", tenant_id, e)
            raise PersistenceFailure(e) from e

        event = "system_admin_registered" if id_prefix == SYSADMIN_PREFIX else "tenant_registered"
        audit.safe_log_event(
            event,
            user_name,
            tenant_id=tenant_id,
            details={"user_pool_id": tenant.UserPoolId, "identity_pool_id": tenant.IdentityPoolId},
        )
        logger.info("%s registered", tenant_id)
        return tenant

    def delete_infra(self) -> None:
        """Ask the user manager to tear down all tenant infrastructure."""
        self.user_manager.delete_infra()
        logger.debug("Delete Infra")
