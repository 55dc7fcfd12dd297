"""User manager operations: user CRUD, admin provisioning, infrastructure removal.

Architecture:
    /user/* routes ──> UserService ──> ProvisioningWorkflow ──> Cognito / IAM / DynamoDB
                                  └──> IdentityProvisioningClient (direct user calls)

Tenant-facing operations run with credentials exchanged from the caller's
token; provisioning and teardown run with the service's system credentials.
"""
from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List

from ..config import AppConfig
from . import teardown
from .aws.exceptions import IdentityProviderError, RecordStoreError
from .aws.identity import flatten_user
from .aws.records import TableManager
from .credentials import CredentialResolver, RequestContext
from .errors import CredentialError, PersistenceFailure, UpstreamFailure
from .models import AwsCredentials, ProvisioningResult, UserRecord
from .provisioning_workflow import IdentityFactory, ProvisioningWorkflow, StoreFactory
from scripts import audit

logger = logging.getLogger(__name__)

TablesFactory = Callable[[AwsCredentials], TableManager]


class UserService:
    """Business operations behind the user manager routes."""

    def __init__(
        self,
        cfg: AppConfig,
        workflow: ProvisioningWorkflow,
        resolver: CredentialResolver,
        identity_factory: IdentityFactory,
        store_factory: StoreFactory,
        tables_factory: TablesFactory,
        executor: Executor,
    ):
        self.cfg = cfg
        self.workflow = workflow
        self.resolver = resolver
        self.identity_factory = identity_factory
        self.store_factory = store_factory
        self.tables_factory = tables_factory
        self.executor = executor

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_pool_record(self, user_id: str) -> UserRecord:
        """User record for any user name, across tenants."""
        return self.workflow.lookup_user(self.resolver.system_credentials(), user_id, None, True)

    def get_user(self, ctx: RequestContext, user_id: str) -> Dict[str, Any]:
        credentials = self.resolver.credentials_for(ctx)
        record = self.workflow.lookup_user(credentials, user_id, ctx.tenant_id, False)
        try:
            raw = self.identity_factory(credentials).get_user(record.UserPoolId, user_id)
        except IdentityProviderError as e:
            raise UpstreamFailure("get_user", e) from e
        user = flatten_user(raw)
        user["tenant_id"] = user["tenant_id"] or record.tenant_id
        return user

    def list_users(self, ctx: RequestContext) -> List[Dict[str, Any]]:
        """Users of the pool that issued the caller's token."""
        credentials = self.resolver.credentials_for(ctx)
        user_pool_id = self._pool_from_token(ctx)
        try:
            users = self.identity_factory(credentials).list_users(user_pool_id)
        except IdentityProviderError as e:
            raise UpstreamFailure("list_users", e) from e
        return [flatten_user(user) for user in users]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_tenant_user(self, ctx: RequestContext, user: Dict[str, Any]) -> UserRecord:
        """Create a user in the caller's tenant, reusing the caller's pool ids.

        Raises:
            NotFoundError: the requesting user has no record (no pool to add to)
        """
        credentials = self.resolver.credentials_for(ctx)
        payload = dict(user)
        payload["tier"] = ctx.tier
        payload["tenant_id"] = ctx.tenant_id
        payload.setdefault("role", self.cfg.role_tenant_user)

        pool = self.workflow.lookup_user(credentials, ctx.email, ctx.tenant_id, False)
        record = self.workflow.create_user(
            credentials, pool.UserPoolId, pool.IdentityPoolId, pool.client_id, ctx.tenant_id, payload
        )
        logger.debug("User %s created", record.userName)
        audit.safe_log_event(
            "user_created",
            record.userName,
            tenant_id=ctx.tenant_id,
            operator=ctx.user_name or ctx.email,
            details={"role": record.role, "user_pool_id": record.UserPoolId},
        )
        return record

    def provision_system_admin(self, user: Dict[str, Any]) -> ProvisioningResult:
        payload = dict(user)
        payload["tier"] = self.cfg.system_tier
        return self._provision(payload, self.cfg.role_system_admin, self.cfg.role_system_user)

    def provision_tenant_admin(self, user: Dict[str, Any]) -> ProvisioningResult:
        return self._provision(dict(user), self.cfg.role_tenant_admin, self.cfg.role_tenant_user)

    def _provision(self, user: Dict[str, Any], admin_role_kind: str, member_role_kind: str) -> ProvisioningResult:
        result = self.workflow.provision_admin_user(
            user, self.resolver.system_credentials(), admin_role_kind, member_role_kind
        )
        audit.safe_log_event(
            "admin_provisioned",
            user["userName"],
            tenant_id=user.get("tenant_id", ""),
            details={
                "role": admin_role_kind,
                "user_pool_id": result.user_pool_id,
                "identity_pool_id": result.identity_pool_id,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def set_enabled(self, ctx: RequestContext, user_name: str, enabled: bool) -> Dict[str, str]:
        credentials = self.resolver.credentials_for(ctx)
        record = self.workflow.lookup_user(credentials, user_name, ctx.tenant_id, False)
        try:
            self.identity_factory(credentials).set_user_enabled(record.UserPoolId, user_name, enabled)
        except IdentityProviderError as e:
            raise UpstreamFailure("enable_user" if enabled else "disable_user", e) from e
        audit.safe_log_event(
            "user_enabled" if enabled else "user_disabled",
            user_name,
            tenant_id=ctx.tenant_id,
            operator=ctx.user_name,
        )
        return {"status": "success"}

    def update_user(self, ctx: RequestContext, user: Dict[str, Any]) -> Dict[str, Any]:
        credentials = self.resolver.credentials_for(ctx)
        user_pool_id = self._pool_from_token(ctx)
        try:
            updated = self.identity_factory(credentials).update_user_attributes(user_pool_id, user)
        except IdentityProviderError as e:
            raise UpstreamFailure("update_user", e) from e
        audit.safe_log_event(
            "user_updated",
            user["userName"],
            tenant_id=ctx.tenant_id,
            operator=ctx.user_name,
            details={key: value for key, value in user.items() if key != "userName"},
        )
        return updated

    def delete_user(self, ctx: RequestContext, user_name: str) -> None:
        """Remove the provider user, then its record.

        Raises:
            NotFoundError: no such user in the caller's tenant
        """
        credentials = self.resolver.credentials_for(ctx)
        record = self.workflow.lookup_user(credentials, user_name, ctx.tenant_id, False)
        try:
            self.identity_factory(credentials).delete_user(record.UserPoolId, user_name)
        except IdentityProviderError as e:
            raise UpstreamFailure("delete_user", e) from e
        logger.debug("User %s deleted from Cognito", user_name)

        try:
            self.store_factory(credentials, self.cfg.user_table).delete_item(
                {"tenant_id": ctx.tenant_id, "id": user_name}
            )
        except RecordStoreError as e:
            raise PersistenceFailure(e) from e
        audit.safe_log_event("user_deleted", user_name, tenant_id=ctx.tenant_id, operator=ctx.user_name)

    # ------------------------------------------------------------------
    # Infrastructure
    # ------------------------------------------------------------------

    def delete_infra(self) -> int:
        """Tear down every tenant's identity resources (stops at first failure)."""
        credentials = self.resolver.system_credentials()
        identity = self.identity_factory(credentials)
        tenants = self.store_factory(credentials, self.cfg.tenant_table)
        try:
            count = teardown.delete_infra(identity, tenants)
        except UpstreamFailure as e:
            audit.safe_log_event(
                "infra_teardown",
                "system",
                tenant_id=getattr(e, "tenant_id", ""),
                success=False,
                details={"step": e.step, "error": str(e.cause)},
            )
            raise
        audit.safe_log_event("infra_teardown", "system", details={"tenants": count})
        return count

    def delete_tables(self) -> List[Future]:
        """Start dropping the managed tables; returns before any drop finishes."""
        tables = self.tables_factory(self.resolver.system_credentials())
        return teardown.delete_tables(self.executor, tables, self.cfg.managed_tables)

    @staticmethod
    def _pool_from_token(ctx: RequestContext) -> str:
        if not ctx.user_pool_id:
            raise CredentialError("Token carries no issuer")
        return ctx.user_pool_id
