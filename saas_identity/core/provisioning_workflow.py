"""Admin-user provisioning workflow.

Creates a tenant's user pool, app client, identity pool, admin/member policies,
admin/member/trust roles and role bindings, plus the admin user itself, in the
one order in which every step's inputs already exist:

    1  check_existing         user name must not be registered yet
    2  create_user_pool
    3  create_user_pool_client
    4  create_identity_pool
    5  render_trust_policy    embeds the identity pool id from step 4
    6  create_admin_policy
    7  create_admin_user      provider user, then user table record
    8  create_member_policy
    9  create_admin_role
    10 create_member_role
    11 create_trust_role
    12 attach_admin_policy
    13 attach_member_policy
    14 bind_identity_pool_roles
    15 assemble result

The first failure aborts the run. Resources created by earlier steps are left
in place; DELETE /user/tenants is the cleanup path.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..config import AppConfig
from . import policies
from .aws.exceptions import IdentityProviderError, RecordStoreError
from .aws.identity import IdentityProvisioningClient
from .aws.records import RecordStore, USER_NAME_INDEX
from .errors import (
    AlreadyExistsError,
    NotFoundError,
    PersistenceFailure,
    UpstreamFailure,
    ValidationError,
)
from .models import AwsCredentials, ProvisioningResult, UserRecord

logger = logging.getLogger(__name__)

IdentityFactory = Callable[[AwsCredentials], IdentityProvisioningClient]
StoreFactory = Callable[[AwsCredentials, str], RecordStore]


@dataclass
class ProvisioningState:
    """Identifiers threaded through one provisioning run."""
    user: Dict[str, Any]
    credentials: AwsCredentials
    admin_role_kind: str
    member_role_kind: str
    user_pool: Dict[str, Any] = field(default_factory=dict)
    user_pool_client: Dict[str, Any] = field(default_factory=dict)
    identity_pool: Dict[str, Any] = field(default_factory=dict)
    policy_params: Optional[policies.PolicyParams] = None
    trust_document: Dict[str, Any] = field(default_factory=dict)
    admin_policy: Dict[str, Any] = field(default_factory=dict)
    member_policy: Dict[str, Any] = field(default_factory=dict)
    stored_user: Optional[UserRecord] = None
    admin_role: Dict[str, Any] = field(default_factory=dict)
    member_role: Dict[str, Any] = field(default_factory=dict)
    trust_role: Dict[str, Any] = field(default_factory=dict)
    role_mapping: Dict[str, Any] = field(default_factory=dict)

    @property
    def tenant_id(self) -> str:
        return self.user["tenant_id"]

    def result(self) -> ProvisioningResult:
        return ProvisioningResult(
            user_pool_id=self.user_pool["Id"],
            user_pool_name=self.user_pool["Name"],
            user_pool_client_id=self.user_pool_client["ClientId"],
            identity_pool_id=self.identity_pool["IdentityPoolId"],
            admin_policy_arn=self.admin_policy["Arn"],
            admin_role_name=self.admin_role["RoleName"],
            admin_role_arn=self.admin_role["Arn"],
            member_policy_arn=self.member_policy["Arn"],
            member_role_name=self.member_role["RoleName"],
            member_role_arn=self.member_role["Arn"],
            trust_role_name=self.trust_role["RoleName"],
            trust_role_arn=self.trust_role["Arn"],
            user=self.stored_user,
            role_mapping=self.role_mapping,
        )


class ProvisioningWorkflow:
    """Provisions admin users and looks up user records.

    Args:
        cfg: Application configuration (account, region, table names, role kinds)
        identity_factory: Builds an IdentityProvisioningClient for a set of credentials
        store_factory: Builds a RecordStore for (credentials, table name)
    """

    STEPS = (
        "check_existing",
        "create_user_pool",
        "create_user_pool_client",
        "create_identity_pool",
        "render_trust_policy",
        "create_admin_policy",
        "create_admin_user",
        "create_member_policy",
        "create_admin_role",
        "create_member_role",
        "create_trust_role",
        "attach_admin_policy",
        "attach_member_policy",
        "bind_identity_pool_roles",
    )

    def __init__(self, cfg: AppConfig, identity_factory: IdentityFactory, store_factory: StoreFactory):
        self.cfg = cfg
        self.identity_factory = identity_factory
        self.store_factory = store_factory

    def _users(self, credentials: AwsCredentials) -> RecordStore:
        return self.store_factory(credentials, self.cfg.user_table)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def provision_admin_user(
        self,
        user: Dict[str, Any],
        credentials: AwsCredentials,
        admin_role_kind: str,
        member_role_kind: str,
    ) -> ProvisioningResult:
        """Provision an admin user together with its tenant's identity resources.

        Raises:
            ValidationError: user lacks tenant_id or userName, or a role kind has no policy template
            AlreadyExistsError: user name already registered
            UpstreamFailure: an identity provider call failed (step name attached)
            PersistenceFailure: the user record could not be written
        """
        if not user.get("tenant_id") or not user.get("userName"):
            raise ValidationError("tenant_id and userName are required")
        unknown = [kind for kind in (admin_role_kind, member_role_kind) if kind not in policies.role_kinds(self.cfg)]
        if unknown:
            raise ValidationError(f"Unknown role kind: {unknown[0]}")

        payload = dict(user)
        payload["role"] = admin_role_kind
        state = ProvisioningState(
            user=payload,
            credentials=credentials,
            admin_role_kind=admin_role_kind,
            member_role_kind=member_role_kind,
        )
        identity = self.identity_factory(credentials)

        for step in self.STEPS:
            logger.debug("[provision] tenant=%s step=%s", state.tenant_id, step)
            handler = getattr(self, f"_{step}")
            try:
                handler(state, identity)
            except IdentityProviderError as e:
                logger.error("[provision] tenant=%s step=%s failed: %s", state.tenant_id, step, e)
                raise UpstreamFailure(step, e) from e

        logger.info("[provision] tenant=%s admin user %s provisioned", state.tenant_id, payload["userName"])
        return state.result()

    def create_user(
        self,
        credentials: AwsCredentials,
        pool_id: str,
        identity_pool_id: str,
        client_id: str,
        tenant_id: str,
        user: Dict[str, Any],
    ) -> UserRecord:
        """Create a user in the provider, then write its user table record.

        A failed record write leaves the provider user in place.
        """
        if not user.get("userName"):
            raise ValidationError("userName is required")

        payload = dict(user)
        payload["tenant_id"] = tenant_id
        if not payload.get("email"):
            payload["email"] = payload["userName"]

        try:
            created = self.identity_factory(credentials).create_user(pool_id, payload)
        except IdentityProviderError as e:
            raise UpstreamFailure("create_user", e) from e

        attributes = created.get("Attributes") or []
        record = UserRecord(
            userName=payload["userName"],
            tenant_id=tenant_id,
            tier=payload.get("tier", ""),
            role=payload.get("role", ""),
            firstName=payload.get("firstName", ""),
            lastName=payload.get("lastName", ""),
            email=payload["email"],
            UserPoolId=pool_id,
            IdentityPoolId=identity_pool_id,
            client_id=client_id,
            sub=attributes[0].get("Value", "") if attributes else "",
            companyName=payload.get("companyName", ""),
            accountName=payload.get("accountName", ""),
            ownerName=payload.get("ownerName", ""),
        )

        try:
            self._users(credentials).put_item(record.to_item())
        except RecordStoreError as e:
            logger.error("User %s created in %s but not stored: %s", record.userName, pool_id, e)
            raise PersistenceFailure(e) from e

        return record

    def lookup_user(
        self,
        credentials: AwsCredentials,
        user_id: str,
        tenant_id: Optional[str],
        system_context: bool,
    ) -> UserRecord:
        """Find a user record.

        System context queries the user-name index across all tenants and
        returns the first match. Tenant context reads the (tenant_id, id) key.
        """
        store = self._users(credentials)
        try:
            if system_context:
                items = store.query_index(USER_NAME_INDEX, "id", user_id)
                item = items[0] if items else None
            else:
                item = store.get_item({"tenant_id": tenant_id or "", "id": user_id})
        except RecordStoreError as e:
            raise UpstreamFailure("lookup_user", e) from e

        if not item:
            raise NotFoundError(f"No user found: {user_id}")
        return UserRecord.from_item(item)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_existing(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        user_name = state.user["userName"]
        try:
            self.lookup_user(state.credentials, user_name, state.tenant_id, True)
        except NotFoundError:
            return
        raise AlreadyExistsError(f"User already exists: {user_name}")

    def _create_user_pool(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.user_pool = identity.create_user_pool(state.tenant_id)
        state.policy_params = policies.PolicyParams.from_config(self.cfg, state.tenant_id, state.user_pool["Id"])

    def _create_user_pool_client(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.user_pool_client = identity.create_user_pool_client(state.user_pool["Name"], state.user_pool["Id"])

    def _create_identity_pool(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        client = state.user_pool_client
        state.identity_pool = identity.create_identity_pool(
            client["ClientId"], client["UserPoolId"], client["ClientName"]
        )

    def _render_trust_policy(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.trust_document = policies.trust_policy(state.identity_pool["IdentityPoolId"])

    def _create_admin_policy(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.admin_policy = self._create_policy(state, identity, state.admin_role_kind)

    def _create_admin_user(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.stored_user = self.create_user(
            state.credentials,
            state.user_pool["Id"],
            state.identity_pool["IdentityPoolId"],
            state.user_pool_client["ClientId"],
            state.tenant_id,
            state.user,
        )

    def _create_member_policy(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.member_policy = self._create_policy(state, identity, state.member_role_kind)

    def _create_admin_role(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        name = policies.role_name(state.tenant_id, state.admin_role_kind)
        state.admin_role = identity.create_role(name, state.trust_document)

    def _create_member_role(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        name = policies.role_name(state.tenant_id, state.member_role_kind)
        state.member_role = identity.create_role(name, state.trust_document)

    def _create_trust_role(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.trust_role = identity.create_role(policies.trust_role_name(state.tenant_id), state.trust_document)

    def _attach_admin_policy(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        identity.attach_role_policy(state.admin_policy["Arn"], state.admin_role["RoleName"])

    def _attach_member_policy(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        identity.attach_role_policy(state.member_policy["Arn"], state.member_role["RoleName"])

    def _bind_identity_pool_roles(self, state: ProvisioningState, identity: IdentityProvisioningClient) -> None:
        state.role_mapping = identity.set_identity_pool_roles(
            identity_pool_id=state.identity_pool["IdentityPoolId"],
            user_pool_id=state.user_pool_client["UserPoolId"],
            client_id=state.user_pool_client["ClientId"],
            trust_role_arn=state.trust_role["Arn"],
            admin_role_arn=state.admin_role["Arn"],
            member_role_arn=state.member_role["Arn"],
            admin_role_kind=state.admin_role_kind,
            member_role_kind=state.member_role_kind,
        )

    def _create_policy(
        self, state: ProvisioningState, identity: IdentityProvisioningClient, role_kind: str
    ) -> Dict[str, Any]:
        try:
            document = policies.policy_template(role_kind, state.policy_params, self.cfg)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return identity.create_policy(policies.policy_name(state.tenant_id, role_kind), document)
