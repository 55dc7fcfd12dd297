"""Records persisted by the services and the transient provisioning result.

Attribute names on the stored records are the ones the tables hold, so
`to_item()` output can be written as-is and read back with `from_item()`.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional


TENANT_PREFIX = "TENANT"
SYSADMIN_PREFIX = "SYSADMIN"
STATUS_ACTIVE = "Active"


@dataclass(frozen=True)
class AwsCredentials:
    """Credentials used to build boto3 clients.

    Empty keys mean "use the default credential chain".
    """
    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    region: str = "us-east-1"

    def as_client_kwargs(self) -> Dict[str, str]:
        kwargs = {"region_name": self.region}
        if self.access_key_id and self.secret_access_key:
            kwargs["aws_access_key_id"] = self.access_key_id
            kwargs["aws_secret_access_key"] = self.secret_access_key
            if self.session_token:
                kwargs["aws_session_token"] = self.session_token
        return kwargs


@dataclass
class UserRecord:
    """A user row in the user table (hash `tenant_id`, range `id`)."""
    userName: str
    tenant_id: str = ""
    tier: str = ""
    role: str = ""
    firstName: str = ""
    lastName: str = ""
    email: str = ""
    UserPoolId: str = ""
    IdentityPoolId: str = ""
    client_id: str = ""
    sub: str = ""
    companyName: str = ""
    accountName: str = ""
    ownerName: str = ""

    @property
    def id(self) -> str:
        return self.userName

    def to_item(self) -> Dict[str, Any]:
        item = {"id": self.id}
        # DynamoDB rejects empty strings on key attributes, skip empty optionals entirely
        item.update({key: value for key, value in asdict(self).items() if value != ""})
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "UserRecord":
        user_name = item.get("userName") or item.get("id", "")
        known = {name for name in cls.__dataclass_fields__}
        values = {key: str(value) for key, value in item.items() if key in known and value is not None}
        values["userName"] = user_name
        return cls(**values)


@dataclass
class TenantRecord:
    """A tenant (or system-admin tenant) row in the tenant table."""
    id: str
    userName: str
    companyName: str = ""
    accountName: str = ""
    ownerName: str = ""
    tier: str = ""
    email: str = ""
    status: str = STATUS_ACTIVE
    UserPoolId: str = ""
    IdentityPoolId: str = ""
    systemAdminRole: str = ""
    systemSupportRole: str = ""
    trustRole: str = ""
    systemAdminPolicy: str = ""
    systemSupportPolicy: str = ""

    def to_item(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value != ""}

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "TenantRecord":
        known = {name for name in cls.__dataclass_fields__}
        values = {key: str(value) for key, value in item.items() if key in known and value is not None}
        values.setdefault("userName", "")
        return cls(**values)

    @property
    def has_infrastructure(self) -> bool:
        return bool(self.UserPoolId)


@dataclass
class ProvisioningResult:
    """Identifiers produced by one admin-provisioning run."""
    user_pool_id: str
    user_pool_name: str
    user_pool_client_id: str
    identity_pool_id: str
    admin_policy_arn: str
    admin_role_name: str
    admin_role_arn: str
    member_policy_arn: str
    member_role_name: str
    member_role_arn: str
    trust_role_name: str
    trust_role_arn: str
    user: Optional[UserRecord] = None
    role_mapping: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape returned by /user/system and /user/reg."""
        return {
            "pool": {"UserPool": {"Id": self.user_pool_id, "Name": self.user_pool_name}},
            "userPoolClient": {
                "UserPoolClient": {
                    "ClientId": self.user_pool_client_id,
                    "UserPoolId": self.user_pool_id,
                    "ClientName": self.user_pool_name,
                }
            },
            "identityPool": {"IdentityPoolId": self.identity_pool_id},
            "role": {
                "systemAdminRole": self.admin_role_name,
                "systemSupportRole": self.member_role_name,
                "trustRole": self.trust_role_name,
            },
            "policy": {
                "systemAdminPolicy": self.admin_policy_arn,
                "systemSupportPolicy": self.member_policy_arn,
            },
            "user": self.user.to_item() if self.user else None,
            "addRoleToIdentity": self.role_mapping,
        }

    @staticmethod
    def tenant_fields(payload: Dict[str, Any]) -> Dict[str, str]:
        """Pull the TenantRecord infrastructure fields out of a `to_dict()` payload."""
        try:
            return {
                "UserPoolId": payload["pool"]["UserPool"]["Id"],
                "IdentityPoolId": payload["identityPool"]["IdentityPoolId"],
                "systemAdminRole": payload["role"]["systemAdminRole"],
                "systemSupportRole": payload["role"]["systemSupportRole"],
                "trustRole": payload["role"]["trustRole"],
                "systemAdminPolicy": payload["policy"]["systemAdminPolicy"],
                "systemSupportPolicy": payload["policy"]["systemSupportPolicy"],
            }
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Provisioning result missing field: {exc}") from exc
