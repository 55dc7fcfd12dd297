"""IAM policy documents for tenant roles.

The trust policy lets the tenant's identity pool assume a role; the four role
kinds (system admin/user, tenant admin/user) get table and user pool access of
decreasing scope. Tenant roles are row-scoped with `dynamodb:LeadingKeys`.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from ..config import AppConfig

POLICY_VERSION = "2012-10-17"

_TABLE_READ = ["dynamodb:GetItem", "dynamodb:BatchGetItem", "dynamodb:Query", "dynamodb:Scan", "dynamodb:DescribeTable"]
_TABLE_WRITE = ["dynamodb:PutItem", "dynamodb:UpdateItem", "dynamodb:DeleteItem", "dynamodb:BatchWriteItem"]
_USER_ADMIN = [
    "cognito-idp:AdminCreateUser",
    "cognito-idp:AdminDeleteUser",
    "cognito-idp:AdminDisableUser",
    "cognito-idp:AdminEnableUser",
    "cognito-idp:AdminGetUser",
    "cognito-idp:AdminUpdateUserAttributes",
    "cognito-idp:ListUsers",
]
_USER_READ = ["cognito-idp:AdminGetUser", "cognito-idp:ListUsers"]


@dataclass(frozen=True)
class PolicyParams:
    """Values substituted into every policy template."""
    tenant_id: str
    account_id: str
    region: str
    user_pool_id: str
    tenant_table: str
    user_table: str
    product_table: str
    order_table: str

    @classmethod
    def from_config(cls, cfg: AppConfig, tenant_id: str, user_pool_id: str) -> "PolicyParams":
        return cls(
            tenant_id=tenant_id,
            account_id=cfg.aws_account_id,
            region=cfg.aws_region,
            user_pool_id=user_pool_id,
            tenant_table=cfg.tenant_table,
            user_table=cfg.user_table,
            product_table=cfg.product_table,
            order_table=cfg.order_table,
        )

    def table_arn(self, table_name: str) -> str:
        return f"arn:aws:dynamodb:{self.region}:{self.account_id}:table/{table_name}"

    @property
    def user_pool_arn(self) -> str:
        return f"arn:aws:cognito-idp:{self.region}:{self.account_id}:userpool/{self.user_pool_id}"


def trust_policy(identity_pool_id: str) -> Dict[str, Any]:
    """Assume-role document bound to one identity pool's authenticated identities."""
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Federated": "cognito-identity.amazonaws.com"},
                "Action": "sts:AssumeRoleWithWebIdentity",
                "Condition": {
                    "StringEquals": {"cognito-identity.amazonaws.com:aud": identity_pool_id},
                    "ForAnyValue:StringLike": {"cognito-identity.amazonaws.com:amr": "authenticated"},
                },
            }
        ],
    }


def _statement(sid: str, actions: List[str], resources: List[str], tenant_id: str = "") -> Dict[str, Any]:
    statement: Dict[str, Any] = {"Sid": sid, "Effect": "Allow", "Action": actions, "Resource": resources}
    if tenant_id:
        statement["Condition"] = {"ForAllValues:StringEquals": {"dynamodb:LeadingKeys": [tenant_id]}}
    return statement


def _all_tables(params: PolicyParams) -> List[str]:
    tables = [params.tenant_table, params.user_table, params.product_table, params.order_table]
    arns = [params.table_arn(name) for name in tables]
    return arns + [f"{arn}/index/*" for arn in arns]


def system_admin_policy(params: PolicyParams) -> Dict[str, Any]:
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            _statement("TableAccess", _TABLE_READ + _TABLE_WRITE, _all_tables(params)),
            _statement("UserPoolAccess", _USER_ADMIN, [params.user_pool_arn]),
        ],
    }


def system_user_policy(params: PolicyParams) -> Dict[str, Any]:
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            _statement("TableRead", _TABLE_READ, _all_tables(params)),
            _statement("UserPoolRead", _USER_READ, [params.user_pool_arn]),
        ],
    }


def tenant_admin_policy(params: PolicyParams) -> Dict[str, Any]:
    scoped = [params.table_arn(name) for name in (params.user_table, params.product_table, params.order_table)]
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            _statement("TenantRead", _TABLE_READ, [params.table_arn(params.tenant_table)]),
            _statement("TenantScopedTables", _TABLE_READ + _TABLE_WRITE, scoped, tenant_id=params.tenant_id),
            _statement("UserPoolAccess", _USER_ADMIN, [params.user_pool_arn]),
        ],
    }


def tenant_user_policy(params: PolicyParams) -> Dict[str, Any]:
    read_only = [params.table_arn(name) for name in (params.user_table, params.product_table)]
    return {
        "Version": POLICY_VERSION,
        "Statement": [
            _statement("TenantScopedRead", _TABLE_READ, read_only, tenant_id=params.tenant_id),
            _statement(
                "TenantScopedOrders",
                _TABLE_READ + _TABLE_WRITE,
                [params.table_arn(params.order_table)],
                tenant_id=params.tenant_id,
            ),
            _statement("UserPoolRead", _USER_READ, [params.user_pool_arn]),
        ],
    }


def _templates(cfg: AppConfig) -> Dict[str, Callable[[PolicyParams], Dict[str, Any]]]:
    return {
        cfg.role_system_admin: system_admin_policy,
        cfg.role_system_user: system_user_policy,
        cfg.role_tenant_admin: tenant_admin_policy,
        cfg.role_tenant_user: tenant_user_policy,
    }


def role_kinds(cfg: AppConfig) -> List[str]:
    """Role kinds that have a policy template."""
    return list(_templates(cfg))


def policy_template(role_kind: str, params: PolicyParams, cfg: AppConfig) -> Dict[str, Any]:
    """Render the policy document for a configured role kind."""
    templates = _templates(cfg)
    try:
        render = templates[role_kind]
    except KeyError:
        raise ValueError(f"Unknown role kind: {role_kind}") from None
    return render(params)


def policy_name(tenant_id: str, role_kind: str) -> str:
    return f"{tenant_id}-{role_kind}Policy"


def role_name(tenant_id: str, role_kind: str) -> str:
    return f"{tenant_id}-{role_kind}"


def trust_role_name(tenant_id: str) -> str:
    return f"{tenant_id}-Trust"
