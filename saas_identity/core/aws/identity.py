"""Cognito user pools, Cognito identity pools and IAM behind one client.

Every call is a single boto3 request; botocore failures are re-raised as
IdentityProviderError so callers only deal with one exception type.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .client import AwsClientFactory
from .exceptions import IdentityProviderError, error_code, error_message

logger = logging.getLogger(__name__)

# Custom attributes carried by every tenant user pool, read back as token claims
CUSTOM_ATTRIBUTES = ("tenant_id", "tier", "company_name", "role", "account_name")


def provider_name(region: str, user_pool_id: str) -> str:
    return f"cognito-idp.{region}.amazonaws.com/{user_pool_id}"


def flatten_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Cognito user (admin_get_user or list_users entry) to the API shape."""
    raw_attributes = user.get("UserAttributes") or user.get("Attributes") or []
    attributes = {attr["Name"]: attr.get("Value", "") for attr in raw_attributes}
    created = user.get("UserCreateDate")
    return {
        "userName": user.get("Username", ""),
        "enabled": user.get("Enabled", False),
        "confirmedStatus": user.get("UserStatus", ""),
        "dateCreated": created.isoformat() if hasattr(created, "isoformat") else created,
        "firstName": attributes.get("given_name", ""),
        "lastName": attributes.get("family_name", ""),
        "email": attributes.get("email", ""),
        "role": attributes.get("custom:role", ""),
        "tier": attributes.get("custom:tier", ""),
        "tenant_id": attributes.get("custom:tenant_id", ""),
        "sub": attributes.get("sub", ""),
    }


class IdentityProvisioningClient:
    """Create/delete operations for user pools, identity pools, policies and roles,
    plus user CRUD inside a user pool.

    Usage:
        identity = IdentityProvisioningClient(AwsClientFactory(credentials))
        pool = identity.create_user_pool("TENANT1234")
    """

    def __init__(self, factory: AwsClientFactory):
        self.factory = factory

    @property
    def region(self) -> str:
        return self.factory.region

    @property
    def cognito(self):
        return self.factory.client("cognito-idp")

    @property
    def federated(self):
        return self.factory.client("cognito-identity")

    @property
    def iam(self):
        return self.factory.client("iam")

    def _call(self, operation: str, fn: Callable[..., Dict[str, Any]], **kwargs) -> Dict[str, Any]:
        try:
            return fn(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            logger.error("%s failed: %s", operation, exc)
            raise IdentityProviderError(operation, error_code(exc), error_message(exc)) from exc

    # ------------------------------------------------------------------
    # User pools
    # ------------------------------------------------------------------

    def create_user_pool(self, tenant_id: str) -> Dict[str, Any]:
        """Create the tenant's user pool; returns the `UserPool` description."""
        schema = [
            {
                "Name": name,
                "AttributeDataType": "String",
                "DeveloperOnlyAttribute": False,
                "Mutable": True,
                "Required": False,
                "StringAttributeConstraints": {"MinLength": "1", "MaxLength": "256"},
            }
            for name in CUSTOM_ATTRIBUTES
        ]
        response = self._call(
            "CreateUserPool",
            self.cognito.create_user_pool,
            PoolName=tenant_id,
            AutoVerifiedAttributes=["email"],
            Policies={
                "PasswordPolicy": {
                    "MinimumLength": 8,
                    "RequireUppercase": True,
                    "RequireLowercase": True,
                    "RequireNumbers": True,
                    "RequireSymbols": False,
                }
            },
            AdminCreateUserConfig={"AllowAdminCreateUserOnly": True},
            Schema=schema,
        )
        pool = response["UserPool"]
        logger.info("Created user pool %s (%s)", pool["Name"], pool["Id"])
        return pool

    def create_user_pool_client(self, pool_name: str, user_pool_id: str) -> Dict[str, Any]:
        """Create the app client for a user pool; returns the `UserPoolClient` description."""
        response = self._call(
            "CreateUserPoolClient",
            self.cognito.create_user_pool_client,
            ClientName=pool_name,
            UserPoolId=user_pool_id,
            GenerateSecret=False,
            ReadAttributes=["email", "family_name", "given_name", "phone_number", "preferred_username"]
            + [f"custom:{name}" for name in CUSTOM_ATTRIBUTES],
            WriteAttributes=["email", "family_name", "given_name", "phone_number", "preferred_username"],
            RefreshTokenValidity=30,
        )
        return response["UserPoolClient"]

    def delete_user_pool(self, user_pool_id: str) -> None:
        self._call("DeleteUserPool", self.cognito.delete_user_pool, UserPoolId=user_pool_id)
        logger.info("Deleted user pool %s", user_pool_id)

    # ------------------------------------------------------------------
    # Identity pools
    # ------------------------------------------------------------------

    def create_identity_pool(self, client_id: str, user_pool_id: str, name: str) -> Dict[str, Any]:
        """Create a federated identity pool trusting the given user pool client."""
        response = self._call(
            "CreateIdentityPool",
            self.federated.create_identity_pool,
            IdentityPoolName=name,
            AllowUnauthenticatedIdentities=False,
            CognitoIdentityProviders=[
                {
                    "ClientId": client_id,
                    "ProviderName": provider_name(self.region, user_pool_id),
                    "ServerSideTokenCheck": True,
                }
            ],
        )
        logger.info("Created identity pool %s", response["IdentityPoolId"])
        return response

    def set_identity_pool_roles(
        self,
        identity_pool_id: str,
        user_pool_id: str,
        client_id: str,
        trust_role_arn: str,
        admin_role_arn: str,
        member_role_arn: str,
        admin_role_kind: str,
        member_role_kind: str,
    ) -> Dict[str, Any]:
        """Bind the authenticated role and the `custom:role` rule mapping to an identity pool.

        Returns the request that was applied.
        """
        mapping_key = f"{provider_name(self.region, user_pool_id)}:{client_id}"
        params = {
            "IdentityPoolId": identity_pool_id,
            "Roles": {"authenticated": trust_role_arn},
            "RoleMappings": {
                mapping_key: {
                    "Type": "Rules",
                    "AmbiguousRoleResolution": "Deny",
                    "RulesConfiguration": {
                        "Rules": [
                            {
                                "Claim": "custom:role",
                                "MatchType": "Equals",
                                "Value": admin_role_kind,
                                "RoleARN": admin_role_arn,
                            },
                            {
                                "Claim": "custom:role",
                                "MatchType": "Equals",
                                "Value": member_role_kind,
                                "RoleARN": member_role_arn,
                            },
                        ]
                    },
                }
            },
        }
        self._call("SetIdentityPoolRoles", self.federated.set_identity_pool_roles, **params)
        return params

    def delete_identity_pool(self, identity_pool_id: str) -> None:
        self._call("DeleteIdentityPool", self.federated.delete_identity_pool, IdentityPoolId=identity_pool_id)
        logger.info("Deleted identity pool %s", identity_pool_id)

    def get_credentials_for_token(self, identity_pool_id: str, user_pool_id: str, id_token: str) -> Dict[str, Any]:
        """Exchange a user pool id token for temporary credentials from the identity pool."""
        logins = {provider_name(self.region, user_pool_id): id_token}
        identity = self._call(
            "GetId",
            self.federated.get_id,
            IdentityPoolId=identity_pool_id,
            Logins=logins,
        )
        response = self._call(
            "GetCredentialsForIdentity",
            self.federated.get_credentials_for_identity,
            IdentityId=identity["IdentityId"],
            Logins=logins,
        )
        return response["Credentials"]

    # ------------------------------------------------------------------
    # IAM
    # ------------------------------------------------------------------

    def create_policy(self, policy_name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call(
            "CreatePolicy",
            self.iam.create_policy,
            PolicyName=policy_name,
            PolicyDocument=json.dumps(document),
        )
        logger.info("Created policy %s", policy_name)
        return response["Policy"]

    def create_role(self, role_name: str, trust_document: Dict[str, Any]) -> Dict[str, Any]:
        response = self._call(
            "CreateRole",
            self.iam.create_role,
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(trust_document),
        )
        logger.info("Created role %s", role_name)
        return response["Role"]

    def attach_role_policy(self, policy_arn: str, role_name: str) -> None:
        self._call("AttachRolePolicy", self.iam.attach_role_policy, PolicyArn=policy_arn, RoleName=role_name)

    def detach_role_policy(self, policy_arn: str, role_name: str) -> None:
        self._call("DetachRolePolicy", self.iam.detach_role_policy, PolicyArn=policy_arn, RoleName=role_name)

    def delete_policy(self, policy_arn: str) -> None:
        self._call("DeletePolicy", self.iam.delete_policy, PolicyArn=policy_arn)

    def delete_role(self, role_name: str) -> None:
        self._call("DeleteRole", self.iam.delete_role, RoleName=role_name)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user_pool_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """Create a user in a pool; returns the `User` description (attributes included)."""
        attributes = [
            {"Name": "email", "Value": user.get("email", "")},
            {"Name": "custom:tenant_id", "Value": user.get("tenant_id", "")},
            {"Name": "given_name", "Value": user.get("firstName", "")},
            {"Name": "family_name", "Value": user.get("lastName", "")},
            {"Name": "custom:role", "Value": user.get("role", "")},
            {"Name": "custom:tier", "Value": user.get("tier", "")},
        ]
        response = self._call(
            "AdminCreateUser",
            self.cognito.admin_create_user,
            UserPoolId=user_pool_id,
            Username=user["userName"],
            DesiredDeliveryMediums=["EMAIL"],
            ForceAliasCreation=True,
            UserAttributes=[attr for attr in attributes if attr["Value"]],
        )
        logger.info("Created user %s in %s", user["userName"], user_pool_id)
        return response["User"]

    def get_user(self, user_pool_id: str, user_name: str) -> Dict[str, Any]:
        return self._call(
            "AdminGetUser",
            self.cognito.admin_get_user,
            UserPoolId=user_pool_id,
            Username=user_name,
        )

    def list_users(self, user_pool_id: str) -> List[Dict[str, Any]]:
        users: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"UserPoolId": user_pool_id}
        while True:
            response = self._call("ListUsers", self.cognito.list_users, **params)
            users.extend(response.get("Users", []))
            token: Optional[str] = response.get("PaginationToken")
            if not token:
                return users
            params["PaginationToken"] = token

    def set_user_enabled(self, user_pool_id: str, user_name: str, enabled: bool) -> None:
        if enabled:
            self._call("AdminEnableUser", self.cognito.admin_enable_user, UserPoolId=user_pool_id, Username=user_name)
        else:
            self._call("AdminDisableUser", self.cognito.admin_disable_user, UserPoolId=user_pool_id, Username=user_name)

    def update_user_attributes(self, user_pool_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        attributes = [
            {"Name": "given_name", "Value": user.get("firstName", "")},
            {"Name": "family_name", "Value": user.get("lastName", "")},
            {"Name": "custom:role", "Value": user.get("role", "")},
        ]
        self._call(
            "AdminUpdateUserAttributes",
            self.cognito.admin_update_user_attributes,
            UserPoolId=user_pool_id,
            Username=user["userName"],
            UserAttributes=[attr for attr in attributes if attr["Value"]],
        )
        return user

    def delete_user(self, user_pool_id: str, user_name: str) -> None:
        self._call("AdminDeleteUser", self.cognito.admin_delete_user, UserPoolId=user_pool_id, Username=user_name)
        logger.info("Deleted user %s from %s", user_name, user_pool_id)
