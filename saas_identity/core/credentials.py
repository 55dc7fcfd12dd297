"""Caller identity and AWS credentials for a request.

Bearer tokens are decoded without signature verification: API Gateway in front
of the services has already authorized them. Everything derived from a token is
returned as a RequestContext and passed down explicitly.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import jwt
from jwt.exceptions import DecodeError, InvalidTokenError

from ..config import AppConfig
from .aws.exceptions import AwsError
from .errors import CredentialError, ProvisioningError
from .models import AwsCredentials, UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Per-request caller data extracted from the Authorization header."""
    token: str = ""
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    @property
    def tenant_id(self) -> str:
        return self.claims.get("custom:tenant_id", "")

    @property
    def tier(self) -> str:
        return self.claims.get("custom:tier", "")

    @property
    def role(self) -> str:
        return self.claims.get("custom:role", "")

    @property
    def email(self) -> str:
        return self.claims.get("email", "")

    @property
    def user_name(self) -> str:
        return self.claims.get("cognito:username", "")

    @property
    def user_pool_id(self) -> str:
        """Last path segment of the `iss` claim."""
        issuer = self.claims.get("iss", "")
        return issuer.rsplit("/", 1)[-1] if issuer else ""


def extract_token(auth_header: Optional[str]) -> str:
    """Return the raw token from an Authorization header ("Bearer " prefix optional)."""
    if not auth_header:
        return ""
    value = auth_header.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value


def decode_token(token: str) -> Dict[str, Any]:
    """Decode JWT claims without verifying the signature."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except DecodeError as e:
        raise CredentialError(f"Token decode error (malformed JWT): {e}") from e
    except InvalidTokenError as e:
        raise CredentialError(f"Invalid token: {e}") from e


def context_from_header(auth_header: Optional[str]) -> RequestContext:
    """Build the request context; an absent header gives an anonymous context."""
    token = extract_token(auth_header)
    if not token:
        return RequestContext()
    return RequestContext(token=token, claims=decode_token(token))


class CredentialResolver:
    """Resolves the AWS credentials a request runs with.

    System credentials come from configuration (or the default boto3 chain).
    Tenant credentials are exchanged from the caller's id token through the
    identity pool recorded on the caller's user record.
    """

    def __init__(
        self,
        cfg: AppConfig,
        pool_lookup: Callable[[str], UserRecord],
        exchange: Callable[[AwsCredentials, str, str, str], Dict[str, Any]],
    ):
        """
        Args:
            cfg: Application configuration
            pool_lookup: Returns the caller's user record (system context) by user name
            exchange: (credentials, identity_pool_id, user_pool_id, token) -> Credentials dict
        """
        self.cfg = cfg
        self.pool_lookup = pool_lookup
        self.exchange = exchange

    def system_credentials(self) -> AwsCredentials:
        return AwsCredentials(
            access_key_id=self.cfg.aws_access_key_id,
            secret_access_key=self.cfg.aws_secret_access_key,
            session_token=self.cfg.aws_session_token,
            region=self.cfg.aws_region,
        )

    def credentials_for(self, ctx: RequestContext) -> AwsCredentials:
        """Temporary credentials for the token's user, scoped by their tenant role."""
        if not ctx.authenticated:
            raise CredentialError("Authorization header required")

        user_name = ctx.user_name or ctx.email
        if not user_name:
            raise CredentialError("Token carries no user name")

        try:
            record = self.pool_lookup(user_name)
            raw = self.exchange(self.system_credentials(), record.IdentityPoolId, record.UserPoolId, ctx.token)
        except (ProvisioningError, AwsError) as e:
            logger.warning("Credential exchange failed for %s: %s", user_name, e)
            raise CredentialError(f"Unable to resolve credentials for {user_name}") from e

        return AwsCredentials(
            access_key_id=raw.get("AccessKeyId", ""),
            secret_access_key=raw.get("SecretKey", ""),
            session_token=raw.get("SessionToken", ""),
            region=self.cfg.aws_region,
        )
