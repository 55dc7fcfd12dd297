"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # AWS
    aws_region: str = "us-east-1"
    aws_account_id: str = ""
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""

    # Managed tables
    user_table: str = "User"
    tenant_table: str = "Tenant"
    product_table: str = "Product"
    order_table: str = "Order"

    # Peer services
    user_service_url: str = "http://localhost:3001/user"
    request_timeout: int = 30

    # Tiers and role kinds
    system_tier: str = "System Tier"
    role_system_admin: str = "SystemAdmin"
    role_system_user: str = "SystemUser"
    role_tenant_admin: str = "TenantAdmin"
    role_tenant_user: str = "TenantUser"

    # Runtime
    log_level: str = "INFO"
    services: list[str] = field(default_factory=lambda: ["system", "tenant", "user"])

    @property
    def managed_tables(self) -> list[str]:
        """All DynamoDB tables provisioned for the reference architecture."""
        return [self.user_table, self.tenant_table, self.product_table, self.order_table]

    @property
    def has_static_credentials(self) -> bool:
        """True when explicit AWS keys were configured instead of the default chain."""
        return bool(self.aws_access_key_id and self.aws_secret_access_key)


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    aws_region = _get_or_generate("AWS_REGION", demo_default="us-east-1", demo_mode=demo_mode)
    aws_account_id = _get_or_generate("AWS_ACCOUNT_ID", demo_default="000000000000", demo_mode=demo_mode)

    # Explicit keys are optional; boto3 falls back to its default credential chain
    aws_access_key_id = _load_secret_from_file("aws_access_key_id", "AWS_ACCESS_KEY_ID") or ""
    aws_secret_access_key = _load_secret_from_file("aws_secret_access_key", "AWS_SECRET_ACCESS_KEY") or ""
    aws_session_token = _load_secret_from_file("aws_session_token", "AWS_SESSION_TOKEN") or ""

    user_service_url = _get_or_generate(
        "USER_SERVICE_URL",
        demo_default="http://localhost:3001/user",
        demo_mode=demo_mode,
        required=False,
    ) or "http://localhost:3001/user"

    services = [
        service.strip().lower()
        for service in os.environ.get("SERVICES", "system,tenant,user").split(",")
        if service.strip()
    ]

    cfg = AppConfig(
        demo_mode=demo_mode,
        aws_region=aws_region,
        aws_account_id=aws_account_id,
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key,
        aws_session_token=aws_session_token,
        user_table=os.environ.get("USER_TABLE", "User"),
        tenant_table=os.environ.get("TENANT_TABLE", "Tenant"),
        product_table=os.environ.get("PRODUCT_TABLE", "Product"),
        order_table=os.environ.get("ORDER_TABLE", "Order"),
        user_service_url=user_service_url.rstrip("/"),
        request_timeout=int(os.environ.get("REQUEST_TIMEOUT", "30")),
        system_tier=os.environ.get("SYSTEM_TIER", "System Tier"),
        role_system_admin=os.environ.get("ROLE_SYSTEM_ADMIN", "SystemAdmin"),
        role_system_user=os.environ.get("ROLE_SYSTEM_USER", "SystemUser"),
        role_tenant_admin=os.environ.get("ROLE_TENANT_ADMIN", "TenantAdmin"),
        role_tenant_user=os.environ.get("ROLE_TENANT_USER", "TenantUser"),
        log_level=os.environ.get("LOG_LEVEL", "DEBUG" if demo_mode else "INFO").upper(),
        services=services or ["system", "tenant", "user"],
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; region={cfg.aws_region}; services={','.join(cfg.services)}")

    if demo_mode:
        print("[settings] WARNING: Demo defaults in use. Do not deploy with these defaults.")

    return cfg
