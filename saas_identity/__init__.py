"""Multi-tenant identity provisioning services (system registration, tenant registration, user manager)."""

__version__ = "1.0.0"
