"""Core Business Logic Module

Provisioning logic for tenants and users, independent of Flask.

Module Structure:
    - aws/                     : boto3 adapters (Cognito, IAM, DynamoDB)
    - provisioning_workflow.py : ordered admin-user provisioning pipeline
    - teardown.py              : tenant infrastructure and table removal
    - credentials.py           : request context and credential resolution
    - user_service.py          : user manager operations
    - registration_service.py  : tenant / system-admin registration
    - user_manager_client.py   : HTTP client for the user manager
    - services.py              : service wiring for the app and the CLI
    - policies.py              : IAM policy templates
    - models.py, errors.py, validators.py

Usage Pattern:
    These modules are NOT auto-imported; import explicitly when needed:
        from saas_identity.core.services import build_services
        from saas_identity.core.errors import ProvisioningError
"""
