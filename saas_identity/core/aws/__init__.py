"""AWS adapters used by the provisioning services.

Architecture:
- client.py: boto3 session/client factory bound to one set of credentials
- identity.py: Cognito user pools, Cognito identity pools and IAM
- records.py: DynamoDB record store and table management
- exceptions.py: Typed exceptions wrapping botocore errors

Usage:
    from saas_identity.core.aws import AwsClientFactory, IdentityProvisioningClient, RecordStore

    factory = AwsClientFactory(credentials)
    identity = IdentityProvisioningClient(factory)
    users = RecordStore(factory, "User")
"""
from .client import AwsClientFactory
from .exceptions import AwsError, IdentityProviderError, RecordStoreError
from .identity import IdentityProvisioningClient, flatten_user, provider_name
from .records import (
    RecordStore,
    TableManager,
    USER_NAME_INDEX,
    user_table_schema,
    tenant_table_schema,
    tenant_scoped_schema,
)

__all__ = [
    "AwsClientFactory",
    "AwsError",
    "IdentityProviderError",
    "RecordStoreError",
    "IdentityProvisioningClient",
    "flatten_user",
    "provider_name",
    "RecordStore",
    "TableManager",
    "USER_NAME_INDEX",
    "user_table_schema",
    "tenant_table_schema",
    "tenant_scoped_schema",
]
