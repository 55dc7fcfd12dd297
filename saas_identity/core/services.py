"""Wiring of the core services for one process.

The HTTP app and the operator CLI both build their services here; tests pass
their own factories to swap boto3 and the user manager for mocks.
"""
from __future__ import annotations
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from ..config import AppConfig
from .aws.client import AwsClientFactory
from .aws.identity import IdentityProvisioningClient
from .aws.records import RecordStore, TableManager
from .credentials import CredentialResolver
from .models import AwsCredentials
from .provisioning_workflow import IdentityFactory, ProvisioningWorkflow, StoreFactory
from .registration_service import RegistrationService
from .user_manager_client import UserManagerClient
from .user_service import TablesFactory, UserService


@dataclass
class Services:
    cfg: AppConfig
    workflow: ProvisioningWorkflow
    resolver: CredentialResolver
    users: UserService
    registration: RegistrationService


def build_services(
    cfg: AppConfig,
    identity_factory: Optional[IdentityFactory] = None,
    store_factory: Optional[StoreFactory] = None,
    tables_factory: Optional[TablesFactory] = None,
    user_manager: Optional[UserManagerClient] = None,
    executor: Optional[Executor] = None,
) -> Services:
    """Build the service graph; omitted collaborators default to the boto3/requests ones."""
    if identity_factory is None:
        def identity_factory(credentials: AwsCredentials) -> IdentityProvisioningClient:
            return IdentityProvisioningClient(AwsClientFactory(credentials, cfg.request_timeout))

    if store_factory is None:
        def store_factory(credentials: AwsCredentials, table_name: str) -> RecordStore:
            return RecordStore(AwsClientFactory(credentials, cfg.request_timeout), table_name)

    if tables_factory is None:
        def tables_factory(credentials: AwsCredentials) -> TableManager:
            return TableManager(AwsClientFactory(credentials, cfg.request_timeout))

    workflow = ProvisioningWorkflow(cfg, identity_factory, store_factory)

    def pool_lookup(user_name: str):
        return workflow.lookup_user(resolver.system_credentials(), user_name, None, True)

    def exchange(credentials: AwsCredentials, identity_pool_id: str, user_pool_id: str, token: str):
        return identity_factory(credentials).get_credentials_for_token(identity_pool_id, user_pool_id, token)

    resolver = CredentialResolver(cfg, pool_lookup, exchange)

    users = UserService(
        cfg,
        workflow,
        resolver,
        identity_factory,
        store_factory,
        tables_factory,
        executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="table-drop"),
    )
    registration = RegistrationService(
        cfg,
        user_manager or UserManagerClient(cfg.user_service_url, timeout=cfg.request_timeout),
        lambda: store_factory(resolver.system_credentials(), cfg.tenant_table),
    )
    return Services(cfg=cfg, workflow=workflow, resolver=resolver, users=users, registration=registration)
