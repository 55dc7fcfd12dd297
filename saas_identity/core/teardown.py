"""Removal of provisioned tenant infrastructure and managed tables."""
from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Callable, Iterable, List, Tuple

from .aws.exceptions import AwsError, RecordStoreError
from .aws.identity import IdentityProvisioningClient
from .aws.records import RecordStore, TableManager
from .errors import TeardownFailure, UpstreamFailure
from .models import TenantRecord

logger = logging.getLogger(__name__)


def teardown_plan(identity: IdentityProvisioningClient, tenant: TenantRecord) -> List[Tuple[str, Callable[[], None]]]:
    """Deletion calls for one tenant, in execution order.

    Policies are detached before they are deleted and roles are deleted last.
    """
    return [
        ("delete_user_pool", lambda: identity.delete_user_pool(tenant.UserPoolId)),
        ("delete_identity_pool", lambda: identity.delete_identity_pool(tenant.IdentityPoolId)),
        (
            "detach_admin_policy",
            lambda: identity.detach_role_policy(tenant.systemAdminPolicy, tenant.systemAdminRole),
        ),
        (
            "detach_member_policy",
            lambda: identity.detach_role_policy(tenant.systemSupportPolicy, tenant.systemSupportRole),
        ),
        ("delete_admin_policy", lambda: identity.delete_policy(tenant.systemAdminPolicy)),
        ("delete_member_policy", lambda: identity.delete_policy(tenant.systemSupportPolicy)),
        ("delete_admin_role", lambda: identity.delete_role(tenant.systemAdminRole)),
        ("delete_member_role", lambda: identity.delete_role(tenant.systemSupportRole)),
        ("delete_trust_role", lambda: identity.delete_role(tenant.trustRole)),
    ]


def delete_infra(identity: IdentityProvisioningClient, tenants: RecordStore) -> int:
    """Delete the identity resources of every tenant, one tenant at a time.

    Stops at the first failed call; tenants after it are not touched.

    Returns:
        Number of tenants torn down

    Raises:
        UpstreamFailure: tenant records could not be read
        TeardownFailure: a deletion call failed (tenant id and step attached)
    """
    try:
        items = tenants.scan(require_attribute="UserPoolId")
    except RecordStoreError as e:
        raise UpstreamFailure("list_tenants", e) from e

    records = [TenantRecord.from_item(item) for item in items]
    logger.debug("%d tenants with infrastructure", len(records))

    for tenant in records:
        for step, call in teardown_plan(identity, tenant):
            try:
                call()
            except AwsError as e:
                logger.error("Teardown of %s failed at %s: %s", tenant.id, step, e)
                raise TeardownFailure(tenant.id, step, e) from e
        try:
            tenants.delete_item({"id": tenant.id})
        except RecordStoreError as e:
            raise TeardownFailure(tenant.id, "delete_tenant_record", e) from e
        logger.info("Removed infrastructure for tenant %s", tenant.id)

    return len(records)


def _log_table_result(table_name: str, future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Error deleting %s: %s", table_name, error)


def delete_tables(executor: Executor, tables: TableManager, names: Iterable[str]) -> List[Future]:
    """Submit one drop per table and return without waiting.

    Failures are only logged; callers get no outcome.
    """
    futures = []
    for name in names:
        future = executor.submit(tables.delete_table, name)
        future.add_done_callback(lambda f, table_name=name: _log_table_result(table_name, f))
        futures.append(future)
    return futures
