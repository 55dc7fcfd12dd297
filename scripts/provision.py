"""Operator CLI for the identity reference backend.

Wraps saas_identity.core services for one-off tasks: creating or dropping the
managed tables, tearing down tenant infrastructure, and checking records.
"""
from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from saas_identity.config import load_settings
from saas_identity.core.aws import (
    RecordStoreError,
    tenant_scoped_schema,
    tenant_table_schema,
    user_table_schema,
)
from saas_identity.core.errors import NotFoundError, ProvisioningError
from saas_identity.core.services import Services, build_services
from scripts import audit


def table_schemas(cfg) -> list[dict]:
    return [
        user_table_schema(cfg.user_table),
        tenant_table_schema(cfg.tenant_table),
        tenant_scoped_schema(cfg.product_table, "product_id"),
        tenant_scoped_schema(cfg.order_table, "order_id"),
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SaaS identity provisioning helper")
    sub = parser.add_subparsers(dest="cmd")

    ct = sub.add_parser("create-tables", help="Create the user, tenant, product and order tables")
    ct.add_argument("--no-wait", action="store_true", help="Do not wait for tables to become active")

    sub.add_parser("drop-tables", help="Delete the managed tables")
    sub.add_parser("teardown", help="Delete every tenant's pools, roles and policies")

    lu = sub.add_parser("lookup-user", help="Print a user record (searched across tenants)")
    lu.add_argument("--username", required=True)

    sub.add_parser("verify-audit", help="Verify audit log signatures")
    return parser


def main(argv: Optional[Sequence[str]] = None, services: Optional[Services] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    services = services or build_services(load_settings())
    cfg = services.cfg
    credentials = services.resolver.system_credentials()

    if args.cmd == "create-tables":
        tables = services.users.tables_factory(credentials)
        try:
            for schema in table_schemas(cfg):
                created = tables.create_table(schema, wait=not args.no_wait)
                state = "created" if created else "exists"
                print(f"[create-tables] {schema['TableName']}: {state}")
        except RecordStoreError as e:
            print(f"[create-tables] Error: {e}", file=sys.stderr)
            return 1
        return 0

    if args.cmd == "drop-tables":
        tables = services.users.tables_factory(credentials)
        failures = 0
        for name in cfg.managed_tables:
            try:
                tables.delete_table(name)
                print(f"[drop-tables] {name}: deleted")
            except RecordStoreError as e:
                failures += 1
                print(f"[drop-tables] {name}: {e}", file=sys.stderr)
        return 1 if failures else 0

    if args.cmd == "teardown":
        try:
            count = services.users.delete_infra()
        except ProvisioningError as e:
            print(f"[teardown] Error: {e.message}", file=sys.stderr)
            return 1
        print(f"[teardown] Removed infrastructure for {count} tenant(s)")
        return 0

    if args.cmd == "lookup-user":
        try:
            record = services.users.get_pool_record(args.username)
        except NotFoundError:
            print(f"[lookup-user] User '{args.username}' not found", file=sys.stderr)
            return 1
        except ProvisioningError as e:
            print(f"[lookup-user] Error: {e.message}", file=sys.stderr)
            return 1
        print(json.dumps(record.to_item(), indent=2, sort_keys=True))
        return 0

    parser.error(f"Unknown command: {args.cmd}")


if __name__ == "__main__":
    sys.exit(main())
