"""Pytest shared fixtures: config, mocked AWS collaborators, Flask test client."""
import os
import pathlib
import sys
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from typing import Optional
from unittest.mock import MagicMock

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")

import jwt
import pytest
import requests

from saas_identity.config import AppConfig
from saas_identity.core.aws.exceptions import RecordStoreError
from saas_identity.core.aws.identity import IdentityProvisioningClient
from saas_identity.core.aws.records import TableManager
from saas_identity.core.services import build_services
from saas_identity.core.user_manager_client import UserManagerClient
from saas_identity.flask_app import create_app
from scripts import audit

ACCOUNT_ID = "123456789012"
REGION = "us-east-1"
POOL_ID = "us-east-1_AbCdEf123"
CLIENT_ID = "3n4b5urk1ft4fl3mg5e62d9ado"
IDENTITY_POOL_ID = "us-east-1:11111111-2222-3333-4444-555555555555"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch):
    """Fail loudly if anything reaches for the network through requests."""

    def _refuse(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Unexpected network access in tests: {method} {url}")

    monkeypatch.setattr(requests.Session, "request", _refuse)


@pytest.fixture(autouse=True)
def _isolated_audit_log(monkeypatch, tmp_path):
    """Keep audit events out of the working tree."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "provisioning-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        aws_region=REGION,
        aws_account_id=ACCOUNT_ID,
        user_service_url="http://user-manager.test/user",
    )
    base.update(overrides)
    return AppConfig(**base)


@pytest.fixture()
def cfg():
    return make_config()


@pytest.fixture()
def ids():
    """Identifiers the identity double hands out."""
    return SimpleNamespace(
        account_id=ACCOUNT_ID,
        region=REGION,
        pool_id=POOL_ID,
        client_id=CLIENT_ID,
        identity_pool_id=IDENTITY_POOL_ID,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Record store double
# ─────────────────────────────────────────────────────────────────────────────
class FakeRecordStore:
    """In-memory stand-in for RecordStore; `fail_on` names operations that raise."""

    def __init__(self, key_fields, fail_on=()):
        self.key_fields = tuple(key_fields)
        self.items = {}
        self.fail_on = set(fail_on)
        self.calls = []

    def _key(self, item):
        return tuple(item.get(field, "") for field in self.key_fields)

    def _record(self, operation):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RecordStoreError(operation, "ProvisionedThroughputExceededException", f"{operation} throttled")

    def get_item(self, key):
        self._record("get_item")
        item = self.items.get(self._key(key))
        return dict(item) if item else None

    def query_index(self, index_name, attribute, value):
        self._record("query_index")
        return [dict(item) for item in self.items.values() if item.get(attribute) == value]

    def scan(self, require_attribute: Optional[str] = None):
        self._record("scan")
        return [dict(item) for item in self.items.values() if not require_attribute or item.get(require_attribute)]

    def put_item(self, item):
        self._record("put_item")
        self.items[self._key(item)] = dict(item)
        return item

    def delete_item(self, key):
        self._record("delete_item")
        self.items.pop(self._key(key), None)


@pytest.fixture()
def user_store():
    return FakeRecordStore(("tenant_id", "id"))


@pytest.fixture()
def tenant_store():
    return FakeRecordStore(("id",))


@pytest.fixture()
def stores(cfg, user_store, tenant_store):
    return {cfg.user_table: user_store, cfg.tenant_table: tenant_store}


@pytest.fixture()
def store_factory(stores):
    return lambda credentials, table_name: stores[table_name]


# ─────────────────────────────────────────────────────────────────────────────
# Identity provider double
# ─────────────────────────────────────────────────────────────────────────────
def _arn(kind, name):
    return f"arn:aws:iam::{ACCOUNT_ID}:{kind}/{name}"


@pytest.fixture()
def identity():
    """MagicMock IdentityProvisioningClient answering like Cognito/IAM would.

    All methods hang off one mock, so `identity.mock_calls` keeps call order.
    """
    mock = MagicMock(spec=IdentityProvisioningClient)
    mock.region = REGION
    mock.create_user_pool.side_effect = lambda tenant_id: {"Id": POOL_ID, "Name": tenant_id}
    mock.create_user_pool_client.side_effect = lambda name, pool_id: {
        "ClientId": CLIENT_ID,
        "UserPoolId": pool_id,
        "ClientName": name,
    }
    mock.create_identity_pool.side_effect = lambda client_id, pool_id, name: {
        "IdentityPoolId": IDENTITY_POOL_ID,
        "IdentityPoolName": name,
    }
    mock.create_policy.side_effect = lambda name, document: {"PolicyName": name, "Arn": _arn("policy", name)}
    mock.create_role.side_effect = lambda name, document: {"RoleName": name, "Arn": _arn("role", name)}
    mock.create_user.side_effect = lambda pool_id, user: {
        "Username": user["userName"],
        "Enabled": True,
        "UserStatus": "FORCE_CHANGE_PASSWORD",
        "Attributes": [
            {"Name": "sub", "Value": f"sub-{user['userName']}"},
            {"Name": "email", "Value": user.get("email", "")},
        ],
    }
    mock.set_identity_pool_roles.side_effect = lambda **kwargs: {"IdentityPoolId": kwargs["identity_pool_id"]}
    mock.get_credentials_for_token.return_value = {
        "AccessKeyId": "ASIATENANT",
        "SecretKey": "tenant-secret",
        "SessionToken": "tenant-session",
    }
    return mock


@pytest.fixture()
def identity_factory(identity):
    return lambda credentials: identity


@pytest.fixture()
def tables():
    return MagicMock(spec=TableManager)


@pytest.fixture()
def user_manager():
    mock = MagicMock(spec=UserManagerClient)
    mock.user_exists.return_value = False
    return mock


@pytest.fixture()
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture()
def services(cfg, identity_factory, store_factory, tables, user_manager, executor):
    return build_services(
        cfg,
        identity_factory=identity_factory,
        store_factory=store_factory,
        tables_factory=lambda credentials: tables,
        user_manager=user_manager,
        executor=executor,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Tokens
# ─────────────────────────────────────────────────────────────────────────────
def make_token(**claims) -> str:
    """Id token signed with a throwaway key; the services decode it without verification."""
    base = {
        "iss": f"https://cognito-idp.{REGION}.amazonaws.com/{POOL_ID}",
        "cognito:username": "admin@acme.test",
        "email": "admin@acme.test",
        "custom:tenant_id": "TENANTabc",
        "custom:tier": "Advanced Tier",
        "custom:role": "TenantAdmin",
    }
    base.update(claims)
    return jwt.encode(base, "test-only-key", algorithm="HS256")


@pytest.fixture()
def token_factory():
    return make_token


@pytest.fixture()
def auth_header():
    return {"Authorization": f"Bearer {make_token()}"}


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def app(cfg, services):
    flask_app = create_app(services=("system", "tenant", "user"), cfg=cfg, container=services)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client
