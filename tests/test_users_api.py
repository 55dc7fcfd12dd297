"""User manager routes (/user/*, /users)."""
import pytest

from saas_identity.core.aws.exceptions import IdentityProviderError
from saas_identity.core.models import UserRecord

CALLER = "admin@acme.test"
TENANT = "TENANTabc"


@pytest.fixture()
def caller(user_store, ids):
    record = UserRecord(
        userName=CALLER,
        tenant_id=TENANT,
        tier="Advanced Tier",
        role="TenantAdmin",
        email=CALLER,
        UserPoolId=ids.pool_id,
        IdentityPoolId=ids.identity_pool_id,
        client_id=ids.client_id,
    )
    user_store.items[(TENANT, CALLER)] = record.to_item()
    return record


def _cognito_user(user_name):
    return {
        "Username": user_name,
        "Enabled": True,
        "UserStatus": "CONFIRMED",
        "UserAttributes": [
            {"Name": "sub", "Value": f"sub-{user_name}"},
            {"Name": "email", "Value": user_name},
            {"Name": "custom:tenant_id", "Value": TENANT},
        ],
    }


# ─────────────────────────────────────────────────────────────────────────────
# Infrastructure
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.critical
def test_delete_tenants_with_no_tenants(client, identity):
    resp = client.delete("/user/tenants")

    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "Success"
    assert identity.mock_calls == []


def test_delete_tenants_reports_failed_step(client, tenant_store, identity):
    tenant_store.items[("TENANT1",)] = {"id": "TENANT1", "userName": "a", "UserPoolId": "pool-1"}
    identity.delete_identity_pool.side_effect = IdentityProviderError("DeleteIdentityPool", "AccessDenied", "no")

    resp = client.delete("/user/tenants")

    assert resp.status_code == 400
    assert "TENANT1" in resp.get_data(as_text=True)
    assert "delete_identity_pool" in resp.get_data(as_text=True)


def test_delete_tables_answers_immediately(client, tables, executor, cfg):
    resp = client.delete("/user/tables")
    executor.shutdown(wait=True)

    assert resp.status_code == 200
    assert resp.get_data(as_text=True) == "Initiated removal of DynamoDB Tables"
    assert sorted(c.args[0] for c in tables.delete_table.call_args_list) == sorted(cfg.managed_tables)


# ─────────────────────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────────────────────
def test_get_user_pool(client, caller, ids):
    resp = client.get(f"/user/pool/{CALLER}")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["userName"] == CALLER
    assert body["UserPoolId"] == ids.pool_id
    assert body["IdentityPoolId"] == ids.identity_pool_id


def test_get_user_pool_unknown(client):
    resp = client.get("/user/pool/nobody")

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "User not found"}


def test_get_user_pool_store_failure(client, user_store):
    user_store.fail_on.add("query_index")

    resp = client.get("/user/pool/alice")

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "Error getting user"}


def test_get_user(client, caller, identity, auth_header):
    identity.get_user.return_value = _cognito_user(CALLER)

    resp = client.get(f"/user/{CALLER}", headers=auth_header)

    assert resp.status_code == 200
    assert resp.get_json()["email"] == CALLER
    assert resp.get_json()["tenant_id"] == TENANT


def test_get_user_provider_failure(client, caller, identity, auth_header):
    identity.get_user.side_effect = IdentityProviderError("AdminGetUser", "UserNotFoundException", "gone")

    resp = client.get(f"/user/{CALLER}", headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_json() == f"Error looking up user: {CALLER}"


def test_get_user_without_token(client, caller):
    resp = client.get(f"/user/{CALLER}")

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "Error getting user"}


def test_list_users(client, caller, identity, auth_header):
    identity.list_users.return_value = [_cognito_user(CALLER), _cognito_user("bob@acme.test")]

    resp = client.get("/users", headers=auth_header)

    assert resp.status_code == 200
    assert [u["userName"] for u in resp.get_json()] == [CALLER, "bob@acme.test"]


def test_list_users_failure(client, caller, identity, auth_header):
    identity.list_users.side_effect = IdentityProviderError("ListUsers", "AccessDenied", "nope")

    resp = client.get("/users", headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_data(as_text=True).startswith("Error retrieving user list: ")


# ─────────────────────────────────────────────────────────────────────────────
# Creation
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.critical
def test_create_user(client, caller, user_store, auth_header):
    resp = client.post("/user", json={"userName": "bob@acme.test", "firstName": "Bob"}, headers=auth_header)

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "success"}
    stored = user_store.items[(TENANT, "bob@acme.test")]
    assert stored["role"] == "TenantUser"
    assert stored["UserPoolId"] == caller.UserPoolId


def test_create_user_without_pool(client, user_store, ids, auth_header):
    # Resolvable credentials, but no record for the caller in the token's tenant
    user_store.items[("TENANTother", CALLER)] = UserRecord(
        userName=CALLER, tenant_id="TENANTother", UserPoolId=ids.pool_id, IdentityPoolId=ids.identity_pool_id
    ).to_item()

    resp = client.post("/user", json={"userName": "bob@acme.test"}, headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "User pool not found"}


def test_create_user_provider_failure(client, caller, identity, auth_header):
    identity.create_user.side_effect = IdentityProviderError("AdminCreateUser", "UsernameExistsException", "taken")

    resp = client.post("/user", json={"userName": "bob@acme.test"}, headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "Error creating user"}


def test_provision_tenant_admin_returns_identifiers(client, ids):
    payload = {"tenant_id": "TENANT1", "userName": "alice", "tier": "gold", "email": "a@acme.com"}

    resp = client.post("/user/reg", json=payload)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["pool"]["UserPool"]["Id"] == ids.pool_id
    assert body["userPoolClient"]["UserPoolClient"]["ClientId"] == ids.client_id
    assert body["identityPool"]["IdentityPoolId"] == ids.identity_pool_id
    assert body["role"] == {
        "systemAdminRole": "TENANT1-TenantAdmin",
        "systemSupportRole": "TENANT1-TenantUser",
        "trustRole": "TENANT1-Trust",
    }
    assert body["policy"]["systemAdminPolicy"].endswith(":policy/TENANT1-TenantAdminPolicy")
    assert body["user"]["role"] == "TenantAdmin"
    assert body["addRoleToIdentity"]["IdentityPoolId"] == ids.identity_pool_id


def test_provision_tenant_admin_existing_user(client, caller):
    resp = client.post("/user/reg", json={"tenant_id": "TENANT2", "userName": CALLER})

    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "Error provisioning tenant admin user"


def test_provision_system_admin(client, cfg):
    resp = client.post("/user/system", json={"tenant_id": "SYSADMIN1", "userName": "root"})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["role"]["systemAdminRole"] == f"SYSADMIN1-{cfg.role_system_admin}"
    assert body["user"]["tier"] == cfg.system_tier


def test_provision_requires_tenant(client):
    resp = client.post("/user/system", json={"userName": "root"})
    assert resp.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Updates
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.parametrize("path, enabled", [("/user/enable", True), ("/user/disable", False)])
def test_enable_disable(client, caller, identity, auth_header, ids, path, enabled):
    resp = client.put(path, json={"userName": CALLER}, headers=auth_header)

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "success"}
    identity.set_user_enabled.assert_called_once_with(ids.pool_id, CALLER, enabled)


def test_disable_unknown_user(client, caller, auth_header):
    resp = client.put("/user/disable", json={"userName": "ghost@acme.test"}, headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "Error disabling user"


def test_update_user(client, caller, identity, auth_header):
    identity.update_user_attributes.side_effect = lambda pool_id, user: user

    resp = client.put("/user", json={"userName": CALLER, "firstName": "Ada"}, headers=auth_header)

    assert resp.status_code == 200
    assert resp.get_json() == {"userName": CALLER, "firstName": "Ada"}


def test_delete_user(client, caller, identity, user_store, auth_header, ids):
    user_store.items[(TENANT, "bob@acme.test")] = UserRecord(
        userName="bob@acme.test", tenant_id=TENANT, UserPoolId=ids.pool_id
    ).to_item()

    resp = client.delete("/user/bob@acme.test", headers=auth_header)

    assert resp.status_code == 200
    identity.delete_user.assert_called_once_with(ids.pool_id, "bob@acme.test")
    assert (TENANT, "bob@acme.test") not in user_store.items


def test_delete_unknown_user(client, caller, auth_header):
    resp = client.delete("/user/ghost@acme.test", headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_data(as_text=True) == "User does not exist"


def test_delete_user_provider_failure(client, caller, identity, auth_header):
    identity.delete_user.side_effect = IdentityProviderError("AdminDeleteUser", "AccessDenied", "no")

    resp = client.delete(f"/user/{CALLER}", headers=auth_header)

    assert resp.status_code == 400
    assert resp.get_json() == {"Error": "Error deleting user"}
