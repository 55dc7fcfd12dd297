"""Unit tests for saas_identity/core/aws/records.py"""
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from saas_identity.core.aws.exceptions import RecordStoreError
from saas_identity.core.aws.records import (
    USER_NAME_INDEX,
    RecordStore,
    TableManager,
    tenant_scoped_schema,
    user_table_schema,
)


def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


@pytest.fixture
def table():
    return MagicMock()


@pytest.fixture
def store(table):
    factory = MagicMock()
    factory.resource.return_value.Table.return_value = table
    return RecordStore(factory, "User")


def test_get_item(store, table):
    table.get_item.return_value = {"Item": {"id": "alice"}}

    assert store.get_item({"tenant_id": "T", "id": "alice"}) == {"id": "alice"}
    table.get_item.assert_called_once_with(Key={"tenant_id": "T", "id": "alice"})


def test_get_item_missing(store, table):
    table.get_item.return_value = {}
    assert store.get_item({"tenant_id": "T", "id": "ghost"}) is None


def test_query_index_follows_pages(store, table):
    table.query.side_effect = [
        {"Items": [{"id": "alice", "tenant_id": "T1"}], "LastEvaluatedKey": {"id": "alice"}},
        {"Items": [{"id": "alice", "tenant_id": "T2"}]},
    ]

    items = store.query_index(USER_NAME_INDEX, "id", "alice")

    assert [item["tenant_id"] for item in items] == ["T1", "T2"]
    first, second = table.query.call_args_list
    assert first.kwargs["IndexName"] == USER_NAME_INDEX
    assert "ExclusiveStartKey" not in first.kwargs
    assert second.kwargs["ExclusiveStartKey"] == {"id": "alice"}


def test_scan_filters_on_attribute(store, table):
    table.scan.return_value = {"Items": [{"id": "TENANT1"}]}

    assert store.scan(require_attribute="UserPoolId") == [{"id": "TENANT1"}]
    assert "FilterExpression" in table.scan.call_args.kwargs


def test_put_and_delete(store, table):
    item = {"tenant_id": "T", "id": "alice"}

    assert store.put_item(item) is item
    store.delete_item({"tenant_id": "T", "id": "alice"})

    table.put_item.assert_called_once_with(Item=item)
    table.delete_item.assert_called_once_with(Key={"tenant_id": "T", "id": "alice"})


def test_client_errors_become_record_store_errors(store, table):
    table.put_item.side_effect = _client_error("ConditionalCheckFailedException", "PutItem")

    with pytest.raises(RecordStoreError) as exc_info:
        store.put_item({"id": "x"})
    assert exc_info.value.operation == "PutItem"
    assert exc_info.value.code == "ConditionalCheckFailedException"


def test_user_table_schema_has_user_name_index():
    schema = user_table_schema("User")

    assert [k["AttributeName"] for k in schema["KeySchema"]] == ["tenant_id", "id"]
    index = schema["GlobalSecondaryIndexes"][0]
    assert index["IndexName"] == USER_NAME_INDEX
    assert index["KeySchema"] == [{"AttributeName": "id", "KeyType": "HASH"}]


def test_tenant_scoped_schema_range_key():
    schema = tenant_scoped_schema("Order", "order_id")
    assert schema["KeySchema"][1] == {"AttributeName": "order_id", "KeyType": "RANGE"}


# ============================================================================
# TableManager
# ============================================================================

@pytest.fixture
def dynamodb():
    return MagicMock()


@pytest.fixture
def manager(dynamodb):
    factory = MagicMock()
    factory.client.return_value = dynamodb
    return TableManager(factory)


def test_create_table_when_missing(manager, dynamodb):
    dynamodb.describe_table.side_effect = _client_error("ResourceNotFoundException", "DescribeTable")

    assert manager.create_table(user_table_schema("User"), wait=False) is True
    assert dynamodb.create_table.call_args.kwargs["TableName"] == "User"


def test_create_table_skips_existing(manager, dynamodb):
    dynamodb.describe_table.return_value = {"Table": {"TableName": "User"}}

    assert manager.create_table(user_table_schema("User")) is False
    dynamodb.create_table.assert_not_called()


def test_table_exists_surfaces_other_errors(manager, dynamodb):
    dynamodb.describe_table.side_effect = _client_error("AccessDeniedException", "DescribeTable")

    with pytest.raises(RecordStoreError):
        manager.table_exists("User")


def test_delete_table(manager, dynamodb):
    manager.delete_table("Order")
    dynamodb.delete_table.assert_called_once_with(TableName="Order")
