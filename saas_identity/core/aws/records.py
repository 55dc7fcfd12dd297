"""DynamoDB-backed record store for user and tenant metadata."""
from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from .client import AwsClientFactory
from .exceptions import RecordStoreError, error_code, error_message

logger = logging.getLogger(__name__)

USER_NAME_INDEX = "UserNameIndex"

_THROUGHPUT = {"ReadCapacityUnits": 10, "WriteCapacityUnits": 10}


def user_table_schema(table_name: str) -> Dict[str, Any]:
    """User table: hash `tenant_id`, range `id`, GSI on bare `id`."""
    return {
        "TableName": table_name,
        "KeySchema": [
            {"AttributeName": "tenant_id", "KeyType": "HASH"},
            {"AttributeName": "id", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "tenant_id", "AttributeType": "S"},
            {"AttributeName": "id", "AttributeType": "S"},
        ],
        "ProvisionedThroughput": dict(_THROUGHPUT),
        "GlobalSecondaryIndexes": [
            {
                "IndexName": USER_NAME_INDEX,
                "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
                "ProvisionedThroughput": dict(_THROUGHPUT),
            }
        ],
    }


def tenant_table_schema(table_name: str) -> Dict[str, Any]:
    return {
        "TableName": table_name,
        "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": "id", "AttributeType": "S"}],
        "ProvisionedThroughput": dict(_THROUGHPUT),
    }


def tenant_scoped_schema(table_name: str, range_key: str) -> Dict[str, Any]:
    """Product/order tables: hash `tenant_id`, range on the item id."""
    return {
        "TableName": table_name,
        "KeySchema": [
            {"AttributeName": "tenant_id", "KeyType": "HASH"},
            {"AttributeName": range_key, "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "tenant_id", "AttributeType": "S"},
            {"AttributeName": range_key, "AttributeType": "S"},
        ],
        "ProvisionedThroughput": dict(_THROUGHPUT),
    }


def _guard(operation: str, table_name: str, fn: Callable[..., Any], **kwargs) -> Any:
    try:
        return fn(**kwargs)
    except (ClientError, BotoCoreError) as exc:
        logger.error("%s on %s failed: %s", operation, table_name, exc)
        raise RecordStoreError(operation, error_code(exc), error_message(exc)) from exc


class RecordStore:
    """get/query/put/delete for one table.

    Usage:
        users = RecordStore(factory, "User")
        users.put_item({"tenant_id": "TENANT1", "id": "alice"})
        users.query_index(USER_NAME_INDEX, "id", "alice")
    """

    def __init__(self, factory: AwsClientFactory, table_name: str):
        self.factory = factory
        self.table_name = table_name
        self._table = None

    @property
    def table(self):
        if self._table is None:
            self._table = self.factory.resource("dynamodb").Table(self.table_name)
        return self._table

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = _guard("GetItem", self.table_name, self.table.get_item, Key=key)
        return response.get("Item")

    def query_index(self, index_name: str, attribute: str, value: str) -> List[Dict[str, Any]]:
        """Query a secondary index by equality; results come back in index order."""
        items: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(attribute).eq(value),
        }
        while True:
            response = _guard("Query", self.table_name, self.table.query, **params)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params["ExclusiveStartKey"] = last_key

    def scan(self, require_attribute: Optional[str] = None) -> List[Dict[str, Any]]:
        """Full table scan, optionally limited to items that carry `require_attribute`."""
        items: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {}
        if require_attribute:
            params["FilterExpression"] = Attr(require_attribute).exists()
        while True:
            response = _guard("Scan", self.table_name, self.table.scan, **params)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            params["ExclusiveStartKey"] = last_key

    def put_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        _guard("PutItem", self.table_name, self.table.put_item, Item=item)
        return item

    def delete_item(self, key: Dict[str, Any]) -> None:
        _guard("DeleteItem", self.table_name, self.table.delete_item, Key=key)


class TableManager:
    """Creates and drops the managed tables."""

    def __init__(self, factory: AwsClientFactory):
        self.factory = factory

    @property
    def client(self):
        return self.factory.client("dynamodb")

    def table_exists(self, table_name: str) -> bool:
        try:
            self.client.describe_table(TableName=table_name)
            return True
        except ClientError as exc:
            if error_code(exc) == "ResourceNotFoundException":
                return False
            raise RecordStoreError("DescribeTable", error_code(exc), error_message(exc)) from exc

    def create_table(self, schema: Dict[str, Any], wait: bool = True) -> bool:
        """Create a table unless it already exists. Returns True when created."""
        table_name = schema["TableName"]
        if self.table_exists(table_name):
            logger.info("Table %s already exists", table_name)
            return False
        _guard("CreateTable", table_name, self.client.create_table, **schema)
        if wait:
            self.client.get_waiter("table_exists").wait(TableName=table_name)
        logger.info("Created table %s", table_name)
        return True

    def delete_table(self, table_name: str) -> None:
        _guard("DeleteTable", table_name, self.client.delete_table, TableName=table_name)
        logger.info("Deleted table %s", table_name)
