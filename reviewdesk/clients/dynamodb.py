"""
DynamoDB-backed record store for credentials, authorization transactions and reviews.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Key

from reviewdesk.core.config import StorageSettings


class DynamoDBStore:
    """Record store over a single table with ``pk`` / ``sk`` string keys."""

    def __init__(self, settings: StorageSettings, *, resource: Any = None) -> None:
        if not settings.dynamodb_table_name:
            raise ValueError("DYNAMODB_TABLE_NAME must be set for the dynamodb backend.")
        self._settings = settings
        self._resource = resource or boto3.resource(
            "dynamodb", region_name=settings.region_name
        )
        self._table = self._resource.Table(settings.dynamodb_table_name)

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table, dropping ``None`` attributes."""
        if not item.get("pk") or not item.get("sk"):
            raise ValueError("Item must include 'pk' and 'sk' keys")
        self._table.put_item(Item={k: v for k, v in item.items() if v is not None})

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        response = self._table.get_item(Key={"pk": partition_key, "sk": sort_key})
        return response.get("Item")

    def delete_item(self, *, partition_key: str, sort_key: str) -> None:
        self._table.delete_item(Key={"pk": partition_key, "sk": sort_key})

    def pop_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        """Delete an item and return its previous attributes, if it existed."""
        response = self._table.delete_item(
            Key={"pk": partition_key, "sk": sort_key},
            ReturnValues="ALL_OLD",
        )
        return response.get("Attributes")

    def list_items_with_prefix(
        self, *, partition_key: str, sort_key_prefix: str
    ) -> list[Dict[str, Any]]:
        condition = Key("pk").eq(partition_key) & Key("sk").begins_with(sort_key_prefix)
        items: list[Dict[str, Any]] = []
        kwargs: Dict[str, Any] = {"KeyConditionExpression": condition}
        while True:
            response = self._table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def delete_expired(self, *, attribute: str, before: int) -> int:
        """
        Expired records are removed by the table's TTL setting.

        Enable Time to Live on ``attribute`` for the table; DynamoDB then
        deletes records once that epoch timestamp has passed. Nothing is
        deleted from here, so the return value is always 0.
        """
        return 0


__all__ = ["DynamoDBStore"]
