"""DynamoDB-backed user store."""

import asyncio
import json
from decimal import Decimal
from typing import Any

from src.users.models import User
from src.users.store import UserStore


class UserExistsError(Exception):
    """Raised when a put would overwrite an existing user_id."""


class DynamoDBUserStore(UserStore):
    """Stores users in a DynamoDB table keyed on user_id."""

    def __init__(self, table_name: str, region: str = "us-east-1"):
        self._table_name = table_name
        self._region = region
        self._table = None

    def _get_table(self):
        """Lazy-init boto3 Table resource."""
        if self._table is None:
            import boto3

            dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self._table = dynamodb.Table(self._table_name)
        return self._table

    async def list_users(self) -> list[User]:
        items = await asyncio.to_thread(self._scan_all)
        users = [User.from_dict(_from_dynamo(item)) for item in items]
        return sorted(users, key=lambda u: u.created_at)

    async def create_user(self, user: User) -> User:
        await asyncio.to_thread(self._put, user)
        return user

    def _scan_all(self) -> list[dict]:
        """Scan the whole table, following LastEvaluatedKey pages."""
        table = self._get_table()
        items: list[dict] = []
        kwargs: dict[str, Any] = {}
        while True:
            resp = table.scan(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _put(self, user: User) -> None:
        from botocore.exceptions import ClientError

        table = self._get_table()
        try:
            table.put_item(
                Item=_to_dynamo(user.to_dict()),
                ConditionExpression="attribute_not_exists(user_id)",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise UserExistsError(user.user_id) from e
            raise


def _to_dynamo(item: dict) -> dict:
    """boto3 rejects floats; route numbers through Decimal."""
    return json.loads(json.dumps(item), parse_float=Decimal)


def _from_dynamo(value: Any) -> Any:
    """Convert boto3's Decimals back into JSON-friendly ints and floats."""
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value
