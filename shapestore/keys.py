"""Type aliases and helpers for DynamoDB keys.

Type aliases:
    KeyValue: The types allowed as a key value in DynamoDB.
        Includes str, bytes, bytearray, int, and Decimal.

    DynamoDBKey: A dictionary mapping the key attribute name to its value. This
        is the format required by boto3 operations like get_item and delete_item.
        Example: {"id": "0b6e4c8e-..."}

    LastEvaluatedKey: The pagination token returned by scan() and query().
        Pass it back as exclusive_start_key to continue from the next page.
"""

from decimal import Decimal
from typing import TypeAlias
from uuid import uuid4

from typing_extensions import TypeAliasType

KeyValue: TypeAlias = str | bytes | bytearray | int | Decimal
DynamoDBKey: TypeAlias = dict[str, KeyValue]
LastEvaluatedKey = TypeAliasType("LastEvaluatedKey", DynamoDBKey)


def generate_string_id() -> str:
    """Return a new random identifier for an entity with a string key."""
    return str(uuid4())


def build_key(key_attribute: str, key_value: KeyValue) -> DynamoDBKey:
    return {key_attribute: key_value}


def is_absent_key(key_value: KeyValue | None) -> bool:
    """Return True for None and empty string or binary values.

    DynamoDB rejects empty key values, so no stored entity can have one.
    """
    if key_value is None:
        return True
    return isinstance(key_value, (str, bytes, bytearray)) and len(key_value) == 0


__all__ = [
    "DynamoDBKey",
    "KeyValue",
    "LastEvaluatedKey",
    "build_key",
    "generate_string_id",
    "is_absent_key",
]
