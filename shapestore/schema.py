"""Explicit schema descriptors for persisted entity types.

An EntitySchema describes how one entity type maps onto its DynamoDB table:
the table name, the key attribute, and every persisted attribute with its
DynamoDB-native type and whether it carries a secondary index. Schemas are
built once at registration and consumed by the provisioner and repositories.
"""

import types
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union, get_args, get_origin
from uuid import UUID

from boto3.dynamodb.types import Binary
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from shapestore.exceptions import ConfigurationError, SerializationError, UndeclaredIndexError

ModelT = TypeVar("ModelT", bound=BaseModel)

INDEX_NAME_SUFFIX = "-index"


class AttributeType(str, Enum):
    """DynamoDB-native attribute types used by the schema.

    Only STRING, NUMBER and BINARY may serve as key or index attributes.
    """

    STRING = "S"
    NUMBER = "N"
    BINARY = "B"
    BOOLEAN = "BOOL"
    MAP = "M"
    LIST = "L"

    @property
    def is_scalar_key_type(self) -> bool:
        return self in (AttributeType.STRING, AttributeType.NUMBER, AttributeType.BINARY)


@dataclass(frozen=True)
class AttributeSpec:
    """A single persisted attribute.

    Attributes:
        name: The attribute name in the table (the model field name).
        attribute_type: The DynamoDB-native type of the stored value.
        is_key: Whether this is the table's partition key.
        is_indexed: Whether a global secondary index exists on this attribute.

    """

    name: str
    attribute_type: AttributeType
    is_key: bool = False
    is_indexed: bool = False


def attribute_type_for(annotation: Any) -> AttributeType:
    """Resolve the DynamoDB-native type for a model field annotation.

    Values are stored in their JSON form, so dates and UUIDs are strings.
    Bytes are stored as binary. Optional[X] resolves to the type of X.
    """
    origin = get_origin(annotation)
    if origin in (Union, types.UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return attribute_type_for(members[0])
        return AttributeType.STRING
    if origin is Literal:
        literal_values = get_args(annotation)
        if literal_values and all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in literal_values
        ):
            return AttributeType.NUMBER
        return AttributeType.STRING
    if origin in (list, tuple, set, frozenset):
        return AttributeType.LIST
    if origin is dict:
        return AttributeType.MAP

    if isinstance(annotation, type):
        # bool before int: bool is an int subclass
        if issubclass(annotation, bool):
            return AttributeType.BOOLEAN
        if issubclass(annotation, (int, float, Decimal)):
            return AttributeType.NUMBER
        if issubclass(annotation, (bytes, bytearray)):
            return AttributeType.BINARY
        if issubclass(annotation, BaseModel):
            return AttributeType.MAP
        if issubclass(annotation, (list, tuple, set, frozenset)):
            return AttributeType.LIST
        if issubclass(annotation, dict):
            return AttributeType.MAP
        if issubclass(annotation, (str, datetime, date, time, UUID, Enum)):
            return AttributeType.STRING
    return AttributeType.STRING


def to_dynamodb_value(value: Any) -> Any:
    """Convert a JSON-mode value into one boto3 can serialize.

    boto3 rejects float; numbers with a fractional part become Decimal.
    """
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamodb_value(v) for v in value]
    return value


@dataclass(frozen=True)
class EntitySchema(Generic[ModelT]):
    """Mapping of one entity type onto its DynamoDB table.

    Attributes:
        entity_type: The pydantic model class.
        table_name: The fully qualified table name, prefix included.
        key_attribute: Name of the partition key attribute.
        attributes: Every persisted attribute, in model field order.

    Example:
        schema = EntitySchema.from_model(
            Circle,
            table_name="circles",
            indexed_attributes=("colour",),
        )
        schema.index_name("colour")
        Returns "colour-index".

    """

    entity_type: type[ModelT]
    table_name: str
    key_attribute: str
    attributes: tuple[AttributeSpec, ...]

    @classmethod
    def from_model(
        cls,
        entity_type: type[ModelT],
        *,
        table_name: str,
        key_attribute: str = "id",
        indexed_attributes: tuple[str, ...] = (),
    ) -> "EntitySchema[ModelT]":
        """Build a schema from a model's declared fields.

        Raises:
            ConfigurationError: If the key or an indexed attribute is not a
                field of the model or is not a string, number or binary value,
                or if the key is also declared as indexed.

        """
        entity_name = entity_type.__name__
        fields = entity_type.model_fields

        if key_attribute not in fields:
            raise ConfigurationError(
                f"Key attribute '{key_attribute}' is not a field of {entity_name}"
            )
        if key_attribute in indexed_attributes:
            raise ConfigurationError(
                f"Key attribute '{key_attribute}' of {entity_name} cannot also be indexed"
            )
        for name in indexed_attributes:
            if name not in fields:
                raise ConfigurationError(
                    f"Indexed attribute '{name}' is not a field of {entity_name}"
                )

        attributes = []
        for name, field_info in fields.items():
            spec = AttributeSpec(
                name=name,
                attribute_type=attribute_type_for(field_info.annotation),
                is_key=name == key_attribute,
                is_indexed=name in indexed_attributes,
            )
            if (spec.is_key or spec.is_indexed) and not spec.attribute_type.is_scalar_key_type:
                raise ConfigurationError(
                    f"Attribute '{name}' of {entity_name} has type "
                    f"{spec.attribute_type.value} and cannot be a key or index attribute"
                )
            attributes.append(spec)

        return cls(
            entity_type=entity_type,
            table_name=table_name,
            key_attribute=key_attribute,
            attributes=tuple(attributes),
        )

    @property
    def entity_name(self) -> str:
        return self.entity_type.__name__

    @property
    def attribute_names(self) -> list[str]:
        return [spec.name for spec in self.attributes]

    @property
    def key_spec(self) -> AttributeSpec:
        return self.attribute(self.key_attribute)

    @property
    def indexed_attributes(self) -> list[AttributeSpec]:
        return [spec for spec in self.attributes if spec.is_indexed]

    @property
    def binary_attribute_names(self) -> set[str]:
        return {
            spec.name for spec in self.attributes if spec.attribute_type is AttributeType.BINARY
        }

    def attribute(self, name: str) -> AttributeSpec:
        for spec in self.attributes:
            if spec.name == name:
                return spec
        raise ConfigurationError(f"'{self.entity_name}' has no attribute '{name}'")

    def is_indexed(self, name: str) -> bool:
        return any(spec.name == name and spec.is_indexed for spec in self.attributes)

    def index_name(self, attribute: str) -> str:
        """Return the name of the global secondary index on an attribute.

        Raises:
            UndeclaredIndexError: If the attribute was not declared as indexed.

        """
        if not self.is_indexed(attribute):
            raise UndeclaredIndexError(attribute=attribute, entity_name=self.entity_name)
        return f"{attribute}{INDEX_NAME_SUFFIX}"

    def to_item(self, entity: ModelT) -> dict[str, Any]:
        """Serialize an entity into a DynamoDB item.

        None values are omitted so that unset indexed attributes leave the
        item out of the index rather than failing the write. Binary
        attributes keep their raw bytes.

        Raises:
            SerializationError: If the entity cannot be serialized.

        """
        if not isinstance(entity, self.entity_type):
            raise SerializationError(
                f"expected {self.entity_name}, got {type(entity).__name__}",
                entity_name=self.entity_name,
            )
        binary_names = self.binary_attribute_names
        try:
            dumped = entity.model_dump(mode="json", exclude=binary_names, exclude_none=True)
            raw = entity.model_dump(include=binary_names, exclude_none=True) if binary_names else {}
        except PydanticSerializationError as e:
            raise SerializationError(str(e), entity_name=self.entity_name, original_error=e) from e
        item = to_dynamodb_value(dumped)
        item.update({name: bytes(value) for name, value in raw.items()})
        return item

    def from_item(self, item: dict[str, Any]) -> ModelT:
        """Deserialize a DynamoDB item into an entity.

        boto3 returns binary attributes wrapped in `Binary`; they are
        unwrapped to bytes before validation.

        Raises:
            SerializationError: If an attribute does not match its field type.

        """
        values = {
            name: value.value if isinstance(value, Binary) else value
            for name, value in item.items()
        }
        try:
            return self.entity_type.model_validate(values)
        except PydanticValidationError as e:
            raise SerializationError(
                f"cannot convert stored item: {e.error_count()} invalid attribute(s)",
                entity_name=self.entity_name,
                original_error=e,
            ) from e


__all__ = [
    "AttributeSpec",
    "AttributeType",
    "EntitySchema",
    "attribute_type_for",
    "to_dynamodb_value",
]
