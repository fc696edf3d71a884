"""Idempotent table creation for registered entity types.

The provisioner turns an EntitySchema into a DynamoDB CreateTable request with
provisioned throughput for the table and each of its global secondary
indexes. A table that already exists is the expected steady state and is not
an error.
"""

from typing import TYPE_CHECKING, Any, NamedTuple

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from shapestore.exceptions import ConfigurationError, ShapeStoreError, wrap_boto_error
from shapestore.registry import EntityRegistry
from shapestore.schema import EntitySchema

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
else:
    DynamoDBServiceResource = Any

logger = structlog.get_logger(__name__)


class ProvisionedCapacity(NamedTuple):
    """Read and write capacity units for a table or index."""

    read_capacity_units: int = 10
    write_capacity_units: int = 10

    def throughput(self) -> dict[str, int]:
        """Render the capacity as a DynamoDB ProvisionedThroughput value.

        Raises:
            ConfigurationError: If either capacity is not positive.

        """
        if self.read_capacity_units < 1 or self.write_capacity_units < 1:
            raise ConfigurationError(
                "Provisioned capacity must be at least 1 read and 1 write unit, "
                f"got {self.read_capacity_units}/{self.write_capacity_units}"
            )
        return {
            "ReadCapacityUnits": self.read_capacity_units,
            "WriteCapacityUnits": self.write_capacity_units,
        }


class TableProvisioner:
    """Creates the tables backing registered entity types.

    Args:
        dynamodb: A boto3 DynamoDB service resource.
        registry: The registry holding the entity schemas.
        capacity: Capacity applied to every table and every index.

    Example:
        provisioner = TableProvisioner(dynamodb, registry)
        provisioner.ensure_table(Circle)
        Returns True, the table was created.

        provisioner.ensure_table(Circle)
        Returns False, the table already existed.

    """

    def __init__(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
        *,
        capacity: ProvisionedCapacity | None = None,
    ) -> None:
        self.dynamodb = dynamodb
        self.registry = registry
        self.capacity = capacity or ProvisionedCapacity()

    def build_create_table_request(self, entity_type: type[BaseModel]) -> dict[str, Any]:
        """Build the CreateTable kwargs for an entity type.

        Every global secondary index gets its own ProvisionedThroughput;
        DynamoDB rejects provisioned tables whose indexes lack one.

        Raises:
            UnregisteredEntityError: If the type was never registered.
            ConfigurationError: If the capacity is invalid.

        """
        schema = self.registry.schema_for(entity_type)
        throughput = self.capacity.throughput()

        attribute_definitions = [
            {
                "AttributeName": schema.key_attribute,
                "AttributeType": schema.key_spec.attribute_type.value,
            },
        ]
        global_secondary_indexes = []
        for spec in schema.indexed_attributes:
            attribute_definitions.append(
                {"AttributeName": spec.name, "AttributeType": spec.attribute_type.value}
            )
            global_secondary_indexes.append(
                {
                    "IndexName": schema.index_name(spec.name),
                    "KeySchema": [{"AttributeName": spec.name, "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                    "ProvisionedThroughput": dict(throughput),
                }
            )

        request: dict[str, Any] = {
            "TableName": schema.table_name,
            "KeySchema": [{"AttributeName": schema.key_attribute, "KeyType": "HASH"}],
            "AttributeDefinitions": attribute_definitions,
            "ProvisionedThroughput": throughput,
        }
        if global_secondary_indexes:
            request["GlobalSecondaryIndexes"] = global_secondary_indexes

        return request

    def ensure_table(self, entity_type: type[BaseModel]) -> bool:
        """Create the table for an entity type unless it already exists.

        Meant to run once per entity type at startup, not per request.

        Returns:
            True if the table was created by this call, False if it existed.

        Raises:
            UnregisteredEntityError: If the type was never registered.
            StorageUnavailable: If creation fails for any other reason.

        """
        schema = self.registry.schema_for(entity_type)
        request = self.build_create_table_request(entity_type)

        try:
            table = self.dynamodb.create_table(**request)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceInUseException":
                logger.debug(
                    "table_already_exists",
                    table_name=schema.table_name,
                    entity_type=schema.entity_name,
                )
                return False
            raise self._storage_error(e, schema, operation="create_table") from e
        except BotoCoreError as e:
            raise self._storage_error(e, schema, operation="create_table") from e

        try:
            table.wait_until_exists()
        except (ClientError, BotoCoreError) as e:
            raise self._storage_error(e, schema, operation="create_table") from e

        logger.info(
            "table_created",
            table_name=schema.table_name,
            entity_type=schema.entity_name,
            indexes=[index["IndexName"] for index in request.get("GlobalSecondaryIndexes", [])],
        )
        return True

    def ensure_tables(self) -> dict[str, bool]:
        """Ensure the tables of every registered entity type.

        Returns:
            Mapping of table name to whether it was created by this call.

        """
        return {
            self.registry.table_name(entity_type): self.ensure_table(entity_type)
            for entity_type in self.registry.registered_types()
        }

    def drop_table(self, entity_type: type[BaseModel]) -> bool:
        """Delete the table for an entity type.

        Returns:
            True if the table was deleted, False if it did not exist.

        Raises:
            StorageUnavailable: If deletion fails for any other reason.

        """
        schema = self.registry.schema_for(entity_type)
        table = self.dynamodb.Table(schema.table_name)

        try:
            table.delete()
            table.wait_until_not_exists()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return False
            raise self._storage_error(e, schema, operation="delete_table") from e
        except BotoCoreError as e:
            raise self._storage_error(e, schema, operation="delete_table") from e

        logger.info("table_dropped", table_name=schema.table_name)
        return True

    @staticmethod
    def _storage_error(
        error: Exception,
        schema: EntitySchema,
        *,
        operation: str,
    ) -> ShapeStoreError:
        logger.warning(
            "storage_error",
            operation=operation,
            table_name=schema.table_name,
            error=str(error),
        )
        return wrap_boto_error(
            error,
            operation=operation,
            entity_name=schema.entity_name,
            table_name=schema.table_name,
        )


__all__ = [
    "ProvisionedCapacity",
    "TableProvisioner",
]
