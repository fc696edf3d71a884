"""Generic typed repository over a DynamoDB table.

This module provides the primary public API:

- `Repository[EntityT, KeyT]` for save/find/delete operations on one
  registered entity type
- `FullScan`, the lazy and restartable result of `Repository.find_all()`

Each repository is bound to one entity type and composes the registry
schema with a boto3 Table resource. Every operation is a blocking call to
DynamoDB; nothing is cached or buffered between calls.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from types import TracebackType
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog
from botocore.exceptions import BotoCoreError, ClientError
from typing_extensions import Self

from shapestore.base import EntityT, Page
from shapestore.exceptions import wrap_boto_error
from shapestore.keys import DynamoDBKey, KeyValue, LastEvaluatedKey, build_key, is_absent_key
from shapestore.provisioner import ProvisionedCapacity, TableProvisioner
from shapestore.query import IndexedQuery
from shapestore.registry import EntityRegistry

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
else:
    DynamoDBServiceResource = Any

KeyT = TypeVar("KeyT", bound=KeyValue)

BATCH_GET_LIMIT = 100

logger = structlog.get_logger(__name__)


class _EntityBatchWriter(Generic[EntityT]):
    """Context manager for batch writing entities to DynamoDB.

    This class wraps boto3's batch_writer to accept entity instances instead
    of raw dictionaries. Duplicate keys within a batch are collapsed so that
    only the last operation on a key is sent.

    Example:
        with circles.batch_writer() as writer:
            writer.put(circle_one)
            writer.delete(circle_two)

    """

    def __init__(self, repository: "Repository[EntityT, Any]") -> None:
        self._repository = repository
        self._writer = repository.table.batch_writer(
            overwrite_by_pkeys=[repository.schema.key_attribute]
        )

    def __enter__(self) -> Self:
        self._writer.__enter__()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._writer.__exit__(exc_type, exc_val, exc_tb)

    def put(self, entity: EntityT) -> None:
        """Put an entity as is; identity fields must already be set."""
        self._writer.put_item(Item=self._repository.schema.to_item(entity))

    def delete(self, entity: EntityT) -> bool:
        """Delete an entity; entities without a key are skipped."""
        return self.delete_key(getattr(entity, self._repository.schema.key_attribute))

    def delete_key(self, key_value: KeyValue | None) -> bool:
        """Queue a delete by key.

        Returns:
            False if the key is absent and nothing was queued.

        """
        if is_absent_key(key_value):
            return False
        self._writer.delete_item(Key=self._repository._key(key_value))  # type: ignore[arg-type]
        return True


class FullScan(Generic[EntityT]):
    """Lazy, finite and restartable sequence over a whole table.

    Nothing is read until iteration starts, and each new iteration issues a
    fresh paginated scan. A scan costs O(table size) read capacity; use
    `Repository.find_page()` or an indexed query on large tables.
    """

    def __init__(self, repository: "Repository[EntityT, Any]") -> None:
        self._repository = repository

    def __iter__(self) -> Iterator[EntityT]:
        count = 0
        exclusive_start_key: LastEvaluatedKey | None = None
        while True:
            items, exclusive_start_key = self._repository.find_page(
                exclusive_start_key=exclusive_start_key
            )
            count += len(items)
            yield from items
            if exclusive_start_key is None:
                break
        logger.debug(
            "full_table_scan",
            table_name=self._repository.schema.table_name,
            item_count=count,
        )

    def __repr__(self) -> str:
        return f"FullScan({self._repository.schema.table_name})"


class Repository(Generic[EntityT, KeyT]):
    """CRUD operations for one registered entity type.

    Args:
        entity_type: The registered entity class.
        dynamodb: A boto3 DynamoDB service resource.
        registry: The registry the entity type was registered in.

    Raises:
        UnregisteredEntityError: If the entity type was never registered.

    Example:
        circles = Repository[Circle, str](Circle, dynamodb=dynamodb, registry=registry)

        saved = circles.save(Circle(radius=11, colour="blue"))
        circles.find_by_id(saved.id)
        Returns the stored circle.

        circles.delete_all()

    """

    def __init__(
        self,
        entity_type: type[EntityT],
        *,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
    ) -> None:
        self.entity_type = entity_type
        self.dynamodb = dynamodb
        self.registry = registry
        self.schema = registry.schema_for(entity_type)
        self.table = dynamodb.Table(self.schema.table_name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.schema.entity_name}, table={self.schema.table_name!r})"

    @contextmanager
    def _storage_errors(self, operation: str) -> Iterator[None]:
        """Translate botocore failures raised inside the block."""
        try:
            yield
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "storage_error",
                operation=operation,
                table_name=self.schema.table_name,
                error=str(e),
            )
            raise wrap_boto_error(
                e,
                operation=operation,
                entity_name=self.schema.entity_name,
                table_name=self.schema.table_name,
            ) from e

    def _key(self, key_value: KeyValue) -> DynamoDBKey:
        return build_key(self.schema.key_attribute, key_value)

    def ensure_table(self, capacity: ProvisionedCapacity | None = None) -> bool:
        """Create the backing table if it does not exist yet.

        Returns:
            True if the table was created by this call.

        """
        provisioner = TableProvisioner(self.dynamodb, self.registry, capacity=capacity)
        return provisioner.ensure_table(self.entity_type)

    def batch_writer(self) -> _EntityBatchWriter[EntityT]:
        """Return a batch writer that works with entities.

        Batch writes bypass `save()`: identity fields are not assigned.
        """
        return _EntityBatchWriter(self)

    def save(self, entity: EntityT) -> EntityT:
        """Write the full entity, overwriting any record with the same key.

        Assigns an id when absent and stamps the last update time. Both are
        applied to `entity` only after the write succeeds; a failed save leaves
        the entity unchanged.

        Returns:
            The same entity instance, now carrying its stored identity fields.

        Raises:
            SerializationError: If the entity cannot be converted to an item.
            StorageUnavailable: If DynamoDB fails or cannot be reached.
            InvalidRequestError: If DynamoDB rejects the item as invalid.

        """
        stamped = self._stamped(entity)
        item = self.schema.to_item(stamped)

        with self._storage_errors("save"):
            self.table.put_item(Item=item)

        self._apply_identity(entity, stamped)
        logger.debug("entity_saved", table_name=self.schema.table_name, key=entity.id)
        return entity

    def save_all(self, entities: Iterable[EntityT]) -> list[EntityT]:
        """Save several entities with a single batch writer.

        Identity fields are applied to the entities once the whole batch has
        been written.

        Returns:
            The saved entities, in input order.

        """
        saved = list(entities)
        stamped = [self._stamped(entity) for entity in saved]

        with self._storage_errors("save_all"), self.batch_writer() as writer:
            for pending in stamped:
                writer.put(pending)

        for entity, pending in zip(saved, stamped):
            self._apply_identity(entity, pending)
        return saved

    @staticmethod
    def _stamped(entity: EntityT) -> EntityT:
        stamped = entity.model_copy()
        stamped.assign_id_if_absent()
        stamped.touch()
        return stamped

    @staticmethod
    def _apply_identity(entity: EntityT, stamped: EntityT) -> None:
        entity.id = stamped.id
        entity.last_update_time = stamped.last_update_time

    def find_by_id(self, key_value: KeyT, *, consistent_read: bool = False) -> EntityT | None:
        """Get an entity by its key.

        Returns:
            The entity if found, None otherwise. An empty key is never stored
            and returns None without a request.

        Raises:
            SerializationError: If the stored item does not match the entity type.
            StorageUnavailable: If DynamoDB fails or cannot be reached.

        """
        if is_absent_key(key_value):
            return None
        with self._storage_errors("find_by_id"):
            response = self.table.get_item(
                Key=self._key(key_value),
                ConsistentRead=consistent_read,
            )

        item = response.get("Item")
        if item is None:
            return None
        return self.schema.from_item(item)

    def exists_by_id(self, key_value: KeyT) -> bool:
        if is_absent_key(key_value):
            return False
        with self._storage_errors("exists_by_id"):
            response = self.table.get_item(
                Key=self._key(key_value),
                ProjectionExpression="#k",
                ExpressionAttributeNames={"#k": self.schema.key_attribute},
            )
        return "Item" in response

    def find_all_by_id(self, key_values: Iterable[KeyT]) -> list[EntityT]:
        """Get every entity whose key is in `key_values`.

        Keys are fetched in batches of 100; missing and empty keys are skipped
        and duplicates are fetched once. Order is unspecified.
        """
        unique_keys = [
            key_value for key_value in dict.fromkeys(key_values) if not is_absent_key(key_value)
        ]
        table_name = self.schema.table_name
        found: list[EntityT] = []

        for start in range(0, len(unique_keys), BATCH_GET_LIMIT):
            request_items: dict[str, Any] = {
                table_name: {
                    "Keys": [
                        self._key(key_value)
                        for key_value in unique_keys[start : start + BATCH_GET_LIMIT]
                    ]
                }
            }
            while request_items:
                with self._storage_errors("find_all_by_id"):
                    response = self.dynamodb.batch_get_item(RequestItems=request_items)
                found.extend(
                    self.schema.from_item(item)
                    for item in response.get("Responses", {}).get(table_name, [])
                )
                request_items = response.get("UnprocessedKeys") or {}

        return found

    def find_all(self) -> FullScan[EntityT]:
        """Return every entity in the table.

        This is a full table scan. The result is lazy and restartable: each
        iteration scans the table again, so it reflects writes made between
        iterations. Order is unspecified.
        """
        return FullScan(self)

    def find_page(
        self,
        *,
        limit: int | None = None,
        exclusive_start_key: LastEvaluatedKey | None = None,
        consistent_read: bool = False,
    ) -> Page[EntityT]:
        """Scan a single page of the table.

        Args:
            limit: Maximum number of items to evaluate.
            exclusive_start_key: Pagination token from a previous page.
            consistent_read: Whether to use strongly consistent reads.

        Returns:
            Page containing items and last_evaluated_key.

        Example:
            page = circles.find_page(limit=25)
            while page.last_evaluated_key is not None:
                page = circles.find_page(
                    limit=25,
                    exclusive_start_key=page.last_evaluated_key,
                )

        """
        scan_kwargs: dict[str, Any] = {"ConsistentRead": consistent_read}
        if limit is not None:
            scan_kwargs["Limit"] = limit
        if exclusive_start_key is not None:
            scan_kwargs["ExclusiveStartKey"] = exclusive_start_key

        with self._storage_errors("find_all"):
            response = self.table.scan(**scan_kwargs)

        items = [self.schema.from_item(item) for item in response.get("Items", [])]
        last_evaluated_key: LastEvaluatedKey | None = response.get("LastEvaluatedKey")  # type: ignore[assignment]

        return Page(items=items, last_evaluated_key=last_evaluated_key)

    def find_by_attribute(self, attribute: str, value: Any) -> list[EntityT]:
        """Find entities whose indexed attribute equals `value`.

        Raises:
            UndeclaredIndexError: If the attribute was not declared as indexed.

        """
        return IndexedQuery(self, attribute).find(value)

    def count(self) -> int:
        """Count the items in the table with a paginated COUNT scan."""
        total = 0
        scan_kwargs: dict[str, Any] = {"Select": "COUNT"}
        while True:
            with self._storage_errors("count"):
                response = self.table.scan(**scan_kwargs)
            total += response.get("Count", 0)
            last_evaluated_key = response.get("LastEvaluatedKey")
            if last_evaluated_key is None:
                return total
            scan_kwargs["ExclusiveStartKey"] = last_evaluated_key

    def delete(self, entity: EntityT) -> None:
        """Delete an entity. Deleting an absent entity is not an error."""
        self.delete_by_id(getattr(entity, self.schema.key_attribute))

    def delete_by_id(self, key_value: KeyT) -> None:
        if is_absent_key(key_value):
            return
        with self._storage_errors("delete"):
            self.table.delete_item(Key=self._key(key_value))

    def batch_delete(self, entities: Iterable[EntityT]) -> int:
        """Delete the given entities with a batch writer.

        Entities without a key are skipped; absent and duplicate keys are
        not errors.

        Returns:
            The number of entities submitted for deletion.

        """
        deleted = 0
        with self._storage_errors("batch_delete"), self.batch_writer() as writer:
            for entity in entities:
                if writer.delete(entity):
                    deleted += 1

        logger.debug(
            "entities_batch_deleted",
            table_name=self.schema.table_name,
            count=deleted,
        )
        return deleted

    def delete_all_by_id(self, key_values: Iterable[KeyT]) -> int:
        deleted = 0
        with self._storage_errors("batch_delete"), self.batch_writer() as writer:
            for key_value in key_values:
                if writer.delete_key(key_value):
                    deleted += 1
        return deleted

    def delete_all(self) -> int:
        """Delete every entity in the table.

        Keys are collected with a key-only scan before any delete is sent.

        Returns:
            The number of entities deleted.

        """
        return self.delete_all_by_id(list(self._scan_keys()))

    def _scan_keys(self) -> Iterator[KeyValue]:
        key_attribute = self.schema.key_attribute
        scan_kwargs: dict[str, Any] = {
            "ProjectionExpression": "#k",
            "ExpressionAttributeNames": {"#k": key_attribute},
        }
        while True:
            with self._storage_errors("delete_all"):
                response = self.table.scan(**scan_kwargs)
            for item in response.get("Items", []):
                yield item[key_attribute]
            last_evaluated_key = response.get("LastEvaluatedKey")
            if last_evaluated_key is None:
                return
            scan_kwargs["ExclusiveStartKey"] = last_evaluated_key


__all__ = [
    "FullScan",
    "Repository",
]
