"""Equality lookups on declared secondary indexes.

An IndexedQuery is bound to one attribute that was declared as indexed when
its entity type was registered. Binding to any other attribute fails at
construction, so a repository cannot quietly fall back to a full table scan.
"""

from typing import TYPE_CHECKING, Any, Generic

from boto3.dynamodb.conditions import Key

from shapestore.base import EntityT
from shapestore.keys import LastEvaluatedKey

if TYPE_CHECKING:
    from shapestore.repository import Repository


class IndexedQuery(Generic[EntityT]):
    """Query entities by an indexed, non-key attribute.

    Args:
        repository: The repository of the entity type to query.
        attribute: The indexed attribute to match on.

    Raises:
        UndeclaredIndexError: If `attribute` was not declared as indexed.

    Example:
        by_colour = IndexedQuery(circles, "colour")
        blue_circles = by_colour.find("blue")

        IndexedQuery(circles, "radius")
        Raises UndeclaredIndexError.

    """

    def __init__(self, repository: "Repository[EntityT, Any]", attribute: str) -> None:
        self._repository = repository
        self.attribute = attribute
        self.index_name = repository.schema.index_name(attribute)

    def __repr__(self) -> str:
        return f"IndexedQuery({self._repository.schema.entity_name}.{self.attribute})"

    def __call__(self, value: Any) -> list[EntityT]:
        return self.find(value)

    def find(self, value: Any) -> list[EntityT]:
        """Return every entity whose attribute equals `value`.

        Pagination is handled automatically. Order is unspecified.

        Raises:
            SerializationError: If a returned item does not match the entity type.
            StorageUnavailable: If DynamoDB fails or cannot be reached.

        """
        repository = self._repository
        query_kwargs: dict[str, Any] = {
            "IndexName": self.index_name,
            "KeyConditionExpression": Key(self.attribute).eq(value),
        }

        found: list[EntityT] = []
        while True:
            with repository._storage_errors(f"find_by_{self.attribute}"):
                response = repository.table.query(**query_kwargs)
            found.extend(repository.schema.from_item(item) for item in response.get("Items", []))
            last_evaluated_key: LastEvaluatedKey | None = response.get("LastEvaluatedKey")  # type: ignore[assignment]
            if last_evaluated_key is None:
                return found
            query_kwargs["ExclusiveStartKey"] = last_evaluated_key


__all__ = [
    "IndexedQuery",
]
