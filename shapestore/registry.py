"""Registry of persisted entity types.

The registry is assembled once at startup and then only read. It answers
which table an entity type lives in, which attribute is its key, and which
attributes it persists.
"""

from collections.abc import Iterable

import structlog
from pydantic import BaseModel

from shapestore.exceptions import ConfigurationError, UnregisteredEntityError
from shapestore.schema import EntitySchema, ModelT

logger = structlog.get_logger(__name__)


class EntityRegistry:
    """Maps entity types to their table schema.

    Args:
        table_name_prefix: Namespace prepended to every registered table
            name, e.g. "dev_" turns "circles" into "dev_circles".

    Example:
        registry = EntityRegistry(table_name_prefix="dev_")
        registry.register(Circle, table_name="circles", indexed_attributes=("colour",))

        registry.table_name(Circle)
        Returns "dev_circles".

        registry.schema_for(Triangle)
        Raises UnregisteredEntityError.

    """

    def __init__(self, table_name_prefix: str = "") -> None:
        self._table_name_prefix = table_name_prefix
        self._schemas: dict[type[BaseModel], EntitySchema] = {}

    @property
    def table_name_prefix(self) -> str:
        return self._table_name_prefix

    def register(
        self,
        entity_type: type[ModelT],
        *,
        table_name: str,
        key_attribute: str = "id",
        indexed_attributes: Iterable[str] = (),
    ) -> EntitySchema[ModelT]:
        """Register an entity type.

        Args:
            entity_type: The pydantic model class to persist.
            table_name: The unprefixed table name.
            key_attribute: The field holding the partition key.
            indexed_attributes: Fields that get a global secondary index and
                may be used with attribute queries.

        Returns:
            The schema built for the entity type.

        Raises:
            ConfigurationError: If the type is already registered or the
                schema is invalid.

        """
        if entity_type in self._schemas:
            raise ConfigurationError(
                f"Entity type '{entity_type.__name__}' is already registered"
            )
        if not table_name:
            raise ConfigurationError(
                f"Entity type '{entity_type.__name__}' needs a table name"
            )

        schema = EntitySchema.from_model(
            entity_type,
            table_name=f"{self._table_name_prefix}{table_name}",
            key_attribute=key_attribute,
            indexed_attributes=tuple(indexed_attributes),
        )
        self._schemas[entity_type] = schema
        logger.debug(
            "entity_type_registered",
            entity_type=entity_type.__name__,
            table_name=schema.table_name,
        )
        return schema

    def schema_for(self, entity_type: type[ModelT]) -> EntitySchema[ModelT]:
        """Return the schema of a registered entity type.

        Raises:
            UnregisteredEntityError: If the type was never registered.

        """
        try:
            return self._schemas[entity_type]
        except KeyError:
            raise UnregisteredEntityError(entity_type) from None

    def is_registered(self, entity_type: type[BaseModel]) -> bool:
        return entity_type in self._schemas

    def registered_types(self) -> list[type[BaseModel]]:
        return list(self._schemas)

    def table_name(self, entity_type: type[BaseModel]) -> str:
        return self.schema_for(entity_type).table_name

    def key_attribute(self, entity_type: type[BaseModel]) -> str:
        return self.schema_for(entity_type).key_attribute

    def attribute_names(self, entity_type: type[BaseModel]) -> list[str]:
        return self.schema_for(entity_type).attribute_names


__all__ = [
    "EntityRegistry",
]
