"""Repositories for shape entities and their wiring.

`create_shape_repositories()` builds everything an application needs from
settings: the registry, the provisioner, both tables and both repositories.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shapestore.config import ShapeStoreSettings, create_dynamodb_resource, get_settings
from shapestore.domain import Circle, Rectangle
from shapestore.provisioner import TableProvisioner
from shapestore.query import IndexedQuery
from shapestore.registry import EntityRegistry
from shapestore.repository import Repository

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
else:
    DynamoDBServiceResource = Any

CIRCLES_TABLE = "circles"
RECTANGLES_TABLE = "rectangles"


def register_shapes(registry: EntityRegistry) -> EntityRegistry:
    """Register the shape entity types. Circles are indexed by colour."""
    registry.register(Circle, table_name=CIRCLES_TABLE, indexed_attributes=("colour",))
    registry.register(Rectangle, table_name=RECTANGLES_TABLE)
    return registry


class CirclesRepository(Repository[Circle, str]):
    def __init__(self, *, dynamodb: DynamoDBServiceResource, registry: EntityRegistry) -> None:
        super().__init__(Circle, dynamodb=dynamodb, registry=registry)
        self._by_colour: IndexedQuery[Circle] = IndexedQuery(self, "colour")

    def find_circles_by_colour(self, colour: str) -> list[Circle]:
        """Find circles whose colour matches exactly."""
        return self._by_colour.find(colour)


class RectanglesRepository(Repository[Rectangle, str]):
    def __init__(self, *, dynamodb: DynamoDBServiceResource, registry: EntityRegistry) -> None:
        super().__init__(Rectangle, dynamodb=dynamodb, registry=registry)


@dataclass
class ShapeRepositories:
    registry: EntityRegistry
    provisioner: TableProvisioner
    circles: CirclesRepository
    rectangles: RectanglesRepository


def create_shape_repositories(
    settings: ShapeStoreSettings | None = None,
    *,
    dynamodb: DynamoDBServiceResource | None = None,
    ensure_tables: bool = True,
) -> ShapeRepositories:
    """Wire registry, provisioner and repositories for shapes.

    Args:
        settings: Settings to use; defaults to `get_settings()`.
        dynamodb: An existing DynamoDB resource; built from settings if omitted.
        ensure_tables: Whether to create missing tables now.

    Example:
        shapes = create_shape_repositories()
        shapes.circles.save(Circle(radius=11, colour="blue"))

    """
    settings = settings or get_settings()
    if dynamodb is None:
        dynamodb = create_dynamodb_resource(settings)

    registry = register_shapes(EntityRegistry(table_name_prefix=settings.TABLE_NAME_PREFIX))
    provisioner = TableProvisioner(dynamodb, registry, capacity=settings.capacity())
    if ensure_tables:
        provisioner.ensure_tables()

    return ShapeRepositories(
        registry=registry,
        provisioner=provisioner,
        circles=CirclesRepository(dynamodb=dynamodb, registry=registry),
        rectangles=RectanglesRepository(dynamodb=dynamodb, registry=registry),
    )


__all__ = [
    "CirclesRepository",
    "RectanglesRepository",
    "ShapeRepositories",
    "create_shape_repositories",
    "register_shapes",
]
