"""ShapeStore: typed persistence of shape entities in DynamoDB."""

from shapestore.base import EntityWithStringId, Page
from shapestore.config import ShapeStoreSettings, create_dynamodb_resource, get_settings
from shapestore.domain import Circle, Rectangle, Shape
from shapestore.exceptions import (
    ConfigurationError,
    DynamoDBClientError,
    InvalidRequestError,
    SerializationError,
    ShapeStoreError,
    StorageUnavailable,
    TableNotFoundError,
    ThroughputExceededError,
    UndeclaredIndexError,
    UnregisteredEntityError,
)
from shapestore.provisioner import ProvisionedCapacity, TableProvisioner
from shapestore.query import IndexedQuery
from shapestore.registry import EntityRegistry
from shapestore.repositories import (
    CirclesRepository,
    RectanglesRepository,
    ShapeRepositories,
    create_shape_repositories,
    register_shapes,
)
from shapestore.repository import FullScan, Repository
from shapestore.schema import AttributeSpec, AttributeType, EntitySchema

__all__ = [
    "AttributeSpec",
    "AttributeType",
    "Circle",
    "CirclesRepository",
    "ConfigurationError",
    "DynamoDBClientError",
    "EntityRegistry",
    "EntitySchema",
    "EntityWithStringId",
    "FullScan",
    "IndexedQuery",
    "InvalidRequestError",
    "Page",
    "ProvisionedCapacity",
    "Rectangle",
    "RectanglesRepository",
    "Repository",
    "SerializationError",
    "Shape",
    "ShapeRepositories",
    "ShapeStoreError",
    "ShapeStoreSettings",
    "StorageUnavailable",
    "TableNotFoundError",
    "TableProvisioner",
    "ThroughputExceededError",
    "UndeclaredIndexError",
    "UnregisteredEntityError",
    "create_dynamodb_resource",
    "create_shape_repositories",
    "get_settings",
    "register_shapes",
]
