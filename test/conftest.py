"""Shared test fixtures.

This module provides:
- Fake AWS credentials for moto
- A moto-backed DynamoDB resource, overridden by the integration suite
- A registry with both shape types registered
- Shape repositories with their tables provisioned
- Factories for circles and rectangles with the usual test values
"""

from collections.abc import Callable, Generator
from os import environ
from typing import Any

import boto3
from moto import mock_aws
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource
from pytest import fixture

from shapestore.domain import Circle, Rectangle
from shapestore.provisioner import ProvisionedCapacity, TableProvisioner
from shapestore.registry import EntityRegistry
from shapestore.repositories import CirclesRepository, RectanglesRepository, register_shapes

CIRCLE_RADIUS = 11
CIRCLE_COLOUR = "blue"
RECTANGLE_COLOUR = "red"


@fixture(scope="session", autouse=True)
def aws_credentials() -> None:
    """Set up fake AWS credentials for moto."""
    environ["AWS_ACCESS_KEY_ID"] = "testing"
    environ["AWS_SECRET_ACCESS_KEY"] = "testing"  # noqa: S105
    environ["AWS_SECURITY_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_SESSION_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_DEFAULT_REGION"] = "us-east-1"


@fixture
def dynamodb() -> Generator[DynamoDBServiceResource, None, None]:
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


@fixture
def table_name_prefix() -> str:
    return "test_"


@fixture
def registry(table_name_prefix: str) -> EntityRegistry:
    return register_shapes(EntityRegistry(table_name_prefix=table_name_prefix))


@fixture
def provisioner(
    dynamodb: DynamoDBServiceResource,
    registry: EntityRegistry,
) -> TableProvisioner:
    return TableProvisioner(dynamodb, registry, capacity=ProvisionedCapacity(10, 10))


@fixture
def circles(
    dynamodb: DynamoDBServiceResource,
    registry: EntityRegistry,
    provisioner: TableProvisioner,
) -> CirclesRepository:
    """Circles repository with its table created and emptied."""
    provisioner.ensure_table(Circle)
    repository = CirclesRepository(dynamodb=dynamodb, registry=registry)
    repository.delete_all()
    return repository


@fixture
def rectangles(
    dynamodb: DynamoDBServiceResource,
    registry: EntityRegistry,
    provisioner: TableProvisioner,
) -> RectanglesRepository:
    """Rectangles repository with its table created and emptied."""
    provisioner.ensure_table(Rectangle)
    repository = RectanglesRepository(dynamodb=dynamodb, registry=registry)
    repository.delete_all()
    return repository


@fixture
def make_circle() -> Callable[..., Circle]:
    """Factory for circles at (12, 14) with radius 11 and colour blue."""

    def _make_circle(**overrides: Any) -> Circle:
        circle = Circle(radius=CIRCLE_RADIUS, colour=CIRCLE_COLOUR)
        circle.set_position(12, 14)
        for name, value in overrides.items():
            setattr(circle, name, value)
        return circle

    return _make_circle


@fixture
def make_rectangle() -> Callable[..., Rectangle]:
    """Factory for 20x40 rectangles at (15, 17) with colour blue."""

    def _make_rectangle(**overrides: Any) -> Rectangle:
        rectangle = Rectangle(height=20, width=40, colour=CIRCLE_COLOUR)
        rectangle.set_position(15, 17)
        for name, value in overrides.items():
            setattr(rectangle, name, value)
        return rectangle

    return _make_rectangle
