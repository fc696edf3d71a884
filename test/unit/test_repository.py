from collections.abc import Callable
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource

from shapestore.base import EntityWithStringId
from shapestore.domain import Circle, Rectangle
from shapestore.exceptions import (
    InvalidRequestError,
    SerializationError,
    StorageUnavailable,
    TableNotFoundError,
    ThroughputExceededError,
    UnregisteredEntityError,
)
from shapestore.provisioner import TableProvisioner
from shapestore.registry import EntityRegistry
from shapestore.repositories import CirclesRepository, RectanglesRepository
from shapestore.repository import FullScan, Repository

CircleFactory = Callable[..., Circle]

MANY_CIRCLES_COUNT = 500


class TestSave:
    """Test saving entities."""

    def test_save_assigns_id_and_timestamp(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        circle = make_circle()
        assert circle.id is None
        assert circle.last_update_time is None

        saved = circles.save(circle)

        assert saved is circle
        assert saved.id
        assert isinstance(saved.last_update_time, datetime)
        assert saved.last_update_time.tzinfo is not None

    def test_save_keeps_existing_id(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle(id="circle-1"))

        assert saved.id == "circle-1"
        assert circles.find_by_id("circle-1") == saved

    def test_save_writes_full_item(
        self,
        dynamodb: DynamoDBServiceResource,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle())

        response = dynamodb.Table("test_circles").get_item(Key={"id": saved.id})
        item = response["Item"]
        assert item["radius"] == 11
        assert item["colour"] == "blue"
        assert item["x"] == 12
        assert item["y"] == 14
        assert "last_update_time" in item

    def test_last_update_time_increases(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        circle = circles.save(make_circle())
        first_update = circle.last_update_time
        assert first_update is not None

        circle.radius = 12
        circles.save(circle)

        assert circle.last_update_time is not None
        assert circle.last_update_time > first_update

    def test_save_overwrites_without_merge(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        circles.save(make_circle(id="circle-1", colour="blue"))

        circles.save(Circle(id="circle-1", radius=3))

        found = circles.find_by_id("circle-1")
        assert found is not None
        assert found.radius == 3
        assert found.colour is None
        assert found.x == 0
        assert circles.count() == 1

    def test_save_all(self, circles: CirclesRepository) -> None:
        saved = circles.save_all(Circle(radius=radius) for radius in range(1, 31))

        assert len(saved) == 30
        assert all(circle.id and circle.last_update_time for circle in saved)
        assert circles.count() == 30
        assert sorted(circle.radius for circle in circles.find_all()) == list(range(1, 31))

    def test_save_many_circles(self, circles: CirclesRepository) -> None:
        persisted: dict[int, Circle] = {}
        for radius in range(1, MANY_CIRCLES_COUNT + 1):
            circle = Circle(colour="blue", radius=radius)
            circle.set_position(12 + radius, 14 + radius)
            saved = circles.save(circle)
            persisted[saved.radius] = saved

        found = list(circles.find_all())

        assert len(found) == MANY_CIRCLES_COUNT
        for circle in found:
            assert circle == persisted[circle.radius]


class TestFind:
    """Test point lookups, scans and pages."""

    def test_find_by_id_round_trip(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle())

        assert circles.find_by_id(saved.id) == saved  # type: ignore[arg-type]

    def test_find_by_id_missing(self, circles: CirclesRepository) -> None:
        assert circles.find_by_id("no-such-circle") is None

    def test_exists_by_id(self, circles: CirclesRepository, make_circle: CircleFactory) -> None:
        saved = circles.save(make_circle())

        assert circles.exists_by_id(saved.id)  # type: ignore[arg-type]
        assert not circles.exists_by_id("no-such-circle")

    def test_find_all_returns_every_saved_entity(self, circles: CirclesRepository) -> None:
        saved = {circles.save(Circle(radius=radius)).id: radius for radius in range(1, 21)}

        found = list(circles.find_all())

        assert len(found) == 20
        assert {circle.id: circle.radius for circle in found} == saved

    def test_find_all_is_lazy_and_restartable(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        scan = circles.find_all()
        assert isinstance(scan, FullScan)

        circles.save(make_circle())
        assert len(list(scan)) == 1

        circles.save(make_circle())
        assert len(list(scan)) == 2

    def test_find_all_empty_table(self, circles: CirclesRepository) -> None:
        assert list(circles.find_all()) == []

    def test_find_page(self, circles: CirclesRepository) -> None:
        circles.save_all(Circle(radius=radius) for radius in range(1, 11))

        first = circles.find_page(limit=4)
        assert len(first.items) == 4
        assert first.last_evaluated_key is not None

        seen = [circle.id for circle in first.items]
        page = first
        while page.last_evaluated_key is not None:
            page = circles.find_page(limit=4, exclusive_start_key=page.last_evaluated_key)
            seen.extend(circle.id for circle in page.items)

        assert len(seen) == 10
        assert len(set(seen)) == 10

    def test_find_all_by_id(self, circles: CirclesRepository) -> None:
        saved = circles.save_all(Circle(radius=radius) for radius in range(1, 6))
        wanted = [saved[0].id, saved[2].id, saved[2].id, "no-such-circle"]

        found = circles.find_all_by_id(wanted)  # type: ignore[arg-type]

        assert sorted(circle.radius for circle in found) == [1, 3]

    def test_find_all_by_id_more_than_one_batch(self, circles: CirclesRepository) -> None:
        saved = circles.save_all(Circle(radius=radius) for radius in range(1, 151))

        found = circles.find_all_by_id(circle.id for circle in saved)  # type: ignore[misc]

        assert len(found) == 150

    def test_count(self, circles: CirclesRepository, make_circle: CircleFactory) -> None:
        assert circles.count() == 0

        circles.save(make_circle())
        circles.save(make_circle())

        assert circles.count() == 2


class TestDelete:
    """Test single, batch and full deletes."""

    def test_delete(self, circles: CirclesRepository, make_circle: CircleFactory) -> None:
        saved = circles.save(make_circle())

        circles.delete(saved)

        assert circles.find_by_id(saved.id) is None  # type: ignore[arg-type]

    def test_delete_is_idempotent(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle())

        circles.delete(saved)
        circles.delete(saved)
        circles.delete_by_id("no-such-circle")
        circles.delete(make_circle())

        assert circles.count() == 0

    def test_batch_delete_subset(self, circles: CirclesRepository) -> None:
        saved = circles.save_all(Circle(radius=radius) for radius in range(1, 11))

        deleted = circles.batch_delete(saved[:4])

        assert deleted == 4
        assert sorted(circle.radius for circle in circles.find_all()) == list(range(5, 11))

    def test_batch_delete_absent_and_duplicate_keys(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle())

        circles.batch_delete([saved, saved, Circle(id="no-such-circle"), make_circle()])

        assert circles.count() == 0

    def test_delete_all(self, circles: CirclesRepository) -> None:
        circles.save_all(Circle(radius=radius) for radius in range(1, 51))

        assert circles.delete_all() == 50
        assert list(circles.find_all()) == []

    def test_delete_all_empty_table(self, circles: CirclesRepository) -> None:
        assert circles.delete_all() == 0

    def test_delete_all_by_id(self, circles: CirclesRepository) -> None:
        saved = circles.save_all(Circle(radius=radius) for radius in range(1, 4))

        circles.delete_all_by_id([saved[0].id, saved[1].id])  # type: ignore[list-item]

        assert [circle.id for circle in circles.find_all()] == [saved[2].id]


class TestEntityTypesAreIsolated:
    def test_circles_and_rectangles(
        self,
        circles: CirclesRepository,
        rectangles: RectanglesRepository,
        make_circle: CircleFactory,
        make_rectangle: Callable[..., Rectangle],
    ) -> None:
        expected_rectangle = rectangles.save(make_rectangle())
        expected_circle = circles.save(make_circle())

        assert list(circles.find_all()) == [expected_circle]
        assert list(rectangles.find_all()) == [expected_rectangle]

        circles.delete_all()

        assert rectangles.count() == 1


class TestFailureModes:
    """Test translation of storage and conversion failures."""

    def test_unregistered_type(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
    ) -> None:
        class Triangle(Circle):
            pass

        with pytest.raises(UnregisteredEntityError):
            Repository(Triangle, dynamodb=dynamodb, registry=registry)

    def test_missing_table(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
        make_circle: CircleFactory,
    ) -> None:
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)
        circle = make_circle()

        with pytest.raises(TableNotFoundError) as exc_info:
            circles.save(circle)

        assert exc_info.value.table_name == "test_circles"
        assert exc_info.value.operation == "save"
        assert circle.id is None
        assert circle.last_update_time is None

    def test_failed_save_keeps_previous_identity(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
    ) -> None:
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        circle = Circle(id="circle-1", last_update_time=stamp)

        with pytest.raises(TableNotFoundError):
            circles.save(circle)

        assert circle.id == "circle-1"
        assert circle.last_update_time == stamp

    def test_failed_save_all_leaves_entities_unstamped(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
    ) -> None:
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)
        batch = [Circle(radius=radius) for radius in range(1, 4)]

        with pytest.raises(TableNotFoundError):
            circles.save_all(batch)

        assert all(circle.id is None for circle in batch)
        assert all(circle.last_update_time is None for circle in batch)

    def test_ensure_table_then_use(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
        make_circle: CircleFactory,
    ) -> None:
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)

        assert circles.ensure_table() is True
        assert circles.ensure_table() is False
        circles.save(make_circle())
        assert circles.count() == 1

    def test_non_numeric_radius_in_store(
        self,
        dynamodb: DynamoDBServiceResource,
        circles: CirclesRepository,
    ) -> None:
        dynamodb.Table("test_circles").put_item(Item={"id": "bad-circle", "radius": "large"})

        with pytest.raises(SerializationError):
            circles.find_by_id("bad-circle")
        with pytest.raises(SerializationError):
            list(circles.find_all())

    def test_throttled_scan(self, registry: EntityRegistry) -> None:
        dynamodb = MagicMock()
        dynamodb.Table.return_value.scan.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "Scan",
        )
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)

        with pytest.raises(ThroughputExceededError):
            list(circles.find_all())

    def test_unreachable_store(self, registry: EntityRegistry) -> None:
        dynamodb = MagicMock()
        dynamodb.Table.return_value.get_item.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:1"
        )
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)

        with pytest.raises(StorageUnavailable) as exc_info:
            circles.find_by_id("circle-1")

        assert exc_info.value.operation == "find_by_id"
        assert isinstance(exc_info.value.original_error, EndpointConnectionError)

    def test_rejected_request_is_not_storage_failure(self, registry: EntityRegistry) -> None:
        dynamodb = MagicMock()
        dynamodb.Table.return_value.put_item.side_effect = ClientError(
            {"Error": {"Code": "ValidationException", "Message": "Item size has exceeded"}},
            "PutItem",
        )
        circles = CirclesRepository(dynamodb=dynamodb, registry=registry)

        with pytest.raises(InvalidRequestError) as exc_info:
            circles.save(Circle())

        assert not isinstance(exc_info.value, StorageUnavailable)
        assert exc_info.value.operation == "save"


class TestEmptyKeys:
    """An empty key can never be stored, so lookups and deletes treat it as absent."""

    def test_find_by_empty_id(self, circles: CirclesRepository) -> None:
        assert circles.find_by_id("") is None
        assert circles.exists_by_id("") is False

    def test_delete_by_empty_id(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        saved = circles.save(make_circle())

        circles.delete_by_id("")
        circles.delete(Circle(id=""))

        assert circles.count() == 1
        assert circles.exists_by_id(saved.id)  # type: ignore[arg-type]

    def test_batch_operations_skip_empty_ids(
        self,
        circles: CirclesRepository,
        make_circle: CircleFactory,
    ) -> None:
        first = circles.save(make_circle())
        second = circles.save(make_circle())

        assert circles.find_all_by_id(["", first.id]) == [first]  # type: ignore[list-item]
        assert circles.batch_delete([Circle(id=""), first]) == 1
        assert circles.delete_all_by_id(["", second.id]) == 1  # type: ignore[list-item]
        assert circles.count() == 0


class TestBinaryKeys:
    def test_binary_key_round_trip(
        self,
        dynamodb: DynamoDBServiceResource,
        registry: EntityRegistry,
        provisioner: TableProvisioner,
    ) -> None:
        class Attachment(EntityWithStringId):
            digest: bytes = b""
            name: str = ""

        registry.register(Attachment, table_name="attachments", key_attribute="digest")
        provisioner.ensure_table(Attachment)
        attachments: Repository[Attachment, bytes] = Repository(
            Attachment, dynamodb=dynamodb, registry=registry
        )

        saved = attachments.save(Attachment(digest=b"\xff\x00\x01", name="logo"))

        assert attachments.find_by_id(b"\xff\x00\x01") == saved
        assert attachments.find_by_id(b"") is None
        attachments.delete_by_id(b"\xff\x00\x01")
        assert attachments.count() == 0
