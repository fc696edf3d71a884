"""Base entity and shared result types.

This module provides EntityWithStringId, the root of every persisted entity,
together with the Page result type returned by paginated reads.
"""

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Generic, NamedTuple, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

from shapestore.keys import LastEvaluatedKey, generate_string_id

T = TypeVar("T")

if TYPE_CHECKING:

    class Page(NamedTuple, Generic[T]):
        """A single page of a scan or query.

        Attributes:
            items: The returned items (validated entity instances).
            last_evaluated_key: Pagination token for the next page, if any.

        """

        items: list[T]
        last_evaluated_key: LastEvaluatedKey | None
else:

    class Page(NamedTuple):
        """A single page of a scan or query.

        At runtime this is a non-generic NamedTuple for compatibility. During
        type checking it is treated as `Page[T]`.
        """

        items: list[Any]
        last_evaluated_key: LastEvaluatedKey | None


class EntityWithStringId(BaseModel):
    """Base class for entities identified by a string key.

    The identity attributes are owned by the persistence layer: `id` is
    assigned on the first save when absent, and `last_update_time` is stamped
    on every save.

    Attribute assignments are validated, so an entity can only hold values
    of its declared types.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str | None = None
    last_update_time: datetime | None = None

    @field_validator("last_update_time")
    @classmethod
    def _ensure_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def assign_id_if_absent(self) -> bool:
        """Assign a new identifier unless one is already set.

        Returns:
            True if a new identifier was assigned.

        """
        if self.id:
            return False
        self.id = generate_string_id()
        return True

    def touch(self) -> datetime:
        """Stamp the last update time.

        The new timestamp is strictly later than the previous one, even when
        the clock has not advanced between two saves.
        """
        now = datetime.now(timezone.utc)
        previous = self.last_update_time
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        self.last_update_time = now
        return now


EntityT = TypeVar("EntityT", bound=EntityWithStringId)


__all__ = [
    "EntityT",
    "EntityWithStringId",
    "Page",
]
