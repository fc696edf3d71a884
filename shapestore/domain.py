"""Shape entities.

Shapes are plain pydantic models. Their mapping onto DynamoDB tables is
declared separately, in `shapestore.repositories.register_shapes`.
"""

from typing import Any, ClassVar

from shapestore.base import EntityWithStringId


class Shape(EntityWithStringId):
    """Abstract base for shapes: a position and a colour.

    Shape itself cannot be instantiated; use Circle or Rectangle.
    """

    x: int = 0
    y: int = 0
    colour: str | None = None

    def __init__(self, **data: Any) -> None:
        if type(self) is Shape:
            raise TypeError("Shape is abstract; instantiate Circle or Rectangle")
        super().__init__(**data)

    def set_position(self, x: int, y: int) -> None:
        """Move the shape to the given coordinates."""
        self.x = x
        self.y = y


class Circle(Shape):
    DEFAULT_RADIUS: ClassVar[int] = 10

    radius: int = DEFAULT_RADIUS


class Rectangle(Shape):
    DEFAULT_HEIGHT: ClassVar[int] = 10
    DEFAULT_WIDTH: ClassVar[int] = 10

    height: int = DEFAULT_HEIGHT
    width: int = DEFAULT_WIDTH


__all__ = [
    "Circle",
    "Rectangle",
    "Shape",
]
