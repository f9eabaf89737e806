from __future__ import annotations

from osmsel.osm.types import ElementType


class OsmSelError(Exception):
    pass


class NotFound(OsmSelError):
    def __init__(self, element_type: ElementType, id: int) -> None:
        super().__init__(f"{element_type.value} {id} not found")
        self.element_type = element_type
        self.id = id


class Gone(OsmSelError):
    def __init__(self, element_type: ElementType, id: int) -> None:
        super().__init__(f"{element_type.value} {id} has been deleted")
        self.element_type = element_type
        self.id = id


class InvalidBoundingBox(OsmSelError, ValueError):
    pass


class TooManyNodes(OsmSelError):
    def __init__(self, limit: int) -> None:
        super().__init__(
            f"You requested too many nodes (limit is {limit}). Either request a smaller area, or use planet.osm"
        )
        self.limit = limit
