from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable
from collections.abc import Iterator
from enum import Enum
from typing import Protocol

from osmsel.errors import NotFound
from osmsel.osm.tiles import tile_for_point
from osmsel.osm.types import ElementType
from osmsel.osm.types import OsmElement
from osmsel.osm.types import OsmNode

logger = logging.getLogger("osmsel.store")


class Visibility(Enum):
    EXISTS = "exists"
    DELETED = "deleted"
    NON_EXIST = "non_exist"


class ElementStore(Protocol):
    """Read-only element lookups the selections are built on."""

    def get(self, element_type: ElementType, id: int) -> OsmElement: ...

    def get_history(self, element_type: ElementType, id: int) -> list[OsmElement]: ...

    def range_query(self, tile_min: int, tile_max: int) -> list[OsmNode]: ...

    def check_visibility(self, element_type: ElementType, id: int) -> Visibility: ...

    def current(self, element_type: ElementType) -> Iterator[OsmElement]: ...


class MemoryElementStore:
    """Every version of every element, held in dicts keyed by type and id.

    Current nodes are also kept in a list sorted by (tile, id) so that tile
    range queries are a pair of bisections.
    """

    def __init__(self, elements: Iterable[OsmElement] = ()) -> None:
        self._history: dict[ElementType, dict[int, list[OsmElement]]] = {t: {} for t in ElementType}
        self._tile_index: list[tuple[int, int]] = []
        self._node_tiles: dict[int, int] = {}
        for element in elements:
            self.add(element)

    def add(self, element: OsmElement) -> None:
        versions = self._history[element.type].setdefault(element.id, [])
        if versions and element.info.version <= versions[-1].info.version:
            raise ValueError(
                f"{element.type.value} {element.id} version {element.info.version} "
                f"does not follow version {versions[-1].info.version}"
            )
        versions.append(element)

        if isinstance(element, OsmNode):
            self._index_node(element)

    def _index_node(self, node: OsmNode) -> None:
        tile = node.tile if node.tile is not None else tile_for_point(node.latitude, node.longitude)

        previous = self._node_tiles.get(node.id)
        if previous is not None:
            index = bisect.bisect_left(self._tile_index, (previous, node.id))
            del self._tile_index[index]

        self._node_tiles[node.id] = tile
        bisect.insort(self._tile_index, (tile, node.id))

    def get(self, element_type: ElementType, id: int) -> OsmElement:
        versions = self._history[element_type].get(id)
        if not versions:
            raise NotFound(element_type, id)
        return versions[-1]

    def get_version(self, element_type: ElementType, id: int, version: int) -> OsmElement:
        for element in self.get_history(element_type, id):
            if element.info.version == version:
                return element
        raise NotFound(element_type, id)

    def get_history(self, element_type: ElementType, id: int) -> list[OsmElement]:
        versions = self._history[element_type].get(id)
        if not versions:
            raise NotFound(element_type, id)
        return list(versions)

    def range_query(self, tile_min: int, tile_max: int) -> list[OsmNode]:
        start = bisect.bisect_left(self._tile_index, (tile_min, float("-inf")))
        end = bisect.bisect_right(self._tile_index, (tile_max, float("inf")))
        nodes = self._history[ElementType.NODE]
        return [nodes[id][-1] for _, id in self._tile_index[start:end]]

    def check_visibility(self, element_type: ElementType, id: int) -> Visibility:
        versions = self._history[element_type].get(id)
        if not versions:
            return Visibility.NON_EXIST
        if versions[-1].info.visible:
            return Visibility.EXISTS
        return Visibility.DELETED

    def current(self, element_type: ElementType) -> Iterator[OsmElement]:
        for versions in self._history[element_type].values():
            yield versions[-1]

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._history.values())
