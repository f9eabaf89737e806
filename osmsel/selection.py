from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass
from dataclasses import field

from osmsel.errors import Gone
from osmsel.errors import NotFound
from osmsel.errors import TooManyNodes
from osmsel.osm.bbox import BoundingBox
from osmsel.osm.bbox import validate_bbox
from osmsel.osm.tiles import tile_range_for_area
from osmsel.osm.types import ElementType
from osmsel.osm.types import OsmElement
from osmsel.osm.types import OsmNode
from osmsel.osm.types import OsmRelation
from osmsel.osm.types import OsmWay
from osmsel.store import ElementStore
from osmsel.store import Visibility

logger = logging.getLogger("osmsel.selection")


@dataclass
class SelectionConfig:
    max_area: float = 0.25
    max_nodes: int = 50_000


@dataclass
class ElementSelection:
    """Deduplicated nodes, ways and relations.

    Iterating yields every node, then every way, then every relation, each
    group in ascending id order.
    """

    nodes: dict[int, OsmNode] = field(default_factory=dict)
    ways: dict[int, OsmWay] = field(default_factory=dict)
    relations: dict[int, OsmRelation] = field(default_factory=dict)

    def add(self, element: OsmElement) -> None:
        if isinstance(element, OsmNode):
            self.nodes.setdefault(element.id, element)
        elif isinstance(element, OsmWay):
            self.ways.setdefault(element.id, element)
        elif isinstance(element, OsmRelation):
            self.relations.setdefault(element.id, element)

    def __contains__(self, key: tuple[ElementType, int]) -> bool:
        element_type, id = key
        return id in self._group(element_type)

    def _group(self, element_type: ElementType) -> dict[int, OsmElement]:
        match element_type:
            case ElementType.NODE:
                return self.nodes
            case ElementType.WAY:
                return self.ways
            case ElementType.RELATION:
                return self.relations

    def __iter__(self) -> Iterator[OsmElement]:
        for group in (self.nodes, self.ways, self.relations):
            for id in sorted(group):
                yield group[id]

    def __len__(self) -> int:
        return len(self.nodes) + len(self.ways) + len(self.relations)

    def keys(self) -> list[tuple[str, int]]:
        return [(element.type.value, element.id) for element in self]


def _lookup(store: ElementStore, element_type: ElementType, id: int) -> OsmElement | None:
    """Current visible version, or None for a missing or deleted element."""
    try:
        element = store.get(element_type, id)
    except NotFound:
        logger.debug("Skipping missing %s %d", element_type.value, id)
        return None
    if not element.info.visible:
        logger.debug("Skipping deleted %s %d", element_type.value, id)
        return None
    return element


def _require_visible(store: ElementStore, element_type: ElementType, id: int) -> OsmElement:
    match store.check_visibility(element_type, id):
        case Visibility.NON_EXIST:
            raise NotFound(element_type, id)
        case Visibility.DELETED:
            raise Gone(element_type, id)
    return store.get(element_type, id)


def _add_way_nodes(store: ElementStore, selection: ElementSelection, way: OsmWay) -> None:
    for node_id in way.nodes:
        if node_id in selection.nodes:
            continue
        node = _lookup(store, ElementType.NODE, node_id)
        if node is not None:
            selection.add(node)


def full_expansion(store: ElementStore, relation_id: int, max_depth: int | None = 1) -> ElementSelection:
    """Resolve a relation, its members and the nodes of member ways.

    Member relations are always included. Their own members are followed only
    while the depth is below ``max_depth``; the default of 1 expands the root
    alone. ``None`` follows the whole membership graph. Relations are expanded
    at most once, which makes self references and cycles terminate.

    Raises ``ValueError`` for a ``max_depth`` below 1, since the root is
    always expanded.
    """
    if max_depth is not None and max_depth < 1:
        raise ValueError(f"max_depth must be at least 1, got {max_depth}")

    root = _require_visible(store, ElementType.RELATION, relation_id)
    logger.debug("Expanding relation %d (max_depth=%s)", relation_id, max_depth)

    selection = ElementSelection()
    visited = {root.id}
    pending: deque[tuple[OsmRelation, int]] = deque([(root, 0)])

    while pending:
        relation, depth = pending.popleft()
        selection.add(relation)

        for member in relation.members:
            element = _lookup(store, member.type, member.id)
            if element is None:
                continue
            selection.add(element)

            if isinstance(element, OsmWay):
                _add_way_nodes(store, selection, element)
            elif isinstance(element, OsmRelation):
                if element.id in visited:
                    continue
                visited.add(element.id)
                if max_depth is None or depth + 1 < max_depth:
                    pending.append((element, depth + 1))

    return selection


def way_full(store: ElementStore, way_id: int) -> ElementSelection:
    way = _require_visible(store, ElementType.WAY, way_id)

    selection = ElementSelection()
    selection.add(way)
    _add_way_nodes(store, selection, way)
    return selection


def _relations_with_members(
    store: ElementStore, members: Iterable[tuple[ElementType, int]]
) -> Iterator[OsmRelation]:
    wanted = set(members)
    if not wanted:
        return
    for relation in store.current(ElementType.RELATION):
        if not relation.info.visible:
            continue
        if any((member.type, member.id) in wanted for member in relation.members):
            yield relation


def map_selection(
    store: ElementStore, bbox: BoundingBox, config: SelectionConfig | None = None
) -> ElementSelection:
    """Everything needed to draw the box.

    Visible nodes inside the box, ways using them with all of their nodes,
    relations using any of those nodes or ways, and relations having those
    relations as members.
    """
    config = config or SelectionConfig()
    validate_bbox(bbox, max_area=config.max_area)

    selection = ElementSelection()
    tile_min, tile_max = tile_range_for_area(bbox)
    for node in store.range_query(tile_min, tile_max):
        if node.info.visible and bbox.contains(node.latitude, node.longitude):
            selection.add(node)
            if len(selection.nodes) > config.max_nodes:
                raise TooManyNodes(config.max_nodes)

    logger.debug("bbox %s selected %d nodes", bbox, len(selection.nodes))
    if not selection.nodes:
        return selection

    bbox_nodes = set(selection.nodes)
    for way in store.current(ElementType.WAY):
        if way.info.visible and any(node_id in bbox_nodes for node_id in way.nodes):
            selection.add(way)

    for way in list(selection.ways.values()):
        _add_way_nodes(store, selection, way)

    members = [(ElementType.NODE, id) for id in selection.nodes]
    members += [(ElementType.WAY, id) for id in selection.ways]
    for relation in _relations_with_members(store, members):
        selection.add(relation)

    parents = [(ElementType.RELATION, id) for id in selection.relations]
    for relation in _relations_with_members(store, parents):
        selection.add(relation)

    return selection


def ways_for_node(store: ElementStore, node_id: int) -> list[OsmWay]:
    ways = (way for way in store.current(ElementType.WAY) if way.info.visible and node_id in way.nodes)
    return sorted(ways, key=lambda way: way.id)


def relations_for_element(store: ElementStore, element_type: ElementType, element_id: int) -> list[OsmRelation]:
    relations = _relations_with_members(store, [(element_type, element_id)])
    return sorted(relations, key=lambda relation: relation.id)
