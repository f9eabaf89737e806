"""Ingest a batch of elements into per-user and per-changeset summaries.

Users keep the earliest timestamp they were seen at, together with the display
name carried by that element. On an exact timestamp tie the element that
arrived first wins. Changesets widen their time range and count every element
that references them; the owning user is taken from the first element seen.

Batch results merge associatively, so disjoint batches can be ingested in
parallel and reduced in batch order to get the sequential result.
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import multiprocessing
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

from more_itertools import batched

from osmsel.osm.tiles import tile_for_point
from osmsel.osm.types import ANONYMOUS
from osmsel.osm.types import OsmChangeset
from osmsel.osm.types import OsmElement
from osmsel.osm.types import OsmNode
from osmsel.osm.types import OsmRelation
from osmsel.osm.types import OsmUser
from osmsel.osm.types import OsmWay
from osmsel.osm.types import UserKey
from osmsel.store import MemoryElementStore

logger = logging.getLogger("osmsel.loader")


@dataclass
class LoaderConfig:
    batch_size: int = 10_000
    processes: int = 1


@dataclass
class Stats:
    nodes: int = 0
    ways: int = 0
    relations: int = 0

    def update(self, element: OsmElement) -> None:
        if isinstance(element, OsmNode):
            self.nodes += 1
        elif isinstance(element, OsmWay):
            self.ways += 1
        elif isinstance(element, OsmRelation):
            self.relations += 1

    def merge(self, other: Stats) -> Stats:
        return Stats(
            nodes=self.nodes + other.nodes,
            ways=self.ways + other.ways,
            relations=self.relations + other.relations,
        )


@dataclass
class IngestResult:
    users: dict[UserKey, OsmUser] = field(default_factory=dict)
    changesets: dict[int, OsmChangeset] = field(default_factory=dict)
    tagged_nodes: list[OsmNode] = field(default_factory=list)
    stats: Stats = field(default_factory=Stats)

    def merge(self, other: IngestResult) -> IngestResult:
        """Combine with the result of a later batch. Neither input is modified."""
        users = {key: dataclasses.replace(user) for key, user in self.users.items()}
        for key, user in other.users.items():
            current = users.get(key)
            if current is None:
                users[key] = dataclasses.replace(user)
            elif _earlier(user.first_seen, current.first_seen):
                current.first_seen = user.first_seen
                current.display_name = user.display_name

        changesets = {id: dataclasses.replace(changeset) for id, changeset in self.changesets.items()}
        for id, changeset in other.changesets.items():
            current = changesets.get(id)
            if current is None:
                changesets[id] = dataclasses.replace(changeset)
            else:
                current.widen(changeset.min_timestamp)
                current.widen(changeset.max_timestamp)
                current.num_changes += changeset.num_changes

        return IngestResult(
            users=users,
            changesets=changesets,
            tagged_nodes=self.tagged_nodes + other.tagged_nodes,
            stats=self.stats.merge(other.stats),
        )


def _earlier(timestamp: int | None, than: int | None) -> bool:
    if timestamp is None:
        return False
    return than is None or timestamp < than


def tag_node(node: OsmNode) -> OsmNode:
    tile = tile_for_point(node.latitude, node.longitude)
    if node.tile == tile:
        return node
    return dataclasses.replace(node, tile=tile)


class IngestAccumulator:
    def __init__(self) -> None:
        self.result = IngestResult()

    def add(self, element: OsmElement) -> OsmElement:
        info = element.info
        key = info.user_key

        user = self.result.users.get(key)
        display_name = None if key is ANONYMOUS else info.user
        if user is None:
            self.result.users[key] = OsmUser(id=key, display_name=display_name, first_seen=info.timestamp)
        elif _earlier(info.timestamp, user.first_seen):
            user.first_seen = info.timestamp
            user.display_name = display_name

        if info.changeset is not None:
            changeset = self.result.changesets.get(info.changeset)
            if changeset is None:
                changeset = OsmChangeset(
                    id=info.changeset,
                    user_id=key,
                    min_timestamp=None,
                    max_timestamp=None,
                )
                self.result.changesets[info.changeset] = changeset
            changeset.widen(info.timestamp)
            changeset.num_changes += 1

        self.result.stats.update(element)

        if isinstance(element, OsmNode):
            element = tag_node(element)
            self.result.tagged_nodes.append(element)

        return element


def ingest(elements: Iterable[OsmElement]) -> IngestResult:
    accumulator = IngestAccumulator()
    for element in elements:
        accumulator.add(element)
    return accumulator.result


def _ingest_batch(batch: tuple[OsmElement, ...]) -> IngestResult:
    return ingest(batch)


def ingest_parallel(elements: Iterable[OsmElement], config: LoaderConfig | None = None) -> IngestResult:
    config = config or LoaderConfig()
    batches = batched(elements, config.batch_size)

    if config.processes <= 1:
        results = [_ingest_batch(batch) for batch in batches]
    else:
        with multiprocessing.Pool(config.processes) as pool:
            results = pool.map(_ingest_batch, batches)

    logger.debug("Ingested %d batches", len(results))
    return functools.reduce(IngestResult.merge, results, IngestResult())


def load_store(
    elements: Iterable[OsmElement], store: MemoryElementStore | None = None
) -> tuple[MemoryElementStore, IngestResult]:
    store = store if store is not None else MemoryElementStore()
    accumulator = IngestAccumulator()
    for element in elements:
        store.add(accumulator.add(element))

    stats = accumulator.result.stats
    logger.info(
        "Loaded %d nodes, %d ways, %d relations from %d users in %d changesets",
        stats.nodes,
        stats.ways,
        stats.relations,
        len(accumulator.result.users),
        len(accumulator.result.changesets),
    )
    return store, accumulator.result
