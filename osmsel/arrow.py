from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import pyarrow as pa
import pyarrow.dataset
import pyarrow.fs
import pyarrow.parquet as pq
from more_itertools import batched

from osmsel.osm.types import ElementType
from osmsel.osm.types import OsmElement
from osmsel.osm.types import OsmInfo
from osmsel.osm.types import OsmNode
from osmsel.osm.types import OsmRelation
from osmsel.osm.types import OsmRelationMember
from osmsel.osm.types import OsmWay

logger = logging.getLogger("osmsel.arrow")


def _join_path(root: str, *parts: str) -> str:
    return "/".join([root.rstrip("/"), *(part.strip("/") for part in parts)])


ARROW_INFO_FIELDS = [
    pa.field("version", pa.int32()),
    pa.field("visible", pa.bool_()),
    pa.field("timestamp", pa.int64()),
    pa.field("changeset", pa.int64()),
    pa.field("uid", pa.int64()),
    pa.field("user", pa.string()),
]

ARROW_TAGS_TYPE = pa.map_(pa.string(), pa.string())

ARROW_NODE_FIELDS = [
    pa.field("id", pa.int64()),
    pa.field("tags", ARROW_TAGS_TYPE),
    pa.field("latitude", pa.float64()),
    pa.field("longitude", pa.float64()),
    pa.field("tile", pa.uint32()),
    *ARROW_INFO_FIELDS,
]

ARROW_NODE_SCHEMA = pa.schema(ARROW_NODE_FIELDS)


ARROW_WAY_FIELDS = [
    pa.field("id", pa.int64()),
    pa.field("tags", ARROW_TAGS_TYPE),
    pa.field("nodes", pa.list_(pa.int64())),
    *ARROW_INFO_FIELDS,
]

ARROW_WAY_SCHEMA = pa.schema(ARROW_WAY_FIELDS)


ARROW_MEMBER_TYPE = pa.struct(
    [
        pa.field("id", pa.int64()),
        pa.field("role", pa.string()),
        pa.field("type", pa.string()),
    ]
)

ARROW_RELATION_FIELDS = [
    pa.field("id", pa.int64()),
    pa.field("tags", ARROW_TAGS_TYPE),
    pa.field("members", pa.list_(ARROW_MEMBER_TYPE)),
    *ARROW_INFO_FIELDS,
]

ARROW_RELATION_SCHEMA = pa.schema(ARROW_RELATION_FIELDS)


def _tags_column(elements: list[OsmElement]) -> pa.Array:
    tags = []
    for element in elements:
        if element.tags is not None:
            tags.append([(k, v) for k, v in element.tags.items()])
        else:
            tags.append(None)
    return pa.array(tags, type=ARROW_TAGS_TYPE)


def _info_columns(elements: list[OsmElement]) -> list[pa.Array]:
    return [
        pa.array([e.info.version for e in elements], type=pa.int32()),
        pa.array([e.info.visible for e in elements], type=pa.bool_()),
        pa.array([e.info.timestamp for e in elements], type=pa.int64()),
        pa.array([e.info.changeset for e in elements], type=pa.int64()),
        pa.array([e.info.uid for e in elements], type=pa.int64()),
        pa.array([e.info.user for e in elements], type=pa.string()),
    ]


def record_batch_for_nodes(nodes: list[OsmNode]) -> pa.RecordBatch | None:
    if not nodes:
        return None

    arrays = [
        pa.array([node.id for node in nodes], type=pa.int64()),
        _tags_column(nodes),
        pa.array([node.latitude for node in nodes], type=pa.float64()),
        pa.array([node.longitude for node in nodes], type=pa.float64()),
        pa.array([node.tile for node in nodes], type=pa.uint32()),
        *_info_columns(nodes),
    ]

    return pa.RecordBatch.from_arrays(arrays, schema=ARROW_NODE_SCHEMA)


def record_batch_for_ways(ways: list[OsmWay]) -> pa.RecordBatch | None:
    if not ways:
        return None

    arrays = [
        pa.array([way.id for way in ways], type=pa.int64()),
        _tags_column(ways),
        pa.array([way.nodes for way in ways], type=pa.list_(pa.int64())),
        *_info_columns(ways),
    ]

    return pa.RecordBatch.from_arrays(arrays, schema=ARROW_WAY_SCHEMA)


def record_batch_for_relations(relations: list[OsmRelation]) -> pa.RecordBatch | None:
    if not relations:
        return None

    members = [
        [{"id": m.id, "role": m.role, "type": m.type.value} for m in relation.members]
        for relation in relations
    ]

    arrays = [
        pa.array([relation.id for relation in relations], type=pa.int64()),
        _tags_column(relations),
        pa.array(members, type=pa.list_(ARROW_MEMBER_TYPE)),
        *_info_columns(relations),
    ]

    return pa.RecordBatch.from_arrays(arrays, schema=ARROW_RELATION_SCHEMA)


@dataclass
class WriterConfig:
    max_rows_per_file: int | None = None
    max_file_size: int | None = None
    batch_size: int = 10_000
    # batches written between file size checks
    size_check_interval: int = 10


@dataclass
class _OpenFile:
    path: str
    writer: pq.ParquetWriter
    rows: int = 0
    batches: int = 0


class ParquetBatchWriter:
    """Appends record batches to a numbered series of Parquet files.

    A new file is started once the current one holds ``max_rows_per_file``
    rows or has grown to ``max_file_size`` bytes.
    """

    def __init__(
        self, fs: pa.fs.FileSystem, directory: str, name: str, schema: pa.Schema, config: WriterConfig
    ) -> None:
        self.fs = fs
        self.directory = directory
        self.name = name
        self.schema = schema
        self.config = config
        self.files: list[str] = []
        self._run_id = uuid.uuid4().hex
        self._current: _OpenFile | None = None

        fs.create_dir(directory, recursive=True)

    def _open_next(self) -> _OpenFile:
        path = _join_path(self.directory, f"{self.name}_{self._run_id}_{len(self.files) + 1:05d}.parquet")
        self.files.append(path)
        logger.debug("Opened %s", path)
        return _OpenFile(path=path, writer=pq.ParquetWriter(path, schema=self.schema, filesystem=self.fs))

    def write(self, batch: pa.RecordBatch | None) -> None:
        if batch is None:
            return

        if self._current is None:
            self._current = self._open_next()
        current = self._current
        current.writer.write_batch(batch)
        current.rows += batch.num_rows
        current.batches += 1

        if self._is_full(current):
            self.close()

    def _is_full(self, current: _OpenFile) -> bool:
        row_limit = self.config.max_rows_per_file
        if row_limit and current.rows >= row_limit:
            return True

        size_limit = self.config.max_file_size
        if size_limit is None or current.batches % self.config.size_check_interval:
            return False
        return self.fs.get_file_info(current.path).size >= size_limit

    def close(self) -> None:
        if self._current is not None:
            self._current.writer.close()
            self._current = None

    def __enter__(self) -> ParquetBatchWriter:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()


class FixtureWriter:
    """Writes elements into nodes/, ways/ and relations/ below a root URI."""

    def __init__(self, root_path: str, config: WriterConfig | None = None) -> None:
        fs, base_path = pa.fs.FileSystem.from_uri(root_path)
        config = config or WriterConfig()

        self.fs = fs
        self.base_path = base_path
        self.config = config

        self.nodes_writer = ParquetBatchWriter(fs, _join_path(base_path, "nodes"), "nodes", ARROW_NODE_SCHEMA, config)
        self.ways_writer = ParquetBatchWriter(fs, _join_path(base_path, "ways"), "ways", ARROW_WAY_SCHEMA, config)
        self.relations_writer = ParquetBatchWriter(
            fs, _join_path(base_path, "relations"), "relations", ARROW_RELATION_SCHEMA, config
        )

    def write_elements(self, elements: Iterable[OsmElement]) -> None:
        for batch in batched(elements, self.config.batch_size):
            self.nodes_writer.write(record_batch_for_nodes([e for e in batch if isinstance(e, OsmNode)]))
            self.ways_writer.write(record_batch_for_ways([e for e in batch if isinstance(e, OsmWay)]))
            self.relations_writer.write(
                record_batch_for_relations([e for e in batch if isinstance(e, OsmRelation)])
            )

    def close(self) -> None:
        self.nodes_writer.close()
        self.ways_writer.close()
        self.relations_writer.close()

    def __enter__(self) -> FixtureWriter:
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        self.close()


def write_fixture(root_path: str, elements: Iterable[OsmElement], config: WriterConfig | None = None) -> None:
    with FixtureWriter(root_path, config=config) as writer:
        writer.write_elements(elements)


def _info_from_row(row: dict[str, Any]) -> OsmInfo:
    return OsmInfo(
        version=row["version"],
        timestamp=row["timestamp"],
        changeset=row["changeset"],
        uid=row["uid"],
        user=row["user"],
        visible=row["visible"],
    )


def _tags_from_row(row: dict[str, Any]) -> dict[str, str] | None:
    if row["tags"] is None:
        return None
    return dict(row["tags"])


def node_from_row(row: dict[str, Any]) -> OsmNode:
    return OsmNode(
        id=row["id"],
        info=_info_from_row(row),
        tags=_tags_from_row(row),
        latitude=row["latitude"],
        longitude=row["longitude"],
        tile=row["tile"],
    )


def way_from_row(row: dict[str, Any]) -> OsmWay:
    return OsmWay(
        id=row["id"],
        info=_info_from_row(row),
        tags=_tags_from_row(row),
        nodes=list(row["nodes"] or []),
    )


def relation_from_row(row: dict[str, Any]) -> OsmRelation:
    return OsmRelation(
        id=row["id"],
        info=_info_from_row(row),
        tags=_tags_from_row(row),
        members=[
            OsmRelationMember(id=m["id"], role=m["role"], type=ElementType(m["type"]))
            for m in row["members"] or []
        ],
    )


def _read_rows(fs: pa.fs.FileSystem, path: str, schema: pa.Schema) -> Iterator[dict[str, Any]]:
    if fs.get_file_info(path).type == pa.fs.FileType.NotFound:
        logger.warning("No elements at %s", path)
        return

    dataset = pyarrow.dataset.dataset(path, schema=schema, format="parquet", filesystem=fs)
    # history has to come back in version order for the store
    table = dataset.to_table().sort_by([("id", "ascending"), ("version", "ascending")])
    for batch in table.to_batches():
        yield from batch.to_pylist()


def read_fixture(root_path: str) -> Iterator[OsmElement]:
    """Yield every node, then every way, then every relation of a fixture."""
    fs, base_path = pa.fs.FileSystem.from_uri(root_path)

    for row in _read_rows(fs, _join_path(base_path, "nodes"), ARROW_NODE_SCHEMA):
        yield node_from_row(row)

    for row in _read_rows(fs, _join_path(base_path, "ways"), ARROW_WAY_SCHEMA):
        yield way_from_row(row)

    for row in _read_rows(fs, _join_path(base_path, "relations"), ARROW_RELATION_SCHEMA):
        yield relation_from_row(row)
