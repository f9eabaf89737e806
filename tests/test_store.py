"""Tests for osmsel/store.py - in-memory element store."""

import pytest

from osmsel.errors import NotFound
from osmsel.osm.tiles import tile_for_point
from osmsel.osm.types import ElementType
from osmsel.store import MemoryElementStore
from osmsel.store import Visibility


class TestLookups:
    def test_get_returns_latest_version(self, relation_store):
        relation = relation_store.get(ElementType.RELATION, 2)
        assert relation.info.version == 2
        assert not relation.info.visible

    def test_get_missing(self, relation_store):
        with pytest.raises(NotFound) as exc:
            relation_store.get(ElementType.RELATION, 3)
        assert exc.value.element_type is ElementType.RELATION
        assert exc.value.id == 3

    def test_namespaces_are_independent(self, relation_store):
        assert relation_store.get(ElementType.NODE, 1).type is ElementType.NODE
        assert relation_store.get(ElementType.WAY, 1).type is ElementType.WAY
        assert relation_store.get(ElementType.RELATION, 1).type is ElementType.RELATION

    def test_history(self, relation_store):
        history = relation_store.get_history(ElementType.RELATION, 2)
        assert [r.info.version for r in history] == [1, 2]
        assert [r.info.visible for r in history] == [True, False]

    def test_get_version(self, relation_store):
        assert relation_store.get_version(ElementType.RELATION, 2, 1).info.visible

    def test_get_unknown_version(self, relation_store):
        with pytest.raises(NotFound):
            relation_store.get_version(ElementType.RELATION, 2, 3)

    def test_large_ids(self, build):
        big = 2**63 - 1
        store = MemoryElementStore([build.node(big, lat=1.0, lon=1.0)])
        assert store.get(ElementType.NODE, big).id == big


class TestVisibility:
    def test_exists(self, relation_store):
        assert relation_store.check_visibility(ElementType.RELATION, 1) is Visibility.EXISTS

    def test_deleted(self, relation_store):
        assert relation_store.check_visibility(ElementType.RELATION, 2) is Visibility.DELETED

    def test_non_exist(self, relation_store):
        assert relation_store.check_visibility(ElementType.RELATION, 3) is Visibility.NON_EXIST


class TestVersionOrder:
    def test_rejects_repeated_version(self, build):
        store = MemoryElementStore([build.node(1, version=1)])
        with pytest.raises(ValueError):
            store.add(build.node(1, version=1))

    def test_rejects_older_version(self, build):
        store = MemoryElementStore([build.node(1, version=3)])
        with pytest.raises(ValueError):
            store.add(build.node(1, version=2))


class TestRangeQuery:
    def test_returns_nodes_in_tile_range(self, map_store):
        tile = tile_for_point(45.0, 45.0)
        assert [node.id for node in map_store.range_query(tile, tile)] == [4]

    def test_full_range_returns_every_current_node(self, map_store):
        nodes = map_store.range_query(0, 0xFFFFFFFF)
        assert sorted(node.id for node in nodes) == [1, 2, 3, 4, 5]

    def test_moved_node_is_reindexed(self, build):
        store = MemoryElementStore([build.node(1, lat=0.0, lon=0.0, version=1)])
        store.add(build.node(1, lat=45.0, lon=45.0, version=2))

        origin = tile_for_point(0.0, 0.0)
        assert store.range_query(origin, origin) == []
        moved = tile_for_point(45.0, 45.0)
        assert [node.info.version for node in store.range_query(moved, moved)] == [2]

    def test_empty_range(self, map_store):
        assert map_store.range_query(10, 5) == []

    def test_len_counts_elements_not_versions(self, map_store, map_elements):
        assert len(map_store) == len(map_elements) - 1
