"""
Shared pytest fixtures for osmsel tests.
"""

import pytest

from osmsel.osm.types import ElementType
from osmsel.osm.types import OsmInfo
from osmsel.osm.types import OsmNode
from osmsel.osm.types import OsmRelation
from osmsel.osm.types import OsmRelationMember
from osmsel.osm.types import OsmWay
from osmsel.store import MemoryElementStore

# 2013-02-16T19:02:00Z in milliseconds
BASE_TIMESTAMP = 1361041320000


class ElementBuilder:
    """Small constructors for test elements with sensible defaults."""

    def info(self, version=1, timestamp=BASE_TIMESTAMP, changeset=1, uid=1, user="user_1", visible=True):
        return OsmInfo(
            version=version,
            timestamp=timestamp,
            changeset=changeset,
            uid=uid,
            user=user,
            visible=visible,
        )

    def node(self, id, lat=0.0, lon=0.0, tags=None, **info):
        return OsmNode(id=id, info=self.info(**info), tags=tags, latitude=lat, longitude=lon)

    def way(self, id, nodes, tags=None, **info):
        return OsmWay(id=id, info=self.info(**info), tags=tags, nodes=list(nodes))

    def relation(self, id, members, tags=None, **info):
        return OsmRelation(
            id=id,
            info=self.info(**info),
            tags=tags,
            members=[OsmRelationMember(id=ref, role=role, type=ElementType(t)) for t, ref, role in members],
        )


@pytest.fixture
def build():
    return ElementBuilder()


@pytest.fixture
def relation_elements(build):
    """The relation fixture used by the relation and relation/full checks."""
    return [
        build.node(1, lat=0.0, lon=0.0),
        build.node(2, lat=0.1, lon=0.1),
        build.way(1, [1, 2]),
        build.relation(1, [("way", 1, "outer"), ("node", 1, "label")]),
        build.relation(2, [("node", 1, "")], version=1),
        build.relation(2, [], version=2, visible=False),
        build.relation(4, [("relation", 1, "")]),
        build.relation(5, [("relation", 5, "")]),
        build.relation(6, [("way", 1, "")]),
        build.relation(7, [("relation", 8, "")]),
        build.relation(8, [("relation", 7, "")]),
    ]


@pytest.fixture
def relation_store(relation_elements):
    return MemoryElementStore(relation_elements)


@pytest.fixture
def map_elements(build):
    """A few nodes around the origin, one far away, and the ways and relations using them."""
    return [
        build.node(1, lat=0.0, lon=0.0),
        build.node(2, lat=0.0001, lon=0.0001),
        build.node(3, lat=0.002, lon=0.002),
        build.node(4, lat=45.0, lon=45.0),
        build.node(5, lat=0.0002, lon=-0.0002, version=1),
        build.node(5, lat=0.0002, lon=-0.0002, version=2, visible=False),
        build.way(10, [1, 3]),
        build.way(11, [3, 4]),
        build.way(12, [2, 1, 2]),
        build.relation(20, [("way", 10, "outer")]),
        build.relation(21, [("node", 4, "")]),
        build.relation(22, [("relation", 20, "")]),
        build.relation(23, [("relation", 22, "")]),
    ]


@pytest.fixture
def map_store(map_elements):
    return MemoryElementStore(map_elements)
