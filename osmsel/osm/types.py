from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import Enum

OsmTags = dict[str, str]


class ElementType(Enum):
    NODE = "node"
    WAY = "way"
    RELATION = "relation"


class _Anonymous:
    """Key for contributions without a public user id."""

    _instance: _Anonymous | None = None

    def __new__(cls) -> _Anonymous:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANONYMOUS"

    def __reduce__(self) -> str:
        return "ANONYMOUS"


ANONYMOUS = _Anonymous()

UserKey = int | _Anonymous


def user_key(uid: int | None) -> UserKey:
    # external exports use None, zero or a negative number for anonymous edits
    if uid is None or uid <= 0:
        return ANONYMOUS
    return uid


@dataclass(frozen=True)
class OsmInfo:
    version: int
    timestamp: int | None
    changeset: int | None
    uid: int | None
    user: str | None
    visible: bool = True

    @property
    def user_key(self) -> UserKey:
        return user_key(self.uid)


@dataclass(frozen=True)
class OsmNode:
    id: int
    info: OsmInfo
    tags: OsmTags | None
    latitude: float
    longitude: float
    tile: int | None = None

    type = ElementType.NODE


@dataclass(frozen=True)
class OsmWay:
    id: int
    info: OsmInfo
    tags: OsmTags | None
    nodes: list[int] = field(default_factory=list)

    type = ElementType.WAY


@dataclass(frozen=True)
class OsmRelationMember:
    id: int
    role: str
    type: ElementType


@dataclass(frozen=True)
class OsmRelation:
    id: int
    info: OsmInfo
    tags: OsmTags | None
    members: list[OsmRelationMember] = field(default_factory=list)

    type = ElementType.RELATION


OsmElement = OsmNode | OsmWay | OsmRelation


@dataclass
class OsmUser:
    id: UserKey
    display_name: str | None
    first_seen: int | None


@dataclass
class OsmChangeset:
    id: int
    user_id: UserKey
    min_timestamp: int | None
    max_timestamp: int | None
    num_changes: int = 0

    def widen(self, timestamp: int | None) -> None:
        if timestamp is None:
            return
        if self.min_timestamp is None or timestamp < self.min_timestamp:
            self.min_timestamp = timestamp
        if self.max_timestamp is None or timestamp > self.max_timestamp:
            self.max_timestamp = timestamp
