from __future__ import annotations

from dataclasses import dataclass

from osmsel.errors import InvalidBoundingBox

BBOX_FORMAT_MESSAGE = "The parameter bbox is required, and must be of the form min_lon,min_lat,max_lon,max_lat."


@dataclass(frozen=True)
class BoundingBox:
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @property
    def area(self) -> float:
        """Area in square degrees."""
        return (self.max_lon - self.min_lon) * (self.max_lat - self.min_lat)

    def contains(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def clip_to_world(self) -> BoundingBox:
        return BoundingBox(
            min_lon=max(self.min_lon, -180.0),
            min_lat=max(self.min_lat, -90.0),
            max_lon=min(self.max_lon, 180.0),
            max_lat=min(self.max_lat, 90.0),
        )

    def __str__(self) -> str:
        return f"{self.min_lon},{self.min_lat},{self.max_lon},{self.max_lat}"


def parse_bbox(text: str) -> BoundingBox:
    parts = text.split(",")
    if len(parts) != 4:
        raise InvalidBoundingBox(BBOX_FORMAT_MESSAGE)

    try:
        min_lon, min_lat, max_lon, max_lat = (float(part) for part in parts)
    except ValueError as e:
        raise InvalidBoundingBox(BBOX_FORMAT_MESSAGE) from e

    return BoundingBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)


def check_bbox(bbox: BoundingBox) -> tuple[bool, str | None]:
    """Return whether the box is usable and, if not, why."""
    for name in ("min_lon", "max_lon"):
        value = getattr(bbox, name)
        if not -180.0 <= value <= 180.0:
            return False, f"{name} {value} is outside -180 to 180"

    for name in ("min_lat", "max_lat"):
        value = getattr(bbox, name)
        if not -90.0 <= value <= 90.0:
            return False, f"{name} {value} is outside -90 to 90"

    if not bbox.min_lon < bbox.max_lon:
        return False, "min_lon must be less than max_lon"
    if not bbox.min_lat < bbox.max_lat:
        return False, "min_lat must be less than max_lat"

    return True, None


def validate_bbox(bbox: BoundingBox, max_area: float | None = None) -> BoundingBox:
    ok, reason = check_bbox(bbox)
    if not ok:
        raise InvalidBoundingBox(
            "The latitudes must be between -90 and 90, longitudes between -180 and 180 "
            f"and the minima must be less than the maxima ({reason})."
        )

    if max_area is not None and bbox.area > max_area:
        raise InvalidBoundingBox(
            f"The maximum bbox size is {max_area}, and your request was too large. "
            "Either request a smaller area, or use planet.osm"
        )

    return bbox
