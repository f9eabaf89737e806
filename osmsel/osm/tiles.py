"""Quad tile codes for nodes.

A tile is a 32-bit Morton code built from longitude and latitude quantized to
16 bits each. Bits are interleaved from the most significant end, x first, so
the code grows monotonically with both x and y and a bounding box maps to a
single closed range of codes.

Quantization works on 7-digit fixed-point coordinates with integer math and
rounds half up. All operands are non-negative at that point, so this is the
same as rounding half away from zero. Coordinates outside the world clamp to
its edge, infinities included. NaN is rejected with ``ValueError``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from osmsel.osm.bbox import BoundingBox

SCALE = 10_000_000
TILE_AXIS_MAX = 65535


def _as_decimal(value: float | int | str | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_fixed(value: float | int | str | Decimal) -> int:
    """Convert decimal degrees to an integer count of 1e-7 degrees."""
    if isinstance(value, int):
        return value * SCALE
    value = _as_decimal(value)
    if not value.is_finite():
        raise ValueError(f"Coordinate {value} has no fixed-point form")
    return int(value.scaleb(7).to_integral_value(rounding=ROUND_HALF_UP))


def _quantize(fixed: int, offset: int, span: int) -> int:
    numerator = (fixed + offset * SCALE) * TILE_AXIS_MAX
    denominator = span * SCALE
    if numerator <= 0:
        return 0
    value = (2 * numerator + denominator) // (2 * denominator)
    return min(value, TILE_AXIS_MAX)


def _to_axis(value: float | int | str | Decimal, offset: int, span: int) -> int:
    if isinstance(value, int):
        return _quantize(to_fixed(value), offset, span)
    degrees = _as_decimal(value)
    if degrees.is_infinite():
        return 0 if degrees < 0 else TILE_AXIS_MAX
    return _quantize(to_fixed(degrees), offset, span)


def lon_to_x(lon: float | int | str | Decimal) -> int:
    return _to_axis(lon, 180, 360)


def lat_to_y(lat: float | int | str | Decimal) -> int:
    return _to_axis(lat, 90, 180)


def xy_to_tile(x: int, y: int) -> int:
    tile = 0
    for i in range(15, -1, -1):
        tile = (tile << 1) | ((x >> i) & 1)
        tile = (tile << 1) | ((y >> i) & 1)
    return tile


def tile_for_point(lat: float | int | str | Decimal, lon: float | int | str | Decimal) -> int:
    return xy_to_tile(lon_to_x(lon), lat_to_y(lat))


def tiles_for_area(bbox: BoundingBox) -> set[int]:
    """Every tile touched by the box. Grows with the area, keep boxes small."""
    min_x, max_x = lon_to_x(bbox.min_lon), lon_to_x(bbox.max_lon)
    min_y, max_y = lat_to_y(bbox.min_lat), lat_to_y(bbox.max_lat)
    return {xy_to_tile(x, y) for x in range(min_x, max_x + 1) for y in range(min_y, max_y + 1)}


def tile_range_for_area(bbox: BoundingBox) -> tuple[int, int]:
    """Closed range of tile codes containing every point of the box.

    The range is a superset: points outside the box can share it, so range
    scans must still filter on the coordinates.
    """
    return (
        tile_for_point(bbox.min_lat, bbox.min_lon),
        tile_for_point(bbox.max_lat, bbox.max_lon),
    )
