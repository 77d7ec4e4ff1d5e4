"""
Geometry model for ZIP code areas.

A ZipArea couples a ZIP code with its polygon and the two values derived
from it once at construction: the axis-aligned bounding box and the
centroid. All geometry uses x = longitude, y = latitude.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

import shapely
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.geometry.base import BaseGeometry


# (min_lon, min_lat, max_lon, max_lat)
BoundingBox = Tuple[float, float, float, float]

AREA_TYPES = (Polygon, MultiPolygon)


class EmptyGeometryError(ValueError):
    """Raised when an area geometry has no extent."""


def bounding_box(geometry: BaseGeometry) -> BoundingBox:
    """
    Compute the axis-aligned bounding box of a geometry.

    Args:
        geometry: Polygon or MultiPolygon in lon/lat

    Returns:
        Tuple of (min_lon, min_lat, max_lon, max_lat)

    Raises:
        EmptyGeometryError: If the geometry is empty
    """
    if geometry.is_empty:
        raise EmptyGeometryError("ZIP areas should have a non-empty bounding box")
    min_x, min_y, max_x, max_y = geometry.bounds
    return (float(min_x), float(min_y), float(max_x), float(max_y))


def centroid(geometry: BaseGeometry) -> Point:
    """
    Compute the area-weighted centroid of a geometry.

    Raises:
        EmptyGeometryError: If the geometry is empty
    """
    if geometry.is_empty:
        raise EmptyGeometryError("ZIP areas should have a non-empty centroid")
    return geometry.centroid


@dataclass(frozen=True)
class ZipArea:
    """
    One ZIP code region.

    Use make_area() to build one from a geometry; the constructor takes
    the derived values as given so deserialized areas keep their stored
    bbox and centroid exactly.
    """
    zip: str
    geometry: BaseGeometry
    bbox: BoundingBox
    centroid: Point  # (lon, lat)

    def contains_point(self, lon: float, lat: float) -> bool:
        """Exact point-in-polygon test against this area's geometry."""
        return contains_point(self, lon, lat)

    def bbox_contains(self, lon: float, lat: float) -> bool:
        """Check if (lon, lat) lies within the bounding box, edges included."""
        min_lon, min_lat, max_lon, max_lat = self.bbox
        return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat


def make_area(zip_code: str, geometry: BaseGeometry) -> ZipArea:
    """
    Build a ZipArea, deriving its bounding box and centroid.

    Args:
        zip_code: ZIP code identifier
        geometry: Polygon or MultiPolygon in lon/lat

    Returns:
        New ZipArea

    Raises:
        ValueError: If the geometry is not polygonal
        EmptyGeometryError: If the geometry is empty
    """
    if not isinstance(geometry, AREA_TYPES):
        raise ValueError(
            f"ZIP {zip_code}: expected Polygon or MultiPolygon, got {geometry.geom_type}"
        )
    bbox = bounding_box(geometry)
    center = centroid(geometry)
    shapely.prepare(geometry)
    return ZipArea(zip=zip_code, geometry=geometry, bbox=bbox, centroid=center)


def contains_point(area: ZipArea, lon: float, lat: float) -> bool:
    """
    Check whether a point lies inside an area's geometry.

    Holes and multiple parts are honoured. Points exactly on the boundary
    are never contained, so repeated calls always agree.

    Args:
        area: Area to test
        lon: Longitude (x)
        lat: Latitude (y)

    Returns:
        True if the point is strictly inside the geometry
    """
    return bool(shapely.contains_xy(area.geometry, lon, lat))
