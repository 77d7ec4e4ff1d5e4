"""
zipdip: Offline ZIP code geocoding over Census ZCTA polygons.

This package builds a compact binary database of ZIP code areas and
answers two queries against it without any network access: ZIP code to
centroid coordinates, and latitude/longitude to the containing (or
nearest) ZIP code.
"""

__version__ = "0.1.0"

from .errors import (
    ZipCodeError,
    ZipNotFound,
    InvalidZipFormat,
    InvalidCoordinates,
    DataLoadError,
)
from .geometry import ZipArea, EmptyGeometryError, make_area, bounding_box, centroid
from .index import SpatialIndex
from .database import ZipCodeDb, Coordinate
from .serialize import serialize_database, deserialize_database
from .builder import BuilderConfig, BuilderStats, build_areas, build_database_file

__all__ = [
    "ZipCodeError",
    "ZipNotFound",
    "InvalidZipFormat",
    "InvalidCoordinates",
    "DataLoadError",
    "ZipArea",
    "EmptyGeometryError",
    "make_area",
    "bounding_box",
    "centroid",
    "SpatialIndex",
    "ZipCodeDb",
    "Coordinate",
    "serialize_database",
    "deserialize_database",
    "BuilderConfig",
    "BuilderStats",
    "build_areas",
    "build_database_file",
]
