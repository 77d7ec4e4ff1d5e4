"""
ZIP code database: the query engine over areas, index and lookup table.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union
import re

from shapely.geometry import Point

from .errors import DataLoadError, InvalidCoordinates, InvalidZipFormat, ZipNotFound
from .geometry import ZipArea
from .index import SpatialIndex
from .serialize import (
    deserialize_database,
    read_database_file,
    serialize_database,
    write_database_file,
)


_ZIP_PATTERN = re.compile(r"[0-9]{5}")


class Coordinate(NamedTuple):
    """A WGS84 position reported as (latitude, longitude)."""
    lat: float
    lon: float


def is_valid_zip(zip_code) -> bool:
    """Check that a ZIP code is exactly five ASCII digits."""
    return isinstance(zip_code, str) and _ZIP_PATTERN.fullmatch(zip_code) is not None


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Check latitude is in [-90, 90] and longitude in [-180, 180]."""
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


class ZipCodeDb:
    """
    Read-only database answering ZIP -> centroid and lat/lon -> ZIP queries.

    A database is either empty (``ZipCodeDb()``) or loaded from a full set
    of areas; it is never modified afterwards, so one instance may be
    shared freely between threads.
    """

    def __init__(
        self,
        areas: Iterable[ZipArea] = (),
        zip_to_coords: Optional[Mapping[str, Point]] = None,
    ):
        """
        Initialize a database.

        Args:
            areas: All areas, bulk-loaded into the spatial index
            zip_to_coords: ZIP code -> centroid table; derived from the
                areas when not given
        """
        self._areas: Tuple[ZipArea, ...] = tuple(areas)
        if zip_to_coords is None:
            zip_to_coords = {area.zip: area.centroid for area in self._areas}
        self._zip_to_coords: Dict[str, Point] = dict(zip_to_coords)
        self._index = SpatialIndex(self._areas)

    @classmethod
    def from_areas(cls, areas: Iterable[ZipArea]) -> ZipCodeDb:
        """Build a database from areas, deriving the lookup table."""
        return cls(areas)

    @classmethod
    def from_bytes(cls, data: bytes) -> ZipCodeDb:
        """
        Load a database from serialized bytes.

        Raises:
            DataLoadError: If the bytes cannot be decoded
        """
        areas, lookup = deserialize_database(data)
        return cls(areas, lookup)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> ZipCodeDb:
        """
        Load a database from a binary file.

        Raises:
            DataLoadError: If the file is missing, unreadable or undecodable
        """
        areas, lookup = read_database_file(path)
        return cls(areas, lookup)

    def to_bytes(self, compress: bool = True) -> bytes:
        """Serialize the database."""
        return serialize_database(self._areas, self._zip_to_coords, compress=compress)

    def save(self, path: Union[str, Path], compress: bool = True) -> int:
        """
        Write the database to a file atomically.

        Returns:
            Number of bytes written
        """
        data = self.to_bytes(compress=compress)
        write_database_file(path, data)
        return len(data)

    @property
    def areas(self) -> Tuple[ZipArea, ...]:
        """All areas in index order."""
        return self._areas

    def __len__(self) -> int:
        return len(self._areas)

    def __contains__(self, zip_code) -> bool:
        return zip_code in self._zip_to_coords

    def zip_codes(self) -> List[str]:
        """Sorted ZIP codes in the lookup table."""
        return sorted(self._zip_to_coords)

    def zip_to_centroid(self, zip_code: str) -> Coordinate:
        """
        Get the centroid coordinates for a ZIP code.

        Args:
            zip_code: Five-digit ZIP code

        Returns:
            Coordinate(lat, lon)

        Raises:
            InvalidZipFormat: If zip_code is not five ASCII digits
            ZipNotFound: If the ZIP code is not in the database
        """
        if not is_valid_zip(zip_code):
            raise InvalidZipFormat(zip_code)

        point = self._zip_to_coords.get(zip_code)
        if point is None:
            raise ZipNotFound(zip_code)
        return Coordinate(lat=point.y, lon=point.x)

    def lat_lon_to_zip(self, lat: float, lon: float) -> str:
        """
        Find the ZIP code for given coordinates.

        The first area (in index order) whose polygon contains the point
        wins. If none does, the area with the nearest centroid is used.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            ZIP code

        Raises:
            InvalidCoordinates: If lat/lon are out of range
            DataLoadError: If the database holds no areas
        """
        if not is_valid_coordinate(lat, lon):
            raise InvalidCoordinates(lat, lon)

        for area in self._index.query_point(lon, lat):
            if area.contains_point(lon, lat):
                return area.zip

        nearest = self._index.nearest(lon, lat)
        if nearest is None:
            raise DataLoadError("No ZIP codes in database")
        return nearest.zip

    def nearest_zips(self, lat: float, lon: float, count: int = 5) -> List[str]:
        """
        List ZIP codes by increasing centroid distance from a point.

        Raises:
            InvalidCoordinates: If lat/lon are out of range
            DataLoadError: If the database holds no areas
        """
        if not is_valid_coordinate(lat, lon):
            raise InvalidCoordinates(lat, lon)
        if not self._areas:
            raise DataLoadError("No ZIP codes in database")

        result = []
        for area in self._index.iter_nearest(lon, lat):
            if len(result) >= count:
                break
            result.append(area.zip)
        return result
