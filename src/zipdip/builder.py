"""
Offline builder for the ZIP code database.

This module turns raw (ZIP code, geometry) records into ZipArea entries:
geometries are decoded, parts belonging to the same ZIP code are merged,
and bounding boxes and centroids are derived once. Malformed records are
skipped and reported through BuilderStats.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import shapely
from shapely.errors import GEOSException
from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry

from .database import is_valid_zip
from .geometry import AREA_TYPES, ZipArea, make_area
from .serialize import serialize_database, write_database_file


DEFAULT_ZIP_FIELDS = ("ZCTA5CE20", "ZCTA5CE10", "ZCTA5", "GEOID20", "GEOID10")

GeometryInput = Union[BaseGeometry, bytes, None]
ProgressCallback = Callable[[int], None]


@dataclass
class BuilderConfig:
    """Configuration for the database builder."""

    zip_fields: Tuple[str, ...] = DEFAULT_ZIP_FIELDS
    """Candidate attribute names holding the ZIP code, in priority order."""

    merge_duplicates: bool = True
    """Union all parts of a ZIP code into one geometry (else keep the first)."""

    compress: bool = True
    """Compress the serialized payload with zlib."""

    progress_every: int = 1000
    """Call the progress callback every N processed records."""

    def __post_init__(self):
        self.zip_fields = tuple(self.zip_fields)
        if not self.zip_fields:
            raise ValueError("zip_fields must name at least one field")
        if self.progress_every < 1:
            raise ValueError("progress_every must be at least 1")


@dataclass
class BuilderStats:
    """Statistics collected during a build."""

    records_read: int = 0
    processed: int = 0
    skipped: int = 0
    merged: int = 0
    output_bytes: int = 0
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.skipped += 1
        self.warnings.append(message)


class AreaBuilder:
    """
    Accumulates records and produces one ZipArea per ZIP code.
    """

    def __init__(self, config: Optional[BuilderConfig] = None):
        self.config = config or BuilderConfig()
        self.stats = BuilderStats()
        self._geometries: Dict[str, List[BaseGeometry]] = {}

    def _decode(self, zip_code: str, geometry: GeometryInput) -> Optional[BaseGeometry]:
        """Decode WKB input; return None (with a warning) when unusable."""
        if geometry is None:
            self.stats.warn(f"Missing geometry for ZIP {zip_code}")
            return None

        if isinstance(geometry, (bytes, bytearray, memoryview)):
            try:
                geometry = shapely.from_wkb(bytes(geometry))
            except GEOSException as e:
                self.stats.warn(f"Failed to convert shape for ZIP {zip_code}: {e}")
                return None

        if not isinstance(geometry, AREA_TYPES):
            self.stats.warn(
                f"Unsupported geometry type {geometry.geom_type} for ZIP {zip_code}"
            )
            return None

        return geometry

    def add(self, zip_code: Optional[str], geometry: GeometryInput) -> bool:
        """
        Add one record.

        Args:
            zip_code: ZIP code (surrounding whitespace is stripped)
            geometry: Shapely geometry or WKB bytes

        Returns:
            True if the record was accepted
        """
        self.stats.records_read += 1

        zip_code = (zip_code or "").strip()
        if not zip_code:
            self.stats.warn("Could not find ZIP code field in record")
            return False

        if not is_valid_zip(zip_code):
            self.stats.warn(f"Invalid ZIP code {zip_code!r}")
            return False

        geometry = self._decode(zip_code, geometry)
        if geometry is None:
            return False

        parts = self._geometries.setdefault(zip_code, [])
        if parts:
            if not self.config.merge_duplicates:
                self.stats.warn(f"Duplicate ZIP {zip_code} ignored")
                return False
            self.stats.merged += 1

        parts.append(geometry)
        self.stats.processed += 1
        return True

    def _merge(self, zip_code: str, parts: List[BaseGeometry]) -> BaseGeometry:
        if len(parts) == 1:
            return parts[0]

        merged = shapely.union_all(parts)
        if isinstance(merged, AREA_TYPES):
            return merged

        # Degenerate slivers can leave a collection; keep its polygonal parts.
        polygons = [
            g for g in getattr(merged, "geoms", [])
            if isinstance(g, AREA_TYPES) and not g.is_empty
        ]
        if not polygons:
            raise ValueError(f"ZIP {zip_code}: merged geometry has no polygonal parts")
        return shapely.union_all(polygons)

    def build(self) -> List[ZipArea]:
        """
        Produce areas sorted by ZIP code.

        Raises:
            EmptyGeometryError: If any accepted geometry is empty
        """
        return [
            make_area(zip_code, self._merge(zip_code, self._geometries[zip_code]))
            for zip_code in sorted(self._geometries)
        ]


def build_areas(
    records: Iterable[Tuple[Optional[str], GeometryInput]],
    config: Optional[BuilderConfig] = None,
    progress: Optional[ProgressCallback] = None,
) -> Tuple[List[ZipArea], BuilderStats]:
    """
    Convenience function to build areas from records.

    Args:
        records: Iterable of (zip_code, geometry) pairs
        config: Builder configuration
        progress: Called with the processed count every
            config.progress_every accepted records

    Returns:
        Tuple of (areas, BuilderStats)
    """
    builder = AreaBuilder(config)
    for zip_code, geometry in records:
        if builder.add(zip_code, geometry) and progress is not None:
            if builder.stats.processed % builder.config.progress_every == 0:
                progress(builder.stats.processed)
    return builder.build(), builder.stats


def build_lookup(areas: Iterable[ZipArea]) -> Dict[str, Point]:
    """Build the ZIP code -> centroid table for a set of areas."""
    return {area.zip: area.centroid for area in areas}


def build_database_file(
    records: Iterable[Tuple[Optional[str], GeometryInput]],
    output: Union[str, Path],
    config: Optional[BuilderConfig] = None,
    progress: Optional[ProgressCallback] = None,
) -> BuilderStats:
    """
    Build areas from records and write the database file.

    Args:
        records: Iterable of (zip_code, geometry) pairs
        output: Output file path (parent directories are created)
        config: Builder configuration
        progress: Progress callback, see build_areas()

    Returns:
        BuilderStats including the output size
    """
    config = config or BuilderConfig()
    areas, stats = build_areas(records, config, progress)

    data = serialize_database(areas, build_lookup(areas), compress=config.compress)
    write_database_file(output, data)
    stats.output_bytes = len(data)
    return stats
