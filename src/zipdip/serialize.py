"""
Database serialization module.

This module handles serialization of the ZIP areas and the exact lookup
table to a single compact binary blob.

Binary Format:
- Header (6 bytes, uncompressed):
  - 4 bytes: magic b"ZIPD"
  - 1 byte: format version
  - 1 byte: flags (bit 0 = payload is zlib compressed)
- Payload:
  - varint: number of areas
  - For each area:
    - varint length + UTF-8 ZIP code
    - 4 x float64: bbox (min_lon, min_lat, max_lon, max_lat)
    - 2 x float64: centroid (lon, lat)
    - varint length + WKB geometry
  - varint: number of lookup entries
  - For each entry:
    - varint length + UTF-8 ZIP code
    - 2 x float64: centroid (lon, lat)

All floats are little-endian. Trailing bytes after the lookup table are
rejected.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple, Union
import os
import struct
import tempfile
import zlib

import shapely
from shapely.errors import GEOSException
from shapely.geometry import Point

from .errors import DataLoadError
from .geometry import AREA_TYPES, ZipArea


MAGIC = b"ZIPD"
FORMAT_VERSION = 1
FLAG_COMPRESSED = 0x01

_HEADER = struct.Struct("<4sBB")
_BBOX = struct.Struct("<4d")
_POINT = struct.Struct("<2d")

Lookup = Dict[str, Point]


class DatabaseSerializer:
    """Serializes areas and lookup table to the binary payload."""

    def serialize(self, areas: Sequence[ZipArea], lookup: Mapping[str, Point]) -> bytes:
        """
        Serialize areas and lookup table to an (uncompressed) payload.

        Args:
            areas: Areas in index order
            lookup: ZIP code -> centroid mapping

        Returns:
            Payload bytes
        """
        buffer = bytearray()

        buffer.extend(self._encode_varint(len(areas)))
        for area in areas:
            self._serialize_area(area, buffer)

        buffer.extend(self._encode_varint(len(lookup)))
        for zip_code, point in lookup.items():
            self._write_str(zip_code, buffer)
            buffer.extend(_POINT.pack(point.x, point.y))

        return bytes(buffer)

    def _encode_varint(self, value: int) -> bytes:
        """Encode an integer using variable-length encoding."""
        result = bytearray()
        while value >= 0x80:
            result.append((value & 0x7F) | 0x80)
            value >>= 7
        result.append(value)
        return bytes(result)

    def _write_bytes(self, data: bytes, buffer: bytearray) -> None:
        buffer.extend(self._encode_varint(len(data)))
        buffer.extend(data)

    def _write_str(self, value: str, buffer: bytearray) -> None:
        self._write_bytes(value.encode("utf-8"), buffer)

    def _serialize_area(self, area: ZipArea, buffer: bytearray) -> None:
        self._write_str(area.zip, buffer)
        buffer.extend(_BBOX.pack(*area.bbox))
        buffer.extend(_POINT.pack(area.centroid.x, area.centroid.y))
        self._write_bytes(shapely.to_wkb(area.geometry), buffer)


class DatabaseDeserializer:
    """Deserializes areas and lookup table from the binary payload."""

    def __init__(self):
        self._data: bytes = b""
        self._pos: int = 0

    def deserialize(self, data: bytes) -> Tuple[List[ZipArea], Lookup]:
        """
        Deserialize a payload.

        Args:
            data: Payload bytes (already decompressed)

        Returns:
            Tuple of (areas, lookup)

        Raises:
            ValueError: If the payload is truncated or malformed
        """
        self._data = data
        self._pos = 0

        count = self._read_varint()
        areas = [self._deserialize_area() for _ in range(count)]

        lookup: Lookup = {}
        count = self._read_varint()
        for _ in range(count):
            zip_code = self._read_str()
            lon, lat = self._read_struct(_POINT)
            lookup[zip_code] = Point(lon, lat)

        if self._pos != len(self._data):
            raise ValueError(f"{len(self._data) - self._pos} trailing bytes after lookup table")

        return areas, lookup

    def _read_byte(self) -> int:
        """Read a single byte."""
        if self._pos >= len(self._data):
            raise ValueError("Unexpected end of data")
        b = self._data[self._pos]
        self._pos += 1
        return b

    def _read_varint(self) -> int:
        """Read a variable-length integer."""
        result = 0
        shift = 0
        while True:
            b = self._read_byte()
            result |= (b & 0x7F) << shift
            if (b & 0x80) == 0:
                break
            shift += 7
        return result

    def _read_bytes(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise ValueError("Unexpected end of data")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _read_str(self) -> str:
        return self._read_bytes(self._read_varint()).decode("utf-8")

    def _read_struct(self, fmt: struct.Struct) -> tuple:
        return fmt.unpack(self._read_bytes(fmt.size))

    def _deserialize_area(self) -> ZipArea:
        zip_code = self._read_str()
        bbox = self._read_struct(_BBOX)
        lon, lat = self._read_struct(_POINT)
        geometry = shapely.from_wkb(self._read_bytes(self._read_varint()))
        if not isinstance(geometry, AREA_TYPES) or geometry.is_empty:
            raise ValueError(
                f"ZIP {zip_code}: expected non-empty Polygon or MultiPolygon, "
                f"got {geometry.geom_type}"
            )
        shapely.prepare(geometry)
        return ZipArea(zip=zip_code, geometry=geometry, bbox=bbox, centroid=Point(lon, lat))


def serialize_database(
    areas: Sequence[ZipArea],
    lookup: Mapping[str, Point],
    compress: bool = True,
) -> bytes:
    """
    Serialize a database to bytes, optionally with compression.

    Args:
        areas: Areas in index order
        lookup: ZIP code -> centroid mapping
        compress: Whether to apply zlib compression to the payload

    Returns:
        Header followed by the (optionally compressed) payload
    """
    serializer = DatabaseSerializer()
    payload = serializer.serialize(areas, lookup)

    flags = 0
    if compress:
        payload = zlib.compress(payload, level=9)
        flags |= FLAG_COMPRESSED

    return _HEADER.pack(MAGIC, FORMAT_VERSION, flags) + payload


def deserialize_database(data: bytes) -> Tuple[List[ZipArea], Lookup]:
    """
    Deserialize a database from bytes.

    Args:
        data: Bytes produced by serialize_database()

    Returns:
        Tuple of (areas, lookup)

    Raises:
        DataLoadError: If the header or payload cannot be decoded
    """
    if len(data) < _HEADER.size:
        raise DataLoadError("Failed to deserialize: file too short for header")

    magic, version, flags = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise DataLoadError("Failed to deserialize: not a ZIP code database (bad magic)")
    if version != FORMAT_VERSION:
        raise DataLoadError(
            f"Failed to deserialize: unsupported format version {version} "
            f"(expected {FORMAT_VERSION})"
        )

    payload = data[_HEADER.size:]
    try:
        if flags & FLAG_COMPRESSED:
            payload = zlib.decompress(payload)
        return DatabaseDeserializer().deserialize(payload)
    except (ValueError, struct.error, zlib.error, GEOSException) as e:
        raise DataLoadError(f"Failed to deserialize: {e}") from e


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_database_file(path: Union[str, Path], data: bytes) -> None:
    """
    Write a serialized database atomically.

    Parent directories are created as needed. The bytes go to a temporary
    file next to the target which is then renamed over it.
    The file gets the permissions a plain write would (0666 minus umask).

    Args:
        path: Output file path
        data: Serialized database
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            # mkstemp creates 0600; match the mode of a plain open().
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_database_file(path: Union[str, Path]) -> Tuple[List[ZipArea], Lookup]:
    """
    Read and deserialize a database file.

    Raises:
        DataLoadError: If the file cannot be read or decoded
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DataLoadError(f"Failed to read file: {e}") from e
    return deserialize_database(data)
