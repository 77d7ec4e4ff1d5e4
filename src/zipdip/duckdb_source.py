"""
DuckDB-based reader for Census ZCTA shapefiles.

This module uses DuckDB's spatial extension to read a ZCTA shapefile
(or a zip archive containing one) and yield (ZIP code, WKB geometry)
records for the builder.
"""

from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple
import shutil
import tempfile
import zipfile

import duckdb

from .builder import DEFAULT_ZIP_FIELDS


def resolve_zip_field(columns: Sequence[str], candidates: Sequence[str] = DEFAULT_ZIP_FIELDS) -> str:
    """
    Pick the attribute holding the ZIP code.

    Args:
        columns: Column names present in the dataset
        candidates: Accepted field names in priority order

    Returns:
        The first candidate present (matched case-insensitively),
        spelled as in the dataset

    Raises:
        ValueError: If no candidate is present
    """
    by_upper = {c.upper(): c for c in columns}
    for name in candidates:
        if name.upper() in by_upper:
            return by_upper[name.upper()]
    raise ValueError(
        f"Could not find ZIP code field (tried {', '.join(candidates)}) "
        f"in columns: {', '.join(columns)}"
    )


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class ZctaShapefileReader:
    """
    Reads ZCTA polygons through DuckDB's spatial extension.

    Usable as a context manager; temporary files from zip extraction are
    removed on close().
    """

    def __init__(
        self,
        shapefile_path: Path,
        zip_fields: Sequence[str] = DEFAULT_ZIP_FIELDS,
        batch_size: int = 1000,
    ):
        """
        Initialize the reader.

        Args:
            shapefile_path: Path to shapefile (.shp) or zip containing shapefile
            zip_fields: Candidate ZIP code field names in priority order
            batch_size: Rows fetched from DuckDB per round trip
        """
        self._con: Optional[duckdb.DuckDBPyConnection] = None
        self._temp_dir: Optional[Path] = None
        self.batch_size = batch_size
        shapefile_path = Path(shapefile_path)

        # Handle zip files
        if shapefile_path.suffix == ".zip":
            self._temp_dir = Path(tempfile.mkdtemp())
            with zipfile.ZipFile(shapefile_path, "r") as zf:
                zf.extractall(self._temp_dir)
            shp_files = sorted(self._temp_dir.rglob("*.shp"))
            if not shp_files:
                self.close()
                raise ValueError(f"No .shp file found in {shapefile_path}")
            shapefile_path = shp_files[0]

        if not shapefile_path.exists():
            self.close()
            raise FileNotFoundError(f"Shapefile not found: {shapefile_path}")

        self._shapefile_path = shapefile_path

        self._con = duckdb.connect(":memory:")
        self._con.install_extension("spatial")
        self._con.load_extension("spatial")

        self._load_shapefile()
        self.zip_field = resolve_zip_field(self.columns(), zip_fields)

    def _load_shapefile(self) -> None:
        """Load shapefile into DuckDB."""
        path = str(self._shapefile_path).replace("'", "''")
        self._con.execute(f"""
            CREATE TABLE zcta AS
            SELECT * FROM st_read('{path}')
        """)

    def columns(self) -> List[str]:
        """Column names of the loaded table."""
        return [row[0] for row in self._con.execute("DESCRIBE zcta").fetchall()]

    def count(self) -> int:
        """Number of records in the shapefile."""
        return self._con.execute("SELECT count(*) FROM zcta").fetchone()[0]

    def __iter__(self) -> Iterator[Tuple[Optional[str], Optional[bytes]]]:
        """
        Iterate over (zip_code, wkb) records.

        The ZIP code is cast to text; missing geometries come through as
        None so the builder can report them.
        """
        cursor = self._con.execute(f"""
            SELECT CAST({_quote(self.zip_field)} AS VARCHAR), ST_AsWKB(geom)
            FROM zcta
        """)
        while True:
            rows = cursor.fetchmany(self.batch_size)
            if not rows:
                break
            for zip_code, wkb in rows:
                yield zip_code, (bytes(wkb) if wkb is not None else None)

    def close(self) -> None:
        """Close the database connection and clean up temporary files."""
        if self._con:
            self._con.close()
            self._con = None

        if self._temp_dir and self._temp_dir.exists():
            shutil.rmtree(self._temp_dir)
            self._temp_dir = None

    def __del__(self):
        """Cleanup on garbage collection."""
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
