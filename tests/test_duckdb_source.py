"""Tests for the DuckDB shapefile reader."""

import zipfile

import pytest
import duckdb

from zipdip.builder import build_areas
from zipdip.duckdb_source import ZctaShapefileReader, resolve_zip_field


SHAPES = [
    ("94102", "POLYGON((-122.43 37.77, -122.41 37.77, -122.41 37.79, -122.43 37.79, -122.43 37.77))"),
    ("10001", "POLYGON((-74.01 40.74, -73.98 40.74, -73.98 40.76, -74.01 40.76, -74.01 40.74))"),
]


@pytest.fixture(scope="module")
def shapefile(tmp_path_factory):
    """Write a small ZCTA-like shapefile with DuckDB, or skip."""
    out_dir = tmp_path_factory.mktemp("zcta")
    path = out_dir / "tl_test_zcta.shp"

    con = duckdb.connect(":memory:")
    try:
        con.install_extension("spatial")
        con.load_extension("spatial")
        con.execute("CREATE TABLE z (ZCTA5CE20 VARCHAR, wkt VARCHAR)")
        con.executemany("INSERT INTO z VALUES (?, ?)", SHAPES)
        con.execute(f"""
            COPY (SELECT ZCTA5CE20, ST_GeomFromText(wkt) AS geom FROM z)
            TO '{path}' WITH (FORMAT GDAL, DRIVER 'ESRI Shapefile')
        """)
    except duckdb.Error as e:
        pytest.skip(f"DuckDB spatial extension not available: {e}")
    finally:
        con.close()

    return path


class TestResolveZipField:
    """Tests for resolve_zip_field function."""

    def test_first_candidate(self):
        """Test the 2020 field is preferred."""
        columns = ["GEOID20", "ZCTA5CE20", "ALAND20", "geom"]
        assert resolve_zip_field(columns) == "ZCTA5CE20"

    def test_fallback_candidates(self):
        """Test older field names are accepted."""
        assert resolve_zip_field(["ZCTA5CE10", "geom"]) == "ZCTA5CE10"
        assert resolve_zip_field(["ZCTA5", "geom"]) == "ZCTA5"
        assert resolve_zip_field(["GEOID10", "geom"]) == "GEOID10"

    def test_case_insensitive(self):
        """Test matching ignores case but returns the dataset spelling."""
        assert resolve_zip_field(["zcta5ce20", "geom"]) == "zcta5ce20"

    def test_custom_candidates(self):
        """Test a custom candidate list."""
        assert resolve_zip_field(["ZIP", "geom"], candidates=("ZIP",)) == "ZIP"

    def test_missing(self):
        """Test that no matching field raises error."""
        with pytest.raises(ValueError, match="Could not find ZIP code field"):
            resolve_zip_field(["NAME", "geom"])


class TestReaderErrors:
    """Tests for reader input errors that need no DuckDB."""

    def test_missing_shapefile(self, tmp_path):
        """Test that a missing shapefile raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ZctaShapefileReader(tmp_path / "missing.shp")

    def test_zip_without_shapefile(self, tmp_path):
        """Test that an archive with no .shp raises error."""
        archive = tmp_path / "empty.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("README.txt", "nothing here")

        with pytest.raises(ValueError, match="No .shp file"):
            ZctaShapefileReader(archive)


class TestZctaShapefileReader:
    """Tests for reading a real shapefile."""

    def test_reads_records(self, shapefile):
        """Test iterating (zip, wkb) records."""
        with ZctaShapefileReader(shapefile) as reader:
            assert reader.zip_field == "ZCTA5CE20"
            assert reader.count() == 2
            records = list(reader)

        assert sorted(zip_code for zip_code, _ in records) == ["10001", "94102"]
        assert all(isinstance(wkb, bytes) for _, wkb in records)

    def test_reads_zip_archive(self, shapefile, tmp_path):
        """Test reading the shapefile from a zip archive."""
        archive = tmp_path / "tl_test_zcta.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            for part in shapefile.parent.glob(shapefile.stem + ".*"):
                zf.write(part, part.name)

        with ZctaShapefileReader(archive) as reader:
            assert reader.count() == 2

    def test_builds_areas(self, shapefile):
        """Test the records feed the builder."""
        with ZctaShapefileReader(shapefile) as reader:
            areas, stats = build_areas(reader)

        assert [a.zip for a in areas] == ["10001", "94102"]
        assert stats.skipped == 0
        assert areas[1].contains_point(-122.4193, 37.7793)
