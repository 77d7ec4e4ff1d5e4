"""Shared fixtures for zipdip tests."""

import pytest
from shapely.geometry import box

from zipdip.database import ZipCodeDb
from zipdip.geometry import make_area

from shapes import square_with_hole, two_islands


@pytest.fixture
def sample_geometries():
    """(zip, geometry) pairs for a handful of synthetic areas."""
    return [
        ("94102", box(-122.43, 37.77, -122.41, 37.79)),
        ("94103", box(-122.41, 37.75, -122.39, 37.77)),
        ("10001", box(-74.01, 40.74, -73.98, 40.76)),
        ("60601", square_with_hole()),
        ("96720", two_islands()),
    ]


@pytest.fixture
def sample_areas(sample_geometries):
    """ZipArea objects for the sample geometries."""
    return [make_area(zip_code, geom) for zip_code, geom in sample_geometries]


@pytest.fixture
def sample_db(sample_areas):
    """A loaded database over the sample areas."""
    return ZipCodeDb.from_areas(sample_areas)


@pytest.fixture
def db_file(tmp_path, sample_db):
    """The sample database written to a file."""
    path = tmp_path / "zipcodes.bin"
    sample_db.save(path)
    return path
