"""
Error types raised by the ZIP code database.

All query and load failures derive from ZipCodeError so callers can
catch a single base class or handle each kind separately.
"""


class ZipCodeError(Exception):
    """Base class for ZIP code database errors."""


class ZipNotFound(ZipCodeError):
    """A well-formed ZIP code that is not in the database."""

    def __init__(self, zip_code: str):
        self.zip_code = zip_code
        super().__init__(f"ZIP code not found: {zip_code}")


class InvalidZipFormat(ZipCodeError):
    """A ZIP code that is not exactly five ASCII digits."""

    def __init__(self, zip_code):
        self.zip_code = zip_code
        super().__init__(f"Invalid ZIP code format: {zip_code}")


class InvalidCoordinates(ZipCodeError):
    """Latitude or longitude outside the WGS84 range."""

    def __init__(self, lat: float, lon: float):
        self.lat = lat
        self.lon = lon
        super().__init__(f"Invalid coordinates: lat={lat}, lon={lon}")


class DataLoadError(ZipCodeError):
    """
    The database could not be loaded or holds no areas.

    Raised for missing, unreadable or undecodable files, and for spatial
    queries against an empty database.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Failed to load data: {message}")
