"""Tests for the ZCTA download helper."""

import io
import zipfile

import pytest
import requests

from zipdip.download import ZCTA_URLS, download_zcta, zcta_url


def make_archive(names):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name in names:
            zf.writestr(name, b"data")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code
        self.headers = {"Content-Length": str(len(content))}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response: FakeResponse):
        self.response = response
        self.requested = []

    def get(self, url, **kwargs):
        self.requested.append((url, kwargs))
        return self.response


class TestZctaUrl:
    """Tests for zcta_url function."""

    def test_supported_years(self):
        assert zcta_url("2020").endswith("tl_2020_us_zcta520.zip")
        assert zcta_url("2010").endswith("tl_2010_us_zcta510.zip")

    def test_unsupported_year(self):
        with pytest.raises(ValueError, match="Unsupported year '1999'"):
            zcta_url("1999")


class TestDownloadZcta:
    """Tests for download_zcta function."""

    def test_downloads_and_extracts(self, tmp_path):
        """Test the archive is saved, extracted and the .shp returned."""
        content = make_archive([
            "tl_2020_us_zcta520.shp",
            "tl_2020_us_zcta520.dbf",
            "tl_2020_us_zcta520.shx",
        ])
        session = FakeSession(FakeResponse(content))

        shp = download_zcta(tmp_path / "zip_data", "2020", session=session)

        assert shp == tmp_path / "zip_data" / "tl_2020_us_zcta520.shp"
        assert shp.exists()
        assert (tmp_path / "zip_data" / "tl_2020_us_zcta520.zip").read_bytes() == content
        assert session.requested[0][0] == ZCTA_URLS["2020"]
        assert session.requested[0][1]["stream"] is True

    def test_progress(self, tmp_path):
        """Test progress reports reach the full size."""
        content = make_archive(["tl_2010_us_zcta510.shp"])
        seen = []

        download_zcta(
            tmp_path, "2010",
            session=FakeSession(FakeResponse(content)),
            progress=lambda done, total: seen.append((done, total)),
        )

        assert seen[-1] == (len(content), len(content))

    def test_other_shp_name(self, tmp_path):
        """Test an archive whose .shp name differs from the archive name."""
        content = make_archive(["zcta.shp"])
        shp = download_zcta(tmp_path, "2020", session=FakeSession(FakeResponse(content)))
        assert shp.name == "zcta.shp"

    def test_no_shapefile(self, tmp_path):
        """Test an archive without a shapefile."""
        content = make_archive(["README.txt"])
        with pytest.raises(ValueError, match="No .shp file"):
            download_zcta(tmp_path, "2020", session=FakeSession(FakeResponse(content)))

    def test_http_error(self, tmp_path):
        """Test that HTTP errors propagate."""
        session = FakeSession(FakeResponse(b"", status_code=404))
        with pytest.raises(requests.HTTPError):
            download_zcta(tmp_path, "2020", session=session)

    def test_unsupported_year(self, tmp_path):
        """Test that no request is made for an unsupported year."""
        session = FakeSession(FakeResponse(b""))
        with pytest.raises(ValueError):
            download_zcta(tmp_path, "1999", session=session)
        assert session.requested == []
