"""
Download ZCTA shapefiles from the US Census Bureau.
"""

from pathlib import Path
from typing import Callable, Optional, Union
import zipfile

import requests


ZCTA_URLS = {
    "2020": "https://www2.census.gov/geo/tiger/TIGER2020/ZCTA520/tl_2020_us_zcta520.zip",
    "2010": "https://www2.census.gov/geo/tiger/TIGER2010/ZCTA5/2010/tl_2010_us_zcta510.zip",
}

CHUNK_SIZE = 1 << 20


def zcta_url(year: str) -> str:
    """
    Get the Census archive URL for a ZCTA vintage.

    Raises:
        ValueError: If the year is not supported
    """
    try:
        return ZCTA_URLS[year]
    except KeyError:
        raise ValueError(
            f"Unsupported year '{year}'. Supported years: {', '.join(sorted(ZCTA_URLS))}"
        ) from None


def download_zcta(
    output_dir: Union[str, Path],
    year: str = "2020",
    session: Optional[requests.Session] = None,
    progress: Optional[Callable[[int, int], None]] = None,
    timeout: float = 60.0,
) -> Path:
    """
    Download and extract the ZCTA shapefile archive.

    Args:
        output_dir: Directory for the archive and extracted files
            (created if missing)
        year: ZCTA vintage ("2020" or "2010")
        session: Optional requests session
        progress: Called with (bytes_downloaded, total_bytes); total is 0
            when the server sends no Content-Length
        timeout: Connect/read timeout in seconds

    Returns:
        Path to the extracted .shp file

    Raises:
        ValueError: Unsupported year, or no .shp in the archive
        requests.HTTPError: If the server returns an error status
    """
    url = zcta_url(year)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    archive_path = output_dir / url.rsplit("/", 1)[-1]

    http = session or requests
    with http.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        total = int(response.headers.get("Content-Length", 0))
        downloaded = 0
        with open(archive_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                f.write(chunk)
                downloaded += len(chunk)
                if progress is not None:
                    progress(downloaded, total)

    with zipfile.ZipFile(archive_path, "r") as zf:
        zf.extractall(output_dir)

    shp_path = archive_path.with_suffix(".shp")
    if not shp_path.exists():
        shp_files = sorted(output_dir.glob("*.shp"))
        if not shp_files:
            raise ValueError(f"No .shp file found in {archive_path}")
        shp_path = shp_files[0]

    return shp_path
