"""
Command-line interface for zipdip.

Provides commands for downloading ZCTA data, building the database and
querying it.
"""

import argparse
import os
import sys
import zipfile
from pathlib import Path
from typing import Optional

import duckdb
import requests

from .builder import BuilderConfig, build_database_file
from .database import ZipCodeDb
from .download import ZCTA_URLS, download_zcta, zcta_url
from .duckdb_source import ZctaShapefileReader
from .errors import DataLoadError, ZipCodeError


DEFAULT_DATABASE = "zipcodes.bin"
DEFAULT_DATA_DIR = Path("zip_data")
DEFAULT_YEAR = "2020"


def default_database() -> Path:
    """Database path from ZIPDIP_DATABASE, or zipcodes.bin."""
    return Path(os.environ.get("ZIPDIP_DATABASE", DEFAULT_DATABASE))


def _add_database_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-d", "--database",
        type=Path,
        default=None,
        help=f"Path to the ZIP code database file (default: $ZIPDIP_DATABASE or {DEFAULT_DATABASE})",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="zipdip",
        description="Offline ZIP code <-> coordinate lookups",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Download command
    download_parser = subparsers.add_parser(
        "download",
        help="Download ZCTA shapefiles from the US Census Bureau",
    )
    download_parser.add_argument(
        "-o", "--output",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help=f"Output directory for downloaded files (default: {DEFAULT_DATA_DIR})",
    )
    download_parser.add_argument(
        "-y", "--year",
        type=str,
        choices=sorted(ZCTA_URLS),
        default=DEFAULT_YEAR,
        help=f"Year of ZCTA data to download (default: {DEFAULT_YEAR})",
    )

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Process a ZCTA shapefile into the binary database",
    )
    build_parser.add_argument(
        "-i", "--input",
        type=Path,
        required=True,
        help="Input shapefile path (.shp or .zip)",
    )
    build_parser.add_argument(
        "-o", "--output",
        type=Path,
        default=Path(DEFAULT_DATABASE),
        help=f"Output binary file path (default: {DEFAULT_DATABASE})",
    )
    build_parser.add_argument(
        "--no-compress",
        action="store_true",
        help="Disable zlib compression of the database payload",
    )
    build_parser.add_argument(
        "--no-merge",
        action="store_true",
        help="Keep only the first shape for a repeated ZIP code instead of merging",
    )

    # Query commands
    centroid_parser = subparsers.add_parser(
        "zip-to-centroid",
        help="Get centroid coordinates for a ZIP code",
    )
    centroid_parser.add_argument("zipcode", help="ZIP code to look up")
    _add_database_argument(centroid_parser)

    reverse_parser = subparsers.add_parser(
        "latlon-to-zip",
        help="Find the ZIP code for given coordinates",
    )
    reverse_parser.add_argument("latitude", type=float, help="Latitude")
    reverse_parser.add_argument("longitude", type=float, help="Longitude")
    reverse_parser.add_argument(
        "-n", "--nearest",
        type=int,
        default=None,
        metavar="N",
        help="List the N ZIP codes with the nearest centroids instead",
    )
    _add_database_argument(reverse_parser)

    # Stats command
    stats_parser = subparsers.add_parser(
        "stats",
        help="Show statistics for a database file",
    )
    _add_database_argument(stats_parser)

    return parser


def load_database(path: Optional[Path]) -> Optional[ZipCodeDb]:
    """Load the database, printing an error and returning None on failure."""
    path = path or default_database()
    try:
        return ZipCodeDb.from_file(path)
    except DataLoadError as e:
        print(f"Error: Failed to load database from '{path}': {e}", file=sys.stderr)
        print(
            "\nMake sure you have built the database first (zipdip download && zipdip build).",
            file=sys.stderr,
        )
        return None


def cmd_download(args: argparse.Namespace) -> int:
    """Handle the download command."""
    print(f"Downloading ZCTA data for year {args.year}...")
    print(f"URL: {zcta_url(args.year)}")
    print(f"Output: {args.output}")

    def report(downloaded: int, total: int) -> None:
        if total:
            print(f"\r  {downloaded // 1_048_576} / {total // 1_048_576} MB", end="", flush=True)

    try:
        shp_path = download_zcta(args.output, args.year, progress=report)
    except (requests.RequestException, zipfile.BadZipFile, OSError, ValueError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    print(f"\nDownload complete! Shapefile: {shp_path}")
    print(f"\nNext: zipdip build -i {shp_path}")
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    """Handle the build command."""
    config = BuilderConfig(
        merge_duplicates=not args.no_merge,
        compress=not args.no_compress,
    )

    print(f"Reading shapefile: {args.input}")
    try:
        with ZctaShapefileReader(args.input, zip_fields=config.zip_fields) as reader:
            print(f"Using ZIP code field: {reader.zip_field}")
            stats = build_database_file(
                reader,
                args.output,
                config=config,
                progress=lambda n: print(f"Processed {n} ZIP codes..."),
            )
    except (duckdb.Error, zipfile.BadZipFile, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for warning in stats.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    print(f"\nBuild statistics:")
    print(f"  Records read: {stats.records_read}")
    print(f"  Processed: {stats.processed}")
    print(f"  Merged parts: {stats.merged}")
    if stats.skipped:
        print(f"  Skipped: {stats.skipped}")
    print(f"Done! Wrote {stats.output_bytes} bytes to {args.output}")

    return 0


def cmd_zip_to_centroid(args: argparse.Namespace) -> int:
    """Handle the zip-to-centroid command."""
    db = load_database(args.database)
    if db is None:
        return 1

    try:
        point = db.zip_to_centroid(args.zipcode)
    except ZipCodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{point.lat} {point.lon}")
    return 0


def cmd_latlon_to_zip(args: argparse.Namespace) -> int:
    """Handle the latlon-to-zip command."""
    db = load_database(args.database)
    if db is None:
        return 1

    try:
        if args.nearest is not None:
            for zip_code in db.nearest_zips(args.latitude, args.longitude, args.nearest):
                print(zip_code)
        else:
            print(db.lat_lon_to_zip(args.latitude, args.longitude))
    except ZipCodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the stats command."""
    db = load_database(args.database)
    if db is None:
        return 1

    print(f"ZIP code areas: {len(db)}")
    codes = db.zip_codes()
    if db.areas and codes:
        min_lon = min(area.bbox[0] for area in db.areas)
        min_lat = min(area.bbox[1] for area in db.areas)
        max_lon = max(area.bbox[2] for area in db.areas)
        max_lat = max(area.bbox[3] for area in db.areas)
        print(f"  ZIP range: {codes[0]} - {codes[-1]}")
        print(f"  Latitude extent: {min_lat} .. {max_lat}")
        print(f"  Longitude extent: {min_lon} .. {max_lon}")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "download":
        return cmd_download(args)
    elif args.command == "build":
        return cmd_build(args)
    elif args.command == "zip-to-centroid":
        return cmd_zip_to_centroid(args)
    elif args.command == "latlon-to-zip":
        return cmd_latlon_to_zip(args)
    elif args.command == "stats":
        return cmd_stats(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
