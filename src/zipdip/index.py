"""
Spatial index over ZIP code areas.

Two packed R-trees (shapely STRtree) are bulk-loaded once from the full
area set: one over the stored bounding boxes for containment candidates
and one over the centroids for the nearest-area fallback. The index is
never modified after construction.
"""

from typing import Iterator, List, Optional, Sequence

import numpy as np
import shapely
from shapely.geometry import Point
from shapely.strtree import STRtree

from .geometry import ZipArea


class SpatialIndex:
    """
    Read-only R-tree index answering bounding-box and nearest queries.
    """

    def __init__(self, areas: Sequence[ZipArea]):
        """
        Bulk-load the index.

        Args:
            areas: Every area the index will ever hold
        """
        self._areas = tuple(areas)

        boxes = [shapely.box(*area.bbox) for area in self._areas]
        self._bbox_tree = STRtree(boxes)

        self._centroid_tree = STRtree([area.centroid for area in self._areas])
        self._centroid_x = np.array([area.centroid.x for area in self._areas], dtype=float)
        self._centroid_y = np.array([area.centroid.y for area in self._areas], dtype=float)

    def __len__(self) -> int:
        return len(self._areas)

    def query_point(self, lon: float, lat: float) -> List[ZipArea]:
        """
        Find every area whose bounding box contains a point.

        This is a candidate set only: the polygon itself may not contain
        the point. Order is whatever the tree yields.

        Args:
            lon: Longitude (x)
            lat: Latitude (y)

        Returns:
            Candidate areas (empty for an empty index)
        """
        if not self._areas:
            return []

        hits = self._bbox_tree.query(Point(lon, lat))
        # Envelope hits, confirmed against the stored bbox (edges inclusive).
        return [
            self._areas[i] for i in hits
            if self._areas[i].bbox_contains(lon, lat)
        ]

    def nearest(self, lon: float, lat: float) -> Optional[ZipArea]:
        """Return the area with the closest centroid, or None if empty."""
        return next(self.iter_nearest(lon, lat), None)

    def iter_nearest(self, lon: float, lat: float) -> Iterator[ZipArea]:
        """
        Iterate areas by increasing centroid distance from a point.

        The first area comes straight from the centroid tree; the full
        ordering is only computed if the caller asks for more.

        Args:
            lon: Longitude (x)
            lat: Latitude (y)

        Yields:
            Areas in non-decreasing squared centroid distance
        """
        if not self._areas:
            return

        first = int(self._centroid_tree.nearest(Point(lon, lat)))
        yield self._areas[first]

        dist2 = (self._centroid_x - lon) ** 2 + (self._centroid_y - lat) ** 2
        for i in np.argsort(dist2, kind="stable"):
            if i != first:
                yield self._areas[i]
