"""Geometric containment predicates for geofences.

All functions are pure. Positions are ``(lon, lat)`` pairs in degrees,
distances are meters on a spherical Earth.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from fleetwatch._constants import EARTH_RADIUS_M
from fleetwatch.models._base import LonLat
from fleetwatch.models.geofence import CircleGeometry, Geofence, PolygonGeometry

_logger = logging.getLogger(__name__)


def haversine_distance(a: LonLat | Sequence[float], b: LonLat | Sequence[float]) -> float:
    """Great-circle distance in meters between two ``(lon, lat)`` points."""
    lon1, lat1 = a[0], a[1]
    lon2, lat2 = b[0], b[1]
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push h marginally outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_inside_circle(point: LonLat | Sequence[float], center: LonLat | Sequence[float], radius_m: float) -> bool:
    """True when *point* lies within *radius_m* meters of *center* (boundary inclusive)."""
    return haversine_distance(point, center) <= radius_m


def is_inside_polygon(point: LonLat | Sequence[float], ring: Sequence[LonLat | Sequence[float]]) -> bool:
    """Even-odd ray casting test against an implicitly closed vertex ring.

    Coordinates are treated as planar (lon = x, lat = y). Edges are
    half-open in y, so a given point always gets the same answer even
    when it sits exactly on an edge or a vertex.
    """
    n = len(ring)
    if n < 3:
        return False
    x, y = point[0], point[1]
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def is_inside_geofence(point: LonLat | Sequence[float], geofence: Geofence | Mapping[str, Any]) -> bool:
    """Containment test dispatched on the geofence geometry.

    Accepts a validated :class:`Geofence` or a raw wire mapping. Anything
    that does not validate, and any non-finite point, yields ``False``.
    """
    if not isinstance(geofence, Geofence):
        try:
            geofence = Geofence.model_validate(geofence)
        except (ValidationError, TypeError, ValueError):
            _logger.debug("Ignoring malformed geofence in containment test", exc_info=True)
            return False

    try:
        px, py = float(point[0]), float(point[1])
    except (TypeError, ValueError, IndexError):
        return False
    if not (math.isfinite(px) and math.isfinite(py)):
        return False
    position = LonLat(px, py)

    match geofence.geometry:
        case CircleGeometry(center=center, radius=radius):
            return is_inside_circle(position, center, radius)
        case PolygonGeometry(ring=ring):
            return is_inside_polygon(position, ring)
        case _:
            return False
